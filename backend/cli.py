"""
Incident alerts CLI.

Command-line interface for maintenance operations.
"""

import asyncio
from datetime import timedelta

import typer
from rich.console import Console
from rich.table import Table
from sqlalchemy.exc import IntegrityError

app = typer.Typer(
    name="incident-alerts",
    help="Incident alerts maintenance CLI",
    add_completion=False,
)
console = Console()


# =============================================================================
# Database Commands
# =============================================================================


@app.command()
def db_init():
    """Create all database tables."""
    from incident_shared.infrastructure.db import engine
    from incident_api.models import Base

    console.print(f"[blue]Creating tables on {engine.url.render_as_string(hide_password=True)}[/blue]")
    try:
        Base.metadata.create_all(bind=engine)
    except Exception as e:
        console.print(f"[red]✗ Table creation failed: {e}[/red]")
        raise typer.Exit(1)
    console.print("[green]✓ Tables created/verified[/green]")


@app.command()
def create_admin(
    username: str = typer.Argument(..., help="Login name"),
    name: str = typer.Option(..., "--name", "-n", help="Display name"),
    role: str = typer.Option("admin", "--role", "-r", help="Administrator role"),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True),
):
    """Create an administrator account."""
    from incident_shared.infrastructure.db import get_db_context
    from incident_shared.security.password import hash_password
    from incident_api.models import Admin

    with get_db_context() as db:
        admin = Admin(username=username, name=name, role=role, password=hash_password(password))
        db.add(admin)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            console.print(f"[red]✗ Username '{username}' already exists[/red]")
            raise typer.Exit(1)
        console.print(f"[green]✓ Administrator {username} created (id={admin.id})[/green]")


@app.command()
def create_user(
    username: str = typer.Argument(..., help="Login name"),
    name: str = typer.Option(..., "--name", "-n", help="Display name"),
    address: str = typer.Option(None, "--address", "-a", help="Home address used for reports"),
    phone: str = typer.Option(None, "--phone", "-p", help="Contact phone"),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True),
):
    """Create a citizen account."""
    from incident_shared.infrastructure.db import get_db_context
    from incident_shared.security.password import hash_password
    from incident_api.models import User

    with get_db_context() as db:
        user = User(
            username=username,
            name=name,
            address=address,
            phone=phone,
            password=hash_password(password),
        )
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            console.print(f"[red]✗ Username '{username}' already exists[/red]")
            raise typer.Exit(1)
        console.print(f"[green]✓ User {username} created (id={user.id})[/green]")


# =============================================================================
# Push Delivery Commands
# =============================================================================


@app.command()
def sessions_clear(
    ttl_seconds: int = typer.Option(None, "--ttl-seconds", help="Maximum session age (default: SESSION_TTL_SECONDS)"),
):
    """Clear administrator sessions older than the TTL."""
    from incident_shared.config.settings import settings
    from incident_shared.infrastructure.db import SessionLocal
    from incident_api.services.registry import SessionRegistry

    ttl = ttl_seconds if ttl_seconds is not None else settings.session_ttl_seconds
    cleared = SessionRegistry(SessionLocal).sweep(timedelta(seconds=ttl))
    console.print(f"[green]✓ Cleared {cleared} session(s) older than {ttl}s[/green]")


@app.command()
def push_validate():
    """Probe every registered push token and remove the invalid ones."""
    from incident_api.core.dependencies import build_services

    services = build_services()

    async def _validate():
        table = Table(title="Registered devices")
        table.add_column("Admin", style="cyan")
        table.add_column("Session", style="green")
        for target in services.devices.snapshot():
            table.add_row(str(target.admin_id), target.session_id or "-")
        console.print(table)

        return await services.devices.validate_all()

    try:
        summary = asyncio.run(_validate())
    finally:
        services.sender.close()

    console.print(
        f"[green]✓ {summary.valid} valid, {summary.invalid} invalid token(s) removed[/green]"
    )


# =============================================================================
# Server Commands
# =============================================================================


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind address"),
    port: int = typer.Option(None, help="Port (default: API_PORT)"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
):
    """Run the API server."""
    import uvicorn
    from incident_shared.config.settings import settings

    uvicorn.run(
        "incident_api.main:app",
        host=host,
        port=port or settings.api_port,
        reload=reload,
    )


if __name__ == "__main__":
    app()
