"""
Incident alerts REST + WebSocket API.

- core/: lifespan, CORS, middlewares, service wiring
- models/: SQLAlchemy ORM models
- services/: sessions, devices, push fan-out, live events, reports
- routers/: HTTP and WebSocket endpoints
"""
