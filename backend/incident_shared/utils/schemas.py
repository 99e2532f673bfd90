"""
Shared Pydantic schemas used across the application.

Request models accept the field names used by the deployed mobile clients
(``jenis_laporan``, ``isSirine``, ``fcm_token``) alongside the canonical ones.
"""

from datetime import datetime
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


# =============================================================================
# Common Types
# =============================================================================

ReporterKind = Literal["user", "admin"]
ReportStatusValue = Literal["pending", "processing", "completed", "rejected"]


# =============================================================================
# Authentication Schemas
# =============================================================================


class LoginRequest(BaseModel):
    """Login request body. Missing fields are reported as a 400 by the route."""

    username: str | None = None
    password: str | None = None


class LoginResponse(BaseModel):
    """Login response with bearer token and principal summary."""

    token: str
    token_type: str = "Bearer"
    id: int
    name: str
    username: str
    is_admin: bool
    role: str | None = None


class LogoutResponse(BaseModel):
    success: bool
    message: str


class ProfileOutput(BaseModel):
    """Profile of the authenticated principal. Administrators have no address or phone."""

    id: int
    username: str
    name: str
    address: str = "-"
    phone: str = "-"
    created_at: datetime | None = None
    role: str | None = None
    is_admin: bool


class CitizenOutput(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    name: str
    address: str | None = None
    phone: str | None = None
    created_at: datetime | None = None


# =============================================================================
# Push Token Schemas
# =============================================================================


class PushTokenRequest(BaseModel):
    """Device push token registration."""

    push_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("push_token", "fcm_token"),
    )


class PushTokenResponse(BaseModel):
    message: str
    session_id: str
    session_start: datetime


class PushValidateResponse(BaseModel):
    message: str
    valid_tokens: int
    invalid_tokens_removed: int


class PushTestRequest(BaseModel):
    test_message: str = "Test notification from server"


class PushTestResult(BaseModel):
    """Per-device outcome of a test delivery."""

    admin_id: int
    success: bool
    status: str
    duration_ms: int
    message_id: str | None = None
    error: str | None = None


class PushTestResponse(BaseModel):
    message: str
    total_duration_ms: int
    successful_sends: int
    total_tokens: int
    results: list[PushTestResult]


# =============================================================================
# Session Schemas
# =============================================================================


class SessionValidateRequest(BaseModel):
    session_id: str | None = None


class SessionValidateResponse(BaseModel):
    valid: bool
    current_session: str | None = None
    session_start: datetime | None = None
    message: str


class SessionClearResponse(BaseModel):
    message: str
    affected_rows: int


# =============================================================================
# Report Schemas
# =============================================================================


class ReportCreateRequest(BaseModel):
    """
    New incident report.

    ``category`` is optional here so the service can reject its absence
    with a 400 rather than a schema error.
    """

    category: str | None = Field(
        default=None,
        max_length=100,
        validation_alias=AliasChoices("category", "jenis_laporan"),
    )
    address: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=50)
    use_account_data: bool = False
    is_sirine: bool = Field(
        default=False,
        validation_alias=AliasChoices("is_sirine", "isSirine"),
    )


class ReportOutput(BaseModel):
    """Report as returned to clients and published to live listeners."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    reporter_id: int
    reporter_type: ReporterKind
    reporter_name: str = "-"
    address: str
    phone: str = "-"
    category: str
    is_sirine: bool = False
    status: ReportStatusValue
    created_at: datetime


class StatusUpdateRequest(BaseModel):
    status: str | None = None


class StatusUpdateResponse(BaseModel):
    id: int
    status: ReportStatusValue
    message: str


class LocationCount(BaseModel):
    address: str
    count: int


class ReportStats(BaseModel):
    total: int
    today: int
    top_locations: list[LocationCount]


class ReportTotal(BaseModel):
    total: int


class RecentReport(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    address: str
    category: str
    status: ReportStatusValue
    created_at: datetime


class ReporterSummary(BaseModel):
    name: str
    address: str | None = None
    phone: str | None = None


class ReportCounts(BaseModel):
    total: int
    today: int
    recent: list[RecentReport]


class UserStatsOutput(BaseModel):
    user: ReporterSummary
    reports: ReportCounts


# =============================================================================
# Health
# =============================================================================


class HealthOutput(BaseModel):
    status: str
    timestamp: datetime
