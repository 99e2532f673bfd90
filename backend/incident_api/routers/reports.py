"""
Report router.

Creating a report returns as soon as the row is stored; live listeners
and administrator devices are notified in the background.
"""

from fastapi import APIRouter, Depends

from incident_shared.config.logging import api_logger as logger
from incident_shared.security.auth import Principal, current_principal
from incident_shared.utils.schemas import (
    CitizenOutput,
    ReportCreateRequest,
    ReportOutput,
    ReportStats,
    ReportTotal,
    StatusUpdateRequest,
    StatusUpdateResponse,
    UserStatsOutput,
)
from incident_api.core.dependencies import get_ingestor, get_report_queries
from incident_api.services.domain import ReportIngestor, ReportQueryService


router = APIRouter(tags=["reports"])


# =============================================================================
# Write side
# =============================================================================


@router.post("/report", response_model=ReportOutput)
async def create_report(
    body: ReportCreateRequest,
    principal: Principal = Depends(current_principal),
    ingestor: ReportIngestor = Depends(get_ingestor),
) -> ReportOutput:
    return await ingestor.create(principal, body)


@router.put("/report/{report_id}/status", response_model=StatusUpdateResponse)
@router.put("/reports/{report_id}/status", response_model=StatusUpdateResponse)
async def update_report_status(
    report_id: int,
    body: StatusUpdateRequest,
    principal: Principal = Depends(current_principal),
    ingestor: ReportIngestor = Depends(get_ingestor),
) -> StatusUpdateResponse:
    """Administrators only. Any status may follow any other."""
    report = await ingestor.update_status(principal, report_id, body.status)
    return StatusUpdateResponse(
        id=report.id,
        status=report.status,
        message=f"Report status updated to {report.status}",
    )


# =============================================================================
# Read side
# =============================================================================


@router.get("/reports/all", response_model=list[ReportOutput])
def list_reports(
    principal: Principal = Depends(current_principal),
    queries: ReportQueryService = Depends(get_report_queries),
) -> list[ReportOutput]:
    """All reports, newest first."""
    reports = queries.list_all()
    logger.debug("Reports listed", user_id=principal.id, count=len(reports))
    return reports


@router.get("/reports/count", response_model=ReportStats)
def report_stats(queries: ReportQueryService = Depends(get_report_queries)) -> ReportStats:
    return queries.stats()


@router.get("/reports/total", response_model=ReportTotal)
def report_total(queries: ReportQueryService = Depends(get_report_queries)) -> ReportTotal:
    return ReportTotal(total=queries.total())


@router.get("/reports/user-stats", response_model=UserStatsOutput)
def my_stats(
    principal: Principal = Depends(current_principal),
    queries: ReportQueryService = Depends(get_report_queries),
) -> UserStatsOutput:
    return queries.user_stats(principal)


@router.get("/reports/user-stats/{username}", response_model=UserStatsOutput)
def citizen_stats(
    username: str,
    principal: Principal = Depends(current_principal),
    queries: ReportQueryService = Depends(get_report_queries),
) -> UserStatsOutput:
    return queries.citizen_stats(username)


@router.get("/reports/by-username/{username}", response_model=list[ReportOutput])
def citizen_reports(
    username: str,
    principal: Principal = Depends(current_principal),
    queries: ReportQueryService = Depends(get_report_queries),
) -> list[ReportOutput]:
    return queries.reports_by_username(username)


@router.get("/reports/{report_id}", response_model=ReportOutput)
def get_report(
    report_id: int,
    principal: Principal = Depends(current_principal),
    queries: ReportQueryService = Depends(get_report_queries),
) -> ReportOutput:
    return queries.get(report_id)


@router.get("/user/{username}", response_model=CitizenOutput)
def get_citizen(
    username: str,
    principal: Principal = Depends(current_principal),
    queries: ReportQueryService = Depends(get_report_queries),
) -> CitizenOutput:
    return queries.citizen(username)
