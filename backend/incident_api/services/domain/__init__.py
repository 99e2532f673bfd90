"""
Domain services.

Usage:
    from incident_api.services.domain import ReportIngestor, ReportQueryService
    reports = ReportQueryService(db).list_all()
"""

from .report_service import ReportIngestor
from .report_queries import ReportQueryService

__all__ = [
    "ReportIngestor",
    "ReportQueryService",
]
