"""FastAPI dependencies wiring the report service to its adapters."""

from fastapi import Depends, Request
from sqlmodel import Session

from ..application.report_service import ReportService
from ..config import Settings, get_settings
from ..domain.entities import RequestContext
from ..domain.ports import BackupDirectory
from ..infrastructure.database.database import get_session
from ..infrastructure.database.report_query import SqlReportQueryRunner
from ..infrastructure.database.repositories import (
    SqlAuditSink,
    SqlCapabilityChecker,
    SqlContextResolver,
    SqlFileStore,
    SqlSessionResolver,
)
from ..infrastructure.filesystem import LocalBackupDirectory
from ..request_utils import get_client_ip


def get_request_context(
    request: Request,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> RequestContext | None:
    """Resolve the host session cookie; None when the caller is not logged in."""
    sid = request.cookies.get(settings.session_cookie_name)
    return SqlSessionResolver(session).resolve(sid, get_client_ip(request))


def get_backup_directory(
    settings: Settings = Depends(get_settings),
) -> BackupDirectory | None:
    if settings.backup_auto_destination is None:
        return None
    return LocalBackupDirectory(settings.backup_auto_destination)


def get_report_service(
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
    backup_directory: BackupDirectory | None = Depends(get_backup_directory),
) -> ReportService:
    return ReportService(
        settings=settings,
        contexts=SqlContextResolver(session),
        capabilities=SqlCapabilityChecker(session),
        audit=SqlAuditSink(session),
        file_store=SqlFileStore(session),
        query_runner=SqlReportQueryRunner(session),
        backup_directory=backup_directory,
    )
