from collections.abc import Mapping
from typing import Any, Final
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import HTMLResponse

from ..application.filtering import FILTER_LABELS, TextOperator
from ..application.report_service import (
    DOWNLOAD_FORMATS,
    ConfirmationPage,
    ReportDownload,
    ReportPage,
    ReportService,
    TableRequest,
)
from ..config import settings
from ..domain.constants import BACKUP_FILEAREAS, TAB_AUTOBACKUP, TAB_CORE
from ..domain.entities import DeletionRequest, ReportScope, RequestContext, ScopeKind
from ..logging_config import get_logger
from ..request_utils import get_form_or_query
from ..utils import display_size, format_timestamp, truncate_name
from .dependencies import get_report_service, get_request_context
from .error_handlers import templates
from .export import MEDIA_TYPES, export_filename, render_download

logger: Final = get_logger(__name__)

router: Final = APIRouter()

SITE_REPORT_PATH: Final = "/report/allbackups/"
CATEGORY_REPORT_PATH: Final = "/report/allbackups/category"

_TRUE_VALUES: Final = {"1", "true", "yes", "on"}

templates.env.filters["truncate_name"] = truncate_name
templates.env.filters["display_size"] = display_size
templates.env.filters["format_timestamp"] = format_timestamp


def _first(params: Mapping[str, list[str]], name: str) -> str | None:
    values = params.get(name)
    return values[0] if values else None


def _flatten(params: Mapping[str, list[str]]) -> dict[str, str]:
    return {name: values[0] for name, values in params.items() if values}


def _parse_int(raw: str | None, default: int | None = None) -> int | None:
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def parse_deletion(params: Mapping[str, list[str]]) -> DeletionRequest:
    """Read the delete workflow parameters from a request."""
    fileids = _first(params, "fileids") or ""
    return DeletionRequest(
        delete=(_first(params, "delete") or "").strip() or None,
        delete_selected=bool(_first(params, "deleteselectedfiles")),
        selected=[value.strip() for value in params.get("selected", [])],
        fileids=[target.strip() for target in fileids.split(",") if target.strip()],
        confirm=(_first(params, "confirm") or "").lower() in _TRUE_VALUES,
        sesskey=_first(params, "sesskey"),
    )


def parse_table(params: Mapping[str, list[str]]) -> TableRequest:
    return TableRequest(
        page=_parse_int(_first(params, "page"), 0) or 0,
        sort=_first(params, "tsort") or "timecreated",
        descending=(_first(params, "tdir") or "desc").lower() != "asc",
        download=_first(params, "download") or None,
    )


def report_url(scope: ReportScope, **params: Any) -> str:
    """Build a URL back to the report page the scope belongs to."""
    query: dict[str, str] = {}
    if scope.kind == ScopeKind.CATEGORY:
        query["contextid"] = str(scope.context.id)
        if scope.tab != TAB_CORE:
            query["tab"] = scope.tab
    query.update(
        {name: str(value) for name, value in params.items() if value is not None}
    )

    if scope.kind == ScopeKind.SYSTEM:
        path = SITE_REPORT_PATH
    else:
        path = CATEGORY_REPORT_PATH
    return f"{path}?{urlencode(query)}" if query else path


def _tab_urls(scope: ReportScope) -> list[dict[str, Any]]:
    tabs = [(TAB_CORE, "Standard backups"), (TAB_AUTOBACKUP, "Automated backups")]
    return [
        {
            "name": name,
            "label": label,
            "url": report_url(ReportScope(scope.kind, scope.context, name)),
            "active": scope.tab == name,
        }
        for name, label in tabs
    ]


def _report_context(page: ReportPage) -> dict[str, Any]:
    scope = page.scope
    filter_params = page.filters.to_params()
    table = page.table
    sort_params = {"tsort": table.sort, "tdir": "desc" if table.descending else "asc"}

    def page_url(number: int) -> str:
        return report_url(scope, **filter_params, **sort_params, page=number)

    def sort_url(column: str) -> str:
        # Clicking the active column flips its direction
        descending = not table.descending if column == table.sort else False
        return report_url(
            scope, **filter_params, tsort=column, tdir="desc" if descending else "asc"
        )

    def download_url(file_format: str) -> str:
        return report_url(scope, **filter_params, **sort_params, download=file_format)

    def remove_filter_url(name: str) -> str:
        return report_url(scope, **page.filters.to_params(exclude=name))

    def delete_url(target: Any) -> str:
        return report_url(scope, **filter_params, delete=target)

    return {
        "settings": settings,
        "page": page,
        "scope": scope,
        "is_autobackup": scope.is_autobackup,
        "tabs": _tab_urls(scope) if page.show_tabs else [],
        "form_action": report_url(scope),
        "sesskey": page.request_context.sesskey,
        "filter_params": filter_params,
        "filter_fields": page.filters.available,
        "filter_labels": FILTER_LABELS,
        "text_operators": list(TextOperator),
        "fileareas": BACKUP_FILEAREAS,
        "active_filters": page.filters.describe(),
        "download_formats": DOWNLOAD_FORMATS,
        "page_url": page_url,
        "sort_url": sort_url,
        "download_url": download_url,
        "remove_filter_url": remove_filter_url,
        "delete_url": delete_url,
        "notifications": page.notifications,
    }


def _confirmation_context(confirmation: ConfirmationPage) -> dict[str, Any]:
    scope = confirmation.scope
    hidden = {
        "deleteselectedfiles": "1",
        "confirm": "1",
        "fileids": confirmation.pending.fileids,
        "tab": scope.tab,
        "sesskey": confirmation.request_context.sesskey,
    }
    if scope.kind == ScopeKind.CATEGORY:
        hidden["contextid"] = str(scope.context.id)
    return {
        "settings": settings,
        "scope": scope,
        "count": confirmation.pending.count,
        "targets": confirmation.pending.targets,
        "hidden": hidden,
        "form_action": report_url(scope),
        "cancel_url": report_url(scope),
    }


def _respond(
    request: Request,
    service: ReportService,
    request_context: RequestContext,
    scope: ReportScope,
    params: Mapping[str, list[str]],
) -> Response:
    result = service.run(
        request_context,
        scope,
        parse_deletion(params),
        _flatten(params),
        parse_table(params),
    )

    if isinstance(result, ConfirmationPage):
        return templates.TemplateResponse(
            request, "confirm.html", _confirmation_context(result)
        )

    if isinstance(result, ReportDownload):
        logger.info(
            "Report download",
            scope=scope.kind.value,
            context_id=scope.context.id,
            format=result.format,
        )
        return Response(
            content=render_download(result),
            media_type=MEDIA_TYPES[result.format],
            headers={
                "Content-Disposition": (
                    f'attachment; filename="{export_filename(result)}"'
                )
            },
        )

    return templates.TemplateResponse(request, "report.html", _report_context(result))


@router.api_route(
    SITE_REPORT_PATH, methods=["GET", "POST"], response_class=HTMLResponse
)
async def site_report(
    *,
    request: Request,
    service: ReportService = Depends(get_report_service),
    request_context: RequestContext | None = Depends(get_request_context),
):
    """Backup files across the whole site."""
    params = await get_form_or_query(request)
    request_context, scope = service.open_scope(request_context, ScopeKind.SYSTEM)
    return _respond(request, service, request_context, scope, params)


@router.api_route(
    CATEGORY_REPORT_PATH, methods=["GET", "POST"], response_class=HTMLResponse
)
async def category_report(
    *,
    request: Request,
    service: ReportService = Depends(get_report_service),
    request_context: RequestContext | None = Depends(get_request_context),
):
    """Backup files of the courses below one course category."""
    params = await get_form_or_query(request)
    request_context, scope = service.open_scope(
        request_context,
        ScopeKind.CATEGORY,
        _parse_int(_first(params, "contextid")),
        _first(params, "tab") or TAB_CORE,
    )
    logger.debug(
        "Category report requested", context_id=scope.context.id, tab=scope.tab
    )
    return _respond(request, service, request_context, scope, params)


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
