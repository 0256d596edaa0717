"""One parameterized report workflow behind the site and category entry points."""

from collections.abc import Iterator, Mapping
from dataclasses import asdict, dataclass, field
from typing import Any, Final

from .. import metrics
from ..config import Settings
from ..domain.constants import (
    EVENT_REPORT_DOWNLOADED,
    EVENT_REPORT_VIEWED,
    TAB_CORE,
)
from ..domain.entities import (
    AuditEvent,
    DeletionRequest,
    Notification,
    ReportScope,
    RequestContext,
    ScopeKind,
)
from ..domain.exceptions import NotAuthenticatedError
from ..domain.ports import (
    AuditSink,
    BackupDirectory,
    CapabilityChecker,
    ContextResolver,
    FileStore,
)
from ..logging_config import get_logger
from .access import require_report_access, resolve_scope
from .autobackup_listing import list_autobackups
from .delete_workflow import DeletionOutcome, DeleteWorkflow, PendingDeletion
from .filtering import ALL_FILTERS, DIRECTORY_FILTERS, FilterSet
from .query_builder import ReportQueryRunner, SourceOptions, build_backup_query

logger: Final = get_logger(__name__)


@dataclass(frozen=True)
class Column:
    name: str
    label: str
    sortable: bool = True


CORE_COLUMNS: Final = (
    Column("component", "Component"),
    Column("filearea", "File area"),
    Column("filename", "Filename"),
    Column("fullname", "User"),
    Column("filesize", "Size"),
    Column("timecreated", "Time created"),
)
AUTOBACKUP_COLUMNS: Final = (
    Column("filename", "Filename"),
    Column("filesize", "Size"),
    Column("timecreated", "Time created"),
)

_ORDER_COLUMNS: Final = {
    "component": "f.component",
    "filearea": "f.filearea",
    "filename": "f.filename",
    "fullname": "u.lastname {dir}, u.firstname",
    "filesize": "f.filesize",
    "timecreated": "f.timecreated",
}

DEFAULT_SORT: Final = "timecreated"
DOWNLOAD_FORMATS: Final = ("csv", "tsv", "json")


@dataclass(frozen=True)
class TableRequest:
    """Paging, sorting and download options for the report table."""

    page: int = 0
    sort: str = DEFAULT_SORT
    descending: bool = True
    download: str | None = None

    def __post_init__(self):
        if self.page < 0:
            object.__setattr__(self, "page", 0)
        if self.sort not in _ORDER_COLUMNS:
            object.__setattr__(self, "sort", DEFAULT_SORT)
        if self.download is not None and self.download not in DOWNLOAD_FORMATS:
            object.__setattr__(self, "download", None)

    @property
    def is_downloading(self) -> bool:
        return self.download is not None

    def order_by(self) -> str:
        direction = "DESC" if self.descending else "ASC"
        column = _ORDER_COLUMNS[self.sort].format(dir=direction)
        # Record id breaks ties so repeated requests return the same order
        return f"{column} {direction}, f.id {direction}"


@dataclass
class ConfirmationPage:
    scope: ReportScope
    pending: PendingDeletion
    request_context: RequestContext


@dataclass
class ReportPage:
    scope: ReportScope
    request_context: RequestContext
    filters: FilterSet
    table: TableRequest
    columns: tuple[Column, ...]
    rows: list[Mapping[str, Any]]
    total: int
    page_size: int
    can_delete: bool
    show_tabs: bool
    notifications: list[Notification] = field(default_factory=list)

    @property
    def page_count(self) -> int:
        return max(1, -(-self.total // self.page_size))


@dataclass
class ReportDownload:
    scope: ReportScope
    columns: tuple[Column, ...]
    rows: Iterator[Mapping[str, Any]]
    format: str


def _with_fullname(row: Mapping[str, Any]) -> dict[str, Any]:
    data = dict(row)
    names = (data.get("firstname") or "", data.get("lastname") or "")
    data["fullname"] = " ".join(name for name in names if name)
    return data


class ReportService:
    """Drives gate, delete workflow, query and render/export for one request."""

    def __init__(
        self,
        *,
        settings: Settings,
        contexts: ContextResolver,
        capabilities: CapabilityChecker,
        audit: AuditSink,
        file_store: FileStore,
        query_runner: ReportQueryRunner,
        backup_directory: BackupDirectory | None = None,
    ):
        self.settings = settings
        self.contexts = contexts
        self.capabilities = capabilities
        self.audit = audit
        self.query_runner = query_runner
        self.backup_directory = backup_directory
        self.workflow = DeleteWorkflow(
            capabilities=capabilities,
            contexts=contexts,
            audit=audit,
            file_store=file_store,
            backup_directory=backup_directory,
        )

    def open_scope(
        self,
        request_context: RequestContext | None,
        kind: ScopeKind,
        context_id: int | None = None,
        tab: str = TAB_CORE,
    ) -> tuple[RequestContext, ReportScope]:
        """Resolve the scope and pass the access gate, or raise."""
        if request_context is None:
            raise NotAuthenticatedError("You must be logged in to view this report")
        scope = resolve_scope(self.contexts, kind, context_id, tab)
        request_context = require_report_access(
            request_context, scope, self.capabilities, self.settings
        )
        return request_context, scope

    def run(
        self,
        request_context: RequestContext,
        scope: ReportScope,
        deletion: DeletionRequest,
        params: Mapping[str, str],
        table: TableRequest,
    ) -> ConfirmationPage | ReportPage | ReportDownload:
        notifications: list[Notification] = []

        result = self.workflow.handle(request_context, scope, deletion)
        if isinstance(result, PendingDeletion):
            return ConfirmationPage(
                scope=scope, pending=result, request_context=request_context
            )
        if isinstance(result, DeletionOutcome):
            notifications.extend(result.notifications)

        available = DIRECTORY_FILTERS if scope.is_autobackup else ALL_FILTERS
        filters = FilterSet.from_params(params, available)

        if table.is_downloading:
            return self._download(request_context, scope, filters, table)
        return self._render(request_context, scope, filters, table, notifications)

    def _source_options(self, scope: ReportScope) -> SourceOptions:
        if scope.kind == ScopeKind.SYSTEM:
            return SourceOptions()
        return SourceOptions(
            backup_tool_only=self.settings.backup_tool_only,
            include_activities=self.settings.include_activities,
        )

    def _render(
        self,
        request_context: RequestContext,
        scope: ReportScope,
        filters: FilterSet,
        table: TableRequest,
        notifications: list[Notification],
    ) -> ReportPage:
        page_size = self.settings.page_size
        offset = table.page * page_size

        if scope.is_autobackup:
            listing = list_autobackups(
                self._require_directory(),
                filters,
                sort=table.sort,
                descending=table.descending,
                limit=page_size,
                offset=offset,
            )
            rows: list[Mapping[str, Any]] = [
                asdict(entry) for entry in listing.rows
            ]
            total = listing.total
            columns = AUTOBACKUP_COLUMNS
        else:
            query = build_backup_query(scope, filters, self._source_options(scope))
            total = self.query_runner.count(query)
            rows = [
                _with_fullname(row)
                for row in self.query_runner.fetch_page(
                    query, table.order_by(), page_size, offset
                )
            ]
            columns = CORE_COLUMNS

        can_delete = self.capabilities.has_capability(
            request_context.user, scope.delete_capability, scope.context
        )
        self._record(EVENT_REPORT_VIEWED, request_context, scope)
        metrics.record_report_viewed(scope.kind.value, scope.tab)

        return ReportPage(
            scope=scope,
            request_context=request_context,
            filters=filters,
            table=table,
            columns=columns,
            rows=rows,
            total=total,
            page_size=page_size,
            can_delete=can_delete,
            show_tabs=(
                scope.kind == ScopeKind.CATEGORY and self.settings.autobackup_configured
            ),
            notifications=notifications,
        )

    def _download(
        self,
        request_context: RequestContext,
        scope: ReportScope,
        filters: FilterSet,
        table: TableRequest,
    ) -> ReportDownload:
        self._record(EVENT_REPORT_DOWNLOADED, request_context, scope)
        metrics.record_report_downloaded(table.download or "", scope.kind.value)

        if scope.is_autobackup:
            listing = list_autobackups(
                self._require_directory(),
                filters,
                sort=table.sort,
                descending=table.descending,
            )
            rows: Iterator[Mapping[str, Any]] = (
                asdict(entry) for entry in listing.rows
            )
            columns = AUTOBACKUP_COLUMNS
        else:
            query = build_backup_query(scope, filters, self._source_options(scope))
            rows = (
                _with_fullname(row)
                for row in self.query_runner.iterate(query, table.order_by())
            )
            columns = CORE_COLUMNS

        return ReportDownload(
            scope=scope, columns=columns, rows=rows, format=table.download or "csv"
        )

    def _require_directory(self) -> BackupDirectory:
        if self.backup_directory is None:
            # Gate already rejected unconfigured destinations
            raise RuntimeError("Automated backup directory is not available")
        return self.backup_directory

    def _record(
        self, name: str, request_context: RequestContext, scope: ReportScope
    ) -> None:
        self.audit.record(
            AuditEvent(
                name=name,
                context_id=scope.context.id,
                user_id=request_context.user.id,
                other={"tab": scope.tab},
                ip_address=request_context.ip_address,
            )
        )
