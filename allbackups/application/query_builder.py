"""Builds the SQL that selects backup files visible in a report scope."""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Final, Protocol

from ..domain.constants import (
    BACKUP_SUFFIX_PATTERN,
    COMPONENT_BACKUP,
    COMPONENT_COURSE,
    COMPONENT_RECYCLEBIN,
    CONTEXT_COURSE,
    FILEAREA_AUTOMATED,
    FILEAREA_COURSE,
    FILEAREA_DRAFT,
    FILEAREA_LEGACY,
)
from ..domain.entities import Context, ReportScope, ScopeKind
from .filtering import FilterSet

FIELDS: Final = (
    "f.id, f.contextid, f.component, f.filearea, f.filename, f.userid, "
    "f.filesize, f.timecreated, f.filepath, f.itemid, u.firstname, u.lastname"
)


@dataclass(frozen=True)
class SourceOptions:
    """Configuration that narrows which files the category report shows."""

    backup_tool_only: bool = False
    include_activities: bool = False


@dataclass
class BackupQuery:
    fields: str
    from_clause: str
    where: str
    params: dict[str, Any] = field(default_factory=dict)

    def select_sql(self, order_by: str | None = None) -> str:
        sql = f"SELECT {self.fields} FROM {self.from_clause} WHERE {self.where}"
        if order_by:
            sql += f" ORDER BY {order_by}"
        return sql

    def count_sql(self) -> str:
        return f"SELECT COUNT(1) FROM {self.from_clause} WHERE {self.where}"


class ReportQueryRunner(Protocol):
    """Executes a report query: counting, paging and streaming rows."""

    def count(self, query: BackupQuery) -> int: ...

    def fetch_page(
        self, query: BackupQuery, order_by: str, limit: int, offset: int
    ) -> list[Mapping[str, Any]]: ...

    def iterate(
        self, query: BackupQuery, order_by: str
    ) -> Iterator[Mapping[str, Any]]: ...


def _path_restriction(context: Context) -> tuple[str, dict[str, Any]]:
    """Limit rows to contexts strictly below the category context."""
    return "cx.path LIKE :ctxpath", {"ctxpath": f"{context.path}/%"}


def _system_query(filters: FilterSet) -> BackupQuery:
    from_clause = "files f JOIN users u ON u.id = f.userid"
    where = (
        "f.filename LIKE :backupsuffix AND f.filename <> '.' "
        "AND f.component <> :cmprecycle AND f.filearea <> :fadraft"
    )
    params: dict[str, Any] = {
        "backupsuffix": BACKUP_SUFFIX_PATTERN,
        "cmprecycle": COMPONENT_RECYCLEBIN,
        "fadraft": FILEAREA_DRAFT,
    }
    if filters.needs_course_join:
        # Files outside a course context drop out once a category is chosen
        from_clause += (
            " JOIN context cx ON cx.id = f.contextid"
            " AND cx.contextlevel = :contextlevel"
            " JOIN course c ON c.id = cx.instanceid"
        )
        params["contextlevel"] = CONTEXT_COURSE
    return BackupQuery(FIELDS, from_clause, where, params)


def _category_query(
    context: Context, filters: FilterSet, options: SourceOptions
) -> BackupQuery:
    params: dict[str, Any] = {
        "contextlevel": CONTEXT_COURSE,
        "backupsuffix": BACKUP_SUFFIX_PATTERN,
    }
    path_sql, path_params = _path_restriction(context)
    params.update(path_params)

    if options.backup_tool_only:
        if options.include_activities:
            source = (
                "(SELECT * FROM files"
                " WHERE component = :cmpbackup"
                " OR (component = :cmpcourse AND filearea = :falegacy)) f"
            )
        else:
            source = (
                "(SELECT * FROM files"
                " WHERE filearea IN (:facourse, :faautomated, :falegacy)"
                " AND component IN (:cmpbackup, :cmpcourse)) f"
            )
            params["facourse"] = FILEAREA_COURSE
            params["faautomated"] = FILEAREA_AUTOMATED
        params["falegacy"] = FILEAREA_LEGACY
        params["cmpbackup"] = COMPONENT_BACKUP
        params["cmpcourse"] = COMPONENT_COURSE
    else:
        source = "files f"

    where = (
        "f.filename LIKE :backupsuffix"
        " AND f.component <> :cmprecycle"
        " AND f.filearea <> :fadraft"
        f" AND {path_sql}"
    )
    params["cmprecycle"] = COMPONENT_RECYCLEBIN
    params["fadraft"] = FILEAREA_DRAFT

    from_clause = (
        f"{source} JOIN users u ON u.id = f.userid"
        " JOIN context cx ON cx.id = f.contextid AND cx.contextlevel = :contextlevel"
    )
    if filters.needs_course_join:
        from_clause += " JOIN course c ON c.id = cx.instanceid"

    return BackupQuery(FIELDS, from_clause, where, params)


def build_backup_query(
    scope: ReportScope, filters: FilterSet, options: SourceOptions | None = None
) -> BackupQuery:
    """Assemble fields, FROM, WHERE and parameters for a report scope.

    Filter predicates are appended to the scope's base conditions with AND.
    """
    options = options or SourceOptions()
    if scope.kind == ScopeKind.SYSTEM:
        query = _system_query(filters)
    else:
        query = _category_query(scope.context, filters, options)

    extra_sql, extra_params = filters.get_sql_filter()
    if extra_sql:
        query.where += f" AND {extra_sql}"
        query.params.update(extra_params)
    return query
