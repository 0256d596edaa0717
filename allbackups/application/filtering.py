"""Report filters: parse request parameters, emit SQL, match directory rows."""

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime, time
from enum import StrEnum
from typing import Any, Final

from ..domain.entities import AutoBackupEntry
from ..logging_config import get_logger

logger: Final = get_logger(__name__)

FILTER_FILENAME: Final = "filename"
FILTER_REALNAME: Final = "realname"
FILTER_COURSECATEGORY: Final = "coursecategory"
FILTER_FILEAREA: Final = "filearea"
FILTER_TIMECREATED: Final = "timecreated"

ALL_FILTERS: Final = (
    FILTER_FILENAME,
    FILTER_REALNAME,
    FILTER_COURSECATEGORY,
    FILTER_FILEAREA,
    FILTER_TIMECREATED,
)
# Directory entries carry no owner, category or file area
DIRECTORY_FILTERS: Final = (FILTER_FILENAME, FILTER_TIMECREATED)

FILTER_LABELS: Final = {
    FILTER_FILENAME: "Filename",
    FILTER_REALNAME: "User full name",
    FILTER_COURSECATEGORY: "Course category",
    FILTER_FILEAREA: "File area",
    FILTER_TIMECREATED: "Time created",
}

_COLUMNS: Final = {
    FILTER_FILENAME: "f.filename",
    FILTER_REALNAME: "(u.firstname || ' ' || u.lastname)",
    FILTER_COURSECATEGORY: "c.category",
    FILTER_FILEAREA: "f.filearea",
    FILTER_TIMECREATED: "f.timecreated",
}


class TextOperator(StrEnum):
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    EQUALS = "equals"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    IS_EMPTY = "is_empty"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass(frozen=True)
class TextFilter:
    value: str
    operator: TextOperator = TextOperator.CONTAINS

    def to_sql(self, column: str, param: str) -> tuple[str, dict[str, Any]]:
        if self.operator == TextOperator.IS_EMPTY:
            return f"TRIM({column}) = ''", {}

        escaped = _escape_like(self.value.lower())
        pattern = {
            TextOperator.CONTAINS: f"%{escaped}%",
            TextOperator.NOT_CONTAINS: f"%{escaped}%",
            TextOperator.EQUALS: escaped,
            TextOperator.STARTS_WITH: f"{escaped}%",
            TextOperator.ENDS_WITH: f"%{escaped}",
        }[self.operator]
        negate = "NOT " if self.operator == TextOperator.NOT_CONTAINS else ""
        sql = f"LOWER({column}) {negate}LIKE :{param} ESCAPE '\\'"
        return sql, {param: pattern}

    def matches(self, text: str) -> bool:
        text = text.lower()
        value = self.value.lower()
        match self.operator:
            case TextOperator.CONTAINS:
                return value in text
            case TextOperator.NOT_CONTAINS:
                return value not in text
            case TextOperator.EQUALS:
                return text == value
            case TextOperator.STARTS_WITH:
                return text.startswith(value)
            case TextOperator.ENDS_WITH:
                return text.endswith(value)
            case TextOperator.IS_EMPTY:
                return text == ""

    def describe(self) -> str:
        if self.operator == TextOperator.IS_EMPTY:
            return "is empty"
        return f'{self.operator.label} "{self.value}"'


@dataclass(frozen=True)
class DateRangeFilter:
    """Inclusive range over unix timestamps; either bound may be open."""

    after: int | None = None
    before: int | None = None

    def to_sql(self, column: str, param: str) -> tuple[str, dict[str, Any]]:
        clauses: list[str] = []
        params: dict[str, Any] = {}
        if self.after is not None:
            clauses.append(f"{column} >= :{param}_after")
            params[f"{param}_after"] = self.after
        if self.before is not None:
            clauses.append(f"{column} <= :{param}_before")
            params[f"{param}_before"] = self.before
        return " AND ".join(clauses), params

    def matches(self, timestamp: int) -> bool:
        if self.after is not None and timestamp < self.after:
            return False
        if self.before is not None and timestamp > self.before:
            return False
        return True

    def describe(self) -> str:
        parts = []
        if self.after is not None:
            parts.append(f"on or after {_format_day(self.after)}")
        if self.before is not None:
            parts.append(f"on or before {_format_day(self.before)}")
        return " and ".join(parts)


def _format_day(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp, UTC).date().isoformat()


def _parse_day(raw: str | None, end_of_day: bool = False) -> int | None:
    if not raw:
        return None
    try:
        day = date.fromisoformat(raw.strip())
    except ValueError:
        logger.warning("Ignoring invalid date filter", value=raw)
        return None
    moment = datetime.combine(day, time.max if end_of_day else time.min, UTC)
    return int(moment.timestamp())


def _parse_text(params: Mapping[str, str], name: str) -> TextFilter | None:
    raw_operator = params.get(f"{name}_op") or TextOperator.CONTAINS.value
    try:
        operator = TextOperator(raw_operator)
    except ValueError:
        logger.warning("Ignoring unknown filter operator", filter=name, op=raw_operator)
        operator = TextOperator.CONTAINS

    value = (params.get(name) or "").strip()
    if not value and operator != TextOperator.IS_EMPTY:
        return None
    return TextFilter(value=value, operator=operator)


@dataclass(frozen=True)
class FilterSet:
    """The active report filters; every predicate is optional."""

    filename: TextFilter | None = None
    realname: TextFilter | None = None
    coursecategory: int | None = None
    filearea: str | None = None
    timecreated: DateRangeFilter | None = None
    available: tuple[str, ...] = field(default=ALL_FILTERS)

    @classmethod
    def from_params(
        cls, params: Mapping[str, str], available: tuple[str, ...] = ALL_FILTERS
    ) -> "FilterSet":
        """Build a filter set from request parameters, dropping invalid values."""
        coursecategory: int | None = None
        raw_category = (params.get(FILTER_COURSECATEGORY) or "").strip()
        if raw_category:
            try:
                coursecategory = int(raw_category)
            except ValueError:
                logger.warning("Ignoring invalid category filter", value=raw_category)

        timecreated: DateRangeFilter | None = DateRangeFilter(
            after=_parse_day(params.get("timecreated_from")),
            before=_parse_day(params.get("timecreated_to"), end_of_day=True),
        )
        if timecreated.after is None and timecreated.before is None:
            timecreated = None

        filters = cls(
            filename=_parse_text(params, FILTER_FILENAME),
            realname=_parse_text(params, FILTER_REALNAME),
            coursecategory=coursecategory,
            filearea=(params.get(FILTER_FILEAREA) or "").strip() or None,
            timecreated=timecreated,
        )
        return filters.restricted_to(available)

    def restricted_to(self, available: tuple[str, ...]) -> "FilterSet":
        """Drop predicates the current listing cannot evaluate."""
        cleared = {name: None for name in ALL_FILTERS if name not in available}
        return replace(self, available=available, **cleared)

    @property
    def active(self) -> dict[str, Any]:
        return {
            name: getattr(self, name)
            for name in ALL_FILTERS
            if getattr(self, name) is not None
        }

    @property
    def needs_course_join(self) -> bool:
        """The category predicate reads ``c.category`` from the course table."""
        return self.coursecategory is not None

    def get_sql_filter(self) -> tuple[str, dict[str, Any]]:
        """Return the AND-joined WHERE fragment and its bound parameters."""
        clauses: list[str] = []
        params: dict[str, Any] = {}

        for name, predicate in self.active.items():
            column = _COLUMNS[name]
            param = f"ex_{name}"
            if isinstance(predicate, TextFilter | DateRangeFilter):
                sql, extra = predicate.to_sql(column, param)
            else:
                sql, extra = f"{column} = :{param}", {param: predicate}
            clauses.append(sql)
            params.update(extra)

        return " AND ".join(clauses), params

    def matches_entry(self, entry: AutoBackupEntry) -> bool:
        """Evaluate the filename and time predicates against a directory entry."""
        if self.filename is not None and not self.filename.matches(entry.filename):
            return False
        if self.timecreated is not None and not self.timecreated.matches(
            entry.timecreated
        ):
            return False
        return True

    def describe(self) -> list[tuple[str, str]]:
        """Human readable (field, description) pairs for the active filters."""
        descriptions = []
        for name, predicate in self.active.items():
            if isinstance(predicate, TextFilter | DateRangeFilter):
                text = predicate.describe()
            else:
                text = f'is "{predicate}"'
            descriptions.append((name, f"{FILTER_LABELS[name]} {text}"))
        return descriptions

    def to_params(self, exclude: str | None = None) -> dict[str, str]:
        """Serialize back to request parameters, optionally dropping one filter."""
        params: dict[str, str] = {}
        for name, predicate in self.active.items():
            if name == exclude:
                continue
            if isinstance(predicate, TextFilter):
                params[name] = predicate.value
                params[f"{name}_op"] = predicate.operator.value
            elif isinstance(predicate, DateRangeFilter):
                if predicate.after is not None:
                    params["timecreated_from"] = _format_day(predicate.after)
                if predicate.before is not None:
                    params["timecreated_to"] = _format_day(predicate.before)
            else:
                params[name] = str(predicate)
        return params
