"""Pure domain entities without infrastructure dependencies."""

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from .constants import (
    BACKUP_EXTENSION,
    CAP_CATEGORY_DELETE,
    CAP_CATEGORY_VIEW,
    CAP_SITE_DELETE,
    CAP_SITE_VIEW,
    TAB_AUTOBACKUP,
)

# Control characters plus the characters the host strips from plain file names
_UNSAFE_FILENAME_CHARS = re.compile(r"[\x00-\x1f\x7f&<>\"`|':\\/]")


def clean_filename(name: str) -> str:
    """Strip characters that are not allowed in a plain file name.

    Path separators, control characters and shell/markup metacharacters are
    removed; ``.`` and ``..`` collapse to an empty string.
    """
    cleaned = _UNSAFE_FILENAME_CHARS.sub("", name)
    if cleaned in (".", ".."):
        return ""
    return cleaned


def is_safe_filename(name: str) -> bool:
    """Check that a name is non-empty and survives cleaning unchanged."""
    return bool(name) and clean_filename(name) == name


def file_extension(name: str) -> str:
    """Return the text after the last dot of a file name, or an empty string."""
    base = name.rsplit("/", 1)[-1]
    if "." not in base:
        return ""
    return base.rsplit(".", 1)[1]


def is_backup_archive(name: str) -> bool:
    """Check whether a file name carries the backup archive extension."""
    return file_extension(name) == BACKUP_EXTENSION


@dataclass(frozen=True)
class Context:
    """A node of the permission hierarchy (system, category, course, module)."""

    id: int
    contextlevel: int
    instanceid: int
    path: str
    depth: int = 1

    @property
    def ancestor_ids(self) -> list[int]:
        """Context ids from the root down to and including this context."""
        return [int(part) for part in self.path.split("/") if part]

    def contains(self, other: "Context") -> bool:
        """Check whether ``other`` is this context or one of its descendants."""
        return other.path == self.path or other.path.startswith(self.path + "/")


@dataclass(frozen=True)
class User:
    """An authenticated platform user."""

    id: int
    username: str
    firstname: str = ""
    lastname: str = ""
    is_site_admin: bool = False

    @property
    def fullname(self) -> str:
        return f"{self.firstname} {self.lastname}".strip()


@dataclass(frozen=True)
class RequestContext:
    """Per-request identity passed explicitly into every operation."""

    user: User
    sesskey: str
    ip_address: str | None = None

    def confirm_sesskey(self, submitted: str | None) -> bool:
        """Check a submitted anti-forgery token against the session's."""
        return bool(submitted) and submitted == self.sesskey


class ScopeKind(StrEnum):
    SYSTEM = "system"
    CATEGORY = "category"


@dataclass(frozen=True)
class ReportScope:
    """What differs between the site-wide and the category report."""

    kind: ScopeKind
    context: Context
    tab: str

    @property
    def view_capability(self) -> str:
        return CAP_SITE_VIEW if self.kind == ScopeKind.SYSTEM else CAP_CATEGORY_VIEW

    @property
    def delete_capability(self) -> str:
        if self.kind == ScopeKind.SYSTEM:
            return CAP_SITE_DELETE
        return CAP_CATEGORY_DELETE

    @property
    def is_autobackup(self) -> bool:
        return self.kind == ScopeKind.CATEGORY and self.tab == TAB_AUTOBACKUP


@dataclass
class BackupFile:
    """A backup archive held in the managed file store."""

    id: int
    contextid: int
    component: str
    filearea: str
    filename: str
    userid: int | None = None
    filesize: int = 0
    timecreated: int = 0
    filepath: str = "/"
    itemid: int = 0

    @property
    def is_backup_archive(self) -> bool:
        return is_backup_archive(self.filename)


@dataclass(frozen=True)
class AutoBackupEntry:
    """A backup archive sitting in the automated backup directory."""

    filename: str
    timecreated: int
    filesize: int = 0


class NotificationLevel(StrEnum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    message: str
    level: NotificationLevel = NotificationLevel.INFO


@dataclass
class AuditEvent:
    """A record of something a user did through the report."""

    name: str
    context_id: int
    user_id: int | None
    object_id: int | None = None
    other: dict[str, Any] = field(default_factory=dict)
    ip_address: str | None = None
    time_created: datetime = field(default_factory=lambda: datetime.now(UTC))


class DeletionState(StrEnum):
    IDLE = "idle"
    PENDING_CONFIRM = "pending_confirm"
    CONFIRMED = "confirmed"


@dataclass
class DeletionRequest:
    """Delete parameters submitted with a report request.

    ``targets`` holds record ids for store-backed files or file names for the
    automated backup directory, exactly as submitted.
    """

    delete: str | None = None
    delete_selected: bool = False
    selected: list[str] = field(default_factory=list)
    fileids: list[str] = field(default_factory=list)
    confirm: bool = False
    sesskey: str | None = None

    @property
    def is_delete_action(self) -> bool:
        return bool(self.delete) or self.delete_selected

    @property
    def targets(self) -> list[str]:
        """Identifiers this request acts on."""
        if self.fileids:
            return list(self.fileids)
        if self.delete:
            return [self.delete]
        return [value for value in self.selected if value]

    def state(self, request_context: RequestContext) -> DeletionState:
        """Where this request sits in the confirm-then-delete workflow."""
        if not self.is_delete_action:
            return DeletionState.IDLE
        if not self.fileids:
            return DeletionState.PENDING_CONFIRM
        if self.confirm and request_context.confirm_sesskey(self.sesskey):
            return DeletionState.CONFIRMED
        return DeletionState.IDLE
