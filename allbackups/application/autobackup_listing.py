"""Listing of the automated backup directory as report rows."""

from dataclasses import dataclass
from typing import Final

from ..domain.entities import AutoBackupEntry
from ..domain.ports import BackupDirectory
from ..logging_config import get_logger
from .filtering import FilterSet

logger: Final = get_logger(__name__)

SORTABLE_COLUMNS: Final = ("filename", "timecreated", "filesize")


@dataclass
class AutoBackupPage:
    rows: list[AutoBackupEntry]
    total: int


def _sort_key(column: str):
    # Filename breaks ties so the order is stable across requests
    def key(entry: AutoBackupEntry):
        return (getattr(entry, column), entry.filename)

    return key


def list_autobackups(
    directory: BackupDirectory,
    filters: FilterSet,
    *,
    sort: str = "timecreated",
    descending: bool = True,
    limit: int | None = None,
    offset: int = 0,
) -> AutoBackupPage:
    """Filter, sort and page the backup archives found in the directory."""
    if sort not in SORTABLE_COLUMNS:
        sort = "timecreated"

    entries = [
        entry for entry in directory.list_backups() if filters.matches_entry(entry)
    ]
    entries.sort(key=_sort_key(sort), reverse=descending)

    total = len(entries)
    if limit is not None:
        entries = entries[offset : offset + limit]

    logger.debug(
        "Listed automated backups", total=total, returned=len(entries), sort=sort
    )
    return AutoBackupPage(rows=entries, total=total)
