"""Serializes report rows for download."""

import csv
import io
import json
from typing import Any, Final

from ..application.report_service import ReportDownload
from ..domain.entities import ScopeKind
from ..utils import format_timestamp

MEDIA_TYPES: Final = {
    "csv": "text/csv; charset=utf-8",
    "tsv": "text/tab-separated-values; charset=utf-8",
    "json": "application/json",
}


def _export_value(column: str, value: Any) -> Any:
    if column == "timecreated":
        return format_timestamp(value, "%Y-%m-%dT%H:%M:%SZ")
    return "" if value is None else value


def export_filename(download: ReportDownload) -> str:
    if download.scope.is_autobackup:
        base = "autobackups"
    elif download.scope.kind == ScopeKind.CATEGORY:
        base = f"categorybackups-{download.scope.context.id}"
    else:
        base = "allbackups"
    return f"{base}.{download.format}"


def render_download(download: ReportDownload) -> str:
    """Render every row of the download in its requested format."""
    names = [column.name for column in download.columns]

    if download.format == "json":
        records = [
            {name: _export_value(name, row.get(name)) for name in names}
            for row in download.rows
        ]
        return json.dumps(records, ensure_ascii=False, indent=2)

    buffer = io.StringIO()
    delimiter = "\t" if download.format == "tsv" else ","
    writer = csv.writer(buffer, delimiter=delimiter)
    writer.writerow([column.label for column in download.columns])
    for row in download.rows:
        writer.writerow([_export_value(name, row.get(name)) for name in names])
    return buffer.getvalue()
