"""Business metrics for the backup report."""

from opentelemetry import metrics

from .logging_config import get_logger

logger = get_logger(__name__)

# Get meter for creating instruments
meter = metrics.get_meter(__name__)

# HTTP Request Metrics
http_request_duration = meter.create_histogram(
    name="http_request_duration_seconds",
    description="Duration of HTTP requests in seconds",
    unit="s",
)

http_requests_total = meter.create_counter(
    name="http_requests_total",
    description="Total number of HTTP requests",
)

http_request_errors = meter.create_counter(
    name="http_request_errors_total",
    description="Total number of HTTP request errors",
)

# Report Metrics
report_views_total = meter.create_counter(
    name="report_views_total",
    description="Total number of backup report page views",
)

report_downloads_total = meter.create_counter(
    name="report_downloads_total",
    description="Total number of backup report downloads",
)

backup_files_deleted_total = meter.create_counter(
    name="backup_files_deleted_total",
    description="Total number of backup files deleted through the report",
)

backup_delete_rejections_total = meter.create_counter(
    name="backup_delete_rejections_total",
    description="Total number of delete targets skipped or failed",
)


def record_http_request(method: str, endpoint: str, status_code: int, duration: float):
    """Record HTTP request metrics."""
    labels = {"method": method, "endpoint": endpoint, "status_code": str(status_code)}

    http_request_duration.record(duration, labels)
    http_requests_total.add(1, labels)

    if status_code >= 400:
        http_request_errors.add(1, labels)


def record_report_viewed(scope: str, tab: str):
    report_views_total.add(1, {"scope": scope, "tab": tab})


def record_report_downloaded(file_format: str, scope: str):
    report_downloads_total.add(1, {"format": file_format, "scope": scope})


def record_file_deleted(source: str):
    """Record a deleted backup; source is ``store`` or ``autobackup``."""
    backup_files_deleted_total.add(1, {"source": source})


def record_delete_rejected(reason: str):
    backup_delete_rejections_total.add(1, {"reason": reason})


logger.info("Report metrics instruments created")
