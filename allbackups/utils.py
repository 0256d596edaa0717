from datetime import UTC, datetime
from typing import Final

MAX_DISPLAY_LENGTH: Final = 60
_SIZE_UNITS: Final = ("bytes", "KB", "MB", "GB", "TB")


def truncate_name(name: str, max_length: int = MAX_DISPLAY_LENGTH) -> str:
    """Truncate a name to fit within max_length using first_chars...last_chars format.

    Keeping the tail visible matters for backup names, whose date and
    extension sit at the end.

    Args:
        name: The name to potentially truncate
        max_length: Maximum allowed length

    Returns:
        Original name if it fits, or truncated name with ... in the middle
    """
    if len(name) <= max_length:
        return name

    # Reserve 3 characters for "..."
    available_chars = max_length - 3

    # Split available characters between first and last parts
    first_chars = available_chars // 2
    last_chars = available_chars - first_chars

    return f"{name[:first_chars]}...{name[-last_chars:]}"


def display_size(size: int | None) -> str:
    """Format a byte count the way file listings show it (e.g. ``1.2 MB``)."""
    if not size:
        return "0 bytes"
    value = float(size)
    for unit in _SIZE_UNITS:
        if value < 1024 or unit == _SIZE_UNITS[-1]:
            if unit == "bytes":
                return f"{int(value)} bytes"
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} bytes"


def format_timestamp(timestamp: int | None, fmt: str = "%Y-%m-%d %H:%M") -> str:
    """Render a unix timestamp in UTC; empty for missing values."""
    if timestamp is None:
        return ""
    return datetime.fromtimestamp(int(timestamp), UTC).strftime(fmt)
