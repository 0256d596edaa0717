"""Domain business rules and constants."""

from typing import Final

# Backup archives
BACKUP_EXTENSION: Final = "mbz"
BACKUP_SUFFIX_PATTERN: Final = f"%.{BACKUP_EXTENSION}"

# Record ids are signed 64-bit integers in every supported database
MAX_RECORD_ID: Final = 2**63 - 1

# Context levels of the permission hierarchy
CONTEXT_SYSTEM: Final = 10
CONTEXT_COURSECAT: Final = 40
CONTEXT_COURSE: Final = 50
CONTEXT_MODULE: Final = 70

# Capabilities
CAP_SITE_VIEW: Final = "report/allbackups:view"
CAP_SITE_DELETE: Final = "report/allbackups:delete"
CAP_CATEGORY_VIEW: Final = "report/categorybackups:view"
CAP_CATEGORY_DELETE: Final = "report/categorybackups:delete"
CAP_COURSE_DELETE: Final = "moodle/course:delete"

# File store tags
COMPONENT_RECYCLEBIN: Final = "tool_recyclebin"
COMPONENT_BACKUP: Final = "backup"
COMPONENT_COURSE: Final = "course"
FILEAREA_DRAFT: Final = "draft"
FILEAREA_COURSE: Final = "course"
FILEAREA_AUTOMATED: Final = "automated"
FILEAREA_LEGACY: Final = "legacy"
FILEAREA_ACTIVITY: Final = "activity"

# File areas offered by the file area filter
BACKUP_FILEAREAS: Final = (
    FILEAREA_ACTIVITY,
    FILEAREA_AUTOMATED,
    FILEAREA_COURSE,
    FILEAREA_LEGACY,
)

# Report tabs
TAB_CORE: Final = "core"
TAB_AUTOBACKUP: Final = "autobackup"

# Audit event names
EVENT_REPORT_VIEWED: Final = "report_viewed"
EVENT_REPORT_DOWNLOADED: Final = "report_downloaded"
EVENT_BACKUP_DELETED: Final = "backup_deleted"
EVENT_AUTOBACKUP_DELETED: Final = "autobackup_deleted"
