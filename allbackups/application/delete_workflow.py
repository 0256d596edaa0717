"""Confirm-then-delete workflow for backup files.

A delete request first produces a confirmation prompt listing the targets.
Only a resubmission carrying ``confirm`` and the session's ``sesskey`` deletes
anything. Each target is validated on its own; a rejected or failing target is
reported and the loop moves on.
"""

from dataclasses import dataclass, field
from typing import Final

from sqlalchemy.exc import SQLAlchemyError

from .. import metrics
from ..domain.constants import (
    CAP_COURSE_DELETE,
    EVENT_AUTOBACKUP_DELETED,
    EVENT_BACKUP_DELETED,
    MAX_RECORD_ID,
)
from ..domain.entities import (
    AuditEvent,
    DeletionRequest,
    DeletionState,
    Notification,
    NotificationLevel,
    ReportScope,
    RequestContext,
    is_backup_archive,
    is_safe_filename,
)
from ..domain.ports import (
    AuditSink,
    BackupDirectory,
    CapabilityChecker,
    ContextResolver,
    FileStore,
)
from ..logging_config import get_logger
from ..logging_utils import log_user_action

logger: Final = get_logger(__name__)


@dataclass
class PendingDeletion:
    """What the confirmation prompt needs to ask about."""

    targets: list[str]

    @property
    def count(self) -> int:
        return len(self.targets)

    @property
    def fileids(self) -> str:
        return ",".join(self.targets)


@dataclass
class DeletionOutcome:
    deleted: list[str] = field(default_factory=list)
    rejected: list[str] = field(default_factory=list)
    notifications: list[Notification] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.deleted)


class DeleteWorkflow:
    """Runs one delete request against a report scope."""

    def __init__(
        self,
        *,
        capabilities: CapabilityChecker,
        contexts: ContextResolver,
        audit: AuditSink,
        file_store: FileStore,
        backup_directory: BackupDirectory | None = None,
    ):
        self.capabilities = capabilities
        self.contexts = contexts
        self.audit = audit
        self.file_store = file_store
        self.backup_directory = backup_directory

    def handle(
        self,
        request_context: RequestContext,
        scope: ReportScope,
        deletion: DeletionRequest,
    ) -> PendingDeletion | DeletionOutcome | None:
        """Advance the workflow one step.

        Returns the pending targets when a confirmation prompt is due, the
        outcome after confirmed deletions, or None when nothing happens.
        """
        if not deletion.is_delete_action:
            return None

        if not self.capabilities.has_capability(
            request_context.user, scope.delete_capability, scope.context
        ):
            logger.warning(
                "Delete request ignored - missing capability",
                user_id=request_context.user.id,
                capability=scope.delete_capability,
                context_id=scope.context.id,
            )
            return None

        state = deletion.state(request_context)
        if state == DeletionState.PENDING_CONFIRM:
            targets = deletion.targets
            logger.debug("Deletion awaiting confirmation", count=len(targets))
            return PendingDeletion(targets=targets)
        if state == DeletionState.CONFIRMED:
            return self.execute(request_context, scope, deletion.fileids)

        logger.warning(
            "Delete request without confirmation or valid sesskey",
            user_id=request_context.user.id,
            confirm=deletion.confirm,
            sesskey_present=bool(deletion.sesskey),
        )
        return None

    def execute(
        self, request_context: RequestContext, scope: ReportScope, targets: list[str]
    ) -> DeletionOutcome:
        outcome = DeletionOutcome()
        for target in targets:
            if scope.is_autobackup:
                deleted = self._delete_autobackup(request_context, scope, target)
            else:
                deleted = self._delete_stored_file(request_context, scope, target)

            if deleted:
                outcome.deleted.append(target)
            else:
                outcome.rejected.append(target)
                outcome.notifications.append(
                    Notification(f"Could not delete file: {target}")
                )

        outcome.notifications.append(
            Notification(f"{outcome.count} files deleted", NotificationLevel.SUCCESS)
        )
        logger.info(
            "Backup deletion finished",
            deleted=outcome.count,
            rejected=len(outcome.rejected),
            tab=scope.tab,
        )
        return outcome

    def _delete_stored_file(
        self, request_context: RequestContext, scope: ReportScope, target: str
    ) -> bool:
        try:
            file_id = int(target)
        except ValueError:
            self._reject(request_context, target, "invalid id")
            return False
        if not 0 < file_id <= MAX_RECORD_ID:
            self._reject(request_context, target, "invalid id")
            return False

        try:
            backup_file = self.file_store.get_file_by_id(file_id)
        except SQLAlchemyError as e:
            logger.error(
                "Backup file lookup failed",
                file_id=file_id,
                error=str(e),
                exc_info=True,
            )
            metrics.record_delete_rejected("error")
            return False
        if backup_file is None:
            self._reject(request_context, target, "not found")
            return False
        if not backup_file.is_backup_archive:
            self._reject(request_context, target, "not a backup archive")
            return False

        # Checked against the file's own context, not the page's
        file_context = self.contexts.get_context(backup_file.contextid)
        if file_context is None or not scope.context.contains(file_context):
            self._reject(request_context, target, "outside report scope")
            return False
        if not self.capabilities.has_capability(
            request_context.user, CAP_COURSE_DELETE, file_context
        ):
            self._reject(request_context, target, "not permitted")
            return False

        try:
            self.file_store.delete(backup_file)
        except SQLAlchemyError as e:
            logger.error(
                "Backup file deletion failed",
                file_id=file_id,
                error=str(e),
                exc_info=True,
            )
            metrics.record_delete_rejected("error")
            return False

        self.audit.record(
            AuditEvent(
                name=EVENT_BACKUP_DELETED,
                context_id=file_context.id,
                user_id=request_context.user.id,
                object_id=backup_file.id,
                other={"filename": backup_file.filename},
                ip_address=request_context.ip_address,
            )
        )
        metrics.record_file_deleted("store")
        log_user_action(
            "delete_backup",
            request_context.user.username,
            file_id=backup_file.id,
            backup_filename=backup_file.filename,
        )
        return True

    def _delete_autobackup(
        self, request_context: RequestContext, scope: ReportScope, filename: str
    ) -> bool:
        # Name checks run before the directory is touched at all
        if not is_safe_filename(filename):
            self._reject(request_context, filename, "unsafe file name")
            return False
        if not is_backup_archive(filename):
            self._reject(request_context, filename, "not a backup archive")
            return False
        if self.backup_directory is None:
            self._reject(request_context, filename, "no backup destination")
            return False
        if not self.backup_directory.is_readable(filename):
            self._reject(request_context, filename, "not readable")
            return False
        if not self.capabilities.has_capability(
            request_context.user, CAP_COURSE_DELETE, scope.context
        ):
            self._reject(request_context, filename, "not permitted")
            return False

        try:
            self.backup_directory.delete(filename)
        except (OSError, ValueError) as e:
            logger.error(
                "Automated backup deletion failed",
                filename=filename,
                error=str(e),
                exc_info=True,
            )
            metrics.record_delete_rejected("error")
            return False

        self.audit.record(
            AuditEvent(
                name=EVENT_AUTOBACKUP_DELETED,
                context_id=scope.context.id,
                user_id=request_context.user.id,
                object_id=None,
                other={"filename": filename},
                ip_address=request_context.ip_address,
            )
        )
        metrics.record_file_deleted("autobackup")
        log_user_action(
            "delete_autobackup", request_context.user.username, backup_filename=filename
        )
        return True

    def _reject(
        self, request_context: RequestContext, target: str, reason: str
    ) -> None:
        logger.warning(
            "Backup file deletion rejected",
            target=target,
            reason=reason,
            user_id=request_context.user.id,
        )
        metrics.record_delete_rejected(reason)
