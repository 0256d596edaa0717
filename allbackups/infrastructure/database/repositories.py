"""Infrastructure layer - SQL implementations of the report's ports."""

from typing import Final

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from ...domain.constants import CONTEXT_SYSTEM
from ...domain.entities import AuditEvent, BackupFile, Context, RequestContext, User
from ...domain.exceptions import ContextNotFoundError
from ...logging_config import get_logger
from ...logging_utils import log_database_operation
from .models import (
    AuditLogRecord,
    CapabilityGrant,
    ContextRecord,
    FileRecord,
    UserRecord,
    UserSession,
)

logger: Final = get_logger(__name__)


class SqlContextResolver:
    def __init__(self, session: Session):
        self.session = session

    def get_context(self, context_id: int) -> Context | None:
        record = self.session.get(ContextRecord, context_id)
        return record.to_domain() if record else None

    def get_system_context(self) -> Context:
        record = self.session.exec(
            select(ContextRecord).where(ContextRecord.contextlevel == CONTEXT_SYSTEM)
        ).first()
        if record is None:
            raise ContextNotFoundError("System context is missing")
        return record.to_domain()


class SqlCapabilityChecker:
    """Grants apply to their context and every context below it.

    Site administrators hold every capability.
    """

    def __init__(self, session: Session):
        self.session = session

    def has_capability(self, user: User, capability: str, context: Context) -> bool:
        if user.is_site_admin:
            return True
        grant = self.session.exec(
            select(CapabilityGrant).where(
                CapabilityGrant.userid == user.id,
                CapabilityGrant.capability == capability,
                col(CapabilityGrant.contextid).in_(context.ancestor_ids),
            )
        ).first()
        return grant is not None


class SqlAuditSink:
    def __init__(self, session: Session):
        self.session = session

    def record(self, event: AuditEvent) -> None:
        self.session.add(AuditLogRecord.from_domain(event))
        self.session.commit()
        logger.info(
            "Audit event recorded",
            event_name=event.name,
            context_id=event.context_id,
            user_id=event.user_id,
            object_id=event.object_id,
            other=event.other,
        )


class SqlFileStore:
    def __init__(self, session: Session):
        self.session = session

    def get_file_by_id(self, file_id: int) -> BackupFile | None:
        try:
            record = self.session.get(FileRecord, file_id)
        except SQLAlchemyError:
            self.session.rollback()
            raise
        return record.to_domain() if record else None

    def delete(self, backup_file: BackupFile) -> None:
        """Remove the file record.

        Raises:
            SQLAlchemyError: If the delete fails; the session is rolled back first
        """
        record = self.session.get(FileRecord, backup_file.id)
        if record is None:
            return
        try:
            self.session.delete(record)
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            log_database_operation(
                operation="delete",
                table="files",
                success=False,
                file_id=backup_file.id,
            )
            raise
        log_database_operation(
            operation="delete",
            table="files",
            success=True,
            file_id=backup_file.id,
            backup_filename=backup_file.filename,
        )


class SqlSessionResolver:
    """Looks up the host login session behind a session cookie."""

    def __init__(self, session: Session):
        self.session = session

    def resolve(
        self, sid: str | None, ip_address: str | None = None
    ) -> RequestContext | None:
        if not sid:
            return None
        user_session = self.session.get(UserSession, sid)
        if user_session is None:
            logger.debug("Unknown session id presented")
            return None
        user = self.session.get(UserRecord, user_session.userid)
        if user is None:
            logger.warning(
                "Session refers to a missing user", userid=user_session.userid
            )
            return None
        return RequestContext(
            user=user.to_domain(), sesskey=user_session.sesskey, ip_address=ip_address
        )
