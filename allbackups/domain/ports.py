"""Interfaces the report needs from the host platform.

The application layer only talks to these protocols; the infrastructure layer
provides SQL and filesystem implementations, and tests provide fakes.
"""

from typing import Protocol

from .entities import AuditEvent, AutoBackupEntry, BackupFile, Context, User


class ContextResolver(Protocol):
    def get_context(self, context_id: int) -> Context | None: ...

    def get_system_context(self) -> Context: ...


class CapabilityChecker(Protocol):
    def has_capability(self, user: User, capability: str, context: Context) -> bool:
        """Check a capability in a context, honouring inherited grants."""
        ...


class AuditSink(Protocol):
    def record(self, event: AuditEvent) -> None: ...


class FileStore(Protocol):
    def get_file_by_id(self, file_id: int) -> BackupFile | None: ...

    def delete(self, backup_file: BackupFile) -> None: ...


class BackupDirectory(Protocol):
    def list_backups(self) -> list[AutoBackupEntry]: ...

    def is_readable(self, filename: str) -> bool: ...

    def delete(self, filename: str) -> None: ...

