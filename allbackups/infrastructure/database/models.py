"""Tables the report reads from the host platform, plus its own audit log.

Column names follow the host schema because report queries address them
directly (``f.contextid``, ``cx.path``, ``c.category``).
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import UniqueConstraint
from sqlmodel import JSON, Column, Field, SQLModel

from ...domain.entities import AuditEvent, BackupFile, Context, User


class UserRecord(SQLModel, table=True):  # type: ignore[call-arg]
    __tablename__: str = "users"  # type: ignore[assignment]

    id: int | None = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True, max_length=100)
    firstname: str = ""
    lastname: str = ""
    is_site_admin: bool = False

    def to_domain(self) -> User:
        return User(
            id=self.id or 0,
            username=self.username,
            firstname=self.firstname,
            lastname=self.lastname,
            is_site_admin=self.is_site_admin,
        )


class ContextRecord(SQLModel, table=True):  # type: ignore[call-arg]
    """A node of the permission hierarchy; ``path`` lists ancestor ids."""

    __tablename__: str = "context"  # type: ignore[assignment]

    id: int | None = Field(default=None, primary_key=True)
    contextlevel: int = Field(index=True)
    instanceid: int = 0
    path: str = Field(default="", index=True)
    depth: int = 1

    def to_domain(self) -> Context:
        return Context(
            id=self.id or 0,
            contextlevel=self.contextlevel,
            instanceid=self.instanceid,
            path=self.path,
            depth=self.depth,
        )


class CourseCategoryRecord(SQLModel, table=True):  # type: ignore[call-arg]
    __tablename__: str = "course_categories"  # type: ignore[assignment]

    id: int | None = Field(default=None, primary_key=True)
    name: str
    parent: int = 0
    path: str = ""


class CourseRecord(SQLModel, table=True):  # type: ignore[call-arg]
    __tablename__: str = "course"  # type: ignore[assignment]

    id: int | None = Field(default=None, primary_key=True)
    category: int = Field(default=0, index=True)
    fullname: str = ""
    shortname: str = ""


class FileRecord(SQLModel, table=True):  # type: ignore[call-arg]
    """A row of the host file store metadata table."""

    __tablename__: str = "files"  # type: ignore[assignment]

    id: int | None = Field(default=None, primary_key=True)
    contenthash: str = ""
    contextid: int = Field(index=True)
    component: str = Field(index=True)
    filearea: str = Field(index=True)
    itemid: int = 0
    filepath: str = "/"
    filename: str = Field(index=True)
    userid: int | None = Field(default=None, index=True)
    filesize: int = 0
    mimetype: str | None = None
    timecreated: int = 0
    timemodified: int = 0

    def to_domain(self) -> BackupFile:
        return BackupFile(
            id=self.id or 0,
            contextid=self.contextid,
            component=self.component,
            filearea=self.filearea,
            filename=self.filename,
            userid=self.userid,
            filesize=self.filesize,
            timecreated=self.timecreated,
            filepath=self.filepath,
            itemid=self.itemid,
        )


class CapabilityGrant(SQLModel, table=True):  # type: ignore[call-arg]
    """A capability granted to a user in a context and all its descendants."""

    __tablename__: str = "capability_grants"  # type: ignore[assignment]
    __table_args__ = (UniqueConstraint("userid", "contextid", "capability"),)

    id: int | None = Field(default=None, primary_key=True)
    userid: int = Field(index=True)
    contextid: int = Field(index=True)
    capability: str = Field(max_length=255)


class UserSession(SQLModel, table=True):  # type: ignore[call-arg]
    """Host login session; ``sesskey`` is the per-session anti-forgery token."""

    __tablename__: str = "user_sessions"  # type: ignore[assignment]

    sid: str = Field(primary_key=True, max_length=128)
    userid: int = Field(index=True)
    sesskey: str = Field(max_length=64)
    timecreated: datetime = Field(default_factory=lambda: datetime.now(UTC))


class AuditLogRecord(SQLModel, table=True):  # type: ignore[call-arg]
    __tablename__: str = "audit_log"  # type: ignore[assignment]

    id: int | None = Field(default=None, primary_key=True)
    eventname: str = Field(index=True, max_length=100)
    contextid: int = Field(index=True)
    userid: int | None = None
    objectid: int | None = None
    other: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    ip: str | None = Field(default=None, max_length=45)
    timecreated: datetime = Field(index=True)

    @classmethod
    def from_domain(cls, event: AuditEvent) -> "AuditLogRecord":
        return cls(
            eventname=event.name,
            contextid=event.context_id,
            userid=event.user_id,
            objectid=event.object_id,
            other=dict(event.other),
            ip=event.ip_address,
            timecreated=event.time_created,
        )
