from datetime import UTC, datetime

import pytest
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

from allbackups.domain.constants import (
    CAP_CATEGORY_DELETE,
    CAP_CATEGORY_VIEW,
    CAP_COURSE_DELETE,
    CAP_SITE_VIEW,
    CONTEXT_COURSE,
    CONTEXT_COURSECAT,
    CONTEXT_SYSTEM,
)
from allbackups.infrastructure.database.models import (
    CapabilityGrant,
    ContextRecord,
    CourseCategoryRecord,
    CourseRecord,
    FileRecord,
    UserRecord,
    UserSession,
)

# 2024-03-01 12:00 UTC
BASE_TIME = int(datetime(2024, 3, 1, 12, 0, tzinfo=UTC).timestamp())
DAY = 86400


@pytest.fixture(scope="function")
def timestamp():
    return BASE_TIME


@pytest.fixture(name="session")
def session_fixture():
    # SQLite configuration for unit tests
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session


@pytest.fixture
def site(session: Session):
    """Two categories with one course each, plus a user backup area.

    Context tree::

        1 system
        ├── 2 category "Science" (id 1)
        │   └── 4 course 10
        ├── 3 category "Arts" (id 2)
        │   └── 5 course 20
        └── 6 user context of the student
    """
    session.add_all(
        [
            ContextRecord(id=1, contextlevel=CONTEXT_SYSTEM, path="/1", depth=1),
            ContextRecord(
                id=2, contextlevel=CONTEXT_COURSECAT, instanceid=1, path="/1/2", depth=2
            ),
            ContextRecord(
                id=3, contextlevel=CONTEXT_COURSECAT, instanceid=2, path="/1/3", depth=2
            ),
            ContextRecord(
                id=4, contextlevel=CONTEXT_COURSE, instanceid=10, path="/1/2/4", depth=3
            ),
            ContextRecord(
                id=5, contextlevel=CONTEXT_COURSE, instanceid=20, path="/1/3/5", depth=3
            ),
            ContextRecord(id=6, contextlevel=30, instanceid=3, path="/1/6", depth=2),
            CourseCategoryRecord(id=1, name="Science", path="/1"),
            CourseCategoryRecord(id=2, name="Arts", path="/2"),
            CourseRecord(id=10, category=1, fullname="Physics", shortname="PHY"),
            CourseRecord(id=20, category=2, fullname="Painting", shortname="PAI"),
            UserRecord(
                id=1,
                username="admin",
                firstname="Ada",
                lastname="Admin",
                is_site_admin=True,
            ),
            UserRecord(id=2, username="manager", firstname="Mia", lastname="Manager"),
            UserRecord(id=3, username="student", firstname="Sam", lastname="Student"),
            # Manages the Science category only
            CapabilityGrant(userid=2, contextid=2, capability=CAP_CATEGORY_VIEW),
            CapabilityGrant(userid=2, contextid=2, capability=CAP_CATEGORY_DELETE),
            CapabilityGrant(userid=2, contextid=2, capability=CAP_COURSE_DELETE),
            # Can view the site report but not delete from it
            CapabilityGrant(userid=3, contextid=1, capability=CAP_SITE_VIEW),
            UserSession(sid="admin-sid", userid=1, sesskey="admin-key"),
            UserSession(sid="manager-sid", userid=2, sesskey="manager-key"),
            UserSession(sid="student-sid", userid=3, sesskey="student-key"),
        ]
    )
    session.add_all(
        [
            FileRecord(
                id=1,
                contextid=4,
                component="backup",
                filearea="course",
                filename="backup-moodle2-course-10-phy.mbz",
                userid=1,
                filesize=2048,
                timecreated=BASE_TIME,
            ),
            FileRecord(
                id=2,
                contextid=5,
                component="backup",
                filearea="course",
                filename="backup-moodle2-course-20-pai.mbz",
                userid=2,
                filesize=4096,
                timecreated=BASE_TIME + DAY,
            ),
            FileRecord(
                id=3,
                contextid=6,
                component="user",
                filearea="backup",
                filename="backup-moodle2-user-3.mbz",
                userid=3,
                filesize=1024,
                timecreated=BASE_TIME + 2 * DAY,
            ),
            FileRecord(
                id=4,
                contextid=4,
                component="tool_recyclebin",
                filearea="recyclebin_course",
                filename="recycled.mbz",
                userid=1,
                timecreated=BASE_TIME,
            ),
            FileRecord(
                id=5,
                contextid=4,
                component="user",
                filearea="draft",
                filename="draft.mbz",
                userid=1,
                timecreated=BASE_TIME,
            ),
            FileRecord(
                id=6,
                contextid=4,
                component="backup",
                filearea="course",
                filename="notes.txt",
                userid=1,
                timecreated=BASE_TIME,
            ),
            FileRecord(
                id=7,
                contextid=4,
                component="backup",
                filearea="automated",
                filename="backup-auto-course-10.mbz",
                userid=1,
                filesize=8192,
                timecreated=BASE_TIME - DAY,
            ),
            FileRecord(
                id=8,
                contextid=4,
                component="course",
                filearea="legacy",
                filename="legacy_course_10.mbz",
                userid=2,
                filesize=512,
                timecreated=BASE_TIME - 2 * DAY,
            ),
            FileRecord(
                id=9,
                contextid=4,
                component="mod_assign",
                filearea="submission_files",
                filename="student_upload.mbz",
                userid=3,
                filesize=256,
                timecreated=BASE_TIME - 3 * DAY,
            ),
            FileRecord(
                id=10,
                contextid=4,
                component="backup",
                filearea="activity",
                filename="backup-moodle2-activity-quiz.mbz",
                userid=2,
                filesize=128,
                timecreated=BASE_TIME - 4 * DAY,
            ),
        ]
    )
    session.commit()
    return {
        "system_context": 1,
        "science_context": 2,
        "arts_context": 3,
        "science_course_context": 4,
        "users": {"admin": 1, "manager": 2, "student": 3},
    }
