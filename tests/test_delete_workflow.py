import pytest
from sqlalchemy.exc import OperationalError

from allbackups.application.delete_workflow import (
    DeletionOutcome,
    DeleteWorkflow,
    PendingDeletion,
)
from allbackups.domain.constants import (
    CAP_CATEGORY_DELETE,
    CAP_COURSE_DELETE,
    CAP_SITE_DELETE,
    EVENT_AUTOBACKUP_DELETED,
    EVENT_BACKUP_DELETED,
    TAB_AUTOBACKUP,
    TAB_CORE,
)
from allbackups.domain.entities import (
    AuditEvent,
    BackupFile,
    Context,
    DeletionRequest,
    NotificationLevel,
    ReportScope,
    RequestContext,
    ScopeKind,
    User,
)

SYSTEM = Context(id=1, contextlevel=10, instanceid=0, path="/1")
CATEGORY = Context(id=2, contextlevel=40, instanceid=1, path="/1/2", depth=2)
COURSE = Context(id=4, contextlevel=50, instanceid=10, path="/1/2/4", depth=3)
OTHER_COURSE = Context(id=5, contextlevel=50, instanceid=20, path="/1/3/5", depth=3)


class FakeCapabilities:
    def __init__(self, *grants: tuple[str, int]):
        self.grants = set(grants)

    def has_capability(self, user: User, capability: str, context: Context) -> bool:
        return any(
            (capability, context_id) in self.grants
            for context_id in context.ancestor_ids
        )


class FakeContexts:
    def __init__(self, *contexts: Context):
        self.contexts = {context.id: context for context in contexts}

    def get_context(self, context_id: int) -> Context | None:
        return self.contexts.get(context_id)

    def get_system_context(self) -> Context:
        return self.contexts[1]


class FakeAudit:
    def __init__(self):
        self.events: list[AuditEvent] = []

    def record(self, event: AuditEvent) -> None:
        self.events.append(event)


class FakeFileStore:
    def __init__(
        self,
        *files: BackupFile,
        failing: tuple[int, ...] = (),
        unreadable: tuple[int, ...] = (),
    ):
        self.files = {backup_file.id: backup_file for backup_file in files}
        self.failing = failing
        self.unreadable = unreadable
        self.deleted: list[int] = []

    def get_file_by_id(self, file_id: int) -> BackupFile | None:
        if file_id in self.unreadable:
            raise OperationalError("SELECT FROM files", {}, Exception("overflow"))
        return self.files.get(file_id)

    def delete(self, backup_file: BackupFile) -> None:
        if backup_file.id in self.failing:
            raise OperationalError("DELETE FROM files", {}, Exception("locked"))
        self.deleted.append(backup_file.id)


class FakeDirectory:
    def __init__(self, *names: str, failing: tuple[str, ...] = ()):
        self.names = set(names)
        self.failing = failing
        self.touched: list[str] = []
        self.deleted: list[str] = []

    def list_backups(self):
        return []

    def is_readable(self, filename: str) -> bool:
        self.touched.append(filename)
        return filename in self.names

    def delete(self, filename: str) -> None:
        self.touched.append(filename)
        if filename in self.failing:
            raise PermissionError(filename)
        self.deleted.append(filename)


def _file(file_id: int, filename: str | None = None, contextid: int = 4) -> BackupFile:
    return BackupFile(
        id=file_id,
        contextid=contextid,
        component="backup",
        filearea="course",
        filename=filename or f"backup-{file_id}.mbz",
    )


@pytest.fixture
def request_context():
    return RequestContext(
        user=User(id=7, username="manager"), sesskey="s3cret", ip_address="10.0.0.1"
    )


@pytest.fixture
def audit():
    return FakeAudit()


@pytest.fixture
def file_store():
    return FakeFileStore(
        _file(12), _file(17), _file(30, "notes.txt"), _file(40, contextid=5)
    )


@pytest.fixture
def directory():
    return FakeDirectory(
        "auto-1.mbz", "auto-2.mbz", "locked.mbz", failing=("locked.mbz",)
    )


def _workflow(audit, file_store, directory=None, capabilities=None):
    return DeleteWorkflow(
        capabilities=capabilities
        or FakeCapabilities(
            (CAP_SITE_DELETE, 1), (CAP_CATEGORY_DELETE, 2), (CAP_COURSE_DELETE, 2)
        ),
        contexts=FakeContexts(SYSTEM, CATEGORY, COURSE, OTHER_COURSE),
        audit=audit,
        file_store=file_store,
        backup_directory=directory,
    )


SITE_SCOPE = ReportScope(ScopeKind.SYSTEM, SYSTEM, TAB_CORE)
CATEGORY_SCOPE = ReportScope(ScopeKind.CATEGORY, CATEGORY, TAB_CORE)
AUTOBACKUP_SCOPE = ReportScope(ScopeKind.CATEGORY, CATEGORY, TAB_AUTOBACKUP)


def test_no_delete_parameters_do_nothing(request_context, audit, file_store):
    result = _workflow(audit, file_store).handle(
        request_context, SITE_SCOPE, DeletionRequest()
    )
    assert result is None
    assert file_store.deleted == []


def test_bulk_selection_asks_for_confirmation(request_context, audit, file_store):
    deletion = DeletionRequest(delete_selected=True, selected=["12", "17", "99"])

    result = _workflow(audit, file_store).handle(request_context, SITE_SCOPE, deletion)

    assert isinstance(result, PendingDeletion)
    assert result.count == 3
    assert result.fileids == "12,17,99"
    assert file_store.deleted == []


def test_single_delete_asks_for_confirmation(request_context, audit, file_store):
    result = _workflow(audit, file_store).handle(
        request_context, SITE_SCOPE, DeletionRequest(delete="12")
    )
    assert isinstance(result, PendingDeletion)
    assert result.targets == ["12"]


@pytest.mark.parametrize("sesskey", [None, "", "forged"])
def test_confirmation_without_valid_sesskey_deletes_nothing(
    request_context, audit, file_store, sesskey
):
    deletion = DeletionRequest(
        delete_selected=True, fileids=["12", "17"], confirm=True, sesskey=sesskey
    )
    result = _workflow(audit, file_store).handle(request_context, SITE_SCOPE, deletion)

    assert result is None
    assert file_store.deleted == []
    assert audit.events == []


def test_missing_delete_capability_ignores_request(request_context, audit, file_store):
    deletion = DeletionRequest(
        delete_selected=True, fileids=["12"], confirm=True, sesskey="s3cret"
    )
    workflow = _workflow(audit, file_store, capabilities=FakeCapabilities())

    assert workflow.handle(request_context, SITE_SCOPE, deletion) is None
    assert file_store.deleted == []


def test_confirmed_bulk_delete_skips_missing_files(request_context, audit, file_store):
    deletion = DeletionRequest(
        delete_selected=True, fileids=["12", "17", "99"], confirm=True, sesskey="s3cret"
    )

    result = _workflow(audit, file_store).handle(request_context, SITE_SCOPE, deletion)

    assert isinstance(result, DeletionOutcome)
    assert file_store.deleted == [12, 17]
    assert result.deleted == ["12", "17"]
    assert result.rejected == ["99"]
    messages = [notification.message for notification in result.notifications]
    assert messages == ["Could not delete file: 99", "2 files deleted"]
    assert result.notifications[-1].level == NotificationLevel.SUCCESS

    assert [event.name for event in audit.events] == [EVENT_BACKUP_DELETED] * 2
    assert [event.object_id for event in audit.events] == [12, 17]
    assert audit.events[0].context_id == COURSE.id
    assert audit.events[0].other == {"filename": "backup-12.mbz"}


def test_non_archive_and_foreign_files_are_rejected(request_context, audit, file_store):
    # Course delete is only granted below category 2; file 40 lives in category 3
    outcome = _workflow(audit, file_store).execute(
        request_context, SITE_SCOPE, ["30", "40", "abc"]
    )

    assert file_store.deleted == []
    assert outcome.rejected == ["30", "40", "abc"]
    assert outcome.notifications[-1].message == "0 files deleted"


def test_store_failure_is_reported_and_loop_continues(request_context, audit):
    file_store = FakeFileStore(_file(12), _file(17), failing=(12,))

    outcome = _workflow(audit, file_store).execute(
        request_context, SITE_SCOPE, ["12", "17"]
    )

    assert file_store.deleted == [17]
    assert outcome.rejected == ["12"]


def test_out_of_range_ids_are_rejected(request_context, audit):
    file_store = FakeFileStore(_file(12))

    outcome = _workflow(audit, file_store).execute(
        request_context, SITE_SCOPE, ["99999999999999999999", "0", "-3", "12"]
    )

    assert file_store.deleted == [12]
    assert outcome.rejected == ["99999999999999999999", "0", "-3"]
    assert "Could not delete file: 99999999999999999999" in [
        notification.message for notification in outcome.notifications
    ]


def test_lookup_failure_is_reported_and_loop_continues(request_context, audit):
    file_store = FakeFileStore(_file(12), _file(17), unreadable=(12,))

    outcome = _workflow(audit, file_store).execute(
        request_context, SITE_SCOPE, ["12", "17"]
    )

    assert file_store.deleted == [17]
    assert outcome.rejected == ["12"]


def test_category_scope_never_deletes_outside_its_subtree(request_context, audit):
    # Course delete is granted site-wide, yet file 40 belongs to another category
    capabilities = FakeCapabilities((CAP_CATEGORY_DELETE, 2), (CAP_COURSE_DELETE, 1))
    file_store = FakeFileStore(_file(12), _file(40, contextid=5))

    outcome = _workflow(audit, file_store, capabilities=capabilities).execute(
        request_context, CATEGORY_SCOPE, ["12", "40"]
    )

    assert file_store.deleted == [12]
    assert outcome.rejected == ["40"]


def test_autobackup_delete_removes_directory_files(
    request_context, audit, file_store, directory
):
    outcome = _workflow(audit, file_store, directory).execute(
        request_context, AUTOBACKUP_SCOPE, ["auto-1.mbz", "missing.mbz", "locked.mbz"]
    )

    assert directory.deleted == ["auto-1.mbz"]
    assert outcome.deleted == ["auto-1.mbz"]
    assert outcome.rejected == ["missing.mbz", "locked.mbz"]
    assert file_store.deleted == []

    (event,) = audit.events
    assert event.name == EVENT_AUTOBACKUP_DELETED
    assert event.object_id is None
    assert event.context_id == CATEGORY.id
    assert event.other == {"filename": "auto-1.mbz"}


@pytest.mark.parametrize(
    "filename",
    ["../auto-1.mbz", "sub/auto-1.mbz", "..\\auto-1.mbz", "..", "auto-1.txt", ""],
)
def test_unsafe_autobackup_names_never_reach_directory(
    request_context, audit, file_store, directory, filename
):
    outcome = _workflow(audit, file_store, directory).execute(
        request_context, AUTOBACKUP_SCOPE, [filename]
    )

    assert directory.touched == []
    assert outcome.count == 0


def test_autobackup_delete_needs_course_delete(
    request_context, audit, file_store, directory
):
    capabilities = FakeCapabilities((CAP_CATEGORY_DELETE, 2))

    outcome = _workflow(audit, file_store, directory, capabilities).execute(
        request_context, AUTOBACKUP_SCOPE, ["auto-2.mbz"]
    )

    assert directory.deleted == []
    assert outcome.rejected == ["auto-2.mbz"]
