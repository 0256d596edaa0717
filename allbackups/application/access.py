"""Access and configuration gate shared by both report entry points."""

from typing import Final

from ..config import Settings
from ..domain.constants import CONTEXT_COURSECAT, TAB_AUTOBACKUP, TAB_CORE
from ..domain.entities import ReportScope, RequestContext, ScopeKind
from ..domain.exceptions import (
    AccessDeniedError,
    BackupDestinationNotSetError,
    ContextNotFoundError,
    FeatureDisabledError,
    NotAuthenticatedError,
)
from ..domain.ports import CapabilityChecker, ContextResolver
from ..logging_config import get_logger

logger: Final = get_logger(__name__)


def resolve_scope(
    contexts: ContextResolver,
    kind: ScopeKind,
    context_id: int | None = None,
    tab: str = TAB_CORE,
) -> ReportScope:
    """Turn the entry point and its parameters into a report scope.

    Raises:
        ContextNotFoundError: If a category report names a missing or
            non-category context
    """
    if kind == ScopeKind.SYSTEM:
        return ReportScope(
            kind=kind, context=contexts.get_system_context(), tab=TAB_CORE
        )

    context = contexts.get_context(context_id) if context_id is not None else None
    if context is None or context.contextlevel != CONTEXT_COURSECAT:
        raise ContextNotFoundError(f"No course category context with id {context_id}")
    if tab not in (TAB_CORE, TAB_AUTOBACKUP):
        tab = TAB_CORE
    return ReportScope(kind=kind, context=context, tab=tab)


def require_report_access(
    request_context: RequestContext | None,
    scope: ReportScope,
    capabilities: CapabilityChecker,
    settings: Settings,
) -> RequestContext:
    """Halt the request unless the session, feature flag and capability allow it.

    Returns:
        The authenticated request context

    Raises:
        NotAuthenticatedError: No session
        FeatureDisabledError: The scope's report is switched off
        AccessDeniedError: The user lacks the view capability
        BackupDestinationNotSetError: Automated backups requested but unconfigured
    """
    if request_context is None:
        raise NotAuthenticatedError("You must be logged in to view this report")

    if scope.kind == ScopeKind.SYSTEM and not settings.site_report_enabled:
        raise FeatureDisabledError("The site backup report is disabled")
    if scope.kind == ScopeKind.CATEGORY and not settings.category_backup_management:
        raise FeatureDisabledError("Category backup management mode is disabled")

    if not capabilities.has_capability(
        request_context.user, scope.view_capability, scope.context
    ):
        logger.warning(
            "Report access denied",
            user_id=request_context.user.id,
            capability=scope.view_capability,
            context_id=scope.context.id,
        )
        raise AccessDeniedError(scope.view_capability, scope.context.id)

    if scope.is_autobackup and not settings.autobackup_configured:
        raise BackupDestinationNotSetError(
            "The automated backup destination is not set"
        )

    return request_context
