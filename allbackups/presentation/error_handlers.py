"""Centralized error handling for the presentation layer."""

from pathlib import Path
from typing import Final

from fastapi import Request, status
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from ..config import settings
from ..domain.exceptions import (
    AccessDeniedError,
    BackupDestinationNotSetError,
    ContextNotFoundError,
    DomainError,
    FeatureDisabledError,
    NotAuthenticatedError,
)

TEMPLATE_DIR: Final = Path(__file__).resolve().parent.parent / "templates"
templates: Final = Jinja2Templates(directory=str(TEMPLATE_DIR))

_STATUS_BY_ERROR: Final[dict[type[DomainError], int]] = {
    NotAuthenticatedError: status.HTTP_401_UNAUTHORIZED,
    AccessDeniedError: status.HTTP_403_FORBIDDEN,
    FeatureDisabledError: status.HTTP_403_FORBIDDEN,
    ContextNotFoundError: status.HTTP_404_NOT_FOUND,
    BackupDestinationNotSetError: status.HTTP_400_BAD_REQUEST,
}


class ErrorFormatter:
    """Formats errors for consistent user experience."""

    @staticmethod
    def format_user_friendly_message(error: Exception) -> str:
        """Convert technical errors to user-friendly messages."""
        if isinstance(error, NotAuthenticatedError):
            return "You must log in to view this report."
        elif isinstance(error, AccessDeniedError):
            return "Sorry, but you do not currently have permissions to do that."
        elif isinstance(error, FeatureDisabledError):
            return f"{error}. Ask a site administrator to enable it."
        elif isinstance(error, ContextNotFoundError):
            return "The requested course category could not be found."
        elif isinstance(error, BackupDestinationNotSetError):
            return "The automated backup destination has not been set."
        else:
            # Fallback for unexpected errors
            return "Something went wrong. Please try again."


def status_for(error: DomainError) -> int:
    for error_type, code in _STATUS_BY_ERROR.items():
        if isinstance(error, error_type):
            return code
    return status.HTTP_400_BAD_REQUEST


def render_error_response(
    request: Request, message: str, status_code: int = 400
) -> HTMLResponse:
    """Render the error page with a single error notification."""
    return templates.TemplateResponse(
        request,
        "error.html",
        {"message": message, "settings": settings},
        status_code=status_code,
    )


def handle_domain_error(error: DomainError, request: Request) -> HTMLResponse:
    """Convert domain errors to the error page with a matching status."""
    return render_error_response(
        request,
        ErrorFormatter.format_user_friendly_message(error),
        status_code=status_for(error),
    )
