"""Custom exceptions for the TypeTalk backend."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typetalk.rules.models import AccessRequest


class TypeTalkError(Exception):
    """Base exception for all TypeTalk errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(TypeTalkError):
    """Raised when input validation fails."""

    pass


class DocumentNotFoundError(TypeTalkError):
    """Raised when a document does not exist."""

    pass


class PermissionDeniedError(TypeTalkError):
    """Raised when the rule set denies a document operation."""

    def __init__(self, request: AccessRequest, details: dict | None = None) -> None:
        super().__init__(
            f"Permission denied: {request.operation.value} on "
            f"{request.collection}/{request.document_id or '*'}",
            details,
        )
        self.request = request


class MigrationError(TypeTalkError):
    """Raised when a data migration cannot complete."""

    pass


class DocumentExistsError(TypeTalkError):
    """Raised when creating a document that already exists."""

    pass
