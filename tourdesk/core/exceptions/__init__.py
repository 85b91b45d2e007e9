from tourdesk.core.exceptions.base import (
    AppException,
    NotFoundError,
    ValidationError,
    AuthenticationError,
    AuthorizationError,
    DuplicateError,
    DuplicateIdentifierError,
    MalformedIdentifierError,
    PdfGenerationUnavailableError,
)

__all__ = [
    "AppException",
    "NotFoundError",
    "ValidationError",
    "AuthenticationError",
    "AuthorizationError",
    "DuplicateError",
    "DuplicateIdentifierError",
    "MalformedIdentifierError",
    "PdfGenerationUnavailableError",
]
