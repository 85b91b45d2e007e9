from typing import Any


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(AppException):
    """Resource not found."""

    def __init__(self, resource: str, identifier: Any = None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with id={identifier} not found"
        super().__init__(message=message, status_code=404)


class ValidationError(AppException):
    """Validation error."""

    def __init__(self, message: str, field: str | None = None):
        details = {"field": field} if field else {}
        super().__init__(message=message, status_code=422, details=details)


class AuthenticationError(AppException):
    """Authentication failed."""

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message=message, status_code=401)


class AuthorizationError(AppException):
    """Not authorized to perform action."""

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message=message, status_code=403)


class DuplicateError(AppException):
    """Duplicate resource."""

    def __init__(self, resource: str, field: str, value: Any):
        message = f"{resource} with {field}={value} already exists"
        super().__init__(message=message, status_code=409, details={"field": field, "value": value})


class DuplicateIdentifierError(AppException):
    """
    Another writer committed the same document number first.

    Retried inside the numbering service; it only reaches a client once every
    attempt is used up, which is a server-side allocation failure.
    """

    def __init__(self, resource: str, field: str, value: str):
        super().__init__(
            message="Could not allocate a document number, please retry",
            status_code=503,
            details={"field": field, "value": value},
        )
        self.resource = resource
        self.identifier = value


class MalformedIdentifierError(AppException):
    """Stored document number does not match PREFIX + digits."""

    def __init__(self, identifier: str, prefix: str):
        message = f"Document number {identifier!r} does not match prefix {prefix!r} followed by digits"
        super().__init__(
            message=message,
            status_code=500,
            details={"identifier": identifier, "prefix": prefix},
        )
        self.identifier = identifier
        self.prefix = prefix


class PdfGenerationUnavailableError(AppException):
    """WeasyPrint/system libraries not available (e.g. pango on macOS)."""

    def __init__(self, message: str | None = None):
        msg = message or (
            "PDF generation is not available on this system. "
            "On macOS install: brew install pango glib."
        )
        super().__init__(message=msg, status_code=503)
