"""Error kinds for hv.

Every business-rule failure is a `LibraryError` subclass with a stable
numeric code and message. Anything else that escapes an operation (a disk
error, a locked database, a corrupt row) is unclassified and is reported to
clients only as the generic internal error.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from .logging_config import get_logger

logger = get_logger(__name__)


class LibraryError(Exception):
    """Base class for errors that are reported to clients by code."""

    code: int = -1
    message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)


class InvalidMetadata(LibraryError):
    code = 1
    message = "Invalid database metadata"


class InvalidSchema(LibraryError):
    code = 2
    message = "Invalid database schema"


class ExistentUser(LibraryError):
    code = 3
    message = "User already exists in database"


class InexistentUser(LibraryError):
    code = 4
    message = "User does not exist in database"


class InvalidPassword(LibraryError):
    code = 5
    message = "Invalid password"


class DisallowedUsername(LibraryError):
    code = 6
    message = "Disallowed username"


class DisallowedPassword(LibraryError):
    code = 7
    message = "Disallowed password"


class InvalidToken(LibraryError):
    code = 8
    message = "Invalid token"


class InvalidPageNumber(LibraryError):
    code = 9
    message = "Invalid page number"


class InvalidId(LibraryError):
    code = 10
    message = "Invalid ID"


class Unauthorized(LibraryError):
    code = 11
    message = "Unauthorized"


class InvalidPageSize(LibraryError):
    code = 12
    message = "Invalid page size"


class InternalError(LibraryError):
    """Opaque storage failure. The cause is chained, never shown to clients."""


class RegistrationDisabled(LibraryError):
    """Self-service sign-up is turned off. Reported under the generic code."""

    message = "User registering is disabled"


class InvalidImportMetadata(InvalidMetadata):
    """metadata.json of an import folder is missing or malformed."""


# --- Import validation (offline tooling only, no client codes) ---


class ImportValidationError(Exception):
    """The pages found in an import folder don't match its metadata."""


class MissingPages(ImportValidationError):
    def __init__(self, found: int, declared: int):
        self.found = found
        self.declared = declared
        super().__init__(
            f"Some pages are missing in the folder (found {found} out of {declared})"
        )


class TooManyPages(ImportValidationError):
    def __init__(self, found: int, declared: int):
        self.found = found
        self.declared = declared
        super().__init__(
            f"The folder contains too many pages (found {found} out of {declared})"
        )


class NonSequentialPages(ImportValidationError):
    def __init__(self, expected: int, found: int):
        self.expected = expected
        self.found = found
        super().__init__(
            f"The pages in the folder are not sequential (expected page {expected}, found {found})"
        )


ERROR_KINDS: tuple[type[LibraryError], ...] = (
    InvalidMetadata,
    InvalidSchema,
    ExistentUser,
    InexistentUser,
    InvalidPassword,
    DisallowedUsername,
    DisallowedPassword,
    InvalidToken,
    InvalidPageNumber,
    InvalidId,
    Unauthorized,
    InvalidPageSize,
)


class ErrorResponse(BaseModel):
    """Transport-neutral error payload for the request layer."""

    error_code: int
    error_string: str


def error_response(exc: BaseException) -> ErrorResponse:
    """Map an exception raised by a library operation to a client payload.

    Typed errors keep their code and class message. Everything else is logged
    with the caller's location and collapses to the generic internal error,
    so storage details never reach the client.
    """
    if isinstance(exc, LibraryError) and not isinstance(exc, InternalError):
        logger.info(f"{type(exc).__name__}: {exc}", stacklevel=2)
        return ErrorResponse(error_code=exc.code, error_string=type(exc).message)

    logger.error(
        f"Unhandled error: {exc!r}",
        exc_info=(type(exc), exc, exc.__traceback__),
        stacklevel=2,
    )
    return ErrorResponse(error_code=InternalError.code, error_string=InternalError.message)
