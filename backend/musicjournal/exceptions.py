"""
Music Journal Backend — Custom Exception Hierarchy
====================================================

What:  Application-specific exceptions for storage, encryption, and auth failures.
Why:   The store reports every outcome explicitly. A typed exception per failure
       mode lets the route layer pick a status code without string matching.
How:   Each exception carries a message and an optional context dict.
       Global exception handlers (registered in main.py) turn these into
       structured JSON error responses.
Who:   Raised by the crypto envelope, the JournalStore, and the auth service.

Exception Hierarchy:
    MusicJournalError (base)
    ├── ValidationError               → 400 Bad Request
    ├── AuthenticationError           → 401 Unauthorized
    ├── NotFoundError                 → 404 Not Found
    │   └── JournalEntryNotFoundError → 404 (update/delete matched zero rows)
    ├── ConstraintViolationError      → 409 Conflict
    │   ├── DuplicateUserError
    │   │   └── DuplicateEmailError
    │   ├── DuplicateEntryError
    │   └── ForeignKeyError
    ├── DecryptionError               → 500 Internal Server Error
    ├── DatabaseError                 → 500 Internal Server Error
    ├── StorageUnavailableError       → fatal at startup
    ├── ConfigurationError            → fatal at startup
    └── IdentityProviderError         → 502 Bad Gateway (Spotify unreachable)

Design Decision:
    Constraint violations keep the storage engine's own message in
    context["detail"] and chain the original exception, so nothing the
    engine reported is lost. The store never retries; it raises immediately.
"""

from typing import Any, Dict, Optional


class MusicJournalError(Exception):
    """
    Base exception for all Music Journal application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(MusicJournalError):
    """
    Raised when caller input fails a business rule.

    When:    Empty update patch, NULL for a required encrypted field.
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthenticationError(MusicJournalError):
    """
    Raised when the request carries no access token or Spotify rejects it.

    HTTP:    401 Unauthorized
    """

    def __init__(
        self,
        message: str = "Access token required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(MusicJournalError):
    """
    Raised when a requested resource does not exist.

    Why a custom exception:
        SQLAlchemy returns None (or rowcount 0) for missing records.
        The service layer converts that into NotFoundError so the route
        layer can answer 404 without knowing about SQL.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if message is None:
            message = f"The requested {resource} was not found"
            if resource_id:
                message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class JournalEntryNotFoundError(NotFoundError):
    """
    Raised when an ownership-scoped update or delete affects zero rows.

    The predicate is always (entry_id, user_id), so this covers a wrong id,
    a wrong owner, or both. The error does not say which case occurred, so
    a caller never learns that another user's entry exists.
    """

    def __init__(
        self,
        entry_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            resource="journal entry",
            resource_id=entry_id,
            message="No journal entry found with that ID",
            context=context,
        )
        self.entry_id = entry_id


class ConstraintViolationError(MusicJournalError):
    """
    Raised when the storage engine rejects a write on a unique or FK constraint.

    What:    Wraps sqlalchemy.exc.IntegrityError.
    HTTP:    409 Conflict
    Context: "detail" holds the engine's message verbatim.
    """

    def __init__(
        self,
        message: str = "The write violates a database constraint",
        detail: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if detail:
            ctx["detail"] = detail
        super().__init__(message=message, context=ctx)
        self.detail = detail


class DuplicateUserError(ConstraintViolationError):
    """A user with the same primary key or email already exists."""

    def __init__(
        self,
        detail: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        message: str = "User already exists",
    ):
        super().__init__(message=message, detail=detail, context=context)


class DuplicateEmailError(DuplicateUserError):
    """A user with the same email already exists."""

    def __init__(self, detail: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            detail=detail,
            context=context,
            message="A user with that email already exists",
        )


class DuplicateEntryError(ConstraintViolationError):
    """A journal entry with the same entry_id already exists."""

    def __init__(self, detail: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            message="A journal entry with that ID already exists",
            detail=detail,
            context=context,
        )


class ForeignKeyError(ConstraintViolationError):
    """The entry references a user or track that does not exist."""

    def __init__(self, detail: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            message="Journal entry references an unknown user or track",
            detail=detail,
            context=context,
        )


class DecryptionError(MusicJournalError):
    """
    Raised when a stored ciphertext blob cannot be decrypted.

    When:    Malformed blob (no ':' separator, bad hex), wrong key, corrupt padding.
    HTTP:    500 Internal Server Error

    Fatal for the read that hit it, never for the process. The store raises
    it from the read call so the caller sees it; the global handler answers 500.
    """

    def __init__(
        self,
        message: str = "Stored data could not be decrypted",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(MusicJournalError):
    """
    Raised when a database operation fails for a reason other than a constraint.

    Security Note:
        The message returned to the client is always generic.
        Detailed error info is logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class StorageUnavailableError(MusicJournalError):
    """
    Raised when the database cannot be opened or reached at startup.

    The process cannot serve requests without storage, so the lifespan
    handler lets this propagate and uvicorn aborts startup.
    """

    def __init__(
        self,
        message: str = "Database is unavailable",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ConfigurationError(MusicJournalError):
    """Raised when a required setting (e.g. ENCRYPTION_KEY) is missing or malformed."""

    def __init__(
        self,
        message: str = "Invalid configuration",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class IdentityProviderError(MusicJournalError):
    """
    Raised when Spotify cannot be reached after retries.

    HTTP:    502 Bad Gateway
    """

    def __init__(
        self,
        message: str = "Spotify is temporarily unavailable",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
