"""
Failure taxonomy for ledger and pull operations.

Every error a player can trigger is a `KnownError` subclass carrying a
user-safe message, an optional suggestion, and the HTTP status used by the
API layer. Internal detail (SQL, driver messages) is kept in `detail` for
logging and is never rendered to the player for storage failures.

Expected outcomes (cooldowns, insufficient funds, not eligible) are raised
before any mutation. Storage failures are raised after a rollback.
"""

from enum import Enum

from pydantic import BaseModel, Field


class FailureKind(str, Enum):
    """Classification of failure types."""

    INVALID_INPUT = "invalid_input"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    COOLDOWN_ACTIVE = "cooldown_active"
    NOT_ELIGIBLE = "not_eligible"
    DUPLICATE_REQUEST = "duplicate_request"
    STORAGE_FAILURE = "storage_failure"
    INVALID_CATALOG = "invalid_catalog"
    UNKNOWN = "unknown"


class FailureDetail(BaseModel):
    """Detailed information about a failure."""

    kind: FailureKind = Field(
        ...,
        description="Classification of the failure",
    )
    message: str = Field(
        ...,
        description="User-appropriate explanation of what went wrong",
    )
    detail: str | None = Field(
        default=None,
        description="Additional detail (optional)",
    )
    suggestion: str | None = Field(
        default=None,
        description="Suggested action for the user",
    )


class FailureResponse(BaseModel):
    """Envelope returned for every failed request."""

    failure: FailureDetail


class KnownError(Exception):
    """
    Base class for exceptions that represent known, explainable failures.

    Subclass this for errors where the system knows exactly what went wrong.
    """

    # Whether `detail` may be shown to the player
    expose_detail = True

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
        status_code: int = 400,
    ):
        self.kind = kind
        self.message = message
        self.detail = detail
        self.suggestion = suggestion
        self.status_code = status_code
        super().__init__(message)

    def to_detail(self) -> FailureDetail:
        """Convert to the user-facing failure payload."""
        return FailureDetail(
            kind=self.kind,
            message=self.message,
            detail=self.detail if self.expose_detail else None,
            suggestion=self.suggestion,
        )


class ValidationError(KnownError):
    """Bad player identity or out-of-range request values."""

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(
            kind=FailureKind.INVALID_INPUT,
            message=message,
            detail=detail,
            status_code=400,
        )


class InsufficientFundsError(KnownError):
    """
    Raised before any debit when the player cannot cover the cost.

    Nothing has been written when this is raised.
    """

    def __init__(self, balance: int, required: int):
        self.balance = balance
        self.required = required
        super().__init__(
            kind=FailureKind.INSUFFICIENT_FUNDS,
            message=(
                f"You need {required:,} berries but only have {balance:,}."
            ),
            detail=f"short by {required - balance}",
            suggestion="Collect income with /income or summon fewer fruits.",
            status_code=402,
        )


class StorageError(KnownError):
    """
    Transaction or connection failure.

    The transaction has been rolled back. `detail` holds the driver message
    for the log and is never sent to the player.
    """

    expose_detail = False

    def __init__(self, detail: str | None = None):
        super().__init__(
            kind=FailureKind.STORAGE_FAILURE,
            message="Something went wrong saving your progress. Nothing was changed.",
            detail=detail,
            suggestion="Please try again in a moment.",
            status_code=503,
        )


class CooldownError(KnownError):
    """Manual claim attempted before its cooldown elapsed."""

    def __init__(self, retry_after: int):
        self.retry_after = retry_after
        super().__init__(
            kind=FailureKind.COOLDOWN_ACTIVE,
            message=f"You can collect manual income again in {retry_after} seconds.",
            detail=f"retry_after={retry_after}",
            suggestion="Automatic income keeps collecting in the background.",
            status_code=429,
        )


class NotEligibleError(KnownError):
    """The player does not meet the requirements for an operation."""

    def __init__(self, message: str, suggestion: str | None = None):
        super().__init__(
            kind=FailureKind.NOT_ELIGIBLE,
            message=message,
            suggestion=suggestion,
            status_code=409,
        )


class DuplicateRequestError(KnownError):
    """A pull request key was submitted twice."""

    def __init__(self, request_key: str):
        self.request_key = request_key
        super().__init__(
            kind=FailureKind.DUPLICATE_REQUEST,
            message="This summon was already processed.",
            detail=f"request_key={request_key}",
            suggestion="Check your collection for the results.",
            status_code=409,
        )


class CatalogError(KnownError):
    """The fruit catalog is empty or malformed. Raised at startup."""

    def __init__(self, detail: str):
        super().__init__(
            kind=FailureKind.INVALID_CATALOG,
            message="The devil fruit catalog is invalid.",
            detail=detail,
            status_code=500,
        )
