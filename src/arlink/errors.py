"""Full error hierarchy for arlink.

Every public error class inherits from :class:`ArlinkError`. Each carries a
machine-readable ``code`` (from :class:`ErrorCode`), a human-readable
``message``, an optional structured ``context`` dict, and an optional
``cause`` (chained exception).

Whether an error is worth retrying is decided from its ``code`` alone (see
:data:`RETRYABLE_CODES`), never from the exception class.  This keeps the
submitter's retry loop a pure function of data.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Error code enum
# ---------------------------------------------------------------------------

class ErrorCode(str, Enum):
    """Machine-readable error codes for every error arlink can raise."""

    INVALID_INPUT = "INVALID_INPUT"
    UNSUPPORTED_MEDIA = "UNSUPPORTED_MEDIA"
    PROCESSING_FAILED = "PROCESSING_FAILED"
    TRANSIENT = "TRANSIENT"
    UPLOAD_FAILED = "UPLOAD_FAILED"
    CANCELLED = "CANCELLED"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    STORAGE_ERROR = "STORAGE_ERROR"


RETRYABLE_CODES: frozenset[str] = frozenset({ErrorCode.TRANSIENT})
"""Error codes the submitter's retry loop is allowed to retry."""


def is_retryable(code: str) -> bool:
    """Return ``True`` if an error with *code* may be retried."""
    return code in RETRYABLE_CODES


# ---------------------------------------------------------------------------
# Base error
# ---------------------------------------------------------------------------

class ArlinkError(Exception):
    """Base exception for all arlink errors.

    Parameters
    ----------
    code:
        A value from :class:`ErrorCode` identifying the error category.
    message:
        A developer-friendly description of what went wrong.
    context:
        Arbitrary structured data providing extra diagnostic detail.
        Keys are documented per subclass.
    cause:
        The underlying exception, if this error wraps another.
    """

    def __init__(
        self,
        code: str,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.code: str = code
        self.message: str = message
        self.context: dict[str, Any] = context or {}
        self.cause: Exception | None = cause
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    @property
    def retryable(self) -> bool:
        return is_retryable(self.code)

    def summary(self) -> str:
        """Return ``"<CODE>: <first line of message>"`` for user display."""
        first_line = self.message.splitlines()[0] if self.message else ""
        return f"{ErrorCode(self.code).value}: {first_line}"

    def __repr__(self) -> str:
        ctx = f", context={self.context!r}" if self.context else ""
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r}{ctx})"


# ---------------------------------------------------------------------------
# Input and media errors
# ---------------------------------------------------------------------------

class ArlinkInvalidInputError(ArlinkError):
    """Bad path, empty file, or malformed credential.  Never retried.

    Context keys: ``path``, ``reason``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.INVALID_INPUT,
            message=message,
            context=context,
            cause=cause,
        )


class ArlinkUnsupportedMediaError(ArlinkError):
    """Video, animated multi-frame image, or unknown extension.

    A skip/reject signal rather than a system fault.

    Context keys: ``path``, ``extension``, ``frames``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.UNSUPPORTED_MEDIA,
            message=message,
            context=context,
            cause=cause,
        )


class ArlinkProcessingError(ArlinkError):
    """The imaging toolkit failed (corrupt input, missing codec).

    Context keys: ``path``, ``stage``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.PROCESSING_FAILED,
            message=message,
            context=context,
            cause=cause,
        )


# ---------------------------------------------------------------------------
# Network errors
# ---------------------------------------------------------------------------

class ArlinkTransientError(ArlinkError):
    """Network error, timeout, or unexpected HTTP status.  Retryable.

    Context keys: ``url``, ``method``, ``status_code``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.TRANSIENT,
            message=message,
            context=context,
            cause=cause,
        )


class ArlinkUploadFailedError(ArlinkError):
    """All submission attempts were exhausted.

    Context keys: ``attempts``, ``last_error_code``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.UPLOAD_FAILED,
            message=message,
            context=context,
            cause=cause,
        )


# ---------------------------------------------------------------------------
# Flow-control outcomes
# ---------------------------------------------------------------------------

class ArlinkCancelledError(ArlinkError):
    """The operation was cancelled by the user.  Always terminal.

    Context keys: ``step``.
    """

    def __init__(
        self,
        message: str = "Operation cancelled",
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.CANCELLED,
            message=message,
            context=context,
            cause=cause,
        )


class ArlinkInsufficientBalanceError(ArlinkError):
    """The wallet balance does not cover the estimated cost and the caller
    declined to continue.

    Context keys: ``balance``, ``required``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.INSUFFICIENT_BALANCE,
            message=message,
            context=context,
            cause=cause,
        )


class ArlinkStorageError(ArlinkError):
    """The ledger's backing store could not be read or written.

    Context keys: ``key``, ``path``.  When an accepted transaction could
    not be recorded, also ``tx_id`` and ``location_uri``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.STORAGE_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


# ---------------------------------------------------------------------------
# User-facing notices
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class UserNotice:
    """What an editor shim should show for a finished operation.

    Attributes
    ----------
    level:
        ``"info"``, ``"warning"`` or ``"error"``.
    message:
        One-line text for the notification.
    action:
        Optional button label (``"Retry"``, ``"Continue"``).
    """

    level: str
    message: str
    action: str | None = None


def user_notice(exc: BaseException) -> UserNotice:
    """Map an exception to the notice an editor should display.

    Cancellation yields a neutral info notice, never an error.
    """
    if not isinstance(exc, ArlinkError):
        return UserNotice("error", f"Unexpected error: {exc}")

    code = exc.code
    if code == ErrorCode.CANCELLED:
        return UserNotice("info", "Operation cancelled")
    if code == ErrorCode.UPLOAD_FAILED:
        return UserNotice(
            "error",
            f"Upload failed: {exc.message.splitlines()[0]}. Please try again.",
            action="Retry",
        )
    if code == ErrorCode.INSUFFICIENT_BALANCE:
        balance = exc.context.get("balance", "?")
        required = exc.context.get("required", "?")
        return UserNotice(
            "warning",
            f"Your wallet balance ({balance} AR) may be insufficient for this "
            f"upload (est. {required} AR). Continue anyway?",
            action="Continue",
        )
    if code == ErrorCode.UNSUPPORTED_MEDIA:
        return UserNotice(
            "warning",
            "Please use a valid image file (PNG, JPG, JPEG, GIF, WEBP, AVIF - "
            "no videos or animated images)",
        )
    return UserNotice("error", exc.summary())
