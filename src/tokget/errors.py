"""Kind-tagged error taxonomy for tokget.

Every failure the login and logout flows report is a :class:`TokgetError`.
An error carries three things:

* a :class:`Kind` -- a stable, machine-comparable category. Validation
  failures, provider-reported errors and form rejections each have their
  own Kind; everything else (browser connection, navigation, script
  evaluation) uses :attr:`Kind.OTHER`.
* a human-readable message, formatted once at construction time.
* an optional cause -- the exception that triggered this one.

Callers compare errors by Kind with :func:`match` and reach the root
failure (a network error, a Playwright error) with :func:`cause`.

Cancellation is deliberately not part of the taxonomy: a cancelled flow
raises :class:`asyncio.CancelledError` unchanged, so it can never be
mistaken for :attr:`Kind.TIMEOUT`.

Kind to exit-code mapping::

    validation kinds        (exit 2)
    OIDC_ERROR, LOGIN_ERROR (exit 3)
    TIMEOUT                 (exit 8)
    OTHER                   (exit 1)
"""

from __future__ import annotations

import enum
from typing import Any, Optional

from tokget.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_TIMEOUT,
)


class Kind(str, enum.Enum):
    """Stable error categories.

    The values are part of the public contract: they appear in logs and
    are what test suites and HTTP collaborators compare against.
    """

    OTHER = ""
    ENDPOINT_MISSED = "endpoint_is_missed"
    ENDPOINT_INVALID = "endpoint_is_invalid"
    CLIENT_ID_MISSED = "client_id_is_missed"
    REDIRECT_URI_MISSED = "redirect_uri_is_missed"
    SCOPES_MISSED = "scopes_are_missed"
    ID_TOKEN_MISSED = "id_token_is_missed"
    USERNAME_MISSED = "username_is_missed"
    USERNAME_FIELD_MISSED = "username_field_selector_is_missed"
    USERNAME_FIELD_INVALID = "username_field_selector_is_invalid"
    PASSWORD_FIELD_MISSED = "password_field_selector_is_missed"
    PASSWORD_FIELD_INVALID = "password_field_selector_is_invalid"
    SUBMIT_BUTTON_MISSED = "submit_button_selector_is_missed"
    SUBMIT_BUTTON_INVALID = "submit_button_selector_is_invalid"
    ERROR_MESSAGE_MISSED = "error_message_selector_is_missed"
    OIDC_ERROR = "openid_connect_error"
    LOGIN_ERROR = "login_error"
    TIMEOUT = "timeout"

    def __str__(self) -> str:
        if self is Kind.OTHER:
            return "error"
        return self.value


VALIDATION_KINDS = frozenset(
    {
        Kind.ENDPOINT_MISSED,
        Kind.ENDPOINT_INVALID,
        Kind.CLIENT_ID_MISSED,
        Kind.REDIRECT_URI_MISSED,
        Kind.SCOPES_MISSED,
        Kind.ID_TOKEN_MISSED,
        Kind.USERNAME_MISSED,
        Kind.USERNAME_FIELD_MISSED,
        Kind.PASSWORD_FIELD_MISSED,
        Kind.SUBMIT_BUTTON_MISSED,
        Kind.ERROR_MESSAGE_MISSED,
    }
)
"""Kinds produced by input validation, before any browser is started."""

_AUTH_KINDS = frozenset({Kind.OIDC_ERROR, Kind.LOGIN_ERROR})


class TokgetError(Exception):
    """An error with a :class:`Kind`, a message and an optional cause.

    The constructor looks at the type of each argument to decide what it
    means, so the pieces can be passed in any order:

    * a :class:`Kind` sets the category (default :attr:`Kind.OTHER`);
    * an exception sets the cause;
    * the first string is the message;
    * every other argument is a ``%``-style parameter of the message.

    The message is formatted exactly once, and only when parameters are
    given, so provider-supplied text containing ``%`` is kept verbatim.

    Example::

        TokgetError(Kind.LOGIN_ERROR, "invalid password")
        TokgetError(exc, "load chrome config: status code %d", 502)
    """

    def __init__(self, *args: Any) -> None:
        kind = Kind.OTHER
        cause: Optional[BaseException] = None
        message: Optional[str] = None
        params: list[Any] = []
        for arg in args:
            if isinstance(arg, Kind):
                kind = arg
            elif isinstance(arg, BaseException):
                cause = arg
            elif isinstance(arg, str) and message is None:
                message = arg
            else:
                params.append(arg)
        if message is None:
            message = ""
        if params:
            message = message % tuple(params)

        super().__init__(message)
        self.kind = kind
        self.message = message
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        if self.cause is None:
            return self.message
        return f"{self.message}: {self.cause}"

    def __repr__(self) -> str:
        return f"TokgetError({str(self.kind)!r}, {str(self)!r})"

    @property
    def exit_code(self) -> int:
        """Process exit code for this error's Kind (see :mod:`tokget.exit_codes`)."""
        if self.kind in VALIDATION_KINDS:
            return EXIT_INVALID_USAGE
        if self.kind in _AUTH_KINDS:
            return EXIT_AUTH_FAILURE
        if self.kind is Kind.TIMEOUT:
            return EXIT_TIMEOUT
        return EXIT_GENERIC_FAILURE


class ConfigError(TokgetError):
    """Raised when the config file is unreadable or a credential source cannot be resolved."""


class InvariantViolation(RuntimeError):
    """Raised when code built from fixed internal literals turns out to be malformed.

    This is a programming error, not an operational one, so it is kept
    outside the :class:`TokgetError` taxonomy and is never mapped to a
    :class:`Kind`.
    """


def wrap(err: BaseException, message: str, *params: Any) -> TokgetError:
    """Return a new error that adds context *message* to *err*.

    The Kind of a wrapped :class:`TokgetError` is kept, so a timeout stays
    a timeout however many layers of context are added on top of it.
    """
    kind = err.kind if isinstance(err, TokgetError) else Kind.OTHER
    return TokgetError(kind, err, message, *params)


def cause(err: Optional[BaseException]) -> Optional[BaseException]:
    """Return the innermost error that is not a :class:`TokgetError`.

    Non-taxonomy errors are returned as is. A chain that ends in a
    :class:`TokgetError` without a cause yields ``None``.
    """
    while isinstance(err, TokgetError):
        err = err.cause
    return err


def match(got: Optional[BaseException], want: Optional[BaseException]) -> bool:
    """Return True when both errors are :class:`TokgetError` of the same Kind.

    Messages and causes are ignored so tests can assert "a failure of this
    category occurred" without pinning the exact text.
    """
    if not isinstance(want, TokgetError) or not isinstance(got, TokgetError):
        return False
    return got.kind is want.kind


def is_validation_error(err: BaseException) -> bool:
    """Return True when *err* was produced by input validation."""
    return isinstance(err, TokgetError) and err.kind in VALIDATION_KINDS
