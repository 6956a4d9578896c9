"""Exception hierarchy for orglogin.

All exceptions inherit from :class:`OrgLoginError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`orglogin.exit_codes`
and a ``kind`` string naming the failure category.  The top-level error
handler in :func:`orglogin.app.main` catches ``OrgLoginError`` and exits
with the appropriate code, while unexpected exceptions produce a crash log
and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    OrgLoginError (exit 1)
    +-- InvalidUsageError          (exit 2)
    |   +-- MalformedInputError    (exit 2)
    +-- DeviceWarningError         (exit 8)
    +-- AuthError                  (exit 3)
    |   +-- AuthorizationDeniedError
    |   +-- StateMismatchError
    |   +-- AuthorizationTimeoutError
    |   +-- AuthCodeExchangeError
    +-- IdentityFetchError         (exit 6)
    +-- NotFoundError              (exit 4)
    +-- ConfigError                (exit 1)
"""

from orglogin.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_UNSUPPORTED_ENVIRONMENT,
)


class OrgLoginError(Exception):
    """Base exception for all orglogin errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`orglogin.exit_codes`.  ``kind`` defaults to the
    class name so callers (and ``--json`` output) can switch on the failure
    category without ``isinstance`` chains.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        self.message = message
        if exit_code is not None:
            self.exit_code = exit_code

    @property
    def kind(self) -> str:
        """The failure category, e.g. ``"StateMismatchError"``."""
        return type(self).__name__

    def __str__(self) -> str:
        return self.message


class InvalidUsageError(OrgLoginError):
    """Raised for invalid CLI arguments or unusable flag values."""

    exit_code = EXIT_INVALID_USAGE


class MalformedInputError(InvalidUsageError):
    """Raised when a connection URL does not match either accepted grammar."""


class DeviceWarningError(OrgLoginError):
    """Raised when a browser-based login is attempted in container mode."""

    exit_code = EXIT_UNSUPPORTED_ENVIRONMENT


class AuthError(OrgLoginError):
    """Base class for failures during authorization or token exchange."""

    exit_code = EXIT_AUTH_FAILURE


class AuthorizationDeniedError(AuthError):
    """Raised when the redirect carries an ``error`` parameter."""


class StateMismatchError(AuthError):
    """Raised when the redirect ``state`` does not match the one we issued."""


class AuthorizationTimeoutError(AuthError):
    """Raised when no redirect arrives before the callback timeout."""


class AuthCodeExchangeError(AuthError):
    """Raised when the token endpoint rejects a code or refresh token."""


class IdentityFetchError(OrgLoginError):
    """Raised when the identity endpoint is unreachable or returns a bad payload."""

    exit_code = EXIT_CONNECTION_ERROR


class NotFoundError(OrgLoginError):
    """Raised when no credential record exists for a username or alias."""

    exit_code = EXIT_NOT_FOUND


class ConfigError(OrgLoginError):
    """Raised for configuration problems (invalid JSON, bad config values)."""

    exit_code = EXIT_GENERIC_FAILURE
