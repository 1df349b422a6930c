"""Exception hierarchy for idmauth.

All exceptions inherit from :class:`IdmAuthError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`idmauth.exit_codes`.
The top-level error handler in :func:`idmauth.app.main` catches
``IdmAuthError`` and exits with the appropriate code.

Store-level problems never raise: the :class:`~idmauth.store.ScopedStore`
reports them through boolean returns, and the CLI turns a refused write
into ``EXIT_STORE_ERROR`` itself.

Subclass hierarchy::

    IdmAuthError (exit 1)
    +-- ConnectionError_        (exit 6)
    +-- MalformedResponseError  (exit 7)
    +-- ConfigError             (exit 1)
"""

from idmauth.exit_codes import (
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_MALFORMED_RESPONSE,
)


class IdmAuthError(Exception):
    """Base exception for all idmauth errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConnectionError_(IdmAuthError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class MalformedResponseError(IdmAuthError):
    """Raised when the token endpoint returns a non-empty body that is not a JSON object.

    This is a fault of the endpoint, not a recoverable outcome, so it
    propagates out of :meth:`~idmauth.auth.CredentialAuthenticator.submit`.

    Args:
        message: Human-readable error description.
        status_code: HTTP status of the offending response.
        body: The raw response text.
    """

    exit_code = EXIT_MALFORMED_RESPONSE

    def __init__(self, message: str, status_code: int = 0, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ConfigError(IdmAuthError):
    """Raised for configuration problems (invalid JSON, failed validation)."""

    exit_code = EXIT_GENERIC_FAILURE
