"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category. Some are carried by an
:class:`~idmauth.exceptions.IdmAuthError` subclass, the rest are used by
the CLI commands directly.
Shell wrappers can inspect the exit code to tell a rejected login apart
from an unreachable endpoint without parsing stderr.

Example::

    $ idmauth login --username jdoe
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- credentials were rejected
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_AUTH_FAILURE = 3
"""Authentication failed or the issued token could not be verified."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_MALFORMED_RESPONSE = 7
"""The token endpoint answered with a body that is not a JSON object."""

EXIT_STORE_ERROR = 8
"""The cookie store refused a write (reserved key or cookies disabled)."""
