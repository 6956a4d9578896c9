"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~orglogin.exceptions.OrgLoginError` subclass.
Shell wrappers and CI scripts can inspect the exit code to tell a rejected
authorization apart from a bad connection URL without parsing stderr.

Example::

    $ orglogin login url --file auth.txt
    $ echo $?
    2   # EXIT_INVALID_USAGE -- the connection URL could not be parsed
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or malformed input."""

EXIT_AUTH_FAILURE = 3
"""Authorization was denied, timed out, or the token exchange was rejected."""

EXIT_NOT_FOUND = 4
"""The requested org or alias is not known to the local credential store."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred while talking to the identity provider."""

EXIT_UNSUPPORTED_ENVIRONMENT = 8
"""The command cannot run here (e.g. a browser flow inside a container)."""
