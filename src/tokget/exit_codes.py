"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a family of :class:`~tokget.errors.Kind` values
(see :attr:`tokget.errors.TokgetError.exit_code`). Shell wrappers can
inspect the exit code to tell a typo in the configuration from rejected
credentials without parsing stderr.

Example::

    $ tokget login -e https://idp.example.com -c app -u alice -p wrong
    Error: invalid username or password
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the provider rejected the credentials
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred (browser connection, navigation, evaluation)."""

EXIT_INVALID_USAGE = 2
"""A mandatory parameter is missing or has an invalid value."""

EXIT_AUTH_FAILURE = 3
"""The provider reported an OpenID Connect error or rejected the login form."""

EXIT_TIMEOUT = 8
"""Waiting for a page to load exceeded its timeout."""

EXIT_CANCELLED = 130
"""The operation was interrupted (SIGINT)."""
