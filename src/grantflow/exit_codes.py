"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~grantflow.exceptions.GrantflowError` subclass.
Shell wrappers around the ``grantflow`` CLI can inspect the exit code to
tell a misconfiguration apart from a rejected grant without parsing stderr.

Example::

    $ grantflow callback "$CODE" "$STATE"
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- state check or token exchange failed
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""Invalid arguments, or a missing/unsafe provider configuration."""

EXIT_AUTH_FAILURE = 3
"""The grant was rejected: bad state, failed exchange, or undecryptable payload."""

EXIT_NOT_FOUND = 4
"""A required artifact (e.g. a device code) is not on record."""

EXIT_PROTOCOL_ERROR = 5
"""The authorization server returned a response that violates the protocol."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_TEMPORARY_FAILURE = 75
"""The operation should be retried later (``EX_TEMPFAIL``), e.g. authorization pending."""
