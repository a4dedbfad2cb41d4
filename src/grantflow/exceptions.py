"""Exception hierarchy for grantflow.

All exceptions inherit from :class:`GrantflowError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`grantflow.exit_codes`.
Library callers catch the specific subclasses; the CLI entry point in
:func:`grantflow.app.main` catches ``GrantflowError`` and exits with the
matching code.

Subclass hierarchy::

    GrantflowError                      (exit 1)
    +-- ConfigurationError              (exit 2)
    |   +-- SecurityConfigurationError  (exit 2)
    +-- InvalidArgumentError            (exit 2)
    +-- StateIntegrityError             (exit 3)
    |   +-- MalformedStateError
    |   +-- MissingStateError
    |   +-- StateMismatchError
    +-- TokenExchangeError              (exit 3)
    +-- DeviceCodeRequestError          (exit 3)
    +-- DecryptionError                 (exit 3)
    +-- AuthorizationPendingError       (exit 75)
    +-- NotFoundError                   (exit 4)
    +-- MalformedResponseError          (exit 5)
    +-- TransportError                  (exit 6)

``AuthorizationPendingError`` is not a subclass of ``TokenExchangeError``;
an ``except TokenExchangeError`` clause never sees a pending poll.
"""

from __future__ import annotations

from grantflow.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_PROTOCOL_ERROR,
    EXIT_TEMPORARY_FAILURE,
)


class GrantflowError(Exception):
    """Base exception for all grantflow errors.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigurationError(GrantflowError):
    """Raised when a required provider or configuration value is missing."""

    exit_code = EXIT_INVALID_USAGE


class SecurityConfigurationError(ConfigurationError):
    """Raised for an unsafe provider combination.

    For example, tokens routed to client-readable (non-confidential) storage,
    or an encryption provider that reports itself invalid.
    """


class InvalidArgumentError(GrantflowError, ValueError):
    """Raised for caller bugs: empty or malformed scopes, missing code/state."""

    exit_code = EXIT_INVALID_USAGE


class StateIntegrityError(GrantflowError):
    """The ``state`` returned by the authorization server failed verification.

    Indicates a CSRF or tamper condition. The flow is aborted before any
    token exchange takes place.
    """

    exit_code = EXIT_AUTH_FAILURE


class MalformedStateError(StateIntegrityError):
    """The returned state is not ``nonce:payload`` with two non-empty parts."""


class MissingStateError(StateIntegrityError):
    """No nonce is on record for this session ("invalid state")."""


class StateMismatchError(StateIntegrityError):
    """The returned nonce differs from the stored one ("server state mismatch")."""


class TokenExchangeError(GrantflowError):
    """The token endpoint answered with HTTP >= 400.

    Args:
        message: Message derived from the server's error fields.
        status_code: HTTP status of the failed response.
        error_code: The OAuth2 ``error`` field, when the body carried one.
    """

    exit_code = EXIT_AUTH_FAILURE

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code


class DeviceCodeRequestError(GrantflowError):
    """The device authorization endpoint answered with HTTP >= 400."""

    exit_code = EXIT_AUTH_FAILURE

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class AuthorizationPendingError(GrantflowError):
    """The user has not completed device authorization yet.

    Callers poll again after the server-declared ``interval``. When the
    server asked the client to ``slow_down``, :attr:`slow_down` is ``True``
    and the interval should be increased by five seconds.
    """

    exit_code = EXIT_TEMPORARY_FAILURE

    def __init__(self, message: str, slow_down: bool = False):
        super().__init__(message)
        self.slow_down = slow_down


class NotFoundError(GrantflowError):
    """A required artifact (e.g. the device code) is absent or expired."""

    exit_code = EXIT_NOT_FOUND


class MalformedResponseError(GrantflowError):
    """A successful response body is not JSON or lacks required fields."""

    exit_code = EXIT_PROTOCOL_ERROR


class DecryptionError(GrantflowError):
    """Ciphertext was tampered with or was not produced by this key."""

    exit_code = EXIT_AUTH_FAILURE


class TransportError(GrantflowError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused)."""

    exit_code = EXIT_CONNECTION_ERROR
