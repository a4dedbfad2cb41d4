"""OAuth2 Authorization Code grant, proxy side.

Use this flow to power the two routes of an OAuth2 proxy that serves a
browser client:

1. **Login** -- :meth:`AuthorizationCodeFlow.start` returns the authorize
   URL to redirect the user to, carrying a protected ``state`` parameter.
2. **Callback** -- :meth:`AuthorizationCodeFlow.complete` verifies the
   returned ``state``, exchanges the ``code`` for tokens, and stores them in
   secure storage.

The hosting application owns the routing; this module never touches the
request or response objects directly.

See Also:
    :mod:`grantflow.flows.state` for the state token format.
    :class:`grantflow.flows.device_code.DeviceCodeFlow` for headless
    clients.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Mapping, Sequence
from typing import Any, Optional
from urllib.parse import quote, urlencode

from grantflow.exceptions import ConfigurationError, InvalidArgumentError
from grantflow.flows.exchanger import GrantExchanger
from grantflow.flows.scopes import validate_scopes
from grantflow.flows.state import (
    compose_state,
    generate_nonce,
    open_payload,
    seal_payload,
    split_state,
    verify_nonce,
)
from grantflow.models import AccessTokenArtifact
from grantflow.providers.base import EncryptionProvider

logger = logging.getLogger(__name__)

AUTHORIZE_PATH = "/v2/authorize"
DEFAULT_SESSION_KEY = "state"


class FlowState(str, enum.Enum):
    IDLE = "idle"
    AWAITING_CALLBACK = "awaiting_callback"
    COMPLETED = "completed"


class AuthorizationCodeFlow:
    """Drive the authorization-code grant: ``Idle -> AwaitingCallback -> Completed``.

    Each instance is request-scoped. Everything that must survive between
    the login request and the callback request is kept in the exchanger's
    storage providers under :attr:`session_key`.

    Args:
        exchanger: Provider holder and token-endpoint client. Must have an
            encryption provider.
        session_key: Storage key for the nonce. Use a per-session key when
            the plain storage is shared between users.

    Example::

        flow = AuthorizationCodeFlow(exchanger)
        url = flow.start(["identity.readonly", "listening.write"])
        # ... user authorizes, browser returns to the callback ...
        token = flow.complete(request.args["code"], request.args["state"])
        redirect(flow.get_return_url())
    """

    def __init__(self, exchanger: GrantExchanger, session_key: str = DEFAULT_SESSION_KEY) -> None:
        self._exchanger = exchanger
        self.session_key = session_key
        self.state = FlowState.IDLE
        self.state_data: dict[str, Any] = {}

    @property
    def exchanger(self) -> GrantExchanger:
        return self._exchanger

    def _require_encryption(self) -> EncryptionProvider:
        encryption = self._exchanger.encryption
        if encryption is None:
            raise ConfigurationError(
                "EncryptionProvider must be set. See GrantExchanger.set_encryption_provider()"
            )
        return encryption

    def start(
        self, scopes: Sequence[str], state_data: Optional[Mapping[str, Any]] = None
    ) -> str:
        """Begin the grant and return the authorize URL.

        A fresh nonce replaces any nonce previously stored under the session
        key, so an older ``state`` no longer validates.

        Args:
            scopes: Non-empty sequence of scope strings.
            state_data: JSON-serialisable data to round-trip through the
                authorization server, encrypted. A ``return_to`` entry is
                used by :meth:`get_return_url`.

        Returns:
            ``{authorization_host}/v2/authorize?...`` with every query value
            percent-encoded.

        Raises:
            ConfigurationError: A provider is missing.
            SecurityConfigurationError: Unsafe provider combination.
            InvalidArgumentError: *scopes* is empty or contains a non-string.
        """
        self._exchanger.ensure_providers()
        encryption = self._require_encryption()
        scope_list = validate_scopes(scopes)

        config = self._exchanger.config
        nonce = generate_nonce()
        payload = seal_payload(encryption, state_data)
        self._exchanger.storage.set(self.session_key, nonce)

        query = urlencode(
            {
                "client_id": config.get_client_id(),
                "redirect_uri": config.get_redirect_uri(),
                "response_type": "code",
                "scope": " ".join(scope_list),
                "state": compose_state(nonce, payload),
            },
            quote_via=quote,
        )
        self.state = FlowState.AWAITING_CALLBACK
        logger.debug("Authorization grant started for %d scope(s)", len(scope_list))
        return f"{config.get_authorization_host()}{AUTHORIZE_PATH}?{query}"

    def complete(self, code: Optional[str], returned_state: Optional[str]) -> AccessTokenArtifact:
        """Finish the grant from the authorization server's callback.

        The state is fully verified -- separator, stored nonce, constant-time
        comparison, payload decryption -- before the code is exchanged.
        Nothing is written to storage unless the exchange succeeds; the
        nonce is consumed only then.

        Args:
            code: The ``code`` query parameter of the callback.
            returned_state: The ``state`` query parameter of the callback.

        Returns:
            The :class:`~grantflow.models.AccessTokenArtifact`, also stored
            in secure storage.

        Raises:
            InvalidArgumentError: *code* or *returned_state* is empty.
            MalformedStateError: No colon separator, or an empty half.
            MissingStateError: No nonce stored for this session.
            StateMismatchError: The nonce does not match.
            DecryptionError: The payload was tampered with.
            TokenExchangeError: The token endpoint rejected the code.
            MalformedResponseError: The token response is malformed.
        """
        self._exchanger.ensure_providers()
        if not code:
            raise InvalidArgumentError("Authorization code must be a non-empty string")
        if not returned_state:
            raise InvalidArgumentError("State must be a non-empty string")
        encryption = self._require_encryption()

        nonce, payload = split_state(returned_state)
        verify_nonce(self._exchanger.storage, self.session_key, nonce)
        state_data = open_payload(encryption, payload)

        token = self._exchanger.exchange(
            "authorization_code",
            {"code": code, "redirect_uri": self._exchanger.config.get_redirect_uri()},
        )
        self._exchanger.store_tokens(token)
        self._exchanger.storage.remove(self.session_key)

        self.state_data = state_data
        self.state = FlowState.COMPLETED
        logger.info("Authorization code grant completed")
        return token

    def get_return_url(self) -> str:
        """Where to send the user after login.

        The ``return_to`` entry of the round-tripped state data when present,
        else the configured client URL.
        """
        return_to = self.state_data.get("return_to")
        if isinstance(return_to, str) and return_to:
            return return_to
        return self._exchanger.config.get_client_url()
