"""OAuth2 Device Code grant, proxy side.

For clients without a browser of their own (TVs, speakers, terminals):

1. :meth:`DeviceCodeFlow.start` obtains a ``device_code`` + ``user_code``
   and keeps the device code in secure storage.
2. The caller shows "Go to {verification_uri} and enter {user_code}".
3. The caller invokes :meth:`DeviceCodeFlow.poll` every ``interval``
   seconds until it returns a token. While the user has not finished,
   ``poll`` raises :class:`~grantflow.exceptions.AuthorizationPendingError`.

``poll`` makes exactly one request per call and never sleeps; the retry
loop belongs to the caller (see :func:`grantflow.app.device`).
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Sequence

from pydantic import ValidationError

from grantflow.exceptions import (
    AuthorizationPendingError,
    DeviceCodeRequestError,
    MalformedResponseError,
    NotFoundError,
    TokenExchangeError,
)
from grantflow.flows.exchanger import DEVICE_PATH, GrantExchanger, error_message, json_body
from grantflow.flows.scopes import validate_scopes
from grantflow.models import AccessTokenArtifact, DeviceCodeArtifact

logger = logging.getLogger(__name__)

DEVICE_CODE_KEY = "device_code"

# OAuth2 error codes meaning "ask again later" (RFC 8628 section 3.5)
PENDING_ERRORS = frozenset({"authorization_pending", "slow_down"})


class DeviceFlowState(str, enum.Enum):
    IDLE = "idle"
    POLLING = "polling"


class DeviceCodeFlow:
    """Drive the device-code grant: ``Idle -> Polling``.

    Args:
        exchanger: Provider holder and token-endpoint client.
        session_key: Secure-storage key for the device code. Use a
            per-device key when the secure storage is shared.
    """

    def __init__(self, exchanger: GrantExchanger, session_key: str = DEVICE_CODE_KEY) -> None:
        self._exchanger = exchanger
        self.session_key = session_key
        self.state = DeviceFlowState.IDLE

    @property
    def exchanger(self) -> GrantExchanger:
        return self._exchanger

    def start(self, scopes: Sequence[str]) -> DeviceCodeArtifact:
        """Request a device code and keep it for :meth:`poll`.

        Args:
            scopes: Non-empty sequence of scope strings.

        Returns:
            The full :class:`~grantflow.models.DeviceCodeArtifact`, so the
            caller can display ``user_code`` and ``verification_uri``.

        Raises:
            ConfigurationError: A provider is missing.
            SecurityConfigurationError: Unsafe provider combination.
            InvalidArgumentError: *scopes* is empty or contains a non-string.
            DeviceCodeRequestError: The device endpoint answered >= 400.
            MalformedResponseError: The response lacks required fields.
        """
        self._exchanger.ensure_providers()
        scope_list = validate_scopes(scopes)

        data = self._exchanger.client_params()
        data["scope"] = " ".join(scope_list)
        response = self._exchanger.post_form(DEVICE_PATH, data)

        if response.status_code >= 400:
            logger.info("Device code request failed with status %s", response.status_code)
            raise DeviceCodeRequestError(
                f"Error requesting device code: {error_message(response)}",
                status_code=response.status_code,
            )

        body = json_body(response)
        if body is None:
            raise MalformedResponseError("Device code response is not a JSON object")
        try:
            artifact = DeviceCodeArtifact.model_validate(body)
        except ValidationError as exc:
            fields = ", ".join(str(err["loc"][0]) for err in exc.errors() if err["loc"])
            raise MalformedResponseError(
                f"Device code response has missing or invalid fields: {fields}"
            ) from exc

        self._exchanger.secure_storage.set(
            self.session_key, artifact.device_code, ttl=artifact.expires_in
        )
        self.state = DeviceFlowState.POLLING
        logger.debug("Device code issued, expires in %ss", artifact.expires_in)
        return artifact

    def poll(self) -> AccessTokenArtifact:
        """Make one attempt to exchange the stored device code for tokens.

        Raises:
            NotFoundError: No device code is stored, or it expired.
            AuthorizationPendingError: The user has not finished yet; retry
                after ``interval`` seconds (longer when ``slow_down`` is set).
            TokenExchangeError: Any other token-endpoint failure.
            MalformedResponseError: The token response is malformed.
        """
        self._exchanger.ensure_providers()
        device_code = self._exchanger.secure_storage.get(self.session_key)
        if device_code is None:
            raise NotFoundError("Device code flow: no device code on record")

        try:
            token = self._exchanger.exchange("device_code", {"code": device_code})
        except TokenExchangeError as exc:
            if exc.error_code in PENDING_ERRORS:
                raise AuthorizationPendingError(
                    "Authorization pending: the user has not completed the device flow yet",
                    slow_down=exc.error_code == "slow_down",
                ) from exc
            raise

        self._exchanger.store_tokens(token)
        logger.info("Device code grant completed")
        return token

    def clear(self) -> None:
        """Forget the stored device code."""
        self._exchanger.secure_storage.remove(self.session_key)
        self.state = DeviceFlowState.IDLE
