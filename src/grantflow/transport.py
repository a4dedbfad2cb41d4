"""Outbound HTTP transport for the grant flows.

The flows never construct HTTP clients themselves; they receive a
:class:`Transport` at construction time. :class:`HttpxTransport` is the
production implementation. Tests inject an :class:`httpx.Client` built on
:class:`httpx.MockTransport` to script the authorization server.

Requests are sent once with a bounded timeout. Retrying (e.g. re-polling a
device code) is the caller's responsibility.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from grantflow.exceptions import TransportError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class Transport(ABC):
    """Sends form-encoded POST requests and returns the raw response.

    Implementations must not raise on HTTP error statuses; status handling
    belongs to :class:`~grantflow.flows.exchanger.GrantExchanger`.
    """

    @abstractmethod
    def post_form(
        self, url: str, data: dict[str, str], headers: dict[str, str]
    ) -> httpx.Response:
        """POST *data* as ``application/x-www-form-urlencoded`` to *url*.

        Raises:
            TransportError: On network-level failures.
        """
        ...

    def close(self) -> None:
        """Release any pooled connections."""


class HttpxTransport(Transport):
    """:class:`Transport` backed by :class:`httpx.Client`.

    Args:
        client: Pre-configured client to use. When ``None`` a client is
            created with *timeout* and closed by :meth:`close`.
        timeout: Request timeout in seconds for the owned client.

    Example::

        with HttpxTransport(timeout=10) as transport:
            response = transport.post_form(url, {"grant_type": "..."}, {})
    """

    def __init__(
        self, client: Optional[httpx.Client] = None, timeout: float = DEFAULT_TIMEOUT
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)

    def __enter__(self) -> HttpxTransport:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def post_form(
        self, url: str, data: dict[str, str], headers: dict[str, str]
    ) -> httpx.Response:
        try:
            response = self._client.post(url, data=data, headers=headers)
        except httpx.TimeoutException as exc:
            raise TransportError(f"Request to {url} timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Request to {url} failed: {exc}") from exc
        logger.debug("POST %s -> %s", url, response.status_code)
        return response

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
