"""Canonical Pydantic models shared across grantflow modules.

The models fall into three groups:

**Configuration** -- serialised as JSON in the user's config directory:
    :class:`ProxyConfig`.

**Grant artifacts** -- parsed from authorization-server responses and held
only transiently by the flows before they are written to storage:
    :class:`DeviceCodeArtifact` and :class:`AccessTokenArtifact`.

**Storage rows** -- produced by the storage providers:
    :class:`StoredValue` and :class:`CookieDirective`.

Grant artifacts use strict typing so that an ``expires_in`` of ``"3600"``
or an ``access_token`` of ``123`` is rejected rather than coerced.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


# --- Configuration ---


class ProxyConfig(BaseModel):
    """Client registration and endpoint settings for the proxy.

    Secrets are not stored inline by default: ``client_secret_source`` and
    ``encryption_secret_source`` are credential source descriptors
    (``env:VAR``, ``file:/path``, ``prompt``) resolved by
    :func:`grantflow.config.resolve_credential`. A literal
    ``client_secret`` is accepted for programmatic use.

    Example::

        ProxyConfig(
            client_id="my-client",
            client_secret_source="env:GRANTFLOW_CLIENT_SECRET",
            api_host="https://api.example.org",
            authorization_host="https://authorization.example.org",
            redirect_uri="https://app.example.org/oauth2/callback",
        )
    """

    model_config = ConfigDict(extra="ignore")

    client_id: str = ""
    client_secret: Optional[str] = Field(
        default=None, description="Literal client secret (prefer client_secret_source)"
    )
    client_secret_source: Optional[str] = Field(
        default=None, description="Credential source for the client secret"
    )
    api_host: str = Field(default="", description="Base URL of the token/device API")
    authorization_host: str = Field(
        default="", description="Base URL of the authorize endpoint"
    )
    redirect_uri: str = Field(default="", description="Authorization-code callback URL")
    client_url: str = Field(
        default="", description="Default post-login destination in the client app"
    )
    cookie_domain: Optional[str] = None
    encryption_salt: str = Field(default="", description="Salt for state/cookie encryption")
    encryption_secret_source: Optional[str] = Field(
        default=None, description="Credential source for the encryption passphrase"
    )
    timeout: float = Field(default=30.0, gt=0, description="Outbound request timeout (s)")


# --- Grant artifacts ---


class DeviceCodeArtifact(BaseModel):
    """Response of the device authorization endpoint.

    The caller surfaces :attr:`user_code` and :attr:`verification_uri` to
    the end user; the flow keeps :attr:`device_code` in secure storage.
    """

    model_config = ConfigDict(strict=True, populate_by_name=True)

    device_code: str = Field(min_length=1)
    user_code: str = Field(min_length=1)
    verification_uri: str = Field(
        validation_alias=AliasChoices("verification_uri", "verification_url")
    )
    expires_in: int = Field(gt=0)
    interval: int = Field(default=5, ge=0)


class AccessTokenArtifact(BaseModel):
    """Successful token endpoint response.

    ``refresh_token`` is optional; its absence is not an error.
    """

    model_config = ConfigDict(strict=True)

    access_token: str = Field(min_length=1)
    token_type: str
    expires_in: int
    refresh_token: Optional[str] = None


# --- Storage rows ---


class StoredValue(BaseModel):
    """A value persisted by :class:`~grantflow.providers.file.FileStorage`."""

    value: str
    expires_at: Optional[datetime] = None

    def is_expired(self) -> bool:
        if self.expires_at is None:
            return False
        expires = self.expires_at
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) >= expires


class CookieDirective(BaseModel):
    """A pending ``Set-Cookie`` emitted by the cookie storage providers.

    The hosting web framework turns these into response headers; a
    ``max_age`` of ``0`` deletes the cookie.
    """

    name: str
    value: str
    max_age: Optional[int] = None
    domain: Optional[str] = None
    path: str = "/"
    secure: bool = True
    http_only: bool = True
