"""Canonical Pydantic models shared across all orglogin modules.

This is the single source of truth for data shapes in the project.  The
models fall into two groups:

**Login-flow models** -- built and consumed while a login is in progress:
    :class:`OAuthConfig`, :class:`AuthorizationState`,
    :class:`TokenResponse`, and :class:`Identity`.

**Persisted models** -- serialised as JSON in the user's config and data
directories:
    :class:`CredentialRecord`, :class:`AliasTable`, :class:`OutputConfig`,
    and :class:`GlobalConfig`.

All models use Pydantic v2.  Payloads coming from the identity provider use
``extra="ignore"`` so that new response fields never break parsing.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_CLIENT_ID = "PlatformCLI"
DEFAULT_LOGIN_URL = "https://login.salesforce.com"
DEFAULT_SCOPES = ("refresh_token", "api", "web")
RECORD_DECORATIONS = ("alias", "is_default_username", "is_default_dev_hub_username")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --- Login flow ---


class OAuthConfig(BaseModel):
    """OAuth client settings for a single login attempt.

    Immutable once constructed.  The web flow creates one from CLI flags and
    lets :class:`~orglogin.auth.callback_server.LoopbackCallbackServer` fill
    in the ``redirect_uri`` via :meth:`with_redirect_uri`; the URL-import
    flow gets one from :func:`~orglogin.auth.url_parser.parse_connection_url`
    with ``refresh_token`` set.

    Example::

        OAuthConfig(login_url="https://login.salesforce.com")
    """

    model_config = ConfigDict(frozen=True)

    login_url: str = DEFAULT_LOGIN_URL
    client_id: str = DEFAULT_CLIENT_ID
    client_secret: Optional[str] = None
    redirect_uri: Optional[str] = None
    refresh_token: Optional[str] = None
    scopes: tuple[str, ...] = DEFAULT_SCOPES

    @property
    def token_url(self) -> str:
        """The provider's token endpoint."""
        return f"{self.login_url.rstrip('/')}/services/oauth2/token"

    @property
    def authorize_url(self) -> str:
        """The provider's browser-facing authorization endpoint."""
        return f"{self.login_url.rstrip('/')}/services/oauth2/authorize"

    def with_redirect_uri(self, redirect_uri: str) -> OAuthConfig:
        """Return a copy of this config bound to *redirect_uri*."""
        return self.model_copy(update={"redirect_uri": redirect_uri})


class AuthorizationState(BaseModel):
    """The per-attempt CSRF state owned by one callback server."""

    model_config = ConfigDict(frozen=True)

    state: str
    created_at: datetime = Field(default_factory=_utcnow)
    config: OAuthConfig


class TokenResponse(BaseModel):
    """Token endpoint payload.  Transient -- consumed to build a record."""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    refresh_token: Optional[str] = None
    instance_url: str
    id: str = Field(description="Identity URL for the authenticated user")
    token_type: str = "Bearer"
    issued_at: Optional[str] = None


class Identity(BaseModel):
    """Subset of the identity endpoint payload we rely on."""

    model_config = ConfigDict(extra="ignore")

    username: str
    organization_id: str
    user_id: Optional[str] = None


# --- Persisted state ---


class CredentialRecord(BaseModel):
    """Persisted credentials for one authenticated username.

    The ``alias``, ``is_default_username`` and ``is_default_dev_hub_username``
    fields are decorations filled in by
    :meth:`~orglogin.auth.credential_store.CredentialStore.get_fields` from
    the alias table and default pointers.  They are never written to the
    record file, so there is exactly one place each fact lives.
    """

    username: str
    org_id: str
    access_token: str
    refresh_token: Optional[str] = None
    instance_url: str
    login_url: str = DEFAULT_LOGIN_URL
    client_id: str = DEFAULT_CLIENT_ID
    client_secret: Optional[str] = None
    is_scratch_org: Optional[bool] = None
    dev_hub_username: Optional[str] = None
    is_dev_hub: bool = False
    created: datetime = Field(default_factory=_utcnow)

    alias: Optional[str] = None
    is_default_username: bool = False
    is_default_dev_hub_username: bool = False

    def to_stored(self) -> dict:
        """Serialise the record without its read-time decorations."""
        return self.model_dump(mode="json", exclude=set(RECORD_DECORATIONS))


class AliasTable(BaseModel):
    """Alias -> username mapping persisted at ``<config_dir>/alias.json``."""

    orgs: dict[str, str] = Field(default_factory=dict)

    def aliases_for(self, username: str) -> list[str]:
        """Return every alias pointing at *username*, oldest first."""
        return [alias for alias, target in self.orgs.items() if target == username]


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/orglogin/config.json``.

    Holds the default-org pointers alongside ordinary settings.  At most one
    username is the default org and at most one is the default dev hub,
    because each is a single field here.
    """

    target_org: Optional[str] = Field(
        default=None, description="Username of the default org"
    )
    target_dev_hub: Optional[str] = Field(
        default=None, description="Username of the default dev hub"
    )
    org_instance_url: Optional[str] = Field(
        default=None, description="Login URL used when --instance-url is omitted"
    )
    api_version: str = Field(default="60.0", description="REST API version")
    output: OutputConfig = Field(default_factory=OutputConfig)
