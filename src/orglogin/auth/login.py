"""Top-level login flows.

:class:`LoginOrchestrator` drives the two supported ways of obtaining
credentials and persists the result:

* :meth:`~LoginOrchestrator.login_web` -- container check, confirmation
  prompt, loopback callback server, code exchange.
* :meth:`~LoginOrchestrator.login_url_import` -- parse a ``force://``
  connection URL file, exchange its refresh token.

Both end in the same persisting step: save the record, apply alias and
default flags, try to identify a scratch org, and return the decorated
record from the store.

Every collaborator (store, token client, callback server factory, prompts,
URL delivery, environment) is passed in, so the flows carry no hidden
global state and are straightforward to exercise in tests.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from orglogin.auth.callback_server import LoopbackCallbackServer, UrlSink
from orglogin.auth.credential_store import CredentialStore
from orglogin.auth.token_client import TokenExchangeClient
from orglogin.auth.url_parser import read_connection_url_file
from orglogin.config import is_container_mode, load_global_config, resolve_login_url
from orglogin.exceptions import AuthCodeExchangeError, DeviceWarningError
from orglogin.models import CredentialRecord, Identity, OAuthConfig, TokenResponse
from orglogin.output import debug

ServerFactory = Callable[[OAuthConfig, Optional[UrlSink]], LoopbackCallbackServer]
ConfirmPrompt = Callable[[str], bool]
SecretPrompt = Callable[[str], str]

DEVICE_WARNING = (
    "Browser-based login is not available in container mode. "
    "Use 'orglogin login url' with a connection URL file instead."
)
INVALID_CLIENT_HINT = (
    "Invalid client credentials. Verify the OAuth client secret and ID. {message}"
)


@dataclass
class LoginOptions:
    """Flags shared by both login commands."""

    instance_url: Optional[str] = None
    client_id: Optional[str] = None
    alias: Optional[str] = None
    set_default: bool = False
    set_default_dev_hub: bool = False
    no_prompt: bool = False


def _default_server_factory(
    config: OAuthConfig, url_sink: Optional[UrlSink]
) -> LoopbackCallbackServer:
    return LoopbackCallbackServer(config, url_sink=url_sink)


def _stdin_is_interactive() -> bool:
    return hasattr(sys.stdin, "isatty") and sys.stdin.isatty()


class LoginOrchestrator:
    """Run a login flow end to end and persist the resulting credentials.

    Args:
        store: Where records, aliases and default pointers live.
        token_client: Talks to the token and identity endpoints.
        server_factory: Builds the loopback server for a web login.
        confirm: Asked before a web login starts; returning ``False`` aborts
            the login without an error.
        secret_prompt: Asked for the client secret when a client id is given.
        url_sink: How the authorization URL is delivered to the user.
        environ: Environment used for the container-mode check.
        interactive: Overrides the stdin TTY check used to decide whether
            to confirm.
    """

    def __init__(
        self,
        store: Optional[CredentialStore] = None,
        token_client: Optional[TokenExchangeClient] = None,
        server_factory: ServerFactory = _default_server_factory,
        confirm: Optional[ConfirmPrompt] = None,
        secret_prompt: Optional[SecretPrompt] = None,
        url_sink: Optional[UrlSink] = None,
        environ: Optional[Mapping[str, str]] = None,
        interactive: Optional[bool] = None,
    ) -> None:
        self._store = store or CredentialStore()
        self._token_client = token_client or TokenExchangeClient()
        self._server_factory = server_factory
        self._confirm = confirm
        self._secret_prompt = secret_prompt
        self._url_sink = url_sink
        self._environ = os.environ if environ is None else environ
        self._interactive = interactive

    # ------------------------------------------------------------------
    # Web login
    # ------------------------------------------------------------------

    def login_web(self, options: LoginOptions) -> Optional[CredentialRecord]:
        """Log in through the browser.

        Returns:
            The persisted, decorated record, or ``None`` when the user
            declined the confirmation prompt.

        Raises:
            DeviceWarningError: In container mode; no listener is started.
            InvalidUsageError: If the instance URL is unusable.
            AuthorizationDeniedError, StateMismatchError,
            AuthorizationTimeoutError: From the callback phase.
            AuthCodeExchangeError, IdentityFetchError: From the token phase.
        """
        if is_container_mode(self._environ):
            raise DeviceWarningError(DEVICE_WARNING)

        login_url = resolve_login_url(options.instance_url, load_global_config(), self._environ)

        if not self._should_proceed(options, login_url):
            debug("Login cancelled at confirmation prompt")
            return None

        config = self._build_web_config(login_url, options.client_id)
        try:
            token, identity, bound = self._run_web_flow(config)
            record = self._build_record(token, identity, bound)
            return self._persist(record, options)
        except AuthCodeExchangeError as exc:
            debug(f"{exc.kind}: {exc}")
            if options.client_id:
                exc.message = INVALID_CLIENT_HINT.format(message=exc.message)
            raise

    def _should_proceed(self, options: LoginOptions, login_url: str) -> bool:
        if options.no_prompt or self._confirm is None:
            return True
        interactive = self._interactive if self._interactive is not None else _stdin_is_interactive()
        if not interactive:
            return True
        return self._confirm(
            f"You are about to open a browser to log in at {login_url}. Continue?"
        )

    def _build_web_config(self, login_url: str, client_id: Optional[str]) -> OAuthConfig:
        if not client_id:
            return OAuthConfig(login_url=login_url)
        secret = self._secret_prompt("OAuth client secret") if self._secret_prompt else None
        return OAuthConfig(login_url=login_url, client_id=client_id, client_secret=secret or None)

    def _run_web_flow(
        self, config: OAuthConfig
    ) -> tuple[TokenResponse, Identity, OAuthConfig]:
        with self._server_factory(config, self._url_sink) as server:
            url = server.start()
            debug(f"Authorization URL: {url}")
            code = server.await_callback()
            bound = server.config
        token, identity = self._token_client.exchange_code(bound, code)
        return token, identity, bound

    # ------------------------------------------------------------------
    # Connection URL import
    # ------------------------------------------------------------------

    def login_url_import(self, path: Path, options: LoginOptions) -> CredentialRecord:
        """Import credentials from a connection URL file.

        Raises:
            MalformedInputError: If the file does not hold a valid URL.
            AuthCodeExchangeError, IdentityFetchError: From the token phase.
        """
        config = read_connection_url_file(path)
        debug(f"Refreshing token against {config.login_url}")
        token, identity = self._token_client.exchange_refresh_token(config)
        record = self._build_record(token, identity, config)
        return self._persist(record, options)

    # ------------------------------------------------------------------
    # Persisting
    # ------------------------------------------------------------------

    @staticmethod
    def _build_record(
        token: TokenResponse, identity: Identity, config: OAuthConfig
    ) -> CredentialRecord:
        return CredentialRecord(
            username=identity.username,
            org_id=identity.organization_id,
            access_token=token.access_token,
            refresh_token=token.refresh_token or config.refresh_token,
            instance_url=token.instance_url,
            login_url=config.login_url,
            client_id=config.client_id,
            client_secret=config.client_secret,
        )

    def _persist(self, record: CredentialRecord, options: LoginOptions) -> CredentialRecord:
        existing = self._store.load(record.username)
        if existing is not None:
            # Re-login keeps what earlier enrichment learned about the org.
            record = record.model_copy(
                update={
                    "is_dev_hub": existing.is_dev_hub,
                    "is_scratch_org": existing.is_scratch_org,
                    "dev_hub_username": existing.dev_hub_username,
                    "created": existing.created,
                }
            )
        self._store.save(record)
        if options.alias:
            self._store.set_alias(record.username, options.alias)
        if options.set_default or options.set_default_dev_hub:
            self._store.set_default(
                record.username,
                as_default_username=options.set_default,
                as_default_dev_hub=options.set_default_dev_hub,
            )
        try:
            self._store.identify_possible_scratch_orgs(
                self._store.load(record.username) or record
            )
        except Exception as exc:
            debug(f"Scratch org identification skipped: {exc}")
        return self._store.get_fields(record.username)
