"""Token and identity endpoint client.

:class:`TokenExchangeClient` turns an authorization code (web login) or a
refresh token (connection-URL import) into a :class:`~orglogin.models.TokenResponse`,
then reads the identity URL from that response to learn the username and
org id.

Every call is a single attempt.  Login is user-initiated, so a transient
network failure is reported rather than retried.
"""

from __future__ import annotations

from typing import Any

import httpx
from pydantic import ValidationError

from orglogin.exceptions import AuthCodeExchangeError, IdentityFetchError
from orglogin.models import Identity, OAuthConfig, TokenResponse
from orglogin.output import debug


def _provider_error(response: httpx.Response) -> str:
    """Extract the most useful error text from a token endpoint response."""
    try:
        payload = response.json()
    except ValueError:
        return response.text.strip() or f"HTTP {response.status_code}"
    if isinstance(payload, dict):
        desc = payload.get("error_description")
        err = payload.get("error")
        if desc and err:
            return f"{err}: {desc}"
        if desc or err:
            return str(desc or err)
    return response.text.strip() or f"HTTP {response.status_code}"


class TokenExchangeClient:
    """Exchange grants for tokens and fetch the caller's identity.

    Args:
        timeout: Per-request timeout in seconds.

    Example::

        client = TokenExchangeClient()
        token, identity = client.exchange_code(server.config, code)
    """

    def __init__(self, timeout: float = 30.0) -> None:
        self._timeout = timeout

    def exchange_code(self, config: OAuthConfig, code: str) -> tuple[TokenResponse, Identity]:
        """Exchange an authorization code for tokens.

        Args:
            config: OAuth settings bound to the redirect URI used in the
                authorization request.
            code: The code delivered to the loopback redirect.

        Returns:
            The token response and the identity it belongs to.

        Raises:
            AuthCodeExchangeError: If the token endpoint rejects the request.
            IdentityFetchError: If the identity lookup fails.
        """
        data: dict[str, str] = {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": config.client_id,
            "redirect_uri": config.redirect_uri or "",
        }
        if config.client_secret:
            data["client_secret"] = config.client_secret

        token = self._request_token(config, data)
        return token, self.fetch_identity(token)

    def exchange_refresh_token(self, config: OAuthConfig) -> tuple[TokenResponse, Identity]:
        """Exchange the refresh token carried by *config* for a fresh access token.

        Providers usually do not rotate the refresh token on this grant, so
        the input token is kept when the response omits one.

        Raises:
            AuthCodeExchangeError: If *config* has no refresh token or the
                token endpoint rejects it.
            IdentityFetchError: If the identity lookup fails.
        """
        if not config.refresh_token:
            raise AuthCodeExchangeError("No refresh token available to exchange")

        data: dict[str, str] = {
            "grant_type": "refresh_token",
            "refresh_token": config.refresh_token,
            "client_id": config.client_id,
        }
        if config.client_secret:
            data["client_secret"] = config.client_secret
        if config.redirect_uri:
            data["redirect_uri"] = config.redirect_uri

        token = self._request_token(config, data)
        if token.refresh_token is None:
            token = token.model_copy(update={"refresh_token": config.refresh_token})
        return token, self.fetch_identity(token)

    def fetch_identity(self, token: TokenResponse) -> Identity:
        """Read the identity URL referenced by *token*.

        Raises:
            IdentityFetchError: If the endpoint is unreachable, returns a
                non-2xx status, or the payload lacks ``username`` or
                ``organization_id``.
        """
        debug(f"Fetching identity from {token.id}")
        try:
            response = httpx.get(
                token.id,
                headers={
                    "Authorization": f"{token.token_type} {token.access_token}",
                    "Accept": "application/json",
                },
                timeout=self._timeout,
            )
            response.raise_for_status()
            payload: Any = response.json()
        except httpx.HTTPStatusError as exc:
            raise IdentityFetchError(
                f"Identity request failed with status {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise IdentityFetchError(f"Identity request failed: {exc}") from exc
        except ValueError as exc:
            raise IdentityFetchError("Identity response is not valid JSON") from exc

        try:
            return Identity.model_validate(payload)
        except ValidationError as exc:
            raise IdentityFetchError(
                "Identity response is missing 'username' or 'organization_id'"
            ) from exc

    def _request_token(self, config: OAuthConfig, data: dict[str, str]) -> TokenResponse:
        debug(f"Requesting {data['grant_type']} token from {config.token_url}")
        try:
            response = httpx.post(
                config.token_url,
                data=data,
                headers={"Accept": "application/json"},
                timeout=self._timeout,
            )
            response.raise_for_status()
            payload: Any = response.json()
        except httpx.HTTPStatusError as exc:
            raise AuthCodeExchangeError(
                f"Token exchange failed with status {exc.response.status_code}: "
                f"{_provider_error(exc.response)}"
            ) from exc
        except httpx.HTTPError as exc:
            raise AuthCodeExchangeError(f"Token exchange failed: {exc}") from exc
        except ValueError as exc:
            raise AuthCodeExchangeError("Token response is not valid JSON") from exc

        try:
            return TokenResponse.model_validate(payload)
        except ValidationError as exc:
            raise AuthCodeExchangeError(
                "Token response missing 'access_token', 'instance_url' or 'id'"
            ) from exc
