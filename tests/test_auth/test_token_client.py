"""Tests for the token and identity endpoint client."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import httpx
import pytest

from orglogin.auth.token_client import TokenExchangeClient
from orglogin.exceptions import AuthCodeExchangeError, IdentityFetchError
from orglogin.models import OAuthConfig

IDENTITY_URL = "https://login.salesforce.com/id/00D000000000001AAA/005000000000001AAA"


def _make_token_response(**overrides: object) -> dict[str, object]:
    data: dict[str, object] = {
        "access_token": "00D!new-access",
        "refresh_token": "5Aep-new-refresh",
        "instance_url": "https://acme.my.salesforce.com",
        "id": IDENTITY_URL,
        "token_type": "Bearer",
        "issued_at": "1700000000000",
        "signature": "ignored",
    }
    data.update(overrides)
    return data


def _mock_response(
    json_response: object = None,
    status_code: int = 200,
    text: str | None = None,
) -> MagicMock:
    """Create a mock httpx response; non-2xx statuses raise on raise_for_status."""
    mock_response = MagicMock(spec=httpx.Response)
    mock_response.status_code = status_code
    if isinstance(json_response, Exception):
        mock_response.json.side_effect = json_response
    else:
        mock_response.json.return_value = json_response
    mock_response.text = text if text is not None else str(json_response)

    if status_code >= 400:
        mock_response.raise_for_status.side_effect = httpx.HTTPStatusError(
            message=f"HTTP {status_code}",
            request=MagicMock(),
            response=mock_response,
        )
    else:
        mock_response.raise_for_status.return_value = None
    return mock_response


def _identity(**overrides: object) -> dict[str, object]:
    data: dict[str, object] = {
        "username": "admin@acme.com",
        "organization_id": "00D000000000001AAA",
        "user_id": "005000000000001AAA",
        "display_name": "Admin",
    }
    data.update(overrides)
    return data


@pytest.fixture()
def client() -> TokenExchangeClient:
    return TokenExchangeClient(timeout=10.0)


class TestExchangeCode:
    def test_posts_authorization_code_grant(self, client: TokenExchangeClient) -> None:
        config = OAuthConfig(redirect_uri="http://localhost:1717/OauthRedirect")
        with patch(
            "orglogin.auth.token_client.httpx.post",
            return_value=_mock_response(_make_token_response()),
        ) as mock_post, patch(
            "orglogin.auth.token_client.httpx.get",
            return_value=_mock_response(_identity()),
        ) as mock_get:
            token, identity = client.exchange_code(config, "the-code")

        args, kwargs = mock_post.call_args
        assert args[0] == "https://login.salesforce.com/services/oauth2/token"
        assert kwargs["data"] == {
            "grant_type": "authorization_code",
            "code": "the-code",
            "client_id": "PlatformCLI",
            "redirect_uri": "http://localhost:1717/OauthRedirect",
        }
        assert kwargs["timeout"] == 10.0

        get_args, get_kwargs = mock_get.call_args
        assert get_args[0] == IDENTITY_URL
        assert get_kwargs["headers"]["Authorization"] == "Bearer 00D!new-access"

        assert token.access_token == "00D!new-access"
        assert token.instance_url == "https://acme.my.salesforce.com"
        assert identity.username == "admin@acme.com"
        assert identity.organization_id == "00D000000000001AAA"

    def test_client_secret_sent_when_set(self, client: TokenExchangeClient) -> None:
        config = OAuthConfig(client_id="3MVG9", client_secret="s3cret", redirect_uri="http://x/cb")
        with patch(
            "orglogin.auth.token_client.httpx.post",
            return_value=_mock_response(_make_token_response()),
        ) as mock_post, patch(
            "orglogin.auth.token_client.httpx.get",
            return_value=_mock_response(_identity()),
        ):
            client.exchange_code(config, "c")
        data = mock_post.call_args.kwargs["data"]
        assert data["client_id"] == "3MVG9"
        assert data["client_secret"] == "s3cret"

    def test_rejected_code_carries_provider_error(self, client: TokenExchangeClient) -> None:
        body = {"error": "invalid_grant", "error_description": "authentication failure"}
        with patch(
            "orglogin.auth.token_client.httpx.post",
            return_value=_mock_response(body, status_code=400),
        ), patch("orglogin.auth.token_client.httpx.get") as mock_get:
            with pytest.raises(AuthCodeExchangeError) as exc_info:
                client.exchange_code(OAuthConfig(), "bad")
        assert "status 400" in str(exc_info.value)
        assert "invalid_grant: authentication failure" in str(exc_info.value)
        assert exc_info.value.exit_code == 3
        mock_get.assert_not_called()

    def test_non_json_error_body(self, client: TokenExchangeClient) -> None:
        response = _mock_response(ValueError("no json"), status_code=502, text="Bad Gateway")
        with patch("orglogin.auth.token_client.httpx.post", return_value=response):
            with pytest.raises(AuthCodeExchangeError, match="Bad Gateway"):
                client.exchange_code(OAuthConfig(), "c")

    def test_transport_error(self, client: TokenExchangeClient) -> None:
        with patch(
            "orglogin.auth.token_client.httpx.post",
            side_effect=httpx.ConnectError("connection refused"),
        ):
            with pytest.raises(AuthCodeExchangeError, match="connection refused"):
                client.exchange_code(OAuthConfig(), "c")

    def test_incomplete_token_response(self, client: TokenExchangeClient) -> None:
        with patch(
            "orglogin.auth.token_client.httpx.post",
            return_value=_mock_response({"access_token": "only"}),
        ):
            with pytest.raises(AuthCodeExchangeError, match="missing"):
                client.exchange_code(OAuthConfig(), "c")


class TestExchangeRefreshToken:
    def test_posts_refresh_grant_and_keeps_token(self, client: TokenExchangeClient) -> None:
        config = OAuthConfig(
            login_url="https://acme.my.salesforce.com",
            refresh_token="5Aep-original",
        )
        token_body = _make_token_response()
        del token_body["refresh_token"]
        with patch(
            "orglogin.auth.token_client.httpx.post",
            return_value=_mock_response(token_body),
        ) as mock_post, patch(
            "orglogin.auth.token_client.httpx.get",
            return_value=_mock_response(_identity()),
        ):
            token, identity = client.exchange_refresh_token(config)

        assert mock_post.call_args.args[0] == "https://acme.my.salesforce.com/services/oauth2/token"
        assert mock_post.call_args.kwargs["data"] == {
            "grant_type": "refresh_token",
            "refresh_token": "5Aep-original",
            "client_id": "PlatformCLI",
        }
        assert token.refresh_token == "5Aep-original"
        assert identity.username == "admin@acme.com"

    def test_rotated_refresh_token_wins(self, client: TokenExchangeClient) -> None:
        config = OAuthConfig(refresh_token="old")
        with patch(
            "orglogin.auth.token_client.httpx.post",
            return_value=_mock_response(_make_token_response(refresh_token="rotated")),
        ), patch(
            "orglogin.auth.token_client.httpx.get",
            return_value=_mock_response(_identity()),
        ):
            token, _ = client.exchange_refresh_token(config)
        assert token.refresh_token == "rotated"

    def test_missing_refresh_token(self, client: TokenExchangeClient) -> None:
        with patch("orglogin.auth.token_client.httpx.post") as mock_post:
            with pytest.raises(AuthCodeExchangeError, match="No refresh token"):
                client.exchange_refresh_token(OAuthConfig())
        mock_post.assert_not_called()


class TestFetchIdentity:
    def _token(self):
        from orglogin.models import TokenResponse

        return TokenResponse.model_validate(_make_token_response())

    def test_identity_http_error(self, client: TokenExchangeClient) -> None:
        with patch(
            "orglogin.auth.token_client.httpx.get",
            return_value=_mock_response({"error": "Bad_OAuth_Token"}, status_code=403),
        ):
            with pytest.raises(IdentityFetchError, match="status 403") as exc_info:
                client.fetch_identity(self._token())
        assert exc_info.value.exit_code == 6

    def test_identity_missing_fields(self, client: TokenExchangeClient) -> None:
        with patch(
            "orglogin.auth.token_client.httpx.get",
            return_value=_mock_response({"display_name": "x"}),
        ):
            with pytest.raises(IdentityFetchError, match="username"):
                client.fetch_identity(self._token())

    def test_identity_unreachable(self, client: TokenExchangeClient) -> None:
        with patch(
            "orglogin.auth.token_client.httpx.get",
            side_effect=httpx.ReadTimeout("timed out"),
        ):
            with pytest.raises(IdentityFetchError, match="timed out"):
                client.fetch_identity(self._token())
