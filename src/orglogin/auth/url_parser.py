"""Parse pre-encoded connection URLs into an :class:`~orglogin.models.OAuthConfig`.

Two grammars are accepted::

    force://<refreshToken>@<instanceUrl>
    force://<clientId>:<clientSecret>:<refreshToken>@<instanceUrl>

The client secret may be empty in the four-field form.  The instance part
may carry its own scheme (``force://TOKEN@https://host``); when it does not,
``https://`` is assumed.  No network or disk access happens here except in
:func:`read_connection_url_file`.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from urllib.parse import urlparse

from orglogin.exceptions import MalformedInputError
from orglogin.models import DEFAULT_CLIENT_ID, OAuthConfig

URL_FORMAT_SHORT = "force://<refreshToken>@<instanceUrl>"
URL_FORMAT_FULL = "force://<clientId>:<clientSecret>:<refreshToken>@<instanceUrl>"

_SCHEME = "force://"
_CREDENTIALS_RE = re.compile(
    r"^(?:(?P<client_id>[^:@\s]+):(?P<client_secret>[^:@\s]*):)?(?P<refresh_token>[^:@\s]+)$"
)
_JSON_KEYS = ("sfdxAuthUrl", "connectionUrl")


def _malformed(reason: str) -> MalformedInputError:
    return MalformedInputError(
        f"Invalid connection URL ({reason}). Expected {URL_FORMAT_SHORT} "
        f"or {URL_FORMAT_FULL}."
    )


def _normalize_instance_url(raw: str) -> str:
    url = raw if "://" in raw else f"https://{raw}"
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise _malformed(f"unparseable instance URL '{raw}'")
    return url.rstrip("/")


def parse_connection_url(text: str) -> OAuthConfig:
    """Parse a connection URL string.

    Args:
        text: The connection URL.  Leading and trailing whitespace is ignored.

    Returns:
        An :class:`~orglogin.models.OAuthConfig` whose ``login_url`` is the
        instance URL and whose ``refresh_token`` is set.

    Raises:
        MalformedInputError: On a wrong scheme, a missing ``@``, an empty
            refresh token, or an unparseable instance URL.
    """
    value = text.strip()
    if not value.startswith(_SCHEME):
        raise _malformed("must start with force://")

    body = value[len(_SCHEME):]
    credentials, sep, instance = body.partition("@")
    if not sep:
        raise _malformed("missing '@'")
    if not instance:
        raise _malformed("missing instance URL")

    match = _CREDENTIALS_RE.match(credentials)
    if match is None:
        raise _malformed("empty or invalid refresh token")

    client_id = match.group("client_id") or DEFAULT_CLIENT_ID
    client_secret = match.group("client_secret") or None

    return OAuthConfig(
        login_url=_normalize_instance_url(instance),
        client_id=client_id,
        client_secret=client_secret,
        refresh_token=match.group("refresh_token"),
    )


def read_connection_url_file(path: Path) -> OAuthConfig:
    """Read and parse a connection URL from *path*.

    The file may contain the bare URL, or a JSON document holding it under
    ``sfdxAuthUrl`` / ``connectionUrl`` (optionally nested in ``result``),
    which is what ``org display --verbose --json`` style commands produce.

    Raises:
        MalformedInputError: If the file cannot be read, is empty, or does
            not contain a valid connection URL.
    """
    try:
        content = path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as exc:
        raise MalformedInputError(f"Cannot read connection URL file {path}: {exc}") from exc
    if not content:
        raise MalformedInputError(f"Connection URL file {path} is empty")

    if content.startswith("{"):
        try:
            data = json.loads(content)
        except json.JSONDecodeError as exc:
            raise MalformedInputError(f"Invalid JSON in {path}: {exc}") from exc
        if isinstance(data.get("result"), dict):
            data = data["result"]
        for key in _JSON_KEYS:
            if isinstance(data.get(key), str):
                return parse_connection_url(data[key])
        raise MalformedInputError(
            f"No connection URL found in {path} (expected a '{_JSON_KEYS[0]}' key)"
        )

    return parse_connection_url(content)
