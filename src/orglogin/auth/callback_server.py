"""Loopback HTTP listener that receives the OAuth2 authorization-code redirect.

:class:`LoopbackCallbackServer` owns one authorization attempt: it binds a
:class:`~http.server.ThreadingHTTPServer` to ``127.0.0.1`` only, generates the CSRF
``state`` token, builds the authorization URL, and waits for the browser to
be redirected back with either a ``code`` or an ``error``.

The server is a scoped resource.  Use it as a context manager so the socket
is released on every exit path::

    with LoopbackCallbackServer(config, url_sink=print_url) as server:
        server.start()
        code = server.await_callback()
        bound_config = server.config  # carries the redirect_uri

The listener runs on a daemon thread; :meth:`~LoopbackCallbackServer.await_callback`
blocks the caller on a :class:`threading.Event` with a bounded timeout, so
nothing busy-waits and the serving thread never blocks the rest of the
process.  Exactly one request completes the wait; the listener is shut down
and its port released before ``await_callback`` returns or raises.

How the authorization URL reaches the user is pluggable: pass any
``Callable[[str], None]`` as ``url_sink``.  :func:`write_url_file`,
:func:`open_in_browser`, and :func:`print_url` cover the common cases and
:func:`chain_sinks` combines them.
"""

from __future__ import annotations

import html
import secrets
import threading
import webbrowser
from collections.abc import Callable
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any, Optional
from urllib.parse import parse_qs, urlencode, urlparse

from orglogin.config import atomic_write, get_data_dir
from orglogin.exceptions import (
    AuthError,
    AuthorizationDeniedError,
    AuthorizationTimeoutError,
    StateMismatchError,
)
from orglogin.models import AuthorizationState, OAuthConfig
from orglogin.output import debug, info

DEFAULT_PORT = 1717
DEFAULT_REDIRECT_PATH = "/OauthRedirect"
DEFAULT_TIMEOUT = 300.0
AUTH_URL_FILENAME = "authUrl.txt"

UrlSink = Callable[[str], None]


# ---------------------------------------------------------------------------
# URL delivery
# ---------------------------------------------------------------------------


def default_url_file() -> Path:
    """Scratch file the authorization URL is written to by default."""
    return get_data_dir() / AUTH_URL_FILENAME


def write_url_file(path: Optional[Path] = None) -> UrlSink:
    """Return a sink that writes the URL to *path* (``0o600``, atomically)."""

    def sink(url: str) -> None:
        target = path or default_url_file()
        atomic_write(target, url + "\n", mode=0o600)
        debug(f"Authorization URL written to {target}")

    return sink


def open_in_browser(browser: Optional[str] = None) -> UrlSink:
    """Return a sink that opens the URL with :mod:`webbrowser`.

    Args:
        browser: Optional browser name understood by :func:`webbrowser.get`
            (e.g. ``"firefox"``).  ``None`` uses the system default.

    Raises:
        AuthError: If the named browser is not available.
    """

    def sink(url: str) -> None:
        try:
            controller = webbrowser.get(browser) if browser else webbrowser.get()
        except webbrowser.Error as exc:
            raise AuthError(f"Cannot open browser {browser or '(default)'}: {exc}") from exc
        debug(f"Opening browser {browser or '(default)'}")
        controller.open(url)

    return sink


def print_url(url: str) -> None:
    """Sink that shows the URL on stderr."""
    info(f"Open this URL in your browser to log in:\n{url}")


def chain_sinks(*sinks: UrlSink) -> UrlSink:
    """Combine several sinks; they run in the given order."""

    def sink(url: str) -> None:
        for s in sinks:
            s(url)

    return sink


# ---------------------------------------------------------------------------
# HTTP plumbing
# ---------------------------------------------------------------------------


def _page(title: str, detail: str = "") -> bytes:
    body = f"<h2>{html.escape(title)}</h2>"
    if detail:
        body += f"<p>{html.escape(detail)}</p>"
    return f"<html><body>{body}</body></html>".encode("utf-8")


class _CallbackHTTPServer(ThreadingHTTPServer):
    """Threading HTTP server that knows which :class:`LoopbackCallbackServer` it serves.

    Each connection gets its own daemon thread, so an idle connection (a
    browser preconnect, a stray local client) never stalls the accept loop
    or :meth:`shutdown`.
    """

    daemon_threads = True
    owner: LoopbackCallbackServer


class _CallbackHandler(BaseHTTPRequestHandler):
    server: _CallbackHTTPServer
    # Seconds a connection may sit idle before its read gives up.
    timeout = 5

    def do_GET(self) -> None:
        status, body = self.server.owner._handle_request(self.path)
        self.send_response(status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)
        self.server.owner._notify()

    def log_message(self, format: str, *args: Any) -> None:
        debug(f"callback server: {format % args}")


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


class LoopbackCallbackServer:
    """One-shot loopback listener for the authorization-code redirect.

    Args:
        config: OAuth client settings.  Its ``redirect_uri`` is ignored and
            replaced by the loopback URI once the port is known.
        port: Local port to bind.  ``0`` picks an ephemeral port.
        redirect_path: Path the provider redirects to.
        timeout: Seconds :meth:`await_callback` waits before giving up.
        url_sink: Called with the authorization URL once the listener is up.
    """

    def __init__(
        self,
        config: OAuthConfig,
        port: int = DEFAULT_PORT,
        redirect_path: str = DEFAULT_REDIRECT_PATH,
        timeout: float = DEFAULT_TIMEOUT,
        url_sink: Optional[UrlSink] = None,
    ) -> None:
        self._base_config = config
        self._requested_port = port
        self._redirect_path = redirect_path if redirect_path.startswith("/") else f"/{redirect_path}"
        self._timeout = timeout
        self._url_sink = url_sink

        self._httpd: Optional[_CallbackHTTPServer] = None
        self._bound_port: Optional[int] = None
        self._bound_config: Optional[OAuthConfig] = None
        self._thread: Optional[threading.Thread] = None
        self._auth_state: Optional[AuthorizationState] = None
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._code: Optional[str] = None
        self._error: Optional[AuthError] = None

    # -- context manager ---------------------------------------------------

    def __enter__(self) -> LoopbackCallbackServer:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    # -- properties ---------------------------------------------------------

    @property
    def port(self) -> int:
        """The bound port (only meaningful after :meth:`start`)."""
        if self._bound_port is not None:
            return self._bound_port
        return self._requested_port

    @property
    def redirect_uri(self) -> str:
        return f"http://localhost:{self.port}{self._redirect_path}"

    @property
    def config(self) -> OAuthConfig:
        """The OAuth config bound to this listener's redirect URI."""
        if self._bound_config is not None:
            return self._bound_config
        return self._base_config.with_redirect_uri(self.redirect_uri)

    @property
    def state(self) -> Optional[str]:
        """The CSRF state of the active attempt, or ``None`` once stopped."""
        return self._auth_state.state if self._auth_state else None

    @property
    def is_running(self) -> bool:
        return self._httpd is not None

    # -- lifecycle ----------------------------------------------------------

    def start(self) -> str:
        """Bind the listener, deliver the authorization URL, and return it.

        Raises:
            OSError: If the port cannot be bound (e.g. already in use).
            RuntimeError: If the server was already started.
        """
        if self._httpd is not None or self._done.is_set():
            raise RuntimeError("callback server can only be started once")

        httpd = _CallbackHTTPServer(("127.0.0.1", self._requested_port), _CallbackHandler)
        httpd.owner = self
        self._httpd = httpd
        self._bound_port = httpd.server_address[1]
        self._bound_config = self._base_config.with_redirect_uri(self.redirect_uri)
        try:
            self._auth_state = AuthorizationState(
                state=secrets.token_urlsafe(32),
                config=self._bound_config,
            )
            self._thread = threading.Thread(
                target=httpd.serve_forever,
                kwargs={"poll_interval": 0.1},
                name="oauth-callback",
                daemon=True,
            )
            self._thread.start()
            debug(f"Callback server listening on 127.0.0.1:{self.port}")

            url = self.authorization_url()
            if self._url_sink is not None:
                self._url_sink(url)
            return url
        except BaseException:
            self.stop()
            raise

    def authorization_url(self) -> str:
        """Build the provider authorization URL for the active attempt."""
        if self._auth_state is None:
            raise RuntimeError("callback server is not started")
        config = self._auth_state.config
        params = {
            "response_type": "code",
            "client_id": config.client_id,
            "redirect_uri": config.redirect_uri,
            "state": self._auth_state.state,
        }
        if config.scopes:
            params["scope"] = " ".join(config.scopes)
        return f"{config.authorize_url}?{urlencode(params)}"

    def await_callback(self) -> str:
        """Wait for the redirect and return the authorization code.

        The listener is stopped before this method returns or raises.

        Raises:
            AuthorizationDeniedError: The redirect carried an ``error``.
            StateMismatchError: The redirect ``state`` was not ours.
            AuthorizationTimeoutError: Nothing arrived within the timeout.
        """
        if self._httpd is None and not self._done.is_set():
            raise RuntimeError("callback server is not started")
        try:
            completed = self._done.wait(self._timeout)
        finally:
            self.stop()

        if not completed:
            raise AuthorizationTimeoutError(
                f"Timed out after {self._timeout:g}s waiting for the browser login to complete."
            )
        if self._error is not None:
            raise self._error
        assert self._code is not None
        return self._code

    def stop(self) -> None:
        """Shut the listener down and release the port.  Idempotent."""
        httpd, self._httpd = self._httpd, None
        if httpd is not None:
            httpd.shutdown()
            httpd.server_close()
            debug("Callback server stopped")
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
        self._auth_state = None

    # -- request handling (runs on the serving thread) ------------------------

    def _handle_request(self, raw_path: str) -> tuple[int, bytes]:
        parsed = urlparse(raw_path)
        if parsed.path != self._redirect_path:
            return 404, _page("Not found")

        params = parse_qs(parsed.query)
        with self._lock:
            if self._code is not None or self._error is not None:
                return 409, _page("This login attempt has already completed.")

            expected = self._auth_state.state if self._auth_state else ""
            received = params.get("state", [""])[0]

            if "error" in params:
                err = params["error"][0]
                desc = params.get("error_description", [""])[0]
                message = f"Authorization denied: {err}"
                if desc:
                    message += f" - {desc}"
                self._error = AuthorizationDeniedError(message)
                return 200, _page("Authorization failed", message)

            # A bare hit on the redirect path (no code, no state) is ignored.
            if "code" not in params and "state" not in params:
                return 400, _page("Missing authorization code")

            if not secrets.compare_digest(received.encode(), expected.encode()):
                self._error = StateMismatchError(
                    "The state parameter of the login redirect did not match. "
                    "Try logging in again."
                )
                return 400, _page("Authorization failed", "State mismatch.")

            if not params.get("code", [""])[0]:
                return 400, _page("Missing authorization code")

            self._code = params["code"][0]
            return 200, _page(
                "Authorization successful!",
                "You can close this window and return to the terminal.",
            )

    def _notify(self) -> None:
        if self._code is not None or self._error is not None:
            self._done.set()
