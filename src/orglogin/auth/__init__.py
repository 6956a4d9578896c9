"""OAuth2 login flows and credential persistence for orglogin.

The package is layered leaves-first:

- :mod:`~orglogin.auth.url_parser` -- parses ``force://`` connection URLs.
- :mod:`~orglogin.auth.callback_server` -- the loopback listener that
  receives the authorization-code redirect.
- :mod:`~orglogin.auth.token_client` -- token and identity endpoint calls.
- :mod:`~orglogin.auth.credential_store` -- per-username records, aliases
  and default-org pointers on disk.
- :mod:`~orglogin.auth.login` -- :class:`LoginOrchestrator`, which ties the
  pieces together.

Typical usage::

    from orglogin.auth import LoginOptions, LoginOrchestrator

    record = LoginOrchestrator().login_web(LoginOptions(alias="myorg"))
"""

from orglogin.auth.callback_server import LoopbackCallbackServer
from orglogin.auth.credential_store import CredentialStore
from orglogin.auth.login import LoginOptions, LoginOrchestrator
from orglogin.auth.token_client import TokenExchangeClient
from orglogin.auth.url_parser import parse_connection_url, read_connection_url_file

__all__ = [
    "CredentialStore",
    "LoginOptions",
    "LoginOrchestrator",
    "LoopbackCallbackServer",
    "TokenExchangeClient",
    "parse_connection_url",
    "read_connection_url_file",
]
