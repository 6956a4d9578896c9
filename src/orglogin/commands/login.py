"""Login commands -- authorize an org and store its credentials.

Provides the ``orglogin login`` sub-command group:

* ``login web`` opens the provider's authorization page and receives the
  redirect on a loopback listener (``http://localhost:1717/OauthRedirect``
  by default).
* ``login url`` imports a ``force://`` connection URL from a file, so
  headless machines (CI, containers) can authorize without a browser.

Typical workflow::

    orglogin login web --alias myhub --set-default-dev-hub
    orglogin login url --file ./authurl.txt --alias ci --set-default
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional

import typer

from orglogin.exceptions import OrgLoginError
from orglogin.models import CredentialRecord
from orglogin.output import error, format_response, info, success

login_app = typer.Typer(no_args_is_help=True)


class Browser(str, Enum):
    """Browsers ``--browser`` can open, mapped to :mod:`webbrowser` names."""

    CHROME = "chrome"
    EDGE = "edge"
    FIREFOX = "firefox"

    @property
    def webbrowser_name(self) -> str:
        return {"chrome": "chrome", "edge": "microsoft-edge", "firefox": "firefox"}[self.value]


def _report(record: CredentialRecord) -> None:
    from orglogin.commands.org import display_fields

    success(f"Successfully authorized {record.username} with org ID {record.org_id}")
    format_response(display_fields(record))


@login_app.command("web")
def login_web(
    instance_url: Optional[str] = typer.Option(
        None,
        "--instance-url",
        "-r",
        help="Login URL of the org (default https://login.salesforce.com).",
    ),
    client_id: Optional[str] = typer.Option(
        None, "--client-id", "-i", help="OAuth client id (connected app consumer key)."
    ),
    alias: Optional[str] = typer.Option(
        None, "--alias", "-a", help="Alias to assign to the authorized org."
    ),
    set_default: bool = typer.Option(
        False, "--set-default", "-s", help="Make this the default org."
    ),
    set_default_dev_hub: bool = typer.Option(
        False, "--set-default-dev-hub", "-d", "-v", help="Make this the default dev hub."
    ),
    no_prompt: bool = typer.Option(
        False, "--no-prompt", "-p", help="Skip the confirmation prompt."
    ),
    browser: Optional[Browser] = typer.Option(
        None, "--browser", "-b", help="Open the login page in this browser."
    ),
    port: int = typer.Option(
        1717, "--port", help="Local port for the OAuth redirect listener."
    ),
    timeout: float = typer.Option(
        300.0, "--timeout", help="Seconds to wait for the browser login."
    ),
) -> None:
    """Log in to an org through the browser.

    Starts a listener on ``127.0.0.1``, writes the authorization URL to
    ``authUrl.txt`` in the data directory and prints it, then waits for
    the provider to redirect back with an authorization code.  When
    ``--client-id`` is given you are asked for the client secret (leave
    it empty for a public client).

    Raises:
        typer.Exit: With code 8 in container mode, 2 for an unusable
            ``--instance-url``, 3 if authorization fails or times out,
            6 if the identity lookup fails.

    Example::

        orglogin login web --alias myorg --set-default
        orglogin login web --instance-url https://mydomain.my.salesforce.com --browser firefox
    """
    from orglogin.auth.callback_server import (
        LoopbackCallbackServer,
        chain_sinks,
        open_in_browser,
        print_url,
        write_url_file,
    )
    from orglogin.auth.login import LoginOptions, LoginOrchestrator

    sinks = [write_url_file(), print_url]
    if browser is not None:
        sinks.append(open_in_browser(browser.webbrowser_name))

    def _server_factory(config, url_sink):
        return LoopbackCallbackServer(config, port=port, timeout=timeout, url_sink=url_sink)

    orchestrator = LoginOrchestrator(
        server_factory=_server_factory,
        confirm=lambda message: typer.confirm(message, default=True),
        secret_prompt=lambda message: typer.prompt(
            message, hide_input=True, default="", show_default=False
        ),
        url_sink=chain_sinks(*sinks),
    )
    options = LoginOptions(
        instance_url=instance_url,
        client_id=client_id,
        alias=alias,
        set_default=set_default,
        set_default_dev_hub=set_default_dev_hub,
        no_prompt=no_prompt,
    )

    try:
        record = orchestrator.login_web(options)
    except OrgLoginError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    except OSError as exc:
        error(f"Cannot start the login listener on port {port}: {exc}")
        raise typer.Exit(code=1) from None

    if record is None:
        info("Login cancelled.")
        format_response({})
        return
    _report(record)


@login_app.command("url")
def login_url(
    file: Path = typer.Option(
        ...,
        "--file",
        "-f",
        help="File containing a force:// connection URL.",
        exists=True,
        dir_okay=False,
        readable=True,
    ),
    alias: Optional[str] = typer.Option(
        None, "--alias", "-a", help="Alias to assign to the authorized org."
    ),
    set_default: bool = typer.Option(
        False, "--set-default", "-s", help="Make this the default org."
    ),
    set_default_dev_hub: bool = typer.Option(
        False, "--set-default-dev-hub", "-d", "-v", help="Make this the default dev hub."
    ),
) -> None:
    """Authorize an org from a stored connection URL.

    The file holds either the bare URL or JSON with an ``sfdxAuthUrl``
    key.  Accepted forms::

        force://<refreshToken>@<instanceUrl>
        force://<clientId>:<clientSecret>:<refreshToken>@<instanceUrl>

    Raises:
        typer.Exit: With code 2 for a malformed URL, 3 if the refresh
            token is rejected, 6 if the identity lookup fails.

    Example::

        orglogin login url --file authurl.txt --alias ci --set-default
    """
    from orglogin.auth.login import LoginOptions, LoginOrchestrator

    options = LoginOptions(
        alias=alias,
        set_default=set_default,
        set_default_dev_hub=set_default_dev_hub,
        no_prompt=True,
    )
    try:
        record = LoginOrchestrator().login_url_import(file, options)
    except OrgLoginError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    _report(record)
