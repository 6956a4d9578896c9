"""orglogin -- authorize Salesforce orgs from the command line.

Two ways in:

* **Browser login** -- a one-shot loopback listener receives the OAuth2
  authorization-code redirect; the code is exchanged for tokens and the
  user's identity.
* **Connection URL import** -- a ``force://`` URL carrying a refresh token
  is exchanged for a fresh access token, for headless machines.

Either way the result is a credential record stored per username, with
optional alias and default-org pointers that other tools can read.

Typical workflow::

    orglogin login web --alias myorg --set-default
    orglogin org display myorg

Modules:
    app: Typer application and CLI entry point.
    auth: Login flows, callback server, token client, credential store.
    models: Pydantic models shared across the entire package.
    config: XDG-aware directories, global config, environment flags.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
