"""Alias commands -- short names for authorized orgs.

Provides the ``orglogin alias`` sub-command group.  An alias points at
exactly one username; setting an existing alias moves it.
"""

from __future__ import annotations

import typer

from orglogin.exceptions import OrgLoginError
from orglogin.output import error, format_response, info, print_table, success, warning

alias_app = typer.Typer(no_args_is_help=True)


@alias_app.command("set")
def alias_set(
    alias: str = typer.Argument(help="Alias name."),
    username: str = typer.Argument(help="Username (or existing alias) to point at."),
) -> None:
    """Point an alias at an authorized org.

    Example::

        orglogin alias set myorg admin@example.com
    """
    from orglogin.auth.credential_store import CredentialStore

    store = CredentialStore()
    try:
        target = store.resolve_username(username)
        if not store.exists(target):
            warning(f"No stored credentials for {target}; setting alias anyway.")
        store.set_alias(target, alias)
    except OrgLoginError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    success(f"Set alias {alias} -> {target}")


@alias_app.command("unset")
def alias_unset(alias: str = typer.Argument(help="Alias to remove.")) -> None:
    """Remove an alias.

    Raises:
        typer.Exit: With code 4 if the alias does not exist.
    """
    from orglogin.auth.credential_store import CredentialStore

    try:
        username = CredentialStore().unset_alias(alias)
    except OrgLoginError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    if username is None:
        error(f"Alias not found: {alias}")
        raise typer.Exit(code=4)
    success(f"Removed alias {alias} (was {username})")


@alias_app.command("list")
def alias_list() -> None:
    """List all aliases."""
    from orglogin.auth.credential_store import CredentialStore
    from orglogin.output import OutputFormat, get_output

    try:
        table = CredentialStore().load_aliases()
    except OrgLoginError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    if get_output().format == OutputFormat.JSON:
        format_response(table.orgs)
        return
    if not table.orgs:
        info("No aliases set.")
        return
    print_table(
        ["Alias", "Username"],
        [[alias, username] for alias, username in sorted(table.orgs.items())],
        title="Aliases",
    )
