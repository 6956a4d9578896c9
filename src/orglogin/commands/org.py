"""Org commands -- read back stored credentials.

Provides the ``orglogin org`` sub-command group.  Other tools read the
same records through :class:`~orglogin.auth.credential_store.CredentialStore`;
these commands are the human-facing view of it.

Typical workflow::

    orglogin org list
    orglogin org display myorg
    orglogin --json org display myorg --show-secrets
"""

from __future__ import annotations

from typing import Any, Optional

import typer

from orglogin.exceptions import OrgLoginError
from orglogin.models import CredentialRecord
from orglogin.output import error, format_response, info, print_table, suggest

org_app = typer.Typer(no_args_is_help=True)

SECRET_FIELDS = ("access_token", "refresh_token", "client_secret")


def mask(value: str) -> str:
    """Shorten a secret to a recognisable, non-usable prefix."""
    return value[:8] + "..." if len(value) > 8 else "***"


def display_fields(record: CredentialRecord, show_secrets: bool = False) -> dict[str, Any]:
    """Render *record* as a JSON-ready dict, masking secrets unless asked not to."""
    data = record.model_dump(mode="json")
    if not show_secrets:
        for key in SECRET_FIELDS:
            if data.get(key):
                data[key] = mask(data[key])
    return data


@org_app.command("list")
def org_list() -> None:
    """List every org with stored credentials.

    Shows alias, username, org id, instance URL and which org is the
    default (``(U)``) or default dev hub (``(D)``).

    Example::

        orglogin org list
    """
    from orglogin.auth.credential_store import CredentialStore

    try:
        records = CredentialStore().list_records()
    except OrgLoginError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    if not records:
        info("No authorized orgs found.")
        suggest("Log in: orglogin login web")
        return

    rows: list[list[str]] = []
    for record in records:
        marker = ""
        if record.is_default_username:
            marker += "(U)"
        if record.is_default_dev_hub_username:
            marker += "(D)"
        rows.append([
            marker,
            record.alias or "",
            record.username,
            record.org_id,
            record.instance_url,
            "yes" if record.is_scratch_org else "",
        ])
    print_table(
        ["", "Alias", "Username", "Org Id", "Instance URL", "Scratch"],
        rows,
        title="Authorized Orgs",
    )


@org_app.command("display")
def org_display(
    target: Optional[str] = typer.Argument(
        None, help="Username or alias. Defaults to the default org."
    ),
    show_secrets: bool = typer.Option(
        False, "--show-secrets", help="Print tokens and client secret unmasked."
    ),
) -> None:
    """Display the stored credential record for an org.

    Args:
        target: Username or alias; the configured default org when omitted.
        show_secrets: Print tokens in full.

    Raises:
        typer.Exit: With code 4 if the org is unknown, code 2 if no target
            was given and no default org is set.

    Example::

        orglogin org display myorg
    """
    from orglogin.auth.credential_store import CredentialStore
    from orglogin.config import load_global_config

    store = CredentialStore()
    try:
        name = target or load_global_config().target_org
        if not name:
            error("No org specified and no default org is set.")
            suggest("Set one: orglogin login web --set-default")
            raise typer.Exit(code=2)
        record = store.get_fields(store.resolve_username(name))
    except OrgLoginError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    format_response(display_fields(record, show_secrets=show_secrets))
