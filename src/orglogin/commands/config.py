"""Config commands -- view and modify global configuration.

Provides the ``orglogin config`` sub-command group for reading and
updating the global configuration file
(:class:`~orglogin.models.GlobalConfig`).  The same file holds the
default-org pointers written by ``login --set-default``, so
``config set target_org <alias>`` is another way to pick the default org.
"""

from __future__ import annotations

import typer

from orglogin.exceptions import OrgLoginError
from orglogin.output import error, format_response, info, success

config_app = typer.Typer(no_args_is_help=True)

_ORG_POINTERS = ("target_org", "target_dev_hub")


def _load():
    from orglogin.config import load_global_config

    try:
        return load_global_config()
    except OrgLoginError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


def _navigate(data: dict, key: str) -> tuple[dict, str]:
    """Walk a dot-separated *key* and return (parent dict, final key)."""
    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[k]
    if keys[-1] not in target:
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)
    return target, keys[-1]


def _save(data: dict, message: str) -> None:
    from orglogin.config import save_global_config
    from orglogin.models import GlobalConfig

    try:
        new_config = GlobalConfig.model_validate(data)
    except ValueError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None
    save_global_config(new_config)
    success(message)


@config_app.command("show")
def config_show() -> None:
    """Show current configuration.

    Example::

        orglogin config show
        orglogin --json config show
    """
    from orglogin.config import get_config_dir

    config = _load()
    info(f"Config directory: {get_config_dir()}")
    format_response(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'output.format')."
    ),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    ``target_org`` and ``target_dev_hub`` accept an alias, which is
    stored as the username it points to.

    Raises:
        typer.Exit: With code 2 if the key is unknown or the value fails
            validation.

    Example::

        orglogin config set org_instance_url https://mydomain.my.salesforce.com
        orglogin config set target_org myorg
        orglogin config set output.format json
    """
    config = _load()
    data = config.model_dump(mode="json")
    target, final_key = _navigate(data, key)

    coerced = value
    if key in _ORG_POINTERS:
        from orglogin.auth.credential_store import CredentialStore

        try:
            coerced = CredentialStore().resolve_username(value)
        except OrgLoginError as exc:
            error(str(exc))
            raise typer.Exit(code=exc.exit_code) from None

    target[final_key] = coerced
    _save(data, f"Set {key} = {coerced}")


@config_app.command("unset")
def config_unset(
    key: str = typer.Argument(help="Config key to reset to its default."),
) -> None:
    """Reset one configuration value to its default.

    Example::

        orglogin config unset target_org
    """
    from orglogin.models import GlobalConfig

    config = _load()
    data = config.model_dump(mode="json")
    target, final_key = _navigate(data, key)

    defaults, _ = _navigate(GlobalConfig().model_dump(mode="json"), key)
    target[final_key] = defaults[final_key]
    _save(data, f"Unset {key}")
