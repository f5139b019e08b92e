"""Config commands -- view and modify local settings.

Provides the ``idplogin config`` sub-command group for reading and
updating the settings file (:class:`~idplogin.models.Settings`) and for
locating the OAuth client configuration.
"""

from __future__ import annotations

import typer
from pydantic import ValidationError

from idplogin.exceptions import LoginError
from idplogin.output import error, format_response, info, print_data, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show() -> None:
    """Show current settings.

    Example::

        idplogin config show
        idplogin config show --json
    """
    from idplogin.config import load_settings, settings_path

    try:
        settings = load_settings()
    except LoginError as exc:
        error(exc.message)
        raise typer.Exit(code=exc.exit_code) from None
    info(f"Settings file: {settings_path()}")
    format_response(settings.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Settings key, e.g. 'port' or 'default_scopes'."),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a settings value.

    The value is validated against :class:`~idplogin.models.Settings`
    (so ``port`` must be an integer in range) before saving.

    Raises:
        typer.Exit: With code 2 if the key is unknown or validation fails.

    Example::

        idplogin config set port 5556
        idplogin config set default_scopes "offline_access email profile"
    """
    from idplogin.config import load_settings, save_settings
    from idplogin.models import Settings

    try:
        settings = load_settings()
    except LoginError as exc:
        error(exc.message)
        raise typer.Exit(code=exc.exit_code) from None

    data = settings.model_dump(mode="json")
    if key not in data:
        error(f"Unknown settings key: {key}")
        raise typer.Exit(code=2)
    data[key] = value

    try:
        new_settings = Settings.model_validate(data)
    except ValidationError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_settings(new_settings)
    success(f"Set {key} = {getattr(new_settings, key)}")


@config_app.command("path")
def config_path(ctx: typer.Context) -> None:
    """Print where settings and the client config are read from.

    The client config path is the first candidate found by
    :func:`~idplogin.config.find_client_config`; ``-`` when none exists.

    Example::

        idplogin config path
    """
    from idplogin.config import find_client_config, settings_path

    cli_path = ctx.obj.get("client_config") if ctx.obj else None
    try:
        client_path = str(find_client_config(cli_path))
    except LoginError:
        client_path = "-"

    format_response({"settings": str(settings_path()), "client_config": client_path})
    if client_path == "-":
        info("No oauth-config.json found; pass --client-config or set IDPLOGIN_CLIENT_CONFIG.")
