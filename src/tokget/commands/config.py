"""Config commands -- view and modify the global configuration.

Provides the ``tokget config`` sub-command group for reading, updating and
resetting the user's config file (:class:`~tokget.models.GlobalConfig`):
the remote Chrome to use, the defaults of the login parameters, and the
server settings.
"""

from __future__ import annotations

from typing import Any

import typer
from pydantic import ValidationError

from tokget.errors import TokgetError
from tokget.exit_codes import EXIT_INVALID_USAGE
from tokget.output import error, info, print_result, success


config_app = typer.Typer(no_args_is_help=True)


def _load() -> Any:
    from tokget.config import load_global_config

    try:
        return load_global_config()
    except TokgetError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


@config_app.command("show")
def config_show() -> None:
    """Show the current configuration.

    Example::

        tokget config show
        tokget --json config show
    """
    from tokget.config import global_config_path

    config = _load()
    info(f"Config file: {global_config_path()}")
    print_result(config.model_dump(mode="json"))


def _coerce(key: str, current: Any, value: str) -> Any:
    from tokget.config import parse_bool

    if isinstance(current, bool):
        try:
            return parse_bool(value)
        except ValueError:
            error(f"Expected a boolean for {key}, got: {value}")
            raise typer.Exit(code=EXIT_INVALID_USAGE) from None
    return value


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Config key (dot notation, e.g. 'login.scopes')."),
    value: str = typer.Argument(help="Value to set. An empty string clears remote_chrome."),
) -> None:
    """Set a configuration value.

    Uses dot notation for nested keys. Booleans accept ``true/false``,
    ``yes/no``, ``on/off`` and ``1/0``.

    Raises:
        typer.Exit: With code 2 if the key is unknown or the value invalid.

    Example::

        tokget config set remote_chrome http://localhost:9222
        tokget config set login.redirect_uri http://localhost:4200/callback
        tokget config set serve.verbose true
    """
    from tokget.config import save_global_config
    from tokget.models import GlobalConfig

    data = _load().model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=EXIT_INVALID_USAGE)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target or isinstance(target[final_key], dict):
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    target[final_key] = _coerce(key, target[final_key], value)

    try:
        new_config = GlobalConfig.model_validate(data)
    except ValidationError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    save_global_config(new_config)
    success(f"Set {key} = {target[final_key]}")


@config_app.command("reset")
def config_reset(ctx: typer.Context) -> None:
    """Reset the configuration to defaults.

    Asks for confirmation unless ``--force`` is active.

    Example::

        tokget config reset
        tokget --force config reset
    """
    from tokget.config import save_global_config
    from tokget.models import GlobalConfig

    force = ctx.obj.get("force", False) if isinstance(ctx.obj, dict) else False
    if not force:
        if not typer.confirm("Reset all config to defaults?"):
            info("Cancelled.")
            raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")
