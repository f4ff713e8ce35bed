"""Login and logout commands.

Implements ``tokget login`` and ``tokget logout``. Both run one flow from
:mod:`tokget.oidc` in a fresh browser session and translate its outcome
into output and an exit code:

* success -- ``login`` prints the tokens to stdout, ``logout`` prints nothing;
* :class:`~tokget.errors.TokgetError` -- the message on stderr and the
  error's exit code;
* Ctrl-C -- the flow is cancelled, the browser torn down, ``Cancelled.``
  on stderr and exit code 130. No error is reported.
"""

from __future__ import annotations

import asyncio
import sys
from typing import Any, Awaitable, Optional, TypeVar

import typer

from tokget.errors import ConfigError, TokgetError
from tokget.exit_codes import EXIT_CANCELLED
from tokget.output import error, print_result

T = TypeVar("T")


def run_flow(flow: Awaitable[T]) -> T:
    """Run *flow* to completion and exit the command on failure.

    Raises:
        typer.Exit: With the error's exit code, or 130 when interrupted.
    """

    async def main() -> T:
        return await flow

    try:
        return asyncio.run(main())
    except TokgetError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    except KeyboardInterrupt:
        # asyncio.run has already cancelled the flow and waited for its teardown.
        sys.stderr.write("\nCancelled.\n")
        raise typer.Exit(code=EXIT_CANCELLED) from None


def _obj(ctx: typer.Context) -> dict[str, Any]:
    return ctx.obj if isinstance(ctx.obj, dict) else {}


def _resolve_password(password: Optional[str], source: Optional[str], no_input: bool) -> str:
    from tokget.config import resolve_credential

    if password is not None and source is not None:
        raise ConfigError("--password and --password-source are mutually exclusive")
    if source is None:
        return password or ""
    if source == "prompt" and no_input:
        raise ConfigError("Cannot prompt for the password: --no-input is set")
    return resolve_credential(source)


def login_command(
    ctx: typer.Context,
    endpoint: str = typer.Option("", "--endpoint", "-e", help="OpenID Connect endpoint."),
    client_id: str = typer.Option("", "--client-id", "-c", help="OpenID Connect client ID."),
    redirect_uri: Optional[str] = typer.Option(
        None, "--redirect-uri", "-r", help="Client's redirect URI. [default: from config]"
    ),
    scopes: Optional[str] = typer.Option(
        None,
        "--scopes",
        "-s",
        help="OpenID Connect scopes, comma- or space-separated. [default: from config]",
    ),
    username: str = typer.Option("", "--username", "-u", help="User's name."),
    password: Optional[str] = typer.Option(
        None, "--password", "-p", help="User's password (prefer --password-source)."
    ),
    password_source: Optional[str] = typer.Option(
        None,
        "--password-source",
        help="Read the password from 'env:VAR', 'file:/path' or 'prompt'.",
    ),
    username_field: Optional[str] = typer.Option(
        None, "--username-field", help="CSS selector of the username field on the login form."
    ),
    password_field: Optional[str] = typer.Option(
        None, "--password-field", help="CSS selector of the password field on the login form."
    ),
    submit_button: Optional[str] = typer.Option(
        None, "--submit-button", help="CSS selector of the submit button on the login form."
    ),
    error_message: Optional[str] = typer.Option(
        None, "--error-message", help="CSS selector of an error message on the login form."
    ),
) -> None:
    """Log a user in and print their access token and ID token.

    Opens the provider's login page in Chrome, fills in the form and submits
    it the way a user would. Options that are left out take their values
    from the ``login`` section of the config file.

    Example::

        tokget login -e https://idp.example.com -c my-client -u alice --password-source env:PASS
        tokget --remote-chrome http://localhost:9222 login -e ... -c ... -u alice -p secret
    """
    from tokget.config import resolve_config, split_scopes
    from tokget.log import new_console_logger
    from tokget.models import LoginConfig
    from tokget.oidc.login import login

    obj = _obj(ctx)
    try:
        settings = resolve_config(cli_remote_chrome=obj.get("remote_chrome"))
        secret = _resolve_password(password, password_source, obj.get("no_input", False))
    except TokgetError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    explicit = LoginConfig(
        endpoint=endpoint,
        client_id=client_id,
        redirect_uri=redirect_uri or "",
        scopes=split_scopes(scopes) if scopes is not None else "",
        username=username,
        password=secret,
        username_field=username_field or "",
        password_field=password_field or "",
        submit_button=submit_button or "",
        error_message=error_message or "",
    )
    defaults = settings.login.model_copy(update={"scopes": split_scopes(settings.login.scopes)})
    config = defaults.apply(explicit)

    logger = new_console_logger(obj.get("verbose", False), obj.get("no_color", False))
    data = run_flow(login(config, settings.remote_chrome, logger))
    print_result(data.model_dump())


def logout_command(
    ctx: typer.Context,
    endpoint: str = typer.Option("", "--endpoint", "-e", help="OpenID Connect endpoint."),
    id_token: str = typer.Option("", "--id-token", "-t", help="ID token to revoke."),
) -> None:
    """Log a user out and revoke their ID token.

    Example::

        tokget logout -e https://idp.example.com -t "$(tokget login ... | jq -r .id_token)"
    """
    from tokget.config import resolve_config
    from tokget.log import new_console_logger
    from tokget.models import LogoutConfig
    from tokget.oidc.logout import logout

    obj = _obj(ctx)
    try:
        settings = resolve_config(cli_remote_chrome=obj.get("remote_chrome"))
    except TokgetError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    logger = new_console_logger(obj.get("verbose", False), obj.get("no_color", False))
    run_flow(logout(LogoutConfig(endpoint=endpoint, id_token=id_token), settings.remote_chrome, logger))
