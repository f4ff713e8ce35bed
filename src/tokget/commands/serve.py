"""Serve command -- run the HTTP API (see :mod:`tokget.web`)."""

from __future__ import annotations

from typing import Optional

import typer

from tokget.errors import TokgetError
from tokget.exit_codes import EXIT_INVALID_USAGE
from tokget.output import error


def serve_command(
    ctx: typer.Context,
    listen: Optional[str] = typer.Option(
        None,
        "--listen",
        "-l",
        help="Host and port to listen on (<host>:<port>). [default: :8080]",
    ),
) -> None:
    """Start a web server that logs users in and out over HTTP.

    Settings are resolved from the command line, then ``TOKGET_LISTEN``,
    ``TOKGET_VERBOSE`` and ``TOKGET_REMOTE_CHROME``, then the ``serve``
    section of the config file.

    Example::

        tokget serve -l :8080
        TOKGET_REMOTE_CHROME=http://chrome:9222 tokget serve
        curl -XPOST localhost:8080/login -d '{"endpoint": "...", "clientId": "...", "username": "..."}'
    """
    import uvicorn

    from tokget import __version__
    from tokget.config import resolve_config, split_scopes
    from tokget.log import new_server_logger
    from tokget.models import LoginConfig, LoginData, LogoutConfig
    from tokget.oidc.login import login
    from tokget.oidc.logout import logout
    from tokget.web import create_app, parse_listen

    obj = ctx.obj if isinstance(ctx.obj, dict) else {}
    try:
        settings = resolve_config(
            cli_remote_chrome=obj.get("remote_chrome"),
            cli_listen=listen,
            cli_verbose=True if obj.get("verbose") else None,
        )
    except TokgetError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    try:
        host, port = parse_listen(settings.serve.listen)
    except ValueError as exc:
        error(str(exc))
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    logger = new_server_logger(settings.serve.verbose, obj.get("no_color", False))
    remote_chrome = settings.remote_chrome

    async def login_fn(config: LoginConfig) -> LoginData:
        return await login(config, remote_chrome, logger)

    async def logout_fn(config: LogoutConfig) -> None:
        await logout(config, remote_chrome, logger)

    defaults = settings.login.model_copy(update={"scopes": split_scopes(settings.login.scopes)})
    app = create_app(defaults, login_fn, logout_fn, logger, __version__)

    logger.info(
        "Tokget started: version=%s listen=%s verbose=%s remote_chrome=%s",
        __version__,
        settings.serve.listen,
        settings.serve.verbose,
        remote_chrome or "-",
    )
    uvicorn.run(app, host=host, port=port, log_level="debug" if settings.serve.verbose else "info")
    logger.info("Tokget finished")
