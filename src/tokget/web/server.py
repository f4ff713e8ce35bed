"""HTTP API over the login and logout flows.

Routes::

    POST /login   camelCase LoginConfig  -> 200 {"access_token", "id_token"}
    POST /logout  {"endpoint", "idToken"} -> 200, empty body

Errors are always ``{"message": ...}``: 400 with the error text for invalid
parameters, 400 ``"invalid body"`` for a body that is not a JSON object of
strings, and 500 ``"Internal Server Error"`` for everything else. Details
of a 500 go to the server log only, since they may contain the provider's
page.

Each request runs its flow in its own browser session. When the client
disconnects before the flow ends, the flow is cancelled and its browser is
torn down.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ValidationError
from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from tokget import __version__
from tokget.errors import TokgetError, is_validation_error
from tokget.log import resolve_logger
from tokget.models import LoginConfig, LoginData, LoginDefaults, LogoutConfig
from tokget.web.stat import create_stat_router

LoginFn = Callable[[LoginConfig], Awaitable[LoginData]]
LogoutFn = Callable[[LogoutConfig], Awaitable[None]]

INVALID_BODY = "invalid body"
INTERNAL_ERROR = "Internal Server Error"

_Model = TypeVar("_Model", bound=BaseModel)


class ClientDisconnected(Exception):
    """The client went away before the flow finished."""


class NoSniffMiddleware:
    """Add ``X-Content-Type-Options: nosniff`` to every response.

    A plain ASGI middleware: it must not consume ``receive``, or the routes
    could not notice a client disconnect.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_header(message: Message) -> None:
            if message["type"] == "http.response.start":
                MutableHeaders(scope=message).append("X-Content-Type-Options", "nosniff")
            await send(message)

        await self.app(scope, receive, send_with_header)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})


async def _parse_body(request: Request, model: type[_Model], base: Optional[_Model] = None) -> _Model:
    """Decode the request body over *base*.

    Keys present in the body replace the corresponding values of *base*,
    empty strings included. An empty body gives *base* unchanged.

    Raises:
        ValueError: If the body is not a JSON object matching *model*.
    """
    data: dict[str, Any] = base.model_dump(by_alias=True) if base is not None else {}
    raw = await request.body()
    if raw.strip():
        body = json.loads(raw)
        if not isinstance(body, dict):
            raise ValueError("body is not a JSON object")
        data.update(body)
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise ValueError(str(exc)) from exc


async def _wait_for_disconnect(request: Request) -> None:
    while True:
        message = await request.receive()
        if message["type"] == "http.disconnect":
            return


async def _run_until_disconnect(request: Request, flow: Awaitable[Any]) -> Any:
    """Run *flow*, cancelling it if the client disconnects first.

    Raises:
        ClientDisconnected: If the client disconnected; the flow has been
            cancelled and has finished its teardown.
    """
    task = asyncio.ensure_future(flow)
    watcher = asyncio.ensure_future(_wait_for_disconnect(request))
    try:
        await asyncio.wait({task, watcher}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        watcher.cancel()
    if not task.done():
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        raise ClientDisconnected()
    return task.result()


def create_app(
    defaults: LoginDefaults,
    login_fn: LoginFn,
    logout_fn: LogoutFn,
    logger: Optional[logging.Logger] = None,
    version: str = __version__,
) -> FastAPI:
    """Build the tokget HTTP application.

    Args:
        defaults: Values for login parameters a request leaves out.
        login_fn: Runs the login flow, typically
            :func:`tokget.oidc.login.login` bound to a remote Chrome and a logger.
        logout_fn: Runs the logout flow.
        logger: Receives request failures. Defaults to a no-op logger.
        version: Reported by ``/stat/version``.

    Example::

        app = create_app(
            LoginDefaults(),
            lambda cnf: login(cnf, remote_chrome, logger),
            lambda cnf: logout(cnf, remote_chrome, logger),
            logger,
        )
    """
    log = resolve_logger(logger)
    app = FastAPI(title="tokget", version=version)
    app.add_middleware(NoSniffMiddleware)
    app.include_router(create_stat_router(version))

    base_login = defaults.apply(LoginConfig())

    async def run(
        request: Request, flow: Awaitable[Any], respond: Callable[[Any], Response]
    ) -> Response:
        try:
            result = await _run_until_disconnect(request, flow)
        except ClientDisconnected:
            log.info("%s %s cancelled: client disconnected", request.method, request.url.path)
            # Nobody reads this response.
            return Response(status_code=499)
        except TokgetError as exc:
            if is_validation_error(exc):
                log.debug("A payload is invalid: %s", exc)
                return _error(400, str(exc))
            log.error("%s %s failed: %s", request.method, request.url.path, exc)
            return _error(500, INTERNAL_ERROR)
        except Exception:
            log.exception("%s %s crashed", request.method, request.url.path)
            return _error(500, INTERNAL_ERROR)
        return respond(result)

    @app.post("/login", response_model=None)
    async def login(request: Request) -> Response:
        try:
            config = await _parse_body(request, LoginConfig, base_login)
        except ValueError as exc:
            log.debug("A payload is invalid: %s", exc)
            return _error(400, INVALID_BODY)
        return await run(
            request, login_fn(config), lambda data: JSONResponse(content=data.model_dump())
        )

    @app.post("/logout", response_model=None)
    async def logout(request: Request) -> Response:
        try:
            config = await _parse_body(request, LogoutConfig)
        except ValueError as exc:
            log.debug("A payload is invalid: %s", exc)
            return _error(400, INVALID_BODY)
        return await run(request, logout_fn(config), lambda _: Response(status_code=200))

    return app


def parse_listen(listen: str) -> tuple[str, int]:
    """Split a ``<host>:<port>`` listen address; an empty host means all interfaces.

    Example::

        >>> parse_listen(":8080")
        ('0.0.0.0', 8080)

    Raises:
        ValueError: If the port is missing or not a number.
    """
    host, sep, port = listen.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"invalid listen address {listen!r}, expected <host>:<port>")
    host = host.strip("[]") or "0.0.0.0"
    return host, int(port)
