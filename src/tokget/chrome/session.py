"""Connection to a Chrome process over the Chrome DevTools Protocol.

:func:`open_session` either launches a new headless Chromium or attaches to
a remote Chrome, opens a fresh page, checks that the browser is recent
enough, and enables the CDP domains the caller asked for. The returned
:class:`ChromeSession` owns everything that was opened; closing it tears the
connection down and, for a locally launched browser, terminates the browser
process.

Playwright drives the browser. The flows still need a few things Playwright
does not expose (request interception that sees redirect hops, the raw
``Page.loadEventFired`` event, navigation that does not fail on network
errors), so each session also carries a CDP session attached to its page.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from contextlib import AsyncExitStack
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import urlsplit

import httpx
from playwright.async_api import CDPSession, Page, async_playwright
from playwright.async_api import Error as PlaywrightError

from tokget import errors
from tokget.errors import Kind, TokgetError
from tokget.log import resolve_logger
from tokget.urls import resolve_reference

MIN_CHROME_VERSION = 70
"""The flows depend on the event order of Chrome 70 or higher."""

CONFIG_TIMEOUT = 3.0
"""Seconds allowed for loading a remote Chrome's ``/json`` target list."""


class Domain(str, enum.Enum):
    """A Chrome DevTools Protocol domain that can be enabled on a session."""

    PAGE = "page"
    NETWORK = "network"
    RUNTIME = "runtime"


_ENABLE_COMMANDS = {
    Domain.PAGE: "Page.enable",
    Domain.NETWORK: "Network.enable",
    Domain.RUNTIME: "Runtime.enable",
}


class ChromeSession:
    """A live connection to one page of a Chrome process.

    Use it as an async context manager, or call :meth:`close` exactly once
    when done. Closing runs the teardown callbacks in reverse order of
    registration; calling it again is a no-op.

    Every automation failure surfaces as a :class:`~tokget.errors.TokgetError`
    of kind :attr:`~tokget.errors.Kind.OTHER` whose cause is the Playwright
    error.

    Args:
        page: The Playwright page the session controls.
        cdp: A CDP session attached to *page*.
        stack: Teardown callbacks, owned by the session from now on.
        logger: Receives the session's debug output.
    """

    def __init__(
        self,
        page: Page,
        cdp: CDPSession,
        stack: AsyncExitStack,
        logger: logging.Logger,
    ) -> None:
        self.page = page
        self.cdp = cdp
        self.logger = logger
        self._stack = stack
        self._closed = False

    async def __aenter__(self) -> ChromeSession:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Disconnect from the browser, terminating it if it was launched locally."""
        if self._closed:
            return
        self._closed = True
        await self._stack.aclose()

    def push_closer(self, callback: Callable[[], Awaitable[Any]]) -> None:
        """Register *callback* to run first when the session closes."""
        self._stack.push_async_callback(callback)

    # ------------------------------------------------------------------ #
    # Raw protocol access
    # ------------------------------------------------------------------ #

    async def send(self, method: str, params: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """Send a CDP command on the page's session and return its result."""
        try:
            return await self.cdp.send(method, params)
        except PlaywrightError as exc:
            raise errors.wrap(exc, "send %s", method) from exc

    def on(self, event: str, handler: Callable[[Any], None]) -> None:
        """Subscribe *handler* to a CDP event such as ``Page.loadEventFired``."""
        self.cdp.on(event, handler)

    def remove_listener(self, event: str, handler: Callable[[Any], None]) -> None:
        self.cdp.remove_listener(event, handler)

    async def evaluate(self, expression: str) -> Any:
        """Evaluate a JavaScript expression in the page and return its value."""
        result = await self.send(
            "Runtime.evaluate", {"expression": expression, "returnByValue": True}
        )
        details = result.get("exceptionDetails")
        if details:
            description = (details.get("exception") or {}).get("description")
            raise TokgetError("evaluate %s: %s", expression, description or details.get("text", ""))
        return (result.get("result") or {}).get("value")

    # ------------------------------------------------------------------ #
    # Page interaction
    # ------------------------------------------------------------------ #

    async def send_keys(self, selector: str, text: str) -> None:
        """Type *text* into the element matching *selector*, key by key."""
        try:
            await self.page.locator(selector).press_sequentially(text)
        except PlaywrightError as exc:
            raise errors.wrap(exc, "send keys to %s", selector) from exc

    async def click(self, selector: str) -> None:
        try:
            await self.page.locator(selector).click()
        except PlaywrightError as exc:
            raise errors.wrap(exc, "click %s", selector) from exc

    async def inner_text(self, selector: str) -> str:
        try:
            return await self.page.locator(selector).inner_text()
        except PlaywrightError as exc:
            raise errors.wrap(exc, "read text of %s", selector) from exc

    async def outer_html(self) -> str:
        """Return the markup of the whole current page."""
        try:
            return await self.page.content()
        except PlaywrightError as exc:
            raise errors.wrap(exc, "read page content") from exc

    # ------------------------------------------------------------------ #
    # Connection preparation
    # ------------------------------------------------------------------ #

    async def _prepare(self, domains: tuple[Domain, ...]) -> None:
        """Check the browser version and enable the requested domains."""
        try:
            version = await self.send("Browser.getVersion")
        except TokgetError as exc:
            raise errors.wrap(exc, "get Chrome version") from exc
        product = version.get("product", "")
        self.logger.debug(
            "Chrome info: protocolVersion=%s product=%s",
            version.get("protocolVersion", ""),
            product,
        )
        try:
            major = major_version(product)
        except ValueError:
            raise TokgetError('invalid Chrome version "%s"', product) from None
        if major < MIN_CHROME_VERSION:
            raise TokgetError('unsupported Chrome version "%s"', product)

        for domain in dict.fromkeys((Domain.PAGE, *domains)):
            try:
                await self.send(_ENABLE_COMMANDS[domain])
            except TokgetError as exc:
                raise errors.wrap(exc, "activate CDP domains") from exc


def major_version(product: str) -> int:
    """Extract the major version from a Chrome product name.

    Example::

        >>> major_version("HeadlessChrome/70.0.3538.16")
        70

    Raises:
        ValueError: If *product* has no ``name/version`` form or the major
            version is not a number.
    """
    name, sep, version = product.rpartition("/")
    if not sep or not name or not version:
        raise ValueError(f"invalid product {product!r}")
    return int(version.split(".")[0])


def _http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=CONFIG_TIMEOUT)


async def fetch_debugger_url(remote_url: str, logger: Optional[logging.Logger] = None) -> str:
    """Return the websocket debugger URL of a remote Chrome's first target.

    Chrome serves its debugging targets as a JSON array on
    ``<remote_url>/json``; each entry has a ``webSocketDebuggerUrl``.
    The whole request is bounded by :data:`CONFIG_TIMEOUT`.

    Raises:
        TokgetError: If the URL is invalid, the request fails or times out
            (:attr:`~tokget.errors.Kind.TIMEOUT`), or the target list is
            empty or malformed.
    """
    logger = resolve_logger(logger)
    parts = urlsplit(remote_url)
    if not parts.scheme or not parts.netloc:
        raise TokgetError('invalid chrome url "%s"', remote_url)
    config_url = resolve_reference(remote_url, "/json")

    async def load() -> httpx.Response:
        async with _http_client() as client:
            return await client.get(config_url)

    try:
        response = await asyncio.wait_for(load(), CONFIG_TIMEOUT)
    except asyncio.TimeoutError:
        raise TokgetError(Kind.TIMEOUT, "load chrome config: no answer in %gs", CONFIG_TIMEOUT) from None
    except httpx.HTTPError as exc:
        raise errors.wrap(exc, "load chrome config") from exc
    if response.status_code != httpx.codes.OK:
        raise TokgetError("load chrome config: status code %d", response.status_code)

    body = response.text
    if not body.strip():
        raise TokgetError("unexpected empty chrome config")
    try:
        targets = response.json()
    except ValueError as exc:
        raise errors.wrap(exc, "parse chrome config") from exc
    if not isinstance(targets, list) or not targets:
        raise TokgetError("unexpected chrome config:\n%s", body)
    first = targets[0]
    debugger_url = first.get("webSocketDebuggerUrl") if isinstance(first, dict) else None
    if not isinstance(debugger_url, str) or not debugger_url:
        raise TokgetError("unexpected chrome config:\n%s", body)

    logger.debug("Remote Chrome config:\n%s", body)
    return debugger_url


async def _quietly(logger: logging.Logger, what: str, close: Callable[[], Awaitable[Any]]) -> None:
    # A crashed or already disconnected browser must not mask the flow's result.
    try:
        await close()
    except PlaywrightError as exc:
        logger.debug("%s: %s", what, exc)


async def _open_page(stack: AsyncExitStack, remote_url: Optional[str], logger: logging.Logger) -> Page:
    playwright = await stack.enter_async_context(async_playwright())
    if not remote_url:
        logger.debug("Start a new chrome process")
        try:
            browser = await playwright.chromium.launch()
        except PlaywrightError as exc:
            raise errors.wrap(exc, "start chrome process") from exc
    else:
        logger.debug("Connect to a chrome process at %r", remote_url)
        try:
            debugger_url = await fetch_debugger_url(remote_url, logger)
        except TokgetError as exc:
            raise errors.wrap(exc, "connect to remote Chrome process") from exc
        logger.debug("First debugging target %r", debugger_url)
        # Target sockets only speak to one page; Playwright needs the browser endpoint.
        try:
            browser = await playwright.chromium.connect_over_cdp(resolve_reference(remote_url, "/"))
        except PlaywrightError as exc:
            raise errors.wrap(exc, "connect to remote Chrome process") from exc
    # Closing a launched browser terminates it; closing a remote one only disconnects.
    stack.push_async_callback(_quietly, logger, "close browser", browser.close)

    try:
        context = await browser.new_context()
        stack.push_async_callback(_quietly, logger, "close browser context", context.close)
        return await context.new_page()
    except PlaywrightError as exc:
        raise errors.wrap(exc, "open a new page") from exc


async def open_session(
    remote_url: Optional[str] = None,
    *domains: Domain,
    logger: Optional[logging.Logger] = None,
) -> ChromeSession:
    """Connect to Chrome and return a session with *domains* enabled.

    If *remote_url* is empty a new Chromium process is launched; otherwise
    the Chrome listening at *remote_url* (e.g. ``http://localhost:9222``)
    is attached to. The page domain is always enabled.

    Whatever was opened before a failure is torn down before the error
    propagates, including on cancellation.

    Raises:
        TokgetError: If the browser cannot be reached, is older than
            Chrome 70, or refuses to enable a domain.
    """
    logger = resolve_logger(logger)
    stack = AsyncExitStack()
    try:
        page = await _open_page(stack, remote_url, logger)
        try:
            cdp = await page.context.new_cdp_session(page)
        except PlaywrightError as exc:
            raise errors.wrap(exc, "attach to the page") from exc
        stack.push_async_callback(_quietly, logger, "detach from the page", cdp.detach)

        session = ChromeSession(page, cdp, stack, logger)
        await session._prepare(domains)
    except BaseException:
        await stack.aclose()
        raise
    return session
