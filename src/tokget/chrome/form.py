"""Page interaction primitives used by the login and logout flows.

Selectors are CSS selectors and are expected to match exactly one element.
"""

from __future__ import annotations

import json

from tokget.chrome.session import ChromeSession
from tokget.chrome.waiter import page_load_waiter


async def has_element(session: ChromeSession, selector: str) -> bool:
    """Return True when the current page contains an element matching *selector*.

    Unlike Playwright's locators this never waits for the element to appear.
    """
    expression = f"document.querySelector({json.dumps(selector)}) != null"
    return bool(await session.evaluate(expression))


async def text(session: ChromeSession, selector: str) -> str:
    """Return the text of the element matching *selector*.

    Returns ``""`` when the page has no such element instead of blocking
    until one appears. An element that exists but is empty also gives
    ``""``; use :func:`has_element` to tell the two apart.
    """
    if not await has_element(session, selector):
        return ""
    return await session.inner_text(selector)


async def navigate(session: ChromeSession, url: str) -> None:
    """Navigate the page to *url* and wait until it has loaded.

    A navigation that fails at the network level is not an error: the
    browser shows its error page, which loads like any other. The request
    itself is still visible in :class:`~tokget.chrome.history.NavHistory`.
    """
    wait = page_load_waiter(session, strict=False, timeout=0)
    result = await session.send("Page.navigate", {"url": url})
    if result.get("errorText"):
        session.logger.debug("Navigation to %s failed: %s", url, result["errorText"])
    await wait()


async def send_keys(session: ChromeSession, selector: str, value: str) -> None:
    await session.send_keys(selector, value)


async def click(session: ChromeSession, selector: str) -> None:
    await session.click(selector)
