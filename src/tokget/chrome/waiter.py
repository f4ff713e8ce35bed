"""One-shot wait for the current page to finish loading."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from tokget.chrome.session import ChromeSession
from tokget.errors import Kind, TokgetError

PageLoadWait = Callable[[], Awaitable[None]]


def page_load_waiter(session: ChromeSession, strict: bool = False, timeout: float = 0) -> PageLoadWait:
    """Return a coroutine function that waits for the page to finish loading.

    The listener is installed immediately, so create the waiter *before*
    triggering the navigation and await it afterwards; a load that happens
    in between is not missed.

    Awaiting the returned function ends in exactly one of these ways:

    * ``Page.loadEventFired`` is received -- returns ``None``;
    * *timeout* seconds elapse (only when *timeout* > 0) -- raises
      :class:`~tokget.errors.TokgetError` of kind
      :attr:`~tokget.errors.Kind.TIMEOUT`;
    * the awaiting task is cancelled -- raises
      :class:`asyncio.CancelledError`.

    In strict mode a document that fails to load at the network level ends
    the wait with a :attr:`~tokget.errors.Kind.OTHER` error; otherwise such
    failures are ignored and the browser's error page counts as loaded.

    Only the first event is acted on: the handlers check a latch on every
    delivery and unsubscribe themselves after it is set.
    """
    loop = asyncio.get_running_loop()
    done: asyncio.Future[None] = loop.create_future()
    fired = False

    def stop(error: TokgetError | None) -> None:
        nonlocal fired
        fired = True
        session.remove_listener("Page.loadEventFired", on_load)
        if strict:
            session.remove_listener("Network.loadingFailed", on_loading_failed)
        if done.done():
            return
        if error is None:
            done.set_result(None)
        else:
            done.set_exception(error)

    def on_load(_event: Any) -> None:
        if fired:
            return
        stop(None)

    def on_loading_failed(event: Any) -> None:
        event = event or {}
        if fired or event.get("type") != "Document" or event.get("canceled"):
            return
        stop(TokgetError("load page: %s", event.get("errorText", "")))

    session.on("Page.loadEventFired", on_load)
    if strict:
        session.on("Network.loadingFailed", on_loading_failed)

    async def wait() -> None:
        try:
            if timeout > 0:
                await asyncio.wait_for(done, timeout)
            else:
                await done
        except asyncio.TimeoutError:
            raise TokgetError(Kind.TIMEOUT, "timeout") from None
        finally:
            if not fired:
                stop(None)

    return wait
