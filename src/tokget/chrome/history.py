"""Record of the document navigations a page attempts.

The browser's own history is not good enough for the flows: a navigation
that fails at the network level (for example to a redirect URI nothing
listens on) is not stored there, and the page ends up on an internal error
page. :class:`NavHistory` intercepts document requests instead, so the URL
that was actually requested -- tokens in its fragment included -- is always
available.
"""

from __future__ import annotations

import asyncio
from typing import Any

from tokget import errors
from tokget.chrome.session import ChromeSession
from tokget.errors import TokgetError
from tokget.urls import with_fragment

_DOCUMENT_PATTERN = {"urlPattern": "*", "resourceType": "Document", "requestStage": "Request"}


class NavHistory:
    """Ordered list of navigation request URLs seen by one session.

    Create it with :meth:`attach`. Entries are only ever appended, and the
    history lives exactly as long as its session.

    :meth:`last` can differ from the page's current location:

    ====================  ===========================  ============================
    example               last navigation request      current location
    ====================  ===========================  ============================
    without redirect      http://ac.me                 http://ac.me
    with redirect         http://ac.me/foo             http://ac.me/bar
    unavailable resource  http://ac.me/unavailable     chrome-error://chromewebdata
    ====================  ===========================  ============================
    """

    def __init__(self, session: ChromeSession) -> None:
        self._session = session
        self._entries: list[str] = []
        self._pending: set[asyncio.Task[None]] = set()

    @classmethod
    async def attach(cls, session: ChromeSession) -> NavHistory:
        """Start intercepting the document requests of *session*.

        The session must have the network domain enabled. Outstanding
        intercepted requests are resumed before the session disconnects.
        """
        history = cls(session)
        try:
            await session.send("Fetch.enable", {"patterns": [_DOCUMENT_PATTERN]})
        except TokgetError as exc:
            raise errors.wrap(exc, "intercept navigation requests") from exc
        session.on("Fetch.requestPaused", history._on_request_paused)
        session.push_closer(history.drain)
        return history

    @property
    def entries(self) -> list[str]:
        return list(self._entries)

    def last(self) -> str:
        """Return the most recent navigation request URL, or ``""`` if none."""
        if not self._entries:
            return ""
        return self._entries[-1]

    async def drain(self) -> None:
        """Wait until every intercepted request has been resumed."""
        while self._pending:
            await asyncio.gather(*self._pending)

    def _on_request_paused(self, event: Any) -> None:
        event = event or {}
        request = event.get("request") or {}
        if event.get("resourceType") == "Document":
            url = with_fragment(request.get("url", ""), request.get("urlFragment", ""))
            self._entries.append(url)
            self._session.logger.debug("request %s %s", request.get("method", "GET"), url)

        # The browser stalls until the request is continued; never block the event loop on it.
        task = asyncio.get_running_loop().create_task(self._continue(event.get("requestId", "")))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _continue(self, request_id: str) -> None:
        try:
            await self._session.send("Fetch.continueRequest", {"requestId": request_id})
        except TokgetError as exc:
            self._session.logger.warning("continue request %s: %s", request_id, exc)
