"""Browser layer: session management, navigation history and page primitives.

* :func:`open_session` / :class:`ChromeSession` -- connect to a local or
  remote Chrome and enable CDP domains.
* :class:`NavHistory` -- record every document navigation the page
  attempts, including redirect hops and unreachable targets.
* :func:`page_load_waiter` -- one-shot wait for the page's load event.
* :func:`has_element`, :func:`text`, :func:`navigate`, :func:`send_keys`,
  :func:`click` -- form primitives.
"""

from tokget.chrome.form import click, has_element, navigate, send_keys, text
from tokget.chrome.history import NavHistory
from tokget.chrome.session import (
    ChromeSession,
    Domain,
    fetch_debugger_url,
    major_version,
    open_session,
)
from tokget.chrome.waiter import page_load_waiter

__all__ = [
    "ChromeSession",
    "Domain",
    "NavHistory",
    "click",
    "fetch_debugger_url",
    "has_element",
    "major_version",
    "navigate",
    "open_session",
    "page_load_waiter",
    "send_keys",
    "text",
]
