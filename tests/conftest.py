"""Shared test fixtures for tokget.

Besides config isolation, output management and a CLI runner, this module
provides an in-memory Chrome so the browser layer and the flows run without
Chromium:

* :class:`FakeChrome` replaces Playwright's ``async_playwright`` entry point.
  It records the browser lifecycle (launch, connect, close) and hands out
  :class:`FakeTab` objects.
* :class:`FakeTab` plays both the CDP session and the page of one tab. It
  serves :class:`SitePage` objects from a URL-keyed site, follows
  :class:`Redirect` hops, emits ``Fetch.requestPaused`` for every request
  once interception is enabled and ``Page.loadEventFired`` after each load.
* :class:`FakeProvider` populates the site with an OpenID Connect provider
  whose login form redirects to the client with tokens in the fragment.

The real :func:`tokget.chrome.open_session`, :class:`tokget.chrome.NavHistory`,
page-load waiter and form primitives all run on top of these fakes.
"""

from __future__ import annotations

import asyncio
import json
import re
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional, Union
from urllib.parse import parse_qs, urlencode, urljoin, urlsplit, urlunsplit

import pytest
from playwright.async_api import Error as PlaywrightError

from tokget.models import LoginConfig
from tokget.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Fake site
# ---------------------------------------------------------------------------


@dataclass
class SitePage:
    """A rendered page of the fake site.

    Args:
        elements: CSS selector -> text of every element the page contains.
        submit: Selector of the control that submits the page's form.
        action: Called with the values typed into the form when *submit* is
            clicked; returns the URL to navigate to, or ``None`` when the
            page never answers.
        title: Shown in the page's markup.
    """

    elements: dict[str, str] = field(default_factory=dict)
    submit: Optional[str] = None
    action: Optional[Callable[[dict[str, str]], Optional[str]]] = None
    title: str = ""

    def render(self) -> str:
        body = "".join(
            f'<div data-selector="{sel}">{text}</div>' for sel, text in self.elements.items()
        )
        return f"<html><head><title>{self.title}</title></head><body>{body}</body></html>"


@dataclass
class Redirect:
    location: str


Route = Union[SitePage, Redirect, Callable[[str], Union[SitePage, Redirect]]]

BLANK_PAGE = SitePage(title="about:blank")
ERROR_PAGE = SitePage(title="This site can't be reached")
CHROME_ERROR_URL = "chrome-error://chromewebdata/"


def _route_key(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}{parts.path or '/'}"


def _normalize(url: str) -> str:
    # Chrome requests "http://host" as "http://host/".
    parts = urlsplit(url)
    if parts.scheme in ("http", "https") and not parts.path:
        parts = parts._replace(path="/")
    return urlunsplit(parts)


# ---------------------------------------------------------------------------
# Fake Chrome
# ---------------------------------------------------------------------------

_QUERY_SELECTOR = re.compile(r"^document\.querySelector\((.*)\) != null$")


class FakeTab:
    """The CDP session and the page state of one fake tab."""

    def __init__(self, chrome: FakeChrome) -> None:
        self.chrome = chrome
        self.current = BLANK_PAGE
        self.location = "about:blank"
        self.handlers: dict[str, list[Callable[[Any], None]]] = defaultdict(list)
        self.commands: list[tuple[str, dict[str, Any]]] = []
        self.requests: list[tuple[str, str]] = []
        self.paused: list[str] = []
        self.continued: list[str] = []
        self.typed: dict[str, str] = {}
        self.clicked: list[str] = []
        self.detached = False
        self.unresumed_at_detach: Optional[set[str]] = None
        self._next_request = 0

    # -- CDP session ------------------------------------------------------

    @property
    def methods(self) -> list[str]:
        return [method for method, _ in self.commands]

    async def send(self, method: str, params: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        params = params or {}
        self.commands.append((method, params))
        if method in self.chrome.failing_commands:
            raise PlaywrightError(self.chrome.failing_commands[method])
        if method == "Browser.getVersion":
            return {"protocolVersion": "1.3", "product": self.chrome.product}
        if method == "Fetch.continueRequest":
            await asyncio.sleep(self.chrome.continue_delay)
            self.continued.append(params["requestId"])
            return {}
        if method == "Page.navigate":
            if self._navigate(params["url"]):
                return {"frameId": "F1", "loaderId": "L1"}
            return {"frameId": "F1", "loaderId": "L1", "errorText": "net::ERR_CONNECTION_REFUSED"}
        if method == "Runtime.evaluate":
            return self._evaluate(params["expression"])
        return {}

    def on(self, event: str, handler: Callable[[Any], None]) -> None:
        self.handlers[event].append(handler)

    def remove_listener(self, event: str, handler: Callable[[Any], None]) -> None:
        self.handlers[event].remove(handler)

    async def detach(self) -> None:
        self.detached = True
        self.unresumed_at_detach = set(self.paused) - set(self.continued)
        self.chrome.events.append("detach")

    def emit(self, event: str, payload: Any) -> None:
        for handler in list(self.handlers[event]):
            handler(payload)

    def listeners(self, event: str) -> int:
        return len(self.handlers[event])

    # -- browser behaviour ------------------------------------------------

    def _intercepting(self) -> bool:
        return "Fetch.enable" in self.methods

    def _request(self, url: str, resource_type: str = "Document") -> None:
        self.requests.append((resource_type, url))
        if not self._intercepting():
            return
        self._next_request += 1
        request_id = f"interception-job-{self._next_request}"
        base, sep, fragment = url.partition("#")
        request: dict[str, Any] = {"url": base, "method": "GET", "headers": {}}
        if sep:
            request["urlFragment"] = f"#{fragment}"
        self.paused.append(request_id)
        self.emit(
            "Fetch.requestPaused",
            {"requestId": request_id, "frameId": "F1", "resourceType": resource_type, "request": request},
        )

    def _navigate(self, url: str) -> bool:
        target: Optional[Union[SitePage, Redirect]] = None
        for _ in range(10):
            url = _normalize(url)
            self._request(url)
            route = self.chrome.site.get(_route_key(url))
            target = route(url) if callable(route) else route
            if not isinstance(target, Redirect):
                break
            url = urljoin(url, target.location)

        if target is None:
            self.current = ERROR_PAGE
            self.location = CHROME_ERROR_URL
        else:
            self.current = target
            self.location = url
            self._request(urljoin(url, "/static/style.css"), "Stylesheet")
        self.typed = {}
        asyncio.get_running_loop().call_soon(self.emit, "Page.loadEventFired", {"timestamp": 1.0})
        return target is not None

    def _evaluate(self, expression: str) -> dict[str, Any]:
        match = _QUERY_SELECTOR.match(expression)
        if match is None:
            return {
                "result": {"type": "object", "subtype": "error"},
                "exceptionDetails": {
                    "text": "Uncaught",
                    "exception": {"description": "SyntaxError: unexpected expression"},
                },
            }
        selector = json.loads(match.group(1))
        return {"result": {"type": "boolean", "value": selector in self.current.elements}}


class FakeLocator:
    def __init__(self, tab: FakeTab, selector: str) -> None:
        self._tab = tab
        self._selector = selector

    def _check(self) -> None:
        if self._selector not in self._tab.current.elements:
            raise PlaywrightError(f"Timeout 30000ms exceeded waiting for locator({self._selector!r})")

    async def press_sequentially(self, text: str) -> None:
        self._check()
        self._tab.typed[self._selector] = self._tab.typed.get(self._selector, "") + text

    async def click(self) -> None:
        self._check()
        tab = self._tab
        tab.clicked.append(self._selector)
        page = tab.current
        if self._selector == page.submit and page.action is not None:
            target = page.action(dict(tab.typed))
            if target is not None:
                tab._navigate(urljoin(tab.location, target))

    async def inner_text(self) -> str:
        self._check()
        return self._tab.current.elements[self._selector]


class FakeContext:
    def __init__(self, chrome: FakeChrome) -> None:
        self.chrome = chrome

    async def new_page(self) -> FakePage:
        self.chrome.events.append("new_page")
        tab = FakeTab(self.chrome)
        self.chrome.tabs.append(tab)
        return FakePage(tab, self)

    async def new_cdp_session(self, page: FakePage) -> FakeTab:
        return page.tab

    async def close(self) -> None:
        self.chrome.events.append("context.close")


class FakePage:
    """The Playwright page of a :class:`FakeTab`."""

    def __init__(self, tab: FakeTab, context: FakeContext) -> None:
        self.tab = tab
        self.context = context

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self.tab, selector)

    async def content(self) -> str:
        return self.tab.current.render()


class FakeBrowser:
    def __init__(self, chrome: FakeChrome) -> None:
        self.chrome = chrome

    async def new_context(self) -> FakeContext:
        self.chrome.events.append("new_context")
        return FakeContext(self.chrome)

    async def close(self) -> None:
        self.chrome.events.append("browser.close")
        if self.chrome.close_error:
            raise PlaywrightError(self.chrome.close_error)


class FakeChromium:
    def __init__(self, chrome: FakeChrome) -> None:
        self.chrome = chrome

    async def launch(self, **kwargs: Any) -> FakeBrowser:
        if self.chrome.launch_error:
            raise PlaywrightError(self.chrome.launch_error)
        self.chrome.events.append("launch")
        return FakeBrowser(self.chrome)

    async def connect_over_cdp(self, endpoint_url: str, **kwargs: Any) -> FakeBrowser:
        self.chrome.events.append(f"connect {endpoint_url}")
        return FakeBrowser(self.chrome)


class FakePlaywright:
    def __init__(self, chrome: FakeChrome) -> None:
        self.chromium = FakeChromium(chrome)
        self._chrome = chrome

    async def __aenter__(self) -> FakePlaywright:
        self._chrome.events.append("playwright.start")
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self._chrome.events.append("playwright.stop")


class FakeChrome:
    """Stand-in for Playwright and the Chrome process it drives."""

    def __init__(self) -> None:
        self.site: dict[str, Route] = {}
        self.product = "HeadlessChrome/120.0.6099.28"
        self.events: list[str] = []
        self.tabs: list[FakeTab] = []
        self.failing_commands: dict[str, str] = {}
        self.launch_error: Optional[str] = None
        self.close_error: Optional[str] = None
        self.continue_delay = 0.0

    def async_playwright(self) -> FakePlaywright:
        return FakePlaywright(self)

    @property
    def tab(self) -> FakeTab:
        assert self.tabs, "no tab was opened"
        return self.tabs[-1]

    @property
    def opened(self) -> bool:
        return bool(self.tabs)

    @property
    def closed(self) -> bool:
        return "playwright.stop" in self.events


@pytest.fixture
def fake_chrome(monkeypatch: pytest.MonkeyPatch) -> FakeChrome:
    """Replace Playwright with :class:`FakeChrome` for the duration of a test."""
    chrome = FakeChrome()
    monkeypatch.setattr("tokget.chrome.session.async_playwright", chrome.async_playwright)
    return chrome


@pytest.fixture
def no_chrome(monkeypatch: pytest.MonkeyPatch) -> None:
    """Fail the test if anything tries to open a browser session."""

    async def _forbidden(*args: Any, **kwargs: Any) -> Any:
        raise AssertionError("a browser session must not be opened")

    monkeypatch.setattr("tokget.chrome.open_session", _forbidden)


# ---------------------------------------------------------------------------
# Fake OpenID Connect provider
# ---------------------------------------------------------------------------


class FakeProvider:
    """An OpenID Connect provider with a ``#user``/``#pass``/``#submit`` login form.

    ``/oauth2/auth`` redirects to ``/login``; submitting the right
    credentials redirects back through ``/oauth2/auth`` to the client's
    redirect URI with :attr:`fragment`. Nothing listens on the redirect URI.
    Tests reshape the behaviour through the attributes and helper methods.
    """

    issuer = "https://idp.example.com"
    redirect_uri = "http://localhost:3000"

    def __init__(self, chrome: FakeChrome) -> None:
        self.chrome = chrome
        self.username = "foo"
        self.password = "bar"
        self.fragment = "access_token=access_token_value&id_token=id_token_value"
        self.auth_requests: list[dict[str, list[str]]] = []
        self.logout_requests: list[dict[str, list[str]]] = []
        self.submissions: list[dict[str, str]] = []
        self.submit_result: Optional[Callable[[dict[str, str]], Optional[str]]] = None
        self.auth_error: Optional[dict[str, str]] = None
        self.logout_error: Optional[dict[str, str]] = None

        self.form = SitePage(
            elements={"#user": "", "#pass": "", "#submit": "Sign in"},
            submit="#submit",
            action=self._submit,
            title="Sign in",
        )
        chrome.site[f"{self.issuer}/oauth2/auth"] = self._authorize
        chrome.site[f"{self.issuer}/login"] = self._login_page
        chrome.site[f"{self.issuer}/oauth2/sessions/logout"] = self._logout
        chrome.site[f"{self.issuer}/error"] = SitePage(elements={"h1": "Error"}, title="Error")
        chrome.site[f"{self.issuer}/logged-out"] = SitePage(elements={"h1": "Logged out"})

    # -- scenario helpers --------------------------------------------------

    def error_url(self, error: str, description: str, hint: Optional[str] = None) -> str:
        query = {"error": error, "error_description": description}
        if hint:
            query["error_hint"] = hint
        return f"{self.issuer}/error?{urlencode(query)}"

    def reject_authorization(self, error: str, description: str, hint: Optional[str] = None) -> None:
        self.auth_error = {"error": error, "description": description, "hint": hint or ""}

    def answer_submit_with(self, result: Callable[[dict[str, str]], Optional[str]]) -> None:
        self.submit_result = result

    # -- routes ------------------------------------------------------------

    def _authorize(self, url: str) -> Union[SitePage, Redirect]:
        query = parse_qs(urlsplit(url).query)
        if "login_verifier" in query:
            return Redirect(f"{self.redirect_uri}#{self.fragment}")
        self.auth_requests.append(query)
        if self.auth_error is not None:
            err = self.auth_error
            return Redirect(self.error_url(err["error"], err["description"], err["hint"] or None))
        return Redirect("/login?login_challenge=challenge")

    def _login_page(self, url: str) -> SitePage:
        if "failed=1" in url:
            page = SitePage(
                elements=dict(self.form.elements),
                submit=self.form.submit,
                action=self._submit,
                title="Sign in",
            )
            page.elements["#error"] = "  invalid password\n"
            return page
        return self.form

    def _submit(self, values: dict[str, str]) -> Optional[str]:
        self.submissions.append(values)
        if self.submit_result is not None:
            return self.submit_result(values)
        if values.get("#user") == self.username and values.get("#pass") == self.password:
            return "/oauth2/auth?login_verifier=verifier"
        return "/login?failed=1"

    def _logout(self, url: str) -> Redirect:
        self.logout_requests.append(parse_qs(urlsplit(url).query))
        if self.logout_error is not None:
            err = self.logout_error
            return Redirect(self.error_url(err["error"], err["description"]))
        return Redirect("/logged-out")


@pytest.fixture
def provider(fake_chrome: FakeChrome) -> FakeProvider:
    return FakeProvider(fake_chrome)


@pytest.fixture
def login_config(provider: FakeProvider) -> LoginConfig:
    """A complete login config that succeeds against :class:`FakeProvider`."""
    return LoginConfig(
        endpoint=provider.issuer,
        client_id="test-client",
        redirect_uri=provider.redirect_uri,
        scopes="openid profile email",
        username="foo",
        password="bar",
        username_field="#user",
        password_field="#pass",
        submit_button="#submit",
        error_message="#error",
    )


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path so
    that tests never touch real user config, and clears all TOKGET_*
    environment variables.
    """
    monkeypatch.setattr("tokget.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in ["TOKGET_REMOTE_CHROME", "TOKGET_LISTEN", "TOKGET_VERBOSE"]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def json_output() -> OutputManager:
    """Install a JSON-format OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.JSON)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
