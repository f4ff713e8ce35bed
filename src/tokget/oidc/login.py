"""Browser-driven login against an OpenID Connect provider."""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urlsplit

from tokget import chrome, errors
from tokget.errors import Kind, TokgetError
from tokget.log import resolve_logger
from tokget.models import LoginConfig, LoginData
from tokget.oidc.callback import build_login_url, check_oidc_error, extract_oidc_tokens

SUBMIT_TIMEOUT = 5.0
"""Seconds the provider has to answer the submitted login form."""

MAX_PAGE_CONTENT = 100_000
"""Characters of an unrecognized page that are put into the error message."""

_REQUIRED_FIELDS = (
    ("endpoint", Kind.ENDPOINT_MISSED, "OpenID Connect endpoint is missed"),
    ("client_id", Kind.CLIENT_ID_MISSED, "client ID is missed"),
    ("redirect_uri", Kind.REDIRECT_URI_MISSED, "client's redirect uri is missed"),
    ("scopes", Kind.SCOPES_MISSED, "OpenID Connect scopes are missed"),
    ("username", Kind.USERNAME_MISSED, "username is missed"),
    ("username_field", Kind.USERNAME_FIELD_MISSED, "username field's selector is missed"),
    ("password_field", Kind.PASSWORD_FIELD_MISSED, "password field's selector is missed"),
    ("submit_button", Kind.SUBMIT_BUTTON_MISSED, "submit button's selector is missed"),
    ("error_message", Kind.ERROR_MESSAGE_MISSED, "error message's selector is missed"),
)


def validate_endpoint(endpoint: str) -> None:
    """Raise :attr:`~tokget.errors.Kind.ENDPOINT_INVALID` unless *endpoint* is an http(s) URL."""
    try:
        parts = urlsplit(endpoint)
        valid = parts.scheme in ("http", "https") and bool(parts.hostname)
    except ValueError:
        valid = False
    if not valid:
        raise TokgetError(Kind.ENDPOINT_INVALID, "OpenID Connect endpoint has an invalid value")


def validate_login_config(config: LoginConfig) -> None:
    """Check the login parameters in declaration order.

    The first missing field wins, so the reported Kind does not depend on
    which other fields are also missing. The password is optional.

    Raises:
        TokgetError: Of the missing field's Kind, or
            :attr:`~tokget.errors.Kind.ENDPOINT_INVALID`.
    """
    for name, kind, message in _REQUIRED_FIELDS:
        if not getattr(config, name):
            raise TokgetError(kind, message)
    validate_endpoint(config.endpoint)


def _truncate(content: str) -> str:
    if len(content) <= MAX_PAGE_CONTENT:
        return content
    return f"{content[:MAX_PAGE_CONTENT]}\n... [truncated {len(content) - MAX_PAGE_CONTENT} characters]"


async def login(
    config: LoginConfig,
    remote_chrome: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
) -> LoginData:
    """Authenticate a user the way a person would, and return their tokens.

    The provider's login page is opened in Chrome, the username and password
    are typed into the form and the submit button is clicked. The provider
    is expected to redirect to the client's redirect URI with an access
    token and an ID token in the URL's fragment. Nothing needs to listen on
    the redirect URI: the tokens are read from the navigation request.

    Args:
        config: Login parameters; see :class:`~tokget.models.LoginConfig`.
        remote_chrome: URL of a remote Chrome to use instead of launching
            a new one (e.g. ``http://localhost:9222``).
        logger: Receives debug output. Defaults to a no-op logger.

    Returns:
        The access token and ID token of the authenticated user.

    Raises:
        TokgetError: On invalid parameters (before any browser is started),
            a provider-reported error (:attr:`~tokget.errors.Kind.OIDC_ERROR`),
            rejected credentials or an unrecognized page
            (:attr:`~tokget.errors.Kind.LOGIN_ERROR`), a provider that does
            not answer the submitted form in time
            (:attr:`~tokget.errors.Kind.TIMEOUT`), or a browser failure.
        asyncio.CancelledError: If the calling task is cancelled. The browser
            is torn down before the cancellation propagates.
    """
    logger = resolve_logger(logger)
    validate_login_config(config)

    try:
        session = await chrome.open_session(
            remote_chrome, chrome.Domain.NETWORK, chrome.Domain.RUNTIME, logger=logger
        )
    except TokgetError as exc:
        raise errors.wrap(exc, "connect to chrome") from exc

    async with session:
        try:
            return await _login(session, config, logger)
        finally:
            logger.debug("Disconnect Chrome")


async def _login(session: chrome.ChromeSession, config: LoginConfig, logger: logging.Logger) -> LoginData:
    try:
        history = await chrome.NavHistory.attach(session)
    except TokgetError as exc:
        raise errors.wrap(exc, "initialize navigation history") from exc

    login_url = build_login_url(config.endpoint, config.client_id, config.redirect_uri, config.scopes)
    logger.debug("Navigate to the login page %r", login_url)
    try:
        await chrome.navigate(session, login_url)
    except TokgetError as exc:
        raise errors.wrap(exc, "navigate to the login page") from exc
    check_oidc_error(history.last())
    try:
        content = await session.outer_html()
    except TokgetError as exc:
        raise errors.wrap(exc, "get the login page's content") from exc
    logger.debug("The login page is loaded:\n\n%s\n", content)

    logger.debug("Fill the login form")
    for name, selector, kind in (
        ("the username field", config.username_field, Kind.USERNAME_FIELD_INVALID),
        ("the password field", config.password_field, Kind.PASSWORD_FIELD_INVALID),
        ("the submit button", config.submit_button, Kind.SUBMIT_BUTTON_INVALID),
    ):
        try:
            found = await chrome.has_element(session, selector)
        except TokgetError as exc:
            raise errors.wrap(exc, "find %s", name) from exc
        if not found:
            raise TokgetError(kind, "the login form does not contains %s", name)

    try:
        await chrome.send_keys(session, config.username_field, config.username)
    except TokgetError as exc:
        raise errors.wrap(exc, "fill the username field") from exc
    if config.password:
        try:
            await chrome.send_keys(session, config.password_field, config.password)
        except TokgetError as exc:
            raise errors.wrap(exc, "fill the password field") from exc

    logger.debug("Submit the login form")
    # Clicking instead of submitting the form emulates the user.
    wait = chrome.page_load_waiter(session, strict=False, timeout=SUBMIT_TIMEOUT)
    try:
        await chrome.click(session, config.submit_button)
    except TokgetError as exc:
        raise errors.wrap(exc, "submit the login form") from exc
    try:
        await wait()
    except TokgetError as exc:
        raise errors.wrap(exc, "wait for submiting the login form") from exc

    logger.debug("Submiting is finished")
    post_login_url = history.last()
    try:
        data = extract_oidc_tokens(post_login_url)
    except TokgetError as exc:
        raise errors.wrap(exc, "extract OpenID Connect tokens") from exc
    if data is not None:
        return data

    logger.debug("Failed to authenticate the user")
    check_oidc_error(post_login_url)
    try:
        message = await chrome.text(session, config.error_message)
    except TokgetError as exc:
        raise errors.wrap(exc, "find submiting error message") from exc
    message = message.strip()
    if message:
        raise TokgetError(Kind.LOGIN_ERROR, message)

    try:
        content = await session.outer_html()
    except TokgetError as exc:
        raise errors.wrap(exc, "read error page content") from exc
    raise TokgetError(Kind.LOGIN_ERROR, 'unexpected error page "%s"\n%s', post_login_url, _truncate(content))
