"""Browser-driven logout from an OpenID Connect provider."""

from __future__ import annotations

import logging
from typing import Optional

from tokget import chrome, errors
from tokget.errors import Kind, TokgetError
from tokget.log import resolve_logger
from tokget.models import LogoutConfig
from tokget.oidc.callback import build_logout_url, check_oidc_error
from tokget.oidc.login import validate_endpoint


def validate_logout_config(config: LogoutConfig) -> None:
    if not config.endpoint:
        raise TokgetError(Kind.ENDPOINT_MISSED, "OpenID Connect endpoint is missed")
    validate_endpoint(config.endpoint)
    if not config.id_token:
        raise TokgetError(Kind.ID_TOKEN_MISSED, "ID token is missed")


async def logout(
    config: LogoutConfig,
    remote_chrome: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    """Log a user out and revoke their ID token.

    The provider's end-session page is opened with the ID token as a hint.
    Any redirect that does not carry an OpenID Connect error counts as a
    successful logout.

    Raises:
        TokgetError: On invalid parameters (before any browser is started),
            a provider-reported error, or a browser failure.
        asyncio.CancelledError: If the calling task is cancelled.
    """
    logger = resolve_logger(logger)
    validate_logout_config(config)

    try:
        session = await chrome.open_session(remote_chrome, chrome.Domain.NETWORK, logger=logger)
    except TokgetError as exc:
        raise errors.wrap(exc, "connect to chrome") from exc

    async with session:
        try:
            history = await chrome.NavHistory.attach(session)
        except TokgetError as exc:
            raise errors.wrap(exc, "initialize navigation history") from exc

        logout_url = build_logout_url(config.endpoint, config.id_token)
        logger.debug("Navigate to the logout page %r", logout_url)
        try:
            await chrome.navigate(session, logout_url)
        except TokgetError as exc:
            raise errors.wrap(exc, "navigate to the logout page") from exc
        check_oidc_error(history.last())
        logger.debug("Logged out")
