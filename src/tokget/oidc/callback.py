"""Authorization URLs and interpretation of the provider's redirects."""

from __future__ import annotations

from typing import Optional
from urllib.parse import parse_qs, urlencode, urlsplit

from tokget import errors
from tokget.errors import Kind, TokgetError
from tokget.models import LoginData
from tokget.urls import resolve_reference

AUTH_PATH = "/oauth2/auth"
LOGOUT_PATH = "/oauth2/sessions/logout"

# The flows never verify the tokens, so state and nonce only need to be present.
STATE = "12345678"
NONCE = "87654321"


def build_login_url(endpoint: str, client_id: str, redirect_uri: str, scopes: str) -> str:
    """Return the implicit-flow authorization URL for *endpoint*."""
    query = {
        "client_id": client_id,
        "response_type": "id_token token",
        "scope": scopes,
        "redirect_uri": redirect_uri,
        "state": STATE,
        "nonce": NONCE,
    }
    return f"{resolve_reference(endpoint, AUTH_PATH)}?{urlencode(sorted(query.items()))}"


def build_logout_url(endpoint: str, id_token: str) -> str:
    """Return the end-session URL that revokes *id_token*."""
    query = {"id_token_hint": id_token, "state": STATE}
    return f"{resolve_reference(endpoint, LOGOUT_PATH)}?{urlencode(sorted(query.items()))}"


def _first(values: dict[str, list[str]], name: str) -> str:
    return values.get(name, [""])[0]


def check_oidc_error(url: str) -> None:
    """Raise the OpenID Connect error carried by *url*, if there is one.

    An error redirect has the query parameters ``error`` and
    ``error_description``; the description becomes the message. ORY Hydra
    also sends ``error_hint``, which is appended after ``": "`` when present.

    Raises:
        TokgetError: Of kind :attr:`~tokget.errors.Kind.OIDC_ERROR` when the
            ``error`` parameter is not empty.
    """
    try:
        query = parse_qs(urlsplit(url).query)
    except ValueError as exc:
        raise errors.wrap(exc, "parse navigation url") from exc
    if not _first(query, "error"):
        return
    message = _first(query, "error_description")
    hint = _first(query, "error_hint")
    if hint:
        message = f"{message}: {hint}"
    raise TokgetError(Kind.OIDC_ERROR, message)


def extract_oidc_tokens(url: str) -> Optional[LoginData]:
    """Return the tokens delivered in the fragment of *url*.

    Returns ``None`` when the fragment does not carry tokens at all, so the
    caller can go on looking for an error. A fragment that carries one token
    but not the other is a broken response, not a failed login.

    Raises:
        TokgetError: If only one of ``access_token`` and ``id_token`` is
            present.
    """
    try:
        fragment = urlsplit(url).fragment
    except ValueError as exc:
        raise errors.wrap(exc, "parse post login url") from exc
    if not fragment:
        return None
    params = parse_qs(fragment)
    if "access_token" not in params and "id_token" not in params:
        return None

    access_token = _first(params, "access_token")
    if not access_token:
        raise TokgetError("the authentication endpoint does not send an access token in the url's fragment")
    id_token = _first(params, "id_token")
    if not id_token:
        raise TokgetError("the authentication endpoint does not send an id token in the url's fragment")
    return LoginData(access_token=access_token, id_token=id_token)
