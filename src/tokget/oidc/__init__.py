"""OpenID Connect login and logout flows driven through a browser.

* :func:`tokget.oidc.login.login` -- implicit-flow login through the
  provider's login form; returns the access token and ID token.
* :func:`tokget.oidc.logout.logout` -- end the user's session and revoke
  their ID token.
* :mod:`tokget.oidc.callback` -- authorization URLs and classification of
  the provider's redirects.
"""

from tokget.oidc.callback import (
    build_login_url,
    build_logout_url,
    check_oidc_error,
    extract_oidc_tokens,
)

__all__ = [
    "build_login_url",
    "build_logout_url",
    "check_oidc_error",
    "extract_oidc_tokens",
]
