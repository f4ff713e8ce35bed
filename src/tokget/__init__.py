"""tokget -- obtain and revoke OpenID Connect tokens by driving a real browser.

Some identity providers render their login pages with JavaScript and shape
them arbitrarily, so the tokens cannot be obtained with plain HTTP calls.
tokget opens the provider's authorization endpoint in Chromium, fills the
login form through CSS selectors, and reads the tokens from the URL fragment
of the final redirect.

Typical workflow::

    tokget login -e https://idp.example.com -c my-client -u alice
    tokget logout -e https://idp.example.com -t <id-token>
    tokget serve -l :8080

Modules:
    app: Typer application and CLI entry point.
    chrome: Browser session, navigation history, page-load waiting and form
        primitives.
    oidc: The login and logout flows.
    errors: Kind-tagged error taxonomy.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration and precedence resolution.
    output: stdout/stderr formatting system with Rich support.
    web: HTTP server exposing the flows as REST endpoints.
"""

__version__ = "1.0.0"
