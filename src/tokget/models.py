"""Canonical Pydantic models shared across all tokget modules.

The models fall into two groups:

**Flow models** -- the inputs and outputs of the login and logout flows.
They cross the HTTP boundary as JSON, so their keys are camelCase on the
wire (``clientId``, ``usernameField``...) while Python code uses the
snake_case attribute names:
    :class:`LoginConfig`, :class:`LogoutConfig` and :class:`LoginData`.

**Configuration models** -- serialised as JSON in the user's config
directory:
    :class:`LoginDefaults`, :class:`ServeConfig` and :class:`GlobalConfig`.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# --- Flow models ---


class LoginConfig(BaseModel):
    """Parameters of the login flow.

    Every field is mandatory except :attr:`password`, which may be left
    empty when the password is typed into the browser by some other
    channel. Missing fields are reported by the flow itself, in declaration
    order, so the model accepts empty strings.

    The CSS selectors must each match exactly one element of the
    provider's login page.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    endpoint: str = Field(default="", description="OpenID Connect endpoint")
    client_id: str = Field(default="", description="Client's ID")
    redirect_uri: str = Field(default="", description="Client's redirect URI")
    scopes: str = Field(default="", description="Space-delimited OpenID Connect scopes")
    username: str = Field(default="", description="User's name")
    password: str = Field(default="", repr=False, description="User's password")
    username_field: str = Field(
        default="", description="CSS selector of the username field on the login form"
    )
    password_field: str = Field(
        default="", description="CSS selector of the password field on the login form"
    )
    submit_button: str = Field(
        default="", description="CSS selector of the submit button on the login form"
    )
    error_message: str = Field(
        default="", description="CSS selector of an error message on the login form"
    )


class LogoutConfig(BaseModel):
    """Parameters of the logout flow."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    endpoint: str = Field(default="", description="OpenID Connect endpoint")
    id_token: str = Field(default="", repr=False, description="ID token to revoke")


class LoginData(BaseModel):
    """A successful login: both tokens delivered in the redirect fragment.

    The ID token is passed through as received; its signature and claims
    are not verified.
    """

    access_token: str
    id_token: str


# --- Configuration models ---


class LoginDefaults(BaseModel):
    """Values used for login parameters the caller leaves out.

    They match the default login page of ORY Hydra's reference login
    provider, which is the most common deployment behind tokget.
    """

    redirect_uri: str = "http://localhost:3000"
    scopes: str = Field(
        default="openid profile email", description="Space-delimited scopes"
    )
    username_field: str = "input[name=username]"
    password_field: str = "input[name=password]"
    submit_button: str = "button[type=submit]"
    error_message: str = "p.message"

    def apply(self, config: LoginConfig) -> LoginConfig:
        """Return a copy of *config* with empty defaultable fields filled in."""
        updates = {
            name: value
            for name, value in self.model_dump().items()
            if not getattr(config, name)
        }
        return config.model_copy(update=updates)


class ServeConfig(BaseModel):
    """Settings of the ``serve`` command."""

    listen: str = Field(
        default=":8080", description="Host and port to listen on (<host>:<port>)"
    )
    verbose: bool = Field(default=False, description="Log the flows' debug output")


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/tokget/config.json``.

    Loaded and saved by :func:`~tokget.config.load_global_config` and
    :func:`~tokget.config.save_global_config`. Fields here have the
    lowest precedence and can be overridden by environment variables or
    CLI flags. See :func:`~tokget.config.resolve_config` for the full
    precedence chain.
    """

    remote_chrome: Optional[str] = Field(
        default=None,
        description="URL of a remote Chrome's debugging endpoint (e.g. http://chrome:9222)",
    )
    login: LoginDefaults = Field(default_factory=LoginDefaults)
    serve: ServeConfig = Field(default_factory=ServeConfig)

    @field_validator("remote_chrome")
    @classmethod
    def empty_means_local(cls, value: Optional[str]) -> Optional[str]:
        return value or None
