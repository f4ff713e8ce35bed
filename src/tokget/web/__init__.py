"""HTTP server exposing the login and logout flows (``tokget serve``)."""

from tokget.web.server import create_app, parse_listen
from tokget.web.stat import create_stat_router

__all__ = ["create_app", "create_stat_router", "parse_listen"]
