"""Small URL helpers shared by the browser layer and the flows."""

from __future__ import annotations

from urllib.parse import urlsplit, urlunsplit

from tokget.errors import InvariantViolation


def resolve_reference(base: str, path: str) -> str:
    """Resolve the absolute path *path* against *base*.

    The scheme and host of *base* are kept; its path, query and fragment
    are replaced. *path* is always an internal literal such as
    ``"/oauth2/auth"``, so anything else is a programming error.

    Example::

        >>> resolve_reference("https://idp.example.com/ui?x=1", "/oauth2/auth")
        'https://idp.example.com/oauth2/auth'
    """
    ref = urlsplit(path)
    if ref.scheme or ref.netloc or not ref.path.startswith("/"):
        raise InvariantViolation(f"{path!r} is not an absolute path reference")
    parts = urlsplit(base)
    return urlunsplit((parts.scheme, parts.netloc, ref.path, ref.query, ""))


def with_fragment(url: str, url_fragment: str) -> str:
    """Rebuild *url* with the fragment reported separately by the browser.

    Chrome reports a request's URL without its fragment and the fragment on
    its own, leading ``#`` included. The delimiter is dropped once before
    the fragment is put back, so ``("http://x/y", "#abc")`` gives
    ``"http://x/y#abc"``.
    """
    parts = urlsplit(url)
    if url_fragment:
        fragment = url_fragment[1:] if url_fragment.startswith("#") else url_fragment
        parts = parts._replace(fragment=fragment)
    return urlunsplit(parts)
