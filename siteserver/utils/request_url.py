"""
Request URL Helpers

Small helpers shared by the redirect and statistics middlewares for
reading the host and the original (still percent-encoded) URL of a request.
"""

from starlette.requests import Request


def request_hostname(request: Request) -> str:
    """
    Return the Host header without its port.

    IPv6 literals keep their brackets ("[::1]:8080" -> "[::1]").
    """
    host = request.headers.get("host", "")

    if host.startswith("["):
        end = host.find("]")
        return host[:end + 1] if end != -1 else host

    return host.split(":", 1)[0]


def original_url(request: Request) -> str:
    """Return the request path and query string as sent by the client."""
    raw_path = request.scope.get("raw_path")
    if raw_path:
        path = raw_path.split(b"?", 1)[0].decode("latin-1")
    else:
        path = request.url.path
    query = request.url.query

    return f"{path}?{query}" if query else path
