"""
Statistics Middleware

Counts requests per client IP and per URL and renders an HTML report.

Query Parameters (presence only, values are ignored):
    - details: Render the report instead of passing the request on
    - details&reset: Zero all counters and redirect back to the report.
      The reset request itself is not counted.

Usage:
    from siteserver.middlewares.statistics import StatisticsMiddleware
    from siteserver.services.statistics_service import RequestStatistics

    app.add_middleware(StatisticsMiddleware, statistics=RequestStatistics())
"""

import html
import logging
from typing import Callable, List, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import HTMLResponse, RedirectResponse, Response
from starlette.types import ASGIApp

from ..services.statistics_service import (
    RequestStatistics,
    StatEntry,
    requests_per_second,
)
from ..utils.request_url import original_url


logger = logging.getLogger(__name__)


IPV4_MAPPED_PREFIX = "::ffff:"


def display_ip(ip: Optional[str]) -> str:
    """Strip the IPv4-mapped IPv6 prefix for display."""
    if not ip:
        return "unknown"
    if ip.startswith(IPV4_MAPPED_PREFIX):
        return ip[len(IPV4_MAPPED_PREFIX):]
    return ip


def _render_entries(
    entries: List[StatEntry],
    elapsed_seconds: int,
    label: Callable[[str], str]
) -> str:
    return "\n".join(
        f"<li><strong>{html.escape(label(entry.key))}:</strong> "
        f"{entry.request_count} requests "
        f"({requests_per_second(entry.request_count, elapsed_seconds)} rps)</li>"
        for entry in entries
    )


def render_statistics_page(
    statistics: RequestStatistics,
    client_ip: Optional[str],
    elapsed_seconds: int,
    reset_url: str
) -> str:
    """
    Render the statistics report.

    Args:
        statistics: Counters to report
        client_ip: Address of the client viewing the report
        elapsed_seconds: Seconds since the last reset
        reset_url: Link target that resets the counters

    Returns:
        HTML document body
    """
    total = statistics.request_count
    rate = requests_per_second(total, elapsed_seconds)

    return f"""
      <h1>Server statistics</h1>
      <p>Your ip: {html.escape(display_ip(client_ip))}</p>
      <p>Handled {total} requests in {elapsed_seconds}s ({rate} requests per second)</p>
      <p>Click <a href="{html.escape(reset_url)}">here</a> to reset counters.</p>

      <h2>High Scores</h2>
      <ol>
        {_render_entries(statistics.top_ips(), elapsed_seconds, display_ip)}
      </ol>

      <h2>URLs</h2>
      <ol>
        {_render_entries(statistics.top_urls(), elapsed_seconds, str)}
      </ol>
    """


class StatisticsMiddleware(BaseHTTPMiddleware):
    """
    Request counting middleware.

    Counter updates run synchronously inside one dispatch call, so no
    lock is needed on a single event loop.

    Attributes:
        statistics: The counters this middleware updates
    """

    def __init__(self, app: ASGIApp, statistics: RequestStatistics):
        super().__init__(app)
        self.statistics = statistics

    async def dispatch(
        self,
        request: Request,
        call_next: Callable
    ) -> Response:
        """Reset, record, or record and report."""
        show_details = "details" in request.query_params
        perform_reset = "reset" in request.query_params
        elapsed_seconds = self.statistics.elapsed_seconds()
        client_ip = request.client.host if request.client else None
        path = original_url(request).split("?", 1)[0]

        if show_details and perform_reset:
            self.statistics.reset()
            logger.info(
                "Request statistics reset",
                extra={"client": display_ip(client_ip), "url": original_url(request)}
            )
            return RedirectResponse(f"{path}?details", status_code=302)

        self.statistics.record(ip=client_ip, url=original_url(request))

        if not show_details:
            return await call_next(request)

        return HTMLResponse(
            render_statistics_page(
                self.statistics,
                client_ip=client_ip,
                elapsed_seconds=elapsed_seconds,
                reset_url=f"{path}?details&reset"
            ),
            status_code=200
        )
