"""
Navigation Signals

EXIT_APP and OPEN_EXTERNAL are not data requests: they ask the host shell
to leave the app or hand a link to the system browser / dialer / mail app.
"""

import asyncio
from typing import Optional, Protocol
from urllib.parse import urlparse

import structlog


logger = structlog.get_logger(__name__)


ALLOWED_URL_SCHEMES = frozenset({"http", "https", "mailto", "tel"})


def is_allowed_url(url: str) -> bool:
    """Only web, mail and phone links may leave the app."""
    parsed = urlparse(str(url or "").strip())
    scheme = parsed.scheme.lower()
    if scheme not in ALLOWED_URL_SCHEMES:
        return False
    if scheme in ("http", "https"):
        return bool(parsed.netloc)
    return bool(parsed.path)


class NavigationHandler(Protocol):

    async def exit_app(self) -> None:
        ...

    async def open_external(self, url: str) -> None:
        ...


class LoggingNavigation:
    """
    Navigation for headless hosts.

    Exit requests set `exit_requested`, which the stdio loop waits on.
    Opened links are recorded and logged.
    """

    def __init__(self, exit_requested: Optional[asyncio.Event] = None):
        self.exit_requested = exit_requested or asyncio.Event()
        self.opened_urls: list[str] = []

    async def exit_app(self) -> None:
        logger.info("exit_requested")
        self.exit_requested.set()

    async def open_external(self, url: str) -> None:
        logger.info("external_url_opened", url=url)
        self.opened_urls.append(url)
