"""Bridge between the presentation layer and the host core."""

from tijarati.bridge.client import BridgeClient, BridgeUnavailableError, connect_local
from tijarati.bridge.dispatcher import BridgeError, Dispatcher
from tijarati.bridge.host import serve
from tijarati.bridge.navigation import (
    ALLOWED_URL_SCHEMES,
    LoggingNavigation,
    NavigationHandler,
    is_allowed_url,
)

__all__ = [
    "ALLOWED_URL_SCHEMES",
    "BridgeClient",
    "BridgeError",
    "BridgeUnavailableError",
    "Dispatcher",
    "LoggingNavigation",
    "NavigationHandler",
    "connect_local",
    "is_allowed_url",
    "serve",
]
