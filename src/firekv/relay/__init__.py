from .client import RelayClient
from .journal import BEACON_FAILURE_KEY, FailureJournal
from .server import create_relay_app, handle_relay_request, relay_router
from .settings import RelaySettings, get_relay_settings

__all__ = [
    "RelayClient",
    "FailureJournal",
    "BEACON_FAILURE_KEY",
    "RelaySettings",
    "get_relay_settings",
    "create_relay_app",
    "relay_router",
    "handle_relay_request",
]
