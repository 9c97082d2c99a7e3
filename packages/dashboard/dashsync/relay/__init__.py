from .bridge import RelayBridge
from .hub import HubSubscriber, UpdateHub
from .server import create_app

__all__ = ["HubSubscriber", "RelayBridge", "UpdateHub", "create_app"]
