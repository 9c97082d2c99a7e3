"""Cross-dashboard update propagation for the restaurant admin dashboards."""

from .api import ApiResult, ApiSession, BackendClient
from .events import UpdateBus, UpdateEvent, UpdateKind
from .normalizer import EmptyPolicy, NormalizedResult, normalize

__version__ = "0.1.0"

__all__ = [
    "ApiResult",
    "ApiSession",
    "BackendClient",
    "EmptyPolicy",
    "NormalizedResult",
    "UpdateBus",
    "UpdateEvent",
    "UpdateKind",
    "normalize",
    "__version__",
]
