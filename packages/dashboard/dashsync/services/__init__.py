from .activity_log import ActivityEntry, ActivityLog, EntryType
from .orders import OrderService
from .refresher import Refresher
from .resources import (
    RESOURCES,
    MutationOutcome,
    ResourceListing,
    ResourceService,
    ResourceSpec,
    get_resource,
    mutation_succeeded,
)

__all__ = [
    "ActivityEntry",
    "ActivityLog",
    "EntryType",
    "OrderService",
    "Refresher",
    "RESOURCES",
    "MutationOutcome",
    "ResourceListing",
    "ResourceService",
    "ResourceSpec",
    "get_resource",
    "mutation_succeeded",
]
