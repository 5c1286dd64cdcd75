"""
Lead intake core: clean-architecture layout.

- domain: entities (Deal, Contact, EventCategory). No outer dependencies.
- application: use cases (DealService, DealStore, IdentityResolver), ports, DTOs.
- infrastructure: adapters (in-memory and Neo4j repositories, Pipedrive, WhatsApp).
"""

from leadintake.application import (
    AlreadyConfigured,
    CategoryInput,
    DealFilter,
    DealInitialized,
    DealNotFound,
    DealService,
    DealsCreated,
    Invalid,
    PersistenceError,
    RemoteIntegrationError,
)
from leadintake.domain import Contact, Deal, DealState, EventCategory
from leadintake.infrastructure import (
    InMemoryContactRepository,
    InMemoryDealRepository,
    Neo4jContactRepository,
    Neo4jDealRepository,
)

__all__ = [
    "AlreadyConfigured",
    "CategoryInput",
    "Contact",
    "Deal",
    "DealFilter",
    "DealInitialized",
    "DealNotFound",
    "DealService",
    "DealState",
    "DealsCreated",
    "EventCategory",
    "InMemoryContactRepository",
    "InMemoryDealRepository",
    "Invalid",
    "Neo4jContactRepository",
    "Neo4jDealRepository",
    "PersistenceError",
    "RemoteIntegrationError",
]
