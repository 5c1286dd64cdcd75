"""Application layer: use cases, ports, and DTOs. Depends only on domain."""

from leadintake.application.deal_service import DealService
from leadintake.application.deal_store import DealStore
from leadintake.application.dto import (
    AlreadyConfigured,
    CategoryInput,
    DealFilter,
    DealInitialized,
    DealNotFound,
    DealsCreated,
    Invalid,
)
from leadintake.application.errors import PersistenceError, RemoteIntegrationError
from leadintake.application.identity_resolver import IdentityResolver
from leadintake.application.ports import (
    ContactRepository,
    CrmGateway,
    DealRepository,
    Notifier,
)

__all__ = [
    "AlreadyConfigured",
    "CategoryInput",
    "ContactRepository",
    "CrmGateway",
    "DealFilter",
    "DealInitialized",
    "DealNotFound",
    "DealRepository",
    "DealService",
    "DealStore",
    "DealsCreated",
    "IdentityResolver",
    "Invalid",
    "Notifier",
    "PersistenceError",
    "RemoteIntegrationError",
]
