"""Infrastructure layer: concrete implementations of application ports."""

from leadintake.infrastructure.memory_repository import (
    InMemoryContactRepository,
    InMemoryDealRepository,
)
from leadintake.infrastructure.persistence.neo4j_repository import (
    Neo4jContactRepository,
    Neo4jDealRepository,
    ensure_constraints,
)
from leadintake.infrastructure.pipedrive import PipedriveGateway
from leadintake.infrastructure.whatsapp import WhatsAppNotifier

__all__ = [
    "InMemoryContactRepository",
    "InMemoryDealRepository",
    "Neo4jContactRepository",
    "Neo4jDealRepository",
    "PipedriveGateway",
    "WhatsAppNotifier",
    "ensure_constraints",
]
