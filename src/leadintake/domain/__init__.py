"""Domain layer: entities and value objects. No dependencies on outer layers."""

from leadintake.domain.entities import (
    PLACEHOLDER_NAME,
    Contact,
    Deal,
    DealState,
    EventCategory,
)

__all__ = ["PLACEHOLDER_NAME", "Contact", "Deal", "DealState", "EventCategory"]
