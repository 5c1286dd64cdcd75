"""Data transfer objects: raw input from the transport layer and operation results."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from leadintake.domain import Deal


@dataclass
class CategoryInput:
    """One category as received from a client. Validated by the service."""

    name: str
    event_date: date | None = None
    venue: str | None = None
    budget: Decimal | int | float | str | None = None
    expected_gathering: int | None = None


@dataclass
class DealFilter:
    """Optional equality filters for listing deals. All unset lists everything."""

    name: str | None = None
    phone_number: str | None = None
    category: str | None = None


@dataclass
class DealsCreated:
    message: str
    deals: list[Deal] = field(default_factory=list)


@dataclass
class DealInitialized:
    deal_id: str
    created: bool


@dataclass
class Invalid:
    reason: str


@dataclass
class DealNotFound:
    deal_id: str


@dataclass
class AlreadyConfigured:
    deal_id: str
