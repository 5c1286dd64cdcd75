"""Domain entities: Deal, Contact, and the EventCategory value object."""

import enum
import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from decimal import Decimal

# Reserved name/category of a deal or contact whose real details have not arrived yet.
PLACEHOLDER_NAME = "TBS"
PLACEHOLDER_DEAL_TITLE = "TBS Deal"

NAME_MAX_LENGTH = 100
CATEGORY_MAX_LENGTH = 50


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _later(previous: datetime, now: datetime | None) -> datetime:
    """Never move a timestamp backwards."""
    now = now or utcnow()
    return now if now > previous else previous


def _to_decimal(value) -> Decimal | None:
    if value is None:
        return None
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except ArithmeticError as exc:
        raise ValueError(f"Invalid decimal amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Invalid decimal amount: {value!r}")
    return amount


class DealState(str, enum.Enum):
    PLACEHOLDER = "placeholder"
    CONFIGURED = "configured"


@dataclass(frozen=True)
class EventCategory:
    """
    One requested service category (photography, makeup, DJ...) for an event.
    Validated on construction; value is the budget or zero.
    """

    name: str = field(default="")
    event_date: date | None = None
    venue: str | None = None
    budget: Decimal | None = None
    expected_gathering: int | None = None

    def __post_init__(self):
        name = (self.name or "").strip()
        if not name:
            raise ValueError("Category name is required.")
        if len(name) > CATEGORY_MAX_LENGTH:
            raise ValueError(f"Category name must be at most {CATEGORY_MAX_LENGTH} chars.")
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "venue", (self.venue or "").strip() or None)
        budget = _to_decimal(self.budget)
        if budget is not None and budget < 0:
            raise ValueError("Budget must be positive or zero.")
        object.__setattr__(self, "budget", budget)
        if self.expected_gathering is not None and self.expected_gathering <= 0:
            raise ValueError("Expected gathering must be positive.")

    @property
    def value(self) -> Decimal:
        return self.budget if self.budget is not None else Decimal(0)


@dataclass(frozen=True)
class Contact:
    """
    A deduplicated client identity, keyed by phone number.
    The name may be the placeholder until the client tells us who they are.
    """

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    name: str = field(default=PLACEHOLDER_NAME)
    phone_number: str = field(default="")
    remote_contact_id: str | None = None
    venue: str | None = None
    event_date: date | None = None
    deleted: bool = False
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        if not self.phone_number or not self.phone_number.strip():
            raise ValueError("Contact phone number must be non-empty.")
        if not self.name or not self.name.strip():
            raise ValueError("Contact name must be non-empty.")
        if len(self.name) > NAME_MAX_LENGTH:
            raise ValueError(f"Contact name must be at most {NAME_MAX_LENGTH} chars.")

    @property
    def is_placeholder(self) -> bool:
        return self.name == PLACEHOLDER_NAME

    def renamed(self, name: str, now: datetime | None = None) -> "Contact":
        return replace(self, name=name, updated_at=_later(self.updated_at, now))


@dataclass(frozen=True)
class Deal:
    """
    One requested service category for one client.

    A PLACEHOLDER deal only knows the phone number (name and category hold
    PLACEHOLDER_NAME); it is promoted to CONFIGURED exactly once. A CONFIGURED
    deal always has a name, a phone number and a category.
    """

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    name: str = field(default=PLACEHOLDER_NAME)
    phone_number: str = field(default="")
    category: str = field(default=PLACEHOLDER_NAME)
    event_date: date | None = None
    venue: str | None = None
    budget: Decimal | None = None
    expected_gathering: int | None = None
    value: Decimal = field(default_factory=lambda: Decimal(0))
    state: DealState = DealState.CONFIGURED
    remote_deal_id: str | None = None
    contact_id: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        if not self.phone_number or not self.phone_number.strip():
            raise ValueError("Deal contact number must be non-empty.")
        if self.state is DealState.CONFIGURED:
            if not self.name or not self.name.strip():
                raise ValueError("Deal name must be non-empty.")
            if not self.category or not self.category.strip():
                raise ValueError("Deal category must be non-empty.")
        if self.value < 0:
            raise ValueError("Deal value must not be negative.")

    @classmethod
    def placeholder(cls, phone_number: str, contact_id: str | None = None) -> "Deal":
        return cls(
            name=PLACEHOLDER_NAME,
            phone_number=phone_number,
            category=PLACEHOLDER_NAME,
            state=DealState.PLACEHOLDER,
            contact_id=contact_id,
        )

    @classmethod
    def configured(
        cls,
        name: str,
        phone_number: str,
        category: EventCategory,
        contact_id: str | None = None,
    ) -> "Deal":
        return cls(
            name=name,
            phone_number=phone_number,
            category=category.name,
            event_date=category.event_date,
            venue=category.venue,
            budget=category.budget,
            expected_gathering=category.expected_gathering,
            value=category.value,
            state=DealState.CONFIGURED,
            contact_id=contact_id,
        )

    @property
    def is_placeholder(self) -> bool:
        return self.state is DealState.PLACEHOLDER

    @property
    def title(self) -> str:
        """Title used for the CRM deal."""
        if self.is_placeholder:
            return PLACEHOLDER_DEAL_TITLE
        return f"{self.name} - {self.category}"

    def with_details(
        self,
        name: str,
        category: EventCategory,
        *,
        phone_number: str | None = None,
        contact_id: str | None = None,
        now: datetime | None = None,
    ) -> "Deal":
        """Return this deal CONFIGURED with the given details. Id, CRM id and created_at are kept."""
        return replace(
            self,
            name=name,
            phone_number=phone_number or self.phone_number,
            category=category.name,
            event_date=category.event_date,
            venue=category.venue,
            budget=category.budget,
            expected_gathering=category.expected_gathering,
            value=category.value,
            state=DealState.CONFIGURED,
            contact_id=self.contact_id or contact_id,
            updated_at=_later(self.updated_at, now),
        )

    def touched(self, now: datetime | None = None) -> "Deal":
        return replace(self, updated_at=_later(self.updated_at, now))
