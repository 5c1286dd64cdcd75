"""Application ports (interfaces). Implemented by infrastructure adapters."""

from datetime import date, datetime
from decimal import Decimal
from typing import Protocol

from leadintake.domain import Contact, Deal


class ContactRepository(Protocol):
    """Persists contacts. At most one non-deleted contact per phone number."""

    def get_by_id(self, contact_id: str) -> Contact | None:
        """Return the contact with the given id, or None."""
        ...

    def find_by_phone(self, phone_number: str) -> Contact | None:
        """Return the non-deleted contact for this phone number, or None."""
        ...

    def get_or_create(self, contact: Contact) -> tuple[Contact, bool]:
        """Atomically return the existing contact for contact.phone_number, or store contact.

        Returns (stored_contact, created).
        """
        ...

    def update_name(
        self, contact_id: str, name: str, updated_at: datetime
    ) -> Contact | None:
        """Rename the contact. Returns the updated contact, or None if not found."""
        ...

    def set_remote_id(self, contact_id: str, remote_contact_id: str) -> Contact | None:
        """Record the CRM id. Returns the updated contact, or None if not found."""
        ...


class DealRepository(Protocol):
    """Persists deals. Lists are in creation order."""

    def add(self, deal: Deal) -> None:
        ...

    def add_many(self, deals: list[Deal]) -> None:
        """Store all deals or none of them."""
        ...

    def get_by_id(self, deal_id: str) -> Deal | None:
        ...

    def list_all(self) -> list[Deal]:
        ...

    def list_by_phone(self, phone_number: str) -> list[Deal]:
        ...

    def list_by_name(self, name: str) -> list[Deal]:
        ...

    def list_by_category(self, category: str) -> list[Deal]:
        ...

    def list_without_remote_id(self) -> list[Deal]:
        ...

    def initialize_or_touch(self, placeholder: Deal) -> tuple[Deal, bool]:
        """Atomically, per phone number: touch and return the first deal for
        placeholder.phone_number (setting its contact_id when it has none), or
        store placeholder. Returns (deal, created).
        """
        ...

    def promote(self, deal: Deal) -> Deal | None:
        """Overwrite the stored deal with `deal` only if the stored one is still
        a placeholder. Returns the stored deal, or None if missing or already
        configured.
        """
        ...

    def replace(self, deal: Deal) -> Deal | None:
        """Overwrite the stored deal's details unconditionally. The CRM id is
        never cleared. Returns the stored deal, or None if not found.
        """
        ...

    def set_remote_id(self, deal_id: str, remote_deal_id: str) -> Deal | None:
        """Record the CRM id if none is set yet. Returns the stored deal, or None if not found."""
        ...

    def delete(self, deal_id: str) -> bool:
        ...

    def delete_by_name(self, name: str) -> int:
        ...


class CrmGateway(Protocol):
    """Remote CRM. Each method is one outbound call and raises RemoteIntegrationError on failure."""

    def create_contact(self, name: str, phone_number: str) -> str:
        """Create a person; return its remote id."""
        ...

    def create_deal(self, contact_ref: str, title: str, value: Decimal) -> str:
        """Create a deal linked to the remote person; return its remote id."""
        ...

    def update_deal_fields(
        self,
        remote_deal_id: str,
        category: str,
        event_date: date | None,
        venue: str | None,
        full_name: str,
        budget: Decimal | None,
    ) -> None:
        ...

    def rename_person(self, remote_contact_id: str, new_name: str) -> None:
        ...


class Notifier(Protocol):
    """Outbound client confirmation. Raises on failure; callers swallow."""

    def send_confirmation(
        self,
        phone_number: str,
        name: str,
        categories: list[str],
        event_date: date | None,
        venue: str | None,
    ) -> None:
        ...
