"""In-memory implementations of ContactRepository and DealRepository (no DB).

A single lock serializes writes so get-or-create and compare-and-set hold under
FastAPI's threadpool just as the unique constraints do in Neo4j.
"""

import threading
from dataclasses import replace
from datetime import datetime

from leadintake.domain import Contact, Deal, DealState


class InMemoryContactRepository:
    """Stores contacts in memory. Order preserved by insertion."""

    def __init__(self) -> None:
        self._by_id: dict[str, Contact] = {}
        self._lock = threading.Lock()

    def get_by_id(self, contact_id: str) -> Contact | None:
        return self._by_id.get(contact_id)

    def find_by_phone(self, phone_number: str) -> Contact | None:
        for contact in list(self._by_id.values()):
            if not contact.deleted and contact.phone_number == phone_number:
                return contact
        return None

    def get_or_create(self, contact: Contact) -> tuple[Contact, bool]:
        with self._lock:
            existing = self.find_by_phone(contact.phone_number)
            if existing is not None:
                return existing, False
            self._by_id[contact.id] = contact
            return contact, True

    def update_name(
        self, contact_id: str, name: str, updated_at: datetime
    ) -> Contact | None:
        with self._lock:
            contact = self._by_id.get(contact_id)
            if contact is None:
                return None
            updated = contact.renamed(name, now=updated_at)
            self._by_id[contact_id] = updated
            return updated

    def set_remote_id(self, contact_id: str, remote_contact_id: str) -> Contact | None:
        with self._lock:
            contact = self._by_id.get(contact_id)
            if contact is None:
                return None
            updated = replace(contact, remote_contact_id=remote_contact_id)
            self._by_id[contact_id] = updated
            return updated

    def list_all(self) -> list[Contact]:
        return list(self._by_id.values())


class InMemoryDealRepository:
    """Stores deals in memory. Order preserved by insertion."""

    def __init__(self) -> None:
        self._by_id: dict[str, Deal] = {}
        self._lock = threading.Lock()

    def _matching(self, predicate) -> list[Deal]:
        return [deal for deal in list(self._by_id.values()) if predicate(deal)]

    def add(self, deal: Deal) -> None:
        with self._lock:
            if deal.id in self._by_id:
                return
            self._by_id[deal.id] = deal

    def add_many(self, deals: list[Deal]) -> None:
        with self._lock:
            fresh = {d.id: d for d in deals if d.id not in self._by_id}
            self._by_id.update(fresh)

    def get_by_id(self, deal_id: str) -> Deal | None:
        return self._by_id.get(deal_id)

    def list_all(self) -> list[Deal]:
        return list(self._by_id.values())

    def list_by_phone(self, phone_number: str) -> list[Deal]:
        return self._matching(lambda d: d.phone_number == phone_number)

    def list_by_name(self, name: str) -> list[Deal]:
        return self._matching(lambda d: d.name == name)

    def list_by_category(self, category: str) -> list[Deal]:
        return self._matching(lambda d: d.category == category)

    def list_without_remote_id(self) -> list[Deal]:
        return self._matching(lambda d: d.remote_deal_id is None)

    def initialize_or_touch(self, placeholder: Deal) -> tuple[Deal, bool]:
        with self._lock:
            existing = self.list_by_phone(placeholder.phone_number)
            if not existing:
                self._by_id[placeholder.id] = placeholder
                return placeholder, True
            first = existing[0].touched()
            if first.contact_id is None and placeholder.contact_id is not None:
                first = replace(first, contact_id=placeholder.contact_id)
            self._by_id[first.id] = first
            return first, False

    def promote(self, deal: Deal) -> Deal | None:
        with self._lock:
            current = self._by_id.get(deal.id)
            if current is None or current.state is not DealState.PLACEHOLDER:
                return None
            stored = replace(deal, remote_deal_id=current.remote_deal_id or deal.remote_deal_id)
            self._by_id[deal.id] = stored
            return stored

    def replace(self, deal: Deal) -> Deal | None:
        with self._lock:
            current = self._by_id.get(deal.id)
            if current is None:
                return None
            stored = replace(deal, remote_deal_id=current.remote_deal_id or deal.remote_deal_id)
            self._by_id[deal.id] = stored
            return stored

    def set_remote_id(self, deal_id: str, remote_deal_id: str) -> Deal | None:
        with self._lock:
            current = self._by_id.get(deal_id)
            if current is None:
                return None
            if current.remote_deal_id is None:
                current = replace(current, remote_deal_id=remote_deal_id)
                self._by_id[deal_id] = current
            return current

    def delete(self, deal_id: str) -> bool:
        with self._lock:
            return self._by_id.pop(deal_id, None) is not None

    def delete_by_name(self, name: str) -> int:
        with self._lock:
            doomed = [deal_id for deal_id, d in self._by_id.items() if d.name == name]
            for deal_id in doomed:
                del self._by_id[deal_id]
            return len(doomed)
