"""Local ledger of deals: creation, category fan-out, the placeholder guard, lookup, deletion."""

import logging

from leadintake.application.dto import AlreadyConfigured, DealNotFound
from leadintake.application.ports import DealRepository
from leadintake.domain import Deal, EventCategory
from leadintake.domain.entities import utcnow

logger = logging.getLogger(__name__)


class DealStore:
    """Owns deal persistence. Does no cross-entity coordination and no remote calls."""

    def __init__(self, repository: DealRepository) -> None:
        self._repo = repository

    def create_one(
        self,
        name: str,
        phone_number: str,
        category: EventCategory,
        contact_id: str | None = None,
    ) -> Deal:
        deal = Deal.configured(name, phone_number, category, contact_id=contact_id)
        self._repo.add(deal)
        return deal

    def create_many(
        self,
        name: str,
        phone_number: str,
        categories: list[EventCategory],
        contact_id: str | None = None,
    ) -> list[Deal]:
        """One CONFIGURED deal per category, in input order. Repeated categories are allowed.

        All deals are written in one unit: a storage failure leaves none of them.
        """
        deals = [
            Deal.configured(name, phone_number, category, contact_id=contact_id)
            for category in categories
        ]
        self._repo.add_many(deals)
        return deals

    def initialize_or_touch(
        self, phone_number: str, contact_id: str | None = None
    ) -> tuple[Deal, bool]:
        """Return the first deal for this phone (timestamp refreshed) or a new placeholder."""
        deal, created = self._repo.initialize_or_touch(
            Deal.placeholder(phone_number, contact_id=contact_id)
        )
        if created:
            logger.info("Created placeholder deal %s for %s", deal.id, phone_number)
        else:
            logger.info("Touched existing deal %s for %s", deal.id, phone_number)
        return deal, created

    def configure(
        self,
        deal_id: str,
        name: str,
        category: EventCategory,
        contact_id: str | None = None,
    ) -> Deal | DealNotFound | AlreadyConfigured:
        """Promote a placeholder deal in place. Only a placeholder may be promoted."""
        existing = self._repo.get_by_id(deal_id)
        if existing is None:
            return DealNotFound(deal_id=deal_id)
        if not existing.is_placeholder:
            return AlreadyConfigured(deal_id=deal_id)
        promoted = self._repo.promote(
            existing.with_details(name, category, contact_id=contact_id, now=utcnow())
        )
        if promoted is None:
            # Lost a race with a concurrent promotion (or a delete).
            if self._repo.get_by_id(deal_id) is None:
                return DealNotFound(deal_id=deal_id)
            return AlreadyConfigured(deal_id=deal_id)
        logger.info("Configured deal %s as %s for %s", deal_id, category.name, name)
        return promoted

    def replace(
        self,
        deal_id: str,
        name: str,
        phone_number: str,
        category: EventCategory,
    ) -> Deal | DealNotFound:
        """Overwrite a deal's details regardless of its state."""
        existing = self._repo.get_by_id(deal_id)
        if existing is None:
            return DealNotFound(deal_id=deal_id)
        updated = self._repo.replace(
            existing.with_details(name, category, phone_number=phone_number, now=utcnow())
        )
        if updated is None:
            return DealNotFound(deal_id=deal_id)
        return updated

    def attach_remote_deal(self, deal_id: str, remote_deal_id: str) -> Deal | None:
        return self._repo.set_remote_id(deal_id, remote_deal_id)

    def lookup(self, deal_id: str) -> Deal | None:
        return self._repo.get_by_id(deal_id)

    def list_all(self) -> list[Deal]:
        return self._repo.list_all()

    def list_by_phone(self, phone_number: str) -> list[Deal]:
        return self._repo.list_by_phone(phone_number)

    def list_by_name(self, name: str) -> list[Deal]:
        return self._repo.list_by_name(name)

    def list_by_category(self, category: str) -> list[Deal]:
        return self._repo.list_by_category(category)

    def list_unsynced(self) -> list[Deal]:
        return self._repo.list_without_remote_id()

    def delete(self, deal_id: str) -> bool:
        return self._repo.delete(deal_id)

    def delete_all_by_name(self, name: str) -> int:
        return self._repo.delete_by_name(name)
