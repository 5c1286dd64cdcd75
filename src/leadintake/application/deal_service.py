"""Deal lifecycle: bulk create, initialize by phone, two-phase update, CRM mirroring."""

import logging
from collections.abc import Callable

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
from leadintake.application.errors import RemoteIntegrationError
from leadintake.application.identity_resolver import IdentityResolver
from leadintake.application.ports import (
    ContactRepository,
    CrmGateway,
    DealRepository,
    Notifier,
)
from leadintake.domain import PLACEHOLDER_NAME, Contact, Deal, EventCategory
from leadintake.domain.entities import NAME_MAX_LENGTH

logger = logging.getLogger(__name__)


class DealService:
    """Core flow: initialize by phone -> placeholder deal -> details -> one deal per category.

    Local state is the source of truth. It is written first; CRM and WhatsApp
    calls follow and their failures are logged, never propagated. Steps of one
    operation run strictly in order: contact, deal, CRM sync, fan-out, notification.
    """

    def __init__(
        self,
        deals: DealRepository,
        contacts: ContactRepository,
        *,
        crm: CrmGateway | None = None,
        notifier: Notifier | None = None,
        normalize_phone: Callable[[str], str | None] | None = None,
    ) -> None:
        self._store = DealStore(deals)
        self._identities = IdentityResolver(contacts, crm)
        self._contacts = contacts
        self._crm = crm
        self._notifier = notifier
        self._normalize_phone = normalize_phone

    def _canonical_phone(self, raw: str | None) -> str:
        """Normalized form when the number parses, else the stripped input."""
        raw = (raw or "").strip()
        if not raw or self._normalize_phone is None:
            return raw
        return self._normalize_phone(raw) or raw

    @staticmethod
    def _parse_categories(
        categories: list[CategoryInput] | None,
    ) -> list[EventCategory] | Invalid:
        if not categories:
            return Invalid(reason="At least one category is required.")
        parsed = []
        for item in categories:
            try:
                parsed.append(
                    EventCategory(
                        name=item.name,
                        event_date=item.event_date,
                        venue=item.venue,
                        budget=item.budget,
                        expected_gathering=item.expected_gathering,
                    )
                )
            except ValueError as e:
                return Invalid(reason=str(e))
        return parsed

    def create_deals(
        self,
        name: str,
        contact_number: str,
        categories: list[CategoryInput],
    ) -> DealsCreated | Invalid:
        """Create one configured deal per category. No CRM calls on this path."""
        name = (name or "").strip()
        if not name:
            return Invalid(reason="Name is required.")
        if len(name) > NAME_MAX_LENGTH:
            return Invalid(reason=f"Name must be at most {NAME_MAX_LENGTH} chars.")
        phone = self._canonical_phone(contact_number)
        if not phone:
            return Invalid(reason="Contact number is required.")
        parsed = self._parse_categories(categories)
        if isinstance(parsed, Invalid):
            return parsed

        first = parsed[0]
        contact = self._identities.resolve(
            name,
            phone,
            venue=first.venue,
            event_date=first.event_date,
            sync_remote=False,
        )
        deals = self._store.create_many(name, phone, parsed, contact_id=contact.id)
        message = f"Successfully created {len(deals)} deal(s) for user {name}"
        logger.info(message)
        return DealsCreated(message=message, deals=deals)

    def initialize_deal(self, contact_number: str) -> DealInitialized | Invalid:
        """Get-or-create the placeholder deal for a phone number.

        Safe to repeat: the same phone always converges on the same deal and the
        same contact. Missing CRM ids are created here, best-effort.
        """
        phone = self._canonical_phone(contact_number)
        if not phone:
            return Invalid(reason="Contact number is required.")

        contact = self._identities.resolve(PLACEHOLDER_NAME, phone, backfill_remote=True)
        deal, created = self._store.initialize_or_touch(phone, contact_id=contact.id)
        self._sync_deal(deal, contact, push_fields=False)
        return DealInitialized(deal_id=deal.id, created=created)

    def update_deal_without_contact_number(
        self,
        deal_id: str,
        name: str,
        categories: list[CategoryInput],
    ) -> Deal | Invalid | DealNotFound | AlreadyConfigured:
        """Second phase: promote the placeholder with the first category, fan out the rest."""
        name = (name or "").strip()
        if not name:
            return Invalid(reason="Name is required.")
        if len(name) > NAME_MAX_LENGTH:
            return Invalid(reason=f"Name must be at most {NAME_MAX_LENGTH} chars.")
        parsed = self._parse_categories(categories)
        if isinstance(parsed, Invalid):
            return parsed

        existing = self._store.lookup(deal_id)
        if existing is None:
            return DealNotFound(deal_id=deal_id)
        if not existing.is_placeholder:
            return AlreadyConfigured(deal_id=deal_id)

        phone = existing.phone_number
        first, rest = parsed[0], parsed[1:]

        contact = self._identities.resolve(
            name,
            phone,
            venue=first.venue,
            event_date=first.event_date,
            backfill_remote=True,
        )
        if contact.is_placeholder:
            contact = self._identities.rename(contact, name)

        promoted = self._store.configure(deal_id, name, first, contact_id=contact.id)
        if not isinstance(promoted, Deal):
            return promoted
        promoted = self._sync_deal(promoted, contact)

        extras = self._store.create_many(name, phone, rest, contact_id=contact.id) if rest else []
        for extra in extras:
            logger.info("Created additional deal %s (%s) for %s", extra.id, extra.category, phone)
            self._sync_deal(extra, contact)

        self._notify(
            phone,
            name,
            [c.name for c in parsed],
            first,
        )
        return promoted

    def update_deal(
        self,
        deal_id: str,
        name: str,
        contact_number: str,
        categories: list[CategoryInput],
    ) -> Deal | Invalid | DealNotFound:
        """Overwrite a deal from the first category. No state guard, no CRM calls."""
        name = (name or "").strip()
        if not name:
            return Invalid(reason="Name is required.")
        if len(name) > NAME_MAX_LENGTH:
            return Invalid(reason=f"Name must be at most {NAME_MAX_LENGTH} chars.")
        phone = self._canonical_phone(contact_number)
        if not phone:
            return Invalid(reason="Contact number is required.")
        parsed = self._parse_categories(categories)
        if isinstance(parsed, Invalid):
            return parsed
        return self._store.replace(deal_id, name, phone, parsed[0])

    def get_deal(self, deal_id: str) -> Deal | None:
        return self._store.lookup(deal_id)

    def list_deals(self, filters: DealFilter | None = None) -> list[Deal]:
        """Return deals matching every given filter (all deals when none)."""
        if filters is None:
            return self._store.list_all()
        phone = self._canonical_phone(filters.phone_number) if filters.phone_number else None
        if phone:
            deals = self._store.list_by_phone(phone)
        elif filters.name:
            deals = self._store.list_by_name(filters.name)
        elif filters.category:
            deals = self._store.list_by_category(filters.category)
        else:
            deals = self._store.list_all()
        return [
            d
            for d in deals
            if (not filters.name or d.name == filters.name)
            and (not filters.category or d.category == filters.category)
        ]

    def delete_deal(self, deal_id: str) -> bool:
        deleted = self._store.delete(deal_id)
        if deleted:
            logger.info("Deleted deal %s", deal_id)
        return deleted

    def delete_deals_by_name(self, name: str) -> int:
        count = self._store.delete_all_by_name(name)
        logger.info("Deleted %d deal(s) for user %s", count, name)
        return count

    def resync_unsynced(self) -> int:
        """One best-effort CRM pass over deals that have no CRM id. Returns how many gained one."""
        synced = 0
        for deal in self._store.list_unsynced():
            contact = self._contact_for(deal)
            if contact is not None:
                contact = self._identities.ensure_remote(contact)
            if self._sync_deal(deal, contact).remote_deal_id:
                synced += 1
        logger.info("CRM resync linked %d deal(s)", synced)
        return synced

    def _contact_for(self, deal: Deal) -> Contact | None:
        if deal.contact_id:
            contact = self._contacts.get_by_id(deal.contact_id)
            if contact is not None:
                return contact
        return self._contacts.find_by_phone(deal.phone_number)

    def _sync_deal(
        self, deal: Deal, contact: Contact | None, *, push_fields: bool = True
    ) -> Deal:
        """Mirror a deal to the CRM: create it if unlinked, then push custom fields.

        Returns the deal as stored afterwards. CRM failures are logged only.
        """
        if self._crm is None:
            return deal
        remote_id = deal.remote_deal_id
        try:
            if remote_id is None:
                if contact is None or not contact.remote_contact_id:
                    logger.warning(
                        "Cannot create CRM deal for %s: contact has no CRM id", deal.id
                    )
                    return deal
                remote_id = self._crm.create_deal(
                    contact.remote_contact_id, deal.title, deal.value
                )
                deal = self._store.attach_remote_deal(deal.id, remote_id) or deal
                logger.info("Deal %s linked to CRM deal %s", deal.id, remote_id)
            if push_fields and not deal.is_placeholder:
                self._crm.update_deal_fields(
                    remote_id,
                    deal.category,
                    deal.event_date,
                    deal.venue,
                    deal.name,
                    deal.budget,
                )
                logger.info("Updated CRM deal %s fields for deal %s", remote_id, deal.id)
        except RemoteIntegrationError as e:
            logger.error("CRM sync failed for deal %s: %s", deal.id, e)
        return deal

    def _notify(
        self,
        phone: str,
        name: str,
        categories: list[str],
        first: EventCategory,
    ) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier.send_confirmation(
                phone, name, categories, first.event_date, first.venue
            )
            logger.info("Confirmation sent to %s", phone)
        except Exception:
            logger.exception("Failed to send confirmation to %s", phone)
