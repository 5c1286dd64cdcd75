"""Resolve a phone number to exactly one Contact, mirroring it to the CRM when possible."""

import logging
from datetime import date

from leadintake.application.errors import RemoteIntegrationError
from leadintake.application.ports import ContactRepository, CrmGateway
from leadintake.domain import PLACEHOLDER_NAME, Contact
from leadintake.domain.entities import utcnow

logger = logging.getLogger(__name__)


class IdentityResolver:
    """Get-or-create contacts by phone number.

    Local availability never depends on the CRM: the contact is stored first and
    the remote create/rename is attempted afterwards, once, with failures logged.
    """

    def __init__(
        self, repository: ContactRepository, crm: CrmGateway | None = None
    ) -> None:
        self._repo = repository
        self._crm = crm

    def resolve(
        self,
        name: str | None,
        phone_number: str,
        *,
        venue: str | None = None,
        event_date: date | None = None,
        sync_remote: bool = True,
        backfill_remote: bool = False,
    ) -> Contact:
        """Return the contact for phone_number, creating it on first reference.

        An existing contact is returned unchanged, except that with
        backfill_remote a missing CRM id is created. Only the call that actually
        created the contact talks to the CRM (when sync_remote is set); a caller
        that lost the creation race never does.
        """
        existing = self._repo.find_by_phone(phone_number)
        if existing is not None:
            return self.ensure_remote(existing) if backfill_remote else existing

        candidate = Contact(
            name=(name or "").strip() or PLACEHOLDER_NAME,
            phone_number=phone_number,
            venue=venue,
            event_date=event_date,
        )
        contact, created = self._repo.get_or_create(candidate)
        if not created:
            logger.info(
                "Contact for %s was created concurrently; using %s", phone_number, contact.id
            )
            return contact
        logger.info("Created contact %s for %s", contact.id, phone_number)
        if sync_remote:
            contact = self.ensure_remote(contact)
        return contact

    def ensure_remote(self, contact: Contact) -> Contact:
        """Create the CRM person if this contact has none yet. Best-effort."""
        if contact.remote_contact_id or self._crm is None:
            return contact
        try:
            remote_id = self._crm.create_contact(contact.name, contact.phone_number)
        except RemoteIntegrationError as e:
            logger.warning(
                "CRM person create failed for contact %s (%s); keeping local only: %s",
                contact.id,
                contact.phone_number,
                e,
            )
            return contact
        updated = self._repo.set_remote_id(contact.id, remote_id)
        logger.info("Contact %s linked to CRM person %s", contact.id, remote_id)
        return updated or contact

    def rename(self, contact: Contact, new_name: str) -> Contact:
        """Rename locally, then best-effort in the CRM. No-op if the name is unchanged."""
        new_name = (new_name or "").strip()
        if not new_name or new_name == contact.name:
            return contact
        updated = self._repo.update_name(contact.id, new_name, utcnow()) or contact.renamed(
            new_name
        )
        if not updated.remote_contact_id or self._crm is None:
            return updated
        try:
            self._crm.rename_person(updated.remote_contact_id, new_name)
            logger.info("Renamed CRM person %s to %s", updated.remote_contact_id, new_name)
        except RemoteIntegrationError as e:
            logger.error(
                "CRM rename failed for person %s: %s", updated.remote_contact_id, e
            )
        return updated
