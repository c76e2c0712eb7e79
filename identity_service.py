"""
Identity reconciliation.

Every request runs find -> expand group -> pick primary -> link-or-create ->
consolidate against a ContactStore. Records are only ever inserted here;
nothing is updated or deleted.

When one request matches two separate groups (the email in one, the phone in
the other) the earliest-created primary is reported as canonical, but the
other group is left as it is in storage.
"""
import logging
from typing import List, Optional, Sequence

from db_models import ContactRecord, ContactResponse, LinkPrecedence
from db_setup import ContactStore
from errors import ContactNotFoundError, InternalConsistencyError

logger = logging.getLogger(__name__)


class IdentityResolver:
    def __init__(self, store: ContactStore):
        self.store = store

    def resolve(self, email: Optional[str] = None, phone_number: Optional[str] = None) -> ContactResponse:
        email = email or None
        phone_number = phone_number or None

        with self.store.transaction():
            existing_contacts = self.store.find_by_email_or_phone(email, phone_number)

            if not existing_contacts:
                contact = self.store.insert(email, phone_number, None, LinkPrecedence.PRIMARY)
                logger.info("Created primary contact %s", contact.id)
                return self.consolidate([contact])

            all_contacts = self.find_related_contacts(existing_contacts)
            primary_contact = self.find_primary_contact(all_contacts)

            if not self.needs_new_secondary(primary_contact, all_contacts, email, phone_number):
                return self.consolidate(all_contacts)

            contact = self.store.insert(email, phone_number, primary_contact.id, LinkPrecedence.SECONDARY)
            logger.info("Created secondary contact %s linked to %s", contact.id, primary_contact.id)

            return self.consolidate(self.find_related_contacts([primary_contact]))

    def find_related_contacts(self, contacts: Sequence[ContactRecord]) -> List[ContactRecord]:
        """Every member of every group the given records belong to."""
        root_ids = {contact.root_id for contact in contacts if contact.root_id is not None}
        if len(root_ids) > 1:
            logger.debug("Request touches %d separate groups: %s", len(root_ids), sorted(root_ids))
        return self.store.find_by_ids_or_linked_ids(root_ids)

    @staticmethod
    def find_primary_contact(contacts: Sequence[ContactRecord]) -> ContactRecord:
        primaries = [c for c in contacts if c.is_primary]
        if not primaries:
            raise InternalConsistencyError("No primary contact found")
        return min(primaries, key=lambda c: (c.createdAt, c.id))

    @staticmethod
    def needs_new_secondary(
        primary_contact: ContactRecord,
        contacts: Sequence[ContactRecord],
        email: Optional[str],
        phone_number: Optional[str],
    ) -> bool:
        if not email and not phone_number:
            return False

        # absent inputs compare equal to null columns
        if any(c.email == email and c.phoneNumber == phone_number for c in contacts):
            return False

        if primary_contact.email == email and primary_contact.phoneNumber == phone_number:
            return False

        known = [primary_contact] + [c for c in contacts if not c.is_primary]
        email_covered = not email or any(c.email == email for c in known)
        phone_covered = not phone_number or any(c.phoneNumber == phone_number for c in known)

        needed = not (email_covered and phone_covered)
        logger.debug(
            "New secondary for primary %s: %s (email covered=%s, phone covered=%s)",
            primary_contact.id, needed, email_covered, phone_covered,
        )
        return needed

    def consolidate(self, contacts: Sequence[ContactRecord]) -> ContactResponse:
        if not contacts:
            raise ContactNotFoundError()

        primary_contact = self.find_primary_contact(contacts)
        secondary_contacts = sorted(
            (c for c in contacts if not c.is_primary),
            key=lambda c: (c.createdAt, c.id),
        )

        emails = []
        phone_numbers = []
        secondary_ids = []

        for contact in [primary_contact] + secondary_contacts:
            if contact.email and contact.email not in emails:
                emails.append(contact.email)
            if contact.phoneNumber and contact.phoneNumber not in phone_numbers:
                phone_numbers.append(contact.phoneNumber)
            if not contact.is_primary:
                secondary_ids.append(contact.id)

        return ContactResponse(
            primaryContactId=primary_contact.id,
            emails=emails,
            phoneNumbers=phone_numbers,
            secondaryContactIds=secondary_ids,
        )
