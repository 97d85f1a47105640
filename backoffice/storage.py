"""Storage facade: every entity collection plus the credit ledger."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from .codec import to_field_names
from .collection import EntityCollection
from .config import Settings
from .defaults import DEFAULTS
from .errors import NotFound, PersistenceFailure
from .ledger import CreditLedger
from .models import (
    CLIENT_CREDIT_FIELDS,
    Campaign,
    Client,
    Contact,
    Domain,
    Email,
    EntityKind,
    ListMembership,
    MailingList,
    Template,
)
from .persistence import adapters_for

logger = logging.getLogger(__name__)

LEDGER_DIR = "ledgers"


class Storage:
    """Compose the per-kind collections and the ledger behind one object.

    Built once by the process entry point (see :meth:`open`) and handed to
    whatever serves requests; there is no module-level instance.
    """

    def __init__(self, data_dir: Path, *, initial_system_credits: int = 100_000, strict: bool = False) -> None:
        self.data_dir = Path(data_dir)
        adapters = adapters_for(self.data_dir, strict=strict)
        self.clients: EntityCollection[Client] = EntityCollection(adapters[EntityKind.CLIENT])
        self.contacts: EntityCollection[Contact] = EntityCollection(adapters[EntityKind.CONTACT])
        self.lists: EntityCollection[MailingList] = EntityCollection(adapters[EntityKind.LIST])
        self.list_memberships: EntityCollection[ListMembership] = EntityCollection(
            adapters[EntityKind.LIST_MEMBERSHIP]
        )
        self.campaigns: EntityCollection[Campaign] = EntityCollection(adapters[EntityKind.CAMPAIGN])
        self.templates: EntityCollection[Template] = EntityCollection(adapters[EntityKind.TEMPLATE])
        self.domains: EntityCollection[Domain] = EntityCollection(adapters[EntityKind.DOMAIN])
        self.emails: EntityCollection[Email] = EntityCollection(adapters[EntityKind.EMAIL])
        self._collections: Dict[EntityKind, EntityCollection[Any]] = {
            EntityKind.CLIENT: self.clients,
            EntityKind.CONTACT: self.contacts,
            EntityKind.LIST: self.lists,
            EntityKind.LIST_MEMBERSHIP: self.list_memberships,
            EntityKind.CAMPAIGN: self.campaigns,
            EntityKind.TEMPLATE: self.templates,
            EntityKind.DOMAIN: self.domains,
            EntityKind.EMAIL: self.emails,
        }
        self.initial_system_credits = initial_system_credits
        self._ledger: Optional[CreditLedger] = None
        # Held across membership writes and the deletes that cascade to them.
        self._relations_lock = threading.RLock()

    @classmethod
    def open(cls, settings: Settings) -> "Storage":
        storage = cls(
            settings.data_path,
            initial_system_credits=settings.initial_system_credits,
            strict=settings.strict_persistence,
        )
        storage.load(seed_defaults=settings.seed_defaults)
        return storage

    def load(self, *, seed_defaults: bool = True) -> None:
        """Load every collection and restore the ledger balances."""
        for kind, collection in self._collections.items():
            defaults = DEFAULTS.get(kind, []) if seed_defaults else []
            collection.load(defaults)
        self._ledger = CreditLedger.open(self.clients, self.data_dir / LEDGER_DIR, self.initial_system_credits)
        logger.info(
            "storage loaded",
            extra={"data_dir": str(self.data_dir), "counts": self.counts()},
        )

    @property
    def ledger(self) -> CreditLedger:
        if self._ledger is None:
            raise RuntimeError("storage has not been loaded")
        return self._ledger

    def collection(self, kind: Union[EntityKind, str]) -> EntityCollection[Any]:
        return self._collections[EntityKind(kind)]

    def next_id(self, kind: Union[EntityKind, str]) -> int:
        return self.collection(kind).next_id()

    def counts(self) -> Dict[str, int]:
        return {kind.value: len(collection) for kind, collection in self._collections.items()}

    # ------------------------------------------------------------ clients

    def get_client_by_email(self, email: str) -> Optional[Client]:
        return self.clients.first(lambda client: client.email == email)

    def update_client(self, client_id: int, fields: Mapping[str, Any]) -> Client:
        """Update profile fields; credit balances only move through the ledger."""
        changes = {
            name: value
            for name, value in to_field_names(Client, fields).items()
            if name not in CLIENT_CREDIT_FIELDS
        }
        return self.clients.update(client_id, changes)

    # ------------------------------------------------------------ contacts

    def get_contact_by_email(self, email: str) -> Optional[Contact]:
        return self.contacts.first(lambda contact: contact.email == email)

    def delete_contact(self, contact_id: int) -> bool:
        with self._relations_lock:
            if contact_id not in self.contacts:
                raise NotFound(self.contacts.kind, contact_id)
            return self._delete_with_memberships(
                self.contacts, contact_id, lambda membership: membership.contact_id == contact_id
            )

    # ------------------------------------------------------------ lists

    def delete_list(self, list_id: int) -> bool:
        """Delete a list after removing every membership that points to it."""
        with self._relations_lock:
            if list_id not in self.lists:
                raise NotFound(self.lists.kind, list_id)
            return self._delete_with_memberships(
                self.lists, list_id, lambda membership: membership.list_id == list_id
            )

    def add_contact_to_list(self, contact_id: int, list_id: int) -> ListMembership:
        with self._relations_lock:
            if contact_id not in self.contacts:
                raise NotFound(self.contacts.kind, contact_id)
            if list_id not in self.lists:
                raise NotFound(self.lists.kind, list_id)
            existing = self.list_memberships.first(
                lambda membership: membership.contact_id == contact_id and membership.list_id == list_id
            )
            if existing is not None:
                return existing
            return self.list_memberships.create({"contact_id": contact_id, "list_id": list_id})

    def remove_contact_from_list(self, contact_id: int, list_id: int) -> bool:
        with self._relations_lock:
            removed = self.list_memberships.delete_where(
                lambda membership: membership.contact_id == contact_id and membership.list_id == list_id
            )
        return bool(removed)

    def _delete_with_memberships(
        self,
        owner: EntityCollection[Any],
        record_id: int,
        predicate: Callable[[ListMembership], bool],
    ) -> bool:
        removed = self.list_memberships.delete_where(predicate)
        try:
            deleted = owner.delete(record_id)
        except PersistenceFailure:
            if removed:
                self.list_memberships.restore(removed)
            raise
        if removed:
            logger.info(
                "removed list memberships",
                extra={"kind": owner.kind, "record_id": record_id, "count": len(removed)},
            )
        return deleted

    def get_contacts_by_list(self, list_id: int) -> List[Contact]:
        contact_ids = {m.contact_id for m in self.list_memberships.find(lambda m: m.list_id == list_id)}
        return self.contacts.find(lambda contact: contact.id in contact_ids)

    def get_lists_by_contact(self, contact_id: int) -> List[MailingList]:
        list_ids = {m.list_id for m in self.list_memberships.find(lambda m: m.contact_id == contact_id)}
        return self.lists.find(lambda mailing_list: mailing_list.id in list_ids)

    # ------------------------------------------------------------ templates / domains

    def get_templates_by_category(self, category: str) -> List[Template]:
        return self.templates.find(lambda template: template.category == category)

    def get_domain_by_name(self, name: str) -> Optional[Domain]:
        wanted = (name or "").strip().lower()
        return self.domains.first(lambda domain: domain.name.lower() == wanted)
