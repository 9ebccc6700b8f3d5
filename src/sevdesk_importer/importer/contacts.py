"""
Contact directory and address loading.

Both loaders read through the shared TTL cache:
- ContactDirectory caches the full, creation-ordered contact list of a client
- AddressCache caches the main address of a single contact
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

from ..cache import DEFAULT_TTL_SECONDS, CacheBackend, get_or_load
from ..errors import AddressLoadFailed, ContactLoadFailed

if TYPE_CHECKING:
    from ..sevdesk_client import SevdeskClient

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100


def ref_id(value: Any) -> Optional[str]:
    """Id of a nested {"id": ..., "objectName": ...} reference, or the scalar itself."""
    if isinstance(value, dict):
        value = value.get("id")
    return None if value is None else str(value)


@dataclass(frozen=True)
class ContactRecord:
    """A known business contact."""

    id: str
    name: Optional[str] = None
    name2: Optional[str] = None  # secondary/trade name
    bank_account: Optional[str] = None

    @classmethod
    def from_api_response(cls, data: dict) -> "ContactRecord":
        """Create from a sevDesk Contact object."""
        return cls(
            id=str(data["id"]),
            name=data.get("name") or None,
            name2=data.get("name2") or None,
            bank_account=data.get("bankAccount") or None,
        )


@dataclass(frozen=True)
class Address:
    """A contact's main address."""

    id: Optional[str] = None
    street: Optional[str] = None
    zip: Optional[str] = None
    city: Optional[str] = None
    country_id: Optional[str] = None

    @classmethod
    def from_api_response(cls, data: dict) -> "Address":
        """Create from a sevDesk ContactAddress object."""
        return cls(
            id=ref_id(data.get("id")),
            street=data.get("street"),
            zip=data.get("zip"),
            city=data.get("city"),
            country_id=ref_id(data.get("country")),
        )


class ContactDirectory:
    """
    Full contact set of one client account.

    The list is loaded at most once per instance. Across instances it is
    shared through the cache under (client_id, "contacts").
    """

    def __init__(
        self,
        client: SevdeskClient,
        client_id: str,
        cache: CacheBackend,
        ttl: float = DEFAULT_TTL_SECONDS,
        page_size: int = DEFAULT_PAGE_SIZE,
        cft: Optional[str] = None,
    ) -> None:
        self.client = client
        self.client_id = client_id
        self.cache = cache
        self.ttl = ttl
        self.page_size = page_size
        self.cft = cft
        self.from_cache = False
        self._contacts: Optional[tuple[ContactRecord, ...]] = None

    @property
    def cache_key(self) -> tuple[str, str]:
        return (self.client_id, "contacts")

    def load_all(self) -> tuple[ContactRecord, ...]:
        """
        Get all contacts, ascending by creation order.

        Raises:
            ContactLoadFailed: If any page is not a list of contacts
        """
        if self._contacts is None:
            contacts, from_cache = get_or_load(self.cache, self.cache_key, self._fetch_all, self.ttl)
            self._contacts = contacts
            self.from_cache = from_cache
            if from_cache:
                logger.debug(f"Loaded {len(contacts)} contacts of client {self.client_id} from cache")
        return self._contacts

    def _fetch_all(self) -> tuple[ContactRecord, ...]:
        contacts: list[ContactRecord] = []
        offset = 0

        while True:
            page = self.client.list_contacts(limit=self.page_size, offset=offset, cft=self.cft)
            for item in page:
                if not isinstance(item, dict) or item.get("id") is None:
                    raise ContactLoadFailed(f"Invalid contact in page at offset {offset}: {item!r}")
                contacts.append(ContactRecord.from_api_response(item))

            # A short (or empty) page is the last one
            if len(page) < self.page_size:
                break
            offset += len(page)

        logger.debug(f"Loaded {len(contacts)} contacts of client {self.client_id}")
        return tuple(contacts)


class AddressCache:
    """Main address lookup, cached under (client_id, "address", contact_id)."""

    def __init__(
        self,
        client: SevdeskClient,
        client_id: str,
        cache: CacheBackend,
        ttl: float = DEFAULT_TTL_SECONDS,
        cft: Optional[str] = None,
    ) -> None:
        self.client = client
        self.client_id = client_id
        self.cache = cache
        self.ttl = ttl
        self.cft = cft

    def load_address(self, contact_id: str) -> Address:
        """
        Get a contact's main address.

        Raises:
            AddressLoadFailed: If the response has no address payload
        """
        key = (self.client_id, "address", str(contact_id))

        def fetch() -> Address:
            data = self.client.get_contact_address(contact_id, cft=self.cft)
            if not data:
                raise AddressLoadFailed(f"Contact {contact_id} has no address")
            return Address.from_api_response(data)

        address, from_cache = get_or_load(self.cache, key, fetch, self.ttl)
        if from_cache:
            logger.debug(f"Loaded address of contact {contact_id} from cache")
        return address
