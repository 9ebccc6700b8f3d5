"""
Issuer resolution.

Turns the extracted creditor name and IBAN into an ordered list of candidate
contacts. The passes run in a fixed order and their results are concatenated
without re-ranking or de-duplication:

1. match_by_name(full creditor name)
2. match_by_bank_account(IBAN)
3. match_by_name(first word of the creditor name), only for multi-word names

The issuer is the first candidate, if any. Exact name matches come first
because pass 1 runs first and its exact sub-pass precedes the partial ones.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

from .contacts import ContactRecord
from .extractions import CREDITORNAME, IBAN, ExtractionSet
from .profile import ClientProfile

logger = logging.getLogger(__name__)

_IBAN_STRIP_RE = re.compile(r"[\t \-]")


class MatchMethod(str, Enum):
    """Predicate that produced a candidate."""

    BANK_ACCOUNT_EXACT = "bankAccountExact"
    NAME_EXACT = "nameExact"
    NAME_PARTIAL = "namePartial"
    NAME2_PARTIAL = "name2Partial"


@dataclass(frozen=True)
class MatchCandidate:
    """A contact together with the predicate that matched it."""

    contact: ContactRecord
    method: MatchMethod

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "contact_id": self.contact.id,
            "name": self.contact.name,
            "method": self.method.value,
        }


@dataclass(frozen=True)
class SelfExclusion:
    """A search value skipped because it identifies the client itself."""

    kind: str  # "name" or "bank_account"
    value: str


def normalize_iban(value: Optional[str]) -> str:
    """Remove tabs, spaces and dashes, and upper-case."""
    if not value:
        return ""
    return _IBAN_STRIP_RE.sub("", value).upper()


def first_token(name: str) -> Optional[str]:
    """First word of a multi-word name, or None for single-word names."""
    parts = name.split(maxsplit=1)
    if len(parts) < 2:
        return None
    return parts[0]


@dataclass
class IssuerResolver:
    """
    Multi-pass issuer matching against a contact directory snapshot.

    Search values come from OCR output and are matched as literals: they are
    regex-escaped before being compiled into a case-insensitive pattern.
    """

    exclusions: list[SelfExclusion] = field(default_factory=list)

    def resolve_issuer(
        self,
        extractions: ExtractionSet,
        directory: Sequence[ContactRecord],
        client_profile: ClientProfile,
    ) -> list[MatchCandidate]:
        """
        Run all applicable passes and concatenate their results in order.

        Never raises for missing fields; an empty list means the issuer is
        unresolved.
        """
        candidates: list[MatchCandidate] = []
        creditor_name = extractions.value(CREDITORNAME)
        iban = extractions.value(IBAN)

        if creditor_name is not None:
            candidates.extend(self.match_by_name(creditor_name, directory, client_profile))
        else:
            logger.debug("Skipping resolving issuer contact by name; name is not known")

        if iban is not None:
            candidates.extend(self.match_by_bank_account(iban, directory, client_profile))
        else:
            logger.debug("Skipping resolving issuer contact by bank account; IBAN is not known")

        if creditor_name is not None:
            token = first_token(creditor_name)
            if token is not None:
                candidates.extend(self.match_by_name(token, directory, client_profile))

        if candidates:
            top = candidates[0]
            logger.debug(
                f"Resolved issuer contact: {top.contact.name} (#{top.contact.id}) "
                f"via {top.method.value}, {len(candidates)} candidate(s)"
            )
        else:
            logger.debug("No issuer contact could be resolved")

        return candidates

    def match_by_name(
        self,
        name: str,
        directory: Sequence[ContactRecord],
        client_profile: ClientProfile,
    ) -> list[MatchCandidate]:
        """
        Exact name, then partial name, then partial secondary name.

        The partial pass re-includes exact matches on purpose.
        """
        logger.debug(f"Resolving issuer contact by name: {name} ...")

        if not name.strip():
            logger.debug("Skipping empty issuer name")
            return []

        if client_profile.name and name.casefold() == client_profile.name.casefold():
            logger.debug(f"Ignoring issuer name {name!r}; it is the client's own name")
            self.exclusions.append(SelfExclusion(kind="name", value=name))
            return []

        pattern = re.compile(re.escape(name), re.IGNORECASE)
        candidates: list[MatchCandidate] = []

        for contact in directory:
            if contact.name and pattern.fullmatch(contact.name):
                candidates.append(MatchCandidate(contact, MatchMethod.NAME_EXACT))

        for contact in directory:
            if contact.name and pattern.search(contact.name):
                candidates.append(MatchCandidate(contact, MatchMethod.NAME_PARTIAL))

        for contact in directory:
            if contact.name2 and pattern.search(contact.name2):
                candidates.append(MatchCandidate(contact, MatchMethod.NAME2_PARTIAL))

        if not candidates:
            logger.debug(f"No issuer contact was found by name: {name}")
        for c in candidates:
            logger.debug(f"Found issuer contact by name: {c.contact.name} (#{c.contact.id}, {c.method.value})")

        return candidates

    def match_by_bank_account(
        self,
        iban: str,
        directory: Sequence[ContactRecord],
        client_profile: ClientProfile,
    ) -> list[MatchCandidate]:
        """Exact match of the normalized IBAN against contact bank accounts."""
        logger.debug(f"Resolving issuer contact by bank account: {iban} ...")

        normalized = normalize_iban(iban)
        if not normalized:
            logger.debug("Skipping empty IBAN")
            return []

        if normalized == normalize_iban(client_profile.bank_iban):
            logger.debug("Ignoring IBAN; it is the client's own bank account")
            self.exclusions.append(SelfExclusion(kind="bank_account", value=normalized))
            return []

        candidates = [
            MatchCandidate(contact, MatchMethod.BANK_ACCOUNT_EXACT)
            for contact in directory
            if contact.bank_account and normalize_iban(contact.bank_account) == normalized
        ]

        if not candidates:
            logger.debug(f"No issuer contact was found by bank account: {normalized}")
        for c in candidates:
            logger.debug(f"Found issuer contact by bank account: {c.contact.name} (#{c.contact.id})")

        return candidates
