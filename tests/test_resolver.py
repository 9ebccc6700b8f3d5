"""Tests for multi-pass issuer resolution."""

from __future__ import annotations

import pytest

from sevdesk_importer.importer import ClientProfile, ContactRecord
from sevdesk_importer.importer.extractions import ExtractedField, ExtractionSet
from sevdesk_importer.importer.resolver import (
    IssuerResolver,
    MatchMethod,
    first_token,
    normalize_iban,
)


def _extractions(**values: str) -> ExtractionSet:
    return ExtractionSet(
        fields={t: ExtractedField(type=t, value=v, confidence=0.9) for t, v in values.items()}
    )


def _pairs(candidates) -> list[tuple[str, str]]:
    return [(c.contact.id, c.method.value) for c in candidates]


@pytest.fixture
def resolver() -> IssuerResolver:
    return IssuerResolver()


class TestHelpers:
    """Test IBAN normalization and name splitting."""

    def test_normalize_iban_strips_separators(self):
        assert normalize_iban("DE89 3704-0044\t0532 0130 00") == "DE89370400440532013000"

    def test_normalize_iban_empty(self):
        assert normalize_iban(None) == ""
        assert normalize_iban("") == ""

    def test_first_token(self):
        assert first_token("Acme Corp GmbH") == "Acme"
        assert first_token("Acme") is None
        assert first_token("  Acme  ") is None


class TestMatchByName:
    """Test the name matching sub-passes."""

    def test_exact_then_partial_then_name2(self, resolver, contacts, client_profile):
        """Exact matches come first and are repeated by the partial pass."""
        result = resolver.match_by_name("Acme Corp", contacts, client_profile)

        assert _pairs(result) == [
            ("11", "nameExact"),
            ("11", "namePartial"),
            ("12", "namePartial"),
        ]

    def test_case_insensitive(self, resolver, contacts, client_profile):
        result = resolver.match_by_name("acme corp", contacts, client_profile)

        assert result[0].contact.id == "11"
        assert result[0].method is MatchMethod.NAME_EXACT

    def test_secondary_name_partial(self, resolver, contacts, client_profile):
        """name2 substrings match with their own method."""
        result = resolver.match_by_name("Acme", contacts, client_profile)

        assert _pairs(result) == [
            ("11", "namePartial"),
            ("12", "namePartial"),
            ("12", "name2Partial"),
            ("13", "name2Partial"),
        ]

    def test_own_name_is_excluded(self, resolver, contacts, client_profile):
        """The client's own name never resolves to a contact."""
        result = resolver.match_by_name("myco", contacts, client_profile)

        assert result == []
        assert resolver.exclusions[0].kind == "name"
        assert resolver.exclusions[0].value == "myco"

    def test_pattern_characters_are_literal(self, resolver, client_profile):
        """Regex metacharacters in OCR text neither raise nor act as wildcards."""
        directory = (
            ContactRecord(id="1", name="A+B (Holding) [EU]"),
            ContactRecord(id="2", name="AAB Holding"),
        )

        result = resolver.match_by_name("A+B (Holding)", directory, client_profile)
        assert _pairs(result) == [("1", "namePartial")]

        assert resolver.match_by_name("Foo (", directory, client_profile) == []
        assert resolver.match_by_name(".*", directory, client_profile) == []

    def test_contacts_without_names_are_skipped(self, resolver, client_profile):
        directory = (ContactRecord(id="1"), ContactRecord(id="2", name="Acme"))

        assert _pairs(resolver.match_by_name("Acme", directory, client_profile)) == [
            ("2", "nameExact"),
            ("2", "namePartial"),
        ]

    def test_empty_name_matches_nothing(self, resolver, contacts, client_profile):
        assert resolver.match_by_name("   ", contacts, client_profile) == []


class TestMatchByBankAccount:
    """Test IBAN matching."""

    def test_normalized_exact_match(self, resolver, contacts, client_profile):
        result = resolver.match_by_bank_account("de89 3704 0044 0532 0130 00", contacts, client_profile)

        assert _pairs(result) == [("11", "bankAccountExact")]

    def test_contact_account_is_normalized(self, resolver, contacts, client_profile):
        result = resolver.match_by_bank_account("AT611904300234573201", contacts, client_profile)

        assert _pairs(result) == [("15", "bankAccountExact")]

    def test_own_iban_is_excluded(self, resolver, contacts, client_profile):
        """The client's own IBAN returns no candidates, even though contact 14 has it."""
        result = resolver.match_by_bank_account("DE02-1203-0000-0000-2020-51", contacts, client_profile)

        assert result == []
        assert resolver.exclusions[0].kind == "bank_account"

    def test_no_match(self, resolver, contacts, client_profile):
        assert resolver.match_by_bank_account("FR1420041010050500013M02606", contacts, client_profile) == []


class TestResolveIssuer:
    """Test pass ordering and skipping."""

    def test_exact_name_first(self, resolver, contacts, client_profile):
        """Acme Corp resolves as nameExact and MyCo is never a candidate."""
        result = resolver.resolve_issuer(_extractions(CREDITORNAME="Acme Corp"), contacts, client_profile)

        assert result[0].contact.id == "11"
        assert result[0].method is MatchMethod.NAME_EXACT
        assert all(c.contact.name != "MyCo" for c in result)

    def test_passes_run_in_order(self, resolver, contacts, client_profile):
        """Name, then IBAN, then first word; results concatenated as-is."""
        extractions = _extractions(
            CREDITORNAME="Acme Corp",
            IBAN="DE89 3704 0044 0532 0130 00",
        )
        result = resolver.resolve_issuer(extractions, contacts, client_profile)

        assert _pairs(result) == [
            # pass 1: "Acme Corp"
            ("11", "nameExact"),
            ("11", "namePartial"),
            ("12", "namePartial"),
            # pass 2: IBAN
            ("11", "bankAccountExact"),
            # pass 3: "Acme"
            ("11", "namePartial"),
            ("12", "namePartial"),
            ("12", "name2Partial"),
            ("13", "name2Partial"),
        ]

    def test_first_word_pass_duplicates(self, resolver, contacts, client_profile):
        """Multi-word names re-search by the first word without de-duplication."""
        result = resolver.resolve_issuer(_extractions(CREDITORNAME="Acme Corp GmbH"), contacts, client_profile)

        # No contact contains the full name, so everything comes from "Acme"
        assert _pairs(result) == [
            ("11", "namePartial"),
            ("12", "namePartial"),
            ("12", "name2Partial"),
            ("13", "name2Partial"),
        ]

    def test_duplicates_counted(self, resolver, contacts, client_profile):
        result = resolver.resolve_issuer(_extractions(CREDITORNAME="Acme Corporation"), contacts, client_profile)

        ids = [c.contact.id for c in result]
        assert ids.count("12") == 3

    def test_iban_only(self, resolver, contacts, client_profile):
        result = resolver.resolve_issuer(_extractions(IBAN="DE89370400440532013000"), contacts, client_profile)

        assert _pairs(result) == [("11", "bankAccountExact")]

    def test_single_word_name_skips_third_pass(self, resolver, contacts, client_profile):
        result = resolver.resolve_issuer(_extractions(CREDITORNAME="Globex"), contacts, client_profile)

        assert _pairs(result) == [("13", "nameExact"), ("13", "namePartial")]

    def test_nothing_extracted(self, resolver, contacts, client_profile):
        """Missing fields skip passes without error."""
        assert resolver.resolve_issuer(_extractions(), contacts, client_profile) == []

    def test_own_name_first_word(self, resolver, contacts):
        """Self-exclusion applies per call, including the first-word pass."""
        profile = ClientProfile(id="1", name="Acme")
        result = resolver.resolve_issuer(_extractions(CREDITORNAME="Acme Corp"), contacts, profile)

        assert _pairs(result) == [
            ("11", "nameExact"),
            ("11", "namePartial"),
            ("12", "namePartial"),
        ]
        assert [e.value for e in resolver.exclusions] == ["Acme"]

    def test_empty_directory(self, resolver, client_profile):
        extractions = _extractions(CREDITORNAME="Acme Corp", IBAN="DE89370400440532013000")
        assert resolver.resolve_issuer(extractions, (), client_profile) == []
