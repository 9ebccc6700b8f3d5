"""Test fixtures and utilities."""

from pathlib import Path

import pytest
import responses

from sevdesk_importer.cache import MemoryTTLCache, reset_default_cache
from sevdesk_importer.importer import ClientProfile, ContactRecord
from sevdesk_importer.sevdesk_client import SevdeskClient

BASE_URL = "https://sevdesk.test/api/v1"
TOKEN = "s3cr3t-t0ken-abcdef0123456789"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# sevDesk SevClient object (trimmed)
SAMPLE_SEV_CLIENT = {
    "id": "9001",
    "objectName": "SevClient",
    "name": "MyCo",
    "bankIban": "DE02 1203 0000 0000 2020 51",
    "addressCountry": {"id": "1", "objectName": "StaticCountry"},
    "formOfCompany": {"id": "4", "objectName": "FormOfCompany"},
    "chartOfAccounts": "skr03",
}

# Contact objects in creation order
SAMPLE_CONTACTS = [
    {"id": "11", "objectName": "Contact", "name": "Acme Corp", "name2": None, "bankAccount": "DE89370400440532013000"},
    {"id": "12", "objectName": "Contact", "name": "Acme Corporation Ltd", "name2": "Acme UK"},
    {"id": "13", "objectName": "Contact", "name": "Globex", "name2": "formerly Acme Trading"},
    {"id": "14", "objectName": "Contact", "name": "MyCo", "bankAccount": "DE02120300000000202051"},
    {"id": "15", "objectName": "Contact", "name": "Initech GmbH", "bankAccount": "AT61 1904 3002 3457 3201"},
]

# Raw extractThumb response
SAMPLE_EXTRACTION_RESPONSE = {
    "objects": {
        "extractions": [
            {
                "labels": [
                    {"type": "CREDITORNAME", "value": "Acme Corp", "confidence": 0.91},
                    {"type": "INVOICEDATE", "value": "2024-11-20", "confidence": 0.88},
                ]
            },
            {
                "labels": [
                    {"type": "CREDITORNAME", "value": "ACME", "confidence": 0.40},
                    {"type": "IBAN", "value": "DE89 3704 0044 0532 0130 00", "confidence": 0.95},
                    {"type": "NETAMOUNT", "value": "170000", "confidence": 0.80},
                    {"type": "TAXRATE", "value": "19", "confidence": 0.77},
                    {"type": "INVOICENUMBER", "value": "INV-2024-001234", "confidence": 0.70},
                ]
            },
            {"box": [0, 0, 10, 10]},
        ]
    }
}


@pytest.fixture(autouse=True)
def _fresh_default_cache():
    """Isolate the process-wide cache between tests."""
    reset_default_cache()
    yield
    reset_default_cache()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> MemoryTTLCache:
    return MemoryTTLCache(clock=clock)


@pytest.fixture
def client() -> SevdeskClient:
    return SevdeskClient(token=TOKEN, base_url=BASE_URL, max_retries=0)


@pytest.fixture
def client_profile() -> ClientProfile:
    return ClientProfile.from_api_response(SAMPLE_SEV_CLIENT)


@pytest.fixture
def contacts() -> tuple[ContactRecord, ...]:
    return tuple(ContactRecord.from_api_response(c) for c in SAMPLE_CONTACTS)


@pytest.fixture
def sample_pdf(tmp_path) -> Path:
    """A small file standing in for a scanned invoice."""
    path = tmp_path / "R1001.pdf"
    path.write_bytes(b"%PDF-1.4\n% test document\n")
    return path


def mock_sevdesk(
    extraction=SAMPLE_EXTRACTION_RESPONSE,
    contacts=SAMPLE_CONTACTS,
    address_status=200,
    estimate=None,
):
    """Register responses for every endpoint of one successful import."""
    responses.add(
        responses.POST,
        f"{BASE_URL}/Voucher/Factory/uploadTempFile",
        json={"objects": {"filename": "a1b2c3.pdf"}},
    )
    responses.add(responses.GET, f"{BASE_URL}/Voucher/Factory/extractThumb", json=extraction)
    responses.add(responses.GET, f"{BASE_URL}/SevClient", json={"objects": [SAMPLE_SEV_CLIENT]})
    responses.add(responses.GET, f"{BASE_URL}/Contact", json={"objects": contacts})
    responses.add(
        responses.GET,
        f"{BASE_URL}/Contact/11/getMainAddress",
        json={"objects": {"id": "5", "country": {"id": "1", "objectName": "StaticCountry"}}},
        status=address_status,
    )
    responses.add(
        responses.POST,
        f"{BASE_URL}/Voucher/Factory/estimateAccountingType",
        json=estimate or {"objects": {"id": "26", "name": "Bürobedarf", "skr03": "4930"}},
    )
    responses.add(
        responses.POST,
        f"{BASE_URL}/Voucher/Factory/saveVoucher",
        json={"objects": {"document": {"id": 4711}}},
    )
