"""
Voucher import pipeline.

import_local_file() runs strictly sequential steps, each of which either
returns its result or raises:

    validate file -> upload -> extract -> normalize -> client profile
    -> contact directory -> resolve issuer -> issuer address
    -> estimate accounting type -> save voucher

An importer is single-use. The API token is handed to the sevDesk client and
is not kept on the importer.
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Optional, Union

from ..cache import CacheBackend, get_default_cache
from ..config import Config
from ..errors import (
    AddressLoadFailed,
    AuthenticationError,
    ReuseError,
    SevdeskAPIError,
    ValidationError,
)
from ..sevdesk_client import SevdeskClient
from .classification import ClassificationEstimator, ClassificationResult
from .contacts import Address, AddressCache, ContactDirectory, ContactRecord
from .extractions import (
    CREDITORNAME,
    IBAN,
    INVOICEDATE,
    INVOICENUMBER,
    TAXRATE,
    ExtractionSet,
    normalize_extractions,
)
from .profile import ClientProfile
from .resolver import IssuerResolver, MatchCandidate

logger = logging.getLogger(__name__)


class _CorrelationAdapter(logging.LoggerAdapter):
    """Prefixes log lines with the import's correlation token."""

    def process(self, msg, kwargs):
        return f"[{self.extra['cft']}] {msg}", kwargs


@dataclass
class ImportResult:
    """Outcome of one successful import."""

    document_id: str
    remote_filename: str
    correlation_id: str
    extractions: ExtractionSet
    candidates: list[MatchCandidate] = field(default_factory=list)
    classification: Optional[ClassificationResult] = None

    @property
    def issuer(self) -> Optional[ContactRecord]:
        """The chosen issuer: always the first candidate."""
        return self.candidates[0].contact if self.candidates else None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "document_id": self.document_id,
            "remote_filename": self.remote_filename,
            "correlation_id": self.correlation_id,
            "extractions": self.extractions.to_dict(),
            "candidates": [c.to_dict() for c in self.candidates],
            "classification": self.classification.to_dict() if self.classification else None,
        }


class VoucherImporter:
    """
    Imports one local document into sevDesk as a draft voucher.

    Features:
    - Issuer resolution against the client's contacts (name, IBAN, first word)
    - Accounting type estimation for the resolved issuer
    - Contact and address lookups shared across importers via an injected cache
    """

    def __init__(
        self,
        api_token: Optional[str] = None,
        config: Optional[Config] = None,
        cache: Optional[CacheBackend] = None,
        client: Optional[SevdeskClient] = None,
    ):
        """
        Initialize importer.

        Args:
            api_token: sevDesk API token (ignored when client is given)
            config: Application configuration (defaults apply when omitted)
            cache: Shared contact/address cache (process-wide default when omitted)
            client: Pre-built API client
        """
        config = config or Config()

        if client is None:
            if not api_token:
                raise ValidationError("No API token provided; missing parameter 'api_token'")
            sevdesk = config.sevdesk
            client = SevdeskClient(
                token=api_token,
                base_url=sevdesk.base_url,
                timeout=sevdesk.timeout_seconds,
                max_retries=sevdesk.max_retries,
                backoff_factor=sevdesk.backoff_factor,
            )

        # Only the non-secret parts of the config are kept
        self.cache_settings = config.cache
        self.voucher_defaults = config.voucher
        self.client = client
        self.cache = cache if cache is not None else get_default_cache()
        self.resolver = IssuerResolver()
        self.cft: Optional[str] = None
        self._client_profile: Optional[ClientProfile] = None
        self._locked = False
        self._lock = threading.Lock()
        self._log: logging.LoggerAdapter = _CorrelationAdapter(logger, {"cft": "-"})

    def __repr__(self) -> str:
        return f"VoucherImporter(base_url={self.client.base_url!r}, used={self._locked})"

    @property
    def used(self) -> bool:
        return self._locked

    def _acquire(self) -> None:
        with self._lock:
            if self._locked:
                raise ReuseError("VoucherImporter object already used; the object cannot be reused")
            self._locked = True

    def import_local_file(self, file_path: Union[str, Path, None]) -> ImportResult:
        """
        Import a local file as a draft voucher.

        Args:
            file_path: Path to the local file to be imported

        Returns:
            ImportResult with the saved document id, issuer candidates and
            accounting type

        Raises:
            ReuseError: If this importer has been used before
            ValidationError: If the file is missing or not a regular file
            UpstreamError: If any sevDesk call fails or returns a malformed response
        """
        self._acquire()

        self.cft = uuid.uuid4().hex
        self._log = _CorrelationAdapter(logger, {"cft": self.cft})

        path = self._check_file(file_path)

        self._log.debug(f"Uploading file: {path} ...")
        remote_filename = self.client.upload_temp_file(path, cft=self.cft)
        self._log.debug(f"Successfully uploaded as {remote_filename}")

        self._log.debug("Extracting information...")
        raw_extraction = self.client.extract_thumb(remote_filename, cft=self.cft)
        extractions = normalize_extractions(raw_extraction)
        self._log.debug(f"Successfully extracted information: {extractions.describe()}")

        profile = self.get_client_profile()
        directory = ContactDirectory(
            self.client,
            profile.id,
            self.cache,
            ttl=self.cache_settings.ttl_seconds,
            page_size=self.cache_settings.contact_page_size,
            cft=self.cft,
        )
        contacts = directory.load_all()

        candidates = self.resolver.resolve_issuer(extractions, contacts, profile)

        classification: Optional[ClassificationResult] = None
        if candidates:
            issuer = candidates[0].contact
            address = self._load_issuer_address(issuer, profile)
            estimator = ClassificationEstimator(
                self.client,
                credit_debit=self.voucher_defaults.credit_debit,
                cft=self.cft,
            )
            classification = estimator.estimate(issuer, extractions, profile, address)

        self._log.debug("Saving voucher...")
        form = self.build_voucher_form(
            extractions,
            remote_filename,
            raw_extraction,
            candidates[0].contact if candidates else None,
            classification,
        )
        document_id = self.client.save_voucher(form, cft=self.cft)
        self._log.info(f"Successfully saved voucher: {document_id}")

        return ImportResult(
            document_id=document_id,
            remote_filename=remote_filename,
            correlation_id=self.cft,
            extractions=extractions,
            candidates=candidates,
            classification=classification,
        )

    def _check_file(self, file_path: Union[str, Path, None]) -> Path:
        self._log.debug(f"Checking file: {file_path} ...")

        if not file_path:
            raise ValidationError("No file provided; missing parameter 'file_path'")

        path = Path(file_path)
        if not path.exists():
            raise ValidationError(f"File does not exist: {path}")
        if not path.is_file():
            raise ValidationError(f"Path exists but is not a file: {path}")

        return path

    def get_client_profile(self) -> ClientProfile:
        """Client profile, fetched once per importer."""
        if self._client_profile is None:
            data = self.client.get_client_profile(cft=self.cft)
            self._client_profile = ClientProfile.from_api_response(data)
            self._log.debug(f"Loaded client profile: {self._client_profile.name} (#{self._client_profile.id})")
        return self._client_profile

    def _load_issuer_address(self, issuer: ContactRecord, profile: ClientProfile) -> Optional[Address]:
        """Issuer's main address; a missing or rejected address degrades to None."""
        addresses = AddressCache(
            self.client,
            profile.id,
            self.cache,
            ttl=self.cache_settings.ttl_seconds,
            cft=self.cft,
        )
        try:
            return addresses.load_address(issuer.id)
        except AuthenticationError:
            raise
        except (AddressLoadFailed, SevdeskAPIError) as e:
            self._log.warning(f"Could not load address of contact #{issuer.id}; country unknown: {e}")
            return None

    def build_voucher_form(
        self,
        extractions: ExtractionSet,
        remote_filename: str,
        raw_extraction: dict,
        issuer: Optional[ContactRecord] = None,
        classification: Optional[ClassificationResult] = None,
    ) -> dict[str, str]:
        """Form fields for the voucher factory save call."""
        defaults = self.voucher_defaults
        net_amount = extractions.net_amount()

        form = {
            "voucher[voucherDate]": extractions.value(INVOICEDATE) or date.today().isoformat(),
            "voucher[description]": extractions.value(INVOICENUMBER, ""),
            "voucher[resultDisdar]": json.dumps(raw_extraction),
            "voucher[status]": defaults.status,
            "voucher[taxType]": "default",
            "voucher[creditDebit]": defaults.credit_debit,
            "voucher[voucherType]": "VOU",
            "voucher[iban]": extractions.value(IBAN, "null"),
            "voucher[tip]": "0",
            "voucher[mileageRate]": "0",
            "voucher[selectedForPaymentFile]": "0",
            "voucher[objectName]": "Voucher",
            "voucher[mapAll]": "true",
            "voucherPosSave[0][taxRate]": extractions.value(TAXRATE) or str(defaults.default_tax_rate),
            # The position sum defaults to zero, unlike the estimation payload
            "voucherPosSave[0][sum]": str(net_amount) if net_amount is not None else "0",
            "voucherPosSave[0][objectName]": "VoucherPos",
            "voucherPosSave[0][mapAll]": "true",
            "filename": remote_filename,
            "existenceCheck": "true",
        }

        if issuer is not None:
            form["voucher[supplier][id]"] = issuer.id
            form["voucher[supplier][objectName]"] = "Contact"
        else:
            form["voucher[supplierName]"] = extractions.value(CREDITORNAME) or "???"

        if classification is not None:
            form["voucherPosSave[0][accountingType][id]"] = classification.id
            form["voucherPosSave[0][accountingType][objectName]"] = "AccountingType"

        return form
