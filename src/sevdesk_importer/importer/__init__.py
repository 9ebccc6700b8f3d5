"""
Voucher importer core.

Provides:
- Extraction normalization (one best value per field type)
- Cached contact directory and address lookups
- Multi-pass issuer resolution
- Accounting type estimation
- The sequential import pipeline
"""

from .classification import ClassificationEstimator, ClassificationResult
from .contacts import Address, AddressCache, ContactDirectory, ContactRecord
from .extractions import ExtractedField, ExtractionSet, normalize_extractions
from .profile import ClientProfile
from .resolver import IssuerResolver, MatchCandidate, MatchMethod
from .voucher_importer import ImportResult, VoucherImporter

__all__ = [
    "Address",
    "AddressCache",
    "ClassificationEstimator",
    "ClassificationResult",
    "ClientProfile",
    "ContactDirectory",
    "ContactRecord",
    "ExtractedField",
    "ExtractionSet",
    "ImportResult",
    "IssuerResolver",
    "MatchCandidate",
    "MatchMethod",
    "VoucherImporter",
    "normalize_extractions",
]
