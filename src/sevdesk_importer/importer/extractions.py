"""
Extraction normalization.

The extraction service returns groups of labeled candidates, several of which
may carry the same field type. normalize_extractions() keeps exactly one
candidate per type: the one with the strictly highest confidence, first seen
on ties.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Iterator, Optional

from ..errors import MalformedExtractionResponse

logger = logging.getLogger(__name__)

CREDITORNAME = "CREDITORNAME"
IBAN = "IBAN"
INVOICEDATE = "INVOICEDATE"
INVOICENUMBER = "INVOICENUMBER"
TAXRATE = "TAXRATE"
NETAMOUNT = "NETAMOUNT"

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


@dataclass(frozen=True)
class ExtractedField:
    """A single labeled OCR/classification output."""

    type: str
    value: str
    confidence: float


@dataclass(frozen=True)
class ExtractionSet:
    """Best extraction per field type for one document."""

    fields: dict[str, ExtractedField] = field(default_factory=dict)

    def __contains__(self, field_type: str) -> bool:
        return field_type in self.fields

    def __iter__(self) -> Iterator[str]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    def get(self, field_type: str) -> Optional[ExtractedField]:
        return self.fields.get(field_type)

    def value(self, field_type: str, default: Optional[str] = None) -> Optional[str]:
        """Value of a field type, or default if it was not extracted."""
        extracted = self.fields.get(field_type)
        return extracted.value if extracted is not None else default

    def net_amount(self) -> Optional[Decimal]:
        """
        Net amount in currency units.

        NETAMOUNT is extracted as an integer number of cents; only the leading
        integer part of the value is used. Returns None when the field is
        missing or has no leading integer.
        """
        raw = self.value(NETAMOUNT)
        if raw is None:
            return None
        match = _LEADING_INT_RE.match(raw)
        if not match:
            return None
        return Decimal(int(match.group(1))) / 100

    def tax_rate(self) -> Optional[Decimal]:
        """Tax rate as a percentage, or None when missing or unparseable."""
        raw = self.value(TAXRATE)
        if raw is None:
            return None
        try:
            rate = Decimal(raw.strip().rstrip("%").strip().replace(",", "."))
        except InvalidOperation:
            return None
        return rate if rate.is_finite() else None

    def to_dict(self) -> dict[str, dict[str, Any]]:
        """Convert to dictionary for JSON serialization."""
        return {
            t: {"value": f.value, "confidence": f.confidence}
            for t, f in self.fields.items()
        }

    def describe(self) -> str:
        return ", ".join(f'{t}="{f.value}"' for t, f in self.fields.items())


def _confidence(raw: Any) -> float:
    try:
        return float(raw)
    except (TypeError, ValueError):
        return 0.0


def normalize_extractions(groups: Any) -> ExtractionSet:
    """
    Collapse raw extraction groups into one best value per field type.

    Args:
        groups: Either the list of extraction groups, or the raw extraction
            response holding it under objects.extractions. Groups without a
            "labels" list are ignored.

    Returns:
        ExtractionSet with at most one entry per type

    Raises:
        MalformedExtractionResponse: If no extraction list is present at all
    """
    if isinstance(groups, dict):
        objects = groups.get("objects")
        groups = objects.get("extractions") if isinstance(objects, dict) else None

    if not isinstance(groups, list):
        raise MalformedExtractionResponse(
            f"Extraction groups missing or not a list: {type(groups).__name__}"
        )

    best: dict[str, ExtractedField] = {}

    for group in groups:
        labels = group.get("labels") if isinstance(group, dict) else None
        if not isinstance(labels, list):
            continue

        for label in labels:
            if not isinstance(label, dict) or not label.get("type"):
                continue

            candidate = ExtractedField(
                type=str(label["type"]),
                value="" if label.get("value") is None else str(label["value"]),
                confidence=_confidence(label.get("confidence")),
            )
            current = best.get(candidate.type)
            if current is None or candidate.confidence > current.confidence:
                best[candidate.type] = candidate

    result = ExtractionSet(fields=best)
    logger.debug(f"Normalized extractions: {result.describe()}")
    return result
