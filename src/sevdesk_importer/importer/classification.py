"""
Accounting type estimation for the voucher position.

Builds an estimation request from the resolved issuer, its address, the
client profile and the extracted amounts, and reduces the response to a
ClassificationResult.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional

from .contacts import Address, ContactRecord
from .extractions import ExtractionSet
from .profile import ClientProfile

if TYPE_CHECKING:
    from ..sevdesk_client import SevdeskClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassificationResult:
    """Estimated accounting type of the voucher position.

    id is what gets persisted; chart_code is the code of the client's own
    chart of accounts (e.g. SKR03) when the estimation returned one.
    """

    id: str
    name: Optional[str] = None
    chart_code: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {"id": self.id, "name": self.name, "chart_code": self.chart_code}


def _amount(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)


def _chart_code(objects: dict, chart_of_accounts: Optional[str]) -> Optional[str]:
    """Chart-specific code, if the chart key follows the generic fields in the response."""
    if not chart_of_accounts:
        return None
    keys = list(objects.keys())
    if chart_of_accounts not in keys or keys.index(chart_of_accounts) <= 0:
        return None
    code = objects[chart_of_accounts]
    return None if code in (None, "") else str(code)


class ClassificationEstimator:
    """Requests a bookkeeping classification for the winning issuer."""

    def __init__(
        self,
        client: SevdeskClient,
        credit_debit: str = "C",
        cft: Optional[str] = None,
    ) -> None:
        self.client = client
        self.credit_debit = credit_debit
        self.cft = cft

    def build_payload(
        self,
        issuer: ContactRecord,
        extractions: ExtractionSet,
        client_profile: ClientProfile,
        address: Optional[Address],
    ) -> dict[str, Any]:
        """
        Estimation request body.

        Net amount and tax rate stay None when not extracted or unparseable;
        they are not defaulted to zero here.
        """
        return {
            "client": {"id": client_profile.id, "objectName": "SevClient"},
            "clientCountry": client_profile.address_country,
            "formOfCompany": client_profile.form_of_company,
            "creditDebit": self.credit_debit,
            "netAmount": _amount(extractions.net_amount()),
            "taxRate": _amount(extractions.tax_rate()),
            "supplier": {"id": issuer.id, "objectName": "Contact"},
            "supplierName": issuer.name,
            "supplierCountry": address.country_id if address is not None else None,
        }

    def estimate(
        self,
        issuer: Optional[ContactRecord],
        extractions: ExtractionSet,
        client_profile: ClientProfile,
        address: Optional[Address],
    ) -> Optional[ClassificationResult]:
        """
        Estimate the accounting type for the issuer's voucher position.

        Returns:
            ClassificationResult, or None when there is no issuer

        Raises:
            ClassificationFailed: If the response lacks the estimation object
        """
        if issuer is None:
            return None

        payload = self.build_payload(issuer, extractions, client_profile, address)
        objects = self.client.estimate_accounting_type(payload, cft=self.cft)

        result = ClassificationResult(
            id=str(objects["id"]),
            name=objects.get("name"),
            chart_code=_chart_code(objects, client_profile.chart_of_accounts),
        )

        if result.chart_code is not None:
            logger.debug(
                f"Estimated accounting type #{result.id} ({result.name}), "
                f"{client_profile.chart_of_accounts} code {result.chart_code}"
            )
        else:
            logger.debug(f"Estimated accounting type #{result.id} ({result.name})")

        return result
