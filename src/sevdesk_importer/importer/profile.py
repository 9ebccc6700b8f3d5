"""
Client profile (the account owner's own identity).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .contacts import ref_id


@dataclass(frozen=True)
class ClientProfile:
    """The sevDesk account owner.

    Used as the "self" identity that issuer matching must exclude, and as
    context for accounting type estimation.
    """

    id: str
    name: Optional[str] = None
    bank_iban: Optional[str] = None
    address_country: Optional[str] = None
    form_of_company: Optional[str] = None
    chart_of_accounts: Optional[str] = None

    @classmethod
    def from_api_response(cls, data: dict) -> "ClientProfile":
        """Create from a sevDesk SevClient object."""
        return cls(
            id=str(data["id"]),
            name=data.get("name") or None,
            bank_iban=data.get("bankIban") or None,
            address_country=ref_id(data.get("addressCountry")),
            form_of_company=ref_id(data.get("formOfCompany")),
            chart_of_accounts=data.get("chartOfAccounts") or None,
        )
