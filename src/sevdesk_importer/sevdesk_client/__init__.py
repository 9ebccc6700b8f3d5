"""
sevDesk API Client.

Provides:
- Temp file upload and label extraction
- Paged contact listing and per-contact main address
- Client profile, accounting type estimation and voucher save
- Retry/backoff for transient network failures

Treats sevDesk errors as loud failures carrying the response body.
"""

from .client import SevdeskClient

__all__ = [
    "SevdeskClient",
]
