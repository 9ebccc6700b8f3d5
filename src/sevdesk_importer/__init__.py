"""
sevDesk voucher importer.

Uploads a scanned financial document to sevDesk, reads back the extracted
fields, resolves which known contact issued it, estimates the bookkeeping
account for the line item and saves the result as a draft voucher.
"""

__version__ = "0.1.0"
