"""
Exception hierarchy for the voucher importer.

Local input problems raise ValidationError before any network activity.
Everything an external sevDesk call reports as failed or malformed is an
UpstreamError and is propagated to the caller with the response body attached.
"""

from typing import Optional


class SevdeskImporterError(Exception):
    """Base exception for all importer errors."""

    pass


class ValidationError(SevdeskImporterError):
    """Missing or invalid local input."""

    pass


class ReuseError(SevdeskImporterError):
    """A single-use importer was invoked a second time."""

    pass


class UpstreamError(SevdeskImporterError):
    """An external collaborator returned a failed or malformed response."""

    def __init__(self, message: str, response_body: Optional[str] = None):
        self.message = message
        self.response_body = response_body
        super().__init__(message)


class SevdeskConnectionError(UpstreamError):
    """Failed to connect to sevDesk, or the request timed out."""

    pass


class SevdeskAPIError(UpstreamError):
    """API returned an error response."""

    def __init__(self, status_code: int, message: str, response_body: Optional[str] = None):
        self.status_code = status_code
        super().__init__(f"sevDesk API error {status_code}: {message}", response_body)


class AuthenticationError(SevdeskAPIError):
    """The API token was rejected."""

    pass


class UploadFailed(UpstreamError):
    pass


class ExtractionFailed(UpstreamError):
    pass


class MalformedExtractionResponse(ExtractionFailed):
    """The extraction payload has no usable extraction list."""

    pass


class ClientProfileLoadFailed(UpstreamError):
    pass


class ContactLoadFailed(UpstreamError):
    pass


class AddressLoadFailed(UpstreamError):
    pass


class ClassificationFailed(UpstreamError):
    pass


class SaveFailed(UpstreamError):
    pass
