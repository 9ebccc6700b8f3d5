"""
sevDesk API client implementation.
"""

import json
import logging
import mimetypes
from pathlib import Path
from typing import Any, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import DEFAULT_BASE_URL
from ..errors import (
    AddressLoadFailed,
    AuthenticationError,
    ClassificationFailed,
    ClientProfileLoadFailed,
    ContactLoadFailed,
    ExtractionFailed,
    SaveFailed,
    SevdeskAPIError,
    SevdeskConnectionError,
    UploadFailed,
    UpstreamError,
)

logger = logging.getLogger(__name__)


class _Secret:
    """Opaque holder for the API token.

    Has no __dict__ and never renders its value.
    """

    __slots__ = ("_value",)

    def __init__(self, value: str):
        self._value = value

    def reveal(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return "_Secret('***')"

    __str__ = __repr__


def _dump(payload: Any) -> str:
    try:
        return json.dumps(payload)
    except (TypeError, ValueError):
        return repr(payload)


class SevdeskClient:
    """
    Client for the sevDesk API.

    Features:
    - Temp file upload and extraction (voucher factory)
    - Paged contact listing and contact addresses
    - Client profile, accounting type estimation, voucher save
    - Automatic retry with backoff for transient failures
    """

    DEFAULT_TIMEOUT = 30

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = 3,
        backoff_factor: float = 0.5,
    ):
        """
        Initialize sevDesk client.

        Args:
            token: sevDesk API token
            base_url: API base URL (e.g., "https://my.sevdesk.de/api/v1")
            timeout: Request timeout in seconds
            max_retries: Maximum retry attempts for transient failures
            backoff_factor: Backoff factor for retries
        """
        if not token:
            raise ValueError("No API token provided; missing parameter 'token'")

        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._token = _Secret(token)

        # The token is added per request, never to the session headers
        self.session = requests.Session()
        self.session.headers.update({
            "Accept": "application/json",
            "Pragma": "no-cache",
            "Cache-Control": "no-cache",
        })

        # POSTs (upload, estimate, save) are sent once. When retries run out
        # the last response is returned so it maps to SevdeskAPIError.
        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET"],
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def __repr__(self) -> str:
        return f"SevdeskClient(base_url={self.base_url!r})"

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": self._token.reveal()}

    def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict] = None,
        json_data: Optional[dict] = None,
        form_data: Optional[dict] = None,
        files: Optional[dict] = None,
        cft: Optional[str] = None,
    ) -> dict:
        """Make an API request with error handling and return the decoded JSON body."""
        url = f"{self.base_url}{endpoint}"
        query = dict(params or {})
        if cft:
            query["cft"] = cft

        logger.debug(f"API Request: {method} {url}")

        try:
            response = self.session.request(
                method=method,
                url=url,
                params=query,
                json=json_data,
                data=form_data,
                files=files,
                headers=self._auth_headers(),
                timeout=self.timeout,
            )
        except requests.exceptions.ConnectionError as e:
            logger.error(f"Connection error to {url}")
            raise SevdeskConnectionError(f"Failed to connect to sevDesk at {self.base_url}: {e}") from e
        except requests.exceptions.Timeout as e:
            logger.error(f"Timeout for {url}")
            raise SevdeskConnectionError(f"Request to sevDesk timed out: {e}") from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Request error for {url}")
            raise UpstreamError(f"Request failed: {e}") from e

        logger.debug(f"Response status: {response.status_code}")

        if not response.ok:
            error_body = response.text
            message = response.reason
            try:
                error_json = response.json()
                error = error_json.get("error") if isinstance(error_json, dict) else None
                if isinstance(error, dict) and error.get("message"):
                    message = error["message"]
            except ValueError:
                pass

            logger.error(f"API Error {response.status_code}: {message}")

            if response.status_code == 401:
                raise AuthenticationError(response.status_code, message, error_body)
            raise SevdeskAPIError(response.status_code, message, error_body)

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(
                f"Response from {endpoint} is not valid JSON", response.text
            ) from e

    def upload_temp_file(self, file_path: Path, cft: Optional[str] = None) -> str:
        """
        Upload a local file to the voucher factory.

        Returns:
            Remote file name used by the extraction and save calls
        """
        file_path = Path(file_path)
        content_type = mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"

        with open(file_path, "rb") as fh:
            res = self._request(
                "POST",
                "/Voucher/Factory/uploadTempFile",
                files={"file": (file_path.name, fh, content_type)},
                cft=cft,
            )

        objects = res.get("objects") if isinstance(res, dict) else None
        if not isinstance(objects, dict) or not objects.get("filename"):
            raise UploadFailed(
                f"Failed to extract filename from response: {_dump(res)}", _dump(res)
            )
        return objects["filename"]

    def extract_thumb(self, remote_filename: str, cft: Optional[str] = None) -> dict:
        """
        Run OCR/label extraction on an uploaded file.

        Returns:
            The raw response; objects.extractions is guaranteed to be a list
        """
        res = self._request(
            "GET",
            "/Voucher/Factory/extractThumb",
            params={"fileName": remote_filename},
            cft=cft,
        )

        objects = res.get("objects") if isinstance(res, dict) else None
        if not isinstance(objects, dict) or not isinstance(objects.get("extractions"), list):
            raise ExtractionFailed(
                f"Failed to extract information from response: {_dump(res)}", _dump(res)
            )
        return res

    def get_client_profile(self, cft: Optional[str] = None) -> dict:
        """Get the account owner's (SevClient) profile."""
        res = self._request("GET", "/SevClient", cft=cft)

        objects = res.get("objects") if isinstance(res, dict) else None
        profile = objects[0] if isinstance(objects, list) and objects else None
        if not isinstance(profile, dict) or profile.get("id") is None:
            raise ClientProfileLoadFailed(
                f"Failed to get client profile from response: {_dump(res)}", _dump(res)
            )
        return profile

    def list_contacts(self, limit: int, offset: int, cft: Optional[str] = None) -> list[dict]:
        """
        Get one page of contacts, ascending by creation order.

        Ordering by id is not stable upstream and is never used.
        """
        res = self._request(
            "GET",
            "/Contact",
            params={
                "depth": 1,
                "limit": limit,
                "offset": offset,
                "orderBy[0][field]": "create",
                "orderBy[0][dir]": "asc",
            },
            cft=cft,
        )

        objects = res.get("objects") if isinstance(res, dict) else None
        if not isinstance(objects, list):
            raise ContactLoadFailed(
                f"Failed to get contacts from response: {_dump(res)}", _dump(res)
            )
        return objects

    def get_contact_address(self, contact_id: str, cft: Optional[str] = None) -> dict:
        """Get a contact's main address."""
        res = self._request("GET", f"/Contact/{contact_id}/getMainAddress", cft=cft)

        objects = res.get("objects") if isinstance(res, dict) else None
        if isinstance(objects, list) and objects:
            objects = objects[0]
        if not isinstance(objects, dict):
            raise AddressLoadFailed(
                f"Failed to get address of contact {contact_id} from response: {_dump(res)}",
                _dump(res),
            )
        return objects

    def estimate_accounting_type(self, payload: dict, cft: Optional[str] = None) -> dict:
        """
        Ask sevDesk for the accounting type of a voucher position.

        Returns:
            The estimation object (always has an "id")
        """
        res = self._request(
            "POST",
            "/Voucher/Factory/estimateAccountingType",
            json_data=payload,
            cft=cft,
        )

        objects = res.get("objects") if isinstance(res, dict) else None
        if not isinstance(objects, dict) or objects.get("id") is None:
            raise ClassificationFailed(
                f"Failed to extract accounting type from response: {_dump(res)}", _dump(res)
            )
        return objects

    def save_voucher(self, form_data: dict, cft: Optional[str] = None) -> str:
        """
        Save a voucher built from an uploaded file.

        Returns:
            The persisted document id
        """
        res = self._request(
            "POST",
            "/Voucher/Factory/saveVoucher",
            form_data=form_data,
            cft=cft,
        )

        objects = res.get("objects") if isinstance(res, dict) else None
        document = objects.get("document") if isinstance(objects, dict) else None
        if not isinstance(document, dict) or not document.get("id"):
            raise SaveFailed(
                f"Failed to extract document from response: {_dump(res)}", _dump(res)
            )
        return str(document["id"])
