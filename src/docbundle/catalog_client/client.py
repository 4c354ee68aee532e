"""
Document catalog API client implementation.
"""

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Optional

import requests

from ..errors import DocbundleError
from ..schemas.document import DocumentRecord, MalformedRecordError
from ..schemas.search_filter import SearchFilter, format_wire_date
from ..schemas.upload import UploadEntry

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://apis.allsoft.co/api/documentManagement/"

# Header the service reads the bearer token from
TOKEN_HEADER = "token"

# Pagination and free-text defaults expected by searchDocumentEntry.
# Protocol constants: not user-configurable.
SEARCH_START = 0
SEARCH_LENGTH = 10

# Tag suggestions are only requested once the term is this long
MIN_TAG_TERM_LENGTH = 2

# Generic per-endpoint messages used when an error response has no body
ENDPOINT_ERRORS = {
    "generateOTP": "Failed to generate OTP",
    "validateOTP": "Failed to validate OTP",
    "documentTags": "Failed to get tags",
    "saveDocumentEntry": "Failed to upload",
    "searchDocumentEntry": "Failed to search",
}


class ApiErrorKind(str, Enum):
    """Ways a catalog call can fail."""

    HTTP_STATUS = "http_status"
    MALFORMED_RESPONSE = "malformed_response"
    CONNECTION = "connection"


class ApiError(DocbundleError):
    """The catalog service failed or answered with something unusable."""

    def __init__(
        self,
        kind: ApiErrorKind,
        detail: str,
        endpoint: str = "",
        status_code: Optional[int] = None,
    ):
        self.endpoint = endpoint
        self.status_code = status_code
        super().__init__(kind, detail)


@dataclass(frozen=True)
class AuthSession:
    """Opaque credentials issued by the auth service."""

    token: str
    user_id: str


def build_search_query(search_filter: SearchFilter) -> dict[str, Any]:
    """Translate a SearchFilter into the searchDocumentEntry request body."""
    return {
        "major_head": search_filter.category.value,
        "minor_head": search_filter.subcategory,
        "from_date": format_wire_date(search_filter.date_from),
        "to_date": format_wire_date(search_filter.date_to),
        "tags": [{"tag_name": tag} for tag in search_filter.tags],
        "uploaded_by": "",
        "start": SEARCH_START,
        "length": SEARCH_LENGTH,
        "filterId": "",
        "search": {"value": ""},
    }


class CatalogClient:
    """
    Client for the document catalog service.

    Features:
    - OTP login (opaque: codes and tokens are passed through)
    - Tag suggestions
    - Document upload
    - Document search

    The client holds no credentials; every authenticated call takes the
    token explicitly.
    """

    DEFAULT_TIMEOUT = 30

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: int = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize catalog client.

        Args:
            base_url: Service URL, endpoints are appended to it
            timeout: Request timeout in seconds
            session: Optional pre-configured requests session
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})

    def _request(
        self,
        endpoint: str,
        token: Optional[str] = None,
        json_data: Optional[dict] = None,
        data: Optional[dict] = None,
        files: Optional[dict] = None,
    ) -> Any:
        """POST to an endpoint and return the decoded JSON body."""
        url = f"{self.base_url}/{endpoint}"
        headers = {TOKEN_HEADER: token} if token else {}

        try:
            response = self.session.post(
                url,
                json=json_data,
                data=data,
                files=files,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise ApiError(
                ApiErrorKind.CONNECTION,
                f"Request to {endpoint} timed out: {e}",
                endpoint=endpoint,
            )
        except requests.exceptions.RequestException as e:
            raise ApiError(
                ApiErrorKind.CONNECTION,
                f"Failed to reach {self.base_url}: {e}",
                endpoint=endpoint,
            )

        if not response.ok:
            body = response.text.strip()
            logger.warning(f"{endpoint} returned HTTP {response.status_code}")
            raise ApiError(
                ApiErrorKind.HTTP_STATUS,
                body or ENDPOINT_ERRORS.get(endpoint, f"{endpoint} failed"),
                endpoint=endpoint,
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ApiError(
                ApiErrorKind.MALFORMED_RESPONSE,
                f"{endpoint} returned invalid JSON: {e}",
                endpoint=endpoint,
                status_code=response.status_code,
            )

    def generate_otp(self, mobile: str) -> Any:
        """Ask the auth service to send a one-time code to ``mobile``."""
        return self._request("generateOTP", json_data={"mobile_number": mobile})

    def validate_otp(self, mobile: str, otp: str) -> AuthSession:
        """
        Exchange a one-time code for a session.

        Falls back to the mobile number as user id when the service does
        not return one.
        """
        body = self._request(
            "validateOTP", json_data={"mobile_number": mobile, "otp": otp}
        )
        payload = body.get("data") if isinstance(body, dict) else None
        if not isinstance(payload, dict) or "token" not in payload:
            payload = body if isinstance(body, dict) else {}

        token = payload.get("token")
        if not token:
            raise ApiError(
                ApiErrorKind.MALFORMED_RESPONSE,
                "validateOTP response has no token",
                endpoint="validateOTP",
            )
        user_id = payload.get("user_id") or mobile
        return AuthSession(token=str(token), user_id=str(user_id))

    def suggest_tags(
        self, term: str, token: str, exclude: Iterable[str] = ()
    ) -> list[str]:
        """
        Get tag suggestions for a partial term.

        Terms shorter than two characters return no suggestions without
        contacting the service. Tags in ``exclude`` are filtered out.
        """
        term = term.strip()
        if len(term) < MIN_TAG_TERM_LENGTH:
            return []

        body = self._request("documentTags", token=token, json_data={"term": term})
        items = body.get("data", []) if isinstance(body, dict) else body
        if not isinstance(items, list):
            raise ApiError(
                ApiErrorKind.MALFORMED_RESPONSE,
                "documentTags response is not a list",
                endpoint="documentTags",
            )

        excluded = set(exclude)
        suggestions = []
        for item in items:
            if isinstance(item, dict):
                item = item.get("tag_name") or item.get("label") or ""
            if isinstance(item, str) and item and item not in excluded:
                suggestions.append(item)
        return suggestions

    def upload_document(
        self,
        file_path: Path,
        entry: UploadEntry,
        token: str,
        mime_type: Optional[str] = None,
    ) -> Any:
        """
        Upload a file with its metadata.

        Args:
            file_path: Local file to upload
            entry: Validated metadata
            token: Session token
            mime_type: Content type; defaults to application/octet-stream
        """
        file_path = Path(file_path)
        logger.info(f"Uploading {file_path.name}")
        with open(file_path, "rb") as f:
            files = {
                "file": (
                    file_path.name or "file",
                    f,
                    mime_type or "application/octet-stream",
                )
            }
            return self._request(
                "saveDocumentEntry",
                token=token,
                data={"data": json.dumps(entry.to_wire())},
                files=files,
            )

    def search(self, search_filter: SearchFilter, token: str) -> list[DocumentRecord]:
        """
        Search the catalog.

        Returns:
            DocumentRecord list in service order

        Raises:
            ApiError: on HTTP failure or when any record is malformed
        """
        body = self._request(
            "searchDocumentEntry",
            token=token,
            json_data=build_search_query(search_filter),
        )
        if not isinstance(body, dict):
            raise ApiError(
                ApiErrorKind.MALFORMED_RESPONSE,
                "searchDocumentEntry response is not a JSON object",
                endpoint="searchDocumentEntry",
            )

        items = body.get("data") or []
        if not isinstance(items, list):
            raise ApiError(
                ApiErrorKind.MALFORMED_RESPONSE,
                "searchDocumentEntry 'data' is not a list",
                endpoint="searchDocumentEntry",
            )

        records = []
        for index, item in enumerate(items):
            try:
                records.append(DocumentRecord.from_api_response(item))
            except MalformedRecordError as e:
                raise ApiError(
                    ApiErrorKind.MALFORMED_RESPONSE,
                    f"Result {index}: {e}",
                    endpoint="searchDocumentEntry",
                )

        logger.info(f"Search returned {len(records)} document(s)")
        return records
