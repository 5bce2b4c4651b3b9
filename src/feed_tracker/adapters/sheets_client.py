"""Google Sheets and Drive REST client."""

from dataclasses import dataclass
from typing import Protocol
from urllib.parse import quote

import httpx

from feed_tracker.domain.errors import (
    HTTP_FORBIDDEN,
    HTTP_TOO_MANY_REQUESTS,
    DataFormatError,
    NetworkError,
    ProviderSpecificError,
    http_error_for_status,
)

SHEETS_BASE_URL = "https://sheets.googleapis.com/v4"
DRIVE_BASE_URL = "https://www.googleapis.com/drive/v3"
SPREADSHEET_MIME_TYPE = "application/vnd.google-apps.spreadsheet"


class SheetsClient(Protocol):
    """Interface for the remote tabular store."""

    async def get_values(
        self, access_token: str, spreadsheet_id: str, range_a1: str
    ) -> dict[str, object]:
        """Read a range and return the raw value range payload."""

    async def append_values(
        self,
        access_token: str,
        spreadsheet_id: str,
        range_a1: str,
        values: list[list[str]],
    ) -> dict[str, object]:
        """Append rows after the last row of the range."""

    async def update_values(
        self,
        access_token: str,
        spreadsheet_id: str,
        range_a1: str,
        values: list[list[str]],
    ) -> dict[str, object]:
        """Overwrite the cells of a range."""

    async def clear_values(
        self, access_token: str, spreadsheet_id: str, range_a1: str
    ) -> dict[str, object]:
        """Clear the cells of a range."""

    async def create_spreadsheet(
        self, access_token: str, body: dict[str, object]
    ) -> dict[str, object]:
        """Create a spreadsheet and return its metadata."""

    async def list_spreadsheets(self, access_token: str) -> dict[str, object]:
        """List spreadsheets visible to the user, most recently modified first."""


@dataclass
class HttpxSheetsClient(SheetsClient):
    """HTTPX-backed Sheets client."""

    http_client: httpx.AsyncClient
    sheets_base_url: str = SHEETS_BASE_URL
    drive_base_url: str = DRIVE_BASE_URL
    timeout_seconds: float = 15

    @classmethod
    def create(
        cls,
        sheets_base_url: str = SHEETS_BASE_URL,
        drive_base_url: str = DRIVE_BASE_URL,
        timeout_seconds: float = 15,
    ) -> "HttpxSheetsClient":
        """Create a Sheets client with a managed httpx session."""
        return cls(
            http_client=httpx.AsyncClient(),
            sheets_base_url=sheets_base_url,
            drive_base_url=drive_base_url,
            timeout_seconds=timeout_seconds,
        )

    async def get_values(
        self, access_token: str, spreadsheet_id: str, range_a1: str
    ) -> dict[str, object]:
        """Read a range."""
        return await self._request(
            "GET", self._values_url(spreadsheet_id, range_a1), access_token
        )

    async def append_values(
        self,
        access_token: str,
        spreadsheet_id: str,
        range_a1: str,
        values: list[list[str]],
    ) -> dict[str, object]:
        """Append rows using the values:append API."""
        return await self._request(
            "POST",
            f"{self._values_url(spreadsheet_id, range_a1)}:append",
            access_token,
            params={
                "valueInputOption": "USER_ENTERED",
                "insertDataOption": "INSERT_ROWS",
            },
            json={"values": values},
        )

    async def update_values(
        self,
        access_token: str,
        spreadsheet_id: str,
        range_a1: str,
        values: list[list[str]],
    ) -> dict[str, object]:
        """Overwrite a range using the values:update API."""
        return await self._request(
            "PUT",
            self._values_url(spreadsheet_id, range_a1),
            access_token,
            params={"valueInputOption": "USER_ENTERED"},
            json={"values": values},
        )

    async def clear_values(
        self, access_token: str, spreadsheet_id: str, range_a1: str
    ) -> dict[str, object]:
        """Clear a range using the values:clear API."""
        return await self._request(
            "POST",
            f"{self._values_url(spreadsheet_id, range_a1)}:clear",
            access_token,
            json={},
        )

    async def create_spreadsheet(
        self, access_token: str, body: dict[str, object]
    ) -> dict[str, object]:
        """Create a spreadsheet."""
        return await self._request(
            "POST", f"{self.sheets_base_url}/spreadsheets", access_token, json=body
        )

    async def list_spreadsheets(self, access_token: str) -> dict[str, object]:
        """List spreadsheets through the Drive files API."""
        return await self._request(
            "GET",
            f"{self.drive_base_url}/files",
            access_token,
            params={
                "q": f"mimeType='{SPREADSHEET_MIME_TYPE}' and trashed=false",
                "fields": "files(id,name,modifiedTime)",
                "orderBy": "modifiedTime desc",
            },
        )

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    def _values_url(self, spreadsheet_id: str, range_a1: str) -> str:
        return (
            f"{self.sheets_base_url}/spreadsheets/{quote(spreadsheet_id, safe='')}"
            f"/values/{quote(range_a1, safe='!:')}"
        )

    async def _request(
        self,
        method: str,
        url: str,
        access_token: str,
        params: dict[str, str] | None = None,
        json: dict[str, object] | None = None,
    ) -> dict[str, object]:
        try:
            response = await self.http_client.request(
                method,
                url,
                params=params,
                json=json,
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=self.timeout_seconds,
            )
        except httpx.TransportError as exc:
            raise NetworkError(exc) from exc
        if not response.is_success:
            raise _error_from_response(response)
        if not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError as exc:
            raise DataFormatError() from exc
        if not isinstance(payload, dict):
            raise DataFormatError()
        return payload


def _error_from_response(response: httpx.Response) -> Exception:
    """Build the error for a non-success response."""
    if response.status_code in (HTTP_FORBIDDEN, HTTP_TOO_MANY_REQUESTS):
        return http_error_for_status(response.status_code)
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return ProviderSpecificError(error["message"])
    return http_error_for_status(response.status_code)
