"""
Sink contract and its Google Sheets REST implementation.

The delivery client only needs four capabilities from the sink: append rows
(optionally deleting leading rows in the same request), delete a row range,
read a cell range and sort the data range by its first column.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence
from urllib.parse import quote

import httpx
from loguru import logger

from .errors import SheetsAPIError, SinkCallError
from .rows import CellValue

SHEETS_API_BASE_URL = "https://sheets.googleapis.com/v4/spreadsheets"


class SheetTransport(ABC):
    """Row-oriented, capacity-limited tabular sink."""

    @abstractmethod
    async def append_rows(
        self, rows: Sequence[Sequence[CellValue]], *, delete_leading: int = 0
    ) -> None:
        """Append rows to the data sheet.

        If ``delete_leading`` > 0, that many rows are first removed from the top
        of the data sheet as part of the same request.
        """
        ...

    @abstractmethod
    async def delete_rows(self, start: int, end: int) -> None:
        """Delete data rows in the half-open index range [start, end)."""
        ...

    @abstractmethod
    async def read_range(self, a1_range: str) -> list[list[Any]]:
        """Read a cell range (A1 notation) as a list of rows."""
        ...

    @abstractmethod
    async def sort_by_first_column(self) -> None:
        """Sort the data sheet ascending by its first column."""
        ...

    async def aclose(self) -> None:
        """Release transport resources."""
        pass


def _cell(value: CellValue) -> dict:
    if value is None:
        return {}
    if isinstance(value, str):
        return {"userEnteredValue": {"stringValue": value}}
    return {"userEnteredValue": {"numberValue": float(value)}}


class GoogleSheetsTransport(SheetTransport):
    """Sheets API v4 over httpx.

    Credential exchange is not handled here: pass an already minted bearer
    token, or an ``httpx.AsyncClient`` that authenticates requests itself.
    """

    def __init__(
        self,
        spreadsheet_id: str,
        sheet_id: int = 0,
        *,
        access_token: Optional[str] = None,
        base_url: str = SHEETS_API_BASE_URL,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 120.0,
    ):
        self.spreadsheet_id = spreadsheet_id
        self.sheet_id = sheet_id
        self._base_url = base_url.rstrip("/")
        headers = {"Authorization": f"Bearer {access_token}"} if access_token else {}
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(headers=headers, timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ---------- requests ----------

    async def append_rows(
        self, rows: Sequence[Sequence[CellValue]], *, delete_leading: int = 0
    ) -> None:
        requests: list[dict] = []
        if delete_leading > 0:
            requests.append(self._delete_request(0, delete_leading))
        requests.append(
            {
                "appendCells": {
                    "sheetId": self.sheet_id,
                    "fields": "*",
                    "rows": [{"values": [_cell(v) for v in row]} for row in rows],
                }
            }
        )
        await self._batch_update(requests)

    async def delete_rows(self, start: int, end: int) -> None:
        await self._batch_update([self._delete_request(start, end)])

    async def read_range(self, a1_range: str) -> list[list[Any]]:
        url = f"{self._base_url}/{self.spreadsheet_id}/values/{quote(a1_range, safe='!:$')}"
        data = await self._send("GET", url)
        return data.get("values", [])

    async def sort_by_first_column(self) -> None:
        await self._batch_update(
            [
                {
                    "sortRange": {
                        "range": {"sheetId": self.sheet_id},
                        "sortSpecs": [{"dimensionIndex": 0, "sortOrder": "ASCENDING"}],
                    }
                }
            ]
        )

    # ---------- internals ----------

    def _delete_request(self, start: int, end: int) -> dict:
        return {
            "deleteDimension": {
                "range": {
                    "sheetId": self.sheet_id,
                    "dimension": "ROWS",
                    "startIndex": start,
                    "endIndex": end,
                }
            }
        }

    async def _batch_update(self, requests: list[dict]) -> dict:
        url = f"{self._base_url}/{self.spreadsheet_id}:batchUpdate"
        body = {"requests": requests, "includeSpreadsheetInResponse": False}
        return await self._send("POST", url, json=body)

    async def _send(self, method: str, url: str, json: Optional[dict] = None) -> dict:
        try:
            resp = await self._client.request(method, url, json=json)
        except httpx.HTTPError as exc:
            raise SinkCallError(f"{type(exc).__name__}: {exc}") from exc

        if resp.is_error:
            raise SheetsAPIError(resp.status_code, _error_message(resp))

        logger.debug(f"{method} {url} -> {resp.status_code}")
        if not resp.content:
            return {}
        return resp.json()


def _error_message(resp: httpx.Response) -> str:
    try:
        return resp.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return resp.text
