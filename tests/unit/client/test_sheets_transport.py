"""
Unit tests for GoogleSheetsTransport request shapes (httpx.MockTransport).
"""

import json

import httpx
import pytest

from gsheet_client import (
    DeliveryClient,
    GoogleSheetsTransport,
    SheetsAPIError,
    SinkCallError,
    SinkCapacityError,
)


def make_transport(handler, sheet_id: int = 7) -> GoogleSheetsTransport:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GoogleSheetsTransport("sheet-123", sheet_id, client=http)


@pytest.mark.asyncio
async def test_append_with_room_making_is_one_batch_update():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"spreadsheetId": "sheet-123", "replies": []})

    transport = make_transport(handler)
    await transport.append_rows([["2024-01-01T00:00:00+00:00", "up", 1.0, None]], delete_leading=1)

    assert len(seen) == 1
    req = seen[0]
    assert req.method == "POST"
    assert req.url.path == "/v4/spreadsheets/sheet-123:batchUpdate"
    body = json.loads(req.content)
    delete, append = body["requests"]
    assert delete["deleteDimension"]["range"] == {
        "sheetId": 7,
        "dimension": "ROWS",
        "startIndex": 0,
        "endIndex": 1,
    }
    cells = append["appendCells"]["rows"][0]["values"]
    assert append["appendCells"]["sheetId"] == 7
    assert cells[0] == {"userEnteredValue": {"stringValue": "2024-01-01T00:00:00+00:00"}}
    assert cells[2] == {"userEnteredValue": {"numberValue": 1.0}}
    assert cells[3] == {}


@pytest.mark.asyncio
async def test_append_without_room_making_sends_only_append():
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={})

    await make_transport(handler).append_rows([["x"]])
    assert [list(r) for r in bodies[0]["requests"]] == [["appendCells"]]


@pytest.mark.asyncio
async def test_read_range_returns_values():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        assert request.url.path == "/v4/spreadsheets/sheet-123/values/Config!A:B"
        return httpx.Response(200, json={"range": "Config!A1:B2", "values": [["METRICS", "up"]]})

    assert await make_transport(handler).read_range("Config!A:B") == [["METRICS", "up"]]


@pytest.mark.asyncio
async def test_read_range_without_values_is_empty():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"range": "Internal!B1"})

    assert await make_transport(handler).read_range("Internal!B1") == []


@pytest.mark.asyncio
async def test_sort_targets_data_sheet():
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={})

    await make_transport(handler, sheet_id=3).sort_by_first_column()
    sort = bodies[0]["requests"][0]["sortRange"]
    assert sort["range"] == {"sheetId": 3}
    assert sort["sortSpecs"] == [{"dimensionIndex": 0, "sortOrder": "ASCENDING"}]


@pytest.mark.asyncio
async def test_api_error_carries_status_and_message():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json={"error": {"code": 429, "message": "Quota exceeded"}})

    with pytest.raises(SheetsAPIError) as info:
        await make_transport(handler).delete_rows(0, 5)
    assert info.value.status_code == 429
    assert info.value.api_message == "Quota exceeded"


@pytest.mark.asyncio
async def test_network_error_is_call_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(SinkCallError, match="ConnectError"):
        await make_transport(handler).read_range("Config!A:B")


@pytest.mark.asyncio
async def test_cell_limit_response_classified_by_client(fast_limiter, make_sample, capacity_message):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": {"code": 400, "message": capacity_message}})

    client = DeliveryClient(make_transport(handler), limiter=fast_limiter)
    with pytest.raises(SinkCapacityError):
        await client.write([make_sample()])


@pytest.mark.asyncio
async def test_bearer_token_header_and_owned_client_closed():
    transport = GoogleSheetsTransport("sheet-123", access_token="tok")
    assert transport._client.headers["Authorization"] == "Bearer tok"
    await transport.aclose()
    assert transport._client.is_closed
