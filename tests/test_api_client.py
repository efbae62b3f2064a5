import asyncio
import json

import httpx
import pytest

from otpdesk.client.api_client import (
    DeskApiClient,
    DeskApiError,
    DeskConnectionError,
    RequestKind,
    classify_request_response,
)

EMPLOYEE = {"id": "665f1c2e9b1e8a3d4c2b1a00", "username": "priya", "name": "Priya", "email": ""}


def _client(handler):
    return DeskApiClient("http://desk.test/api", transport=httpx.MockTransport(handler))


def test_classify_request_response():
    acquired = classify_request_response(201, {"success": True, "order": {"orderId": "1"}})
    assert acquired.kind == RequestKind.ACQUIRED
    assert acquired.order == {"orderId": "1"}
    
    no_numbers = classify_request_response(404, {"success": False, "message": "No numbers currently available.", "error": "NO_NUMBERS"})
    assert no_numbers.kind == RequestKind.NO_NUMBERS
    
    legacy = classify_request_response(404, {"success": False, "message": "NO_NUMBERS"})
    assert legacy.kind == RequestKind.NO_NUMBERS
    
    failed = classify_request_response(400, {"success": False, "message": "API Error: NO_BALANCE", "error": "PROVIDER_ERROR"})
    assert failed.kind == RequestKind.FAILED
    assert failed.message == "API Error: NO_BALANCE"


def test_request_number_posts_employee():
    seen = {}
    
    def handler(request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"success": True, "order": {"orderId": "12345"}})
    
    outcome = asyncio.run(_client(handler).request_number(EMPLOYEE))
    
    assert outcome.kind == RequestKind.ACQUIRED
    assert seen["path"] == "/api/orders/request"
    assert seen["body"] == {"employeeId": EMPLOYEE["id"], "employeeName": "Priya"}


def test_error_responses_raise_desk_api_error():
    def handler(request):
        return httpx.Response(400, json={"success": False, "message": "Only completed orders can be dismissed", "error": "INVALID_ORDER_STATE"})
    
    with pytest.raises(DeskApiError) as exc_info:
        asyncio.run(_client(handler).dismiss("12345", EMPLOYEE["id"]))
    
    assert exc_info.value.status_code == 400
    assert exc_info.value.code == "INVALID_ORDER_STATE"


def test_connection_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused")
    
    with pytest.raises(DeskConnectionError):
        asyncio.run(_client(handler).check_sms("12345"))
    with pytest.raises(DeskConnectionError):
        asyncio.run(_client(handler).request_number(EMPLOYEE))


def test_validate_session():
    employees = [
        {"_id": EMPLOYEE["id"], "status": "active"},
        {"_id": "665f1c2e9b1e8a3d4c2b1a01", "status": "inactive"},
    ]
    
    def handler(request):
        return httpx.Response(200, json={"success": True, "employees": employees})
    
    client = _client(handler)
    assert asyncio.run(client.validate_session(EMPLOYEE)) is True
    assert asyncio.run(client.validate_session({"id": "665f1c2e9b1e8a3d4c2b1a01"})) is False
    assert asyncio.run(client.validate_session({"id": "665f1c2e9b1e8a3d4c2b1a02"})) is False


def test_active_orders():
    def handler(request):
        assert request.url.path == f"/api/orders/active/{EMPLOYEE['id']}"
        return httpx.Response(200, json={"success": True, "activeOrders": [{"orderId": "1"}, {"orderId": "2"}]})
    
    orders = asyncio.run(_client(handler).active_orders(EMPLOYEE["id"]))
    
    assert [o["orderId"] for o in orders] == ["1", "2"]
