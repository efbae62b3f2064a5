import asyncio

import pytest

from otpdesk.core.exceptions import (
    InvalidOrderStateError,
    NoNumbersAvailableError,
    PermissionDeniedError,
    ProviderRejectedError,
    ResourceNotFoundError,
    ValidationError,
)
from otpdesk.models.order import OrderStatus, check_invariants
from otpdesk.services import order_service


def _request(employee, provider, answer="ACCESS_NUMBER:12345:919999999999"):
    provider.queue("getNumber", answer)
    return asyncio.run(order_service.request_number(str(employee["_id"]), employee["name"]))


def test_request_number_stores_pending_order(provider, employee):
    order = _request(employee, provider)
    
    assert order["orderId"] == "12345"
    assert order["phoneNumber"] == "919999999999"
    assert order["status"] == OrderStatus.PENDING.value
    assert order["smsCode"] is None
    assert order["dismissed"] is False
    assert order["employeeId"] == str(employee["_id"])
    assert order["employeeName"] == "Priya Sharma"
    assert len(order["date"]) == 10
    assert len(order["time"]) == 8
    assert check_invariants(order) == []
    
    stored = asyncio.run(order_service.list_orders())
    assert [o["orderId"] for o in stored] == ["12345"]


def test_request_number_without_inventory_stores_nothing(provider, employee):
    with pytest.raises(NoNumbersAvailableError) as exc_info:
        _request(employee, provider, "NO_NUMBERS")
    
    assert exc_info.value.code == "NO_NUMBERS"
    assert exc_info.value.status_code == 404
    assert asyncio.run(order_service.list_orders()) == []


def test_request_number_provider_rejection(provider, employee):
    with pytest.raises(ProviderRejectedError) as exc_info:
        _request(employee, provider, "NO_BALANCE")
    
    assert exc_info.value.message == "API Error: NO_BALANCE"
    assert asyncio.run(order_service.list_orders()) == []


def test_request_number_unknown_employee(provider, db):
    with pytest.raises(ResourceNotFoundError):
        asyncio.run(order_service.request_number("665f1c2e9b1e8a3d4c2b1a00", "Ghost"))
    with pytest.raises(ResourceNotFoundError):
        asyncio.run(order_service.request_number("not-an-id", "Ghost"))
    assert provider.calls == []


def test_check_status_completes_order(provider, employee):
    _request(employee, provider)
    provider.queue("getStatus", "STATUS_OK:4821")
    
    check = asyncio.run(order_service.check_status("12345"))
    
    assert check.sms_received is True
    assert check.order["status"] == OrderStatus.COMPLETED.value
    assert check.order["smsCode"] == "4821"
    assert check.provider_status == "STATUS_OK:4821"
    assert check_invariants(check.order) == []


def test_check_status_waiting_leaves_order_pending(provider, employee):
    _request(employee, provider)
    
    check = asyncio.run(order_service.check_status("12345"))
    
    assert check.sms_received is False
    assert check.order["status"] == OrderStatus.PENDING.value
    assert check.provider_status == "STATUS_WAIT_CODE"


def test_check_status_provider_cancel(provider, employee):
    _request(employee, provider)
    provider.queue("getStatus", "STATUS_CANCEL")
    
    check = asyncio.run(order_service.check_status("12345"))
    
    assert check.sms_received is False
    assert check.order["status"] == OrderStatus.CANCELLED.value


def test_check_status_on_terminal_order_skips_provider(provider, employee):
    _request(employee, provider)
    provider.queue("getStatus", "STATUS_OK:4821")
    asyncio.run(order_service.check_status("12345"))
    
    check = asyncio.run(order_service.check_status("12345"))
    
    assert check.sms_received is False
    assert check.order["smsCode"] == "4821"
    assert len(provider.calls_for("getStatus")) == 1


def test_check_status_unknown_order(provider, db):
    with pytest.raises(ResourceNotFoundError):
        asyncio.run(order_service.check_status("99999"))


def test_transition_applies_once(provider, employee):
    _request(employee, provider)
    
    first = asyncio.run(order_service._transition("12345", OrderStatus.COMPLETED, {"smsCode": "4821"}))
    second = asyncio.run(order_service._transition("12345", OrderStatus.CANCELLED, {}))
    
    assert first["status"] == OrderStatus.COMPLETED.value
    assert second is None
    stored = asyncio.run(order_service.list_orders())[0]
    assert stored["status"] == OrderStatus.COMPLETED.value
    assert stored["smsCode"] == "4821"


def test_cancel_order_and_repeat_is_noop(provider, employee):
    _request(employee, provider)
    
    cancelled = asyncio.run(order_service.cancel_order("12345"))
    again = asyncio.run(order_service.cancel_order("12345"))
    
    assert cancelled["status"] == OrderStatus.CANCELLED.value
    assert again["status"] == OrderStatus.CANCELLED.value
    assert len(provider.calls_for("setStatus")) == 1


def test_cancel_already_cancelled_at_provider(provider, employee):
    _request(employee, provider)
    provider.queue("setStatus", "ACCESS_CANCEL_ALREADY")
    
    cancelled = asyncio.run(order_service.cancel_order("12345"))
    
    assert cancelled["status"] == OrderStatus.CANCELLED.value


def test_cancel_rejected_leaves_order_pending(provider, employee):
    _request(employee, provider)
    provider.queue("setStatus", "BAD_STATUS")
    
    with pytest.raises(ProviderRejectedError) as exc_info:
        asyncio.run(order_service.cancel_order("12345"))
    
    assert exc_info.value.message == "Failed to cancel: BAD_STATUS"
    stored = asyncio.run(order_service.list_orders())[0]
    assert stored["status"] == OrderStatus.PENDING.value


def test_cancel_completed_order_is_refused(provider, employee):
    _request(employee, provider)
    provider.queue("getStatus", "STATUS_OK:4821")
    asyncio.run(order_service.check_status("12345"))
    
    with pytest.raises(InvalidOrderStateError):
        asyncio.run(order_service.cancel_order("12345"))
    assert provider.calls_for("setStatus") == []


def test_dismiss_completed_order(provider, employee):
    _request(employee, provider)
    provider.queue("getStatus", "STATUS_OK:4821")
    asyncio.run(order_service.check_status("12345"))
    
    dismissed = asyncio.run(order_service.dismiss_order("12345", str(employee["_id"])))
    again = asyncio.run(order_service.dismiss_order("12345"))
    
    assert dismissed["dismissed"] is True
    assert dismissed["status"] == OrderStatus.COMPLETED.value
    assert again["dismissed"] is True
    assert check_invariants(dismissed) == []


def test_dismiss_pending_order_is_refused(provider, employee):
    _request(employee, provider)
    
    with pytest.raises(InvalidOrderStateError):
        asyncio.run(order_service.dismiss_order("12345"))


def test_dismiss_someone_elses_order(provider, employee):
    _request(employee, provider)
    provider.queue("getStatus", "STATUS_OK:4821")
    asyncio.run(order_service.check_status("12345"))
    
    with pytest.raises(PermissionDeniedError):
        asyncio.run(order_service.dismiss_order("12345", "665f1c2e9b1e8a3d4c2b1a00"))


def test_active_orders_board(provider, employee):
    employee_id = str(employee["_id"])
    _request(employee, provider, "ACCESS_NUMBER:1:911111111111")
    _request(employee, provider, "ACCESS_NUMBER:2:912222222222")
    _request(employee, provider, "ACCESS_NUMBER:3:913333333333")
    _request(employee, provider, "ACCESS_NUMBER:4:914444444444")
    
    provider.queue("getStatus", "STATUS_OK:1111")
    asyncio.run(order_service.check_status("1"))
    provider.queue("getStatus", "STATUS_OK:2222")
    asyncio.run(order_service.check_status("2"))
    asyncio.run(order_service.dismiss_order("2"))
    asyncio.run(order_service.cancel_order("3"))
    
    active = asyncio.run(order_service.get_active_orders(employee_id))
    
    assert {o["orderId"] for o in active} == {"1", "4"}
    assert len(asyncio.run(order_service.get_employee_orders(employee_id))) == 4


def test_list_orders_filters(provider, employee):
    _request(employee, provider, "ACCESS_NUMBER:1:911111111111")
    _request(employee, provider, "ACCESS_NUMBER:2:912222222222")
    asyncio.run(order_service.cancel_order("1"))
    
    cancelled = asyncio.run(order_service.list_orders(status="cancelled"))
    assert [o["orderId"] for o in cancelled] == ["1"]
    
    with pytest.raises(ValidationError):
        asyncio.run(order_service.list_orders(status="lost"))
    
    assert asyncio.run(order_service.list_orders(date="1999-01-01")) == []


def test_employee_id_is_stored_canonical(provider, employee):
    from otpdesk.services import employee_service
    
    employee_id = str(employee["_id"])
    provider.queue("getNumber", "ACCESS_NUMBER:12345:919999999999")
    order = asyncio.run(order_service.request_number(employee_id.upper(), employee["name"]))
    
    assert order["employeeId"] == employee_id
    assert [o["orderId"] for o in asyncio.run(order_service.get_active_orders(employee_id.upper()))] == ["12345"]
    
    deleted = asyncio.run(employee_service.delete_employee(employee_id))
    
    assert deleted == 1
    assert asyncio.run(order_service.list_orders()) == []
