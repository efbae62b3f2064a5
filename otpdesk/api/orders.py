"""
otpdesk/api/orders.py

Purpose: Order endpoints

- Listings for admins and the employee board
- Request a number, check for SMS, cancel, dismiss
"""

from typing import Optional

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from otpdesk.schemas.order import RequestNumberRequest, DismissOrderRequest
from otpdesk.schemas.response import serialize_document
from otpdesk.models.order import OrderStatus
from otpdesk.services import order_service
from otpdesk.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/orders")


@router.get("")
async def list_orders(
    employeeId: Optional[str] = Query(None, description="Filter by employee id"),
    status: Optional[str] = Query(None, description="pending | completed | cancelled"),
    date: Optional[str] = Query(None, description="YYYY-MM-DD"),
):
    orders = await order_service.list_orders(employee_id=employeeId, status=status, date=date)
    return {"success": True, "orders": [serialize_document(o) for o in orders]}


@router.get("/employee/{employee_id}")
async def employee_orders(employee_id: str):
    orders = await order_service.get_employee_orders(employee_id)
    return {"success": True, "orders": [serialize_document(o) for o in orders]}


@router.get("/active/{employee_id}")
async def active_orders(employee_id: str):
    orders = await order_service.get_active_orders(employee_id)
    return {"success": True, "activeOrders": [serialize_document(o) for o in orders]}


@router.post("/request", status_code=201)
async def request_number(body: RequestNumberRequest):
    """
    Leases a number. 404 with error NO_NUMBERS when the provider is out of
    stock, 400 for any other provider answer.
    """
    order = await order_service.request_number(body.employeeId, body.employeeName)
    return JSONResponse(
        status_code=201,
        content={
            "success": True,
            "message": "Number received successfully",
            "order": serialize_document(order),
        }
    )


@router.get("/check-sms/{order_id}")
async def check_sms(order_id: str):
    check = await order_service.check_status(order_id)
    order = check.order
    
    if check.sms_received:
        message = "SMS received"
    elif order.get("status") == OrderStatus.CANCELLED.value:
        message = "Order was cancelled or timed out"
    elif order.get("status") == OrderStatus.COMPLETED.value:
        message = "SMS already received"
    else:
        message = "SMS not yet received"
    
    return {
        "success": True,
        "message": message,
        "smsReceived": check.sms_received,
        "smsCode": order.get("smsCode"),
        "status": check.provider_status,
        "order": serialize_document(order),
    }


@router.post("/cancel/{order_id}")
async def cancel_order(order_id: str):
    order = await order_service.cancel_order(order_id)
    return {
        "success": True,
        "message": "Number cancelled successfully",
        "order": serialize_document(order),
    }


@router.post("/dismiss/{order_id}")
async def dismiss_order(order_id: str, body: Optional[DismissOrderRequest] = None):
    employee_id = body.employeeId if body else None
    order = await order_service.dismiss_order(order_id, employee_id=employee_id)
    return {
        "success": True,
        "message": "Number dismissed",
        "order": serialize_document(order),
    }
