"""
otpdesk/services/order_service.py

Purpose: Order lifecycle

- Request a number and persist the pending order
- Poll the provider and apply pending -> completed / cancelled
- Cancel and dismiss orders
- Order listings for the employee board and admin views

Status transitions are written with a compare-and-swap on `status`, so two
concurrent polls (or a poll racing a cancel) apply at most one transition.
"""

from dataclasses import dataclass
from typing import Optional, Dict, Any, List

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ReturnDocument, DESCENDING

from otpdesk.db.mongo import get_orders_collection, get_employees_collection
from otpdesk.models.order import OrderStatus, order_status, is_terminal, is_valid_transition
from otpdesk.services.provider_client import ProviderClient, PollStatus, get_provider_client
from otpdesk.core.exceptions import (
    ResourceNotFoundError,
    NoNumbersAvailableError,
    InvalidOrderStateError,
    PermissionDeniedError,
    ValidationError,
)
from otpdesk.core.logging import get_logger, LogContext
from otpdesk.utils.time_utils import utcnow, order_timestamp, now_local

logger = get_logger(__name__)


@dataclass
class StatusCheck:
    """Outcome of polling one order."""
    order: Dict[str, Any]
    sms_received: bool
    provider_status: Optional[str] = None


async def _find_order(order_id: str) -> Dict[str, Any]:
    orders = get_orders_collection()
    order = await orders.find_one({"orderId": order_id})
    if not order:
        raise ResourceNotFoundError("Order not found", details={"orderId": order_id})
    return order


async def _transition(order_id: str, to_status: OrderStatus, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Moves a pending order to `to_status` in one write.
    
    Returns:
        The updated order, or None when the order was no longer pending
    """
    if not is_valid_transition(OrderStatus.PENDING, to_status):
        raise InvalidOrderStateError(f"Cannot move a pending order to {to_status.value}")
    
    orders = get_orders_collection()
    now = utcnow()
    return await orders.find_one_and_update(
        {"orderId": order_id, "status": OrderStatus.PENDING.value},
        {"$set": {**fields, "status": to_status.value, "updatedAt": now}},
        return_document=ReturnDocument.AFTER
    )


async def request_number(
    employee_id: str,
    employee_name: str,
    provider: Optional[ProviderClient] = None
) -> Dict[str, Any]:
    """
    Leases a number from the provider and stores a pending order for the employee.
    
    Args:
        employee_id: Owning employee id
        employee_name: Employee display name, stored on the order
        provider: Provider client (defaults to the global instance)
    
    Returns:
        The new order document
    
    Raises:
        ResourceNotFoundError: Unknown employee
        NoNumbersAvailableError: Provider has no inventory (retryable)
        ProviderRejectedError: Any other provider answer
        ProviderTransportError: Provider unreachable
    """
    with LogContext(employee_id=employee_id):
        employee_id = await _ensure_employee_exists(employee_id)
        
        provider = provider or get_provider_client()
        result = await provider.acquire()
        
        if not result.acquired:
            raise NoNumbersAvailableError()
        
        now = utcnow()
        date_str, time_str = order_timestamp(now_local())
        order = {
            "orderId": result.order_id,
            "phoneNumber": result.phone_number,
            "employeeId": employee_id,
            "employeeName": employee_name,
            "status": OrderStatus.PENDING.value,
            "smsCode": None,
            "dismissed": False,
            "service": provider.service,
            "operator": provider.operator,
            "country": provider.country,
            "date": date_str,
            "time": time_str,
            "createdAt": now,
            "updatedAt": now,
        }
        
        orders = get_orders_collection()
        await orders.insert_one(order)
        logger.info(
            f"Order created for {result.phone_number}",
            extra={"order_id": result.order_id}
        )
        return order


def canonical_employee_id(employee_id: str) -> str:
    """
    Hex ids are stored lower-case, the way ObjectId renders them.
    Values that are not ObjectIds are returned unchanged.
    """
    try:
        return str(ObjectId(employee_id))
    except (InvalidId, TypeError):
        return employee_id


async def _ensure_employee_exists(employee_id: str) -> str:
    """
    Returns:
        The canonical id of an existing employee
    """
    try:
        oid = ObjectId(employee_id)
    except (InvalidId, TypeError):
        raise ResourceNotFoundError("Employee not found", details={"employeeId": employee_id})
    
    employees = get_employees_collection()
    if await employees.find_one({"_id": oid}, {"_id": 1}) is None:
        raise ResourceNotFoundError("Employee not found", details={"employeeId": employee_id})
    return str(oid)


async def check_status(order_id: str, provider: Optional[ProviderClient] = None) -> StatusCheck:
    """
    Polls the provider for a pending order and applies the resulting transition.
    Orders that are no longer pending are returned as stored, without a provider call.
    """
    with LogContext(order_id=order_id):
        order = await _find_order(order_id)
        
        if is_terminal(order_status(order)):
            return StatusCheck(order=order, sms_received=False, provider_status=None)
        
        provider = provider or get_provider_client()
        result = await provider.poll(order_id)
        
        if result.status == PollStatus.SMS_READY:
            updated = await _transition(
                order_id,
                OrderStatus.COMPLETED,
                {"smsCode": result.sms_code, "completedAt": utcnow()}
            )
            if updated is None:
                logger.warning("Order left pending state while polling")
                return StatusCheck(order=await _find_order(order_id), sms_received=False, provider_status=result.raw)
            
            logger.info("SMS received")
            return StatusCheck(order=updated, sms_received=True, provider_status=result.raw)
        
        if result.status == PollStatus.CANCELLED:
            updated = await _transition(order_id, OrderStatus.CANCELLED, {"cancelledAt": utcnow()})
            if updated is None:
                return StatusCheck(order=await _find_order(order_id), sms_received=False, provider_status=result.raw)
            
            logger.info("Provider cancelled or timed out the order")
            return StatusCheck(order=updated, sms_received=False, provider_status=result.raw)
        
        logger.debug(f"SMS not yet received ({result.raw})")
        return StatusCheck(order=order, sms_received=False, provider_status=result.raw)


async def cancel_order(order_id: str, provider: Optional[ProviderClient] = None) -> Dict[str, Any]:
    """
    Releases the number and marks the order cancelled.
    
    Cancelling an already-cancelled order is a no-op. Completed orders
    cannot be cancelled. A provider rejection leaves the order untouched.
    """
    with LogContext(order_id=order_id):
        order = await _find_order(order_id)
        status = order_status(order)
        
        if status == OrderStatus.CANCELLED:
            logger.debug("Order already cancelled")
            return order
        
        if status == OrderStatus.COMPLETED:
            raise InvalidOrderStateError("Order already completed and cannot be cancelled")
        
        provider = provider or get_provider_client()
        result = await provider.cancel(order_id)
        if result.already_cancelled:
            logger.info("Provider lease was already cancelled")
        
        updated = await _transition(order_id, OrderStatus.CANCELLED, {"cancelledAt": utcnow()})
        if updated is None:
            # Completed or cancelled by a concurrent request
            return await _find_order(order_id)
        
        logger.info("Order cancelled")
        return updated


async def dismiss_order(order_id: str, employee_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Hides a completed order from the active board. Status is unchanged.
    
    Args:
        order_id: Provider order id
        employee_id: When given, the order must belong to this employee
    """
    with LogContext(order_id=order_id):
        order = await _find_order(order_id)
        
        if employee_id is not None and order.get("employeeId") != canonical_employee_id(employee_id):
            raise PermissionDeniedError("Order belongs to another employee")
        
        if order_status(order) != OrderStatus.COMPLETED:
            raise InvalidOrderStateError("Only completed orders can be dismissed")
        
        if order.get("dismissed"):
            return order
        
        orders = get_orders_collection()
        now = utcnow()
        updated = await orders.find_one_and_update(
            {"orderId": order_id, "status": OrderStatus.COMPLETED.value},
            {"$set": {"dismissed": True, "dismissedAt": now, "updatedAt": now}},
            return_document=ReturnDocument.AFTER
        )
        logger.info("Order dismissed")
        return updated or await _find_order(order_id)


async def list_orders(
    employee_id: Optional[str] = None,
    status: Optional[str] = None,
    date: Optional[str] = None
) -> List[Dict[str, Any]]:
    """
    Lists orders, newest first, optionally filtered by employee, status and date.
    """
    query: Dict[str, Any] = {}
    if employee_id:
        query["employeeId"] = canonical_employee_id(employee_id)
    if status:
        try:
            query["status"] = OrderStatus(status).value
        except ValueError:
            raise ValidationError(f"Unknown order status: {status}")
    if date:
        query["date"] = date
    
    orders = get_orders_collection()
    return await orders.find(query).sort("createdAt", DESCENDING).to_list(length=None)


async def get_employee_orders(employee_id: str) -> List[Dict[str, Any]]:
    return await list_orders(employee_id=employee_id)


async def get_active_orders(employee_id: str) -> List[Dict[str, Any]]:
    """
    Orders still on the employee's board: pending ones, and completed ones
    that have not been dismissed yet. Newest first.
    """
    orders = get_orders_collection()
    query = {
        "employeeId": canonical_employee_id(employee_id),
        "$or": [
            {"status": OrderStatus.PENDING.value},
            {"status": OrderStatus.COMPLETED.value, "dismissed": {"$ne": True}},
        ],
    }
    return await orders.find(query).sort("createdAt", DESCENDING).to_list(length=None)
