"""
otpdesk/client/api_client.py

Purpose: Employee-side client for the OTPDesk REST API

- Thin async wrapper over the order endpoints
- Classifies number requests into acquired / no numbers / failed
- Connection failures surface as DeskConnectionError
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Any, List

import httpx

from otpdesk.core.logging import get_logger

logger = get_logger(__name__)

NO_NUMBERS_CODE = "NO_NUMBERS"


class DeskConnectionError(Exception):
    """The OTPDesk server could not be reached."""


class DeskApiError(Exception):
    """The OTPDesk server answered with success: false."""
    
    def __init__(self, status_code: int, message: str, code: Optional[str] = None):
        self.status_code = status_code
        self.message = message
        self.code = code
        super().__init__(message)


class RequestKind(str, Enum):
    ACQUIRED = "acquired"
    NO_NUMBERS = "no_numbers"
    FAILED = "failed"


@dataclass
class RequestOutcome:
    kind: RequestKind
    order: Optional[Dict[str, Any]] = None
    message: str = ""


def classify_request_response(status_code: int, data: Dict[str, Any]) -> RequestOutcome:
    """
    Maps a /orders/request response onto a RequestOutcome.
    Only a missing inventory counts as retryable.
    """
    if data.get("success") and data.get("order"):
        return RequestOutcome(RequestKind.ACQUIRED, order=data["order"], message=data.get("message", ""))
    
    message = data.get("message") or "Failed to get number"
    if data.get("error") == NO_NUMBERS_CODE or "no numbers" in message.lower() or NO_NUMBERS_CODE in message:
        return RequestOutcome(RequestKind.NO_NUMBERS, message=message)
    
    return RequestOutcome(RequestKind.FAILED, message=message)


class DeskApiClient:
    """
    Async client used by the polling engine.
    
    Args:
        base_url: Server URL including the API prefix, e.g. http://localhost:8000/api
        transport: Optional httpx transport (tests)
    """
    
    def __init__(self, base_url: str, timeout: float = 30.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._client = httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)
    
    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return await self._client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            logger.error(f"Connection to OTPDesk failed ({method} {path}): {e}")
            raise DeskConnectionError(str(e) or type(e).__name__) from e
    
    async def _json(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        response = await self._send(method, path, **kwargs)
        try:
            data = response.json()
        except ValueError:
            raise DeskApiError(response.status_code, f"Unexpected response ({response.status_code})")
        
        if response.status_code >= 400 or not data.get("success", False):
            raise DeskApiError(response.status_code, data.get("message", "Request failed"), data.get("error"))
        return data
    
    async def login(self, username: str, password: str) -> Dict[str, Any]:
        data = await self._json("POST", "/auth/employee/login", json={"username": username, "password": password})
        return data["employee"]
    
    async def validate_session(self, employee: Dict[str, Any]) -> bool:
        """
        Re-checks a stored identity: the employee must still exist and be active.
        """
        data = await self._json("GET", "/employees")
        for candidate in data.get("employees", []):
            if candidate.get("_id") == employee.get("id"):
                return candidate.get("status") == "active"
        return False
    
    async def request_number(self, employee: Dict[str, Any]) -> RequestOutcome:
        response = await self._send(
            "POST",
            "/orders/request",
            json={"employeeId": employee["id"], "employeeName": employee["name"]},
        )
        try:
            data = response.json()
        except ValueError:
            return RequestOutcome(RequestKind.FAILED, message=f"Unexpected response ({response.status_code})")
        return classify_request_response(response.status_code, data)
    
    async def active_orders(self, employee_id: str) -> List[Dict[str, Any]]:
        data = await self._json("GET", f"/orders/active/{employee_id}")
        return data.get("activeOrders", [])
    
    async def check_sms(self, order_id: str) -> Dict[str, Any]:
        return await self._json("GET", f"/orders/check-sms/{order_id}")
    
    async def cancel(self, order_id: str) -> Dict[str, Any]:
        return await self._json("POST", f"/orders/cancel/{order_id}")
    
    async def dismiss(self, order_id: str, employee_id: Optional[str] = None) -> Dict[str, Any]:
        body = {"employeeId": employee_id} if employee_id else None
        return await self._json("POST", f"/orders/dismiss/{order_id}", json=body)
    
    async def close(self):
        await self._client.aclose()
