"""
otpdesk/services/provider_client.py

Purpose: Number provider integration

- Acquire a number, poll its status, cancel the lease
- Parses the provider's plain-text, colon-delimited protocol
- Separates transport failures from provider-level rejections
"""

import httpx
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Any

from otpdesk.core.config import settings
from otpdesk.core.exceptions import ProviderRejectedError, ProviderTransportError
from otpdesk.core.logging import get_logger

logger = get_logger(__name__)

# Provider response markers
ACCESS_NUMBER = "ACCESS_NUMBER"
NO_NUMBERS = "NO_NUMBERS"
STATUS_OK = "STATUS_OK"
STATUS_CANCEL = "STATUS_CANCEL"
ACCESS_CANCEL = "ACCESS_CANCEL"
ACCESS_CANCEL_ALREADY = "ACCESS_CANCEL_ALREADY"

# setStatus code that releases a number
CANCEL_STATUS_CODE = "8"


class AcquireStatus(str, Enum):
    ACQUIRED = "acquired"
    NO_NUMBERS = "no_numbers"


class PollStatus(str, Enum):
    SMS_READY = "sms_ready"
    CANCELLED = "cancelled"
    WAITING = "waiting"


@dataclass(frozen=True)
class AcquireResult:
    status: AcquireStatus
    order_id: Optional[str] = None
    phone_number: Optional[str] = None

    @property
    def acquired(self) -> bool:
        return self.status == AcquireStatus.ACQUIRED


@dataclass(frozen=True)
class PollResult:
    status: PollStatus
    sms_code: Optional[str] = None
    raw: str = ""


@dataclass(frozen=True)
class CancelResult:
    already_cancelled: bool
    raw: str = ""


def parse_acquire_response(text: str) -> AcquireResult:
    """
    ACCESS_NUMBER:<orderId>:<phoneNumber> | NO_NUMBERS | anything else (rejected)
    """
    if text.startswith(ACCESS_NUMBER):
        parts = text.split(":")
        if len(parts) < 3 or not parts[1] or not parts[2]:
            raise ProviderRejectedError(text)
        return AcquireResult(AcquireStatus.ACQUIRED, order_id=parts[1], phone_number=parts[2])
    
    if text == NO_NUMBERS:
        return AcquireResult(AcquireStatus.NO_NUMBERS)
    
    raise ProviderRejectedError(text)


def parse_poll_response(text: str) -> PollResult:
    """
    STATUS_OK:<code> | STATUS_CANCEL | any other status string (still waiting)
    """
    if text.startswith(STATUS_OK):
        code = text.split(":", 1)[1] if ":" in text else ""
        if not code:
            raise ProviderRejectedError(text)
        return PollResult(PollStatus.SMS_READY, sms_code=code, raw=text)
    
    if text == STATUS_CANCEL:
        return PollResult(PollStatus.CANCELLED, raw=text)
    
    return PollResult(PollStatus.WAITING, raw=text)


def parse_cancel_response(text: str) -> CancelResult:
    """
    ACCESS_CANCEL | ACCESS_CANCEL_ALREADY | anything else (rejected)
    """
    if text == ACCESS_CANCEL:
        return CancelResult(already_cancelled=False, raw=text)
    if text == ACCESS_CANCEL_ALREADY:
        return CancelResult(already_cancelled=True, raw=text)
    raise ProviderRejectedError(text, message=f"Failed to cancel: {text}")


class ProviderClient:
    """
    Client for the number provider's handler API.
    Every command is a GET with `api_key` and `action` query parameters.
    """
    
    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url or settings.PROVIDER_API_URL
        self.api_key = api_key if api_key is not None else settings.PROVIDER_API_KEY
        self.service = settings.PROVIDER_SERVICE
        self.operator = settings.PROVIDER_OPERATOR
        self.country = settings.PROVIDER_COUNTRY
        self.max_price = settings.PROVIDER_MAX_PRICE
        self._client = httpx.AsyncClient(
            timeout=timeout or settings.PROVIDER_TIMEOUT,
            transport=transport,
        )
    
    async def _call(self, action: str, **params: Any) -> str:
        query: Dict[str, Any] = {"api_key": self.api_key or "", "action": action}
        query.update(params)
        
        try:
            response = await self._client.get(self.base_url, params=query)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            logger.error(f"Provider timeout on {action}")
            raise ProviderTransportError("Number provider timed out", details=str(e) or "timeout") from e
        except httpx.HTTPStatusError as e:
            logger.error(f"Provider returned HTTP {e.response.status_code} on {action}")
            raise ProviderTransportError(
                f"Number provider returned HTTP {e.response.status_code}",
                details=e.response.text[:200]
            ) from e
        except httpx.RequestError as e:
            logger.error(f"Network error calling provider ({action}): {e}")
            raise ProviderTransportError("Unable to connect to number provider", details=str(e)) from e
        
        text = response.text.strip()
        logger.debug(f"Provider {action} -> {text}")
        return text
    
    async def acquire(self) -> AcquireResult:
        """
        Leases a new number.
        
        Returns:
            AcquireResult (ACQUIRED with order id and phone, or NO_NUMBERS)
        
        Raises:
            ProviderRejectedError: Any other provider answer (balance, auth, ...)
            ProviderTransportError: Provider unreachable
        """
        text = await self._call(
            "getNumber",
            operator=self.operator,
            service=self.service,
            country=self.country,
            maxPrice=self.max_price,
        )
        result = parse_acquire_response(text)
        
        if result.acquired:
            logger.info(f"Provider leased number {result.phone_number}", extra={"order_id": result.order_id})
        else:
            logger.info("Provider has no numbers available")
        return result
    
    async def poll(self, order_id: str) -> PollResult:
        """
        Reads the SMS status of a leased number.
        """
        text = await self._call("getStatus", id=order_id)
        return parse_poll_response(text)
    
    async def cancel(self, order_id: str) -> CancelResult:
        """
        Releases a leased number. An already-cancelled lease counts as success.
        """
        text = await self._call("setStatus", status=CANCEL_STATUS_CODE, id=order_id)
        return parse_cancel_response(text)
    
    async def close(self):
        await self._client.aclose()


# Global provider client instance
_provider_client: Optional[ProviderClient] = None


def get_provider_client() -> ProviderClient:
    """Get or create the global provider client instance."""
    global _provider_client
    if _provider_client is None:
        _provider_client = ProviderClient()
    return _provider_client


def set_provider_client(client: Optional[ProviderClient]) -> None:
    """Replace the global provider client (tests, scripts)."""
    global _provider_client
    _provider_client = client


async def close_provider_client():
    """Close the provider client and release its connection pool."""
    global _provider_client
    if _provider_client:
        await _provider_client.close()
        _provider_client = None
