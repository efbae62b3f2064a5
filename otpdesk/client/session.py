"""
otpdesk/client/session.py

Purpose: Employee board coordinator

- Owns the tracked orders, one countdown per order, the SMS poll loop,
  the countdown tick loop and the auto-buy loop
- Auto-cancels pending orders and auto-dismisses completed ones once
  their window has run out
- Ignores duplicate actions on an order while one is in flight

Everything runs on one event loop; time comes from the injected clock and
sleep so the board can be driven step by step.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Awaitable, Dict, List, Optional

from otpdesk.client.api_client import (
    DeskApiError,
    DeskConnectionError,
    RequestKind,
    RequestOutcome,
)
from otpdesk.client.autobuy import AutoBuyLoop, StopReason
from otpdesk.core.config import settings
from otpdesk.core.logging import get_logger
from otpdesk.models.order import OrderStatus
from otpdesk.utils.time_utils import utcnow, parse_timestamp

logger = get_logger(__name__)

REQUEST_KEY = "__request__"


class SessionExpiredError(Exception):
    """The stored employee identity is no longer valid."""


class CountdownAction(str, Enum):
    AUTO_DISMISS = "auto_dismiss"
    AUTO_CANCEL = "auto_cancel"


class EventKind(str, Enum):
    NUMBER_RECEIVED = "number_received"
    SMS_RECEIVED = "sms_received"
    ORDER_CANCELLED = "order_cancelled"
    ORDER_DISMISSED = "order_dismissed"
    ORDER_EXPIRED = "order_expired"
    AUTO_BUY_STOPPED = "auto_buy_stopped"
    ERROR = "error"


@dataclass
class SessionEvent:
    kind: EventKind
    message: str
    order_id: Optional[str] = None


@dataclass
class OrderCountdown:
    """
    Countdown for one tracked order, measured from its creation time.
    """
    order_id: str
    started_at: datetime
    window: timedelta
    completed: bool = False
    expired_at: Optional[datetime] = None
    fired: bool = False

    @property
    def deadline(self) -> datetime:
        return self.started_at + self.window

    @property
    def expired(self) -> bool:
        return self.expired_at is not None

    def remaining(self, now: datetime) -> timedelta:
        return max(timedelta(0), self.deadline - now)

    def advance(self, now: datetime, dismiss_delay: timedelta, cancel_delay: timedelta) -> Optional[CountdownAction]:
        """
        Moves the countdown forward to `now`.
        
        Returns:
            The action that is due, once per arming
        """
        if self.fired:
            return None
        if self.expired_at is None:
            if now < self.deadline:
                return None
            self.expired_at = now
        
        delay = dismiss_delay if self.completed else cancel_delay
        if now - self.expired_at < delay:
            return None
        
        self.fired = True
        return CountdownAction.AUTO_DISMISS if self.completed else CountdownAction.AUTO_CANCEL

    def rearm(self, now: datetime) -> None:
        """Retry the expiry action after another delay."""
        self.expired_at = now
        self.fired = False


def _is_completed(order: Dict[str, Any]) -> bool:
    return order.get("status") == OrderStatus.COMPLETED.value or bool(order.get("smsCode"))


def _is_waiting(order: Dict[str, Any]) -> bool:
    return order.get("status") == OrderStatus.PENDING.value and not order.get("smsCode")


class ActiveOrderSession:
    """
    The active-numbers board of one logged-in employee.
    
    Args:
        api: DeskApiClient (or anything with the same coroutine methods)
        employee: Identity returned by login ({id, username, name, email})
        clock: Returns the current naive-UTC time
        sleep: Coroutine used between loop iterations
        auto_start: Spawn the poll/tick loops automatically when orders are tracked
        on_event: Callback receiving SessionEvent notifications
    """
    
    def __init__(
        self,
        api,
        employee: Dict[str, Any],
        *,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        auto_start: bool = True,
        on_event: Optional[Callable[[SessionEvent], None]] = None,
        window_minutes: Optional[int] = None,
        poll_interval: Optional[float] = None,
        tick_interval: float = 1.0,
        dismiss_delay: float = 1.0,
        cancel_delay: float = 2.0,
        max_auto_buy_attempts: Optional[int] = None,
        auto_buy_interval: Optional[float] = None,
    ):
        self.api = api
        self.employee = employee
        self.clock = clock
        self._sleep = sleep
        self.auto_start = auto_start
        self._on_event = on_event
        
        self.window = timedelta(minutes=window_minutes or settings.ORDER_WINDOW_MINUTES)
        self.poll_interval = settings.SMS_POLL_INTERVAL_SECONDS if poll_interval is None else poll_interval
        self.tick_interval = tick_interval
        self.dismiss_delay = timedelta(seconds=dismiss_delay)
        self.cancel_delay = timedelta(seconds=cancel_delay)
        
        self.orders: Dict[str, Dict[str, Any]] = {}
        self.timers: Dict[str, OrderCountdown] = {}
        self.events: List[SessionEvent] = []
        self._in_flight = set()
        self._poll_task: Optional[asyncio.Task] = None
        self._timer_task: Optional[asyncio.Task] = None
        
        self.autobuy = AutoBuyLoop(
            self._auto_buy_request,
            on_acquired=self._on_auto_buy_acquired,
            on_stopped=self._on_auto_buy_stopped,
            max_attempts=max_auto_buy_attempts,
            interval=auto_buy_interval,
            sleep=sleep,
        )
    
    # ------------------------------------------------------------------
    # Tracked state
    # ------------------------------------------------------------------
    
    @property
    def active_orders(self) -> List[Dict[str, Any]]:
        """Tracked orders, newest first."""
        return list(self.orders.values())
    
    def pending_orders(self) -> List[Dict[str, Any]]:
        return [o for o in self.orders.values() if _is_waiting(o)]
    
    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()
    
    @property
    def ticking(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()
    
    def emit(self, kind: EventKind, message: str, order_id: Optional[str] = None) -> None:
        event = SessionEvent(kind, message, order_id)
        self.events.append(event)
        if self._on_event:
            self._on_event(event)
    
    def track(self, order: Dict[str, Any]) -> None:
        """
        Adds (or refreshes) an order on the board and (re)starts its countdown.
        """
        order_id = order["orderId"]
        if order_id in self.orders:
            self.orders[order_id] = order
        else:
            self.orders = {order_id: order, **self.orders}
        
        started_at = parse_timestamp(order.get("createdAt")) or self.clock()
        self.timers[order_id] = OrderCountdown(
            order_id=order_id,
            started_at=started_at,
            window=self.window,
            completed=_is_completed(order),
        )
        
        if _is_waiting(order):
            self._ensure_polling()
        self._ensure_ticking()
    
    def untrack(self, order_id: str) -> None:
        """
        Removes an order and its countdown together.
        """
        self.orders.pop(order_id, None)
        self.timers.pop(order_id, None)
    
    def remaining(self, order_id: str) -> Optional[timedelta]:
        timer = self.timers.get(order_id)
        return timer.remaining(self.clock()) if timer else None
    
    async def load(self) -> List[Dict[str, Any]]:
        """
        Re-validates the employee and loads their active orders.
        
        Raises:
            SessionExpiredError: Employee removed or deactivated
        """
        if not await self.api.validate_session(self.employee):
            raise SessionExpiredError("Session is no longer valid. Please log in again.")
        
        orders = await self.api.active_orders(self.employee["id"])
        self.orders = {}
        self.timers = {}
        for order in reversed(orders):
            self.track(order)
        logger.info(f"Loaded {len(orders)} active orders", extra={"employee_id": self.employee["id"]})
        return self.active_orders
    
    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------
    
    async def _request_outcome(self) -> RequestOutcome:
        return await self.api.request_number(self.employee)
    
    async def _auto_buy_request(self) -> RequestOutcome:
        """
        One auto-buy attempt. Shares the in-flight slot with manual requests,
        so at most one number request is outstanding at a time.
        """
        if REQUEST_KEY in self._in_flight:
            return RequestOutcome(RequestKind.NO_NUMBERS, message="A number request is already in progress")
        
        self._in_flight.add(REQUEST_KEY)
        try:
            return await self._request_outcome()
        finally:
            self._in_flight.discard(REQUEST_KEY)
    
    def _on_auto_buy_acquired(self, order: Dict[str, Any]) -> None:
        self.track(order)
        self.emit(EventKind.NUMBER_RECEIVED, f"Number received: {order.get('phoneNumber')}", order.get("orderId"))
    
    def _on_auto_buy_stopped(self, reason: StopReason, message: str) -> None:
        if reason == StopReason.DISABLED:
            return
        self.emit(EventKind.AUTO_BUY_STOPPED, f"Auto-buy stopped ({reason.value}) {message}".strip())
    
    async def request_number(self) -> Optional[RequestOutcome]:
        """
        Manual "get number". Ignored while another request (manual or auto-buy)
        is in flight.
        """
        if REQUEST_KEY in self._in_flight:
            return None
        
        self._in_flight.add(REQUEST_KEY)
        try:
            outcome = await self._request_outcome()
        except DeskConnectionError:
            self.emit(EventKind.ERROR, "Connection failed. Please check your internet connection.")
            return RequestOutcome(RequestKind.FAILED, message="Connection failed")
        finally:
            self._in_flight.discard(REQUEST_KEY)
        
        if outcome.kind == RequestKind.ACQUIRED:
            self.track(outcome.order)
            self.emit(
                EventKind.NUMBER_RECEIVED,
                f"Number received: {outcome.order.get('phoneNumber')}",
                outcome.order.get("orderId"),
            )
            self.autobuy.stop(StopReason.ACQUIRED, "Number assigned")
        elif not self.autobuy.enabled:
            self.emit(EventKind.ERROR, outcome.message)
        return outcome
    
    async def poll_once(self, order_id: Optional[str] = None) -> List[SessionEvent]:
        """
        Checks the provider for one order, or every order still waiting for an SMS.
        
        Returns:
            Events produced by this poll
        """
        before = len(self.events)
        if order_id is not None:
            candidates = [self.orders[order_id]] if order_id in self.orders else []
        else:
            candidates = self.pending_orders()
        
        for order in candidates:
            oid = order["orderId"]
            if not _is_waiting(order) or oid in self._in_flight:
                continue
            
            self._in_flight.add(oid)
            try:
                data = await self.api.check_sms(oid)
            except DeskApiError as e:
                if e.status_code == 404:
                    self.untrack(oid)
                logger.warning(f"SMS check failed: {e.message}", extra={"order_id": oid})
                if order_id is not None:
                    self.emit(EventKind.ERROR, "Failed to check SMS. Please try again.", oid)
                continue
            except DeskConnectionError:
                if order_id is not None:
                    self.emit(EventKind.ERROR, "Failed to check SMS. Please try again.", oid)
                continue
            finally:
                self._in_flight.discard(oid)
            
            self._apply_check(order, data)
        
        return self.events[before:]
    
    def _apply_check(self, order: Dict[str, Any], data: Dict[str, Any]) -> None:
        oid = order["orderId"]
        if oid not in self.orders:
            return
        updated = data.get("order") or order
        
        if data.get("smsCode") and updated.get("status") == OrderStatus.COMPLETED.value:
            self.orders[oid] = updated
            timer = self.timers.get(oid)
            if timer is not None:
                timer.completed = True
            self.emit(EventKind.SMS_RECEIVED, f"SMS Received! Code: {data['smsCode']}", oid)
        elif updated.get("status") == OrderStatus.CANCELLED.value:
            self.untrack(oid)
            self.emit(EventKind.ORDER_CANCELLED, f"Order {order.get('phoneNumber')} was cancelled or expired.", oid)
    
    async def cancel(self, order_id: str) -> bool:
        """
        User cancel. Returns True when the order left the board.
        """
        if order_id not in self.orders or order_id in self._in_flight:
            return False
        
        self._in_flight.add(order_id)
        try:
            await self.api.cancel(order_id)
        except DeskApiError as e:
            self.emit(EventKind.ERROR, e.message or "Failed to cancel order", order_id)
            return False
        except DeskConnectionError:
            self.emit(EventKind.ERROR, "Failed to cancel. Please try again.", order_id)
            return False
        finally:
            self._in_flight.discard(order_id)
        
        self.untrack(order_id)
        self.emit(EventKind.ORDER_CANCELLED, "Number cancelled successfully", order_id)
        return True
    
    async def dismiss(self, order_id: str) -> bool:
        """
        User dismiss of a completed order. Returns True when the order left the board.
        """
        if order_id not in self.orders or order_id in self._in_flight:
            return False
        
        self._in_flight.add(order_id)
        try:
            await self.api.dismiss(order_id, self.employee.get("id"))
        except DeskApiError as e:
            self.emit(EventKind.ERROR, e.message or "Failed to dismiss order", order_id)
            return False
        except DeskConnectionError:
            self.emit(EventKind.ERROR, "Failed to dismiss. Please try again.", order_id)
            return False
        finally:
            self._in_flight.discard(order_id)
        
        self.untrack(order_id)
        self.emit(EventKind.ORDER_DISMISSED, "Number dismissed", order_id)
        return True
    
    # ------------------------------------------------------------------
    # Countdown
    # ------------------------------------------------------------------
    
    async def tick(self) -> None:
        """
        Advances every countdown to the current clock and runs due expiry actions.
        """
        now = self.clock()
        for order_id, timer in list(self.timers.items()):
            # Removed (or re-tracked) while an earlier expiry action was awaited
            if self.timers.get(order_id) is not timer:
                continue
            was_expired = timer.expired
            action = timer.advance(now, self.dismiss_delay, self.cancel_delay)
            
            if timer.expired and not was_expired:
                if timer.completed:
                    self.emit(EventKind.ORDER_EXPIRED, "Completed order auto-dismissed", order_id)
                else:
                    self.emit(EventKind.ORDER_EXPIRED, "Order expired - No OTP received", order_id)
            
            if action == CountdownAction.AUTO_DISMISS:
                await self._expire(order_id, timer, self.api.dismiss, order_id, self.employee.get("id"))
            elif action == CountdownAction.AUTO_CANCEL:
                await self._expire(order_id, timer, self.api.cancel, order_id)
    
    async def _expire(self, order_id: str, timer: OrderCountdown, call, *args) -> None:
        if order_id in self._in_flight:
            timer.rearm(self.clock())
            return
        
        self._in_flight.add(order_id)
        try:
            await call(*args)
        except DeskConnectionError:
            logger.warning("Expiry action failed, will retry", extra={"order_id": order_id})
            timer.rearm(self.clock())
            return
        except DeskApiError as e:
            # Server already moved the order on (completed, cancelled or gone)
            logger.warning(f"Expiry action rejected: {e.message}", extra={"order_id": order_id})
        finally:
            self._in_flight.discard(order_id)
        
        self.untrack(order_id)
    
    # ------------------------------------------------------------------
    # Loops
    # ------------------------------------------------------------------
    
    def _running_loop(self) -> Optional[asyncio.AbstractEventLoop]:
        if not self.auto_start:
            return None
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            return None
    
    def _ensure_polling(self) -> None:
        loop = self._running_loop()
        if loop is None or self.polling:
            return
        self._poll_task = loop.create_task(self._poll_loop())
    
    def _ensure_ticking(self) -> None:
        loop = self._running_loop()
        if loop is None or self.ticking:
            return
        self._timer_task = loop.create_task(self._timer_loop())
    
    async def _poll_loop(self) -> None:
        logger.debug("SMS poll loop started")
        while True:
            await self._sleep(self.poll_interval)
            if not self.pending_orders():
                break
            await self.poll_once()
        logger.debug("SMS poll loop stopped")
    
    async def _timer_loop(self) -> None:
        while self.timers:
            await self.tick()
            await self._sleep(self.tick_interval)
    
    async def close(self) -> None:
        """
        Stops auto-buy and both loops.
        """
        self.autobuy.disable()
        for task in (self._poll_task, self._timer_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._poll_task = None
        self._timer_task = None
