"""
otpdesk/client/autobuy.py

Purpose: Auto-buy loop

- Requests a number immediately, then again every interval until one is leased
- Bounded by a maximum number of attempts
- Only "no numbers" keeps the loop going; any other failure stops it

States: IDLE -> RETRYING -> STOPPED (and back to RETRYING on the next enable).
Attempts never overlap: the next one is scheduled only after the previous
request has completed.
"""

import asyncio
from enum import Enum
from typing import Awaitable, Callable, Optional, Dict, Any

from otpdesk.client.api_client import DeskConnectionError, RequestOutcome, RequestKind
from otpdesk.core.config import settings
from otpdesk.core.logging import get_logger

logger = get_logger(__name__)


class AutoBuyState(str, Enum):
    IDLE = "idle"
    RETRYING = "retrying"
    STOPPED = "stopped"


class StopReason(str, Enum):
    ACQUIRED = "acquired"
    ATTEMPT_LIMIT = "attempt_limit"
    PROVIDER_ERROR = "provider_error"
    CONNECTION_ERROR = "connection_error"
    DISABLED = "disabled"


class AutoBuyLoop:
    
    def __init__(
        self,
        request_number: Callable[[], Awaitable[RequestOutcome]],
        *,
        on_acquired: Optional[Callable[[Dict[str, Any]], None]] = None,
        on_stopped: Optional[Callable[[StopReason, str], None]] = None,
        max_attempts: Optional[int] = None,
        interval: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._request_number = request_number
        self._on_acquired = on_acquired
        self._on_stopped = on_stopped
        self.max_attempts = max_attempts or settings.MAX_AUTO_BUY_ATTEMPTS
        self.interval = settings.AUTO_BUY_INTERVAL_SECONDS if interval is None else interval
        self._sleep = sleep
        
        self.state = AutoBuyState.IDLE
        self.attempts = 0
        self.stop_reason: Optional[StopReason] = None
        self.last_message = ""
        self._task: Optional[asyncio.Task] = None
    
    @property
    def enabled(self) -> bool:
        return self.state == AutoBuyState.RETRYING
    
    def toggle(self) -> bool:
        """
        Turns auto-buy on, or off when it is already running.
        
        Returns:
            True if auto-buy is now enabled
        """
        if self.enabled:
            self.disable()
        else:
            self.enable()
        return self.enabled
    
    def enable(self) -> None:
        """
        Resets the attempt counter and starts retrying in the background.
        Must be called from a running event loop.
        """
        if self.enabled:
            return
        self._begin()
        self._task = asyncio.get_running_loop().create_task(self._loop())
    
    def disable(self) -> None:
        """
        Stops the loop and drops the pending retry.
        """
        self.stop(StopReason.DISABLED)
    
    def stop(self, reason: StopReason, message: str = "") -> None:
        if not self.enabled:
            return
        
        self.state = AutoBuyState.STOPPED
        self.stop_reason = reason
        if message:
            self.last_message = message
        logger.info(f"Auto-buy stopped after {self.attempts} attempts: {reason.value}")
        
        task = self._task
        self._task = None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
        
        if self._on_stopped:
            self._on_stopped(reason, message)
    
    async def wait(self) -> None:
        """Waits for the background loop to finish."""
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass
    
    async def run(self) -> Optional[StopReason]:
        """
        Runs the loop in the current task until it stops.
        """
        if not self.enabled:
            self._begin()
        await self._loop()
        return self.stop_reason
    
    def _begin(self) -> None:
        self.state = AutoBuyState.RETRYING
        self.attempts = 0
        self.stop_reason = None
        self.last_message = ""
        logger.info(f"Auto-buy started (max {self.max_attempts} attempts, every {self.interval}s)")
    
    async def _loop(self) -> None:
        while self.enabled:
            if not await self.attempt():
                break
            await self._sleep(self.interval)
    
    async def attempt(self) -> bool:
        """
        Performs one request.
        
        Returns:
            True when the loop should keep retrying
        """
        if not self.enabled:
            return False
        
        self.attempts += 1
        logger.debug(f"Auto-buy attempt {self.attempts}/{self.max_attempts}", extra={"attempt": self.attempts})
        
        try:
            outcome = await self._request_number()
        except DeskConnectionError as e:
            self.stop(StopReason.CONNECTION_ERROR, f"Connection failed: {e}")
            return False
        
        self.last_message = outcome.message
        
        if outcome.kind == RequestKind.ACQUIRED:
            self.stop(StopReason.ACQUIRED, outcome.message)
            if self._on_acquired and outcome.order:
                self._on_acquired(outcome.order)
            return False
        
        if outcome.kind == RequestKind.FAILED:
            self.stop(StopReason.PROVIDER_ERROR, outcome.message)
            return False
        
        if self.attempts >= self.max_attempts:
            self.stop(StopReason.ATTEMPT_LIMIT, f"Reached {self.max_attempts} attempts limit")
            return False
        
        return True
