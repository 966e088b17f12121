"""Reconnecting subscriber for the realtime channel.

The hub keeps no backlog, so whatever was published while the client was
away is lost. After every successful reconnect the client calls
``on_reconnect`` and the consumer is expected to reload its state.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import urlencode

import websockets
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base
from websockets.exceptions import InvalidStatus, WebSocketException

from ivas.core.config import RealtimeSettings, settings
from ivas.core.exceptions import AuthenticationError, ChannelAbandonedError
from ivas.schemas.events import RealtimeEvent
from ivas.utils.logging import get_logger

LOGGER = get_logger(__name__)

EventCallback = Callable[[RealtimeEvent], Awaitable[None]]
ReconnectCallback = Callable[[], Awaitable[None]]

# Handshake statuses that end the client instead of reconnecting
_REJECTED_STATUSES = {401, 403}


def _is_transient(error: BaseException) -> bool:
    if isinstance(error, InvalidStatus):
        return error.response.status_code not in _REJECTED_STATUSES
    return isinstance(error, (OSError, asyncio.TimeoutError, WebSocketException))


class RealtimeClient:
    """Keeps one subscription open and hands every frame to ``on_event``.

    Example:
        client = RealtimeClient("ws://localhost:8000/ws", token, on_event=handle, on_reconnect=reload)
        await client.run()
    """

    def __init__(
        self,
        url: str,
        token: str,
        on_event: EventCallback,
        on_reconnect: Optional[ReconnectCallback] = None,
        config: Optional[RealtimeSettings] = None,
        connect: Callable[[str], Awaitable[Any]] = websockets.connect,
        wait: Optional[wait_base] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the client.

        Args:
            url: Websocket endpoint of the hub
            token: Bearer token, sent as the ``token`` query parameter
            on_event: Awaited for every frame received
            on_reconnect: Awaited after each reconnect, not after the first connect
            config: Attempt cap and backoff bounds
            connect: Opens a connection for a URL
            wait: Backoff strategy between failed attempts
            sleep: Awaited for every pause before reconnecting
            clock: Monotonic seconds, used to tell short-lived connections apart
        """
        self.config = config or settings.realtime
        self.url = f"{url}?{urlencode({'token': token})}"
        self.on_event = on_event
        self.on_reconnect = on_reconnect
        self._connect = connect
        self._wait = wait or wait_exponential(
            multiplier=self.config.reconnect_delay_min,
            min=self.config.reconnect_delay_min,
            max=self.config.reconnect_delay_max,
        )
        self._sleep = sleep
        self._clock = clock
        self._stopped = False
        self.connections = 0
        self.received = 0

    def stop(self) -> None:
        """Let ``run`` return once the current connection ends."""
        self._stopped = True

    def _log_retry(self, retry_state: RetryCallState) -> None:
        LOGGER.warning(
            f"Realtime connection attempt {retry_state.attempt_number} failed: {retry_state.outcome.exception()}",
            extra={"url": self.url.split("?", 1)[0], "attempt": retry_state.attempt_number},
        )

    async def _consume(self, connection: Any) -> None:
        async for message in connection:
            event = RealtimeEvent.model_validate_json(message)
            self.received += 1
            await self.on_event(event)

    async def _session(self) -> None:
        """Open one connection and consume it until it ends.

        A connection that ends before ``reconnect_stable_after`` seconds is
        reported as a ``ConnectionError`` so it counts as a failed attempt.
        """
        connection = await self._connect(self.url)
        self.connections += 1
        opened_at = self._clock()
        LOGGER.info("Realtime channel connected", extra={"connections": self.connections})
        try:
            if self.connections > 1 and self.on_reconnect is not None:
                await self.on_reconnect()
            await self._consume(connection)
        except WebSocketException as e:
            LOGGER.warning(f"Realtime channel dropped: {e}")
        finally:
            await connection.close()

        lifetime = self._clock() - opened_at
        if not self._stopped and lifetime < self.config.reconnect_stable_after:
            raise ConnectionError(f"Realtime channel closed {lifetime:.3f}s after connecting")

    async def _run_until_stable_drop(self) -> None:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.config.reconnect_attempts),
            wait=self._wait,
            retry=retry_if_exception(_is_transient),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        try:
            await retrying(self._session)
        except InvalidStatus as e:
            if e.response.status_code in _REJECTED_STATUSES:
                raise AuthenticationError("Realtime channel rejected the token", original_error=e) from e
            raise ChannelAbandonedError(self.config.reconnect_attempts, original_error=e) from e
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            LOGGER.error("Giving up on realtime channel", extra={"attempts": self.config.reconnect_attempts})
            raise ChannelAbandonedError(self.config.reconnect_attempts, original_error=e) from e

    async def run(self) -> None:
        """Connect, consume, and reconnect until stopped.

        Failed handshakes and short-lived connections share one budget of
        consecutive attempts with exponential backoff between them. A
        connection that stayed up resets the budget; the client still waits
        ``reconnect_delay_min`` before opening the next one.

        Raises:
            ChannelAbandonedError: Consecutive connection attempts hit the cap
            AuthenticationError: The hub refused the token
        """
        while not self._stopped:
            await self._run_until_stable_drop()
            if not self._stopped:
                await self._sleep(self.config.reconnect_delay_min)
