"""Event distribution hub.

Fans state-change notifications out to connected websocket sessions. Each
session owns a bounded outbound queue drained by its websocket handler;
``publish`` only enqueues, so publishers never wait on a slow or broken
connection. There is no backlog: an event published while a session is
absent is simply never seen by it, and clients reload state after
reconnecting.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
from uuid import uuid4

import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ivas.core.auth import claims_to_user
from ivas.core.config import settings
from ivas.core.exceptions import AuthenticationError
from ivas.core.jwt import JWTVerifier, jwt_verifier
from ivas.repositories.user_repository import UserRepository
from ivas.schemas.enums import UserRole
from ivas.schemas.events import EventName, EventScope, RealtimeEvent
from ivas.utils.clock import utc_now
from ivas.utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass
class HubSession:
    """One authenticated channel registered with the hub."""

    user_id: int
    role: UserRole
    company_id: Optional[int]
    queue: asyncio.Queue
    loop: asyncio.AbstractEventLoop
    id: str = field(default_factory=lambda: str(uuid4()))
    connected_at: datetime = field(default_factory=utc_now)
    delivered: int = 0
    dropped: int = 0
    closed: bool = False

    async def next_event(self) -> RealtimeEvent:
        """Wait for the next frame addressed to this session."""
        event = await self.queue.get()
        self.delivered += 1
        return event


class EventHub:
    """Registry of live sessions with scoped, non-blocking fan-out.

    The hub is constructed explicitly and attached to the application state;
    tests build their own instance.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        verifier: JWTVerifier = jwt_verifier,
        queue_size: Optional[int] = None,
        heartbeat_interval: Optional[float] = None,
    ):
        """Initialize the hub.

        Args:
            session_factory: Factory used to look up connecting users
            verifier: Bearer token verifier
            queue_size: Outbound frames buffered per session before dropping
            heartbeat_interval: Seconds between heartbeat frames; 0 disables them
        """
        self.session_factory = session_factory
        self.verifier = verifier
        self.queue_size = queue_size if queue_size is not None else settings.realtime.session_queue_size
        self.heartbeat_interval = (
            heartbeat_interval if heartbeat_interval is not None else settings.realtime.heartbeat_interval
        )
        self._sessions: Dict[str, HubSession] = {}
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._running = False
        self.published = 0
        self.publish_failures = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def sessions(self) -> List[HubSession]:
        return list(self._sessions.values())

    async def start(self) -> None:
        """Start the channel-management loop."""
        if self._running:
            return
        self._running = True
        if self.heartbeat_interval and self.heartbeat_interval > 0:
            self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())
        LOGGER.info("Event hub started", extra={"heartbeat_interval": self.heartbeat_interval})

    async def stop(self) -> None:
        """Stop the loop and detach every session."""
        self._running = False
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            try:
                await self._heartbeat_task
            except asyncio.CancelledError:
                pass
            self._heartbeat_task = None

        for session in self.sessions:
            self.disconnect(session)
        LOGGER.info("Event hub stopped")

    async def connect(self, token: str) -> HubSession:
        """Authenticate a token and register a new session for it.

        The token is verified first, then the user is loaded from the store so
        the session is tagged with the role and company on record.

        Raises:
            AuthenticationError: Token invalid, user unknown or inactive, or hub stopped
        """
        if not self._running:
            raise AuthenticationError("Realtime channel is not accepting connections")

        try:
            claims = await self.verifier.verify_token(token)
            caller = claims_to_user(claims)
        except jwt.InvalidTokenError as e:
            LOGGER.warning(f"Rejected realtime connection: {e}")
            raise AuthenticationError("Invalid authentication token", original_error=e) from e

        async with self.session_factory() as db_session:
            user = await UserRepository(db_session).get_by_id(caller.id)

        if user is None or not user.is_active:
            LOGGER.warning("Rejected realtime connection for unknown or inactive user", extra={"user_id": caller.id})
            raise AuthenticationError("User is not allowed to subscribe")

        session = HubSession(
            user_id=user.id,
            role=UserRole(user.role),
            company_id=user.company_id,
            queue=asyncio.Queue(maxsize=self.queue_size),
            loop=asyncio.get_running_loop(),
        )
        self._sessions[session.id] = session
        LOGGER.info(
            "Realtime session connected",
            extra={"session_id": session.id, "user_id": user.id, "role": user.role, "company_id": user.company_id},
        )
        return session

    def disconnect(self, session: HubSession) -> None:
        session.closed = True
        if self._sessions.pop(session.id, None) is not None:
            LOGGER.info(
                "Realtime session disconnected",
                extra={"session_id": session.id, "delivered": session.delivered, "dropped": session.dropped},
            )

    def publish(
        self,
        event_name: EventName | str,
        payload: Dict[str, Any],
        scope: Optional[EventScope] = None,
    ) -> int:
        """Queue an event for every session the scope matches.

        Never raises and never blocks.

        Returns:
            Number of sessions the event was queued for
        """
        name = event_name.value if isinstance(event_name, EventName) else event_name
        try:
            event = RealtimeEvent(event=name, data=payload)
            scope = scope or EventScope()
            targets = [s for s in self.sessions if scope.matches(s.role, s.company_id, s.user_id)]
        except Exception as e:
            self.publish_failures += 1
            LOGGER.warning(f"Failed to publish realtime event '{name}': {e}", exc_info=True)
            return 0

        delivered = 0
        for session in targets:
            try:
                self._dispatch(session, event)
                delivered += 1
            except Exception as e:
                LOGGER.warning(
                    f"Detaching realtime session that could not take event '{name}': {e}",
                    extra={"session_id": session.id, "user_id": session.user_id},
                )
                self.disconnect(session)
        self.published += 1
        return delivered

    def _dispatch(self, session: HubSession, event: RealtimeEvent) -> None:
        try:
            running_loop = asyncio.get_running_loop()
        except RuntimeError:
            running_loop = None

        if running_loop is session.loop:
            self._enqueue(session, event)
        else:
            session.loop.call_soon_threadsafe(self._enqueue, session, event)

    def _enqueue(self, session: HubSession, event: RealtimeEvent) -> None:
        if session.closed:
            return
        try:
            session.queue.put_nowait(event)
        except asyncio.QueueFull:
            session.dropped += 1
            LOGGER.warning(
                "Dropping realtime event for slow session",
                extra={"session_id": session.id, "event": event.event, "dropped": session.dropped},
            )

    async def _heartbeat_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.heartbeat_interval)
            self.publish(EventName.HEARTBEAT, {"sessions": len(self._sessions)})

    def stats(self) -> Dict[str, Any]:
        """Delivery counters for the health endpoint."""
        return {
            "running": self._running,
            "sessions": len(self._sessions),
            "published": self.published,
            "publish_failures": self.publish_failures,
            "dropped": sum(s.dropped for s in self._sessions.values()),
        }


def regulators(*extra_roles: UserRole) -> EventScope:
    """Scope reaching admin and regulator sessions plus any extra roles."""
    roles: Iterable[UserRole] = (UserRole.ADMIN, UserRole.CBL, *extra_roles)
    return EventScope(roles=frozenset(roles))


def regulators_and_company(company_id: Optional[int], *extra_roles: UserRole) -> EventScope:
    """Scope reaching regulators plus every session of one company."""
    scope = regulators(*extra_roles)
    return scope.model_copy(update={"company_id": company_id})
