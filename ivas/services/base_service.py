from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ivas.core.exceptions import AppError, DatabaseError
from ivas.schemas.events import EventName, EventScope
from ivas.services.realtime.hub import EventHub
from ivas.utils.logging import get_logger

LOGGER = get_logger(__name__)


class BaseService:
    """Base class for services that own a unit of work.

    Provides the commit/rollback boundary and best-effort event broadcast
    shared by the workflow engines.
    """

    def __init__(self, session: AsyncSession, hub: Optional[EventHub] = None):
        """Initialize the service.

        Args:
            session: SQLAlchemy async session the unit of work runs in
            hub: Event hub notified after successful commits
        """
        self.session = session
        self.hub = hub
        self.logger = LOGGER

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[None]:
        """Commit everything done inside the block, or nothing at all."""
        try:
            yield
            await self.session.commit()
        except AppError:
            await self.session.rollback()
            raise
        except SQLAlchemyError as e:
            await self.session.rollback()
            self.logger.error(
                f"Transaction failed: {str(e)}",
                exc_info=True,
                extra={"service": self.__class__.__name__},
            )
            raise DatabaseError("The change could not be saved", original_error=e) from e
        except BaseException:
            await self.session.rollback()
            raise

    def broadcast(self, event: EventName, payload: Dict[str, Any], scope: Optional[EventScope] = None) -> None:
        """Notify subscribers. Failures are logged and never reach the caller."""
        if self.hub is None:
            return
        try:
            self.hub.publish(event, payload, scope)
        except Exception as e:
            self.logger.warning(
                f"Broadcast of '{event.value}' failed: {e}",
                extra={"service": self.__class__.__name__},
            )
