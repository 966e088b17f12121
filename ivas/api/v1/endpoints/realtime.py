"""Websocket channel for realtime events.

Clients connect to ``/ws?token=<bearer token>``. A rejected token closes the
handshake with code 1008. After the ``connected`` frame the server only
pushes; anything the client sends is read and ignored.
"""

import asyncio
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from ivas.core.exceptions import AuthenticationError
from ivas.schemas.events import RealtimeEvent
from ivas.services.realtime.hub import HubSession
from ivas.utils.logging import get_logger

LOGGER = get_logger(__name__)

router = APIRouter()


async def _pump(websocket: WebSocket, session: HubSession) -> None:
    while True:
        event = await session.next_event()
        await websocket.send_text(event.model_dump_json())


@router.websocket("/ws")
async def realtime_channel(websocket: WebSocket, token: Optional[str] = Query(None)) -> None:
    hub = getattr(websocket.app.state, "event_hub", None)
    if hub is None or not token:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    try:
        session = await hub.connect(token)
    except AuthenticationError as e:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.message)
        return

    try:
        await websocket.accept()
        hello = RealtimeEvent(event="connected", data={"session_id": session.id, "user_id": session.user_id})
        await websocket.send_text(hello.model_dump_json())

        sender = asyncio.create_task(_pump(websocket, session))
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            sender.cancel()
            try:
                await sender
            except (asyncio.CancelledError, WebSocketDisconnect, RuntimeError):
                pass
    finally:
        hub.disconnect(session)
