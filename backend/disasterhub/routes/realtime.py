"""
DisasterHub Backend — Realtime Notification Channel
=====================================================

What:  WebSocket /api/ws/notifications?token=<jwt> streaming the connected
       user's notifications as they are written by the fan-out.
How:   Authenticates with the same resolver as the HTTP API (browsers cannot
       set an Authorization header on a WebSocket), subscribes a queue on
       the RealtimeHub, and forwards each payload as a JSON text frame.

Frames sent to the client:
    {"event": "connected", "userId": "<uuid>"}
    {"event": "notification", "notification": {...NotificationResponse...}}

Close codes:
    1008 (policy violation): missing/invalid token or deactivated account
    1013 (try again later):  realtime channel disabled by configuration
    1011 (internal error):   reading from the client failed unexpectedly
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status
from starlette.websockets import WebSocketState

from disasterhub.database import async_session_factory
from disasterhub.dependencies import resolve_user
from disasterhub.exceptions import UnauthenticatedError
from disasterhub.services.realtime import realtime_hub

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


async def _drain_client(websocket: WebSocket) -> None:
    """Consume client frames until disconnect; clients have nothing to send."""
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        return


@router.websocket("/ws/notifications")
async def notifications_socket(
    websocket: WebSocket,
    token: Optional[str] = Query(default=None),
) -> None:
    if not realtime_hub.enabled:
        await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER)
        return

    try:
        async with async_session_factory() as db:
            user = await resolve_user(db, token)
    except UnauthenticatedError as e:
        logger.info("Realtime connection rejected: %s", e.message)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.message)
        return

    await websocket.accept()
    queue = realtime_hub.subscribe(user.id)
    logger.info("Realtime channel opened for user %s", user.id)

    receiver = asyncio.create_task(_drain_client(websocket))
    try:
        await websocket.send_json({"event": "connected", "userId": str(user.id)})
        while True:
            getter = asyncio.create_task(queue.get())
            done, _ = await asyncio.wait({getter, receiver}, return_when=asyncio.FIRST_COMPLETED)
            if receiver in done:
                getter.cancel()
                break
            await websocket.send_json(getter.result())
    except WebSocketDisconnect:
        pass
    finally:
        realtime_hub.unsubscribe(user.id, queue)
        receiver.cancel()
        try:
            await receiver
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("Realtime receiver failed for user %s", user.id)
            if websocket.application_state == WebSocketState.CONNECTED:
                await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        logger.info("Realtime channel closed for user %s", user.id)
