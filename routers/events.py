"""Push channel telling clients which cached views to refetch."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.core import config
from utils.invalidation import Subscription, hub

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Events"])

Send = Callable[[Dict[str, Any]], Awaitable[None]]


async def forward_invalidations(subscription: Subscription, send: Send) -> None:
    async for keys in subscription:
        await send({"type": "invalidate", "keys": list(keys)})


async def reconcile_ticker(send: Send, interval: float) -> None:
    """Ask the client for a full refetch every ``interval`` seconds."""
    while True:
        await asyncio.sleep(interval)
        await send({"type": "reconcile"})


@router.websocket("/ws/invalidations")
async def invalidations(websocket: WebSocket):
    if not websocket.session.get("user_id"):
        await websocket.close(code=1008)
        return
    await websocket.accept()

    lock = asyncio.Lock()

    async def send(message: Dict[str, Any]) -> None:
        async with lock:
            await websocket.send_json(message)

    subscription = hub.subscribe()
    tasks = [asyncio.create_task(forward_invalidations(subscription, send))]
    if config.RECONCILE_INTERVAL_SECONDS > 0:
        tasks.append(
            asyncio.create_task(reconcile_ticker(send, config.RECONCILE_INTERVAL_SECONDS))
        )
    try:
        while True:
            # clients only send keep-alives; a disconnect ends the loop
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("Invalidation client disconnected")
    finally:
        subscription.close()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
