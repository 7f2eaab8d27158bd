# campusgate/routers/changes.py
"""
Change feed for dashboards.
GET /changes     - current revision (poll and compare)
WS  /changes/ws  - pushed notice after each debounced burst of writes
A notice only says "re-query these tables"; it carries no ledger data.
"""

import asyncio
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from campusgate.services.change_notifier import change_feed
from campusgate.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.get("/changes", summary="Current change-feed revision")
def current_revision():
    return change_feed.snapshot()


async def _until_disconnect(websocket: WebSocket):
    """Drain client frames; returns once the client goes away."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/changes/ws")
async def change_stream(websocket: WebSocket):
    await websocket.accept()
    queue = change_feed.open()
    watcher = asyncio.create_task(_until_disconnect(websocket))
    logger.info("[Changes] Dashboard subscribed")
    try:
        await websocket.send_json(change_feed.snapshot())
        while True:
            getter = asyncio.create_task(queue.get())
            await asyncio.wait({getter, watcher}, return_when=asyncio.FIRST_COMPLETED)
            if watcher.done():
                getter.cancel()
                logger.info("[Changes] Dashboard disconnected")
                break
            await websocket.send_json(getter.result())
    except WebSocketDisconnect:
        logger.info("[Changes] Dashboard disconnected")
    finally:
        watcher.cancel()
        change_feed.close(queue)
