"""
Change notifier.

Keeps the set of connected websocket sessions and pushes a single
``appointments:update`` signal to all of them after a committed mutation.
The signal carries no appointment data; clients re-run their own read query.
Delivery is best effort: a session whose send fails is dropped, and nothing
is replayed on reconnect.
"""

import asyncio
import logging
from typing import Optional, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)

APPOINTMENTS_UPDATE = "appointments:update"


class ChangeNotifier:
    def __init__(self):
        self.clients: Set[WebSocket] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._pending: Set[asyncio.Task] = set()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._loop = asyncio.get_running_loop()
        self.clients.add(websocket)
        logger.info(f"Client {id(websocket)} connected. Total: {len(self.clients)}")

    def disconnect(self, websocket: WebSocket) -> None:
        self.clients.discard(websocket)
        logger.info(f"Client {id(websocket)} disconnected. Total: {len(self.clients)}")

    async def broadcast(self) -> int:
        """Send the update signal to every session; returns how many received it."""
        delivered = 0
        for websocket in list(self.clients):
            try:
                await websocket.send_json({"event": APPOINTMENTS_UPDATE})
                delivered += 1
            except Exception as e:
                self.clients.discard(websocket)
                logger.warning(f"Removed client {id(websocket)} due to error: {e}")
        logger.info(f"Broadcast {APPOINTMENTS_UPDATE} to {delivered} clients")
        return delivered

    def notify(self) -> None:
        """Schedule a broadcast without waiting for it.

        Called by the services right after commit. Works both from the event
        loop (async endpoints) and from worker threads (sync endpoints).
        """
        if not self.clients:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None:
            task = loop.create_task(self.broadcast())
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        elif self._loop is not None and self._loop.is_running():
            asyncio.run_coroutine_threadsafe(self.broadcast(), self._loop)


# Shared by every request handler and websocket session in the process
notifier = ChangeNotifier()


def get_notifier() -> ChangeNotifier:
    """Get the change notifier."""
    return notifier
