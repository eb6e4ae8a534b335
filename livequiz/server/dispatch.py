"""Broadcast/dispatch layer.

Each attached connection gets an outbox: an ``asyncio.Queue`` drained by one
sender task. Enqueueing never blocks and never raises, so the coordinator can
enqueue while it holds its lock; the per-recipient order is the enqueue order.
"""
import asyncio
import json
import logging
from typing import Dict, Iterable, Optional

from .connection_registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class Outbox:
    """Ordered outbound queue for one socket."""

    def __init__(self, conn_id: str, ws) -> None:
        self.conn_id = conn_id
        self.ws = ws
        self.queue: asyncio.Queue = asyncio.Queue()
        self.alive = True
        self.task: Optional[asyncio.Task] = None

    def start(self) -> None:
        self.task = asyncio.create_task(self._sender(), name=f"outbox-{self.conn_id}")

    def put(self, payload: dict) -> bool:
        if not self.alive:
            return False
        self.queue.put_nowait(payload)
        return True

    async def _sender(self) -> None:
        while True:
            payload = await self.queue.get()
            try:
                await self.ws.send_text(json.dumps(payload))
            except Exception as e:
                # Dead socket: stop sending, the receive loop handles cleanup
                self.alive = False
                logger.warning(f"[dispatch] send to conn={self.conn_id} failed: {e!r}")
                self.queue.task_done()
                self._discard_pending()
                return
            self.queue.task_done()

    def _discard_pending(self) -> None:
        while not self.queue.empty():
            payload = self.queue.get_nowait()
            self.queue.task_done()
            logger.debug(f"[dispatch] dropped {payload.get('type')} for dead conn={self.conn_id}")

    async def drain(self) -> None:
        """Wait until everything queued so far has been written (or dropped)."""
        if self.task is None or self.task.done():
            return
        await self.queue.join()

    async def close(self) -> None:
        self.alive = False
        if self.task is not None:
            self.task.cancel()
            await asyncio.gather(self.task, return_exceptions=True)
        self._discard_pending()


class Dispatcher:
    def __init__(self, registry: ConnectionRegistry) -> None:
        self.registry = registry
        self.outboxes: Dict[str, Outbox] = {}
        self.subscribers: set[str] = set()  # observers that asked for the leaderboard

    # ---------- Attachment ----------

    def attach(self, conn_id: str, ws) -> Outbox:
        outbox = Outbox(conn_id, ws)
        outbox.start()
        self.outboxes[conn_id] = outbox
        return outbox

    async def detach(self, conn_id: str) -> None:
        self.subscribers.discard(conn_id)
        outbox = self.outboxes.pop(conn_id, None)
        if outbox is not None:
            await outbox.close()

    async def flush(self, conn_id: str) -> None:
        outbox = self.outboxes.get(conn_id)
        if outbox is not None:
            await outbox.drain()

    def subscribe(self, conn_id: str) -> None:
        self.subscribers.add(conn_id)

    # ---------- Addressing ----------

    def to_connection(self, conn_id: Optional[str], payload: dict) -> bool:
        """Best effort: unknown or dead connections are dropped and logged."""
        outbox = self.outboxes.get(conn_id) if conn_id else None
        if outbox is None or not outbox.put(payload):
            logger.debug(f"[dispatch] dropped {payload.get('type')} for conn={conn_id}")
            return False
        return True

    def to_many(self, conn_ids: Iterable[str], payload: dict) -> int:
        return sum(1 for cid in conn_ids if self.to_connection(cid, payload))

    def to_all_players(self, payload: dict) -> int:
        return self.to_many(self.registry.player_conn_ids(), payload)

    def to_admin(self, payload: dict) -> bool:
        if self.registry.admin_conn_id is None:
            logger.debug(f"[dispatch] no admin for {payload.get('type')}")
            return False
        return self.to_connection(self.registry.admin_conn_id, payload)

    def to_player(self, name: str, payload: dict) -> bool:
        conn = self.registry.find_by_name(name)
        if conn is None:
            logger.debug(f"[dispatch] no connected player named {name!r}")
            return False
        return self.to_connection(conn.conn_id, payload)

    def to_subscribers(self, payload: dict) -> int:
        """Leaderboard observers that are not already addressed as players."""
        players = set(self.registry.player_conn_ids())
        return self.to_many(sorted(self.subscribers - players), payload)

    def to_everyone(self, payload: dict) -> int:
        return self.to_many(list(self.outboxes), payload)
