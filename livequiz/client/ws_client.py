# livequiz/client/ws_client.py
# =====================================================================================
# PURPOSE
#   Reusable WebSocket client (no UI code) that:
#     - Maintains ONE persistent connection to the coordinator
#     - Auto-reconnects with backoff if the connection drops
#     - Re-sends the handshake after every (re)connect
#     - Exposes `send(payload: dict)` and async callback `on_event(msg: dict)`
#
# KEY TECHNOLOGIES
#   - websockets: lightweight WS library for asyncio
#   - asyncio: Queue for outbound messages; tasks for recv/send loops
# =====================================================================================

import asyncio
import json
import logging
from typing import Awaitable, Callable, Optional

import websockets

logger = logging.getLogger(__name__)


class WSClient:
    """Transport-only WebSocket client.

    Parameters
    ----------
    url : str
        Full ws:// or wss:// URL of the coordinator, e.g. ws://127.0.0.1:3001/
    on_event : Callable[[dict], Awaitable[None]]
        Async callback invoked with every message from the server.
    handshake : dict, optional
        Sent first on every connection (``admin_connect`` / ``user_connect``),
        so a reconnect re-attaches to the same roster entry.
    """

    def __init__(
        self,
        url: str,
        on_event: Callable[[dict], Awaitable[None]],
        handshake: Optional[dict] = None,
    ):
        self.url = url
        self.on_event = on_event
        self.handshake = handshake
        # all outbound messages are serialized through this queue
        self.send_q: asyncio.Queue[dict] = asyncio.Queue()
        self._stop = False
        self._connected = asyncio.Event()

    async def start(self):
        """Run until stop() is called, keeping a live connection.

        Connects, starts receiver & sender tasks, waits until either
        finishes, then reconnects with exponential backoff.
        """
        backoff = 1
        while not self._stop:
            try:
                async with websockets.connect(
                    self.url,
                    ping_interval=20,
                    ping_timeout=10,
                    close_timeout=5,
                ) as ws:
                    if self.handshake:
                        await ws.send(json.dumps(self.handshake))
                    self._connected.set()
                    backoff = 1

                    sender = asyncio.create_task(self._sender(ws))
                    receiver = asyncio.create_task(self._receiver(ws))
                    try:
                        done, pending = await asyncio.wait(
                            {sender, receiver},
                            return_when=asyncio.FIRST_COMPLETED,
                        )
                        for task in done:
                            if not task.cancelled() and task.exception():
                                logger.warning(f"[ws] task failed: {task.exception()!r}")
                    finally:
                        for t in (sender, receiver):
                            t.cancel()
                        self._connected.clear()

            except (OSError, websockets.WebSocketException) as e:
                # Connection failed or dropped; back off and retry
                logger.warning(f"[ws] connection error: {e!r}")

            if not self._stop:
                await asyncio.sleep(backoff)
                backoff = min(backoff * 2, 15)

    async def wait_until_connected(self, timeout: float = 5.0) -> bool:
        try:
            await asyncio.wait_for(self._connected.wait(), timeout)
            return True
        except asyncio.TimeoutError:
            return False

    async def _receiver(self, ws):
        """Read text frames, parse JSON, and forward each message to on_event."""
        async for raw in ws:
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning(f"[ws] ignoring non-JSON frame: {raw!r:.80}")
                continue
            await self.on_event(msg)

    async def _sender(self, ws):
        """Write queued payloads to the socket in order."""
        while True:
            payload = await self.send_q.get()
            try:
                await ws.send(json.dumps(payload))
            finally:
                self.send_q.task_done()

    async def send(self, payload: dict):
        """Enqueue an outbound message (non-blocking)."""
        await self.send_q.put(payload)

    def stop(self):
        """Signal the reconnect loop to exit."""
        self._stop = True
