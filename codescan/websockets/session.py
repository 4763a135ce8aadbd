"""
==============================================================================
Session WebSocket Module
==============================================================================

Live view of the scan session over a WebSocket connection.

Protocol:
---------
1. Client connects; server sends {"type": "state", "session": {...}}
2. Server forwards every session notification (state, processed, result,
   error) as JSON
3. Client sends intents: {"type": "toggle" | "enable" | "disable" | "stop"}
   or {"type": "facing", "facing": "front" | "back"} ("facing" without a
   value toggles)

==============================================================================
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from starlette.concurrency import run_in_threadpool

from codescan.core.dependencies import get_orchestrator
from codescan.core.exceptions import AppException
from codescan.scanner.orchestrator import ScanOrchestrator
from codescan.schemas.scan import FacingMode, SessionNotification


# Module logger
logger = logging.getLogger(__name__)

router = APIRouter()


class SessionWebSocketHandler:
    """
    Bridges orchestrator notifications to one WebSocket client.

    Notifications arrive on orchestrator threads and are handed to the event
    loop with ``call_soon_threadsafe``. Intents are executed in the
    threadpool since they start and join camera threads.
    """

    def __init__(self, websocket: WebSocket, orchestrator: ScanOrchestrator):
        self._websocket = websocket
        self._orchestrator = orchestrator
        self._outbox: "asyncio.Queue[dict]" = asyncio.Queue()
        self._loop = None

    def _on_notification(self, notification: SessionNotification) -> None:
        message = notification.model_dump(mode="json", exclude_none=True)
        self._loop.call_soon_threadsafe(self._outbox.put_nowait, message)

    async def send_error(self, message: str, code: str = "ERROR") -> None:
        """Send error message to client."""
        await self._websocket.send_json({
            "type": "error",
            "code": code,
            "message": message
        })

    async def handle_intent(self, data: dict) -> bool:
        """
        Execute one client intent.

        Returns:
            False when the client asked to stop
        """
        kind = data.get("type")

        if kind == "stop":
            logger.info("🛑 Client requested stop")
            return False

        if kind == "toggle":
            action = self._orchestrator.toggle
        elif kind == "enable":
            action = self._orchestrator.enable
        elif kind == "disable":
            action = self._orchestrator.disable
        elif kind == "facing":
            facing = data.get("facing")
            if facing is None:
                action = self._orchestrator.toggle_facing
            else:
                try:
                    mode = FacingMode(facing)
                except ValueError:
                    await self.send_error(f"Unknown facing mode: {facing}", "INVALID_FACING")
                    return True
                action = lambda: self._orchestrator.set_facing(mode)
        else:
            await self.send_error(f"Unknown message type: {kind}", "UNKNOWN_TYPE")
            return True

        try:
            await run_in_threadpool(action)
        except AppException as e:
            # Already recorded on the session and forwarded as a notification
            await self.send_error(e.message, e.code)

        return True

    async def _receive_loop(self) -> None:
        while True:
            data = await self._websocket.receive_json()
            if not await self.handle_intent(data):
                break
        await self._websocket.close()

    async def _send_loop(self) -> None:
        while True:
            message = await self._outbox.get()
            await self._websocket.send_json(message)

    async def run(self) -> None:
        """Main handler loop."""
        await self._websocket.accept()
        logger.info("📱 Session WebSocket connected")

        self._loop = asyncio.get_running_loop()
        self._orchestrator.add_listener(self._on_notification)

        receiver = sender = None
        try:
            await self._websocket.send_json({
                "type": "state",
                "session": self._orchestrator.state().model_dump(mode="json"),
            })

            receiver = asyncio.create_task(self._receive_loop())
            sender = asyncio.create_task(self._send_loop())
            done, _ = await asyncio.wait(
                {receiver, sender}, return_when=asyncio.FIRST_COMPLETED
            )
            for task in done:
                task.result()

        except WebSocketDisconnect:
            logger.info("📱 Client disconnected")
        except Exception as e:
            logger.error(f"WebSocket error: {e}")
        finally:
            self._orchestrator.remove_listener(self._on_notification)
            for task in (receiver, sender):
                if task is not None:
                    task.cancel()
            logger.info("✅ Session WebSocket closed")


@router.websocket("/ws/session")
async def websocket_session(
    websocket: WebSocket,
    orchestrator: ScanOrchestrator = Depends(get_orchestrator)
):
    """Live scan session updates and intents via WebSocket."""
    handler = SessionWebSocketHandler(websocket, orchestrator)
    await handler.run()
