"""
WebSocket Executor - Plugin UI Connection

Runs a WebSocket server the Figma plugin UI connects to. Commands are
broadcast to every connected client (usually just one); responses come
back as one JSON object per text frame. With no client connected,
commands degrade to flagged placeholder responses.
"""

import contextlib
import json
import logging
from typing import Optional, Set

import websockets

from channel_executor import ChannelExecutor
from executors import ExecutorState
from figma_communicator import DispatchError, HostStartupError
from plugin_commands import PluginCommand, PluginResponse
from session_context import SessionContext

logger = logging.getLogger(__name__)

CONNECTION_INSTRUCTIONS = """
==============================================================
FIGMA PLUGIN CONNECTION INSTRUCTIONS
--------------------------------------------------------------
To connect with the Figma plugin:

1. Make sure the plugin UI has the WebSocket client enabled
2. The plugin should connect to: ws://localhost:{port}
3. Keep the Figma plugin window open to maintain connection
4. The connection status will be shown in the plugin UI
==============================================================
"""


class WebSocketExecutor(ChannelExecutor):
    """Dispatches commands to plugin UIs connected over WebSocket."""

    mode = "websocket"

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = 9000,
        timeout: Optional[float] = 30.0,
        placeholder_delay: float = 1.0,
    ) -> None:
        super().__init__(timeout=timeout, placeholder_delay=placeholder_delay)
        self.host = host
        self.port = port
        self.connections: Set = set()
        self._server = None

    @property
    def bound_port(self) -> Optional[int]:
        """Actual listening port (useful when configured with port 0)."""
        if self._server is None or not self._server.sockets:
            return None
        return self._server.sockets[0].getsockname()[1]

    async def initialize(self) -> None:
        if self.state != ExecutorState.UNINITIALIZED:
            return

        self._set_state(ExecutorState.HOST_CONNECTING)
        logger.info(f"🌐 Starting WebSocket server on {self.host}:{self.port}")
        try:
            self._server = await websockets.serve(self._handle_connection, self.host, self.port)
        except OSError as e:
            self._set_state(ExecutorState.HOST_UNAVAILABLE)
            logger.error(f"Failed to start WebSocket server: {e}")
            raise HostStartupError(f"Failed to start WebSocket server on {self.host}:{self.port}: {e}") from e

        self._set_state(ExecutorState.HOST_CONNECTED)
        logger.info(f"🌐 WebSocket server listening on port {self.bound_port}")
        logger.info(CONNECTION_INSTRUCTIONS.format(port=self.bound_port))

    async def _handle_connection(self, websocket) -> None:
        logger.info("🔌 New WebSocket connection established with Figma plugin")
        self.connections.add(websocket)
        try:
            await websocket.send(json.dumps({"type": "CONNECTION_TEST", "status": "connected"}))
            async for message in websocket:
                if isinstance(message, bytes):
                    message = message.decode("utf-8", errors="replace")
                self._handle_inbound(message)
        except websockets.ConnectionClosed as e:
            logger.debug(f"WebSocket closed: {e}")
        finally:
            self.connections.discard(websocket)
            logger.info("WebSocket connection closed")

    def _can_dispatch(self) -> bool:
        return bool(self.connections)

    async def _on_no_receiver(self, command: PluginCommand, context: SessionContext) -> PluginResponse:
        logger.warning("No active WebSocket connections to Figma plugin")
        return await self._placeholder(command, context)

    async def _transmit(self, line: str) -> None:
        """Broadcast to every client; fails only when no client took the command."""
        delivered = 0
        for websocket in list(self.connections):
            try:
                await websocket.send(line)
                delivered += 1
            except (websockets.ConnectionClosed, OSError) as e:
                logger.warning(f"Dropping WebSocket client that failed to receive a command: {e}")
                self.connections.discard(websocket)
        if not delivered:
            raise DispatchError("No connected Figma plugin accepted the command")

    async def shutdown(self) -> None:
        if self.state == ExecutorState.CLOSED:
            return
        logger.info("Shutting down WebSocket executor...")
        self.correlator.discard_all()

        if self.connections:
            logger.info(f"Closing {len(self.connections)} WebSocket connections")
        for websocket in list(self.connections):
            with contextlib.suppress(websockets.ConnectionClosed, OSError):
                await websocket.close()
        self.connections.clear()

        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
            logger.info("WebSocket server closed")

        self._set_state(ExecutorState.CLOSED)
