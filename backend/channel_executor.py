"""
Channel Executor - Shared Host-Channel Dispatch

Base class for executors that talk to a live plugin over a text channel
(subprocess pipes or WebSocket frames). It owns the response correlator,
routes inbound messages, applies the per-command timeout, and produces
flagged placeholder responses when no host is reachable.
"""

import asyncio
import json
import logging
from abc import abstractmethod
from typing import Optional

from pydantic import ValidationError

from executors import CommandExecutor, ExecutorState
from figma_communicator import CommandTimeoutError, DispatchError, ResponseCorrelator
from plugin_commands import PluginCommand, PluginResponse
from session_context import SessionContext
from simulated_executor import build_simulated_response

logger = logging.getLogger(__name__)

# Separate channel so operators can route "nothing happened in Figma" warnings
placeholder_logger = logging.getLogger("figma_bridge.placeholder")


class ChannelExecutor(CommandExecutor):

    def __init__(self, timeout: Optional[float] = 30.0, placeholder_delay: float = 1.0) -> None:
        super().__init__()
        self.timeout = timeout
        self.placeholder_delay = placeholder_delay
        self.correlator = ResponseCorrelator()

    # Subclass hooks
    @abstractmethod
    def _can_dispatch(self) -> bool:
        """True when a receiver is attached to the channel right now."""

    @abstractmethod
    async def _on_no_receiver(self, command: PluginCommand, context: SessionContext) -> PluginResponse:
        """Called instead of dispatching when `_can_dispatch()` is False."""

    @abstractmethod
    async def _transmit(self, line: str) -> None:
        """Write one serialized command to the channel."""

    async def execute(self, command: PluginCommand, context: SessionContext) -> PluginResponse:
        if self.state == ExecutorState.CLOSED:
            raise DispatchError("Plugin bridge has been shut down", command.id)
        if self.state != ExecutorState.HOST_CONNECTED:
            return await self._placeholder(command, context)
        if command.kind is None:
            logger.error(f"❌ Protocol error: unknown command type {command.type!r} (ID: {command.id})")
            return PluginResponse(
                type=command.type,
                success=False,
                error=f"Unknown command type: {command.type}",
                id=command.id,
                is_response=True,
            )
        if not self._can_dispatch():
            return await self._on_no_receiver(command, context)
        return await self._dispatch(command)

    async def _dispatch(self, command: PluginCommand) -> PluginResponse:
        # Register and write before the first suspension so that commands
        # reach the channel in the order they were sent
        future = self.correlator.register(command.id, command.type)
        logger.info(f"🚀 Sending {command.type} to Figma plugin with ID: {command.id}")
        logger.debug(f"🚀 Command payload: {command.to_wire()}")
        try:
            await self._transmit(command.to_wire())
        except DispatchError:
            self.correlator.discard(command.id)
            raise
        except Exception as e:
            self.correlator.discard(command.id)
            logger.error(f"Failed to send {command.type} (ID: {command.id}): {e}")
            raise DispatchError(f"Failed to send {command.type} to plugin: {e}", command.id) from e

        try:
            if self.timeout:
                return await asyncio.wait_for(future, timeout=self.timeout)
            return await future
        except asyncio.TimeoutError:
            logger.error(f"⏰ Command {command.type} (ID: {command.id}) timed out after {self.timeout}s")
            raise CommandTimeoutError(f"Command {command.type} timed out", command.id)
        except asyncio.CancelledError:
            logger.warning(f"🛑 {command.type} (ID: {command.id}) cancelled before a response arrived")
            raise
        finally:
            # Timed out or cancelled callers leave their entry behind; a late
            # response for the id is then dropped as unknown
            if self.correlator.pending_requests.get(command.id) is future:
                self.correlator.discard(command.id)

    def _handle_inbound(self, raw: str) -> None:
        """Route one inbound message; malformed input is logged and skipped."""
        try:
            message = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"❌ Malformed message from plugin: {e} (line: {raw[:80]!r})")
            return

        if not isinstance(message, dict):
            logger.error(f"❌ Plugin message is not a JSON object: {raw[:80]!r}")
            return

        if not message.get("_isResponse"):
            logger.debug(f"Received non-response message: {message.get('type')}")
            return

        try:
            response = PluginResponse.model_validate(message)
        except ValidationError as e:
            logger.error(f"❌ Invalid response from plugin: {e.errors()[0].get('msg') if e.errors() else e}")
            return

        logger.debug(f"🔄 Processing response for ID: {response.id}")
        self.correlator.resolve(response)

    async def _placeholder(self, command: PluginCommand, context: SessionContext) -> PluginResponse:
        placeholder_logger.warning(
            f"⚠️ No live Figma plugin: returning placeholder for {command.type} (ID: {command.id}). "
            f"No change was made to the document."
        )
        response = build_simulated_response(command, context)
        response.is_placeholder = True
        await asyncio.sleep(self.placeholder_delay)
        return response
