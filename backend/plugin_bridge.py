"""
Plugin Bridge - Command/Response Facade

Single entry point for sending commands to the Figma plugin. The bridge
assigns command ids, fills in the session context, dispatches through the
configured executor, and folds every settled response back into the
session context.

The bridge is an explicitly constructed object; callers hold a reference
to it (the agent passes it as run context to its tools).
"""

import logging
from typing import Any, Dict, Optional, Union

from executors import CommandExecutor, ExecutorState
from figma_communicator import ToolExecutionError
from host_executor import HostExecutor
from plugin_commands import CommandKind, PluginCommand, PluginResponse, generate_command_id
from session_context import SessionContext, SessionContextStore
from simulated_executor import SimulatedExecutor
from websocket_executor import WebSocketExecutor

logger = logging.getLogger(__name__)

BRIDGE_MODES = ("simulated", "host", "websocket")


def create_executor(mode: str = "simulated", **options: Any) -> CommandExecutor:
    """Build the executor for `mode`; `options` go to its constructor."""
    if mode == "simulated":
        return SimulatedExecutor(**options)
    if mode == "host":
        return HostExecutor(**options)
    if mode == "websocket":
        return WebSocketExecutor(**options)
    raise ValueError(f"Unknown bridge mode: {mode!r} (expected one of {', '.join(BRIDGE_MODES)})")


class PluginBridge:
    """
    Facade over the execution strategy and the session context.

    This class manages:
    - Assigning ids to commands that have none
    - Injecting the active page as default target
    - Dispatching through the executor chosen at startup
    - Updating session context from every settled response
    """

    def __init__(self, executor: CommandExecutor, session: Optional[SessionContextStore] = None):
        self.executor = executor
        self.session = session or SessionContextStore()
        self._initialized = False

    @property
    def mode(self) -> str:
        return self.executor.mode

    @property
    def state(self) -> ExecutorState:
        return self.executor.state

    async def initialize(self) -> None:
        if self._initialized:
            return
        logger.info(f"Initializing plugin bridge in {self.mode} mode...")
        await self.executor.initialize()
        self._initialized = True
        logger.info(f"Plugin bridge initialized ({self.executor.state.value})")

    async def send(self, command: PluginCommand) -> PluginResponse:
        """
        Send a command to the Figma plugin and wait for its response.

        Args:
            command: The command to send; it is not modified

        Returns:
            The plugin's response (its `data` holds the result)

        Raises:
            ToolExecutionError: If the plugin reported `success: false`
            DispatchError: If the command could not be delivered or timed out
        """
        if not self._initialized:
            await self.initialize()

        if not command.id:
            command = command.model_copy(update={"id": generate_command_id()})
        command = self.session.inject_into(command)

        response = await self.executor.execute(command, self.session.get())

        # Error responses may still carry context (e.g. the active page)
        self.session.apply_response(response)

        if response.is_placeholder:
            logger.warning(f"⚠️ {command.type} (ID: {command.id}) answered with a placeholder response")

        if not response.success:
            logger.error(f"❌ {command.type} (ID: {command.id}) failed: {response.error}")
            raise ToolExecutionError.from_response(response)
        return response

    async def send_command(
        self,
        kind: Union[CommandKind, str],
        payload: Optional[Dict[str, Any]] = None,
        command_id: Optional[str] = None,
    ) -> PluginResponse:
        """Convenience wrapper: build the command and `send()` it."""
        return await self.send(PluginCommand.create(kind, payload, command_id))

    async def get_current_selection(self) -> PluginResponse:
        return await self.send_command(CommandKind.GET_SELECTION, command_id=generate_command_id("sel"))

    async def get_current_page(self) -> PluginResponse:
        return await self.send_command(CommandKind.GET_CURRENT_PAGE, command_id=generate_command_id("page"))

    def get_session_context(self) -> SessionContext:
        return self.session.get()

    async def shutdown(self) -> None:
        """Terminate the host channel and drop pending commands. Never raises.

        Callers still awaiting `send()` are cancelled: they see
        `asyncio.CancelledError`, not a `BridgeError`, so tool error handling
        does not turn a shutdown into an "Error ..." result.
        """
        logger.info("Shutting down plugin bridge...")
        try:
            await self.executor.shutdown()
        except Exception as e:
            logger.error(f"Error shutting down {self.mode} executor: {e}")
        logger.info("Plugin bridge shut down")

    async def __aenter__(self) -> "PluginBridge":
        await self.initialize()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.shutdown()
