"""
Execution Strategies - Common Interface

An executor turns a `PluginCommand` into a `PluginResponse`. The bridge
picks exactly one executor at startup; its mode never changes at runtime.

State machine:
    UNINITIALIZED -> SIMULATED
    UNINITIALIZED -> HOST_CONNECTING -> HOST_CONNECTED | HOST_UNAVAILABLE
    any -> CLOSED (after shutdown)
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum

from plugin_commands import PluginCommand, PluginResponse
from session_context import SessionContext

logger = logging.getLogger(__name__)


class ExecutorState(str, Enum):
    UNINITIALIZED = "uninitialized"
    SIMULATED = "simulated"
    HOST_CONNECTING = "host_connecting"
    HOST_CONNECTED = "host_connected"
    HOST_UNAVAILABLE = "host_unavailable"
    CLOSED = "closed"


class CommandExecutor(ABC):
    """Strategy interface used by the bridge."""

    mode: str = "abstract"

    def __init__(self) -> None:
        self._state = ExecutorState.UNINITIALIZED

    @property
    def state(self) -> ExecutorState:
        return self._state

    def _set_state(self, state: ExecutorState) -> None:
        if state != self._state:
            logger.debug(f"🔁 {self.__class__.__name__}: {self._state.value} -> {state.value}")
            self._state = state

    @abstractmethod
    async def initialize(self) -> None:
        """Select the terminal startup state. Called once by the bridge."""

    @abstractmethod
    async def execute(self, command: PluginCommand, context: SessionContext) -> PluginResponse:
        """Run one command and return its response.

        `context` is a snapshot of the session context at dispatch time.
        A `success: false` response is a normal return value; exceptions
        are reserved for dispatch failures.
        """

    @abstractmethod
    async def shutdown(self) -> None:
        """Release resources. Must not raise."""
