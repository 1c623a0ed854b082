"""
Figma Communicator - Response Correlation Layer

This module pairs responses coming back from the Figma plugin with the
callers awaiting them, and defines the errors the bridge raises.

Each dispatched command owns exactly one pending future, keyed by the
command id. Resolving pops the entry, so a response can complete its
caller at most once, whatever order responses arrive in.
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

from plugin_commands import PluginResponse

logger = logging.getLogger(__name__)


class BridgeError(Exception):
    """Base class for bridge failures."""


class ProtocolError(BridgeError):
    """Malformed inbound message or unknown command kind."""


class DispatchError(BridgeError):
    """The command could not be handed to the host channel."""

    def __init__(self, message: str, command_id: Optional[str] = None):
        self.command_id = command_id
        super().__init__(message)


class HostDisconnectedError(DispatchError):
    """The host process went away before answering."""


class CommandTimeoutError(DispatchError):
    """No response arrived within the configured timeout."""


class DuplicateCommandIdError(BridgeError):
    """A command id is already awaiting a response."""


class HostStartupError(BridgeError):
    """A resource required by the host channel could not be started."""


class ToolExecutionError(BridgeError):
    """
    The plugin answered with `success: false`.

    Carries a structured payload allowing the agent to self-correct.
    Expected payload shape: { code: str, message: str, details?: dict }.
    A bare string error becomes the message verbatim.
    """

    def __init__(self, payload: Any, command: Optional[str] = None, command_id: Optional[str] = None):
        self.command = command
        self.command_id = command_id

        if isinstance(payload, dict):
            self.code: str = str(payload.get("code", "plugin_reported_failure"))
            self.message: str = str(payload.get("message", ""))
            self.details: Dict[str, Any] = payload.get("details", {}) or {}
            normalized_payload = payload
        else:
            self.code = "plugin_reported_failure"
            self.message = str(payload) if payload else "Unknown error"
            self.details = {}
            normalized_payload = {"code": self.code, "message": self.message, "details": self.details}

        self.payload = normalized_payload

        text = self.message if self.message else self.code
        super().__init__(text)

    @classmethod
    def from_response(cls, response: PluginResponse) -> "ToolExecutionError":
        return cls(response.error, command=response.type, command_id=response.id)


class ResponseCorrelator:
    """
    Tracks commands awaiting a response from the plugin.

    This class manages:
    - One single-use future per in-flight command id
    - Resolving futures when responses arrive, in any order
    - Dropping responses nobody is waiting for
    - Discarding or failing everything still pending on teardown
    """

    def __init__(self):
        self.pending_requests: Dict[str, asyncio.Future] = {}
        self.request_timestamps: Dict[str, float] = {}  # Track request start times
        self.request_types: Dict[str, Optional[str]] = {}

    def __len__(self) -> int:
        return len(self.pending_requests)

    def __contains__(self, command_id: object) -> bool:
        return command_id in self.pending_requests

    @property
    def pending_ids(self) -> List[str]:
        return list(self.pending_requests.keys())

    def register(self, command_id: str, command_type: Optional[str] = None) -> asyncio.Future:
        """
        Create the future a caller will await for `command_id`.

        Raises:
            DuplicateCommandIdError: If the id is already in flight
        """
        if command_id in self.pending_requests:
            raise DuplicateCommandIdError(f"Command id already pending: {command_id}")

        future = asyncio.get_running_loop().create_future()
        self.pending_requests[command_id] = future
        self.request_timestamps[command_id] = time.time()
        self.request_types[command_id] = command_type

        logger.debug(f"📝 Added to pending requests: {command_id}")
        logger.debug(f"📝 Total pending requests: {len(self.pending_requests)}")
        return future

    def resolve(self, response: PluginResponse) -> bool:
        """
        Hand a response to the caller awaiting its id.

        Returns:
            True if a waiting caller received the response
        """
        request_id = response.id
        if not request_id:
            logger.warning(f"❌ Received {response.type} response without ID")
            return False

        future = self._pop(request_id)
        if future is None:
            logger.warning(f"❌ Received response for unknown ID: {request_id}")
            logger.debug(f"❌ Available pending IDs were: {self.pending_ids}")
            return False

        if future.done():
            logger.debug(f"⚠️ Received response for cancelled request: {request_id}")
            return False

        elapsed = self._elapsed(request_id)
        if response.success:
            logger.info(f"✅ Command {request_id} completed successfully after {elapsed:.3f}s")
        else:
            logger.info(f"❌ Command {request_id} reported failure after {elapsed:.3f}s: {response.error}")
        future.set_result(response)
        return True

    def reject(self, command_id: str, error: BaseException) -> bool:
        """Fail the caller awaiting `command_id`. Returns False if nothing was pending."""
        future = self._pop(command_id)
        self.request_timestamps.pop(command_id, None)
        if future is None or future.done():
            return False
        future.set_exception(error)
        return True

    def discard(self, command_id: str) -> None:
        """Forget `command_id` without completing it; a late response will be dropped."""
        self._pop(command_id)
        self.request_timestamps.pop(command_id, None)

    def reject_all(self, error: BaseException) -> int:
        """Fail every pending caller with `error`. Returns how many were failed."""
        failed = 0
        for request_id in self.pending_ids:
            if self.reject(request_id, error):
                failed += 1
        if failed:
            logger.warning(f"Rejected {failed} pending commands: {error}")
        return failed

    def discard_all(self) -> None:
        """Cancel all pending requests (called on shutdown)."""
        for request_id, future in self.pending_requests.items():
            if not future.done():
                future.cancel()
                logger.info(f"Cancelled pending request: {request_id}")
        self.pending_requests.clear()
        self.request_timestamps.clear()
        self.request_types.clear()

    # Internal
    def _pop(self, command_id: str) -> Optional[asyncio.Future]:
        self.request_types.pop(command_id, None)
        return self.pending_requests.pop(command_id, None)

    def _elapsed(self, command_id: str) -> float:
        start_time = self.request_timestamps.pop(command_id, None)
        return time.time() - start_time if start_time else 0.0
