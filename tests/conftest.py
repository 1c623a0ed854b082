"""Pytest configuration and shared fixtures."""

import asyncio
import json
from typing import Any, Dict, List, Optional

import pytest

from plugin_bridge import PluginBridge
from plugin_commands import PluginCommand, PluginResponse
from session_context import SessionContext
from simulated_executor import SimulatedExecutor


class RecordingExecutor(SimulatedExecutor):
    """Simulated executor that remembers every command it was given."""

    def __init__(self, fail_with: Optional[str] = None, extra_data: Optional[Dict[str, Any]] = None):
        super().__init__(delay=0)
        self.commands: List[PluginCommand] = []
        self.fail_with = fail_with
        self.extra_data = extra_data or {}

    async def execute(self, command: PluginCommand, context: SessionContext) -> PluginResponse:
        self.commands.append(command)
        if self.fail_with:
            return PluginResponse(
                type=command.type,
                success=False,
                error=self.fail_with,
                data=self.extra_data or None,
                id=command.id,
                is_response=True,
            )
        return await super().execute(command, context)


class FakeStdin:
    def __init__(self):
        self.chunks: List[bytes] = []
        self.fail = False

    def write(self, data: bytes) -> None:
        self.chunks.append(data)

    async def drain(self) -> None:
        if self.fail:
            raise BrokenPipeError("pipe closed")

    @property
    def lines(self) -> List[Dict[str, Any]]:
        return [json.loads(line) for line in b"".join(self.chunks).decode("utf-8").splitlines()]


class FakeProcess:
    """Stands in for asyncio.subprocess.Process; must be built inside a running loop."""

    def __init__(self, pid: int = 4242):
        self.pid = pid
        self.stdin = FakeStdin()
        self.stdout = asyncio.StreamReader()
        self.stderr = asyncio.StreamReader()
        self.returncode: Optional[int] = None
        self.terminated = False

    def respond(self, message: Dict[str, Any]) -> None:
        self.stdout.feed_data((json.dumps(message) + "\n").encode("utf-8"))

    def terminate(self) -> None:
        self.terminated = True
        self.returncode = -15
        self.stdout.feed_eof()
        self.stderr.feed_eof()

    def kill(self) -> None:
        self.terminate()

    async def wait(self) -> int:
        return self.returncode


def response_for(command: Dict[str, Any], success: bool = True, **fields: Any) -> Dict[str, Any]:
    message = {"type": command["type"], "success": success, "id": command["id"], "_isResponse": True}
    message.update(fields)
    return message


async def wait_for_writes(stdin: FakeStdin, count: int) -> None:
    for _ in range(200):
        if len(stdin.chunks) >= count:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"expected {count} writes, got {len(stdin.chunks)}")


@pytest.fixture
def recording_executor():
    return RecordingExecutor()


@pytest.fixture
def bridge(recording_executor):
    """Bridge over a zero-delay simulated executor that records dispatched commands."""
    return PluginBridge(recording_executor)
