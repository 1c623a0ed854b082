"""
Host Executor - Figma Plugin Host Subprocess

Launches the host-control tool as a subprocess and speaks newline-delimited
JSON with it: one command object per line on the child's stdin, one
response object per line on its stdout. Stderr is forwarded to the log.

Wire format:
- Commands: {"type": ..., "payload": {...}, "id": ...} + newline
- Responses: {"type": ..., "success": ..., "data"?, "error"?, "id": ..., "_isResponse": true} + newline
"""

import asyncio
import contextlib
import logging
import os
import shutil
from typing import Dict, List, Optional, Sequence

from channel_executor import ChannelExecutor
from executors import ExecutorState
from figma_communicator import HostDisconnectedError, HostStartupError
from line_framer import LineFramer
from plugin_commands import PluginCommand, PluginResponse
from session_context import SessionContext

logger = logging.getLogger(__name__)

DEFAULT_HOST_COMMAND = ["figma-plugin-host"]

HOST_ACTIVATION_INSTRUCTIONS = """
==============================================================
FIGMA PLUGIN HOST NOT AVAILABLE
--------------------------------------------------------------
The host tool '{tool}' was not found on PATH. Commands will
return placeholder responses and nothing will change in Figma.

To activate the host manually:

1. Install the Figma plugin host tool, or point FIGMA_HOST_COMMAND
   at its executable
2. Open the Figma desktop app and run the bridge plugin
3. Keep the plugin window open to maintain the connection
4. Restart this process
==============================================================
"""


class HostExecutor(ChannelExecutor):
    """Dispatches commands to the plugin host subprocess."""

    mode = "host"

    def __init__(
        self,
        command: Optional[Sequence[str]] = None,
        timeout: Optional[float] = 30.0,
        placeholder_delay: float = 1.0,
        require_host: bool = False,
        env: Optional[Dict[str, str]] = None,
        read_chunk_size: int = 4096,
    ) -> None:
        super().__init__(timeout=timeout, placeholder_delay=placeholder_delay)
        self.command: List[str] = list(command or DEFAULT_HOST_COMMAND)
        self.require_host = require_host
        self.env = env
        self.read_chunk_size = read_chunk_size
        self._framer = LineFramer()
        self._process: Optional[asyncio.subprocess.Process] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._stderr_task: Optional[asyncio.Task] = None

    @property
    def process(self) -> Optional[asyncio.subprocess.Process]:
        return self._process

    async def initialize(self) -> None:
        if self.state != ExecutorState.UNINITIALIZED:
            return

        self._set_state(ExecutorState.HOST_CONNECTING)
        tool = self.command[0]
        executable = shutil.which(tool)
        if executable is None:
            self._set_state(ExecutorState.HOST_UNAVAILABLE)
            logger.warning(f"⚠️ Host tool '{tool}' not found; running without a live plugin")
            logger.warning(HOST_ACTIVATION_INSTRUCTIONS.format(tool=tool))
            if self.require_host:
                raise HostStartupError(f"Required host tool not found: {tool}")
            return

        try:
            self._process = await self._spawn(executable)
        except OSError as e:
            self._set_state(ExecutorState.HOST_UNAVAILABLE)
            logger.error(f"Failed to launch host process {' '.join(self.command)}: {e}")
            if self.require_host:
                raise HostStartupError(f"Failed to launch host process: {e}") from e
            return

        self._framer.reset()
        self._reader_task = asyncio.create_task(self._read_stdout(self._process))
        self._stderr_task = asyncio.create_task(self._read_stderr(self._process))
        self._set_state(ExecutorState.HOST_CONNECTED)
        logger.info(f"🔌 Launched host process: {' '.join(self.command)} (pid={self._process.pid})")

    async def _spawn(self, executable: str) -> asyncio.subprocess.Process:
        env = None
        if self.env:
            env = {**os.environ, **self.env}
        return await asyncio.create_subprocess_exec(
            executable,
            *self.command[1:],
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=env,
        )

    def _can_dispatch(self) -> bool:
        return self._process is not None

    async def _on_no_receiver(self, command: PluginCommand, context: SessionContext) -> PluginResponse:
        raise HostDisconnectedError("Host process is not running", command.id)

    async def _transmit(self, line: str) -> None:
        process = self._process
        if process is None or process.stdin is None:
            raise HostDisconnectedError("Host process is not running")
        process.stdin.write((line + "\n").encode("utf-8"))
        await process.stdin.drain()

    async def _read_stdout(self, process: asyncio.subprocess.Process) -> None:
        """Frame stdout into lines and route each one; runs until EOF."""
        try:
            while True:
                chunk = await process.stdout.read(self.read_chunk_size)
                if not chunk:
                    break
                for line in self._framer.feed(chunk):
                    self._handle_inbound(line)
        except asyncio.CancelledError:
            return
        except (OSError, ValueError) as e:
            logger.error(f"Read loop error: {e}")
        self._handle_host_exit(process)

    async def _read_stderr(self, process: asyncio.subprocess.Process) -> None:
        if process.stderr is None:
            return
        try:
            while True:
                line = await process.stderr.readline()
                if not line:
                    break
                logger.debug(f"[host stderr] {line.decode('utf-8', errors='replace').rstrip()}")
        except asyncio.CancelledError:
            pass

    def _handle_host_exit(self, process: asyncio.subprocess.Process) -> None:
        if self._process is process:
            self._process = None
        if self._framer.pending:
            logger.warning(f"Discarding partial line from host: {self._framer.pending[:80]!r}")
        self._framer.reset()
        failed = self.correlator.reject_all(HostDisconnectedError("Host process exited before responding"))
        logger.warning(f"🔌 Host process exited (pid={process.pid}); {failed} in-flight commands rejected")

    async def shutdown(self) -> None:
        if self.state == ExecutorState.CLOSED:
            return
        logger.info("Shutting down host executor...")
        self.correlator.discard_all()

        for task in (self._reader_task, self._stderr_task):
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._reader_task = None
        self._stderr_task = None

        process, self._process = self._process, None
        if process is not None and process.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                process.terminate()
            try:
                await asyncio.wait_for(process.wait(), timeout=5.0)
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()
            logger.info(f"Host process terminated (pid={process.pid})")

        self._set_state(ExecutorState.CLOSED)
