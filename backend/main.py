import asyncio
import logging
import os
import shlex
import signal
import sys
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Dict, List, Optional, TextIO, Union

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from agents import Agent, Runner
from agents.extensions.models.litellm_model import LitellmModel
from agents.tracing import set_tracing_disabled
set_tracing_disabled(True)

import figma_tools as figma_tools
from figma_communicator import HostStartupError
from host_executor import DEFAULT_HOST_COMMAND
from plugin_bridge import BRIDGE_MODES, PluginBridge, create_executor
from system_prompt import SYSTEM_PROMPT, check_prompt_arguments, render_prompt


def _log_level() -> int:
    if os.getenv("DEBUG", "").lower() == "true":
        return logging.DEBUG
    return getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)


# Logs go to stderr; stdout carries only agent answers
logging.basicConfig(
    level=_log_level(),
    format='[%(asctime)s] [bridge] [%(levelname)s] %(message)s',
    datefmt='%Y-%m-%dT%H:%M:%S',
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)


@dataclass
class BridgeConfig:
    mode: str = "simulated"
    host_command: List[str] = field(default_factory=lambda: list(DEFAULT_HOST_COMMAND))
    require_host: bool = False
    tool_timeout: float = 30.0
    simulated_delay: float = 0.3
    placeholder_delay: float = 1.0
    ws_host: str = "0.0.0.0"
    ws_port: int = 9000
    model: str = "gpt-4.1-nano"
    api_key: Optional[str] = None
    max_turns: int = 10
    template: Optional[str] = None
    template_args: Dict[str, str] = field(default_factory=dict)

    def executor_options(self) -> Dict[str, Any]:
        if self.mode == "host":
            return {
                "command": self.host_command,
                "timeout": self.tool_timeout,
                "placeholder_delay": self.placeholder_delay,
                "require_host": self.require_host,
            }
        if self.mode == "websocket":
            return {
                "host": self.ws_host,
                "port": self.ws_port,
                "timeout": self.tool_timeout,
                "placeholder_delay": self.placeholder_delay,
            }
        return {"delay": self.simulated_delay}


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


def get_config(argv: Optional[List[str]] = None) -> BridgeConfig:
    """Get configuration from environment variables or CLI args"""
    argv = sys.argv[1:] if argv is None else argv
    config = BridgeConfig(
        mode=os.getenv("FIGMA_BRIDGE_MODE", "simulated"),
        host_command=shlex.split(os.getenv("FIGMA_HOST_COMMAND", "")) or list(DEFAULT_HOST_COMMAND),
        require_host=_flag(os.getenv("FIGMA_REQUIRE_HOST")),
        ws_host=os.getenv("WS_HOST", "0.0.0.0"),
        model=os.getenv("LITELLM_MODEL", "gpt-4.1-nano"),
        api_key=os.getenv("LITELLM_API_KEY"),
    )
    if _flag(os.getenv("WEBSOCKET_MODE")):
        config.mode = "websocket"

    try:
        config.tool_timeout = float(os.getenv("FIGMA_TOOL_TIMEOUT", "30.0"))
        config.simulated_delay = int(os.getenv("SIMULATED_DELAY_MS", "300")) / 1000
        config.placeholder_delay = int(os.getenv("PLACEHOLDER_DELAY_MS", "1000")) / 1000
        config.ws_port = int(os.getenv("WS_PORT", "9000"))
        config.max_turns = int(os.getenv("AGENT_MAX_TURNS", os.getenv("MAX_TURNS", "10")))
    except ValueError as e:
        logger.error(f"Invalid numeric setting: {e}")
        sys.exit(1)

    # Parse CLI args for overrides
    for arg in argv:
        if arg in ("--real", "-r"):
            config.mode = "websocket"
        elif arg.startswith("--mode="):
            config.mode = arg.split("=", 1)[1]
        elif arg.startswith("--host-command="):
            config.host_command = shlex.split(arg.split("=", 1)[1])
        elif arg == "--require-host":
            config.require_host = True
        elif arg.startswith("--port="):
            try:
                config.ws_port = int(arg.split("=", 1)[1])
            except ValueError:
                logger.error(f"Invalid port: {arg}")
                sys.exit(1)
        elif arg.startswith("--model="):
            config.model = arg.split("=", 1)[1]
        elif arg.startswith("--api-key="):
            config.api_key = arg.split("=", 1)[1]
        elif arg.startswith("--template="):
            config.template = arg.split("=", 1)[1]
        elif arg.startswith("--template-arg="):
            key, _, value = arg.split("=", 1)[1].partition("=")
            config.template_args[key] = value
        else:
            logger.warning(f"Ignoring unknown argument: {arg}")

    if config.mode not in BRIDGE_MODES:
        logger.error(f"Unknown bridge mode '{config.mode}' (expected one of: {', '.join(BRIDGE_MODES)})")
        sys.exit(1)
    if not config.host_command:
        config.host_command = list(DEFAULT_HOST_COMMAND)
    if config.template:
        try:
            check_prompt_arguments(config.template, config.template_args)
        except (KeyError, ValueError) as e:
            logger.error(f"Invalid --template: {e}")
            sys.exit(1)

    return config


class DesignAgent:
    """Reads prompts from stdin and runs them through the tool-calling agent."""

    def __init__(self, bridge: PluginBridge, model: str, api_key: str, max_turns: int = 10):
        self.bridge = bridge
        self.max_turns = max_turns
        self.running = True
        self.agent = Agent(
            name="FigmaDesigner",
            instructions=SYSTEM_PROMPT,
            model=LitellmModel(model=model, api_key=api_key),
            tools=list(figma_tools.ALL_TOOLS),
        )
        logger.info(f"🧰 Tools enabled: {', '.join(t.name for t in figma_tools.ALL_TOOLS)}")

    async def run_prompt(self, prompt: str) -> str:
        result = await Runner.run(self.agent, prompt, context=self.bridge, max_turns=self.max_turns)
        return str(result.final_output)

    async def _handle_prompt(self, prompt: str) -> None:
        logger.info(f"💬 User prompt: {prompt[:80]}")
        try:
            output = await self.run_prompt(prompt)
        except Exception as e:
            logger.error(f"❌ Agent run failed: {e}")
            print(f"Error: {e}", flush=True)
            return
        print(output, flush=True)

    async def run(self, first_prompt: Optional[str] = None, stdin: Optional[Union[TextIO, BinaryIO]] = None) -> None:
        await self.bridge.initialize()
        if first_prompt:
            await self._handle_prompt(first_prompt)

        # Non-blocking stdin so a signal can interrupt the wait for input
        loop = asyncio.get_running_loop()
        reader = asyncio.StreamReader()
        protocol = asyncio.StreamReaderProtocol(reader)
        transport, _ = await loop.connect_read_pipe(lambda: protocol, stdin or sys.stdin)
        try:
            while self.running:
                line = await reader.readline()
                if not line:
                    logger.info("stdin closed, shutting down")
                    break
                prompt = line.decode("utf-8", errors="replace").strip()
                if prompt:
                    await self._handle_prompt(prompt)
        finally:
            transport.close()

    def shutdown(self) -> None:
        logger.info("Shutting down agent")
        self.running = False


async def serve(agent: DesignAgent, first_prompt: Optional[str] = None, stdin=None) -> None:
    """Run the agent until stdin closes or SIGINT/SIGTERM arrives, then shut the bridge down."""
    loop = asyncio.get_running_loop()
    task = asyncio.current_task()

    def request_shutdown(signame: str) -> None:
        logger.info(f"Received {signame}, shutting down")
        agent.shutdown()
        task.cancel()

    signals = (signal.SIGTERM, signal.SIGINT)
    for sig in signals:
        loop.add_signal_handler(sig, request_shutdown, sig.name)
    try:
        await agent.run(first_prompt, stdin)
    except asyncio.CancelledError:
        logger.info("Agent interrupted")
    finally:
        for sig in signals:
            loop.remove_signal_handler(sig)
        await agent.bridge.shutdown()


def main():
    config = get_config()

    # Validate API key
    if not config.api_key:
        logger.error("LITELLM_API_KEY environment variable is required")
        sys.exit(1)

    # Arguments were checked by get_config
    first_prompt = render_prompt(config.template, config.template_args) if config.template else None

    logger.info(f"Starting Figma design agent")
    logger.info(f"Bridge mode: {config.mode}")
    logger.info(f"LiteLLM Model: {config.model}")

    bridge = PluginBridge(create_executor(config.mode, **config.executor_options()))
    agent = DesignAgent(bridge, config.model, config.api_key, config.max_turns)

    try:
        asyncio.run(serve(agent, first_prompt))
    except HostStartupError as e:
        logger.error(f"Failed to start plugin bridge: {e}")
        sys.exit(1)
    finally:
        agent.shutdown()


if __name__ == "__main__":
    main()
