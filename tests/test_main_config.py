"""Tests for configuration parsing and the prompt catalog."""

import asyncio
import os
import signal

import pytest

import main
from executors import ExecutorState
from plugin_bridge import PluginBridge
from simulated_executor import SimulatedExecutor
from system_prompt import PROMPTS, check_prompt_arguments, render_prompt


CONFIG_ENV = (
    "FIGMA_BRIDGE_MODE",
    "FIGMA_HOST_COMMAND",
    "FIGMA_REQUIRE_HOST",
    "FIGMA_TOOL_TIMEOUT",
    "SIMULATED_DELAY_MS",
    "PLACEHOLDER_DELAY_MS",
    "WS_HOST",
    "WS_PORT",
    "WEBSOCKET_MODE",
    "LITELLM_MODEL",
    "LITELLM_API_KEY",
    "AGENT_MAX_TURNS",
    "MAX_TURNS",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in CONFIG_ENV:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestGetConfig:
    def test_defaults(self, clean_env):
        config = main.get_config([])

        assert config.mode == "simulated"
        assert config.host_command == ["figma-plugin-host"]
        assert config.tool_timeout == 30.0
        assert config.simulated_delay == 0.3
        assert config.executor_options() == {"delay": 0.3}

    def test_environment(self, clean_env):
        clean_env.setenv("FIGMA_BRIDGE_MODE", "host")
        clean_env.setenv("FIGMA_HOST_COMMAND", "node host.js --verbose")
        clean_env.setenv("FIGMA_REQUIRE_HOST", "true")
        clean_env.setenv("FIGMA_TOOL_TIMEOUT", "5")
        clean_env.setenv("PLACEHOLDER_DELAY_MS", "0")

        config = main.get_config([])

        assert config.executor_options() == {
            "command": ["node", "host.js", "--verbose"],
            "timeout": 5.0,
            "placeholder_delay": 0.0,
            "require_host": True,
        }

    def test_real_flag_selects_websocket(self, clean_env):
        config = main.get_config(["-r", "--port=9100"])

        assert config.mode == "websocket"
        assert config.executor_options()["port"] == 9100

    def test_template_arguments(self, clean_env):
        config = main.get_config([
            "--template=create-mobile-app",
            "--template-arg=purpose=Track habits",
            "--template-arg=screens=home, stats",
        ])

        assert config.template == "create-mobile-app"
        assert config.template_args == {"purpose": "Track habits", "screens": "home, stats"}

    def test_template_missing_required_argument_exits(self, clean_env):
        with pytest.raises(SystemExit):
            main.get_config(["--template=create-mobile-app", "--template-arg=screens=home"])

    def test_unknown_template_exits(self, clean_env):
        with pytest.raises(SystemExit):
            main.get_config(["--template=brochure"])

    def test_invalid_mode_exits(self, clean_env):
        with pytest.raises(SystemExit):
            main.get_config(["--mode=telepathy"])

    def test_invalid_number_exits(self, clean_env):
        clean_env.setenv("WS_PORT", "ninety")
        with pytest.raises(SystemExit):
            main.get_config([])


class TestPrompts:
    def test_catalog_names(self):
        assert [p["name"] for p in PROMPTS] == [
            "create-website-design",
            "create-mobile-app",
            "design-component-system",
        ]

    def test_defaults_fill_optional_arguments(self):
        text = render_prompt("create-website-design", {"description": "Bakery"})

        assert "Description: Bakery" in text
        assert "Style: modern" in text

    def test_component_system(self):
        text = render_prompt("design-component-system", {"brandName": "Acme", "primaryColor": "#FF0000"})

        assert text.startswith("Create a design system for Acme with primary color #FF0000.")

    def test_required_arguments_are_enforced(self):
        with pytest.raises(ValueError, match="create-website-design: description"):
            render_prompt("create-website-design", {"style": "minimal"})

    def test_optional_arguments_may_be_omitted(self):
        check_prompt_arguments("design-component-system", {"brandName": "Acme"})

    def test_unknown_prompt(self):
        with pytest.raises(KeyError, match="Prompt not found: nope"):
            render_prompt("nope")


class TestServe:
    def make_agent(self):
        return main.DesignAgent(PluginBridge(SimulatedExecutor(delay=0)), "gpt-4.1-nano", "test-key")

    @pytest.mark.asyncio
    async def test_prompts_are_read_until_eof(self, monkeypatch, capsys):
        read_fd, write_fd = os.pipe()
        os.write(write_fd, b"make a button\n\n   \nmake a card\n")
        os.close(write_fd)
        agent = self.make_agent()
        seen = []

        async def fake_run_prompt(prompt):
            seen.append(prompt)
            return f"done: {prompt}"

        monkeypatch.setattr(agent, "run_prompt", fake_run_prompt)
        with os.fdopen(read_fd, "rb", buffering=0) as stdin:
            await main.serve(agent, first_prompt="hello", stdin=stdin)

        assert seen == ["hello", "make a button", "make a card"]
        assert "done: make a card" in capsys.readouterr().out
        assert agent.bridge.state == ExecutorState.CLOSED

    @pytest.mark.asyncio
    async def test_sigterm_interrupts_wait_for_input(self):
        read_fd, write_fd = os.pipe()
        stdin = os.fdopen(read_fd, "rb", buffering=0)
        agent = self.make_agent()
        task = asyncio.create_task(main.serve(agent, stdin=stdin))
        try:
            await asyncio.sleep(0.05)
            assert not task.done()

            os.kill(os.getpid(), signal.SIGTERM)
            await asyncio.wait_for(task, 2)
        finally:
            os.close(write_fd)
            stdin.close()

        assert agent.running is False
        assert agent.bridge.state == ExecutorState.CLOSED
