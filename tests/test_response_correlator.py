"""Tests for response correlation."""

import asyncio
import logging

import pytest

from figma_communicator import DuplicateCommandIdError, HostDisconnectedError, ResponseCorrelator, ToolExecutionError
from plugin_commands import PluginResponse


def ok(command_id, **data):
    return PluginResponse(type="ADD_ELEMENT", success=True, data=data, id=command_id, is_response=True)


class TestResponseCorrelator:
    @pytest.mark.asyncio
    async def test_out_of_order_responses_reach_their_callers(self):
        correlator = ResponseCorrelator()
        future_a = correlator.register("A", "ADD_ELEMENT")
        future_b = correlator.register("B", "ADD_ELEMENT")

        assert correlator.resolve(ok("B", n=2))
        assert correlator.resolve(ok("A", n=1))

        assert (await future_a).data == {"n": 1}
        assert (await future_b).data == {"n": 2}
        assert len(correlator) == 0

    @pytest.mark.asyncio
    async def test_unknown_id_is_dropped(self, caplog):
        correlator = ResponseCorrelator()
        future = correlator.register("A")

        with caplog.at_level(logging.WARNING):
            assert correlator.resolve(ok("Z")) is False

        assert "unknown ID: Z" in caplog.text
        assert not future.done()
        assert "A" in correlator

    @pytest.mark.asyncio
    async def test_response_without_id_is_dropped(self):
        correlator = ResponseCorrelator()
        correlator.register("A")

        assert correlator.resolve(ok(None)) is False
        assert correlator.pending_ids == ["A"]

    @pytest.mark.asyncio
    async def test_completes_at_most_once(self):
        correlator = ResponseCorrelator()
        future = correlator.register("A")

        assert correlator.resolve(ok("A", n=1))
        assert correlator.resolve(ok("A", n=2)) is False
        assert (await future).data == {"n": 1}

    @pytest.mark.asyncio
    async def test_duplicate_registration_is_rejected(self):
        correlator = ResponseCorrelator()
        correlator.register("A")

        with pytest.raises(DuplicateCommandIdError):
            correlator.register("A")

    @pytest.mark.asyncio
    async def test_reject_all(self):
        correlator = ResponseCorrelator()
        futures = [correlator.register(i) for i in ("A", "B")]

        assert correlator.reject_all(HostDisconnectedError("gone")) == 2

        for future in futures:
            with pytest.raises(HostDisconnectedError):
                await future
        assert len(correlator) == 0

    @pytest.mark.asyncio
    async def test_discard_all_cancels(self):
        correlator = ResponseCorrelator()
        future = correlator.register("A")

        correlator.discard_all()

        assert future.cancelled()
        assert correlator.resolve(ok("A")) is False

    @pytest.mark.asyncio
    async def test_discarded_caller_ignores_late_response(self):
        correlator = ResponseCorrelator()
        future = correlator.register("A")
        correlator.discard("A")

        assert correlator.resolve(ok("A")) is False
        assert not future.done()
        future.cancel()
        await asyncio.sleep(0)


class TestToolExecutionError:
    def test_string_error_becomes_message(self):
        response = PluginResponse(type="ADD_ELEMENT", success=False, error="Parent not found", id="c1")

        error = ToolExecutionError.from_response(response)

        assert str(error) == "Parent not found"
        assert error.code == "plugin_reported_failure"
        assert error.command == "ADD_ELEMENT"
        assert error.command_id == "c1"

    def test_structured_error_is_kept(self):
        error = ToolExecutionError({"code": "node_not_found", "message": "No node x", "details": {"id": "x"}})

        assert error.code == "node_not_found"
        assert error.details == {"id": "x"}
        assert str(error) == "No node x"

    def test_missing_error(self):
        assert str(ToolExecutionError(None)) == "Unknown error"
