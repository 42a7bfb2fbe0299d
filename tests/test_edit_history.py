# Tests for the customization edit history
import asyncio

import pytest

from tryon_studio.errors import GatewayError, InvalidInput, OperationInProgress
from tryon_studio.history import EditHistory


@pytest.fixture
def history(gateway):
    return EditHistory(gateway.encode("composite-0"), gateway)


class TestEditHistory:
    """Tests for EditHistory."""

    def test_starts_with_original(self, history, gateway):
        assert len(history) == 1
        assert history.current() == gateway.encode("composite-0")
        assert not history.can_undo

    @pytest.mark.asyncio
    async def test_apply_edit_appends(self, history, gateway):
        result = await history.apply_edit("Make the top black")

        assert result == gateway.encode("edit-0")
        assert history.current() == result
        assert len(history) == 2
        # The edit is applied to the current version
        assert gateway.calls[0] == ("apply_edit", (gateway.encode("composite-0"), "Make the top black"))

    @pytest.mark.asyncio
    async def test_edits_chain_on_current(self, history, gateway):
        await history.apply_edit("first")
        await history.apply_edit("second")
        assert gateway.calls[1][1][0] == gateway.encode("edit-0")

    @pytest.mark.asyncio
    async def test_undo_drops_latest(self, history, gateway):
        await history.apply_edit("first")
        await history.apply_edit("second")

        assert history.undo() == gateway.encode("edit-0")
        assert len(history) == 2

    def test_undo_on_original_is_noop(self, history, gateway):
        assert history.undo() == gateway.encode("composite-0")
        assert len(history) == 1

    @pytest.mark.asyncio
    async def test_reset_returns_to_original(self, history, gateway):
        await history.apply_edit("first")
        await history.apply_edit("second")

        assert history.reset() == gateway.encode("composite-0")
        assert history.versions == (gateway.encode("composite-0"),)

    @pytest.mark.asyncio
    async def test_blank_instruction_rejected(self, history, gateway):
        with pytest.raises(InvalidInput):
            await history.apply_edit("   ")
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_failure_leaves_history_unchanged(self, history, gateway):
        await history.apply_edit("first")
        gateway.errors["apply_edit"] = GatewayError("Failed to apply customization: boom")

        with pytest.raises(GatewayError):
            await history.apply_edit("second")

        assert len(history) == 2
        assert history.current() == gateway.encode("edit-0")
        assert not history.is_busy

    @pytest.mark.asyncio
    async def test_unexpected_failure_wrapped(self, history, gateway):
        gateway.errors["apply_edit"] = RuntimeError("connection reset")

        with pytest.raises(GatewayError, match="connection reset"):
            await history.apply_edit("first")
        assert len(history) == 1

    @pytest.mark.asyncio
    async def test_second_edit_while_busy_fails_fast(self, history, gateway):
        gateway.edit_gate = asyncio.Event()
        first = asyncio.create_task(history.apply_edit("first"))
        await asyncio.sleep(0)
        assert history.is_busy

        with pytest.raises(OperationInProgress):
            await history.apply_edit("second")

        gateway.edit_gate.set()
        await first
        assert len(history) == 2
        assert gateway.count("apply_edit") == 1
        assert not history.is_busy

    @pytest.mark.asyncio
    async def test_undo_and_reset_rejected_while_busy(self, history, gateway):
        """A pending edit always lands on the version it was computed from."""
        await history.apply_edit("first")
        gateway.edit_gate = asyncio.Event()
        pending = asyncio.create_task(history.apply_edit("second"))
        await asyncio.sleep(0)

        with pytest.raises(OperationInProgress):
            history.reset()
        with pytest.raises(OperationInProgress):
            history.undo()

        gateway.edit_gate.set()
        await pending
        assert history.versions == (
            gateway.encode("composite-0"),
            gateway.encode("edit-0"),
            gateway.encode("edit-1"),
        )
        assert gateway.calls[1][1][0] == gateway.encode("edit-0")
