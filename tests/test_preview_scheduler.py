# Tests for the debounced live preview
import asyncio

import pytest

from tryon_studio.errors import GatewayError
from tryon_studio.models import OutfitSelection
from tryon_studio.preview import PreviewScheduler
from tryon_studio.utils.images import to_data_url


async def settle(seconds: float = 0.05):
    await asyncio.sleep(seconds)


class TestPreviewScheduler:
    """Tests for PreviewScheduler."""

    def test_seed_shows_photo(self, gateway, photo):
        scheduler = PreviewScheduler(gateway, settle_delay=0)
        scheduler.seed(photo)
        assert scheduler.image == photo.url
        assert not scheduler.is_loading

    def test_update_requires_seed(self, gateway, top):
        scheduler = PreviewScheduler(gateway, settle_delay=0)
        with pytest.raises(RuntimeError):
            scheduler.update(OutfitSelection().toggle(top))

    @pytest.mark.asyncio
    async def test_rapid_changes_coalesce_into_one_call(self, gateway, photo, top, pants, shoes):
        scheduler = PreviewScheduler(gateway, settle_delay=0.1)
        scheduler.seed(photo)

        selection = OutfitSelection()
        for item in (top, pants, shoes):
            selection = selection.toggle(item)
            scheduler.update(selection)
            assert scheduler.is_pending
            await asyncio.sleep(0.01)

        assert gateway.count("compose_preview") == 0
        await settle(0.3)

        assert gateway.count("compose_preview") == 1
        assert gateway.calls[0][1][1] == (top, pants, shoes)
        assert scheduler.image == to_data_url(gateway.encode("composite-0"))
        assert scheduler.dispatch_count == 1
        assert not scheduler.is_loading

    @pytest.mark.asyncio
    async def test_empty_selection_shows_photo_without_call(self, gateway, photo, top):
        scheduler = PreviewScheduler(gateway, settle_delay=0.05)
        scheduler.seed(photo)

        selection = OutfitSelection().toggle(top)
        scheduler.update(selection)
        scheduler.update(selection.toggle(top))
        await settle(0.15)

        assert gateway.count("compose_preview") == 0
        assert scheduler.image == photo.url
        assert not scheduler.is_pending

    @pytest.mark.asyncio
    async def test_stale_result_discarded(self, gateway, photo, top, pants):
        scheduler = PreviewScheduler(gateway, settle_delay=0)
        scheduler.seed(photo)
        gate = asyncio.Event()
        gateway.compose_gates[0] = gate

        first = OutfitSelection().toggle(top)
        scheduler.update(first)
        await settle(0.02)
        assert gateway.count("compose_preview") == 1
        assert scheduler.is_loading

        scheduler.update(first.toggle(pants))
        await settle(0.02)
        assert scheduler.image == to_data_url(gateway.encode("composite-1"))

        # The older call resolves last and must not overwrite the newer preview
        gate.set()
        await settle(0.02)
        assert scheduler.image == to_data_url(gateway.encode("composite-1"))
        assert not scheduler.is_loading

    @pytest.mark.asyncio
    async def test_in_flight_result_dropped_after_clearing_selection(self, gateway, photo, top):
        scheduler = PreviewScheduler(gateway, settle_delay=0)
        scheduler.seed(photo)
        gate = asyncio.Event()
        gateway.compose_gates[0] = gate

        selection = OutfitSelection().toggle(top)
        scheduler.update(selection)
        await settle(0.02)

        scheduler.update(selection.toggle(top))
        assert scheduler.image == photo.url
        assert not scheduler.is_loading

        gate.set()
        await settle(0.02)
        assert scheduler.image == photo.url

    @pytest.mark.asyncio
    async def test_failure_falls_back_to_photo(self, gateway, photo, top):
        gateway.errors["compose_preview"] = GatewayError("Failed to generate the outfit: boom")
        scheduler = PreviewScheduler(gateway, settle_delay=0)
        scheduler.seed(photo)

        scheduler.update(OutfitSelection().toggle(top))
        await settle(0.02)

        assert gateway.count("compose_preview") == 1
        assert scheduler.image == photo.url
        assert not scheduler.is_loading

    @pytest.mark.asyncio
    async def test_cancel_stops_pending_timer(self, gateway, photo, top):
        scheduler = PreviewScheduler(gateway, settle_delay=0.05)
        scheduler.seed(photo)

        scheduler.update(OutfitSelection().toggle(top))
        scheduler.cancel()
        await settle(0.15)

        assert gateway.count("compose_preview") == 0

    @pytest.mark.asyncio
    async def test_aclose_cancels_outstanding_calls(self, gateway, photo, top):
        scheduler = PreviewScheduler(gateway, settle_delay=0)
        scheduler.seed(photo)
        gateway.compose_gates[0] = asyncio.Event()

        scheduler.update(OutfitSelection().toggle(top))
        await settle(0.02)
        await scheduler.aclose()

        assert scheduler.image == photo.url
        assert not scheduler.is_loading
