"""Debounced live preview for the garment selection step."""

import asyncio

from .logging_config import get_logger
from .models import OutfitSelection, UserPhoto
from .services.gateway import GenerationGateway
from .utils.images import to_data_url

logger = get_logger(__name__)

DEFAULT_SETTLE_DELAY = 0.8


class PreviewScheduler:
    """Keeps a live composite preview in sync with the outfit selection.

    Every change bumps a token. A compose call is only dispatched once the
    selection has been quiet for ``settle_delay`` seconds, and its result is
    applied only if its token is still the latest and the selection still
    equals the one it was computed for. In-flight calls are never aborted;
    stale results are dropped on arrival.
    """

    def __init__(self, gateway: GenerationGateway, settle_delay: float = DEFAULT_SETTLE_DELAY):
        self.gateway = gateway
        self.settle_delay = settle_delay
        self.image: str | None = None
        self.dispatch_count = 0
        self._photo: UserPhoto | None = None
        self._selection = OutfitSelection()
        self._token = 0
        self._loading_token: int | None = None
        self._timer: asyncio.Task | None = None
        self._calls: set[asyncio.Task] = set()

    @property
    def is_loading(self) -> bool:
        """True while the call for the current selection is outstanding."""
        return self._loading_token is not None and self._loading_token == self._token

    @property
    def is_pending(self) -> bool:
        """True while the settle timer is running."""
        return self._timer is not None and not self._timer.done()

    def seed(self, photo: UserPhoto) -> None:
        """Show the plain photo and forget any previous selection."""
        self.cancel()
        self._photo = photo
        self._selection = OutfitSelection()
        self.image = photo.url

    def update(self, selection: OutfitSelection) -> None:
        """React to a selection change. Must be called from a running loop."""
        if self._photo is None:
            raise RuntimeError("Preview has not been seeded with a photo")

        self._invalidate()
        self._selection = selection

        if selection.is_empty:
            self.image = self._photo.url
            return

        self._timer = asyncio.get_running_loop().create_task(
            self._settle(self._token, self._photo, selection)
        )

    def clear(self) -> None:
        """Cancel and drop the photo (start over)."""
        self.cancel()
        self._photo = None
        self._selection = OutfitSelection()
        self.image = None

    def cancel(self) -> None:
        """Stop the timer and make every in-flight result stale."""
        self._invalidate()

    async def aclose(self) -> None:
        """Cancel the timer and every outstanding call."""
        self._invalidate()
        tasks = list(self._calls)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._calls.clear()

    def _invalidate(self) -> None:
        self._token += 1
        self._loading_token = None
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _settle(self, token: int, photo: UserPhoto, selection: OutfitSelection) -> None:
        await asyncio.sleep(self.settle_delay)
        if token != self._token:
            return
        self._timer = None
        self._loading_token = token
        self.dispatch_count += 1
        # Dispatch on its own task so later changes cancel only the timer
        task = asyncio.get_running_loop().create_task(self._dispatch(token, photo, selection))
        self._calls.add(task)
        task.add_done_callback(self._calls.discard)

    async def _dispatch(self, token: int, photo: UserPhoto, selection: OutfitSelection) -> None:
        items = selection.items()
        logger.debug("Dispatching preview %d for %d items", token, len(items))

        try:
            result = await self.gateway.compose_preview(photo, items)
        except Exception as e:
            if self._is_current(token, selection):
                logger.warning("Preview generation failed: %s", e)
                self.image = photo.url
                self._loading_token = None
            return

        if not self._is_current(token, selection):
            logger.debug("Discarding stale preview %d", token)
            return

        self.image = to_data_url(result)
        self._loading_token = None

    def _is_current(self, token: int, selection: OutfitSelection) -> bool:
        return token == self._token and selection == self._selection
