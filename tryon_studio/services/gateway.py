"""Contract of the external generation service."""

from typing import Protocol, Sequence

from ..models import FitAnalysis, GarmentItem, UserPhoto


class GenerationGateway(Protocol):
    """Image and measurement generation.

    Every call is a single request/response with no partial results. Images
    travel as base64-encoded PNG. Failures raise ``GatewayError`` (any other
    exception is treated the same way by callers).
    """

    async def compose_preview(self, photo: UserPhoto, items: Sequence[GarmentItem]) -> str:
        """Render the person in ``photo`` wearing ``items``."""
        ...

    async def analyze_fit(
        self,
        photo: UserPhoto,
        items: Sequence[GarmentItem],
        height: str | None = None,
    ) -> FitAnalysis:
        """Estimate body measurements and how each item fits."""
        ...

    async def apply_edit(self, image: str, instruction: str) -> str:
        """Apply a natural-language edit to a base64 image."""
        ...

    async def create_garment(self, prompt: str) -> str:
        """Render a new garment from a text description."""
        ...
