"""Prompt templates for compose, edit and garment-creation requests."""

from typing import Sequence

from ..models import GarmentItem

PRESERVATION = (
    "preserve their face, hair, skin tone, body shape, pose, and background environment exactly"
)


class OutfitPromptBuilder:
    """Builds FLUX 2 Klein instructions for the studio operations.

    Reference image 1 is always the person (or the image being edited);
    garments follow in selection order.
    """

    def compose(self, items: Sequence[GarmentItem]) -> str:
        """Prompt that dresses the person in every selected garment."""
        if not items:
            raise ValueError("At least one garment is required")

        pieces = []
        for index, item in enumerate(items, start=2):
            piece = f"the {item.name} ({item.category.value.lower()}) from reference image {index}"
            if item.description:
                short_desc = item.description[:150]
                if '.' in short_desc:
                    short_desc = short_desc[:short_desc.rfind('.') + 1]
                piece += f": {short_desc.rstrip('.')}"
            pieces.append(piece)

        outfit = "; ".join(pieces)
        return (
            f"Keep the exact same person from reference image 1, {PRESERVATION}. "
            f"ONLY change the clothing they wear to {outfit}. "
            f"Garments that are not replaced stay as they are. "
            f"The person should look identical except for wearing this outfit."
        )

    def edit(self, instruction: str) -> str:
        """Prompt that applies one customization to an existing composite."""
        return (
            f"Edit the outfit in reference image 1: {instruction.strip()}. "
            f"Keep the exact same person, {PRESERVATION}. "
            f"Change nothing except what the edit asks for."
        )

    def garment(self, description: str) -> str:
        """Prompt that renders a standalone product photo of a new garment."""
        return (
            f"A product photo of {description.strip()}, laid flat on a plain light grey "
            f"background, evenly lit, the whole item in frame, no person, no text."
        )
