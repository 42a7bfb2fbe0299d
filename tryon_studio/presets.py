"""Quick customization instructions offered for the selected garments."""

from typing import NamedTuple

from .models import GarmentCategory, OutfitSelection


class Preset(NamedTuple):
    group: str
    label: str
    instruction: str


_TOP_FITS = ["Baggy Fit", "Slim Fit", "Oversized", "Boxy Fit", "Cropped"]

PRESETS: dict[GarmentCategory, list[Preset]] = {
    GarmentCategory.TOP: [
        *(Preset("Fit & Silhouette", fit, f"Make the top {fit.lower()}") for fit in _TOP_FITS),
        Preset("Style", "Short Sleeve", "Make the top short-sleeved"),
        Preset("Style", "Tank Top", "Make the top into a tank top"),
        Preset("Style", "Add Hood", "Make the top into a hoodie"),
        Preset("Color", "Black", "Change the color of the top to black"),
        Preset("Color", "White", "Change the color of the top to white"),
    ],
    GarmentCategory.PANTS: [
        Preset("Fit", "Baggy Fit", "Make the pants baggy fit"),
        Preset("Fit", "Skinny Fit", "Make the pants skinny fit"),
        Preset("Fit", "Cropped", "Make the pants cropped length"),
        Preset("Style", "Shorts", "Make the pants into shorts"),
        Preset("Style", "Add Rips", "Add rips to the knees of the pants"),
        Preset("Style", "Make Denim", "Change the material of the pants to blue denim"),
    ],
}


def presets_for(selection: OutfitSelection) -> dict[GarmentCategory, list[Preset]]:
    """Presets for every selected category that has any."""
    return {
        category: PRESETS[category]
        for category, item in selection.as_mapping().items()
        if item is not None and category in PRESETS
    }
