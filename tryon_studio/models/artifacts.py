"""Saved artifacts that outlive a session."""

from pydantic import BaseModel, ConfigDict

from .analysis import FitAnalysis
from .garment import OutfitSelection
from .photo import UserPhoto


class SavedLook(BaseModel):
    """A finalized composite, with the photo and outfit it came from."""

    model_config = ConfigDict(frozen=True)

    id: int
    final_image: str  # base64 PNG
    original_image: UserPhoto
    selected_outfit: OutfitSelection


class SavedMeasurement(BaseModel):
    """A fit analysis, with the photo and outfit it was computed for."""

    model_config = ConfigDict(frozen=True)

    id: int
    fit_analysis: FitAnalysis
    user_image: UserPhoto
    selected_outfit: OutfitSelection
