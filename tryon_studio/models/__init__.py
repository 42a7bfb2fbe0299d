"""Data models for the try-on studio."""

from .garment import GarmentCategory, GarmentItem, OutfitSelection
from .photo import UserPhoto, Height
from .analysis import Measurement, PersonMeasurements, GarmentFit, FitAnalysis, format_measurement, formatted_analysis
from .artifacts import SavedLook, SavedMeasurement

__all__ = [
    "GarmentCategory",
    "GarmentItem",
    "OutfitSelection",
    "UserPhoto",
    "Height",
    "Measurement",
    "PersonMeasurements",
    "GarmentFit",
    "FitAnalysis",
    "format_measurement",
    "formatted_analysis",
    "SavedLook",
    "SavedMeasurement",
]
