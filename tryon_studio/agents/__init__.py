"""LLM agents and prompt templates for the try-on studio."""

from .fit_analyzer import FitAnalyzer
from .prompt_builder import OutfitPromptBuilder

__all__ = [
    "FitAnalyzer",
    "OutfitPromptBuilder",
]
