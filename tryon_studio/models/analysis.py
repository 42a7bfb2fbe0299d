"""Fit analysis models returned by the measurement service."""

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .garment import GarmentCategory

_NUMERIC = re.compile(r"^[\d.\-]+$")


class _AnalysisModel(BaseModel):
    # The service answers in camelCase; snake_case is accepted too.
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class Measurement(_AnalysisModel):
    name: str
    value: str

    @field_validator("value", mode="before")
    @classmethod
    def _stringify(cls, value):
        if isinstance(value, (int, float)):
            return str(value)
        return value


class PersonMeasurements(_AnalysisModel):
    measurements: list[Measurement] = Field(default_factory=list)
    notes: str = ""


class GarmentFit(_AnalysisModel):
    """How one selected garment fits the person."""

    item_name: str
    item_type: GarmentCategory
    fit_description: str
    garment_measurements: list[Measurement] = Field(default_factory=list)


class FitAnalysis(_AnalysisModel):
    """Person measurements plus a fit report per selected garment."""

    person_measurements: PersonMeasurements
    clothing_fit: list[GarmentFit] = Field(default_factory=list)


def format_measurement(value: str) -> str:
    """Render a bare number as inches; pass anything else through."""
    v = value.strip()
    if _NUMERIC.match(v):
        return f"{v} inches"
    return v


def _formatted(measurements: list[Measurement]) -> list[Measurement]:
    return [m.model_copy(update={"value": format_measurement(m.value)}) for m in measurements]


def formatted_analysis(analysis: FitAnalysis) -> FitAnalysis:
    """Copy of ``analysis`` with every measurement value ready for display."""
    person = analysis.person_measurements
    return analysis.model_copy(update={
        "person_measurements": person.model_copy(update={"measurements": _formatted(person.measurements)}),
        "clothing_fit": [
            fit.model_copy(update={"garment_measurements": _formatted(fit.garment_measurements)})
            for fit in analysis.clothing_fit
        ],
    })
