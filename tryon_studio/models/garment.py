"""Garment and outfit selection models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class GarmentCategory(str, Enum):
    """The fixed outfit slots."""

    TOP = "Top"
    PANTS = "Pants"
    SHOES = "Shoes"
    ACCESSORY = "Accessory"

    @property
    def slot(self) -> str:
        """Field name of this category on OutfitSelection."""
        return self.value.lower()


class GarmentItem(BaseModel):
    """A catalog garment. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: int
    category: GarmentCategory
    name: str
    image_url: str = Field(description="http(s) URL or data URL of the garment image")
    description: str = ""


class OutfitSelection(BaseModel):
    """At most one garment per category. Every slot is always present."""

    model_config = ConfigDict(frozen=True)

    top: GarmentItem | None = None
    pants: GarmentItem | None = None
    shoes: GarmentItem | None = None
    accessory: GarmentItem | None = None

    def get(self, category: GarmentCategory) -> GarmentItem | None:
        return getattr(self, GarmentCategory(category).slot)

    def toggle(self, item: GarmentItem) -> "OutfitSelection":
        """Return a new selection with the item selected, or its slot cleared
        when the same item was already selected."""
        current = self.get(item.category)
        replacement = None if current is not None and current.id == item.id else item
        return self.model_copy(update={item.category.slot: replacement})

    def items(self) -> list[GarmentItem]:
        """Selected garments in category order."""
        return [item for item in (self.get(c) for c in GarmentCategory) if item is not None]

    @property
    def is_empty(self) -> bool:
        return not self.items()

    def as_mapping(self) -> dict[GarmentCategory, GarmentItem | None]:
        return {category: self.get(category) for category in GarmentCategory}
