"""Garment catalog: the shipped items plus the ones users create at runtime."""

from pathlib import Path
from typing import Iterable, Iterator

from pydantic import TypeAdapter

from .models import GarmentCategory, GarmentItem

_CATALOG_ADAPTER = TypeAdapter(list[GarmentItem])

SAMPLE_CATALOG_PATH = Path(__file__).parent / "data" / "catalog.json"


class GarmentCatalog:
    """Ordered garments. Shipped items keep their order; created items go first."""

    def __init__(self, items: Iterable[GarmentItem] = ()):
        self._items: list[GarmentItem] = []
        for item in items:
            self._add(item, front=False)

    @classmethod
    def from_file(cls, path: Path) -> "GarmentCatalog":
        """Load a catalog from a JSON array of garments."""
        return cls(_CATALOG_ADAPTER.validate_json(Path(path).read_bytes()))

    def __iter__(self) -> Iterator[GarmentItem]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        return any(item.id == item_id for item in self._items)

    def get(self, item_id: int) -> GarmentItem:
        for item in self._items:
            if item.id == item_id:
                return item
        raise KeyError(f"Unknown garment {item_id}")

    def by_category(self, category: GarmentCategory) -> list[GarmentItem]:
        return [item for item in self._items if item.category == category]

    def prepend(self, item: GarmentItem) -> None:
        """Add a user-created garment ahead of everything else."""
        self._add(item, front=True)

    def _add(self, item: GarmentItem, front: bool) -> None:
        if item.id in self:
            raise ValueError(f"Duplicate garment id {item.id}")
        if front:
            self._items.insert(0, item)
        else:
            self._items.append(item)
