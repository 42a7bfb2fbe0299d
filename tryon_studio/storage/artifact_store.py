"""JSON-file-backed store for saved looks and measurements."""

import os
from pathlib import Path
from typing import Mapping

from pydantic import BaseModel, TypeAdapter, ValidationError

from ..logging_config import get_logger
from ..models import SavedLook, SavedMeasurement

logger = get_logger(__name__)

LOOKS = "looks"
MEASUREMENTS = "measurements"

DEFAULT_COLLECTIONS: dict[str, type[BaseModel]] = {
    LOOKS: SavedLook,
    MEASUREMENTS: SavedMeasurement,
}


class ArtifactStore:
    """Named collections of entities, newest first, one JSON file each.

    Reads favor availability: a missing, unreadable or invalid file loads as
    an empty collection. Writes replace the file atomically; a failed write
    is logged and the in-memory collection keeps the mutation.
    """

    def __init__(
        self,
        base_dir: str | Path = "output/studio",
        collections: Mapping[str, type[BaseModel]] | None = None,
    ) -> None:
        self.base_dir = Path(base_dir)
        self._adapters = {
            name: TypeAdapter(list[model])
            for name, model in (collections or DEFAULT_COLLECTIONS).items()
        }
        self._cache: dict[str, tuple] = {}

    @property
    def collections(self) -> list[str]:
        return list(self._adapters)

    def _path(self, collection: str) -> Path:
        return self.base_dir / f"{collection}.json"

    def _adapter(self, collection: str) -> TypeAdapter:
        if collection not in self._adapters:
            raise KeyError(f"Unknown collection {collection!r}")
        return self._adapters[collection]

    def load(self, collection: str) -> tuple:
        """Read a collection from disk, replacing the in-memory copy."""
        adapter = self._adapter(collection)
        path = self._path(collection)
        entities: tuple = ()

        if path.exists():
            try:
                entities = tuple(adapter.validate_json(path.read_bytes()))
            except (OSError, ValidationError) as e:
                logger.warning("Could not load %s from %s, starting empty: %s", collection, path, e)

        self._cache[collection] = entities
        return entities

    def items(self, collection: str) -> tuple:
        """The in-memory collection, loaded on first access."""
        if collection not in self._cache:
            return self.load(collection)
        return self._cache[collection]

    def get(self, collection: str, entity_id: int):
        for entity in self.items(collection):
            if entity.id == entity_id:
                return entity
        return None

    def save(self, collection: str, entity_id: int, entity: BaseModel) -> tuple:
        """Prepend an entity and persist the whole collection."""
        if getattr(entity, "id", None) != entity_id:
            raise ValueError(f"Entity id does not match {entity_id}")

        updated = (entity,) + self.items(collection)
        self._cache[collection] = updated
        self._write(collection, updated)
        return updated

    def delete(self, collection: str, entity_id: int) -> tuple:
        """Remove the entity with ``entity_id`` and persist the collection."""
        current = self.items(collection)
        updated = tuple(entity for entity in current if entity.id != entity_id)
        if len(updated) != len(current):
            self._cache[collection] = updated
            self._write(collection, updated)
        return updated

    def _write(self, collection: str, entities: tuple) -> None:
        path = self._path(collection)
        tmp_path = path.with_name(path.name + ".tmp")
        payload = self._adapter(collection).dump_json(list(entities), indent=2)
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(payload)
            os.replace(tmp_path, path)
        except OSError as e:
            logger.error("Could not persist %s to %s: %s", collection, path, e)
