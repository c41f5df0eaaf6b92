"""
Model registry: the append-only set of entities known to a Database context.
"""
from __future__ import annotations

import threading
from typing import Dict, Iterable, Iterator, Mapping

from shadow_orm.domain.schema import Entity
from shadow_orm.errors import InvalidSchema


class ModelRegistry(Mapping[str, Entity]):
    """
    Mapping of table name to Entity, in registration order.

    Registration is append-only. Reads iterate over a snapshot, so they are
    safe while another task registers.
    """

    def __init__(self, entities: Iterable[Entity] = ()) -> None:
        self._entities: Dict[str, Entity] = {}
        self._lock = threading.Lock()
        for entity in entities:
            self.register(entity)

    def register(self, entity: Entity) -> Entity:
        """
        Register an entity under its table name.

        Registering the same declaration twice is a no-op; a different entity
        under an existing name raises InvalidSchema.
        """
        with self._lock:
            existing = self._entities.get(entity.name)
            if existing is None:
                self._entities[entity.name] = entity
            elif existing != entity:
                raise InvalidSchema(f"a different entity is already registered as {entity.name!r}")
        return entity

    def __getitem__(self, name: str) -> Entity:
        return self._entities[name]

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entities))

    def __len__(self) -> int:
        return len(self._entities)

    def __repr__(self) -> str:
        return f"ModelRegistry({list(self._entities)!r})"


__all__ = ["ModelRegistry"]
