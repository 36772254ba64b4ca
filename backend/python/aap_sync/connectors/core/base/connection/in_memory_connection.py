import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from aap_sync.connectors.core.interfaces.connection.iconnection import (
    DeltaMutation,
    EntityMutation,
    FullMutation,
    IEntityProviderConnection,
)


def entity_ref(entity: Dict[str, Any]) -> Tuple[str, str, str]:
    metadata = entity.get("metadata") or {}
    return (
        str(entity.get("kind", "")).lower(),
        metadata.get("namespace") or "default",
        metadata.get("name", ""),
    )


class InMemoryEntityProviderConnection(IEntityProviderConnection):
    """Keeps the entities of every location key in memory.

    A full mutation replaces the entities of each location key it carries.
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self.entities: Dict[str, Dict[Tuple[str, str, str], Dict[str, Any]]] = {}
        self.mutations: List[EntityMutation] = []
        self._lock = asyncio.Lock()

    async def apply_mutation(self, mutation: EntityMutation) -> None:
        async with self._lock:
            self.mutations.append(mutation)
            if isinstance(mutation, FullMutation):
                replaced: Dict[str, Dict[Tuple[str, str, str], Dict[str, Any]]] = {}
                for deferred in mutation.entities:
                    replaced.setdefault(deferred.location_key, {})[entity_ref(deferred.entity)] = deferred.entity
                self.entities.update(replaced)
                self.logger.info(f"Applied full mutation with {len(mutation.entities)} entities")
            elif isinstance(mutation, DeltaMutation):
                for deferred in mutation.removed:
                    self.entities.get(deferred.location_key, {}).pop(entity_ref(deferred.entity), None)
                for deferred in mutation.added:
                    self.entities.setdefault(deferred.location_key, {})[entity_ref(deferred.entity)] = deferred.entity
                self.logger.info(
                    f"Applied delta mutation: {len(mutation.added)} added, {len(mutation.removed)} removed"
                )

    def get_entities(self, location_key: Optional[str] = None) -> List[Dict[str, Any]]:
        if location_key is not None:
            return list(self.entities.get(location_key, {}).values())
        return [entity for entities in self.entities.values() for entity in entities.values()]
