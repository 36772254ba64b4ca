from abc import ABC, abstractmethod
from typing import Any, Dict, List, Literal, Union

from pydantic import BaseModel, Field


class DeferredEntity(BaseModel):
    """A catalog entity together with the location key that owns it"""
    entity: Dict[str, Any]
    location_key: str = Field(alias="locationKey")

    model_config = {"populate_by_name": True}


class FullMutation(BaseModel):
    """Replace every entity owned by the provider"""
    type: Literal["full"] = "full"
    entities: List[DeferredEntity] = Field(default_factory=list)


class DeltaMutation(BaseModel):
    """Add and remove individual entities"""
    type: Literal["delta"] = "delta"
    added: List[DeferredEntity] = Field(default_factory=list)
    removed: List[DeferredEntity] = Field(default_factory=list)


EntityMutation = Union[FullMutation, DeltaMutation]


class IEntityProviderConnection(ABC):
    """Sink for the entity mutations emitted by a provider"""

    @abstractmethod
    async def apply_mutation(self, mutation: EntityMutation) -> None:
        """Apply a full or delta mutation to the catalog"""
