"""
Dataset entity: URN types and the dataset aspect union.

This is the default union of the ``metaspine`` CLI, and a worked example of
how an entity kind is declared:

    DatasetUrn          urn:li:dataset:<key>
    CorpUserUrn         urn:li:corpuser:<name>   (owners, audit actors)

    DATASET_ASPECTS
      ├── DatasetProperties   description, tags, custom properties
      ├── Ownership           owners and their roles
      └── Status              soft-delete flag
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from metaspine.core.aspects import Aspect, AspectUnion
from metaspine.core.errors import ParseError
from metaspine.core.urn import Urn


class DatasetUrn(Urn):
    ENTITY_TYPE = "dataset"


class CorpUserUrn(Urn):
    ENTITY_TYPE = "corpuser"


class OwnershipType(str, Enum):
    DATAOWNER = "DATAOWNER"
    PRODUCER = "PRODUCER"
    DEVELOPER = "DEVELOPER"
    STAKEHOLDER = "STAKEHOLDER"


class DatasetProperties(Aspect):
    """Descriptive properties of a dataset."""

    ASPECT_NAME = "com.linkedin.dataset.DatasetProperties"

    description: str | None = None
    tags: tuple[str, ...] = ()
    customProperties: Mapping[str, str] = Field(default_factory=dict, validate_default=True)

    @field_validator("customProperties", mode="after")
    @classmethod
    def _freeze_custom_properties(cls, value: Mapping[str, str]) -> Mapping[str, str]:
        return MappingProxyType(dict(value))

    @field_serializer("customProperties")
    def _dump_custom_properties(self, value: Mapping[str, str]) -> dict[str, str]:
        return dict(value)


class Owner(BaseModel):
    """One owner entry of an Ownership aspect."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    owner: str
    type: OwnershipType = OwnershipType.DATAOWNER

    @field_validator("owner")
    @classmethod
    def _owner_is_corpuser(cls, value: str) -> str:
        try:
            CorpUserUrn.from_string(value)
        except ParseError as e:
            raise ValueError(e.message) from e
        return value


class Ownership(Aspect):
    ASPECT_NAME = "com.linkedin.common.Ownership"

    owners: tuple[Owner, ...] = ()

    def owner_urns(self) -> list[CorpUserUrn]:
        return [CorpUserUrn.from_string(entry.owner) for entry in self.owners]


class Status(Aspect):
    ASPECT_NAME = "com.linkedin.common.Status"

    removed: bool = False


DATASET_ASPECTS = AspectUnion("DatasetAspect", [DatasetProperties, Ownership, Status])


__all__ = [
    "DATASET_ASPECTS",
    "CorpUserUrn",
    "DatasetProperties",
    "DatasetUrn",
    "Owner",
    "OwnershipType",
    "Ownership",
    "Status",
]
