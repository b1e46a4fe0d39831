"""Shared data models for cluster image resolution."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .names import parse_cluster_name

ModelT = TypeVar("ModelT", bound=BaseModel)


class LocationType(str, Enum):
    REGION = "REGION"
    ZONE = "ZONE"

    @property
    def plural(self) -> str:
        return f"{self.value.lower()}s"


@dataclass(frozen=True)
class Location:
    """A region or zone a server group can be deployed into."""

    type: LocationType
    value: str

    def plural_type(self) -> str:
        return self.type.plural

    def __str__(self) -> str:
        return self.value


class SelectionStrategy(str, Enum):
    """How the inventory service picks a server group within a cluster."""

    # Most instances, newest on a tie
    LARGEST = "LARGEST"
    # Newest by creation time
    NEWEST = "NEWEST"
    # Oldest by creation time
    OLDEST = "OLDEST"
    # Fail if more than one server group is a candidate
    FAIL = "FAIL"


class FindImageConfiguration(BaseModel):
    """Stage parameters for resolving the images a cluster is running."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    cluster: str
    regions: Optional[list[str]] = None
    zones: Optional[list[str]] = None
    only_enabled: bool = Field(True, alias="onlyEnabled")
    resolve_missing_locations: Optional[bool] = Field(None, alias="resolveMissingLocations")
    selection_strategy: SelectionStrategy = Field(SelectionStrategy.NEWEST, alias="selectionStrategy")

    @field_validator("selection_strategy", mode="before")
    @classmethod
    def _normalize_strategy(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @property
    def application(self) -> str:
        return parse_cluster_name(self.cluster).app

    @property
    def required_locations(self) -> list[Location]:
        """Regions when any are given, otherwise zones, in first-seen order."""

        if self.regions:
            locations = [Location(LocationType.REGION, value) for value in self.regions]
        elif self.zones:
            locations = [Location(LocationType.ZONE, value) for value in self.zones]
        else:
            return []
        return list(dict.fromkeys(locations))


class ServerGroupSummary(BaseModel):
    """Image summary of the server group selected in one location."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    image_name: Optional[str] = Field(None, alias="imageName")
    image_id: Optional[str] = Field(None, alias="imageId")
    server_group_name: Optional[str] = Field(None, alias="serverGroupName")
    # Both are passed through untouched; their shape depends on the provider.
    image: Any = None
    build_info: Any = Field(None, alias="buildInfo")


class CatalogImage(BaseModel):
    """Entry returned by an image catalog search."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    image_name: Optional[str] = Field(None, alias="imageName")
    # Location values may be null for regions an image was never copied to.
    amis: Optional[dict[str, Optional[list[str]]]] = None


class ExecutionStatus(str, Enum):
    SUCCEEDED = "SUCCEEDED"
    TERMINAL = "TERMINAL"


class TaskResult(BaseModel):
    """Outcome handed back to the orchestrator."""

    status: ExecutionStatus
    result: dict[str, Any] = Field(default_factory=dict)
    context: dict[str, Any] = Field(default_factory=dict)


class Stage(BaseModel):
    """The slice of a pipeline stage a task reads its inputs from."""

    id: Optional[str] = None
    type: Optional[str] = None
    context: dict[str, Any] = Field(default_factory=dict)

    def map_to(self, model: type[ModelT]) -> ModelT:
        return model.model_validate(self.context)
