from __future__ import annotations

import pytest
from pydantic import ValidationError

from clusterimages.common.schemas import (
    FindImageConfiguration,
    Location,
    LocationType,
    SelectionStrategy,
    ServerGroupSummary,
    Stage,
)


def test_location_is_hashable_value_object():
    first = Location(LocationType.REGION, "us-east-1")
    same = Location(LocationType.REGION, "us-east-1")
    zone = Location(LocationType.ZONE, "us-east-1")

    assert first == same
    assert first != zone
    assert {first: "a", same: "b"} == {first: "b"}
    assert first.plural_type() == "regions"
    assert zone.plural_type() == "zones"
    assert str(zone) == "us-east-1"


def test_configuration_defaults():
    config = FindImageConfiguration.model_validate({"cluster": "app-test-canary"})

    assert config.only_enabled is True
    assert config.resolve_missing_locations is None
    assert config.selection_strategy is SelectionStrategy.NEWEST
    assert config.application == "app"
    assert config.required_locations == []


def test_regions_take_precedence_over_zones():
    config = FindImageConfiguration.model_validate(
        {"cluster": "app", "regions": ["us-east-1", "us-west-2", "us-east-1"], "zones": ["us-east-1a"]}
    )

    assert config.required_locations == [
        Location(LocationType.REGION, "us-east-1"),
        Location(LocationType.REGION, "us-west-2"),
    ]


def test_empty_regions_fall_back_to_zones():
    config = FindImageConfiguration.model_validate({"cluster": "app", "regions": [], "zones": ["us-east-1a"]})

    assert config.required_locations == [Location(LocationType.ZONE, "us-east-1a")]


def test_stage_maps_camel_case_context():
    stage = Stage(
        context={
            "cluster": "app-main",
            "onlyEnabled": False,
            "resolveMissingLocations": True,
            "selectionStrategy": "oldest",
            "cloudProvider": "aws",
            "unrelated": {"ignored": True},
        }
    )

    config = stage.map_to(FindImageConfiguration)

    assert config.only_enabled is False
    assert config.resolve_missing_locations is True
    assert config.selection_strategy is SelectionStrategy.OLDEST


def test_unknown_strategy_rejected():
    with pytest.raises(ValidationError):
        FindImageConfiguration.model_validate({"cluster": "app", "selectionStrategy": "RANDOM"})


def test_summary_keeps_unknown_fields():
    summary = ServerGroupSummary.model_validate(
        {"imageName": "app-ebs", "imageId": "ami-1", "image": {"a": 1}, "buildInfo": None, "cloudProvider": "aws"}
    )

    dumped = summary.model_dump(by_alias=True)
    assert dumped["cloudProvider"] == "aws"
    assert dumped["imageName"] == "app-ebs"
    assert summary.build_info is None
