"""Property-based tests for bakery base image name extraction."""

from __future__ import annotations

from hypothesis import given, strategies as st

from clusterimages.tasks.find_image import extract_base_image_names

name_chars = st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789._", min_size=1, max_size=40)


def test_known_examples():
    assert extract_base_image_names({"foo-ebs", "foo-ebs2", "bar-s3-9"}) == {"foo-ebs", "bar-s3"}
    assert extract_base_image_names({"plainname"}) == set()
    assert extract_base_image_names([None, ""]) == set()


def test_custom_suffixes():
    names = {"app-gce-1", "app-ebs"}
    assert extract_base_image_names(names, suffixes=["-gce"]) == {"app-gce"}


@given(prefix=name_chars, suffix=st.sampled_from(["-ebs", "-s3"]), counter=st.integers(min_value=0, max_value=999))
def test_racing_bake_counter_is_stripped(prefix: str, suffix: str, counter: int) -> None:
    base = f"{prefix}{suffix}"
    assert extract_base_image_names({base, f"{base}{counter}"}) == {base}


@given(name=name_chars)
def test_names_without_suffix_are_dropped(name: str) -> None:
    assert extract_base_image_names({name}) == set()


@given(names=st.sets(name_chars.map(lambda prefix: f"{prefix}-ebs"), max_size=5))
def test_base_names_are_idempotent(names: set[str]) -> None:
    base_names = extract_base_image_names(names)
    assert base_names == names
    assert extract_base_image_names(base_names) == base_names
