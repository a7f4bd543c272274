"""Tests for RouterConfig."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from mrouter import RouterConfig


@pytest.mark.parametrize(
    ("value", "expected"),
    [("", ""), ("/", ""), ("app", "/app"), ("/app/", "/app"), ("/a/b", "/a/b")],
)
def test_base_path_normalized(value: str, expected: str) -> None:
    assert RouterConfig(base_path=value).base_path == expected


def test_frozen() -> None:
    config = RouterConfig()
    with pytest.raises(ValidationError):
        config.strict = True


def test_unknown_field_rejected() -> None:
    with pytest.raises(ValidationError):
        RouterConfig(prefix="/x")


def test_status_range() -> None:
    with pytest.raises(ValidationError):
        RouterConfig(not_found_status=200)


def test_merged() -> None:
    config = RouterConfig(strict=True)
    assert config.merged() is config
    merged = config.merged(base_path="v1")
    assert merged.base_path == "/v1"
    assert merged.strict
    with pytest.raises(ValidationError):
        config.merged(abort_status=99)
