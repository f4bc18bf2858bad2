"""Tests for entity id helpers."""

from __future__ import annotations

import pytest

from packages.pbx_shared.ids import (
    ENTITY_ID_LENGTH,
    generate_entity_id,
    is_entity_id,
    normalize_entity_id,
)


def test_generated_ids_are_canonical_and_unique() -> None:
    ids = {generate_entity_id() for _ in range(100)}

    assert len(ids) == 100
    for value in ids:
        assert len(value) == ENTITY_ID_LENGTH
        assert normalize_entity_id(value) == value


def test_normalize_lowercases_and_trims() -> None:
    value = " 1F0E3DAD-9999-4B1A-8C3E-0123456789AB "

    assert normalize_entity_id(value) == "1f0e3dad-9999-4b1a-8c3e-0123456789ab"


@pytest.mark.parametrize("value", ["", "   ", "not-a-uuid", "1234"])
def test_normalize_rejects_non_uuid_text(value: str) -> None:
    with pytest.raises(ValueError):
        normalize_entity_id(value)


def test_is_entity_id() -> None:
    assert is_entity_id(generate_entity_id())
    assert not is_entity_id("Campaign1")
    assert not is_entity_id(42)
