"""Catalog lookups and the Claude tool wrapper."""
import json

import pytest

from brickmind.tools.part_catalog import (
    execute_tool,
    get_color,
    get_part,
    list_parts,
    normalize_part_id,
    palette_colors,
    palette_shapes,
)


@pytest.mark.parametrize("raw, expected", [
    ("3001", "3001"),
    ("3001.dat", "3001"),
    ("parts/3001.dat", "3001"),
    ("  3003 ", "3003"),
    ("Brick 2x4", "3001"),
    ("brick_2x4", "3001"),
    ("PLATE_2X2", "3022"),
    ("3062b", "3062"),
])
def test_normalize_known_identifiers(raw, expected):
    assert normalize_part_id(raw).part_id == expected


@pytest.mark.parametrize("raw", [None, "", "   ", "99999", "flux capacitor"])
def test_unknown_identifiers_fall_back_to_brick(raw):
    assert normalize_part_id(raw).part_id == "3001"


def test_get_part_returns_none_for_unknown():
    assert get_part("99999") is None


def test_colors():
    assert get_color(4)[0] == "Red"
    assert get_color(12345) == ("Color_12345", "#808080")


def test_creator_catalog_sizes():
    assert len(palette_shapes()) == 7
    assert len(palette_colors()) == 12
    assert all(spec is not None for spec in palette_shapes())


def test_list_parts_filters_by_shape():
    tiles = list_parts("tile")
    assert tiles
    assert all(p["shape"] == "tile" for p in tiles)


def test_execute_tool():
    plates = json.loads(execute_tool("list_parts", {"shape": "plate"}))
    assert any(p["part_id"] == "3020" for p in plates)
    colors = json.loads(execute_tool("list_colors", {}))
    assert {"code": 4, "name": "Red"}.items() <= next(c for c in colors if c["code"] == 4).items()
    assert "error" in json.loads(execute_tool("teleport", {}))
