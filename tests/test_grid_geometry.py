"""Grid snapping and connector geometry."""
import pytest

from brickmind.errors import InvalidDimensionsError
from brickmind.tools.geometry import generate_connector_grid, instantiate_spec, place_template, rotate_piece
from brickmind.tools.grid import is_grid_aligned, snap_rotation, snap_to, snap_xz, snap_y
from brickmind.tools.part_catalog import get_part


def _points(connectors):
    return sorted((c.x, c.z) for c in connectors)


@pytest.mark.parametrize("value, unit, expected", [
    (10, 20, 20),       # Halves round up.
    (-10, 20, 0),
    (29.9, 20, 20),
    (30, 20, 40),
    (12, 8, 16),
    (-30, 24, -24),
])
def test_snap_to_rounds_half_up(value, unit, expected):
    assert snap_to(value, unit) == expected


def test_snap_helpers():
    assert snap_xz(-51) == -60
    assert snap_y(3.9) == 0
    assert snap_y(4) == 8


def test_grid_alignment():
    assert is_grid_aligned(-40, 16, 60)
    assert not is_grid_aligned(10, 0, 0)
    assert not is_grid_aligned(0, 12, 0)


@pytest.mark.parametrize("degrees, expected", [
    (0, 0), (44, 0), (45, 90), (200, 180), (359, 0), (-90, 270), (725, 0),
])
def test_snap_rotation(degrees, expected):
    assert snap_rotation(degrees) == expected


def test_connector_grid_is_centered():
    grid = generate_connector_grid(2, 4)
    assert len(grid) == 8
    assert (grid[0].x, grid[0].z) == (-10, -30)
    assert (grid[-1].x, grid[-1].z) == (10, 30)
    assert sum(c.x for c in grid) == 0
    assert sum(c.z for c in grid) == 0


def test_single_stud_grid():
    assert _points(generate_connector_grid(1, 1)) == [(0, 0)]


@pytest.mark.parametrize("w, d", [(0, 2), (2, 0), (-1, 1)])
def test_connector_grid_rejects_bad_dimensions(w, d):
    with pytest.raises(InvalidDimensionsError):
        generate_connector_grid(w, d)
    with pytest.raises(ValueError):
        generate_connector_grid(w, d)


def test_instantiate_brick():
    template = instantiate_spec(get_part("3001"), 1, "Red", "#B40000")
    assert (template.size.w, template.size.h, template.size.d) == (80, 24, 40)
    assert len(template.studs_top) == 8
    assert _points(template.studs_top) == _points(template.connects_below)


def test_instantiate_plate_uses_thin_height():
    assert instantiate_spec(get_part("3020"), 1, "Red", "#B40000").size.h == 8
    assert instantiate_spec(get_part("3020"), 3, "Red", "#B40000").size.h == 24


def test_tile_has_no_top_studs():
    template = instantiate_spec(get_part("3068"), 1, "Red", "#B40000")
    assert template.studs_top == []
    assert len(template.connects_below) == 4


def test_instantiate_rejects_zero_height():
    with pytest.raises(InvalidDimensionsError):
        instantiate_spec(get_part("3001"), 0, "Red", "#B40000")


def test_quarter_turn_swaps_footprint():
    template = instantiate_spec(get_part("3001"), 1, "Red", "#B40000")
    piece = place_template(template, "A", 20, 24, -40, 90)

    assert (piece.size.w, piece.size.d) == (40, 80)
    assert _points(piece.studs_top) == _points(generate_connector_grid(2, 4))
    assert piece.bounding_box() == (0, 24, -80, 40, 48, 0)


def test_half_turn_keeps_footprint_and_connectors():
    template = instantiate_spec(get_part("3001"), 1, "Red", "#B40000")
    piece = place_template(template, "A", 0, 0, 0, 0)
    turned = rotate_piece(piece, 180)

    assert turned.rotation == 180
    assert turned.size == piece.size
    assert _points(turned.studs_top) == _points(piece.studs_top)


def test_place_rejects_free_rotation():
    template = instantiate_spec(get_part("3001"), 1, "Red", "#B40000")
    with pytest.raises(ValueError):
        place_template(template, "A", 0, 0, 0, 45)
