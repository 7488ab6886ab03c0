"""Repair of untrusted external layouts."""
import json
import random

import pytest

from brickmind.errors import EmptyPromptError, NoValidPiecesError, PayloadFormatError, UpstreamError
from brickmind.tools.grid import is_grid_aligned
from brickmind.tools.physics_validator import validate_physics
from brickmind.tools.sanitizer import (
    build_from_source,
    parse_payload,
    pieces_touch,
    sanitize_external_build,
    usable_pieces,
)


def _piece(part="3001", x=0, y=0, z=0, **extra):
    return {"part": part, "color": 4, "x": x, "y": y, "z": z, **extra}


def _messy_payload(n=40, seed=7):
    rng = random.Random(seed)
    parts = ["3001", "3003", "3004", "3020", "3022", "3068", "3039", "brick_1x1", "3062b", "mystery"]
    return {
        "name": "Messy",
        "pieces": [
            {
                "partId": rng.choice(parts),
                "colorCode": rng.choice([0, 1, 4, 14, 999]),
                "position": {"x": rng.uniform(-90, 90), "y": rng.uniform(-10, 120), "z": rng.uniform(-90, 90)},
                "rotation": rng.uniform(0, 360),
            }
            for _ in range(n)
        ],
    }


def _assert_grid_aligned(pieces):
    for piece in pieces:
        p = piece.position
        assert is_grid_aligned(p.x, p.y, p.z)


def test_overlapping_pieces_are_moved_apart():
    result = sanitize_external_build({"pieces": [_piece(), _piece(), _piece()]}, 200)
    pieces = result.model_options[0].pieces

    assert len(pieces) == 3
    assert validate_physics(pieces).status in ("legal", "unstable")
    # The first collision is solved on the nearest ring that leaves the pieces touching.
    assert (pieces[1].position.x, pieces[1].position.y, pieces[1].position.z) == (0, 0, -40)
    assert pieces_touch(pieces[0], pieces[1])


def test_disconnected_piece_is_pulled_next_to_the_structure():
    raw = {"pieces": [_piece(), _piece(x=400, y=100, z=400)]}
    pieces = sanitize_external_build(raw, 200).model_options[0].pieces

    moved = pieces[1]
    assert (moved.position.x, moved.position.y, moved.position.z) == (80, 0, 0)
    assert pieces_touch(pieces[0], moved)


def test_first_piece_is_pinned_to_ground():
    pieces = sanitize_external_build({"pieces": [_piece(y=72)]}, 10).model_options[0].pieces
    assert pieces[0].position.y == 0


def test_pieces_are_processed_bottom_up():
    raw = {"pieces": [_piece(y=48, z=200, step=1), _piece(y=0, step=2)]}
    pieces = sanitize_external_build(raw, 10).model_options[0].pieces
    assert [p.step for p in pieces] == [2, 1]


def test_declared_stack_survives_repair():
    raw = {"pieces": [_piece(y=0), _piece(y=24.4), _piece(y=47)]}
    pieces = sanitize_external_build(raw, 10).model_options[0].pieces
    assert [p.position.y for p in pieces] == [0, 24, 48]
    assert validate_physics(pieces).status == "legal"


def test_messy_payload_comes_out_legal():
    result = sanitize_external_build(_messy_payload(), 200)
    for structure in result.model_options:
        assert len(structure.pieces) == 40
        _assert_grid_aligned(structure.pieces)
        assert validate_physics(structure.pieces).status in ("legal", "unstable")


def test_sanitizer_is_deterministic():
    first = sanitize_external_build(_messy_payload(), 200)
    second = sanitize_external_build(_messy_payload(), 200)
    assert first.model_dump() == second.model_dump()


def test_rotated_variant_turns_every_piece():
    result = sanitize_external_build(_messy_payload(n=15, seed=3), 200)
    original, rotated = result.model_options

    assert [p.position for p in rotated.pieces] == [p.position for p in original.pieces]
    assert [p.rotation for p in rotated.pieces] == [(p.rotation + 180) % 360 for p in original.pieces]
    assert validate_physics(rotated.pieces).status in ("legal", "unstable")


def test_count_limit_caps_pieces():
    raw = {"pieces": [_piece(x=i * 80) for i in range(10)]}
    result = sanitize_external_build(raw, 3)
    assert result.model_options[0].part_count == 3
    assert result.brick_limit == 3


def test_part_identifiers_are_normalized():
    raw = {"pieces": [
        _piece(part="Brick 2x2"),
        _piece(part="parts/3020.dat", x=200),
        _piece(part="no_such_part", x=400),
    ]}
    pieces = sanitize_external_build(raw, 10).model_options[0].pieces
    assert sorted(p.part_id for p in pieces) == ["3001", "3003", "3020"]


def test_missing_fields_fall_back_to_defaults():
    payload = parse_payload({"pieces": [{"part": "3001"}, {"part": "3003", "step": 9}]})
    raw = usable_pieces(payload, 10)
    assert raw[0].color == 4
    assert raw[0].rotation == 0
    assert [p.step for p in raw] == [1, 9]


def test_malformed_step_falls_back_to_position():
    payload = parse_payload({"pieces": [
        {"part": "3001", "step": 2.5},
        {"part": "3003", "step": "soon"},
        {"part": "3004", "step": 4.0},
        {"part": "3020", "step": True},
    ]})
    raw = usable_pieces(payload, 10)
    assert [p.part for p in raw] == ["3001", "3003", "3004", "3020"]
    assert [p.step for p in raw] == [1, 2, 4, 4]


def test_unknown_color_gets_fallback_name():
    pieces = sanitize_external_build({"pieces": [_piece(color=9999)]}, 10).model_options[0].pieces
    assert pieces[0].color == "Color_9999"
    assert pieces[0].color_hex == "#808080"


def test_inventory_groups_and_sorts():
    raw = {"pieces": [
        _piece(part="3003", x=0),
        _piece(part="3001", x=100),
        _piece(part="3001", x=200),
        _piece(part="3001", x=300, color=1),
    ]}
    inventory = sanitize_external_build(raw, 10).parts_list
    assert [(e.part_id, e.color_code, e.qty) for e in inventory] == [
        ("3001", 4, 2),
        ("3001", 1, 1),
        ("3003", 4, 1),
    ]


def test_layer_steps_use_defaults():
    raw = {"pieces": [_piece(y=0), _piece(y=24), _piece(y=48)]}
    steps = sanitize_external_build(raw, 10).steps
    assert [s.title for s in steps] == ["Base/Chassis (y=0)", "Walls/Structure (y=24)", "Roof/Details (y=48)"]


def test_layer_steps_use_supplied_guidance():
    raw = {
        "pieces": [_piece(y=0), _piece(y=24)],
        "layers": [{"layer": 2, "title": "Cockpit", "description": "Add the cockpit"}],
    }
    steps = sanitize_external_build(raw, 10).steps
    assert steps[0].title == "Base/Chassis (y=0)"
    assert steps[1].title == "Cockpit"
    assert steps[1].description == "Add the cockpit"


def test_json_text_and_bare_lists_are_accepted():
    text = json.dumps({"bricks": [_piece()]})
    assert sanitize_external_build(text, 10).model_options[0].part_count == 1
    assert sanitize_external_build([_piece()], 10).model_options[0].part_count == 1


@pytest.mark.parametrize("raw", ["not json", '{"name": "x"}', 42, {"pieces": "nope"}])
def test_malformed_payload_is_rejected(raw):
    with pytest.raises(PayloadFormatError):
        sanitize_external_build(raw, 10)


@pytest.mark.parametrize("raw", [
    {"pieces": []},
    {"pieces": [{"color": 4, "x": 0}]},
    {"pieces": [{"part": "   "}]},
    {"pieces": [{"part": "3001", "x": float("nan")}]},
])
def test_no_valid_pieces_is_rejected(raw):
    with pytest.raises(NoValidPiecesError):
        sanitize_external_build(raw, 200)


@pytest.mark.parametrize("prompt", ["", "   "])
def test_empty_prompt_rejected_before_source_is_called(prompt):
    calls = []

    def source(p):
        calls.append(p)
        return {"pieces": [_piece()]}

    with pytest.raises(EmptyPromptError):
        build_from_source(prompt, 200, source)
    assert calls == []


def test_source_failure_becomes_upstream_error():
    def source(prompt):
        raise ConnectionError("timeout")

    with pytest.raises(UpstreamError):
        build_from_source("Race car", 50, source)


def test_build_from_source_passes_prompt_through():
    result = build_from_source("Race car", 50, lambda p: {"name": p, "pieces": [_piece()]})
    assert result.prompt == "Race car"
    assert result.model_options[0].name == "Race car"
