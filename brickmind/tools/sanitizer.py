"""
Repair of externally generated builds.

External generators (the layout agent, an imported LDraw file) hand us piece
placements we cannot trust: unknown part names, off-grid coordinates, free
rotation angles, overlapping or disconnected pieces. This module snaps and
repairs them into a grid-aligned, collision-free, supported structure.

No randomness is involved. The same payload always yields the same build.
"""

import json
import math
from typing import Any, Callable

from pydantic import ValidationError

from brickmind.errors import (
    BrickMindError,
    EmptyPromptError,
    InvalidBudgetError,
    NoValidPiecesError,
    PayloadFormatError,
    UpstreamError,
)
from brickmind.models import (
    AssembledStructure,
    BuildResult,
    PaletteEntry,
    Piece,
    RawBuildPayload,
    RawPiece,
)
from brickmind.tools.build_steps import generate_layer_steps
from brickmind.tools.creator import classify_difficulty, estimate_build_minutes
from brickmind.tools.geometry import instantiate_spec, place_template, rotate_piece
from brickmind.tools.grid import SNAP_XZ, TOUCH_EPSILON, UNIT_HEIGHT_FULL, snap_rotation, snap_to, snap_xz
from brickmind.tools.part_catalog import get_color, get_part, normalize_part_id
from brickmind.tools.physics_validator import StudIndex, boxes_overlap, is_ground_resting


RING_MAX_RADIUS = 6

PayloadSource = Callable[[str], Any]


# ============================================================================
# Payload Parsing
# ============================================================================

def parse_payload(raw: Any) -> RawBuildPayload:
    """
    Coerce a dict, JSON text, bare piece list or RawBuildPayload into a payload.

    Raises PayloadFormatError when there is no piece list to work with.
    """
    if isinstance(raw, RawBuildPayload):
        return raw

    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise PayloadFormatError(f"Payload is not valid JSON: {e}") from e

    if isinstance(raw, list):
        raw = {"pieces": raw}
    if not isinstance(raw, dict):
        raise PayloadFormatError(f"Payload must be an object with a piece list, got {type(raw).__name__}")

    # Generators call the list "bricks" or "parts" about as often as "pieces".
    if "pieces" not in raw:
        for key in ("bricks", "parts"):
            if isinstance(raw.get(key), list):
                raw = {**raw, "pieces": raw[key]}
                break

    pieces = raw.get("pieces")
    if not isinstance(pieces, list):
        raise PayloadFormatError("Payload has no piece list")

    try:
        return RawBuildPayload.model_validate({
            **raw,
            "pieces": [p for p in pieces if isinstance(p, dict)],
        })
    except ValidationError as e:
        raise PayloadFormatError(f"Payload failed validation: {e}") from e


def usable_pieces(payload: RawBuildPayload, count_limit: int) -> list[RawPiece]:
    """
    Coerce each raw entry, dropping ones without a part or with bad numbers.

    A missing step defaults to the entry's 1-based index. The result is capped
    at count_limit in declared order.
    """
    usable = []
    for i, entry in enumerate(payload.pieces):
        try:
            piece = RawPiece.model_validate(entry)
        except ValidationError:
            continue
        if not piece.part or not piece.part.strip():
            continue
        if not all(math.isfinite(v) for v in (piece.x, piece.y, piece.z, piece.rotation)):
            continue
        if piece.step is None:
            piece = piece.model_copy(update={"step": i + 1})
        usable.append(piece)
        if len(usable) >= count_limit:
            break
    return usable


# ============================================================================
# Contact Tests
# ============================================================================

def _intervals_overlap(a_min: float, a_max: float, b_min: float, b_max: float) -> bool:
    return a_min < b_max and b_min < a_max


def _intervals_adjacent(a_min: float, a_max: float, b_min: float, b_max: float) -> bool:
    return abs(a_max - b_min) <= TOUCH_EPSILON or abs(b_max - a_min) <= TOUCH_EPSILON


def pieces_touch(a: Piece, b: Piece) -> bool:
    """
    Face contact: adjacent along one axis while overlapping on the other two.

    Weaker than collision, which needs interior overlap on all three axes.
    """
    box_a, box_b = a.bounding_box(), b.bounding_box()
    for axis in range(3):
        others = [k for k in range(3) if k != axis]
        if not _intervals_adjacent(box_a[axis], box_a[axis + 3], box_b[axis], box_b[axis + 3]):
            continue
        if all(_intervals_overlap(box_a[k], box_a[k + 3], box_b[k], box_b[k + 3]) for k in others):
            return True
    return False


def collides_with_any(piece: Piece, placed: list[Piece]) -> bool:
    return any(boxes_overlap(piece, other) for other in placed)


def touches_any(piece: Piece, placed: list[Piece]) -> bool:
    return any(pieces_touch(piece, other) for other in placed)


def is_supported(piece: Piece, placed: list[Piece]) -> bool:
    """The floating rule from the validator, applied to one piece."""
    if is_ground_resting(piece):
        return True
    index = StudIndex(placed)
    return any(
        index.has_support(piece.position.x + c.x, piece.position.y, piece.position.z + c.z, piece.id)
        for c in piece.connects_below
    )


# ============================================================================
# Repair Steps
# ============================================================================

def _moved(piece: Piece, x: int, y: int, z: int) -> Piece:
    position = piece.position.model_copy(update={"x": x, "y": y, "z": z})
    return piece.model_copy(update={"position": position})


def _ring_offsets(radius: int) -> list[tuple[int, int]]:
    """Grid cells on the square ring at a radius, nearest first."""
    cells = [
        (dx, dz)
        for dx in range(-radius, radius + 1)
        for dz in range(-radius, radius + 1)
        if max(abs(dx), abs(dz)) == radius
    ]
    return sorted(cells, key=lambda c: (c[0] * c[0] + c[1] * c[1], c[0], c[1]))


def ring_search(piece: Piece, placed: list[Piece], max_radius: int = RING_MAX_RADIUS) -> Piece | None:
    """
    Nearest non-colliding cell at the same height that touches the structure.

    Searches square rings of radius 1..max_radius. Returns None when nothing
    qualifies.
    """
    p = piece.position
    for radius in range(1, max_radius + 1):
        for dx, dz in _ring_offsets(radius):
            moved = _moved(piece, p.x + dx * SNAP_XZ, p.y, p.z + dz * SNAP_XZ)
            if collides_with_any(moved, placed):
                continue
            if not placed or touches_any(moved, placed):
                return moved
    return None


def stack_above(piece: Piece, anchor: Piece) -> Piece:
    return _moved(piece, anchor.position.x, anchor.top_y, anchor.position.z)


def connect_to(piece: Piece, anchor: Piece, placed: list[Piece]) -> Piece | None:
    """
    Try the side-by-side and on-top slots around the anchor piece.

    Returns the first slot that neither collides nor floats free of contact.
    """
    a, s = anchor, piece.size
    half_x = a.size.w / 2 + s.w / 2
    half_z = a.size.d / 2 + s.d / 2
    slots = [
        (a.position.x + half_x, a.position.y, a.position.z),
        (a.position.x - half_x, a.position.y, a.position.z),
        (a.position.x, a.position.y, a.position.z + half_z),
        (a.position.x, a.position.y, a.position.z - half_z),
        (a.position.x, a.top_y, a.position.z),
    ]
    for x, y, z in slots:
        moved = _moved(piece, snap_xz(x), y, snap_xz(z))
        if not collides_with_any(moved, placed) and touches_any(moved, placed):
            return moved
    return None


def ground_piece(piece: Piece, placed: list[Piece]) -> Piece:
    """
    Drop a piece to the nearest free cell at y=0.

    Rings grow until a free cell is found; beyond the structure's footprint
    every cell is free, so this always terminates. A touching cell is
    preferred within the first ring that has any free cell.
    """
    p = piece.position
    radius = 0
    while True:
        offsets = [(0, 0)] if radius == 0 else _ring_offsets(radius)
        free = []
        for dx, dz in offsets:
            moved = _moved(piece, p.x + dx * SNAP_XZ, 0, p.z + dz * SNAP_XZ)
            if not collides_with_any(moved, placed):
                free.append(moved)
        if free:
            touching = [m for m in free if touches_any(m, placed)]
            return (touching or free)[0]
        radius += 1


def repair_piece(piece: Piece, placed: list[Piece]) -> tuple[Piece, list[str]]:
    """
    Move a snapped piece until it is collision free, connected and supported.

    Returns the repaired piece and the names of the repairs applied.
    """
    if not placed:
        return piece, []

    repairs = []
    anchor = placed[-1]

    if collides_with_any(piece, placed):
        found = ring_search(piece, placed)
        piece = found if found is not None else stack_above(piece, anchor)
        repairs.append("ring" if found is not None else "stack")

    if not touches_any(piece, placed):
        found = connect_to(piece, anchor, placed)
        if found is not None:
            piece = found
            repairs.append("connect")
        else:
            piece = stack_above(piece, anchor)
            repairs.append("stack")
            if collides_with_any(piece, placed):
                found = ring_search(piece, placed)
                if found is not None:
                    piece = found
                    repairs.append("ring")

    if collides_with_any(piece, placed) or not is_supported(piece, placed):
        piece = ground_piece(piece, placed)
        repairs.append("ground")

    return piece, repairs


# ============================================================================
# Assembly
# ============================================================================

def snap_raw_piece(raw: RawPiece, piece_id: str, pin_to_ground: bool = False) -> Piece:
    """Normalize the part and color, then snap position and rotation to the grid."""
    spec = normalize_part_id(raw.part)
    color_name, color_hex = get_color(raw.color)
    template = instantiate_spec(spec, 1, color_name, color_hex, raw.color)

    y = 0 if pin_to_ground else abs(snap_to(raw.y, UNIT_HEIGHT_FULL))
    piece = place_template(
        template, piece_id,
        snap_xz(raw.x), y, snap_xz(raw.z),
        snap_rotation(raw.rotation),
    )
    return piece.model_copy(update={"step": raw.step})


def build_inventory(pieces: list[Piece]) -> list[PaletteEntry]:
    """Group pieces by (part, color), most used first, ties by part id."""
    groups: dict[tuple[str, int], list[Piece]] = {}
    for piece in pieces:
        groups.setdefault((piece.part_id, piece.color_code), []).append(piece)

    ordered = sorted(groups.items(), key=lambda item: (-len(item[1]), item[0][0], item[0][1]))
    inventory = []
    for i, ((part_id, _), group) in enumerate(ordered):
        first = group[0]
        spec = get_part(part_id)
        inventory.append(PaletteEntry(
            id=f"P{i + 1:03d}",
            part_id=part_id,
            name=spec.name if spec else part_id,
            color=first.color,
            color_hex=first.color_hex,
            color_code=first.color_code,
            qty=len(group),
            shape=first.shape,
            width=spec.width if spec else first.size.w // SNAP_XZ,
            depth=spec.depth if spec else first.size.d // SNAP_XZ,
        ))
    return inventory


def rotated_variant(structure: AssembledStructure) -> AssembledStructure:
    """
    The same build with every piece turned 180 degrees in place.

    Footprints are symmetric about their centers, so the boxes do not move and
    no re-validation is needed.
    """
    return structure.model_copy(update={
        "name": f"{structure.name} (Rotated)",
        "subtitle": "Alternate orientation",
        "pieces": [rotate_piece(p, 180) for p in structure.pieces],
    })


def _structure(name: str, pieces: list[Piece]) -> AssembledStructure:
    return AssembledStructure(
        name=name,
        subtitle="Repaired from external layout",
        part_count=len(pieces),
        difficulty=classify_difficulty(len(pieces)),
        estimated_time=estimate_build_minutes(len(pieces)),
        pieces=pieces,
    )


def sanitize_external_build(
    raw: Any,
    count_limit: int,
    prompt: str = "",
    verbose: bool = False
) -> BuildResult:
    """
    Repair an untrusted payload into a legal build.

    Pieces are processed by ascending declared y, ties broken by step. The
    first one is pinned to the ground. Produces the repaired structure, its
    180 degree variant, an inventory and one build step per height layer.

    Raises PayloadFormatError for malformed payloads and NoValidPiecesError
    when no usable piece is left.
    """
    if count_limit < 1:
        raise InvalidBudgetError(f"Count limit must be at least 1, got {count_limit}")

    payload = parse_payload(raw)
    raw_pieces = usable_pieces(payload, count_limit)
    if not raw_pieces:
        raise NoValidPiecesError("No valid pieces in the external build")

    ordered = sorted(raw_pieces, key=lambda p: (p.y, p.step))
    placed: list[Piece] = []
    repaired_count = 0

    for i, raw_piece in enumerate(ordered):
        candidate = snap_raw_piece(raw_piece, f"B{i}", pin_to_ground=(i == 0))
        piece, repairs = repair_piece(candidate, placed)
        if repairs:
            repaired_count += 1
            if verbose:
                p = piece.position
                print(f"[Sanitizer] {piece.id} ({piece.part_id}) {'+'.join(repairs)} -> ({p.x}, {p.y}, {p.z})")
        placed.append(piece)

    if verbose:
        print(f"[Sanitizer] {len(placed)} pieces placed, {repaired_count} repaired, "
              f"{len(payload.pieces) - len(raw_pieces)} dropped")

    structure = _structure(payload.name, placed)
    return BuildResult(
        prompt=prompt,
        brick_limit=count_limit,
        parts_list=build_inventory(placed),
        steps=generate_layer_steps(placed, payload.layers),
        model_options=[structure, rotated_variant(structure)],
    )


def build_from_source(
    prompt: str,
    count_limit: int,
    source: PayloadSource,
    verbose: bool = False
) -> BuildResult:
    """
    Ask an external source for a layout, then repair it.

    The prompt is checked before the source is called. Source failures are
    wrapped in UpstreamError; engine errors pass through unchanged.
    """
    if not prompt or not prompt.strip():
        raise EmptyPromptError("Prompt must not be empty")
    if count_limit < 1:
        raise InvalidBudgetError(f"Count limit must be at least 1, got {count_limit}")

    try:
        raw = source(prompt)
    except BrickMindError:
        raise
    except Exception as e:
        raise UpstreamError(f"External layout source failed: {e}") from e

    return sanitize_external_build(raw, count_limit, prompt=prompt, verbose=verbose)
