"""
Build step sequences for guided assembly.

Two groupings exist: fixed-size batches for Creator output, and one step per
height layer for repaired external builds. Steps are presentation data only.
"""

import math
from itertools import groupby

from brickmind.models import BuildStep, CameraAngle, Piece, RawLayerGuide, StepPart


MIN_STEPS = 6
MAX_STEPS = 20
PIECES_PER_STEP_HINT = 8


def camera_for_step(index: int) -> CameraAngle:
    """Camera slowly tilts and orbits as the build progresses."""
    return CameraAngle(rotate_x=-25 + index * 2, rotate_y=index * 30)


def _step_parts(pieces: list[Piece]) -> list[StepPart]:
    return [StepPart(part_id=p.part_id, position=p.position, rotation=p.rotation) for p in pieces]


def step_count_for(piece_count: int) -> int:
    return max(MIN_STEPS, min(MAX_STEPS, piece_count // PIECES_PER_STEP_HINT))


def generate_batch_steps(pieces: list[Piece]) -> list[BuildStep]:
    """
    Split pieces into 6-20 contiguous batches of ceil(n / step_count).

    Always returns exactly step_count steps. With few pieces the trailing
    batches can be empty.
    """
    count = step_count_for(len(pieces))
    per_step = math.ceil(len(pieces) / count) if pieces else 0

    steps = []
    for s in range(count):
        batch = pieces[s * per_step:(s + 1) * per_step]
        if s == 0:
            title, description = "Foundation", "Build the foundation baseplate"
        elif s == count - 1:
            title, description = "Finishing", "Add final details and finishing touches"
        else:
            title, description = f"Layer {s + 1}", f"Assemble layer {s + 1} - {len(batch)} bricks"

        steps.append(BuildStep(
            step_num=s + 1,
            title=title,
            description=description,
            parts_added=_step_parts(batch),
            camera_angle=camera_for_step(s),
        ))
    return steps


def _default_layer_text(index: int, total: int, y: int, count: int) -> tuple[str, str]:
    if index == 0:
        title = "Base/Chassis"
    elif index == total - 1:
        title = "Roof/Details"
    else:
        title = "Walls/Structure"
    return f"{title} (y={y})", f"Place {count} pieces at height {y}"


def _guide_for(layer_index: int, y: int, guides: list[RawLayerGuide]) -> RawLayerGuide | None:
    """A guide matches by explicit layer number (1-based), then by height."""
    for guide in guides:
        if guide.layer is not None and guide.layer == layer_index + 1:
            return guide
    for guide in guides:
        if guide.y is not None and abs(guide.y - y) < 1:
            return guide
    return None


def generate_layer_steps(pieces: list[Piece], guides: list[RawLayerGuide] | None = None) -> list[BuildStep]:
    """One step per distinct final y, lowest first, using supplied guidance when present."""
    guides = guides or []
    ordered = sorted(pieces, key=lambda p: p.position.y)
    layers = [(y, list(group)) for y, group in groupby(ordered, key=lambda p: p.position.y)]

    steps = []
    for i, (y, layer) in enumerate(layers):
        title, description = _default_layer_text(i, len(layers), y, len(layer))
        guide = _guide_for(i, y, guides)
        if guide is not None:
            title = guide.title or title
            description = guide.description or description

        steps.append(BuildStep(
            step_num=i + 1,
            title=title,
            description=description,
            parts_added=_step_parts(layer),
            camera_angle=camera_for_step(i),
        ))
    return steps
