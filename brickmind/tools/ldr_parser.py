"""
LDraw Parser - Read .ldr model files back into an external build payload.

Only type-1 (sub-file reference) lines and "0 STEP" meta lines matter here:

0 Model Name
0 Name: model.ldr
1 <color> <x> <y> <z> <a> <b> <c> <d> <e> <f> <g> <h> <i> <part>.dat
0 STEP

The result is untrusted in the same way a generator's output is, so it goes
through the sanitizer like any other external layout.
"""

import math
from pathlib import Path

from brickmind.models import RawBuildPayload
from brickmind.tools.grid import UNIT_HEIGHT_FULL, UNIT_HEIGHT_THIN
from brickmind.tools.part_catalog import get_part


def matrix_to_rotation_y(a: float, c: float) -> float:
    """
    Recover the vertical-axis rotation in degrees from matrix entries a and c.

    For a pure Y rotation, a = cos(theta) and c = sin(theta). Result is in
    [0, 360).
    """
    return math.degrees(math.atan2(c, a)) % 360


def _part_height(part: str) -> int:
    spec = get_part(part)
    if spec is None:
        return UNIT_HEIGHT_FULL
    return UNIT_HEIGHT_THIN if spec.height == "thin" else UNIT_HEIGHT_FULL


def parse_piece_line(line: str, step: int) -> dict | None:
    """
    Parse a type-1 line into a raw piece dict.

    Returns None if the line is malformed.
    """
    parts = line.split()
    if len(parts) < 15 or parts[0] != "1":
        return None

    try:
        color = int(parts[1])
        x, ldraw_y, z = float(parts[2]), float(parts[3]), float(parts[4])
        a = float(parts[5])
        c = float(parts[7])
    except ValueError:
        return None

    # The file name may contain spaces.
    part = " ".join(parts[14:])
    return {
        "part": part,
        "color": color,
        "x": x,
        "y": -ldraw_y - _part_height(part),
        "z": z,
        "rotation": matrix_to_rotation_y(a, c),
        "step": step,
    }


def parse_ldr(path: str | Path) -> RawBuildPayload:
    """
    Parse an .ldr file into a RawBuildPayload.

    Args:
        path: Path to the .ldr file

    Returns:
        RawBuildPayload named after the file's title line
    """
    path = Path(path)

    name = path.stem
    title_seen = False
    step = 1
    pieces: list[dict] = []

    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue

            if line.startswith("0"):
                meta = line[1:].strip()
                if meta == "STEP":
                    if pieces and pieces[-1]["step"] == step:
                        step += 1
                elif not title_seen and meta and not meta.startswith(("Name:", "Author:", "//", "!", "BFC")):
                    name = meta
                    title_seen = True
            elif line.startswith("1"):
                piece = parse_piece_line(line, step)
                if piece:
                    pieces.append(piece)

    return RawBuildPayload(name=name, pieces=pieces)
