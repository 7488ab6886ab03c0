"""
Convert an assembled structure to an LDraw (.ldr) model file.

LDraw is the plain text format read by LDView, LeoCAD, BrickLink Studio and
friends. Each placed piece becomes a type-1 line:

    1 <color> <x> <y> <z> <a> <b> <c> <d> <e> <f> <g> <h> <i> <part>.dat

LDraw's y axis points down and a part's origin is the top of its body, so a
piece whose bottom face sits at our y is written at -(y + height).
"""

import math
from pathlib import Path

from brickmind.models import AssembledStructure, BuildStep, Piece


AUTHOR = "BrickMind"


def rotation_matrix_y(degrees: float) -> tuple[int, ...]:
    """
    Row-major 3x3 rotation about the vertical axis.

    Only quarter turns are ever written, so the entries are exact integers.
    """
    rad = math.radians(degrees)
    c = round(math.cos(rad))
    s = round(math.sin(rad))
    return (c, 0, s, 0, 1, 0, -s, 0, c)


def _fmt(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:.3f}"


def format_piece_line(piece: Piece) -> str:
    p = piece.position
    ldraw_y = -(p.y + piece.size.h)
    matrix = " ".join(str(v) for v in rotation_matrix_y(piece.rotation))
    return f"1 {piece.color_code} {_fmt(p.x)} {_fmt(ldraw_y)} {_fmt(p.z)} {matrix} {piece.part_id}.dat"


def convert_to_ldr(structure: AssembledStructure, steps: list[BuildStep] | None = None) -> str:
    """
    Render a structure as LDraw text.

    With steps, pieces are written in step order and separated by "0 STEP"
    lines; a piece belongs to the first step listing its part, position and
    rotation. Without steps every piece goes in a single step.
    """
    lines = [
        f"0 {structure.name}",
        f"0 Name: {_file_name(structure.name)}",
        f"0 Author: {AUTHOR}",
        f"0 // {structure.subtitle}" if structure.subtitle else "0 //",
        f"0 // {structure.part_count} pieces, {structure.difficulty}, ~{structure.estimated_time} min",
        "",
    ]

    for i, group in enumerate(_group_by_steps(structure.pieces, steps)):
        if i > 0:
            lines.append("0 STEP")
        lines.extend(format_piece_line(piece) for piece in group)

    lines.append("0 STEP")
    return "\n".join(lines) + "\n"


def _file_name(name: str) -> str:
    return "_".join(name.lower().split()) + ".ldr"


def _group_by_steps(pieces: list[Piece], steps: list[BuildStep] | None) -> list[list[Piece]]:
    if not steps:
        return [list(pieces)]

    remaining = list(pieces)
    groups = []
    for step in steps:
        group = []
        for part in step.parts_added:
            for piece in remaining:
                if (piece.part_id == part.part_id and piece.position == part.position
                        and piece.rotation == part.rotation):
                    group.append(piece)
                    remaining.remove(piece)
                    break
        if group:
            groups.append(group)

    # Anything the steps did not mention still has to be in the model.
    if remaining:
        groups.append(remaining)
    return groups


def save_ldr_file(structure: AssembledStructure, output_path: Path, steps: list[BuildStep] | None = None) -> None:
    """Save a structure as an .ldr file."""
    output_path.write_text(convert_to_ldr(structure, steps))
