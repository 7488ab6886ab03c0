"""
Brick geometry: connector grids, spec instantiation and placement.

Pure functions with no state. Connector points are local (x, z) offsets from
the piece's footprint center; the same grid serves as the top studs and the
bottom tubes.
"""

import math

from brickmind.errors import InvalidDimensionsError
from brickmind.models import DEFAULT_COLOR_CODE, Connector, Piece, PieceSpec, PieceTemplate, Position, Size
from brickmind.tools.grid import ROTATIONS, UNIT_HEIGHT_FULL, UNIT_HEIGHT_THIN, UNIT_XZ


def generate_connector_grid(width_studs: int, depth_studs: int) -> list[Connector]:
    """
    Return width x depth points centered on the local origin, UNIT_XZ apart.

    Point (i, j) is ((i - (w-1)/2) * UNIT_XZ, (j - (d-1)/2) * UNIT_XZ), ordered
    by i then j.
    """
    if width_studs <= 0 or depth_studs <= 0:
        raise InvalidDimensionsError(f"Stud dimensions must be positive, got {width_studs}x{depth_studs}")

    return [
        Connector(
            x=(i - (width_studs - 1) / 2) * UNIT_XZ,
            z=(j - (depth_studs - 1) / 2) * UNIT_XZ,
        )
        for i in range(width_studs)
        for j in range(depth_studs)
    ]


def instantiate_spec(
    spec: PieceSpec,
    height_multiplier: int,
    color: str,
    color_hex: str,
    color_code: int = DEFAULT_COLOR_CODE
) -> PieceTemplate:
    """
    Build the unplaced geometry of a spec in a given color.

    Tiles have a smooth top, so they expose no studs; every piece has tubes
    below.
    """
    if height_multiplier <= 0:
        raise InvalidDimensionsError(f"Height multiplier must be positive, got {height_multiplier}")

    unit_height = UNIT_HEIGHT_THIN if spec.height == "thin" else UNIT_HEIGHT_FULL
    grid = generate_connector_grid(spec.width, spec.depth)

    return PieceTemplate(
        part_id=spec.part_id,
        shape=spec.shape,
        color=color,
        color_hex=color_hex,
        color_code=color_code,
        size=Size(
            w=spec.width * UNIT_XZ,
            h=unit_height * height_multiplier,
            d=spec.depth * UNIT_XZ,
        ),
        studs_top=[] if spec.shape == "tile" else grid,
        connects_below=list(grid),
    )


def rotate_connector(point: Connector, degrees: int) -> Connector:
    """Rotate a local point about the vertical axis by a multiple of 90 degrees."""
    rad = math.radians(degrees)
    cos_r = round(math.cos(rad))
    sin_r = round(math.sin(rad))
    return Connector(
        x=point.x * cos_r - point.z * sin_r,
        z=point.x * sin_r + point.z * cos_r,
    )


def rotated_size(size: Size, degrees: int) -> Size:
    """Quarter turns swap the footprint; half turns leave it unchanged."""
    if degrees % 180 == 90:
        return Size(w=size.d, h=size.h, d=size.w)
    return size.model_copy()


def place_template(
    template: PieceTemplate,
    piece_id: str,
    x: int,
    y: int,
    z: int,
    rotation: int = 0
) -> Piece:
    """Create a placed piece with its footprint and connectors in world orientation."""
    if rotation not in ROTATIONS:
        raise ValueError(f"Rotation must be one of {ROTATIONS}, got {rotation}")

    return Piece(
        id=piece_id,
        part_id=template.part_id,
        shape=template.shape,
        color=template.color,
        color_hex=template.color_hex,
        color_code=template.color_code,
        position=Position(x=x, y=y, z=z),
        size=rotated_size(template.size, rotation),
        rotation=rotation,
        studs_top=[rotate_connector(p, rotation) for p in template.studs_top],
        connects_below=[rotate_connector(p, rotation) for p in template.connects_below],
    )


def rotate_piece(piece: Piece, degrees: int) -> Piece:
    """Return a copy of a placed piece turned in place by a multiple of 90 degrees."""
    new_rotation = (piece.rotation + degrees) % 360
    return piece.model_copy(update={
        "rotation": new_rotation,
        "size": rotated_size(piece.size, degrees),
        "studs_top": [rotate_connector(p, degrees) for p in piece.studs_top],
        "connects_below": [rotate_connector(p, degrees) for p in piece.connects_below],
    })
