"""
Pydantic models for brick builds.

These models define the catalog entries (piece specs), placed pieces, palettes,
assembled structures and build steps. Used throughout the engine and pipeline.
Coordinates are in LDraw units (LDU) with Y pointing up.
"""

import math
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator


ShapeKind = Literal["brick", "plate", "slope", "tile", "round", "technic", "special"]
HeightClass = Literal["full", "thin"]
Rotation = Literal[0, 90, 180, 270]
ValidationStatus = Literal["legal", "collision", "floating", "unstable"]
Difficulty = Literal["Novice", "Intermediate", "Expert"]

DEFAULT_COLOR_CODE = 4      # Red.


class Connector(BaseModel):
    """A local (x, z) offset on a piece's top or bottom face."""
    x: float
    z: float


class Position(BaseModel):
    """World position of a piece. x/z is the footprint center, y is the bottom face."""
    x: int
    y: int
    z: int


class Size(BaseModel):
    w: int
    h: int
    d: int


class PieceSpec(BaseModel):
    """
    A catalog entry keyed by part identifier.

    Width and depth are in studs. The height class decides whether the piece
    is a full brick or a thin plate-height piece.
    """
    part_id: str
    name: str
    shape: ShapeKind
    width: int
    depth: int
    height: HeightClass = "full"
    aliases: list[str] = Field(default_factory=list)


class PieceTemplate(BaseModel):
    """
    Geometry of a spec instantiated in a color, before placement.

    Has no id, position or rotation; those are assigned at placement time.
    """
    part_id: str
    shape: ShapeKind
    color: str
    color_hex: str
    color_code: int = DEFAULT_COLOR_CODE
    size: Size
    studs_top: list[Connector]
    connects_below: list[Connector]


class Piece(BaseModel):
    """
    A single placed piece.

    Size and connector sets are already in world orientation: a 90 or 270
    degree rotation swaps width and depth. Position is always grid aligned.
    """
    id: str
    part_id: str
    shape: ShapeKind
    color: str
    color_hex: str
    color_code: int = DEFAULT_COLOR_CODE
    position: Position
    size: Size
    rotation: Rotation = 0
    studs_top: list[Connector] = Field(default_factory=list)
    connects_below: list[Connector] = Field(default_factory=list)
    step: int | None = None

    def bounding_box(self) -> tuple[float, float, float, float, float, float]:
        """Return (min_x, min_y, min_z, max_x, max_y, max_z)."""
        p, s = self.position, self.size
        return (
            p.x - s.w / 2, p.y, p.z - s.d / 2,
            p.x + s.w / 2, p.y + s.h, p.z + s.d / 2,
        )

    @property
    def top_y(self) -> int:
        return self.position.y + self.size.h


class PaletteEntry(BaseModel):
    """One (piece spec, color, quantity) tuple of a palette or inventory."""
    id: str
    part_id: str
    name: str
    color: str
    color_hex: str
    color_code: int = DEFAULT_COLOR_CODE
    qty: int
    shape: ShapeKind
    width: int
    depth: int


class AssembledStructure(BaseModel):
    """A complete design variant: the ordered placed pieces plus derived metadata."""
    name: str
    subtitle: str = ""
    part_count: int
    difficulty: Difficulty
    estimated_time: int
    pieces: list[Piece] = Field(default_factory=list)


class CameraAngle(BaseModel):
    rotate_x: float
    rotate_y: float


class StepPart(BaseModel):
    part_id: str
    position: Position
    rotation: int


class BuildStep(BaseModel):
    """A contiguous slice of a structure's pieces with presentation hints."""
    step_num: int
    title: str = ""
    description: str
    parts_added: list[StepPart] = Field(default_factory=list)
    camera_angle: CameraAngle


class BuildResult(BaseModel):
    """Everything one build request produces."""
    prompt: str
    brick_limit: int
    parts_list: list[PaletteEntry]
    steps: list[BuildStep]
    model_options: list[AssembledStructure]


class ValidationResult(BaseModel):
    """
    Outcome of a physics validation pass.

    status is the first failing check (collision, then floating). When
    neither fails, status is "legal", or "unstable" if stability warnings
    were raised.
    """
    status: ValidationStatus
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    colliding_pairs: list[tuple[str, str]] = Field(default_factory=list)
    floating_ids: list[str] = Field(default_factory=list)
    unstable_ids: list[str] = Field(default_factory=list)
    support_ratios: dict[str, float] = Field(default_factory=dict)

    @property
    def is_acceptable(self) -> bool:
        """True when nothing blocks acceptance (stability warnings do not)."""
        return self.status in ("legal", "unstable")


# ============================================================================
# Untrusted external payload
# ============================================================================

class RawPiece(BaseModel):
    """
    A piece as declared by an external generator. Nothing here is trusted.

    Fields are coerced leniently and missing ones fall back to defaults
    (red, rotation 0). The sanitizer fills in a missing step from
    the list index.
    """
    part: str | None = None
    color: int = DEFAULT_COLOR_CODE
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    rotation: float = 0.0
    step: int | None = None

    @model_validator(mode="before")
    @classmethod
    def _flatten(cls, data: Any) -> Any:
        # Generators name things inconsistently; accept the common spellings.
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key in ("partId", "part_id", "part_num", "partNum"):
            if data.get("part") is None and data.get(key) is not None:
                data["part"] = data[key]
        if data.get("part") is not None:
            data["part"] = str(data["part"])

        for key in ("colorCode", "color_code"):
            if data.get("color") is None and data.get(key) is not None:
                data["color"] = data[key]
        color = data.get("color")
        if isinstance(color, float) and math.isfinite(color):
            data["color"] = int(color)
        elif not isinstance(color, int):
            data.pop("color", None)

        position = data.get("position")
        if isinstance(position, dict):
            for axis in ("x", "y", "z"):
                data.setdefault(axis, position.get(axis))
        elif isinstance(position, (list, tuple)) and len(position) == 3:
            for axis, value in zip(("x", "y", "z"), position):
                data.setdefault(axis, value)

        if data.get("rotation") is None and data.get("rotY") is not None:
            data["rotation"] = data["rotY"]

        # A step that is not a whole number counts as missing.
        step = data.get("step")
        if isinstance(step, float) and math.isfinite(step) and step.is_integer():
            data["step"] = int(step)
        elif isinstance(step, bool) or not isinstance(step, (int, type(None))):
            data.pop("step", None)

        for key in ("x", "y", "z", "rotation", "step"):
            if data.get(key) is None:
                data.pop(key, None)
        return data


class RawLayerGuide(BaseModel):
    """Optional per-layer title/description supplied alongside the pieces."""
    layer: int | None = None
    y: float | None = None
    title: str | None = None
    description: str | None = None


class RawBuildPayload(BaseModel):
    """
    The untrusted build description returned by an external generator.

    Individual pieces are kept as plain dicts here; the sanitizer coerces each
    one separately so a single bad entry does not reject the whole payload.
    """
    name: str = "External Build"
    pieces: list[dict[str, Any]]
    layers: list[RawLayerGuide] = Field(default_factory=list)
