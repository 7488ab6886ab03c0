"""
Part and color catalog lookups.

Static reference data: piece specs keyed by LDraw part number and the LDraw
color table. The Creator draws its palette from here, the sanitizer uses it to
normalize untrusted part identifiers, and the layout agent exposes it to
Claude as tools.
"""

import json
from functools import lru_cache
from pathlib import Path

from brickmind.models import PieceSpec


DEFAULT_PART_ID = "3001"    # Brick 2x4.
FALLBACK_COLOR_HEX = "#808080"

_DATA_DIR = Path(__file__).parent.parent / "data"


# ============================================================================
# Data Loading
# ============================================================================

@lru_cache(maxsize=1)
def load_parts() -> list[PieceSpec]:
    """Load piece specs from JSON. Cached so we only read once."""
    with open(_DATA_DIR / "parts.json") as f:
        raw = json.load(f)
    return [PieceSpec(**item) for item in raw]


@lru_cache(maxsize=1)
def _load_colors() -> dict:
    with open(_DATA_DIR / "colors.json") as f:
        return json.load(f)


def _lookup_key(value: str) -> str:
    """Fold case, separators and file decorations so '3001.dat' == '3001'."""
    key = value.strip().lower().replace("\\", "/")
    key = key.rsplit("/", 1)[-1]
    if key.endswith(".dat"):
        key = key[:-4]
    return " ".join(key.replace("_", " ").split())


@lru_cache(maxsize=1)
def _parts_by_key() -> dict[str, PieceSpec]:
    """Index every spec by part number, display name and aliases."""
    lookup: dict[str, PieceSpec] = {}
    for spec in load_parts():
        for name in [spec.part_id, spec.name, *spec.aliases]:
            lookup.setdefault(_lookup_key(name), spec)
    return lookup


@lru_cache(maxsize=1)
def _colors_by_code() -> dict[int, tuple[str, str]]:
    return {c["code"]: (c["name"], c["hex"]) for c in _load_colors()["ldraw"]}


# ============================================================================
# Lookups
# ============================================================================

def get_part(part_id: str) -> PieceSpec | None:
    """Return the spec for an identifier, or None if it is not in the catalog."""
    if not part_id or not part_id.strip():
        return None
    return _parts_by_key().get(_lookup_key(part_id))


def normalize_part_id(raw: str | None) -> PieceSpec:
    """
    Map an untrusted part identifier onto a known spec.

    Accepts part numbers ("3001", "parts/3001.dat"), names ("Brick 2x4") and
    snake_case aliases ("brick_2x4"). Unknown identifiers fall back to the
    default 2x4 brick instead of failing.
    """
    spec = get_part(raw) if raw else None
    if spec is None:
        spec = get_part(DEFAULT_PART_ID)
    return spec


def get_color(code: int) -> tuple[str, str]:
    """Return (name, hex) for an LDraw color code, with a grey fallback."""
    return _colors_by_code().get(code, (f"Color_{code}", FALLBACK_COLOR_HEX))


def list_parts(shape: str | None = None) -> list[dict]:
    """Return a simplified list of catalog parts, optionally filtered by shape."""
    results = []
    for spec in load_parts():
        if shape and spec.shape != shape.lower():
            continue
        results.append({
            "part_id": spec.part_id,
            "name": spec.name,
            "shape": spec.shape,
            "width": spec.width,
            "depth": spec.depth,
            "height": spec.height,
        })
    return results


def list_colors() -> list[dict]:
    return [{"code": code, "name": name, "hex": hex_} for code, (name, hex_) in _colors_by_code().items()]


def palette_shapes() -> list[PieceSpec]:
    """The specs the Creator may draw from, in a fixed order."""
    return [get_part(part_id) for part_id in _load_colors()["palette_parts"]]


def palette_colors() -> list[dict]:
    """The Creator's colors as dicts with code, name and hex, in a fixed order."""
    return list(_load_colors()["palette"])


# ============================================================================
# Claude Tool Definitions
# ============================================================================

CATALOG_TOOLS = [
    {
        "name": "list_parts",
        "description": "List catalog parts with part_id, name, shape and stud dimensions. Optionally filter by shape.",
        "input_schema": {
            "type": "object",
            "properties": {
                "shape": {
                    "type": "string",
                    "description": "Shape kind: brick, plate, slope, tile, round, technic, special"
                }
            },
            "required": []
        }
    },
    {
        "name": "list_colors",
        "description": "List LDraw color codes with their names and hex values.",
        "input_schema": {
            "type": "object",
            "properties": {},
            "required": []
        }
    },
]


def execute_tool(name: str, args: dict) -> str:
    """
    Execute a catalog tool by name and return JSON result.

    Called by the layout agent when Claude uses a tool.
    """
    if name == "list_parts":
        result = list_parts(args.get("shape"))
    elif name == "list_colors":
        result = list_colors()
    else:
        result = {"error": f"Unknown tool: {name}"}

    return json.dumps(result, indent=2)
