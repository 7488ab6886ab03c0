"""
Structure analyzer for summarizing placed pieces.

Extracts bounds, height layers, color and shape breakdowns and the physics
verdict from a piece list. The pipeline prints the summary to the console and
writes it to the run log.
"""

from collections import Counter

from brickmind.models import Piece
from brickmind.tools.physics_validator import validate_physics


def _get_bounds(pieces: list[Piece]) -> dict:
    """Extract X/Y/Z extents from piece bounding boxes."""
    if not pieces:
        return {"x_min": 0, "x_max": 0, "y_min": 0, "y_max": 0, "z_min": 0, "z_max": 0}

    boxes = [p.bounding_box() for p in pieces]
    return {
        "x_min": min(b[0] for b in boxes),
        "x_max": max(b[3] for b in boxes),
        "y_min": min(b[1] for b in boxes),
        "y_max": max(b[4] for b in boxes),
        "z_min": min(b[2] for b in boxes),
        "z_max": max(b[5] for b in boxes),
    }


def _detect_layers(pieces: list[Piece]) -> list[dict]:
    """Count pieces per bottom-face height, lowest first."""
    counts = Counter(p.position.y for p in pieces)
    return [{"y": y, "count": counts[y]} for y in sorted(counts)]


def analyze_structure(pieces: list[Piece]) -> dict:
    """
    Summarize a list of placed pieces.

    Returns a dict with:
    - piece_count
    - bounds: {x_min, x_max, y_min, y_max, z_min, z_max} in LDU
    - layers: [{y, count}, ...]
    - height: top of the tallest piece
    - colors / shapes: most common first, as (name, count) pairs
    - status, warnings: the physics validator's verdict
    """
    bounds = _get_bounds(pieces)
    validation = validate_physics(pieces)

    return {
        "piece_count": len(pieces),
        "bounds": bounds,
        "layers": _detect_layers(pieces),
        "height": bounds["y_max"],
        "colors": Counter(p.color for p in pieces).most_common(),
        "shapes": Counter(p.shape for p in pieces).most_common(),
        "status": validation.status,
        "errors": validation.errors,
        "warnings": validation.warnings,
    }


def format_structure_analysis(analysis: dict) -> str:
    """
    Format a structure analysis as human-readable text.

    Produces output like:
    - 48 pieces, status: legal
    - Bounds: x=[-60, 60], z=[-60, 60], height 104 LDU
    - 5 layers: y=0 (1), y=8 (12), ...
    - Colors: Red x12, Blue x9, ...
    """
    bounds = analysis["bounds"]
    lines = [f"- {analysis['piece_count']} pieces, status: {analysis['status']}"]

    lines.append(
        f"- Bounds: x=[{bounds['x_min']:g}, {bounds['x_max']:g}], "
        f"z=[{bounds['z_min']:g}, {bounds['z_max']:g}], height {analysis['height']:g} LDU"
    )

    layers = analysis["layers"]
    layer_text = ", ".join(f"y={layer['y']} ({layer['count']})" for layer in layers)
    lines.append(f"- {len(layers)} layers: {layer_text}")

    lines.append("- Colors: " + ", ".join(f"{name} x{n}" for name, n in analysis["colors"]))
    lines.append("- Shapes: " + ", ".join(f"{name} x{n}" for name, n in analysis["shapes"]))

    if analysis["warnings"]:
        lines.append(f"- {len(analysis['warnings'])} stability warnings")
    for error in analysis["errors"]:
        lines.append(f"- ERROR: {error}")

    return "\n".join(lines)
