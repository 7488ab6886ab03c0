"""
Palette generation for the Creator.

A palette is the fixed set of (shape, color, quantity) choices one build
request may draw from. It depends only on the budget and the random stream,
so the same seed always yields the same palette.
"""

import random

from brickmind.models import PaletteEntry
from brickmind.tools.part_catalog import palette_colors, palette_shapes


def palette_part_count(budget: int) -> int:
    """Total quantity a palette carries: clamp(budget, [max(20, 0.8*budget), budget])."""
    return min(budget, max(20, int(budget * 0.8)))


def palette_type_count(part_count: int) -> int:
    """Number of distinct (shape, color) entries, never more than the part count."""
    shapes = len(palette_shapes())
    return min(shapes, max(6, part_count // 4), part_count)


def generate_palette(budget: int, rng: random.Random) -> list[PaletteEntry]:
    """
    Draw unique (shape, color) combinations and split the part count across them.

    Every entry gets at least one piece. The last entry absorbs the remainder,
    so quantities always sum to palette_part_count(budget).
    """
    shapes = palette_shapes()
    colors = palette_colors()
    part_count = palette_part_count(budget)
    unique_types = palette_type_count(part_count)

    entries: list[PaletteEntry] = []
    seen: set[tuple[str, int]] = set()
    remaining = part_count

    for i in range(unique_types):
        # Redraw until we get a combination we have not used yet.
        while True:
            spec = shapes[int(rng.random() * len(shapes))]
            color = colors[int(rng.random() * len(colors))]
            if (spec.part_id, color["code"]) not in seen:
                break
        seen.add((spec.part_id, color["code"]))

        left_after = unique_types - i - 1
        if left_after == 0:
            qty = remaining
        else:
            share = int(rng.random() * (remaining / (unique_types - i)))
            qty = min(max(1, share), remaining - left_after)
        remaining -= qty

        entries.append(PaletteEntry(
            id=f"P{i + 1:03d}",
            part_id=spec.part_id,
            name=spec.name,
            color=color["name"],
            color_hex=color["hex"],
            color_code=color["code"],
            qty=qty,
            shape=spec.shape,
            width=spec.width,
            depth=spec.depth,
        ))

    return entries
