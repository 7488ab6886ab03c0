"""
Procedural build generator (the "Creator").

Turns a prompt and a piece budget into a palette, two design variants and a
build step sequence. Each candidate placement is checked by the physics
validator before it is accepted; rejected candidates are redrawn a bounded
number of times and then skipped.

All randomness comes from one random.Random seeded from the prompt and
consumed in a fixed order (palette, compact variant, full variant), so the
same prompt and budget always give the same result.
"""

import random
from dataclasses import dataclass

from brickmind.errors import EmptyPromptError, InvalidBudgetError
from brickmind.models import AssembledStructure, BuildResult, Difficulty, PaletteEntry, Piece
from brickmind.tools.build_steps import generate_batch_steps
from brickmind.tools.geometry import instantiate_spec, place_template
from brickmind.tools.grid import ROTATIONS, SNAP_XZ, UNIT_HEIGHT_FULL, UNIT_HEIGHT_THIN, snap_y
from brickmind.tools.palette import generate_palette
from brickmind.tools.part_catalog import get_part
from brickmind.tools.physics_validator import StudIndex, validate_placement


MAX_RETRIES = 10                        # Candidates drawn per slot.
MAX_FAILURES = MAX_RETRIES * 3          # Skipped slots before layers are cut short.
QUOTA_JITTER = 0.3
COMPACT_SHARE = 0.6


@dataclass(frozen=True)
class VariantProfile:
    """Knobs that distinguish the two design variants."""
    name: str
    subtitle: str
    baseplate_part: str
    grid_range: int
    layer_divisor: int
    min_layers: int
    layer_step: int


COMPACT = VariantProfile(
    name="The Speedster",
    subtitle="Aerodynamic, sleek, lower part count",
    baseplate_part="3031",      # Plate 4x4.
    grid_range=3,
    layer_divisor=10,
    min_layers=4,
    layer_step=UNIT_HEIGHT_THIN,
)

FULL = VariantProfile(
    name="The Tanker",
    subtitle="Heavy armor, complex greebling, maximum parts",
    baseplate_part="3958",      # Plate 6x6.
    grid_range=5,
    layer_divisor=8,
    min_layers=6,
    layer_step=UNIT_HEIGHT_FULL,
)


# ============================================================================
# Helpers
# ============================================================================

def prompt_seed(prompt: str) -> int:
    """Sum of character code points. Identical prompts give identical seeds."""
    return sum(ord(c) for c in prompt)


def classify_difficulty(count: int) -> Difficulty:
    if count < 80:
        return "Novice"
    if count > 150:
        return "Expert"
    return "Intermediate"


def estimate_build_minutes(count: int) -> int:
    return int(count * 0.6)


def _check_request(prompt: str, budget: int) -> None:
    if not prompt or not prompt.strip():
        raise EmptyPromptError("Prompt must not be empty")
    if budget < 1:
        raise InvalidBudgetError(f"Budget must be at least 1, got {budget}")


# ============================================================================
# Placement
# ============================================================================

def create_baseplate(profile: VariantProfile, palette: list[PaletteEntry]) -> Piece:
    """The ground-truth plate at the origin, green if the palette has green."""
    source = next((e for e in palette if "green" in e.color.lower()), palette[0])
    spec = get_part(profile.baseplate_part)
    template = instantiate_spec(spec, 1, source.color, source.color_hex, source.color_code)
    return place_template(template, "B0", 0, 0, 0, 0)


def propose_piece(
    piece_id: str,
    y: int,
    palette: list[PaletteEntry],
    profile: VariantProfile,
    rng: random.Random
) -> Piece:
    """Draw a random palette entry, grid cell and rotation at height y."""
    entry = palette[int(rng.random() * len(palette))]
    spec = get_part(entry.part_id)
    template = instantiate_spec(spec, 1, entry.color, entry.color_hex, entry.color_code)

    half = profile.grid_range // 2
    x = (int(rng.random() * profile.grid_range) - half) * SNAP_XZ
    z = (int(rng.random() * profile.grid_range) - half) * SNAP_XZ
    rotation = ROTATIONS[int(rng.random() * len(ROTATIONS))]

    return place_template(template, piece_id, x, snap_y(y), z, rotation)


def place_pieces(
    target: int,
    palette: list[PaletteEntry],
    profile: VariantProfile,
    rng: random.Random,
    verbose: bool = False
) -> list[Piece]:
    """
    Run the propose/validate/retry loop layer by layer.

    Slots that exhaust their retries are skipped, so the result can hold
    fewer pieces than the target. That is expected, not an error.
    """
    baseplate = create_baseplate(profile, palette)
    pieces = [baseplate]
    index = StudIndex(pieces)
    layers = max(profile.min_layers, target // profile.layer_divisor)
    failures = 0
    current_y = baseplate.size.h

    for layer in range(1, layers):
        if len(pieces) >= target:
            break

        jitter = 1 + (rng.random() * 2 - 1) * QUOTA_JITTER
        quota = min(target - len(pieces), max(3, int(target / layers * jitter)))
        placed_before = len(pieces)

        for _ in range(quota):
            if len(pieces) >= target:
                break

            accepted = None
            for _attempt in range(MAX_RETRIES):
                candidate = propose_piece(f"B{len(pieces)}", current_y, palette, profile, rng)
                if validate_placement(pieces, candidate, index).is_acceptable:
                    accepted = candidate
                    break

            if accepted is not None:
                pieces.append(accepted)
                index.add(accepted)
            else:
                failures += 1
                if failures > MAX_FAILURES:
                    break

        if verbose:
            print(f"[Creator] {profile.name} layer {layer} at y={current_y}: "
                  f"{len(pieces) - placed_before}/{quota} placed, {failures} failures so far")

        current_y += profile.layer_step

    return pieces


def _assemble(name: str, subtitle: str, pieces: list[Piece]) -> AssembledStructure:
    return AssembledStructure(
        name=name,
        subtitle=subtitle,
        part_count=len(pieces),
        difficulty=classify_difficulty(len(pieces)),
        estimated_time=estimate_build_minutes(len(pieces)),
        pieces=pieces,
    )


def generate_structure(
    target: int,
    palette: list[PaletteEntry],
    profile: VariantProfile,
    rng: random.Random,
    verbose: bool = False
) -> AssembledStructure:
    pieces = place_pieces(target, palette, profile, rng, verbose=verbose)
    return _assemble(profile.name, profile.subtitle, pieces)


def cap_piece_count(structure: AssembledStructure, limit: int) -> AssembledStructure:
    """
    Keep the first `limit` pieces of a structure in acceptance order.

    Layers only move up and support always comes from a strictly lower
    piece, so no piece rests on one accepted after it. Any prefix of the
    acceptance order is therefore still free of collisions and floating pieces.
    """
    if structure.part_count <= limit:
        return structure
    return _assemble(structure.name, structure.subtitle, structure.pieces[:limit])


# ============================================================================
# Public API
# ============================================================================

def generate_build(prompt: str, budget: int, verbose: bool = False) -> BuildResult:
    """
    Generate a palette, a compact and a full variant, and build steps.

    Steps are derived from the full variant, and the compact variant is
    trimmed to at most the full variant's piece count. Raises EmptyPromptError or
    InvalidBudgetError on bad input; never raises for placement trouble.
    """
    _check_request(prompt, budget)
    rng = random.Random(prompt_seed(prompt))

    palette = generate_palette(budget, rng)
    if verbose:
        print(f"[Creator] Palette: {len(palette)} entries, {sum(e.qty for e in palette)} parts")

    compact = generate_structure(int(budget * COMPACT_SHARE), palette, COMPACT, rng, verbose=verbose)
    full = generate_structure(budget, palette, FULL, rng, verbose=verbose)

    # The compact variant never carries more pieces than the full one.
    if compact.part_count > full.part_count and verbose:
        print(f"[Creator] Trimming {compact.name} from {compact.part_count} to {full.part_count} pieces")
    compact = cap_piece_count(compact, full.part_count)
    steps = generate_batch_steps(full.pieces)

    if verbose:
        print(f"[Creator] {compact.name}: {compact.part_count} pieces, {full.name}: {full.part_count} pieces")

    return BuildResult(
        prompt=prompt,
        brick_limit=budget,
        parts_list=palette,
        steps=steps,
        model_options=[compact, full],
    )
