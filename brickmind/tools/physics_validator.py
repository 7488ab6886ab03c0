"""
Physics validation for placed pieces (the "Critic").

Runs three checks in priority order: collision, floating, stability. The
first failing check decides the status and later checks are skipped. It runs
locally and holds no state between calls.

Collisions are found with a sort-and-sweep along x instead of testing every
pair, and stud lookups go through a spatial index of top connectors. Both
give the same answers as the brute force scans.
"""

import math
from collections import defaultdict

from brickmind.models import Piece, ValidationResult
from brickmind.tools.grid import CONNECTOR_TOLERANCE, SNAP_Y, STABILITY_THRESHOLD


# Stud index cell size. Larger than the tolerance so a match is always in
# the query cell or one of its neighbors.
_CELL = 5


# ============================================================================
# Box Tests
# ============================================================================

def boxes_overlap(a: Piece, b: Piece) -> bool:
    """Strict interior overlap on all three axes. Shared faces do not count."""
    a_min_x, a_min_y, a_min_z, a_max_x, a_max_y, a_max_z = a.bounding_box()
    b_min_x, b_min_y, b_min_z, b_max_x, b_max_y, b_max_z = b.bounding_box()
    return (
        a_min_x < b_max_x and b_min_x < a_max_x and
        a_min_y < b_max_y and b_min_y < a_max_y and
        a_min_z < b_max_z and b_min_z < a_max_z
    )


def find_collisions(pieces: list[Piece]) -> list[tuple[str, str]]:
    """
    Return every overlapping pair of piece ids.

    Pairs are reported in input order: (earlier piece, later piece), sorted by
    the earlier then the later index.
    """
    order = sorted(range(len(pieces)), key=lambda i: pieces[i].bounding_box()[0])
    active: list[int] = []
    hits: list[tuple[int, int]] = []

    for i in order:
        min_x = pieces[i].bounding_box()[0]
        # Drop boxes that end before this one starts along x.
        active = [j for j in active if pieces[j].bounding_box()[3] > min_x]
        for j in active:
            if boxes_overlap(pieces[i], pieces[j]):
                hits.append((min(i, j), max(i, j)))
        active.append(i)

    hits.sort()
    return [(pieces[i].id, pieces[j].id) for i, j in hits]


# ============================================================================
# Stud Index
# ============================================================================

class StudIndex:
    """
    Top connectors of a set of pieces, bucketed by world (x, z).

    Each entry keeps the owner's id, bottom y and top surface y so a query can
    apply the "strictly lower piece" and surface height rules.
    """

    def __init__(self, pieces: list[Piece] | None = None):
        self._cells: dict[tuple[int, int], list[tuple[float, float, int, int, str]]] = defaultdict(list)
        for piece in pieces or []:
            self.add(piece)

    def add(self, piece: Piece) -> None:
        top = piece.top_y
        for stud in piece.studs_top:
            wx = piece.position.x + stud.x
            wz = piece.position.z + stud.z
            self._cells[self._key(wx, wz)].append((wx, wz, piece.position.y, top, piece.id))

    @staticmethod
    def _key(x: float, z: float) -> tuple[int, int]:
        return (math.floor(x / _CELL), math.floor(z / _CELL))

    def has_support(self, x: float, y: float, z: float, piece_id: str) -> bool:
        """True if a stud of another, lower piece sits under the point (x, y, z)."""
        cx, cz = self._key(x, z)
        for dx in (-1, 0, 1):
            for dz in (-1, 0, 1):
                for sx, sz, owner_y, top, owner in self._cells.get((cx + dx, cz + dz), ()):
                    if owner == piece_id or owner_y >= y:
                        continue
                    if abs(top - y) > CONNECTOR_TOLERANCE:
                        continue
                    if abs(sx - x) < CONNECTOR_TOLERANCE and abs(sz - z) < CONNECTOR_TOLERANCE:
                        return True
        return False


def is_ground_resting(piece: Piece) -> bool:
    """Pieces within one vertical snap of y=0 rest on the baseplate layer."""
    return piece.position.y <= SNAP_Y


def _supported_count(piece: Piece, index: StudIndex) -> int:
    y = piece.position.y
    return sum(
        1 for c in piece.connects_below
        if index.has_support(piece.position.x + c.x, y, piece.position.z + c.z, piece.id)
    )


def support_ratio(piece: Piece, pieces: list[Piece], index: StudIndex | None = None) -> float:
    """
    Fraction of a piece's bottom connectors resting on a stud of a lower piece.

    A piece with no bottom connectors has ratio 0.
    """
    if not piece.connects_below:
        return 0.0
    if index is None:
        index = StudIndex(pieces)
    return _supported_count(piece, index) / len(piece.connects_below)


# ============================================================================
# Validation
# ============================================================================

def validate_physics(pieces: list[Piece]) -> ValidationResult:
    """
    Classify an arrangement as legal, collision, floating or unstable.

    "unstable" means the only findings are low-support warnings; callers
    normally accept it (see ValidationResult.is_acceptable).
    """
    collisions = find_collisions(pieces)
    if collisions:
        return ValidationResult(
            status="collision",
            errors=[f"Collision between {a} and {b}" for a, b in collisions],
            colliding_pairs=collisions,
        )

    index = StudIndex(pieces)
    ratios: dict[str, float] = {}
    floating: list[str] = []

    for piece in pieces:
        if is_ground_resting(piece):
            continue
        total = len(piece.connects_below)
        supported = _supported_count(piece, index) if total else 0
        ratios[piece.id] = supported / total if total else 0.0
        if supported == 0:
            floating.append(piece.id)

    if floating:
        return ValidationResult(
            status="floating",
            errors=[f"Piece {pid} is floating (no connection below)" for pid in floating],
            floating_ids=floating,
            support_ratios=ratios,
        )

    unstable = [pid for pid, ratio in ratios.items() if ratio < STABILITY_THRESHOLD]
    return ValidationResult(
        status="unstable" if unstable else "legal",
        warnings=[f"Piece {pid} may be unstable ({ratios[pid]:.0%} supported)" for pid in unstable],
        unstable_ids=unstable,
        support_ratios=ratios,
    )


def validate_placement(placed: list[Piece], candidate: Piece, index: StudIndex | None = None) -> ValidationResult:
    """
    Validate one new piece against an already acceptable arrangement.

    Gives the same verdict as validate_physics(placed + [candidate]) when
    placed has no collisions or floating pieces: adding a piece cannot take
    support away from the others, so only the candidate needs checking.
    Pass a prebuilt index of placed to skip rebuilding it.
    """
    collisions = [(other.id, candidate.id) for other in placed if boxes_overlap(other, candidate)]
    if collisions:
        return ValidationResult(
            status="collision",
            errors=[f"Collision between {a} and {b}" for a, b in collisions],
            colliding_pairs=collisions,
        )

    if is_ground_resting(candidate):
        return ValidationResult(status="legal")

    ratio = support_ratio(candidate, placed, index if index is not None else StudIndex(placed))
    ratios = {candidate.id: ratio}
    if ratio == 0:
        return ValidationResult(
            status="floating",
            errors=[f"Piece {candidate.id} is floating (no connection below)"],
            floating_ids=[candidate.id],
            support_ratios=ratios,
        )
    if ratio < STABILITY_THRESHOLD:
        return ValidationResult(
            status="unstable",
            warnings=[f"Piece {candidate.id} may be unstable ({ratio:.0%} supported)"],
            unstable_ids=[candidate.id],
            support_ratios=ratios,
        )
    return ValidationResult(status="legal", support_ratios=ratios)
