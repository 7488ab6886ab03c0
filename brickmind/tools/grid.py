"""
The LDraw unit (LDU) grid every placement honors.

1 LDU = 0.4mm. A 1x1 brick is 20x24x20 LDU, a plate is 8 LDU tall and studs
sit 20 LDU apart. Positions are always integer multiples of SNAP_XZ
horizontally and SNAP_Y vertically.
"""

import math


UNIT_XZ = 20            # Stud pitch.
UNIT_HEIGHT_FULL = 24   # Brick height.
UNIT_HEIGHT_THIN = 8    # Plate height, a third of a brick.

SNAP_XZ = 20
SNAP_Y = 8

ROTATIONS = (0, 90, 180, 270)


# ============================================================================
# Validator Tuning
# ============================================================================

# Empirical values kept for compatibility with existing builds.
CONNECTOR_TOLERANCE = 2      # LDU, for stud/tube matching in x, y and z.
STABILITY_THRESHOLD = 0.25   # Support ratio below this raises a warning.
TOUCH_EPSILON = 0.5          # LDU gap still counted as face contact.


# ============================================================================
# Snapping
# ============================================================================

def snap_to(value: float, unit: int) -> int:
    """Round to the nearest multiple of unit, halves rounding up."""
    return int(math.floor(value / unit + 0.5)) * unit


def snap_xz(value: float) -> int:
    return snap_to(value, SNAP_XZ)


def snap_y(value: float) -> int:
    return snap_to(value, SNAP_Y)


def snap_rotation(degrees: float) -> int:
    """Snap an arbitrary angle to the nearest 90 degree bucket in [0, 360)."""
    return snap_to(degrees, 90) % 360


def is_grid_aligned(x: float, y: float, z: float) -> bool:
    return x % SNAP_XZ == 0 and z % SNAP_XZ == 0 and y % SNAP_Y == 0
