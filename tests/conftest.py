import pytest

from brickmind.tools.geometry import instantiate_spec, place_template
from brickmind.tools.part_catalog import get_color, get_part


@pytest.fixture
def make_piece():
    """Factory for placed pieces: make_piece("3001", "A", x, y, z, rotation)."""
    def _make(part_id, piece_id, x=0, y=0, z=0, rotation=0, color_code=4):
        name, hex_ = get_color(color_code)
        template = instantiate_spec(get_part(part_id), 1, name, hex_, color_code)
        return place_template(template, piece_id, x, y, z, rotation)
    return _make
