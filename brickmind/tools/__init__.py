# Engine tools: catalog, geometry, validation, generation and LDraw exchange.

from brickmind.tools.part_catalog import (
    CATALOG_TOOLS,
    execute_tool,
    get_color,
    get_part,
    list_colors,
    list_parts,
    normalize_part_id,
)

from brickmind.tools.geometry import (
    generate_connector_grid,
    instantiate_spec,
    place_template,
)

from brickmind.tools.physics_validator import (
    support_ratio,
    validate_physics,
)

from brickmind.tools.creator import (
    classify_difficulty,
    estimate_build_minutes,
    generate_build,
)

from brickmind.tools.sanitizer import (
    build_from_source,
    sanitize_external_build,
)

from brickmind.tools.ldr_converter import convert_to_ldr, save_ldr_file
from brickmind.tools.ldr_parser import parse_ldr
from brickmind.tools.structure_analyzer import analyze_structure, format_structure_analysis

__all__ = [
    # Catalog
    "CATALOG_TOOLS",
    "execute_tool",
    "get_color",
    "get_part",
    "list_colors",
    "list_parts",
    "normalize_part_id",
    # Geometry
    "generate_connector_grid",
    "instantiate_spec",
    "place_template",
    # Critic
    "support_ratio",
    "validate_physics",
    # Creator
    "classify_difficulty",
    "estimate_build_minutes",
    "generate_build",
    # External layouts
    "build_from_source",
    "sanitize_external_build",
    # LDraw
    "convert_to_ldr",
    "save_ldr_file",
    "parse_ldr",
    # Reporting
    "analyze_structure",
    "format_structure_analysis",
]
