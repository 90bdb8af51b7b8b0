"""平面近似距离与坐标校验。"""

from .distance import (
    KM_PER_DEGREE,
    degree_distance,
    distance,
    is_valid_coordinate,
    offset,
    parse_coordinates,
    require_numeric_coordinates,
    validate_coordinates,
)

__all__ = [
    "KM_PER_DEGREE",
    "degree_distance",
    "distance",
    "is_valid_coordinate",
    "offset",
    "parse_coordinates",
    "require_numeric_coordinates",
    "validate_coordinates",
]
