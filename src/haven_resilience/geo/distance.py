# Copyright 2025 msq
from __future__ import annotations

import math

from haven_resilience.errors import RequestValidationError
from haven_resilience.models import Location

KM_PER_DEGREE: float = 111.32
# 极点附近 cos(lat) 趋近 0，经度尺度设下限避免除零
_MIN_LON_SCALE: float = 1e-6


def _lon_scale(latitude: float) -> float:
    return KM_PER_DEGREE * max(math.cos(math.radians(latitude)), _MIN_LON_SCALE)


def _wrap_longitude_delta(delta: float) -> float:
    """经度差归一到 [-180, 180]，跨日界线时取短边。"""
    return (delta + 180.0) % 360.0 - 180.0


def distance(a: Location, b: Location) -> float:
    """平面近似距离（公里），仅适用于区域尺度（<100km）。

    纬度按 111.32km/度，经度按起点纬度的 cos 修正。
    """
    d_lat = (b.latitude - a.latitude) * KM_PER_DEGREE
    d_lon = _wrap_longitude_delta(b.longitude - a.longitude) * _lon_scale(a.latitude)
    return math.sqrt(d_lat * d_lat + d_lon * d_lon)


def offset(origin: Location, bearing_radians: float, distance_km: float, *, address: str | None = None) -> Location:
    """按方位角与距离偏移出一个新点，是 distance() 的逆运算。

    只用于模拟资源撒点，不可用于真实导航。
    """
    lat_offset = (distance_km / KM_PER_DEGREE) * math.cos(bearing_radians)
    lon_offset = (distance_km / _lon_scale(origin.latitude)) * math.sin(bearing_radians)
    latitude = min(90.0, max(-90.0, origin.latitude + lat_offset))
    longitude = origin.longitude + lon_offset
    if longitude > 180.0 or longitude < -180.0:
        longitude = _wrap_longitude_delta(longitude)
    return Location(latitude=latitude, longitude=longitude, address=address)


def degree_distance(a: Location, b: Location) -> float:
    """经纬度空间的欧氏距离（度），1 度约 100km，用于粗粒度就近筛选。"""
    d_lat = b.latitude - a.latitude
    d_lon = _wrap_longitude_delta(b.longitude - a.longitude)
    return math.sqrt(d_lat * d_lat + d_lon * d_lon)


def is_valid_coordinate(latitude: float, longitude: float) -> bool:
    if math.isnan(latitude) or math.isnan(longitude):
        return False
    return -90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0


def validate_coordinates(latitude: float, longitude: float) -> Location:
    """校验坐标范围，合法时返回 Location，否则抛 RequestValidationError。"""
    if not is_valid_coordinate(latitude, longitude):
        raise RequestValidationError("Coordinates out of valid range")
    return Location(latitude=latitude, longitude=longitude)


def parse_coordinates(raw_lat: object, raw_lon: object) -> Location:
    """解析查询参数中的经纬度字符串并校验范围。"""
    try:
        latitude = float(raw_lat)  # type: ignore[arg-type]
        longitude = float(raw_lon)  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        raise RequestValidationError("Invalid latitude or longitude parameters") from None
    if math.isnan(latitude) or math.isnan(longitude):
        raise RequestValidationError("Invalid latitude or longitude parameters")
    return validate_coordinates(latitude, longitude)


def require_numeric_coordinates(latitude: object, longitude: object) -> Location:
    """JSON 请求体中的经纬度必须是数字（不接受字符串或布尔值）。

    超出 float 表示范围的大整数同样视为非法参数。
    """
    for value in (latitude, longitude):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise RequestValidationError("Invalid latitude or longitude parameters")
    try:
        lat = float(latitude)  # type: ignore[arg-type]
        lon = float(longitude)  # type: ignore[arg-type]
    except (ValueError, OverflowError):
        raise RequestValidationError("Invalid latitude or longitude parameters") from None
    return validate_coordinates(lat, lon)
