"""
Geodetic projection module.

Converts latitude/longitude to a local planar frame (east = X, north = Y,
meters) anchored at a reference point, and back.

Uses an equirectangular tangent-plane approximation on a spherical Earth:

    x = (lon - lon0) * (pi/180) * R * cos(lat0 * pi/180)
    y = (lat - lat0) * (pi/180) * R

Valid for displacements small relative to the Earth radius (sub-kilometer
to a few kilometers). Error grows with distance from the reference and
toward the poles, so callers pick a fresh reference for each computation.
"""

import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple, Union

from wps_core.proto.known_anchor import KnownAnchor


@dataclass(frozen=True)
class GeoCoordinate:
    """Geographic coordinate (degrees)."""
    lat: float
    lon: float


@dataclass(frozen=True)
class PlaneCoordinate:
    """Local planar coordinate relative to a reference point (meters)."""
    x: float  # east
    y: float  # north

    def as_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)


GeoPoint = Union[GeoCoordinate, KnownAnchor, Tuple[float, float]]


def _lat_lon(point: GeoPoint) -> Tuple[float, float]:
    if isinstance(point, GeoCoordinate):
        return point.lat, point.lon
    if isinstance(point, KnownAnchor):
        return point.latitude, point.longitude
    lat, lon = point
    return float(lat), float(lon)


class GeodeticProjector:
    """
    Stateless local tangent-plane projector.

    Usage:
        projector = GeodeticProjector()

        plane = projector.to_planar(point, reference)
        back = projector.to_geographic(plane.x, plane.y, reference)

    Points may be GeoCoordinate, KnownAnchor or (lat, lon) tuples.
    """

    EARTH_RADIUS_M = 6371000.0

    def __init__(self, earth_radius_m: float = EARTH_RADIUS_M):
        self.earth_radius_m = earth_radius_m

    def _scales(self, reference: GeoPoint) -> Tuple[float, float]:
        """Meters per degree of longitude and latitude at the reference."""
        lat0, _ = _lat_lon(reference)
        m_per_deg_lat = math.radians(1.0) * self.earth_radius_m
        m_per_deg_lon = m_per_deg_lat * math.cos(math.radians(lat0))
        return m_per_deg_lon, m_per_deg_lat

    def to_planar(self, point: GeoPoint, reference: GeoPoint) -> PlaneCoordinate:
        """
        Project a geographic point into the plane anchored at reference.

        Args:
            point: Point to project
            reference: Origin of the local frame

        Returns:
            PlaneCoordinate (x east, y north) in meters
        """
        lat, lon = _lat_lon(point)
        lat0, lon0 = _lat_lon(reference)
        m_per_deg_lon, m_per_deg_lat = self._scales(reference)

        return PlaneCoordinate(
            x=(lon - lon0) * m_per_deg_lon,
            y=(lat - lat0) * m_per_deg_lat,
        )

    def to_geographic(self, x: float, y: float, reference: GeoPoint) -> GeoCoordinate:
        """
        Inverse of to_planar for the same reference.

        Raises:
            ValueError: If the reference sits on a pole (no east axis)
        """
        lat0, lon0 = _lat_lon(reference)
        m_per_deg_lon, m_per_deg_lat = self._scales(reference)
        if abs(m_per_deg_lon) < 1e-9:
            raise ValueError(f"Reference latitude {lat0} has no defined east axis")

        return GeoCoordinate(
            lat=lat0 + y / m_per_deg_lat,
            lon=lon0 + x / m_per_deg_lon,
        )

    def project_all(
        self,
        points: Sequence[GeoPoint],
        reference: GeoPoint,
    ) -> List[PlaneCoordinate]:
        """Project several points against one reference."""
        return [self.to_planar(p, reference) for p in points]

    def offset_coordinate(
        self,
        reference: GeoPoint,
        east_m: float,
        north_m: float,
    ) -> GeoCoordinate:
        """Geographic point east_m / north_m meters away from reference."""
        return self.to_geographic(east_m, north_m, reference)
