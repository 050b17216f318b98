"""
Known Anchor and Range Estimate Schemas.

A known anchor is an access point with surveyed coordinates. A range
estimate pairs one with the distance derived from its observed signal.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class KnownAnchor:
    """
    Access point with known geographic position.

    Attributes:
        identifier: Normalized anchor key
        latitude: Latitude (degrees)
        longitude: Longitude (degrees)
    """

    identifier: str
    latitude: float
    longitude: float

    def __post_init__(self):
        """Validate coordinates."""
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"Latitude out of range: {self.latitude}")

        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"Longitude out of range: {self.longitude}")

    def to_dict(self) -> dict:
        return {
            'lat': self.latitude,
            'lng': self.longitude,
        }


@dataclass(frozen=True)
class RangeEstimate:
    """Distance (m) to a known anchor derived from signal strength."""

    anchor: KnownAnchor
    distance_m: float

    def __post_init__(self):
        # rejects NaN as well as negatives
        if not self.distance_m >= 0:
            raise ValueError(f"Distance must be non-negative: {self.distance_m}")
