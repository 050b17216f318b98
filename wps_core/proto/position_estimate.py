"""
Position Estimate Output Schema.

Defines the output of the estimation engine: the estimated position, the
strategy that produced it and the anchors it used.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple

from .known_anchor import KnownAnchor
from .observation import Observation


class EstimationSource(Enum):
    """Which strategy produced an estimate."""

    LOCAL_TRILATERATION = "local-trilateration"
    SINGLE_ANCHOR = "single-anchor"
    INSUFFICIENT = "insufficient"


@dataclass(frozen=True)
class PositionEstimate:
    """
    Estimated device position.

    Attributes:
        latitude: Latitude (degrees)
        longitude: Longitude (degrees)
        accuracy_m: Heuristic accuracy radius (m)

    Notes:
        - accuracy_m is a fixed constant chosen per strategy (30 m for
          multilateration, 500 m for the single-anchor fallback). It is not
          derived from residuals and is not a statistical confidence.
    """

    latitude: float
    longitude: float
    accuracy_m: float

    def __post_init__(self):
        """Validate position estimate."""
        if self.accuracy_m <= 0:
            raise ValueError(f"Accuracy must be positive: {self.accuracy_m}")

    @property
    def position(self) -> Tuple[float, float]:
        """(latitude, longitude) in degrees."""
        return (self.latitude, self.longitude)

    def to_dict(self) -> dict:
        """Convert to wire dictionary."""
        return {
            'lat': self.latitude,
            'lng': self.longitude,
            'accuracy': self.accuracy_m,
        }


@dataclass
class EstimationResult:
    """
    Outcome of one estimation request.

    Attributes:
        estimate: Estimated position
        source: Strategy that produced the estimate
        used_anchors: (observation, anchor) pairs that fed the estimate, in
            observation order
        unmatched: Observations with no registry match (raw scans)
    """

    estimate: PositionEstimate
    source: EstimationSource
    used_anchors: List[Tuple[Observation, KnownAnchor]] = field(default_factory=list)
    unmatched: List[Observation] = field(default_factory=list)

    @property
    def num_anchors_used(self) -> int:
        return len(self.used_anchors)

    @property
    def used_observations(self) -> List[Observation]:
        return [obs for obs, _ in self.used_anchors]

    def to_dict(self) -> dict:
        """Convert to the wire response body."""
        return {
            'location': self.estimate.to_dict(),
            'source': self.source.value,
            'usedAPs': [obs.to_dict() for obs in self.used_observations],
        }
