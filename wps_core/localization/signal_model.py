"""
Log-distance path-loss signal model.

Converts a received signal strength (dBm) into an estimated distance (m):

    d = 10 ** ((P_ref - rssi) / (10 * n))

P_ref is the expected signal strength at 1 m and n the path-loss exponent.
Both are tunable constants. Weak signals are not clamped and can map to
arbitrarily large distances.
"""

import math
from dataclasses import dataclass
from typing import Optional

from wps_core.proto.known_anchor import KnownAnchor, RangeEstimate
from wps_core.proto.observation import Observation

DEFAULT_REFERENCE_POWER_DBM = -40.0
DEFAULT_PATH_LOSS_EXPONENT = 2.5


def rssi_to_distance(
    signal_strength: float,
    reference_power_dbm: float = DEFAULT_REFERENCE_POWER_DBM,
    path_loss_exponent: float = DEFAULT_PATH_LOSS_EXPONENT,
) -> float:
    """
    Convert signal strength to distance.

    Args:
        signal_strength: Received signal strength (dBm)
        reference_power_dbm: Signal strength at 1 m (dBm)
        path_loss_exponent: Environment path-loss exponent

    Returns:
        Estimated distance in meters; math.inf when the signal is too weak
        to represent, 0.0 when it underflows
    """
    exponent = (reference_power_dbm - signal_strength) / (10.0 * path_loss_exponent)
    try:
        return 10.0 ** exponent
    except OverflowError:
        return math.inf


@dataclass(frozen=True)
class SignalModelConfig:
    """
    Configuration for the signal model.

    Attributes:
        reference_power_dbm: Signal strength at 1 m (dBm)
        path_loss_exponent: 2.0 in free space, larger indoors
    """

    reference_power_dbm: float = DEFAULT_REFERENCE_POWER_DBM
    path_loss_exponent: float = DEFAULT_PATH_LOSS_EXPONENT

    def __post_init__(self):
        if self.path_loss_exponent <= 0:
            raise ValueError(f"Path-loss exponent must be positive: {self.path_loss_exponent}")


class SignalModel:
    """Signal strength to distance conversion with fixed parameters."""

    def __init__(self, config: Optional[SignalModelConfig] = None):
        self.config = config or SignalModelConfig()

    def distance(self, signal_strength: float) -> float:
        """Estimated distance (m) for a signal strength (dBm)."""
        return rssi_to_distance(
            signal_strength,
            self.config.reference_power_dbm,
            self.config.path_loss_exponent,
        )

    def range_estimate(self, observation: Observation, anchor: KnownAnchor) -> RangeEstimate:
        """Pair an anchor with the distance implied by its observation."""
        return RangeEstimate(anchor=anchor, distance_m=self.distance(observation.signal_strength))
