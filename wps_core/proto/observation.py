"""
Access-Point Observation Message Schema.

Defines the per-request signal reading of one access point as seen by the
device being located.
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Optional


# Synonymous field names accepted at the transport boundary
IDENTIFIER_FIELDS = ("macAddress", "bssid")
SIGNAL_FIELDS = ("signalStrength", "level")


def normalize_identifier(identifier: str) -> str:
    """Canonical form used for registry lookups (case-insensitive match)."""
    return identifier.strip().lower()


@dataclass(frozen=True)
class Observation:
    """
    Signal reading of one access point.

    Attributes:
        identifier: Opaque anchor key (e.g. BSSID "c2:5b:d8:16:91:fd")
        signal_strength: Received signal strength in dBm (typically negative)

    Notes:
        - Ephemeral, produced per request
        - Identifier comparison is exact after normalize_identifier()
    """

    identifier: str
    signal_strength: int

    def __post_init__(self):
        """Validate observation."""
        if not isinstance(self.identifier, str):
            raise ValueError(f"Identifier must be a string: {self.identifier!r}")

        if isinstance(self.signal_strength, bool) or not isinstance(self.signal_strength, (int, float)):
            raise ValueError(f"Signal strength must be numeric: {self.signal_strength!r}")

        try:
            finite = math.isfinite(self.signal_strength)
        except OverflowError:
            finite = False  # int beyond float range
        if not finite:
            raise ValueError(f"Signal strength must be finite: {self.signal_strength!r}")

    @property
    def normalized_id(self) -> str:
        """Identifier in canonical (lower-case) form."""
        return normalize_identifier(self.identifier)

    @classmethod
    def from_dict(cls, data: Dict) -> 'Observation':
        """
        Parse a wire record, accepting either of the synonymous field names.

        Args:
            data: Dict with signalStrength|level and, usually, macAddress|bssid

        Returns:
            Observation

        Raises:
            ValueError: If the signal is missing or a field has the wrong type
        """
        if not isinstance(data, dict):
            raise ValueError(f"Observation must be an object: {data!r}")

        # Records without an identifier never match the registry and are kept as raw scans
        identifier = _first_present(data, IDENTIFIER_FIELDS)
        if identifier is None:
            identifier = ""

        signal = _first_present(data, SIGNAL_FIELDS)
        if signal is None:
            raise ValueError(f"Observation missing signal ({'/'.join(SIGNAL_FIELDS)})")

        return cls(identifier=identifier, signal_strength=signal)

    def to_dict(self) -> dict:
        """Convert to wire dictionary (normalized identifier)."""
        return {
            'macAddress': self.normalized_id,
            'signalStrength': self.signal_strength,
        }


def parse_observations(records: Optional[List[Dict]]) -> List[Observation]:
    """
    Parse a list of wire records into observations.

    Returns an empty list for None; order of the input is preserved.
    """
    if records is None:
        return []
    if not isinstance(records, list):
        raise ValueError("wifiAccessPoints must be a list")
    return [Observation.from_dict(r) for r in records]


def _first_present(data: Dict, keys) -> Optional[object]:
    for key in keys:
        value = data.get(key)
        if value is not None and value != "":
            return value
    return None
