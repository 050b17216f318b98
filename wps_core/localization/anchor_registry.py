"""
Known access-point registry.

Read-only mapping from normalized identifier to KnownAnchor. The registry is
built once by the caller (from configuration or a JSON file) and handed to
the estimation strategy by reference. Nothing in the engine mutates it, so
concurrent estimations can share one instance without locking.
"""

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Optional, Union

from wps_core.proto.known_anchor import KnownAnchor
from wps_core.proto.observation import normalize_identifier
from wps_core.localization.geodetic_projector import GeodeticProjector

logger = logging.getLogger(__name__)


class KnownAnchorRegistry:
    """
    Immutable identifier -> KnownAnchor lookup.

    Usage:
        registry = KnownAnchorRegistry.from_dict({
            "c2:5b:d8:16:91:fd": {"lat": 10.294033, "lng": 78.764267},
        })
        anchor = registry.get("C2:5B:D8:16:91:FD")
    """

    def __init__(self, anchors: Mapping[str, KnownAnchor]):
        table = {}
        for key, anchor in anchors.items():
            norm = normalize_identifier(key)
            if norm in table:
                raise ValueError(f"Duplicate anchor identifier: {key}")
            table[norm] = anchor
        self._anchors = MappingProxyType(table)

    def get(self, identifier: str) -> Optional[KnownAnchor]:
        """Anchor for identifier (case-insensitive), or None."""
        return self._anchors.get(normalize_identifier(identifier))

    def __contains__(self, identifier: object) -> bool:
        return isinstance(identifier, str) and normalize_identifier(identifier) in self._anchors

    def __len__(self) -> int:
        return len(self._anchors)

    def __iter__(self) -> Iterator[str]:
        return iter(self._anchors)

    @property
    def anchors(self) -> Mapping[str, KnownAnchor]:
        """Read-only view of all anchors."""
        return self._anchors

    @classmethod
    def from_dict(cls, data: Mapping[str, Mapping]) -> 'KnownAnchorRegistry':
        """
        Build registry from {identifier: {"lat": .., "lng"|"lon": ..}}.

        Raises:
            ValueError: If an entry lacks coordinates
        """
        anchors: Dict[str, KnownAnchor] = {}
        for identifier, coords in data.items():
            lat = coords.get("lat")
            lon = coords.get("lng", coords.get("lon"))
            if lat is None or lon is None:
                raise ValueError(f"Anchor {identifier} missing lat/lng")
            norm = normalize_identifier(identifier)
            anchors[identifier] = KnownAnchor(
                identifier=norm,
                latitude=float(lat),
                longitude=float(lon),
            )
        return cls(anchors)

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> 'KnownAnchorRegistry':
        """Load registry from a JSON file in the from_dict layout."""
        path = Path(path)
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise ValueError(f"Registry file {path} must contain a JSON object")

        registry = cls.from_dict(data)
        logger.info(f"Loaded {len(registry)} known anchors from {path}")
        return registry


def create_virtual_registry(config: Dict) -> KnownAnchorRegistry:
    """
    Build a registry from a base coordinate and east/north offsets.

    Args:
        config: {"base_lat", "base_lon", "anchors": {id: {"e": m, "n": m}}}

    Returns:
        KnownAnchorRegistry
    """
    projector = GeodeticProjector()
    base = (config["base_lat"], config["base_lon"])

    anchors = {}
    for identifier, enu in config["anchors"].items():
        geo = projector.offset_coordinate(base, enu["e"], enu["n"])
        anchors[identifier] = KnownAnchor(
            identifier=normalize_identifier(identifier),
            latitude=geo.lat,
            longitude=geo.lon,
        )

    return KnownAnchorRegistry(anchors)
