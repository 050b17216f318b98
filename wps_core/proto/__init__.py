"""
Protocol Module: Message schemas.

- Observation: one access-point signal reading (wire aliases handled here)
- KnownAnchor / RangeEstimate: registry entry and derived distance
- PositionEstimate / EstimationResult: engine output
"""

from .observation import (
    Observation,
    normalize_identifier,
    parse_observations,
)
from .known_anchor import (
    KnownAnchor,
    RangeEstimate,
)
from .position_estimate import (
    PositionEstimate,
    EstimationSource,
    EstimationResult,
)

__all__ = [
    'Observation',
    'normalize_identifier',
    'parse_observations',
    'KnownAnchor',
    'RangeEstimate',
    'PositionEstimate',
    'EstimationSource',
    'EstimationResult',
]
