"""
Localization Module: signal model, projection, multilateration, strategy.

Key classes:
- SignalModel: RSSI -> distance (log-distance path loss)
- GeodeticProjector: lat/lon <-> local tangent plane at a per-call reference
- Multilaterator: >= 3 anchors + distances -> position (linear least squares)
- EstimationStrategy: registry matching and dispatch (multilateration,
  single-anchor fallback, or failure)
- KnownAnchorRegistry: read-only identifier -> anchor lookup
"""

from .errors import (
    EstimationError,
    InvalidInput,
    InsufficientKnownAnchors,
    InsufficientAnchors,
    DegenerateGeometry,
    NonFiniteSolution,
)
from .signal_model import (
    SignalModel,
    SignalModelConfig,
    rssi_to_distance,
)
from .geodetic_projector import (
    GeodeticProjector,
    GeoCoordinate,
    PlaneCoordinate,
)
from .multilaterator import (
    Multilaterator,
    MultilateratorConfig,
)
from .anchor_registry import (
    KnownAnchorRegistry,
    create_virtual_registry,
)
from .estimation_strategy import (
    EstimationStrategy,
    EstimationConfig,
    create_default_strategy,
    estimate_position,
)

__all__ = [
    # Errors
    'EstimationError',
    'InvalidInput',
    'InsufficientKnownAnchors',
    'InsufficientAnchors',
    'DegenerateGeometry',
    'NonFiniteSolution',
    # Signal model
    'SignalModel',
    'SignalModelConfig',
    'rssi_to_distance',
    # Projection
    'GeodeticProjector',
    'GeoCoordinate',
    'PlaneCoordinate',
    # Multilateration
    'Multilaterator',
    'MultilateratorConfig',
    # Registry
    'KnownAnchorRegistry',
    'create_virtual_registry',
    # Strategy
    'EstimationStrategy',
    'EstimationConfig',
    'create_default_strategy',
    'estimate_position',
]
