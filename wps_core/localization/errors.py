"""
Estimation error taxonomy.

Every error is terminal for a single request: the engine is a pure function
of its inputs, so retrying with the same observations gives the same error.
Each class carries the metrics drop reason it is counted under.
"""

from wps_core.proto.position_estimate import EstimationSource


class EstimationError(Exception):
    """Base class for estimation failures."""

    reason = 'estimation_failed'
    source = EstimationSource.INSUFFICIENT


class InvalidInput(EstimationError, ValueError):
    """No observations supplied."""

    reason = 'invalid_input'


class InsufficientKnownAnchors(EstimationError):
    """
    Too few observations matched the registry.

    Raised for 0 or exactly 2 matches. Two range circles generally meet at
    two points, so the 2-anchor case cannot be resolved by this solver.
    """

    reason = 'insufficient_known_anchors'

    def __init__(self, num_known: int):
        super().__init__(f"Not enough known APs: {num_known} matched")
        self.num_known = num_known


class InsufficientAnchors(EstimationError):
    """Multilateration requested with fewer than 3 anchors."""

    reason = 'insufficient_anchors'


class DegenerateGeometry(EstimationError):
    """Anchors are collinear or coincident within tolerance."""

    reason = 'degenerate_geometry'


class NonFiniteSolution(EstimationError):
    """Ranges so large that the solved position is not a finite coordinate."""

    reason = 'non_finite_solution'
