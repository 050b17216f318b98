"""
Multilaterator (linear least-squares 2D position from ranges).

Given n >= 3 anchors and distance estimates, the first anchor serves as
both the origin of the local plane and the subtractive reference that
removes the quadratic term shared by every range equation. Each remaining
anchor i contributes one row:

    2(xi - x0) X + 2(yi - y0) Y = d0^2 - di^2 + xi^2 - x0^2 + yi^2 - y0^2

The stacked system A [X, Y]^T = b (n-1 rows) is solved through the normal
equations (A^T A) [X, Y]^T = A^T b. A^T A is 2x2 and symmetric, so it is
inverted in closed form from its determinant.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from wps_core.proto.known_anchor import KnownAnchor, RangeEstimate
from wps_core.proto.position_estimate import PositionEstimate
from wps_core.localization.errors import (
    DegenerateGeometry,
    InsufficientAnchors,
    NonFiniteSolution,
)
from wps_core.localization.geodetic_projector import GeodeticProjector, PlaneCoordinate
from wps_core.metrics import get_metrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MultilateratorConfig:
    """
    Configuration for the multilateration solver.

    Attributes:
        min_anchors: Minimum number of anchors to attempt a solve
        accuracy_m: Accuracy reported for every successful solve (m)
        degeneracy_tolerance: Relative determinant threshold. The system is
            rejected when |det| <= tolerance * a00 * a11, i.e. when the
            columns of A are within asin(sqrt(tolerance)) of parallel.
    """

    min_anchors: int = 3
    accuracy_m: float = 30.0
    degeneracy_tolerance: float = 1e-6


class Multilaterator:
    """
    Solve device position from >= 3 anchors and distances.

    Usage:
        solver = Multilaterator()
        estimate = solver.solve(anchors, distances)
        print(estimate.latitude, estimate.longitude)
    """

    def __init__(
        self,
        config: Optional[MultilateratorConfig] = None,
        projector: Optional[GeodeticProjector] = None,
    ):
        self.config = config or MultilateratorConfig()
        self.projector = projector or GeodeticProjector()
        self.metrics = get_metrics()

    def solve(
        self,
        anchors: Sequence[KnownAnchor],
        distances: Sequence[float],
    ) -> PositionEstimate:
        """
        Solve position from anchors and parallel distances.

        Args:
            anchors: Ordered anchors; anchors[0] is the local reference
            distances: Distance (m) to each anchor

        Returns:
            PositionEstimate with the configured accuracy

        Raises:
            InsufficientAnchors: Fewer than min_anchors anchors
            ValueError: anchors and distances differ in length
            DegenerateGeometry: Anchors collinear or coincident
            NonFiniteSolution: Ranges too large for a valid coordinate
        """
        self.metrics.increment('multilateration_attempts')

        if len(anchors) < self.config.min_anchors:
            self.metrics.increment_drop(InsufficientAnchors.reason)
            raise InsufficientAnchors(
                f"Need >= {self.config.min_anchors} anchors, got {len(anchors)}"
            )

        if len(anchors) != len(distances):
            raise ValueError(
                f"{len(anchors)} anchors but {len(distances)} distances"
            )

        reference = anchors[0]
        planar = self.projector.project_all(anchors, reference)

        try:
            x, y = self.solve_planar(planar, distances)
            geo = self.projector.to_geographic(x, y, reference)
            if not -90.0 <= geo.lat <= 90.0 or not math.isfinite(geo.lon):
                raise NonFiniteSolution(
                    f"Solution ({geo.lat}, {geo.lon}) is not a valid coordinate"
                )
        except (DegenerateGeometry, NonFiniteSolution) as e:
            self.metrics.increment_drop(e.reason)
            raise

        self.metrics.increment('multilateration_success')
        logger.debug(f"Multilateration with {len(anchors)} anchors: "
                     f"local=({x:.2f}, {y:.2f}) m -> ({geo.lat:.6f}, {geo.lon:.6f})")

        return PositionEstimate(
            latitude=geo.lat,
            longitude=geo.lon,
            accuracy_m=self.config.accuracy_m,
        )

    def solve_ranges(self, ranges: Sequence[RangeEstimate]) -> PositionEstimate:
        """Solve from RangeEstimate pairs."""
        return self.solve([r.anchor for r in ranges], [r.distance_m for r in ranges])

    def solve_planar(
        self,
        anchors: Sequence[PlaneCoordinate],
        distances: Sequence[float],
    ) -> Tuple[float, float]:
        """
        Least-squares position in the anchors' planar frame.

        Args:
            anchors: Planar anchor positions; anchors[0] is the subtractive
                reference
            distances: Distance (m) to each anchor

        Returns:
            (X, Y) in meters

        Raises:
            DegenerateGeometry: Normal matrix singular within tolerance
            NonFiniteSolution: Ranges too large for finite arithmetic
        """
        A, b = self._build_system(anchors, distances)

        AtA = A.T @ A
        with np.errstate(over='ignore', invalid='ignore'):
            Atb = A.T @ b
        a00, a01 = AtA[0, 0], AtA[0, 1]
        a10, a11 = AtA[1, 0], AtA[1, 1]

        det = a00 * a11 - a01 * a10
        # a00 * a11 >= det >= 0 for a Gram matrix, so this also catches all-zero rows
        if abs(det) <= self.config.degeneracy_tolerance * a00 * a11:
            logger.warning(f"Degenerate anchor geometry (det={det:.3e})")
            raise DegenerateGeometry(
                f"Anchors are collinear or coincident (det={det:.3e})"
            )

        with np.errstate(over='ignore', invalid='ignore'):
            x = (a11 * Atb[0] - a01 * Atb[1]) / det
            y = (a00 * Atb[1] - a10 * Atb[0]) / det

        if not (np.isfinite(x) and np.isfinite(y)):
            raise NonFiniteSolution(f"Ranges overflow the planar solve (x={x}, y={y})")

        return float(x), float(y)

    @staticmethod
    def _build_system(
        anchors: Sequence[PlaneCoordinate],
        distances: Sequence[float],
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Stack the linearized range equations into A (n-1 x 2) and b (n-1)."""
        xs = np.array([a.x for a in anchors], dtype=float)
        ys = np.array([a.y for a in anchors], dtype=float)
        d = np.asarray(distances, dtype=float)

        x0, y0, d0 = xs[0], ys[0], d[0]
        xi, yi, di = xs[1:], ys[1:], d[1:]

        A = np.column_stack((2.0 * (xi - x0), 2.0 * (yi - y0)))
        with np.errstate(over='ignore', invalid='ignore'):
            b = d0 ** 2 - di ** 2 + xi ** 2 - x0 ** 2 + yi ** 2 - y0 ** 2

        return A, b
