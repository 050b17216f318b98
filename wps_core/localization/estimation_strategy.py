"""
Estimation Strategy.

Classifies observations against the known-anchor registry and dispatches:

    >= 3 known  -> multilateration         (source local-trilateration, 30 m)
    exactly 1   -> anchor's own position   (source single-anchor, 500 m)
    0 or 2      -> InsufficientKnownAnchors

Unmatched observations are returned with the result as raw scans so the
caller can log them. The strategy performs no I/O and keeps no state
between calls.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from wps_core.proto.known_anchor import KnownAnchor
from wps_core.proto.observation import Observation
from wps_core.proto.position_estimate import (
    EstimationResult,
    EstimationSource,
    PositionEstimate,
)
from wps_core.localization.anchor_registry import KnownAnchorRegistry
from wps_core.localization.errors import InsufficientKnownAnchors, InvalidInput
from wps_core.localization.multilaterator import Multilaterator, MultilateratorConfig
from wps_core.localization.signal_model import SignalModel, SignalModelConfig
from wps_core.metrics import get_metrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EstimationConfig:
    """
    Configuration for the estimation strategy.

    Attributes:
        signal_config: SignalModel configuration
        solver_config: Multilaterator configuration
        single_anchor_accuracy_m: Accuracy reported for the single-anchor
            fallback (m)
    """

    signal_config: SignalModelConfig = field(default_factory=SignalModelConfig)
    solver_config: MultilateratorConfig = field(default_factory=MultilateratorConfig)
    single_anchor_accuracy_m: float = 500.0


class EstimationStrategy:
    """
    Choose and run an estimation method for a set of observations.

    Usage:
        registry = KnownAnchorRegistry.from_dict(config.KNOWN_AP_REGISTRY)
        strategy = EstimationStrategy(registry)

        result = strategy.estimate(observations)
        print(result.source.value, result.estimate.to_dict())
    """

    def __init__(
        self,
        registry: KnownAnchorRegistry,
        config: Optional[EstimationConfig] = None,
    ):
        """
        Args:
            registry: Known anchors; owned by the caller, never mutated here
            config: Strategy configuration (uses defaults if None)
        """
        self.registry = registry
        self.config = config or EstimationConfig()
        self.signal_model = SignalModel(self.config.signal_config)
        self.solver = Multilaterator(self.config.solver_config)
        self.metrics = get_metrics()

    def partition(
        self,
        observations: Sequence[Observation],
        registry: Optional[KnownAnchorRegistry] = None,
    ) -> Tuple[List[Tuple[Observation, KnownAnchor]], List[Observation]]:
        """
        Split observations into (matched, unmatched), preserving order.

        Args:
            observations: Observations to classify
            registry: Registry to use instead of the bound one

        Returns:
            (list of (observation, anchor), list of unmatched observations)
        """
        registry = registry if registry is not None else self.registry

        known = []
        unknown = []
        for obs in observations:
            anchor = registry.get(obs.identifier)
            if anchor is not None:
                known.append((obs, anchor))
            else:
                unknown.append(obs)
        return known, unknown

    def estimate(
        self,
        observations: Sequence[Observation],
        registry: Optional[KnownAnchorRegistry] = None,
    ) -> EstimationResult:
        """
        Estimate device position.

        Args:
            observations: Observed access points, in scan order
            registry: Registry to use instead of the bound one

        Returns:
            EstimationResult (estimate, source, used anchors, raw scans)

        Raises:
            InvalidInput: No observations
            InsufficientKnownAnchors: 0 or 2 observations matched
            DegenerateGeometry: Matched anchors collinear/coincident
        """
        self.metrics.increment('estimation_attempts')

        if not observations:
            self.metrics.increment_drop(InvalidInput.reason)
            raise InvalidInput("wifiAccessPoints required")

        result = self._dispatch(observations, registry)

        self.metrics.increment('estimation_success')
        logger.debug(f"Estimate via {result.source.value} from {result.num_anchors_used} "
                     f"anchors ({len(result.unmatched)} unmatched)")
        return result

    def _dispatch(
        self,
        observations: Sequence[Observation],
        registry: Optional[KnownAnchorRegistry],
    ) -> EstimationResult:
        known, unknown = self.partition(observations, registry)
        num_known = len(known)
        self.metrics.record_histogram('estimation_known_anchors', num_known)

        if num_known >= self.config.solver_config.min_anchors:
            ranges = [self.signal_model.range_estimate(obs, anchor) for obs, anchor in known]
            for r in ranges:
                self.metrics.record_histogram('signal_distance_m', r.distance_m)

            estimate = self.solver.solve_ranges(ranges)
            return EstimationResult(
                estimate=estimate,
                source=EstimationSource.LOCAL_TRILATERATION,
                used_anchors=known,
                unmatched=unknown,
            )

        if num_known == 1:
            _, anchor = known[0]
            self.metrics.increment('single_anchor_fallbacks')
            return EstimationResult(
                estimate=PositionEstimate(
                    latitude=anchor.latitude,
                    longitude=anchor.longitude,
                    accuracy_m=self.config.single_anchor_accuracy_m,
                ),
                source=EstimationSource.SINGLE_ANCHOR,
                used_anchors=known,
                unmatched=unknown,
            )

        # Two range circles meet in two points; not resolved by this solver
        logger.info(f"Not enough known APs: {num_known} of {len(observations)} matched")
        self.metrics.increment_drop(InsufficientKnownAnchors.reason)
        raise InsufficientKnownAnchors(num_known)


def create_default_strategy(registry: KnownAnchorRegistry) -> EstimationStrategy:
    """
    Create estimation strategy with default configuration.

    Args:
        registry: Known anchors

    Returns:
        Configured EstimationStrategy
    """
    return EstimationStrategy(registry, EstimationConfig())


def estimate_position(
    observations: Sequence[Observation],
    registry: KnownAnchorRegistry,
) -> EstimationResult:
    """One-shot estimation with default configuration."""
    return create_default_strategy(registry).estimate(observations)
