"""
Unit tests for the EstimationStrategy.

Tests cover:
- Dispatch on the number of known anchors (0, 1, 2, >= 3)
- Input validation before any registry access
- Realistic deployment scans
- Result serialization and metrics
"""

import math

import pytest

from wps_core.localization import (
    DegenerateGeometry,
    EstimationConfig,
    EstimationStrategy,
    GeodeticProjector,
    InsufficientKnownAnchors,
    InvalidInput,
    KnownAnchorRegistry,
    MultilateratorConfig,
    NonFiniteSolution,
    estimate_position,
)
from wps_core.metrics import get_metrics
from wps_core.proto import EstimationSource
from tests.conftest import (
    AP_MAIN,
    AP_N,
    AP_NE,
    AP_SE,
    AP_SW,
    DEPLOYMENT_APS,
    make_observations,
    planar_centroid,
    planar_distances,
    point_in_triangle,
    signal_for_distance,
)


class ExplodingRegistry:
    """Registry stand-in that fails on any lookup."""

    def get(self, identifier):
        raise AssertionError(f"registry consulted for {identifier}")


def planar_of(strategy_result, reference):
    estimate = strategy_result.estimate
    return GeodeticProjector().to_planar((estimate.latitude, estimate.longitude), reference)


class TestInputValidation:
    """Empty scans are rejected up front."""

    def test_empty_observations_raise_invalid_input(self):
        strategy = EstimationStrategy(ExplodingRegistry())

        with pytest.raises(InvalidInput):
            strategy.estimate([])

    def test_invalid_input_is_value_error(self, strategy):
        with pytest.raises(ValueError):
            strategy.estimate([])

    def test_invalid_input_counted(self, strategy):
        with pytest.raises(InvalidInput):
            strategy.estimate([])

        assert get_metrics().get_drop_count('invalid_input') == 1


class TestSingleAnchor:
    """Exactly one known anchor returns the anchor position."""

    def test_single_known_anchor(self, strategy):
        observations = make_observations({AP_NE: -60, "00:00:00:00:00:01": -50})

        result = strategy.estimate(observations)

        assert result.source == EstimationSource.SINGLE_ANCHOR
        assert result.estimate.latitude == DEPLOYMENT_APS[AP_NE]["lat"]
        assert result.estimate.longitude == DEPLOYMENT_APS[AP_NE]["lng"]
        assert result.estimate.accuracy_m == 500.0
        assert result.num_anchors_used == 1
        assert [o.identifier for o in result.unmatched] == ["00:00:00:00:00:01"]

    def test_identifier_case_insensitive(self, strategy):
        result = strategy.estimate(make_observations({AP_MAIN.upper(): -70}))

        assert result.source == EstimationSource.SINGLE_ANCHOR
        assert result.estimate.latitude == DEPLOYMENT_APS[AP_MAIN]["lat"]

    def test_signal_strength_irrelevant(self, strategy):
        weak = strategy.estimate(make_observations({AP_SW: -99}))
        strong = strategy.estimate(make_observations({AP_SW: -30}))

        assert weak.estimate == strong.estimate

    def test_custom_fallback_accuracy(self, deployment_registry):
        strategy = EstimationStrategy(
            deployment_registry,
            EstimationConfig(single_anchor_accuracy_m=250.0),
        )

        result = strategy.estimate(make_observations({AP_SW: -70}))

        assert result.estimate.accuracy_m == 250.0

    def test_fallback_counted(self, strategy):
        strategy.estimate(make_observations({AP_SW: -70}))

        assert get_metrics().get_counter('single_anchor_fallbacks') == 1


class TestInsufficientKnownAnchors:
    """Zero or two known anchors cannot be resolved."""

    def test_no_known_anchors(self, strategy):
        observations = make_observations({"aa:bb:cc:dd:ee:01": -50, "aa:bb:cc:dd:ee:02": -60})

        with pytest.raises(InsufficientKnownAnchors) as exc_info:
            strategy.estimate(observations)

        assert exc_info.value.num_known == 0
        assert exc_info.value.source == EstimationSource.INSUFFICIENT

    def test_two_known_anchors(self, strategy):
        observations = make_observations({AP_MAIN: -60, AP_NE: -70, "aa:bb:cc:dd:ee:01": -50})

        with pytest.raises(InsufficientKnownAnchors) as exc_info:
            strategy.estimate(observations)

        assert exc_info.value.num_known == 2

    def test_insufficient_counted(self, strategy):
        with pytest.raises(InsufficientKnownAnchors):
            strategy.estimate(make_observations({AP_MAIN: -60, AP_NE: -70}))

        metrics = get_metrics()
        assert metrics.get_drop_count('insufficient_known_anchors') == 1
        assert metrics.get_counter('estimation_success') == 0


class TestMultilateration:
    """Three or more known anchors go through the solver."""

    def test_deployment_scan_lands_near_centroid(self, strategy, deployment_registry):
        """
        Main, north and south-east APs at -79/-90/-91 dBm model to roughly
        36/100/110 m, which places the device inside their triangle a few
        meters from its centroid.
        """
        observations = make_observations({AP_MAIN: -79, AP_N: -90, AP_SE: -91})
        anchors = [deployment_registry.get(k) for k in (AP_MAIN, AP_N, AP_SE)]

        result = strategy.estimate(observations)

        assert result.source == EstimationSource.LOCAL_TRILATERATION
        assert result.estimate.accuracy_m == 30.0

        plane = planar_of(result, anchors[0])
        centroid = planar_centroid(anchors)
        assert math.hypot(plane.x - centroid[0], plane.y - centroid[1]) < 15.0

        corners = GeodeticProjector().project_all(anchors, anchors[0])
        assert point_in_triangle((plane.x, plane.y), *(c.as_tuple() for c in corners))

    def test_example_triangle_consistent_signals(self, example_anchors, example_registry):
        """Signals modelled from the centroid give an estimate inside ABC."""
        centroid = planar_centroid(example_anchors)
        distances = planar_distances(example_anchors, centroid)
        observations = make_observations({
            a.identifier: signal_for_distance(d) for a, d in zip(example_anchors, distances)
        })

        result = EstimationStrategy(example_registry).estimate(observations)

        plane = planar_of(result, example_anchors[0])
        corners = GeodeticProjector().project_all(example_anchors, example_anchors[0])
        assert point_in_triangle((plane.x, plane.y), *(c.as_tuple() for c in corners))
        assert plane.x == pytest.approx(centroid[0], abs=1e-6)
        assert plane.y == pytest.approx(centroid[1], abs=1e-6)

    def test_all_anchors_with_unknowns(self, strategy):
        readings = {
            AP_MAIN: -62,
            "aa:bb:cc:dd:ee:01": -45,
            AP_NE: -75,
            AP_SW: -71,
            AP_N: -80,
            AP_SE: -84,
            "aa:bb:cc:dd:ee:02": -88,
        }

        result = strategy.estimate(make_observations(readings))

        assert result.source == EstimationSource.LOCAL_TRILATERATION
        assert result.num_anchors_used == 5
        assert [o.identifier for o in result.used_observations] == [AP_MAIN, AP_NE, AP_SW, AP_N, AP_SE]
        assert [o.identifier for o in result.unmatched] == ["aa:bb:cc:dd:ee:01", "aa:bb:cc:dd:ee:02"]
        assert math.isfinite(result.estimate.latitude)
        assert math.isfinite(result.estimate.longitude)

    def test_collinear_registry_raises(self):
        registry = KnownAnchorRegistry.from_dict({
            "ap1": {"lat": 10.2940, "lng": 78.7640},
            "ap2": {"lat": 10.2940, "lng": 78.7645},
            "ap3": {"lat": 10.2940, "lng": 78.7650},
        })

        with pytest.raises(DegenerateGeometry):
            EstimationStrategy(registry).estimate(
                make_observations({"ap1": -60, "ap2": -65, "ap3": -70})
            )

    @pytest.mark.parametrize("signal", [-5000, -8000])
    def test_absurdly_weak_signals_fail_cleanly(self, strategy, signal):
        """Distances too large for float arithmetic fail instead of returning NaN."""
        observations = make_observations({AP_MAIN: signal, AP_N: signal, AP_SE: signal})

        with pytest.raises(NonFiniteSolution):
            strategy.estimate(observations)

        assert get_metrics().get_counter('estimation_success') == 0

    def test_custom_solver_accuracy(self, deployment_registry):
        config = EstimationConfig(solver_config=MultilateratorConfig(accuracy_m=15.0))
        strategy = EstimationStrategy(deployment_registry, config)

        result = strategy.estimate(make_observations({AP_MAIN: -79, AP_N: -90, AP_SE: -91}))

        assert result.estimate.accuracy_m == 15.0

    def test_success_counted(self, strategy):
        strategy.estimate(make_observations({AP_MAIN: -79, AP_N: -90, AP_SE: -91}))

        metrics = get_metrics()
        assert metrics.get_counter('estimation_attempts') == 1
        assert metrics.get_counter('estimation_success') == 1
        assert metrics.get_counter('multilateration_success') == 1
        assert metrics.get_histogram_stats('signal_distance_m')['count'] == 3


class TestRegistryOverride:
    """A registry passed per call replaces the bound one."""

    def test_override_registry(self, strategy):
        other = KnownAnchorRegistry.from_dict({"ff:ff:ff:ff:ff:ff": {"lat": 22.3, "lng": 114.2}})

        result = strategy.estimate(make_observations({"ff:ff:ff:ff:ff:ff": -70}), registry=other)

        assert result.estimate.position == (22.3, 114.2)

    def test_bound_registry_unchanged(self, strategy, deployment_registry):
        other = KnownAnchorRegistry.from_dict({"ff:ff:ff:ff:ff:ff": {"lat": 22.3, "lng": 114.2}})
        strategy.estimate(make_observations({"ff:ff:ff:ff:ff:ff": -70}), registry=other)

        assert strategy.registry is deployment_registry
        assert len(deployment_registry) == 5

    def test_partition_preserves_order(self, strategy):
        observations = make_observations({"x": -50, AP_SE: -60, "y": -55, AP_MAIN: -70})

        known, unknown = strategy.partition(observations)

        assert [a.identifier for _, a in known] == [AP_SE, AP_MAIN]
        assert [o.identifier for o in unknown] == ["x", "y"]


class TestResultSerialization:
    """Wire form of an EstimationResult."""

    def test_to_dict(self, strategy):
        result = strategy.estimate(make_observations({AP_NE.upper(): -60, "zz": -40}))

        body = result.to_dict()

        assert body == {
            'location': {
                'lat': DEPLOYMENT_APS[AP_NE]["lat"],
                'lng': DEPLOYMENT_APS[AP_NE]["lng"],
                'accuracy': 500.0,
            },
            'source': 'single-anchor',
            'usedAPs': [{'macAddress': AP_NE, 'signalStrength': -60}],
        }

    def test_estimate_position_helper(self, deployment_registry):
        result = estimate_position(
            make_observations({AP_MAIN: -79, AP_N: -90, AP_SE: -91}),
            deployment_registry,
        )

        assert result.source == EstimationSource.LOCAL_TRILATERATION

    def test_repeated_calls_identical(self, strategy):
        observations = make_observations({AP_MAIN: -79, AP_N: -90, AP_SE: -91})

        first = strategy.estimate(observations)
        second = strategy.estimate(observations)

        assert first.estimate == second.estimate
