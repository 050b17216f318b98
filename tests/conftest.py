"""
Pytest configuration and shared fixtures for the Wi-Fi positioning tests.

Provides anchor layouts (the deployment registry and the three-AP example
triangle), a fresh metrics collector per test, and helpers that build
geometry-consistent distances and signal strengths for synthetic points.
"""

import sys
import math
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

import pytest

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from wps_core.localization import (
    EstimationStrategy,
    GeodeticProjector,
    KnownAnchorRegistry,
)
from wps_core.metrics import reset_metrics
from wps_core.proto import KnownAnchor, Observation


# Deployment access points
AP_MAIN = "c2:5b:d8:16:91:fd"
AP_NE = "50:91:e3:f7:a4:27"
AP_SW = "7a:8c:b5:7f:ec:e2"
AP_N = "dc:ea:e7:34:0a:a2"
AP_SE = "78:8c:b5:5f:ec:e4"

DEPLOYMENT_APS = {
    AP_MAIN: {"lat": 10.294033, "lng": 78.764267},
    AP_NE: {"lat": 10.294500, "lng": 78.764800},
    AP_SW: {"lat": 10.293700, "lng": 78.763900},
    AP_N: {"lat": 10.295000, "lng": 78.764400},
    AP_SE: {"lat": 10.293300, "lng": 78.765100},
}


# =============================================================================
# Metrics
# =============================================================================


@pytest.fixture(autouse=True)
def fresh_metrics():
    """Give every test its own global metrics collector."""
    reset_metrics()
    yield


# =============================================================================
# Registry Fixtures
# =============================================================================


@pytest.fixture
def deployment_registry() -> KnownAnchorRegistry:
    """Registry of the five deployment access points."""
    return KnownAnchorRegistry.from_dict(DEPLOYMENT_APS)


@pytest.fixture
def example_anchors() -> List[KnownAnchor]:
    """
    Example triangle A, B, C.

    B and C sit almost on a line through A, so the triangle is thin
    (about 0.6 m from A to the BC edge).
    """
    return [
        KnownAnchor("a", 10.294033, 78.764267),
        KnownAnchor("b", 10.2945, 78.7648),
        KnownAnchor("c", 10.2937, 78.7639),
    ]


@pytest.fixture
def example_registry(example_anchors) -> KnownAnchorRegistry:
    return KnownAnchorRegistry({a.identifier: a for a in example_anchors})


@pytest.fixture
def virtual_registry_config() -> Dict:
    """Three anchors as east/north offsets around the main AP."""
    return {
        "base_lat": 10.294033,
        "base_lon": 78.764267,
        "anchors": {
            "AP0": {"e": 0.0, "n": 0.0},
            "AP1": {"e": 60.0, "n": 0.0},
            "AP2": {"e": 30.0, "n": 52.0},
        },
    }


@pytest.fixture
def projector() -> GeodeticProjector:
    return GeodeticProjector()


@pytest.fixture
def strategy(deployment_registry) -> EstimationStrategy:
    return EstimationStrategy(deployment_registry)


# =============================================================================
# Helper Functions
# =============================================================================


def planar_distances(
    anchors: Sequence[KnownAnchor],
    point: Tuple[float, float],
) -> List[float]:
    """
    Exact distances from a planar point to each anchor.

    Args:
        anchors: Anchors; the plane is anchored at anchors[0]
        point: (x, y) in meters in that plane

    Returns:
        Distances in meters
    """
    projector = GeodeticProjector()
    planar = projector.project_all(anchors, anchors[0])
    return [math.hypot(point[0] - p.x, point[1] - p.y) for p in planar]


def planar_centroid(anchors: Sequence[KnownAnchor]) -> Tuple[float, float]:
    """Centroid of the anchors in the plane anchored at anchors[0]."""
    planar = GeodeticProjector().project_all(anchors, anchors[0])
    return (
        sum(p.x for p in planar) / len(planar),
        sum(p.y for p in planar) / len(planar),
    )


def signal_for_distance(
    distance_m: float,
    reference_power_dbm: float = -40.0,
    path_loss_exponent: float = 2.5,
) -> float:
    """Signal strength that the default model maps to distance_m."""
    return reference_power_dbm - 10.0 * path_loss_exponent * math.log10(distance_m)


def point_in_triangle(
    p: Tuple[float, float],
    a: Tuple[float, float],
    b: Tuple[float, float],
    c: Tuple[float, float],
) -> bool:
    """True if p is inside (or on) triangle abc."""
    def cross(o, u, v):
        return (u[0] - o[0]) * (v[1] - o[1]) - (u[1] - o[1]) * (v[0] - o[0])

    d1 = cross(a, b, p)
    d2 = cross(b, c, p)
    d3 = cross(c, a, p)
    has_neg = d1 < 0 or d2 < 0 or d3 < 0
    has_pos = d1 > 0 or d2 > 0 or d3 > 0
    return not (has_neg and has_pos)


def make_observations(readings: Dict[str, float]) -> List[Observation]:
    """Observations from {identifier: signal} in insertion order."""
    return [Observation(identifier=k, signal_strength=v) for k, v in readings.items()]
