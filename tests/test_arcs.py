import math

import pytest

from laserpost import arcs, gcode


def _distance(p1, p2) -> float:
    return math.dist(p1, p2)


def test_plane_codes():
    assert arcs.Plane.XY.gcode == 'G17'
    assert arcs.Plane.ZX.gcode == 'G18'
    assert arcs.Plane.YZ.gcode == 'G19'
    assert arcs.Plane.XY.offset_params == 'IJ'
    assert arcs.Plane.ZX.offset_params == 'IK'
    assert arcs.Plane.YZ.offset_params == 'JK'


def test_segment_count():
    # Sagitta of a 5 degree chord on a 10mm radius is just under 0.01mm
    assert arcs.segment_count(10, math.pi / 2, 0.01, 1000) == 18
    assert arcs.segment_count(10, -math.pi / 2, 0.01, 1000) == 18
    assert arcs.segment_count(10, 2 * math.pi, 1e-9, 5) == 5
    # Tolerance larger than the radius
    assert arcs.segment_count(1, math.pi, 5, 100) == 2
    assert arcs.segment_count(1, 1e-6, 0.01, 100) == 1


def test_linearize_quarter_circle():
    points = arcs.linearize(
        (10, 0, 0), (0, 0, 0), (0, 10, 0), (0, 0, 1), False, 0.01
    )
    assert len(points) == 18
    assert points[-1] == (0.0, 10.0, 0.0)
    for point in points:
        assert _distance(point, (0, 0, 0)) == pytest.approx(10)
        assert point[0] >= -1e-9
        assert point[1] >= 0


def test_linearize_clockwise_about_normal():
    # Clockwise about +Z from (10, 0) to (0, 10) is three quarters of a turn.
    points = arcs.linearize(
        (10, 0, 0), (0, 0, 0), (0, 10, 0), (0, 0, 1), True, 0.01
    )
    assert len(points) == arcs.segment_count(10, 1.5 * math.pi, 0.01, 1000)
    assert any(point[1] < -9 for point in points)
    assert any(point[0] < -9 for point in points)
    assert points[-1] == (0.0, 10.0, 0.0)


def test_linearize_clockwise_about_reversed_normal():
    # Clockwise about -Z is counter-clockwise about +Z.
    points = arcs.linearize(
        (10, 0, 0), (0, 0, 0), (0, 10, 0), (0, 0, -1), True, 0.01
    )
    assert len(points) == 18
    for point in points:
        assert point[0] >= -1e-9
        assert point[1] >= 0


def test_linearize_oblique_plane():
    s = math.sqrt(0.5)
    start = (10, 0, 0)
    end = (0, 10 * s, -10 * s)
    ccw = arcs.linearize(start, (0, 0, 0), end, (0, 1, 1), False, 0.01)
    cw = arcs.linearize(start, (0, 0, 0), end, (0, 1, 1), True, 0.01)
    assert len(ccw) == 18
    assert len(cw) == arcs.segment_count(10, 1.5 * math.pi, 0.01, 1000)
    for point in ccw + cw:
        assert _distance(point, (0, 0, 0)) == pytest.approx(10)
        # Every point lies in the plane normal to (0, 1, 1)
        assert point[1] + point[2] == pytest.approx(0, abs=1e-9)
    # The short way round stays on the +Y side, the long way does not.
    assert all(point[1] >= -1e-9 for point in ccw)
    assert any(point[1] < -7 for point in cw)
    assert ccw[-1] == pytest.approx(end)
    assert cw[-1] == pytest.approx(end)


@pytest.mark.parametrize(
    ('clockwise', 'side'),
    [
        (False, 1),
        (True, -1),
    ],
)
def test_linearize_semicircle(clockwise, side):
    points = arcs.linearize(
        (10, 0, 0), (0, 0, 0), (-10, 0, 0), (0, 0, 1), clockwise, 0.01
    )
    assert len(points) == arcs.segment_count(10, math.pi, 0.01, 1000)
    half = points[len(points) // 2 - 1]
    assert half == pytest.approx((0, 10 * side, 0), abs=1e-9)
    assert points[-1] == (-10.0, 0.0, 0.0)


@pytest.mark.parametrize(
    ('clockwise', 'side'),
    [
        (False, 1),
        (True, -1),
    ],
)
def test_linearize_full_circle(clockwise, side):
    points = arcs.linearize(
        (5, 0, 1), (0, 0, 1), (5, 0, 1), (0, 0, 1), clockwise, 0.01
    )
    count = arcs.segment_count(5, 2 * math.pi, 0.01, 1000)
    assert len(points) == count
    assert points[-1] == (5.0, 0.0, 1.0)
    # Halfway around
    half = points[len(points) // 2 - 1]
    assert half == pytest.approx((-5, 0, 1), abs=1e-9)
    # A quarter of the way around
    assert points[count // 4][1] * side > 0


def test_linearize_helix():
    points = arcs.linearize(
        (10, 0, 0), (0, 0, 0), (0, 10, -2), (0, 0, 1), False, 0.01
    )
    heights = [point[2] for point in points]
    assert heights == sorted(heights, reverse=True)
    assert heights[-1] == -2
    assert heights[len(heights) // 2 - 1] == pytest.approx(-1)


def test_linearize_max_segments():
    points = arcs.linearize(
        (10, 0, 0),
        (0, 0, 0),
        (0, 10, 0),
        (0, 0, 1),
        False,
        1e-9,
        max_segments=4,
    )
    assert len(points) == 4


@pytest.mark.parametrize(
    ('start', 'end', 'normal'),
    [
        # Start point on the axis
        ((0, 0, 0), (0, 10, 0), (0, 0, 1)),
        ((0, 0, 5), (0, 10, 0), (0, 0, 1)),
        # Zero length axis
        ((10, 0, 0), (0, 10, 0), (0, 0, 0)),
    ],
)
def test_linearize_degenerate(start, end, normal):
    with pytest.raises(gcode.GCodeError):
        arcs.linearize(start, (0, 0, 0), end, normal, False, 0.01)
