"""Circular interpolation planes and arc linearization."""

from __future__ import annotations

import enum
import logging
import math
from typing import TYPE_CHECKING

import geom2d

from .gcode import GCodeError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from typing_extensions import TypeAlias

logger = logging.getLogger(__name__)

TPoint3: TypeAlias = tuple[float, float, float]

# Default maximum number of line segments per linearized arc
DEFAULT_MAX_SEGMENTS = 1000

# Center offset parameter for each axis
_OFFSET_PARAMS = {'X': 'I', 'Y': 'J', 'Z': 'K'}


class Plane(enum.Enum):
    """Principal circular interpolation planes.

    The value is the plane selection G code and the two in-plane axes.
    """

    XY = ('G17', 'XY')
    ZX = ('G18', 'XZ')
    YZ = ('G19', 'YZ')

    @property
    def gcode(self) -> str:
        """Plane selection G code."""
        return self.value[0]

    @property
    def axes(self) -> str:
        """The two axes that lie in the plane."""
        return self.value[1]

    @property
    def offset_params(self) -> str:
        """Center offset parameter letters used in this plane."""
        return ''.join(_OFFSET_PARAMS[axis] for axis in self.axes)


def axis_index(axis: str) -> int:
    """Index of an axis name in an (x, y, z) tuple."""
    return 'XYZ'.index(axis.upper())


def _sub(a: Sequence[float], b: Sequence[float]) -> TPoint3:
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def _scale(a: Sequence[float], s: float) -> TPoint3:
    return (a[0] * s, a[1] * s, a[2] * s)


def _dot(a: Sequence[float], b: Sequence[float]) -> float:
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def _cross(a: Sequence[float], b: Sequence[float]) -> TPoint3:
    return (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )


def _length(a: Sequence[float]) -> float:
    return math.sqrt(_dot(a, a))


def segment_count(
    radius: float, sweep: float, tolerance: float, max_segments: int
) -> int:
    """Number of chords needed to approximate an arc.

    The chord sagitta of each segment will be no greater than
    ``tolerance``, unless ``max_segments`` is reached first.
    """
    if tolerance >= radius:
        max_step = math.pi / 2
    else:
        max_step = 2 * math.acos(1 - tolerance / radius)
    count = math.ceil(abs(sweep) / max_step)
    return max(1, min(count, max_segments))


def linearize(
    start: Sequence[float],
    center: Sequence[float],
    end: Sequence[float],
    normal: Sequence[float],
    clockwise: bool,
    tolerance: float,
    max_segments: int = DEFAULT_MAX_SEGMENTS,
) -> list[TPoint3]:
    """Approximate an arc in an arbitrary plane by line segments.

    The arc axis must be given since the start and end points alone
    cannot tell a short arc from its long complement, or orient a
    semicircle or full circle.

    Args:
        start: Start point of the arc (x, y, z).
        center: Center point of the arc (x, y, z).
        end: End point of the arc (x, y, z). A full circle is
            made if it is the same as ``start``.
        normal: Arc axis.
        clockwise: True if the arc winds clockwise when viewed
            looking down the arc axis (from the tip of ``normal``).
        tolerance: Maximum distance between a chord and the arc.
        max_segments: Upper bound on the number of segments.

    Returns:
        The end points of the line segments. The last point is ``end``.

    Raises:
        GCodeError: If the arc geometry is degenerate.
    """
    u = _sub(start, center)
    v = _sub(end, center)
    normal_length = _length(normal)
    if geom2d.is_zero(normal_length):
        raise GCodeError('Arc axis has zero length.')
    n = _scale(normal, 1.0 / normal_length)

    # Basis vectors of the arc plane: e1 points at the start point.
    start_height = _dot(u, n)
    rise = _dot(v, n) - start_height
    e1 = _sub(u, _scale(n, start_height))
    radius = _length(e1)
    if geom2d.is_zero(radius):
        raise GCodeError('Arc start point lies on the arc axis.')
    e1 = _scale(e1, 1.0 / radius)
    e2 = _cross(n, e1)

    end_x = _dot(v, e1)
    end_y = _dot(v, e2)
    end_radius = math.hypot(end_x, end_y)
    if not geom2d.float_eq(radius, end_radius):
        logger.debug(
            'Mismatching arc radii: start radius = %f, end radius = %f',
            radius,
            end_radius,
        )

    # Sweep angle, counter-clockwise positive about the normal.
    angle = math.atan2(end_y, end_x)
    if clockwise:
        sweep = angle if angle < 0 and not geom2d.is_zero(angle) else (
            angle - 2 * math.pi
        )
    else:
        sweep = angle if angle > 0 and not geom2d.is_zero(angle) else (
            angle + 2 * math.pi
        )

    count = segment_count(
        max(radius, end_radius), sweep, tolerance, max_segments
    )
    logger.debug(
        'Linearize arc: radius=%f, sweep=%f, segments=%d',
        radius,
        math.degrees(sweep),
        count,
    )
    points: list[TPoint3] = []
    for k in range(1, count):
        t = k / count
        p = geom2d.P.from_polar(radius + (end_radius - radius) * t, sweep * t)
        height = start_height + rise * t
        points.append(
            (
                center[0] + e1[0] * p.x + e2[0] * p.y + n[0] * height,
                center[1] + e1[1] * p.x + e2[1] * p.y + n[1] * height,
                center[2] + e1[2] * p.x + e2[2] * p.y + n[2] * height,
            )
        )
    points.append((float(end[0]), float(end[1]), float(end[2])))
    return points
