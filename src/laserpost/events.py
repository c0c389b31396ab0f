"""Tool motion event stream.

Events are read as JSON objects, one per line, and replayed on an
:py:class:`laserpost.emitter.Emitter`. Example::

    {"event": "start_run", "comment": "Box lid"}
    {"event": "start_section", "is_first": true, "jet_mode": 1}
    {"event": "rapid", "x": 10, "y": 5}
    {"event": "power", "on": true}
    {"event": "linear", "x": 20, "y": 5, "feed": 600}
    {"event": "circular", "clockwise": false, "center": [20, 10, 0],
     "end": [25, 10, 0], "feed": 600, "plane": "XY"}
    {"event": "power", "on": false}
    {"event": "end_section"}
    {"event": "end_run"}

Blank lines and lines starting with ``#`` are ignored.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Callable

from . import arcs, emitter

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)


class EventError(Exception):
    """Malformed event."""

    def __init__(self, message: str, line_number: int | None = None) -> None:
        """Constructor."""
        if line_number is not None:
            message = f'line {line_number}: {message}'
        super().__init__(message)
        self.line_number = line_number


def _number(
    event: dict[str, Any], name: str, required: bool = False
) -> float | None:
    value = event.get(name)
    if value is None:
        if required:
            raise EventError(f'missing value for "{name}"')
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise EventError(f'"{name}" must be a number')
    return float(value)


def _point(
    event: dict[str, Any], name: str, required: bool = True
) -> tuple[float, float, float] | None:
    value = event.get(name)
    if value is None:
        if required:
            raise EventError(f'missing point "{name}"')
        return None
    if (
        not isinstance(value, (list, tuple))
        or len(value) != 3  # noqa: PLR2004
        or not all(
            isinstance(v, (int, float)) and not isinstance(v, bool)
            for v in value
        )
    ):
        raise EventError(f'"{name}" must be a list of three numbers')
    return (float(value[0]), float(value[1]), float(value[2]))


def _bool(
    event: dict[str, Any], name: str, default: bool | None = None
) -> bool:
    value = event.get(name, default)
    if not isinstance(value, bool):
        raise EventError(f'"{name}" must be true or false')
    return value


def _text(event: dict[str, Any], name: str) -> str | None:
    value = event.get(name)
    if value is not None and not isinstance(value, str):
        raise EventError(f'"{name}" must be a string')
    return value


def _plane(event: dict[str, Any]) -> arcs.Plane | None:
    name = event.get('plane', 'XY')
    if name is None:
        return None
    try:
        return arcs.Plane[str(name).upper()]
    except KeyError:
        raise EventError(f'unknown plane "{name}"') from None


def _start_run(em: emitter.Emitter, event: dict[str, Any]) -> None:
    em.start_run(comment=_text(event, 'comment'))


def _start_section(em: emitter.Emitter, event: dict[str, Any]) -> None:
    jet_mode = event.get('jet_mode', emitter.JET_MODE_THROUGH)
    if isinstance(jet_mode, bool) or not isinstance(jet_mode, int):
        raise EventError('"jet_mode" must be an integer')
    em.start_section(
        emitter.Section(
            is_first=_bool(event, 'is_first', default=False),
            is_jet=_bool(event, 'is_jet', default=True),
            jet_mode=jet_mode,
            comment=_text(event, 'comment'),
        )
    )


def _end_section(
    em: emitter.Emitter, event: dict[str, Any]  # noqa: ARG001
) -> None:
    em.end_section()


def _end_run(
    em: emitter.Emitter, event: dict[str, Any]  # noqa: ARG001
) -> None:
    em.end_run()


def _dwell(em: emitter.Emitter, event: dict[str, Any]) -> None:
    em.dwell(_number(event, 'seconds', required=True))


def _power(em: emitter.Emitter, event: dict[str, Any]) -> None:
    em.power(_bool(event, 'on'))


def _rapid(em: emitter.Emitter, event: dict[str, Any]) -> None:
    em.rapid(_number(event, 'x'), _number(event, 'y'), _number(event, 'z'))


def _linear(em: emitter.Emitter, event: dict[str, Any]) -> None:
    em.linear(
        _number(event, 'x'),
        _number(event, 'y'),
        _number(event, 'z'),
        feed=_number(event, 'feed', required=True),
    )


def _circular(em: emitter.Emitter, event: dict[str, Any]) -> None:
    plane = _plane(event)
    normal = _point(event, 'normal', required=False)
    if plane is None and normal is None:
        raise EventError('"normal" is required when "plane" is null')
    em.circular(
        _bool(event, 'clockwise', default=False),
        _point(event, 'center'),
        _point(event, 'end'),
        _number(event, 'feed', required=True),
        plane=plane,
        start=_point(event, 'start', required=False),
        normal=normal,
    )


_HANDLERS: dict[str, Callable[[emitter.Emitter, dict[str, Any]], None]] = {
    'start_run': _start_run,
    'start_section': _start_section,
    'end_section': _end_section,
    'dwell': _dwell,
    'power': _power,
    'rapid': _rapid,
    'linear': _linear,
    'circular': _circular,
    'end_run': _end_run,
}

EVENT_NAMES = tuple(_HANDLERS)


def dispatch(em: emitter.Emitter, event: dict[str, Any]) -> None:
    """Replay a single decoded event on an emitter.

    Raises:
        EventError: If the event is unknown or has bad values.
    """
    if not isinstance(event, dict):
        raise EventError('event must be a JSON object')
    name = event.get('event')
    handler = _HANDLERS.get(name)  # type: ignore [arg-type]
    if handler is None:
        raise EventError(f'unknown event "{name}"')
    handler(em, event)


def read_events(lines: Iterable[str]) -> Iterable[tuple[int, dict[str, Any]]]:
    """Decode JSON event lines.

    Yields:
        Tuples of (line number, event).
    """
    for line_number, line in enumerate(lines, start=1):
        text = line.strip()
        if not text or text.startswith('#'):
            continue
        try:
            yield line_number, json.loads(text)
        except json.JSONDecodeError as error:
            raise EventError(str(error), line_number) from error


def replay(em: emitter.Emitter, lines: Iterable[str]) -> int:
    """Replay an event stream on an emitter.

    Returns:
        The number of events processed.

    Raises:
        EventError: With the offending line number.
    """
    count = 0
    for line_number, event in read_events(lines):
        try:
            dispatch(em, event)
        except EventError as error:
            raise EventError(str(error), line_number) from error
        count += 1
    logger.debug('%d events processed', count)
    return count
