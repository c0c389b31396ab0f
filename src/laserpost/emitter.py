"""Translate tool motion events into G code for a laser gantry.

The :py:class:`Emitter` is driven by a CAM toolpath generator, one
call per event, and writes the corresponding G code lines through a
:py:class:`laserpost.gcode.GCodeGenerator`.
"""

from __future__ import annotations

import dataclasses
import gettext
import logging
from typing import TYPE_CHECKING, NamedTuple

from . import arcs, gcode

if TYPE_CHECKING:
    from collections.abc import Sequence
    from typing import TextIO

    from typing_extensions import Self

__version__ = '0.1.0'

_ = gettext.gettext

logger = logging.getLogger(__name__)

# Dwell duration limits in seconds
DWELL_MIN = 0.001
DWELL_MAX = 99999.999

# Jet (laser) cutting modes
JET_MODE_THROUGH = 0
JET_MODE_ETCH = 1
JET_MODE_VAPORIZE = 2


@dataclasses.dataclass(frozen=True)
class EmitterOptions:
    """Machine options, fixed for the duration of a run."""

    # Home axes before the first section
    home_x_start: bool = True
    home_y_start: bool = True
    home_z_start: bool = False
    # Home the X axis when all done
    home_x_end: bool = True
    # Z position to move to after startup. None to skip.
    start_z: float | None = None
    # Z position to move to when all done. None to skip.
    end_z: float | None = None
    # Y position to move to when all done (ie present the bed). None to skip.
    end_y: float | None = None
    # Sound a beep when all done
    beep_at_end: bool = True
    # Rapid feed rates in mm/min
    rapid_feed_xy: float = 3000.0
    rapid_feed_z: float = 300.0
    # Laser power commands
    cutter_through: str = 'M3 S255'
    cutter_etch: str = 'M3 S25'
    cutter_vaporize: str = 'M3 S100'
    cutter_off: str = 'M5'
    # Tool offset added to every position
    offset_x: float = 0.0
    offset_y: float = 0.0
    offset_z: float = 0.0
    # Bed size. Informational only.
    bed_x: float = 200.0
    bed_y: float = 200.0
    # G code dialect
    target: str = 'marlin'
    # Maximum chord error for arcs that must be linearized
    tolerance: float = 0.01
    # Maximum number of segments per linearized arc
    arc_max_segments: int = arcs.DEFAULT_MAX_SEGMENTS
    # Output comments
    show_comments: bool = True
    # Output line numbers
    show_line_numbers: bool = False

    def __post_init__(self) -> None:
        """Validate option values."""
        if self.rapid_feed_xy <= 0 or self.rapid_feed_z <= 0:
            raise ValueError(_('Rapid feed rates must be greater than zero.'))
        if self.tolerance <= 0:
            raise ValueError(_('Arc tolerance must be greater than zero.'))
        if self.arc_max_segments < 1:
            raise ValueError(_('Arc segment limit must be at least one.'))
        if self.target.lower() not in gcode.TARGETS:
            raise ValueError(
                _('Unknown target machine: {target}').format(target=self.target)
            )

    @classmethod
    def from_options(cls, options: object) -> Self:  # noqa: ANN102
        """Transfer options from, say argparse.Namespace, to EmitterOptions."""
        fields = {field.name for field in dataclasses.fields(cls)}
        emitter_options = {
            name: value
            for name, value in vars(options).items()
            if name in fields
        }
        logger.debug('emitter options: %s', emitter_options)
        return cls(**emitter_options)

    @property
    def tool_offset(self) -> tuple[float, float, float]:
        """Tool offset as an (x, y, z) tuple."""
        return (self.offset_x, self.offset_y, self.offset_z)


@dataclasses.dataclass
class Section:
    """Facts about the toolpath section being processed."""

    # True if this is the first section of the job
    is_first: bool = False
    # True if this is a jet (laser) operation
    is_jet: bool = True
    # Jet cutting mode: through, etch, or vaporize
    jet_mode: int = JET_MODE_THROUGH
    # Operation description
    comment: str | None = None


class CuttingMode(NamedTuple):
    """Power on command and an optional annotation."""

    command: str
    comment: str | None = None


class Emitter:
    """Command emitter.

    Converts motion and state events into G code.
    Positions are in millimeters, feed rates in mm/min.
    The tool offset is added to every position before output.
    """

    options: EmitterOptions
    gc: gcode.GCodeGenerator
    # Power on command for the current jet section
    cutting_mode: CuttingMode
    # Last target position in caller coordinates. None if unknown.
    _position: list[float | None]

    def __init__(
        self,
        output: TextIO | None = None,
        options: EmitterOptions | None = None,
    ) -> None:
        """Constructor.

        Args:
            output: Output stream for generated G code.
                Defaults to a StringIO if None (default).
            options: Machine options.
        """
        self.options = options if options else EmitterOptions()
        self.gc = gcode.GCodeGenerator(
            output=output, target=self.options.target
        )
        self.gc.show_comments = self.options.show_comments
        self.gc.show_line_numbers = self.options.show_line_numbers
        self.cutting_mode = CuttingMode(
            self.options.cutter_off, _('Cutting mode not set')
        )
        self._position = [None, None, None]

    @property
    def output(self) -> TextIO:
        """The G code output stream."""
        return self.gc.output

    def get_current_position(self) -> tuple[float | None, ...]:
        """The last known tool position in caller coordinates.

        Returns:
            A 3-tuple (X, Y, Z). An axis value will be None if unknown.
        """
        return tuple(self._position)

    def start_run(self, comment: str | None = None) -> None:
        """Write the file header.

        Args:
            comment: Optional job description.
        """
        opt = self.options
        self.gc.comment(f'Generated by laserpost {__version__}')
        # Forget header comments from a previous run
        self.gc.header_comments.clear()
        self.gc.add_header_comment(
            f'Bed size: X{self.gc.fmt_value("X", opt.bed_x)}'
            f' Y{self.gc.fmt_value("Y", opt.bed_y)}'
        )
        if any(opt.tool_offset):
            self.gc.add_header_comment(
                'Tool offset: '
                + ' '.join(
                    f'{axis}{self.gc.fmt_value(axis, value)}'
                    for axis, value in zip('XYZ', opt.tool_offset)
                )
            )
        self.gc.header(comment)
        self.gc.reset()

    def start_section(self, section: Section) -> None:
        """Handle the start of a toolpath section.

        Writes the machine startup sequence for the first section,
        selects the cutting mode for jet sections, and
        displays the section comment.
        """
        if section.is_first:
            self._startup()
        if section.is_jet:
            self.cutting_mode = self._select_cutting_mode(section.jet_mode)
        if section.comment:
            self.gc.gcode_command(self.gc.machine_attr('finish_moves'))
            self._status(section.comment)

    def end_section(self) -> None:
        """Handle the end of a toolpath section.

        Restores the default plane and makes sure the next move is
        output with all coordinates.
        """
        self.gc.gcode_command(self.gc.modal('plane', arcs.Plane.XY.gcode))
        self.gc.reset('XYZF')

    def end_run(self) -> None:
        """Write the machine shutdown sequence."""
        opt = self.options
        gc = self.gc
        gc.gcode_command(
            gc.machine_attr('finish_moves'), comment=_('Finish moves')
        )
        gc.gcode_command(opt.cutter_off, comment=_('Laser off'))
        if opt.end_z is not None:
            gc.gcode_command(
                'G0',
                gc.param('Z', opt.end_z, force=True),
                gc.param('F', opt.rapid_feed_z, force=True),
            )
        gc.gcode_command('G0', gc.param('F', opt.rapid_feed_xy, force=True))
        if opt.home_x_end:
            self._home('X')
        if opt.end_y is not None:
            gc.gcode_command(
                'G0',
                gc.param('Y', opt.end_y, force=True),
                gc.param('F', opt.rapid_feed_xy, force=True),
            )
        disable_motors = gc.machine_attr('disable_motors')
        if disable_motors:
            gc.gcode_command(disable_motors, comment=_('Disable motors'))
        if opt.beep_at_end:
            beep = gc.machine_attr('beep')
            if beep:
                gc.gcode_command(beep, comment=_('Beep'))
            else:
                logger.debug('Target %s cannot beep', gc.target)
        self._status(_('Finished'))

    def dwell(self, seconds: float) -> None:
        """Pause motion.

        Durations are clamped to 0.001 .. 99999.999 seconds.
        A warning is logged if the duration is too long.

        Args:
            seconds: Number of seconds to pause.
        """
        if seconds > DWELL_MAX:
            logger.warning(
                'Dwell of %s seconds is out of range, using %s seconds.',
                seconds,
                DWELL_MAX,
            )
            seconds = DWELL_MAX
        elif seconds < DWELL_MIN:
            logger.debug('Dwell of %s seconds raised to minimum', seconds)
            seconds = DWELL_MIN
        dwell_param = self.gc.machine_attr('dwell_param')
        self.gc.gcode_command(
            self.gc.machine_attr('dwell'),
            f'{dwell_param}{self.gc.fmt_value(dwell_param, seconds)}',
            comment=_('Dwell'),
        )

    def power(self, on: bool) -> None:
        """Switch the laser on using the current cutting mode, or off."""
        if on:
            self.gc.gcode_command(
                self.cutting_mode.command,
                comment=self.cutting_mode.comment or _('Laser on'),
            )
        else:
            self.gc.gcode_command(
                self.options.cutter_off, comment=_('Laser off')
            )

    def rapid(
        self,
        x: float | None = None,
        y: float | None = None,
        z: float | None = None,
    ) -> None:
        """Perform a rapid *G0* move to the specified location.

        XY and Z moves are output as separate commands since they
        use different rapid feed rates.
        """
        self._update_position(x, y, z)
        x, y, z = self._apply_offset(x, y, z)
        gc = self.gc
        xy_tokens = [gc.param('X', x), gc.param('Y', y)]
        z_token = gc.param('Z', z)
        if any(xy_tokens):
            gc.gcode_command(
                'G0',
                *xy_tokens,
                gc.param('F', self.options.rapid_feed_xy, force=True),
            )
        if z_token:
            gc.gcode_command(
                'G0',
                z_token,
                gc.param('F', self.options.rapid_feed_z, force=True),
            )

    def linear(
        self,
        x: float | None = None,
        y: float | None = None,
        z: float | None = None,
        feed: float | None = None,
    ) -> None:
        """Perform a *G1* linear feed to the specified location.

        The feed rate is part of every move. If no axis has changed
        but the feed rate has, only the feed rate is output.
        """
        self._update_position(x, y, z)
        x, y, z = self._apply_offset(x, y, z)
        gc = self.gc
        tokens = [gc.param('X', x), gc.param('Y', y), gc.param('Z', z)]
        if any(tokens):
            gc.gcode_command('G1', *tokens, gc.param('F', feed, force=True))
        else:
            feed_token = gc.param('F', feed)
            if feed_token:
                gc.gcode_command('G1', feed_token)

    def circular(  # noqa: PLR0913
        self,
        clockwise: bool,
        center: Sequence[float],
        end: Sequence[float],
        feed: float,
        plane: arcs.Plane | None = arcs.Plane.XY,
        start: Sequence[float] | None = None,
        normal: Sequence[float] | None = None,
    ) -> None:
        """Perform a *G2*/*G3* arc feed.

        Args:
            clockwise: True if the arc moves in a clockwise direction.
            center: Arc center (x, y, z).
            end: Arc end point (x, y, z).
            feed: Feed rate.
            plane: Circular interpolation plane. If None the arc
                does not lie in a principal plane and will be
                approximated by line segments.
            start: Arc start point (x, y, z). Defaults to the
                current position.
            normal: Arc axis. Required when ``plane`` is None,
                ignored otherwise. The arc winds about it
                according to ``clockwise``.

        Raises:
            GCodeError: If the start point is unknown or, for arcs in no
                principal plane, the axis is missing or the arc
                geometry is degenerate.
        """
        if plane is None and normal is None:
            raise gcode.GCodeError(
                _('An arc outside the XY, ZX and YZ planes needs an axis.')
            )
        if start is None:
            start = self._start_point()
        if plane is None:
            self._linearize_arc(clockwise, center, end, feed, start, normal)
            return

        self._update_position(*end)
        center_out = self._apply_offset(*center)
        start_out = self._apply_offset(*start)
        end_out = self._apply_offset(*end)
        gc = self.gc
        tokens = [
            gc.modal('plane', plane.gcode),
            'G2' if clockwise else 'G3',
            gc.param('X', end_out[0]),
            gc.param('Y', end_out[1]),
            gc.param('Z', end_out[2]),
        ]
        # Center offsets are relative to the start point
        # so they are always output.
        for axis, offset_param in zip(plane.axes, plane.offset_params):
            i = arcs.axis_index(axis)
            tokens.append(
                gc.param(
                    offset_param, center_out[i] - start_out[i], force=True
                )
            )
        tokens.append(gc.param('F', feed, force=True))
        gc.gcode_command(*tokens)

    def _linearize_arc(
        self,
        clockwise: bool,
        center: Sequence[float],
        end: Sequence[float],
        feed: float,
        start: Sequence[float],
        normal: Sequence[float],
    ) -> None:
        """Output an arc as a series of linear feeds."""
        points = arcs.linearize(
            start,
            center,
            end,
            normal,
            clockwise,
            self.options.tolerance,
            max_segments=self.options.arc_max_segments,
        )
        logger.debug('Arc not in a principal plane: %d segments', len(points))
        for x, y, z in points:
            self.linear(x, y, z, feed=feed)

    def _startup(self) -> None:
        """Output the machine startup sequence."""
        opt = self.options
        gc = self.gc
        gc.gcode_command(opt.cutter_off, comment=_('Laser off'))
        gc.gcode_command(
            gc.machine_attr('set_units_mm'),
            comment=_('Units are in millimeters'),
        )
        if opt.home_x_start:
            self._home('X')
        if opt.home_y_start:
            self._home('Y')
        gc.gcode_command(
            gc.modal('plane', arcs.Plane.XY.gcode, force=True),
            comment=_('Circular interpolation: XY plane'),
        )
        gc.gcode_command(
            gc.machine_attr('absolute_positioning'),
            comment=_('Use absolute positioning'),
        )
        gc.gcode_command(
            'G0',
            gc.param('F', opt.rapid_feed_xy, force=True),
            comment=_('Rapid feed rate'),
        )
        if opt.home_z_start:
            self._home('Z', feed=opt.rapid_feed_z)
        if opt.start_z is not None:
            gc.gcode_command(
                'G0',
                gc.param('Z', opt.start_z, force=True),
                gc.param('F', opt.rapid_feed_z, force=True),
                comment=_('Start height'),
            )

    def _home(self, axis: str, feed: float | None = None) -> None:
        """Home an axis. Its position is unknown afterwards."""
        logger.debug('Home %s axis', axis)
        self.gc.gcode_command(
            self.gc.machine_attr('home'),
            axis,
            self.gc.param('F', feed, force=True),
            comment=_('Home {axis}').format(axis=axis),
        )
        self.gc.reset(axis)
        self._position[arcs.axis_index(axis)] = None

    def _status(self, text: str) -> None:
        """Show a message on the machine display, or as a comment."""
        status_message = self.gc.machine_attr('status_message')
        if status_message:
            self.gc.gcode_command(status_message, gcode.filter_comment(text))
        else:
            self.gc.comment(text)

    def _select_cutting_mode(self, jet_mode: int) -> CuttingMode:
        opt = self.options
        if jet_mode == JET_MODE_THROUGH:
            return CuttingMode(opt.cutter_through, _('Laser on: through'))
        if jet_mode == JET_MODE_ETCH:
            return CuttingMode(opt.cutter_etch, _('Laser on: etch'))
        if jet_mode == JET_MODE_VAPORIZE:
            return CuttingMode(opt.cutter_vaporize, _('Laser on: vaporize'))
        logger.warning(
            'Unknown jet mode %s, the laser will stay off.', jet_mode
        )
        return CuttingMode(
            opt.cutter_off, _('Unknown jet mode {mode}').format(mode=jet_mode)
        )

    def _apply_offset(
        self, x: float | None, y: float | None, z: float | None
    ) -> tuple[float | None, float | None, float | None]:
        """Add the tool offset to the specified axis values."""
        ox, oy, oz = self.options.tool_offset
        return (
            x + ox if x is not None else None,
            y + oy if y is not None else None,
            z + oz if z is not None else None,
        )

    def _update_position(
        self, x: float | None, y: float | None, z: float | None
    ) -> None:
        for i, value in enumerate((x, y, z)):
            if value is not None:
                self._position[i] = value

    def _start_point(self) -> tuple[float, float, float]:
        if None in self._position:
            raise gcode.GCodeError(
                'Current position is unknown, cannot start an arc.'
            )
        x, y, z = self._position
        return (x, y, z)
