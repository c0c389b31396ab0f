#!/usr/bin/env python
"""Command line front end that converts a tool motion event stream to G-code.

The event stream is read from a file (or stdin) as JSON lines,
see :py:mod:`laserpost.events`.
Machine settings can be given as command line options
or in a YAML machine file.
"""

from __future__ import annotations

import argparse
import gettext
import logging
import pathlib
import sys

# For performance measuring and debugging
import timeit
from datetime import timedelta
from typing import TYPE_CHECKING, Any, TextIO

import yaml

from . import emitter, events, gcode

if TYPE_CHECKING:
    from collections.abc import Sequence

__version__ = emitter.__version__

_ = gettext.gettext
logger = logging.getLogger(__name__)

_LOG_FORMAT = '%(levelname)s %(name)s: %(message)s'


class ConfigError(Exception):
    """Bad machine configuration file."""


def strbool(value: str | bool) -> bool:
    """Convert a command line string such as 'true' or 'no' to a bool."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {'true', 'yes', 'on', '1'}:
        return True
    if text in {'false', 'no', 'off', '0'}:
        return False
    raise argparse.ArgumentTypeError(
        _('Not a boolean value: {value}').format(value=value)
    )


def optional_float(value: str) -> float | None:
    """Convert a string to a float. An empty string or 'none' is None."""
    text = str(value).strip()
    if not text or text.lower() == 'none':
        return None
    try:
        return float(text)
    except ValueError:
        raise argparse.ArgumentTypeError(
            _('Not a number: {value}').format(value=value)
        ) from None


def load_config(path: pathlib.Path) -> dict[str, Any]:
    """Read machine options from a YAML file.

    The file must contain a mapping of option names to values.
    Dashes in option names are converted to underscores.
    """
    try:
        with path.open(encoding='utf-8') as config_file:
            config = yaml.safe_load(config_file)
    except (OSError, yaml.YAMLError) as error:
        raise ConfigError(f'{path}: {error}') from error
    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigError(f'{path}: machine options must be a mapping')
    return {
        str(name).replace('-', '_'): value for name, value in config.items()
    }


def add_options(parser: argparse.ArgumentParser) -> None:  # noqa: PLR0915
    """Add CLI options."""
    defaults = emitter.EmitterOptions()
    parser.add_argument(
        'events',
        nargs='?',
        default='-',
        help=_('Event stream file (JSON lines). Default is stdin.'),
    )
    parser.add_argument(
        '--config',
        type=pathlib.Path,
        help=_('YAML machine options file.'),
    )
    parser.add_argument(
        '--output-path',
        default='-',
        help=_('Output path name. Default is stdout.'),
    )
    parser.add_argument(
        '--log-level',
        default='WARNING',
        choices=('DEBUG', 'INFO', 'WARNING', 'ERROR'),
        help=_('Log level'),
    )
    parser.add_argument(
        '--log-filename', default=None, help=_('Log file name')
    )
    parser.add_argument(
        '--version', action='version', version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        '--target',
        default=defaults.target,
        choices=gcode.TARGETS,
        help=_('G code target interpreter'),
    )
    parser.add_argument(
        '--home-x-start',
        type=strbool,
        default=defaults.home_x_start,
        help=_('Home the X axis at start'),
    )
    parser.add_argument(
        '--home-y-start',
        type=strbool,
        default=defaults.home_y_start,
        help=_('Home the Y axis at start'),
    )
    parser.add_argument(
        '--home-z-start',
        type=strbool,
        default=defaults.home_z_start,
        help=_('Home the Z axis at start'),
    )
    parser.add_argument(
        '--home-x-end',
        type=strbool,
        default=defaults.home_x_end,
        help=_('Home the X axis at end'),
    )
    parser.add_argument(
        '--start-z',
        type=optional_float,
        default=defaults.start_z,
        help=_('Z position after startup (empty to skip)'),
    )
    parser.add_argument(
        '--end-z',
        type=optional_float,
        default=defaults.end_z,
        help=_('Z position at end (empty to skip)'),
    )
    parser.add_argument(
        '--end-y',
        type=optional_float,
        default=defaults.end_y,
        help=_('Y position at end (empty to skip)'),
    )
    parser.add_argument(
        '--beep-at-end',
        type=strbool,
        default=defaults.beep_at_end,
        help=_('Beep when finished'),
    )
    parser.add_argument(
        '--rapid-feed-xy',
        type=float,
        default=defaults.rapid_feed_xy,
        help=_('XY axis rapid feed rate in mm/min'),
    )
    parser.add_argument(
        '--rapid-feed-z',
        type=float,
        default=defaults.rapid_feed_z,
        help=_('Z axis rapid feed rate in mm/min'),
    )
    parser.add_argument(
        '--cutter-through',
        default=defaults.cutter_through,
        help=_('Laser on command for through cuts'),
    )
    parser.add_argument(
        '--cutter-etch',
        default=defaults.cutter_etch,
        help=_('Laser on command for etching'),
    )
    parser.add_argument(
        '--cutter-vaporize',
        default=defaults.cutter_vaporize,
        help=_('Laser on command for vaporizing'),
    )
    parser.add_argument(
        '--cutter-off',
        default=defaults.cutter_off,
        help=_('Laser off command'),
    )
    for axis in 'xyz':
        parser.add_argument(
            f'--offset-{axis}',
            type=float,
            default=getattr(defaults, f'offset_{axis}'),
            help=_('Tool offset along {axis} axis').format(axis=axis.upper()),
        )
    for axis in 'xy':
        parser.add_argument(
            f'--bed-{axis}',
            type=float,
            default=getattr(defaults, f'bed_{axis}'),
            help=_('Bed size along {axis} axis').format(axis=axis.upper()),
        )
    parser.add_argument(
        '--tolerance',
        type=float,
        default=defaults.tolerance,
        help=_('Chord tolerance for arcs that must be linearized'),
    )
    parser.add_argument(
        '--arc-max-segments',
        type=int,
        default=defaults.arc_max_segments,
        help=_('Maximum number of segments per linearized arc'),
    )
    parser.add_argument(
        '--show-comments',
        type=strbool,
        default=defaults.show_comments,
        help=_('Show G code comments'),
    )
    parser.add_argument(
        '--show-line-numbers',
        type=strbool,
        default=defaults.show_line_numbers,
        help=_('Show G code line numbers'),
    )


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command line options.

    Options in a YAML machine file become defaults
    that can be overridden on the command line.
    """
    parser = argparse.ArgumentParser(
        prog='laserpost', description=_('Convert tool motion events to G-code')
    )
    add_options(parser)
    options, _remaining = parser.parse_known_args(argv)
    if options.config is not None:
        config = load_config(options.config)
        unknown = sorted(set(config) - set(vars(options)))
        if unknown:
            raise ConfigError(
                f'{options.config}: unknown options: {", ".join(unknown)}'
            )
        parser.set_defaults(**config)
    return parser.parse_args(argv)


def _open_input(name: str) -> TextIO:
    if name == '-':
        return sys.stdin
    return pathlib.Path(name).expanduser().open(encoding='utf-8')


def _open_output(name: str) -> TextIO:
    if name == '-':
        return sys.stdout
    return pathlib.Path(name).expanduser().open('w', encoding='utf-8')


def run(options: argparse.Namespace) -> int:
    """Convert an event stream to G code.

    Returns:
        The number of events processed.
    """
    emitter_options = emitter.EmitterOptions.from_options(options)
    timer_start = timeit.default_timer()
    infile = _open_input(options.events)
    try:
        outfile = _open_output(options.output_path)
        try:
            em = emitter.Emitter(outfile, emitter_options)
            count = events.replay(em, infile)
        finally:
            if outfile is not sys.stdout:
                outfile.close()
    finally:
        if infile is not sys.stdin:
            infile.close()
    total_time = timeit.default_timer() - timer_start
    logger.info('laserpost time: %s', str(timedelta(seconds=total_time)))
    return count


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point."""
    try:
        options = parse_args(argv)
    except ConfigError as error:
        logging.basicConfig(format=_LOG_FORMAT)
        logger.error('%s', error)  # noqa: TRY400
        return 2
    logging.basicConfig(
        level=options.log_level,
        filename=options.log_filename,
        format=_LOG_FORMAT,
    )
    try:
        run(options)
    except (events.EventError, gcode.GCodeError, ValueError, OSError) as error:
        logger.error('%s', error)  # noqa: TRY400
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
