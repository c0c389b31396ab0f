"""A G-code writer.

Suitable for a three axis (XYZ) gantry with a laser or other
non-contact tool switched by M codes.

The generated G code is intended for a Marlin interpreter
but a GRBL dialect is also supported.

Values are tracked per parameter letter so that a value is only
written when it differs from the last value written for that
parameter (modal suppression).

====
"""

# ruff: noqa: PLR0913

from __future__ import annotations

import datetime
import gettext
import io
from collections.abc import Iterable
from typing import TextIO

_ = gettext.gettext

# Target-specific G codes
_TARGETS: dict[str, dict] = {
    'default': {
        'description': 'Marlin 2.x',
        'set_units_mm': 'G21',
        'absolute_positioning': 'G90',
        'home': 'G28',
        'dwell': 'G4',
        'dwell_param': 'S',
        'finish_moves': 'M400',
        'disable_motors': 'M84',
        'beep': 'M300 S440 P200',
        'status_message': 'M117',
    },
    'marlin': {},
    'grbl': {
        'description': 'GRBL 1.1',
        'dwell_param': 'P',
        # A zero length dwell waits for the planner buffer to empty.
        'finish_moves': 'G4 P0',
        'disable_motors': None,
        'beep': None,
        'status_message': None,
    },
}

TARGETS = tuple(name for name in _TARGETS if name != 'default')


class GCodeError(Exception):
    """Exception raised by gcode generator."""


def filter_comment(text: str) -> str:
    """Make text safe for use inside a G code comment.

    Parentheses delimit comments for most interpreters
    so they are removed rather than escaped.
    Line breaks are replaced by a space.
    """
    text = text.replace('(', '').replace(')', '')
    return ' '.join(text.splitlines()).strip()


class GCodeGenerator:
    """GCode writer class.

    Describes a basic three axis (XYZ) machine.

    Each output parameter (X, Y, Z, I, J, K, F) and the motion plane
    selector keep the last value that was written. Formatting a value
    that renders to the same text as the last value yields an empty token,
    unless the parameter is forced.
    """

    # Order in which G code parameters are specified in a line of G code
    _GCODE_ORDERED_PARAMS = 'XYZIJKF'
    # Parameters that are rendered as whole numbers
    _GCODE_INTEGER_PARAMS = 'F'
    # Modal groups tracked in addition to parameters
    _GCODE_MODAL_GROUPS = ('plane',)
    # Default output precision
    _DEFAULT_PRECISION = 3

    # Target machine.
    target: str
    # Current line number
    line_number: int = 1
    # The G code output stream
    output: TextIO
    # Number of digits after the decimal point for positions
    precision: int = _DEFAULT_PRECISION
    # Show comments if True
    show_comments: bool = True
    # Show line numbers if True
    show_line_numbers: bool = False
    # Extra header comments
    header_comments: list[str | list[str]]
    # Last rendered value for G code parameters and modal groups
    _last_val: dict[str, str | None]

    def __init__(
        self,
        output: TextIO | None = None,
        target: str = 'marlin',
    ) -> None:
        """GCodeGenerator constructor.

        Args:
            output: Output stream for generated G code.
                Must implement ``write()`` method.
                Defaults to a StringIO if None (default).
            target: Target machine. Default is 'marlin'.
        """
        self.target = target.lower()
        if self.target not in _TARGETS:
            raise GCodeError(f'Unknown target machine: {target}')
        self.output = output if output is not None else io.StringIO()
        self.header_comments = []
        self._last_val = {
            name: None
            for name in (*self._GCODE_ORDERED_PARAMS, *self._GCODE_MODAL_GROUPS)
        }

    def machine_attr(self, name: str, default: str | None = None) -> str | None:
        """Get the machine attribute or machine-specific G code."""
        if default is None:
            default = _TARGETS['default'].get(name)
        attr: str | None = _TARGETS.get(self.target, _TARGETS['default']).get(
            name, default
        )
        return attr

    def set_output_precision(self, precision: int) -> None:
        """Set numeric output precision for positions.

        Args:
            precision: The number of digits after the decimal point.
        """
        self.precision = precision

    def fmt_value(self, param: str, value: float) -> str:
        """Format a parameter value to match current output precision.

        Trailing zeros are trimmed and negative zero is rendered as ``0``.
        """
        precision = 0 if param in self._GCODE_INTEGER_PARAMS else self.precision
        text = f'{value:.{precision}f}'
        if '.' in text:
            text = text.rstrip('0').rstrip('.')
        if text == '-0':
            text = '0'
        return text

    def param(
        self, name: str, value: float | None, force: bool = False
    ) -> str:
        """Format a parameter token such as ``X10.5``.

        Args:
            name: Parameter letter.
            value: Parameter value. None yields an empty token.
            force: Output the value even if it has not changed.

        Returns:
            The token, or an empty string if the value is None
            or unchanged since the last output for this parameter.
        """
        name = name.upper()
        if name not in self._GCODE_ORDERED_PARAMS:
            raise GCodeError(f'Undefined parameter {name}')
        if value is None:
            return ''
        text = self.fmt_value(name, value)
        if not force and text == self._last_val[name]:
            return ''
        self._last_val[name] = text
        return f'{name}{text}'

    def modal(self, group: str, code: str, force: bool = False) -> str:
        """Format a modal G code, ie the plane selector.

        Returns:
            The code, or an empty string if it is already in effect.
        """
        if group not in self._GCODE_MODAL_GROUPS:
            raise GCodeError(f'Undefined modal group {group}')
        if not force and code == self._last_val[group]:
            return ''
        self._last_val[group] = code
        return code

    def reset(self, names: Iterable[str] | None = None) -> None:
        """Forget the last value of the specified parameters.

        The next value formatted for each of them will always be output.

        Args:
            names: Parameter letters or modal group names.
                All parameters and groups are reset if None (default).
        """
        if names is None:
            names = self._last_val.keys()
        for name in list(names):
            key = name if name in self._GCODE_MODAL_GROUPS else name.upper()
            if key not in self._last_val:
                raise GCodeError(f'Undefined parameter {name}')
            self._last_val[key] = None

    def last_value(self, name: str) -> str | None:
        """The last rendered value of a parameter or None if unknown."""
        key = name if name in self._GCODE_MODAL_GROUPS else name.upper()
        return self._last_val[key]

    def add_header_comment(self, comment: str | list[str]) -> None:
        """Append a comment to the header section.

        Args:
            comment: A comment or list of comments.
        """
        self.header_comments.append(comment)

    def comment(self, comment: Iterable[str] | str | None = None) -> None:
        """Write a G code comment line.

        Outputs a newline if the comment string is None (default).

        Args:
            comment: A comment string or an iterable of comment strings.
                In the case of multiple comments, each one will be
                on a separate line.
        """
        if self.show_comments:
            if isinstance(comment, str):
                self._write_line(comment=comment)
            elif isinstance(comment, Iterable):
                for comment_line in comment:
                    self._write_line(comment=comment_line)
            else:
                self._write('\n')

    def header(self, comment: str | None = None) -> None:
        """Output the G code file header comments.

        Args:
            comment: A header comment (optional).
        """
        now = datetime.datetime.now(tz=datetime.timezone.utc)
        today = now.astimezone().isoformat(' ', timespec='seconds')
        self.comment(f'Creation date: {today}')
        self.comment(f'Target machine: {self.machine_attr("description")}')
        self.comment(f'Output precision: {self.precision}')
        self.comment('Units: mm')
        if self.header_comments:
            for hdr_comment in self.header_comments:
                self.comment(hdr_comment)
        if comment is not None:
            self.comment(comment)

    def gcode_command(
        self, *tokens: str | None, comment: str | None = None
    ) -> bool:
        """Output a line of gcode built from a list of tokens.

        Empty tokens are dropped and the remaining tokens are joined
        by single spaces.

        Args:
            tokens: Command mnemonic and parameter tokens.
            comment: Optional inline comment string.

        Returns:
            True if a line was written.
        """
        line = ' '.join(token.strip() for token in tokens if token)
        if not line:
            return False
        self._write_line(line, comment=comment)
        return True

    def _write_line(
        self, line: str | None = None, comment: str | None = None
    ) -> None:
        """Write a (optionally numbered) line to the G code output.

        A newline character is always appended, even if the string is empty.
        Empty lines and comment-only lines are not numbered.
        """
        parts = []
        if line:
            if self.show_line_numbers:
                parts.append(f'N{self.line_number}')
                self.line_number += 1
            parts.append(line)
        if self.show_comments and comment:
            comment = filter_comment(comment)
            if comment:
                parts.append(f'; {comment}')
        self._write(' '.join(parts).rstrip() + '\n')

    def _write(self, text: str) -> None:
        """Write the string to the gcode output stream."""
        self.output.write(text)
