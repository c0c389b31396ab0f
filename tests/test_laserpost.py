import argparse
import json

import pytest

from laserpost import laserpost

EVENTS = [
    {'event': 'start_run'},
    {'event': 'start_section', 'is_first': True, 'comment': 'Outline'},
    {'event': 'rapid', 'x': 1, 'y': 2},
    {'event': 'power', 'on': True},
    {'event': 'linear', 'x': 11, 'y': 2, 'feed': 900},
    {'event': 'power', 'on': False},
    {'event': 'end_section'},
    {'event': 'end_run'},
]


@pytest.fixture
def events_file(tmp_path):
    path = tmp_path / 'job.jsonl'
    path.write_text(
        '\n'.join(json.dumps(event) for event in EVENTS) + '\n',
        encoding='utf-8',
    )
    return path


def _gcode_lines(path) -> list[str]:
    return [
        line
        for line in path.read_text(encoding='utf-8').splitlines()
        if not line.startswith(';')
    ]


def test_strbool():
    assert laserpost.strbool('True') is True
    assert laserpost.strbool('no') is False
    assert laserpost.strbool(False) is False
    with pytest.raises(argparse.ArgumentTypeError):
        laserpost.strbool('maybe')


def test_optional_float():
    assert laserpost.optional_float('') is None
    assert laserpost.optional_float('None') is None
    assert laserpost.optional_float('2.5') == 2.5
    with pytest.raises(argparse.ArgumentTypeError):
        laserpost.optional_float('high')


def test_main(tmp_path, events_file):
    output = tmp_path / 'job.gcode'
    status = laserpost.main(
        [
            str(events_file),
            f'--output-path={output}',
            '--home-y-start=false',
            '--cutter-through=M3 S200',
            '--offset-x=0.5',
            '--end-y=',
        ]
    )
    assert status == 0
    assert _gcode_lines(output) == [
        'M5 ; Laser off',
        'G21 ; Units are in millimeters',
        'G28 X ; Home X',
        'G17 ; Circular interpolation: XY plane',
        'G90 ; Use absolute positioning',
        'G0 F3000 ; Rapid feed rate',
        'M400',
        'M117 Outline',
        'G0 X1.5 Y2 F3000',
        'M3 S200 ; Laser on: through',
        'G1 X11.5 F900',
        'M5 ; Laser off',
        'M400 ; Finish moves',
        'M5 ; Laser off',
        'G0 F3000',
        'G28 X ; Home X',
        'M84 ; Disable motors',
        'M300 S440 P200 ; Beep',
        'M117 Finished',
    ]


def test_main_config_file(tmp_path, events_file):
    config = tmp_path / 'machine.yaml'
    config.write_text(
        'target: grbl\n'
        'show-comments: false\n'
        'home_x_start: false\n'
        'home_y_start: false\n'
        'home_x_end: false\n'
        'rapid_feed_xy: 6000\n',
        encoding='utf-8',
    )
    output = tmp_path / 'job.gcode'
    status = laserpost.main(
        [
            str(events_file),
            '--config',
            str(config),
            '--output-path',
            str(output),
            # Command line overrides the machine file
            '--rapid-feed-xy=4000',
        ]
    )
    assert status == 0
    assert _gcode_lines(output) == [
        'M5',
        'G21',
        'G17',
        'G90',
        'G0 F4000',
        'G4 P0',
        'G0 X1 Y2 F4000',
        'M3 S255',
        'G1 X11 F900',
        'M5',
        'G4 P0',
        'M5',
        'G0 F4000',
    ]


def test_main_config_unknown_option(tmp_path, events_file):
    config = tmp_path / 'machine.yaml'
    config.write_text('laser_power: 11\n', encoding='utf-8')
    status = laserpost.main([str(events_file), '--config', str(config)])
    assert status == 2


def test_main_config_not_a_mapping(tmp_path, events_file):
    config = tmp_path / 'machine.yaml'
    config.write_text('- grbl\n', encoding='utf-8')
    with pytest.raises(laserpost.ConfigError):
        laserpost.load_config(config)
    assert laserpost.main([str(events_file), '--config', str(config)]) == 2


def test_main_bad_event(tmp_path, caplog):
    path = tmp_path / 'job.jsonl'
    path.write_text('{"event": "start_run"}\n{"event": "teleport"}\n')
    status = laserpost.main([str(path), f'--output-path={tmp_path / "out"}'])
    assert status == 1
    assert 'line 2: unknown event "teleport"' in caplog.text


def test_main_bad_option_value(tmp_path, events_file):
    status = laserpost.main(
        [
            str(events_file),
            f'--output-path={tmp_path / "out"}',
            '--tolerance=0',
        ]
    )
    assert status == 1


def test_main_bad_event_field(tmp_path, caplog):
    path = tmp_path / 'job.jsonl'
    path.write_text(
        '{"event": "start_section", "comment": 5}\n', encoding='utf-8'
    )
    status = laserpost.main([str(path), f'--output-path={tmp_path / "out"}'])
    assert status == 1
    assert 'line 1: "comment" must be a string' in caplog.text
