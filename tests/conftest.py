import io
import pathlib

import geom2d
import pytest

from laserpost import emitter

# Location of tests
TEST_DIR = pathlib.Path(__file__).parent


def make_emitter(**kwargs) -> emitter.Emitter:
    """Emitter writing to a StringIO. Comments are off unless specified."""
    kwargs.setdefault('show_comments', False)
    return emitter.Emitter(io.StringIO(), emitter.EmitterOptions(**kwargs))


def lines(em: emitter.Emitter) -> list[str]:
    """Output lines written so far."""
    return em.output.getvalue().splitlines()


def new_lines(em: emitter.Emitter, mark: int) -> list[str]:
    """Output lines written after ``mark`` lines."""
    return lines(em)[mark:]


@pytest.fixture(scope='module', autouse=True)
def _initialize():
    geom2d.set_epsilon(1e-9)


@pytest.fixture
def em() -> emitter.Emitter:
    return make_emitter()
