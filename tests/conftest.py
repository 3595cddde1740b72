"""
Pytest configuration and fixtures
"""

import curses
import dataclasses
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from dough.style import DEFAULT_STYLE, StyleConfig  # noqa: E402


class FakeTerminal:
    """Replays key presses and records everything written."""

    def __init__(self, keys=(), size=(80, 24)):
        self.keys = list(keys)
        self.columns, self.rows = size
        self.output = []

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def size(self):
        return (self.columns, self.rows)

    def write(self, text):
        self.output.append(text)

    def read_key(self):
        if not self.keys:
            return ord("q")
        return self.keys.pop(0)

    @property
    def text(self):
        return "".join(self.output)


class FakeRunner:
    def __init__(self):
        self.submitted = []
        self.reports = []
        self.closed = False

    def submit(self, block, runtimes):
        self.submitted.append((block, runtimes))

    def report(self, message):
        self.reports.append(message)

    def close(self):
        self.closed = True


@pytest.fixture
def config():
    """Default style with every layout step and highlighting turned off."""
    return dataclasses.replace(
        StyleConfig.default(),
        box=False,
        vertical_alignment=False,
        horizontal_alignment=False,
        syntax_highlighting=False,
        progress=False,
    )


@pytest.fixture
def make_project(tmp_path):
    """Create a project directory from a mapping of file name to content."""

    def _make(slides, style=DEFAULT_STYLE):
        project = tmp_path / "talk"
        project.mkdir()
        for name, content in slides.items():
            (project / name).write_text(content, encoding="utf-8")
        if style is not None:
            (project / "style.yml").write_text(style, encoding="utf-8")
        return project

    return _make


@pytest.fixture
def keys():
    return {
        "right": curses.KEY_RIGHT,
        "left": curses.KEY_LEFT,
        "up": curses.KEY_UP,
        "down": curses.KEY_DOWN,
    }
