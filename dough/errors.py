"""Error types raised by dough.

Every error carries the process exit status the CLI reports for its category.
"""

from __future__ import annotations


class DoughError(Exception):
    """Base class for presentation errors."""

    exit_code = 1


class ParseFailure(DoughError):
    """Markdown could not be parsed."""

    exit_code = 2


class StyleError(DoughError):
    """The style file is malformed or carries an invalid value."""

    exit_code = 3


class MissingStyleKey(StyleError):
    """A mandatory style flag is absent."""

    def __init__(self, key: str):
        super().__init__(f"style key '{key}' is missing")
        self.key = key


class MissingSlide(DoughError):
    exit_code = 4


class SubprocessFailure(DoughError):
    """An interpreter or compiler exited with a non-zero status."""

    exit_code = 5

    def __init__(self, message: str, returncode: int | None = None, output: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.output = output


class TerminalIOFailure(DoughError):
    exit_code = 6


class CodeBlockNotFound(DoughError):
    """No code block is registered at the requested index."""

    exit_code = 7

    def __init__(self, index: int):
        super().__init__(f"code block {index} not found")
        self.index = index
