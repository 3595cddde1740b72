"""Terminal control: raw-mode input, escape sequences and size queries.

Keys are reported the way curses' ``getch`` reports them, so the presenter
can match on ``curses.KEY_RIGHT`` and ``ord("l")`` alike.
"""

from __future__ import annotations

import codecs
import curses
import logging
import os
import select
import shutil
import sys
import termios
import threading
import tty

from .errors import TerminalIOFailure

logger = logging.getLogger(__name__)

ESC = 27
CTRL_C = 3
CTRL_R = 18

# Returned for escape sequences with no mapping; matches no binding.
UNKNOWN_KEY = -1

HIDE_CURSOR = "\x1b[?25l"
SHOW_CURSOR = "\x1b[?25h"
CLEAR = "\x1b[2J\x1b[1;1H"
WIPE = "\x1b[2J\x1b[3J\x1b[1;1H"
HOME = "\x1b[1;1H\x1b[J"

_SEQUENCES = {
    "[A": curses.KEY_UP,
    "[B": curses.KEY_DOWN,
    "[C": curses.KEY_RIGHT,
    "[D": curses.KEY_LEFT,
    "OA": curses.KEY_UP,
    "OB": curses.KEY_DOWN,
    "OC": curses.KEY_RIGHT,
    "OD": curses.KEY_LEFT,
}

# Seconds to wait for the rest of an escape sequence before reading a bare Esc.
ESCAPE_DELAY = 0.05
MAX_SEQUENCE = 16


class Terminal:
    """Raw-mode session on the controlling terminal.

    Use as a context manager: entering switches the input to raw mode and
    hides the cursor, leaving restores both and clears the screen.
    """

    def __init__(self, stdin=None, stdout=None):
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout
        self._saved = None
        self._lock = threading.Lock()
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def __enter__(self):
        try:
            fd = self.stdin.fileno()
            self._saved = termios.tcgetattr(fd)
            tty.setraw(fd)
        except (OSError, termios.error, ValueError) as e:
            raise TerminalIOFailure(f"could not switch the terminal to raw mode: {e}") from e
        self.write(HIDE_CURSOR)
        return self

    def __exit__(self, *exc):
        try:
            if self._saved is not None:
                termios.tcsetattr(self.stdin.fileno(), termios.TCSADRAIN, self._saved)
                self._saved = None
        finally:
            self.write(SHOW_CURSOR + CLEAR)
        return False

    def size(self):
        """(columns, rows) of the terminal."""
        return tuple(shutil.get_terminal_size())

    def write(self, text: str):
        # Raw mode turns off output post-processing, so line feeds need a carriage return.
        if self._saved is not None:
            text = text.replace("\r\n", "\n").replace("\n", "\r\n")
        with self._lock:
            try:
                self.stdout.write(text)
                self.stdout.flush()
            except OSError as e:
                raise TerminalIOFailure(f"could not write to the terminal: {e}") from e

    def _read_char(self, timeout=None) -> str:
        """Read one character, waiting at most ``timeout`` seconds when given."""
        fd = self.stdin.fileno()
        decoder = self._decoder
        while True:
            if timeout is not None:
                ready, _, _ = select.select([fd], [], [], timeout)
                if not ready:
                    decoder.reset()
                    return ""
            try:
                data = os.read(fd, 1)
            except OSError as e:
                raise TerminalIOFailure(f"could not read from the terminal: {e}") from e
            if not data:
                decoder.reset()
                return ""
            ch = decoder.decode(data)
            if ch:
                return ch

    def _read_sequence(self, introducer: str) -> str:
        """Read the rest of an escape sequence after ``ESC`` and ``introducer``."""
        if introducer == "O":
            return introducer + self._read_char(ESCAPE_DELAY)
        sequence = introducer
        # CSI parameters and intermediates run until a final byte in 0x40-0x7E.
        while len(sequence) < MAX_SEQUENCE:
            ch = self._read_char(ESCAPE_DELAY)
            sequence += ch
            if not ch or "\x40" <= ch <= "\x7e":
                break
        return sequence

    def read_key(self) -> int:
        """Block for one key press and return its curses-style key code.

        Escape sequences are consumed whole; those without a mapping come back
        as ``UNKNOWN_KEY`` so none of their bytes reach the caller as keys.
        """
        ch = self._read_char()
        if not ch:
            raise TerminalIOFailure("terminal input closed")
        if ord(ch) != ESC:
            return ord(ch)
        introducer = self._read_char(ESCAPE_DELAY)
        if not introducer:
            return ESC
        if introducer not in ("[", "O"):
            logger.debug("ignoring alt key %r", introducer)
            return UNKNOWN_KEY
        sequence = self._read_sequence(introducer)
        key = _SEQUENCES.get(sequence)
        if key is None:
            logger.debug("ignoring escape sequence %r", sequence)
            return UNKNOWN_KEY
        return key
