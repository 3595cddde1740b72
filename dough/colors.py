"""ANSI color helpers and the color-continuation tracker.

Color specs
-----------
Style values are rich style definitions: ``[bold|dim|italic|underline ...]
<fg> [on <bg>]``. A color is a standard name (``purple`` stays an alias of
``magenta``), a ``bright_`` variant, a 256-color name or an ``#rrggbb`` triple,
rendered down to the 256-color palette.

Widths
------
All width arithmetic works on *display* width: escape sequences and combining
marks (the strikethrough overlay included) take no columns, and East Asian
wide characters take two.
"""

from __future__ import annotations

import re

from rich.cells import cell_len
from rich.color import ColorSystem
from rich.errors import StyleSyntaxError
from rich.style import Style

from .errors import StyleError

RESET = "\x1b[0m"

ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")

COLOR_SYSTEM = ColorSystem.EIGHT_BIT

_ALIASES = {
    "purple": "magenta",
    "bright_purple": "bright_magenta",
}


def rgb_to_ansi256(r, g, b):
    """Map an RGB tuple (0-255) to the nearest 256-color ANSI index."""
    r_ = int(round(r / 255 * 5))
    g_ = int(round(g / 255 * 5))
    b_ = int(round(b / 255 * 5))
    return 16 + 36 * r_ + 6 * g_ + b_


def parse_color(spec: str) -> str:
    """Turn a color spec such as ``"bold black on white"`` into an SGR sequence."""
    words = [_ALIASES.get(word.lower(), word) for word in str(spec).split()]
    if not words:
        return ""
    try:
        style = Style.parse(" ".join(words))
    except StyleSyntaxError as e:
        raise StyleError(f"invalid color spec '{spec}': {e}") from None
    if style.link:
        raise StyleError(f"color spec '{spec}' may not carry a link")
    # Rendering a one-cell sample yields "<SGR> \x1b[0m"; keep the opening part.
    sample = style.render(" ", color_system=COLOR_SYSTEM)
    return sample[:-len(" " + RESET)] if sample != " " else ""


def paint(text: str, code: str) -> str:
    """Wrap each non-empty line of ``text`` in ``code`` and a reset.

    Coloring line by line keeps every line self-contained, so trimming or
    padding a buffer never leaves a color open across a line break. Resets
    already inside ``text`` re-open ``code`` so nested spans keep the outer color.
    """
    if not code:
        return text
    painted = []
    for line in text.split("\n"):
        if line:
            line = code + line.replace(RESET, RESET + code) + RESET
        painted.append(line)
    return "\n".join(painted)


def strip_ansi_codes(line: str) -> str:
    return ANSI_RE.sub("", line)


def display_width(line: str) -> int:
    """Columns ``line`` occupies once printed."""
    return cell_len(strip_ansi_codes(line))


def is_reset(sequence: str) -> bool:
    params = sequence[2:-1]
    return not params or any(p in ("", "0", "00") for p in params.split(";"))


def store_colors(lines) -> dict[int, str]:
    """Record, per line index, the color still active once that line is printed.

    A blank line resets the tracked color. A line carrying escape sequences
    updates it: sequences accumulate until a reset clears them. Any other line
    inherits the color tracked for the line before it.
    """
    colors = {}
    current = RESET
    for line_num, line in enumerate(lines):
        if not line.strip():
            current = RESET
        else:
            for match in ANSI_RE.finditer(line):
                sequence = match.group(0)
                if is_reset(sequence):
                    current = RESET
                elif current == RESET:
                    current = sequence
                else:
                    current += sequence
        colors[line_num] = current
    return colors


def carried_color(colors: dict[int, str], line_num: int) -> str:
    """Color a line inherits from the lines printed before it."""
    if line_num <= 0:
        return RESET
    return colors.get(line_num - 1, RESET)
