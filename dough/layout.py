"""Layout engine: alignment, highlighting, box and centering of a styled buffer.

Alignment directives
--------------------
``text $[c]$``, ``text $[l]$`` and ``text $[r]$`` align the single line they
end. A line holding only ``$[c]``, ``$[l]`` or ``$[r]`` (``$[l]$`` also works
there) opens a block that a line holding only ``$[e]$`` closes; every line in
between takes that alignment. Directive lines themselves are dropped.

Scroll bounds
-------------
The layout reports the legal range of "lines trimmed from the bottom" for the
buffer it produced. Padding placed above the content is never trimmed, padding
placed below it is always trimmed first, so only the latter raises the lower
bound.
"""

from __future__ import annotations

import re
import shutil
from dataclasses import dataclass

from .colors import RESET, carried_color, display_width, store_colors, strip_ansi_codes

BOX_PADDING = 1

_INLINE_RE = re.compile(r"\$\[([clr])\]\$")
_BLOCK_OPEN_RE = re.compile(r"^\$\[([clr])\]\$?$")
_BLOCK_CLOSE = "$[e]$"


@dataclass(frozen=True)
class ScrollBounds:
    upper: int = 0
    lower: int = 0

    def clamp(self, value: int) -> int:
        return max(self.lower, min(self.upper, value))


def calculate_length_of_longest_line(text: str) -> int:
    """Display width of the widest line, ignoring escapes and combining marks."""
    return max((display_width(line) for line in text.split("\n")), default=0)


def _remove_directive(line: str, directive: str) -> str:
    head, _, tail = line.rpartition(directive)
    return head.rstrip(" ") + tail if not strip_ansi_codes(tail).strip() else line


def parse_alignment(lines):
    """Split directives from ``lines``; returns ``[(line, alignment or None)]``."""
    parsed = []
    block = None
    for line in lines:
        plain = strip_ansi_codes(line).strip()
        if plain == _BLOCK_CLOSE:
            block = None
            continue
        opener = _BLOCK_OPEN_RE.match(plain)
        if opener:
            block = opener.group(1)
            continue
        inline = None
        matches = list(_INLINE_RE.finditer(strip_ansi_codes(line).rstrip()))
        if matches and matches[-1].end() == len(strip_ansi_codes(line).rstrip()):
            inline = matches[-1].group(1)
            line = _remove_directive(line, matches[-1].group(0))
        parsed.append((line, inline or block))
    return parsed


def align(text: str) -> str:
    """Apply alignment directives, padding against the widest line in ``text``."""
    parsed = parse_alignment(text.split("\n"))
    longest = max((display_width(line) for line, _ in parsed), default=0)
    aligned = []
    for line, alignment in parsed:
        gap = longest - display_width(line)
        if alignment == "c":
            line = " " * (gap // 2) + line
        elif alignment == "r":
            line = " " * gap + line
        aligned.append(line)
    return "\n".join(aligned)


def highlight_line(lines, index_from_end: int, code: str):
    """Recolor one line, counted from the end of ``lines``, with ``code``."""
    target = len(lines) - 1 - index_from_end
    if not 0 <= target < len(lines) or not code:
        return lines
    lines = list(lines)
    lines[target] = code + strip_ansi_codes(lines[target]) + RESET
    return lines


def draw_box(lines, box_color: str = ""):
    """Wrap ``lines`` in a border, padding every row to the same display width."""
    width = max((display_width(line) for line in lines), default=0)
    inner = width + 2 * BOX_PADDING
    colors = store_colors(lines)
    pad = " " * BOX_PADDING
    top = box_color + "┌" + "─" * inner + "┐" + RESET
    bottom = box_color + "└" + "─" * inner + "┘" + RESET
    left = box_color + "│" + RESET + pad
    boxed = [top]
    for i, line in enumerate(lines):
        fill = " " * (width - display_width(line))
        carried = carried_color(colors, i)
        boxed.append(left + (carried if carried != RESET else "") + line + RESET + fill + pad + box_color + "│" + RESET)
    boxed.append(bottom)
    return boxed


def center_horizontally(lines, columns: int):
    """Left-pad every line so the widest one sits in the middle of ``columns``."""
    longest = max((display_width(line) for line in lines), default=0)
    offset = max(0, (columns - longest) // 2)
    if not offset:
        return list(lines)
    colors = store_colors(lines)
    centered = []
    for i, line in enumerate(lines):
        carried = carried_color(colors, i)
        # Padding goes out uncolored, then the line's inherited color resumes.
        centered.append(RESET + " " * offset + (carried if carried != RESET else "") + line)
    return centered


def vertical_padding(content_height: int, rows: int) -> int:
    return max(0, (rows - content_height) // 2)


def layout(styled_text: str, config, highlight_line_index=None, size=None, reserved_rows: int = 0):
    """Lay out a styled buffer for a terminal of ``size`` (columns, rows).

    Returns ``(final_text, ScrollBounds)``. ``highlight_line_index`` counts
    from the end of ``styled_text``; ``reserved_rows`` are terminal rows kept
    free for a footer.
    """
    if size is None:
        size = shutil.get_terminal_size()
    columns, rows = size[0], size[1]

    lines = styled_text.split("\n")
    if highlight_line_index is not None:
        lines = highlight_line(lines, highlight_line_index, config.color("highlight"))
    lines = align("\n".join(lines)).split("\n")

    if config.box:
        lines = draw_box(lines, config.color("box_color"))
    if config.horizontal_alignment:
        lines = center_horizontally(lines, columns)

    content = len(lines)
    upper, lower = content, 0
    if config.vertical_alignment:
        padding = vertical_padding(content + reserved_rows, rows)
        if config.pads_after:
            lines = lines + [""] * padding
            upper += padding
            lower += padding
        else:
            lines = [""] * padding + lines
    return "\n".join(lines), ScrollBounds(upper, lower)


def trim_buffer(text: str, n: int) -> str:
    """Drop the last ``n`` lines of ``text``."""
    lines = text.split("\n")
    if n <= 0:
        return text
    return "\n".join(lines[:max(0, len(lines) - n)])
