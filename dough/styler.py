"""Markdown styler: one Markdown document in, one ANSI-decorated buffer out.

The document is parsed with markdown-it (CommonMark plus strikethrough and
tables) and walked as a syntax tree. Every fenced code block is also recorded
in a :class:`CodeRegistry` so it can be run from the presenter.

Progressive code reveal
-----------------------
``highlight_count`` is a budget of code lines counted across the whole
document, not per block. With a positive budget, the first ``highlight_count``
code lines keep their normal styling and the rest are dimmed. The last
revealed line is reported as ``cursor_line`` so the layout can highlight it.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from markdown_it import MarkdownIt
from markdown_it.tree import SyntaxTreeNode
from pyfiglet import Figlet, FontNotFound
from pygments import highlight
from pygments.formatters import Terminal256Formatter
from pygments.lexers import TextLexer, get_lexer_by_name
from pygments.styles import get_style_by_name
from pygments.util import ClassNotFound

from .colors import ANSI_RE, RESET, display_width, is_reset, paint, parse_color, rgb_to_ansi256, strip_ansi_codes
from .errors import CodeBlockNotFound, ParseFailure

try:
    from PIL import Image
except ImportError:
    Image = None

logger = logging.getLogger(__name__)

STRIKE = "\u0336"
TAB_WIDTH = 4
RULE_WIDTH = 40
IMAGE_MAX_ROWS = 20

# Marks the last revealed code line until the buffer is assembled.
_CURSOR = "\x00"

_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)


def remove_comments(text: str) -> str:
    """Drop HTML comments, including ones spanning several lines."""
    return _COMMENT_RE.sub("", text)


def split_front_matter(text: str):
    """Split a leading ``---`` delimited block from the document body.

    Returns ``(front_matter_lines, body)``. An unterminated block swallows the
    rest of the document, leaving an empty body.
    """
    lines = text.split("\n")
    if not lines or lines[0].rstrip("\r") != "---":
        return [], text
    front_matter = []
    for i, line in enumerate(lines[1:], start=1):
        if line.rstrip("\r") == "---":
            return front_matter, "\n".join(lines[i + 1:])
        front_matter.append(line)
    return front_matter, ""


@dataclass(frozen=True)
class CodeBlock:
    index: int
    language: str
    code: str


class CodeRegistry:
    """Fenced code blocks of one slide, keyed by 1-based appearance order."""

    def __init__(self):
        self._blocks = {}

    def register(self, language: str, code: str) -> int:
        index = len(self._blocks) + 1
        self._blocks[index] = CodeBlock(index, language, code)
        return index

    def get(self, index: int) -> CodeBlock:
        try:
            return self._blocks[index]
        except KeyError:
            raise CodeBlockNotFound(index) from None

    def clear(self):
        self._blocks.clear()

    def __len__(self):
        return len(self._blocks)

    def __iter__(self):
        return iter(self._blocks.values())


@dataclass
class StyledSlide:
    text: str
    registry: CodeRegistry = field(default_factory=CodeRegistry)
    code_lines: int = 0
    cursor_line: int | None = None


def strikethrough(text: str) -> str:
    """Overlay every visible character with a combining long stroke."""
    parts = []
    pos = 0
    for match in ANSI_RE.finditer(text):
        parts.append(_strike_plain(text[pos:match.start()]))
        parts.append(match.group(0))
        pos = match.end()
    parts.append(_strike_plain(text[pos:]))
    return "".join(parts)


def _strike_plain(text: str) -> str:
    return "".join(ch if ch == "\n" else ch + STRIKE for ch in text)


def highlight_code(code: str, language: str, theme: str, background: bool = False) -> list[str]:
    """Syntax-highlight ``code`` with Pygments and return one string per line."""
    try:
        lexer = get_lexer_by_name(language, stripnl=False) if language else TextLexer(stripnl=False)
    except ClassNotFound:
        logger.warning("no lexer for '%s', showing it as plain text", language)
        lexer = TextLexer(stripnl=False)
    try:
        style = get_style_by_name(theme)
    except ClassNotFound:
        logger.warning("unknown syntax theme '%s', using 'default'", theme)
        style = get_style_by_name("default")

    raw_lines = code.split("\n")
    lines = highlight(code, lexer, Terminal256Formatter(style=style)).split("\n")
    lines = (lines + raw_lines[len(lines):])[:len(raw_lines)]
    if not background or not style.background_color:
        return lines

    hex_color = style.background_color.lstrip("#")
    if len(hex_color) == 3:
        hex_color = "".join(ch * 2 for ch in hex_color)
    bg = parse_color(f"on #{hex_color}")
    width = max(display_width(line) for line in lines)
    result = []
    for line in lines:
        # Pygments resets clear the background too, so it is re-opened after each.
        line = ANSI_RE.sub(lambda m: m.group(0) + bg if is_reset(m.group(0)) else m.group(0), line)
        result.append(bg + " " + line + " " * (width - display_width(line) + 1) + RESET)
    return result


def render_image(path, width: int) -> list[str]:
    """Render an image as half-block cells, two pixels per character."""
    img = Image.open(path).convert("RGB")
    img_w, img_h = img.size
    ratio = min(width / img_w, IMAGE_MAX_ROWS * 2 / img_h)
    new_w = max(1, int(img_w * ratio))
    new_h = max(2, int(img_h * ratio))
    img = img.resize((new_w, new_h + new_h % 2), Image.LANCZOS)
    lines = []
    for y in range(0, img.size[1], 2):
        cells = []
        for x in range(new_w):
            top = rgb_to_ansi256(*img.getpixel((x, y)))
            bot = rgb_to_ansi256(*img.getpixel((x, y + 1)))
            cells.append(f"\x1b[38;5;{bot};48;5;{top}m▄")
        lines.append("".join(cells) + RESET)
    return lines


class _Styler:
    def __init__(self, config, highlight_count=0, base_dir=None, width=80):
        self.config = config
        self.highlight_count = highlight_count
        self.base_dir = Path(base_dir) if base_dir is not None else None
        self.width = width
        self.registry = CodeRegistry()
        self.code_line = 0

    def visit(self, node, depth=0, quote=0):
        method = getattr(self, "visit_" + node.type, None)
        if method is None:
            return None
        return method(node, depth, quote)

    def join_children(self, node, depth=0, quote=0) -> str:
        parts = (self.visit(child, depth, quote) for child in node.children)
        return "".join(part for part in parts if part is not None)

    def visit_root(self, node, depth, quote):
        return self.join_children(node) + "\n"

    def visit_inline(self, node, depth, quote):
        return self.join_children(node, depth, quote)

    def visit_text(self, node, depth, quote):
        return node.content

    def visit_softbreak(self, node, depth, quote):
        return "\n"

    visit_hardbreak = visit_softbreak

    def visit_html_inline(self, node, depth, quote):
        return node.content

    def visit_em(self, node, depth, quote):
        return paint(self.join_children(node), self.config.color("emphasis"))

    def visit_strong(self, node, depth, quote):
        return paint(self.join_children(node), self.config.color("strong"))

    def visit_s(self, node, depth, quote):
        return paint(strikethrough(self.join_children(node)), self.config.color("strikethrough"))

    def visit_code_inline(self, node, depth, quote):
        return paint(node.content, self.config.color("inline_code"))

    def visit_link(self, node, depth, quote):
        text = self.join_children(node)
        url = node.attrs.get("href", "")
        if strip_ansi_codes(text) == url:
            return paint(url, self.config.color("link_url"))
        return f"{paint(text, self.config.color('link_text'))} - {paint(url, self.config.color('link_url'))}"

    def visit_image(self, node, depth, quote):
        alt = node.content or ""
        src = node.attrs.get("src", "")
        return f"Image: {alt} " + paint(f"({src})", self.config.color("image"))

    def visit_heading(self, node, depth, quote):
        level = int(node.tag[1:])
        text = self.join_children(node)
        if level == 1 and self.config.h1_figlet:
            text = self.figlet(strip_ansi_codes(text)).rstrip("\n")
        return "\n" + paint(text, self.config.heading_color(level)) + "\n"

    def figlet(self, text: str) -> str:
        try:
            fig = Figlet(font=self.config.figlet_font, width=self.width)
        except FontNotFound:
            logger.warning("unknown figlet font '%s', using 'standard'", self.config.figlet_font)
            fig = Figlet(font="standard", width=self.width)
        return fig.renderText(text)

    def visit_paragraph(self, node, depth, quote):
        inline = node.children[0] if node.children else None
        if inline is not None:
            images = [child for child in inline.children if child.type == "image"]
            others = [c for c in inline.children if c.type != "image" and (c.type != "text" or c.content.strip())]
            if len(images) == 1 and not others:
                picture = self.picture(images[0])
                if picture is not None:
                    return "\n" + picture + "\n"
        text = self.join_children(node, depth, quote)
        if quote:
            text = paint(text, self.config.color("blockquote"))
        return "\n" + text + "\n"

    def picture(self, node):
        if Image is None:
            return None
        path = Path(node.attrs.get("src", ""))
        if not path.is_absolute() and self.base_dir is not None:
            path = self.base_dir / path
        if not path.is_file():
            return None
        try:
            return "\n".join(render_image(path, min(self.width, 60)))
        except OSError as e:
            logger.warning("could not render image %s: %s", path, e)
            return None

    def visit_hr(self, node, depth, quote):
        return "\n" + paint("─" * RULE_WIDTH, self.config.color("thematic_break")) + "\n"

    def visit_blockquote(self, node, depth, quote):
        inner = self.join_children(node, depth, quote + 1).strip("\n")
        bar = paint("│", self.config.color("blockquote")) + " "
        return "\n" + "\n".join(bar + line for line in inner.split("\n")) + "\n"

    def visit_bullet_list(self, node, depth, quote):
        ordered = node.type == "ordered_list"
        number = int(node.attrs.get("start", 1)) if ordered else 0
        kind = "ordered_list" if ordered else "unordered_list"
        glyph = self.config.bullet_glyphs[depth % len(self.config.bullet_glyphs)]
        indent = "  " * depth
        lines = []
        for item in node.children:
            marker = f"{number}." if ordered else glyph
            marker = paint(marker, self.config.color(kind + "_bullet"))
            parts = []
            for child in item.children:
                if child.type == "paragraph":
                    text = paint(self.join_children(child, depth, quote), self.config.color(kind))
                    parts.append(text.replace("\n", "\n" + indent + "   "))
                else:
                    part = self.visit(child, depth + 1, quote)
                    if part:
                        parts.append(part.strip("\n"))
            first, _, rest = "\n".join(parts).partition("\n")
            lines.append(f"{indent} {marker} {first}")
            if rest:
                lines.append(rest)
            number += 1
        text = "\n".join(lines)
        return "\n" + text + "\n" if depth == 0 else text

    visit_ordered_list = visit_bullet_list

    def visit_table(self, node, depth, quote):
        rows = []
        for section in node.children:
            for row in section.children:
                rows.append([self.join_children(cell).strip() for cell in row.children])
        if not rows:
            return None
        columns = max(len(row) for row in rows)
        rows = [row + [""] * (columns - len(row)) for row in rows]
        col_widths = [max(display_width(row[i]) for row in rows) for i in range(columns)]

        color = self.config.color("table")
        top = paint("┌" + "┬".join("─" * (w + 2) for w in col_widths) + "┐", color)
        sep = paint("├" + "┼".join("─" * (w + 2) for w in col_widths) + "┤", color)
        bottom = paint("└" + "┴".join("─" * (w + 2) for w in col_widths) + "┘", color)
        bar = paint("│", color)

        def render_row(row):
            cells = [" " + cell + " " * (w - display_width(cell) + 1) for cell, w in zip(row, col_widths)]
            return bar + bar.join(cells) + bar

        lines = [top, render_row(rows[0]), sep]
        lines.extend(render_row(row) for row in rows[1:])
        lines.append(bottom)
        return "\n" + "\n".join(lines) + "\n"

    def visit_fence(self, node, depth, quote):
        info = (node.info or "").strip()
        language = info.split()[0] if info else ""
        code = node.content[:-1] if node.content.endswith("\n") else node.content
        self.registry.register(language or "text", code)

        raw_lines = code.split("\n")
        if self.config.syntax_highlighting:
            plain = raw_lines
            styled = highlight_code(code, language, self.config.syntax_theme, self.config.syntax_bg)
        else:
            plain = [line.expandtabs(TAB_WIDTH) for line in raw_lines]
            width = max(display_width(line) for line in plain)
            plain = [" " + line + " " * (width - display_width(line) + 1) for line in plain]
            styled = [paint(line, self.config.color("code")) for line in plain]

        lines = []
        for raw, line in zip(plain, styled):
            self.code_line += 1
            if 0 < self.highlight_count < self.code_line:
                line = paint(strip_ansi_codes(raw).expandtabs(TAB_WIDTH), self.config.color("code_pending"))
            if self.code_line == self.highlight_count:
                line += _CURSOR
            lines.append(line)
        return "\n" + "\n".join(lines) + "\n"

    visit_code_block = visit_fence


def _parser() -> MarkdownIt:
    return MarkdownIt("commonmark").enable(["strikethrough", "table"])


def style(document: str, config, highlight_count: int = 0, base_dir=None, width: int = 80) -> StyledSlide:
    """Style ``document`` for the terminal.

    Front matter is split off and ignored. Raises :class:`ParseFailure` when
    the parser rejects the document.
    """
    _front_matter, body = split_front_matter(document)
    try:
        tree = SyntaxTreeNode(_parser().parse(body))
    except Exception as e:
        raise ParseFailure(f"Could not prettify markdown, error: {e}") from e

    styler = _Styler(config, highlight_count, base_dir, width)
    lines = (styler.visit(tree) or "").split("\n")
    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()

    cursor_line = None
    for i, line in enumerate(lines):
        if _CURSOR in line:
            cursor_line = i
            lines[i] = line.replace(_CURSOR, "")
    return StyledSlide("\n".join(lines), styler.registry, styler.code_line, cursor_line)
