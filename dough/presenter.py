"""Navigation state machine: one key press, one render-and-transition cycle.

Slides are ``1.md``, ``2.md``, ... in the project directory. Nothing is kept
between slides: every full redraw re-reads the slide and ``style.yml`` from
disk, so edits made while presenting show up on the next key press.

Modes
-----
highlight mode
    The whole slide is shown. ``visible_lines`` is the number of code lines
    revealed so far; Down/j reveals one more, Up/k hides one.
scroll mode
    ``visible_lines`` is the number of lines trimmed from the bottom of the
    slide. It starts with everything trimmed; Down/j reveals a line, Up/k
    hides one again.

Keys: ←/→ (h/l) change slide, t toggles the mode, Ctrl-r reloads, digits run
the matching code block (0 is block 10), q/Esc/Ctrl-c quit.
"""

from __future__ import annotations

import curses
import logging
from dataclasses import dataclass, field
from pathlib import Path

from .colors import RESET, paint, parse_color
from .errors import CodeBlockNotFound, MissingSlide, ParseFailure
from .layout import ScrollBounds, layout, trim_buffer
from .style import STYLE_FILE, StyleConfig, load_style
from .styler import CodeRegistry, StyledSlide, remove_comments, style
from .terminal import CTRL_C, CTRL_R, ESC, HOME, WIPE

logger = logging.getLogger(__name__)

SLIDE_SUFFIX = ".md"
FAREWELL = "Thanks for watching!"
PROGRESS_WIDTH = 20

QUIT_KEYS = (ord("q"), ord("Q"), ESC, CTRL_C)
NEXT_KEYS = (curses.KEY_RIGHT, ord("l"), ord("L"))
PREV_KEYS = (curses.KEY_LEFT, ord("h"), ord("H"))
UP_KEYS = (curses.KEY_UP, ord("k"), ord("K"))
DOWN_KEYS = (curses.KEY_DOWN, ord("j"), ord("J"))
TOGGLE_KEY = ord("t")


@dataclass
class RenderState:
    current_slide: int = 1
    highlight_mode: bool = True
    visible_lines: int = 0
    needs_full_redraw: bool = True
    # Set when visible_lines must be re-derived from the next render's bounds.
    rebaseline: bool = True

    def reset(self):
        self.visible_lines = 0
        self.needs_full_redraw = True
        self.rebaseline = True


@dataclass
class RenderContext:
    """Everything one render cycle produced, threaded through the presenter."""

    config: StyleConfig | None = None
    source: str = ""
    styled: StyledSlide | None = None
    frame: str = ""
    bounds: ScrollBounds = field(default_factory=ScrollBounds)

    @property
    def registry(self) -> CodeRegistry:
        return self.styled.registry if self.styled is not None else CodeRegistry()

    def reset(self):
        self.source = ""
        self.styled = None
        self.frame = ""
        self.bounds = ScrollBounds()


class Presenter:
    def __init__(self, project_dir, terminal, runner=None, highlight_mode: bool = True):
        self.project_dir = Path(project_dir)
        self.terminal = terminal
        self.runner = runner
        self.state = RenderState(highlight_mode=highlight_mode)
        self.context = RenderContext()
        self.finished = False
        self._restyle = True

    def slide_path(self, number: int) -> Path:
        return self.project_dir / f"{number}{SLIDE_SUFFIX}"

    def slide_count(self) -> int:
        count = 0
        while self.slide_path(count + 1).exists():
            count += 1
        return count

    def load(self):
        """Re-read the current slide and the style file."""
        path = self.slide_path(self.state.current_slide)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise MissingSlide(f"slide {self.state.current_slide} not found at {path}") from None
        self.context.source = remove_comments(text)
        self.context.config = load_style(self.project_dir / STYLE_FILE)

    def limits(self) -> ScrollBounds:
        if self.state.highlight_mode:
            code_lines = self.context.styled.code_lines if self.context.styled else 0
            return ScrollBounds(upper=code_lines, lower=0)
        return self.context.bounds

    def render(self):
        """Style and lay out the current slide, recomputing its scroll bounds."""
        ctx, state = self.context, self.state
        columns, rows = self.terminal.size()
        highlight_count = state.visible_lines if state.highlight_mode else 0
        try:
            styled = style(ctx.source, ctx.config, highlight_count, base_dir=self.project_dir, width=columns)
        except ParseFailure as e:
            logger.error("slide %d: %s", state.current_slide, e)
            styled = StyledSlide(paint(str(e), parse_color("red")))

        line_index = None
        if highlight_count and styled.cursor_line is not None:
            line_index = styled.text.count("\n") - styled.cursor_line
        reserved = 1 if ctx.config.progress else 0
        ctx.frame, ctx.bounds = layout(styled.text, ctx.config, line_index, (columns, rows), reserved)
        ctx.styled = styled

        if state.rebaseline:
            state.visible_lines = 0 if state.highlight_mode else ctx.bounds.upper
            state.rebaseline = False
        state.visible_lines = self.limits().clamp(state.visible_lines)

    def visible_text(self) -> str:
        if self.state.highlight_mode:
            return self.context.frame
        return trim_buffer(self.context.frame, self.state.visible_lines)

    def progress_bar(self) -> str:
        total = max(self.slide_count(), self.state.current_slide)
        done = round(PROGRESS_WIDTH * self.state.current_slide / total)
        bar = "━" * done + "─" * (PROGRESS_WIDTH - done)
        return paint(f" {bar} {self.state.current_slide}/{total}", self.context.config.color("progress_color"))

    def draw(self):
        config = self.context.config
        out = (WIPE if config.clear else HOME) + self.visible_text() + RESET
        if config.progress:
            _columns, rows = self.terminal.size()
            out += f"\x1b[{rows};1H" + self.progress_bar()
        self.terminal.write(out)

    def change_slide(self, number: int):
        self.state.current_slide = number
        self.state.reset()
        self.context.reset()

    def scroll(self, step: int):
        state = self.state
        state.visible_lines = self.limits().clamp(state.visible_lines + step)
        self._restyle = state.highlight_mode

    def run_block(self, index: int):
        if self.runner is None:
            return
        try:
            block = self.context.registry.get(index)
        except CodeBlockNotFound as e:
            self.runner.report(f"\n[{index}] {e}\n")
            return
        self.runner.submit(block, self.context.config.runtimes)

    def handle_key(self, key: int) -> bool:
        """Apply one key press. Returns False once the presentation is over."""
        state = self.state
        if key in QUIT_KEYS:
            return False
        if key in NEXT_KEYS:
            if not self.slide_path(state.current_slide + 1).exists():
                self.finished = True
                return False
            self.change_slide(state.current_slide + 1)
        elif key in PREV_KEYS:
            if state.current_slide > 1:
                self.change_slide(state.current_slide - 1)
        elif key in UP_KEYS:
            self.scroll(-1 if state.highlight_mode else 1)
        elif key in DOWN_KEYS:
            self.scroll(1 if state.highlight_mode else -1)
        elif key == TOGGLE_KEY:
            state.highlight_mode = not state.highlight_mode
            state.reset()
        elif key == CTRL_R:
            state.needs_full_redraw = True
        elif ord("0") <= key <= ord("9"):
            self.run_block(key - ord("0") or 10)
        return True

    def refresh(self):
        """Reload and re-render whatever the last transition invalidated."""
        if self.state.needs_full_redraw:
            self.load()
            self.state.needs_full_redraw = False
            self._restyle = True
        if self._restyle:
            self.render()
            self._restyle = False

    def run(self) -> int:
        """Present until the user quits or steps past the last slide."""
        if not self.slide_path(1).exists():
            raise MissingSlide(f"no first slide at {self.slide_path(1)}")
        try:
            while True:
                self.refresh()
                self.draw()
                if not self.handle_key(self.terminal.read_key()):
                    break
        finally:
            if self.runner is not None:
                self.runner.close()
        return 0
