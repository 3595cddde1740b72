"""Style configuration.

A project carries one ``style.yml`` of ``key: value`` lines. It is read with
PyYAML and validated once into a frozen :class:`StyleConfig`, so a missing
or malformed flag fails before anything is drawn.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .colors import parse_color
from .errors import MissingStyleKey, StyleError

logger = logging.getLogger(__name__)

STYLE_FILE = "style.yml"

DEFAULT_STYLE = """\
# This file contains the default style settings for the terminal markdown renderer.
# Colors are rich style definitions: "[bold|dim|italic|underline] <color> [on <color>]".

# Markdown styles
h1: red
h2: yellow
h3: green
h4: cyan
h5: blue
h6: purple
code: black on white
code_pending: dim white
inline_code: bright_green
emphasis: italic
strong: bold
strikethrough: dim
blockquote: black on white
ordered_list_bullet: yellow
unordered_list_bullet: yellow
ordered_list: white
unordered_list: white
bullet_glyphs: "•◦▪▸"
link_text: bright_green
link_url: blue
thematic_break: white
table: white
image: cyan
highlight: black on yellow

# Terminal styles

# clear wipes the terminal (and its scrollback) before every draw
clear: false

box: true
box_color: white

# vertical_alignment will vertically align the text to the middle of the terminal
vertical_alignment: true

# horizontal_alignment will horizontally align the text to the middle of the terminal
horizontal_alignment: true

# terminal picks where vertical padding goes: "default" pads above the slide,
# "warp" pads below it for terminals that scroll new output from the top
terminal: default

# h1_figlet draws level-one headings as FIGlet art
h1_figlet: false
figlet_font: smblock

# syntax_highlighting will highlight the code syntax
syntax_highlighting: true
syntax_theme: solarized-light
#themes: any Pygments style, e.g. monokai, solarized-dark, solarized-light, default
syntax_bg: false

progress: true
progress_color: dim white

# runtime map is used to store the runtimes for different languages
runtime_map:
  python: python3
  sh: sh
  bash: bash
  javascript: node
  typescript: ts-node
  c: gcc
  cpp: g++
  java: javac
  go: go run
  rust: rustc
  ruby: ruby
  php: php
  swift: swift
  kotlin: kotlinc
"""

FLAG_KEYS = (
    "clear",
    "box",
    "vertical_alignment",
    "horizontal_alignment",
    "syntax_highlighting",
    "syntax_bg",
    "progress",
)

COLOR_DEFAULTS = {
    "h1": "red",
    "h2": "yellow",
    "h3": "green",
    "h4": "cyan",
    "h5": "blue",
    "h6": "purple",
    "code": "black on white",
    "code_pending": "dim white",
    "inline_code": "bright_green",
    "emphasis": "italic",
    "strong": "bold",
    "strikethrough": "",
    "blockquote": "black on white",
    "ordered_list_bullet": "yellow",
    "unordered_list_bullet": "yellow",
    "ordered_list": "",
    "unordered_list": "",
    "link_text": "bright_green",
    "link_url": "blue",
    "thematic_break": "white",
    "table": "",
    "image": "cyan",
    "highlight": "black on yellow",
    "box_color": "",
    "progress_color": "dim",
}

TERMINALS = ("default", "warp")

DEFAULT_GLYPHS = "•◦▪▸"


class _StyleLoader(yaml.SafeLoader):
    """Safe loader where only true and false are booleans, not yes, no, on or off."""


_BOOL_TAG = "tag:yaml.org,2002:bool"
_StyleLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != _BOOL_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
_StyleLoader.add_implicit_resolver(_BOOL_TAG, re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"), list("tTfF"))


def _load(text: str):
    return yaml.load(text, Loader=_StyleLoader)


def parse_flag(raw: dict, key: str) -> bool:
    if key not in raw:
        raise MissingStyleKey(key)
    value = raw[key]
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text not in ("true", "false"):
        raise StyleError(f"style key '{key}' must be true or false, got '{value}'")
    return text == "true"


def _optional(raw: dict, key: str, default):
    value = raw.get(key)
    if value is None:
        logger.warning("style key '%s' missing, using '%s'", key, default)
        return default
    return value


@dataclass(frozen=True)
class StyleConfig:
    """Validated style settings. ``colors`` holds SGR sequences, not specs."""

    clear: bool
    box: bool
    vertical_alignment: bool
    horizontal_alignment: bool
    syntax_highlighting: bool
    syntax_bg: bool
    progress: bool
    h1_figlet: bool = False
    syntax_theme: str = "default"
    terminal: str = "default"
    figlet_font: str = "smblock"
    bullet_glyphs: str = DEFAULT_GLYPHS
    colors: dict = field(default_factory=dict)
    runtimes: dict = field(default_factory=dict)

    def color(self, key: str) -> str:
        return self.colors.get(key, "")

    def heading_color(self, level: int) -> str:
        """SGR sequence for a heading level; levels beyond six stay unstyled."""
        if not 1 <= level <= 6:
            return ""
        return "\x1b[1m" + self.colors.get(f"h{level}", "")

    @property
    def pads_after(self) -> bool:
        return self.terminal == "warp"

    @classmethod
    def from_mapping(cls, raw) -> StyleConfig:
        if not isinstance(raw, dict):
            raise StyleError("style file must be a mapping of key: value lines")
        flags = {key: parse_flag(raw, key) for key in FLAG_KEYS}
        flags["h1_figlet"] = parse_flag(raw, "h1_figlet") if "h1_figlet" in raw else False

        colors = {}
        for key, default in COLOR_DEFAULTS.items():
            spec = raw.get(key, default)
            colors[key] = parse_color("" if spec is None else spec)

        terminal = str(_optional(raw, "terminal", "default")).strip().lower()
        if terminal not in TERMINALS:
            raise StyleError(f"style key 'terminal' must be one of {', '.join(TERMINALS)}, got '{terminal}'")

        glyphs = str(_optional(raw, "bullet_glyphs", DEFAULT_GLYPHS))
        if len(glyphs) != 4:
            logger.warning("bullet_glyphs needs four glyphs, got %r; using defaults", glyphs)
            glyphs = DEFAULT_GLYPHS

        runtimes = raw.get("runtime_map", raw.get("-runtime_map"))
        if runtimes is None:
            logger.warning("style has no runtime_map, using the default runtimes")
            runtimes = _load(DEFAULT_STYLE)["runtime_map"]
        elif not isinstance(runtimes, dict):
            raise StyleError("runtime_map must map language names to executables")

        return cls(
            syntax_theme=str(_optional(raw, "syntax_theme", "default")),
            terminal=terminal,
            figlet_font=str(_optional(raw, "figlet_font", "smblock")),
            bullet_glyphs=glyphs,
            colors=colors,
            runtimes={str(k).lower(): str(v) for k, v in runtimes.items()},
            **flags,
        )

    @classmethod
    def default(cls) -> StyleConfig:
        return cls.from_mapping(_load(DEFAULT_STYLE))


def parse_style(text: str) -> StyleConfig:
    try:
        raw = _load(text)
    except yaml.YAMLError as e:
        raise StyleError(f"could not read style file: {e}") from e
    return StyleConfig.from_mapping(raw or {})


def load_style(path) -> StyleConfig:
    """Read and validate the style file at ``path``.

    A missing file is recoverable: the default style applies and a warning is
    logged. Anything else wrong with the file is a :class:`StyleError`.
    """
    path = Path(path)
    if not path.exists():
        logger.warning("%s not found, using the default style", path)
        return StyleConfig.default()
    return parse_style(path.read_text(encoding="utf-8"))
