"""
Tests for the Markdown styler
"""

import dataclasses
import logging

import pytest

from dough import styler
from dough.colors import RESET, strip_ansi_codes
from dough.errors import CodeBlockNotFound, ParseFailure
from dough.styler import (
    CodeRegistry,
    remove_comments,
    split_front_matter,
    strikethrough,
    style,
)


def plain(text):
    return strip_ansi_codes(text)


class TestDocumentPrep:
    """Tests for front matter and comment handling."""

    def test_front_matter_is_split(self):
        front_matter, body = split_front_matter("---\ntitle: x\n---\n# Hi")
        assert front_matter == ["title: x"]
        assert body == "# Hi"

    def test_no_front_matter(self):
        assert split_front_matter("# Hi\n---\n") == ([], "# Hi\n---\n")

    def test_unterminated_front_matter(self):
        assert split_front_matter("---\ntitle: x\n") == (["title: x", ""], "")

    def test_front_matter_is_not_rendered(self, config):
        assert "title" not in style("---\ntitle: x\n---\n# Hi", config).text

    def test_remove_comments_across_lines(self):
        assert remove_comments("a<!-- x\ny -->b") == "ab"


class TestHeadings:
    """Tests for heading styling."""

    def test_level_one(self, config):
        assert style("# Title", config).text == "\x1b[1m\x1b[31mTitle" + RESET

    def test_level_six(self, config):
        assert style("###### Six", config).text == "\x1b[1m\x1b[35mSix" + RESET

    def test_figlet_heading(self, config):
        config = dataclasses.replace(config, h1_figlet=True, figlet_font="standard")
        assert len(style("# Hi", config).text.split("\n")) > 1

    def test_unknown_figlet_font(self, config, caplog):
        config = dataclasses.replace(config, h1_figlet=True, figlet_font="no-such-font")
        with caplog.at_level(logging.WARNING):
            text = style("# Hi", config).text
        assert len(text.split("\n")) > 1
        assert "no-such-font" in caplog.text


class TestInline:
    """Tests for inline elements."""

    def test_paragraph(self, config):
        assert style("Body", config).text == "Body"

    def test_strikethrough_helper(self):
        assert strikethrough("ab") == "a\u0336b\u0336"
        assert strikethrough("\x1b[31mab") == "\x1b[31ma\u0336b\u0336"

    def test_strikethrough(self, config):
        assert "a\u0336b\u0336" in style("~~ab~~", config).text

    def test_link(self, config):
        text = style("[site](http://example.com)", config).text
        assert plain(text) == "site - http://example.com"
        assert config.color("link_url") + "http://example.com" in text

    def test_autolink(self, config):
        assert plain(style("<http://example.com>", config).text) == "http://example.com"

    def test_inline_code(self, config):
        text = style("run `make`", config).text
        assert config.color("inline_code") + "make" + RESET in text

    def test_nested_emphasis_keeps_outer_color(self, config):
        text = style("**a *b* c**", config).text
        assert plain(text) == "a b c"
        assert text.endswith(config.color("strong") + " c" + RESET)

    def test_soft_breaks_keep_lines(self, config):
        assert plain(style("one\ntwo", config).text) == "one\ntwo"


class TestBlocks:
    """Tests for block elements."""

    def test_unordered_list(self, config):
        assert plain(style("- a\n- b", config).text) == " • a\n • b"

    def test_nested_list_changes_glyph(self, config):
        assert plain(style("- a\n  - b", config).text) == " • a\n   ◦ b"

    def test_ordered_list_start(self, config):
        assert plain(style("3. x\n4. y", config).text) == " 3. x\n 4. y"

    def test_blockquote(self, config):
        assert plain(style("> quoted", config).text) == "│ quoted"

    def test_nested_blockquote(self, config):
        assert plain(style("> > deep", config).text) == "│ │ deep"

    def test_thematic_break(self, config):
        assert plain(style("a\n\n---\n\nb", config).text).split("\n")[2] == "─" * styler.RULE_WIDTH

    def test_table(self, config):
        text = plain(style("| a | b |\n|---|---|\n| 1 | 2 |", config).text)
        assert text.split("\n") == [
            "┌───┬───┐",
            "│ a │ b │",
            "├───┼───┤",
            "│ 1 │ 2 │",
            "└───┴───┘",
        ]

    def test_image_fallback(self, config):
        assert plain(style("![alt](missing.png)", config).text) == "Image: alt (missing.png)"

    def test_image_rendering(self, config, tmp_path):
        from PIL import Image

        Image.new("RGB", (4, 4), (255, 0, 0)).save(tmp_path / "red.png")
        text = style("![red](red.png)", config, base_dir=tmp_path).text
        assert "\x1b[38;5;196;48;5;196m▄" in text
        assert "Image:" not in text


class TestCodeBlocks:
    """Tests for fenced code and the code registry."""

    DOC = "```python\nprint(1)\n```\n\nSome text\n\n```sh\necho hi\n```\n\n```\nplain\n```"

    def test_registry_order(self, config):
        registry = style(self.DOC, config).registry
        assert len(registry) == 3
        assert registry.get(1).language == "python"
        assert registry.get(1).code == "print(1)"
        assert registry.get(2).language == "sh"
        assert registry.get(2).code == "echo hi"
        assert registry.get(3).language == "text"

    def test_registry_missing_index(self, config):
        registry = style("```a\nx\n```\n\n```b\ny\n```", config).registry
        assert [block.index for block in registry] == [1, 2]
        with pytest.raises(CodeBlockNotFound):
            registry.get(3)

    def test_registry_is_rebuilt(self, config):
        first = style(self.DOC, config).registry
        second = style("no code", config).registry
        assert len(first) == 3
        assert len(second) == 0

    def test_registry_clear(self):
        registry = CodeRegistry()
        registry.register("python", "x")
        registry.clear()
        assert len(registry) == 0
        assert registry.register("python", "y") == 1

    def test_plain_code_is_padded(self, config):
        assert style("```\nab\nabcd\n```", config).text.split("\n") == [
            "\x1b[30;47m ab   " + RESET,
            "\x1b[30;47m abcd " + RESET,
        ]

    def test_tabs_expand_without_highlighting(self, config):
        text = style("```\n\tx\n```", config).text
        assert "\t" not in text
        assert "    x" in text

    def test_syntax_highlighting(self, config):
        config = dataclasses.replace(config, syntax_highlighting=True)
        slide = style("```python\nprint(1)\n```", config)
        assert "\x1b[38;5;" in slide.text
        assert plain(slide.text) == "print(1)"
        assert slide.registry.get(1).code == "print(1)"

    def test_unknown_language_falls_back(self, config, caplog):
        config = dataclasses.replace(config, syntax_highlighting=True)
        with caplog.at_level(logging.WARNING):
            slide = style("```nosuchlang\nx = 1\n```", config)
        assert plain(slide.text) == "x = 1"
        assert slide.registry.get(1).language == "nosuchlang"

    def test_unknown_theme_falls_back(self, config, caplog):
        config = dataclasses.replace(config, syntax_highlighting=True, syntax_theme="base16-ocean.light")
        with caplog.at_level(logging.WARNING):
            slide = style("```python\nx = 1\n```", config)
        assert plain(slide.text) == "x = 1"
        assert "base16-ocean.light" in caplog.text

    def test_syntax_background(self, config):
        config = dataclasses.replace(config, syntax_highlighting=True, syntax_bg=True, syntax_theme="monokai")
        lines = style("```python\nx = 1\ny = 22\n```", config).text.split("\n")
        assert all(line.startswith("\x1b[48;5;") for line in lines)
        assert len({len(plain(line)) for line in lines}) == 1

    def test_reveal_budget(self, config):
        slide = style("```\na\nb\nc\n```", config, highlight_count=2)
        lines = slide.text.split("\n")
        assert slide.code_lines == 3
        assert slide.cursor_line == 1
        assert lines[1] == "\x1b[30;47m b " + RESET
        assert lines[2] == config.color("code_pending") + " c " + RESET

    def test_reveal_budget_spans_blocks(self, config):
        slide = style("```\na\nb\n```\n\n```\nc\nd\n```", config, highlight_count=3)
        assert slide.code_lines == 4
        assert slide.cursor_line == 3
        assert plain(slide.text.split("\n")[3]) == " c "

    def test_no_budget_no_cursor(self, config):
        slide = style("```\na\nb\n```", config)
        assert slide.cursor_line is None
        assert config.color("code_pending") not in slide.text


class TestParseFailure:
    """Tests for parser errors."""

    def test_parser_error_is_wrapped(self, config, monkeypatch):
        class Broken:
            def parse(self, text):
                raise ValueError("boom")

        monkeypatch.setattr(styler, "_parser", lambda: Broken())
        with pytest.raises(ParseFailure) as exc:
            style("# Hi", config)
        assert "boom" in str(exc.value)
        assert exc.value.exit_code == 2
