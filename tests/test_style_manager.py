"""Tests for style sheets and the cascading resolver."""

from __future__ import annotations

import logging

import pytest

from md2paper.style_manager import (
    PRESETS,
    StyleResolver,
    StyleRule,
    StyleSheet,
    TextStyle,
)


def resolver_for(text: str) -> StyleResolver:
    sheet = StyleSheet.parse(text)
    assert sheet.errors == ()
    return StyleResolver(sheet)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

class TestParse:
    def test_simple_rule(self) -> None:
        sheet = StyleSheet.parse("h1 { color: red; bold: true; }")
        assert sheet.rules == (StyleRule(("h1",), TextStyle(color="red", bold=True)),)

    def test_comma_separated_selectors(self) -> None:
        sheet = StyleSheet.parse("h4, h5 , h6 { italic: yes }")
        assert [rule.selector for rule in sheet.rules] == [("h4",), ("h5",), ("h6",)]
        assert all(rule.style.italic for rule in sheet.rules)

    def test_descendant_selector(self) -> None:
        sheet = StyleSheet.parse("codeblock  lang-tag { dim: on; }")
        assert sheet.rules[0].selector == ("codeblock", "lang-tag")

    def test_background_aliases(self) -> None:
        sheet = StyleSheet.parse("a { background: blue; } b { background-color: #00ff00; }")
        assert [rule.style.background for rule in sheet.rules] == ["blue", "#00ff00"]

    def test_comments_are_ignored(self) -> None:
        sheet = StyleSheet.parse("/* heading */\nh1 { bold: true; } /* trailing */")
        assert len(sheet.rules) == 1
        assert sheet.errors == ()


class TestParseErrors:
    def test_unknown_attribute_drops_rule(self) -> None:
        sheet = StyleSheet.parse("a { color: red; }\nb { sparkle: true; }\n")
        assert len(sheet.rules) == 1
        assert len(sheet.errors) == 1
        assert sheet.errors[0].line == 2
        assert "sparkle" in str(sheet.errors[0])

    def test_invalid_color(self) -> None:
        sheet = StyleSheet.parse("a { color: not-a-colour; }")
        assert sheet.rules == ()
        assert "invalid color" in sheet.errors[0].message

    def test_invalid_boolean(self) -> None:
        sheet = StyleSheet.parse("a { bold: maybe; }")
        assert sheet.rules == ()
        assert "invalid boolean" in sheet.errors[0].message

    def test_malformed_declaration_drops_whole_rule(self) -> None:
        sheet = StyleSheet.parse("a { color: red; bold }")
        assert sheet.rules == ()

    def test_line_numbers_survive_comments(self) -> None:
        sheet = StyleSheet.parse("/* one\ntwo */\nx { bold: nope; }")
        assert sheet.errors[0].line == 3

    def test_errors_are_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="md2paper.style_manager"):
            StyleSheet.parse("a { glow: 1; }", source="mine.paper")
        assert "mine.paper:1" in caplog.text

    def test_good_rules_around_a_bad_one_survive(self) -> None:
        sheet = StyleSheet.parse("a { bold: true; } b { nope: 1; } c { italic: true; }")
        assert [rule.selector for rule in sheet.rules] == [("a",), ("c",)]


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------

class TestMatching:
    RULE = StyleRule(("blockquote", "prefix"), TextStyle(bold=True))

    def test_last_token_is_anchored(self) -> None:
        assert self.RULE.matches(("paper", "blockquote", "prefix"))
        assert not self.RULE.matches(("paper", "blockquote"))

    def test_ancestors_may_skip_scopes(self) -> None:
        assert self.RULE.matches(("paper", "blockquote", "ul", "li", "prefix"))

    def test_ancestor_must_be_present(self) -> None:
        assert not self.RULE.matches(("paper", "ul", "li", "prefix"))

    def test_wildcard(self) -> None:
        rule = StyleRule(("*", "prefix"), TextStyle())
        assert rule.matches(("paper", "li", "prefix"))
        assert not StyleRule(("*",), TextStyle()).matches(())


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

class TestResolver:
    def test_children_inherit(self) -> None:
        resolver = resolver_for("paper { color: black; }")
        assert resolver.resolve("strong", ("paper",)).color == "black"

    def test_later_rules_win_per_attribute(self) -> None:
        resolver = resolver_for("li { bold: true; color: blue; } li { color: red; }")
        style = resolver.resolve("li", ("paper", "ul"))
        assert style.color == "red"
        assert style.bold is True

    def test_unset_attribute_does_not_clear(self) -> None:
        resolver = resolver_for("paper { italic: true; } h1 { bold: true; }")
        style = resolver.resolve("h1", ("paper",))
        assert style.italic is True
        assert style.bold is True

    def test_pseudo_token(self) -> None:
        resolver = resolver_for("h2 prefix { color: blue; }")
        assert resolver.resolve("h2", ("paper",), pseudo="prefix").color == "blue"
        assert resolver.resolve("h2", ("paper",)).color is None

    def test_unknown_pseudo_is_harmless(self) -> None:
        resolver = resolver_for("h2 { bold: true; }")
        assert resolver.resolve("h2", ("paper",), pseudo="sparkle").bold is True

    def test_language_token(self) -> None:
        resolver = resolver_for("codeblock python { color: green; }")
        assert resolver.resolve("codeblock", ("paper",), language="python").color == "green"
        assert resolver.resolve("codeblock", ("paper",), language="rust").color is None

    def test_resolution_is_memoized(self) -> None:
        resolver = resolver_for("li { bold: true; }")
        first = resolver.resolve("li", ("paper", "ul"))
        assert resolver.resolve("li", ("paper", "ul")) is first
        assert resolver.resolve_path(("paper", "ul", "li")) is first

    def test_empty_sheet(self) -> None:
        resolver = StyleResolver()
        assert resolver.paper_style() == TextStyle()
        assert resolver.paper_style().is_plain


class TestTextStyle:
    def test_derive_ignores_none(self) -> None:
        style = TextStyle(color="red").derive(color=None, bold=True)
        assert style == TextStyle(color="red", bold=True)

    def test_to_rich(self) -> None:
        rich_style = TextStyle(color="red", background="white", strikethrough=True).to_rich()
        assert rich_style.color.name == "red"
        assert rich_style.bgcolor.name == "white"
        assert rich_style.strike is True


# ---------------------------------------------------------------------------
# Presets
# ---------------------------------------------------------------------------

class TestPresets:
    @pytest.mark.parametrize("name", PRESETS)
    def test_presets_parse_cleanly(self, name: str) -> None:
        sheet = StyleSheet.from_preset(name)
        assert sheet.rules
        assert sheet.errors == ()

    @pytest.mark.parametrize("name", PRESETS)
    def test_presets_style_shadow(self, name: str) -> None:
        resolver = StyleResolver(StyleSheet.from_preset(name))
        assert resolver.shadow_style().background

    def test_mono_leaves_paper_to_the_terminal(self) -> None:
        resolver = StyleResolver(StyleSheet.from_preset("mono"))
        assert resolver.paper_style().background is None
        assert StyleResolver(StyleSheet.from_preset("default")).paper_style().background == "#fdfcf7"

    def test_unknown_preset(self) -> None:
        with pytest.raises(ValueError, match="Unknown preset"):
            StyleSheet.from_preset("neon")

    def test_extend_lets_user_rules_win(self) -> None:
        sheet = StyleSheet.from_preset("default").extend(
            StyleSheet.parse("paper { background-color: red; }")
        )
        assert StyleResolver(sheet).paper_style().background == "red"

    def test_from_file(self, tmp_path) -> None:
        path = tmp_path / "mine.paper"
        path.write_text("strong { color: blue; }", encoding="utf-8")
        sheet = StyleSheet.from_file(path)
        assert sheet.path == path
        assert sheet.rules[0].style.color == "blue"
