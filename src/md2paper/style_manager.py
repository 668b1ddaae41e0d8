"""Cascading terminal style sheets.

A style sheet is an ordered list of rules.  Each rule pairs a selector
(a sequence of scope tokens such as ``blockquote prefix``) with a set of
text attributes.  :class:`StyleResolver` merges every rule that matches a
scope path, parent first, later rules overriding earlier ones attribute by
attribute.

Sheets are written in a small CSS-like syntax::

    /* comments are allowed */
    paper { color: #222222; background-color: white; }
    codeblock lang-tag { italic: true; }
    h4, h5, h6 { bold: true; }
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, fields
from importlib import resources
from pathlib import Path
from typing import Iterable, Optional

from rich.color import Color, ColorParseError
from rich.style import Style

from md2paper.exceptions import StyleSheetError

LOGGER = logging.getLogger(__name__)

PRESETS = ["default", "dark", "mono"]

_COMMENT_RE = re.compile(r"/\*.*?\*/", re.S)
_BLOCK_RE = re.compile(r"([^{}]*)\{([^{}]*)\}")

# Sheet attribute name -> TextStyle field.
ATTRIBUTES = {
    "color": "color",
    "background-color": "background",
    "background": "background",
    "bold": "bold",
    "italic": "italic",
    "underline": "underline",
    "dim": "dim",
    "strikethrough": "strikethrough",
}

_COLOR_FIELDS = {"color", "background"}
_BOOLEANS = {"true": True, "yes": True, "on": True, "false": False, "no": False, "off": False}


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TextStyle:
    """Visual attributes of a run of text.

    ``None`` means "not set": the value is inherited from the enclosing
    scope when styles are merged.
    """

    color: Optional[str] = None
    background: Optional[str] = None
    bold: Optional[bool] = None
    italic: Optional[bool] = None
    underline: Optional[bool] = None
    dim: Optional[bool] = None
    strikethrough: Optional[bool] = None

    # -- convenience helpers ------------------------------------------------

    def derive(self, **overrides) -> TextStyle:
        """Return a copy with selected fields overridden.

        ``None`` overrides are ignored, so an unset attribute never clears
        an inherited one.
        """
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        for key, value in overrides.items():
            if key in values and value is not None:
                values[key] = value
        return TextStyle(**values)

    def merge(self, other: TextStyle) -> TextStyle:
        """Return this style with every attribute set in *other* applied."""
        return self.derive(**{f.name: getattr(other, f.name) for f in fields(other)})

    def to_rich(self) -> Style:
        return Style(
            color=self.color,
            bgcolor=self.background,
            bold=self.bold,
            italic=self.italic,
            underline=self.underline,
            dim=self.dim,
            strike=self.strikethrough,
        )

    @classmethod
    def from_rich(cls, style: Style) -> TextStyle:
        return cls(
            color=style.color.name if style.color else None,
            background=style.bgcolor.name if style.bgcolor else None,
            bold=style.bold,
            italic=style.italic,
            underline=style.underline,
            dim=style.dim,
            strikethrough=style.strike,
        )

    @property
    def is_plain(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))


@dataclass(frozen=True)
class StyleRule:
    """One selector and the attributes it sets."""

    selector: tuple[str, ...]
    style: TextStyle

    def matches(self, path: tuple[str, ...]) -> bool:
        """Whether this rule applies to the scope *path*.

        The last selector token must name the last path token; the other
        selector tokens must appear, in order, among the earlier ones.
        ``*`` matches any single token.
        """
        if not self.selector or not path:
            return False
        if not _token_matches(self.selector[-1], path[-1]):
            return False
        idx = len(path) - 2
        for token in reversed(self.selector[:-1]):
            while idx >= 0 and not _token_matches(token, path[idx]):
                idx -= 1
            if idx < 0:
                return False
            idx -= 1
        return True


def _token_matches(token: str, scope: str) -> bool:
    return token == "*" or token == scope


# ---------------------------------------------------------------------------
# Style sheet
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StyleSheet:
    """An immutable, ordered set of :class:`StyleRule`.

    Usage::

        sheet = StyleSheet.from_preset("default")
        sheet = sheet.extend(StyleSheet.from_file("~/.config/md2paper/paper.style"))
    """

    rules: tuple[StyleRule, ...] = ()
    errors: tuple[StyleSheetError, ...] = ()
    path: Optional[Path] = None

    # -- constructors -------------------------------------------------------

    @classmethod
    def parse(cls, text: str, *, source: str = "<string>", path: Optional[Path] = None) -> StyleSheet:
        """Parse sheet *text*.

        Malformed rules are reported on :attr:`errors` (and logged) and
        left out; parsing itself never fails.
        """
        # Keep newlines so reported line numbers stay right.
        text = _COMMENT_RE.sub(lambda m: "\n" * m.group().count("\n"), text)
        rules: list[StyleRule] = []
        errors: list[StyleSheetError] = []
        end = 0
        for match in _BLOCK_RE.finditer(text):
            head = match.group(1)
            line = text.count("\n", 0, match.start(1) + len(head) - len(head.lstrip())) + 1
            stray = text[end:match.start()].strip()
            if stray:
                errors.append(StyleSheetError(f"unexpected text {stray!r}", source=source, line=line))
            end = match.end()
            selectors = [tuple(s.split()) for s in match.group(1).split(",")]
            if not all(selectors):
                errors.append(StyleSheetError("empty selector", source=source, line=line))
                continue
            try:
                style = _parse_declarations(match.group(2))
            except ValueError as exc:
                errors.append(StyleSheetError(str(exc), source=source, line=line))
                continue
            rules.extend(StyleRule(selector, style) for selector in selectors)
        trailing = text[end:].strip()
        if trailing:
            errors.append(StyleSheetError(
                f"unexpected text {trailing!r}", source=source, line=text.count("\n", 0, end) + 1,
            ))
        for error in errors:
            LOGGER.warning("Dropped style rule: %s", error)
        return cls(rules=tuple(rules), errors=tuple(errors), path=path)

    @classmethod
    def from_file(cls, path: str | Path) -> StyleSheet:
        path = Path(path).expanduser()
        return cls.parse(path.read_text(encoding="utf-8"), source=str(path), path=path)

    @classmethod
    def from_preset(cls, name: str = "default") -> StyleSheet:
        """Load one of the bundled :data:`PRESETS`."""
        if name not in PRESETS:
            raise ValueError(
                f"Unknown preset {name!r}. Choose from: {', '.join(PRESETS)}"
            )
        resource = resources.files("md2paper").joinpath("styles", f"{name}.paper")
        path = Path(str(resource))
        return cls.parse(resource.read_text(encoding="utf-8"), source=f"{name}.paper", path=path)

    # -- combination --------------------------------------------------------

    def extend(self, other: StyleSheet) -> StyleSheet:
        """Return a sheet with *other*'s rules after (and so winning over) ours."""
        return StyleSheet(
            rules=self.rules + other.rules,
            errors=self.errors + other.errors,
            path=other.path or self.path,
        )


def _parse_declarations(body: str) -> TextStyle:
    values: dict[str, object] = {}
    for declaration in body.split(";"):
        declaration = declaration.strip()
        if not declaration:
            continue
        name, sep, value = declaration.partition(":")
        name, value = name.strip().lower(), value.strip()
        if not sep or not value:
            raise ValueError(f"malformed declaration {declaration!r}")
        if name not in ATTRIBUTES:
            raise ValueError(f"unknown attribute {name!r}")
        attr = ATTRIBUTES[name]
        if attr in _COLOR_FIELDS:
            try:
                Color.parse(value)
            except ColorParseError as exc:
                raise ValueError(f"invalid color {value!r} for {name!r}") from exc
            values[attr] = value
        else:
            if value.lower() not in _BOOLEANS:
                raise ValueError(f"invalid boolean {value!r} for {name!r}")
            values[attr] = _BOOLEANS[value.lower()]
    return TextStyle(**values)


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

class StyleResolver:
    """Resolve scope paths against a :class:`StyleSheet`.

    The style of a path is the style of its parent path with every
    matching rule applied in declaration order.  Results are memoized per
    path, so siblings sharing ancestors only pay for their own token.
    """

    def __init__(self, sheet: Optional[StyleSheet] = None) -> None:
        self.sheet: StyleSheet = sheet or StyleSheet()
        self._cache: dict[tuple[str, ...], TextStyle] = {(): TextStyle()}

    def resolve(
        self,
        node: str,
        ancestors: Iterable[str] = (),
        pseudo: Optional[str] = None,
        language: Optional[str] = None,
    ) -> TextStyle:
        """Return the merged style for *node* under *ancestors*.

        Args:
            node: Scope name of the node being styled (``"li"``, ``"h2"``...).
            ancestors: Scope names from the document root down to the parent.
            pseudo: Optional pseudo-token (``prefix``, ``suffix``, ``lang-tag``).
            language: Code block language, matched as its own token.
        """
        path = (*ancestors, node)
        if language:
            path += (language,)
        if pseudo:
            path += (pseudo,)
        return self.resolve_path(path)

    def resolve_path(self, path: tuple[str, ...]) -> TextStyle:
        path = tuple(path)
        cached = self._cache.get(path)
        if cached is not None:
            return cached
        style = self.resolve_path(path[:-1])
        for rule in self.sheet.rules:
            if rule.matches(path):
                style = style.merge(rule.style)
        self._cache[path] = style
        return style

    def paper_style(self) -> TextStyle:
        return self.resolve("paper")

    def shadow_style(self) -> TextStyle:
        return self.resolve("shadow")
