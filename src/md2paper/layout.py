"""Layout engine - turns a document tree into width-bounded lines.

The engine walks an :class:`~md2paper.parser.ASTNode` tree (produced by
:mod:`md2paper.parser`) and emits :class:`~md2paper.text.Line` objects, each
at most ``options.width`` display columns wide.  Nesting is tracked with a
stack of scopes: every scope contributes a scope name to the style path
and may draw a prefix (list markers, quote bars, code margins) and a
suffix on every line emitted while it is open.

Blocks are separated by a single blank line.  The blank line is queued
when a block ends and only drawn when the next block starts, so nothing
trails the last block of a container.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from rich.color import Color

from md2paper.exceptions import (
    HighlighterUnavailable,
    ImageDecodeError,
    LayoutOverflow,
    Md2PaperError,
)
from md2paper.highlighter import Highlighter
from md2paper.parser import INLINE_TYPES, ASTNode, NodeType
from md2paper.rasterizer import HALF_BLOCK, RGB, load_image, rasterize, to_hex
from md2paper.style_manager import StyleResolver, TextStyle
from md2paper.table_handler import TableHandler
from md2paper.text import (
    BREAK,
    Line,
    Span,
    display_width,
    expand_tabs,
    hard_wrap,
    truncate_spans,
    wrap_plain,
    wrap_spans,
)

LOGGER = logging.getLogger(__name__)

ImageLoader = Callable[[str, Optional[Path]], bytes]

GUTTER = 4
BULLET = "•"
TASK_MARKERS = {True: "[✓]", False: "[ ]"}
QUOTE_BAR = "┃   "
RULE = "─"

ALERT_TITLES = {
    "note": ("󰋽", "Note"),
    "tip": ("󰌶", "Tip"),
    "important": ("󱋉", "Important"),
    "warning": ("󰀪", "Warning"),
    "caution": ("󰳦", "Caution"),
}


# ---------------------------------------------------------------------------
# Options and scopes
# ---------------------------------------------------------------------------

@dataclass
class LayoutOptions:
    """Settings for one layout run.

    Attributes:
        width: Content width in columns (paper width minus both margins).
        tab_length: Columns per tab stop in code blocks and plain text.
        hide_urls: Leave link and image URLs out of the output.
        no_images: Replace images with a one-line ``[Image ...]`` caption.
        plain: Treat the input as literal text (see :meth:`LayoutEngine.layout_plain`).
        highlight: Send code blocks to the highlighter.
        stylesheet_path: Style sheet handed to the highlighter.
        base_dir: Directory that relative image paths are resolved against.
    """

    width: int = 80
    tab_length: int = 4
    hide_urls: bool = False
    no_images: bool = False
    plain: bool = False
    highlight: bool = False
    stylesheet_path: Optional[Path] = None
    base_dir: Optional[Path] = None


@dataclass
class _Scope:
    name: str
    prefix: str = ""
    suffix: str = ""
    # Drawn instead of ``prefix`` on the first line, then cleared.
    marker: Optional[str] = None
    language: str = ""

    @property
    def tokens(self) -> tuple[str, ...]:
        return (self.name, self.language) if self.language else (self.name,)


@dataclass
class _Decorations:
    prefix: list[Span] = field(default_factory=list)
    suffix: list[Span] = field(default_factory=list)
    width: int = 1


def _pad(text: str, width: int) -> str:
    return text + " " * max(0, width - display_width(text))


def _plain_text(node: ASTNode) -> str:
    return node.text + "".join(_plain_text(child) for child in node.children)


# ---------------------------------------------------------------------------
# LayoutEngine
# ---------------------------------------------------------------------------

class LayoutEngine:
    """Lay out a document tree into :class:`Line` objects.

    Usage::

        engine = LayoutEngine(StyleResolver(sheet), LayoutOptions(width=80))
        lines = engine.layout(MarkdownParser().parse(text))

    Degradations (a failing highlighter, an unreadable image, decorations
    wider than the page) never abort the layout.  They are logged and
    collected on :attr:`diagnostics`.
    """

    def __init__(
        self,
        resolver: StyleResolver,
        options: Optional[LayoutOptions] = None,
        *,
        highlighter: Optional[Highlighter] = None,
        image_loader: Optional[ImageLoader] = None,
    ) -> None:
        self.resolver = resolver
        self.options = options or LayoutOptions()
        self.highlighter = highlighter
        self.image_loader: ImageLoader = image_loader or load_image
        self.tables = TableHandler(resolver, self._inline)
        self.diagnostics: list[Md2PaperError] = []
        self._reset()

    # ======================================================================
    # Public API
    # ======================================================================

    def layout(self, doc: ASTNode) -> list[Line]:
        """Return the lines for the DOCUMENT node *doc*."""
        if doc.type != NodeType.DOCUMENT:
            raise ValueError(f"Expected DOCUMENT node, got {doc.type}")
        self._reset()
        self._collect_footnotes(doc)
        self._render_node(doc)
        self._render_footnotes()
        return self._lines

    def layout_plain(self, text: str) -> list[Line]:
        """Wrap literal *text*, keeping each line's indentation on continuations."""
        self._reset()
        width = self._decorations(blank=True).width
        style = self._style()
        for raw in text.splitlines():
            for part in wrap_plain(expand_tabs(raw, self.options.tab_length), width):
                self._lines.append(Line(truncate_spans([Span(part, style)], width)) if part else Line())
        return self._lines

    # ======================================================================
    # Scope stack and line emission
    # ======================================================================

    def _reset(self) -> None:
        self._scopes: list[_Scope] = [_Scope("paper")]
        self._lines: list[Line] = []
        self._pending_blank = False
        self._tight: list[bool] = []
        self._footnotes: dict[str, ASTNode] = {}
        self._ordinals: dict[str, int] = {}
        self._overflowed = False
        self.diagnostics = []

    def _push(self, scope: _Scope) -> None:
        self._scopes.append(scope)

    def _pop(self) -> _Scope:
        return self._scopes.pop()

    def _path(self) -> tuple[str, ...]:
        return tuple(token for scope in self._scopes for token in scope.tokens)

    def _style(self, *names: str) -> TextStyle:
        return self.resolver.resolve_path(self._path() + names)

    def _decorations(self, *, blank: bool = False) -> _Decorations:
        """Collect prefixes and suffixes for the next line.

        Markers are drawn and consumed unless *blank* is set.  When the
        decorations leave no room for content, suffixes are dropped and
        prefixes cut so at least one column remains.
        """
        deco = _Decorations()
        path: tuple[str, ...] = ()
        for scope in self._scopes:
            path += scope.tokens
            text = scope.prefix
            if scope.marker is not None and not blank:
                text = scope.marker
                scope.marker = None
            if text:
                deco.prefix.append(Span(text, self.resolver.resolve_path(path + ("prefix",))))
            if scope.suffix:
                deco.suffix.insert(0, Span(scope.suffix, self.resolver.resolve_path(path + ("suffix",))))

        width = self.options.width
        used = sum(span.width for span in deco.prefix + deco.suffix)
        if used + 1 > width:
            self._overflow(width, used)
            deco.suffix = []
            deco.prefix = truncate_spans(deco.prefix, width - 1)
            used = sum(span.width for span in deco.prefix)
        deco.width = max(1, width - used)
        return deco

    def _overflow(self, width: int, used: int) -> None:
        if self._overflowed:
            return
        self._overflowed = True
        error = LayoutOverflow(
            f"decorations need {used} of {width} columns; content clamped to 1 column"
        )
        LOGGER.debug("%s", error)
        self.diagnostics.append(error)

    def _available(self) -> int:
        return self._decorations(blank=True).width

    def _emit(self, spans: list[Span], fill: Optional[TextStyle] = None) -> None:
        """Append one line holding *spans* inside the current decorations.

        The content is padded to the full width (in *fill*, or the current
        style) whenever a suffix has to be right-aligned.
        """
        deco = self._decorations()
        content = truncate_spans(spans, deco.width)
        line = Line()
        line.extend(deco.prefix)
        line.extend(content)
        pad = deco.width - sum(span.width for span in content)
        if pad > 0 and (deco.suffix or fill is not None):
            line.append(Span(" " * pad, fill or self._style()))
        line.extend(deco.suffix)
        self._lines.append(line)

    def _blank(self) -> None:
        deco = self._decorations(blank=True)
        line = Line()
        line.extend(deco.prefix)
        if deco.suffix:
            line.append(Span(" " * deco.width, self._style()))
            line.extend(deco.suffix)
        self._lines.append(line)

    def _start_block(self) -> None:
        if self._pending_blank:
            self._blank()
            self._pending_blank = False

    def _end_block(self) -> None:
        self._pending_blank = True

    def _in_tight_list(self) -> bool:
        return bool(self._tight) and self._tight[-1]

    def _emit_wrapped(self, spans: list[Span]) -> None:
        for line in wrap_spans(spans, self._available()):
            self._emit(line)

    # ======================================================================
    # Node dispatch
    # ======================================================================

    def _render_node(self, node: ASTNode) -> None:
        handler = getattr(self, f"_render_{node.type.value}", None)
        if handler is not None:
            handler(node)
        elif node.type in INLINE_TYPES:
            self._render_flow([node])
        else:
            LOGGER.debug("No layout for %s nodes; laying out children", node.type.value)
            self._render_flow(node.children)

    def _render_flow(self, nodes: list[ASTNode]) -> None:
        """Lay out a mix of block and inline nodes.

        Consecutive inline nodes form one implicit paragraph; images
        always stand on their own.
        """
        run: list[ASTNode] = []
        for node in nodes:
            if node.type in INLINE_TYPES and node.type != NodeType.IMAGE:
                run.append(node)
                continue
            if run:
                self._render_inline_block(run)
                run = []
            self._render_node(node)
        if run:
            self._render_inline_block(run)

    def _render_inline_block(self, nodes: list[ASTNode]) -> None:
        spans = self._inline(nodes)
        if not any(span.text.strip() for span in spans):
            return
        self._start_block()
        self._emit_wrapped(spans)
        if not self._in_tight_list():
            self._end_block()

    # ======================================================================
    # Per-NodeType renderers
    # ======================================================================

    def _render_document(self, node: ASTNode) -> None:
        self._render_flow(node.children)

    def _render_paragraph(self, node: ASTNode) -> None:
        self._render_flow(node.children)

    def _render_heading(self, node: ASTNode) -> None:
        level = max(1, min(6, node.level))
        self._start_block()
        if level == 1:
            self._rule("h1", "rule")
        if level == 2:
            scope = _Scope("h2", prefix="├─── ", suffix=" ───┤")
        else:
            scope = _Scope(f"h{level}", prefix="    ", suffix="    ")
        self._push(scope)
        for line in wrap_spans(self._inline(node.children), self._available()) or [[]]:
            self._emit(line)
        self._pop()
        if level == 1:
            self._rule("h1", "rule")
        self._end_block()

    def _render_horizontal_rule(self, _node: ASTNode) -> None:
        self._start_block()
        self._rule("rule")
        self._end_block()

    def _rule(self, *names: str) -> None:
        self._emit([Span(RULE * self._available(), self._style(*names))])

    def _render_blockquote(self, node: ASTNode) -> None:
        self._start_block()
        name = f"{node.kind}-blockquote" if node.kind in ALERT_TITLES else "blockquote"
        self._push(_Scope(name, prefix=QUOTE_BAR))
        self._tight.append(False)
        if node.kind in ALERT_TITLES:
            icon, title = ALERT_TITLES[node.kind]
            self._emit_wrapped([Span(f"{icon} {title}", self._style("prefix"))])
        self._render_flow(node.children)
        self._tight.pop()
        self._pop()
        self._end_block()

    def _render_code_block(self, node: ASTNode) -> None:
        self._start_block()
        language = node.language
        self._push(_Scope("codeblock", prefix="  ", suffix="  ", language=language or "txt"))
        style = self._style()
        width = self._available()
        code = node.text[:-1] if node.text.endswith("\n") else node.text

        rows = self._highlight(code, language, width, style)
        if rows is None:
            rows = [
                [Span(expand_tabs(line, self.options.tab_length), style)]
                for line in (code.split("\n") if code else [])
            ]

        self._emit([], fill=style)
        for row in rows:
            for part in hard_wrap(row, width):
                self._emit(part, fill=style)
        tag = truncate_spans([Span(language, self._style("lang-tag"))], width) if language else []
        self._emit([Span(" " * (width - sum(span.width for span in tag)), style), *tag], fill=style)
        self._pop()
        self._end_block()

    def _highlight(
        self, code: str, language: str, width: int, style: TextStyle
    ) -> Optional[list[list[Span]]]:
        if not (self.options.highlight and self.highlighter is not None):
            return None
        stylesheet = str(self.options.stylesheet_path) if self.options.stylesheet_path else None
        try:
            highlighted = self.highlighter.highlight(code, language, width, stylesheet)
        except HighlighterUnavailable as exc:
            LOGGER.warning("Highlighting unavailable, showing plain code: %s", exc)
            self.diagnostics.append(exc)
            return None
        return [[Span(span.text, style.merge(span.style)) for span in row] for row in highlighted]

    # -- lists --------------------------------------------------------------

    def _render_ordered_list(self, node: ASTNode) -> None:
        self._render_list(node, ordered=True)

    def _render_unordered_list(self, node: ASTNode) -> None:
        self._render_list(node, ordered=False)

    def _render_list(self, node: ASTNode, *, ordered: bool) -> None:
        self._start_block()
        gutter = GUTTER
        if ordered:
            last = node.start + len(node.children) - 1
            gutter = max(GUTTER, display_width(f"{last}.") + 1)

        self._push(_Scope("ol" if ordered else "ul"))
        self._tight.append(node.tight)
        counter = node.start
        for item in node.children:
            if item.type == NodeType.TASK_LIST_ITEM:
                name, marker = "task", TASK_MARKERS[item.checked]
            else:
                name, marker = "li", f"{counter}." if ordered else BULLET
            scope = _Scope(name, prefix=" " * gutter, marker=_pad(marker, gutter))
            self._push(scope)
            self._render_flow(item.children)
            if scope.marker is not None:
                # Empty item: still show its marker.
                self._emit([])
            self._pop()
            counter += 1
        self._tight.pop()
        self._pop()
        if not self._in_tight_list():
            self._end_block()

    def _render_list_item(self, node: ASTNode) -> None:
        self._render_flow(node.children)

    def _render_task_list_item(self, node: ASTNode) -> None:
        self._render_flow(node.children)

    # -- definition lists ---------------------------------------------------

    def _render_definition_list(self, node: ASTNode) -> None:
        self._start_block()
        self._push(_Scope("dl"))
        self._tight.append(True)
        for child in node.children:
            if child.type == NodeType.DEFINITION_TERM:
                self._push(_Scope("dt"))
            elif child.type == NodeType.DEFINITION_DESCRIPTION:
                self._push(_Scope("dd", prefix=" " * GUTTER))
            else:
                self._render_node(child)
                continue
            self._render_flow(child.children)
            self._pop()
        self._tight.pop()
        self._pop()
        self._end_block()

    def _render_definition_term(self, node: ASTNode) -> None:
        self._render_flow(node.children)

    def _render_definition_description(self, node: ASTNode) -> None:
        self._render_flow(node.children)

    # -- tables -------------------------------------------------------------

    def _render_table(self, node: ASTNode) -> None:
        if not node.children:
            return
        self._start_block()
        width = self._available()
        for row in self.tables.render_table(node, width, self._path()):
            for line in wrap_spans(row, width) if sum(s.width for s in row) > width else [row]:
                self._emit(line)
        self._end_block()

    # -- images -------------------------------------------------------------

    def _render_image(self, node: ASTNode) -> None:
        self._start_block()
        label = node.alt or node.title
        if self.options.no_images:
            self._image_placeholder(node, label)
        else:
            try:
                data = self.image_loader(node.url, self.options.base_dir)
                cells = rasterize(data, self._available(), background=self._paper_rgb())
            except ImageDecodeError as exc:
                LOGGER.warning("Cannot open image %s: %s", node.url, exc)
                self.diagnostics.append(exc)
                self._image_failure(node, exc)
            else:
                for row in cells:
                    self._emit([
                        Span(HALF_BLOCK, TextStyle(color=to_hex(top), background=to_hex(bottom)))
                        for top, bottom in row
                    ])
                if label:
                    self._push(_Scope("caption", prefix=" " * GUTTER))
                    self._emit_wrapped([Span(label, self._style())])
                    self._pop()
        self._end_block()

    def _image_placeholder(self, node: ASTNode, label: str) -> None:
        self._push(_Scope("caption", prefix=" " * GUTTER))
        style = self._style()
        spans = [Span("[Image", style)]
        if label:
            spans.append(Span(f": {label}", style))
        if node.url and not self.options.hide_urls:
            spans += [Span(" <", style), Span(node.url, self._style("link")), Span(">", style)]
        spans.append(Span("]", style))
        self._emit_wrapped(spans)
        self._pop()

    def _image_failure(self, node: ASTNode, error: ImageDecodeError) -> None:
        self._push(_Scope("caption", prefix=" " * GUTTER))
        style = self._style()
        self._emit_wrapped([
            Span("Cannot open image ", style),
            Span(node.url, self._style("link")),
            Span(f": {error}", style),
        ])
        self._pop()

    def _paper_rgb(self) -> Optional[RGB]:
        background = self.resolver.paper_style().background
        if not background:
            return None
        triplet = Color.parse(background).get_truecolor()
        return (triplet.red, triplet.green, triplet.blue)

    # -- footnotes ----------------------------------------------------------

    def _collect_footnotes(self, node: ASTNode) -> None:
        for child in node.children:
            if child.type == NodeType.FOOTNOTE_DEF:
                self._footnotes.setdefault(child.footnote_id, child)
            else:
                self._collect_footnotes(child)

    def _footnote_ordinal(self, key: str) -> int:
        if key not in self._ordinals:
            self._ordinals[key] = len(self._ordinals) + 1
        return self._ordinals[key]

    def _render_footnote_def(self, _node: ASTNode) -> None:
        """Definitions are laid out after the document; see :meth:`_render_footnotes`."""

    def _render_footnotes(self) -> None:
        """Append every footnote in ordinal order.

        Footnote bodies may reference further footnotes, so the section is
        extended until no reference is left without its definition.
        Definitions that were never referenced come last.
        """
        done: set[str] = set()
        while True:
            pending = [key for key in self._ordinals if key not in done]
            if not pending:
                unreferenced = [key for key in self._footnotes if key not in self._ordinals]
                if not unreferenced:
                    break
                for key in unreferenced:
                    self._footnote_ordinal(key)
                continue
            for key in pending:
                done.add(key)
                self._render_footnote(key)

    def _render_footnote(self, key: str) -> None:
        self._start_block()
        self._push(_Scope("footnote-def"))
        self._emit_wrapped([Span(f"{self._ordinals[key]}:", self._style())])
        self._pop()
        self._push(_Scope("footnote", prefix=" " * GUTTER))
        self._tight.append(False)
        definition = self._footnotes.get(key)
        if definition is None:
            LOGGER.debug("Footnote %r is referenced but never defined", key)
        else:
            self._render_flow(definition.children)
        self._tight.pop()
        self._pop()
        self._end_block()

    # ======================================================================
    # Inline spans
    # ======================================================================

    def _inline(self, nodes: list[ASTNode], names: tuple[str, ...] = ()) -> list[Span]:
        """Flatten inline *nodes* into spans styled under *names*."""
        spans: list[Span] = []
        for node in nodes:
            spans.extend(self._inline_node(node, names))
        return spans

    def _inline_node(self, node: ASTNode, names: tuple[str, ...]) -> list[Span]:
        nt = node.type

        if nt == NodeType.TEXT:
            text = node.text or _plain_text(node)
            return [Span(text.replace("\n", " "), self._style(*names))] if text else []

        if nt == NodeType.BOLD:
            return self._inline(node.children, names + ("strong",))

        if nt == NodeType.ITALIC:
            return self._inline(node.children, names + ("emphasis",))

        if nt == NodeType.STRIKETHROUGH:
            return self._inline(node.children, names + ("strikethrough",))

        if nt == NodeType.INLINE_CODE:
            text = (node.text or _plain_text(node)).replace("\n", " ")
            return [Span(text, self._style(*names, "code"))] if text else []

        if nt == NodeType.LINK:
            spans = self._inline(node.children, names + ("link",))
            return spans + self._link_target(node, names)

        if nt == NodeType.IMAGE:
            label = node.alt or node.title or node.url
            return [Span(f"[Image: {label}]", self._style(*names, "caption"))]

        if nt == NodeType.FOOTNOTE_REF:
            ordinal = self._footnote_ordinal(node.footnote_id)
            return [Span(f"[{ordinal}]", self._style(*names, "footnote-ref"))]

        if nt == NodeType.LINE_BREAK:
            return [BREAK]

        if nt == NodeType.SOFT_BREAK:
            return [Span(" ", self._style(*names))]

        text = _plain_text(node)
        return [Span(text, self._style(*names))] if text else []

    def _link_target(self, node: ASTNode, names: tuple[str, ...]) -> list[Span]:
        url = "" if self.options.hide_urls else node.url
        if url and url == _plain_text(node):
            # Autolinks already show their target.
            return []
        if node.title and url:
            text = f" <{node.title}: {url}>"
        elif url or node.title:
            text = f" <{url or node.title}>"
        else:
            return []
        return [Span(text, self._style(*names))]
