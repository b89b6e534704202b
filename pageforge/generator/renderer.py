"""Render page Markdown into HTML with server- or client-side highlighting."""

from __future__ import annotations

import dataclasses as dc
import re
import typing as typ
from html import escape

from markdown import Markdown
from pygments import highlight
from pygments.formatters.html import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

if typ.TYPE_CHECKING:
    from markdown.extensions import Extension
else:  # pragma: no cover - type-checking fallback
    Extension = typ.Any

CODE_BLOCK_PATTERN = re.compile(
    r"^[ ]{0,3}(?:```|~~~)[ \t]*([A-Za-z0-9_+#.-]+)?[^\n]*\n(.*?)^[ ]{0,3}(?:```|~~~)",
    re.DOTALL | re.MULTILINE,
)
FENCED_INDENT_PATTERN = re.compile(r"^[ ]{1,3}([`~]{3,})", re.MULTILINE)
FENCE_LABEL_PATTERN = re.compile(
    r"^([`~]{3,})([A-Za-z0-9_+#.-]+)?(,[^\r\n]+)$", re.MULTILINE
)
CODEHILITE_OPEN_TAG = re.compile(r'<div class="codehilite">')


@dc.dataclass(slots=True)
class RenderedMarkdown:
    """HTML for one document plus its table of contents tokens."""

    html: str
    toc: list[dict[str, typ.Any]] = dc.field(default_factory=list)


class HtmlContentRenderer:
    """Render markdown and code snippets with consistent styling.

    With ``client_highlighting`` enabled, fenced code is emitted as
    ``<pre><code class="language-x">`` for a browser-side highlighter and
    pygments is not involved.
    """

    def __init__(
        self,
        pygments_style: str = "monokai",
        link_extension: Extension | None = None,
        *,
        client_highlighting: bool = False,
    ) -> None:
        """Initialize a renderer.

        Parameters
        ----------
        pygments_style : str, optional
            Name of the Pygments style used for server-side highlighting.
            Defaults to ``"monokai"``.
        link_extension : Extension, optional
            Markdown extension rewriting relative ``.md`` links; pass ``None``
            to leave links untouched.
        client_highlighting : bool, optional
            Emit ``language-*`` code blocks instead of pygments markup.
        """
        self.pygments_style = pygments_style
        self.client_highlighting = client_highlighting
        self._formatter = HtmlFormatter(style=pygments_style, cssclass="codehilite")
        self._link_extension = link_extension

    @property
    def stylesheet(self) -> str:
        """Return the CSS used for highlighted code blocks."""
        if self.client_highlighting:
            return ""
        return self._formatter.get_style_defs(".codehilite")

    def markdown(self, text: str) -> str:
        """Render markdown into HTML using the configured extensions."""
        return self.render(text).html

    def render(self, text: str) -> RenderedMarkdown:
        """Render markdown and return the HTML with its heading outline.

        Raw HTML inside fenced code is escaped rather than interpreted, and
        ``Q:``/``A:`` style lines stay paragraphs because no definition-list
        extension is loaded.
        """
        normalized = self._normalize_fenced_blocks(text)
        if not normalized.strip():
            return RenderedMarkdown(html="")
        extensions: list[Extension | str] = ["fenced_code", "tables", "sane_lists", "toc"]
        configs: dict[str, dict[str, typ.Any]] = {"toc": {"permalink": False}}
        if not self.client_highlighting:
            extensions.insert(1, "codehilite")
            configs["codehilite"] = {
                "linenums": False,
                "guess_lang": False,
                "css_class": "codehilite",
                "pygments_style": self.pygments_style,
            }
        if self._link_extension:
            extensions.append(self._link_extension)
        md = Markdown(extensions=extensions, extension_configs=configs)
        html = md.convert(normalized)
        if self.client_highlighting:
            html = self._default_client_language(html)
        else:
            html = self._annotate_codehilite(html, normalized)
        toc = list(getattr(md, "toc_tokens", []))
        return RenderedMarkdown(html=html, toc=toc)

    def code_block(self, code: str, language: str | None = None) -> str:
        """Render ``code`` into HTML with an optional language tag.

        Parameters
        ----------
        code : str
            Source snippet to highlight.
        language : str, optional
            Pygments lexer name; defaults to ``"text"`` when not provided or
            when the lexer lookup fails.

        Returns
        -------
        str
            Highlighted HTML carrying ``data-language``, or a
            ``language-*`` block when client highlighting is on.
        """
        lang = language or "text"
        if self.client_highlighting:
            safe_lang = escape(lang, quote=True)
            return (
                f'<pre><code class="language-{safe_lang}">'
                f"{escape(code, quote=False)}</code></pre>"
            )
        try:
            lexer = get_lexer_by_name(lang)
        except ClassNotFound:
            lexer = get_lexer_by_name("text")
        html = highlight(code, lexer, self._formatter)
        return self._attach_language_attribute(html, lang)

    def _annotate_codehilite(self, html: str, source_markdown: str) -> str:
        """Attach language metadata to each highlighted block in converted markdown."""
        languages = [
            match.group(1) or "text"
            for match in CODE_BLOCK_PATTERN.finditer(source_markdown)
        ]
        if not languages:
            return html
        lang_iter = iter(languages)

        def _repl(match: re.Match[str]) -> str:
            lang = next(lang_iter, "text")
            return (
                f'<div class="codehilite" data-language="{escape(lang, quote=True)}">'
            )

        return CODEHILITE_OPEN_TAG.sub(_repl, html, len(languages))

    @staticmethod
    def _default_client_language(html: str) -> str:
        """Tag unlabelled fences so the autoloader treats them as plain text."""
        return html.replace("<pre><code>", '<pre><code class="language-none">')

    @staticmethod
    def _attach_language_attribute(html: str, language: str) -> str:
        """Add a single language attribute to an already highlighted block."""
        safe_lang = escape(language or "text", quote=True)

        def _repl(match: re.Match[str]) -> str:
            return f'<div class="codehilite" data-language="{safe_lang}">'

        return CODEHILITE_OPEN_TAG.sub(_repl, html, 1)

    @staticmethod
    def _normalize_fenced_blocks(text: str) -> str:
        without_indent = FENCED_INDENT_PATTERN.sub(r"\1", text)

        def _strip_labels(match: re.Match[str]) -> str:
            fence, language, _extras = match.groups()
            label = language or ""
            return f"{fence}{label}"

        return FENCE_LABEL_PATTERN.sub(_strip_labels, without_indent)


__all__ = ["CODE_BLOCK_PATTERN", "HtmlContentRenderer", "RenderedMarkdown"]
