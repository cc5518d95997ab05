"""Markdown rendering with code fences, collapsible sections and admonitions.

Block structure is resolved before Python-Markdown sees the text: fenced code
blocks are lifted out first so nothing inside them is interpreted, then
``<details>`` and ``:::`` markers are matched into a tree. Each container is
converted on its own and nested blocks are spliced back in through
placeholders, the same stash-and-restore trick Python-Markdown uses for raw
HTML.
"""

import html
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Union

import markdown
from markdown.extensions.toc import slugify, unique
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexer import Lexer
from pygments.lexers import TextLexer, get_lexer_by_name
from pygments.util import ClassNotFound

from interview_prep_docs.errors import ContentError
from interview_prep_docs.models import TocEntry

MARKDOWN_EXTENSIONS = ["tables", "sane_lists", "attr_list"]
TOC_LEVELS = (2, 3)

_FENCE_RE = re.compile(r"^(?P<indent>[ \t]*)(?P<fence>`{3,}|~{3,})(?P<info>.*)$")
_FENCE_TITLE_RE = re.compile(r'title=(?:"(?P<double>[^"]*)"|\'(?P<single>[^\']*)\')')
_DETAILS_OPEN_RE = re.compile(r"^(?P<indent>[ \t]*)<details(?:\s[^>]*)?>(?P<rest>.*)$", re.IGNORECASE)
_DETAILS_CLOSE_RE = re.compile(r"^[ \t]*</details>[ \t]*$", re.IGNORECASE)
_SUMMARY_RE = re.compile(r"^[ \t]*<summary(?:\s[^>]*)?>(?P<summary>.*?)</summary>(?P<rest>.*)$", re.IGNORECASE)
_ADMONITION_OPEN_RE = re.compile(
    r"^(?P<indent>[ \t]*):{3,}(?P<kind>[A-Za-z]+)(?:\[(?P<bracket>[^\]]*)\])?[ \t]*(?P<title>.*?)[ \t]*$"
)
_ADMONITION_CLOSE_RE = re.compile(r"^[ \t]*:{3,}[ \t]*$")
PLACEHOLDER_PREFIX = "zzblock"
_HEADING_RE = re.compile(r"<h(?P<level>[1-6])(?P<attrs>\s[^>]*)?>(?P<inner>.*?)</h(?P=level)>", re.DOTALL)
_ID_ATTR_RE = re.compile(r'\sid="(?P<id>[^"]*)"')
_TAG_RE = re.compile(r"<[^>]+>")


@dataclass
class CodeFence:
    """A fenced code block lifted out of the markdown source."""

    line: int
    indent: str
    marker: str
    language: str = ""
    title: str | None = None
    lines: list[str] = field(default_factory=list)

    @property
    def code(self) -> str:
        """Fence content with a trailing newline on every line."""
        return "".join(line + "\n" for line in self.lines)


@dataclass
class Container:
    """A block whose content is markdown: the document root, a details section or an admonition."""

    kind: str
    line: int
    indent: str = ""
    summary: str | None = None
    admonition: str = ""
    title: str | None = None
    awaiting_summary: bool = False
    children: list[Union[str, CodeFence, "Container"]] = field(default_factory=list)


def _fence_language_and_title(info: str) -> tuple[str, str | None]:
    """Read the language and optional ``title="..."`` from a fence info string.

    Args:
        info: Text after the opening fence marker.

    Returns:
        Tuple of lowercased language (``""`` if none) and title.
    """
    words = info.split()
    language = words[0] if words and "=" not in words[0] else ""
    match = _FENCE_TITLE_RE.search(info)
    title = None
    if match:
        title = match.group("double") if match.group("double") is not None else match.group("single")
    return language.strip("{}").lower(), title


def _closes(fence: CodeFence, line: str) -> bool:
    """Whether ``line`` closes ``fence``."""
    stripped = line.strip()
    return len(stripped) >= len(fence.marker) and set(stripped) == {fence.marker[0]}


def parse_blocks(body: str, path: str, body_line: int = 1) -> Container:
    """Split a markdown body into code fences and nested containers.

    Args:
        body: Markdown text.
        path: Document path for error messages.
        body_line: Line of the source file where ``body`` starts.

    Returns:
        Root container.

    Raises:
        ContentError: If a code fence, collapsible section or admonition is
            left open, or a closing marker has nothing to close.
    """
    root = Container(kind="root", line=body_line)
    stack = [root]
    fence: CodeFence | None = None

    for offset, line in enumerate(body.split("\n")):
        lineno = body_line + offset
        current = stack[-1]

        if fence is not None:
            if _closes(fence, line):
                fence = None
            elif fence.indent and line.startswith(fence.indent):
                fence.lines.append(line[len(fence.indent) :])
            else:
                fence.lines.append(line)
            continue

        match = _FENCE_RE.match(line)
        if match and not (match.group("fence")[0] == "`" and "`" in match.group("info")):
            language, title = _fence_language_and_title(match.group("info"))
            fence = CodeFence(
                line=lineno,
                indent=match.group("indent"),
                marker=match.group("fence"),
                language=language,
                title=title,
            )
            current.children.append(fence)
            continue

        if current.awaiting_summary and line.strip():
            current.awaiting_summary = False
            match = _SUMMARY_RE.match(line)
            if match:
                current.summary = match.group("summary").strip()
                if match.group("rest").strip():
                    current.children.append(match.group("rest"))
                continue

        match = _DETAILS_OPEN_RE.match(line)
        if match and "</details>" not in match.group("rest").lower():
            node = Container(kind="details", line=lineno, indent=match.group("indent"))
            rest = match.group("rest")
            summary = _SUMMARY_RE.match(rest)
            if summary:
                node.summary = summary.group("summary").strip()
                rest = summary.group("rest")
            else:
                node.awaiting_summary = True
            if rest.strip():
                node.children.append(rest)
            current.children.append(node)
            stack.append(node)
            continue

        if _DETAILS_CLOSE_RE.match(line):
            if current.kind != "details":
                raise ContentError("</details> has no matching <details>", path=path, line=lineno)
            stack.pop()
            continue

        match = _ADMONITION_OPEN_RE.match(line)
        if match:
            title = match.group("bracket") or match.group("title") or None
            node = Container(
                kind="admonition",
                line=lineno,
                indent=match.group("indent"),
                admonition=match.group("kind").lower(),
                title=title,
            )
            current.children.append(node)
            stack.append(node)
            continue

        if _ADMONITION_CLOSE_RE.match(line):
            if current.kind != "admonition":
                raise ContentError("':::' has no matching admonition", path=path, line=lineno)
            stack.pop()
            continue

        current.children.append(line)

    if fence is not None:
        raise ContentError("code fence is never closed", path=path, line=fence.line)
    if len(stack) > 1:
        unclosed = stack[-1]
        what = "<details>" if unclosed.kind == "details" else f"':::{unclosed.admonition}'"
        raise ContentError(f"{what} is never closed", path=path, line=unclosed.line)
    return root


def _lexer_for(language: str) -> Lexer:
    """Pygments lexer for a fence language, plain text when unknown."""
    if language:
        try:
            return get_lexer_by_name(language, stripnl=False)
        except ClassNotFound:
            pass
    return TextLexer(stripnl=False)


def render_code(fence: CodeFence) -> str:
    """Highlight a code fence; the text content is preserved exactly.

    Args:
        fence: Code fence to render.

    Returns:
        HTML for the code block.
    """
    formatter = HtmlFormatter(cssclass="highlight", wrapcode=True)
    code_html = highlight(fence.code, _lexer_for(fence.language), formatter)
    language = html.escape(fence.language or "text")
    parts = [f'<div class="code-block" data-language="{language}">']
    if fence.title:
        parts.append(f'<div class="code-block-title">{html.escape(fence.title)}</div>')
    parts.append(code_html.rstrip("\n"))
    parts.append("</div>")
    return "\n".join(parts)


def heading_anchors(body_html: str) -> tuple[str, list[TocEntry]]:
    """Give headings unique ids and collect the table of contents.

    Args:
        body_html: Rendered body HTML.

    Returns:
        Tuple of HTML with ``id`` attributes and the TOC entries for h2/h3.
    """
    # explicit ids such as ``## Title {#custom}`` are reserved before any are generated
    used: set[str] = set()
    for heading in _HEADING_RE.finditer(body_html):
        reserved = _ID_ATTR_RE.search(heading.group("attrs") or "")
        if reserved:
            used.add(reserved.group("id"))
    toc: list[TocEntry] = []

    def anchor(match: re.Match[str]) -> str:
        level = int(match.group("level"))
        attrs = match.group("attrs") or ""
        inner = match.group("inner")
        text = html.unescape(_TAG_RE.sub("", inner)).strip()
        explicit = _ID_ATTR_RE.search(attrs)
        if explicit:
            anchor_id = explicit.group("id")
        else:
            anchor_id = unique(slugify(text, "-") or "section", used)
            attrs += f' id="{anchor_id}"'
        if level in TOC_LEVELS:
            toc.append(TocEntry(level=level, anchor=anchor_id, title=text))
        return (
            f"<h{level}{attrs}>{inner}"
            f'<a class="hash-link" href="#{anchor_id}" aria-label="Direct link to {html.escape(text)}">#</a>'
            f"</h{level}>"
        )

    return _HEADING_RE.sub(anchor, body_html), toc


def _placeholder_pattern(prefix: str) -> re.Pattern[str]:
    """Compile the pattern that finds placeholder tokens in converted HTML.

    Args:
        prefix: Token prefix chosen for the document.

    Returns:
        Pattern matching a token alone in a paragraph, in an indented code
        block, or inline.
    """
    token = re.escape(prefix) + r"\d+zz"
    return re.compile(rf"<p>(?P<para>{token})</p>|<pre><code>(?P<pre>{token})\s*</code></pre>|(?P<bare>{token})")


class MarkdownRenderer:
    """Renders a markdown document body to an HTML fragment."""

    def __init__(self, code_renderer: Callable[[CodeFence], str] = render_code) -> None:
        """Initialise renderer.

        Args:
            code_renderer: Turns a code fence into HTML.
        """
        self._render_code = code_renderer
        self._blocks = 0
        self._prefix = PLACEHOLDER_PREFIX
        self._placeholder_re = _placeholder_pattern(PLACEHOLDER_PREFIX)

    def render(self, body: str, path: str, body_line: int = 1) -> tuple[str, list[TocEntry]]:
        """Render a markdown body.

        Args:
            body: Markdown text (front-matter already removed).
            path: Document path for error messages.
            body_line: Line of the source file where ``body`` starts.

        Returns:
            Tuple of body HTML and its table of contents.

        Raises:
            ContentError: If block markers are unbalanced.
        """
        root = parse_blocks(body, path, body_line)
        self._blocks = 0
        # placeholders must never occur in the author's own text
        prefix = PLACEHOLDER_PREFIX
        while prefix in body:
            prefix += "x"
        self._prefix = prefix
        self._placeholder_re = _placeholder_pattern(prefix)
        return heading_anchors(self._render_container(root))

    def _placeholder(self) -> str:
        """Next placeholder token for a lifted block."""
        token = f"{self._prefix}{self._blocks}zz"
        self._blocks += 1
        return token

    def _render_container(self, container: Container) -> str:
        """Convert one container's markdown and splice its nested blocks back in.

        Args:
            container: Container to render.

        Returns:
            HTML for the container's content.
        """
        lines: list[str] = []
        blocks: dict[str, str] = {}
        for child in container.children:
            if isinstance(child, str):
                lines.append(child)
                continue
            if isinstance(child, CodeFence):
                block_html = self._render_code(child)
            else:
                block_html = self._wrap(child, self._render_container(child))
            token = self._placeholder()
            blocks[token] = block_html
            lines.extend(["", child.indent + token, ""])

        converter = markdown.Markdown(extensions=MARKDOWN_EXTENSIONS)
        converted = converter.convert("\n".join(lines))

        def restore(match: re.Match[str]) -> str:
            token = match.group("para") or match.group("pre") or match.group("bare")
            return blocks.get(token, match.group(0))

        return self._placeholder_re.sub(restore, converted)

    def _wrap(self, container: Container, inner: str) -> str:
        """Wrap rendered content in its details or admonition markup.

        Args:
            container: Details or admonition container.
            inner: Rendered content of the container.

        Returns:
            HTML for the whole block.
        """
        if container.kind == "details":
            summary = _inline(container.summary) if container.summary else "Details"
            return (
                '<details class="details">\n'
                f"<summary>{summary}</summary>\n"
                f'<div class="details-content">\n{inner}\n</div>\n'
                "</details>"
            )
        title = html.escape(container.title or container.admonition.capitalize())
        kind = html.escape(container.admonition)
        return (
            f'<div class="admonition admonition-{kind}">\n'
            f'<p class="admonition-title">{title}</p>\n'
            f'<div class="admonition-content">\n{inner}\n</div>\n'
            "</div>"
        )


def _inline(text: str) -> str:
    """Render a single line of markdown without the paragraph wrapper."""
    converted = markdown.markdown(text)
    if converted.startswith("<p>") and converted.endswith("</p>"):
        converted = converted[3:-4]
    return converted


def highlight_stylesheet(light_style: str, dark_style: str) -> str:
    """Build the Pygments CSS for both colour modes.

    Args:
        light_style: Pygments style used by default.
        dark_style: Pygments style used when the page is in dark mode.

    Returns:
        CSS text.

    Raises:
        pygments.util.ClassNotFound: If either style does not exist.
    """
    light = HtmlFormatter(style=light_style).get_style_defs(".highlight")
    dark = HtmlFormatter(style=dark_style).get_style_defs('[data-theme="dark"] .highlight')
    return f"{light}\n{dark}\n"
