"""reStructuredText support backed by docutils."""

import re

import docutils.core  # type: ignore[import-untyped]
import docutils.frontend  # type: ignore[import-untyped]
import docutils.nodes  # type: ignore[import-untyped]
import docutils.parsers.rst  # type: ignore[import-untyped]
import docutils.utils  # type: ignore[import-untyped]

from interview_prep_docs.errors import ContentError

_SYSTEM_MESSAGE_LINE_RE = re.compile(r":(\d+): \(")

PUBLISH_SETTINGS = {
    "_disable_config": True,
    "report_level": 5,
    "halt_level": 3,
    "initial_header_level": 2,
    "file_insertion_enabled": False,
    "embed_stylesheet": False,
    "traceback": True,
}


class TitleVisitor(docutils.nodes.GenericNodeVisitor):  # type: ignore[misc]
    """Visitor to extract the title and first paragraph of a document."""

    def __init__(self, document: docutils.nodes.document) -> None:
        """Initialise title visitor.

        Args:
            document: Docutils document tree.
        """
        super().__init__(document)
        self.title: str | None = None
        self.description: str | None = None

    def visit_title(self, node: docutils.nodes.title) -> None:
        """Record the first section title.

        Args:
            node: Title node.
        """
        if self.title is None:
            self.title = node.astext()

    def visit_paragraph(self, node: docutils.nodes.paragraph) -> None:
        """Record the first paragraph as the description.

        Args:
            node: Paragraph node.
        """
        if self.description is None:
            self.description = node.astext()

    def default_visit(self, node: docutils.nodes.Node) -> None:
        """Default visit handler (no-op)."""

    def default_departure(self, node: docutils.nodes.Node) -> None:
        """Default departure handler (no-op)."""


def parse_rst(source: str, source_path: str) -> docutils.nodes.document:
    """Parse reStructuredText into a docutils tree without reporting warnings.

    Args:
        source: reStructuredText source.
        source_path: Path used in docutils messages.

    Returns:
        Docutils document tree.
    """
    parser = docutils.parsers.rst.Parser()
    settings = docutils.frontend.get_default_settings(docutils.parsers.rst.Parser)
    settings.report_level = 5
    settings.file_insertion_enabled = False
    document = docutils.utils.new_document(source_path, settings)
    parser.parse(source, document)
    return document


def read_metadata(source: str, source_path: str) -> tuple[str | None, str | None]:
    """Return the title and first paragraph of a reStructuredText document.

    Args:
        source: reStructuredText source.
        source_path: Path used in docutils messages.

    Returns:
        Tuple of title and description; either may be None. Both are None when
        the source is too broken to parse, the renderer reports that error.
    """
    try:
        doctree = parse_rst(source, source_path)
    except docutils.utils.SystemMessage:
        return None, None
    visitor = TitleVisitor(doctree)
    doctree.walk(visitor)
    return visitor.title, visitor.description


def render_rst(source: str, source_path: str, body_line: int = 1) -> str:
    """Render a reStructuredText body to an HTML fragment.

    The document title is promoted out of the body, the layout renders it.

    Args:
        source: reStructuredText source.
        source_path: Path of the document, relative to the content root.
        body_line: Line of the source file where ``source`` starts.

    Returns:
        HTML fragment.

    Raises:
        ContentError: If docutils reports an error or worse.
    """
    try:
        parts = docutils.core.publish_parts(
            source=source,
            source_path=source_path,
            writer_name="html5",
            settings_overrides=PUBLISH_SETTINGS,
        )
    except docutils.utils.SystemMessage as exc:
        message = str(exc)
        line = None
        match = _SYSTEM_MESSAGE_LINE_RE.search(message)
        if match:
            line = int(match.group(1)) + body_line - 1
        raise ContentError(f"reStructuredText error: {message}", path=source_path, line=line) from exc
    body = str(parts["body"])
    # a lone subsection is promoted to the document subtitle
    if parts.get("subtitle"):
        body = f"<h2>{parts['subtitle']}</h2>\n{body}"
    return body
