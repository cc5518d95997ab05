"""Page rendering: document bodies and the shared site layout."""

import html
import logging
import posixpath
import re
from dataclasses import replace

from jinja2 import Environment, PackageLoader, select_autoescape
from markupsafe import Markup

from interview_prep_docs.config import SiteConfig
from interview_prep_docs.discovery import MARKDOWN_EXTENSIONS, RST_EXTENSIONS
from interview_prep_docs.errors import ContentError
from interview_prep_docs.markup import MarkdownRenderer, heading_anchors
from interview_prep_docs.models import Category, Document, RenderedBody
from interview_prep_docs.navigation import NavigationTree
from interview_prep_docs.restructuredtext import render_rst
from interview_prep_docs.search import extract_text, make_excerpt

logger = logging.getLogger(__name__)

_LINK_RE = re.compile(r'href="(?P<target>[^"#?]*)(?P<suffix>[#?][^"]*)?"')
_CONTENT_EXTENSIONS = MARKDOWN_EXTENSIONS + RST_EXTENSIONS


def category_url(category: Category) -> str | None:
    """URL a category links to: its index page, else its first document."""
    if category.index is not None:
        return category.index.url
    for child in category.children:
        url = category_url(child) if isinstance(child, Category) else child.url
        if url is not None:
            return url
    return None


class PageRenderer:
    """Renders documents and the generated pages into complete HTML pages."""

    def __init__(self, config: SiteConfig, tree: NavigationTree, live_reload: bool = False) -> None:
        """Initialise renderer.

        Args:
            config: Site configuration.
            tree: Navigation tree shown in the sidebar.
            live_reload: Whether pages poll the dev server for rebuilds.
        """
        self.config = config
        self.tree = tree
        self.search_index_url: str | None = None
        self._source_urls = {document.path: document.url for document in tree.iter_documents()}

        self.env = Environment(
            loader=PackageLoader("interview_prep_docs", "templates"),
            autoescape=select_autoescape(["html"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.tests["category"] = lambda item: isinstance(item, Category)
        self.env.globals.update(
            config=config,
            theme=config.theme,
            href=config.href,
            category_url=category_url,
            sidebar=tree.root,
            live_reload=live_reload,
        )

    def render_body(self, document: Document) -> RenderedBody:
        """Render a document's body to an HTML fragment.

        The result depends only on the document itself, so it can be cached.

        Args:
            document: Document to render.

        Returns:
            RenderedBody with HTML, table of contents and plain text.

        Raises:
            ContentError: If the document's markup is malformed.
        """
        if document.format == "rst":
            body_html, toc = heading_anchors(render_rst(document.body, document.path, document.body_line))
        else:
            body_html, toc = MarkdownRenderer().render(document.body, document.path, document.body_line)
        return RenderedBody(html=body_html, toc=toc, text=extract_text(body_html))

    def rewrite_links(self, document: Document, body_html: str) -> str:
        """Point relative links to content files at the target document's URL.

        Args:
            document: Document the HTML belongs to.
            body_html: Rendered body.

        Returns:
            HTML with content-file links rewritten.

        Raises:
            ContentError: If a link target is missing and the policy is ``throw``.
        """

        def rewrite(match: re.Match[str]) -> str:
            target = html.unescape(match.group("target"))
            if not target or "://" in target or target.startswith(("/", "mailto:")):
                return match.group(0)
            if not target.lower().endswith(_CONTENT_EXTENSIONS):
                return match.group(0)

            resolved = posixpath.normpath(posixpath.join(document.directory, target))
            url = self._source_urls.get(resolved)
            if url is None:
                message = f"link to missing document '{target}'"
                if self.config.on_broken_markdown_links == "throw":
                    raise ContentError(message, path=document.path)
                if self.config.on_broken_markdown_links == "warn":
                    logger.warning("%s: %s", document.path, message)
                return match.group(0)
            return f'href="{self.config.href(url)}{match.group("suffix") or ""}"'

        return _LINK_RE.sub(rewrite, body_html)

    def render_page(self, document: Document, body: RenderedBody) -> str:
        """Place a rendered body into the documentation layout.

        Args:
            document: Document being rendered.
            body: Its rendered body, with links already rewritten.

        Returns:
            Complete HTML page.
        """
        previous_page, next_page = self.tree.neighbours(document)
        breadcrumbs = self.tree.breadcrumbs(document)
        edit_url = None
        if self.config.edit_url:
            edit_url = self.config.edit_url.rstrip("/") + "/" + document.path

        template = self.env.get_template("doc.html")
        return template.render(
            page_title=document.title,
            description=document.description or make_excerpt(body.text),
            keywords=document.keywords,
            document=document,
            body=Markup(body.html),
            toc=body.toc,
            current_url=document.url,
            breadcrumbs=breadcrumbs,
            open_paths={category.path for category in breadcrumbs},
            previous_page=previous_page,
            next_page=next_page,
            edit_url=edit_url,
            search_index_url=self.search_index_url,
        )

    def render(self, document: Document) -> str:
        """Render a document into a complete HTML page.

        Args:
            document: Document to render.

        Returns:
            Complete HTML page string.

        Raises:
            ContentError: If the document's markup is malformed.
        """
        body = self.render_body(document)
        return self.render_page(document, replace(body, html=self.rewrite_links(document, body.html)))

    def _render_generated(self, template_name: str, **context: object) -> str:
        """Render a page that has no source document."""
        return self.env.get_template(template_name).render(
            current_url=None,
            open_paths=set(),
            search_index_url=self.search_index_url,
            **context,
        )

    def render_landing(self) -> str:
        """Render the generated landing page used when no document lives at ``/``."""
        return self._render_generated("landing.html", page_title=self.config.title, description=self.config.tagline)

    def render_search(self) -> str:
        """Render the search results page."""
        return self._render_generated("search.html", page_title="Search", description=None)

    def render_not_found(self) -> str:
        """Render the page served for unknown URLs."""
        return self._render_generated("404.html", page_title="Page Not Found", description=None)
