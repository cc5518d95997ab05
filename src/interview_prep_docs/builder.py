"""Build pipeline: discover, navigate, render, index, check and emit."""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from importlib import resources
from pathlib import Path

from pygments.util import ClassNotFound

from interview_prep_docs.cache import RenderCache
from interview_prep_docs.config import SiteConfig
from interview_prep_docs.discovery import discover_content
from interview_prep_docs.emitter import SiteOutput, StaticEmitter
from interview_prep_docs.errors import ConfigurationError, ContentError
from interview_prep_docs.links import find_broken_links
from interview_prep_docs.markup import highlight_stylesheet
from interview_prep_docs.models import BuildReport, Document, PageFailure, RenderedBody, RenderedPage
from interview_prep_docs.navigation import build_navigation
from interview_prep_docs.renderer import PageRenderer
from interview_prep_docs.search import INDEX_BASENAME, build_search_index

logger = logging.getLogger(__name__)

PACKAGE_ASSETS = ("site.css", "site.js", "search.js")
SEARCH_URL = "/search"
NOT_FOUND_URL = "/404.html"
ASSETS_URL = "/assets"
BUILD_ID_URL = "/__build_id"


@dataclass
class _BodyResult:
    document: Document
    body: RenderedBody | None = None
    linked: RenderedBody | None = None
    cached: bool = False
    failure: PageFailure | None = None


class SiteBuilder:
    """Builds the static site for one configuration."""

    def __init__(
        self,
        config: SiteConfig,
        include_drafts: bool = False,
        cache: RenderCache | None = None,
        jobs: int = 1,
        output_dir: Path | None = None,
        build_id: str | None = None,
    ) -> None:
        """Initialise builder.

        Args:
            config: Site configuration.
            include_drafts: Whether draft documents are published.
            cache: Optional cache of rendered bodies.
            jobs: Number of threads used to render pages.
            output_dir: Overrides the configured output directory.
            build_id: When set, pages poll ``/__build_id`` and reload when it changes.
        """
        self.config = config
        self.include_drafts = include_drafts
        self.cache = cache
        self.jobs = max(1, jobs)
        self.output_dir = output_dir or config.output_path
        self.build_id = build_id

    def build(self) -> BuildReport:
        """Run the whole pipeline and publish the output directory.

        Returns:
            BuildReport; ``report.ok`` is False when any page failed.

        Raises:
            ConfigurationError: On invalid configuration, front-matter or manifests.
            OSError: If the content cannot be read or the output cannot be written.
        """
        config = self.config
        contents = discover_content(config.content_path, config, include_drafts=self.include_drafts)
        self._check_reserved_urls(contents.documents)
        tree = build_navigation(contents, config.navigation)
        renderer = PageRenderer(config, tree, live_reload=self.build_id is not None)
        report = BuildReport(output_dir=str(self.output_dir), documents=len(tree))

        rendered: list[tuple[Document, RenderedBody]] = []
        for result in self._render_bodies(renderer, list(tree.iter_documents())):
            if result.linked is not None:
                rendered.append((result.document, result.linked))
            elif result.failure is not None:
                report.failures.append(result.failure)
                logger.error("Failed to render %s", result.failure)

        site = SiteOutput()
        if config.search.enabled:
            index = build_search_index(
                (
                    RenderedPage(
                        url=document.url,
                        title=document.title,
                        html=body.html,
                        text=body.text,
                        description=document.description,
                        source=document.path,
                    )
                    for document, body in rendered
                ),
                language=config.search.language,
            )
            index_name = index.filename(hashed=config.search.hashed)
            renderer.search_index_url = config.href("/" + index_name)
            site.files[index_name] = index.to_json()
            report.search_terms = len(index)

        page_sources: dict[str, str] = {}
        for document, body in rendered:
            site.pages[document.url] = renderer.render_page(document, body)
            page_sources[document.url] = document.path

        if "/" not in site.pages:
            site.pages["/"] = renderer.render_landing()
        if config.search.enabled:
            site.pages[SEARCH_URL] = renderer.render_search()
        site.files[NOT_FOUND_URL.lstrip("/")] = renderer.render_not_found()
        self._add_assets(site)

        self._check_links(site, page_sources, report)

        report.pages_written = len(site.pages)
        StaticEmitter(self.output_dir).emit(site)
        logger.info(
            "Built %d pages from %d documents into %s (%d failed)",
            report.pages_written,
            report.documents,
            self.output_dir,
            len(report.failures),
        )
        return report

    def _check_reserved_urls(self, documents: list[Document]) -> None:
        """Reject documents whose URL belongs to a generated page or asset.

        Args:
            documents: Discovered documents.

        Raises:
            ConfigurationError: If a document would be overwritten by generated output.
        """
        search = self.config.search.enabled
        for document in documents:
            url = "/" + document.url.strip("/")
            # generated files also block every URL below them
            top = "/" + url.strip("/").split("/")[0]
            taken = top in (NOT_FOUND_URL, BUILD_ID_URL, ASSETS_URL)
            if search and (url == SEARCH_URL or top.startswith("/" + INDEX_BASENAME)):
                taken = True
            if taken:
                msg = f"URL {document.url} is reserved for generated output"
                raise ConfigurationError(msg, path=document.path)

    def _render_one(self, renderer: PageRenderer, result: _BodyResult) -> _BodyResult:
        """Render one body unless cached, then rewrite its links.

        Args:
            renderer: Page renderer shared by the build.
            result: Pending result for one document.

        Returns:
            The same result, holding the linked body or the failure.
        """
        document = result.document
        try:
            if result.body is None:
                result.body = renderer.render_body(document)
            result.linked = replace(result.body, html=renderer.rewrite_links(document, result.body.html))
        except ContentError as exc:
            result.linked = None
            result.failure = PageFailure(path=document.path, message=exc.message, line=exc.line)
        return result

    def _render_bodies(self, renderer: PageRenderer, documents: list[Document]) -> list[_BodyResult]:
        """Render every document body, consulting and filling the cache.

        Args:
            renderer: Page renderer shared by the build.
            documents: Documents in sidebar order.

        Returns:
            Results in the same order as ``documents``.
        """
        pending = []
        for document in documents:
            cached = self.cache.get(document) if self.cache is not None else None
            pending.append(_BodyResult(document=document, body=cached, cached=cached is not None))

        if self.jobs > 1 and len(pending) > 1:
            with ThreadPoolExecutor(max_workers=self.jobs) as executor:
                results = list(executor.map(lambda result: self._render_one(renderer, result), pending))
        else:
            results = [self._render_one(renderer, result) for result in pending]

        if self.cache is not None:
            for result in results:
                if result.body is not None and not result.cached:
                    self.cache.put(result.document, result.body)
            hits = sum(1 for result in results if result.cached)
            logger.debug("Render cache: %d hits, %d misses", hits, len(results) - hits)
        return results

    def _add_assets(self, site: SiteOutput) -> None:
        """Add stylesheets, scripts, static files and build markers to the output.

        Args:
            site: Output being assembled.

        Raises:
            ConfigurationError: If the code theme or custom CSS file does not exist.
        """
        config = self.config
        static = resources.files("interview_prep_docs") / "static"
        for name in PACKAGE_ASSETS:
            site.files[f"{ASSETS_URL.lstrip('/')}/{name}"] = (static / name).read_text(encoding="utf-8")

        try:
            site.files["assets/highlight.css"] = highlight_stylesheet(
                config.theme.code_theme, config.theme.dark_code_theme
            )
        except ClassNotFound as exc:
            raise ConfigurationError(f"unknown code theme: {exc}", path=config.source) from exc

        if config.theme.custom_css:
            custom_css = config.project_dir / config.theme.custom_css
            if not custom_css.is_file():
                msg = f"custom CSS file does not exist: {config.theme.custom_css}"
                raise ConfigurationError(msg, path=config.source)
            site.copies["assets/custom.css"] = custom_css

        site.static_dirs.append(config.static_path)
        site.files[".nojekyll"] = ""
        if self.build_id is not None:
            site.files[BUILD_ID_URL.lstrip("/")] = self.build_id

    def _check_links(self, site: SiteOutput, page_sources: dict[str, str], report: BuildReport) -> None:
        """Report internal links that point nowhere, following ``on_broken_links``.

        Args:
            site: Output being assembled.
            page_sources: Page URL to the source path it was rendered from.
            report: Report that collects broken links and failures.
        """
        policy = self.config.on_broken_links
        if policy == "ignore":
            return
        known = site.served_paths()
        report.broken_links = find_broken_links(sorted(site.pages.items()), known, self.config.base_url)
        for link in report.broken_links:
            source = page_sources.get(link.page, link.page)
            if policy == "throw":
                report.failures.append(PageFailure(path=source, message=f"broken link to '{link.href}'"))
            logger.warning("Broken link on %s: %s", source, link.href)
