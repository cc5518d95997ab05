"""Data models for the documentation site."""

from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any, Union

INDEX_STEMS = ("index", "readme")


@dataclass(frozen=True)
class Document:
    """A single content file with its resolved metadata."""

    path: str
    doc_id: str
    title: str
    slug: str | None
    sidebar_position: int | None
    body: str
    url: str
    format: str = "markdown"
    body_line: int = 1
    sidebar_label: str | None = None
    description: str | None = None
    keywords: tuple[str, ...] = ()
    draft: bool = False
    content_title: bool = False
    extra: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def directory(self) -> str:
        """Relative directory of the document, ``""`` for the content root."""
        parent = str(PurePosixPath(self.path).parent)
        return "" if parent == "." else parent

    @property
    def file_name(self) -> str:
        """File name of the document, extension included."""
        return PurePosixPath(self.path).name

    @property
    def is_index(self) -> bool:
        """Whether the document is the landing page of its directory."""
        return PurePosixPath(self.path).stem.lower() in INDEX_STEMS

    @property
    def label(self) -> str:
        """Text shown for the document in the sidebar."""
        return self.sidebar_label or self.title


@dataclass(frozen=True)
class Category:
    """A grouping node that corresponds to a content subdirectory."""

    path: str
    label: str
    position: int | None = None
    collapsed: bool = True
    index: Document | None = None
    children: tuple[Union[Document, "Category"], ...] = ()

    @property
    def name(self) -> str:
        """Directory name of the category (``""`` for the root)."""
        return PurePosixPath(self.path).name if self.path else ""


@dataclass(frozen=True)
class CategoryManifest:
    """Settings read from a directory's ``_category_`` file."""

    path: str
    label: str | None = None
    position: int | None = None
    collapsed: bool = True
    items: tuple[str, ...] = ()


@dataclass
class ContentSet:
    """Everything discovered under the content root."""

    documents: list[Document]
    categories: dict[str, Category]
    manifests: dict[str, CategoryManifest] = field(default_factory=dict)


@dataclass
class TocEntry:
    """A heading in the page's table of contents."""

    level: int
    anchor: str
    title: str


@dataclass
class RenderedBody:
    """Body HTML of a document before it is placed in the layout."""

    html: str
    toc: list[TocEntry]
    text: str


@dataclass
class RenderedPage:
    """A complete page ready to be written to the output directory."""

    url: str
    title: str
    html: str
    text: str = ""
    description: str | None = None
    source: str | None = None


@dataclass
class SearchResult:
    """Represents a search result."""

    title: str
    url: str
    snippet: str
    score: float


@dataclass
class PageFailure:
    """A document whose page could not be rendered."""

    path: str
    message: str
    line: int | None = None

    def __str__(self) -> str:
        location = f"{self.path}:{self.line}" if self.line is not None else self.path
        return f"{location}: {self.message}"


@dataclass
class BrokenLink:
    """An internal link whose target does not exist in the built site."""

    page: str
    href: str


@dataclass
class BuildReport:
    """Summary of a finished build."""

    output_dir: str
    pages_written: int = 0
    documents: int = 0
    search_terms: int = 0
    failures: list[PageFailure] = field(default_factory=list)
    broken_links: list[BrokenLink] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """Whether every page rendered."""
        return not self.failures
