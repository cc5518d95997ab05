"""Client-side search index built from rendered pages."""

import hashlib
import json
import logging
import re
from collections import Counter
from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from html.parser import HTMLParser

from interview_prep_docs.models import RenderedPage, SearchResult

logger = logging.getLogger(__name__)

INDEX_VERSION = 1
INDEX_BASENAME = "search-index"
TITLE_WEIGHT = 5
EXCERPT_LENGTH = 160
MIN_TERM_LENGTH = 2

STOP_WORDS = frozenset(
    """
    a an and are as at be but by for from has have how if in into is it its of on or
    so than that the their then there these this to was were what when which while
    who why will with you your
    """.split()
)

_TERM_RE = re.compile(r"[a-z0-9]+")
_WHITESPACE_RE = re.compile(r"\s+")


class TextExtractor(HTMLParser):
    """Collects the visible prose of an HTML fragment, skipping code blocks."""

    SKIP_TAGS = frozenset({"pre", "script", "style"})

    def __init__(self) -> None:
        """Initialise parser."""
        super().__init__(convert_charrefs=True)
        self._parts: list[str] = []
        self._skipping: list[str] = []

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        """Track the start of a tag."""
        classes = (dict(attrs).get("class") or "").split()
        if tag in self.SKIP_TAGS or (tag == "a" and "hash-link" in classes):
            self._skipping.append(tag)

    def handle_endtag(self, tag: str) -> None:
        """Track the end of a tag."""
        if self._skipping and self._skipping[-1] == tag:
            self._skipping.pop()

    def handle_data(self, data: str) -> None:
        """Collect text outside skipped elements."""
        if not self._skipping:
            text = data.strip()
            if text:
                self._parts.append(text)

    def get_text(self) -> str:
        """Get collected text content.

        Returns:
            Concatenated text content.
        """
        return " ".join(self._parts)


def extract_text(body_html: str) -> str:
    """Extract searchable plain text from rendered HTML.

    Args:
        body_html: HTML fragment.

    Returns:
        Whitespace-normalised text without code blocks.
    """
    extractor = TextExtractor()
    extractor.feed(body_html)
    extractor.close()
    return _WHITESPACE_RE.sub(" ", extractor.get_text()).strip()


def tokenize(text: str) -> list[str]:
    """Split text into index terms.

    Args:
        text: Plain text or a query.

    Returns:
        Lowercase terms, stop words and one-character terms removed.
    """
    return [
        term for term in _TERM_RE.findall(text.lower()) if len(term) >= MIN_TERM_LENGTH and term not in STOP_WORDS
    ]


def make_excerpt(text: str, description: str | None = None) -> str:
    """Return a short summary of a page for result listings."""
    if description:
        return description
    if len(text) <= EXCERPT_LENGTH:
        return text
    cut = text[:EXCERPT_LENGTH].rsplit(" ", 1)[0]
    return cut + "..."


@dataclass
class IndexedDocument:
    """A page as it appears in search results."""

    title: str
    url: str
    excerpt: str


@dataclass
class SearchIndex:
    """Term to page mapping shipped to the browser as JSON."""

    documents: list[IndexedDocument] = field(default_factory=list)
    terms: dict[str, list[tuple[int, int]]] = field(default_factory=dict)
    language: list[str] = field(default_factory=lambda: ["en"])

    def __len__(self) -> int:
        """Number of indexed terms."""
        return len(self.terms)

    def to_json(self) -> str:
        """Serialise the index deterministically.

        Returns:
            Compact JSON text.
        """
        payload = {
            "version": INDEX_VERSION,
            "language": self.language,
            "documents": [asdict(document) for document in self.documents],
            "terms": {term: [list(posting) for posting in postings] for term, postings in self.terms.items()},
        }
        return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)

    @classmethod
    def from_json(cls, text: str) -> "SearchIndex":
        """Load an index written by ``to_json``.

        Args:
            text: JSON text.

        Returns:
            SearchIndex instance.

        Raises:
            ValueError: If the text is not a search index of a known version or is damaged.
        """
        payload = json.loads(text)
        if not isinstance(payload, dict) or payload.get("version") != INDEX_VERSION:
            msg = "Unsupported search index version"
            raise ValueError(msg)
        try:
            documents = [IndexedDocument(**document) for document in payload["documents"]]
            terms = {term: [(doc, weight) for doc, weight in postings] for term, postings in payload["terms"].items()}
        except (KeyError, TypeError, AttributeError) as exc:
            msg = f"Malformed search index: {exc!r}"
            raise ValueError(msg) from exc
        return cls(documents=documents, terms=terms, language=payload.get("language", ["en"]))

    def filename(self, hashed: bool = False) -> str:
        """Name of the asset the index is written to.

        Args:
            hashed: Whether to include a content hash for cache busting.

        Returns:
            File name such as ``search-index-1a2b3c4d.json``.
        """
        if not hashed:
            return f"{INDEX_BASENAME}.json"
        digest = hashlib.sha256(self.to_json().encode("utf-8")).hexdigest()
        return f"{INDEX_BASENAME}-{digest[:8]}.json"

    def lookup(self, query: str, limit: int = 10) -> list[SearchResult]:
        """Search the index the way the browser does.

        Every query term must match an index term exactly or as a prefix.

        Args:
            query: Search query string.
            limit: Maximum number of results.

        Returns:
            List of SearchResult instances ordered by relevance.
        """
        query_terms = tokenize(query)
        if not query_terms:
            return []

        scores: Counter[int] | None = None
        for query_term in query_terms:
            matched: Counter[int] = Counter()
            for term, postings in self.terms.items():
                if term.startswith(query_term):
                    for doc, weight in postings:
                        matched[doc] += weight
            if scores is None:
                scores = matched
            else:
                scores = Counter({doc: scores[doc] + weight for doc, weight in matched.items() if doc in scores})
            if not scores:
                return []

        assert scores is not None
        ranked = sorted(scores.items(), key=lambda item: (-item[1], self.documents[item[0]].url))
        results = []
        for doc, score in ranked[:limit]:
            document = self.documents[doc]
            results.append(
                SearchResult(title=document.title, url=document.url, snippet=document.excerpt, score=float(score))
            )
        return results


def build_search_index(pages: Iterable[RenderedPage], language: list[str] | None = None) -> SearchIndex:
    """Build the search index over rendered documents.

    Args:
        pages: Rendered documents, in navigation order.
        language: Languages the index targets.

    Returns:
        SearchIndex with one record per page.
    """
    index = SearchIndex(language=list(language or ["en"]))
    postings: dict[str, list[tuple[int, int]]] = {}

    for number, page in enumerate(pages):
        index.documents.append(
            IndexedDocument(title=page.title, url=page.url, excerpt=make_excerpt(page.text, page.description))
        )
        weights = Counter(tokenize(page.text))
        for term in tokenize(page.title):
            weights[term] += TITLE_WEIGHT
        for term in sorted(weights):
            postings.setdefault(term, []).append((number, weights[term]))

    index.terms = dict(sorted(postings.items()))
    logger.info("Search index holds %d terms across %d pages", len(index.terms), len(index.documents))
    return index
