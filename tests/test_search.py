"""Tests for the search index."""

import json

import pytest

from interview_prep_docs.models import RenderedPage
from interview_prep_docs.search import (
    SearchIndex,
    build_search_index,
    extract_text,
    make_excerpt,
    tokenize,
)


@pytest.fixture
def pages() -> list[RenderedPage]:
    """Create rendered pages for indexing.

    Returns:
        List of RenderedPage instances.
    """
    return [
        RenderedPage(
            url="/javascript/closures",
            title="Closures",
            html="",
            text="A closure captures variables from its enclosing scope. Closures power module patterns.",
        ),
        RenderedPage(
            url="/javascript/event-loop",
            title="Event Loop",
            html="",
            text="The event loop runs microtasks before the next macrotask. Promises schedule microtasks.",
            description="How JavaScript schedules work",
        ),
        RenderedPage(
            url="/react/hooks",
            title="Hooks",
            html="",
            text="useEffect runs after render and can capture stale closures.",
        ),
    ]


def test_extract_text_skips_code_and_anchors() -> None:
    """Test that code blocks and heading anchors are not indexed."""
    body_html = (
        '<h2 id="a">Scope<a class="hash-link" href="#a">#</a></h2>'
        "<p>Lexical &amp; dynamic</p>"
        '<div class="highlight"><pre><code>var secret = 1;</code></pre></div>'
        "<p>Done</p>"
    )
    assert extract_text(body_html) == "Scope Lexical & dynamic Done"


def test_tokenize() -> None:
    """Test term splitting, lowercasing and stop words."""
    assert tokenize("The Event-Loop and a useEffect in ES6!") == ["event", "loop", "useeffect", "es6"]


def test_make_excerpt() -> None:
    """Test excerpts prefer the description and cut long text at a word."""
    assert make_excerpt("Body text", "Described") == "Described"
    assert make_excerpt("Short text") == "Short text"
    excerpt = make_excerpt("word " * 60)
    assert excerpt.endswith("...")
    assert len(excerpt) <= 163


def test_build_index(pages: list[RenderedPage]) -> None:
    """Test building an index from rendered pages."""
    index = build_search_index(pages)

    assert [doc.url for doc in index.documents] == [page.url for page in pages]
    assert index.documents[1].excerpt == "How JavaScript schedules work"
    assert "microtasks" in index.terms
    assert "the" not in index.terms
    assert list(index.terms) == sorted(index.terms)


def test_title_terms_weigh_more(pages: list[RenderedPage]) -> None:
    """Test that a title match outranks body mentions."""
    index = build_search_index(pages)
    results = index.lookup("closures")

    assert results[0].url == "/javascript/closures"
    assert results[0].score > results[1].score


def test_lookup_prefix_and_conjunction(pages: list[RenderedPage]) -> None:
    """Test that terms match by prefix and all query terms must match."""
    index = build_search_index(pages)

    assert [result.url for result in index.lookup("micro")] == ["/javascript/event-loop"]
    assert [result.url for result in index.lookup("capture closure")] == [
        "/javascript/closures",
        "/react/hooks",
    ]
    assert index.lookup("closures microtasks") == []
    assert index.lookup("the") == []
    assert len(index.lookup("closures", limit=1)) == 1


def test_json_is_deterministic(pages: list[RenderedPage]) -> None:
    """Test that the same pages always serialise to the same JSON."""
    first = build_search_index(pages).to_json()
    second = build_search_index(list(pages)).to_json()

    assert first == second
    data = json.loads(first)
    assert data["version"] == 1
    assert data["language"] == ["en"]
    assert data["documents"][0] == {
        "title": "Closures",
        "url": "/javascript/closures",
        "excerpt": pages[0].text,
    }


def test_from_json(pages: list[RenderedPage]) -> None:
    """Test loading a serialised index gives the same lookups."""
    index = build_search_index(pages)
    loaded = SearchIndex.from_json(index.to_json())

    assert loaded.lookup("hooks") == index.lookup("hooks")
    assert len(loaded) == len(index)


def test_from_json_rejects_other_versions() -> None:
    """Test that an index from another format version is refused."""
    with pytest.raises(ValueError, match="version"):
        SearchIndex.from_json('{"version": 99, "documents": [], "terms": {}}')


@pytest.mark.parametrize(
    "text",
    [
        '{"version": 1, "documents": []}',
        '{"version": 1, "documents": [["closures"]], "terms": {}}',
        '{"version": 1, "documents": [], "terms": []}',
    ],
)
def test_from_json_rejects_truncated_index(text: str) -> None:
    """Test that a damaged index is reported as a value error."""
    with pytest.raises(ValueError, match="Malformed"):
        SearchIndex.from_json(text)


def test_filename(pages: list[RenderedPage]) -> None:
    """Test plain and content-hashed asset names."""
    index = build_search_index(pages)

    assert index.filename() == "search-index.json"
    hashed = index.filename(hashed=True)
    assert hashed.startswith("search-index-")
    assert len(hashed) == len("search-index-") + 8 + len(".json")
    assert hashed == build_search_index(pages).filename(hashed=True)


def test_empty_index() -> None:
    """Test that no pages gives zero terms."""
    index = build_search_index([])

    assert len(index) == 0
    assert index.documents == []
    assert index.lookup("anything") == []
