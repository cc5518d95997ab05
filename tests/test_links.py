"""Tests for internal link checking."""

from interview_prep_docs.links import LinkParser, find_broken_links, internal_target
from interview_prep_docs.models import BrokenLink


def test_link_parser() -> None:
    """Test collecting anchor targets."""
    parser = LinkParser()
    parser.feed('<a href="/a">A</a><a name="x">X</a><link href="/style.css"><a href="#top">Top</a>')

    assert parser.links == ["/a", "#top"]


def test_internal_target() -> None:
    """Test resolving hrefs into site paths."""
    assert internal_target("https://example.com/a", "/x", "/") is None
    assert internal_target("mailto:me@example.com", "/x", "/") is None
    assert internal_target("#section", "/x", "/") is None
    assert internal_target("/react/hooks#effects", "/x", "/") == "/react/hooks"
    assert internal_target("../css/grid", "/react/hooks", "/") == "/react/css/grid"
    assert internal_target("/prep/react/hooks?tab=1", "/x", "/prep/") == "/react/hooks"
    assert internal_target("/prep", "/x", "/prep/") == "/"
    assert internal_target("/other/page", "/x", "/prep/") == "/other/page"


def test_find_broken_links() -> None:
    """Test reporting links that point nowhere."""
    pages = [
        ("/", '<a href="/react/hooks">Hooks</a><a href="/react/missing">Missing</a>'),
        ("/react/hooks", '<a href="/">Home</a><a href="/img/logo.svg">Logo</a><a href="https://x.dev">X</a>'),
    ]
    known = {"/", "/react/hooks", "/react/hooks/index.html", "/img/logo.svg"}

    assert find_broken_links(pages, known, "/") == [BrokenLink(page="/", href="/react/missing")]


def test_trailing_slash_is_the_same_page() -> None:
    """Test that directory-style links match page URLs."""
    pages = [("/", '<a href="/react/hooks/">Hooks</a>')]
    assert find_broken_links(pages, {"/", "/react/hooks"}, "/") == []
