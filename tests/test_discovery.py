"""Tests for content discovery and front-matter parsing."""

from pathlib import Path

import pytest

from interview_prep_docs.config import SiteConfig
from interview_prep_docs.discovery import (
    discover_content,
    parse_document,
    read_manifest,
    split_front_matter,
    strip_number_prefix,
)
from interview_prep_docs.errors import ConfigurationError


@pytest.fixture
def content_dir(tmp_path: Path) -> Path:
    """Create a temporary content directory.

    Args:
        tmp_path: Pytest temporary directory fixture.

    Returns:
        Path to the empty content directory.
    """
    docs_dir = tmp_path / "docs"
    docs_dir.mkdir()
    return docs_dir


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_strip_number_prefix() -> None:
    """Test splitting ordering prefixes off names."""
    assert strip_number_prefix("01-closures") == (1, "closures")
    assert strip_number_prefix("10_event-loop") == (10, "event-loop")
    assert strip_number_prefix("closures") == (None, "closures")
    assert strip_number_prefix("2024") == (None, "2024")


def test_split_front_matter() -> None:
    """Test separating front-matter from the body."""
    metadata, body, body_line = split_front_matter("---\ntitle: Closures\nsidebar_position: 2\n---\nBody\n", "a.md")

    assert metadata == {"title": "Closures", "sidebar_position": 2}
    assert body == "Body\n"
    assert body_line == 5


def test_split_without_front_matter() -> None:
    """Test a document with no front-matter block."""
    metadata, body, body_line = split_front_matter("# Title\n", "a.md")

    assert metadata == {}
    assert body == "# Title\n"
    assert body_line == 1


def test_unclosed_front_matter() -> None:
    """Test that an unterminated block is a configuration error."""
    with pytest.raises(ConfigurationError, match="not closed") as exc_info:
        split_front_matter("---\ntitle: x\n\nBody\n", "a.md")
    assert exc_info.value.path == "a.md"


def test_malformed_front_matter_line() -> None:
    """Test that YAML errors point at the offending source line."""
    with pytest.raises(ConfigurationError) as exc_info:
        split_front_matter("---\ntitle: ok\nkeywords: [a, b\n---\nBody\n", "a.md")
    assert exc_info.value.line is not None
    assert exc_info.value.line >= 3


def test_parse_document_title_from_front_matter(content_dir: Path) -> None:
    """Test that the front-matter title wins and the heading stays in the body."""
    path = write(
        content_dir / "javascript" / "01-closures.md",
        "---\ntitle: Closures Explained\ndescription: Scope capture\n---\n# Closures\n\nText.\n",
    )
    doc = parse_document(path, content_dir)

    assert doc.path == "javascript/01-closures.md"
    assert doc.doc_id == "closures"
    assert doc.title == "Closures Explained"
    assert doc.description == "Scope capture"
    assert doc.sidebar_position == 1
    assert doc.url == "/javascript/closures"
    assert doc.format == "markdown"
    assert doc.body.lstrip().startswith("# Closures")
    assert doc.content_title


def test_parse_document_title_from_heading(content_dir: Path) -> None:
    """Test that a leading H1 becomes the title and leaves the body."""
    path = write(content_dir / "event-loop.md", "\n# The Event Loop\n\nMacrotasks and microtasks.\n")
    doc = parse_document(path, content_dir)

    assert doc.title == "The Event Loop"
    assert doc.body.strip() == "Macrotasks and microtasks."
    assert doc.body_line == 3
    assert not doc.content_title


def test_parse_document_title_fallback(content_dir: Path) -> None:
    """Test that the document id is the last resort title."""
    path = write(content_dir / "03-promises.md", "No heading here.\n")
    doc = parse_document(path, content_dir)

    assert doc.title == "promises"
    assert doc.sidebar_position == 3


def test_front_matter_position_overrides_prefix(content_dir: Path) -> None:
    """Test that sidebar_position beats the file name prefix."""
    path = write(content_dir / "01-a.md", "---\nsidebar_position: 7\n---\nA\n")
    assert parse_document(path, content_dir).sidebar_position == 7


def test_slug_overrides_url(content_dir: Path) -> None:
    """Test that an explicit slug is served verbatim."""
    path = write(content_dir / "react" / "hooks.md", "---\nslug: /hooks-cheatsheet/\n---\nBody\n")
    assert parse_document(path, content_dir).url == "/hooks-cheatsheet"


def test_index_document_url(content_dir: Path) -> None:
    """Test that index and README files take their directory's URL."""
    index = write(content_dir / "02-react" / "index.md", "# React\n")
    readme = write(content_dir / "css" / "README.md", "# CSS\n")
    root = write(content_dir / "index.md", "# Home\n")

    assert parse_document(index, content_dir).url == "/react"
    assert parse_document(readme, content_dir).url == "/css"
    assert parse_document(root, content_dir).url == "/"


def test_front_matter_type_errors(content_dir: Path) -> None:
    """Test that wrongly typed front-matter values are rejected."""
    path = write(content_dir / "a.md", "---\nsidebar_position: first\n---\nBody\n")
    with pytest.raises(ConfigurationError, match="sidebar_position"):
        parse_document(path, content_dir)

    path = write(content_dir / "b.md", "---\ndraft: true\nkeywords: [1, 2]\n---\nBody\n")
    with pytest.raises(ConfigurationError, match="keywords"):
        parse_document(path, content_dir)


def test_unknown_front_matter_is_kept(content_dir: Path) -> None:
    """Test that unrecognised keys are carried in extra."""
    path = write(content_dir / "a.md", "---\ndifficulty: hard\n---\nBody\n")
    assert parse_document(path, content_dir).extra == {"difficulty": "hard"}


def test_non_utf8_document(content_dir: Path) -> None:
    """Test that undecodable files are configuration errors."""
    path = content_dir / "latin.md"
    path.write_bytes("caf\xe9\n".encode("latin-1"))
    with pytest.raises(ConfigurationError, match="UTF-8"):
        parse_document(path, content_dir)


def test_parse_rst_document(content_dir: Path) -> None:
    """Test that reStructuredText documents take their title from docutils."""
    path = write(
        content_dir / "browser" / "rendering.rst",
        "Critical Rendering Path\n=======================\n\nHow the browser paints a page.\n",
    )
    doc = parse_document(path, content_dir)

    assert doc.format == "rst"
    assert doc.title == "Critical Rendering Path"
    assert doc.description == "How the browser paints a page."
    assert doc.url == "/browser/rendering"


def test_read_manifest_json(content_dir: Path) -> None:
    """Test reading a JSON category manifest."""
    path = write(
        content_dir / "01-javascript" / "_category_.json",
        '{"label": "JavaScript", "position": 1, "collapsed": false, "items": ["closures", "event-loop"]}',
    )
    manifest = read_manifest(path, content_dir)

    assert manifest.path == "01-javascript"
    assert manifest.label == "JavaScript"
    assert manifest.position == 1
    assert manifest.collapsed is False
    assert manifest.items == ("closures", "event-loop")


def test_read_manifest_yaml(content_dir: Path) -> None:
    """Test reading a YAML category manifest."""
    path = write(content_dir / "react" / "_category_.yml", "label: React\nposition: 2\n")
    manifest = read_manifest(path, content_dir)

    assert manifest.label == "React"
    assert manifest.collapsed is True
    assert manifest.items == ()


def test_malformed_manifest(content_dir: Path) -> None:
    """Test that broken manifests are configuration errors with a line."""
    path = write(content_dir / "react" / "_category_.json", '{\n  "label": "React",\n}')
    with pytest.raises(ConfigurationError) as exc_info:
        read_manifest(path, content_dir)
    assert exc_info.value.path == "react/_category_.json"
    assert exc_info.value.line == 3


def test_manifest_not_utf8(content_dir: Path) -> None:
    """Test that a manifest in another encoding is a configuration error."""
    path = content_dir / "react" / "_category_.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b'{"label": "\xff"}')

    with pytest.raises(ConfigurationError, match="UTF-8") as exc_info:
        read_manifest(path, content_dir)
    assert exc_info.value.path == "react/_category_.json"


def test_manifest_position_type(content_dir: Path) -> None:
    """Test that manifest positions must be integers."""
    path = write(content_dir / "react" / "_category_.yml", "position: second\n")
    with pytest.raises(ConfigurationError, match="position"):
        read_manifest(path, content_dir)


def test_discover_content(content_dir: Path) -> None:
    """Test enumerating documents and categories."""
    write(content_dir / "index.md", "# Home\n")
    write(content_dir / "01-javascript" / "closures.md", "# Closures\n")
    write(content_dir / "01-javascript" / "_category_.json", '{"label": "JavaScript"}')
    write(content_dir / "react" / "hooks" / "use-effect.mdx", "# useEffect\n")
    write(content_dir / "react" / "notes.txt", "not content")
    write(content_dir / "_partials" / "snippet.md", "# Partial\n")
    write(content_dir / ".hidden" / "secret.md", "# Secret\n")

    contents = discover_content(content_dir, SiteConfig())

    paths = [doc.path for doc in contents.documents]
    assert paths == ["01-javascript/closures.md", "index.md", "react/hooks/use-effect.mdx"]
    assert set(contents.categories) == {"", "01-javascript", "react", "react/hooks"}
    assert contents.categories["01-javascript"].label == "JavaScript"
    assert contents.categories["01-javascript"].position == 1
    assert contents.categories["react"].label == "react"


def test_discover_drafts(content_dir: Path) -> None:
    """Test that drafts are only kept when asked for."""
    write(content_dir / "done.md", "# Done\n")
    write(content_dir / "wip.md", "---\ndraft: true\n---\n# WIP\n")

    published = discover_content(content_dir, SiteConfig())
    preview = discover_content(content_dir, SiteConfig(), include_drafts=True)

    assert [doc.doc_id for doc in published.documents] == ["done"]
    assert [doc.doc_id for doc in preview.documents] == ["done", "wip"]


def test_discover_exclude_patterns(content_dir: Path) -> None:
    """Test that configured globs exclude files."""
    write(content_dir / "keep.md", "# Keep\n")
    write(content_dir / "scratch" / "idea.md", "# Idea\n")

    contents = discover_content(content_dir, SiteConfig(exclude=["scratch/*"]))

    assert [doc.path for doc in contents.documents] == ["keep.md"]


def test_discover_duplicate_urls(content_dir: Path) -> None:
    """Test that two documents served at one URL are rejected."""
    write(content_dir / "hooks.md", "# Hooks\n")
    write(content_dir / "react.md", "---\nslug: /hooks\n---\n# React\n")

    with pytest.raises(ConfigurationError, match="/hooks"):
        discover_content(content_dir, SiteConfig())


def test_discover_missing_directory(tmp_path: Path) -> None:
    """Test that a missing content root yields an empty set."""
    contents = discover_content(tmp_path / "nope", SiteConfig())

    assert contents.documents == []
    assert list(contents.categories) == [""]
