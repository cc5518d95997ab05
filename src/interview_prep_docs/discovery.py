"""Content discovery: enumerate content files and resolve their metadata."""

import fnmatch
import json
import logging
import re
from pathlib import Path, PurePosixPath
from typing import Any

import yaml

from interview_prep_docs import restructuredtext
from interview_prep_docs.config import SiteConfig
from interview_prep_docs.errors import ConfigurationError
from interview_prep_docs.models import INDEX_STEMS, Category, CategoryManifest, ContentSet, Document

logger = logging.getLogger(__name__)

MARKDOWN_EXTENSIONS = (".md", ".mdx", ".markdown")
RST_EXTENSIONS = (".rst", ".rest")
MANIFEST_NAMES = ("_category_.json", "_category_.yml", "_category_.yaml")
FRONT_MATTER_DELIMITER = "---"

_NUMBER_PREFIX_RE = re.compile(r"^(?P<number>\d+)[-_. ]+(?P<name>.+)$")
_HEADING_RE = re.compile(r"^#\s+(?P<title>.+?)\s*#*\s*$")

# Known front-matter keys and the types they accept.
_FRONT_MATTER_TYPES: dict[str, tuple[type, ...]] = {
    "title": (str,),
    "slug": (str,),
    "sidebar_label": (str,),
    "description": (str,),
    "sidebar_position": (int,),
    "keywords": (list,),
    "draft": (bool,),
}


def strip_number_prefix(name: str) -> tuple[int | None, str]:
    """Split an ordering prefix such as ``01-`` off a file or directory name.

    Args:
        name: File stem or directory name.

    Returns:
        Tuple of the prefix number (or None) and the remaining name.
    """
    match = _NUMBER_PREFIX_RE.match(name)
    if not match:
        return None, name
    return int(match.group("number")), match.group("name")


def split_front_matter(text: str, path: str) -> tuple[dict[str, Any], str, int]:
    """Separate the front-matter block from a document body.

    Args:
        text: Full file contents.
        path: Relative path used in error messages.

    Returns:
        Tuple of metadata mapping, body text and the 1-based line the body starts on.

    Raises:
        ConfigurationError: If the block is unterminated, not valid YAML or not a mapping.
    """
    text = text.lstrip("\ufeff")
    lines = text.split("\n")
    if lines[0].rstrip() != FRONT_MATTER_DELIMITER:
        return {}, text, 1

    for end in range(1, len(lines)):
        if lines[end].rstrip() == FRONT_MATTER_DELIMITER:
            break
    else:
        msg = "front-matter block is not closed with '---'"
        raise ConfigurationError(msg, path=path, line=1)

    try:
        metadata = yaml.safe_load("\n".join(lines[1:end]))
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        line = mark.line + 2 if mark is not None else 1
        msg = f"malformed front-matter: {getattr(exc, 'problem', None) or exc}"
        raise ConfigurationError(msg, path=path, line=line) from exc

    if metadata is None:
        metadata = {}
    if not isinstance(metadata, dict):
        raise ConfigurationError("front-matter must be a mapping of keys to values", path=path, line=2)

    return metadata, "\n".join(lines[end + 1 :]), end + 2


def _validate_front_matter(metadata: dict[str, Any], path: str) -> None:
    """Check the types of known front-matter keys.

    Args:
        metadata: Parsed front-matter.
        path: Relative path used in error messages.

    Raises:
        ConfigurationError: If a known key has the wrong type.
    """
    for key, expected in _FRONT_MATTER_TYPES.items():
        if key not in metadata or metadata[key] is None:
            continue
        value = metadata[key]
        # bool is an int subclass
        if not isinstance(value, expected) or (expected == (int,) and isinstance(value, bool)):
            names = " or ".join(t.__name__ for t in expected)
            raise ConfigurationError(f"front-matter '{key}' must be of type {names}", path=path, line=2)
    keywords = metadata.get("keywords") or []
    if not all(isinstance(keyword, str) for keyword in keywords):
        raise ConfigurationError("front-matter 'keywords' must be a list of strings", path=path, line=2)


def _title_from_heading(body: str) -> tuple[str | None, str, int]:
    """Take a leading ``# Heading`` out of a markdown body.

    Returns:
        Tuple of title (or None), remaining body and number of lines removed.
    """
    lines = body.split("\n")
    for index, line in enumerate(lines):
        if not line.strip():
            continue
        match = _HEADING_RE.match(line.strip())
        if match:
            return match.group("title"), "\n".join(lines[index + 1 :]), index + 1
        break
    return None, body, 0


def document_url(relative_path: PurePosixPath, doc_id: str, slug: str | None, is_index: bool) -> str:
    """Compute the URL path a document is served at.

    Args:
        relative_path: Path of the file inside the content root.
        doc_id: Document id (file stem without ordering prefix).
        slug: Explicit slug from front-matter, if any.
        is_index: Whether the file is its directory's index page.

    Returns:
        Absolute URL path such as ``/javascript/core/closures``.
    """
    if slug is not None:
        return "/" + slug.strip("/")
    parts = [strip_number_prefix(part)[1] for part in relative_path.parent.parts]
    if not is_index:
        parts.append(doc_id)
    return "/" + "/".join(parts)


def parse_document(file_path: Path, content_dir: Path) -> Document:
    """Read a content file and resolve its metadata.

    Args:
        file_path: Path to the content file.
        content_dir: Root of the content tree.

    Returns:
        Document instance.

    Raises:
        ConfigurationError: If the file is not UTF-8 or its front-matter is malformed.
    """
    relative = PurePosixPath(file_path.relative_to(content_dir).as_posix())
    path = str(relative)
    try:
        text = file_path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ConfigurationError("file is not valid UTF-8", path=path) from exc
    metadata, body, body_line = split_front_matter(text, path)
    _validate_front_matter(metadata, path)

    prefix_position, doc_id = strip_number_prefix(relative.stem)
    fmt = "rst" if relative.suffix.lower() in RST_EXTENSIONS else "markdown"

    title = metadata.get("title")
    description = metadata.get("description")
    content_title = False
    if fmt == "markdown":
        heading, stripped_body, removed = _title_from_heading(body)
        if heading is not None and not title:
            body = stripped_body
            body_line += removed
            title = heading
        elif heading is not None:
            # the heading stays in the body and is rendered as the page h1
            content_title = True
    elif not title or not description:
        rst_title, rst_description = restructuredtext.read_metadata(body, path)
        title = title or rst_title
        description = description or rst_description
    if not title:
        title = doc_id

    sidebar_position = metadata.get("sidebar_position")
    if sidebar_position is None:
        sidebar_position = prefix_position

    slug = metadata.get("slug")
    is_index = relative.stem.lower() in INDEX_STEMS
    known = set(_FRONT_MATTER_TYPES)
    return Document(
        path=path,
        doc_id=doc_id,
        title=title,
        slug=slug,
        sidebar_position=sidebar_position,
        body=body,
        url=document_url(relative, doc_id, slug, is_index),
        format=fmt,
        body_line=body_line,
        sidebar_label=metadata.get("sidebar_label"),
        description=description,
        keywords=tuple(metadata.get("keywords") or ()),
        draft=bool(metadata.get("draft", False)),
        content_title=content_title,
        extra={key: value for key, value in metadata.items() if key not in known},
    )


def read_manifest(file_path: Path, content_dir: Path) -> CategoryManifest:
    """Read a ``_category_`` manifest file.

    Args:
        file_path: Path to the manifest.
        content_dir: Root of the content tree.

    Returns:
        CategoryManifest for the manifest's directory.

    Raises:
        ConfigurationError: If the manifest is unparsable or holds invalid values.
    """
    relative = file_path.relative_to(content_dir).as_posix()
    directory = str(PurePosixPath(relative).parent)
    directory = "" if directory == "." else directory
    try:
        text = file_path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ConfigurationError("category manifest is not valid UTF-8", path=relative) from exc
    try:
        if file_path.suffix == ".json":
            data = json.loads(text) if text.strip() else {}
        else:
            data = yaml.safe_load(text) or {}
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"malformed category manifest: {exc.msg}", path=relative, line=exc.lineno) from exc
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        line = mark.line + 1 if mark is not None else None
        raise ConfigurationError("malformed category manifest", path=relative, line=line) from exc

    if not isinstance(data, dict):
        raise ConfigurationError("category manifest must be a mapping", path=relative)

    label = data.get("label")
    position = data.get("position")
    collapsed = data.get("collapsed", True)
    items = data.get("items") or []
    if label is not None and not isinstance(label, str):
        raise ConfigurationError("category 'label' must be a string", path=relative)
    if position is not None and (not isinstance(position, int) or isinstance(position, bool)):
        raise ConfigurationError("category 'position' must be an integer", path=relative)
    if not isinstance(collapsed, bool):
        raise ConfigurationError("category 'collapsed' must be true or false", path=relative)
    if not isinstance(items, list) or not all(isinstance(item, str) for item in items):
        raise ConfigurationError("category 'items' must be a list of names", path=relative)

    return CategoryManifest(path=directory, label=label, position=position, collapsed=collapsed, items=tuple(items))


def _is_excluded(relative: PurePosixPath, patterns: list[str]) -> bool:
    """Whether a path is hidden, a partial, or matches an exclude pattern."""
    if any(part.startswith((".", "_")) for part in relative.parts):
        return True
    path = str(relative)
    return any(fnmatch.fnmatch(path, pattern) for pattern in patterns)


def _category_for(directory: str, manifest: CategoryManifest | None) -> Category:
    """Create the category for a directory.

    Args:
        directory: Relative directory, ``""`` for the root.
        manifest: The directory's manifest, if it has one.

    Returns:
        Category without children.
    """
    prefix_position, name = strip_number_prefix(PurePosixPath(directory).name) if directory else (None, "")
    if manifest is None:
        return Category(path=directory, label=name, position=prefix_position)
    position = manifest.position if manifest.position is not None else prefix_position
    return Category(
        path=directory,
        label=manifest.label or name,
        position=position,
        collapsed=manifest.collapsed,
    )


def discover_content(content_dir: Path, config: SiteConfig, include_drafts: bool = False) -> ContentSet:
    """Enumerate all documents and categories under the content root.

    Args:
        content_dir: Root of the content tree.
        config: Site configuration (exclusion patterns).
        include_drafts: Whether documents marked ``draft`` are kept.

    Returns:
        ContentSet with documents ordered by path.

    Raises:
        ConfigurationError: On malformed front-matter or manifests, or when two
            documents resolve to the same URL.
    """
    if not content_dir.is_dir():
        logger.warning("Content directory does not exist: %s", content_dir)
        return ContentSet(documents=[], categories={"": Category(path="", label="")})

    documents: list[Document] = []
    manifests: dict[str, CategoryManifest] = {}
    extensions = MARKDOWN_EXTENSIONS + RST_EXTENSIONS

    for file_path in sorted(content_dir.rglob("*")):
        if not file_path.is_file():
            continue
        relative = PurePosixPath(file_path.relative_to(content_dir).as_posix())
        if relative.name in MANIFEST_NAMES:
            if not any(part.startswith((".", "_")) for part in relative.parent.parts):
                manifest = read_manifest(file_path, content_dir)
                manifests[manifest.path] = manifest
            continue
        if relative.suffix.lower() not in extensions or _is_excluded(relative, config.exclude):
            continue

        document = parse_document(file_path, content_dir)
        if document.draft and not include_drafts:
            logger.debug("Skipping draft: %s", document.path)
            continue
        documents.append(document)
        logger.debug("Discovered: %s -> %s", document.path, document.url)

    _check_unique_urls(documents)

    directories = {""}
    for document in documents:
        parent = PurePosixPath(document.path).parent
        while str(parent) != ".":
            directories.add(str(parent))
            parent = parent.parent
    categories = {directory: _category_for(directory, manifests.get(directory)) for directory in sorted(directories)}

    logger.info("Discovered %d documents in %d categories", len(documents), len(categories) - 1)
    return ContentSet(documents=documents, categories=categories, manifests=manifests)


def _check_unique_urls(documents: list[Document]) -> None:
    """Make sure no two documents resolve to the same URL.

    Args:
        documents: Discovered documents.

    Raises:
        ConfigurationError: Naming the second document that claims a URL.
    """
    seen: dict[str, str] = {}
    for document in documents:
        if document.url in seen:
            msg = f"URL {document.url} is already used by {seen[document.url]}"
            raise ConfigurationError(msg, path=document.path)
        seen[document.url] = document.path
