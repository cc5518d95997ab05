"""Navigation tree assembly from discovered documents and categories."""

import logging
from collections import defaultdict
from collections.abc import Iterator
from dataclasses import replace
from pathlib import PurePosixPath
from typing import Union

from interview_prep_docs.discovery import strip_number_prefix
from interview_prep_docs.models import Category, ContentSet, Document

logger = logging.getLogger(__name__)

NavItem = Union[Document, Category]


class NavigationTree:
    """Sidebar tree rooted at the content directory.

    Every document is reachable exactly once, either as a child of a category
    or as a category's index page.
    """

    def __init__(self, root: Category) -> None:
        """Initialise the tree and its lookup tables.

        Args:
            root: Category for the content root.
        """
        self.root = root
        self._documents: list[Document] = []
        self._ancestors: dict[str, tuple[Category, ...]] = {}
        self._walk(root, ())
        self._by_url = {document.url: document for document in self._documents}
        self._positions = {document.path: index for index, document in enumerate(self._documents)}

    def _walk(self, category: Category, ancestors: tuple[Category, ...]) -> None:
        """Record documents of a category and its descendants in sidebar order.

        Args:
            category: Category to walk.
            ancestors: Categories above it, root excluded.
        """
        trail = (*ancestors, category) if category.path else ancestors
        if category.index is not None:
            self._add(category.index, trail)
        for child in category.children:
            if isinstance(child, Category):
                self._walk(child, trail)
            else:
                self._add(child, trail)

    def _add(self, document: Document, trail: tuple[Category, ...]) -> None:
        """Record one document and its breadcrumbs."""
        self._documents.append(document)
        self._ancestors[document.path] = trail

    def __len__(self) -> int:
        """Number of documents in the tree."""
        return len(self._documents)

    def iter_documents(self) -> Iterator[Document]:
        """Yield documents in sidebar order."""
        return iter(self._documents)

    def find(self, url: str) -> Document | None:
        """Look up the document served at a URL path."""
        return self._by_url.get(url)

    def breadcrumbs(self, document: Document) -> tuple[Category, ...]:
        """Return the categories enclosing a document, outermost first."""
        return self._ancestors.get(document.path, ())

    def neighbours(self, document: Document) -> tuple[Document | None, Document | None]:
        """Return the previous and next documents in sidebar order.

        Args:
            document: Document in this tree.

        Returns:
            Tuple of previous and next document; either may be None.
        """
        index = self._positions.get(document.path)
        if index is None:
            return None, None
        previous = self._documents[index - 1] if index > 0 else None
        following = self._documents[index + 1] if index + 1 < len(self._documents) else None
        return previous, following


def _sort_key(item: NavItem) -> tuple[bool, int, str]:
    """Default sort key: positioned items first by position, then by name.

    Args:
        item: Document or category.

    Returns:
        Sort key tuple.
    """
    if isinstance(item, Document):
        position, name = item.sidebar_position, item.file_name
    else:
        position, name = item.position, item.name
    return (position is None, position if position is not None else 0, name)


def _matches(item: NavItem, key: str) -> bool:
    """Whether an ordering manifest key names this document or category.

    Args:
        item: Document or category.
        key: Entry from an ordering manifest.

    Returns:
        True if the key matches the doc id, file name, slug or directory name.
    """
    key = key.strip("/")
    if isinstance(item, Document):
        candidates = {item.doc_id, item.file_name, PurePosixPath(item.path).stem}
        if item.slug:
            candidates.add(item.slug.strip("/"))
        return key in candidates
    return key in (item.name, strip_number_prefix(item.name)[1])


def order_children(directory: str, children: list[NavItem], manifest: list[str] | None) -> list[NavItem]:
    """Order the children of one directory.

    Entries named in the manifest come first, in manifest order. The rest
    follow by position, then file name.

    Args:
        directory: Relative directory the children belong to.
        children: Documents and categories in the directory.
        manifest: Optional explicit ordering of child names.

    Returns:
        Ordered list of children.
    """
    ordered = sorted(children, key=_sort_key)
    if not manifest:
        return ordered

    listed: list[NavItem] = []
    taken: set[int] = set()
    for key in manifest:
        match = next((child for child in ordered if id(child) not in taken and _matches(child, key)), None)
        if match is None:
            logger.warning("Navigation entry '%s' in '%s' does not match any document, skipping", key, directory or "/")
            continue
        listed.append(match)
        taken.add(id(match))
    return listed + [child for child in ordered if id(child) not in taken]


def _pick_index(documents: list[Document]) -> Document | None:
    """Choose a directory's index document, preferring ``index`` over ``README``."""
    for stem in ("index", "readme"):
        for document in documents:
            if PurePosixPath(document.path).stem.lower() == stem:
                return document
    return None


def build_navigation(contents: ContentSet, ordering: dict[str, list[str]] | None = None) -> NavigationTree:
    """Assemble the navigation tree.

    Args:
        contents: Documents, categories and manifests from discovery.
        ordering: Explicit ordering per directory; overrides manifest ``items``.

    Returns:
        NavigationTree containing every document exactly once.
    """
    manifest_order = {path: list(manifest.items) for path, manifest in contents.manifests.items() if manifest.items}
    manifest_order.update(ordering or {})

    by_directory: dict[str, list[Document]] = defaultdict(list)
    for document in contents.documents:
        by_directory[document.directory].append(document)

    subdirectories: dict[str, list[str]] = defaultdict(list)
    for path in contents.categories:
        if path:
            parent = str(PurePosixPath(path).parent)
            subdirectories["" if parent == "." else parent].append(path)

    def assemble(directory: str) -> Category | None:
        documents = by_directory.get(directory, [])
        index = _pick_index(documents)
        children: list[NavItem] = [document for document in documents if document is not index]
        for subdirectory in subdirectories.get(directory, []):
            category = assemble(subdirectory)
            if category is not None:
                children.append(category)
        if directory and index is None and not children:
            return None

        base = contents.categories.get(directory)
        if base is None:
            _, name = strip_number_prefix(PurePosixPath(directory).name)
            base = Category(path=directory, label=name)
        return replace(
            base,
            index=index,
            children=tuple(order_children(directory, children, manifest_order.get(directory))),
        )

    root = assemble("")
    assert root is not None
    tree = NavigationTree(root)
    logger.debug("Navigation tree holds %d documents", len(tree))
    return tree
