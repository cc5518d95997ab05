"""Internal link checking over the rendered site."""

import posixpath
from collections.abc import Iterable
from html.parser import HTMLParser
from urllib.parse import unquote, urlsplit

from interview_prep_docs.models import BrokenLink


class LinkParser(HTMLParser):
    """Collects ``href`` targets of anchors."""

    def __init__(self) -> None:
        """Initialise parser."""
        super().__init__()
        self.links: list[str] = []

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        """Track the start of a tag."""
        if tag != "a":
            return
        href = dict(attrs).get("href")
        if href:
            self.links.append(href)


def internal_target(href: str, page_url: str, base_url: str) -> str | None:
    """Resolve an href to a site path, or None when it leaves the site.

    Args:
        href: Link target as written in the page.
        page_url: URL path of the page holding the link.
        base_url: Configured base URL (``/`` or ``/prefix/``).

    Returns:
        Absolute path inside the site (without base URL, query or fragment),
        or None for external, anchor-only and non-HTTP links.
    """
    parts = urlsplit(href)
    if parts.scheme or parts.netloc or not parts.path:
        return None
    path = unquote(parts.path)
    if path.startswith("/"):
        if not path.startswith(base_url) and path + "/" != base_url:
            return path
        path = "/" + path[len(base_url) :]
    else:
        directory = page_url.rstrip("/") + "/"
        path = posixpath.normpath(posixpath.join(directory, path))
    return path


def find_broken_links(pages: Iterable[tuple[str, str]], known_paths: set[str], base_url: str) -> list[BrokenLink]:
    """Find internal links that point at nothing in the built site.

    Args:
        pages: Pairs of page URL path and page HTML.
        known_paths: Every URL path and file path the site will serve.
        base_url: Configured base URL.

    Returns:
        Broken links in page order.
    """
    broken = []
    for page_url, page_html in pages:
        parser = LinkParser()
        parser.feed(page_html)
        for href in parser.links:
            target = internal_target(href, page_url, base_url)
            if target is None:
                continue
            if target in known_paths or (target.rstrip("/") or "/") in known_paths:
                continue
            broken.append(BrokenLink(page=page_url, href=href))
    return broken
