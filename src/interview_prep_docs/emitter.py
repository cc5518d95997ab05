"""Static output emission with an all-or-nothing swap into place."""

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)


def page_file(url: str) -> str:
    """Relative output file for a page URL (``/a/b`` -> ``a/b/index.html``)."""
    stripped = url.strip("/")
    return f"{stripped}/index.html" if stripped else "index.html"


@dataclass
class SiteOutput:
    """Everything a build writes to the output directory."""

    pages: dict[str, str] = field(default_factory=dict)
    files: dict[str, str | bytes] = field(default_factory=dict)
    static_dirs: list[Path] = field(default_factory=list)
    copies: dict[str, Path] = field(default_factory=dict)

    def served_paths(self) -> set[str]:
        """URL paths the emitted directory will answer.

        Returns:
            Page URLs plus the path of every generated, copied and static file.
        """
        paths = set(self.pages)
        paths.update("/" + page_file(url) for url in self.pages)
        paths.update("/" + name for name in self.files)
        paths.update("/" + name for name in self.copies)
        for directory in self.static_dirs:
            if directory.is_dir():
                paths.update("/" + path.relative_to(directory).as_posix() for path in directory.rglob("*"))
        return paths


class StaticEmitter:
    """Writes a site into the output directory.

    The site is assembled in a staging directory next to the output directory
    and then swapped in, so a failed build never leaves a partial site behind.
    """

    def __init__(self, output_dir: Path) -> None:
        """Initialise emitter.

        Args:
            output_dir: Directory the finished site is published to.
        """
        self.output_dir = output_dir

    def emit(self, site: SiteOutput) -> int:
        """Write the site and publish it.

        Args:
            site: Pages, generated files and directories to copy.

        Returns:
            Number of files written.

        Raises:
            OSError: If anything cannot be written; the previous output is left untouched.
        """
        parent = self.output_dir.parent
        parent.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=f".{self.output_dir.name}-staging-", dir=parent))
        try:
            staging.chmod(0o755)
            written = self._write(staging, site)
            self._publish(staging)
        except OSError:
            logger.error("Could not write %s, previous output left in place", self.output_dir)
            shutil.rmtree(staging, ignore_errors=True)
            raise
        logger.info("Wrote %d files to %s", written, self.output_dir)
        return written

    def _write(self, root: Path, site: SiteOutput) -> int:
        """Write the whole site below ``root``.

        Args:
            root: Staging directory.
            site: Output to write.

        Returns:
            Number of files written.
        """
        written = 0
        for directory in site.static_dirs:
            if directory.is_dir():
                shutil.copytree(directory, root, dirs_exist_ok=True)
                written += sum(1 for path in directory.rglob("*") if path.is_file())

        for name, source in sorted(site.copies.items()):
            target = root / name
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, target)
            written += 1

        for name, content in sorted(site.files.items()):
            target = root / name
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                target.write_bytes(content)
            else:
                target.write_text(content, encoding="utf-8")
            written += 1

        for url, page_html in sorted(site.pages.items()):
            target = root / page_file(url)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(page_html, encoding="utf-8")
            written += 1
            logger.debug("Wrote page: %s", target.relative_to(root))
        return written

    def _publish(self, staging: Path) -> None:
        """Swap the staging directory into place, restoring the old output on failure.

        Args:
            staging: Fully written staging directory.
        """
        backup = None
        if self.output_dir.exists():
            backup = staging.with_name(staging.name.replace("-staging-", "-previous-"))
            os.replace(self.output_dir, backup)
        try:
            os.replace(staging, self.output_dir)
        except OSError:
            if backup is not None:
                os.replace(backup, self.output_dir)
            raise
        if backup is not None:
            shutil.rmtree(backup)
