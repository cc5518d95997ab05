"""Local HTTP serving of built output and the rebuild-on-change dev loop."""

import logging
import threading
import uuid
from functools import partial
from http import HTTPStatus
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from urllib.parse import urlsplit

from interview_prep_docs.builder import SiteBuilder
from interview_prep_docs.cache import CACHE_FILENAME, RenderCache
from interview_prep_docs.config import CACHE_DIRNAME, SiteConfig, load_config
from interview_prep_docs.errors import SiteError
from interview_prep_docs.models import BuildReport

logger = logging.getLogger(__name__)

DEV_OUTPUT_DIRNAME = "dev"
NOT_FOUND_PAGE = "404.html"


class SiteRequestHandler(SimpleHTTPRequestHandler):
    """Serves a built site below its base URL."""

    base_url = "/"
    no_cache = False

    def translate_path(self, path: str) -> str:
        """Map a request path below the base URL to a file in the site directory.

        Args:
            path: Request path.

        Returns:
            Filesystem path; paths outside the base URL map to a missing file.
        """
        url_path = urlsplit(path).path
        prefix = self.base_url.rstrip("/")
        if prefix:
            if url_path != prefix and not url_path.startswith(prefix + "/"):
                return str(Path(self.directory) / NOT_FOUND_PAGE / "outside-base-url")
            url_path = url_path[len(prefix) :] or "/"
        return super().translate_path(url_path)

    def send_error(self, code: int, message: str | None = None, explain: str | None = None) -> None:
        """Serve the site's ``404.html`` for missing files, the default error page otherwise."""
        not_found = Path(self.directory) / NOT_FOUND_PAGE
        if code != HTTPStatus.NOT_FOUND or not not_found.is_file():
            super().send_error(code, message, explain)
            return
        body = not_found.read_bytes()
        self.send_response(code, message)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(body)

    def end_headers(self) -> None:
        """Disable caching when serving dev builds."""
        if self.no_cache:
            self.send_header("Cache-Control", "no-store")
        super().end_headers()

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002
        """Log requests at debug level instead of writing to stderr."""
        logger.debug("%s - %s", self.address_string(), format % args)


def make_server(
    directory: Path, host: str = "127.0.0.1", port: int = 3000, base_url: str = "/", no_cache: bool = False
) -> ThreadingHTTPServer:
    """Create an HTTP server for a built site.

    Args:
        directory: Output directory to serve.
        host: Interface to bind.
        port: Port to bind; 0 picks a free port.
        base_url: Base URL the site was built for.
        no_cache: Whether responses forbid browser caching.

    Returns:
        Bound server, not yet serving.
    """
    handler = type(
        "BoundSiteRequestHandler",
        (SiteRequestHandler,),
        {"base_url": base_url, "no_cache": no_cache},
    )
    return ThreadingHTTPServer((host, port), partial(handler, directory=str(directory)))


def serve(directory: Path, host: str, port: int, base_url: str = "/") -> None:
    """Serve a built site until interrupted.

    Raises:
        FileNotFoundError: If the directory does not exist.
    """
    if not directory.is_dir():
        msg = f"Output directory does not exist: {directory}"
        raise FileNotFoundError(msg)
    with make_server(directory, host, port, base_url) as httpd:
        logger.info("Serving %s at http://%s:%d%s", directory, host, httpd.server_port, base_url)
        httpd.serve_forever()


def source_snapshot(config: SiteConfig) -> dict[str, int]:
    """Modification times of every file a build reads.

    Args:
        config: Site configuration.

    Returns:
        Mapping of file path to ``st_mtime_ns``.
    """
    snapshot = {}
    roots = [config.content_path, config.static_path]
    for root in roots:
        if not root.is_dir():
            continue
        for path in root.rglob("*"):
            if CACHE_DIRNAME in path.parts or not path.is_file():
                continue
            snapshot[str(path)] = path.stat().st_mtime_ns
    extra = [Path(config.source)] if config.source else []
    if config.theme.custom_css:
        extra.append(config.project_dir / config.theme.custom_css)
    for path in extra:
        if path.is_file():
            snapshot[str(path)] = path.stat().st_mtime_ns
    return snapshot


class DevServer:
    """Builds drafts included, serves the result and rebuilds when sources change."""

    def __init__(
        self,
        project_dir: Path,
        config_path: Path | None = None,
        host: str = "127.0.0.1",
        port: int = 3000,
        poll_interval: float = 1.0,
    ) -> None:
        """Initialise dev server.

        Args:
            project_dir: Project directory.
            config_path: Explicit configuration file.
            host: Interface to bind.
            port: Port to bind.
            poll_interval: Seconds between source checks.
        """
        self.project_dir = project_dir
        self.config_path = config_path
        self.host = host
        self.port = port
        self.poll_interval = poll_interval
        self.config = load_config(project_dir, config_path)
        self.output_dir = self.config.cache_path / DEV_OUTPUT_DIRNAME
        self.cache = RenderCache(self.config.cache_path / CACHE_FILENAME)
        self._snapshot: dict[str, int] = {}

    def rebuild(self) -> BuildReport:
        """Reload configuration and rebuild the dev output.

        Returns:
            Report of the build.

        Raises:
            ConfigurationError: If the configuration or content layout is invalid.
            OSError: If the output cannot be written.
        """
        self.config = load_config(self.project_dir, self.config_path)
        self._snapshot = source_snapshot(self.config)
        builder = SiteBuilder(
            self.config,
            include_drafts=True,
            cache=self.cache,
            output_dir=self.output_dir,
            build_id=uuid.uuid4().hex,
        )
        return builder.build()

    def changed(self) -> bool:
        """Return whether any source file changed since the last build."""
        return source_snapshot(self.config) != self._snapshot

    def run(self, stop: threading.Event | None = None) -> None:
        """Build, serve and keep rebuilding until ``stop`` is set or interrupted.

        Raises:
            ConfigurationError: If the first build cannot start.
        """
        stop = stop or threading.Event()
        self.rebuild()
        with make_server(self.output_dir, self.host, self.port, self.config.base_url, no_cache=True) as httpd:
            thread = threading.Thread(target=httpd.serve_forever, daemon=True)
            thread.start()
            logger.info("Dev server at http://%s:%d%s", self.host, httpd.server_port, self.config.base_url)
            try:
                while not stop.wait(self.poll_interval):
                    if not self.changed():
                        continue
                    logger.info("Change detected, rebuilding")
                    try:
                        self.rebuild()
                    except (SiteError, OSError) as exc:
                        logger.error("Rebuild failed, serving previous output: %s", exc)
            finally:
                httpd.shutdown()
                thread.join()
