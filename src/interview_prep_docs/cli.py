"""Command line interface: ``interview-prep-docs build|start|clear|serve|search``."""

import argparse
import logging
import shutil
import sys
from pathlib import Path

from interview_prep_docs import __version__
from interview_prep_docs.builder import SiteBuilder
from interview_prep_docs.cache import CACHE_FILENAME, RenderCache
from interview_prep_docs.config import load_config
from interview_prep_docs.errors import ConfigurationError, ContentError
from interview_prep_docs.search import INDEX_BASENAME, SearchIndex
from interview_prep_docs.server import DevServer, serve

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONTENT_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_IO_ERROR = 3


def cmd_build(args: argparse.Namespace) -> int:
    """Handle ``build``."""
    config = load_config(args.project_dir, args.config)
    cache = None if args.no_cache else RenderCache(config.cache_path / CACHE_FILENAME)
    report = SiteBuilder(config, cache=cache, jobs=args.jobs, output_dir=args.out_dir).build()
    for failure in report.failures:
        print(f"error: {failure}", file=sys.stderr)
    return EXIT_OK if report.ok else EXIT_CONTENT_ERROR


def cmd_start(args: argparse.Namespace) -> int:
    """Handle ``start``: run the dev server until interrupted."""
    server = DevServer(
        args.project_dir,
        config_path=args.config,
        host=args.host,
        port=args.port,
        poll_interval=args.poll_interval,
    )
    try:
        server.run()
    except KeyboardInterrupt:
        logger.info("Stopped")
    return EXIT_OK


def cmd_clear(args: argparse.Namespace) -> int:
    """Handle ``clear``: remove the build cache directory."""
    config = load_config(args.project_dir, args.config)
    if config.cache_path.exists():
        shutil.rmtree(config.cache_path)
        logger.info("Removed %s", config.cache_path)
    else:
        logger.info("Nothing to clear at %s", config.cache_path)
    return EXIT_OK


def cmd_serve(args: argparse.Namespace) -> int:
    """Handle ``serve``."""
    config = load_config(args.project_dir, args.config)
    try:
        serve(args.dir or config.output_path, args.host, args.port, config.base_url)
    except KeyboardInterrupt:
        logger.info("Stopped")
    return EXIT_OK


def cmd_search(args: argparse.Namespace) -> int:
    """Handle ``search``: query the index of a built site.

    Args:
        args: Parsed command line arguments.

    Returns:
        Exit code.

    Raises:
        FileNotFoundError: If the site has no search index.
    """
    config = load_config(args.project_dir, args.config)
    directory = args.dir or config.output_path
    candidates = sorted(directory.glob(f"{INDEX_BASENAME}*.json"))
    if not candidates:
        msg = f"No search index in {directory}; run build first"
        raise FileNotFoundError(msg)
    try:
        index = SearchIndex.from_json(candidates[0].read_text(encoding="utf-8"))
    except ValueError as exc:
        logger.error("Unreadable search index %s: %s", candidates[0], exc)
        return EXIT_IO_ERROR

    results = index.lookup(args.query, limit=args.limit)
    if not results:
        print("No results found.")
    for result in results:
        print(f"{result.score:g}\t{config.href(result.url)}\t{result.title}")
        if result.snippet:
            print(f"\t{result.snippet}")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser with one subcommand per operation."""
    parser = argparse.ArgumentParser(
        prog="interview-prep-docs", description="Build the interview prep documentation site."
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--project-dir", type=Path, default=Path.cwd(), help="directory holding site.yml and docs/")
    parser.add_argument("--config", type=Path, default=None, help="configuration file (default: site.yml)")
    parser.add_argument("-v", "--verbose", action="store_true", help="log debug output")
    sub = parser.add_subparsers(dest="command", required=True)

    build = sub.add_parser("build", help="produce static output")
    build.add_argument("--out-dir", type=Path, default=None, help="output directory (default: build/)")
    build.add_argument("--jobs", type=int, default=1, help="pages rendered in parallel")
    build.add_argument("--no-cache", action="store_true", help="render every page from scratch")
    build.set_defaults(handler=cmd_build)

    start = sub.add_parser("start", help="serve drafts with live reload")
    start.add_argument("--host", default="127.0.0.1")
    start.add_argument("--port", type=int, default=3000)
    start.add_argument("--poll-interval", type=float, default=1.0, help="seconds between change checks")
    start.set_defaults(handler=cmd_start)

    clear = sub.add_parser("clear", help="remove the build cache")
    clear.set_defaults(handler=cmd_clear)

    serve_parser = sub.add_parser("serve", help="serve a built site")
    serve_parser.add_argument("--dir", type=Path, default=None, help="directory to serve (default: build/)")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=3000)
    serve_parser.set_defaults(handler=cmd_serve)

    search = sub.add_parser("search", help="query a built site's search index")
    search.add_argument("query")
    search.add_argument("--dir", type=Path, default=None, help="built site directory (default: build/)")
    search.add_argument("--limit", type=int, default=10)
    search.set_defaults(handler=cmd_search)
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the command line interface.

    Args:
        argv: Arguments without the program name; defaults to ``sys.argv[1:]``.

    Returns:
        Process exit code.
    """
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return int(args.handler(args))
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        return EXIT_CONFIG_ERROR
    except ContentError as exc:
        logger.error("Content error: %s", exc)
        return EXIT_CONTENT_ERROR
    except OSError as exc:
        logger.error("Filesystem error: %s", exc)
        return EXIT_IO_ERROR
