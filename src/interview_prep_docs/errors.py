"""Error taxonomy for site builds."""


class SiteError(Exception):
    """Base error raised while building the site.

    Args:
        message: Human readable description of the problem.
        path: File the problem was found in, if known.
        line: 1-based line number inside ``path``, if known.
    """

    def __init__(self, message: str, path: str | None = None, line: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.path = path
        self.line = line

    def __str__(self) -> str:
        location = self.path or ""
        if location and self.line is not None:
            location = f"{location}:{self.line}"
        return f"{location}: {self.message}" if location else self.message


class ConfigurationError(SiteError):
    """Malformed site configuration, front-matter or category manifest.

    Always fatal: the build aborts before any output is written.
    """


class ContentError(SiteError):
    """Malformed markup inside a single document.

    Fatal to that document's page only; the rest of the site still builds.
    """
