"""Site configuration loading and validation."""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from interview_prep_docs.errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_FILENAMES = ("site.yml", "site.yaml")
ENV_PREFIX = "INTERVIEW_PREP_DOCS_"
LINK_POLICIES = ("ignore", "warn", "throw")
COLOR_MODES = ("light", "dark")
CACHE_DIRNAME = ".interview-prep-docs"


@dataclass
class FooterLink:
    """A link in a footer column; ``to`` is site-internal, ``href`` external."""

    label: str
    to: str | None = None
    href: str | None = None


@dataclass
class FooterColumn:
    title: str
    items: list[FooterLink] = field(default_factory=list)


@dataclass
class ThemeConfig:
    """Layout and colour options."""

    default_mode: str = "light"
    respect_prefers_color_scheme: bool = False
    navbar_title: str | None = None
    sidebar_label: str = "Topics"
    footer_style: str = "dark"
    footer_links: list[FooterColumn] = field(default_factory=list)
    copyright: str | None = None
    custom_css: str | None = None
    code_theme: str = "default"
    dark_code_theme: str = "dracula"


@dataclass
class SearchConfig:
    """Options for the bundled client-side search."""

    enabled: bool = True
    hashed: bool = False
    language: list[str] = field(default_factory=lambda: ["en"])
    highlight_search_terms_on_target_page: bool = False
    explicit_search_result_path: bool = False


@dataclass
class SiteConfig:
    """Complete configuration of a site build."""

    title: str = "Documentation"
    tagline: str = ""
    url: str = "http://localhost"
    base_url: str = "/"
    favicon: str | None = None
    organization_name: str | None = None
    project_name: str | None = None
    locale: str = "en"
    content_dir: str = "docs"
    static_dir: str = "static"
    output_dir: str = "build"
    on_broken_links: str = "warn"
    on_broken_markdown_links: str = "warn"
    edit_url: str | None = None
    exclude: list[str] = field(default_factory=list)
    navigation: dict[str, list[str]] = field(default_factory=dict)
    theme: ThemeConfig = field(default_factory=ThemeConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    project_dir: Path = field(default_factory=Path.cwd)
    source: str | None = None

    @property
    def content_path(self) -> Path:
        """Absolute path of the content root."""
        return self.project_dir / self.content_dir

    @property
    def static_path(self) -> Path:
        """Absolute path of the static files directory."""
        return self.project_dir / self.static_dir

    @property
    def output_path(self) -> Path:
        """Absolute path of the output directory."""
        return self.project_dir / self.output_dir

    @property
    def cache_path(self) -> Path:
        """Directory holding the render cache and dev builds."""
        return self.project_dir / CACHE_DIRNAME

    def href(self, url_path: str) -> str:
        """Prefix a site URL path with the configured base URL.

        Args:
            url_path: Absolute URL path inside the site (e.g. ``/react/hooks``).

        Returns:
            Link target usable in emitted HTML.
        """
        return self.base_url.rstrip("/") + "/" + url_path.lstrip("/")


def load_config(project_dir: Path, config_path: Path | None = None) -> SiteConfig:
    """Load the site configuration for a project.

    Args:
        project_dir: Directory that holds the content and configuration.
        config_path: Explicit configuration file; defaults to ``site.yml``
            (or ``site.yaml``) inside ``project_dir``.

    Returns:
        Validated SiteConfig. Defaults are used when no file exists.

    Raises:
        ConfigurationError: If the file cannot be parsed or holds invalid values.
    """
    if config_path is None:
        config_path = next(
            (project_dir / name for name in CONFIG_FILENAMES if (project_dir / name).is_file()),
            None,
        )

    data: dict[str, Any] = {}
    source = None
    if config_path is not None:
        source = str(config_path)
        if not config_path.is_file():
            msg = "configuration file does not exist"
            raise ConfigurationError(msg, path=source)
        data = _read_yaml(config_path)
        logger.debug("Loaded configuration from %s", config_path)
    else:
        logger.info("No configuration file found in %s, using defaults", project_dir)

    _apply_environment(data)
    config = parse_config(data, source=source)
    config.project_dir = project_dir
    return config


def parse_config(data: dict[str, Any], source: str | None = None) -> SiteConfig:
    """Build a SiteConfig from a raw mapping.

    Args:
        data: Mapping as read from the configuration file.
        source: File name used in error messages.

    Returns:
        Validated SiteConfig.

    Raises:
        ConfigurationError: On unknown keys, wrong types or invalid choices.
    """
    values = dict(data)
    theme = _parse_section(ThemeConfig, values.pop("theme", None) or {}, "theme", source)
    search = _parse_section(SearchConfig, values.pop("search", None) or {}, "search", source)
    navigation = values.pop("navigation", None) or {}
    config = _parse_section(SiteConfig, values, "", source)
    config.theme = theme
    config.search = search
    config.navigation = _parse_navigation(navigation, source)

    theme.footer_links = [_parse_footer_column(column, source) for column in theme.footer_links]

    for key in ("on_broken_links", "on_broken_markdown_links"):
        _check_choice(getattr(config, key), LINK_POLICIES, key, source)
    _check_choice(theme.default_mode, COLOR_MODES, "theme.default_mode", source)

    if not config.base_url.startswith("/"):
        config.base_url = "/" + config.base_url
    if not config.base_url.endswith("/"):
        config.base_url += "/"
    config.source = source
    return config


def _read_yaml(path: Path) -> dict[str, Any]:
    """Read a YAML configuration file into a mapping.

    Args:
        path: Configuration file.

    Returns:
        Parsed mapping; empty for an empty file.

    Raises:
        ConfigurationError: If the file is not UTF-8, not valid YAML or not a mapping.
    """
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except UnicodeDecodeError as exc:
        raise ConfigurationError("configuration file is not valid UTF-8", path=str(path)) from exc
    except yaml.YAMLError as exc:
        line = None
        mark = getattr(exc, "problem_mark", None)
        if mark is not None:
            line = mark.line + 1
        msg = f"invalid YAML: {getattr(exc, 'problem', None) or exc}"
        raise ConfigurationError(msg, path=str(path), line=line) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = "configuration must be a mapping"
        raise ConfigurationError(msg, path=str(path))
    return data


def _apply_environment(data: dict[str, Any]) -> None:
    """Override deployment settings from the environment.

    Args:
        data: Raw configuration mapping, updated in place.
    """
    for key in ("url", "base_url"):
        value = os.environ.get(ENV_PREFIX + key.upper())
        if value:
            logger.debug("Overriding %s from environment", key)
            data[key] = value


def _parse_section(cls: type, values: Any, section: str, source: str | None) -> Any:
    """Build a configuration dataclass from a mapping.

    Args:
        cls: Dataclass to build.
        values: Raw mapping for the section.
        section: Section name used in error messages.
        source: Configuration file path for error messages.

    Returns:
        Instance of ``cls``.

    Raises:
        ConfigurationError: On unknown keys or badly typed values.
    """
    if not isinstance(values, dict):
        raise ConfigurationError(f"'{section}' must be a mapping", path=source)

    known = {f.name: f for f in fields(cls) if f.name not in ("project_dir", "source")}
    kwargs = {}
    for key, value in values.items():
        name = f"{section}.{key}" if section else str(key)
        if key not in known:
            raise ConfigurationError(f"unknown configuration key '{name}'", path=source)
        default = getattr(cls(), key)
        kwargs[key] = _coerce(value, default, name, source)
    return cls(**kwargs)


def _coerce(value: Any, default: Any, name: str, source: str | None) -> Any:
    """Check a value against the type of its default.

    Args:
        value: Raw value from the file.
        default: Default value of the field.
        name: Dotted key used in error messages.
        source: Configuration file path for error messages.

    Returns:
        The value, or the default when it is null.

    Raises:
        ConfigurationError: If the value has the wrong type.
    """
    if value is None:
        return default
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise ConfigurationError(f"'{name}' must be true or false", path=source)
        return value
    if isinstance(default, list):
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list):
            raise ConfigurationError(f"'{name}' must be a list", path=source)
        return list(value)
    if isinstance(default, str) or default is None:
        if isinstance(value, (dict, list)):
            raise ConfigurationError(f"'{name}' must be a string", path=source)
        return str(value)
    return value


def _parse_navigation(navigation: Any, source: str | None) -> dict[str, list[str]]:
    """Read ``navigation.order`` into a mapping of directory to entry names.

    Args:
        navigation: Raw ``navigation`` section.
        source: Configuration file path for error messages.

    Returns:
        Ordering per directory, ``""`` for the content root.

    Raises:
        ConfigurationError: If the section is not shaped as expected.
    """
    if not isinstance(navigation, dict):
        raise ConfigurationError("'navigation' must be a mapping", path=source)
    order = navigation.get("order") or {}
    if not isinstance(order, dict):
        raise ConfigurationError("'navigation.order' must be a mapping of directory to entries", path=source)

    result: dict[str, list[str]] = {}
    for directory, entries in order.items():
        if not isinstance(entries, list) or not all(isinstance(e, str) for e in entries):
            msg = f"'navigation.order.{directory}' must be a list of names"
            raise ConfigurationError(msg, path=source)
        key = "" if directory in (None, "", "/", ".") else str(directory).strip("/")
        result[key] = entries
    return result


def _parse_footer_column(column: Any, source: str | None) -> FooterColumn:
    """Read one footer link column.

    Args:
        column: Raw column mapping.
        source: Configuration file path for error messages.

    Returns:
        FooterColumn instance.

    Raises:
        ConfigurationError: If the title or a link label is missing.
    """
    if not isinstance(column, dict) or "title" not in column:
        raise ConfigurationError("footer columns need a 'title'", path=source)
    items = []
    for item in column.get("items") or []:
        if not isinstance(item, dict) or "label" not in item:
            raise ConfigurationError("footer links need a 'label'", path=source)
        items.append(FooterLink(label=str(item["label"]), to=item.get("to"), href=item.get("href")))
    return FooterColumn(title=str(column["title"]), items=items)


def _check_choice(value: str, choices: tuple[str, ...], name: str, source: str | None) -> None:
    """Raise ConfigurationError unless ``value`` is one of ``choices``."""
    if value not in choices:
        msg = f"'{name}' must be one of {', '.join(choices)} (got '{value}')"
        raise ConfigurationError(msg, path=source)
