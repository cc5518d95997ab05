"""Tests for site configuration loading."""

from pathlib import Path

import pytest

from interview_prep_docs.config import SiteConfig, load_config, parse_config
from interview_prep_docs.errors import ConfigurationError


def test_missing_file_gives_defaults(tmp_path: Path) -> None:
    """Test that a project without site.yml uses defaults."""
    config = load_config(tmp_path)

    assert config.title == "Documentation"
    assert config.base_url == "/"
    assert config.on_broken_links == "warn"
    assert config.theme.sidebar_label == "Topics"
    assert config.search.enabled is True
    assert config.content_path == tmp_path / "docs"
    assert config.source is None


def test_load_site_yml(tmp_path: Path) -> None:
    """Test loading a full configuration file."""
    (tmp_path / "site.yml").write_text(
        """
title: Frontend Interview Prep
tagline: Questions and answers
url: https://example.github.io
base_url: interview-prep
on_broken_links: throw
theme:
  default_mode: dark
  navbar_title: Interview Prep
  footer_links:
    - title: Docs
      items:
        - label: Topics
          to: /javascript
    - title: More
      items:
        - label: GitHub
          href: https://github.com/example/interview-prep
  copyright: Copyright 2026
search:
  hashed: true
  language: en
navigation:
  order:
    /: [javascript, react]
"""
    )
    config = load_config(tmp_path)

    assert config.title == "Frontend Interview Prep"
    assert config.base_url == "/interview-prep/"
    assert config.on_broken_links == "throw"
    assert config.theme.default_mode == "dark"
    assert config.theme.footer_links[0].items[0].to == "/javascript"
    assert config.theme.footer_links[1].items[0].href.startswith("https://")
    assert config.search.hashed is True
    assert config.search.language == ["en"]
    assert config.navigation == {"": ["javascript", "react"]}
    assert config.source == str(tmp_path / "site.yml")


def test_site_yaml_extension(tmp_path: Path) -> None:
    """Test that site.yaml is found as well."""
    (tmp_path / "site.yaml").write_text("title: Notes\n")
    assert load_config(tmp_path).title == "Notes"


def test_explicit_missing_file(tmp_path: Path) -> None:
    """Test that an explicit path that does not exist is an error."""
    with pytest.raises(ConfigurationError, match="does not exist"):
        load_config(tmp_path, tmp_path / "other.yml")


def test_invalid_yaml_reports_line(tmp_path: Path) -> None:
    """Test that YAML syntax errors carry a line number."""
    (tmp_path / "site.yml").write_text("title: ok\ntheme: [unclosed\n")

    with pytest.raises(ConfigurationError) as exc_info:
        load_config(tmp_path)

    assert exc_info.value.path == str(tmp_path / "site.yml")
    assert exc_info.value.line is not None


def test_config_not_utf8(tmp_path: Path) -> None:
    """Test that a configuration file in another encoding is a configuration error."""
    (tmp_path / "site.yml").write_bytes(b"title: Caf\xe9\n")

    with pytest.raises(ConfigurationError, match="UTF-8") as exc_info:
        load_config(tmp_path)

    assert exc_info.value.path == str(tmp_path / "site.yml")


def test_unknown_key() -> None:
    """Test that misspelt keys are rejected."""
    with pytest.raises(ConfigurationError, match="unknown configuration key 'titel'"):
        parse_config({"titel": "x"})


def test_unknown_theme_key() -> None:
    """Test that misspelt nested keys are rejected with their section."""
    with pytest.raises(ConfigurationError, match="theme.colour"):
        parse_config({"theme": {"colour": "red"}})


def test_invalid_policy() -> None:
    """Test that link policies are restricted to known values."""
    with pytest.raises(ConfigurationError, match="on_broken_links"):
        parse_config({"on_broken_links": "explode"})


def test_invalid_bool() -> None:
    """Test that boolean options reject strings."""
    with pytest.raises(ConfigurationError, match="search.hashed"):
        parse_config({"search": {"hashed": "yes"}})


def test_environment_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that deployment URL and base URL come from the environment."""
    (tmp_path / "site.yml").write_text("url: http://localhost\nbase_url: /\n")
    monkeypatch.setenv("INTERVIEW_PREP_DOCS_URL", "https://docs.example.com")
    monkeypatch.setenv("INTERVIEW_PREP_DOCS_BASE_URL", "/prep")

    config = load_config(tmp_path)

    assert config.url == "https://docs.example.com"
    assert config.base_url == "/prep/"


def test_href() -> None:
    """Test prefixing site paths with the base URL."""
    assert SiteConfig().href("/react/hooks") == "/react/hooks"
    assert SiteConfig(base_url="/prep/").href("/react/hooks") == "/prep/react/hooks"
    assert SiteConfig(base_url="/prep/").href("/") == "/prep/"
