"""Tests for YAML, .env and environment configuration loading."""

import logging
from pathlib import Path

import pytest

from siteaudit.exceptions import CrawlConfigError

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def write_yaml(tmp_path: Path, text: str) -> str:
    path = tmp_path / "settings.yaml"
    path.write_text(text, encoding="utf-8")
    return str(path)


class TestLoadSettings:

    def test_defaults_without_file(self, tmp_path):
        from siteaudit.models.crawl import CrawlConfig
        from siteaudit.modules.technical_audit.auditor import AuditThresholds
        from siteaudit.settings import load_settings

        settings = load_settings(str(tmp_path / "missing.yaml"), env_path=str(tmp_path / ".env"))
        assert settings.crawl == CrawlConfig()
        assert settings.thresholds == AuditThresholds()
        assert settings.log_level == "INFO"
        assert settings.config_path is None

    def test_shipped_settings_file(self):
        from siteaudit.models.crawl import CrawlConfig
        from siteaudit.settings import load_settings

        path = PROJECT_ROOT / "config" / "settings.yaml"
        settings = load_settings(str(path), env_path=str(PROJECT_ROOT / "no-such.env"))
        assert settings.config_path == str(path)
        assert settings.crawl.max_pages == CrawlConfig().max_pages
        assert settings.thresholds.thin_content_words == 300
        assert settings.thresholds.min_avg_internal_links == 3.0
        assert settings.export_dir == "data/exports"

    def test_yaml_overrides(self, tmp_path):
        from siteaudit.settings import load_settings

        config = write_yaml(tmp_path, (
            "app:\n  log_level: debug\n  batch_concurrency: 5\n"
            "crawler:\n  max_pages: 7\n  delay_ms: '250'\n  respect_robots_txt: 'no'\n"
            "audit:\n  thin_content_words: 500\n"
        ))
        settings = load_settings(config, env_path=str(tmp_path / ".env"))

        assert settings.log_level == "DEBUG"
        assert settings.batch_concurrency == 5
        assert settings.crawl.max_pages == 7
        assert settings.crawl.delay_ms == 250
        assert settings.crawl.respect_robots_txt is False
        assert settings.thresholds.thin_content_words == 500
        assert settings.config_path == config

    def test_env_overrides_yaml(self, tmp_path, monkeypatch):
        from siteaudit.settings import load_settings

        config = write_yaml(tmp_path, "crawler:\n  max_pages: 7\n")
        monkeypatch.setenv("SITEAUDIT_MAX_PAGES", "3")
        monkeypatch.setenv("SITEAUDIT_USE_SITEMAP", "false")
        monkeypatch.setenv("SITEAUDIT_TIMEOUT_S", "2.5")
        monkeypatch.setenv("SITEAUDIT_EXPORT_DIR", "out")

        settings = load_settings(config, env_path=str(tmp_path / ".env"))
        assert settings.crawl.max_pages == 3
        assert settings.crawl.use_sitemap is False
        assert settings.crawl.timeout_s == 2.5
        assert settings.export_dir == "out"

    def test_dotenv_file(self, tmp_path, monkeypatch):
        from siteaudit.settings import load_settings

        # Register the variable with monkeypatch so it is removed afterwards.
        monkeypatch.setenv("SITEAUDIT_DELAY_MS", "0")
        monkeypatch.delenv("SITEAUDIT_DELAY_MS")
        env_file = tmp_path / ".env"
        env_file.write_text("SITEAUDIT_DELAY_MS=42\n", encoding="utf-8")

        settings = load_settings(str(tmp_path / "missing.yaml"), env_path=str(env_file))
        assert settings.crawl.delay_ms == 42

    def test_config_path_from_environment(self, tmp_path, monkeypatch):
        from siteaudit.settings import load_settings

        config = write_yaml(tmp_path, "crawler:\n  max_depth: 2\n")
        monkeypatch.setenv("SITEAUDIT_CONFIG", config)
        settings = load_settings(env_path=str(tmp_path / ".env"))
        assert settings.crawl.max_depth == 2

    def test_unknown_key_ignored(self, tmp_path, caplog):
        from siteaudit.settings import load_settings

        config = write_yaml(tmp_path, "crawler:\n  max_pagez: 7\n")
        with caplog.at_level(logging.WARNING, logger="siteaudit.settings"):
            settings = load_settings(config, env_path=str(tmp_path / ".env"))
        assert settings.crawl.max_pages == 100
        assert "max_pagez" in caplog.text

    @pytest.mark.parametrize("text", [
        "crawler:\n  max_pages: lots\n",
        "crawler:\n  max_pages: 0\n",
        "crawler:\n  respect_robots_txt: maybe\n",
        "- just\n- a list\n",
    ])
    def test_invalid_config_raises(self, tmp_path, text):
        from siteaudit.settings import load_settings

        config = write_yaml(tmp_path, text)
        with pytest.raises(CrawlConfigError):
            load_settings(config, env_path=str(tmp_path / ".env"))
