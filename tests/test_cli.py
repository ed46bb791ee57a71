"""CLI smoke tests using typer's CliRunner."""

import json

import pytest
from typer.testing import CliRunner

from conftest import html_page

runner = CliRunner()


@pytest.fixture()
def offline_crawler(monkeypatch, fake_site):
    """Route every workflow crawl through an in-memory site."""
    from siteaudit import workflows
    from siteaudit.modules.technical_audit.crawler import SiteCrawler

    site = fake_site({
        "https://example.com/": html_page(
            "Trail Running Shoes Buying Guide for Beginners",
            body="<h1>Trail Running Shoes</h1>",
            links=(("/gone", "Gone"),),
        ),
    })

    def factory(config):
        return SiteCrawler(config, fetcher=site.fetcher)

    monkeypatch.setattr(workflows, "SiteCrawler", factory)
    return site


class TestCLIHelp:

    @pytest.mark.parametrize("args", [
        ["--help"],
        ["crawl", "--help"],
        ["audit", "--help"],
        ["fix", "--help"],
        ["batch", "--help"],
        ["status", "--help"],
    ])
    def test_help(self, args):
        from siteaudit.cli import app

        result = runner.invoke(app, args)
        assert result.exit_code == 0, result.output


class TestCLICommands:

    def test_status(self):
        from siteaudit.cli import app

        result = runner.invoke(app, ["status"])
        assert result.exit_code == 0, result.output
        assert "Crawler" in result.output

    def test_invalid_url_exits_2(self):
        from siteaudit.cli import app

        result = runner.invoke(app, ["crawl", "ftp://example.com"])
        assert result.exit_code == 2

    def test_invalid_budget_exits_2(self):
        from siteaudit.cli import app

        result = runner.invoke(app, ["crawl", "example.com", "--max-pages", "0"])
        assert result.exit_code == 2

    def test_bad_config_exits_2(self, tmp_path):
        from siteaudit.cli import app

        config = tmp_path / "settings.yaml"
        config.write_text("crawler:\n  max_depth: deep\n", encoding="utf-8")
        result = runner.invoke(app, ["status", "--config", str(config)])
        assert result.exit_code == 2
        assert "Configuration error" in result.output

    def test_crawl_command(self, offline_crawler, tmp_path):
        from siteaudit.cli import app

        out = tmp_path / "crawl.json"
        result = runner.invoke(app, ["crawl", "example.com", "--delay-ms", "0", "--export", str(out)])
        assert result.exit_code == 0, result.output
        assert "1 pages crawled" in result.output
        data = json.loads(out.read_text(encoding="utf-8"))
        assert data["crawled_pages"] == 1
        assert data["errors"][0]["reason"] == "HTTP 404"

    def test_audit_command(self, offline_crawler, tmp_path):
        from siteaudit.cli import app

        out = tmp_path / "audit.json"
        result = runner.invoke(app, ["audit", "https://example.com", "--delay-ms", "0", "-o", str(out)])
        assert result.exit_code == 0, result.output
        assert "Score:" in result.output
        data = json.loads(out.read_text(encoding="utf-8"))
        assert data["issues"][0]["type"] == "broken_link"

    def test_fix_command(self, offline_crawler, tmp_path):
        from siteaudit.cli import app

        out = tmp_path / "report.json"
        result = runner.invoke(app, ["fix", "example.com", "--delay-ms", "0", "--export", str(out)])
        assert result.exit_code == 0, result.output
        assert "Fix Suggestions" in result.output
        data = json.loads(out.read_text(encoding="utf-8"))
        assert set(data["steps"]) == {"crawl", "audit", "fixes", "internal_links", "content"}
