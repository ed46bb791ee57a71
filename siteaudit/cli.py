"""Typer CLI application for siteaudit.

Provides commands to crawl a site, audit it, generate fix suggestions,
audit several sites in one batch, and inspect the effective configuration.
"""

import asyncio
import dataclasses
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from siteaudit.exceptions import SiteAuditError
from siteaudit.models.audit import AuditResult, Severity
from siteaudit.models.crawl import CrawlConfig, CrawlProgress, CrawlResult
from siteaudit.settings import Settings, load_settings
from siteaudit.utils.helpers import make_serialisable, truncate_text
from siteaudit.utils.validators import normalise_root_url

console = Console()
app = typer.Typer(
    name="siteaudit",
    help="siteaudit -- crawl a site, audit its technical SEO and suggest fixes.",
    add_completion=False,
    no_args_is_help=True,
)

_SEVERITY_STYLE = {
    Severity.CRITICAL: "[red]critical[/red]",
    Severity.WARNING: "[yellow]warning[/yellow]",
    Severity.INFO: "[blue]info[/blue]",
}


def _setup_logging(verbose: bool = False, level: str = "INFO") -> None:
    """Configure logging level and format."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _run_async(coro):
    """Run an async coroutine from synchronous CLI context."""
    return asyncio.run(coro)


def _load(config_path: Optional[Path], verbose: bool) -> Settings:
    try:
        settings = load_settings(str(config_path) if config_path else None)
    except SiteAuditError as exc:
        console.print(f"[red]✘[/red] Configuration error: {exc}")
        raise typer.Exit(code=2)
    _setup_logging(verbose, settings.log_level)
    return settings


def _crawl_config(
    settings: Settings,
    max_pages: Optional[int],
    max_depth: Optional[int],
    delay_ms: Optional[int],
    ignore_robots: bool,
) -> CrawlConfig:
    changes: dict = {}
    if max_pages is not None:
        changes["max_pages"] = max_pages
    if max_depth is not None:
        changes["max_depth"] = max_depth
    if delay_ms is not None:
        changes["delay_ms"] = delay_ms
    if ignore_robots:
        changes["respect_robots_txt"] = False
    return dataclasses.replace(settings.crawl, **changes)


def _run_workflow(url: str, config: CrawlConfig, settings: Settings, include_fixes: bool) -> dict:
    from siteaudit.workflows import AuditWorkflow

    workflow = AuditWorkflow(config, settings.thresholds)
    with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"), console=console) as progress:
        task = progress.add_task(description=f"Crawling {url}...", total=None)

        def on_progress(p: CrawlProgress) -> None:
            progress.update(task, description=(
                f"{p.crawled_pages} crawled, {p.errors} errors, {p.queued} queued: "
                f"{truncate_text(p.current_url, 60)}"
            ))

        try:
            return _run_async(workflow.run(url, on_progress=on_progress, include_fixes=include_fixes))
        except SiteAuditError as exc:
            console.print(f"[red]✘[/red] {exc}")
            raise typer.Exit(code=2)


def _export(payload, export: Optional[Path]) -> None:
    if export is None:
        return
    export.parent.mkdir(parents=True, exist_ok=True)
    with open(export, "w", encoding="utf-8") as fh:
        json.dump(make_serialisable(payload), fh, indent=2, ensure_ascii=False)
    console.print(f"[green]✔[/green] Exported to {export}")


def _print_crawl(result: CrawlResult) -> None:
    table = Table(title=f"Crawl: {result.root_url}", show_header=True, header_style="bold magenta")
    table.add_column("URL", style="cyan", max_width=60)
    table.add_column("Status", min_width=6)
    table.add_column("Depth", justify="right")
    table.add_column("Words", justify="right")
    table.add_column("Load (ms)", justify="right")
    for page in result.pages:
        table.add_row(page.url, str(page.status_code), str(page.depth), str(page.word_count), str(page.load_time_ms))
    for error in result.errors:
        table.add_row(error.url, f"[red]{error.status_code or 'ERR'}[/red]", "", "", truncate_text(error.reason, 30))
    console.print(table)
    console.print(
        f"\n[bold]{result.crawled_pages} pages crawled, {len(result.errors)} errors, "
        f"{result.total_pages} discovered[/bold] ({result.status.value}, {result.duration_ms}ms)"
    )


def _print_audit(result: AuditResult, limit: int = 50) -> None:
    summary = result.summary
    console.print(Panel(
        f"[bold]Score: {result.score:.1f}/100[/bold]\n"
        f"{summary.critical_issues} critical, {summary.warning_issues} warnings, "
        f"{summary.info_issues} info across {result.total_pages} pages",
        title=f"Audit: {result.root_url}",
    ))
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Severity", min_width=8)
    table.add_column("Issue", style="cyan", min_width=20)
    table.add_column("Page", max_width=50)
    table.add_column("Details", max_width=50)
    for issue in result.issues[:limit]:
        table.add_row(_SEVERITY_STYLE[issue.severity], issue.title, issue.page_url, issue.description)
    console.print(table)
    if len(result.issues) > limit:
        console.print(f"... and {len(result.issues) - limit} more issues")


# ------------------------------------------------------------------
# crawl
# ------------------------------------------------------------------
@app.command()
def crawl(
    url: str = typer.Argument(..., help="Root URL or domain to crawl (e.g. example.com)."),
    max_pages: Optional[int] = typer.Option(None, "--max-pages", "-n", help="Maximum pages to fetch."),
    max_depth: Optional[int] = typer.Option(None, "--max-depth", "-d", help="Maximum link depth from the root."),
    delay_ms: Optional[int] = typer.Option(None, "--delay-ms", help="Minimum delay between fetches to one origin."),
    ignore_robots: bool = typer.Option(False, "--ignore-robots", help="Do not apply robots.txt rules."),
    export: Optional[Path] = typer.Option(None, "--export", "-o", help="Write the crawl result as JSON."),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to settings.yaml."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Crawl a site and list the pages found."""
    settings = _load(config_path, verbose)
    url = normalise_root_url(url)
    config = _crawl_config(settings, max_pages, max_depth, delay_ms, ignore_robots)
    console.print(Panel(f"[bold cyan]Crawl: {url}[/bold cyan]"))

    results = _run_workflow(url, config, settings, include_fixes=False)
    crawl_result = results["steps"]["crawl"]["result"]
    _print_crawl(crawl_result)
    _export(crawl_result, export)


# ------------------------------------------------------------------
# audit
# ------------------------------------------------------------------
@app.command()
def audit(
    url: str = typer.Argument(..., help="Root URL or domain to audit."),
    max_pages: Optional[int] = typer.Option(None, "--max-pages", "-n", help="Maximum pages to fetch."),
    max_depth: Optional[int] = typer.Option(None, "--max-depth", "-d", help="Maximum link depth from the root."),
    delay_ms: Optional[int] = typer.Option(None, "--delay-ms", help="Minimum delay between fetches to one origin."),
    ignore_robots: bool = typer.Option(False, "--ignore-robots", help="Do not apply robots.txt rules."),
    export: Optional[Path] = typer.Option(None, "--export", "-o", help="Write the audit result as JSON."),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to settings.yaml."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Crawl a site and run the technical SEO audit."""
    settings = _load(config_path, verbose)
    url = normalise_root_url(url)
    config = _crawl_config(settings, max_pages, max_depth, delay_ms, ignore_robots)
    console.print(Panel(f"[bold cyan]SEO Audit: {url}[/bold cyan]"))

    results = _run_workflow(url, config, settings, include_fixes=False)
    step = results["steps"]["audit"]
    if step["status"] != "success":
        console.print(f"[red]✘[/red] Audit failed: {step.get('error', '')}")
        raise typer.Exit(code=1)
    _print_audit(step["result"])
    _export(step["result"], export)
    console.print("[green]✔[/green] Audit complete.")


# ------------------------------------------------------------------
# fix
# ------------------------------------------------------------------
@app.command()
def fix(
    url: str = typer.Argument(..., help="Root URL or domain to audit and fix."),
    max_pages: Optional[int] = typer.Option(None, "--max-pages", "-n", help="Maximum pages to fetch."),
    max_depth: Optional[int] = typer.Option(None, "--max-depth", "-d", help="Maximum link depth from the root."),
    delay_ms: Optional[int] = typer.Option(None, "--delay-ms", help="Minimum delay between fetches to one origin."),
    ignore_robots: bool = typer.Option(False, "--ignore-robots", help="Do not apply robots.txt rules."),
    export: Optional[Path] = typer.Option(None, "--export", "-o", help="Write the full report as JSON."),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to settings.yaml."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Audit a site and print fix, internal link and content suggestions."""
    settings = _load(config_path, verbose)
    url = normalise_root_url(url)
    config = _crawl_config(settings, max_pages, max_depth, delay_ms, ignore_robots)
    console.print(Panel(f"[bold cyan]Auto-Fix: {url}[/bold cyan]"))

    results = _run_workflow(url, config, settings, include_fixes=True)
    steps = results["steps"]

    if steps.get("audit", {}).get("status") == "success":
        _print_audit(steps["audit"]["result"], limit=20)

    fixes = steps.get("fixes", {}).get("result", [])
    table = Table(title="Fix Suggestions", show_header=True, header_style="bold magenta")
    table.add_column("Priority", min_width=8)
    table.add_column("Fix", style="cyan")
    table.add_column("Page", max_width=45)
    table.add_column("Auto", justify="center")
    table.add_column("Suggested value", max_width=50)
    for suggestion in fixes:
        table.add_row(
            suggestion.priority.value,
            suggestion.title,
            suggestion.issue_ref.page_url,
            "✔" if suggestion.automated else "",
            truncate_text(suggestion.suggested_value or "", 50),
        )
    console.print(table)

    for group in steps.get("fixes", {}).get("bulk", []):
        console.print(
            f"[bold]{group.category.value}[/bold]: {len(group.fixes)} fixes on "
            f"{len(group.affected_pages)} pages. {group.estimated_impact}"
        )

    for link in steps.get("internal_links", {}).get("result", []):
        console.print(
            f"[cyan]link[/cyan] {link.source_page} -> {link.target_page} "
            f"([italic]{link.anchor_text}[/italic], {link.relevance_score:.2f})"
        )
    for suggestion in steps.get("content", {}).get("result", []):
        console.print(f"[magenta]{suggestion.type}[/magenta] ({suggestion.priority.value}) {suggestion.suggestion}")

    if export is not None:
        from siteaudit.workflows import export_report
        path = export_report(results, str(export.parent), export.name)
        console.print(f"[green]✔[/green] Exported to {path}")
    console.print(f"\n[bold]{results.get('summary', '')}[/bold]")


# ------------------------------------------------------------------
# batch
# ------------------------------------------------------------------
@app.command()
def batch(
    urls: list[str] = typer.Argument(..., help="Root URLs or domains to audit."),
    max_pages: Optional[int] = typer.Option(None, "--max-pages", "-n", help="Maximum pages per site."),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", help="Sites crawled at the same time."),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to settings.yaml."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Crawl and audit several independent sites concurrently."""
    from siteaudit.modules.technical_audit.auditor import AuditEngine
    from siteaudit.workflows import crawl_many

    settings = _load(config_path, verbose)
    config = _crawl_config(settings, max_pages, None, None, False)
    roots = [normalise_root_url(u) for u in urls]
    console.print(Panel(f"[bold cyan]Batch audit: {len(roots)} sites[/bold cyan]"))

    with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"), console=console) as progress:
        progress.add_task(description="Crawling sites...", total=None)
        outcomes = _run_async(crawl_many(roots, config, concurrency or settings.batch_concurrency))

    engine = AuditEngine(settings.thresholds)
    table = Table(title="Batch Results", show_header=True, header_style="bold magenta")
    table.add_column("Site", style="cyan", min_width=25)
    table.add_column("Pages", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Critical", justify="right")
    table.add_column("Status")
    for root, outcome in outcomes.items():
        if isinstance(outcome, Exception):
            table.add_row(root, "", "", "", f"[red]✘ {truncate_text(str(outcome), 40)}[/red]")
            continue
        result = engine.audit(outcome)
        table.add_row(
            root, str(outcome.crawled_pages), f"{result.score:.1f}",
            str(result.summary.critical_issues), f"[green]✔ {outcome.status.value}[/green]",
        )
    console.print(table)


# ------------------------------------------------------------------
# status
# ------------------------------------------------------------------
@app.command()
def status(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to settings.yaml."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Show the effective configuration and dependency status."""
    settings = _load(config_path, verbose)
    console.print(Panel("[bold cyan]System Status[/bold cyan]"))

    table = Table(title="Component Status", show_header=True, header_style="bold magenta")
    table.add_column("Component", style="cyan", min_width=25)
    table.add_column("Status", min_width=10)
    table.add_column("Details", max_width=60)

    if settings.config_path:
        table.add_row("Configuration", "[green]✔ OK[/green]", settings.config_path)
    else:
        table.add_row("Configuration", "[yellow]⚠ Defaults[/yellow]", "settings.yaml not found")

    env_path = Path(".env")
    table.add_row(
        "Environment",
        "[green]✔ OK[/green]" if env_path.exists() else "[yellow]⚠ Missing[/yellow]",
        ".env found" if env_path.exists() else "no .env file (optional)",
    )

    crawl_cfg = settings.crawl
    table.add_row(
        "Crawler", "[green]✔ OK[/green]",
        f"max_pages={crawl_cfg.max_pages} max_depth={crawl_cfg.max_depth} "
        f"delay_ms={crawl_cfg.delay_ms} robots={'on' if crawl_cfg.respect_robots_txt else 'off'}",
    )
    table.add_row(
        "Audit thresholds", "[green]✔ OK[/green]",
        f"thin<{settings.thresholds.thin_content_words} words, slow>{settings.thresholds.slow_page_ms}ms",
    )

    for display_name, mod_path in (
        ("HTTP client", "aiohttp"),
        ("HTML parser", "bs4"),
        ("YAML", "yaml"),
    ):
        try:
            module = __import__(mod_path)
            version = getattr(module, "__version__", "")
            table.add_row(display_name, "[green]✔ OK[/green]", f"{mod_path} {version}".strip())
        except ImportError as exc:
            table.add_row(display_name, "[red]✘ Missing[/red]", str(exc)[:50])

    console.print(table)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
