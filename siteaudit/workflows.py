"""Workflow engine connecting crawl, audit and fix stages into pipelines."""

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urlparse

from siteaudit.models.crawl import CrawlConfig, CrawlProgress, CrawlResult
from siteaudit.modules.technical_audit import AuditEngine, AutoFixEngine, SiteCrawler
from siteaudit.modules.technical_audit.auditor import AuditThresholds
from siteaudit.modules.technical_audit.crawler import ProgressCallback
from siteaudit.modules.technical_audit.fetcher import PageFetcher
from siteaudit.utils.helpers import make_serialisable, slugify, utc_now_iso
from siteaudit.utils.url_utils import canonicalize_url

logger = logging.getLogger(__name__)


class AuditWorkflow:
    """Run crawl -> audit -> fixes -> link and content suggestions.

    Every step after the crawl is wrapped so a single failure is recorded
    as ``{"status": "error"}`` without aborting the rest of the pipeline.
    Configuration errors from the crawl step still propagate: there is
    nothing to audit without a crawl.

    Usage::

        workflow = AuditWorkflow(CrawlConfig(max_pages=50))
        results = await workflow.run("https://example.com")
    """

    def __init__(
        self,
        config: Optional[CrawlConfig] = None,
        thresholds: Optional[AuditThresholds] = None,
        crawler: Optional[SiteCrawler] = None,
    ) -> None:
        self.config = config or CrawlConfig()
        self.thresholds = thresholds or AuditThresholds()
        self._crawler = crawler
        self._pipeline_status: dict[str, Any] = {}

    def _get_crawler(self) -> SiteCrawler:
        if self._crawler is None:
            self._crawler = SiteCrawler(self.config)
        return self._crawler

    # ------------------------------------------------------------------
    # Logging helper
    # ------------------------------------------------------------------

    def _log_step(self, pipeline: str, step: int, total: int, description: str, status: str = "running") -> None:
        msg = f"[{pipeline}] Step {step}/{total}: {description} ({status})"
        if status == "error":
            logger.error(msg)
        else:
            logger.info(msg)
        self._pipeline_status[pipeline] = {
            "current_step": step,
            "total_steps": total,
            "description": description,
            "status": status,
            "updated_at": utc_now_iso(),
        }

    def get_pipeline_status(self) -> dict[str, Any]:
        return dict(self._pipeline_status)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def run(
        self,
        root_url: str,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
        include_fixes: bool = True,
    ) -> dict[str, Any]:
        """Run the pipeline for *root_url* and return per-step results.

        Successful steps carry their typed result under ``"result"``; the
        returned dict is converted to JSON primitives by :func:`export_report`.
        """
        pipeline = canonicalize_url(root_url)
        total = 5 if include_fixes else 2
        results: dict[str, Any] = {"root_url": pipeline, "steps": {}}
        started = time.monotonic()

        # Step 1: Crawl
        self._log_step(pipeline, 1, total, "Crawl")
        crawl_result: CrawlResult = await self._get_crawler().crawl(
            root_url, on_progress=on_progress, cancel_event=cancel_event,
        )
        results["steps"]["crawl"] = {
            "status": "success",
            "result": crawl_result,
            "count": crawl_result.crawled_pages,
        }
        self._log_step(pipeline, 1, total, "Crawl", "done")
        pages = crawl_result.pages

        # Step 2: Audit
        audit_result = None
        self._log_step(pipeline, 2, total, "Audit")
        try:
            audit_result = AuditEngine(self.thresholds).audit(crawl_result)
            results["steps"]["audit"] = {
                "status": "success",
                "result": audit_result,
                "score": audit_result.score,
                "count": audit_result.summary.total_issues,
            }
            self._log_step(pipeline, 2, total, "Audit", "done")
        except Exception as exc:
            logger.exception("Audit failed: %s", exc)
            results["steps"]["audit"] = {"status": "error", "error": str(exc)}
            self._log_step(pipeline, 2, total, "Audit", "error")

        if include_fixes:
            engine = AutoFixEngine(self.thresholds)

            # Step 3: Fix suggestions
            self._log_step(pipeline, 3, total, "Fix suggestions")
            if audit_result is None:
                results["steps"]["fixes"] = {"status": "skipped", "reason": "No audit result available"}
                self._log_step(pipeline, 3, total, "Fix suggestions", "skipped")
            else:
                try:
                    fixes = engine.generate_fixes(audit_result, pages)
                    bulk = engine.generate_bulk_fixes(audit_result, pages)
                    results["steps"]["fixes"] = {
                        "status": "success", "result": fixes, "count": len(fixes), "bulk": bulk,
                    }
                    self._log_step(pipeline, 3, total, "Fix suggestions", "done")
                except Exception as exc:
                    logger.exception("Fix generation failed: %s", exc)
                    results["steps"]["fixes"] = {"status": "error", "error": str(exc)}
                    self._log_step(pipeline, 3, total, "Fix suggestions", "error")

            # Step 4: Internal links
            self._log_step(pipeline, 4, total, "Internal link suggestions")
            try:
                links = engine.generate_internal_link_suggestions(pages)
                results["steps"]["internal_links"] = {"status": "success", "result": links, "count": len(links)}
                self._log_step(pipeline, 4, total, "Internal link suggestions", "done")
            except Exception as exc:
                logger.exception("Internal link suggestions failed: %s", exc)
                results["steps"]["internal_links"] = {"status": "error", "error": str(exc)}
                self._log_step(pipeline, 4, total, "Internal link suggestions", "error")

            # Step 5: Content suggestions
            self._log_step(pipeline, 5, total, "Content suggestions")
            try:
                content = engine.generate_content_suggestions(pages)
                results["steps"]["content"] = {"status": "success", "result": content, "count": len(content)}
                self._log_step(pipeline, 5, total, "Content suggestions", "done")
            except Exception as exc:
                logger.exception("Content suggestions failed: %s", exc)
                results["steps"]["content"] = {"status": "error", "error": str(exc)}
                self._log_step(pipeline, 5, total, "Content suggestions", "error")

        elapsed = time.monotonic() - started
        results["elapsed_seconds"] = round(elapsed, 2)
        results["completed_at"] = utc_now_iso()
        statuses = [step.get("status", "unknown") for step in results["steps"].values()]
        results["summary"] = f"{statuses.count('success')}/{len(statuses)} steps succeeded in {elapsed:.1f}s"
        logger.info("Pipeline for %s completed: %s", pipeline, results["summary"])
        return results


async def crawl_many(
    root_urls: list[str],
    config: Optional[CrawlConfig] = None,
    concurrency: int = 3,
    on_progress: Optional[ProgressCallback] = None,
    fetcher: Optional[PageFetcher] = None,
) -> dict[str, CrawlResult | Exception]:
    """Crawl independent sites concurrently, one :class:`SiteCrawler` each.

    Each crawl owns its own state and politeness gate; a shared *fetcher*
    only shares the HTTP session. A crawl that raises is reported by its
    exception instead of failing the batch.
    """
    semaphore = asyncio.Semaphore(max(concurrency, 1))

    async def _one(url: str) -> CrawlResult:
        async with semaphore:
            return await SiteCrawler(config, fetcher=fetcher).crawl(url, on_progress=on_progress)

    outcomes = await asyncio.gather(*(_one(url) for url in root_urls), return_exceptions=True)
    results: dict[str, CrawlResult | Exception] = {}
    for url, outcome in zip(root_urls, outcomes):
        if isinstance(outcome, Exception):
            logger.warning("Crawl of %s failed: %s", url, outcome)
        results[url] = outcome
    return results


def export_report(results: dict[str, Any], export_dir: str = "data/exports", filename: Optional[str] = None) -> Path:
    """Write pipeline *results* as JSON and return the file path."""
    out_dir = Path(export_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    if filename is None:
        stamp = utc_now_iso()[:19].replace(":", "").replace("-", "")
        host = urlparse(results.get("root_url", "")).netloc or "report"
        filename = f"siteaudit_{slugify(host)}_{stamp}.json"
    path = out_dir / filename
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(make_serialisable(results), fh, indent=2, ensure_ascii=False)
    logger.info("Report exported to %s", path)
    return path


def progress_line(progress: CrawlProgress) -> str:
    return (
        f"[{progress.crawled_pages} crawled / {progress.errors} errors / "
        f"{progress.total_pages} discovered] {progress.state.value} {progress.current_url}"
    )
