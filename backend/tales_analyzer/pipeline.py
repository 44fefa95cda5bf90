"""
Review pipeline: cache check -> crawl -> project/skill extraction ->
analysis -> (optional) references -> cache write -> cleanup.

The run's screenshot directory is removed on every exit path.
"""

import asyncio
import logging
import time
import uuid

from tales_analyzer.analyze import PortfolioAnalyzer
from tales_analyzer.browser import BrowserSession
from tales_analyzer.cache import AnalysisCache, InFlightRuns
from tales_analyzer.config import get_settings
from tales_analyzer.crawler import CrawlOrchestrator
from tales_analyzer.enrich import ReferenceEnricher
from tales_analyzer.errors import NoContentError
from tales_analyzer.llm import LLMClient
from tales_analyzer.logging_config import run_logger
from tales_analyzer.models import ReviewResult
from tales_analyzer.screenshots import cleanup_run_dir, create_run_dir, default_base_dir
from tales_analyzer.semantic import SemanticExtractor

logger = logging.getLogger(__name__)


def _ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


class PipelineOrchestrator:
    def __init__(
        self,
        settings=None,
        cache: AnalysisCache | None = None,
        session_factory=None,
        crawler_factory=None,
        semantic: SemanticExtractor | None = None,
        analyzer: PortfolioAnalyzer | None = None,
        enricher: ReferenceEnricher | None = None,
        logger=logger,
    ):
        self.settings = settings or get_settings()
        self.cache = cache if cache is not None else AnalysisCache(self.settings.cache_freshness_seconds)
        self.log = logger
        self.session_factory = session_factory or (lambda: BrowserSession(self.settings))
        self.crawler_factory = crawler_factory or (
            lambda session, log: CrawlOrchestrator(session, self.settings, logger=log)
        )

        client = None
        if semantic is None or analyzer is None or enricher is None:
            client = LLMClient(self.settings)
        self.semantic = semantic or SemanticExtractor(client, self.settings)
        self.analyzer = analyzer or PortfolioAnalyzer(client, self.settings)
        self.enricher = enricher or ReferenceEnricher(client)

        self.inflight = InFlightRuns(logger=logger)
        self.screenshot_base_dir = default_base_dir(self.settings.screenshot_base_dir)

    async def review(self, url: str, use_cache: bool = True,
                     include_references: bool = False) -> ReviewResult:
        start = time.perf_counter()

        if use_cache:
            entry = self.cache.get(url)
            if entry is not None and include_references and not entry.enriched:
                self.log.info(f"Cached analysis for {url} has no references, enriching it")
                return await self._coalesced(
                    f"{url}|enrich-cached", lambda: self._enrich_cached(url, entry)
                )
            if entry is not None:
                age = self.cache.age_seconds(entry)
                self.log.info(f"Using cached portfolio analysis for {url} (age {age:.0f}s, total {_ms(start)}ms)")
                return ReviewResult(
                    data=entry.data,
                    from_cache=True,
                    cache_age_seconds=age,
                    fresh=self.cache.is_fresh(entry),
                )
            return await self._coalesced(
                f"{url}|references={include_references}",
                lambda: self._run(url, include_references),
            )

        return await self._run(url, include_references)

    async def _coalesced(self, key: str, factory) -> ReviewResult:
        if self.settings.coalesce_inflight_runs:
            return await self.inflight.run(key, factory)
        return await factory()

    async def _enrich_cached(self, url: str, entry) -> ReviewResult:
        """Add references to a cached plain analysis without crawling again."""
        start = time.perf_counter()
        report = await self.enricher.enrich(entry.data)
        self.cache.put(url, report, enriched=True)
        timings = {"references_ms": _ms(start)}
        timings["total_ms"] = timings["references_ms"]
        return ReviewResult(data=report, from_cache=False, timings=timings)

    async def _run(self, url: str, include_references: bool) -> ReviewResult:
        run_id = uuid.uuid4().hex[:8]
        log = run_logger(self.log, run_id)
        timings = {}
        start = time.perf_counter()
        run_dir = None

        try:
            run_dir = create_run_dir(self.screenshot_base_dir, run_id)

            log.info(f"Starting portfolio scraping: {url}")
            step = time.perf_counter()
            async with self.session_factory() as session:
                crawler = self.crawler_factory(session, log)
                aggregate = await crawler.crawl(url, run_dir)
            timings["scrape_ms"] = _ms(step)
            log.info(
                f"Portfolio scraping completed in {timings['scrape_ms']}ms "
                f"({len(aggregate.text_content)} chars, {len(aggregate.images)} images, "
                f"{len(aggregate.visited_urls)} pages)"
            )

            if not aggregate.has_content:
                raise NoContentError(url)

            step = time.perf_counter()
            extracted = await self.semantic.extract_projects_and_skills(
                aggregate.text_content, aggregate.images, aggregate.screenshots
            )
            aggregate.finalize(extracted["projects"], extracted["skills"])
            timings["extract_ms"] = _ms(step)

            step = time.perf_counter()
            report = await self.analyzer.analyze(aggregate)
            timings["analysis_ms"] = _ms(step)
            log.info(f"Portfolio analysis completed in {timings['analysis_ms']}ms")

            if include_references:
                step = time.perf_counter()
                report = await self.enricher.enrich(report)
                timings["references_ms"] = _ms(step)

            self.cache.put(url, report, enriched=include_references)
            timings["total_ms"] = _ms(start)
            log.info(f"Review of {url} done in {timings['total_ms']}ms")
            return ReviewResult(data=report, from_cache=False, timings=timings)

        except NoContentError:
            log.warning(f"No content found on {url}")
            raise
        except Exception as e:
            log.error(f"Error processing portfolio {url} after {_ms(start)}ms: {e}")
            raise
        finally:
            await asyncio.to_thread(cleanup_run_dir, run_dir, log)
