"""
Bounded same-origin crawl.

Starting from the seed URL, walk same-origin links depth-first up to
max_depth hops. Every visited page gets a screenshot; only the seed page
is fully extracted, and its text/images are the run's canonical content.
A failing node is logged and skipped, it never stops the crawl.
"""

import enum
import logging

from tales_analyzer.config import get_settings
from tales_analyzer.errors import ScreenshotStorageError
from tales_analyzer.extractor import ContentExtractor, extract_links, normalize_url
from tales_analyzer.models import CrawlState, ExtractionAggregate
from tales_analyzer.retry import RetryPolicy
from tales_analyzer.screenshots import ScreenshotCapture

logger = logging.getLogger(__name__)


class CrawlPhase(str, enum.Enum):
    IDLE = "idle"
    SEEDING = "seeding"
    VISITING = "visiting"
    DRAINING = "draining"
    DONE = "done"


class CrawlOrchestrator:
    def __init__(
        self,
        session,
        settings=None,
        extractor: ContentExtractor | None = None,
        screenshots: ScreenshotCapture | None = None,
        retry_policy: RetryPolicy | None = None,
        max_depth: int | None = None,
        max_pages: int | None = None,
        logger=logger,
    ):
        settings = settings or get_settings()
        self.session = session
        self.log = logger
        self.extractor = extractor or ContentExtractor(logger=logger)
        self.screenshots = screenshots or ScreenshotCapture(logger=logger)
        self.retry = retry_policy or RetryPolicy.from_settings(session, settings, logger=logger)
        self.max_depth = settings.crawl_max_depth if max_depth is None else max_depth
        self.max_pages = settings.crawl_max_pages if max_pages is None else max_pages
        self.phase = CrawlPhase.IDLE
        self.state: CrawlState | None = None

    def _transition(self, phase: CrawlPhase) -> None:
        self.log.debug(f"Crawl {self.phase.value} -> {phase.value}")
        self.phase = phase

    def _page_budget_left(self) -> bool:
        return not self.max_pages or len(self.state.visited) < self.max_pages

    async def crawl(self, seed_url: str, output_dir: str) -> ExtractionAggregate:
        self.state = CrawlState.for_seed(seed_url, self.max_depth)
        aggregate = ExtractionAggregate(seed_url=seed_url)

        self._transition(CrawlPhase.SEEDING)
        # Links come back browser-resolved and normalized, so the seed must match that form
        seed_key = normalize_url(seed_url)
        self.state.mark_visited(seed_key)
        aggregate.visited_urls.append(seed_key)
        links = await self._visit_seed(seed_url, aggregate, output_dir)

        self._transition(CrawlPhase.VISITING)
        # Children are pushed in reverse so pops follow DOM order (depth-first).
        stack = [(link, 1) for link in reversed(links)]
        while stack:
            url, depth = stack.pop()
            if not self.state.within_depth(depth) or url in self.state.visited:
                continue
            if not self._page_budget_left():
                self.log.info(f"Page budget of {self.max_pages} reached, stopping crawl")
                break

            self.state.mark_visited(url)
            self.state.current_depth = depth
            aggregate.visited_urls.append(url)

            children = await self._visit_node(url, depth, aggregate, output_dir)
            for child in reversed(children):
                if child not in self.state.visited:
                    stack.append((child, depth + 1))

        self._transition(CrawlPhase.DRAINING)
        self.log.info(
            f"Crawl of {seed_url} finished: {len(aggregate.visited_urls)} page(s), "
            f"{len(aggregate.screenshots)} screenshot(s)"
        )
        self._transition(CrawlPhase.DONE)
        return aggregate

    async def _visit_seed(self, url: str, aggregate: ExtractionAggregate, output_dir: str) -> list[str]:
        """Seed navigation failure is fatal; everything after it degrades."""
        page = await self.session.open_page()
        try:
            page = await self.retry.navigate(page, url)
            self._mark_landing_url(page)
            aggregate.add_screenshot(await self.screenshots.capture(page, url, output_dir))
            aggregate.set_seed_snapshot(await self.extractor.extract(page, url))
            self.log.info(
                f"Seed page {url} extracted ({len(aggregate.text_content)} chars, "
                f"{len(aggregate.images)} images)"
            )
            if self.max_depth < 1:
                return []
            try:
                links = await extract_links(page, self.state.base_origin)
            except Exception as e:
                self.log.warning(f"Link extraction failed for {url} (depth 0): {e}")
                return []
            self.log.info(f"Found {len(links)} same-origin link(s) on {url}")
            return links
        finally:
            await self._close_pages(page)

    async def _visit_node(self, url: str, depth: int, aggregate: ExtractionAggregate,
                          output_dir: str) -> list[str]:
        page = None
        try:
            page = await self.session.open_page()
            page = await self.retry.navigate(page, url)
            self._mark_landing_url(page)
            aggregate.add_screenshot(await self.screenshots.capture(page, url, output_dir))
            if depth >= self.max_depth:
                return []
            try:
                return await extract_links(page, self.state.base_origin)
            except Exception as e:
                self.log.warning(f"Link extraction failed for {url} (depth {depth}): {e}")
                return []
        except ScreenshotStorageError:
            raise
        except Exception as e:
            self.log.warning(f"Skipping {url} (depth {depth}): {e}")
            return []
        finally:
            await self._close_pages(page)

    def _mark_landing_url(self, page) -> None:
        """Redirect targets count as visited too."""
        landed = page.url
        if landed:
            self.state.mark_visited(normalize_url(landed))

    async def _close_pages(self, page) -> None:
        pages = [p for p in (page, self.retry.current_page) if p is not None]
        for p in dict.fromkeys(pages):
            await self.session.close_page(p)
        self.retry.current_page = None
