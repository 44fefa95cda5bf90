"""Data models for the crawl, the analysis report and the HTTP layer."""

import time
from dataclasses import dataclass, field
from typing import List, Optional, Set, Tuple
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Crawl
# ---------------------------------------------------------------------------

@dataclass
class CrawlState:
    """Traversal bookkeeping for one run. Owned by the crawler."""
    base_origin: str  # seed hostname
    max_depth: int
    current_depth: int = 0
    visited: Set[str] = field(default_factory=set)

    @classmethod
    def for_seed(cls, seed_url: str, max_depth: int) -> "CrawlState":
        return cls(base_origin=urlparse(seed_url).hostname or "", max_depth=max_depth)

    def mark_visited(self, url: str) -> bool:
        """Add url to the visited set. False if it was already there."""
        if url in self.visited:
            return False
        self.visited.add(url)
        return True

    def within_depth(self, depth: int) -> bool:
        return depth <= self.max_depth


@dataclass(frozen=True)
class Section:
    title: str
    content: str
    type: str  # element class name, or tag name when it has none


@dataclass(frozen=True)
class ProjectBlock:
    title: str
    description: str = ""
    images: Tuple[str, ...] = ()
    skills: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PageSnapshot:
    """Everything read from one loaded page. Built once, never mutated."""
    url: str
    text_content: str = ""
    images: Tuple[str, ...] = ()
    sections: Tuple[Section, ...] = ()
    title: str = ""
    meta_description: str = ""
    projects: Tuple[ProjectBlock, ...] = ()
    skills: Tuple[str, ...] = ()
    contact: Tuple[str, ...] = ()

    def outline(self) -> dict:
        """Structured content as handed to the analysis prompt."""
        return {
            "title": self.title,
            "metaDescription": self.meta_description,
            "sections": [
                {"title": s.title, "content": s.content, "type": s.type}
                for s in self.sections
            ],
            "projects": [
                {
                    "title": p.title,
                    "description": p.description,
                    "images": list(p.images),
                    "skills": list(p.skills),
                }
                for p in self.projects
            ],
            "skills": list(self.skills),
            "contact": list(self.contact),
        }


@dataclass(frozen=True)
class ScreenshotRecord:
    url: str
    file_path: str


@dataclass
class ExtractionAggregate:
    """
    Result of one crawl. text_content/images/outline come from the seed
    page only; screenshots and visited_urls cover every visited page.
    projects/skills stay None until finalize() is called with the
    semantic extraction result.
    """
    seed_url: str
    text_content: str = ""
    images: List[str] = field(default_factory=list)
    outline: Optional[PageSnapshot] = None
    screenshots: List[ScreenshotRecord] = field(default_factory=list)
    visited_urls: List[str] = field(default_factory=list)
    projects: Optional[list] = None
    skills: Optional[list] = None

    def set_seed_snapshot(self, snapshot: PageSnapshot) -> None:
        self.outline = snapshot
        self.text_content = snapshot.text_content
        self.images = list(snapshot.images)

    def add_screenshot(self, record: Optional[ScreenshotRecord]) -> None:
        if record is not None:
            self.screenshots.append(record)

    @property
    def has_content(self) -> bool:
        return bool(self.text_content) or bool(self.images)

    @property
    def finalized(self) -> bool:
        return self.projects is not None and self.skills is not None

    def finalize(self, projects: list, skills: list) -> None:
        self.projects = list(projects)
        self.skills = list(skills)

    def structured_content(self) -> dict:
        content = self.outline.outline() if self.outline else {}
        content["extractedProjects"] = self.projects or []
        content["extractedSkills"] = self.skills or []
        content["visitedUrls"] = list(self.visited_urls)
        return content


# ---------------------------------------------------------------------------
# Analysis report
# ---------------------------------------------------------------------------

class AreaFeedback(BaseModel):
    score: float = Field(ge=1, le=10)
    feedback: str


class Areas(BaseModel):
    clarity: AreaFeedback
    technical_skills: AreaFeedback
    innovation: AreaFeedback
    user_focus: AreaFeedback
    storytelling: AreaFeedback


class ReferenceItem(BaseModel):
    title: str
    summary: str = ""
    image: str = ""
    link: str = ""


class References(BaseModel):
    videos: List[ReferenceItem] = []
    podcasts: List[ReferenceItem] = []
    articles: List[ReferenceItem] = []
    decks: List[ReferenceItem] = []
    books: List[ReferenceItem] = []


class AnalysisReport(BaseModel):
    summary: str
    areas: Areas
    references: References
    projects: list = []
    skills: list = []
    visited_urls: List[str] = []


@dataclass
class CacheEntry:
    data: AnalysisReport
    timestamp: float = field(default_factory=time.time)
    enriched: bool = False  # references block filled by the enrichment pass

    def age_seconds(self, now: Optional[float] = None) -> float:
        return (now if now is not None else time.time()) - self.timestamp

    def is_fresh(self, window_seconds: float, now: Optional[float] = None) -> bool:
        return self.age_seconds(now) <= window_seconds


@dataclass
class ReviewResult:
    data: AnalysisReport
    from_cache: bool
    cache_age_seconds: Optional[float] = None
    fresh: Optional[bool] = None
    timings: dict = field(default_factory=dict)


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

class ReviewRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: Optional[str] = None
    use_cache: bool = Field(default=True, alias="useCache")
    include_references: bool = Field(default=False, alias="includeReferences")
