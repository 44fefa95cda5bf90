"""
Content extraction from a rendered page.

Three independent read-only DOM evaluations (text, images, outline). A
failure in one never takes down the others: it's logged and degrades to
an empty value.
"""

import logging
from urllib.parse import urldefrag, urlparse, urlsplit, urlunsplit

from tales_analyzer.models import PageSnapshot, ProjectBlock, Section

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# DOM extraction JS
# ---------------------------------------------------------------------------

TEXT_EXTRACTION_JS = """
() => {
    return Array.from(document.querySelectorAll('body *'))
        .map(el => (el.textContent || '').trim())
        .filter(Boolean)
        .join('\\n');
}
"""

IMAGE_EXTRACTION_JS = """
() => {
    return Array.from(document.images)
        .map(img => img.src)
        .filter(src => src && /^https?:\\/\\//i.test(src));
}
"""

SECTION_SELECTOR = "section, article, .section, .project, .case-study, .portfolio-item"
PROJECT_SELECTOR = ".project, .case-study, .portfolio-item"
SKILL_SELECTOR = ".skills, .tags, .technologies, .expertise"
CONTACT_SELECTOR = ".contact, .social, .links"

OUTLINE_EXTRACTION_JS = """
(selectors) => {
    const text = el => (el && el.textContent ? el.textContent.trim() : '');
    const heading = el => text(el.querySelector('h1, h2, h3, h4, h5, h6'));
    const all = sel => Array.from(document.querySelectorAll(sel));
    const httpOnly = srcs => srcs.filter(src => src && /^https?:\\/\\//i.test(src));
    const className = el => (typeof el.className === 'string' ? el.className.trim() : '');

    const meta = document.querySelector('meta[name="description"]');
    return {
        title: document.title || '',
        metaDescription: meta ? (meta.getAttribute('content') || '') : '',
        sections: all(selectors.sections).map(section => ({
            title: heading(section),
            content: text(section),
            type: className(section) || section.tagName.toLowerCase()
        })),
        projects: all(selectors.projects).map(project => ({
            title: heading(project),
            description: text(project.querySelector('p')),
            images: httpOnly(Array.from(project.querySelectorAll('img')).map(img => img.src)),
            skills: Array.from(project.querySelectorAll(selectors.skills)).map(text).filter(Boolean)
        })),
        skills: all(selectors.skills).map(text).filter(Boolean),
        contact: all(selectors.contact).map(text).filter(Boolean)
    };
}
"""

LINK_EXTRACTION_JS = """
() => Array.from(document.querySelectorAll('a[href]')).map(a => a.href)
"""


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------

def normalize_url(url: str) -> str:
    """Canonical form used for visited checks: no fragment, lowercase scheme and host, "/" for an empty path."""
    url, _ = urldefrag(url.strip())
    parts = urlsplit(url)
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), parts.path or "/", parts.query, ""))


def filter_same_origin(hrefs, base_hostname: str) -> list[str]:
    """
    Keep http(s) links whose hostname is exactly base_hostname, without
    fragments, de-duplicated in first-seen order. Malformed hrefs are dropped.
    """
    links = {}
    for href in hrefs or []:
        if not isinstance(href, str):
            continue
        try:
            url = normalize_url(href)
            parsed = urlparse(url)
            hostname = parsed.hostname
        except ValueError:
            continue
        if parsed.scheme not in ("http", "https") or not hostname:
            continue
        if hostname != base_hostname:
            continue
        links.setdefault(url, None)
    return list(links)


async def extract_links(page, base_hostname: str) -> list[str]:
    hrefs = await page.evaluate(LINK_EXTRACTION_JS)
    return filter_same_origin(hrefs, base_hostname)


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------

def _strings(values) -> tuple:
    return tuple(str(v) for v in (values or []) if v)


class ContentExtractor:
    def __init__(self, logger=logger):
        self.log = logger

    async def extract(self, page, url: str) -> PageSnapshot:
        text_content = await self._extract_text(page, url)
        images = await self._extract_images(page, url)
        outline = await self._extract_outline(page, url)

        return PageSnapshot(
            url=url,
            text_content=text_content,
            images=images,
            sections=outline.get("sections", ()),
            title=outline.get("title", ""),
            meta_description=outline.get("meta_description", ""),
            projects=outline.get("projects", ()),
            skills=outline.get("skills", ()),
            contact=outline.get("contact", ()),
        )

    async def _extract_text(self, page, url: str) -> str:
        try:
            text = await page.evaluate(TEXT_EXTRACTION_JS)
            return text if isinstance(text, str) else ""
        except Exception as e:
            self.log.warning(f"Text extraction failed for {url}: {e}")
            return ""

    async def _extract_images(self, page, url: str) -> tuple:
        try:
            srcs = await page.evaluate(IMAGE_EXTRACTION_JS)
        except Exception as e:
            self.log.warning(f"Image extraction failed for {url}: {e}")
            return ()
        return tuple(
            src for src in _strings(srcs)
            if src.lower().startswith(("http://", "https://"))
        )

    async def _extract_outline(self, page, url: str) -> dict:
        try:
            raw = await page.evaluate(OUTLINE_EXTRACTION_JS, {
                "sections": SECTION_SELECTOR,
                "projects": PROJECT_SELECTOR,
                "skills": SKILL_SELECTOR,
                "contact": CONTACT_SELECTOR,
            })
            return self._parse_outline(raw or {})
        except Exception as e:
            self.log.warning(f"Structured content extraction failed for {url}: {e}")
            return {}

    @staticmethod
    def _parse_outline(raw: dict) -> dict:
        sections = tuple(
            Section(
                title=str(s.get("title") or ""),
                content=str(s.get("content") or ""),
                type=str(s.get("type") or ""),
            )
            for s in raw.get("sections") or []
        )
        projects = tuple(
            ProjectBlock(
                title=str(p.get("title") or ""),
                description=str(p.get("description") or ""),
                images=_strings(p.get("images")),
                skills=_strings(p.get("skills")),
            )
            for p in raw.get("projects") or []
        )
        return {
            "title": str(raw.get("title") or ""),
            "meta_description": str(raw.get("metaDescription") or ""),
            "sections": sections,
            "projects": projects,
            "skills": _strings(raw.get("skills")),
            "contact": _strings(raw.get("contact")),
        }
