"""Shared fakes: an in-memory site served through page/session doubles."""

import asyncio

import pytest

from tales_analyzer.config import Settings
from tales_analyzer.extractor import (
    IMAGE_EXTRACTION_JS,
    LINK_EXTRACTION_JS,
    OUTLINE_EXTRACTION_JS,
    TEXT_EXTRACTION_JS,
)

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake"


class FakeSite:
    """
    pages: url -> {"text", "images", "links", "outline"}
    goto_failures: url -> number of gotos that fail before success (-1 = always)
    redirects: requested url -> url the page lands on
    eval_failures: set of (url, kind) where kind in text/images/outline/links
    """

    def __init__(self, pages=None, goto_failures=None, eval_failures=None,
                 screenshot_failures=None, close_on_failure=False, redirects=None):
        self.pages = pages or {}
        self.goto_failures = dict(goto_failures or {})
        self.eval_failures = set(eval_failures or ())
        self.screenshot_failures = set(screenshot_failures or ())
        self.close_on_failure = close_on_failure
        self.redirects = dict(redirects or {})
        self.gotos = []

    def goto(self, page, url):
        self.gotos.append(url)
        remaining = self.goto_failures.get(url, 0)
        if remaining == -1 or remaining > 0 or url not in self.pages:
            if remaining > 0:
                self.goto_failures[url] = remaining - 1
            if self.close_on_failure:
                page.closed = True
            raise RuntimeError(f"net::ERR_CONNECTION_REFUSED at {url}")


class FakePage:
    def __init__(self, site: FakeSite):
        self.site = site
        self.url = None
        self.closed = False
        self.goto_calls = 0

    async def goto(self, url, wait_until=None):
        self.goto_calls += 1
        if self.closed:
            raise RuntimeError("Target page, context or browser has been closed")
        self.site.goto(self, url)
        self.url = self.site.redirects.get(url, url)

    async def evaluate(self, script, arg=None):
        kinds = {
            TEXT_EXTRACTION_JS: "text",
            IMAGE_EXTRACTION_JS: "images",
            OUTLINE_EXTRACTION_JS: "outline",
            LINK_EXTRACTION_JS: "links",
        }
        kind = kinds[script]
        if (self.url, kind) in self.site.eval_failures:
            raise RuntimeError(f"Evaluation failed: {kind}")
        page = self.site.pages[self.url]
        if kind == "text":
            return page.get("text", "")
        if kind == "images":
            return page.get("images", [])
        if kind == "outline":
            return page.get("outline", {})
        return page.get("links", [])

    async def screenshot(self, path=None, full_page=False, type="png"):
        if self.url in self.site.screenshot_failures:
            raise RuntimeError("Screenshot timed out")
        with open(path, "wb") as f:
            f.write(PNG_BYTES)
        return PNG_BYTES

    def is_closed(self):
        return self.closed

    async def close(self):
        self.closed = True


class FakeSession:
    def __init__(self, site: FakeSite, fail_launch=False):
        self.site = site
        self.fail_launch = fail_launch
        self.pages = []
        self.closed_pages = []
        self.close_calls = 0

    async def open_page(self):
        page = FakePage(self.site)
        self.pages.append(page)
        return page

    async def close_page(self, page):
        if not page.is_closed():
            await page.close()
        self.closed_pages.append(page)

    async def close(self):
        self.close_calls += 1

    async def __aenter__(self):
        if self.fail_launch:
            from tales_analyzer.errors import BrowserLaunchError
            raise BrowserLaunchError("Failed to launch browser: chromium not found")
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()


async def no_sleep(_seconds):
    return None


def portfolio_site(extra_pages=None, **kwargs) -> FakeSite:
    """Seed with three same-origin project pages, each linking onward."""
    base = "https://example.com"
    pages = {
        f"{base}/portfolio": {
            "text": "Jane Doe\nProduct Designer",
            "images": ["https://cdn.example.com/hero.png"],
            "links": [
                f"{base}/work/a",
                f"{base}/work/b",
                "https://other.org/elsewhere",
                f"{base}/work/c",
                f"{base}/portfolio",
            ],
            "outline": {
                "title": "Jane Doe",
                "metaDescription": "Portfolio",
                "sections": [{"title": "Work", "content": "Selected work", "type": "section"}],
                "projects": [],
                "skills": ["Figma"],
                "contact": [],
            },
        },
        f"{base}/work/a": {
            "text": "Project A",
            "images": ["https://cdn.example.com/a.png"],
            "links": [f"{base}/work/a/detail", f"{base}/portfolio"],
        },
        f"{base}/work/b": {
            "text": "Project B",
            "links": [f"{base}/work/a", f"{base}/work/b/detail"],
        },
        f"{base}/work/c": {"text": "Project C", "links": []},
        f"{base}/work/a/detail": {"text": "A detail", "links": [f"{base}/deep"]},
        f"{base}/work/b/detail": {"text": "B detail", "links": []},
        f"{base}/deep": {"text": "Too deep", "links": []},
    }
    pages.update(extra_pages or {})
    return FakeSite(pages=pages, **kwargs)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        llm_api_key="sk-test",
        screenshot_base_dir=str(tmp_path / "shots"),
        retry_max_attempts=2,
        retry_delay_seconds=0,
        coalesce_inflight_runs=True,
    )


class FakeLLMClient:
    """Returns queued replies in order and records every call."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    async def complete(self, prompt, image_urls=None, system_prompt=None, temperature=None, max_tokens=4096):
        self.calls.append({"prompt": prompt, "image_urls": list(image_urls or [])})
        await asyncio.sleep(0)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def analysis_payload(**overrides):
    area = {"score": 7, "feedback": "Solid work on the checkout project."}
    payload = {
        "summary": "A thoughtful portfolio.",
        "areas": {name: dict(area) for name in
                  ("clarity", "technical_skills", "innovation", "user_focus", "storytelling")},
        "references": {"videos": [], "podcasts": [], "articles": [], "decks": [], "books": []},
    }
    payload.update(overrides)
    return payload
