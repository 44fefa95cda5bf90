"""
Project/skill decomposition of a crawled portfolio.

Opaque LLM call with a strict contract: the reply must be a JSON object
with list-valued "projects" and "skills". Anything else fails the run.
"""

import asyncio
import logging

from tales_analyzer.config import get_settings
from tales_analyzer.errors import LLMResponseError, SemanticContractError
from tales_analyzer.image_utils import screenshot_file_to_data_url
from tales_analyzer.llm import LLMClient, parse_json_response
from tales_analyzer.models import ScreenshotRecord

logger = logging.getLogger(__name__)

SEMANTIC_SYSTEM_PROMPT = """\
You read portfolio websites of designers and product managers and list the \
projects they present and the skills they demonstrate. Output ONLY valid JSON \
(no markdown fences, no explanation)."""

SEMANTIC_PROMPT = """\
Below is the text of a portfolio home page, the image URLs it shows and, \
attached, screenshots of the pages of the site.

Identify every project or case study and the skills (tools, methods, \
disciplines) the person demonstrates. Keep the language of the portfolio.

TEXT:
{text}

IMAGES:
{images}

Your response must follow strictly this JSON schema:
{{
  "projects": [
    {{
      "title": "Project name",
      "description": "One or two sentences on what was done and the outcome",
      "skills": ["skill used in this project"],
      "images": ["image URL from the list above that belongs to this project"]
    }}
  ],
  "skills": ["skill demonstrated anywhere in the portfolio"]
}}
"""


def bound_inputs(text: str, images: list[str], screenshots: list[ScreenshotRecord],
                 text_limit: int, max_images: int, max_screenshots: int):
    """Truncate inputs to what the external service accepts."""
    return (text or "")[:text_limit], list(images or [])[:max_images], list(screenshots or [])[:max_screenshots]


def validate_semantic_result(data: dict) -> dict:
    missing = [key for key in ("projects", "skills") if key not in data]
    if missing:
        raise SemanticContractError(f"Semantic extraction response missing {', '.join(missing)}")
    for key in ("projects", "skills"):
        if not isinstance(data[key], list):
            raise SemanticContractError(f"Semantic extraction field '{key}' must be a list")
    return {"projects": data["projects"], "skills": data["skills"]}


class SemanticExtractor:
    def __init__(self, client: LLMClient | None = None, settings=None, logger=logger):
        self.settings = settings or get_settings()
        self.client = client or LLMClient(self.settings)
        self.log = logger

    async def _encode_screenshots(self, screenshots: list[ScreenshotRecord]) -> list[str]:
        """Compress screenshots in a worker thread so other requests keep running."""
        encoded = []
        for record in screenshots:
            try:
                encoded.append(await asyncio.to_thread(screenshot_file_to_data_url, record.file_path))
            except Exception as e:
                self.log.warning(f"Skipping unreadable screenshot of {record.url}: {e}")
        return encoded

    async def extract_projects_and_skills(self, text: str, images: list[str],
                                          screenshots: list[ScreenshotRecord]) -> dict:
        s = self.settings
        text, images, screenshots = bound_inputs(
            text, images, screenshots,
            s.semantic_text_limit, s.semantic_max_images, s.semantic_max_screenshots,
        )

        prompt = SEMANTIC_PROMPT.format(text=text, images="\n".join(images))
        raw = await self.client.complete(
            prompt,
            image_urls=await self._encode_screenshots(screenshots),
            system_prompt=SEMANTIC_SYSTEM_PROMPT,
            temperature=0.2,
        )

        try:
            data = parse_json_response(raw)
        except LLMResponseError as e:
            raise SemanticContractError(f"Semantic extraction returned invalid JSON: {e}") from e

        result = validate_semantic_result(data)
        self.log.info(
            f"Semantic extraction: {len(result['projects'])} project(s), {len(result['skills'])} skill(s)"
        )
        return result
