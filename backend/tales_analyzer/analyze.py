"""
Scored feedback on a portfolio across five areas.
"""

import json
import logging

from pydantic import ValidationError

from tales_analyzer.config import get_settings
from tales_analyzer.errors import AnalysisContractError
from tales_analyzer.llm import LLMClient, parse_json_response
from tales_analyzer.models import AnalysisReport, ExtractionAggregate

logger = logging.getLogger(__name__)

AREAS = ("clarity", "technical_skills", "innovation", "user_focus", "storytelling")

ANALYSIS_PROMPT = """\
You are an experienced mentor for designers and product managers, reviewing \
the portfolio below. Detect the language of the content and answer in that \
language (English if unsure). Be warm, specific and actionable, and tie every \
point to a concrete project from STRUCTURED CONTENT whenever you can.

Score five areas from 1 to 10 (1-3 needs significant work, 4-6 average, \
7-8 good, 9-10 excellent) with 3-4 paragraphs of feedback each. Each area's \
feedback must stand alone; do not refer back to other areas.

- clarity: how effortlessly the work communicates; layout, typography, color, imagery.
- technical_skills: command of tools and techniques, execution of complex ideas.
- innovation: fresh perspectives, experimentation, challenging conventions.
- user_focus: understanding of user needs, empathy, accessibility.
- storytelling: context, narrative, conveying complex ideas simply.

TEXT:
{text}

IMAGES:
{images}

STRUCTURED CONTENT:
{structured}

Respond with ONLY this JSON object:
{{
  "summary": "2-3 paragraphs addressed to the person, including the overall score (average of the 5 areas)",
  "areas": {{
    "clarity": {{"score": 1, "feedback": "..."}},
    "technical_skills": {{"score": 1, "feedback": "..."}},
    "innovation": {{"score": 1, "feedback": "..."}},
    "user_focus": {{"score": 1, "feedback": "..."}},
    "storytelling": {{"score": 1, "feedback": "..."}}
  }},
  "references": {{"videos": [], "podcasts": [], "articles": [], "decks": [], "books": []}}
}}
"""


def validate_analysis(data: dict) -> AnalysisReport:
    """Every area, the summary and the references block are required."""
    missing = []
    if not data.get("summary"):
        missing.append("summary")
    areas = data.get("areas")
    if not isinstance(areas, dict):
        missing.append("areas")
    else:
        missing += [f"areas.{area}" for area in AREAS if not areas.get(area)]
    if "references" not in data:
        missing.append("references")
    if missing:
        raise AnalysisContractError(f"Invalid analysis response, missing: {', '.join(missing)}")
    try:
        return AnalysisReport.model_validate(data)
    except ValidationError as e:
        raise AnalysisContractError(f"Invalid analysis response: {e}") from e


class PortfolioAnalyzer:
    def __init__(self, client: LLMClient | None = None, settings=None, logger=logger):
        self.settings = settings or get_settings()
        self.client = client or LLMClient(self.settings)
        self.log = logger

    async def analyze(self, aggregate: ExtractionAggregate) -> AnalysisReport:
        s = self.settings
        prompt = ANALYSIS_PROMPT.format(
            text=aggregate.text_content[:s.analysis_text_limit],
            images="\n".join(aggregate.images[:s.analysis_max_images]),
            structured=json.dumps(aggregate.structured_content(), indent=2, ensure_ascii=False),
        )
        raw = await self.client.complete(prompt)
        report = validate_analysis(parse_json_response(raw, lenient=True))
        return report.model_copy(update={
            "projects": list(aggregate.projects or []),
            "skills": list(aggregate.skills or []),
            "visited_urls": list(aggregate.visited_urls),
        })
