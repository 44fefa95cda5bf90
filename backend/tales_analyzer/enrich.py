"""
Reference enrichment: a second LLM pass that fills the references block
(videos, podcasts, articles, decks, books) of a finished analysis.
"""

import json
import logging

from pydantic import ValidationError

from tales_analyzer.errors import AnalysisContractError
from tales_analyzer.llm import LLMClient, parse_json_response
from tales_analyzer.models import AnalysisReport, References

logger = logging.getLogger(__name__)

ENRICH_PROMPT = """\
You are a mentor for designers and product managers. Based on the portfolio \
analysis below, recommend real, existing resources that would help this \
person act on the feedback: 3 to 5 per category, with real titles and \
working links.

PORTFOLIO ANALYSIS:
{analysis}

Respond with ONLY this JSON object:
{{
  "references": {{
    "videos": [{{"title": "", "summary": "", "image": "thumbnail URL", "link": "URL"}}],
    "podcasts": [{{"title": "", "summary": "", "image": "cover URL", "link": "URL"}}],
    "articles": [{{"title": "", "summary": "", "image": "image URL", "link": "URL"}}],
    "decks": [{{"title": "", "summary": "", "image": "cover URL", "link": "URL"}}],
    "books": [{{"title": "", "summary": "", "image": "cover URL", "link": "URL"}}]
  }}
}}
"""


class ReferenceEnricher:
    def __init__(self, client: LLMClient | None = None, logger=logger):
        self.client = client or LLMClient()
        self.log = logger

    async def enrich(self, report: AnalysisReport) -> AnalysisReport:
        """Return a copy of report with its references replaced."""
        analysis = report.model_dump(include={"summary", "areas"})
        raw = await self.client.complete(
            ENRICH_PROMPT.format(analysis=json.dumps(analysis, indent=2, ensure_ascii=False))
        )
        data = parse_json_response(raw, lenient=True)
        if not isinstance(data.get("references"), dict):
            raise AnalysisContractError("Invalid references response: missing 'references'")
        try:
            references = References.model_validate(data["references"])
        except ValidationError as e:
            raise AnalysisContractError(f"Invalid references response: {e}") from e

        counts = {k: len(v) for k, v in references.model_dump().items()}
        self.log.info(f"References enriched: {counts}")
        return report.model_copy(update={"references": references})
