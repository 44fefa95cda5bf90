import json

import pytest

from conftest import FakeLLMClient, analysis_payload
from tales_analyzer.analyze import PortfolioAnalyzer, validate_analysis
from tales_analyzer.enrich import ReferenceEnricher
from tales_analyzer.errors import AnalysisContractError
from tales_analyzer.models import ExtractionAggregate, PageSnapshot


def _aggregate():
    aggregate = ExtractionAggregate(seed_url="https://example.com/")
    aggregate.set_seed_snapshot(PageSnapshot(
        url="https://example.com/", text_content="Jane Doe", images=("https://cdn.example.com/a.png",),
        title="Jane",
    ))
    aggregate.visited_urls = ["https://example.com/", "https://example.com/work"]
    aggregate.finalize([{"title": "Checkout"}], ["Figma"])
    return aggregate


async def test_analyze_builds_report_with_extraction(settings):
    client = FakeLLMClient("Here is the review:\n" + json.dumps(analysis_payload()))

    report = await PortfolioAnalyzer(client, settings).analyze(_aggregate())

    assert report.summary == "A thoughtful portfolio."
    assert report.areas.storytelling.score == 7
    assert report.projects == [{"title": "Checkout"}]
    assert report.skills == ["Figma"]
    assert report.visited_urls == ["https://example.com/", "https://example.com/work"]
    prompt = client.calls[0]["prompt"]
    assert '"extractedSkills"' in prompt and "Figma" in prompt


@pytest.mark.parametrize("payload", [
    analysis_payload(summary=""),
    {k: v for k, v in analysis_payload().items() if k != "references"},
    analysis_payload(areas={"clarity": {"score": 5, "feedback": "ok"}}),
    analysis_payload(areas="great"),
])
def test_missing_required_fields_rejected(payload):
    with pytest.raises(AnalysisContractError):
        validate_analysis(payload)


def test_out_of_range_score_rejected():
    payload = analysis_payload()
    payload["areas"]["clarity"]["score"] = 42
    with pytest.raises(AnalysisContractError):
        validate_analysis(payload)


def test_string_scores_are_coerced():
    payload = analysis_payload()
    payload["areas"]["innovation"]["score"] = "8"
    assert validate_analysis(payload).areas.innovation.score == 8


async def test_enrich_replaces_references_only():
    report = validate_analysis(analysis_payload())
    references = {
        "videos": [{"title": "Designing portfolios", "summary": "Talk", "image": "", "link": "https://v.example/1"}],
        "podcasts": [], "articles": [], "decks": [],
        "books": [{"title": "Don't Make Me Think", "link": "https://b.example/1"}],
    }
    client = FakeLLMClient(json.dumps({"references": references}))

    enriched = await ReferenceEnricher(client).enrich(report)

    assert enriched.summary == report.summary
    assert enriched.references.books[0].title == "Don't Make Me Think"
    assert report.references.books == []
    assert "A thoughtful portfolio." in client.calls[0]["prompt"]


async def test_enrich_requires_references_block():
    report = validate_analysis(analysis_payload())
    with pytest.raises(AnalysisContractError):
        await ReferenceEnricher(FakeLLMClient('{"videos": []}')).enrich(report)
