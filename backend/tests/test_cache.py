import asyncio

from conftest import analysis_payload
from tales_analyzer.analyze import validate_analysis
from tales_analyzer.cache import AnalysisCache, InFlightRuns


class Clock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_put_get_and_advisory_freshness():
    clock = Clock()
    cache = AnalysisCache(freshness_window_seconds=60, clock=clock)
    report = validate_analysis(analysis_payload())

    assert cache.get("https://example.com") is None
    cache.put("https://example.com", report)
    entry = cache.get("https://example.com")
    assert entry.data is report
    assert cache.is_fresh(entry)

    clock.now += 3600
    assert cache.age_seconds(entry) == 3600
    assert not cache.is_fresh(entry)
    # stale entries are still returned; freshness is only reported
    assert cache.get("https://example.com") is entry


def test_last_write_wins():
    cache = AnalysisCache(clock=Clock())
    first = validate_analysis(analysis_payload(summary="first"))
    second = validate_analysis(analysis_payload(summary="second"))

    cache.put("k", first)
    cache.put("k", second)

    assert cache.get("k").data.summary == "second"
    assert len(cache) == 1


async def test_inflight_runs_share_one_execution():
    runs = InFlightRuns()
    calls = []
    release = asyncio.Event()

    async def work():
        calls.append(1)
        await release.wait()
        return "result"

    first = asyncio.ensure_future(runs.run("k", work))
    second = asyncio.ensure_future(runs.run("k", work))
    await asyncio.sleep(0)
    assert "k" in runs
    release.set()

    assert await asyncio.gather(first, second) == ["result", "result"]
    assert calls == [1]
    assert "k" not in runs


async def test_inflight_failure_reaches_every_waiter():
    runs = InFlightRuns()
    release = asyncio.Event()

    async def work():
        await release.wait()
        raise RuntimeError("boom")

    waiters = [asyncio.ensure_future(runs.run("k", work)) for _ in range(2)]
    await asyncio.sleep(0)
    release.set()
    results = await asyncio.gather(*waiters, return_exceptions=True)

    assert all(isinstance(r, RuntimeError) for r in results)
    assert "k" not in runs
