import asyncio
import time
from typing import Any

import pytest

from benchlab.application.run_benchmark import RunBenchmark, RunBenchmarkError
from benchlab.domain.contracts.provider import (
    ProviderContract,
    TaskResult,
    TokenUsage,
)
from benchlab.domain.contracts.results import BenchmarkResult
from benchlab.domain.contracts.scorer import ScoreResult, ScorerContext, ScorerContract
from benchlab.domain.contracts.task import Task, ToolSpec


class _FakeProvider(ProviderContract):
    def __init__(self, provider_id: str, output: Any = "ok", delay: float = 0.0):
        self._id = provider_id
        self.output = output
        self.delay = delay
        self.calls = 0
        self.cancel_events: list[asyncio.Event] = []

    @property
    def id(self) -> str:
        return self._id

    async def invoke(
        self,
        prompt: str,
        schema: dict[str, Any] | None = None,
        tools: list[ToolSpec] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> TaskResult:
        self.calls += 1
        if cancel_event is not None:
            self.cancel_events.append(cancel_event)
        if self.delay:
            await asyncio.sleep(self.delay)
        return TaskResult(
            output=self.output, latency_ms=12.0, token_usage=TokenUsage(10, 5)
        )


class _FailingProvider(_FakeProvider):
    async def invoke(self, prompt, schema=None, tools=None, cancel_event=None):
        self.calls += 1
        raise RuntimeError("upstream exploded")


class _SilentFailingProvider(_FakeProvider):
    async def invoke(self, prompt, schema=None, tools=None, cancel_event=None):
        raise ConnectionError()


class _ConstantScorer(ScorerContract):
    def __init__(self, name: str, value: float | None = 1.0):
        self._name = name
        self.value = value

    @property
    def name(self) -> str:
        return self._name

    def score(self, context: ScorerContext, provider_id: str) -> ScoreResult:
        return ScoreResult(name=self._name, value=self.value)


class _AsyncScorer(_ConstantScorer):
    async def score(self, context: ScorerContext, provider_id: str) -> ScoreResult:
        await asyncio.sleep(0)
        return ScoreResult(name=self._name, value=self.value)


class _BrokenScorer(_ConstantScorer):
    def score(self, context: ScorerContext, provider_id: str) -> ScoreResult:
        raise ValueError("scorer bug")


class _SlowScorer(_ConstantScorer):
    def __init__(self, name: str):
        super().__init__(name)
        self.cancelled = False

    async def score(self, context: ScorerContext, provider_id: str) -> ScoreResult:
        try:
            await asyncio.sleep(5)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return ScoreResult(name=self._name, value=self.value)


class _InFlight:
    def __init__(self):
        self.active: dict[tuple[str, str], int] = {}
        self.peak_total = 0
        self.peak_per_cell = 0

    def enter(self, cell: tuple[str, str]) -> None:
        self.active[cell] = self.active.get(cell, 0) + 1
        self.peak_total = max(self.peak_total, sum(self.active.values()))
        self.peak_per_cell = max(self.peak_per_cell, self.active[cell])

    def leave(self, cell: tuple[str, str]) -> None:
        self.active[cell] -= 1


class _TrackingProvider(_FakeProvider):
    def __init__(self, provider_id: str, in_flight: _InFlight, delay: float = 0.02):
        super().__init__(provider_id, delay=delay)
        self.in_flight = in_flight

    async def invoke(
        self, prompt, schema=None, tools=None, cancel_event=None, **sampling
    ):
        cell = (self.id, prompt)
        self.in_flight.enter(cell)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight.leave(cell)
        return TaskResult(output="ok", latency_ms=self.delay * 1000)


def _tasks(*names: str) -> list[Task]:
    return [Task(name=name, prompt=f"prompt for {name}") for name in names]


@pytest.mark.asyncio
async def test_each_cell_gets_dense_run_indices():
    providers = [_FakeProvider("a/one"), _FakeProvider("b/two")]

    results = await RunBenchmark().run(
        providers, _tasks("t1", "t2"), [_ConstantScorer("correctness")], runs_per_cell=3
    )

    assert len(results) == 2 * 2 * 3
    for provider in providers:
        for task_name in ("t1", "t2"):
            runs = [
                r.run
                for r in results
                if r.provider_id == provider.id and r.task_name == task_name
            ]
            assert runs == [1, 2, 3]
    assert all(p.calls == 6 for p in providers)


@pytest.mark.asyncio
async def test_failing_provider_is_isolated():
    good = _FakeProvider("good/model")
    bad = _FailingProvider("bad/model")

    results = await RunBenchmark().run(
        [good, bad], _tasks("t1"), [_ConstantScorer("correctness")], runs_per_cell=2
    )

    bad_results = [r for r in results if r.provider_id == "bad/model"]
    good_results = [r for r in results if r.provider_id == "good/model"]

    assert len(bad_results) == 2
    for r in bad_results:
        assert r.error == "upstream exploded"
        assert r.scores == []
        assert r.raw.output == ""
        assert r.raw.latency_ms == 0
    for r in good_results:
        assert r.error is None
        assert r.score("correctness") == ScoreResult("correctness", 1.0)
        assert r.raw.output == "ok"
        assert r.raw.token_usage == TokenUsage(10, 5)


@pytest.mark.asyncio
async def test_exception_without_message_uses_class_name():
    results = await RunBenchmark().run(
        [_SilentFailingProvider("x/y")], _tasks("t1"), []
    )

    assert results[0].error == "ConnectionError"


@pytest.mark.asyncio
async def test_timeout_records_error_and_signals_cancellation():
    slow = _FakeProvider("slow/model", delay=5)
    fast = _FakeProvider("fast/model")

    results = await RunBenchmark().run(
        [slow, fast], _tasks("t1"), [_ConstantScorer("latency")], timeout_ms=50
    )

    slow_result = next(r for r in results if r.provider_id == "slow/model")
    fast_result = next(r for r in results if r.provider_id == "fast/model")

    assert slow_result.error == "Request timed out after 50ms"
    assert slow_result.scores == []
    assert slow.cancel_events[0].is_set()
    assert fast_result.error is None
    assert not fast.cancel_events[0].is_set()


@pytest.mark.asyncio
async def test_scorer_exception_fails_only_that_cell():
    results = await RunBenchmark().run(
        [_FakeProvider("a/one")],
        _tasks("t1"),
        [_ConstantScorer("latency"), _BrokenScorer("correctness")],
    )

    assert results[0].error == "scorer bug"
    assert results[0].scores == []


@pytest.mark.asyncio
async def test_sync_and_async_scorers_keep_configured_order():
    scorers = [
        _AsyncScorer("llm-judge-correctness", 0.8),
        _ConstantScorer("latency", 0.5),
        _ConstantScorer("correctness", None),
    ]

    results = await RunBenchmark().run([_FakeProvider("a/one")], _tasks("t1"), scorers)

    assert [s.name for s in results[0].scores] == [
        "llm-judge-correctness",
        "latency",
        "correctness",
    ]
    assert results[0].score("llm-judge-correctness").value == 0.8
    assert results[0].score("correctness").available is False


@pytest.mark.asyncio
async def test_results_are_in_canonical_order_despite_completion_order():
    # The first declared provider finishes last
    providers = [
        _FakeProvider("z/slow", delay=0.05),
        _FakeProvider("a/fast"),
    ]

    results = await RunBenchmark().run(
        providers, _tasks("second", "first"), [], runs_per_cell=2
    )

    assert [(r.task_name, r.provider_id, r.run) for r in results] == [
        ("second", "z/slow", 1),
        ("second", "z/slow", 2),
        ("second", "a/fast", 1),
        ("second", "a/fast", 2),
        ("first", "z/slow", 1),
        ("first", "z/slow", 2),
        ("first", "a/fast", 1),
        ("first", "a/fast", 2),
    ]


@pytest.mark.asyncio
async def test_channel_receives_every_cell_then_closes():
    channel: asyncio.Queue[BenchmarkResult | None] = asyncio.Queue()

    results = await RunBenchmark().run(
        [_FakeProvider("a/one"), _FailingProvider("b/two")],
        _tasks("t1", "t2"),
        [_ConstantScorer("correctness")],
        runs_per_cell=2,
        channel=channel,
    )

    streamed = []
    while (item := channel.get_nowait()) is not None:
        streamed.append(item)

    assert len(streamed) == len(results) == 8
    assert set(id(r) for r in streamed) == set(id(r) for r in results)
    assert channel.empty()


@pytest.mark.asyncio
async def test_channel_is_closed_when_configuration_is_invalid():
    channel: asyncio.Queue[BenchmarkResult | None] = asyncio.Queue()

    with pytest.raises(RunBenchmarkError):
        await RunBenchmark().run([], _tasks("t1"), [], channel=channel)

    assert channel.get_nowait() is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "providers,tasks,runs,timeout_ms,match",
    [
        ([], _tasks("t1"), 1, 1000, "At least one provider"),
        ([_FakeProvider("a/one")], [], 1, 1000, "At least one task"),
        ([_FakeProvider("a/one")], _tasks("t1"), 0, 1000, "Runs per cell"),
        ([_FakeProvider("a/one")], _tasks("t1"), 1, 0, "Timeout must be positive"),
        ([_FakeProvider("a/one")], _tasks("t1", "t1"), 1, 1000, "Duplicate task"),
        (
            [_FakeProvider("a/one"), _FakeProvider("a/one")],
            _tasks("t1"),
            1,
            1000,
            "Duplicate provider",
        ),
        ([_FakeProvider("a/one")], _tasks("stage::extract"), 1, 1000, "must not contain"),
        ([_FakeProvider("a::b/one")], _tasks("t1"), 1, 1000, "must not contain"),
    ],
)
async def test_configuration_errors_raise_before_any_call(
    providers, tasks, runs, timeout_ms, match
):
    with pytest.raises(RunBenchmarkError, match=match):
        await RunBenchmark().run(
            providers, tasks, [], runs_per_cell=runs, timeout_ms=timeout_ms
        )

    assert all(p.calls == 0 for p in providers)


def test_count_cells():
    providers = [_FakeProvider("a/one"), _FakeProvider("b/two")]

    assert RunBenchmark().count_cells(providers, _tasks("t1", "t2", "t3"), 4) == 24


@pytest.mark.asyncio
async def test_combinations_overlap_but_runs_of_one_cell_do_not():
    in_flight = _InFlight()
    providers = [
        _TrackingProvider("a/one", in_flight),
        _TrackingProvider("b/two", in_flight),
        _TrackingProvider("c/three", in_flight),
    ]

    results = await RunBenchmark().run(
        providers, _tasks("t1", "t2"), [], runs_per_cell=3
    )

    assert len(results) == 18
    assert in_flight.peak_total > 1
    assert in_flight.peak_per_cell == 1


@pytest.mark.asyncio
async def test_wall_clock_tracks_the_slowest_cell_not_the_sum():
    providers = [_FakeProvider(f"p{i}/model", delay=0.1) for i in range(5)]

    start = time.perf_counter()
    await RunBenchmark().run(providers, _tasks("t1"), [], runs_per_cell=2)
    elapsed = time.perf_counter() - start

    # Two sequential runs per cell; the five cells run side by side
    assert 0.19 <= elapsed < 0.6


@pytest.mark.asyncio
async def test_scorer_failure_cancels_sibling_scorers():
    slow = _SlowScorer("llm-judge-correctness")

    results = await RunBenchmark().run(
        [_FakeProvider("a/one")], _tasks("t1"), [slow, _BrokenScorer("correctness")]
    )

    assert results[0].error == "scorer bug"
    assert slow.cancelled is True
