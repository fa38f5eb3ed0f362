import pytest

from benchlab.domain.contracts.provider import TokenUsage
from benchlab.domain.contracts.results import BenchmarkResult, RawOutput
from benchlab.domain.contracts.scorer import ScoreResult
from benchlab.domain.statistics import (
    collect_samples,
    compute_scorer_stats,
    compute_stats,
    group_key,
    split_group_key,
    t_critical,
)


def _result(
    provider_id: str,
    task_name: str,
    run: int,
    scores: list[ScoreResult],
    error: str | None = None,
) -> BenchmarkResult:
    return BenchmarkResult(
        provider_id=provider_id,
        task_name=task_name,
        run=run,
        scores=scores,
        raw=RawOutput(output="ok", latency_ms=100, token_usage=TokenUsage(10, 5)),
        error=error,
    )


def test_compute_scorer_stats_empty():
    stats = compute_scorer_stats([])

    assert stats.mean == 0.0
    assert stats.stddev == 0.0
    assert stats.cv == 0.0
    assert stats.n == 0
    assert stats.ci95_lower == 0.0
    assert stats.ci95_upper == 0.0


@pytest.mark.parametrize("value", [0.0, 0.42, 1.0, 1234.5])
def test_compute_scorer_stats_single_sample_collapses_interval(value: float):
    stats = compute_scorer_stats([value])

    assert stats.mean == value
    assert stats.stddev == 0.0
    assert stats.cv == 0.0
    assert stats.n == 1
    assert stats.ci95_lower == value
    assert stats.ci95_upper == value


def test_compute_scorer_stats_two_samples():
    stats = compute_scorer_stats([8.0, 6.0])

    # mean=7, stddev=sqrt(2), se=1, t(df=1)=12.706
    assert stats.mean == 7.0
    assert stats.n == 2
    assert stats.stddev == pytest.approx(1.41421, rel=1e-4)
    assert stats.cv == pytest.approx(1.41421 / 7, rel=1e-4)
    assert stats.ci95_lower == pytest.approx(7.0 - 12.706, rel=1e-4)
    assert stats.ci95_upper == pytest.approx(7.0 + 12.706, rel=1e-4)


def test_compute_scorer_stats_zero_mean_has_zero_cv():
    stats = compute_scorer_stats([-1.0, 1.0])

    assert stats.mean == 0.0
    assert stats.cv == 0.0


@pytest.mark.parametrize(
    "samples",
    [
        [0.3, 1.0, 0.2, 0.9],
        [0.5, 0.5],
        [1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0, 8.0, 9.0, 10.0, 11.0, 12.0],
        [0.01, 0.02, 0.015],
    ],
)
def test_interval_contains_mean(samples: list[float]):
    stats = compute_scorer_stats(samples)

    assert stats.ci95_lower <= stats.mean <= stats.ci95_upper


def test_interval_width_grows_with_stddev():
    narrow = compute_scorer_stats([0.49, 0.5, 0.51, 0.5])
    wide = compute_scorer_stats([0.2, 0.5, 0.8, 0.5])

    assert wide.stddev > narrow.stddev
    assert (wide.ci95_upper - wide.ci95_lower) > (
        narrow.ci95_upper - narrow.ci95_lower
    )


def test_t_critical_tabulated_values():
    assert t_critical(1) == 12.706
    assert t_critical(10) == 2.228
    assert t_critical(25) == 2.060
    assert t_critical(30) == 2.042


def test_t_critical_interpolates_between_entries():
    # df=12 sits two fifths of the way from df=10 to df=15
    assert t_critical(12) == pytest.approx(2.228 + 0.4 * (2.131 - 2.228))
    assert t_critical(22) == pytest.approx(2.086 + 0.4 * (2.060 - 2.086))


@pytest.mark.parametrize("df", [0, -3, 31, 100])
def test_t_critical_falls_back_to_normal(df: int):
    assert t_critical(df) == 1.96


def test_group_key_round_trip():
    key = group_key("openai/gpt-4o", "extract", "correctness")

    assert split_group_key(key) == ("openai/gpt-4o", "extract", "correctness")


def test_group_key_rejects_separator_in_parts():
    with pytest.raises(ValueError, match="stage::extract"):
        group_key("openai/gpt-4o", "stage::extract", "correctness")


def test_split_group_key_rejects_ambiguous_keys():
    with pytest.raises(ValueError, match="Malformed group key"):
        split_group_key("openai/gpt-4o::stage::extract::correctness")


def test_collect_samples_skips_errors_and_unavailable_scores():
    results = [
        _result("a/m", "t1", 1, [ScoreResult("correctness", 1.0)]),
        _result("a/m", "t1", 2, [ScoreResult("correctness", 0.0)]),
        _result("a/m", "t1", 3, [], error="boom"),
        _result(
            "a/m",
            "t1",
            4,
            [ScoreResult.unavailable("correctness", "no expected value")],
        ),
        _result("b/m", "t1", 1, [ScoreResult("correctness", -1)]),
    ]

    samples = collect_samples(results)

    assert samples == {group_key("a/m", "t1", "correctness"): [1.0, 0.0]}


def test_compute_stats_groups_by_provider_task_and_scorer():
    results = [
        _result(
            "a/m",
            "t1",
            run,
            [ScoreResult("correctness", value), ScoreResult("latency", 0.9)],
        )
        for run, value in enumerate([1.0, 1.0, 0.0], start=1)
    ] + [_result("b/m", "t1", 1, [ScoreResult("correctness", 1.0)])]

    stats = compute_stats(results)

    assert set(stats) == {
        group_key("a/m", "t1", "correctness"),
        group_key("a/m", "t1", "latency"),
        group_key("b/m", "t1", "correctness"),
    }
    assert stats[group_key("a/m", "t1", "correctness")].n == 3
    assert stats[group_key("a/m", "t1", "correctness")].mean == pytest.approx(2 / 3)
    assert stats[group_key("b/m", "t1", "correctness")].n == 1
