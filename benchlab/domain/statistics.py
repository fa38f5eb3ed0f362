import math
import statistics as stats

from .contracts.results import BenchmarkResult, ScorerStats

# t-critical values for 95% CI (two-tailed, alpha=0.05)
# df -> t_critical
_T_CRITICAL_95 = {
    1: 12.706,
    2: 4.303,
    3: 3.182,
    4: 2.776,
    5: 2.571,
    6: 2.447,
    7: 2.365,
    8: 2.306,
    9: 2.262,
    10: 2.228,
    15: 2.131,
    20: 2.086,
    25: 2.060,
    30: 2.042,
}

_T_CRITICAL_KEYS = sorted(_T_CRITICAL_95)

_Z_CRITICAL_95 = 1.96

GROUP_KEY_SEPARATOR = "::"


def t_critical(df: int) -> float:
    if df <= 0 or df > _T_CRITICAL_KEYS[-1]:
        return _Z_CRITICAL_95
    if df in _T_CRITICAL_95:
        return _T_CRITICAL_95[df]

    # Linear interpolation between the surrounding tabulated df
    for low, high in zip(_T_CRITICAL_KEYS, _T_CRITICAL_KEYS[1:]):
        if low < df < high:
            ratio = (df - low) / (high - low)
            return _T_CRITICAL_95[low] + ratio * (
                _T_CRITICAL_95[high] - _T_CRITICAL_95[low]
            )

    return _Z_CRITICAL_95


def group_key(provider_id: str, task_name: str, scorer_name: str) -> str:
    parts = (provider_id, task_name, scorer_name)
    for part in parts:
        if GROUP_KEY_SEPARATOR in part:
            raise ValueError(
                f"'{part}' must not contain '{GROUP_KEY_SEPARATOR}'"
            )
    return GROUP_KEY_SEPARATOR.join(parts)


def split_group_key(key: str) -> tuple[str, str, str]:
    parts = key.split(GROUP_KEY_SEPARATOR)
    if len(parts) != 3:
        raise ValueError(
            f"Malformed group key '{key}': expected provider{GROUP_KEY_SEPARATOR}"
            f"task{GROUP_KEY_SEPARATOR}scorer"
        )
    provider_id, task_name, scorer_name = parts
    return provider_id, task_name, scorer_name


def compute_scorer_stats(samples: list[float]) -> ScorerStats:
    n = len(samples)
    if n == 0:
        return ScorerStats(mean=0.0, stddev=0.0, cv=0.0, n=0, ci95_lower=0.0, ci95_upper=0.0)

    mean = stats.fmean(samples)

    if n == 1:
        # A single sample carries no spread
        return ScorerStats(
            mean=mean, stddev=0.0, cv=0.0, n=1, ci95_lower=mean, ci95_upper=mean
        )

    stddev = stats.stdev(samples, xbar=mean)
    cv = stddev / abs(mean) if mean != 0 else 0.0
    margin = t_critical(n - 1) * (stddev / math.sqrt(n))

    return ScorerStats(
        mean=mean,
        stddev=stddev,
        cv=cv,
        n=n,
        ci95_lower=mean - margin,
        ci95_upper=mean + margin,
    )


def collect_samples(results: list[BenchmarkResult]) -> dict[str, list[float]]:
    grouped: dict[str, list[float]] = {}
    for result in results:
        if result.error is not None:
            continue
        for score in result.scores:
            if not score.available:
                continue
            key = group_key(result.provider_id, result.task_name, score.name)
            grouped.setdefault(key, []).append(float(score.value))  # type: ignore[arg-type]
    return grouped


def compute_stats(results: list[BenchmarkResult]) -> dict[str, ScorerStats]:
    return {
        key: compute_scorer_stats(samples)
        for key, samples in collect_samples(results).items()
    }
