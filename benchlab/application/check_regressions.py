import logging
from dataclasses import dataclass
from pathlib import Path

from ..domain.contracts.results import (
    BaselineStoreContract,
    BenchmarkResult,
    CiReport,
)
from ..domain.regression import compare_results
from ..domain.statistics import compute_stats

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CiOutcome:
    report: CiReport
    baseline_timestamp: str | None
    all_failed: bool
    baseline_saved: Path | None = None

    @property
    def passed(self) -> bool:
        return not self.report.failed and not self.all_failed

    @property
    def exit_code(self) -> int:
        return 0 if self.passed else 1


class CheckRegressions:
    def __init__(self, baseline_store: BaselineStoreContract) -> None:
        self._baseline_store = baseline_store

    def execute(
        self,
        results: list[BenchmarkResult],
        baseline_path: Path,
        thresholds: dict[str, float],
        budget: float | None = None,
        update_baseline: bool = False,
    ) -> CiOutcome:
        baseline = self._baseline_store.load(baseline_path)
        if baseline is None:
            logger.info(f"No usable baseline at {baseline_path}; establishing one")
            baseline_stats = None
        else:
            baseline_stats = compute_stats(baseline.results)

        report = compare_results(
            baseline_stats,
            compute_stats(results),
            thresholds,
            budget=budget,
            current_results=results,
        )

        all_failed = bool(results) and all(r.error is not None for r in results)
        if all_failed:
            logger.warning("Every benchmark cell failed")

        saved = None
        if update_baseline:
            if report.failed or all_failed:
                logger.warning("Not updating baseline: CI check failed")
            else:
                saved = self._baseline_store.save(baseline_path, results)

        return CiOutcome(
            report=report,
            baseline_timestamp=baseline.timestamp if baseline else None,
            all_failed=all_failed,
            baseline_saved=saved,
        )
