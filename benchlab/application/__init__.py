from .check_regressions import CheckRegressions, CiOutcome
from .run_benchmark import RunBenchmark, RunBenchmarkError

__all__ = [
    "CheckRegressions",
    "CiOutcome",
    "RunBenchmark",
    "RunBenchmarkError",
]
