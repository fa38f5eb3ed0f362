import json
from datetime import datetime, timezone
from typing import Any

from ..domain.contracts.results import BenchmarkResult


def build_summary(results: list[BenchmarkResult]) -> dict[str, Any]:
    tasks = list(dict.fromkeys(r.task_name for r in results))
    providers = list(dict.fromkeys(r.provider_id for r in results))

    return {
        "total_benchmarks": len(results),
        "tasks": len(tasks),
        "providers": len(providers),
        "provider_ids": providers,
        "task_names": tasks,
    }


def render_json_report(results: list[BenchmarkResult]) -> str:
    return json.dumps(
        {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "summary": build_summary(results),
            "results": [r.to_dict() for r in results],
        },
        indent=2,
        default=str,
    )
