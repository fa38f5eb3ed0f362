import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from ..domain.contracts.results import (
    BaselineData,
    BaselineStoreContract,
    BenchmarkResult,
)

logger = logging.getLogger(__name__)


class FileBaselineStore(BaselineStoreContract):
    def load(self, path: Path) -> BaselineData | None:
        path = Path(path)
        if not path.exists():
            logger.debug(f"No baseline at {path}")
            return None

        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable baseline {path}: {e}")
            return None

        # Older baselines are a bare list of results
        if isinstance(data, list):
            raw_results, timestamp = data, "unknown"
        elif isinstance(data, dict):
            raw_results = data.get("results")
            timestamp = data.get("timestamp") or "unknown"
        else:
            raw_results, timestamp = None, "unknown"

        if not isinstance(raw_results, list):
            logger.warning(f"Ignoring baseline {path}: no results list")
            return None

        try:
            results = [BenchmarkResult.from_dict(r) for r in raw_results]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Ignoring malformed baseline {path}: {e}")
            return None

        return BaselineData(timestamp=str(timestamp), results=results)

    def save(self, path: Path, results: list[BenchmarkResult]) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "results": [r.to_dict() for r in results],
        }

        with open(path, "w") as f:
            json.dump(data, f, indent=2, default=str)

        logger.info(f"Saved baseline with {len(results)} result(s) to {path}")
        return path
