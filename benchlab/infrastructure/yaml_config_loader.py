import os
from pathlib import Path
from typing import Any

import frontmatter
import yaml

from ..domain.contracts.task import (
    DEFAULT_BASELINE_PATH,
    DEFAULT_SCORERS,
    DEFAULT_TIMEOUT_MS,
    JUDGE_AGGREGATIONS,
    BenchConfig,
    ConfigLoaderContract,
    Task,
    ToolSpec,
)
from ..domain.statistics import GROUP_KEY_SEPARATOR

DEFAULT_CONFIG_FILE = "bench.yaml"
DEFAULT_JUDGE_MODEL = "openai/gpt-4o-mini"
JUDGE_MODEL_ENV = "BENCHLAB_JUDGE_MODEL"


class YamlConfigLoaderError(Exception):
    pass


class YamlConfigLoader(ConfigLoaderContract):
    def load(self, path: Path) -> BenchConfig:
        path = Path(path)
        if path.is_dir():
            path = path / DEFAULT_CONFIG_FILE
        if not path.exists():
            raise YamlConfigLoaderError(f"Config file not found: {path}")

        with open(path) as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise YamlConfigLoaderError(f"Invalid YAML in {path}: {e}")

        if not isinstance(data, dict):
            raise YamlConfigLoaderError(
                f"Config must be a YAML dictionary, got {type(data).__name__}"
            )

        base_dir = path.parent

        providers = data.get("providers", [])
        if not isinstance(providers, list):
            raise YamlConfigLoaderError("'providers' must be a list")
        if not providers:
            raise YamlConfigLoaderError(f"No providers specified in {path}")
        for i, entry in enumerate(providers):
            if not isinstance(entry, (str, dict)):
                raise YamlConfigLoaderError(
                    f"Provider {i} must be a string or a dictionary"
                )
            provider_id = entry if isinstance(entry, str) else str(entry.get("id", ""))
            if GROUP_KEY_SEPARATOR in provider_id:
                raise YamlConfigLoaderError(
                    f"Provider ID '{provider_id}' must not contain '{GROUP_KEY_SEPARATOR}'"
                )

        tasks = self._parse_tasks(data.get("tasks", []))
        tasks_dir = data.get("tasks_dir")
        if tasks_dir:
            tasks.extend(self._load_tasks_dir(base_dir / tasks_dir))
        if not tasks:
            raise YamlConfigLoaderError(f"No tasks specified in {path}")

        scorers = data.get("scorers", list(DEFAULT_SCORERS))
        if not isinstance(scorers, list) or not all(isinstance(s, str) for s in scorers):
            raise YamlConfigLoaderError("'scorers' must be a list of scorer names")

        runs = data.get("runs", 1)
        timeout_ms = data.get("timeout_ms", DEFAULT_TIMEOUT_MS)
        if not isinstance(runs, int) or runs < 1:
            raise YamlConfigLoaderError(f"'runs' must be a positive integer, got {runs}")
        if not isinstance(timeout_ms, (int, float)) or timeout_ms <= 0:
            raise YamlConfigLoaderError(
                f"'timeout_ms' must be a positive number, got {timeout_ms}"
            )

        ci = data.get("ci", {}) or {}
        if not isinstance(ci, dict):
            raise YamlConfigLoaderError("'ci' must be a dictionary")

        pricing = data.get("pricing", {}) or {}
        if not isinstance(pricing, dict):
            raise YamlConfigLoaderError("'pricing' must be a dictionary")

        judge_aggregation = data.get("judge_aggregation", "mean")
        if judge_aggregation not in JUDGE_AGGREGATIONS:
            raise YamlConfigLoaderError(
                f"'judge_aggregation' must be one of {', '.join(JUDGE_AGGREGATIONS)}, "
                f"got {judge_aggregation}"
            )

        # Relative baseline paths, configured or default, live next to the config
        baseline = ci.get("baseline") or DEFAULT_BASELINE_PATH

        return BenchConfig(
            providers=providers,
            tasks=tasks,
            scorers=scorers,
            runs=runs,
            timeout_ms=int(timeout_ms),
            judge_models=self._parse_judge_models(data),
            judge_aggregation=judge_aggregation,
            thresholds=parse_thresholds(ci.get("thresholds", {}) or {}),
            budget=self._parse_budget(ci.get("budget")),
            baseline_path=base_dir / baseline,
            pricing=pricing,
        )

    def _parse_judge_models(self, data: dict[str, Any]) -> list[str]:
        if "judge_models" in data and "judge_model" in data:
            raise YamlConfigLoaderError(
                "Use either 'judge_model' or 'judge_models', not both"
            )

        models = data.get("judge_models")
        if models is None:
            model = data.get("judge_model") or os.getenv(
                JUDGE_MODEL_ENV, DEFAULT_JUDGE_MODEL
            )
            return [str(model)]

        if (
            not isinstance(models, list)
            or not models
            or not all(isinstance(m, str) and m for m in models)
        ):
            raise YamlConfigLoaderError(
                "'judge_models' must be a non-empty list of provider IDs"
            )
        return list(models)

    def _parse_budget(self, budget: Any) -> float | None:
        if budget is None:
            return None
        try:
            value = float(budget)
        except (TypeError, ValueError):
            raise YamlConfigLoaderError(f"'ci.budget' must be a number, got {budget}")
        if value < 0:
            raise YamlConfigLoaderError(f"'ci.budget' must not be negative, got {value}")
        return value

    def _parse_tasks(self, data: Any) -> list[Task]:
        if not isinstance(data, list):
            raise YamlConfigLoaderError("'tasks' must be a list of task definitions")

        tasks = []
        for i, item in enumerate(data):
            if not isinstance(item, dict):
                raise YamlConfigLoaderError(f"Task {i} must be a dictionary")
            tasks.append(self._build_task(dict(item), f"task {i}"))
        return tasks

    def _load_tasks_dir(self, tasks_dir: Path) -> list[Task]:
        if not tasks_dir.is_dir():
            raise YamlConfigLoaderError(f"Tasks directory not found: {tasks_dir}")

        tasks = []
        for task_file in sorted(tasks_dir.glob("*.md")):
            post = frontmatter.load(task_file)
            metadata = dict(post.metadata)
            metadata.setdefault("name", task_file.stem)
            metadata["prompt"] = post.content.strip()
            tasks.append(self._build_task(metadata, str(task_file)))
        return tasks

    def _build_task(self, item: dict[str, Any], source: str) -> Task:
        name = item.get("name")
        prompt = item.get("prompt")
        if not name:
            raise YamlConfigLoaderError(f"Task definition in {source} missing 'name'")
        if not prompt:
            raise YamlConfigLoaderError(f"Task '{name}' missing 'prompt'")
        if GROUP_KEY_SEPARATOR in str(name):
            raise YamlConfigLoaderError(
                f"Task name '{name}' must not contain '{GROUP_KEY_SEPARATOR}'"
            )

        schema = item.get("schema")
        if schema is not None and not isinstance(schema, dict):
            raise YamlConfigLoaderError(f"Task '{name}': 'schema' must be a dictionary")

        return Task(
            name=str(name),
            prompt=str(prompt),
            expected=item.get("expected"),
            output_schema=schema,
            tools=self._parse_tools(item.get("tools") or [], str(name)),
        )

    def _parse_tools(self, data: Any, task_name: str) -> list[ToolSpec]:
        if not isinstance(data, list):
            raise YamlConfigLoaderError(
                f"Task '{task_name}': 'tools' must be a list of tool definitions"
            )

        tools = []
        for i, item in enumerate(data):
            if not isinstance(item, dict):
                raise YamlConfigLoaderError(
                    f"Task '{task_name}': tool definition {i} must be a dictionary"
                )
            if not item.get("name"):
                raise YamlConfigLoaderError(
                    f"Task '{task_name}': tool definition {i} missing 'name'"
                )
            tools.append(
                ToolSpec(
                    name=item["name"],
                    description=item.get("description", ""),
                    parameters=item.get("parameters", {}),
                )
            )
        return tools


def parse_thresholds(data: Any) -> dict[str, float]:
    if not isinstance(data, dict):
        raise YamlConfigLoaderError("'ci.thresholds' must map scorer names to numbers")

    thresholds = {}
    for scorer_name, value in data.items():
        try:
            margin = float(value)
        except (TypeError, ValueError):
            raise YamlConfigLoaderError(
                f"Threshold for '{scorer_name}' must be a number, got {value}"
            )
        if margin < 0:
            raise YamlConfigLoaderError(
                f"Threshold for '{scorer_name}' must not be negative, got {margin}"
            )
        thresholds[str(scorer_name)] = margin
    return thresholds
