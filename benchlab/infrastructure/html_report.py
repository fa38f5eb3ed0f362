from datetime import datetime, timezone
from typing import Any, Callable

from jinja2 import Environment, PackageLoader, StrictUndefined, select_autoescape

from ..domain.contracts.results import BenchmarkResult
from ..domain.ranking import (
    MEDAL_EMOJI,
    ProviderTaskSummary,
    api_key_hint,
    compute_highlights,
    compute_medals,
    dedupe_errors,
    provider_label,
    summarize_provider_task,
    task_winner,
    unique,
)
from ..domain.regression import format_cost

_environment = Environment(
    loader=PackageLoader("benchlab.infrastructure", "templates"),
    autoescape=select_autoescape(["html"]),
    undefined=StrictUndefined,
)

# (label, value getter, lower is better, formatter)
_ColumnSpec = tuple[
    str, Callable[[ProviderTaskSummary], float | None], bool, Callable[[float], str]
]


def _column_specs(scorer_names: list[str]) -> list[_ColumnSpec]:
    specs = []
    for name in scorer_names:
        if name == "latency":
            specs.append(("Latency", lambda s: s.latency_ms, True, lambda v: f"{v:.0f}ms"))
        elif name == "cost":
            specs.append(("Cost", lambda s: s.cost_usd, True, format_cost))
            specs.append(("Tokens", lambda s: s.total_tokens, True, lambda v: f"{v:.0f}"))
        else:
            specs.append(
                (name, lambda s, name=name: s.scores.get(name), False, lambda v: f"{v:.0%}")
            )
    return specs


def _task_section(
    results: list[BenchmarkResult],
    task_name: str,
    providers: list[str],
    scorer_names: list[str],
) -> dict[str, Any]:
    summaries = [summarize_provider_task(results, p, task_name) for p in providers]
    medals = compute_medals(summaries, scorer_names)
    specs = _column_specs(scorer_names)

    columns = []
    for label, value_of, lower_better, _ in specs:
        values = [value_of(s) for s in summaries if not s.all_failed]
        present = [v for v in values if v is not None]
        best = worst = None
        if len(providers) > 1 and present and min(present) != max(present):
            best = min(present) if lower_better else max(present)
            worst = max(present) if lower_better else min(present)
        columns.append({"label": label, "best": best, "worst": worst})

    rows = []
    for summary in summaries:
        cells = []
        for column, (_, value_of, lower_better, fmt) in zip(columns, specs):
            value = None if summary.all_failed else value_of(summary)
            if value is None:
                cells.append({"text": "—", "rank": "missing", "bar": None})
                continue
            if value == column["best"]:
                rank = "best"
            elif value == column["worst"]:
                rank = "worst"
            else:
                rank = ""
            # Only 0..1 scores get a bar
            bar = None if lower_better else round(value * 100)
            cells.append({"text": fmt(value), "rank": rank, "bar": bar})

        medal = medals.get(summary.provider_id)
        if summary.all_failed:
            status = "FAIL"
        elif summary.failed:
            status = f"{summary.failed} err"
        else:
            status = "OK"
        rows.append(
            {
                "provider": summary.provider_id,
                "medal": MEDAL_EMOJI[medal] if medal else "",
                "cells": cells,
                "status": status,
            }
        )

    winner = task_winner(medals)
    return {
        "name": task_name,
        "columns": [column["label"] for column in columns],
        "rows": rows,
        "winner": winner,
        "winner_label": provider_label(winner) if winner else "",
    }


def _summary_cards(results: list[BenchmarkResult], multi: bool) -> list[dict[str, str]]:
    highlights = compute_highlights(results)
    cards = []
    if highlights.most_correct is not None:
        provider_id, score = highlights.most_correct
        cards.append(
            {
                "label": "Most Correct" if multi else "Avg Correctness",
                "value": f"{score:.0%}",
                "provider": provider_id,
            }
        )
    if highlights.fastest is not None:
        provider_id, ms = highlights.fastest
        cards.append(
            {
                "label": "Fastest" if multi else "Avg Latency",
                "value": f"{ms:.0f}ms",
                "provider": provider_id,
            }
        )
    if highlights.cheapest is not None:
        provider_id, usd = highlights.cheapest
        cards.append(
            {
                "label": "Cheapest" if multi else "Avg Cost",
                "value": format_cost(usd),
                "provider": provider_id,
            }
        )
    if highlights.overall_winner is not None:
        cards.append(
            {
                "label": "Overall Winner",
                "value": "🏆",
                "provider": highlights.overall_winner,
            }
        )

    for card in cards:
        card["provider_label"] = provider_label(card["provider"]) if multi else ""
        if not multi:
            card["provider"] = ""
    return cards


def render_html_report(results: list[BenchmarkResult]) -> str:
    """Render a standalone HTML page with one ranked table per task."""
    providers = unique([r.provider_id for r in results])
    tasks = unique([r.task_name for r in results])
    scorer_names = unique([s.name for r in results for s in r.scores])
    runs = max((r.run for r in results), default=0)
    multi = len(providers) > 1

    template = _environment.get_template("report.html")
    return template.render(
        generated_at=datetime.now(timezone.utc).isoformat(timespec="seconds"),
        providers=providers,
        tasks=[_task_section(results, t, providers, scorer_names) for t in tasks],
        runs_label=f"{runs} runs each" if runs > 1 else "1 run",
        cards=_summary_cards(results, multi) if results else [],
        errors=[
            {
                "provider": provider_id,
                "error": error,
                "count": count,
                "hint": api_key_hint(provider_id, error),
            }
            for provider_id, error, count in dedupe_errors(results)
        ],
    )
