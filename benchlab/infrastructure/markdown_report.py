from jinja2 import Environment, StrictUndefined

from ..domain.contracts.results import BenchmarkResult, CiReport
from ..domain.ranking import (
    MEDAL_EMOJI,
    compute_medals,
    provider_label,
    summarize_provider_task,
    task_winner,
    unique,
)
from ..domain.regression import format_cost, format_delta

COMMENT_MARKER = "<!-- bench-lab-ci-report -->"

_TEMPLATE = """{{ marker }}
## {{ "❌" if failed else "✅" }} bench-lab CI: {{ "failed" if failed else "passed" }}

{% if baseline_timestamp -%}
Compared against baseline from `{{ baseline_timestamp }}`.
{%- else -%}
No baseline found; this run establishes one.
{%- endif %}
{% if failure_reasons %}

### Failures

{% for reason in failure_reasons -%}
- {{ reason }}
{% endfor %}
{%- endif %}
{% if rows %}

### Results

| Provider | Task | Scorer | Baseline | Current | Delta | Status |
| --- | --- | --- | ---: | ---: | ---: | --- |
{% for row in rows -%}
| {{ row.provider }} | {{ row.task }} | {{ row.scorer }} | {{ row.baseline }} | {{ row.current }} | {{ row.delta }} | {{ row.status }} |
{% endfor %}
{%- endif %}
{% if rankings %}

### Ranking

| Task | Winner | Medals |
| --- | --- | --- |
{% for ranking in rankings -%}
| {{ ranking.task }} | {{ ranking.winner }} | {{ ranking.medals }} |
{% endfor %}
{%- endif %}
{% if flaky %}

### Flaky metrics

{% for c in flaky -%}
- {{ c.provider_id }} × {{ c.task_name }}: `{{ c.scorer_name }}` (cv={{ "%.2f"|format(c.current.cv) }}, n={{ c.current.n }})
{% endfor %}
{%- endif %}

### Cost

Total: {{ total_cost }}{% if budget is not none %} (budget ${{ "%.2f"|format(budget) }}){% endif %}
{% for provider, usd in per_provider %}
- {{ provider }}: {{ usd }}
{%- endfor %}
"""

_environment = Environment(
    trim_blocks=False, lstrip_blocks=False, undefined=StrictUndefined
)


def _rankings(results: list[BenchmarkResult]) -> list[dict[str, str]]:
    providers = unique([r.provider_id for r in results])
    if len(providers) < 2:
        return []

    scorer_names = unique([s.name for r in results for s in r.scores])
    rankings = []
    for task_name in unique([r.task_name for r in results]):
        medals = compute_medals(
            [summarize_provider_task(results, p, task_name) for p in providers],
            scorer_names,
        )
        winner = task_winner(medals)
        rankings.append(
            {
                "task": task_name,
                "winner": f"🏆 {winner} {provider_label(winner)}" if winner else "—",
                "medals": ", ".join(
                    f"{MEDAL_EMOJI[medal]} {provider_id}"
                    for provider_id, medal in medals.items()
                    if medal
                )
                or "—",
            }
        )
    return rankings


def render_markdown_report(
    report: CiReport,
    baseline_timestamp: str | None = None,
    all_failed: bool = False,
    results: list[BenchmarkResult] | None = None,
) -> str:
    rows = []
    for c in report.comparisons:
        if c.regressed:
            status = "🔴 regressed"
        elif c.improved:
            status = "🟢 improved"
        elif c.flaky:
            status = "🟡 flaky"
        elif c.baseline is None:
            status = "new"
        else:
            status = "unchanged"

        rows.append(
            {
                "provider": c.provider_id,
                "task": c.task_name,
                "scorer": c.scorer_name,
                "baseline": f"{c.baseline.mean:.4f}" if c.baseline else "—",
                "current": f"{c.current.mean:.4f}",
                "delta": format_delta(c.delta) if c.delta is not None else "—",
                "status": status,
            }
        )

    failure_reasons = list(report.failure_reasons)
    if all_failed:
        failure_reasons.append("Every benchmark cell failed")

    template = _environment.from_string(_TEMPLATE)
    return template.render(
        marker=COMMENT_MARKER,
        failed=report.failed or all_failed,
        baseline_timestamp=baseline_timestamp,
        failure_reasons=failure_reasons,
        rows=rows,
        rankings=_rankings(results or []),
        flaky=report.flaky_results,
        total_cost=format_cost(report.cost.total_usd),
        budget=report.cost.budget,
        per_provider=[
            (provider, format_cost(usd))
            for provider, usd in report.cost.per_provider.items()
        ],
    ).strip() + "\n"
