from contextlib import contextmanager
from typing import Generator

from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskID, TextColumn
from rich.table import Table
from rich.text import Text

from ..domain.contracts.results import BenchmarkResult, CiReport, ScorerComparison
from ..domain.contracts.scorer import lower_is_better
from ..domain.ranking import (
    MEDAL_EMOJI,
    api_key_hint,
    compute_highlights,
    compute_medals,
    dedupe_errors,
    provider_label,
    summarize_provider_task,
    task_winner,
    unique,
)
from ..domain.regression import format_cost, format_delta
from ..domain.statistics import compute_stats, group_key

console = Console()


def display_results_table(results: list[BenchmarkResult]) -> None:
    if not results:
        console.print("\n[dim]No results to display.[/dim]\n")
        return

    tasks = unique([r.task_name for r in results])
    providers = unique([r.provider_id for r in results])
    scorer_names = unique([s.name for r in results for s in r.scores])
    runs = max(r.run for r in results)
    stats = compute_stats(results)

    console.print()
    for task_name in tasks:
        title = f"Task: {task_name}"
        if runs > 1:
            title += f" ({runs} runs each)"

        summaries = [
            summarize_provider_task(results, provider_id, task_name)
            for provider_id in providers
        ]
        medals = compute_medals(summaries, scorer_names)
        winner = task_winner(medals)

        table = Table(title=title, show_header=True, header_style="bold cyan")
        table.add_column("Provider")
        for name in scorer_names:
            table.add_column(name, justify="center")
        table.add_column("Latency", justify="right")
        table.add_column("Status", justify="left")

        for summary in summaries:
            provider_id = summary.provider_id
            if not summary.succeeded and not summary.failed:
                continue

            medal = medals.get(provider_id)
            row: list[str | Text] = [
                f"{MEDAL_EMOJI[medal]} {provider_id}" if medal else provider_id
            ]
            for name in scorer_names:
                s = stats.get(group_key(provider_id, task_name, name))
                if s is None:
                    row.append("[dim]—[/dim]")
                elif name == "cost":
                    row.append(format_cost(s.mean))
                elif s.n > 1:
                    row.append(
                        Text(
                            f"{s.mean:.2f} ±{(s.ci95_upper - s.mean):.2f}",
                            style=_score_style(s.mean),
                        )
                    )
                else:
                    row.append(Text(f"{s.mean:.2f}", style=_score_style(s.mean)))

            if summary.latency_ms is not None:
                row.append(f"{summary.latency_ms:.0f}ms")
            else:
                row.append("[dim]—[/dim]")

            total = summary.succeeded + summary.failed
            if summary.failed:
                row.append(f"[red]{summary.failed}/{total} failed[/red]")
            else:
                row.append("[green]ok[/green]")

            table.add_row(*row)

        if winner is not None:
            table.caption = (
                f"[bold green]🏆 Winner: {winner}[/bold green] "
                f"[dim]{provider_label(winner)}[/dim]"
            )

        console.print(table)
        console.print()

    display_summary(results)
    display_errors(results)


def display_summary(results: list[BenchmarkResult]) -> None:
    highlights = compute_highlights(results)
    single = len(unique([r.provider_id for r in results])) == 1
    lines = []

    if highlights.most_correct is not None:
        provider_id, score = highlights.most_correct
        label = "Avg correctness" if single else "Most correct"
        lines.append((label, provider_id, f"{score:.0%}"))
    if highlights.fastest is not None:
        provider_id, ms = highlights.fastest
        lines.append(("Avg latency" if single else "Fastest", provider_id, f"{ms:.0f}ms"))
    if highlights.cheapest is not None:
        provider_id, usd = highlights.cheapest
        lines.append(("Avg cost" if single else "Cheapest", provider_id, format_cost(usd)))

    if not lines:
        return

    console.print("[bold]Summary[/bold]")
    for label, provider_id, value in lines:
        who = "" if single else f"{provider_id} [dim]{provider_label(provider_id)}[/dim]  "
        console.print(f"  {label + ':':<16} {who}[bold green]{value}[/bold green]")
    if highlights.overall_winner is not None:
        console.print(
            f"  {'Overall winner:':<16} [bold green]🏆 {highlights.overall_winner}"
            "[/bold green]"
        )
    console.print()


def display_errors(results: list[BenchmarkResult]) -> None:
    errors = dedupe_errors(results)
    if not errors:
        return

    console.print("[bold red]Errors:[/bold red]")
    for provider_id, error, count in errors:
        suffix = f" [dim](×{count})[/dim]" if count > 1 else ""
        console.print(f"  [red]✗[/red] {provider_id}: {escape(error)}{suffix}")
        hint = api_key_hint(provider_id, error)
        if hint:
            console.print(f"    [dim]{hint}[/dim]")
    console.print()


def display_ci_report(
    report: CiReport,
    baseline_timestamp: str | None = None,
    all_failed: bool = False,
    quiet: bool = False,
) -> None:
    if not quiet:
        _display_comparison_table(report.comparisons, baseline_timestamp)

    for reason in report.failure_reasons:
        console.print(f"[red]✗ {reason}[/red]")

    for c in report.flaky_results:
        console.print(
            f"[yellow]⚠ {c.provider_id} × {c.task_name}: {c.scorer_name} is flaky "
            f"(cv={c.current.cv:.2f}, n={c.current.n})[/yellow]"
        )

    if not quiet:
        budget = (
            f" / budget ${report.cost.budget:.2f}"
            if report.cost.budget is not None
            else ""
        )
        console.print(f"[dim]Total cost: {format_cost(report.cost.total_usd)}{budget}[/dim]")

    if all_failed:
        console.print("[red]✗ Every benchmark cell failed[/red]")

    if report.failed or all_failed:
        console.print("\n[bold red]CI check FAILED[/bold red]")
    else:
        console.print("\n[bold green]CI check passed[/bold green]")


def _display_comparison_table(
    comparisons: list[ScorerComparison], baseline_timestamp: str | None
) -> None:
    title = "CI comparison"
    if baseline_timestamp:
        title += f" (baseline {baseline_timestamp})"
    else:
        title += " (no baseline, establishing)"

    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Provider")
    table.add_column("Task", style="dim")
    table.add_column("Scorer")
    table.add_column("Baseline", justify="right")
    table.add_column("Current", justify="right")
    table.add_column("95% CI", justify="center")
    table.add_column("Delta", justify="right")
    table.add_column("Status", justify="left")

    for c in comparisons:
        baseline = f"{c.baseline.mean:.4f}" if c.baseline else "[dim]—[/dim]"
        ci_display = (
            f"[dim]({c.current.ci95_lower:.2f}-{c.current.ci95_upper:.2f})[/dim]"
            if c.current.n > 1
            else "[dim]-[/dim]"
        )
        delta = format_delta(c.delta) if c.delta is not None else "[dim]—[/dim]"

        table.add_row(
            c.provider_id,
            c.task_name,
            c.scorer_name + (" ↓" if lower_is_better(c.scorer_name) else ""),
            baseline,
            f"{c.current.mean:.4f}",
            ci_display,
            delta,
            _status_text(c),
        )

    console.print()
    console.print(table)
    console.print()


def _status_text(c: ScorerComparison) -> str:
    if c.regressed:
        return "[bold red]regressed[/bold red]"
    if c.improved:
        return "[bold green]improved[/bold green]"
    if c.flaky:
        return "[yellow]flaky[/yellow]"
    if c.baseline is None:
        return "[dim]new[/dim]"
    return "[dim]unchanged[/dim]"


@contextmanager
def progress_bar(
    description: str, total: int
) -> Generator[tuple[Progress, TaskID], None, None]:
    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        TextColumn("({task.completed}/{task.total})"),
        console=console,
    )
    with progress:
        task_id = progress.add_task(description, total=total)
        yield progress, task_id


def _score_style(score: float) -> str:
    if score >= 0.8:
        return "bold green"
    elif score >= 0.6:
        return "yellow"
    elif score >= 0.4:
        return "orange3"
    else:
        return "bold red"
