import asyncio
import logging
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv

from benchlab.application.check_regressions import CheckRegressions
from benchlab.application.run_benchmark import RunBenchmark
from benchlab.application.scorers import resolve_scorers
from benchlab.domain.contracts.provider import ProviderContract
from benchlab.domain.contracts.results import BenchmarkResult
from benchlab.domain.contracts.task import BenchConfig
from benchlab.infrastructure import FileBaselineStore, PricingRegistry, YamlConfigLoader
from benchlab.infrastructure.console_display import (
    console,
    display_ci_report,
    display_results_table,
    progress_bar,
)
from benchlab.infrastructure.github_comment import (
    detect_github_context,
    upsert_pr_comment,
)
from benchlab.infrastructure.html_report import render_html_report
from benchlab.infrastructure.json_report import render_json_report
from benchlab.infrastructure.markdown_report import (
    COMMENT_MARKER,
    render_markdown_report,
)
from benchlab.infrastructure.providers.factory import get_provider
from benchlab.infrastructure.yaml_config_loader import (
    DEFAULT_CONFIG_FILE,
    YamlConfigLoaderError,
    parse_thresholds,
)

load_dotenv()

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="bench-lab",
    help="Benchmark LLM providers on your tasks and gate CI on regressions",
    no_args_is_help=True,
)

_config_loader = YamlConfigLoader()
_baseline_store = FileBaselineStore()

STARTER_CONFIG = """\
providers:
  - openai/gpt-4o-mini
  - anthropic/claude-3-5-haiku-latest

tasks:
  - name: capital-of-france
    prompt: "What is the capital of France? Reply with one word."
    expected: Paris

  - name: extract-person
    prompt: "Extract name and age as JSON: 'Alice is 31 years old.'"
    expected:
      name: Alice
      age: 31
    schema:
      type: object
      properties:
        name: { type: string }
        age: { type: integer }
      required: [name, age]

scorers:
  - latency
  - cost
  - correctness
  - schema-correctness

runs: 3

ci:
  baseline: .bench-lab/baseline.json
  budget: 0.50
  thresholds:
    correctness: 0.05
    latency: 0.1
"""


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _build_pricing(config: BenchConfig) -> PricingRegistry:
    pricing = PricingRegistry.default()
    pricing.register_from_config(config.pricing)
    return pricing


def _judge_factory(judge_models: list[str]):
    def build() -> list[ProviderContract]:
        # Any judge that cannot be built disables the whole panel
        try:
            return [get_provider(model) for model in judge_models]
        except ValueError as e:
            logger.warning(f"LLM judge disabled: {e}")
            return []

    return build


async def _run_with_progress(
    config: BenchConfig, runs: int, quiet: bool = False
) -> list[BenchmarkResult]:
    providers = [get_provider(entry) for entry in config.providers]
    scorers = resolve_scorers(
        config.scorers,
        pricing=_build_pricing(config),
        judge_factory=_judge_factory(config.judge_models),
        judge_aggregation=config.judge_aggregation,
    )
    runner = RunBenchmark()

    if quiet:
        return await runner.run(
            providers, config.tasks, scorers, runs, config.timeout_ms
        )

    total = runner.count_cells(providers, config.tasks, runs)
    with progress_bar("Benchmarking", total) as (progress, task_id):
        channel: asyncio.Queue[BenchmarkResult | None] = asyncio.Queue()

        async def drain() -> None:
            while await channel.get() is not None:
                progress.advance(task_id)

        drainer = asyncio.create_task(drain())
        try:
            return await runner.run(
                providers,
                config.tasks,
                scorers,
                runs,
                config.timeout_ms,
                channel=channel,
            )
        finally:
            await drainer


def _parse_threshold_options(options: list[str]) -> dict[str, float]:
    raw: dict[str, str] = {}
    for option in options:
        name, sep, value = option.partition("=")
        if not sep or not name.strip():
            raise YamlConfigLoaderError(
                f"Invalid --threshold '{option}'. Expected format: scorer=value"
            )
        raw[name.strip()] = value.strip()
    return parse_thresholds(raw)


@app.command(help="Write a starter bench.yaml.")
def init(
    path: Annotated[
        Path, typer.Argument(help="Where to write the config")
    ] = Path(DEFAULT_CONFIG_FILE),
) -> None:
    if path.exists():
        typer.echo(f"Error: {path} already exists", err=True)
        raise typer.Exit(1)

    path.write_text(STARTER_CONFIG)
    typer.echo(f"Created {path}")
    typer.echo("\nRun it with: bench-lab run")


@app.command(help="Run the benchmark and print results.")
def run(
    config: Annotated[
        Path, typer.Option("--config", "-c", help="Path to bench.yaml")
    ] = Path(DEFAULT_CONFIG_FILE),
    as_json: Annotated[
        bool, typer.Option("--json", help="Print results as JSON")
    ] = False,
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Write JSON results to file")
    ] = None,
    html: Annotated[
        Path | None, typer.Option("--html", help="Write an HTML report to file")
    ] = None,
    runs: Annotated[
        int | None,
        typer.Option("--runs", "-n", min=1, help="Runs per task/provider pair"),
    ] = None,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Enable debug logging")
    ] = False,
) -> None:
    _configure_logging(verbose)

    try:
        bench_config = _config_loader.load(config)
        results = asyncio.run(
            _run_with_progress(
                bench_config,
                runs if runs is not None else bench_config.runs,
                quiet=as_json,
            )
        )

        if as_json:
            typer.echo(render_json_report(results))
        else:
            display_results_table(results)

        if output:
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_text(render_json_report(results))
            if not as_json:
                console.print(f"[dim]Results written to {output}[/dim]")

        if html:
            html.parent.mkdir(parents=True, exist_ok=True)
            html.write_text(render_html_report(results), encoding="utf-8")
            if not as_json:
                console.print(f"[dim]HTML report written to {html}[/dim]")
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command(help="Run the benchmark and fail on regressions or budget overruns.")
def ci(
    config: Annotated[
        Path, typer.Option("--config", "-c", help="Path to bench.yaml")
    ] = Path(DEFAULT_CONFIG_FILE),
    baseline: Annotated[
        Path | None, typer.Option("--baseline", "-b", help="Baseline JSON file")
    ] = None,
    budget: Annotated[
        float | None, typer.Option("--budget", help="Maximum total cost in USD")
    ] = None,
    threshold: Annotated[
        list[str] | None,
        typer.Option("--threshold", "-t", help="Regression margin, e.g. correctness=0.05"),
    ] = None,
    update_baseline: Annotated[
        bool,
        typer.Option("--update-baseline", help="Save results as baseline when passing"),
    ] = False,
    comment: Annotated[
        bool, typer.Option("--comment", help="Post the report as a PR comment")
    ] = False,
    quiet: Annotated[
        bool, typer.Option("--quiet", "-q", help="Only print failures and verdict")
    ] = False,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Enable debug logging")
    ] = False,
) -> None:
    _configure_logging(verbose)

    try:
        bench_config = _config_loader.load(config)

        thresholds = dict(bench_config.thresholds)
        thresholds.update(_parse_threshold_options(threshold or []))
        if budget is not None and budget < 0:
            raise YamlConfigLoaderError(f"--budget must not be negative, got {budget}")

        results = asyncio.run(
            _run_with_progress(bench_config, bench_config.runs, quiet=quiet)
        )

        outcome = CheckRegressions(_baseline_store).execute(
            results,
            baseline or bench_config.baseline_path,
            thresholds,
            budget=budget if budget is not None else bench_config.budget,
            update_baseline=update_baseline,
        )
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    display_ci_report(
        outcome.report,
        baseline_timestamp=outcome.baseline_timestamp,
        all_failed=outcome.all_failed,
        quiet=quiet,
    )
    if outcome.baseline_saved and not quiet:
        console.print(f"[dim]Baseline updated: {outcome.baseline_saved}[/dim]")

    if comment:
        ctx = detect_github_context()
        if ctx is None:
            typer.echo(
                "Warning: --comment ignored, no GitHub pull request context found",
                err=True,
            )
        else:
            body = render_markdown_report(
                outcome.report,
                baseline_timestamp=outcome.baseline_timestamp,
                all_failed=outcome.all_failed,
                results=results,
            )
            try:
                asyncio.run(upsert_pr_comment(ctx, body, COMMENT_MARKER))
            except Exception as e:
                typer.echo(f"Warning: Failed to post PR comment: {e}", err=True)

    raise typer.Exit(outcome.exit_code)


if __name__ == "__main__":
    app()
