import asyncio
import inspect
import logging
import time

from ..domain.contracts.provider import ProviderContract, TaskResult
from ..domain.contracts.results import BenchmarkResult, RawOutput
from ..domain.contracts.scorer import ScoreResult, ScorerContext, ScorerContract
from ..domain.contracts.task import DEFAULT_TIMEOUT_MS, Task
from ..domain.statistics import GROUP_KEY_SEPARATOR

logger = logging.getLogger(__name__)


class RunBenchmarkError(Exception):
    pass


class CellTimeoutError(Exception):
    def __init__(self, timeout_ms: int) -> None:
        super().__init__(f"Request timed out after {timeout_ms}ms")
        self.timeout_ms = timeout_ms


def _describe_failure(error: BaseException) -> str:
    message = str(error)
    return message if message else type(error).__name__


def _discard_outcome(task: "asyncio.Task[TaskResult]") -> None:
    # Abandoned provider calls may still fail later; retrieve the outcome so
    # the event loop does not report it as never retrieved.
    if not task.cancelled():
        task.exception()


class RunBenchmark:
    async def run(
        self,
        providers: list[ProviderContract],
        tasks: list[Task],
        scorers: list[ScorerContract],
        runs_per_cell: int = 1,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        channel: "asyncio.Queue[BenchmarkResult | None] | None" = None,
    ) -> list[BenchmarkResult]:
        """Run every task against every provider, runs_per_cell times each.

        Completed cells are published to channel, when given, in completion
        order; None is put on it once the sweep ends. The returned list is
        ordered by task, then provider, then run.
        """
        try:
            return await self._sweep(
                providers, tasks, scorers, runs_per_cell, timeout_ms, channel
            )
        finally:
            if channel is not None:
                channel.put_nowait(None)

    async def _sweep(
        self,
        providers: list[ProviderContract],
        tasks: list[Task],
        scorers: list[ScorerContract],
        runs_per_cell: int,
        timeout_ms: int,
        channel: "asyncio.Queue[BenchmarkResult | None] | None",
    ) -> list[BenchmarkResult]:
        self._validate(providers, tasks, runs_per_cell, timeout_ms)

        start_time = time.perf_counter()
        logger.info(
            f"Starting benchmark: {len(tasks)} task(s) x {len(providers)} "
            f"provider(s) x {runs_per_cell} run(s)"
        )

        combinations = [
            self._run_combination(
                provider, task, scorers, runs_per_cell, timeout_ms, channel
            )
            for task in tasks
            for provider in providers
        ]
        per_combination = await asyncio.gather(*combinations)

        task_order = {task.name: i for i, task in enumerate(tasks)}
        provider_order = {provider.id: i for i, provider in enumerate(providers)}
        results = sorted(
            (result for batch in per_combination for result in batch),
            key=lambda r: (
                task_order[r.task_name],
                provider_order[r.provider_id],
                r.run,
            ),
        )

        failed = sum(1 for r in results if r.error is not None)
        logger.info(
            f"Benchmark finished in {time.perf_counter() - start_time:.2f}s: "
            f"{len(results)} cell(s), {failed} failed"
        )
        return results

    def count_cells(
        self, providers: list[ProviderContract], tasks: list[Task], runs_per_cell: int
    ) -> int:
        return len(providers) * len(tasks) * runs_per_cell

    def _validate(
        self,
        providers: list[ProviderContract],
        tasks: list[Task],
        runs_per_cell: int,
        timeout_ms: int,
    ) -> None:
        if not providers:
            raise RunBenchmarkError("At least one provider is required")
        if not tasks:
            raise RunBenchmarkError("At least one task is required")
        if runs_per_cell < 1:
            raise RunBenchmarkError(f"Runs per cell must be >= 1, got {runs_per_cell}")
        if timeout_ms <= 0:
            raise RunBenchmarkError(f"Timeout must be positive, got {timeout_ms}ms")

        task_names = [task.name for task in tasks]
        duplicates = sorted({n for n in task_names if task_names.count(n) > 1})
        if duplicates:
            raise RunBenchmarkError(f"Duplicate task names: {', '.join(duplicates)}")

        provider_ids = [provider.id for provider in providers]
        duplicates = sorted({p for p in provider_ids if provider_ids.count(p) > 1})
        if duplicates:
            raise RunBenchmarkError(
                f"Duplicate provider IDs: {', '.join(duplicates)}"
            )

        # Names are joined into "provider::task::scorer" aggregation keys
        for name in task_names + provider_ids:
            if GROUP_KEY_SEPARATOR in name:
                raise RunBenchmarkError(
                    f"'{name}' must not contain '{GROUP_KEY_SEPARATOR}'"
                )

    async def _run_combination(
        self,
        provider: ProviderContract,
        task: Task,
        scorers: list[ScorerContract],
        runs_per_cell: int,
        timeout_ms: int,
        channel: "asyncio.Queue[BenchmarkResult | None] | None",
    ) -> list[BenchmarkResult]:
        results = []
        # Sequential on purpose: repetitions of one cell never overlap
        for run in range(1, runs_per_cell + 1):
            result = await self._run_cell(provider, task, scorers, run, timeout_ms)
            results.append(result)
            if channel is not None:
                channel.put_nowait(result)
        return results

    async def _run_cell(
        self,
        provider: ProviderContract,
        task: Task,
        scorers: list[ScorerContract],
        run: int,
        timeout_ms: int,
    ) -> BenchmarkResult:
        logger.debug(f"Running {provider.id} x {task.name} (run {run})")

        try:
            task_result = await self._invoke_with_timeout(provider, task, timeout_ms)
            scores = await self._score(task, task_result, scorers, provider.id)
        except Exception as e:
            message = _describe_failure(e)
            logger.warning(f"{provider.id} x {task.name} (run {run}) failed: {message}")
            return BenchmarkResult(
                provider_id=provider.id,
                task_name=task.name,
                run=run,
                scores=[],
                raw=RawOutput(output="", latency_ms=0),
                error=message,
            )

        return BenchmarkResult(
            provider_id=provider.id,
            task_name=task.name,
            run=run,
            scores=scores,
            raw=RawOutput(
                output=task_result.output,
                latency_ms=task_result.latency_ms,
                token_usage=task_result.token_usage,
                tool_calls=list(task_result.tool_calls),
            ),
        )

    async def _invoke_with_timeout(
        self, provider: ProviderContract, task: Task, timeout_ms: int
    ) -> TaskResult:
        cancel_event = asyncio.Event()
        call = asyncio.ensure_future(
            provider.invoke(
                prompt=task.prompt,
                schema=task.output_schema,
                tools=task.tools or None,
                cancel_event=cancel_event,
            )
        )

        try:
            done, _ = await asyncio.wait({call}, timeout=timeout_ms / 1000)
        except asyncio.CancelledError:
            cancel_event.set()
            call.cancel()
            raise

        if call not in done:
            # Signal and move on; the provider is expected to abort its own work
            cancel_event.set()
            call.cancel()
            call.add_done_callback(_discard_outcome)
            raise CellTimeoutError(timeout_ms)

        return call.result()

    async def _score(
        self,
        task: Task,
        task_result: TaskResult,
        scorers: list[ScorerContract],
        provider_id: str,
    ) -> list[ScoreResult]:
        context = ScorerContext(task=task, result=task_result)

        async def score_one(scorer: ScorerContract) -> ScoreResult:
            outcome = scorer.score(context, provider_id)
            if inspect.isawaitable(outcome):
                return await outcome
            return outcome

        pending = [asyncio.ensure_future(score_one(s)) for s in scorers]
        try:
            return list(await asyncio.gather(*pending))
        except BaseException:
            # A failed cell records no scores; stop the scorers still running
            for scoring in pending:
                scoring.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            raise
