import asyncio
import json
from abc import ABC
from typing import Any, Awaitable, TypeVar

from ...domain.contracts.provider import (
    ProviderContract,
    TaskResult,
    TokenUsage,
    ToolCall,
)
from ...domain.contracts.task import Output, ToolSpec

T = TypeVar("T")

SCHEMA_SYSTEM_MESSAGE = "Respond with valid JSON matching the requested schema."


class ProviderCancelledError(Exception):
    pass


def parse_schema_output(content: str, has_schema: bool) -> Output:
    if not has_schema:
        return content
    try:
        return json.loads(content)
    except json.JSONDecodeError:
        return content


class Provider(ProviderContract, ABC):
    async def run_cancellable(
        self, request: Awaitable[T], cancel_event: asyncio.Event | None
    ) -> T:
        """Await a vendor request, aborting it once the cancel event is set."""
        if cancel_event is None:
            return await request

        request_task = asyncio.ensure_future(request)
        cancel_waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {request_task, cancel_waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            cancel_waiter.cancel()
            if not request_task.done():
                request_task.cancel()

        if request_task not in done:
            raise ProviderCancelledError(f"Request to {self.id} was cancelled")
        return request_task.result()

    def format_tools(self, tools: list[ToolSpec]) -> list[dict[str, Any]]:
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.parameters or {"type": "object", "properties": {}},
            }
            for tool in tools
        ]

    def build_result(
        self,
        content: str,
        latency_ms: float,
        schema: dict[str, Any] | None,
        prompt_tokens: int | None,
        completion_tokens: int | None,
        tool_calls: list[ToolCall],
    ) -> TaskResult:
        usage = None
        if prompt_tokens is not None or completion_tokens is not None:
            usage = TokenUsage(
                prompt=prompt_tokens or 0, completion=completion_tokens or 0
            )

        return TaskResult(
            output=parse_schema_output(content, schema is not None),
            latency_ms=latency_ms,
            token_usage=usage,
            tool_calls=tool_calls,
        )
