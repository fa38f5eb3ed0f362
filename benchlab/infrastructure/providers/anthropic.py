import asyncio
import os
import time
from typing import Any

from anthropic import AsyncAnthropic

from ...domain.contracts.provider import TaskResult, ToolCall
from ...domain.contracts.task import ToolSpec
from .base import SCHEMA_SYSTEM_MESSAGE, Provider

DEFAULT_MAX_TOKENS = 4096


class AnthropicProvider(Provider):
    def __init__(
        self,
        model: str,
        api_key_env: str = "ANTHROPIC_API_KEY",
        client: AsyncAnthropic | None = None,
    ) -> None:
        self.model = model
        if client is not None:
            self.client = client
            return

        api_key = os.getenv(api_key_env)
        if not api_key:
            raise ValueError(f"{api_key_env} environment variable not set")
        self.client = AsyncAnthropic(api_key=api_key)

    @property
    def id(self) -> str:
        return f"anthropic/{self.model}"

    async def invoke(
        self,
        prompt: str,
        schema: dict[str, Any] | None = None,
        tools: list[ToolSpec] | None = None,
        cancel_event: asyncio.Event | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> TaskResult:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens or DEFAULT_MAX_TOKENS,
            "messages": [
                {"role": "user", "content": prompt},
            ],
        }
        if temperature is not None:
            kwargs["temperature"] = temperature

        if schema is not None:
            kwargs["system"] = SCHEMA_SYSTEM_MESSAGE

        if tools:
            kwargs["tools"] = self._format_tools(tools)

        start_time = time.perf_counter()
        response = await self.run_cancellable(
            self.client.messages.create(**kwargs), cancel_event
        )
        latency_ms = (time.perf_counter() - start_time) * 1000

        content = ""
        tool_calls = []

        for block in response.content:
            if block.type == "text":
                content += block.text
            elif block.type == "tool_use":
                tool_calls.append(
                    ToolCall(
                        name=block.name,
                        arguments=dict(block.input),
                    )
                )

        return self.build_result(
            content=content,
            latency_ms=latency_ms,
            schema=schema,
            prompt_tokens=response.usage.input_tokens,
            completion_tokens=response.usage.output_tokens,
            tool_calls=tool_calls,
        )

    def _format_tools(self, tools: list[ToolSpec]) -> list[dict[str, Any]]:
        return [
            {
                "name": tool["name"],
                "description": tool["description"],
                "input_schema": tool["parameters"],
            }
            for tool in self.format_tools(tools)
        ]
