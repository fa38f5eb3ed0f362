import asyncio
import json
import os
import time
from typing import Any

from openai import AsyncAzureOpenAI, AsyncOpenAI

from ...domain.contracts.provider import TaskResult, ToolCall
from ...domain.contracts.task import ToolSpec
from .base import SCHEMA_SYSTEM_MESSAGE, Provider

DEFAULT_AZURE_API_VERSION = "2024-12-01-preview"
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"


class OpenAIProvider(Provider):
    def __init__(
        self,
        model: str,
        api_key_env: str = "OPENAI_API_KEY",
        base_url: str | None = None,
        provider_id: str | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.model = model
        self._id = provider_id or f"openai/{model}"
        if client is not None:
            self.client = client
            return

        api_key = os.getenv(api_key_env)
        if not api_key:
            raise ValueError(f"{api_key_env} environment variable not set")
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url)

    @property
    def id(self) -> str:
        return self._id

    async def invoke(
        self,
        prompt: str,
        schema: dict[str, Any] | None = None,
        tools: list[ToolSpec] | None = None,
        cancel_event: asyncio.Event | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> TaskResult:
        messages: list[dict[str, str]] = []
        if schema is not None:
            messages.append({"role": "system", "content": SCHEMA_SYSTEM_MESSAGE})
        messages.append({"role": "user", "content": prompt})

        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
        }
        if temperature is not None:
            kwargs["temperature"] = temperature
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        if schema is not None:
            kwargs["response_format"] = {"type": "json_object"}

        if tools:
            kwargs["tools"] = self._format_tools(tools)
            kwargs["tool_choice"] = "auto"

        start_time = time.perf_counter()
        response = await self.run_cancellable(
            self.client.chat.completions.create(**kwargs), cancel_event
        )
        latency_ms = (time.perf_counter() - start_time) * 1000

        message = response.choices[0].message
        content = message.content or ""

        tool_calls = []
        if message.tool_calls:
            for tc in message.tool_calls:
                tool_calls.append(
                    ToolCall(
                        name=tc.function.name,
                        arguments=json.loads(tc.function.arguments or "{}"),
                    )
                )

        return self.build_result(
            content=content,
            latency_ms=latency_ms,
            schema=schema,
            prompt_tokens=response.usage.prompt_tokens if response.usage else None,
            completion_tokens=(
                response.usage.completion_tokens if response.usage else None
            ),
            tool_calls=tool_calls,
        )

    def _format_tools(self, tools: list[ToolSpec]) -> list[dict[str, Any]]:
        return [
            {"type": "function", "function": tool}
            for tool in self.format_tools(tools)
        ]


class AzureOpenAIProvider(OpenAIProvider):
    def __init__(
        self,
        deployment: str,
        api_key_env: str = "AZURE_OPENAI_API_KEY",
        endpoint: str | None = None,
        api_version: str | None = None,
        client: AsyncAzureOpenAI | None = None,
    ) -> None:
        if client is None:
            api_key = os.getenv(api_key_env)
            if not api_key:
                raise ValueError(f"{api_key_env} environment variable not set")
            azure_endpoint = endpoint or os.getenv("AZURE_OPENAI_ENDPOINT")
            if not azure_endpoint:
                raise ValueError("AZURE_OPENAI_ENDPOINT environment variable not set")
            client = AsyncAzureOpenAI(
                api_key=api_key,
                azure_endpoint=azure_endpoint,
                api_version=api_version
                or os.getenv("AZURE_OPENAI_API_VERSION", DEFAULT_AZURE_API_VERSION),
            )

        super().__init__(
            model=deployment,
            provider_id=f"azure/{deployment}",
            client=client,
        )


class OpenAICompatibleProvider(OpenAIProvider):
    def __init__(
        self,
        provider_id: str,
        model: str,
        base_url: str,
        api_key_env: str | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        if client is None:
            # Local servers often need no key at all
            api_key = (os.getenv(api_key_env) if api_key_env else None) or "no-key"
            client = AsyncOpenAI(api_key=api_key, base_url=base_url)

        super().__init__(model=model, provider_id=provider_id, client=client)


def gemini(model: str, api_key_env: str = "GEMINI_API_KEY") -> OpenAIProvider:
    return OpenAIProvider(
        model=model,
        api_key_env=api_key_env,
        base_url=GEMINI_BASE_URL,
        provider_id=f"gemini/{model}",
    )
