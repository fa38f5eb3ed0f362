import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from .task import Output, ToolSpec


@dataclass(frozen=True)
class ToolCall:
    name: str
    arguments: dict[str, Any]


@dataclass(frozen=True)
class TokenUsage:
    prompt: int = 0
    completion: int = 0

    @property
    def total(self) -> int:
        return self.prompt + self.completion


@dataclass(frozen=True)
class TaskResult:
    output: Output
    latency_ms: float
    token_usage: TokenUsage | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)


class ProviderContract(ABC):
    @property
    @abstractmethod
    def id(self) -> str:
        pass

    @abstractmethod
    async def invoke(
        self,
        prompt: str,
        schema: dict[str, Any] | None = None,
        tools: list[ToolSpec] | None = None,
        cancel_event: asyncio.Event | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> TaskResult:
        pass
