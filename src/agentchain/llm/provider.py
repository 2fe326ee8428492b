"""Model invocation contract: stream events and error classes."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator

from agentchain.core.agent import Attachments
from agentchain.core.result import TokenUsage


class StreamEventType(str, Enum):
    TOKEN = "token"
    THINKING = "thinking"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass
class StreamEvent:
    type: StreamEventType
    content: str | None = None  # token fragment, or final text on COMPLETE
    thinking: str | None = None
    is_thinking: bool = True
    usage: TokenUsage | None = None
    cost: float | None = None
    error: str | None = None
    status_code: int | None = None

    @classmethod
    def token(cls, content: str) -> "StreamEvent":
        return cls(type=StreamEventType.TOKEN, content=content)

    @classmethod
    def thinking_fragment(cls, thinking: str, is_thinking: bool = True) -> "StreamEvent":
        return cls(type=StreamEventType.THINKING, thinking=thinking, is_thinking=is_thinking)

    @classmethod
    def complete(
        cls,
        content: str | None = None,
        usage: TokenUsage | None = None,
        cost: float | None = None,
    ) -> "StreamEvent":
        return cls(type=StreamEventType.COMPLETE, content=content, usage=usage, cost=cost)

    @classmethod
    def failure(cls, error: str, status_code: int | None = None) -> "StreamEvent":
        return cls(type=StreamEventType.ERROR, error=error, status_code=status_code)


class LLMError(Exception):

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class InvocationError(LLMError):
    """The backend failed for a reason other than rate limiting, or retries ran out."""


class TransportError(InvocationError):
    """The response channel could not be opened or broke mid-stream."""


class RateLimitError(LLMError):

    def __init__(self, message: str, status_code: int | None = 429):
        super().__init__(message, status_code=status_code)


def is_rate_limit(error: BaseException | str, status_code: int | None = None) -> bool:
    """Classify a failure as a rate limit by status code, then by message substring."""
    if isinstance(error, RateLimitError):
        return True
    if status_code is None:
        status_code = getattr(error, "status_code", None)
    if status_code == 429:
        return True
    message = str(error).lower()
    return "rate limit" in message or "429" in message


class ModelInvocationService(ABC):

    @abstractmethod
    def invoke(
        self,
        model: str,
        prompt: str,
        attachments: Attachments | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Open an incremental response channel for one prompt."""
