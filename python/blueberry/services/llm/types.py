"""Value types passed between the chat stream service, the router and adapters.

A provider stream is a sequence of LLMChunk: any number of text deltas
(done=False, no usage) followed by one terminal chunk (done=True) that may
carry token usage.
"""

from dataclasses import dataclass
from typing import Literal

Role = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class Turn:
    """One entry of the prompt: the system instruction or a stored message."""

    role: Role
    content: str


@dataclass(frozen=True)
class LLMUsage:
    prompt_tokens: int | None
    completion_tokens: int | None
    total_tokens: int | None


@dataclass(frozen=True)
class LLMRequest:
    """A single completion request.

    messages starts with the system turn; max_tokens is always the
    configured output cap; temperature None leaves the provider default.
    """

    model_name: str
    messages: list[Turn]
    max_tokens: int
    temperature: float | None = None


@dataclass(frozen=True)
class LLMChunk:
    delta_text: str
    done: bool
    usage: LLMUsage | None = None

    def __post_init__(self):
        if self.usage is not None and not self.done:
            raise ValueError("usage is only reported on the terminal chunk")
