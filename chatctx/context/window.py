"""Token budget partitioning for a single model invocation."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Sequence

from chatctx.context.tokens import estimate_message_tokens
from chatctx.errors import ContextWindowConfigError
from chatctx.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SUMMARIZE_OVERSHOOT = 1.5


@dataclass(frozen=True)
class TokenAllocation:
    system_prompt: int
    summary: int
    messages: int
    response_reserved: int
    total: int

    def as_dict(self) -> dict[str, int]:
        return {
            "systemPrompt": self.system_prompt,
            "summary": self.summary,
            "messages": self.messages,
            "responseReserved": self.response_reserved,
            "total": self.total,
        }


@dataclass(frozen=True)
class SummarizationPlan:
    should_summarize: bool
    current_tokens: int
    available_tokens: int
    tokens_to_summarize: int
    messages_to_summarize: int = 0
    tokens_selected: int = 0


@dataclass(frozen=True)
class ContextWindow:
    """
    Fixed token budget split between system prompt, running summary,
    recent messages and reserved response space.

    Stateless: build one per effective configuration.
    """

    max_tokens: int
    system_prompt_tokens: int
    response_reserved_tokens: int
    summary_tokens: int
    summarize_overshoot: float = field(default=DEFAULT_SUMMARIZE_OVERSHOOT, compare=False)

    def __post_init__(self) -> None:
        for name in ("max_tokens", "system_prompt_tokens", "response_reserved_tokens", "summary_tokens"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ContextWindowConfigError(
                    f"{name} must be an integer",
                    rule="token_type",
                    context={name: value},
                )
            if value < 0:
                raise ContextWindowConfigError(
                    f"{name} cannot be negative",
                    rule="negative_tokens",
                    context={name: value},
                )
        if self.summarize_overshoot < 1.0:
            raise ContextWindowConfigError(
                "summarize_overshoot must be at least 1.0",
                rule="overshoot_range",
                context={"summarize_overshoot": self.summarize_overshoot},
            )
        if self.reserved_tokens > self.max_tokens:
            raise ContextWindowConfigError(
                "Reserved tokens exceed maximum token budget",
                rule="reserved_exceeds_max",
                context={"reserved": self.reserved_tokens, "max_tokens": self.max_tokens},
            )

    @classmethod
    def create(cls, config: dict[str, Any] | None = None, **overrides: Any) -> ContextWindow:
        """Build from a camelCase or snake_case config record."""
        raw = {**(config or {}), **overrides}
        aliases = {
            "maxTokens": "max_tokens",
            "systemPromptTokens": "system_prompt_tokens",
            "responseReservedTokens": "response_reserved_tokens",
            "summaryTokens": "summary_tokens",
            "summarizeOvershoot": "summarize_overshoot",
        }
        kwargs = {aliases.get(key, key): value for key, value in raw.items()}
        try:
            return cls(**kwargs)
        except TypeError as exc:
            raise ContextWindowConfigError(
                f"Invalid context window config: {exc}",
                rule="config_fields",
                context={"keys": sorted(raw)},
            ) from exc

    @property
    def reserved_tokens(self) -> int:
        return self.system_prompt_tokens + self.response_reserved_tokens + self.summary_tokens

    def available_for_messages(self) -> int:
        return max(0, self.max_tokens - self.reserved_tokens)

    def get_allocation(self) -> TokenAllocation:
        return TokenAllocation(
            system_prompt=self.system_prompt_tokens,
            summary=self.summary_tokens,
            messages=self.available_for_messages(),
            response_reserved=self.response_reserved_tokens,
            total=self.max_tokens,
        )

    def should_summarize(self, current_tokens: int) -> bool:
        return current_tokens > self.available_for_messages()

    def tokens_to_summarize(self, current_tokens: int) -> int:
        """Overflow scaled by the overshoot factor so one pass leaves headroom."""
        overflow = current_tokens - self.available_for_messages()
        if overflow <= 0:
            return 0
        return math.ceil(overflow * self.summarize_overshoot)

    def plan_summarization(self, messages: Sequence[dict[str, Any]]) -> SummarizationPlan:
        """Pick the oldest messages whose tokens cover ``tokens_to_summarize``.

        The newest message is never selected.
        """
        per_message = [estimate_message_tokens(m) for m in messages]
        current = sum(per_message)
        available = self.available_for_messages()
        if not self.should_summarize(current):
            return SummarizationPlan(
                should_summarize=False,
                current_tokens=current,
                available_tokens=available,
                tokens_to_summarize=0,
            )

        target = self.tokens_to_summarize(current)
        selected = 0
        selected_tokens = 0
        for tokens in per_message[:-1]:
            if selected_tokens >= target:
                break
            selected += 1
            selected_tokens += tokens

        logger.info(
            "Context window summarization triggered",
            current_tokens=current,
            available_tokens=available,
            tokens_to_summarize=target,
            messages_to_summarize=selected,
        )
        return SummarizationPlan(
            should_summarize=True,
            current_tokens=current,
            available_tokens=available,
            tokens_to_summarize=target,
            messages_to_summarize=selected,
            tokens_selected=selected_tokens,
        )
