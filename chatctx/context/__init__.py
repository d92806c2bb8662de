"""Context window budgeting."""

from chatctx.context.tokens import count_message_tokens, count_tokens
from chatctx.context.window import ContextWindow, SummarizationPlan, TokenAllocation

__all__ = ["ContextWindow", "SummarizationPlan", "TokenAllocation", "count_message_tokens", "count_tokens"]
