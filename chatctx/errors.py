"""Typed validation failures raised at construction boundaries."""

from __future__ import annotations

from typing import Any


class EntityValidationError(ValueError):
    """An entity aggregate or value violated one of its invariants.

    ``rule`` is a short identifier for the violated rule so callers can map
    failures without parsing the message.
    """

    def __init__(self, message: str, *, rule: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.rule = rule
        self.context = dict(context or {})


class CorrectionValidationError(EntityValidationError):
    """A correction ledger operation was rejected."""


class ContextWindowConfigError(EntityValidationError):
    """A context window token budget is inconsistent."""
