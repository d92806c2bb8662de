"""Pure merge strategies for the three entity slot categories."""

from __future__ import annotations

from typing import Iterable, Sequence, TypeVar

from chatctx.entities.normalize import NormalizationConfig, normalize
from chatctx.entities.types import DEFAULT_CONFIDENCE_THRESHOLD, EntityValue, MergeContext

T = TypeVar("T")


def deduplicate(
    values: Iterable[EntityValue[str]],
    config: NormalizationConfig | None = None,
) -> list[EntityValue[str]]:
    """Keep the first occurrence of each normalized form, preserving order."""
    seen: set[str] = set()
    out: list[EntityValue[str]] = []
    for entity in values:
        key = normalize(entity.value, config)
        if key in seen:
            continue
        seen.add(key)
        out.append(entity)
    return out


def apply_additive(
    existing: Sequence[EntityValue[str]],
    new_values: Sequence[str],
    ctx: MergeContext,
    config: NormalizationConfig | None = None,
) -> list[EntityValue[str]]:
    """Append *new_values* to *existing*; earliest-inserted value wins on collisions."""
    combined = [*existing, *(ctx.wrap(v) for v in new_values)]
    return deduplicate(combined, config)


def apply_replaceable(new_value: T, ctx: MergeContext) -> EntityValue[T]:
    return ctx.wrap(new_value)


def apply_confidence_based(
    existing: EntityValue[T] | None,
    new_value: T,
    ctx: MergeContext,
    threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
) -> EntityValue[T]:
    """Keep *existing* only when it beats both the candidate and the threshold.

    Both comparisons are strict, so an exact confidence tie goes to the
    candidate.
    """
    if existing is None:
        return ctx.wrap(new_value)
    if existing.confidence > ctx.confidence and existing.confidence > threshold:
        return existing
    return ctx.wrap(new_value)


def remove_from_additive(
    values: Sequence[EntityValue[str]],
    value_to_remove: str,
    config: NormalizationConfig | None = None,
) -> list[EntityValue[str]]:
    """Drop every entry whose normalized form matches *value_to_remove*."""
    target = normalize(value_to_remove, config)
    return [entity for entity in values if normalize(entity.value, config) != target]


def apply_correction(new_value: T, ctx: MergeContext) -> EntityValue[T]:
    # Corrections are always latest-wins, whatever the slot's usual category.
    return apply_replaceable(new_value, ctx)
