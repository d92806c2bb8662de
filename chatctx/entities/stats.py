"""Read-only statistics over an entity aggregate."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from chatctx.entities.types import ALL_SLOTS, DEFAULT_CONFIDENCE_THRESHOLD

if TYPE_CHECKING:
    from chatctx.entities.aggregate import AccumulatedEntities

# Share of the quality score driven by slot coverage; the rest is confidence.
_QUALITY_COVERAGE_WEIGHT = 0.4


@dataclass(frozen=True)
class TimelineEntry:
    extracted_at: datetime
    slot: str
    value: Any
    confidence: float
    source_message_id: str


def average_confidence(entities: AccumulatedEntities) -> float:
    scores = [e.confidence for _, e in entities.iter_entities()]
    if not scores:
        return 0.0
    return sum(scores) / len(scores)


def count_above_confidence(
    entities: AccumulatedEntities,
    threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
) -> int:
    return sum(1 for _, e in entities.iter_entities() if e.confidence > threshold)


def oldest_extraction(entities: AccumulatedEntities) -> datetime | None:
    stamps = [e.extracted_at for _, e in entities.iter_entities()]
    return min(stamps) if stamps else None


def newest_extraction(entities: AccumulatedEntities) -> datetime | None:
    stamps = [e.extracted_at for _, e in entities.iter_entities()]
    return max(stamps) if stamps else None


def filled_slots(entities: AccumulatedEntities) -> list[str]:
    return [slot for slot in ALL_SLOTS if _slot_has_value(entities, slot)]


def quality_score(entities: AccumulatedEntities) -> int:
    """Blend slot coverage and mean confidence into a 0-100 score."""
    coverage = len(filled_slots(entities)) / len(ALL_SLOTS)
    blended = (
        _QUALITY_COVERAGE_WEIGHT * coverage
        + (1 - _QUALITY_COVERAGE_WEIGHT) * average_confidence(entities)
    )
    return round(blended * 100)


def extraction_timeline(entities: AccumulatedEntities) -> list[TimelineEntry]:
    """All stored values in chronological order of extraction."""
    entries = [
        TimelineEntry(
            extracted_at=e.extracted_at,
            slot=slot,
            value=e.value,
            confidence=e.confidence,
            source_message_id=e.source_message_id,
        )
        for slot, e in entities.iter_entities()
    ]
    # sorted() is stable, so same-timestamp entries keep slot order.
    return sorted(entries, key=lambda entry: entry.extracted_at)


def slots_by_source(entities: AccumulatedEntities, message_id: str) -> list[str]:
    """Slots holding at least one value that came from *message_id*."""
    out: list[str] = []
    for slot, e in entities.iter_entities():
        if e.source_message_id == message_id and slot not in out:
            out.append(slot)
    return out


def _slot_has_value(entities: AccumulatedEntities, slot: str) -> bool:
    value = getattr(entities, slot)
    if isinstance(value, tuple):
        return len(value) > 0
    return value is not None
