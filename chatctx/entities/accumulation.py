"""Fold a turn's extracted entities and corrections into the session aggregate."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Sequence

from chatctx.corrections.ledger import CORRECTION_SLOTS, REMOVAL_SLOTS, CorrectionLedger
from chatctx.dates import utcnow
from chatctx.entities.aggregate import AccumulatedEntities
from chatctx.entities.normalize import DEFAULT_NORMALIZATION, NormalizationConfig
from chatctx.entities.types import (
    DEFAULT_CONFIDENCE,
    DEFAULT_CONFIDENCE_THRESHOLD,
    slot_category,
    slot_for_name,
)
from chatctx.errors import EntityValidationError
from chatctx.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ExtractionInput:
    """One candidate value (or list of values) produced by the extractor."""

    slot_name: str
    values: str | Sequence[str]
    confidence: float | None = None
    source_message_id: str | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ExtractionInput:
        return cls(
            slot_name=str(raw.get("slotName") or raw.get("slot_name") or ""),
            values=raw.get("values", []),
            confidence=raw.get("confidence"),
            source_message_id=raw.get("sourceMessageId") or raw.get("source_message_id"),
        )


@dataclass(frozen=True)
class EntityMergeContext:
    message_id: str
    default_confidence: float = DEFAULT_CONFIDENCE
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
    # Used only when no existing aggregate is supplied.
    normalization: NormalizationConfig | None = None

    def validate(self) -> None:
        if not isinstance(self.message_id, str) or not self.message_id.strip():
            raise EntityValidationError(
                "Message ID is required for entity accumulation",
                rule="empty_message_id",
                context={"message_id": self.message_id},
            )
        for name in ("default_confidence", "confidence_threshold"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not 0.0 <= value <= 1.0:
                raise EntityValidationError(
                    f"{name} must be between 0 and 1",
                    rule="confidence_range",
                    context={name: value},
                )


@dataclass(frozen=True)
class MergeMetadata:
    total_entities_processed: int
    corrections_applied: int
    new_entities_added: int
    entities_removed: int
    skipped_inputs: int
    processing_timestamp: datetime


@dataclass(frozen=True)
class MergeResult:
    accumulated_entities: AccumulatedEntities
    processed_corrections: CorrectionLedger | None
    metadata: MergeMetadata


def _stored_count(entities: AccumulatedEntities, slot: str) -> int:
    value = getattr(entities, slot)
    if isinstance(value, tuple):
        return len(value)
    return 0 if value is None else 1


def _apply_corrections(
    entities: AccumulatedEntities,
    ledger: CorrectionLedger,
) -> tuple[AccumulatedEntities, int, int]:
    applied = 0
    removed = 0
    for slot in REMOVAL_SLOTS:
        for record in ledger.removals[slot]:
            before = _stored_count(entities, slot)
            entities = entities.with_removed(slot, record.entity_value, record.metadata.source_message_id)
            removed += before - _stored_count(entities, slot)
            applied += 1
    for slot in CORRECTION_SLOTS:
        record = ledger.corrections[slot]
        if record is None:
            continue
        entities = entities.with_corrected(
            slot,
            record.new_value,
            record.metadata.source_message_id,
            record.metadata.confidence,
        )
        applied += 1
    return entities, applied, removed


def _clean_values(values: str | Sequence[str]) -> tuple[list[str], int]:
    if isinstance(values, str):
        values = [values]
    kept = [v for v in values if isinstance(v, str) and v.strip()]
    return kept, len(values) - len(kept)


def merge_extractions(
    existing: AccumulatedEntities | None,
    extractions: Sequence[ExtractionInput],
    ctx: EntityMergeContext,
    corrections: CorrectionLedger | None = None,
) -> MergeResult:
    """Apply *corrections* first, then route each extraction by slot category."""
    ctx.validate()
    if existing is None:
        existing = AccumulatedEntities.create(normalization=ctx.normalization or DEFAULT_NORMALIZATION)
    entities = existing

    corrections_applied = 0
    entities_removed = 0
    processed: CorrectionLedger | None = None
    if corrections is not None and not corrections.is_empty():
        entities, corrections_applied, entities_removed = _apply_corrections(entities, corrections)
        processed = corrections

    submitted = 0
    added = 0
    skipped = 0
    for extraction in extractions:
        slot = slot_for_name(extraction.slot_name)
        if slot is None:
            skipped += 1
            logger.warning("Skipping extraction for unknown slot", slot=extraction.slot_name)
            continue
        message_id = extraction.source_message_id or ctx.message_id
        confidence = (
            extraction.confidence if extraction.confidence is not None else ctx.default_confidence
        )
        values, blank = _clean_values(extraction.values)
        skipped += blank
        if not values:
            continue

        category = slot_category(slot)
        if category == "additive":
            before = _stored_count(entities, slot)
            entities = entities.with_additive(slot, values, message_id, confidence)
            added += _stored_count(entities, slot) - before
            submitted += len(values)
            continue

        previous = getattr(entities, slot)
        # Single-value slots take only the last candidate of a batch.
        if category == "replaceable":
            entities = entities.with_replaceable(slot, values[-1], message_id, confidence)
        else:
            entities = entities.with_confidence_based(
                slot, values[-1], message_id, confidence, ctx.confidence_threshold
            )
        submitted += 1
        if getattr(entities, slot) is not previous:
            added += 1

    metadata = MergeMetadata(
        total_entities_processed=submitted + corrections_applied,
        corrections_applied=corrections_applied,
        new_entities_added=added,
        entities_removed=entities_removed,
        skipped_inputs=skipped,
        processing_timestamp=utcnow(),
    )
    logger.debug(
        "Entity accumulation merged",
        message_id=ctx.message_id,
        processed=metadata.total_entities_processed,
        added=added,
        removed=entities_removed,
        corrections=corrections_applied,
        skipped=skipped,
    )
    return MergeResult(accumulated_entities=entities, processed_corrections=processed, metadata=metadata)


def entity_age(extracted_at: datetime, now: datetime | None = None) -> str:
    elapsed = ((now or utcnow()) - extracted_at).total_seconds()
    hours = int(elapsed // 3600)
    minutes = int(elapsed // 60)
    if hours > 0:
        return f"{hours}h ago"
    if minutes > 0:
        return f"{minutes}m ago"
    return "just now"


def build_entity_context_prompt(entities: AccumulatedEntities, now: datetime | None = None) -> str:
    """Render known entities as a prompt block, or '' when nothing is known."""
    parts: list[str] = []
    if entities.decision_makers:
        parts.append("Decision makers identified: " + ", ".join(e.value for e in entities.decision_makers))
    if entities.pain_points:
        parts.append("Pain points mentioned: " + ", ".join(e.value for e in entities.pain_points))
    if entities.budget:
        parts.append(f"Budget mentioned: {entities.budget.value} ({entity_age(entities.budget.extracted_at, now)})")
    if entities.timeline:
        parts.append(
            f"Timeline mentioned: {entities.timeline.value} ({entity_age(entities.timeline.extracted_at, now)})"
        )
    if entities.urgency:
        parts.append(f"Urgency level: {entities.urgency.value}")
    if entities.company:
        parts.append(f"Company: {entities.company.value}")
    if entities.industry:
        parts.append(f"Industry: {entities.industry.value}")
    if entities.team_size:
        parts.append(f"Team size: {entities.team_size.value}")
    if not parts:
        return ""
    return "ACCUMULATED CONVERSATION CONTEXT:\n" + "\n".join(parts) + "\n\n"
