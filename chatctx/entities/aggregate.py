"""Immutable per-session entity aggregate."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterator, Sequence

from chatctx.dates import utcnow
from chatctx.entities import merge, stats
from chatctx.entities.normalize import DEFAULT_NORMALIZATION, NormalizationConfig, normalize
from chatctx.entities.types import (
    ADDITIVE_SLOTS,
    CONFIDENCE_SLOTS,
    DEFAULT_CONFIDENCE,
    DEFAULT_CONFIDENCE_THRESHOLD,
    REPLACEABLE_SLOTS,
    SINGLE_VALUE_SLOTS,
    EntityValue,
    MergeContext,
    require_slot,
    slot_category,
)
from chatctx.errors import EntityValidationError
from chatctx.logging import get_logger

logger = get_logger(__name__)

AdditiveValues = tuple[EntityValue[str], ...]


@dataclass(frozen=True)
class AccumulatedEntities:
    """
    Every entity slot known for one conversation session.

    Instances are never mutated: each ``with_*`` method returns a new
    aggregate with ``last_updated`` refreshed and ``total_extractions``
    increased by the number of submitted values.
    """

    goals: AdditiveValues = ()
    decision_makers: AdditiveValues = ()
    pain_points: AdditiveValues = ()
    integration_needs: AdditiveValues = ()
    evaluation_criteria: AdditiveValues = ()

    budget: EntityValue[str] | None = None
    timeline: EntityValue[str] | None = None
    urgency: EntityValue[str] | None = None
    contact_method: EntityValue[str] | None = None

    visitor_name: EntityValue[str] | None = None
    role: EntityValue[str] | None = None
    industry: EntityValue[str] | None = None
    company: EntityValue[str] | None = None
    team_size: EntityValue[str] | None = None

    last_updated: datetime = field(default_factory=utcnow)
    total_extractions: int = 0
    normalization: NormalizationConfig = field(default=DEFAULT_NORMALIZATION, compare=False, repr=False)

    def __post_init__(self) -> None:
        for slot in ADDITIVE_SLOTS:
            # Accept any sequence but store a tuple so callers cannot alias it.
            object.__setattr__(self, slot, tuple(getattr(self, slot)))
        self._validate()

    @classmethod
    def create(cls, **props: Any) -> AccumulatedEntities:
        return cls(**props)

    def _validate(self) -> None:
        if isinstance(self.total_extractions, bool) or not isinstance(self.total_extractions, int):
            raise EntityValidationError(
                "Total extractions must be an integer",
                rule="total_type",
                context={"total_extractions": self.total_extractions},
            )
        if self.total_extractions < 0:
            raise EntityValidationError(
                "Total extractions cannot be negative",
                rule="negative_total",
                context={"total_extractions": self.total_extractions},
            )
        for slot, entity in self.iter_entities():
            if not isinstance(entity, EntityValue):
                raise EntityValidationError(
                    f"Slot {slot!r} holds a non-entity value",
                    rule="entity_type",
                    context={"slot": slot, "type": type(entity).__name__},
                )
            if not 0.0 <= entity.confidence <= 1.0:
                raise EntityValidationError(
                    "Invalid confidence scores detected. All confidence scores must be between 0 and 1",
                    rule="confidence_range",
                    context={"slot": slot, "confidence": entity.confidence},
                )
        for slot in ADDITIVE_SLOTS:
            keys = [normalize(e.value, self.normalization) for e in getattr(self, slot)]
            if len(keys) != len(set(keys)):
                raise EntityValidationError(
                    f"Slot {slot!r} contains duplicate values",
                    rule="additive_duplicate",
                    context={"slot": slot},
                )

    def _evolve(self, submitted: int, **changes: Any) -> AccumulatedEntities:
        return dataclasses.replace(
            self,
            last_updated=utcnow(),
            total_extractions=self.total_extractions + submitted,
            **changes,
        )

    # -- accessors ----------------------------------------------------------

    def get(self, slot: str) -> AdditiveValues | EntityValue[str] | None:
        slot_category(slot)
        return getattr(self, slot)

    def iter_entities(self) -> Iterator[tuple[str, EntityValue[Any]]]:
        """Yield ``(slot, entity)`` for every stored value, additive slots first."""
        for slot in ADDITIVE_SLOTS:
            for entity in getattr(self, slot):
                yield slot, entity
        for slot in SINGLE_VALUE_SLOTS:
            entity = getattr(self, slot)
            if entity is not None:
                yield slot, entity

    # -- merge operations ---------------------------------------------------

    def with_additive(
        self,
        slot: str,
        values: Sequence[str],
        message_id: str,
        confidence: float = DEFAULT_CONFIDENCE,
    ) -> AccumulatedEntities:
        require_slot(slot, "additive")
        if isinstance(values, str):
            values = [values]
        ctx = MergeContext.now(message_id, confidence)
        merged = merge.apply_additive(getattr(self, slot), values, ctx, config=self.normalization)
        return self._evolve(len(values), **{slot: tuple(merged)})

    def with_replaceable(
        self,
        slot: str,
        value: Any,
        message_id: str,
        confidence: float = DEFAULT_CONFIDENCE,
    ) -> AccumulatedEntities:
        require_slot(slot, "replaceable")
        ctx = MergeContext.now(message_id, confidence)
        return self._evolve(1, **{slot: merge.apply_replaceable(value, ctx)})

    def with_confidence_based(
        self,
        slot: str,
        value: Any,
        message_id: str,
        confidence: float = DEFAULT_CONFIDENCE,
        threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
    ) -> AccumulatedEntities:
        require_slot(slot, "confidence_based")
        ctx = MergeContext.now(message_id, confidence)
        kept = merge.apply_confidence_based(getattr(self, slot), value, ctx, threshold)
        return self._evolve(1, **{slot: kept})

    def with_removed(self, slot: str, value: str, message_id: str) -> AccumulatedEntities:
        """Remove every near-duplicate of *value* from an additive slot."""
        require_slot(slot, "additive")
        remaining = merge.remove_from_additive(getattr(self, slot), value, self.normalization)
        logger.debug(
            "Removed additive entity values",
            slot=slot,
            removed=len(getattr(self, slot)) - len(remaining),
            source_message_id=message_id,
        )
        return self._evolve(1, **{slot: tuple(remaining)})

    def with_corrected(
        self,
        slot: str,
        value: Any,
        message_id: str,
        confidence: float = DEFAULT_CONFIDENCE,
    ) -> AccumulatedEntities:
        require_slot(slot, ("replaceable", "confidence_based"))
        ctx = MergeContext.now(message_id, confidence)
        return self._evolve(1, **{slot: merge.apply_correction(value, ctx)})

    # -- read-only queries --------------------------------------------------

    def summary(self) -> dict[str, list[Any] | Any]:
        """Flatten current values: lists for additive slots, scalars or None otherwise."""
        out: dict[str, list[Any] | Any] = {}
        for slot in ADDITIVE_SLOTS:
            out[slot] = [e.value for e in getattr(self, slot)]
        for slot in SINGLE_VALUE_SLOTS:
            entity = getattr(self, slot)
            out[slot] = entity.value if entity is not None else None
        return out

    def counts_by_category(self) -> dict[str, int]:
        return {
            "additive": sum(len(getattr(self, s)) for s in ADDITIVE_SLOTS),
            "replaceable": sum(1 for s in REPLACEABLE_SLOTS if getattr(self, s) is not None),
            "confidence_based": sum(1 for s in CONFIDENCE_SLOTS if getattr(self, s) is not None),
        }

    def is_empty(self) -> bool:
        return self.total_extractions == 0

    def average_confidence(self) -> float:
        return stats.average_confidence(self)

    def count_above_confidence(self, threshold: float = DEFAULT_CONFIDENCE_THRESHOLD) -> int:
        return stats.count_above_confidence(self, threshold)

    def oldest_extraction(self) -> datetime | None:
        return stats.oldest_extraction(self)

    def newest_extraction(self) -> datetime | None:
        return stats.newest_extraction(self)
