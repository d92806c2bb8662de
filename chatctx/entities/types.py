"""Entity value and slot registry shared by the merge engine, aggregate and codec."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generic, Literal, TypeAlias, TypeVar

from chatctx.dates import utcnow
from chatctx.errors import EntityValidationError

T = TypeVar("T")

SlotCategory: TypeAlias = Literal["additive", "replaceable", "confidence_based"]

ADDITIVE_SLOTS: tuple[str, ...] = (
    "goals",
    "decision_makers",
    "pain_points",
    "integration_needs",
    "evaluation_criteria",
)
REPLACEABLE_SLOTS: tuple[str, ...] = (
    "budget",
    "timeline",
    "urgency",
    "contact_method",
)
CONFIDENCE_SLOTS: tuple[str, ...] = (
    "visitor_name",
    "role",
    "industry",
    "company",
    "team_size",
)
SINGLE_VALUE_SLOTS: tuple[str, ...] = REPLACEABLE_SLOTS + CONFIDENCE_SLOTS
ALL_SLOTS: tuple[str, ...] = ADDITIVE_SLOTS + SINGLE_VALUE_SLOTS

_SLOT_CATEGORIES: dict[str, SlotCategory] = {
    **{slot: "additive" for slot in ADDITIVE_SLOTS},
    **{slot: "replaceable" for slot in REPLACEABLE_SLOTS},
    **{slot: "confidence_based" for slot in CONFIDENCE_SLOTS},
}

# Persisted records use camelCase keys.
_RECORD_KEYS: dict[str, str] = {
    "goals": "goals",
    "decision_makers": "decisionMakers",
    "pain_points": "painPoints",
    "integration_needs": "integrationNeeds",
    "evaluation_criteria": "evaluationCriteria",
    "budget": "budget",
    "timeline": "timeline",
    "urgency": "urgency",
    "contact_method": "contactMethod",
    "visitor_name": "visitorName",
    "role": "role",
    "industry": "industry",
    "company": "company",
    "team_size": "teamSize",
}
_SLOTS_BY_RECORD_KEY: dict[str, str] = {v: k for k, v in _RECORD_KEYS.items()}

DEFAULT_CONFIDENCE = 0.9
DEFAULT_CONFIDENCE_THRESHOLD = 0.7


def slot_category(slot: str) -> SlotCategory:
    """Return the fixed merge category of *slot*, raising for unknown names."""
    try:
        return _SLOT_CATEGORIES[slot]
    except KeyError:
        raise EntityValidationError(
            f"Unknown entity slot: {slot!r}",
            rule="unknown_slot",
            context={"slot": slot},
        ) from None


def record_key(slot: str) -> str:
    return _RECORD_KEYS[slot]


def slot_for_name(name: str) -> str | None:
    """Resolve a slot from either its python name or its record key."""
    if name in _SLOT_CATEGORIES:
        return name
    return _SLOTS_BY_RECORD_KEY.get(name)


def require_slot(slot: str, category: SlotCategory | tuple[SlotCategory, ...]) -> None:
    allowed = (category,) if isinstance(category, str) else category
    actual = slot_category(slot)
    if actual not in allowed:
        raise EntityValidationError(
            f"Slot {slot!r} is {actual}, expected {' or '.join(allowed)}",
            rule="slot_category_mismatch",
            context={"slot": slot, "category": actual, "expected": list(allowed)},
        )


def validate_confidence(confidence: Any, *, field: str = "confidence") -> float:
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        raise EntityValidationError(
            f"{field} must be a number between 0 and 1",
            rule="confidence_type",
            context={field: confidence},
        )
    if not 0.0 <= confidence <= 1.0:
        raise EntityValidationError(
            f"{field} must be between 0 and 1, got {confidence}",
            rule="confidence_range",
            context={field: confidence},
        )
    return float(confidence)


@dataclass(frozen=True)
class EntityValue(Generic[T]):
    """A single extracted value with its provenance."""

    value: T
    extracted_at: datetime
    confidence: float
    source_message_id: str

    def __post_init__(self) -> None:
        validate_confidence(self.confidence)


@dataclass(frozen=True)
class MergeContext:
    """Provenance stamped onto every value produced by one merge call."""

    confidence: float
    timestamp: datetime
    source_message_id: str

    def __post_init__(self) -> None:
        validate_confidence(self.confidence)

    @classmethod
    def now(cls, source_message_id: str, confidence: float = DEFAULT_CONFIDENCE) -> MergeContext:
        return cls(confidence=confidence, timestamp=utcnow(), source_message_id=source_message_id)

    def wrap(self, value: T) -> EntityValue[T]:
        return EntityValue(
            value=value,
            extracted_at=self.timestamp,
            confidence=self.confidence,
            source_message_id=self.source_message_id,
        )
