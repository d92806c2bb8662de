"""Audit trail of user-disputed entities, kept apart from the live aggregate."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Mapping

from chatctx.dates import format_date, parse_date_or_none, utcnow
from chatctx.entities.types import DEFAULT_CONFIDENCE, record_key
from chatctx.errors import CorrectionValidationError
from chatctx.logging import get_logger

logger = get_logger(__name__)

REMOVAL_SLOTS: tuple[str, ...] = (
    "decision_makers",
    "pain_points",
    "integration_needs",
    "evaluation_criteria",
)
CORRECTION_SLOTS: tuple[str, ...] = (
    "budget",
    "timeline",
    "urgency",
    "contact_method",
    "role",
    "industry",
    "company",
    "team_size",
)

_REMOVAL_LABELS = {
    "decision_makers": "decision maker(s)",
    "pain_points": "pain point(s)",
    "integration_needs": "integration need(s)",
    "evaluation_criteria": "evaluation criteria item(s)",
}
_CORRECTION_LABELS = {
    "budget": "Budget",
    "timeline": "Timeline",
    "urgency": "Urgency",
    "contact_method": "Contact method",
    "role": "Role",
    "industry": "Industry",
    "company": "Company",
    "team_size": "Team size",
}


def removal_record_key(slot: str) -> str:
    key = record_key(slot)
    return "removed" + key[0].upper() + key[1:]


def correction_record_key(slot: str) -> str:
    key = record_key(slot)
    return "corrected" + key[0].upper() + key[1:]


# -- validation ---------------------------------------------------------------

def validate_session_id(session_id: Any) -> str:
    if not isinstance(session_id, str) or not session_id.strip():
        raise CorrectionValidationError(
            "Session ID is required for entity corrections",
            rule="empty_session_id",
            context={"session_id": session_id},
        )
    return session_id


def _validate_text(value: Any, *, field_name: str, rule: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise CorrectionValidationError(
            f"{field_name} must be a non-empty string",
            rule=rule,
            context={field_name: value},
        )
    return value.strip()


def _validate_confidence(confidence: Any) -> float:
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)) or not 0.0 <= confidence <= 1.0:
        raise CorrectionValidationError(
            "Correction confidence must be between 0 and 1",
            rule="confidence_range",
            context={"confidence": confidence},
        )
    return float(confidence)


def _validate_slot(slot: str, allowed: tuple[str, ...], kind: str) -> None:
    if slot not in allowed:
        raise CorrectionValidationError(
            f"Entity type {slot!r} does not support {kind}",
            rule="unsupported_slot",
            context={"slot": slot, "allowed": list(allowed)},
        )


# -- records ------------------------------------------------------------------

@dataclass(frozen=True)
class CorrectionMetadata:
    timestamp: datetime
    source_message_id: str
    confidence: float
    reason: str | None = None

    @classmethod
    def create(cls, message_id: str, confidence: float, reason: str | None = None) -> CorrectionMetadata:
        return cls(
            timestamp=utcnow(),
            source_message_id=_validate_text(message_id, field_name="message_id", rule="empty_message_id"),
            confidence=_validate_confidence(confidence),
            reason=reason.strip() if reason and reason.strip() else None,
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "timestamp": format_date(self.timestamp),
            "sourceMessageId": self.source_message_id,
            "confidence": self.confidence,
            "correctionReason": self.reason,
        }

    @classmethod
    def from_record(cls, raw: Any) -> CorrectionMetadata:
        if not isinstance(raw, dict):
            raise CorrectionValidationError(
                "Correction metadata must be an object",
                rule="metadata_type",
                context={"metadata": raw},
            )
        timestamp = parse_date_or_none(raw.get("timestamp"))
        reason = raw.get("correctionReason")
        return cls(
            timestamp=timestamp or utcnow(),
            source_message_id=_validate_text(
                raw.get("sourceMessageId"), field_name="sourceMessageId", rule="empty_message_id"
            ),
            confidence=_validate_confidence(raw.get("confidence")),
            reason=reason if isinstance(reason, str) and reason.strip() else None,
        )


@dataclass(frozen=True)
class RemovalRecord:
    entity_value: str
    metadata: CorrectionMetadata

    def to_record(self) -> dict[str, Any]:
        return {"entityValue": self.entity_value, "metadata": self.metadata.to_record()}

    @classmethod
    def from_record(cls, raw: Any) -> RemovalRecord:
        if not isinstance(raw, dict):
            raise CorrectionValidationError("Removal record must be an object", rule="record_type")
        return cls(
            entity_value=_validate_text(raw.get("entityValue"), field_name="entityValue", rule="empty_value"),
            metadata=CorrectionMetadata.from_record(raw.get("metadata")),
        )


@dataclass(frozen=True)
class CorrectionRecord:
    new_value: str
    metadata: CorrectionMetadata
    previous_value: str | None = None

    def to_record(self) -> dict[str, Any]:
        return {
            "newValue": self.new_value,
            "previousValue": self.previous_value,
            "metadata": self.metadata.to_record(),
        }

    @classmethod
    def from_record(cls, raw: Any) -> CorrectionRecord:
        if not isinstance(raw, dict):
            raise CorrectionValidationError("Correction record must be an object", rule="record_type")
        previous = raw.get("previousValue")
        return cls(
            new_value=_validate_text(raw.get("newValue"), field_name="newValue", rule="empty_value"),
            metadata=CorrectionMetadata.from_record(raw.get("metadata")),
            previous_value=previous.strip() if isinstance(previous, str) and previous.strip() else None,
        )


# -- ledger -------------------------------------------------------------------

@dataclass(frozen=True, eq=False)
class CorrectionLedger:
    """
    Removals and corrections recorded for one session.

    Additive slots accumulate removal records. Single-value slots hold only
    the latest correction, yet ``total_corrections`` still counts every call.
    """

    session_id: str
    removals: Mapping[str, tuple[RemovalRecord, ...]] = field(default_factory=dict)
    corrections: Mapping[str, CorrectionRecord | None] = field(default_factory=dict)
    total_corrections: int = 0
    last_correction_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        validate_session_id(self.session_id)
        if isinstance(self.total_corrections, bool) or not isinstance(self.total_corrections, int):
            raise CorrectionValidationError(
                "Total corrections must be an integer",
                rule="total_type",
                context={"total_corrections": self.total_corrections},
            )
        if self.total_corrections < 0:
            raise CorrectionValidationError(
                "Total corrections cannot be negative",
                rule="negative_total",
                context={"total_corrections": self.total_corrections},
            )
        for slot in self.removals:
            _validate_slot(slot, REMOVAL_SLOTS, "removal")
        for slot in self.corrections:
            _validate_slot(slot, CORRECTION_SLOTS, "correction")
        removals = {slot: tuple(self.removals.get(slot, ())) for slot in REMOVAL_SLOTS}
        corrections = {slot: self.corrections.get(slot) for slot in CORRECTION_SLOTS}
        object.__setattr__(self, "removals", MappingProxyType(removals))
        object.__setattr__(self, "corrections", MappingProxyType(corrections))

    @classmethod
    def create(
        cls,
        session_id: str,
        *,
        removals: Mapping[str, tuple[RemovalRecord, ...] | list[RemovalRecord]] | None = None,
        corrections: Mapping[str, CorrectionRecord | None] | None = None,
    ) -> CorrectionLedger:
        """New ledger whose total is derived from the initial records."""
        validate_session_id(session_id)
        removals = dict(removals or {})
        corrections = dict(corrections or {})
        total = sum(len(records) for records in removals.values())
        total += sum(1 for record in corrections.values() if record is not None)
        return cls(
            session_id=session_id,
            removals={slot: tuple(records) for slot, records in removals.items()},
            corrections=corrections,
            total_corrections=total,
        )

    # -- mutators -------------------------------------------------------------

    def with_removed_entity(
        self,
        slot: str,
        value: str,
        message_id: str,
        confidence: float = DEFAULT_CONFIDENCE,
        reason: str | None = None,
    ) -> CorrectionLedger:
        _validate_slot(slot, REMOVAL_SLOTS, "removal")
        record = RemovalRecord(
            entity_value=_validate_text(value, field_name="entity_value", rule="empty_value"),
            metadata=CorrectionMetadata.create(message_id, confidence, reason),
        )
        removals = dict(self.removals)
        removals[slot] = (*self.removals[slot], record)
        updated = dataclasses.replace(
            self,
            removals=removals,
            total_corrections=self.total_corrections + 1,
            last_correction_at=record.metadata.timestamp,
        )
        logger.debug(
            "Correction ledger recorded removal",
            session_id=self.session_id,
            slot=slot,
            total_corrections=updated.total_corrections,
        )
        return updated

    def with_corrected_entity(
        self,
        slot: str,
        new_value: str,
        message_id: str,
        previous_value: str | None = None,
        confidence: float = DEFAULT_CONFIDENCE,
        reason: str | None = None,
    ) -> CorrectionLedger:
        _validate_slot(slot, CORRECTION_SLOTS, "correction")
        if previous_value is not None and not isinstance(previous_value, str):
            raise CorrectionValidationError(
                "previous_value must be a string",
                rule="previous_value_type",
                context={"previous_value": previous_value},
            )
        record = CorrectionRecord(
            new_value=_validate_text(new_value, field_name="new_value", rule="empty_value"),
            metadata=CorrectionMetadata.create(message_id, confidence, reason),
            previous_value=previous_value.strip() if previous_value and previous_value.strip() else None,
        )
        corrections = dict(self.corrections)
        corrections[slot] = record
        updated = dataclasses.replace(
            self,
            corrections=corrections,
            total_corrections=self.total_corrections + 1,
            last_correction_at=record.metadata.timestamp,
        )
        logger.debug(
            "Correction ledger recorded correction",
            session_id=self.session_id,
            slot=slot,
            replaced=self.corrections[slot] is not None,
            total_corrections=updated.total_corrections,
        )
        return updated

    # -- queries --------------------------------------------------------------

    def removed(self, slot: str) -> tuple[RemovalRecord, ...]:
        _validate_slot(slot, REMOVAL_SLOTS, "removal")
        return self.removals[slot]

    def correction(self, slot: str) -> CorrectionRecord | None:
        _validate_slot(slot, CORRECTION_SLOTS, "correction")
        return self.corrections[slot]

    def has_removals(self) -> bool:
        return any(self.removals.values())

    def has_corrections(self) -> bool:
        return any(record is not None for record in self.corrections.values())

    def is_empty(self) -> bool:
        return not self.has_removals() and not self.has_corrections()

    def get_correction_summary(self) -> list[str]:
        """Human-readable lines, removals first."""
        summary: list[str] = []
        for slot in REMOVAL_SLOTS:
            count = len(self.removals[slot])
            if count:
                summary.append(f"{count} {_REMOVAL_LABELS[slot]} removed")
        for slot in CORRECTION_SLOTS:
            record = self.corrections[slot]
            if record is not None:
                summary.append(f"{_CORRECTION_LABELS[slot]} corrected to {record.new_value}")
        return summary

    # -- persistence ----------------------------------------------------------

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {}
        for slot in REMOVAL_SLOTS:
            record[removal_record_key(slot)] = [r.to_record() for r in self.removals[slot]]
        for slot in CORRECTION_SLOTS:
            correction = self.corrections[slot]
            record[correction_record_key(slot)] = correction.to_record() if correction else None
        record["totalCorrections"] = self.total_corrections
        record["lastCorrectionAt"] = format_date(self.last_correction_at)
        record["correctionSessionId"] = self.session_id
        return record

    @classmethod
    def from_record(cls, raw: Any) -> CorrectionLedger:
        """Rebuild a ledger; unlike entity records, invalid content raises."""
        if not isinstance(raw, dict):
            raise CorrectionValidationError(
                "Correction ledger record must be an object",
                rule="record_type",
                context={"type": type(raw).__name__},
            )
        removals: dict[str, tuple[RemovalRecord, ...]] = {}
        for slot in REMOVAL_SLOTS:
            items = raw.get(removal_record_key(slot)) or []
            if not isinstance(items, list):
                raise CorrectionValidationError(
                    f"{removal_record_key(slot)} must be a list",
                    rule="record_type",
                )
            removals[slot] = tuple(RemovalRecord.from_record(item) for item in items)
        corrections: dict[str, CorrectionRecord | None] = {}
        for slot in CORRECTION_SLOTS:
            item = raw.get(correction_record_key(slot))
            corrections[slot] = CorrectionRecord.from_record(item) if item is not None else None

        total = raw.get("totalCorrections")
        if total is None:
            total = sum(len(r) for r in removals.values()) + sum(1 for c in corrections.values() if c)
        return cls(
            session_id=raw.get("correctionSessionId"),
            removals=removals,
            corrections=corrections,
            total_corrections=total,
            last_correction_at=parse_date_or_none(raw.get("lastCorrectionAt")) or utcnow(),
        )
