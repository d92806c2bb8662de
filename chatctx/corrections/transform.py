"""Build a correction ledger from a raw extractor ``corrections`` payload."""

from __future__ import annotations

from typing import Any

from chatctx.corrections.ledger import (
    CORRECTION_SLOTS,
    REMOVAL_SLOTS,
    CorrectionLedger,
    correction_record_key,
    removal_record_key,
)
from chatctx.entities.types import DEFAULT_CONFIDENCE
from chatctx.logging import get_logger

logger = get_logger(__name__)

_REMOVAL_REASONS = {
    "decision_makers": "Explicitly stated as not a decision maker",
    "pain_points": "Explicitly stated as resolved or not applicable",
    "integration_needs": "Explicitly stated as not needed",
    "evaluation_criteria": "Explicitly stated as not important",
}
_CORRECTION_REASONS = {
    "budget": "Budget explicitly corrected",
    "timeline": "Timeline explicitly corrected",
    "urgency": "Urgency explicitly corrected",
    "contact_method": "Contact method explicitly corrected",
    "role": "Role explicitly corrected",
    "industry": "Industry explicitly corrected",
    "company": "Company explicitly corrected",
    "team_size": "Team size explicitly corrected",
}


def _is_valid_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _is_empty_payload(corrections: dict[str, Any]) -> bool:
    for slot in REMOVAL_SLOTS:
        items = corrections.get(removal_record_key(slot))
        if isinstance(items, list) and any(_is_valid_text(i) for i in items):
            return False
    return not any(_is_valid_text(corrections.get(correction_record_key(slot))) for slot in CORRECTION_SLOTS)


def corrections_from_payload(
    payload: Any,
    session_id: str,
    message_id: str,
    default_confidence: float = DEFAULT_CONFIDENCE,
) -> CorrectionLedger | None:
    """Return a ledger for this turn's corrections, or None when there are none.

    Removals are recorded before corrections. Blank or non-string items are
    skipped; validation failures on the ids or confidence propagate.
    """
    corrections = payload.get("corrections") if isinstance(payload, dict) else None
    if not isinstance(corrections, dict) or _is_empty_payload(corrections):
        return None

    ledger = CorrectionLedger.create(session_id)
    skipped = 0
    for slot in REMOVAL_SLOTS:
        items = corrections.get(removal_record_key(slot)) or []
        if not isinstance(items, list):
            skipped += 1
            continue
        for item in items:
            if not _is_valid_text(item):
                skipped += 1
                continue
            ledger = ledger.with_removed_entity(
                slot,
                item,
                message_id,
                default_confidence,
                _REMOVAL_REASONS[slot],
            )
    for slot in CORRECTION_SLOTS:
        value = corrections.get(correction_record_key(slot))
        if value is None:
            continue
        if not _is_valid_text(value):
            skipped += 1
            continue
        ledger = ledger.with_corrected_entity(
            slot,
            value,
            message_id,
            None,
            default_confidence,
            _CORRECTION_REASONS[slot],
        )

    if skipped:
        logger.debug(
            "Skipped invalid correction items",
            session_id=session_id,
            message_id=message_id,
            skipped=skipped,
        )
    return ledger
