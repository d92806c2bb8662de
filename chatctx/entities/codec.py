"""Conversion between AccumulatedEntities and plain persisted records.

Serialization is strict. Deserialization never raises: malformed or legacy
input degrades to safe defaults and every substitution is reported through
``DeserializeResult.warnings``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

from chatctx.dates import format_date, is_valid_iso_string, parse_date, utcnow
from chatctx.entities.aggregate import AccumulatedEntities
from chatctx.entities.merge import deduplicate
from chatctx.entities.normalize import DEFAULT_NORMALIZATION, NormalizationConfig
from chatctx.entities.types import (
    ADDITIVE_SLOTS,
    SINGLE_VALUE_SLOTS,
    EntityValue,
    record_key,
)
from chatctx.errors import EntityValidationError
from chatctx.logging import get_logger

logger = get_logger(__name__)

LEGACY_CONFIDENCE = 0.5
LEGACY_SOURCE = "legacy"
LEGACY_MIGRATION_SOURCE = "legacy-migration"
UNKNOWN_SOURCE = "unknown"
_WARNING_LOG_SAMPLE_LIMIT = 3


@dataclass
class DeserializeResult:
    entities: AccumulatedEntities
    warnings: list[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.warnings)


@dataclass(frozen=True)
class EntityValidationResult:
    is_valid: bool
    errors: list[str]
    warnings: list[str]


# Stored payload shapes, tagged so each is handled explicitly.
@dataclass(frozen=True)
class _LegacyString:
    value: str


@dataclass(frozen=True)
class _EntityPayload:
    data: dict[str, Any]


@dataclass(frozen=True)
class _Unrecognized:
    raw: Any


def _classify(item: Any) -> _LegacyString | _EntityPayload | _Unrecognized:
    if isinstance(item, str):
        return _LegacyString(item)
    if isinstance(item, dict):
        return _EntityPayload(item)
    return _Unrecognized(item)


# -- serialize ----------------------------------------------------------------

def serialize_entity(entity: EntityValue[Any] | None) -> dict[str, Any] | None:
    if entity is None:
        return None
    return {
        "value": entity.value,
        "extractedAt": format_date(entity.extracted_at),
        "confidence": entity.confidence,
        "sourceMessageId": entity.source_message_id,
    }


def serialize(entities: AccumulatedEntities) -> dict[str, Any]:
    """Plain record for storage; every slot is present, unset ones empty/null."""
    record: dict[str, Any] = {}
    for slot in ADDITIVE_SLOTS:
        record[record_key(slot)] = [serialize_entity(e) for e in getattr(entities, slot)]
    for slot in SINGLE_VALUE_SLOTS:
        record[record_key(slot)] = serialize_entity(getattr(entities, slot))
    record["lastUpdated"] = format_date(entities.last_updated)
    record["totalExtractions"] = entities.total_extractions
    return record


# -- deserialize --------------------------------------------------------------

def _entity_from_payload(
    payload: _LegacyString | _EntityPayload | _Unrecognized,
    *,
    where: str,
    legacy_source: str,
    text_only: bool,
    warnings: list[str],
) -> EntityValue[Any] | None:
    if isinstance(payload, _LegacyString):
        if not payload.value.strip():
            warnings.append(f"{where}: dropped empty legacy string")
            return None
        warnings.append(f"{where}: wrapped legacy string value")
        return EntityValue(
            value=payload.value,
            extracted_at=utcnow(),
            confidence=LEGACY_CONFIDENCE,
            source_message_id=legacy_source,
        )
    if isinstance(payload, _Unrecognized):
        warnings.append(f"{where}: dropped unrecognized {type(payload.raw).__name__} entry")
        return None

    data = payload.data
    value = data.get("value")
    if value is None:
        warnings.append(f"{where}: dropped entity without value")
        return None
    # Additive values are compared by normalized text, so they must be strings.
    if text_only and (not isinstance(value, str) or not value.strip()):
        warnings.append(f"{where}: dropped non-text value of type {type(value).__name__}")
        return None

    confidence = data.get("confidence")
    if confidence is None:
        confidence = LEGACY_CONFIDENCE
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)) or not 0.0 <= confidence <= 1.0:
        warnings.append(f"{where}: dropped entity with invalid confidence {confidence!r}")
        return None

    source = data.get("sourceMessageId")
    if not isinstance(source, str) or not source.strip():
        source = UNKNOWN_SOURCE

    extracted_at = parse_date(
        data.get("extractedAt") or data.get("lastUpdated"),
        warnings,
        where=where,
    )
    return EntityValue(
        value=value,
        extracted_at=extracted_at,
        confidence=float(confidence),
        source_message_id=source,
    )


def _read_entity(item: Any, *, where: str, warnings: list[str], **options: Any) -> EntityValue[Any] | None:
    """Like :func:`_entity_from_payload`, but a failure drops only this entity."""
    try:
        return _entity_from_payload(_classify(item), where=where, warnings=warnings, **options)
    except (ValueError, TypeError, OverflowError) as exc:
        warnings.append(f"{where}: dropped malformed entity ({type(exc).__name__})")
        return None


def _deserialize_additive(
    raw: Any,
    *,
    slot: str,
    legacy_source: str,
    normalization: NormalizationConfig,
    warnings: list[str],
) -> tuple[EntityValue[str], ...]:
    if raw is None:
        return ()
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list):
        warnings.append(f"{slot}: expected a list, got {type(raw).__name__}")
        return ()
    parsed: list[EntityValue[str]] = []
    for index, item in enumerate(raw):
        entity = _read_entity(
            item,
            where=f"{slot}[{index}]",
            legacy_source=legacy_source,
            text_only=True,
            warnings=warnings,
        )
        if entity is not None:
            parsed.append(entity)
    unique = deduplicate(parsed, normalization)
    if len(unique) != len(parsed):
        warnings.append(f"{slot}: dropped {len(parsed) - len(unique)} duplicate value(s)")
    return tuple(unique)


def _total_extractions(raw: dict[str, Any], warnings: list[str]) -> int:
    total = raw.get("totalExtractions")
    if total is None:
        legacy_meta = raw.get("entityMetadata")
        if isinstance(legacy_meta, dict):
            total = legacy_meta.get("totalEntitiesExtracted")
    if total is None:
        return 0
    try:
        valid = (
            not isinstance(total, bool)
            and isinstance(total, (int, float))
            and math.isfinite(total)
            and total >= 0
        )
    except OverflowError:
        valid = False
    if not valid:
        warnings.append(f"totalExtractions: invalid value {total!r} replaced with 0")
        return 0
    return int(total)


def deserialize_detailed(
    raw: Any,
    *,
    legacy_source: str = LEGACY_SOURCE,
    normalization: NormalizationConfig | None = None,
) -> DeserializeResult:
    """Rebuild an aggregate from *raw*, collecting every substitution made.

    *normalization* should match the one the aggregate was built with so
    that values distinct under it are not collapsed on read.
    """
    norm = normalization or DEFAULT_NORMALIZATION
    warnings: list[str] = []
    if not isinstance(raw, dict):
        if raw is not None:
            warnings.append(f"record: expected an object, got {type(raw).__name__}")
        return DeserializeResult(AccumulatedEntities.create(normalization=norm), warnings)

    props: dict[str, Any] = {"normalization": norm}
    for slot in ADDITIVE_SLOTS:
        props[slot] = _deserialize_additive(
            raw.get(record_key(slot), raw.get(slot)),
            slot=slot,
            legacy_source=legacy_source,
            normalization=norm,
            warnings=warnings,
        )
    for slot in SINGLE_VALUE_SLOTS:
        stored = raw.get(record_key(slot), raw.get(slot))
        if stored is None:
            props[slot] = None
            continue
        props[slot] = _read_entity(
            stored,
            where=slot,
            legacy_source=legacy_source,
            text_only=False,
            warnings=warnings,
        )
    props["last_updated"] = parse_date(
        raw.get("lastUpdated") or raw.get("lastEntityUpdate"),
        warnings,
        where="lastUpdated",
    )
    props["total_extractions"] = _total_extractions(raw, warnings)

    try:
        entities = AccumulatedEntities.create(**props)
    except EntityValidationError as exc:
        warnings.append(f"record: rejected ({exc.rule}), using empty aggregate")
        entities = AccumulatedEntities.create(normalization=norm)
    return DeserializeResult(entities, warnings)


def deserialize(raw: Any, normalization: NormalizationConfig | None = None) -> AccumulatedEntities:
    result = deserialize_detailed(raw, normalization=normalization)
    _log_warnings(result.warnings, source=LEGACY_SOURCE)
    return result.entities


def migrate_legacy_data(raw: Any, normalization: NormalizationConfig | None = None) -> AccumulatedEntities:
    """Same as :func:`deserialize`, tagging wrapped strings as migrated."""
    result = deserialize_detailed(
        raw,
        legacy_source=LEGACY_MIGRATION_SOURCE,
        normalization=normalization,
    )
    _log_warnings(result.warnings, source=LEGACY_MIGRATION_SOURCE)
    return result.entities


def _log_warnings(warnings: list[str], *, source: str) -> None:
    if not warnings:
        return
    logger.warning(
        "Entity record degraded during deserialization",
        source=source,
        warning_count=len(warnings),
        samples=warnings[:_WARNING_LOG_SAMPLE_LIMIT],
    )


# -- validation ---------------------------------------------------------------

def validate_serialized_entity(entity: Any) -> EntityValidationResult:
    errors: list[str] = []
    warnings: list[str] = []

    if entity is None:
        return EntityValidationResult(True, errors, warnings)
    if not isinstance(entity, dict):
        errors.append("Entity must be an object")
        return EntityValidationResult(False, errors, warnings)

    if entity.get("value") is None:
        errors.append("Entity value is required")

    confidence = entity.get("confidence")
    if confidence is None:
        warnings.append("Entity confidence is missing, will use default value")
    elif isinstance(confidence, bool) or not isinstance(confidence, (int, float)) or not 0.0 <= confidence <= 1.0:
        errors.append("Entity confidence must be a number between 0 and 1")

    extracted_at = entity.get("extractedAt")
    if extracted_at and not is_valid_iso_string(extracted_at):
        warnings.append("Entity extractedAt is not a valid ISO string, will use current date")

    if not entity.get("sourceMessageId"):
        warnings.append("Entity sourceMessageId is missing, will use default value")

    return EntityValidationResult(not errors, errors, warnings)
