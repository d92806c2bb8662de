import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from chatctx.dates import format_date, is_valid_iso_string
from chatctx.entities import AccumulatedEntities, EntityValue, NormalizationConfig
from chatctx.entities import codec
from chatctx.entities.accumulation import build_entity_context_prompt

_FIXTURE_DIR = Path(__file__).parent / "fixtures" / "entity_records"


def _load_fixture(name: str) -> dict:
    return json.loads((_FIXTURE_DIR / name).read_text(encoding="utf-8"))


def _populated() -> AccumulatedEntities:
    entities = AccumulatedEntities.create()
    entities = entities.with_additive("decision_makers", ["John Doe", "Jane Smith"], "msg-1", 0.8)
    entities = entities.with_additive("pain_points", ["Slow reporting"], "msg-2")
    entities = entities.with_replaceable("budget", "$75K", "msg-3")
    entities = entities.with_confidence_based("role", "CTO", "msg-4", 0.6)
    return entities


def test_serialize_emits_every_slot_with_iso_dates() -> None:
    record = codec.serialize(_populated())

    assert record["decisionMakers"][0]["value"] == "John Doe"
    assert record["decisionMakers"][0]["sourceMessageId"] == "msg-1"
    assert is_valid_iso_string(record["decisionMakers"][0]["extractedAt"])
    assert record["goals"] == []
    assert record["timeline"] is None
    assert record["teamSize"] is None
    assert record["totalExtractions"] == 5
    assert is_valid_iso_string(record["lastUpdated"])


def test_round_trip_preserves_cardinality_and_timestamps() -> None:
    record = codec.serialize(_populated())
    restored = codec.deserialize(json.loads(json.dumps(record)))

    assert codec.serialize(restored) == record
    assert restored.counts_by_category() == _populated().counts_by_category()


def test_round_trip_reports_no_warnings() -> None:
    result = codec.deserialize_detailed(codec.serialize(_populated()))
    assert result.warnings == []
    assert not result.degraded


@pytest.mark.parametrize("raw", [None, 42, "oops", ["John"], 3.5])
def test_non_object_input_yields_empty_aggregate(raw) -> None:
    entities = codec.deserialize(raw)
    assert entities.is_empty()
    assert entities.summary()["decision_makers"] == []


def test_zero_confidence_survives_round_trip() -> None:
    raw = {"role": {"value": "Intern", "confidence": 0, "sourceMessageId": "m", "extractedAt": "2024-01-01T00:00:00.000Z"}}
    assert codec.deserialize(raw).role.confidence == 0.0


def test_naive_timestamps_are_read_as_utc() -> None:
    raw = {"budget": {"value": "$1", "extractedAt": "2024-01-01T12:00:00", "confidence": 0.5}}
    entity = codec.deserialize(raw).budget
    assert entity.extracted_at == datetime(2024, 1, 1, 12, tzinfo=timezone.utc)


def test_single_slot_bare_string_is_wrapped_as_legacy() -> None:
    entity = codec.deserialize({"urgency": "high"}).urgency
    assert entity.value == "high"
    assert entity.confidence == 0.5
    assert entity.source_message_id == "legacy"


def test_migrate_legacy_data_tags_migrated_strings() -> None:
    entities = codec.migrate_legacy_data({"painPoints": ["Churn"]})
    assert entities.pain_points[0].source_message_id == "legacy-migration"


def test_deserialize_logs_degradation(monkeypatch) -> None:
    calls: list[tuple[str, dict]] = []

    def _capture_warning(event, **kwargs):
        calls.append((event, kwargs))

    monkeypatch.setattr(codec.logger, "warning", _capture_warning)
    codec.deserialize({"decisionMakers": ["John"]})

    assert len(calls) == 1
    # One wrapped legacy string plus the missing lastUpdated.
    assert calls[0][1]["warning_count"] == 2
    assert any("legacy" in s for s in calls[0][1]["samples"])


@pytest.mark.golden
def test_golden_legacy_string_arrays() -> None:
    case = _load_fixture("legacy_string_arrays.json")
    result = codec.deserialize_detailed(case["record"])
    summary = result.entities.summary()

    for slot, expected in case["expected_summary"].items():
        assert summary[slot] == expected
    for slot, source in case["expected_sources"].items():
        value = getattr(result.entities, slot)
        entity = value[0] if isinstance(value, tuple) else value
        assert entity.source_message_id == source
    assert result.entities.total_extractions == case["expected_total_extractions"]
    assert format_date(result.entities.last_updated) == case["expected_last_updated"]
    assert any("duplicate" in w for w in result.warnings)
    assert any("role: unparseable date" in w for w in result.warnings)


@pytest.mark.golden
def test_golden_malformed_entities_are_dropped_individually() -> None:
    case = _load_fixture("malformed_entities.json")
    result = codec.deserialize_detailed(case["record"])
    summary = result.entities.summary()

    for slot, expected in case["expected_summary"].items():
        assert summary[slot] == expected
    assert result.entities.total_extractions == case["expected_total_extractions"]
    assert len(result.warnings) >= case["expected_min_warnings"]


class TestValidateSerializedEntity:
    def test_none_is_valid(self) -> None:
        assert codec.validate_serialized_entity(None).is_valid

    def test_non_object_is_invalid(self) -> None:
        result = codec.validate_serialized_entity("John")
        assert not result.is_valid
        assert result.errors == ["Entity must be an object"]

    def test_missing_fields_produce_warnings(self) -> None:
        result = codec.validate_serialized_entity({"value": "John", "extractedAt": "yesterday"})
        assert result.is_valid
        assert len(result.warnings) == 3

    def test_bad_confidence_is_an_error(self) -> None:
        result = codec.validate_serialized_entity({"value": "x", "confidence": 2})
        assert not result.is_valid


def test_is_valid_iso_string_requires_canonical_form() -> None:
    assert is_valid_iso_string("2024-01-01T00:00:00.000Z")
    assert not is_valid_iso_string("2024-01-01T00:00:00Z")
    assert not is_valid_iso_string("soon")
    assert not is_valid_iso_string(None)


def test_serialize_entity_none() -> None:
    assert codec.serialize_entity(None) is None
    entity = EntityValue("x", datetime(2024, 5, 1, tzinfo=timezone.utc), 0.5, "m")
    assert codec.serialize_entity(entity)["extractedAt"] == "2024-05-01T00:00:00.000Z"


@pytest.mark.parametrize(
    "raw",
    [
        {"budget": {"value": "$1", "confidence": 0.5, "extractedAt": 10**400}},
        {"budget": {"value": "$1", "confidence": 0.5, "extractedAt": "0001-01-01T00:00:00+01:00"}},
        {"totalExtractions": 10**400},
    ],
)
def test_out_of_range_numbers_and_dates_degrade(raw) -> None:
    result = codec.deserialize_detailed(raw)
    assert result.degraded
    assert result.entities.total_extractions == 0
    if "budget" in raw:
        assert result.entities.budget.value == "$1"
        assert any("budget: unparseable date" in w for w in result.warnings)


def test_structural_failure_drops_only_that_entity(monkeypatch) -> None:
    real = codec._entity_from_payload

    def _explode_on_jane(payload, **kwargs):
        if getattr(payload, "value", None) == "Jane":
            raise TypeError("unexpected shape")
        return real(payload, **kwargs)

    monkeypatch.setattr(codec, "_entity_from_payload", _explode_on_jane)
    result = codec.deserialize_detailed({"decisionMakers": ["John", "Jane"]})

    assert result.entities.summary()["decision_makers"] == ["John"]
    assert any("decision_makers[1]: dropped malformed entity (TypeError)" == w for w in result.warnings)


def test_additive_slots_only_keep_text_values() -> None:
    raw = {
        "decisionMakers": [
            {"value": 42, "confidence": 0.9},
            {"value": "   ", "confidence": 0.9},
            {"value": "Dana", "confidence": 0.9},
        ],
        "teamSize": {"value": 50, "confidence": 0.9},
    }
    result = codec.deserialize_detailed(raw)

    assert result.entities.summary()["decision_makers"] == ["Dana"]
    assert result.entities.team_size.value == 50
    assert any("non-text value of type int" in w for w in result.warnings)
    build_entity_context_prompt(result.entities)


def test_round_trip_keeps_configured_normalization() -> None:
    case_sensitive = NormalizationConfig(lowercase=False)
    entities = AccumulatedEntities.create(normalization=case_sensitive)
    entities = entities.with_additive("goals", ["Foo", "foo"], "msg-1")

    result = codec.deserialize_detailed(codec.serialize(entities), normalization=case_sensitive)

    assert result.warnings == []
    assert result.entities.summary()["goals"] == ["Foo", "foo"]
    assert result.entities.normalization == case_sensitive
    assert len(codec.migrate_legacy_data(codec.serialize(entities), case_sensitive).goals) == 2
    # The default normalization still collapses them.
    assert len(codec.deserialize(codec.serialize(entities)).goals) == 1
