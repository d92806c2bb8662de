from datetime import datetime, timedelta, timezone

from chatctx.entities import AccumulatedEntities, EntityValue
from chatctx.entities import stats

_T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _aggregate() -> AccumulatedEntities:
    return AccumulatedEntities.create(
        pain_points=[EntityValue("Churn", _T0 + timedelta(minutes=2), 0.6, "msg-2")],
        budget=EntityValue("$10K", _T0, 0.8, "msg-1"),
        role=EntityValue("CTO", _T0 + timedelta(minutes=5), 1.0, "msg-2"),
        total_extractions=3,
    )


def test_empty_aggregate_statistics() -> None:
    entities = AccumulatedEntities.create()
    assert entities.average_confidence() == 0.0
    assert entities.count_above_confidence() == 0
    assert entities.oldest_extraction() is None
    assert entities.newest_extraction() is None
    assert stats.quality_score(entities) == 0
    assert stats.extraction_timeline(entities) == []


def test_confidence_statistics() -> None:
    entities = _aggregate()
    assert abs(entities.average_confidence() - 0.8) < 1e-9
    assert entities.count_above_confidence(0.7) == 2
    assert entities.count_above_confidence(0.8) == 1


def test_oldest_and_newest() -> None:
    entities = _aggregate()
    assert entities.oldest_extraction() == _T0
    assert entities.newest_extraction() == _T0 + timedelta(minutes=5)


def test_timeline_is_chronological() -> None:
    timeline = stats.extraction_timeline(_aggregate())
    assert [(e.slot, e.value) for e in timeline] == [
        ("budget", "$10K"),
        ("pain_points", "Churn"),
        ("role", "CTO"),
    ]


def test_quality_score_blends_coverage_and_confidence() -> None:
    # 3 of 14 slots filled, mean confidence 0.8.
    expected = round((0.4 * 3 / 14 + 0.6 * 0.8) * 100)
    assert stats.quality_score(_aggregate()) == expected
    assert stats.filled_slots(_aggregate()) == ["pain_points", "budget", "role"]


def test_slots_by_source() -> None:
    assert stats.slots_by_source(_aggregate(), "msg-2") == ["pain_points", "role"]
    assert stats.slots_by_source(_aggregate(), "missing") == []
