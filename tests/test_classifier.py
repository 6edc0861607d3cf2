"""記録更新の分類処理のテスト。"""

from __future__ import annotations

import pytest

from src.classifier import classify_record, classify_updates
from src.models import (
    EVENT_CLEAR,
    EVENT_FIRST_PLAY,
    EVENT_MISS,
    EVENT_SCORE,
    NO_MISS_HISTORY,
    NO_PREVIOUS_MISS,
    PlayUpdateRecord,
)


def _record(**overrides) -> PlayUpdateRecord:
    """scorelog 行の既定値に上書きを適用して PlayUpdateRecord を作る。"""
    row = {
        "sha256": "sha",
        "mode": 0,
        "clear": 5,
        "oldclear": 5,
        "score": 1000,
        "oldscore": 1000,
        "combo": 300,
        "oldcombo": 300,
        "minbp": 10,
        "oldminbp": 10,
        "date": 1000,
    }
    row.update(overrides)
    return PlayUpdateRecord.from_row(row)


def _summary(events):
    return [(e.kind, e.delta, e.old_value) for e in events]


@pytest.mark.light
def test_first_play_emits_score_clear_and_marker_without_miss():
    """初回プレイでは oldscore=0 のため MISS イベントが出ないことを確認する。"""
    record = _record(
        oldscore=0, oldminbp=NO_PREVIOUS_MISS, score=1000, minbp=50, clear=5, oldclear=0
    )
    events = classify_record(record, notes=800)
    assert _summary(events) == [
        (EVENT_SCORE, 1000, 0),
        (EVENT_CLEAR, 5, 0),
        (EVENT_FIRST_PLAY, 1000, 0),
    ]


@pytest.mark.light
def test_first_play_by_unrecorded_miss_emits_miss_from_notes():
    """前回MISS未記録で初回判定された場合、MISS改善数はノーツ数基準になる。"""
    record = _record(oldscore=500, oldminbp=NO_PREVIOUS_MISS, score=900, minbp=30, clear=0)
    events = classify_record(record, notes=800)
    assert [e.kind for e in events] == [EVENT_SCORE, EVENT_MISS, EVENT_FIRST_PLAY]
    miss = events[1]
    assert miss.delta == 770
    assert miss.new_value == 30
    assert miss.old_value is None


@pytest.mark.light
def test_first_play_miss_uses_baseline_without_notes():
    record = _record(oldscore=500, oldminbp=NO_PREVIOUS_MISS, score=900, minbp=30, clear=0)
    events = classify_record(record, notes=None)
    assert events[1].kind == EVENT_MISS
    assert events[1].delta == 999999 - 30


@pytest.mark.light
def test_first_play_with_zero_score_still_emits_marker():
    record = _record(oldscore=0, score=0, clear=0, oldclear=0)
    assert _summary(classify_record(record)) == [(EVENT_FIRST_PLAY, 0, 0)]


@pytest.mark.light
def test_ordinary_improvement_records_miss_reduction_as_negative():
    record = _record(oldscore=1000, score=1050, oldminbp=10, minbp=5, oldclear=5, clear=5)
    events = classify_record(record)
    assert _summary(events) == [(EVENT_SCORE, 50, 1000), (EVENT_MISS, -5, 10)]
    assert events[1].new_value == 5


@pytest.mark.light
def test_no_improvement_yields_no_events():
    record = _record(oldscore=1000, score=1000, oldminbp=10, minbp=10, oldclear=5, clear=5)
    assert classify_record(record) == []


@pytest.mark.light
def test_regression_is_not_an_event():
    record = _record(oldscore=1000, score=900, oldminbp=10, minbp=20, oldclear=6, clear=4)
    assert classify_record(record) == []


@pytest.mark.light
def test_clear_only_improvement():
    record = _record(oldclear=4, clear=7)
    assert _summary(classify_record(record)) == [(EVENT_CLEAR, 3, 4)]


@pytest.mark.light
def test_no_history_marker_suppresses_miss_event():
    record = _record(oldscore=1000, score=1010, oldminbp=NO_MISS_HISTORY, minbp=5)
    assert record.no_miss_history is True
    assert record.is_first_play is False
    assert [e.kind for e in classify_record(record)] == [EVENT_SCORE]


@pytest.mark.light
def test_unrecorded_new_miss_suppresses_miss_event():
    record = _record(oldscore=1000, score=1010, oldminbp=10, minbp=NO_PREVIOUS_MISS)
    assert [e.kind for e in classify_record(record)] == [EVENT_SCORE]


@pytest.mark.light
def test_events_carry_record_state():
    record = _record(oldscore=1000, score=1050, clear=6, minbp=3, combo=420)
    event = classify_record(record)[0]
    assert event.clear_type == 6
    assert event.miss_count == 3
    assert event.combo == 420


@pytest.mark.light
def test_classify_updates_concatenates_in_timestamp_order():
    later = _record(date=2000, oldscore=1050, score=1060)
    earlier = _record(date=1000, oldscore=1000, score=1050)
    events = classify_updates([later, earlier])
    assert [e.delta for e in events] == [50, 10]


@pytest.mark.light
def test_classify_updates_empty_when_nothing_improved():
    assert classify_updates([_record(), _record(date=2000)]) == []
    assert classify_updates([]) == []
