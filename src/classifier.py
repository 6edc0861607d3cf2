"""
記録更新の分類処理。

1譜面・1日分の scorelog 記録から、スコア更新・MISS数更新・クリアランプ更新・
初回プレイを改善イベントとして抽出する。

判定方針:
- 初回プレイ(前回スコア 0 または前回MISS数未記録)は {スコア0, MISS未記録, NO PLAY} からの更新とみなす
- それ以外は各指標を独立に比較し、改善した指標のみイベント化する
- MISS数の通常更新は減少数を負値の delta として記録する
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from src.models import (
    EVENT_CLEAR,
    EVENT_FIRST_PLAY,
    EVENT_MISS,
    EVENT_SCORE,
    MISS_BASELINE,
    ImprovementEvent,
    PlayUpdateRecord,
)

logger = logging.getLogger(__name__)


def _event(
    record: PlayUpdateRecord,
    kind: str,
    delta: int,
    new_value: Optional[int],
    old_value: Optional[int],
) -> ImprovementEvent:
    return ImprovementEvent(
        kind=kind,
        delta=delta,
        new_value=new_value,
        old_value=old_value,
        clear_type=record.clear,
        miss_count=record.miss_count,
        combo=record.combo,
    )


def _first_play_events(
    record: PlayUpdateRecord,
    notes: Optional[int],
) -> List[ImprovementEvent]:
    """初回プレイの記録からイベントを生成する。firstPlay マーカーは常に末尾に付く。"""
    events: List[ImprovementEvent] = []

    if record.score > 0:
        events.append(_event(record, EVENT_SCORE, record.score, record.score, 0))

    # 前回スコアが 0 で初回判定された場合は oldscore > 0 を満たさない
    if (
        record.miss_count is not None
        and not record.no_miss_history
        and record.old_score > 0
    ):
        if notes and notes > 0:
            improvement = notes - record.miss_count
        else:
            improvement = MISS_BASELINE - record.miss_count
        events.append(_event(record, EVENT_MISS, improvement, record.miss_count, None))

    if record.clear > 0:
        events.append(_event(record, EVENT_CLEAR, record.clear, record.clear, 0))

    events.append(_event(record, EVENT_FIRST_PLAY, record.score, record.score, 0))
    return events


def _improvement_events(record: PlayUpdateRecord) -> List[ImprovementEvent]:
    """2回目以降の記録から、改善した指標のイベントのみ生成する。"""
    events: List[ImprovementEvent] = []

    score_delta = record.score - record.old_score
    if score_delta > 0:
        events.append(
            _event(record, EVENT_SCORE, score_delta, record.score, record.old_score)
        )

    if (
        record.miss_count is not None
        and record.old_miss_count is not None
        and not record.no_miss_history
    ):
        miss_delta = record.old_miss_count - record.miss_count
        if miss_delta > 0:
            events.append(
                _event(
                    record,
                    EVENT_MISS,
                    -miss_delta,
                    record.miss_count,
                    record.old_miss_count,
                )
            )

    clear_delta = record.clear - record.old_clear
    if clear_delta > 0:
        events.append(
            _event(record, EVENT_CLEAR, clear_delta, record.clear, record.old_clear)
        )

    return events


def classify_record(
    record: PlayUpdateRecord,
    notes: Optional[int] = None,
) -> List[ImprovementEvent]:
    """
    1件の記録更新を改善イベントに分類する。

    Args:
        record: scorelog の1行。
        notes: 譜面のノーツ数(初回プレイのMISS改善数計算に使用)。不明なら None。

    Returns:
        改善イベントのリスト(0〜4件)。
    """
    if record.is_first_play:
        return _first_play_events(record, notes)
    return _improvement_events(record)


def classify_updates(
    records: Iterable[PlayUpdateRecord],
    notes: Optional[int] = None,
) -> List[ImprovementEvent]:
    """
    1譜面・1日分の記録更新を時刻順に分類し、イベントを連結して返す。

    Args:
        records: 同一譜面の当日の記録。
        notes: 譜面のノーツ数。不明なら None。

    Returns:
        改善イベントのリスト。空なら当日の改善なし。
    """
    events: List[ImprovementEvent] = []
    for record in sorted(records, key=lambda r: r.timestamp):
        record_events = classify_record(record, notes)
        if not record_events:
            logger.debug(
                "%s...: played without improvement (score %+d, clear %+d)",
                record.sha256[:8],
                record.score - record.old_score,
                record.clear - record.old_clear,
            )
        events.extend(record_events)
    return events
