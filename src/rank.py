"""
EXスコア・DJ LEVEL の計算処理。

判定数(PGREAT/GREAT)からEXスコアと達成率を求め、
9分割の閾値でDJ LEVEL(F〜AAA)を判定する。
いずれも副作用の無い純粋関数で、ノーツ数 0 でも例外を送出しない。
"""

from __future__ import annotations

import math
from typing import Optional

from src.models import BestScore, NextRankGap, ScoreSummary

# 上位から順に評価し、最初に満たしたものを採用する
RANK_THRESHOLDS = (
    ("AAA", 8 / 9),
    ("AA", 7 / 9),
    ("A", 6 / 9),
    ("B", 5 / 9),
    ("C", 4 / 9),
    ("D", 3 / 9),
    ("E", 2 / 9),
    ("F", 0),
)

RANK_ORDER = ("F", "E", "D", "C", "B", "A", "AA", "AAA")

_THRESHOLD_BY_RANK = dict(RANK_THRESHOLDS)

# DJ LEVEL ポイントの (達成率下限%, ノーツ数に掛ける係数)
_DJ_LEVEL_POINT_RATES = (
    (88.89, 1.0),
    (77.78, 0.8),
    (66.67, 0.6),
    (55.56, 0.4),
    (44.44, 0.2),
    (33.33, 0.1),
)


def ex_score(best: BestScore) -> int:
    """
    EXスコアを計算する。

    PGREAT(EARLY/LATE)を2点、GREAT(EARLY/LATE)を1点として合計する。
    """
    return (best.epg + best.lpg) * 2 + (best.egr + best.lgr) * 1


def rank_from_percentage(percentage: float) -> str:
    """
    達成率(%)からDJ LEVELを判定する。

    Args:
        percentage: 達成率(0〜100)。

    Returns:
        "F"〜"AAA" のいずれか。
    """
    ratio = percentage / 100
    for rank, threshold in RANK_THRESHOLDS:
        if ratio >= threshold:
            return rank
    return "F"


def calculate_score(best: Optional[BestScore], notes: Optional[int] = None) -> ScoreSummary:
    """
    自己ベストからEXスコア・最大スコア・達成率・DJ LEVELを計算する。

    Args:
        best: 自己ベスト。None の場合は 0 として扱う。
        notes: ノーツ数。省略時は best.notes を使う。

    Returns:
        ScoreSummary。ノーツ数が 0 の場合は全て 0 / "F"。
    """
    if best is None:
        return ScoreSummary(ex_score=0, max_score=0, percentage=0, rank="F")

    total_notes = best.notes if notes is None else notes
    if not total_notes or total_notes <= 0:
        return ScoreSummary(ex_score=0, max_score=0, percentage=0, rank="F")

    score = ex_score(best)
    max_score = total_notes * 2
    percentage = (score / max_score) * 100
    return ScoreSummary(
        ex_score=score,
        max_score=max_score,
        percentage=percentage,
        rank=rank_from_percentage(percentage),
    )


def next_rank_gap(score: int, max_score: int, current_rank: str) -> NextRankGap:
    """
    次のDJ LEVELまでに必要な点数を計算する。

    Args:
        score: 現在のEXスコア。
        max_score: 最大EXスコア(ノーツ数×2)。
        current_rank: 現在のDJ LEVEL。

    Returns:
        NextRankGap。AAA(または未知のランク)の場合は next_level=None, gap=0。
    """
    if current_rank in RANK_ORDER:
        index = RANK_ORDER.index(current_rank)
        if index < len(RANK_ORDER) - 1:
            next_level = RANK_ORDER[index + 1]
            required_ratio = _THRESHOLD_BY_RANK[next_level]
            target = math.ceil(required_ratio * max_score)
            return NextRankGap(
                next_level=next_level,
                gap=max(0, target - score),
                required_rate=required_ratio * 100,
            )

    return NextRankGap(next_level=None, gap=0, required_rate=100)


def score_rate(best: Optional[BestScore]) -> int:
    """達成率を四捨五入した整数(%)を返す。ノーツ数 0 なら 0。"""
    summary = calculate_score(best)
    if summary.max_score <= 0:
        return 0
    return math.floor(summary.percentage + 0.5)


def dj_level_points(percentage: float, notes: int) -> int:
    """
    DJ LEVEL ポイントを計算する。

    AAA でノーツ数そのもの、以下 AA 80%, A 60%, B 40%, C 20%, D 10% を切り捨てで返す。
    E/F は 0。
    """
    if not notes or notes <= 0:
        return 0
    for lower, rate in _DJ_LEVEL_POINT_RATES:
        if percentage >= lower:
            return math.floor(notes * rate)
    return 0
