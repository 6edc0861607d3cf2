"""
難易度表の解決処理。

譜面の md5/sha256 から、読み込み済みの全難易度表を走査して所属情報を集め、
優先度が最も高い表を主表として表示用フィールドを決定する。
複数の表に所属する譜面は全ての表記号を並べて表示する。
"""

from __future__ import annotations

import re
from typing import List, Optional, Sequence

from src.models import (
    NO_TABLE_ORDER,
    ChartIdentity,
    DifficultyTable,
    TableChart,
    TableMembership,
    TableResolution,
)

_LEADING_NUMBER = re.compile(r"\s*[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


def parse_level_number(level: object) -> Optional[float]:
    """
    レベル文字列の先頭にある数値を読み取る。

    "12", "12.5", "3+" は数値として解釈し、"★1" や空文字は None を返す。
    """
    match = _LEADING_NUMBER.match(str(level))
    if not match:
        return None
    return float(match.group(0))


def level_order_index(level: str, level_order: Sequence[str]) -> float:
    """
    ソート用のレベル順序値を返す。

    - level_order が空: レベルを数値化した値(解釈できなければ 999)
    - level_order に含まれる: そのインデックス
    - level_order に含まれない: len(level_order) + 数値化したレベル(解釈できなければ 999)

    Args:
        level: 譜面のレベル表記。
        level_order: 難易度表ヘッダの level_order。

    Returns:
        順序値(小さいほど前)。
    """
    number = parse_level_number(level)

    if not level_order:
        return NO_TABLE_ORDER if number is None else number

    if level in level_order:
        return level_order.index(level)

    if number is None:
        return NO_TABLE_ORDER
    # 0 になる場合も未解釈扱い
    return (len(level_order) + number) or NO_TABLE_ORDER


def _matches(chart: TableChart, identity: ChartIdentity) -> bool:
    if identity.sha256 and chart.sha256 == identity.sha256:
        return True
    return bool(identity.md5) and chart.md5 == identity.md5


def find_memberships(
    tables: Sequence[DifficultyTable],
    identity: ChartIdentity,
) -> List[TableMembership]:
    """
    全難易度表から譜面に一致するエントリを集める。

    優先度に関わらず全ての表を走査し、一致した全エントリを返す(表の並び順)。
    """
    memberships: List[TableMembership] = []
    for table in tables:
        for chart in table.charts:
            if not _matches(chart, identity):
                continue
            memberships.append(
                TableMembership(
                    table=table,
                    symbol=table.symbol,
                    level=chart.level,
                    level_order_index=level_order_index(chart.level, table.level_order),
                    priority=table.priority,
                )
            )
    return memberships


def format_table_symbol(memberships: Sequence[TableMembership]) -> str:
    """所属表ごとに "{記号}{レベル}" を作り、空白区切りで連結する。"""
    labels = []
    for membership in memberships:
        symbol = membership.symbol or ""
        level = membership.level or ""
        label = f"{symbol}{level}" if symbol else level
        if label:
            labels.append(label)
    return " ".join(labels)


def resolve_tables(
    tables: Sequence[DifficultyTable],
    identity: ChartIdentity,
) -> TableResolution:
    """
    譜面の難易度表情報を解決する。

    Args:
        tables: 優先度昇順に並んだ難易度表。
        identity: 譜面の md5/sha256。

    Returns:
        TableResolution。どの表にも含まれない場合は空文字と 999 を持つ既定値。
    """
    memberships = sorted(find_memberships(tables, identity), key=lambda m: m.priority)
    if not memberships:
        return TableResolution()

    primary = memberships[0]
    return TableResolution(
        memberships=tuple(memberships),
        table_symbol=format_table_symbol(memberships),
        table_level=primary.level,
        table_name=primary.table.name,
        level_order_index=primary.level_order_index,
        priority=primary.priority,
        has_multiple_tables=len(memberships) > 1,
    )
