"""難易度表解決処理のテスト。"""

from __future__ import annotations

import pytest

from src.difficulty_table import (
    find_memberships,
    level_order_index,
    parse_level_number,
    resolve_tables,
)
from src.models import ChartIdentity, DifficultyTable, TableChart


def _table(name, priority, symbol, charts, level_order=()):
    return DifficultyTable(
        name=name,
        url=f"https://example.invalid/{name}/",
        priority=priority,
        symbol=symbol,
        level_order=tuple(level_order),
        charts=tuple(charts),
    )


CHART = ChartIdentity(md5="md5_x", sha256="sha_x")


@pytest.mark.light
def test_chart_in_two_tables_uses_highest_priority_as_primary():
    table_a = _table("A", 1, "◆", [TableChart("md5_x", "", "5", "X")])
    table_b = _table("B", 2, "☆", [TableChart("", "sha_x", "3", "X")])

    # 渡す順序に関わらず priority で主表が決まる
    resolution = resolve_tables([table_b, table_a], CHART)

    assert [m.table.name for m in resolution.memberships] == ["A", "B"]
    assert resolution.table_name == "A"
    assert resolution.table_level == "5"
    assert resolution.priority == 1
    assert resolution.table_symbol == "◆5 ☆3"
    assert resolution.has_multiple_tables is True
    assert resolution.level_order_index == 5


@pytest.mark.light
def test_no_match_returns_defaults():
    table = _table("A", 1, "◆", [TableChart("other", "other", "5", "Y")])
    resolution = resolve_tables([table], CHART)
    assert resolution.table_symbol == ""
    assert resolution.table_level == ""
    assert resolution.table_name == ""
    assert resolution.level_order_index == 999
    assert resolution.priority == 999
    assert resolution.has_multiple_tables is False
    assert resolution.memberships == ()


@pytest.mark.light
def test_empty_identity_fields_do_not_match_empty_chart_fields():
    table = _table("A", 1, "◆", [TableChart("", "", "5", "Blank")])
    assert find_memberships([table], ChartIdentity(md5="", sha256="sha_x")) == []


@pytest.mark.light
def test_symbol_without_table_symbol_is_bare_level():
    table = _table("A", 1, "", [TableChart("md5_x", "sha_x", "12", "X")])
    assert resolve_tables([table], CHART).table_symbol == "12"


@pytest.mark.light
def test_level_order_index_uses_header_level_order():
    order = ["0", "1", "2", "3", "?"]
    table = _table("A", 1, "★", [TableChart("md5_x", "", "?", "X")], order)
    assert resolve_tables([table], CHART).level_order_index == 4


@pytest.mark.light
@pytest.mark.parametrize(
    "level, order, expected",
    [
        ("12", (), 12.0),
        ("12+", (), 12.0),
        ("0.5", (), 0.5),
        ("?", (), 999),
        ("", (), 999),
        ("2", ("1", "2", "3"), 1),
        ("5", ("1", "2", "3"), 8.0),
        ("x", ("1", "2", "3"), 999),
    ],
)
def test_level_order_index(level, order, expected):
    assert level_order_index(level, order) == expected


@pytest.mark.light
def test_parse_level_number():
    assert parse_level_number("3") == 3.0
    assert parse_level_number(" 7.5a") == 7.5
    assert parse_level_number("★1") is None


@pytest.mark.light
def test_memberships_collected_from_every_table():
    tables = [
        _table("A", 1, "◆", [TableChart("md5_x", "", "5", "X")]),
        _table("B", 2, "☆", []),
        _table("C", 3, "▽", [TableChart("", "sha_x", "1", "X")]),
    ]
    names = [m.table.name for m in find_memberships(tables, CHART)]
    assert names == ["A", "C"]
