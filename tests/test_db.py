"""beatoraja DB 読み取り処理と、それを使ったレポート生成のテスト。"""

from __future__ import annotations

import sqlite3
from dataclasses import replace
from datetime import date
from pathlib import Path

import pytest

from src.db import BeatorajaSource, connect_readonly, find_table_name
from src.errors import DayRecordSourceError
from src.models import DifficultyTable, TableChart
from src.report import build_daily_report, day_bounds

DAY = date(2026, 10, 19)


@pytest.mark.light
def test_list_day_records_returns_only_target_day(beatoraja_dbs):
    window = day_bounds(DAY, 9)
    records = BeatorajaSource(beatoraja_dbs).list_day_records(window.start, window.end)
    assert [r.sha256 for r in records] == ["sha_a", "sha_b", "sha_a", "sha_c"]
    assert records[1].old_miss_count is None
    assert records[1].is_first_play is True


@pytest.mark.light
def test_lookups(beatoraja_dbs):
    source = BeatorajaSource(beatoraja_dbs)

    meta = source.chart_metadata("sha_a")
    assert meta.title == "Song A"
    assert meta.subtitle == "[ANOTHER]"
    assert meta.notes == 1000
    assert source.chart_metadata("missing") is None

    best = source.current_best("sha_b")
    assert best.notes == 500
    assert best.miss_count == 0
    assert source.current_best("sha_c") is None


@pytest.mark.light
def test_day_total_notes_uses_local_day(beatoraja_dbs):
    source = BeatorajaSource(beatoraja_dbs, timezone_offset_hours=9)
    assert source.day_total_notes(DAY) == 370
    assert source.day_total_notes(date(2026, 10, 18)) == 999
    assert source.day_total_notes(date(2026, 10, 20)) == 0


@pytest.mark.light
def test_day_total_notes_without_scoredatalog(beatoraja_dbs):
    source = BeatorajaSource(replace(beatoraja_dbs, scoredatalog=None))
    assert source.day_total_notes(DAY) == 0


@pytest.mark.light
def test_missing_scorelog_raises(beatoraja_dbs, tmp_path: Path):
    paths = replace(beatoraja_dbs, scorelog=str(tmp_path / "nothing.db"))
    with pytest.raises(DayRecordSourceError):
        build_daily_report(DAY, BeatorajaSource(paths), tables=[])


@pytest.mark.light
def test_connection_is_read_only(beatoraja_dbs):
    con = connect_readonly(beatoraja_dbs.songdata)
    try:
        with pytest.raises(sqlite3.OperationalError):
            con.execute("DELETE FROM song")
    finally:
        con.close()


@pytest.mark.light
def test_find_table_name_prefers_keywords(beatoraja_dbs):
    con = connect_readonly(beatoraja_dbs.songdata)
    try:
        assert find_table_name(con, ("music", "song")) == "song"
        assert find_table_name(con, ("nothing",)) == "song"
    finally:
        con.close()


@pytest.mark.light
def test_daily_report_from_beatoraja_dbs(beatoraja_dbs):
    tables = [
        DifficultyTable(
            name="Normal",
            url="",
            priority=1,
            symbol="☆",
            charts=(TableChart("md5_b", "", "7", "Song B"),),
        )
    ]
    report = build_daily_report(
        DAY, BeatorajaSource(beatoraja_dbs), tables, max_workers=2
    )

    assert [s.title for s in report.songs] == ["Song B", "Song A"]

    song_b, song_a = report.songs
    assert song_b.table_symbol == "☆7"
    assert [e.kind for e in song_b.updates] == ["score", "clear", "firstPlay"]
    assert song_b.dj_level == "AAA"

    assert [e.delta for e in song_a.updates] == [50, -5, 1, 10, -1, 1]
    assert song_a.ex_score == 1800
    assert song_a.clear_type_name == "HARD CLEAR"
    assert song_a.miss_count == 4

    assert report.stats.total_songs == 2
    assert report.stats.total_played_songs == 3
    assert report.stats.total_notes == 370
    assert report.stats.displayed_songs == 2
    assert report.stats.hidden_songs == 0
