from __future__ import annotations

import sqlite3
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from src.config import DbPaths


def _create(path: Path, ddl: str, sql: str = "", rows: list = ()) -> None:
    conn = sqlite3.connect(str(path))
    try:
        conn.execute(ddl)
        if rows:
            conn.executemany(sql, rows)
        conn.commit()
    finally:
        conn.close()


@pytest.fixture
def beatoraja_dbs(tmp_path: Path) -> DbPaths:
    """beatoraja と同じテーブル構成の最小DB一式を作成する。"""
    scorelog = tmp_path / "scorelog.db"
    score = tmp_path / "score.db"
    songdata = tmp_path / "songdata.db"
    scoredatalog = tmp_path / "scoredatalog.db"

    # 1792335600 = 2026-10-19 00:00:00 JST
    _create(
        scorelog,
        """
        CREATE TABLE scorelog (
            sha256 TEXT, mode INTEGER, clear INTEGER, oldclear INTEGER,
            score INTEGER, oldscore INTEGER, combo INTEGER, oldcombo INTEGER,
            minbp INTEGER, oldminbp INTEGER, date INTEGER
        )
        """,
        "INSERT INTO scorelog VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        [
            ("sha_a", 0, 5, 4, 1050, 1000, 300, 280, 5, 10, 1792335600 + 3600),
            ("sha_b", 0, 5, 0, 900, 0, 200, 0, 50, 2147483647, 1792335600 + 7200),
            ("sha_a", 0, 6, 5, 1060, 1050, 310, 300, 4, 5, 1792335600 + 10800),
            ("sha_c", 0, 5, 5, 1000, 1000, 300, 300, 10, 10, 1792335600 + 14400),
            ("sha_a", 0, 7, 6, 1200, 1060, 320, 310, 2, 4, 1792335600 - 10),
        ],
    )
    _create(
        score,
        """
        CREATE TABLE score (
            sha256 TEXT, mode INTEGER, clear INTEGER, epg INTEGER, lpg INTEGER,
            egr INTEGER, lgr INTEGER, egd INTEGER, lgd INTEGER, notes INTEGER,
            minbp INTEGER, playcount INTEGER, date INTEGER
        )
        """,
        "INSERT INTO score VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        [
            ("sha_a", 0, 6, 400, 400, 100, 100, 0, 0, 1000, 4, 12, 1792346400),
            ("sha_b", 0, 5, 300, 100, 50, 50, 0, 0, 500, 999999, 1, 1792342800),
        ],
    )
    _create(
        songdata,
        """
        CREATE TABLE song (
            md5 TEXT, sha256 TEXT, title TEXT, subtitle TEXT, artist TEXT,
            notes INTEGER, level INTEGER
        )
        """,
        "INSERT INTO song VALUES (?, ?, ?, ?, ?, ?, ?)",
        [
            ("md5_a", "sha_a", "Song A", "[ANOTHER]", "Artist A", 1000, 12),
            ("md5_b", "sha_b", "Song B", "", "Artist B", 500, 7),
            ("md5_c", "sha_c", "Song C", "", "Artist C", 800, 9),
        ],
    )
    _create(
        scoredatalog,
        """
        CREATE TABLE scoredatalog (
            sha256 TEXT, epg INTEGER, lpg INTEGER, egr INTEGER, lgr INTEGER,
            egd INTEGER, lgd INTEGER, ebd INTEGER, lbd INTEGER, epr INTEGER,
            lpr INTEGER, ems INTEGER, lms INTEGER, date INTEGER
        )
        """,
        "INSERT INTO scoredatalog VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        [
            ("sha_a", 100, 100, 50, 50, 10, 10, 5, 5, 3, 3, 2, 2, 1792335600 + 3600),
            ("sha_b", 10, 10, 5, 5, 0, 0, 0, 0, 0, 0, 0, 0, 1792335600 + 7200),
            ("sha_a", 999, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 1792335600 - 10),
        ],
    )

    return DbPaths(
        score=str(score),
        scorelog=str(scorelog),
        songdata=str(songdata),
        scoredatalog=str(scoredatalog),
    )
