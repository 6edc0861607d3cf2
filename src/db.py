"""
beatoraja のSQLite DBからレポート用データを取得するモジュール。

scorelog.db / score.db / songdata.db / scoredatalog.db を読み取り専用で開き、
report.ReportSource として必要な取得処理を提供する。

処理方針:
- DBファイルには一切書き込まない(mode=ro で接続する)
- 問い合わせごとに接続を開閉し、スレッド間で接続を共有しない
- テーブル名は sqlite_master からキーワードで探す
"""

from __future__ import annotations

import logging
import os
import sqlite3
from datetime import date
from pathlib import Path
from typing import List, Optional, Sequence

from src.config import DbPaths
from src.errors import DayRecordSourceError
from src.models import BestScore, ChartMetadata, PlayUpdateRecord

logger = logging.getLogger(__name__)

_SCORELOG_COLUMNS = (
    "sha256, mode, clear, oldclear, score, oldscore, "
    "combo, oldcombo, minbp, oldminbp, date"
)

_JUDGE_COLUMNS = (
    "epg", "lpg", "egr", "lgr", "egd", "lgd",
    "ebd", "lbd", "epr", "lpr", "ems", "lms",
)


def connect_readonly(path: str) -> sqlite3.Connection:
    """
    SQLite DBへ読み取り専用で接続する。

    Args:
        path: SQLiteファイルパス。

    Returns:
        row_factory に sqlite3.Row を設定した接続。

    Raises:
        sqlite3.OperationalError: ファイルが開けない場合。
    """
    uri = Path(path).resolve().as_uri() + "?mode=ro"
    con = sqlite3.connect(uri, uri=True)
    con.row_factory = sqlite3.Row
    return con


def find_table_name(con: sqlite3.Connection, keywords: Sequence[str]) -> Optional[str]:
    """
    テーブル名にキーワードを含む最初のテーブルを返す。

    キーワードは先頭ほど優先し、どれにも一致しなければ最初のテーブルを返す。
    テーブルが無い場合は None。
    """
    cur = con.cursor()
    cur.execute("SELECT name FROM sqlite_master WHERE type='table'")
    names = [row["name"] for row in cur.fetchall()]
    for keyword in keywords:
        for name in names:
            if keyword in name:
                return name
    return names[0] if names else None


class BeatorajaSource:
    """beatoraja の各DBから ReportSource の取得処理を行う。"""

    def __init__(self, db_paths: DbPaths, timezone_offset_hours: int = 9):
        self.db_paths = db_paths
        self.timezone_offset_hours = timezone_offset_hours

    def _query(self, path: str, keywords: Sequence[str], sql: str, params: tuple) -> List[dict]:
        con = connect_readonly(path)
        try:
            table = find_table_name(con, keywords)
            if table is None:
                return []
            cur = con.cursor()
            cur.execute(sql.format(table=table), params)
            return [dict(row) for row in cur.fetchall()]
        finally:
            con.close()

    def list_day_records(self, day_start: int, day_end: int) -> List[PlayUpdateRecord]:
        """
        指定期間(両端含む)の scorelog 全記録を時刻順に返す。

        Raises:
            DayRecordSourceError: scorelog.db が存在しない、または読み取りに失敗した場合。
        """
        path = self.db_paths.scorelog
        if not os.path.exists(path):
            raise DayRecordSourceError(f"scorelog.db not found: {path}")

        try:
            rows = self._query(
                path,
                ("scorelog", "log", "play"),
                f"SELECT {_SCORELOG_COLUMNS} FROM {{table}} "
                "WHERE date >= ? AND date <= ? ORDER BY date ASC",
                (day_start, day_end),
            )
        except sqlite3.Error as e:
            raise DayRecordSourceError(f"Failed to read scorelog: {e}") from e

        return [PlayUpdateRecord.from_row(row) for row in rows]

    def day_play_records(
        self, sha256: str, day_start: int, day_end: int
    ) -> List[PlayUpdateRecord]:
        """指定譜面の指定期間の scorelog 記録を時刻順に返す。"""
        rows = self._query(
            self.db_paths.scorelog,
            ("scorelog", "log", "play"),
            f"SELECT {_SCORELOG_COLUMNS} FROM {{table}} "
            "WHERE sha256 = ? AND date BETWEEN ? AND ? ORDER BY date ASC",
            (sha256, day_start, day_end),
        )
        return [PlayUpdateRecord.from_row(row) for row in rows]

    def chart_metadata(self, sha256: str) -> Optional[ChartMetadata]:
        """songdata.db から楽曲情報を返す。存在しなければ None。"""
        rows = self._query(
            self.db_paths.songdata,
            ("song", "music", "data"),
            "SELECT title, subtitle, artist, md5, sha256, notes, level "
            "FROM {table} WHERE sha256 = ? LIMIT 1",
            (sha256,),
        )
        if not rows:
            return None
        return ChartMetadata.from_row(rows[0])

    def current_best(self, sha256: str) -> Optional[BestScore]:
        """score.db からEXスコア最大(同点なら最新)の自己ベストを返す。"""
        rows = self._query(
            self.db_paths.score,
            ("score", "song"),
            "SELECT *, (epg + lpg) * 2 + (egr + lgr) * 1 AS exscore "
            "FROM {table} WHERE sha256 = ? "
            "ORDER BY exscore DESC, date DESC LIMIT 1",
            (sha256,),
        )
        if not rows:
            return None
        return BestScore.from_row(rows[0])

    def day_total_notes(self, day: date) -> int:
        """
        scoredatalog.db から指定日の全プレイの総判定数を返す。

        scoredatalog.db が未設定・存在しない・読み取りに失敗した場合は 0。
        """
        path = self.db_paths.scoredatalog
        if not path or not os.path.exists(path):
            logger.info("scoredatalog.db is not available; total notes = 0")
            return 0

        total = " + ".join(_JUDGE_COLUMNS)
        try:
            rows = self._query(
                path,
                ("scoredatalog", "score", "log"),
                f"SELECT SUM({total}) AS total_notes FROM {{table}} "
                "WHERE DATE(date + ?, 'unixepoch') = ?",
                (self.timezone_offset_hours * 60 * 60, day.isoformat()),
            )
        except sqlite3.Error as e:
            logger.warning("Failed to sum notes from scoredatalog: %s", e)
            return 0

        if not rows or not rows[0].get("total_notes"):
            return 0
        return max(0, int(rows[0]["total_notes"]))
