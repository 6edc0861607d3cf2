"""
日次更新レポートの生成処理。

指定日にプレイされた譜面ごとに、記録更新の分類・難易度表の解決・スコア計算を行い、
重複排除・並び替え・統計計算を経て DailyUpdateReport を返す。

処理方針:
- 譜面ごとの処理は互いに独立しており、ThreadPoolExecutor で並列に実行できる
- 全譜面の結果が揃ってから重複排除・並び替え・統計計算を行う
- 1譜面の取得失敗はログに残して「更新なし」として扱い、全体は継続する
- 当日記録一覧そのものの取得失敗は DayRecordSourceError として呼び出し元へ伝播する
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from src.classifier import classify_updates
from src.clear_type import clear_type_name
from src.difficulty_table import resolve_tables
from src.errors import DayRecordSourceError
from src.models import (
    BestScore,
    ChartIdentity,
    ChartMetadata,
    DailyStats,
    DailyUpdateReport,
    DifficultyTable,
    PlayUpdateRecord,
    SongUpdateResult,
)
from src.normalize import title_sort_key
from src.rank import calculate_score, dj_level_points, next_rank_gap, score_rate

logger = logging.getLogger(__name__)

UNKNOWN_SONG_TITLE = "[Unknown Song]"
DEFAULT_TIMEZONE_OFFSET_HOURS = 9


class ReportSource(Protocol):
    """レポート生成に必要なデータ取得元。"""

    def list_day_records(self, day_start: int, day_end: int) -> List[PlayUpdateRecord]:
        ...

    def chart_metadata(self, sha256: str) -> Optional[ChartMetadata]:
        ...

    def day_play_records(
        self, sha256: str, day_start: int, day_end: int
    ) -> List[PlayUpdateRecord]:
        ...

    def current_best(self, sha256: str) -> Optional[BestScore]:
        ...

    def day_total_notes(self, day: date) -> int:
        ...


@dataclass(frozen=True)
class DayWindow:
    """集計対象日と、その日の開始・終了UNIX時刻(両端含む)。"""

    day: date
    start: int
    end: int


def day_bounds(day: date, timezone_offset_hours: int = DEFAULT_TIMEZONE_OFFSET_HOURS) -> DayWindow:
    """
    指定日のローカル 0:00:00〜23:59:59 を UNIX 秒で返す。

    Args:
        day: 対象日。
        timezone_offset_hours: UTCからの時差(時間)。

    Returns:
        DayWindow。
    """
    tz = timezone(timedelta(hours=timezone_offset_hours))
    start = int(datetime(day.year, day.month, day.day, tzinfo=tz).timestamp())
    return DayWindow(day=day, start=start, end=start + 24 * 60 * 60 - 1)


def distinct_charts(records: Iterable[PlayUpdateRecord]) -> List[Tuple[str, int]]:
    """当日記録から (sha256, 最初の記録時刻) を初出順・重複なしで返す。"""
    seen: Dict[str, int] = {}
    for record in records:
        if record.sha256 not in seen:
            seen[record.sha256] = record.timestamp
    return list(seen.items())


def build_song_result(
    sha256: str,
    play_date: int,
    metadata: ChartMetadata,
    records: Sequence[PlayUpdateRecord],
    best: Optional[BestScore],
    tables: Sequence[DifficultyTable],
) -> Optional[SongUpdateResult]:
    """
    1譜面分の SongUpdateResult を構築する。

    当日の改善イベントが無い場合、または自己ベストが存在しない場合は None を返す。
    """
    updates = classify_updates(records, metadata.notes)
    if not updates:
        return None

    if best is None:
        logger.debug("%s...: no current best, skipped", sha256[:8])
        return None

    summary = calculate_score(best)
    resolution = resolve_tables(tables, ChartIdentity(md5=metadata.md5, sha256=sha256))
    is_unknown = not metadata.title.strip()

    return SongUpdateResult(
        sha256=sha256,
        md5=metadata.md5,
        title=UNKNOWN_SONG_TITLE if is_unknown else metadata.title,
        subtitle=metadata.subtitle,
        artist=metadata.artist,
        notes=metadata.notes,
        level=metadata.level,
        score=score_rate(best),
        ex_score=summary.ex_score,
        max_score=summary.max_score,
        percentage=summary.percentage,
        dj_level=summary.rank,
        next_dj_level=next_rank_gap(summary.ex_score, summary.max_score, summary.rank),
        dj_level_points=dj_level_points(
            calculate_score(best, metadata.notes).percentage, metadata.notes
        ),
        clear=best.clear,
        clear_type_name=clear_type_name(best.clear),
        miss_count=best.miss_count,
        play_date=play_date,
        updates=tuple(updates),
        table_symbol=resolution.table_symbol,
        table_level=resolution.table_level,
        table_name=resolution.table_name,
        level_order_index=resolution.level_order_index,
        priority=resolution.priority,
        has_multiple_tables=resolution.has_multiple_tables,
        is_unknown_song=is_unknown,
    )


def _process_chart(
    source: ReportSource,
    window: DayWindow,
    tables: Sequence[DifficultyTable],
    sha256: str,
    play_date: int,
) -> Optional[SongUpdateResult]:
    """1譜面分の取得と計算を行う。失敗時はログを残して None を返す。"""
    try:
        metadata = source.chart_metadata(sha256)
        if metadata is None:
            logger.debug("%s...: no song data", sha256[:8])
            return None

        records = source.day_play_records(sha256, window.start, window.end)
        best = source.current_best(sha256)
        return build_song_result(sha256, play_date, metadata, records, best, tables)
    except Exception:  # pylint: disable=broad-exception-caught
        logger.exception("Failed to build daily update for %s", sha256)
        return None


def merge_duplicates(
    results: Sequence[SongUpdateResult],
) -> Tuple[List[SongUpdateResult], int]:
    """
    sha256 で重複排除し、表示対象リストと非表示件数を返す。

    - 最初に出現したものを残し、後続の重複は表記号を統合して非表示にする
    - Unknown Song は出現順に関わらず非表示にする
    """
    displayed: List[SongUpdateResult] = []
    index_by_sha256: Dict[str, int] = {}
    hidden = 0

    for song in results:
        if song.is_unknown_song:
            hidden += 1
            logger.info("Unknown song hidden: %s", song.sha256)
            continue

        index = index_by_sha256.get(song.sha256)
        if index is None:
            index_by_sha256[song.sha256] = len(displayed)
            displayed.append(song)
            continue

        existing = displayed[index]
        if song.table_symbol and song.table_symbol not in existing.table_symbol:
            merged = (
                f"{existing.table_symbol} {song.table_symbol}"
                if existing.table_symbol
                else song.table_symbol
            )
            displayed[index] = replace(existing, table_symbol=merged)
        hidden += 1
        logger.info("Duplicate merged: %s (%s)", song.title, song.sha256)

    return displayed, hidden


def _display_sort_key(song: SongUpdateResult) -> tuple:
    if song.has_table:
        return (0, song.priority, song.level_order_index, ())
    return (1, 0, 0, title_sort_key(song.title))


def sort_songs(songs: Iterable[SongUpdateResult]) -> List[SongUpdateResult]:
    """
    表示順に並べ替える。

    難易度表所属曲を先頭に(優先度、レベル順)、非所属曲は曲名順。
    同順位の曲は元の順序を保つ。
    """
    return sorted(songs, key=_display_sort_key)


def assemble_report(
    day: date,
    results: Sequence[SongUpdateResult],
    total_played_songs: int,
    total_notes: int,
) -> DailyUpdateReport:
    """
    全譜面の結果から重複排除・並び替え・統計計算を行いレポートにする。

    Args:
        day: 対象日。
        results: 改善のあった譜面の結果(初出順)。
        total_played_songs: 当日プレイされた譜面数(sha256 の重複なし)。
        total_notes: 当日の総判定ノーツ数。

    Returns:
        DailyUpdateReport。
    """
    displayed, hidden = merge_duplicates(results)
    songs = sort_songs(displayed)

    stats = DailyStats(
        total_songs=len(results),
        total_played_songs=total_played_songs,
        total_notes=total_notes,
        displayed_songs=len(songs),
        hidden_songs=hidden,
        unknown_songs=sum(1 for song in results if song.is_unknown_song),
    )
    return DailyUpdateReport(date=day.isoformat(), songs=tuple(songs), stats=stats)


def build_daily_report(
    day: date,
    source: ReportSource,
    tables: Sequence[DifficultyTable],
    timezone_offset_hours: int = DEFAULT_TIMEZONE_OFFSET_HOURS,
    max_workers: int = 1,
) -> DailyUpdateReport:
    """
    指定日の日次更新レポートを生成する。

    Args:
        day: 対象日。
        source: プレイ記録・楽曲情報・自己ベストの取得元。
        tables: 優先度昇順に並んだ難易度表。
        timezone_offset_hours: 日付境界に使う UTC からの時差。
        max_workers: 譜面ごとの取得を並列実行するスレッド数。1 以下なら逐次実行。

    Returns:
        DailyUpdateReport。

    Raises:
        DayRecordSourceError: 当日の記録一覧を取得できなかった場合。
    """
    window = day_bounds(day, timezone_offset_hours)
    try:
        day_records = source.list_day_records(window.start, window.end)
    except DayRecordSourceError:
        raise
    except Exception as e:
        raise DayRecordSourceError(f"Failed to list play records for {day}: {e}") from e

    charts = distinct_charts(day_records)
    logger.info("%s: %d play records, %d charts", day, len(day_records), len(charts))

    if max_workers <= 1 or len(charts) <= 1:
        processed = [
            _process_chart(source, window, tables, sha256, play_date)
            for sha256, play_date in charts
        ]
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            processed = list(
                executor.map(
                    lambda chart: _process_chart(source, window, tables, *chart),
                    charts,
                )
            )

    results = [song for song in processed if song is not None]

    report = assemble_report(
        day=day,
        results=results,
        total_played_songs=len(charts),
        total_notes=source.day_total_notes(day),
    )
    logger.info(
        "%s: %d updated (displayed %d, hidden %d)",
        day,
        report.stats.total_songs,
        report.stats.displayed_songs,
        report.stats.hidden_songs,
    )
    return report
