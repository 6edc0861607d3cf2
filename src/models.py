"""
データモデル定義モジュール。

beatoraja の各DBから取得した行を内部処理に渡すためのモデルと、
日次更新レポートの出力モデルを定義する。

DB上の番兵値(「前回記録なし」を表す 2147483647 など)は
PlayUpdateRecord.from_row で Optional に変換し、それ以降の処理には持ち込まない。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple

# scorelog の oldscore がこの値なら前回スコアなし
NO_PREVIOUS_SCORE = 0
# scorelog の minbp/oldminbp がこの値なら未記録
NO_PREVIOUS_MISS = 2147483647
# oldminbp がこの値なら記録履歴そのものが無い
NO_MISS_HISTORY = -2147483648
# MISS数の初期値。score.db の minbp もこの値以上は未記録扱い
MISS_BASELINE = 999999

EVENT_SCORE = "score"
EVENT_MISS = "miss"
EVENT_CLEAR = "clear"
EVENT_FIRST_PLAY = "firstPlay"

NO_TABLE_ORDER = 999


def to_int(value: Any) -> int:
    """
    DB値を int に変換する。変換できない値(None含む)は 0 とみなす。

    Args:
        value: 変換対象。

    Returns:
        int値。
    """
    if value is None:
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _parse_miss(value: Any) -> Optional[int]:
    """minbp 列を解析する。未記録の番兵値は None を返す。"""
    miss = to_int(value)
    if miss >= NO_PREVIOUS_MISS:
        return None
    return miss


@dataclass(frozen=True)
class PlayUpdateRecord:
    """
    scorelog の1行(ある譜面のある時刻における記録更新)を保持するモデル。

    miss_count / old_miss_count は未記録の場合 None。
    no_miss_history は oldminbp が「履歴なし」を示していたことを表す。
    """

    sha256: str
    mode: int
    clear: int
    old_clear: int
    score: int
    old_score: int
    combo: int
    old_combo: int
    miss_count: Optional[int]
    old_miss_count: Optional[int]
    timestamp: int
    no_miss_history: bool = False

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "PlayUpdateRecord":
        """
        scorelog の行(列名→値)から PlayUpdateRecord を生成する。

        数値列は best-effort で int 化し、例外は送出しない。

        Args:
            row: sha256/mode/clear/oldclear/score/oldscore/combo/oldcombo/
                minbp/oldminbp/date を持つマッピング。

        Returns:
            PlayUpdateRecord。
        """
        raw_old_miss = to_int(row.get("oldminbp"))
        no_history = raw_old_miss == NO_MISS_HISTORY

        return cls(
            sha256=str(row.get("sha256") or ""),
            mode=to_int(row.get("mode")),
            clear=to_int(row.get("clear")),
            old_clear=to_int(row.get("oldclear")),
            score=to_int(row.get("score")),
            old_score=to_int(row.get("oldscore")),
            combo=to_int(row.get("combo")),
            old_combo=to_int(row.get("oldcombo")),
            miss_count=_parse_miss(row.get("minbp")),
            old_miss_count=None if no_history else _parse_miss(raw_old_miss),
            timestamp=to_int(row.get("date")),
            no_miss_history=no_history,
        )

    @property
    def is_first_play(self) -> bool:
        """前回スコアが 0、または前回MISS数が未記録なら初回プレイ。"""
        if self.old_score == NO_PREVIOUS_SCORE:
            return True
        return self.old_miss_count is None and not self.no_miss_history


@dataclass(frozen=True)
class ImprovementEvent:
    """
    1譜面の1回の記録更新から検出された改善イベント。

    kind は score / miss / clear / firstPlay のいずれか。
    miss の delta は通常更新では減少数を負値で、初回プレイでは改善ノーツ数を正値で持つ。
    """

    kind: str
    delta: int
    new_value: Optional[int]
    old_value: Optional[int]
    clear_type: int
    miss_count: Optional[int]
    combo: int

    def to_dict(self) -> dict:
        return {
            "type": self.kind,
            "diff": self.delta,
            "newValue": self.new_value,
            "oldValue": self.old_value,
            "clearType": self.clear_type,
            "miss": self.miss_count,
            "combo": self.combo,
        }


@dataclass(frozen=True)
class ChartIdentity:
    """譜面の識別子。sha256 を優先し、無ければ md5 を使う。"""

    md5: str
    sha256: str


@dataclass(frozen=True)
class ChartMetadata:
    """songdata.db の楽曲情報。"""

    sha256: str
    md5: str
    title: str
    subtitle: str
    artist: str
    notes: int
    level: int

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ChartMetadata":
        return cls(
            sha256=str(row.get("sha256") or ""),
            md5=str(row.get("md5") or ""),
            title=str(row.get("title") or ""),
            subtitle=str(row.get("subtitle") or ""),
            artist=str(row.get("artist") or ""),
            notes=to_int(row.get("notes")),
            level=to_int(row.get("level")),
        )


@dataclass(frozen=True)
class BestScore:
    """
    score.db に保持された現在の自己ベスト。

    miss_count は未記録(MISS_BASELINE 以上または NULL)の場合 0 に正規化する。
    """

    epg: int = 0
    lpg: int = 0
    egr: int = 0
    lgr: int = 0
    egd: int = 0
    lgd: int = 0
    notes: int = 0
    clear: int = 0
    miss_count: int = 0

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "BestScore":
        raw_miss = to_int(row.get("minbp"))
        return cls(
            epg=to_int(row.get("epg")),
            lpg=to_int(row.get("lpg")),
            egr=to_int(row.get("egr")),
            lgr=to_int(row.get("lgr")),
            egd=to_int(row.get("egd")),
            lgd=to_int(row.get("lgd")),
            notes=to_int(row.get("notes")),
            clear=to_int(row.get("clear")),
            miss_count=raw_miss if raw_miss and raw_miss < MISS_BASELINE else 0,
        )


@dataclass(frozen=True)
class TableChart:
    """難易度表データ部の1譜面。"""

    md5: str
    sha256: str
    level: str
    title: str


@dataclass(frozen=True)
class DifficultyTable:
    """
    読み込み済みの難易度表。

    Attributes:
        name: 設定上の表名。
        url: 設定上のURL。
        priority: 優先度(小さいほど優先)。
        symbol: 表記号(例: "★")。
        level_order: ヘッダの level_order。無い場合は空。
        charts: 平坦化済みの譜面一覧。
    """

    name: str
    url: str
    priority: int
    symbol: str = ""
    level_order: Tuple[str, ...] = ()
    charts: Tuple[TableChart, ...] = ()


@dataclass(frozen=True)
class TableMembership:
    """ある譜面がある難易度表に含まれていることを表す。"""

    table: DifficultyTable
    symbol: str
    level: str
    level_order_index: float
    priority: int


@dataclass(frozen=True)
class TableResolution:
    """難易度表の解決結果。memberships は優先度順。"""

    memberships: Tuple[TableMembership, ...] = ()
    table_symbol: str = ""
    table_level: str = ""
    table_name: str = ""
    level_order_index: float = NO_TABLE_ORDER
    priority: int = NO_TABLE_ORDER
    has_multiple_tables: bool = False


@dataclass(frozen=True)
class ScoreSummary:
    """EXスコア・達成率・DJ LEVELの計算結果。"""

    ex_score: int
    max_score: int
    percentage: float
    rank: str


@dataclass(frozen=True)
class NextRankGap:
    """次のDJ LEVELまでの必要点数。AAA到達時は next_level=None。"""

    next_level: Optional[str]
    gap: int
    required_rate: float

    def to_dict(self) -> dict:
        return {
            "nextLevel": self.next_level,
            "pointsNeeded": self.gap,
            "requiredRate": self.required_rate,
        }


@dataclass(frozen=True)
class SongUpdateResult:
    """1譜面分の日次更新結果。"""

    sha256: str
    md5: str
    title: str
    subtitle: str
    artist: str
    notes: int
    level: int
    score: int
    ex_score: int
    max_score: int
    percentage: float
    dj_level: str
    next_dj_level: NextRankGap
    dj_level_points: int
    clear: int
    clear_type_name: str
    miss_count: int
    play_date: int
    updates: Tuple[ImprovementEvent, ...]
    table_symbol: str
    table_level: str
    table_name: str
    level_order_index: float
    priority: int
    has_multiple_tables: bool
    is_unknown_song: bool

    @property
    def has_table(self) -> bool:
        return self.table_symbol != ""

    def to_dict(self) -> dict:
        return {
            "sha256": self.sha256,
            "md5": self.md5,
            "title": self.title,
            "subtitle": self.subtitle,
            "artist": self.artist,
            "totalNotes": self.notes,
            "level": self.level,
            "score": self.score,
            "iidxScore": self.ex_score,
            "iidxMaxScore": self.max_score,
            "percentage": self.percentage,
            "djLevel": self.dj_level,
            "nextDjLevelPoints": self.next_dj_level.to_dict(),
            "djLevelPoints": self.dj_level_points,
            "clear": self.clear,
            "clearTypeName": self.clear_type_name,
            "minbp": self.miss_count,
            "playDate": self.play_date,
            "updates": [u.to_dict() for u in self.updates],
            "tableSymbol": self.table_symbol,
            "tableLevel": self.table_level,
            "tableName": self.table_name,
            "levelOrderIndex": self.level_order_index,
            "priority": self.priority,
            "hasMultipleTables": self.has_multiple_tables,
            "isUnknownSong": self.is_unknown_song,
        }


@dataclass(frozen=True)
class DailyStats:
    """日次レポートの統計情報。"""

    total_songs: int = 0
    total_played_songs: int = 0
    total_notes: int = 0
    displayed_songs: int = 0
    hidden_songs: int = 0
    unknown_songs: int = 0

    def to_dict(self) -> dict:
        return {
            "totalSongs": self.total_songs,
            "totalPlayedSongs": self.total_played_songs,
            "totalNotes": self.total_notes,
            "displayedSongs": self.displayed_songs,
            "hiddenSongs": self.hidden_songs,
            "unknownSongs": self.unknown_songs,
        }


@dataclass(frozen=True)
class DailyUpdateReport:
    """日次更新レポート。"""

    date: str
    songs: Tuple[SongUpdateResult, ...] = field(default_factory=tuple)
    stats: DailyStats = field(default_factory=DailyStats)

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "songs": [s.to_dict() for s in self.songs],
            "stats": self.stats.to_dict(),
        }
