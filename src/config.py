"""
設定ファイル(settings.yaml)の読み込み処理を提供するモジュール。

settings.yaml から日次レポート生成に必要な各種設定を読み込み、
アプリ内で扱いやすい dataclass に変換する。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import yaml

from src.errors import ConfigError

DEFAULT_TABLE_CACHE_PATH = ".cache/difficulty_tables.json"


@dataclass(frozen=True)
class DbPaths:
    """
    beatoraja のDBファイルパス。

    Attributes:
        score: score.db のパス(自己ベスト)。
        scorelog: scorelog.db のパス(記録更新ログ)。
        songdata: songdata.db のパス(楽曲情報)。
        scoredatalog: scoredatalog.db のパス(全プレイ判定ログ)。未設定なら総ノーツ数は 0。
    """

    score: str
    scorelog: str
    songdata: str
    scoredatalog: Optional[str] = None


@dataclass(frozen=True)
class TableConfig:
    """
    難易度表の設定。

    Attributes:
        name: 表名。
        url: ヘッダJSONのURL、または bmstable メタタグを持つHTMLページのURL。
        priority: 優先度(小さいほど優先)。
    """

    name: str
    url: str
    priority: int


@dataclass(frozen=True)
class Settings:
    """
    アプリケーション全体設定。

    Attributes:
        db_paths: DBファイルパス。
        difficulty_tables: 難易度表設定。
        timezone_offset_hours: 日付境界に使うUTCからの時差(時間)。
        table_cache_minutes: 難易度表キャッシュの有効期間(分)。
        max_workers: 譜面ごとの取得の並列数。
        output_path: レポートJSONの出力先。未設定なら標準出力。
        table_cache_path: 難易度表キャッシュの保存先JSON。
    """

    db_paths: DbPaths
    difficulty_tables: Tuple[TableConfig, ...] = ()
    timezone_offset_hours: int = 9
    table_cache_minutes: int = 30
    max_workers: int = 4
    output_path: Optional[str] = None
    table_cache_path: str = DEFAULT_TABLE_CACHE_PATH


def _parse_table(item: dict, index: int) -> TableConfig:
    """difficulty_tables の1要素を TableConfig に変換する。"""
    if not isinstance(item, dict):
        raise ConfigError(f"difficulty_tables[{index}] must be a mapping")

    url = str(item.get("url") or "").strip()
    if not url:
        raise ConfigError(f"difficulty_tables[{index}].url is required")

    try:
        priority = int(item.get("priority", index + 1))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"difficulty_tables[{index}].priority must be int") from e

    return TableConfig(
        name=str(item.get("name") or url).strip(),
        url=url,
        priority=priority,
    )


def load_settings(path: str) -> Settings:
    """
    settings.yaml を読み込み Settings に変換する。

    Args:
        path: settings.yaml のファイルパス。

    Returns:
        Settingsオブジェクト。

    Raises:
        FileNotFoundError: 設定ファイルが存在しない場合。
        yaml.YAMLError: YAMLのパースに失敗した場合。
        ConfigError: 必須キー(db_paths.score/scorelog/songdata)が無い、または値が不正な場合。
    """
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    db_data = data.get("db_paths") or {}
    missing = [k for k in ("score", "scorelog", "songdata") if not db_data.get(k)]
    if missing:
        raise ConfigError(f"db_paths.{', db_paths.'.join(missing)} is required")

    tables = tuple(
        _parse_table(item, i) for i, item in enumerate(data.get("difficulty_tables") or [])
    )

    try:
        timezone_offset_hours = int(data.get("timezone_offset_hours", 9))
        table_cache_minutes = int(data.get("table_cache_minutes", 30))
        max_workers = int(data.get("max_workers", 4))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid numeric setting: {e}") from e

    output_path = data.get("output_path")

    return Settings(
        db_paths=DbPaths(
            score=str(db_data["score"]),
            scorelog=str(db_data["scorelog"]),
            songdata=str(db_data["songdata"]),
            scoredatalog=str(db_data["scoredatalog"]) if db_data.get("scoredatalog") else None,
        ),
        difficulty_tables=tables,
        timezone_offset_hours=timezone_offset_hours,
        table_cache_minutes=table_cache_minutes,
        max_workers=max_workers,
        output_path=str(output_path) if output_path else None,
        table_cache_path=str(data.get("table_cache_path") or DEFAULT_TABLE_CACHE_PATH),
    )
