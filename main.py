import argparse
import json
import logging
import os
import sys
import traceback
from datetime import date, datetime, timedelta, timezone

from src.config import load_settings
from src.db import BeatorajaSource
from src.report import build_daily_report
from src.table_loader import (
    TableCache,
    load_difficulty_tables,
    read_table_cache,
    save_table_cache,
    ttl_check,
)


def today_in(offset_hours: int) -> date:
    """
    指定した時差での今日の日付を返す。

    Args:
        offset_hours: UTCからの時差(時間)。

    Returns:
        date: 今日の日付。
    """
    return datetime.now(timezone(timedelta(hours=offset_hours))).date()


def write_report(report: dict, output_path: str = None) -> None:
    """レポートをJSONで出力する。output_path が無ければ標準出力へ書く。"""
    text = json.dumps(report, ensure_ascii=False, indent=2)
    if not output_path:
        print(text)
        return

    os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as file_obj:
        file_obj.write(text)
        file_obj.write("\n")


def load_tables(settings, now: float = None) -> TableCache:
    """
    難易度表を読み込む。保存済みキャッシュが有効期間内ならそれを使い、
    取得し直した場合はキャッシュファイルを更新する。

    Args:
        settings: アプリケーション設定。
        now: 現在時刻(UNIX秒)。省略時は現在時刻。

    Returns:
        TableCache: 読み込み済み難易度表。
    """
    cached = read_table_cache(settings.table_cache_path)
    cache = load_difficulty_tables(
        settings.difficulty_tables,
        cache=cached,
        is_fresh=ttl_check(settings.table_cache_minutes),
        now=now,
    )
    if cache is not cached:
        save_table_cache(cache, settings.table_cache_path)
    return cache


def main(argv=None):
    """
    指定日の日次更新レポートを生成するメイン処理。
    以下の処理を順序実行する:
    1. settings.yaml を読み込む
    2. 難易度表を取得する
    3. beatoraja のDBから当日の記録を集計しレポートを生成する
    4. レポートをJSONとして出力する
    環境変数:
    - SETTINGS_PATH: 設定ファイルパス(デフォルト: "settings.yaml")
    - LOG_LEVEL: ログレベル(デフォルト: "INFO")
    Raises:
        Exception: 処理中に任意のエラーが発生した場合。
    """
    parser = argparse.ArgumentParser(description="beatoraja daily score update report")
    parser.add_argument("date", nargs="?", help="対象日 (YYYY-MM-DD)。省略時は今日")
    parser.add_argument("--settings", default=os.environ.get("SETTINGS_PATH", "settings.yaml"))
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        settings = load_settings(args.settings)
        target = (
            date.fromisoformat(args.date)
            if args.date
            else today_in(settings.timezone_offset_hours)
        )

        # 1. 難易度表取得
        cache = load_tables(settings)

        # 2. レポート生成
        report = build_daily_report(
            day=target,
            source=BeatorajaSource(settings.db_paths, settings.timezone_offset_hours),
            tables=cache.tables,
            timezone_offset_hours=settings.timezone_offset_hours,
            max_workers=settings.max_workers,
        )

        # 3. 出力
        write_report(report.to_dict(), settings.output_path)

    except Exception:
        print(traceback.format_exc(), file=sys.stderr)
        raise


if __name__ == "__main__":
    main()
