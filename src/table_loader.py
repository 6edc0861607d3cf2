"""
難易度表の取得・正規化処理。

BMS難易度表フォーマット(ヘッダJSON + データJSON)を取得し、
DifficultyTable へ変換する責務を持つ。

想定仕様:
- 設定URLが .json で終わる場合はヘッダJSONとして直接取得する
- それ以外はHTMLとして取得し <meta name="bmstable"> からヘッダURLを得る
- ヘッダの data_url が相対パスの場合はヘッダURL基準で解決する
- データ部は譜面の平坦な配列、またはレベルごとにまとめた配列/辞書のどちらも受け付け、
  ここで平坦な譜面一覧に正規化する

例外方針:
- requests 由来の例外・JSON解析失敗は TableLoadError に変換する
- load_difficulty_tables は表単位の失敗をログに残してスキップする
"""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup

from src.config import TableConfig
from src.errors import TableLoadError
from src.models import DifficultyTable, TableChart

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
DEFAULT_CACHE_SECONDS = 30 * 60

_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; daily-score-report)",
    "Accept": "application/json,text/html,text/plain,*/*",
}


@dataclass(frozen=True)
class FlatBody:
    """譜面が平坦な配列で並ぶデータ部。"""

    charts: Tuple[dict, ...]


@dataclass(frozen=True)
class LevelBucket:
    """レベルごとにまとめられた譜面群。"""

    level: str
    charts: Tuple[dict, ...]


@dataclass(frozen=True)
class GroupedBody:
    """レベルごとにまとめられたデータ部。"""

    buckets: Tuple[LevelBucket, ...]


TableBody = Union[FlatBody, GroupedBody]


@dataclass(frozen=True)
class TableCache:
    """
    読み込み済み難易度表と読み込み時刻(UNIX秒)。

    sources は読み込み時に設定されていた表URLの並び。設定が変わったキャッシュは使わない。
    """

    tables: Tuple[DifficultyTable, ...]
    loaded_at: float
    sources: Tuple[str, ...] = ()


def is_cache_fresh(cache: TableCache, now: float, ttl_seconds: float = DEFAULT_CACHE_SECONDS) -> bool:
    """キャッシュが有効期間内かどうかを返す。"""
    return (now - cache.loaded_at) < ttl_seconds


def ttl_check(minutes: int) -> Callable[[TableCache, float], bool]:
    """有効期間(分)を固定したキャッシュ判定関数を返す。"""

    def _check(cache: TableCache, now: float) -> bool:
        return is_cache_fresh(cache, now, minutes * 60)

    return _check


def _get(url: str, timeout: int) -> requests.Response:
    try:
        r = requests.get(url, headers=_HEADERS, timeout=timeout)
        r.raise_for_status()
        return r
    except requests.RequestException as e:
        raise TableLoadError(f"HTTP fetch failed: {url} ({e})") from e


def fetch_json(url: str, timeout: int = DEFAULT_TIMEOUT) -> Any:
    """
    指定URLのJSONを取得して返す。

    BOM付きUTF-8にも対応する。

    Raises:
        TableLoadError: 通信失敗、またはJSONとして解析できない場合。
    """
    r = _get(url, timeout)
    try:
        return json.loads(r.content.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise TableLoadError(f"Invalid JSON: {url} ({e})") from e


def fetch_html(url: str, timeout: int = DEFAULT_TIMEOUT) -> str:
    """指定URLのHTML文字列を返す。"""
    r = _get(url, timeout)
    r.encoding = r.apparent_encoding
    return r.text


def extract_header_url(html: str, base_url: str) -> str:
    """
    HTMLの <meta name="bmstable" content="..."> からヘッダJSONのURLを取り出す。

    Args:
        html: 難易度表ページのHTML。
        base_url: ページURL(相対パス解決用)。

    Returns:
        ヘッダJSONの絶対URL。

    Raises:
        TableLoadError: bmstable メタタグが存在しない場合。
    """
    soup = BeautifulSoup(html, "html.parser")
    meta = soup.find("meta", attrs={"name": "bmstable"})
    content = meta.get("content") if meta else None
    if not content:
        raise TableLoadError(f"bmstable meta tag not found: {base_url}")
    return urljoin(base_url, str(content).strip())


def _bucket_charts(item: dict) -> Optional[list]:
    for key in ("charts", "songs", "data"):
        value = item.get(key)
        if isinstance(value, list):
            return value
    return None


def parse_table_body(data: Any) -> TableBody:
    """
    データJSONを FlatBody / GroupedBody に分類する。

    - [{md5, sha256, level, ...}, ...] は FlatBody
    - [{level, charts: [...]}, ...] または {level: [...]} は GroupedBody

    Raises:
        TableLoadError: どちらの形にも当てはまらない場合。
    """
    if isinstance(data, dict):
        buckets = tuple(
            LevelBucket(level=str(level), charts=tuple(c for c in charts if isinstance(c, dict)))
            for level, charts in data.items()
            if isinstance(charts, list)
        )
        return GroupedBody(buckets=buckets)

    if not isinstance(data, list):
        raise TableLoadError(f"Unsupported table data type: {type(data).__name__}")

    items = [item for item in data if isinstance(item, dict)]
    if items and all(_bucket_charts(item) is not None for item in items):
        return GroupedBody(
            buckets=tuple(
                LevelBucket(
                    level=str(item.get("level", "")),
                    charts=tuple(c for c in _bucket_charts(item) if isinstance(c, dict)),
                )
                for item in items
            )
        )
    return FlatBody(charts=tuple(items))


def _to_chart(item: dict, level: Optional[str] = None) -> TableChart:
    raw_level = item.get("level", level)
    return TableChart(
        md5=str(item.get("md5") or ""),
        sha256=str(item.get("sha256") or ""),
        level="" if raw_level is None else str(raw_level),
        title=str(item.get("title") or ""),
    )


def flatten_body(body: TableBody) -> Tuple[TableChart, ...]:
    """データ部を平坦な譜面一覧に変換する。グループ形式ではバケットのレベルを補う。"""
    if isinstance(body, FlatBody):
        return tuple(_to_chart(item) for item in body.charts)

    charts: List[TableChart] = []
    for bucket in body.buckets:
        charts.extend(_to_chart(item, bucket.level) for item in bucket.charts)
    return tuple(charts)


def load_table(config: TableConfig, timeout: int = DEFAULT_TIMEOUT) -> DifficultyTable:
    """
    1つの難易度表を取得して DifficultyTable に変換する。

    Args:
        config: 難易度表設定。
        timeout: HTTPタイムアウト秒。

    Returns:
        DifficultyTable。

    Raises:
        TableLoadError: 取得・解析に失敗した場合。
    """
    if config.url.lower().endswith(".json"):
        header_url = config.url
    else:
        header_url = extract_header_url(fetch_html(config.url, timeout), config.url)

    header = fetch_json(header_url, timeout)
    if not isinstance(header, dict):
        raise TableLoadError(f"Header is not an object: {header_url}")

    data_url = header.get("data_url")
    if not data_url:
        raise TableLoadError(f"Header has no data_url: {header_url}")

    body = parse_table_body(fetch_json(urljoin(header_url, str(data_url)), timeout))
    level_order = header.get("level_order") or []

    return DifficultyTable(
        name=config.name,
        url=config.url,
        priority=config.priority,
        symbol=str(header.get("symbol") or ""),
        level_order=tuple(str(level) for level in level_order),
        charts=flatten_body(body),
    )


def load_difficulty_tables(
    configs: Sequence[TableConfig],
    cache: Optional[TableCache] = None,
    is_fresh: Optional[Callable[[TableCache, float], bool]] = None,
    now: Optional[float] = None,
    timeout: int = DEFAULT_TIMEOUT,
) -> TableCache:
    """
    設定された全難易度表を読み込み、優先度昇順に並べて返す。

    cache と is_fresh が渡され、cache が同じ表URL構成で読み込まれており
    is_fresh(cache, now) が真ならそのまま cache を返す。
    取得に失敗した表は警告ログを出してスキップする。

    Args:
        configs: 難易度表設定。
        cache: 前回の読み込み結果。
        is_fresh: キャッシュ有効判定関数。
        now: 現在時刻(UNIX秒)。省略時は time.time()。
        timeout: HTTPタイムアウト秒。

    Returns:
        新しい TableCache(キャッシュ有効時は渡された cache)。
    """
    current = time.time() if now is None else now
    sources = tuple(config.url for config in configs)
    if (
        cache is not None
        and is_fresh is not None
        and cache.sources == sources
        and is_fresh(cache, current)
    ):
        logger.info("Using cached difficulty tables (%d tables)", len(cache.tables))
        return cache

    tables: List[DifficultyTable] = []
    for config in configs:
        logger.info("Loading difficulty table: %s (%s)", config.name, config.url)
        try:
            tables.append(load_table(config, timeout))
        except TableLoadError as e:
            logger.warning("Failed to load difficulty table %s: %s", config.name, e)

    tables.sort(key=lambda t: t.priority)
    return TableCache(tables=tuple(tables), loaded_at=current, sources=sources)


def save_table_cache(cache: TableCache, path: str) -> None:
    """TableCache をJSONファイルに保存する。保存先ディレクトリは必要なら作成する。"""
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(asdict(cache), f, ensure_ascii=False)


def read_table_cache(path: str) -> Optional[TableCache]:
    """
    save_table_cache で保存したキャッシュを読み込む。

    ファイルが無い、または内容が壊れている場合は None(キャッシュ無し)を返す。
    """
    if not os.path.exists(path):
        return None

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        tables = tuple(
            DifficultyTable(
                name=t["name"],
                url=t["url"],
                priority=int(t["priority"]),
                symbol=t.get("symbol", ""),
                level_order=tuple(t.get("level_order") or ()),
                charts=tuple(TableChart(**c) for c in t.get("charts") or ()),
            )
            for t in data["tables"]
        )
        return TableCache(
            tables=tables,
            loaded_at=float(data["loaded_at"]),
            sources=tuple(data.get("sources") or ()),
        )
    except (OSError, ValueError, KeyError, TypeError) as e:
        logger.warning("Ignoring unreadable table cache %s: %s", path, e)
        return None
