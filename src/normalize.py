"""
文字列正規化ユーティリティ。

難易度表に含まれない楽曲を曲名順に並べるためのソートキーを生成する。
比較は Unicode Collation Algorithm (pyuca / DUCET) に従うため、
記号は英数字より前、ひらがなとカタカナは同じ読みとして並ぶ。
"""

from __future__ import annotations

import re
import unicodedata
from functools import lru_cache
from typing import Optional, Tuple

from pyuca import Collator


@lru_cache(maxsize=1)
def _collator() -> Collator:
    """照合表の読み込みは重いため、初回利用時に1度だけ生成する。"""
    return Collator()


def _collapse(s: str) -> str:
    """改行・タブを含む連続空白を単一スペースにし、前後を除去する。"""
    return re.sub(r"\s+", " ", s).strip()


def title_sort_key(title: Optional[str]) -> Tuple[int, ...]:
    """
    曲名の比較用キーを返す。

    全角半角の違いは NFKC で吸収し、以降は照合順序(1次: 文字、2次: アクセント、
    3次: 大文字小文字・かな種別)で比較する。大文字小文字のみ異なる場合は小文字が先。

    Args:
        title: 曲名。None は空文字として扱う。

    Returns:
        ソートキーのタプル。
    """
    s = _collapse(unicodedata.normalize("NFKC", title or ""))
    return _collator().sort_key(s)
