"""
クリアランプ(クリアタイプ)の定義。

beatoraja の score.db / scorelog.db に記録される clear 列の数値と
表示名の対応を持つ。
"""

from __future__ import annotations

NO_PLAY = 0
FAILED = 1
ASSIST_EASY_CLEAR = 2
LIGHT_ASSIST_CLEAR = 3
EASY_CLEAR = 4
CLEAR = 5
HARD_CLEAR = 6
EX_HARD_CLEAR = 7
FULL_COMBO = 8
PERFECT = 9
MAX = 10

CLEAR_TYPE_NAMES = {
    NO_PLAY: "NO PLAY",
    FAILED: "FAILED",
    ASSIST_EASY_CLEAR: "ASSIST EASY CLEAR",
    LIGHT_ASSIST_CLEAR: "LIGHT ASSIST CLEAR",
    EASY_CLEAR: "EASY CLEAR",
    CLEAR: "CLEAR",
    HARD_CLEAR: "HARD CLEAR",
    EX_HARD_CLEAR: "EX HARD CLEAR",
    FULL_COMBO: "FULL COMBO",
    PERFECT: "PERFECT",
    MAX: "MAX",
}


def clear_type_name(clear: int) -> str:
    """
    クリアタイプの数値から表示名を返す。

    Args:
        clear: clear 列の値。

    Returns:
        表示名。未定義の値は "UNKNOWN(n)" 形式。
    """
    name = CLEAR_TYPE_NAMES.get(clear)
    if name is None:
        return f"UNKNOWN({clear})"
    return name
