"""
アプリケーション固有の例外定義モジュール。

設定読み込み、プレイ記録の取得、難易度表の読み込みなどで発生する例外を
分類して扱うために、基底例外および派生例外を定義する。
"""


class ScoreReportError(Exception):
    """日次更新レポート生成システム全体の基底例外。"""


class ConfigError(ScoreReportError):
    """設定ファイルの内容が不足・不正な場合の例外。"""


class DayRecordSourceError(ScoreReportError):
    """当日のプレイ記録一覧そのものを取得できなかった場合の例外。"""


class TableLoadError(ScoreReportError):
    """難易度表ヘッダ・データの取得や解析に失敗した場合の例外。"""
