"""アプリケーション用のロギングユーティリティ。"""

import logging
import sys


def is_fastapi_context() -> bool:
    """
    FastAPI/uvicornコンテキストで実行中かどうかを判定する。

    Returns:
        bool: uvicornがロードされている場合True、そうでない場合False。
    """
    return "uvicorn" in sys.modules


def get_logger(name: str) -> logging.Logger:
    """
    ロガーインスタンスを取得する。

    uvicorn上で動作している場合は"uvicorn"ロガーを使用し、
    サーバーのログと同じフォーマット・出力先にまとめる。
    それ以外（テスト、バッチCLIなど）では呼び出し元のモジュール名のロガーを返す。

    監査ログ（SESSION_AUDIT_LOG_PATH）はこのロガーとは別に
    infrastructure.audit.audit_log が直接ファイルへ追記する。

    Args:
        name: ロガー名、通常は呼び出し元モジュールの__name__を指定。

    Returns:
        logging.Logger: 設定済みのロガーインスタンス。

    Examples:
        >>> logger = get_logger(__name__)
        >>> logger.info("Session store initialized")
    """
    if is_fastapi_context():
        return logging.getLogger("uvicorn")
    return logging.getLogger(name)
