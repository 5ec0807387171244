"""
デバイスフィンガープリント

User-Agent・Accept系ヘッダー・IPアドレスのHMAC-SHA256で端末を識別する
"""

import hashlib
import hmac
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class DeviceSignals:
    """フィンガープリントの入力となるリクエスト属性"""

    user_agent: str = ""
    accept_language: str = ""
    accept_encoding: str = ""
    accept: str = ""
    ip_address: str = ""


def generate_fingerprint(secret: str, signals: DeviceSignals) -> str:
    """
    デバイスフィンガープリントを生成

    Args:
        secret: HMACキー
        signals: リクエスト属性

    Returns:
        HMAC-SHA256（64文字のHEX文字列）
    """
    message = "|".join(
        [
            signals.user_agent,
            signals.accept_language,
            signals.accept_encoding,
            signals.accept,
            signals.ip_address,
        ]
    )
    return hmac.new(
        secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256
    ).hexdigest()


def fingerprint_similarity(stored: Optional[str], current: Optional[str]) -> float:
    """
    2つのフィンガープリントの類似度

    同じ位置の文字が一致する割合（長い方の長さで割る）

    Returns:
        0.0〜1.0
    """
    if not stored or not current:
        return 0.0

    longest = max(len(stored), len(current))
    matches = sum(1 for a, b in zip(stored, current) if a == b)
    return matches / longest
