"""
セッションレコードの暗号化

Fernet (対称暗号化) でセッションレコードをRedisに保存する前に暗号化する。
平文での保存は行わない。
"""

import base64
import hashlib
import json
import logging
from typing import Any, Optional

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


def derive_fernet_key(secret: str) -> bytes:
    """
    任意の文字列からFernetキーを導出

    SHA-256ダイジェスト(32byte)をURL-safe Base64にエンコードする

    Args:
        secret: 元になるシークレット

    Returns:
        Fernetキー
    """
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


class SessionEncryption:
    """
    セッションデータの暗号化/復号化

    SESSION_ENCRYPTION_KEY が設定されていればそれを使い、
    未設定の場合は SESSION_SECRET から導出したキーを使う
    """

    def __init__(self, encryption_key: Optional[str], fallback_secret: str):
        """
        Args:
            encryption_key: Fernetキー（空またはNoneの場合はfallback_secretから導出）
            fallback_secret: キー導出に使うシークレット
        """
        if encryption_key:
            self.cipher = Fernet(encryption_key.encode())
            self.derived = False
            logger.info("Session encryption enabled")
        else:
            self.cipher = Fernet(derive_fernet_key(fallback_secret))
            self.derived = True
            logger.warning(
                "Session encryption key derived from SESSION_SECRET "
                "(set SESSION_ENCRYPTION_KEY to use a dedicated key)"
            )

    def encrypt(self, data: dict[str, Any]) -> str:
        """
        セッションデータを暗号化

        Args:
            data: 暗号化するデータ（dict）

        Returns:
            暗号化されたデータ（Base64エンコードされた文字列）
        """
        try:
            json_str = json.dumps(data, ensure_ascii=False)
            encrypted = self.cipher.encrypt(json_str.encode("utf-8"))
            return encrypted.decode("utf-8")
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to encrypt session data: {e}")
            raise ValueError("Session encryption failed")

    def decrypt(self, encrypted_data: str) -> dict[str, Any]:
        """
        暗号化されたセッションデータを復号化

        Args:
            encrypted_data: 暗号化されたデータ（Base64文字列）

        Returns:
            復号化されたデータ（dict）

        Raises:
            ValueError: 復号化に失敗した場合
        """
        try:
            decrypted = self.cipher.decrypt(encrypted_data.encode("utf-8"))
            return json.loads(decrypted.decode("utf-8"))
        except InvalidToken:
            logger.error("Invalid encryption token for session data")
            raise ValueError("Invalid or corrupted session data")
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error(f"Failed to decrypt session data: {e}")
            raise ValueError("Session decryption failed")
