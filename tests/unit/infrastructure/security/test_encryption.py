"""
セッション暗号化の単体テスト
"""

import pytest
from cryptography.fernet import Fernet

from session_guard.infrastructure.security.encryption import (
    SessionEncryption,
    derive_fernet_key,
)


class TestDeriveFernetKey:
    """derive_fernet_key()のテスト"""

    def test_derived_key_is_valid_fernet_key(self) -> None:
        """導出したキーでFernetを作れること"""
        Fernet(derive_fernet_key("secret"))

    def test_derivation_is_deterministic(self) -> None:
        """同じシークレットからは同じキーが導出されること"""
        assert derive_fernet_key("secret") == derive_fernet_key("secret")
        assert derive_fernet_key("secret") != derive_fernet_key("other")


class TestSessionEncryption:
    """SessionEncryptionのテスト"""

    def test_encrypt_decrypt(self) -> None:
        """暗号化したデータを復号できること"""
        encryption = SessionEncryption(Fernet.generate_key().decode(), "fallback")
        data = {"sessionId": "abc", "userId": "ユーザー"}

        encrypted = encryption.encrypt(data)

        assert "abc" not in encrypted
        assert encryption.decrypt(encrypted) == data

    def test_fallback_to_secret(self) -> None:
        """キー未設定の場合はシークレットから導出したキーを使うこと"""
        encryption = SessionEncryption("", "fallback")

        assert encryption.derived is True
        assert encryption.decrypt(encryption.encrypt({"a": 1})) == {"a": 1}

    def test_decrypt_with_other_key_fails(self) -> None:
        """別のキーで暗号化したデータは復号できないこと"""
        encrypted = SessionEncryption(None, "secret-a").encrypt({"a": 1})

        with pytest.raises(ValueError):
            SessionEncryption(None, "secret-b").decrypt(encrypted)

    def test_decrypt_garbage_fails(self) -> None:
        """不正なデータはValueErrorになること"""
        with pytest.raises(ValueError):
            SessionEncryption(None, "secret").decrypt("garbage")
