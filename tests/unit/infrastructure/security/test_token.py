"""
セッショントークンの単体テスト
"""

from cryptography.fernet import Fernet

from session_guard.infrastructure.security.token import SessionTokenCodec
from tests.helpers import FakeClock

SECRET = "test-session-secret"


class TestGenerate:
    """generate()のテスト"""

    def test_same_input_produces_distinct_tokens(self) -> None:
        """同じ入力でも毎回異なるトークンになること"""
        codec = SessionTokenCodec(SECRET, FakeClock())

        first = codec.generate("user-1", "0xabc")
        second = codec.generate("user-1", "0xabc")

        assert first != second

    def test_generated_token_validates(self) -> None:
        """生成したトークンを検証するとペイロードが得られること"""
        clock = FakeClock(1_000.0)
        codec = SessionTokenCodec(SECRET, clock)

        payload = codec.validate(codec.generate("user-1", "0xabc"))

        assert payload is not None
        assert payload.user_id == "user-1"
        assert payload.wallet_address == "0xabc"
        assert payload.issued_at == 1_000.0
        assert len(payload.token_id) == 32

    def test_wallet_only_token(self) -> None:
        """ユーザーIDなしのトークンを生成できること"""
        codec = SessionTokenCodec(SECRET, FakeClock())

        payload = codec.validate(codec.generate(None, "0xabc"))

        assert payload is not None
        assert payload.user_id is None


class TestValidate:
    """validate()のテスト"""

    def test_garbage_returns_none(self) -> None:
        """不正な文字列はNoneになること"""
        codec = SessionTokenCodec(SECRET, FakeClock())

        assert codec.validate("not-a-token") is None

    def test_non_string_returns_none(self) -> None:
        """文字列以外はNoneになること"""
        codec = SessionTokenCodec(SECRET, FakeClock())

        assert codec.validate(None) is None
        assert codec.validate(12345) is None
        assert codec.validate("") is None

    def test_other_secret_returns_none(self) -> None:
        """別のシークレットで生成したトークンはNoneになること"""
        token = SessionTokenCodec("other-secret", FakeClock()).generate("u", "0xabc")

        assert SessionTokenCodec(SECRET, FakeClock()).validate(token) is None

    def test_wrong_schema_returns_none(self) -> None:
        """復号できてもスキーマが違う場合はNoneになること"""
        from session_guard.infrastructure.security.encryption import derive_fernet_key

        cipher = Fernet(derive_fernet_key(SECRET))
        token = cipher.encrypt(b'{"unexpected": true}').decode()

        assert SessionTokenCodec(SECRET, FakeClock()).validate(token) is None
