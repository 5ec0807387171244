"""
デバイスフィンガープリントの単体テスト
"""

from session_guard.infrastructure.security.fingerprint import (
    DeviceSignals,
    fingerprint_similarity,
    generate_fingerprint,
)

SIGNALS = DeviceSignals(
    user_agent="Mozilla/5.0",
    accept_language="ja,en;q=0.8",
    accept_encoding="gzip, br",
    accept="*/*",
    ip_address="203.0.113.10",
)


class TestGenerateFingerprint:
    """generate_fingerprint()のテスト"""

    def test_hex_sha256(self) -> None:
        """64文字のHEX文字列を返すこと"""
        fingerprint = generate_fingerprint("secret", SIGNALS)

        assert len(fingerprint) == 64
        int(fingerprint, 16)

    def test_deterministic(self) -> None:
        """同じ入力からは同じフィンガープリントになること"""
        assert generate_fingerprint("secret", SIGNALS) == generate_fingerprint(
            "secret", SIGNALS
        )

    def test_depends_on_signals_and_secret(self) -> None:
        """ヘッダーやシークレットが変わると別の値になること"""
        other = DeviceSignals(**{**SIGNALS.__dict__, "accept_language": "en"})

        assert generate_fingerprint("secret", SIGNALS) != generate_fingerprint(
            "secret", other
        )
        assert generate_fingerprint("secret", SIGNALS) != generate_fingerprint(
            "other", SIGNALS
        )


class TestFingerprintSimilarity:
    """fingerprint_similarity()のテスト"""

    def test_identical(self) -> None:
        assert fingerprint_similarity("abcd", "abcd") == 1.0

    def test_positional_match(self) -> None:
        """同じ位置の一致数を長い方の長さで割ること"""
        assert fingerprint_similarity("abcd", "abxx") == 0.5
        assert fingerprint_similarity("abcd", "ab") == 0.5

    def test_missing_value(self) -> None:
        """どちらかが空なら0になること"""
        assert fingerprint_similarity(None, "abcd") == 0.0
        assert fingerprint_similarity("abcd", "") == 0.0
