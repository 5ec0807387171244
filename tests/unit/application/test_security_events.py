"""
セキュリティイベントとリスク評価の単体テスト
"""

import json
from pathlib import Path

import pytest

from session_guard.application.security_events import risk_level_for
from session_guard.application.services import SessionServices
from session_guard.domain.models import RiskLevel, Severity
from tests.helpers import FakeClock


class TestRiskLevelFor:
    """risk_level_for()のテスト"""

    @pytest.mark.parametrize(
        "score, level",
        [
            (0, RiskLevel.LOW),
            (19, RiskLevel.LOW),
            (20, RiskLevel.MEDIUM),
            (49, RiskLevel.MEDIUM),
            (50, RiskLevel.HIGH),
            (99, RiskLevel.HIGH),
            (100, RiskLevel.CRITICAL),
        ],
    )
    def test_thresholds(self, score: int, level: RiskLevel) -> None:
        assert risk_level_for(score) == level


class TestReportSecurityEvent:
    """report_security_event()のテスト"""

    async def test_stores_newest_first(self, services: SessionServices) -> None:
        """イベントが新しい順に保存されること"""
        events = services.events
        await events.report_security_event("user-1", "FIRST", Severity.INFO)
        await events.report_security_event("user-1", "SECOND", Severity.WARNING)

        stored = await events.get_events("user-1")

        assert [e.event_type for e in stored] == ["SECOND", "FIRST"]
        assert stored[0].severity == Severity.WARNING

    async def test_keeps_at_most_limit(self, services: SessionServices) -> None:
        """上限件数を超えた古いイベントは捨てられること"""
        events = services.events
        events.event_limit = 3
        for i in range(5):
            await events.report_security_event("user-1", f"E{i}", Severity.INFO)

        stored = await events.get_events("user-1")

        assert [e.event_type for e in stored] == ["E4", "E3", "E2"]

    async def test_writes_one_audit_entry(
        self, services: SessionServices, audit_log_path: Path
    ) -> None:
        """監査ログに1件だけ書くこと"""
        await services.events.report_security_event(
            "user-1",
            "DEVICE_MISMATCH",
            Severity.WARNING,
            {"similarity": 0.5},
            session_id="s1",
            audit_event="Device fingerprint mismatch",
        )

        lines = audit_log_path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 1
        entry = json.loads(lines[0])
        assert entry["event"] == "Device fingerprint mismatch"
        assert entry["details"] == {"severity": "WARNING", "similarity": 0.5}

    async def test_default_audit_event_name(
        self, services: SessionServices, audit_log_path: Path
    ) -> None:
        await services.events.report_security_event("user-1", "CUSTOM", Severity.INFO)

        entry = json.loads(audit_log_path.read_text(encoding="utf-8").splitlines()[0])
        assert entry["event"] == "Security event: CUSTOM"


class TestCalculateSessionRisk:
    """calculate_session_risk()のテスト"""

    async def test_no_activity_is_low(self, services: SessionServices) -> None:
        risk = await services.events.calculate_session_risk("user-1")

        assert risk.risk_score == 0
        assert risk.risk_level == RiskLevel.LOW
        assert risk.risk_factors == []

    async def test_critical_event(self, services: SessionServices) -> None:
        """CRITICALイベント1件で50点（HIGH）になること"""
        await services.events.report_security_event(
            "user-1", "SESSION_HIJACK_ATTEMPT", Severity.CRITICAL
        )

        risk = await services.events.calculate_session_risk("user-1")

        assert risk.risk_score == 50
        assert risk.risk_level == RiskLevel.HIGH

    async def test_warnings_count_only_above_allowance(
        self, services: SessionServices
    ) -> None:
        """WARNINGは3件以上で1件10点になること"""
        events = services.events
        for _ in range(2):
            await events.report_security_event("user-1", "LOCATION_CHANGE", Severity.WARNING)
        assert (await events.calculate_session_risk("user-1")).risk_score == 0

        await events.report_security_event("user-1", "LOCATION_CHANGE", Severity.WARNING)
        risk = await events.calculate_session_risk("user-1")

        assert risk.risk_score == 30
        assert risk.risk_level == RiskLevel.MEDIUM

    async def test_failed_logins(self, services: SessionServices) -> None:
        """ログイン失敗は4回以上で1回15点になること"""
        events = services.events
        for _ in range(4):
            await events.record_failed_login("user-1")

        risk = await events.calculate_session_risk("user-1")

        assert risk.risk_score == 60
        assert "4 failed login attempts" in risk.risk_factors

        await events.clear_failed_logins("user-1")
        assert (await events.calculate_session_risk("user-1")).risk_score == 0

    async def test_excess_sessions(self, services: SessionServices) -> None:
        """上限を超えたセッション1件につき20点になること"""
        for i in range(services.settings.MAX_SESSIONS_PER_USER + 2):
            await services.store.track_user_session("user-1", f"s{i}")

        risk = await services.events.calculate_session_risk("user-1")

        assert risk.risk_score == 40

    async def test_combined_score_is_critical(self, services: SessionServices) -> None:
        events = services.events
        await events.report_security_event("user-1", "SESSION_HIJACK_ATTEMPT", Severity.CRITICAL)
        await events.report_security_event("user-1", "SESSION_HIJACK_ATTEMPT", Severity.CRITICAL)

        risk = await events.calculate_session_risk("user-1")

        assert risk.risk_score == 100
        assert risk.risk_level == RiskLevel.CRITICAL

    async def test_old_events_are_ignored(
        self, services: SessionServices, clock: FakeClock
    ) -> None:
        """評価期間より古いイベントは数えないこと"""
        events = services.events
        await events.report_security_event("user-1", "SESSION_HIJACK_ATTEMPT", Severity.CRITICAL)
        clock.advance(events.risk_window + 1)

        assert (await events.calculate_session_risk("user-1")).risk_score == 0


class TestGetSecurityMetrics:
    async def test_metrics(self, services: SessionServices) -> None:
        """重大度別・種別ごとに集計すること"""
        events = services.events
        await events.report_security_event("user-1", "A", Severity.INFO)
        await events.report_security_event("user-1", "A", Severity.WARNING)
        await events.report_security_event("user-1", "B", Severity.CRITICAL)

        metrics = await events.get_security_metrics("user-1")

        assert metrics["totalEvents"] == 3
        assert metrics["bySeverity"] == {"INFO": 1, "WARNING": 1, "CRITICAL": 1}
        assert metrics["byType"] == {"A": 2, "B": 1}
        assert metrics["recentEvents"] == 3
