"""
セッション管理エンドポイント

現在のセッション・同一ユーザーのセッション一覧・終了操作・
セキュリティ状況・端末信頼・CSRFトークンを扱う
"""

from typing import Any

from fastapi import APIRouter, Depends, Request, Response

from ...application.services import SessionServices
from ...application.session_manager import SessionManager
from ...core.logging import get_logger
from ...domain.exceptions import ForbiddenError, NotFoundError
from ...domain.models import SecurityEventType, SessionRecord, Severity
from ...infrastructure.security.fingerprint import (
    fingerprint_similarity,
    generate_fingerprint,
)
from ...utils.session_helper import clear_session_cookie, get_device_signals
from ..schemas.session import SecurityReportRequest, SuccessResponse
from .deps import (
    get_services,
    require_authenticated_session,
    require_wallet_authentication,
)

router = APIRouter()
logger = get_logger(__name__)


def _session_summary(
    manager: SessionManager, record: SessionRecord, current_session_id: str
) -> dict[str, Any]:
    """レスポンス用のセッション情報（トークン類は含めない）"""
    return {
        "sessionId": record.session_id,
        "sessionType": record.session_type.value,
        "userId": record.user_id,
        "walletAddress": record.wallet_address,
        "walletType": record.wallet_type,
        "userAgent": record.user_agent,
        "ipAddress": record.ip_address,
        "trustedDevice": record.trusted_device,
        "createdAt": record.created_at,
        "authenticatedAt": record.authenticated_at,
        "lastAccessed": record.last_accessed,
        "expiresAt": manager.expires_at(record),
        "isCurrent": record.session_id == current_session_id,
    }


def _client(request: Request) -> dict[str, Any]:
    return {
        "ip": getattr(request.state, "client_ip", None),
        "user_agent": getattr(request.state, "user_agent", None),
    }


@router.get("/current", response_model=SuccessResponse, response_model_exclude_none=True)
async def get_current_session_info(
    session: SessionRecord = Depends(require_authenticated_session),
    services: SessionServices = Depends(get_services),
) -> SuccessResponse:
    """現在のセッション"""
    return SuccessResponse(
        data=_session_summary(services.manager, session, session.session_id)
    )


@router.get("/active", response_model=SuccessResponse, response_model_exclude_none=True)
async def get_active_sessions(
    session: SessionRecord = Depends(require_authenticated_session),
    services: SessionServices = Depends(get_services),
) -> SuccessResponse:
    """同一ユーザーの有効なセッション一覧（作成順）とリスク評価"""
    manager = services.manager
    sessions = await manager.get_active_sessions(session.principal)
    risk = await services.events.calculate_session_risk(
        session.principal, session.session_id
    )
    return SuccessResponse(
        data={
            "sessions": [
                _session_summary(manager, s, session.session_id) for s in sessions
            ],
            "totalSessions": len(sessions),
            "maxSessions": manager.max_sessions_per_user,
            "riskAssessment": risk.model_dump(by_alias=True),
        }
    )


@router.post("/validate", response_model=SuccessResponse, response_model_exclude_none=True)
async def validate_session(
    session: SessionRecord = Depends(require_authenticated_session),
    services: SessionServices = Depends(get_services),
) -> SuccessResponse:
    """現在のセッションの有効性とリスク評価"""
    manager = services.manager
    validated = await manager.validate_wallet_session(session.session_id, session.token)
    risk = await services.events.calculate_session_risk(
        session.principal, session.session_id
    )
    return SuccessResponse(
        data={
            "valid": validated is not None,
            "sessionId": session.session_id,
            "expiresAt": manager.expires_at(validated or session),
            "riskAssessment": risk.model_dump(by_alias=True),
        }
    )


@router.post("/refresh", response_model=SuccessResponse, response_model_exclude_none=True)
async def refresh_session(
    request: Request,
    session: SessionRecord = Depends(require_wallet_authentication),
    services: SessionServices = Depends(get_services),
) -> SuccessResponse:
    """
    セッションを延長

    前回のアクセスからしきい値以上経過していればトークンをローテーションする
    """
    manager = services.manager
    previous_token = session.token
    record = await manager.refresh_wallet_session(
        session, last_seen=getattr(request.state, "previous_last_accessed", None)
    )
    return SuccessResponse(
        data={
            "sessionId": record.session_id,
            "tokenRotated": record.token != previous_token,
            "refreshedAt": record.refreshed_at,
            "expiresAt": manager.expires_at(record),
        },
        message="Session refreshed",
    )


@router.post(
    "/terminate-all", response_model=SuccessResponse, response_model_exclude_none=True
)
async def terminate_all_sessions(
    request: Request,
    session: SessionRecord = Depends(require_authenticated_session),
    services: SessionServices = Depends(get_services),
) -> SuccessResponse:
    """現在のセッション以外をすべて終了"""
    count = await services.manager.invalidate_all_sessions(
        session.principal, keep=session.session_id
    )
    await services.events.report_security_event(
        session.principal,
        SecurityEventType.ALL_SESSIONS_TERMINATED.value,
        Severity.INFO,
        {"terminatedCount": count},
        session_id=session.session_id,
        **_client(request),
    )
    return SuccessResponse(
        data={"terminatedCount": count},
        message=f"Terminated {count} sessions",
    )


@router.get(
    "/security/status", response_model=SuccessResponse, response_model_exclude_none=True
)
async def get_security_status(
    session: SessionRecord = Depends(require_authenticated_session),
    services: SessionServices = Depends(get_services),
) -> SuccessResponse:
    """リスク評価と直近のセキュリティイベント"""
    events = services.events
    risk = await events.calculate_session_risk(session.principal, session.session_id)
    recent = await events.get_recent_events(session.principal)
    return SuccessResponse(
        data={
            "riskAssessment": risk.model_dump(by_alias=True),
            "recentEvents": [e.model_dump(by_alias=True) for e in recent],
            "trustedDevice": session.trusted_device,
        }
    )


@router.post(
    "/security/report", response_model=SuccessResponse, response_model_exclude_none=True
)
async def report_security_event(
    body: SecurityReportRequest,
    request: Request,
    session: SessionRecord = Depends(require_authenticated_session),
    services: SessionServices = Depends(get_services),
) -> SuccessResponse:
    """ユーザーからのセキュリティイベント報告"""
    metadata = {**body.metadata, "reportedBy": "user"}
    if body.description:
        metadata["description"] = body.description

    event = await services.events.report_security_event(
        session.principal,
        body.event_type,
        body.severity,
        metadata,
        session_id=session.session_id,
        **_client(request),
    )
    return SuccessResponse(
        data={"eventId": event.id}, message="Security event reported"
    )


@router.get(
    "/security/metrics", response_model=SuccessResponse, response_model_exclude_none=True
)
async def get_security_metrics(
    session: SessionRecord = Depends(require_authenticated_session),
    services: SessionServices = Depends(get_services),
) -> SuccessResponse:
    """重大度別・種別ごとのイベント件数"""
    metrics = await services.events.get_security_metrics(session.principal)
    return SuccessResponse(data=metrics)


@router.post("/device/trust", response_model=SuccessResponse, response_model_exclude_none=True)
async def trust_device(
    request: Request,
    session: SessionRecord = Depends(require_wallet_authentication),
    services: SessionServices = Depends(get_services),
) -> SuccessResponse:
    """現在の端末を信頼済みにする（以後フィンガープリント不一致で拒否しない）"""
    if session.device_fingerprint is None:
        session.device_fingerprint = generate_fingerprint(
            services.settings.SESSION_SECRET, get_device_signals(request)
        )
    session.trusted_device = True
    await services.manager.save(session)

    await services.events.report_security_event(
        session.principal,
        SecurityEventType.DEVICE_TRUSTED.value,
        Severity.INFO,
        {"fingerprint": session.device_fingerprint[:8]},
        session_id=session.session_id,
        **_client(request),
    )
    return SuccessResponse(
        data={"trustedDevice": True}, message="Device marked as trusted"
    )


@router.get("/device/info", response_model=SuccessResponse, response_model_exclude_none=True)
async def get_device_info(
    request: Request,
    session: SessionRecord = Depends(require_authenticated_session),
    services: SessionServices = Depends(get_services),
) -> SuccessResponse:
    """記録済みの端末情報と現在のリクエストとの類似度"""
    current = generate_fingerprint(
        services.settings.SESSION_SECRET, get_device_signals(request)
    )
    return SuccessResponse(
        data={
            "trustedDevice": session.trusted_device,
            "fingerprintRecorded": session.device_fingerprint is not None,
            "fingerprintSimilarity": fingerprint_similarity(
                session.device_fingerprint, current
            ),
            "userAgent": session.user_agent,
            "ipAddress": session.ip_address,
            "currentIpAddress": getattr(request.state, "client_ip", None),
        }
    )


@router.get("/csrf/token", response_model=SuccessResponse, response_model_exclude_none=True)
async def get_csrf_token(
    request: Request,
    session: SessionRecord = Depends(require_authenticated_session),
    services: SessionServices = Depends(get_services),
) -> SuccessResponse:
    """
    CSRFトークンを発行

    Cookie・ヘッダーへの設定と保存はCSRFミドルウェアが行う
    """
    token = services.csrf.issue(session)
    request.state.csrf_token_issued = True
    return SuccessResponse(
        data={
            "csrfToken": token,
            "expiresAt": session.csrf_token_expiry,
            "headerName": services.settings.CSRF_HEADER_NAME,
        }
    )


@router.get("/csrf/stats", response_model=SuccessResponse, response_model_exclude_none=True)
async def get_csrf_stats(
    session: SessionRecord = Depends(require_authenticated_session),
    services: SessionServices = Depends(get_services),
) -> SuccessResponse:
    """全セッションのCSRFトークン状況"""
    store = services.store
    sessions = []
    for session_id in await store.iter_session_ids():
        record = await store.get(session_id)
        if record is not None:
            sessions.append(record)
    return SuccessResponse(data=services.csrf.stats(sessions))


@router.get("/analytics", response_model=SuccessResponse, response_model_exclude_none=True)
async def get_session_analytics(
    session: SessionRecord = Depends(require_authenticated_session),
    services: SessionServices = Depends(get_services),
) -> SuccessResponse:
    """ストア全体の統計と現在ユーザーのセッション状況"""
    manager = services.manager
    stats = await manager.session_stats()
    sessions = await manager.get_active_sessions(session.principal)
    risk = await services.events.calculate_session_risk(
        session.principal, session.session_id
    )
    return SuccessResponse(
        data={
            "store": stats,
            "user": {
                "activeSessions": len(sessions),
                "trustedDevices": sum(1 for s in sessions if s.trusted_device),
                "oldestSessionCreatedAt": sessions[0].created_at if sessions else None,
                "riskAssessment": risk.model_dump(by_alias=True),
            },
        }
    )


@router.delete(
    "/{session_id}", response_model=SuccessResponse, response_model_exclude_none=True
)
async def terminate_session(
    session_id: str,
    request: Request,
    response: Response,
    session: SessionRecord = Depends(require_authenticated_session),
    services: SessionServices = Depends(get_services),
) -> SuccessResponse:
    """
    自分のセッションを1つ終了

    Raises:
        NotFoundError: セッションが存在しない
        ForbiddenError: 他のユーザーのセッション
    """
    target = await services.store.get(session_id)
    if target is None:
        raise NotFoundError("Session not found")
    if target.principal != session.principal:
        logger.warning(
            f"Session {session.session_id} tried to terminate foreign session {session_id}"
        )
        raise ForbiddenError("Cannot terminate another user's session")

    client = _client(request)
    await services.manager.invalidate_session(target, "terminated_by_user", **client)
    await services.events.report_security_event(
        session.principal,
        SecurityEventType.SESSION_TERMINATED.value,
        Severity.INFO,
        {"terminatedSessionId": session_id},
        session_id=session.session_id,
        **client,
    )

    if session_id == session.session_id:
        request.state.session = None
        clear_session_cookie(response, services.settings)

    return SuccessResponse(message="Session terminated")
