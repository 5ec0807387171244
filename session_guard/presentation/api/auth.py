"""ウォレット認証エンドポイント"""

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from ...application.services import SessionServices
from ...core.logging import get_logger
from ...domain.models import SessionRecord
from ...utils.session_helper import clear_session_cookie, set_session_cookie
from ..schemas.session import LoginRequest, SuccessResponse
from .deps import get_current_session, get_services

router = APIRouter()
logger = get_logger(__name__)


@router.post("/login", response_model=SuccessResponse, response_model_exclude_none=True)
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    services: SessionServices = Depends(get_services),
) -> SuccessResponse:
    """
    ウォレットログイン

    既存のセッションIDはミドルウェアで再生成済みのため、そのIDを引き継いで
    認証済みセッションを作成する
    """
    manager = services.manager
    record = await manager.create_wallet_session(
        wallet_address=body.wallet_address,
        user_id=body.user_id,
        user_agent=request.state.user_agent,
        ip_address=request.state.client_ip,
        wallet_type=body.wallet_type,
        session_id=request.state.regenerated_session_id,
    )
    await services.events.clear_failed_logins(record.principal)
    logger.info(f"Wallet login succeeded: {record.wallet_address}")

    request.state.session = record
    request.state.session_id = record.session_id
    set_session_cookie(response, services.settings, record.session_id)

    return SuccessResponse(
        data={
            "sessionId": record.session_id,
            "walletAddress": record.wallet_address,
            "userId": record.user_id,
            "sessionType": record.session_type.value,
            "authenticatedAt": record.authenticated_at,
            "expiresAt": manager.expires_at(record),
        }
    )


@router.post("/logout", response_model=SuccessResponse, response_model_exclude_none=True)
async def logout(
    request: Request,
    response: Response,
    session: Optional[SessionRecord] = Depends(get_current_session),
    services: SessionServices = Depends(get_services),
) -> SuccessResponse:
    """ログアウト（セッションがなくても成功として扱う）"""
    if session is not None:
        await services.manager.invalidate_session(
            session,
            "logout",
            ip=request.state.client_ip,
            user_agent=request.state.user_agent,
        )
        request.state.session = None

    clear_session_cookie(response, services.settings)
    return SuccessResponse(message="Logged out successfully")
