"""ログイン中のユーザー情報"""

from fastapi import APIRouter, Depends

from ...domain.models import SessionRecord
from ..schemas.session import SuccessResponse
from .deps import require_wallet_authentication

router = APIRouter()


@router.get("", response_model=SuccessResponse, response_model_exclude_none=True)
async def get_profile(
    session: SessionRecord = Depends(require_wallet_authentication),
) -> SuccessResponse:
    """セッションに紐づくウォレットとユーザー"""
    return SuccessResponse(
        data={
            "sessionId": session.session_id,
            "userId": session.user_id,
            "walletAddress": session.wallet_address,
            "walletType": session.wallet_type,
            "sessionType": session.session_type.value,
            "authenticatedAt": session.authenticated_at,
            "lastAccessed": session.last_accessed,
        }
    )
