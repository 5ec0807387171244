from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request, Response, status

from ....application.services import SessionServices
from ....core.logging import get_logger
from ...schemas.system import HealthCheckResponse
from ..deps import get_services

router = APIRouter()
logger = get_logger(__name__)


@router.get("/", response_model=HealthCheckResponse)
async def healthcheck(
    request: Request,
    response: Response,
    services: SessionServices = Depends(get_services),
) -> HealthCheckResponse:
    """
    ヘルスチェックエンドポイント

    - Redis接続とセッションストアの読み書き
    - 直近の監査ログに基づく警告
    - アプリケーションuptime
    - 環境情報を返す

    unhealthyの場合は503 Service Unavailableを返す
    """
    # uptime計算
    start_time = getattr(request.app.state, "start_time", None)
    uptime_seconds = 0.0
    if start_time:
        uptime_seconds = (datetime.now(timezone.utc) - start_time).total_seconds()

    result = await services.health.perform_health_check()

    if result["status"] == "unhealthy":
        logger.error(f"Health check failed: {result['alerts']}")
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthCheckResponse(
        status=result["status"],
        timestamp=datetime.now(timezone.utc),
        uptime_seconds=uptime_seconds,
        environment=services.settings.ENV_MODE,
        checks=result["checks"],
        metrics=result["metrics"],
        alerts=result["alerts"],
    )
