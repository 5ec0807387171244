"""
暗号化セッショントークン

セッションレコードに保存されるトークン。ペイロードを正規化したJSONにして
SESSION_SECRET から導出したキーで暗号化する。
"""

import json
import logging
import uuid
from collections.abc import Callable
from typing import Any, Optional

from cryptography.fernet import Fernet, InvalidToken
from pydantic import ValidationError as PydanticValidationError

from ...domain.models import TokenPayload
from .encryption import derive_fernet_key

logger = logging.getLogger(__name__)


class SessionTokenCodec:
    """セッショントークンの生成と検証"""

    def __init__(self, secret: str, clock: Callable[[], float]):
        self._cipher = Fernet(derive_fernet_key(secret))
        self._clock = clock

    def generate(self, user_id: Optional[str], wallet_address: str) -> str:
        """
        トークンを生成

        token_id を毎回ランダムに振るため、同じ入力でも同じトークンにはならない

        Args:
            user_id: ユーザーID（ウォレットのみの場合はNone）
            wallet_address: ウォレットアドレス

        Returns:
            暗号化されたトークン文字列
        """
        payload = TokenPayload(
            user_id=user_id,
            wallet_address=wallet_address,
            issued_at=self._clock(),
            token_id=uuid.uuid4().hex,
        )
        canonical = json.dumps(
            payload.model_dump(by_alias=True),
            sort_keys=True,
            separators=(",", ":"),
        )
        return self._cipher.encrypt(canonical.encode("utf-8")).decode("utf-8")

    def validate(self, token: Any) -> Optional[TokenPayload]:
        """
        トークンを復号して検証

        復号・デコード・スキーマのいずれかに失敗した場合はNoneを返す（例外は送出しない）

        Args:
            token: 検証するトークン

        Returns:
            ペイロード、無効な場合はNone
        """
        if not isinstance(token, str) or not token:
            return None

        try:
            decrypted = self._cipher.decrypt(token.encode("utf-8"))
            data = json.loads(decrypted.decode("utf-8"))
            return TokenPayload.model_validate(data)
        except InvalidToken:
            logger.debug("Session token could not be decrypted")
            return None
        except (UnicodeError, ValueError, PydanticValidationError) as e:
            logger.debug(f"Malformed session token payload: {e}")
            return None
