"""
자격 증명 보관소 유즈케이스

원격 아이덴티티별 OAuth 액세스/리프레시 토큰과 만료 시간을 보안 저장소에 보관합니다.
"""

from datetime import datetime, timezone
from typing import Optional

from ..domain.entities import OAuthCredential
from ..domain.errors import CorruptIndexError
from ..domain.ports import CredentialStorePort, LoggerPort

ACCESS_TOKEN = "access_token"
REFRESH_TOKEN = "refresh_token"
TOKEN_EXPIRY = "token_expiry"

PURPOSES = (ACCESS_TOKEN, REFRESH_TOKEN, TOKEN_EXPIRY)


class CredentialVault:
    """자격 증명 보관소"""

    def __init__(
        self,
        credential_store: CredentialStorePort,
        logger: LoggerPort,
        refresh_margin_minutes: int = 5,
    ):
        self.credential_store = credential_store
        self.logger = logger
        self.refresh_margin_minutes = refresh_margin_minutes

    async def store(self, credential: OAuthCredential) -> None:
        """
        자격 증명을 저장합니다.

        Args:
            credential: 저장할 자격 증명
        """
        email = credential.email
        await self.credential_store.set(ACCESS_TOKEN, email, credential.access_token)
        await self.credential_store.set(REFRESH_TOKEN, email, credential.refresh_token)
        await self.credential_store.set(TOKEN_EXPIRY, email, credential.expires_at.isoformat())
        self.logger.info(f"자격 증명 저장 완료: {email}")

    async def load(self, email: str) -> Optional[OAuthCredential]:
        """
        자격 증명을 조회합니다.

        세 항목 중 하나라도 없거나 만료 시간을 해석할 수 없으면 없는 것으로 취급합니다.

        Args:
            email: 아이덴티티 이메일

        Returns:
            자격 증명 또는 None
        """
        email = email.lower()
        try:
            access_token = await self.credential_store.get(ACCESS_TOKEN, email)
            refresh_token = await self.credential_store.get(REFRESH_TOKEN, email)
            raw_expiry = await self.credential_store.get(TOKEN_EXPIRY, email)
        except CorruptIndexError as e:
            self.logger.warning(f"자격 증명 레코드를 읽을 수 없음: {email}, {e.message}")
            return None

        if access_token is None and refresh_token is None and raw_expiry is None:
            return None

        if not access_token or not refresh_token or not raw_expiry:
            self.logger.warning(f"불완전한 자격 증명 레코드: {email}")
            return None

        try:
            expires_at = datetime.fromisoformat(raw_expiry)
        except ValueError:
            self.logger.warning(f"만료 시간을 해석할 수 없음: {email}")
            return None

        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)

        return OAuthCredential(
            email=email,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at,
        )

    async def clear(self, email: str) -> bool:
        """
        자격 증명을 모두 삭제합니다.

        Returns:
            삭제된 항목이 있었는지 여부
        """
        email = email.lower()
        removed = False
        for purpose in PURPOSES:
            if await self.credential_store.delete(purpose, email):
                removed = True
        self.logger.info(f"자격 증명 삭제: {email}")
        return removed

    async def is_valid(self, email: str) -> bool:
        """만료까지 여유 시간보다 많이 남은 자격 증명이 있는지 확인"""
        credential = await self.load(email)
        if credential is None:
            return False
        return not credential.is_near_expiry(self.refresh_margin_minutes)
