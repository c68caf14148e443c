"""
인증 유즈케이스

원격 웹메일 OAuth 2.0 인증 처리를 위한 비즈니스 로직을 구현합니다.
- Authorization Code Flow (PKCE)
- 토큰 갱신 및 관리 (아이덴티티별 단일 갱신)
"""

import asyncio
import base64
import hashlib
import secrets
from datetime import timedelta
from typing import Dict, Optional, Tuple

from ..domain.entities import OAuthCredential, now_utc
from ..domain.errors import AuthExpiredError
from ..domain.ports import (
    CacheServicePort,
    LoggerPort,
    WebmailApiClientPort,
)
from .credential_vault import CredentialVault

STATE_TTL_SECONDS = 600  # 10분


def _code_challenge(code_verifier: str) -> str:
    """PKCE S256 코드 챌린지를 생성합니다."""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


class AuthenticationUseCase:
    """인증 유즈케이스"""

    def __init__(
        self,
        credential_vault: CredentialVault,
        webmail_api_client: WebmailApiClientPort,
        cache_service: CacheServicePort,
        oauth_config: Dict[str, str],
        logger: LoggerPort,
    ):
        self.credential_vault = credential_vault
        self.webmail_api_client = webmail_api_client
        self.cache_service = cache_service
        self.oauth_config = oauth_config
        self.logger = logger
        self._refresh_locks: Dict[str, asyncio.Lock] = {}

    async def start_authorization_code_flow(
        self,
        login_hint: Optional[str] = None,
    ) -> Tuple[str, str]:
        """
        Authorization Code Flow 인증을 시작합니다.

        Args:
            login_hint: 미리 채울 계정 이메일

        Returns:
            (authorization_url, state) 튜플
        """
        self.logger.info(f"Authorization Code Flow 시작: {login_hint or '(계정 미지정)'}")

        # State 및 PKCE 검증자 생성 후 캐시 저장
        state = secrets.token_urlsafe(32)
        code_verifier = secrets.token_urlsafe(64)
        await self.cache_service.set(
            f"auth_state:{state}",
            code_verifier,
            expire=STATE_TTL_SECONDS,
        )

        authorization_url = await self.webmail_api_client.get_authorization_url(
            client_id=self.oauth_config["client_id"],
            redirect_uri=self.oauth_config["redirect_uri"],
            scope=self.oauth_config["scope"],
            state=state,
            code_challenge=_code_challenge(code_verifier),
            login_hint=login_hint,
        )

        self.logger.info("Authorization Code Flow URL 생성 완료")
        return authorization_url, state

    async def complete_authorization_code_flow(self, code: str, state: str) -> OAuthCredential:
        """
        Authorization Code Flow 인증을 완료합니다.

        Args:
            code: 인증 코드
            state: State 값

        Returns:
            저장된 자격 증명

        Raises:
            ValueError: 유효하지 않은 state이거나 응답에 리프레시 토큰이 없는 경우
        """
        self.logger.info("Authorization Code Flow 완료 시작")

        # State 검증 (일회용)
        cache_key = f"auth_state:{state}"
        code_verifier = await self.cache_service.get(cache_key)
        if not code_verifier:
            raise ValueError("유효하지 않은 state입니다")
        await self.cache_service.delete(cache_key)

        token_response = await self.webmail_api_client.exchange_code_for_token(
            client_id=self.oauth_config["client_id"],
            client_secret=self.oauth_config["client_secret"],
            redirect_uri=self.oauth_config["redirect_uri"],
            code=code,
            code_verifier=code_verifier,
        )

        if not token_response.get("refresh_token"):
            raise ValueError("토큰 응답에 리프레시 토큰이 없습니다. 동의 화면을 다시 진행하세요")

        # 토큰 소유 계정 확인
        profile = await self.webmail_api_client.get_user_profile(token_response["access_token"])
        email = profile["emailAddress"]

        credential = self._credential_from_response(email, token_response)
        await self.credential_vault.store(credential)

        self.logger.info(f"Authorization Code Flow 완료: {credential.email}")
        return credential

    async def get_access_token(self, email: str) -> str:
        """
        유효한 액세스 토큰을 반환합니다. 만료 임박 시 먼저 갱신합니다.

        Raises:
            AuthExpiredError: 자격 증명이 없거나 갱신에 실패한 경우
        """
        email = email.lower()
        credential = await self.credential_vault.load(email)
        if credential is None:
            raise AuthExpiredError(
                "저장된 자격 증명이 없습니다",
                reauth_required=True,
                account=email,
            )

        if not credential.is_near_expiry(self.credential_vault.refresh_margin_minutes):
            return credential.access_token

        async with self._lock_for(email):
            # 대기 중 다른 작업이 이미 갱신했을 수 있음
            credential = await self.credential_vault.load(email)
            if credential and not credential.is_near_expiry(self.credential_vault.refresh_margin_minutes):
                return credential.access_token
            refreshed = await self._refresh_locked(email, credential)
            return refreshed.access_token

    async def force_refresh(self, email: str, stale_token: Optional[str] = None) -> OAuthCredential:
        """
        토큰을 강제로 갱신합니다.

        stale_token이 주어지고 보관된 토큰이 이미 바뀌었다면 다시 갱신하지 않습니다.

        Args:
            email: 아이덴티티 이메일
            stale_token: 거부된 액세스 토큰

        Returns:
            갱신된 자격 증명
        """
        email = email.lower()
        async with self._lock_for(email):
            credential = await self.credential_vault.load(email)
            if (
                credential is not None
                and stale_token is not None
                and credential.access_token != stale_token
                and not credential.is_near_expiry(self.credential_vault.refresh_margin_minutes)
            ):
                self.logger.debug(f"다른 작업이 이미 토큰을 갱신함: {email}")
                return credential
            return await self._refresh_locked(email, credential)

    async def revoke(self, email: str) -> bool:
        """
        자격 증명을 폐기합니다.

        Returns:
            폐기 성공 여부
        """
        self.logger.info(f"토큰 폐기: {email}")
        return await self.credential_vault.clear(email)

    async def get_token_status(self, email: str) -> Optional[Dict]:
        """
        토큰 상태를 조회합니다. 토큰 값은 포함하지 않습니다.

        Returns:
            토큰 상태 정보 딕셔너리 또는 None
        """
        credential = await self.credential_vault.load(email)
        if credential is None:
            return None

        margin = self.credential_vault.refresh_margin_minutes
        remaining = (credential.expires_at - now_utc()).total_seconds()
        return {
            "email": credential.email,
            "expires_at": credential.expires_at.isoformat(),
            "remaining_seconds": max(0, int(remaining)),
            "is_expired": credential.is_expired(),
            "is_near_expiry": credential.is_near_expiry(margin),
            "is_valid": not credential.is_near_expiry(margin),
            "has_refresh_token": bool(credential.refresh_token),
        }

    async def _refresh_locked(self, email: str, credential: Optional[OAuthCredential]) -> OAuthCredential:
        """아이덴티티 잠금을 잡은 상태에서 토큰을 갱신합니다."""
        if credential is None:
            raise AuthExpiredError(
                "저장된 자격 증명이 없습니다",
                reauth_required=True,
                account=email,
            )

        self.logger.info(f"토큰 갱신 시작: {email}")
        try:
            token_response = await self.webmail_api_client.refresh_token(
                client_id=self.oauth_config["client_id"],
                client_secret=self.oauth_config["client_secret"],
                refresh_token=credential.refresh_token,
            )
            refreshed = self._credential_from_response(
                email,
                token_response,
                fallback_refresh_token=credential.refresh_token,
            )
        except Exception as e:
            # 죽은 리프레시 토큰으로 반복하지 않도록 자격 증명 전체 삭제
            self.logger.error(f"토큰 갱신 실패: {email}, 오류: {str(e)}")
            await self.credential_vault.clear(email)
            raise AuthExpiredError(
                f"토큰 갱신에 실패했습니다: {e}",
                reauth_required=True,
                account=email,
            ) from e

        await self.credential_vault.store(refreshed)
        self.logger.info(f"토큰 갱신 완료: {email}")
        return refreshed

    def _credential_from_response(
        self,
        email: str,
        token_response: Dict,
        fallback_refresh_token: Optional[str] = None,
    ) -> OAuthCredential:
        """토큰 응답으로 자격 증명 엔티티를 생성합니다."""
        expires_in = int(token_response.get("expires_in", 3600))
        return OAuthCredential(
            email=email,
            access_token=token_response["access_token"],
            refresh_token=token_response.get("refresh_token") or fallback_refresh_token,
            expires_at=now_utc() + timedelta(seconds=expires_in),
        )

    def _lock_for(self, email: str) -> asyncio.Lock:
        return self._refresh_locks.setdefault(email, asyncio.Lock())
