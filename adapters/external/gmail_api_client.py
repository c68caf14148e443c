"""
Gmail API 클라이언트 어댑터

Google OAuth 2.0 엔드포인트와 Gmail 발신 아이덴티티(sendAs) API와의 통신을 담당하는 어댑터입니다.
HTTP 상태 코드는 도메인 오류로 변환됩니다.
"""

from typing import List, Optional
from urllib.parse import quote, urlencode

import httpx

from core.domain.errors import AuthExpiredError, FatalError, TransientError
from core.domain.ports import LoggerPort, WebmailApiClientPort

DEFAULT_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
DEFAULT_TOKEN_URL = "https://oauth2.googleapis.com/token"
DEFAULT_API_BASE_URL = "https://gmail.googleapis.com/gmail/v1"

# 403 응답 중 사용량 제한을 뜻하는 사유
RATE_LIMIT_REASONS = {"rateLimitExceeded", "userRateLimitExceeded"}


class GmailApiClientAdapter(WebmailApiClientPort):
    """Gmail API 클라이언트 어댑터"""

    def __init__(
        self,
        logger: LoggerPort,
        auth_url: str = DEFAULT_AUTH_URL,
        token_url: str = DEFAULT_TOKEN_URL,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.logger = logger
        self.auth_url = auth_url
        self.token_url = token_url
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def get_authorization_url(
        self,
        client_id: str,
        redirect_uri: str,
        scope: str,
        state: str,
        code_challenge: str,
        login_hint: Optional[str] = None,
    ) -> str:
        """인증 URL을 생성합니다."""
        self.logger.debug(f"인증 URL 생성: client_id={client_id}")

        params = {
            "client_id": client_id,
            "response_type": "code",
            "redirect_uri": redirect_uri,
            "scope": scope,
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
            "access_type": "offline",
            "prompt": "consent",
        }
        if login_hint:
            params["login_hint"] = login_hint

        return f"{self.auth_url}?{urlencode(params)}"

    async def exchange_code_for_token(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        code: str,
        code_verifier: str,
    ) -> dict:
        """인증 코드를 토큰으로 교환합니다."""
        self.logger.debug(f"토큰 교환: client_id={client_id}")

        data = {
            "client_id": client_id,
            "client_secret": client_secret,
            "code": code,
            "code_verifier": code_verifier,
            "redirect_uri": redirect_uri,
            "grant_type": "authorization_code",
        }
        result = await self._token_request(data, "토큰 교환")
        self.logger.debug("토큰 교환 성공")
        return result

    async def refresh_token(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
    ) -> dict:
        """토큰을 갱신합니다."""
        self.logger.debug(f"토큰 갱신: client_id={client_id}")

        data = {
            "client_id": client_id,
            "client_secret": client_secret,
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        }
        result = await self._token_request(data, "토큰 갱신")
        self.logger.debug("토큰 갱신 성공")
        return result

    async def get_user_profile(self, access_token: str) -> dict:
        """사용자 프로필을 조회합니다."""
        return await self._api_request("GET", "/users/me/profile", access_token, "프로필 조회")

    async def list_send_as(self, access_token: str) -> List[dict]:
        """발신 아이덴티티 목록을 조회합니다."""
        result = await self._api_request("GET", "/users/me/settings/sendAs", access_token, "아이덴티티 목록 조회")
        return result.get("sendAs", [])

    async def get_send_as(self, access_token: str, send_as_email: str) -> dict:
        """특정 아이덴티티를 조회합니다."""
        return await self._api_request(
            "GET",
            f"/users/me/settings/sendAs/{quote(send_as_email)}",
            access_token,
            "아이덴티티 조회",
        )

    async def update_send_as_signature(
        self,
        access_token: str,
        send_as_email: str,
        signature: str,
    ) -> dict:
        """아이덴티티 서명을 업데이트합니다."""
        return await self._api_request(
            "PATCH",
            f"/users/me/settings/sendAs/{quote(send_as_email)}",
            access_token,
            "서명 업데이트",
            json={"signature": signature},
        )

    async def _token_request(self, data: dict, operation: str) -> dict:
        try:
            async with self._client() as client:
                response = await client.post(
                    self.token_url,
                    data=data,
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
        except httpx.TransportError as e:
            self.logger.error(f"{operation} 네트워크 오류: {str(e)}")
            raise TransientError(f"{operation} 네트워크 오류: {e}") from e

        if response.status_code == 200:
            return response.json()

        error_code = _error_code(response)
        error_msg = f"{operation} 실패: {response.status_code} - {error_code}"
        self.logger.error(error_msg)

        if response.status_code in (400, 401) and error_code in ("invalid_grant", "unauthorized_client", "invalid_client"):
            raise AuthExpiredError(error_msg, reauth_required=True)
        self._raise_for_status(response, error_msg)
        raise FatalError(error_msg, status_code=response.status_code)

    async def _api_request(
        self,
        method: str,
        path: str,
        access_token: str,
        operation: str,
        json: Optional[dict] = None,
    ) -> dict:
        url = f"{self.base_url}{path}"
        self.logger.debug(f"{operation}: {method} {path}")

        try:
            async with self._client() as client:
                response = await client.request(
                    method,
                    url,
                    json=json,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.TransportError as e:
            self.logger.error(f"{operation} 네트워크 오류: {str(e)}")
            raise TransientError(f"{operation} 네트워크 오류: {e}") from e

        if 200 <= response.status_code < 300:
            return response.json() if response.content else {}

        error_msg = f"{operation} 실패: {response.status_code} - {_error_message(response)}"
        self.logger.error(error_msg)
        self._raise_for_status(response, error_msg)
        raise FatalError(error_msg, status_code=response.status_code)

    def _raise_for_status(self, response: httpx.Response, error_msg: str) -> None:
        """상태 코드를 도메인 오류로 변환합니다."""
        status = response.status_code
        if status == 401:
            raise AuthExpiredError(error_msg)
        if status == 429 or (status == 403 and _is_rate_limit_error(response)):
            raise TransientError(
                error_msg,
                rate_limited=True,
                retry_after=_retry_after(response),
            )
        if status >= 500:
            raise TransientError(error_msg)
        if status == 403:
            raise FatalError(
                error_msg,
                status_code=status,
                remediation="계정에 Gmail 설정 변경 권한(gmail.settings.basic)이 있는지 확인하세요",
            )
        if status == 404:
            raise FatalError(
                error_msg,
                status_code=status,
                remediation="아이덴티티가 계정에 존재하는지 sigsync account remote-identities로 확인하세요",
            )


def _error_code(response: httpx.Response) -> str:
    try:
        return response.json().get("error", "unknown_error")
    except ValueError:
        return "unknown_error"


def _is_rate_limit_error(response: httpx.Response) -> bool:
    """Gmail은 사용량 제한을 403으로도 보고함"""
    try:
        error = response.json().get("error", {})
    except ValueError:
        return False
    if not isinstance(error, dict):
        return False
    if error.get("status") == "RESOURCE_EXHAUSTED":
        return True
    return any(
        isinstance(item, dict) and item.get("reason") in RATE_LIMIT_REASONS
        for item in error.get("errors") or []
    )


def _error_message(response: httpx.Response) -> str:
    try:
        error = response.json().get("error", {})
    except ValueError:
        return response.text
    if isinstance(error, dict):
        return error.get("message", response.text)
    return str(error)


def _retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None
