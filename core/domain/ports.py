"""
포트 인터페이스 정의

클린 아키텍처의 핵심으로, Core 레이어와 외부 어댑터 간의 계약을 정의합니다.
모든 포트는 추상 기본 클래스(ABC)로 정의되어 구현을 강제합니다.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .entities import (
    AccountBinding,
    AutomationStatus,
    CanonicalSignature,
    ImagePolicy,
    MailAccessStatus,
    SignatureState,
    StoreKind,
    StoreWriteResult,
    SyncLedgerEntry,
    ValidationFinding,
)


class SyncLedgerRepositoryPort(ABC):
    """동기화 원장 저장소 포트"""

    @abstractmethod
    async def get(self, key: str) -> Optional[SyncLedgerEntry]:
        """키로 원장 항목 조회"""
        pass

    @abstractmethod
    async def save(self, entry: SyncLedgerEntry) -> SyncLedgerEntry:
        """원장 항목 저장 (upsert)"""
        pass

    @abstractmethod
    async def list_all(self) -> List[SyncLedgerEntry]:
        """모든 원장 항목 조회"""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """원장 항목 삭제"""
        pass


class CredentialStorePort(ABC):
    """보안 키-값 저장소 포트 ((purpose, identity email) 키)"""

    @abstractmethod
    async def get(self, purpose: str, email: str) -> Optional[str]:
        """값 조회"""
        pass

    @abstractmethod
    async def set(self, purpose: str, email: str, value: str) -> None:
        """값 저장"""
        pass

    @abstractmethod
    async def delete(self, purpose: str, email: str) -> bool:
        """값 삭제"""
        pass


class WebmailApiClientPort(ABC):
    """웹메일 REST API 클라이언트 포트"""

    @abstractmethod
    async def get_authorization_url(
        self,
        client_id: str,
        redirect_uri: str,
        scope: str,
        state: str,
        code_challenge: str,
        login_hint: Optional[str] = None,
    ) -> str:
        """인증 URL 생성"""
        pass

    @abstractmethod
    async def exchange_code_for_token(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        code: str,
        code_verifier: str,
    ) -> dict:
        """인증 코드를 토큰으로 교환"""
        pass

    @abstractmethod
    async def refresh_token(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
    ) -> dict:
        """토큰 갱신"""
        pass

    @abstractmethod
    async def get_user_profile(self, access_token: str) -> dict:
        """사용자 프로필 조회"""
        pass

    @abstractmethod
    async def list_send_as(self, access_token: str) -> List[dict]:
        """발신 아이덴티티(send-as) 목록 조회"""
        pass

    @abstractmethod
    async def get_send_as(self, access_token: str, send_as_email: str) -> dict:
        """특정 아이덴티티 조회"""
        pass

    @abstractmethod
    async def update_send_as_signature(
        self,
        access_token: str,
        send_as_email: str,
        signature: str,
    ) -> dict:
        """아이덴티티 서명 업데이트"""
        pass


class StructuredCodecPort(ABC):
    """구조화 키-값 문서 코덱 포트"""

    @abstractmethod
    def decode(self, data: bytes) -> Any:
        """바이트를 문서로 디코딩"""
        pass

    @abstractmethod
    def encode(self, document: Any, like: Optional[bytes] = None) -> bytes:
        """문서를 바이트로 인코딩 (like가 주어지면 같은 형식 유지)"""
        pass


class AutomationBridgePort(ABC):
    """메일 클라이언트 자동화 브리지 포트"""

    @abstractmethod
    async def probe(self) -> AutomationStatus:
        """자동화 사용 가능 여부 및 권한 확인"""
        pass

    @abstractmethod
    async def list_accounts(self) -> List[Dict[str, Any]]:
        """계정 목록 조회 (id, name, user_name, emails)"""
        pass


class ProcessProbePort(ABC):
    """프로세스 실행 여부 확인 포트"""

    @abstractmethod
    async def is_running(self, process_name: str) -> bool:
        """프로세스 실행 여부"""
        pass


class NativeMailStoragePort(ABC):
    """네이티브 메일 데이터 디렉터리 포트"""

    @abstractmethod
    async def check_access(self) -> MailAccessStatus:
        """메일 데이터 접근 상태 확인"""
        pass

    @abstractmethod
    async def list_account_configs(self) -> List[Tuple[str, bytes]]:
        """계정별 설정 파일 (계정 ID, 내용) 목록"""
        pass

    @abstractmethod
    async def list_signature_files(self) -> List[str]:
        """서명 디렉터리의 파일 이름 목록"""
        pass

    @abstractmethod
    async def read_file(self, name: str) -> Optional[bytes]:
        """서명 디렉터리의 파일 읽기 (없으면 None)"""
        pass

    @abstractmethod
    async def modified_at(self, name: str) -> Optional[datetime]:
        """파일의 마지막 수정 시간 (없으면 None)"""
        pass

    @abstractmethod
    async def atomic_write(self, name: str, data: bytes) -> None:
        """임시 파일 + 원자적 교체로 파일 쓰기 (세션 최초 교체 전 백업)"""
        pass

    @abstractmethod
    async def remove(self, name: str) -> bool:
        """파일 삭제"""
        pass


class ContentPolicyPort(ABC):
    """콘텐츠 정책 검증 포트"""

    @abstractmethod
    def validate(self, html: str) -> List[ValidationFinding]:
        """HTML 검증"""
        pass


class SignatureStorePort(ABC):
    """코디네이터가 사용하는 대상 저장소 포트"""

    store_kind: StoreKind

    @abstractmethod
    async def read_binding_state(
        self,
        binding: AccountBinding,
        signature: CanonicalSignature,
    ) -> SignatureState:
        """바인딩 대상의 현재 서명 상태 조회"""
        pass

    @abstractmethod
    async def check_binding_conflict(
        self,
        signature: CanonicalSignature,
        binding: AccountBinding,
        baseline: Optional[SyncLedgerEntry],
    ) -> SignatureState:
        """충돌 확인 (충돌 시 ConflictError)"""
        pass

    @abstractmethod
    async def write_binding(
        self,
        signature: CanonicalSignature,
        binding: AccountBinding,
        baseline: Optional[SyncLedgerEntry],
        check_conflict: bool = True,
        image_policy: ImagePolicy = ImagePolicy.REJECT,
    ) -> StoreWriteResult:
        """바인딩 대상에 서명 쓰기"""
        pass


class EncryptionServicePort(ABC):
    """암호화 서비스 포트"""

    @abstractmethod
    async def encrypt(self, data: str) -> str:
        """데이터 암호화"""
        pass

    @abstractmethod
    async def decrypt(self, encrypted_data: str) -> str:
        """데이터 복호화"""
        pass


class CacheServicePort(ABC):
    """캐시 서비스 포트"""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """캐시에서 값 조회"""
        pass

    @abstractmethod
    async def set(self, key: str, value: str, expire: Optional[int] = None) -> bool:
        """캐시에 값 저장"""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """캐시에서 값 삭제"""
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """캐시에 키 존재 여부 확인"""
        pass


class LoggerPort(ABC):
    """로거 포트"""

    @abstractmethod
    def info(self, message: str, **kwargs) -> None:
        """정보 로그"""
        pass

    @abstractmethod
    def warning(self, message: str, **kwargs) -> None:
        """경고 로그"""
        pass

    @abstractmethod
    def error(self, message: str, **kwargs) -> None:
        """오류 로그"""
        pass

    @abstractmethod
    def debug(self, message: str, **kwargs) -> None:
        """디버그 로그"""
        pass


class ConfigPort(ABC):
    """설정 포트"""

    # 환경 설정
    @abstractmethod
    def get_environment(self) -> str:
        """환경 조회 (development, production, testing)"""
        pass

    @abstractmethod
    def is_debug(self) -> bool:
        """디버그 모드 여부"""
        pass

    # 데이터베이스 설정
    @abstractmethod
    def get_database_url(self) -> str:
        """데이터베이스 URL 조회"""
        pass

    # 보안 설정
    @abstractmethod
    def get_encryption_key(self) -> str:
        """암호화 키 조회"""
        pass

    # Google OAuth 설정
    @abstractmethod
    def get_google_client_id(self) -> str:
        """OAuth 클라이언트 ID 조회"""
        pass

    @abstractmethod
    def get_google_client_secret(self) -> str:
        """OAuth 클라이언트 시크릿 조회"""
        pass

    @abstractmethod
    def get_oauth_redirect_uri(self) -> str:
        """OAuth 리다이렉트 URI 조회"""
        pass

    @abstractmethod
    def get_oauth_scopes(self) -> str:
        """OAuth 권한 범위 조회"""
        pass

    @abstractmethod
    def get_google_auth_url(self) -> str:
        """인증 엔드포인트 조회"""
        pass

    @abstractmethod
    def get_google_token_url(self) -> str:
        """토큰 엔드포인트 조회"""
        pass

    @abstractmethod
    def get_gmail_api_base_url(self) -> str:
        """Gmail API 베이스 URL 조회"""
        pass

    @abstractmethod
    def get_http_timeout(self) -> float:
        """HTTP 타임아웃(초) 조회"""
        pass

    @abstractmethod
    def get_token_refresh_margin_minutes(self) -> int:
        """토큰 갱신 여유 시간(분) 조회"""
        pass

    # 네이티브 메일 설정
    @abstractmethod
    def get_native_mail_root(self) -> str:
        """네이티브 메일 루트 디렉터리 조회"""
        pass

    @abstractmethod
    def get_native_client_name(self) -> str:
        """네이티브 메일 클라이언트 프로세스 이름 조회"""
        pass

    @abstractmethod
    def get_native_version_range(self) -> Tuple[int, int]:
        """탐색할 메일 데이터 버전 범위 조회"""
        pass

    # 동기화 설정
    @abstractmethod
    def get_sync_max_concurrency(self) -> int:
        """최대 동시 동기화 수 조회"""
        pass

    @abstractmethod
    def get_retry_max_attempts(self) -> int:
        """최대 재시도 횟수 조회"""
        pass

    @abstractmethod
    def get_retry_base_delay(self) -> float:
        """재시도 기본 대기 시간(초) 조회"""
        pass

    @abstractmethod
    def get_retry_jitter(self) -> float:
        """재시도 지터 비율 조회"""
        pass

    # 로깅 설정
    @abstractmethod
    def get_log_level(self) -> str:
        """로그 레벨 조회"""
        pass

    @abstractmethod
    def get_log_format(self) -> str:
        """로그 포맷 조회"""
        pass

    # 웹 서버 설정
    @abstractmethod
    def get_web_host(self) -> str:
        """웹 서버 호스트 조회"""
        pass

    @abstractmethod
    def get_web_port(self) -> int:
        """웹 서버 포트 조회"""
        pass

    @abstractmethod
    def get_oauth_config(self) -> dict:
        """OAuth 설정 조회"""
        pass
