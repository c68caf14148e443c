"""
도메인 오류 정의

동기화 중 발생하는 오류를 종류별로 분류합니다.
Transient/AuthExpired는 재시도 한도 안에서 내부적으로 처리되고,
나머지는 계정 식별자와 조치 안내와 함께 호출자에게 전달됩니다.
"""

from enum import Enum
from typing import List, Optional


class ErrorKind(str, Enum):
    """오류 종류"""
    ACCESS_DENIED = "access_denied"
    NOT_CONFIGURED = "not_configured"
    CONFLICT = "conflict"
    VALIDATION_BLOCKED = "validation_blocked"
    TRANSIENT = "transient"
    AUTH_EXPIRED = "auth_expired"
    FATAL = "fatal"


class SyncError(Exception):
    """동기화 오류 기본 클래스"""

    kind: ErrorKind = ErrorKind.FATAL

    def __init__(
        self,
        message: str,
        account: Optional[str] = None,
        remediation: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.account = account
        self.remediation = remediation

    def __str__(self) -> str:
        if self.account:
            return f"[{self.account}] {self.message}"
        return self.message


class AccessDeniedError(SyncError):
    """자동화 또는 파일 시스템 권한 거부 (자동 재시도하지 않음)"""

    kind = ErrorKind.ACCESS_DENIED

    AUTOMATION = "automation"
    FILESYSTEM = "filesystem"

    def __init__(self, message: str, scope: str = "filesystem", **kwargs):
        super().__init__(message, **kwargs)
        self.scope = scope


class NotConfiguredError(SyncError):
    """대상 저장소에 계정/아이덴티티가 아직 없음"""

    kind = ErrorKind.NOT_CONFIGURED


class ConflictError(SyncError):
    """마지막 동기화 이후 저장소 콘텐츠가 변경됨"""

    kind = ErrorKind.CONFLICT

    def __init__(
        self,
        message: str,
        current_hash: Optional[str] = None,
        baseline_hash: Optional[str] = None,
        **kwargs,
    ):
        kwargs.setdefault(
            "remediation",
            "저장소의 현재 내용을 확인한 뒤 덮어쓰려면 강제 옵션(--force)으로 다시 실행하세요",
        )
        super().__init__(message, **kwargs)
        self.current_hash = current_hash
        self.baseline_hash = baseline_hash


class ValidationBlockedError(SyncError):
    """콘텐츠 정책 검증에서 차단됨"""

    kind = ErrorKind.VALIDATION_BLOCKED

    def __init__(self, message: str, findings: Optional[List] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.findings = findings or []


class TransientError(SyncError):
    """네트워크 오류 또는 요청 한도 초과"""

    kind = ErrorKind.TRANSIENT

    def __init__(
        self,
        message: str,
        rate_limited: bool = False,
        retry_after: Optional[float] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.rate_limited = rate_limited
        self.retry_after = retry_after


class AuthExpiredError(SyncError):
    """인증 만료 또는 거부"""

    kind = ErrorKind.AUTH_EXPIRED

    def __init__(self, message: str, reauth_required: bool = False, **kwargs):
        if reauth_required:
            kwargs.setdefault("remediation", "sigsync auth start 명령으로 다시 인증하세요")
        super().__init__(message, **kwargs)
        self.reauth_required = reauth_required


class FatalError(SyncError):
    """찾을 수 없음/금지됨/쓰기 실패 등 재시도 불가 오류"""

    kind = ErrorKind.FATAL

    def __init__(self, message: str, status_code: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.status_code = status_code


class CorruptIndexError(FatalError):
    """인덱스/레코드 문서가 존재하지만 읽을 수 없음"""

    def __init__(self, message: str, path: Optional[str] = None, **kwargs):
        kwargs.setdefault("remediation", "백업 파일(.backup)을 확인하거나 클라이언트에서 서명을 다시 저장하세요")
        super().__init__(message, **kwargs)
        self.path = path
