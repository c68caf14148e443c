"""
도메인 엔티티 정의

서명 동기화의 핵심 개념을 나타내는 엔티티들을 정의합니다.
모든 엔티티는 Pydantic 모델을 기반으로 하여 타입 안정성을 보장합니다.
"""

import hashlib
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


def now_utc() -> datetime:
    """현재 UTC 시간을 반환합니다."""
    return datetime.now(timezone.utc)


def content_hash(html: str) -> str:
    """서명 HTML의 SHA-256 해시를 반환합니다."""
    return hashlib.sha256(html.encode("utf-8")).hexdigest()


class StoreKind(str, Enum):
    """저장소 종류"""
    NATIVE = "native"
    REMOTE = "remote"


class SyncPhase(str, Enum):
    """바인딩 단위 동기화 단계"""
    IDLE = "idle"
    VALIDATING = "validating"
    BLOCKED = "blocked"
    CHECKING = "checking"
    CONFLICT_PENDING = "conflict_pending"
    WRITING = "writing"
    RECORDED = "recorded"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        """종료 단계인지 확인"""
        return self in (
            SyncPhase.BLOCKED,
            SyncPhase.CONFLICT_PENDING,
            SyncPhase.RECORDED,
            SyncPhase.FAILED,
            SyncPhase.SKIPPED,
        )


class ValidationSeverity(str, Enum):
    """검증 결과 심각도"""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class ValidationCategory(str, Enum):
    """검증 결과 분류"""
    SECURITY = "security"
    COMPATIBILITY = "compatibility"
    PERFORMANCE = "performance"
    STYLE = "style"


class MailAccessStatus(str, Enum):
    """네이티브 메일 데이터 접근 상태"""
    GRANTED = "granted"
    PERMISSION_DENIED = "permission_denied"
    MAIL_NOT_CONFIGURED = "mail_not_configured"

    @property
    def user_message(self) -> str:
        """사용자 안내 메시지"""
        if self == MailAccessStatus.GRANTED:
            return "메일 데이터에 접근할 수 있습니다"
        if self == MailAccessStatus.PERMISSION_DENIED:
            return (
                "전체 디스크 접근 권한이 필요합니다\n"
                "1. 시스템 설정 > 개인정보 보호 및 보안 > 전체 디스크 접근 권한을 엽니다\n"
                "2. 잠금 아이콘을 눌러 잠금을 해제합니다\n"
                "3. '+' 버튼으로 이 프로그램을 실행하는 터미널(또는 앱)을 추가합니다\n"
                "4. 토글이 켜져 있는지 확인한 뒤 계정 탐색을 다시 실행합니다"
            )
        return "Mail 앱이 아직 설정되지 않았습니다. Mail 앱에서 계정을 먼저 설정한 뒤 다시 시도하세요."

    @property
    def is_accessible(self) -> bool:
        return self == MailAccessStatus.GRANTED


class AutomationStatus(str, Enum):
    """자동화(스크립팅) 브리지 상태"""
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    DENIED = "denied"


class ImagePolicy(str, Enum):
    """원격 저장소로 보낼 때 내장 이미지 처리 방식"""
    REJECT = "reject"
    STRIP = "strip"


class AccountBinding(BaseModel):
    """서명과 대상 계정/아이덴티티 간의 바인딩"""

    store_kind: StoreKind = Field(..., description="저장소 종류")
    account_identifier: str = Field(..., description="네이티브 계정 ID 또는 원격 계정 이메일")
    alias_identifier: Optional[str] = Field(None, description="별칭 이메일 (원격 전용)")
    is_default: bool = Field(default=False, description="기본 서명 여부")
    last_sync_time: Optional[datetime] = Field(None, description="마지막 동기화 시간")

    @property
    def key(self) -> str:
        """바인딩 식별 키 (store kind, account, alias)"""
        return binding_key(self.store_kind, self.account_identifier, self.alias_identifier)

    @property
    def target_email(self) -> str:
        """원격 쓰기 대상 아이덴티티 이메일"""
        return self.alias_identifier or self.account_identifier


def binding_key(store_kind: StoreKind, account_identifier: str, alias_identifier: Optional[str] = None) -> str:
    """바인딩 식별 키를 생성합니다."""
    return f"{store_kind.value}::{account_identifier}::{alias_identifier or ''}"


class CanonicalSignature(BaseModel):
    """정규 서명 레코드"""

    id: str = Field(..., description="서명 고유 ID")
    name: str = Field(..., description="표시 이름")
    html: str = Field(..., description="HTML 본문")
    created_at: datetime = Field(default_factory=now_utc, description="생성 시간")
    updated_at: datetime = Field(default_factory=now_utc, description="수정 시간")
    bindings: List[AccountBinding] = Field(default_factory=list, description="계정 바인딩 목록")

    @model_validator(mode="after")
    def validate_single_default(self):
        """(store kind, account) 당 기본 바인딩은 하나만 허용"""
        seen = set()
        for binding in self.bindings:
            if not binding.is_default:
                continue
            scope = (binding.store_kind, binding.account_identifier)
            if scope in seen:
                raise ValueError(
                    f"기본 바인딩이 중복되었습니다: {binding.store_kind.value}/{binding.account_identifier}"
                )
            seen.add(scope)
        return self

    @property
    def content_hash(self) -> str:
        return content_hash(self.html)


class NativeAccount(BaseModel):
    """네이티브 메일 클라이언트 계정"""

    id: str = Field(..., description="계정 ID (순서 인덱스 키)")
    email: str = Field(..., description="기본 이메일 주소")
    display_name: str = Field(..., description="계정 이름")
    is_managed_cloud: bool = Field(default=False, description="iCloud 등 관리형 클라우드 계정 여부")
    discovered_at: datetime = Field(default_factory=now_utc, description="탐색 시간")


class RemoteIdentity(BaseModel):
    """원격 웹메일 아이덴티티 (기본 주소 또는 별칭)"""

    email: str = Field(..., description="아이덴티티 이메일")
    display_name: str = Field(default="", description="표시 이름")
    is_primary: bool = Field(default=False, description="기본 주소 여부")
    aliases: List[str] = Field(default_factory=list, description="별칭 이메일 목록")
    discovered_at: datetime = Field(default_factory=now_utc, description="탐색 시간")

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        """이메일 형식 검증"""
        if "@" not in v:
            raise ValueError("유효한 이메일 주소가 아닙니다")
        return v.lower()


class SyncLedgerEntry(BaseModel):
    """바인딩별 마지막 동기화 기록"""

    key: str = Field(..., description="바인딩 식별 키")
    store_kind: StoreKind = Field(..., description="저장소 종류")
    account_identifier: str = Field(..., description="계정 식별자")
    alias_identifier: Optional[str] = Field(None, description="별칭 식별자")
    last_sync_time: Optional[datetime] = Field(None, description="마지막 동기화 시간")
    last_hash: Optional[str] = Field(None, description="마지막으로 쓰거나 확인한 콘텐츠 해시")
    has_conflict: bool = Field(default=False, description="충돌 여부")
    conflict_detail: Optional[str] = Field(None, description="충돌 상세")

    @classmethod
    def for_binding(cls, binding: AccountBinding) -> "SyncLedgerEntry":
        """바인딩에 대한 빈 기록을 생성합니다."""
        return cls(
            key=binding.key,
            store_kind=binding.store_kind,
            account_identifier=binding.account_identifier,
            alias_identifier=binding.alias_identifier,
        )

    def mark_synced(self, hash_value: str, at: Optional[datetime] = None) -> None:
        """동기화 성공으로 표시 (충돌 플래그 해제)"""
        self.last_hash = hash_value
        self.last_sync_time = at or now_utc()
        self.has_conflict = False
        self.conflict_detail = None

    def mark_conflict(self, detail: str) -> None:
        """충돌로 표시 (해시와 시간은 유지)"""
        self.has_conflict = True
        self.conflict_detail = detail


class OAuthCredential(BaseModel):
    """OAuth 자격 증명"""

    email: str = Field(..., description="아이덴티티 이메일")
    access_token: str = Field(..., description="액세스 토큰")
    refresh_token: str = Field(..., description="리프레시 토큰")
    expires_at: datetime = Field(..., description="만료 시간")

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        if "@" not in v:
            raise ValueError("유효한 이메일 주소가 아닙니다")
        return v.lower()

    def is_expired(self) -> bool:
        """토큰이 만료되었는지 확인"""
        return now_utc() >= self.expires_at

    def is_near_expiry(self, minutes: int = 5) -> bool:
        """토큰이 곧 만료될지 확인"""
        return now_utc() + timedelta(minutes=minutes) >= self.expires_at


class SignatureState(BaseModel):
    """저장소가 현재 보유한 서명 상태"""

    present: bool = Field(..., description="서명 존재 여부")
    content_hash: Optional[str] = Field(None, description="콘텐츠 해시")
    modified_at: Optional[datetime] = Field(None, description="마지막 수정 시간")
    content: Optional[str] = Field(None, description="콘텐츠 (HTML)")

    @classmethod
    def absent(cls) -> "SignatureState":
        return cls(present=False)

    @classmethod
    def of(cls, content: str, modified_at: Optional[datetime] = None) -> "SignatureState":
        return cls(
            present=True,
            content_hash=content_hash(content),
            modified_at=modified_at,
            content=content,
        )


class ValidationFinding(BaseModel):
    """콘텐츠 정책 검증 결과"""

    message: str = Field(..., description="메시지")
    severity: ValidationSeverity = Field(..., description="심각도")
    category: ValidationCategory = Field(..., description="분류")

    @property
    def is_hard(self) -> bool:
        """차단 대상인지 확인"""
        return self.severity == ValidationSeverity.ERROR


class StoreWriteResult(BaseModel):
    """저장소 쓰기 결과"""

    content_hash: str = Field(..., description="기록된 콘텐츠 해시")
    written_at: datetime = Field(default_factory=now_utc, description="기록 시간")
    restart_required: bool = Field(default=False, description="클라이언트 재시작 필요 여부")
    warnings: List[str] = Field(default_factory=list, description="경고 목록")


class SyncOutcome(BaseModel):
    """바인딩별 동기화 결과"""

    binding_key: str = Field(..., description="바인딩 식별 키")
    store_kind: StoreKind = Field(..., description="저장소 종류")
    account_identifier: str = Field(..., description="계정 식별자")
    phase: SyncPhase = Field(..., description="종료 단계")
    content_hash: Optional[str] = Field(None, description="기록된 콘텐츠 해시")
    error_kind: Optional[str] = Field(None, description="오류 종류")
    message: Optional[str] = Field(None, description="메시지")
    remediation: Optional[str] = Field(None, description="조치 안내")
    advisories: List[ValidationFinding] = Field(default_factory=list, description="권고 사항")
    warnings: List[str] = Field(default_factory=list, description="쓰기 경고")
    restart_required: bool = Field(default=False, description="클라이언트 재시작 필요 여부")
    synced_at: Optional[datetime] = Field(None, description="동기화 시간")

    @property
    def succeeded(self) -> bool:
        return self.phase == SyncPhase.RECORDED


class SyncEvent(BaseModel):
    """단계 전이 이벤트"""

    binding_key: str = Field(..., description="바인딩 식별 키")
    phase: SyncPhase = Field(..., description="새 단계")
    detail: Optional[str] = Field(None, description="상세")
    at: datetime = Field(default_factory=now_utc, description="발생 시간")


class ImportedSignature(BaseModel):
    """네이티브 저장소에서 가져온 서명"""

    id: str = Field(..., description="서명 ID")
    name: str = Field(..., description="서명 이름")
    html: str = Field(..., description="HTML 본문")
    account_ids: List[str] = Field(default_factory=list, description="할당된 계정 ID 목록")
