"""
설정 어댑터

pydantic-settings 기반으로 환경 변수와 .env 파일에서 설정을 읽습니다.
ENVIRONMENT 값에 따라 개발/운영/테스트 설정 클래스를 선택합니다.
"""

import os
from typing import Optional, Tuple

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.domain.ports import ConfigPort


class BaseConfig(BaseSettings, ConfigPort):
    """기본 설정 클래스"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # 환경 설정
    environment: str = Field(default="development")
    debug: bool = Field(default=False)

    # 데이터베이스 설정
    database_url: str = Field(default="sqlite+aiosqlite:///./sigsync.db")

    # 암호화 설정
    encryption_key: str = Field(...)

    # Google OAuth 설정
    google_client_id: str = Field(...)
    google_client_secret: str = Field(...)
    oauth_redirect_uri: str = Field(default="http://localhost:5000/auth/callback")
    oauth_scopes: str = Field(
        default=(
            "https://www.googleapis.com/auth/gmail.settings.basic "
            "https://www.googleapis.com/auth/gmail.readonly"
        )
    )
    google_auth_url: str = Field(default="https://accounts.google.com/o/oauth2/v2/auth")
    google_token_url: str = Field(default="https://oauth2.googleapis.com/token")
    gmail_api_base_url: str = Field(default="https://gmail.googleapis.com/gmail/v1")
    http_timeout: float = Field(default=30.0)
    token_refresh_margin_minutes: int = Field(default=5)

    # 네이티브 메일 설정
    native_mail_root: str = Field(default="~/Library/Mail")
    native_client_name: str = Field(default="Mail")
    native_min_version: int = Field(default=8)
    native_max_version: int = Field(default=12)

    # 동기화 설정
    sync_max_concurrency: int = Field(default=4)
    retry_max_attempts: int = Field(default=5)
    retry_base_delay: float = Field(default=1.0)
    retry_jitter: float = Field(default=0.5)

    # 로깅 설정
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    # 웹 서버 설정 (인증 콜백용)
    web_host: str = Field(default="127.0.0.1")
    web_port: int = Field(default=5000)

    @field_validator("encryption_key")
    @classmethod
    def validate_encryption_key(cls, v):
        """암호화 키 검증"""
        if len(v) < 32:
            # 32바이트 미만이면 패딩
            v = v.ljust(32, "0")
        elif len(v) > 32:
            # 32바이트 초과면 자르기
            v = v[:32]
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """로그 레벨 검증"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"로그 레벨은 {valid_levels} 중 하나여야 합니다")
        return v.upper()

    @field_validator("retry_jitter")
    @classmethod
    def validate_retry_jitter(cls, v):
        """대기 시간이 엄격히 증가하도록 지터는 1 미만"""
        if not 0 <= v < 1:
            raise ValueError("retry_jitter는 0 이상 1 미만이어야 합니다")
        return v

    @field_validator("retry_max_attempts", "sync_max_concurrency")
    @classmethod
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError("1 이상이어야 합니다")
        return v

    @model_validator(mode="after")
    def validate_version_range(self):
        if self.native_min_version > self.native_max_version:
            raise ValueError("native_min_version은 native_max_version보다 클 수 없습니다")
        return self

    # ConfigPort 인터페이스 구현
    def get_environment(self) -> str:
        return self.environment

    def is_debug(self) -> bool:
        return self.debug

    def get_database_url(self) -> str:
        return self.database_url

    def get_encryption_key(self) -> str:
        return self.encryption_key

    def get_google_client_id(self) -> str:
        return self.google_client_id

    def get_google_client_secret(self) -> str:
        return self.google_client_secret

    def get_oauth_redirect_uri(self) -> str:
        return self.oauth_redirect_uri

    def get_oauth_scopes(self) -> str:
        return self.oauth_scopes

    def get_google_auth_url(self) -> str:
        return self.google_auth_url

    def get_google_token_url(self) -> str:
        return self.google_token_url

    def get_gmail_api_base_url(self) -> str:
        return self.gmail_api_base_url

    def get_http_timeout(self) -> float:
        return self.http_timeout

    def get_token_refresh_margin_minutes(self) -> int:
        return self.token_refresh_margin_minutes

    def get_native_mail_root(self) -> str:
        return self.native_mail_root

    def get_native_client_name(self) -> str:
        return self.native_client_name

    def get_native_version_range(self) -> Tuple[int, int]:
        return self.native_min_version, self.native_max_version

    def get_sync_max_concurrency(self) -> int:
        return self.sync_max_concurrency

    def get_retry_max_attempts(self) -> int:
        return self.retry_max_attempts

    def get_retry_base_delay(self) -> float:
        return self.retry_base_delay

    def get_retry_jitter(self) -> float:
        return self.retry_jitter

    def get_log_level(self) -> str:
        return self.log_level

    def get_log_format(self) -> str:
        return self.log_format

    def get_web_host(self) -> str:
        return self.web_host

    def get_web_port(self) -> int:
        return self.web_port

    def get_oauth_config(self) -> dict:
        """OAuth 설정 조회"""
        return {
            "client_id": self.google_client_id,
            "client_secret": self.google_client_secret,
            "redirect_uri": self.oauth_redirect_uri,
            "scope": self.oauth_scopes,
        }


class DevelopmentConfig(BaseConfig):
    """개발 환경 설정"""

    environment: str = "development"
    debug: bool = True
    log_level: str = "DEBUG"

    database_url: str = Field(default="sqlite+aiosqlite:///./sigsync_dev.db")

    # 개발용 더미 값들 (실제 사용 시 .env 파일에서 설정)
    google_client_id: str = Field(default="dev_client_id")
    google_client_secret: str = Field(default="dev_client_secret")
    encryption_key: str = Field(default="dev_encryption_key_32_bytes_long")


class ProductionConfig(BaseConfig):
    """운영 환경 설정"""

    environment: str = "production"
    debug: bool = False
    log_level: str = "INFO"

    @field_validator("database_url")
    @classmethod
    def validate_production_database_url(cls, v):
        """운영 환경에서는 SQLite를 사용하지 않음"""
        if not v or v.startswith("sqlite"):
            raise ValueError("운영 환경에서는 PostgreSQL 데이터베이스가 필요합니다")
        return v

    @field_validator("google_client_secret", "encryption_key")
    @classmethod
    def validate_production_secrets(cls, v):
        """운영 환경에서는 모든 시크릿이 필수"""
        if not v or v.startswith("dev_"):
            raise ValueError("운영 환경에서는 실제 시크릿 값이 필요합니다")
        return v


class TestingConfig(BaseConfig):
    """테스트 환경 설정"""

    environment: str = "testing"
    debug: bool = True
    log_level: str = "WARNING"

    database_url: str = Field(default="sqlite+aiosqlite:///:memory:")

    # 테스트용 더미 값들
    google_client_id: str = "test_client_id"
    google_client_secret: str = "test_client_secret"
    encryption_key: str = "test_encryption_key_32_bytes_long"
    retry_base_delay: float = 0.0


class ConfigAdapter:
    """설정 어댑터 팩토리"""

    @staticmethod
    def create_config() -> ConfigPort:
        """환경에 따른 설정 객체를 생성합니다."""
        environment = os.getenv("ENVIRONMENT", "development").lower()

        if environment == "production":
            return ProductionConfig()
        elif environment == "testing":
            return TestingConfig()
        else:
            return DevelopmentConfig()


# 전역 설정 인스턴스
_config: Optional[ConfigPort] = None


def get_config() -> ConfigPort:
    """전역 설정 인스턴스를 반환합니다."""
    global _config
    if _config is None:
        _config = ConfigAdapter.create_config()
    return _config


def initialize_config() -> ConfigPort:
    """설정을 초기화합니다."""
    global _config
    _config = ConfigAdapter.create_config()
    return _config
