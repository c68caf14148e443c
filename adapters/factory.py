"""
어댑터 팩토리

모든 어댑터들을 생성하고 의존성을 주입하는 팩토리 클래스입니다.
클린 아키텍처의 의존성 역전 원칙을 구현합니다.
"""

from pathlib import Path
from typing import Optional

from core.domain.entities import StoreKind
from core.domain.ports import (
    AutomationBridgePort,
    CacheServicePort,
    ConfigPort,
    ContentPolicyPort,
    CredentialStorePort,
    EncryptionServicePort,
    LoggerPort,
    NativeMailStoragePort,
    ProcessProbePort,
    StructuredCodecPort,
    SyncLedgerRepositoryPort,
    WebmailApiClientPort,
)
from core.usecases.authentication import AuthenticationUseCase
from core.usecases.credential_vault import CredentialVault
from core.usecases.native_store import NativeSignatureStore
from core.usecases.remote_store import RemoteSignatureStore
from core.usecases.retry import RetryPolicy
from core.usecases.sync_coordinator import SyncCoordinator
from core.usecases.sync_ledger import SyncLedger

from .db.cache_repository import DatabaseCacheServiceAdapter
from .db.database import DatabaseAdapter
from .db.repositories import DatabaseCredentialStoreAdapter, SyncLedgerRepositoryAdapter
from .external.encryption_service import EncryptionServiceAdapter
from .external.gmail_api_client import GmailApiClientAdapter
from .logger import LoggerAdapter
from .native.automation_bridge import OsaScriptAutomationBridgeAdapter
from .native.mail_directory import MailDataDirectoryAdapter
from .native.plist_codec import PlistCodecAdapter
from .native.process_probe import PsutilProcessProbeAdapter
from .validation.html_policy import HtmlPolicyValidator
from config.adapters import get_config


class AdapterFactory:
    """어댑터 팩토리"""

    def __init__(self, config: Optional[ConfigPort] = None):
        self.config = config or get_config()
        self._logger: Optional[LoggerPort] = None
        self._database: Optional[DatabaseAdapter] = None
        self._encryption_service: Optional[EncryptionServicePort] = None
        self._cache_service: Optional[CacheServicePort] = None
        self._credential_store: Optional[CredentialStorePort] = None
        self._webmail_api_client: Optional[WebmailApiClientPort] = None
        self._authentication: Optional[AuthenticationUseCase] = None
        self._native_store: Optional[NativeSignatureStore] = None
        self._remote_store: Optional[RemoteSignatureStore] = None
        self._sync_ledger: Optional[SyncLedger] = None

    def create_logger(self) -> LoggerPort:
        """로거 어댑터를 생성합니다."""
        if self._logger is None:
            self._logger = LoggerAdapter(
                name="sigsync",
                level=self.config.get_log_level(),
                format_string=self.config.get_log_format(),
            )
        return self._logger

    def create_database(self) -> DatabaseAdapter:
        """데이터베이스 어댑터를 생성합니다."""
        if self._database is None:
            self._database = DatabaseAdapter(self.config)
        return self._database

    async def initialize_database(self) -> DatabaseAdapter:
        """데이터베이스 연결과 테이블을 준비합니다."""
        database = self.create_database()
        await database.initialize()
        await database.create_tables()
        return database

    async def close(self) -> None:
        """열려 있는 연결을 정리합니다."""
        if self._database is not None:
            await self._database.close()

    def create_encryption_service(self) -> EncryptionServicePort:
        """암호화 서비스 어댑터를 생성합니다."""
        if self._encryption_service is None:
            self._encryption_service = EncryptionServiceAdapter(
                encryption_key=self.config.get_encryption_key(),
                logger=self.create_logger(),
            )
        return self._encryption_service

    def create_cache_service(self) -> CacheServicePort:
        """캐시 서비스 어댑터를 생성합니다 (CLI와 웹 서버가 state를 공유)."""
        if self._cache_service is None:
            self._cache_service = DatabaseCacheServiceAdapter(
                database=self.create_database(),
                logger=self.create_logger(),
            )
        return self._cache_service

    def create_credential_store(self) -> CredentialStorePort:
        """암호화된 자격 증명 저장소를 생성합니다."""
        if self._credential_store is None:
            self._credential_store = DatabaseCredentialStoreAdapter(
                database=self.create_database(),
                encryption_service=self.create_encryption_service(),
            )
        return self._credential_store

    def create_credential_vault(self) -> CredentialVault:
        return CredentialVault(
            credential_store=self.create_credential_store(),
            logger=self.create_logger(),
            refresh_margin_minutes=self.config.get_token_refresh_margin_minutes(),
        )

    def create_webmail_api_client(self) -> WebmailApiClientPort:
        """Gmail API 클라이언트 어댑터를 생성합니다."""
        if self._webmail_api_client is None:
            self._webmail_api_client = GmailApiClientAdapter(
                logger=self.create_logger(),
                auth_url=self.config.get_google_auth_url(),
                token_url=self.config.get_google_token_url(),
                base_url=self.config.get_gmail_api_base_url(),
                timeout=self.config.get_http_timeout(),
            )
        return self._webmail_api_client

    def create_authentication_usecase(self) -> AuthenticationUseCase:
        """인증 유즈케이스를 생성합니다."""
        if self._authentication is None:
            self._authentication = AuthenticationUseCase(
                credential_vault=self.create_credential_vault(),
                webmail_api_client=self.create_webmail_api_client(),
                cache_service=self.create_cache_service(),
                oauth_config=self.config.get_oauth_config(),
                logger=self.create_logger(),
            )
        return self._authentication

    def create_retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.config.get_retry_max_attempts(),
            base_delay=self.config.get_retry_base_delay(),
            jitter=self.config.get_retry_jitter(),
            logger=self.create_logger(),
        )

    def create_native_storage(self) -> NativeMailStoragePort:
        return MailDataDirectoryAdapter(
            root=Path(self.config.get_native_mail_root()),
            logger=self.create_logger(),
            version_range=self.config.get_native_version_range(),
        )

    def create_structured_codec(self) -> StructuredCodecPort:
        return PlistCodecAdapter()

    def create_automation_bridge(self) -> AutomationBridgePort:
        return OsaScriptAutomationBridgeAdapter(
            logger=self.create_logger(),
            app_name=self.config.get_native_client_name(),
        )

    def create_process_probe(self) -> ProcessProbePort:
        return PsutilProcessProbeAdapter(logger=self.create_logger())

    def create_native_store(self) -> NativeSignatureStore:
        """네이티브 메일 서명 저장소를 생성합니다."""
        if self._native_store is None:
            self._native_store = NativeSignatureStore(
                storage=self.create_native_storage(),
                codec=self.create_structured_codec(),
                automation_bridge=self.create_automation_bridge(),
                process_probe=self.create_process_probe(),
                logger=self.create_logger(),
                client_name=self.config.get_native_client_name(),
            )
        return self._native_store

    def create_remote_store(self) -> RemoteSignatureStore:
        """웹메일 서명 저장소를 생성합니다."""
        if self._remote_store is None:
            self._remote_store = RemoteSignatureStore(
                webmail_api_client=self.create_webmail_api_client(),
                authentication=self.create_authentication_usecase(),
                retry_policy=self.create_retry_policy(),
                logger=self.create_logger(),
            )
        return self._remote_store

    def create_sync_ledger_repository(self) -> SyncLedgerRepositoryPort:
        return SyncLedgerRepositoryAdapter(self.create_database())

    def create_sync_ledger(self) -> SyncLedger:
        """동기화 원장을 생성합니다."""
        if self._sync_ledger is None:
            self._sync_ledger = SyncLedger(
                repository=self.create_sync_ledger_repository(),
                logger=self.create_logger(),
            )
        return self._sync_ledger

    def create_content_policy(self) -> ContentPolicyPort:
        return HtmlPolicyValidator()

    def create_sync_coordinator(self) -> SyncCoordinator:
        """동기화 코디네이터를 생성합니다."""
        return SyncCoordinator(
            stores={
                StoreKind.NATIVE: self.create_native_store(),
                StoreKind.REMOTE: self.create_remote_store(),
            },
            ledger=self.create_sync_ledger(),
            content_policy=self.create_content_policy(),
            logger=self.create_logger(),
            max_concurrency=self.config.get_sync_max_concurrency(),
        )

    def get_config(self) -> ConfigPort:
        """설정 객체를 반환합니다."""
        return self.config


# 전역 팩토리 인스턴스
_factory: Optional[AdapterFactory] = None


def get_adapter_factory() -> AdapterFactory:
    """전역 어댑터 팩토리 인스턴스를 반환합니다."""
    global _factory
    if _factory is None:
        _factory = AdapterFactory()
    return _factory


def initialize_adapter_factory(config: Optional[ConfigPort] = None) -> AdapterFactory:
    """어댑터 팩토리를 초기화합니다."""
    global _factory
    _factory = AdapterFactory(config)
    return _factory
