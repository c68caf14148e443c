"""공용 테스트 픽스처"""

import plistlib
from datetime import timedelta
from pathlib import Path
from typing import Dict, List, Optional
from unittest.mock import AsyncMock

import pytest

from core.domain.entities import AutomationStatus, OAuthCredential, now_utc
from core.domain.ports import WebmailApiClientPort
from core.usecases.authentication import AuthenticationUseCase
from core.usecases.credential_vault import CredentialVault
from core.usecases.native_store import NativeSignatureStore
from core.usecases.remote_store import RemoteSignatureStore
from core.usecases.retry import RetryPolicy
from adapters.external.cache_service import InMemoryCacheServiceAdapter
from adapters.external.credential_store import InMemoryCredentialStoreAdapter
from adapters.logger import create_logger
from adapters.native.mail_directory import MailDataDirectoryAdapter
from adapters.native.plist_codec import PlistCodecAdapter

ACCOUNT_EMAIL = "owner@example.com"
ALIAS_EMAIL = "alias@example.com"


class FakeWebmailApiClient(WebmailApiClientPort):
    """메모리 기반 웹메일 API. 호출 기록과 예약된 오류를 지원합니다."""

    def __init__(self, identities: Optional[List[str]] = None):
        identities = identities or [ACCOUNT_EMAIL, ALIAS_EMAIL]
        self.send_as: Dict[str, dict] = {
            email: {
                "sendAsEmail": email,
                "displayName": email.split("@")[0],
                "isPrimary": index == 0,
                "signature": "",
            }
            for index, email in enumerate(identities)
        }
        self.calls: List[str] = []
        self.tokens_seen: List[str] = []
        self.errors: Dict[str, List[Exception]] = {}
        self.refresh_response = {"access_token": "refreshed-access", "expires_in": 3600}
        self.token_response = {
            "access_token": "new-access",
            "refresh_token": "new-refresh",
            "expires_in": 3600,
        }

    def fail(self, method: str, *errors: Exception) -> None:
        self.errors.setdefault(method, []).extend(errors)

    def _record(self, method: str, token: Optional[str] = None) -> None:
        self.calls.append(method)
        if token is not None:
            self.tokens_seen.append(token)
        queued = self.errors.get(method)
        if queued:
            raise queued.pop(0)

    def count(self, method: str) -> int:
        return self.calls.count(method)

    async def get_authorization_url(self, client_id, redirect_uri, scope, state, code_challenge, login_hint=None):
        self._record("get_authorization_url")
        return f"https://auth.example.com/?state={state}&code_challenge={code_challenge}"

    async def exchange_code_for_token(self, client_id, client_secret, redirect_uri, code, code_verifier):
        self._record("exchange_code_for_token")
        return dict(self.token_response)

    async def refresh_token(self, client_id, client_secret, refresh_token):
        self._record("refresh_token")
        return dict(self.refresh_response)

    async def get_user_profile(self, access_token):
        self._record("get_user_profile", access_token)
        return {"emailAddress": ACCOUNT_EMAIL}

    async def list_send_as(self, access_token):
        self._record("list_send_as", access_token)
        return [dict(item) for item in self.send_as.values()]

    async def get_send_as(self, access_token, send_as_email):
        self._record("get_send_as", access_token)
        return dict(self.send_as[send_as_email])

    async def update_send_as_signature(self, access_token, send_as_email, signature):
        self._record("update_send_as_signature", access_token)
        self.send_as[send_as_email]["signature"] = signature
        return dict(self.send_as[send_as_email])


@pytest.fixture
def logger():
    return create_logger("sigsync-test", "WARNING")


@pytest.fixture
def credential_store():
    return InMemoryCredentialStoreAdapter()


@pytest.fixture
def vault(credential_store, logger):
    return CredentialVault(credential_store, logger, refresh_margin_minutes=5)


@pytest.fixture
def cache_service(logger):
    return InMemoryCacheServiceAdapter(logger)


@pytest.fixture
def webmail_client():
    return FakeWebmailApiClient()


@pytest.fixture
def oauth_config():
    return {
        "client_id": "test-client",
        "client_secret": "test-secret",
        "redirect_uri": "http://localhost:5000/auth/callback",
        "scope": "https://www.googleapis.com/auth/gmail.settings.basic",
    }


@pytest.fixture
def authentication(vault, webmail_client, cache_service, oauth_config, logger):
    return AuthenticationUseCase(
        credential_vault=vault,
        webmail_api_client=webmail_client,
        cache_service=cache_service,
        oauth_config=oauth_config,
        logger=logger,
    )


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def retry_policy(sleeps, logger):
    async def _sleep(delay):
        sleeps.append(delay)

    return RetryPolicy(max_attempts=3, base_delay=0.01, jitter=0.5, sleep=_sleep, rng=lambda: 0.5, logger=logger)


@pytest.fixture
def remote_store(webmail_client, authentication, retry_policy, logger):
    return RemoteSignatureStore(webmail_client, authentication, retry_policy, logger)


async def store_valid_credential(vault: CredentialVault, email: str = ACCOUNT_EMAIL, minutes: int = 60):
    credential = OAuthCredential(
        email=email,
        access_token="valid-access",
        refresh_token="valid-refresh",
        expires_at=now_utc() + timedelta(minutes=minutes),
    )
    await vault.store(credential)
    return credential


@pytest.fixture
def mail_root(tmp_path: Path) -> Path:
    """V10/MailData 구조를 가진 임시 메일 루트"""
    root = tmp_path / "Mail"
    (root / "V10" / "MailData" / "Signatures").mkdir(parents=True)
    (root / "V10" / "MailData" / "Accounts").mkdir(parents=True)
    return root


@pytest.fixture
def signatures_dir(mail_root: Path) -> Path:
    return mail_root / "V10" / "MailData" / "Signatures"


def write_ordering_index(signatures_dir: Path, document: dict, binary: bool = False) -> None:
    fmt = plistlib.FMT_BINARY if binary else plistlib.FMT_XML
    (signatures_dir / "AccountsMap.plist").write_bytes(plistlib.dumps(document, fmt=fmt))


def write_name_index(signatures_dir: Path, document: list, binary: bool = False) -> None:
    fmt = plistlib.FMT_BINARY if binary else plistlib.FMT_XML
    (signatures_dir / "AllSignatures.plist").write_bytes(plistlib.dumps(document, fmt=fmt))


@pytest.fixture
def storage(mail_root, logger):
    return MailDataDirectoryAdapter(mail_root, logger)


@pytest.fixture
def automation_bridge():
    bridge = AsyncMock()
    bridge.probe.return_value = AutomationStatus.UNAVAILABLE
    bridge.list_accounts.return_value = []
    return bridge


@pytest.fixture
def process_probe():
    probe = AsyncMock()
    probe.is_running.return_value = False
    return probe


@pytest.fixture
def native_store(storage, automation_bridge, process_probe, logger):
    return NativeSignatureStore(
        storage=storage,
        codec=PlistCodecAdapter(),
        automation_bridge=automation_bridge,
        process_probe=process_probe,
        logger=logger,
    )
