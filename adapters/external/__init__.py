"""
외부 서비스 어댑터 패키지

외부 API, 서비스와의 통신을 담당하는 어댑터들을 포함합니다.
"""

from .gmail_api_client import GmailApiClientAdapter
from .encryption_service import EncryptionServiceAdapter
from .cache_service import InMemoryCacheServiceAdapter
from .credential_store import InMemoryCredentialStoreAdapter

__all__ = [
    "GmailApiClientAdapter",
    "EncryptionServiceAdapter",
    "InMemoryCacheServiceAdapter",
    "InMemoryCredentialStoreAdapter",
]
