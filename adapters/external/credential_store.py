"""
메모리 기반 자격 증명 저장소 어댑터

테스트와 일회성 실행에 사용합니다. 프로세스가 끝나면 내용이 사라집니다.
"""

from typing import Dict, Optional, Tuple

from core.domain.ports import CredentialStorePort


class InMemoryCredentialStoreAdapter(CredentialStorePort):
    """메모리 기반 자격 증명 저장소"""

    def __init__(self):
        self._values: Dict[Tuple[str, str], str] = {}

    async def get(self, purpose: str, email: str) -> Optional[str]:
        return self._values.get((purpose, email.lower()))

    async def set(self, purpose: str, email: str, value: str) -> None:
        self._values[(purpose, email.lower())] = value

    async def delete(self, purpose: str, email: str) -> bool:
        return self._values.pop((purpose, email.lower()), None) is not None

    async def list_emails(self):
        """자격 증명이 저장된 이메일 목록"""
        return sorted({email for _, email in self._values})
