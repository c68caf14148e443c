"""
캐시 서비스 어댑터

메모리 기반 캐시 서비스를 구현합니다.
OAuth state와 PKCE 검증자 같은 임시 데이터 저장에 사용됩니다.
"""

import time
from typing import Callable, Optional

from core.domain.ports import CacheServicePort, LoggerPort


class InMemoryCacheServiceAdapter(CacheServicePort):
    """메모리 기반 캐시 서비스 어댑터"""

    def __init__(self, logger: LoggerPort, clock: Callable[[], float] = time.time):
        self.logger = logger
        self.clock = clock
        self._cache: dict = {}
        self._expiry: dict = {}

    def _is_expired(self, key: str) -> bool:
        """키가 만료되었는지 확인합니다."""
        if key not in self._expiry:
            return False

        if self.clock() > self._expiry[key]:
            # 만료된 키 삭제
            self._cache.pop(key, None)
            self._expiry.pop(key, None)
            return True

        return False

    async def get(self, key: str) -> Optional[str]:
        """캐시에서 값을 조회합니다."""
        if self._is_expired(key):
            self.logger.debug(f"캐시 만료: {key}")
            return None
        return self._cache.get(key)

    async def set(self, key: str, value: str, expire: Optional[int] = None) -> bool:
        """캐시에 값을 저장합니다."""
        self._cache[key] = value

        if expire:
            self._expiry[key] = self.clock() + expire
        else:
            self._expiry.pop(key, None)

        self.logger.debug(f"캐시 저장: {key}, 만료시간: {expire}초")
        return True

    async def delete(self, key: str) -> bool:
        """캐시에서 값을 삭제합니다."""
        existed = key in self._cache
        self._cache.pop(key, None)
        self._expiry.pop(key, None)
        return existed

    async def exists(self, key: str) -> bool:
        """캐시에 키가 존재하는지 확인합니다."""
        if self._is_expired(key):
            return False
        return key in self._cache


# 기본 캐시 서비스 어댑터 (InMemory 사용)
CacheServiceAdapter = InMemoryCacheServiceAdapter
