"""
동기화 원장 유즈케이스

바인딩별 마지막 동기화 해시/시간/충돌 플래그를 보관합니다.
조회는 커밋된 상태의 복사본만 반환합니다.
"""

import asyncio
from datetime import datetime
from typing import Dict, List, Optional

from ..domain.entities import AccountBinding, SyncLedgerEntry
from ..domain.ports import LoggerPort, SyncLedgerRepositoryPort


class SyncLedger:
    """동기화 원장"""

    def __init__(self, repository: SyncLedgerRepositoryPort, logger: LoggerPort):
        self.repository = repository
        self.logger = logger
        self._committed: Dict[str, SyncLedgerEntry] = {}
        self._loaded = False
        self._lock = asyncio.Lock()

    async def load(self) -> int:
        """
        저장소에서 원장 항목을 읽어옵니다.

        Returns:
            읽어온 항목 수
        """
        entries = await self.repository.list_all()
        async with self._lock:
            self._committed = {entry.key: entry for entry in entries}
            self._loaded = True
        self.logger.debug(f"동기화 원장 로드 완료: {len(entries)}개")
        return len(entries)

    async def ensure_loaded(self) -> None:
        if not self._loaded:
            await self.load()

    def get(self, key: str) -> Optional[SyncLedgerEntry]:
        """키로 원장 항목 조회"""
        entry = self._committed.get(key)
        return entry.model_copy() if entry else None

    def entries(self) -> List[SyncLedgerEntry]:
        """모든 원장 항목 조회"""
        return [entry.model_copy() for entry in self._committed.values()]

    async def record_success(
        self,
        binding: AccountBinding,
        hash_value: str,
        at: Optional[datetime] = None,
    ) -> SyncLedgerEntry:
        """
        동기화 성공을 기록합니다. 기존 충돌 플래그는 해제됩니다.

        Args:
            binding: 대상 바인딩
            hash_value: 기록하거나 확인한 콘텐츠 해시
            at: 동기화 시간

        Returns:
            저장된 원장 항목
        """
        async with self._lock:
            entry = self._working_copy(binding)
            entry.mark_synced(hash_value, at)
            saved = await self.repository.save(entry)
            self._committed[saved.key] = saved
        self.logger.info(f"동기화 기록: {binding.key}")
        return saved.model_copy()

    async def flag_conflict(self, binding: AccountBinding, detail: str) -> SyncLedgerEntry:
        """충돌을 표시합니다. 기준 해시와 시간은 변경하지 않습니다."""
        async with self._lock:
            entry = self._working_copy(binding)
            entry.mark_conflict(detail)
            saved = await self.repository.save(entry)
            self._committed[saved.key] = saved
        self.logger.warning(f"충돌 표시: {binding.key}")
        return saved.model_copy()

    async def clear_conflict(self, key: str) -> Optional[SyncLedgerEntry]:
        """충돌 표시를 해제합니다."""
        async with self._lock:
            current = self._committed.get(key)
            if current is None:
                return None
            entry = current.model_copy()
            entry.has_conflict = False
            entry.conflict_detail = None
            saved = await self.repository.save(entry)
            self._committed[saved.key] = saved
        self.logger.info(f"충돌 표시 해제: {key}")
        return saved.model_copy()

    def _working_copy(self, binding: AccountBinding) -> SyncLedgerEntry:
        current = self._committed.get(binding.key)
        if current is None:
            return SyncLedgerEntry.for_binding(binding)
        return current.model_copy()
