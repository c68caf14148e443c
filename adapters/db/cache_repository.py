"""
데이터베이스 기반 캐시 Repository 어댑터

CLI에서 시작한 인증을 웹 서버 콜백에서 완료할 수 있도록
OAuth state와 PKCE 검증자를 데이터베이스에 보관합니다.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy import delete

from core.domain.ports import CacheServicePort, LoggerPort
from .database import DatabaseAdapter
from .models import CacheModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class DatabaseCacheServiceAdapter(CacheServicePort):
    """데이터베이스 기반 캐시 서비스 어댑터"""

    def __init__(
        self,
        database: DatabaseAdapter,
        logger: LoggerPort,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.database = database
        self.logger = logger
        self.clock = clock

    async def get(self, key: str) -> Optional[str]:
        """캐시에서 값을 조회합니다."""
        async with self.database.get_session() as session:
            model = await session.get(CacheModel, key)
            if model is None:
                self.logger.debug(f"캐시 키 없음: {key}")
                return None

            if self._is_expired(model):
                self.logger.debug(f"캐시 만료: {key}")
                await session.delete(model)
                await session.commit()
                return None

            return model.value

    async def set(self, key: str, value: str, expire: Optional[int] = None) -> bool:
        """캐시에 값을 저장합니다."""
        expires_at = self.clock() + timedelta(seconds=expire) if expire else None

        async with self.database.get_session() as session:
            model = await session.get(CacheModel, key)
            if model is None:
                session.add(CacheModel(key=key, value=value, expires_at=expires_at))
            else:
                model.value = value
                model.expires_at = expires_at
            await session.commit()

        self.logger.debug(f"캐시 저장: {key}, 만료시간: {expire}초")
        return True

    async def delete(self, key: str) -> bool:
        """캐시에서 값을 삭제합니다."""
        async with self.database.get_session() as session:
            result = await session.execute(delete(CacheModel).where(CacheModel.key == key))
            await session.commit()
            return result.rowcount > 0

    async def exists(self, key: str) -> bool:
        """캐시에 키가 존재하는지 확인합니다."""
        return await self.get(key) is not None

    async def cleanup_expired(self) -> int:
        """만료된 캐시를 정리합니다."""
        async with self.database.get_session() as session:
            result = await session.execute(
                delete(CacheModel).where(CacheModel.expires_at <= self.clock())
            )
            await session.commit()

        if result.rowcount:
            self.logger.debug(f"만료된 캐시 {result.rowcount}개 삭제")
        return result.rowcount

    def _is_expired(self, model: CacheModel) -> bool:
        return model.expires_at is not None and model.expires_at <= self.clock()
