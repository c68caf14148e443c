"""
데이터베이스 Repository 어댑터

Core 레이어의 저장소 포트를 구현하는 SQLAlchemy 기반 어댑터들입니다.
동시에 실행되는 작업이 세션을 공유하지 않도록 작업마다 세션을 엽니다.
"""

from datetime import timezone
from typing import Dict, List, Optional

from sqlalchemy import delete as sql_delete
from sqlalchemy.future import select

from core.domain.entities import StoreKind, SyncLedgerEntry
from core.domain.ports import (
    CredentialStorePort,
    EncryptionServicePort,
    SyncLedgerRepositoryPort,
)
from .database import DatabaseAdapter
from .models import CredentialModel, SyncLedgerModel


def _as_utc(value):
    """SQLite에서 읽은 naive datetime에 UTC를 붙입니다."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SyncLedgerRepositoryAdapter(SyncLedgerRepositoryPort):
    """동기화 원장 Repository 어댑터"""

    def __init__(self, database: DatabaseAdapter):
        self.database = database

    async def get(self, key: str) -> Optional[SyncLedgerEntry]:
        """키로 원장 항목을 조회합니다."""
        async with self.database.get_session() as session:
            model = await session.get(SyncLedgerModel, key)
            if model is None:
                return None
            return self._model_to_entity(model)

    async def save(self, entry: SyncLedgerEntry) -> SyncLedgerEntry:
        """원장 항목을 저장합니다."""
        async with self.database.get_session() as session:
            model = await session.get(SyncLedgerModel, entry.key)
            if model is None:
                model = SyncLedgerModel(key=entry.key)
                session.add(model)

            model.store_kind = entry.store_kind.value
            model.account_identifier = entry.account_identifier
            model.alias_identifier = entry.alias_identifier
            model.last_sync_time = entry.last_sync_time
            model.last_hash = entry.last_hash
            model.has_conflict = entry.has_conflict
            model.conflict_detail = entry.conflict_detail

            await session.commit()
            await session.refresh(model)
            return self._model_to_entity(model)

    async def list_all(self) -> List[SyncLedgerEntry]:
        """모든 원장 항목을 조회합니다."""
        async with self.database.get_session() as session:
            result = await session.execute(select(SyncLedgerModel).order_by(SyncLedgerModel.key))
            return [self._model_to_entity(model) for model in result.scalars().all()]

    async def delete(self, key: str) -> bool:
        """원장 항목을 삭제합니다."""
        async with self.database.get_session() as session:
            result = await session.execute(sql_delete(SyncLedgerModel).where(SyncLedgerModel.key == key))
            await session.commit()
            return result.rowcount > 0

    def _model_to_entity(self, model: SyncLedgerModel) -> SyncLedgerEntry:
        """모델을 엔티티로 변환합니다."""
        return SyncLedgerEntry(
            key=model.key,
            store_kind=StoreKind(model.store_kind),
            account_identifier=model.account_identifier,
            alias_identifier=model.alias_identifier,
            last_sync_time=_as_utc(model.last_sync_time),
            last_hash=model.last_hash,
            has_conflict=bool(model.has_conflict),
            conflict_detail=model.conflict_detail,
        )


class InMemorySyncLedgerRepositoryAdapter(SyncLedgerRepositoryPort):
    """메모리 기반 동기화 원장 Repository"""

    def __init__(self):
        self._entries: Dict[str, SyncLedgerEntry] = {}

    async def get(self, key: str) -> Optional[SyncLedgerEntry]:
        entry = self._entries.get(key)
        return entry.model_copy() if entry else None

    async def save(self, entry: SyncLedgerEntry) -> SyncLedgerEntry:
        self._entries[entry.key] = entry.model_copy()
        return entry.model_copy()

    async def list_all(self) -> List[SyncLedgerEntry]:
        return [entry.model_copy() for entry in self._entries.values()]

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None


class DatabaseCredentialStoreAdapter(CredentialStorePort):
    """데이터베이스 기반 자격 증명 저장소 (값은 암호화)"""

    def __init__(self, database: DatabaseAdapter, encryption_service: EncryptionServicePort):
        self.database = database
        self.encryption_service = encryption_service

    async def get(self, purpose: str, email: str) -> Optional[str]:
        async with self.database.get_session() as session:
            model = await session.get(CredentialModel, (purpose, email.lower()))
            if model is None:
                return None
            encrypted = model.value
        return await self.encryption_service.decrypt(encrypted)

    async def set(self, purpose: str, email: str, value: str) -> None:
        encrypted = await self.encryption_service.encrypt(value)
        async with self.database.get_session() as session:
            model = await session.get(CredentialModel, (purpose, email.lower()))
            if model is None:
                session.add(CredentialModel(purpose=purpose, email=email.lower(), value=encrypted))
            else:
                model.value = encrypted
            await session.commit()

    async def delete(self, purpose: str, email: str) -> bool:
        async with self.database.get_session() as session:
            result = await session.execute(
                sql_delete(CredentialModel).where(
                    CredentialModel.purpose == purpose,
                    CredentialModel.email == email.lower(),
                )
            )
            await session.commit()
            return result.rowcount > 0

    async def list_emails(self) -> List[str]:
        """자격 증명이 저장된 이메일 목록"""
        async with self.database.get_session() as session:
            result = await session.execute(select(CredentialModel.email).distinct().order_by(CredentialModel.email))
            return list(result.scalars().all())
