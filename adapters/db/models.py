"""
SQLAlchemy 데이터베이스 모델

동기화 원장, 자격 증명 저장소, 캐시 테이블을 정의합니다.
시간은 UTC로 저장합니다.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Index,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class SyncLedgerModel(Base):
    """동기화 원장 테이블 모델"""

    __tablename__ = "sync_ledger"

    key = Column(String(600), primary_key=True)  # store::account::alias
    store_kind = Column(String(20), nullable=False, index=True)
    account_identifier = Column(String(255), nullable=False, index=True)
    alias_identifier = Column(String(255))
    last_sync_time = Column(DateTime(timezone=True))
    last_hash = Column(String(64))
    has_conflict = Column(Boolean, nullable=False, default=False, index=True)
    conflict_detail = Column(Text)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_sync_ledger_store_account", "store_kind", "account_identifier"),
    )


class CredentialModel(Base):
    """자격 증명 테이블 모델 (값은 암호화하여 저장)"""

    __tablename__ = "credentials"

    purpose = Column(String(50), primary_key=True)
    email = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)  # 암호화된 값
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class CacheModel(Base):
    """캐시 테이블 모델 (OAuth state 등 프로세스 간 공유가 필요한 임시 값)"""

    __tablename__ = "cache"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    expires_at = Column(DateTime, nullable=True, index=True)  # naive UTC
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
