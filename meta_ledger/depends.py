from functools import lru_cache
from typing import Dict, Optional
from fastapi import Header
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession
from config import ApplicationConfig
from meta_ledger.adapter.repositories import (
    SqlAlchemyBalanceCacheRepository,
    SqlAlchemyCreditLotRepository,
    SqlAlchemyLedgerEventRepository,
)
from meta_ledger.adapter.services.ledger_store import SqlAlchemyLedgerStore
from meta_ledger.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from meta_ledger.app.use_cases.ledger.feature_catalog import load_feature_catalog
from meta_ledger.domain.feature_policy import FeaturePolicy

engine = create_async_engine(ApplicationConfig.DB_URI, echo=False, future=True)

AsyncSessionLocal = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)

AUTH_USER_HEADER = "X-Auth-User-Id"


async def get_session() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session


async def get_current_owner_id(
    x_auth_user_id: Optional[str] = Header(default=None, alias=AUTH_USER_HEADER),
) -> Optional[str]:
    """Owner resolved by the upstream auth layer; None when unauthenticated"""
    if x_auth_user_id is None:
        return None
    owner_id = x_auth_user_id.strip()
    return owner_id or None


@lru_cache(maxsize=1)
def get_feature_catalog() -> Dict[str, FeaturePolicy]:
    return load_feature_catalog(ApplicationConfig.FEATURE_POLICIES)


def build_ledger_store(session: AsyncSession):
    """Unit of work, lot repository and ledger store sharing one session"""
    uow = SqlAlchemyUnitOfWork(session)
    lot_repo = SqlAlchemyCreditLotRepository(session)
    ledger_store = SqlAlchemyLedgerStore(
        uow,
        lot_repo,
        SqlAlchemyLedgerEventRepository(session),
        SqlAlchemyBalanceCacheRepository(session),
    )
    return uow, lot_repo, ledger_store
