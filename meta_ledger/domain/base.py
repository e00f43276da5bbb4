"""Shared SQLModel base for all ledger entities"""

from sqlalchemy import BigInteger, Integer
from sqlmodel import SQLModel

# BIGINT primary keys only autoincrement on SQLite when declared as INTEGER
IdType = BigInteger().with_variant(Integer(), "sqlite")


class BaseModel(SQLModel):
    """Base class for table entities (all share SQLModel.metadata)"""
    pass
