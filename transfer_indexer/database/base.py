# transfer_indexer/database/base.py

from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import Column, DateTime, BigInteger, func
from sqlalchemy.orm import declarative_base
from msgspec import Struct, structs


Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), nullable=False,
                        default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False,
                        default=utcnow, server_default=func.now(), onupdate=utcnow)


class BlockTimeMixin:
    # unix seconds of the block that emitted the event
    timestamp = Column(BigInteger, nullable=False, index=True)

    @property
    def block_time(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp, tz=timezone.utc)


class DBBaseModel(Base, TimestampMixin):
    __abstract__ = True

    @classmethod
    def mapping_from_msgspec(cls, struct: Struct, **overrides) -> Dict[str, Any]:
        """Column mapping for bulk inserts; struct fields without a column are dropped."""
        columns = cls.__table__.columns.keys()
        values = {**structs.asdict(struct), **overrides}
        return {name: values[name] for name in columns if name in values}

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(id={self.id})>"
