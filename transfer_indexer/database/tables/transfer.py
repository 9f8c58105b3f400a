# transfer_indexer/database/tables/transfer.py

from sqlalchemy import Column, String, Integer, BigInteger, Enum, Index

from ..base import DBBaseModel, BlockTimeMixin
from ..types import EvmAddressType, EvmHashType
from ...types import TransferStatus


class TokenTransfer(DBBaseModel, BlockTimeMixin):
    __tablename__ = 'token_transfers'
    
    # sqlite only autoincrements INTEGER PRIMARY KEY
    id = Column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=True)
    
    mode = Column(String(20), nullable=False, index=True)
    block_number = Column(BigInteger, nullable=False, index=True)
    transaction_hash = Column(EvmHashType(), nullable=False, index=True)
    log_index = Column(Integer, nullable=False, default=0)
    from_address = Column(EvmAddressType(), nullable=False, index=True)
    to_address = Column(EvmAddressType(), nullable=False, index=True)
    token_address = Column(EvmAddressType(), nullable=False, index=True)
    token_symbol = Column(String(20), nullable=False)
    value = Column(String(78), nullable=False)  # uint256 base units, never a float
    
    status = Column(Enum(TransferStatus, native_enum=False), nullable=False, default=TransferStatus.PENDING, index=True)
    lottery_numbers = Column(String(255), nullable=True)
    lottery_period = Column(Integer, nullable=True, index=True)
    
    __table_args__ = (
        Index('idx_transfer_event_key', 'mode', 'transaction_hash', 'log_index'),
        Index('idx_transfer_assign_lookup', 'mode', 'value', 'to_address', 'token_address', 'status'),
    )
    
    @property
    def business_key(self) -> tuple:
        return (self.mode, self.transaction_hash, self.log_index)
    
    def __repr__(self) -> str:
        return f"<TokenTransfer(tx={self.transaction_hash[:10]}..., block={self.block_number}, status={self.status.value})>"
