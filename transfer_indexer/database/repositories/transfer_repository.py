# transfer_indexer/database/repositories/transfer_repository.py

from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Set, Tuple

from sqlalchemy import and_, func, update
from sqlalchemy.orm import Session

from ...types import PeriodStats, TransferEvent, TransferStatus
from ...utils.amounts import add_amounts
from ..base_repository import BaseRepository
from ..tables.transfer import TokenTransfer


class TransferRepository(BaseRepository[TokenTransfer]):
    """Repository for discovered token transfers"""
    
    def __init__(self, db_manager):
        super().__init__(db_manager, TokenTransfer)
    
    # === Sync ===
    
    def latest_synced_block(self, session: Session, mode: str) -> int:
        """Highest persisted block for the mode, 0 when nothing was synced yet."""
        try:
            latest = session.query(func.max(TokenTransfer.block_number)).filter(
                TokenTransfer.mode == mode
            ).scalar()
            return int(latest) if latest is not None else 0
        except Exception as e:
            self.logger.error(f"Error getting latest synced block for mode {mode}: {e}")
            raise
    
    def existing_keys(self, session: Session, mode: str, tx_hashes: Sequence[str]) -> Set[Tuple[str, str, int]]:
        if not tx_hashes:
            return set()
        rows = session.query(
            TokenTransfer.mode, TokenTransfer.transaction_hash, TokenTransfer.log_index
        ).filter(
            and_(
                TokenTransfer.mode == mode,
                TokenTransfer.transaction_hash.in_(set(tx_hashes)),
            )
        ).all()
        return {(row[0], row[1], row[2]) for row in rows}
    
    def insert_batch(self, session: Session, events: List[TransferEvent]) -> int:
        """
        Insert transfers, skipping business keys already stored.
        
        Runs inside the caller's transaction so a chunk commits all or nothing.
        """
        if not events:
            return 0
        
        try:
            by_mode: Dict[str, List[TransferEvent]] = defaultdict(list)
            for event in events:
                by_mode[event.mode].append(event)
            
            new_items = []
            seen = set()
            for mode, mode_events in by_mode.items():
                seen |= self.existing_keys(session, mode, [e.transaction_hash for e in mode_events])
                for event in mode_events:
                    if event.business_key in seen:
                        continue
                    seen.add(event.business_key)
                    new_items.append(TokenTransfer.mapping_from_msgspec(
                        event, status=TransferStatus.PENDING
                    ))
            
            skipped = len(events) - len(new_items)
            if skipped:
                self.logger.debug(f"Skipped {skipped} transfers already stored")
            
            return self.bulk_create(session, new_items)
            
        except Exception as e:
            self.logger.error(f"Error inserting transfer batch: {e}")
            raise
    
    # === Status transitions ===
    
    def update_status(self,
                      session: Session,
                      transaction_hash: str,
                      from_status: TransferStatus,
                      to_status: TransferStatus,
                      mode: Optional[str] = None,
                      log_index: Optional[int] = None,
                      **extra) -> int:
        """
        Conditional transition: only rows currently in from_status are written.
        
        Returns the number of affected rows; 0 means already transitioned or unknown.
        """
        conditions = [
            TokenTransfer.transaction_hash == transaction_hash.lower(),
            TokenTransfer.status == from_status,
        ]
        if mode is not None:
            conditions.append(TokenTransfer.mode == mode)
        if log_index is not None:
            conditions.append(TokenTransfer.log_index == log_index)
        
        values = {'status': to_status}
        values.update(extra)
        
        try:
            result = session.execute(
                update(TokenTransfer)
                .where(and_(*conditions))
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount
        except Exception as e:
            self.logger.error(f"Error updating status for {transaction_hash}: {e}")
            raise
    
    # === Reads ===
    
    def get_by_hash(self, session: Session, transaction_hash: str,
                    mode: Optional[str] = None) -> Optional[TokenTransfer]:
        query = session.query(TokenTransfer).filter(
            TokenTransfer.transaction_hash == transaction_hash.lower()
        )
        if mode is not None:
            query = query.filter(TokenTransfer.mode == mode)
        return query.order_by(TokenTransfer.mode, TokenTransfer.log_index).first()
    
    def _match(self, mode: str, value: str, to_address: str, token_address: str, status: TransferStatus):
        return and_(
            TokenTransfer.mode == mode,
            TokenTransfer.value == value,
            TokenTransfer.to_address == to_address.lower(),
            TokenTransfer.token_address == token_address.lower(),
            TokenTransfer.status == status,
        )
    
    def find_matching(self, session: Session, mode: str, value: str, to_address: str,
                      token_address: str, status: TransferStatus = TransferStatus.PENDING) -> List[TokenTransfer]:
        """Matching transfers, newest block first."""
        return session.query(TokenTransfer).filter(
            self._match(mode, value, to_address, token_address, status)
        ).order_by(TokenTransfer.block_number.desc(), TokenTransfer.log_index.desc()).all()
    
    def find_next_pending(self, session: Session, mode: str, value: str, to_address: str,
                          token_address: str) -> Optional[TokenTransfer]:
        """Oldest unassigned pending transfer for the value."""
        return session.query(TokenTransfer).filter(
            and_(
                self._match(mode, value, to_address, token_address, TransferStatus.PENDING),
                TokenTransfer.lottery_numbers.is_(None),
            )
        ).order_by(TokenTransfer.block_number.asc(), TokenTransfer.log_index.asc(), TokenTransfer.id.asc()).first()
    
    def latest_assigned(self, session: Session, mode: str, from_address: str) -> Optional[TokenTransfer]:
        return session.query(TokenTransfer).filter(
            and_(
                TokenTransfer.mode == mode,
                TokenTransfer.from_address == from_address.lower(),
                TokenTransfer.status == TransferStatus.NUMBERS_ASSIGNED,
            )
        ).order_by(TokenTransfer.updated_at.desc(), TokenTransfer.id.desc()).first()
    
    def period_stats(self, session: Session, mode: str, lottery_period: Optional[int] = None) -> PeriodStats:
        """
        Per-status counts and exact value total.
        
        Values are summed in Python with Decimal; SQL SUM over the string
        column would go through floating point on some backends.
        """
        query = session.query(TokenTransfer.status, TokenTransfer.value).filter(TokenTransfer.mode == mode)
        if lottery_period is not None:
            query = query.filter(TokenTransfer.lottery_period == lottery_period)
        
        counts = {status.value: 0 for status in TransferStatus}
        values = []
        for status, value in query.all():
            counts[status.value] += 1
            values.append(value)
        
        return PeriodStats(
            mode=mode,
            lottery_period=lottery_period,
            counts=counts,
            total_value=add_amounts(values),
            transfer_count=len(values),
        )
