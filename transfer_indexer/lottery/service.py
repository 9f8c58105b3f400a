# transfer_indexer/lottery/service.py

from typing import List, Optional, Tuple

from ..core.logging import LoggingMixin
from ..database.connection import DatabaseManager
from ..database.repositories.transfer_repository import TransferRepository
from ..database.tables.transfer import TokenTransfer
from ..types import AssignmentOutcome, PeriodStats, TransferStatus
from ..utils.amounts import normalize_amount


class LotteryService(LoggingMixin):
    """
    Assigns externally drawn lottery numbers to pending transfers.
    
    PENDING -> NUMBERS_ASSIGNED is the only transition made here. It is a
    conditional update on (transaction, status=PENDING), so when two callers
    race for the same transfer the store lets exactly one of them through.
    """
    
    def __init__(self, db_manager: DatabaseManager, repository: TransferRepository):
        self.db_manager = db_manager
        self.repository = repository
    
    @staticmethod
    def _validate(numbers: str, period: int) -> None:
        if not isinstance(numbers, str) or not numbers.strip():
            raise ValueError("Lottery numbers must be a non-empty string")
        if isinstance(period, bool) or not isinstance(period, int) or period < 0:
            raise ValueError("Lottery period must be a non-negative integer")
    
    def assign(self,
               transaction_hash: str,
               numbers: str,
               period: int,
               mode: Optional[str] = None,
               log_index: Optional[int] = None) -> bool:
        """True only when exactly one pending row was moved to NUMBERS_ASSIGNED."""
        self._validate(numbers, period)
        
        with self.db_manager.get_session() as session:
            affected = self.repository.update_status(
                session,
                transaction_hash,
                TransferStatus.PENDING,
                TransferStatus.NUMBERS_ASSIGNED,
                mode=mode,
                log_index=log_index,
                lottery_numbers=numbers.strip(),
                lottery_period=period,
            )
            
            if affected == 1:
                session.commit()
                self.log_info("Lottery numbers assigned", tx_hash=transaction_hash,
                              mode=mode)
                return True
            
            session.rollback()
        
        if affected > 1:
            self.log_warning(f"Assignment matched {affected} rows, rolled back; "
                             "pass mode and log_index to pick one",
                             tx_hash=transaction_hash)
        else:
            self.log_info("Transfer not pending, assignment skipped", tx_hash=transaction_hash)
        return False
    
    def assign_next(self,
                    mode: str,
                    value: str,
                    to_address: str,
                    token_address: str,
                    numbers: str,
                    period: int) -> Tuple[AssignmentOutcome, Optional[TokenTransfer]]:
        """
        Pick the oldest pending transfer of this value and assign it.
        
        Returns NOT_FOUND when nothing matches and CONFLICT when another
        caller assigned the selected transfer first.
        """
        self._validate(numbers, period)
        value = normalize_amount(value)
        
        with self.db_manager.get_session() as session:
            candidate = self.repository.find_next_pending(
                session, mode, value, to_address, token_address
            )
        
        if candidate is None:
            return AssignmentOutcome.NOT_FOUND, None
        
        if not self.assign(candidate.transaction_hash, numbers, period,
                           mode=candidate.mode, log_index=candidate.log_index):
            return AssignmentOutcome.CONFLICT, candidate
        
        with self.db_manager.get_session() as session:
            assigned = self.repository.get_by_id(session, candidate.id)
        return AssignmentOutcome.ASSIGNED, assigned
    
    # === Reads ===
    
    def get_info(self, transaction_hash: str, mode: Optional[str] = None) -> Optional[TokenTransfer]:
        with self.db_manager.get_session() as session:
            return self.repository.get_by_hash(session, transaction_hash, mode=mode)
    
    def list_pending(self, mode: str, value: str, to_address: str, token_address: str) -> List[TokenTransfer]:
        with self.db_manager.get_session() as session:
            return self.repository.find_matching(
                session, mode, normalize_amount(value), to_address, token_address
            )
    
    def latest_assigned(self, mode: str, from_address: str) -> Optional[TokenTransfer]:
        with self.db_manager.get_session() as session:
            return self.repository.latest_assigned(session, mode, from_address)
    
    def period_stats(self, mode: str, period: Optional[int] = None) -> PeriodStats:
        with self.db_manager.get_session() as session:
            return self.repository.period_stats(session, mode, period)
    
    def latest_synced_block(self, mode: str) -> int:
        with self.db_manager.get_session() as session:
            return self.repository.latest_synced_block(session, mode)
