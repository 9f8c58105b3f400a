# transfer_indexer/types/transfer.py

import enum
from typing import Dict, Optional

from msgspec import Struct


class TransferStatus(enum.Enum):
    PENDING = "pending"
    NUMBERS_ASSIGNED = "numbers_assigned"
    CLAIMED = "claimed"
    FAILED = "failed"


class AssignmentOutcome(enum.Enum):
    ASSIGNED = "assigned"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"


class TransferEvent(Struct, frozen=True):
    """A Transfer log to the recipient, enriched with its block timestamp."""
    mode: str
    block_number: int
    transaction_hash: str
    log_index: int
    from_address: str
    to_address: str
    token_address: str
    token_symbol: str
    value: str  # base units, base-10
    timestamp: int

    @property
    def business_key(self) -> tuple:
        return (self.mode, self.transaction_hash, self.log_index)


class PeriodStats(Struct):
    mode: str
    lottery_period: Optional[int]
    counts: Dict[str, int]
    total_value: str
    transfer_count: int
