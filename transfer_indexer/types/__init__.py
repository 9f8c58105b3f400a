# transfer_indexer/types/__init__.py

from .config import (
    DatabaseConfig,
    RpcConfig,
    SyncConfig,
)

from .transfer import (
    TransferStatus,
    AssignmentOutcome,
    TransferEvent,
    PeriodStats,
)
