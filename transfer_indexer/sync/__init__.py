from .fetcher import BatchFetcher, TRANSFER_TOPIC
from .engine import TransferSyncEngine, SyncState
