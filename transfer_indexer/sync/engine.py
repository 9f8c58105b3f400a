# transfer_indexer/sync/engine.py

import enum
import threading
from typing import Callable, Optional

from ..clients.endpoint_pool import EndpointPool
from ..clients.retry import RetryPolicy, is_endpoint_unhealthy
from ..core.logging import LoggingMixin
from ..database.connection import DatabaseManager
from ..database.repositories.transfer_repository import TransferRepository
from ..types import SyncConfig
from .fetcher import BatchFetcher


class SyncState(enum.Enum):
    IDLE = "idle"
    POLLING = "polling"
    STOPPED = "stopped"


class TransferSyncEngine(LoggingMixin):
    """
    Keeps the transfer table in step with the chain for one mode.
    
    backfill() catches up from the persisted cursor to the chain head as it
    was when the backfill started. start_polling() then follows the chain
    until stop() is called. Block ranges are always committed in increasing
    order, and the in-memory cursor only moves after a chunk is committed.
    """
    
    def __init__(self,
                 config: SyncConfig,
                 db_manager: DatabaseManager,
                 repository: TransferRepository,
                 fetcher: BatchFetcher,
                 pool: EndpointPool,
                 retry: RetryPolicy,
                 sleep: Optional[Callable[[float], object]] = None):
        self.config = config
        self.db_manager = db_manager
        self.repository = repository
        self.fetcher = fetcher
        self.pool = pool
        self.retry = retry
        
        self._stop_event = threading.Event()
        self._sleep = sleep or self._stop_event.wait
        self._state_lock = threading.Lock()
        self._state = SyncState.IDLE
        self._cursor: Optional[int] = None
    
    @property
    def mode(self) -> str:
        return self.config.mode
    
    @property
    def state(self) -> SyncState:
        return self._state
    
    @property
    def is_polling(self) -> bool:
        return self._state is SyncState.POLLING
    
    @property
    def cursor(self) -> Optional[int]:
        return self._cursor
    
    # === Store and chain reads ===
    
    def connect(self) -> None:
        if not self.db_manager.is_initialized:
            self.db_manager.initialize()
    
    def latest_synced_block(self) -> int:
        with self.db_manager.get_session() as session:
            return self.repository.latest_synced_block(session, self.mode)
    
    def resume_cursor(self) -> int:
        return max(self.latest_synced_block(), self.config.start_block - 1)
    
    def get_chain_head(self) -> int:
        return self.retry.run(
            lambda client: client.get_latest_block_number(),
            description="eth_blockNumber",
        )
    
    # === Range sync ===
    
    def _advance(self, block_number: int) -> None:
        if self._cursor is not None and block_number < self._cursor:
            raise RuntimeError(f"Cursor would move backwards: {self._cursor} -> {block_number}")
        self._cursor = block_number
    
    def sync_range(self, from_block: int, to_block: int) -> int:
        """Fetch and commit one chunk. Returns the number of rows inserted."""
        self.log_info("Querying blocks", mode=self.mode,
                      from_block=from_block, to_block=to_block)
        
        events = self.fetcher.fetch_range(from_block, to_block)
        
        with self.db_manager.get_transaction() as session:
            inserted = self.repository.insert_batch(session, events)
        
        if events:
            self.log_info("Inserted transfers", mode=self.mode, from_block=from_block,
                          to_block=to_block, inserted=inserted,
                          skipped=len(events) - inserted)
        else:
            self.log_debug("No transfers found", mode=self.mode,
                           from_block=from_block, to_block=to_block)
        return inserted
    
    def _sync_to(self,
                 target: int,
                 batch_delay: float = 0.0,
                 should_continue: Callable[[], bool] = lambda: True) -> int:
        inserted = 0
        while self._cursor < target and should_continue():
            next_end = min(self._cursor + self.config.batch_size, target)
            inserted += self.sync_range(self._cursor + 1, next_end)
            self._advance(next_end)
            
            if batch_delay and self._cursor < target:
                self._sleep(batch_delay)
        return inserted
    
    # === Historical backfill ===
    
    def backfill(self) -> int:
        """
        One-shot catch-up to the chain head read at start.
        
        Any failure propagates; progress up to the last committed chunk is
        kept and the next call resumes from the store.
        """
        self.connect()
        self.db_manager.ensure_schema()
        
        # a cursor already advanced in this process is kept over the stored one
        resumed = self.resume_cursor()
        if self._cursor is None or resumed > self._cursor:
            self._cursor = resumed
        chain_head = self.get_chain_head()
        
        self.log_info("Starting historical sync", mode=self.mode,
                      from_block=self._cursor + 1, chain_head=chain_head)
        
        inserted = self._sync_to(chain_head, batch_delay=self.config.batch_delay)
        
        self.log_info("Historical sync completed", mode=self.mode,
                      block_number=self._cursor, inserted=inserted)
        return inserted
    
    # === Polling ===
    
    def poll_once(self) -> int:
        """Single polling iteration. Returns the number of rows inserted."""
        chain_head = self.get_chain_head()
        
        if chain_head <= self._cursor:
            self.log_debug("No new blocks, waiting", mode=self.mode,
                           block_number=self._cursor, chain_head=chain_head)
            return 0
        
        self.log_info(f"Found {chain_head - self._cursor} new blocks", mode=self.mode,
                      block_number=self._cursor, chain_head=chain_head)
        
        return self._sync_to(chain_head, should_continue=lambda: self.is_polling)
    
    def start_polling(self) -> None:
        """
        Follow the chain until stop() is called. Blocks the calling thread.
        
        Calling it while already polling, or after stop(), does nothing.
        """
        with self._state_lock:
            if self._state is SyncState.POLLING:
                self.log_info("Polling is already running", mode=self.mode)
                return
            if self._state is SyncState.STOPPED:
                self.log_warning("Engine was stopped and cannot be restarted", mode=self.mode)
                return
            
            self.connect()
            if self._cursor is None:
                self.db_manager.ensure_schema()
                self._cursor = self.resume_cursor()
            self._state = SyncState.POLLING
        
        self.log_info("Starting polling for new transfers", mode=self.mode,
                      block_number=self._cursor)
        
        try:
            while self.is_polling:
                try:
                    self.pool.maybe_restore_primary()
                    self.poll_once()
                    if self.is_polling:
                        self._sleep(self.config.poll_interval)
                except Exception as e:
                    self._recover(e)
                    if self.is_polling:
                        self._sleep(self.config.rpc.retry_delay)
        finally:
            self.db_manager.shutdown()
            self.log_info("Polling stopped", mode=self.mode, block_number=self._cursor)
    
    def _recover(self, error: Exception) -> None:
        self.log_error("Error during polling", mode=self.mode,
                       block_number=self._cursor, error=str(error),
                       exception_type=type(error).__name__)
        
        if not self.db_manager.health_check():
            try:
                self.log_info("Reconnecting to database", mode=self.mode)
                self.db_manager.reconnect()
            except Exception as db_error:
                self.log_error("Failed to reconnect to database", mode=self.mode,
                               error=str(db_error))
        
        if is_endpoint_unhealthy(error):
            self.pool.failover()
    
    def stop(self) -> None:
        """
        Cooperative stop. An in-flight chunk finishes before the loop exits;
        the polling thread then releases the store connection.
        """
        with self._state_lock:
            was_polling = self._state is SyncState.POLLING
            self._state = SyncState.STOPPED
            self._stop_event.set()
        
        self.log_info("Stopping polling", mode=self.mode)
        
        if not was_polling:
            self.db_manager.shutdown()
