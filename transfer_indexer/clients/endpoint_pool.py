# transfer_indexer/clients/endpoint_pool.py

import time
from collections import deque
from typing import Callable, Dict, List, Optional, Sequence

from ..core.logging import LoggingMixin
from .interfaces import RPCClientInterface
from .rpc_client import ChainRpcClient


ClientFactory = Callable[[str], RPCClientInterface]


class EndpointPool(LoggingMixin):
    """
    One active RPC endpoint plus an ordered queue of backups.
    
    failover() is one-directional: each call consumes the next backup.
    Going back to the original primary only happens through
    maybe_restore_primary(), which probes the primary at most once per
    primary_recheck_interval seconds while a backup is active.
    The pool is owned by a single engine and is not thread-safe.
    """
    
    def __init__(self,
                 primary_url: str,
                 backup_urls: Sequence[str] = (),
                 client_factory: Optional[ClientFactory] = None,
                 primary_recheck_interval: float = 0.0,
                 clock: Callable[[], float] = time.monotonic):
        if not primary_url:
            raise ValueError("Primary RPC endpoint is required")
        
        self._client_factory = client_factory or ChainRpcClient
        self._primary_url = primary_url
        self._active_url = primary_url
        self._backups = deque(backup_urls)
        self._clients: Dict[str, RPCClientInterface] = {}
        self._recheck_interval = primary_recheck_interval
        self._clock = clock
        self._last_recheck: Optional[float] = None
    
    @property
    def active_url(self) -> str:
        return self._active_url
    
    @property
    def on_primary(self) -> bool:
        return self._active_url == self._primary_url
    
    @property
    def remaining_backups(self) -> List[str]:
        return list(self._backups)
    
    def _client_for(self, url: str) -> RPCClientInterface:
        if url not in self._clients:
            self._clients[url] = self._client_factory(url)
        return self._clients[url]
    
    def current_endpoint(self) -> RPCClientInterface:
        return self._client_for(self._active_url)
    
    def failover(self) -> bool:
        if not self._backups:
            self.log_error("No backup RPC endpoints left", endpoint=self._active_url)
            return False
        
        failed_url = self._active_url
        self._active_url = self._backups.popleft()
        self._last_recheck = self._clock()
        
        self.log_warning("Switched to backup RPC endpoint",
                         endpoint=self._active_url,
                         error=f"failed endpoint {failed_url}")
        return True
    
    def maybe_restore_primary(self) -> bool:
        if self.on_primary or self._recheck_interval <= 0:
            return False
        
        now = self._clock()
        if self._last_recheck is not None and now - self._last_recheck < self._recheck_interval:
            return False
        self._last_recheck = now
        
        try:
            self._client_for(self._primary_url).get_latest_block_number()
        except Exception as e:
            self.log_debug("Primary RPC endpoint still unhealthy",
                           endpoint=self._primary_url, error=str(e))
            return False
        
        self._backups.appendleft(self._active_url)
        self._active_url = self._primary_url
        self.log_info("Restored primary RPC endpoint", endpoint=self._primary_url)
        return True
