# transfer_indexer/types/config.py

from typing import List

from msgspec import Struct, field


class DatabaseConfig(Struct):
    url: str
    pool_size: int = 5
    max_overflow: int = 10


class RpcConfig(Struct):
    endpoint_url: str
    backup_urls: List[str] = field(default_factory=list)
    timeout: int = 30
    max_retries: int = 3
    retry_delay: float = 1.0
    primary_recheck_interval: float = 300.0


class SyncConfig(Struct):
    mode: str
    start_block: int
    token_address: str
    token_symbol: str
    recipient_address: str
    rpc: RpcConfig
    database: DatabaseConfig
    batch_size: int = 2000
    poll_interval: float = 5.0
    batch_delay: float = 0.5
