# tests/conftest.py
"""
pytest configuration and fixtures for the transfer indexer

The chain is an in-memory fake behind RPCClientInterface and every test
gets its own file-backed SQLite database.
"""

from collections import defaultdict, deque
from typing import Any, Callable, Dict, List, Optional

import pytest

from transfer_indexer.clients.endpoint_pool import EndpointPool
from transfer_indexer.clients.interfaces import RPCClientInterface
from transfer_indexer.clients.retry import RetryPolicy
from transfer_indexer.core.logging import IndexerLogger
from transfer_indexer.database.connection import DatabaseManager
from transfer_indexer.lottery.service import LotteryService
from transfer_indexer.sync.engine import TransferSyncEngine
from transfer_indexer.sync.fetcher import BatchFetcher, TRANSFER_TOPIC, address_topic
from transfer_indexer.types import DatabaseConfig, RpcConfig, SyncConfig, TransferEvent


MODE = 'base'
TOKEN = '0xa7ab21686d40aa35cb51137a795d84a57352f593'
RECIPIENT = '0xbebaf2a9ad714feb9dd151d81dd6d61ae0535646'
SENDER = '0xb4f205238b7556790dacef577d371cb8f6c87215'
OTHER_SENDER = '0x5f6e2e8e1b6c7d3a9a4d3f0c2b1e0a9f8e7d6c5b'
PRIMARY = 'https://primary.example'
BACKUP_1 = 'https://backup-1.example'
BACKUP_2 = 'https://backup-2.example'


def tx_hash(n: int) -> str:
    return '0x' + format(n, '064x')


class FakeChain:
    """Append-only chain shared by every fake endpoint, with scripted failures per endpoint."""

    def __init__(self, head: int = 0):
        self.head = head
        self.logs: List[Dict[str, Any]] = []
        self.failures: Dict[tuple, deque] = defaultdict(deque)
        self.calls: List[tuple] = []
        self.on_get_logs: Optional[Callable[[int, int], None]] = None
        self._tx_counter = 0

    def add_transfer(self,
                     block_number: int,
                     value: int = 100,
                     sender: str = SENDER,
                     to: str = RECIPIENT,
                     token: str = TOKEN,
                     log_index: int = 0,
                     transaction_hash: Optional[str] = None) -> str:
        if transaction_hash is None:
            self._tx_counter += 1
            transaction_hash = tx_hash(self._tx_counter)
        self.logs.append({
            'address': token,
            'blockNumber': block_number,
            'logIndex': log_index,
            'transactionHash': transaction_hash,
            'topics': [TRANSFER_TOPIC, address_topic(sender), address_topic(to)],
            'data': hex(value),
            'removed': False,
        })
        self.head = max(self.head, block_number)
        return transaction_hash

    def fail(self, url: str, method: str, *errors: Exception) -> None:
        self.failures[(url, method)].extend(errors)

    def check(self, url: str, method: str) -> None:
        queue = self.failures.get((url, method))
        if queue:
            raise queue.popleft()

    def calls_for(self, method: str) -> List[tuple]:
        return [call for call in self.calls if call[1] == method]

    def log_ranges(self) -> List[tuple]:
        return [(call[2], call[3]) for call in self.calls_for('eth_getLogs')]

    @staticmethod
    def block_timestamp(block_number: int) -> int:
        return 1_700_000_000 + block_number * 2


class FakeRpcClient(RPCClientInterface):
    def __init__(self, chain: FakeChain, endpoint_url: str):
        self.chain = chain
        self.endpoint_url = endpoint_url

    def get_latest_block_number(self) -> int:
        self.chain.calls.append((self.endpoint_url, 'eth_blockNumber'))
        self.chain.check(self.endpoint_url, 'eth_blockNumber')
        return self.chain.head

    def get_block(self, block_number: int, full_transactions: bool = False) -> Dict[str, Any]:
        self.chain.calls.append((self.endpoint_url, 'eth_getBlockByNumber', block_number))
        self.chain.check(self.endpoint_url, 'eth_getBlockByNumber')
        return {'number': block_number, 'timestamp': self.chain.block_timestamp(block_number)}

    def get_logs(self, filter_params: Dict[str, Any]) -> List[Dict[str, Any]]:
        from_block, to_block = filter_params['fromBlock'], filter_params['toBlock']
        self.chain.calls.append((self.endpoint_url, 'eth_getLogs', from_block, to_block))
        self.chain.check(self.endpoint_url, 'eth_getLogs')
        if self.chain.on_get_logs:
            self.chain.on_get_logs(from_block, to_block)

        topics = filter_params['topics']
        return [
            dict(log) for log in self.chain.logs
            if from_block <= log['blockNumber'] <= to_block
            and log['address'] == filter_params['address']
            and log['topics'][0] == topics[0]
            and (topics[2] is None or log['topics'][2] == topics[2])
        ]


def make_event(block_number: int,
               n: int,
               value: str = '100',
               mode: str = MODE,
               log_index: int = 0,
               sender: str = SENDER) -> TransferEvent:
    return TransferEvent(
        mode=mode,
        block_number=block_number,
        transaction_hash=tx_hash(n),
        log_index=log_index,
        from_address=sender,
        to_address=RECIPIENT,
        token_address=TOKEN,
        token_symbol='USDC',
        value=value,
        timestamp=1_700_000_000 + block_number,
    )


@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    IndexerLogger.configure(log_level="DEBUG", console_enabled=True)


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'transfers.db'}"


@pytest.fixture
def sync_config(database_url):
    return SyncConfig(
        mode=MODE,
        start_block=1,
        token_address=TOKEN,
        token_symbol='USDC',
        recipient_address=RECIPIENT,
        rpc=RpcConfig(
            endpoint_url=PRIMARY,
            backup_urls=[BACKUP_1, BACKUP_2],
            max_retries=3,
            retry_delay=0.25,
            primary_recheck_interval=0.0,
        ),
        database=DatabaseConfig(url=database_url),
        batch_size=2000,
        poll_interval=1.5,
        batch_delay=0.0,
    )


@pytest.fixture
def store(database_url):
    """Separate manager for seeding and inspecting the table"""
    manager = DatabaseManager(DatabaseConfig(url=database_url))
    manager.initialize()
    manager.ensure_schema()
    yield manager
    manager.shutdown()


@pytest.fixture
def repository(store):
    return store.get_transfer_repo()


@pytest.fixture
def seed(store, repository):
    def insert(*events: TransferEvent) -> int:
        with store.get_transaction() as session:
            return repository.insert_batch(session, list(events))
    return insert


@pytest.fixture
def lottery(database_url, store):
    manager = DatabaseManager(DatabaseConfig(url=database_url))
    manager.initialize()
    yield LotteryService(manager, manager.get_transfer_repo())
    manager.shutdown()


@pytest.fixture
def make_pool(chain):
    def factory(primary: str = PRIMARY, backups=(BACKUP_1, BACKUP_2), **kwargs) -> EndpointPool:
        return EndpointPool(primary, backups,
                            client_factory=lambda url: FakeRpcClient(chain, url),
                            **kwargs)
    return factory


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_engine(sync_config, store, make_pool, sleeps):
    """
    Engines wired against the fake chain. Retry back-off is recorded in
    `sleeps`; the engine's own waits go to `sleep` when one is given, to
    `sleeps` by default, or to the engine's stop event when record_sleeps
    is False.
    """
    def factory(sleep: Optional[Callable[[float], object]] = None,
                config: Optional[SyncConfig] = None,
                max_attempts: Optional[int] = None,
                record_sleeps: bool = True) -> TransferSyncEngine:
        if sleep is None and record_sleeps:
            sleep = sleeps.append
        config = config or sync_config
        pool = make_pool(config.rpc.endpoint_url, config.rpc.backup_urls)
        retry = RetryPolicy(pool,
                            max_attempts=max_attempts or config.rpc.max_retries,
                            delay=config.rpc.retry_delay,
                            sleep=sleeps.append)
        fetcher = BatchFetcher(retry, config.mode, config.token_address,
                               config.token_symbol, config.recipient_address)
        db_manager = DatabaseManager(config.database)
        return TransferSyncEngine(config, db_manager, db_manager.get_transfer_repo(),
                                  fetcher, pool, retry, sleep=sleep)
    return factory
