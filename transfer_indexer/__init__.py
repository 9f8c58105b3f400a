# transfer_indexer/__init__.py

import logging
import os
from typing import Dict, Optional

from dotenv import load_dotenv

from .core.container import IndexerContainer
from .core.config import load_sync_config
from .core.logging import IndexerLogger, log_with_context
from .clients.endpoint_pool import EndpointPool
from .clients.retry import RetryPolicy
from .database.connection import DatabaseManager
from .database.repositories.transfer_repository import TransferRepository
from .sync.fetcher import BatchFetcher
from .sync.engine import TransferSyncEngine
from .lottery.service import LotteryService


def create_indexer(env_vars: Optional[Dict[str, str]] = None, **overrides) -> IndexerContainer:
    if env_vars is None:
        load_dotenv()
        env_vars = dict(os.environ)
    IndexerLogger.configure_from_env(env_vars)
    
    logger = IndexerLogger.get_logger('core.init')
    
    config = load_sync_config(env_vars, **overrides)
    container = IndexerContainer(config)
    _register_services(container)
    
    log_with_context(logger, logging.INFO, "Indexer created successfully",
                     mode=config.mode)
    return container


def _register_services(container: IndexerContainer) -> None:
    container.register_factory(DatabaseManager, _create_database_manager)
    container.register_factory(TransferRepository, lambda c: c.get(DatabaseManager).get_transfer_repo())
    container.register_factory(EndpointPool, _create_endpoint_pool)
    container.register_factory(RetryPolicy, _create_retry_policy)
    container.register_factory(BatchFetcher, _create_fetcher)
    container.register_factory(TransferSyncEngine, _create_sync_engine)
    container.register_factory(LotteryService, _create_lottery_service)


def _create_database_manager(container: IndexerContainer) -> DatabaseManager:
    return DatabaseManager(container.config.database)


def _create_endpoint_pool(container: IndexerContainer) -> EndpointPool:
    rpc = container.config.rpc
    return EndpointPool(
        primary_url=rpc.endpoint_url,
        backup_urls=rpc.backup_urls,
        primary_recheck_interval=rpc.primary_recheck_interval,
    )


def _create_retry_policy(container: IndexerContainer) -> RetryPolicy:
    rpc = container.config.rpc
    return RetryPolicy(
        container.get(EndpointPool),
        max_attempts=rpc.max_retries,
        delay=rpc.retry_delay,
    )


def _create_fetcher(container: IndexerContainer) -> BatchFetcher:
    config = container.config
    return BatchFetcher(
        container.get(RetryPolicy),
        mode=config.mode,
        token_address=config.token_address,
        token_symbol=config.token_symbol,
        recipient_address=config.recipient_address,
    )


def _create_sync_engine(container: IndexerContainer) -> TransferSyncEngine:
    return TransferSyncEngine(
        config=container.config,
        db_manager=container.get(DatabaseManager),
        repository=container.get(TransferRepository),
        fetcher=container.get(BatchFetcher),
        pool=container.get(EndpointPool),
        retry=container.get(RetryPolicy),
    )


def _create_lottery_service(container: IndexerContainer) -> LotteryService:
    # The API gets its own connection; the engine's manager is never shared
    db_manager = DatabaseManager(container.config.database)
    db_manager.initialize()
    return LotteryService(db_manager, db_manager.get_transfer_repo())
