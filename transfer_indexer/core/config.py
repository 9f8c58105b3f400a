# transfer_indexer/core/config.py

import os
import re
from typing import Dict, List, Optional

from dotenv import load_dotenv

from ..types import SyncConfig, RpcConfig, DatabaseConfig
from .errors import ConfigurationError
from .logging import IndexerLogger, log_with_context, INFO


ENV_PREFIX = "TRANSFER_INDEXER_"

ADDRESS_PATTERN = re.compile(r'^0x[0-9a-fA-F]{40}$')


def normalize_address(address: Optional[str], field_name: str = "address") -> str:
    if not address or not ADDRESS_PATTERN.match(address.strip()):
        raise ConfigurationError(f"{field_name} is not a valid EVM address: {address!r}")
    return address.strip().lower()


def _get(env: Dict[str, str], name: str, default: Optional[str] = None) -> Optional[str]:
    value = env.get(f"{ENV_PREFIX}{name}")
    if value is None or value.strip() == "":
        return default
    return value.strip()


def _require(env: Dict[str, str], name: str) -> str:
    value = _get(env, name)
    if value is None:
        raise ConfigurationError(f"Missing required setting {ENV_PREFIX}{name}")
    return value


def _int(env: Dict[str, str], name: str, default: Optional[int] = None, minimum: int = 0) -> int:
    raw = _get(env, name)
    if raw is None:
        if default is None:
            raise ConfigurationError(f"Missing required setting {ENV_PREFIX}{name}")
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}")
    if value < minimum:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be >= {minimum}, got {value}")
    return value


def _float(env: Dict[str, str], name: str, default: float) -> float:
    raw = _get(env, name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}")
    if value < 0:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be >= 0, got {value}")
    return value


def _split_urls(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [url.strip() for url in raw.split(',') if url.strip()]


def build_database_url(env: Dict[str, str]) -> str:
    url = _get(env, "DB_URL")
    if url:
        return url
    
    db_user = _get(env, "DB_USER")
    db_password = _get(env, "DB_PASSWORD")
    db_host = _get(env, "DB_HOST", "127.0.0.1")
    db_port = _get(env, "DB_PORT", "5432")
    db_name = _get(env, "DB_NAME")
    
    if not db_user or not db_password or not db_name:
        raise ConfigurationError("Database credentials not found")
    
    return f"postgresql+psycopg://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"


def load_sync_config(env_vars: Optional[Dict[str, str]] = None, **overrides) -> SyncConfig:
    """
    Build a SyncConfig from TRANSFER_INDEXER_* variables.
    
    A .env file in the working directory is loaded first when no explicit
    mapping is given. Keyword overrides replace top-level SyncConfig fields.
    """
    logger = IndexerLogger.get_logger('core.config')
    
    if env_vars is None:
        load_dotenv()
        env = dict(os.environ)
    else:
        env = dict(env_vars)
    
    rpc = RpcConfig(
        endpoint_url=_require(env, "RPC_URL"),
        backup_urls=_split_urls(_get(env, "BACKUP_RPC_URLS")),
        timeout=_int(env, "RPC_TIMEOUT", 30, minimum=1),
        max_retries=_int(env, "MAX_RETRIES", 3, minimum=1),
        retry_delay=_float(env, "RETRY_DELAY", 1.0),
        primary_recheck_interval=_float(env, "PRIMARY_RECHECK_INTERVAL", 300.0),
    )
    
    database = DatabaseConfig(
        url=build_database_url(env),
        pool_size=_int(env, "DB_POOL_SIZE", 5, minimum=1),
        max_overflow=_int(env, "DB_MAX_OVERFLOW", 10),
    )
    
    values = dict(
        mode=_require(env, "MODE"),
        start_block=_int(env, "START_BLOCK"),
        token_address=normalize_address(_get(env, "TOKEN_ADDRESS"), "token address"),
        token_symbol=_get(env, "TOKEN_SYMBOL", "USDC"),
        recipient_address=normalize_address(_get(env, "RECIPIENT_ADDRESS"), "recipient address"),
        rpc=rpc,
        database=database,
        batch_size=_int(env, "BATCH_SIZE", 2000, minimum=1),
        poll_interval=_float(env, "POLL_INTERVAL", 5.0),
        batch_delay=_float(env, "BATCH_DELAY", 0.5),
    )
    values.update(overrides)
    
    config = SyncConfig(**values)
    
    log_with_context(logger, INFO, "Sync configuration loaded",
                     mode=config.mode,
                     from_block=config.start_block,
                     endpoint=config.rpc.endpoint_url)
    
    return config
