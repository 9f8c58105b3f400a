# transfer_indexer/core/logging.py
"""
Centralized logging system for the transfer indexer.

Provides:
- IndexerLogger: Global logging configuration
- LoggingMixin: Consistent logging behavior for classes
- Utility functions: Context logging helpers
"""

import json
import logging
import sys
from logging import DEBUG, INFO, WARNING, ERROR, CRITICAL
from pathlib import Path
from typing import Optional, Dict
from datetime import datetime


ROOT_LOGGER_NAME = 'transfer_indexer'

CONTEXT_ATTRS = ['mode', 'tx_hash', 'block_number', 'from_block', 'to_block', 'chain_head',
                 'endpoint', 'attempt', 'inserted', 'skipped', 'error', 'exception_type',
                 'service_type']


class IndexerFormatter(logging.Formatter):
    def __init__(self, include_context: bool = False, structured: bool = False):
        self.include_context = include_context
        self.structured = structured
        super().__init__()
    
    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]
        
        context = {}
        if self.include_context:
            for attr in CONTEXT_ATTRS:
                if hasattr(record, attr):
                    context[attr] = getattr(record, attr)
        
        if self.structured:
            log_entry = {
                'timestamp': timestamp,
                'level': record.levelname,
                'logger': record.name,
                'message': record.getMessage(),
            }
            if context:
                log_entry['context'] = context
            if record.exc_info:
                log_entry['exception'] = self.formatException(record.exc_info)
            return json.dumps(log_entry, separators=(',', ':'), default=str)
        
        base_msg = f"{timestamp} - {record.name} - {record.levelname} - {record.getMessage()}"
        if context:
            base_msg = f"{base_msg} | {' '.join(f'{k}={v}' for k, v in context.items())}"
        if record.exc_info:
            base_msg = f"{base_msg}\n{self.formatException(record.exc_info)}"
        return base_msg


class IndexerLogger:
    """Process-wide logging setup for the transfer_indexer namespace"""
    
    _configured = False
    _level = logging.INFO
    
    @classmethod
    def configure(cls, 
                  log_dir: Optional[Path] = None,
                  log_level: str = "INFO",
                  console_enabled: bool = True,
                  file_enabled: bool = False,
                  structured_format: bool = False) -> None:
        """First call wins; later calls are ignored."""
        if cls._configured:
            return
        
        cls._level = logging.getLevelName(log_level.upper())
        if not isinstance(cls._level, int):
            cls._level = logging.INFO
        
        handlers = []
        if console_enabled:
            handlers.append((logging.StreamHandler(sys.stdout), cls._level))
        if file_enabled and log_dir:
            log_dir.mkdir(parents=True, exist_ok=True)
            handlers.append((logging.FileHandler(log_dir / 'transfer_indexer.log'), cls._level))
            handlers.append((logging.FileHandler(log_dir / 'transfer_indexer_errors.log'), ERROR))
        
        formatter = IndexerFormatter(include_context=True, structured=structured_format)
        package_logger = logging.getLogger(ROOT_LOGGER_NAME)
        package_logger.setLevel(cls._level)
        package_logger.handlers.clear()
        for handler, level in handlers:
            handler.setLevel(level)
            handler.setFormatter(formatter)
            package_logger.addHandler(handler)
        
        cls._configured = True

    @classmethod
    def configure_from_env(cls, env: Dict[str, str]) -> None:
        log_dir_env = env.get("TRANSFER_INDEXER_LOG_DIR")
        log_dir = Path(log_dir_env) if log_dir_env else Path.cwd() / "logs"
        
        cls.configure(
            log_dir=log_dir,
            log_level=env.get("TRANSFER_INDEXER_LOG_LEVEL", "INFO"),
            console_enabled=env.get("TRANSFER_INDEXER_LOG_CONSOLE", "true").lower() == "true",
            file_enabled=env.get("TRANSFER_INDEXER_LOG_FILE", "false").lower() == "true",
            structured_format=env.get("TRANSFER_INDEXER_LOG_STRUCTURED", "false").lower() == "true",
        )
    
    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        if not cls._configured:
            cls.configure()
        
        if not name.startswith(ROOT_LOGGER_NAME):
            name = f'{ROOT_LOGGER_NAME}.{name}'
        
        return logging.getLogger(name)


# === Utility Functions ===

def get_class_logger(cls_instance) -> logging.Logger:
    module = cls_instance.__class__.__module__
    class_name = cls_instance.__class__.__name__
    
    if module.startswith(f'{ROOT_LOGGER_NAME}.'):
        module = module[len(ROOT_LOGGER_NAME) + 1:]
    
    return IndexerLogger.get_logger(f"{module}.{class_name}")


def log_with_context(logger: logging.Logger, level: int, message: str, **context) -> None:
    if logger.isEnabledFor(level):
        record = logger.makeRecord(
            logger.name, level, "", 0, message, (), None
        )
        for key, value in context.items():
            setattr(record, key, value)
        logger.handle(record)


# === LoggingMixin for Classes ===

class LoggingMixin:
    """
    Mixin to add consistent logging behavior to any class.
    
    Creates a class-specific logger on first use and forwards
    keyword context to log_with_context.
    """
    
    @property
    def logger(self) -> logging.Logger:
        if not hasattr(self, '_logger'):
            self._logger = get_class_logger(self)
        return self._logger
    
    def log_debug(self, message: str, **context) -> None:
        log_with_context(self.logger, DEBUG, message, **context)
    
    def log_info(self, message: str, **context) -> None:
        log_with_context(self.logger, INFO, message, **context)
    
    def log_warning(self, message: str, **context) -> None:
        log_with_context(self.logger, WARNING, message, **context)
    
    def log_error(self, message: str, **context) -> None:
        log_with_context(self.logger, ERROR, message, **context)


__all__ = [
    'IndexerLogger', 'IndexerFormatter', 'LoggingMixin',
    'get_class_logger', 'log_with_context',
    'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL',
]
