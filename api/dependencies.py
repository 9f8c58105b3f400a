# api/dependencies.py

from fastapi import HTTPException

from transfer_indexer.lottery.service import LotteryService
from transfer_indexer.core.logging import IndexerLogger

# Global variables - these get set during app startup
_lottery_service: LotteryService = None
_logger = None

def set_dependencies(lottery_service: LotteryService):
    """Called during app startup to set global dependencies"""
    global _lottery_service, _logger
    _lottery_service = lottery_service
    _logger = IndexerLogger.get_logger('api.dependencies')

def get_lottery_service() -> LotteryService:
    """Dependency to get the lottery service"""
    if _lottery_service is None:
        raise HTTPException(status_code=500, detail="Lottery service not initialized")
    return _lottery_service

def get_logger():
    """Dependency to get logger"""
    if _logger is None:
        return IndexerLogger.get_logger('api.default')
    return _logger
