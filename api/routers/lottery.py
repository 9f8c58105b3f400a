# api/routers/lottery.py

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, field_validator

from transfer_indexer.core.logging import log_with_context
from transfer_indexer.lottery.service import LotteryService
from transfer_indexer.types import AssignmentOutcome
from transfer_indexer.utils.amounts import is_valid_amount
from ..dependencies import get_lottery_service, get_logger

router = APIRouter()

ADDRESS_REGEX = r'^0x[a-fA-F0-9]{40}$'
HASH_REGEX = r'^0x[a-fA-F0-9]{64}$'


class AssignRequest(BaseModel):
    mode: str = Field(min_length=1)
    value: str = Field(min_length=1)
    toAddress: str = Field(pattern=ADDRESS_REGEX)
    tokenAddress: str = Field(pattern=ADDRESS_REGEX)
    lotteryNumber: str = Field(min_length=1)
    lotteryPeriod: int = Field(ge=0)

    @field_validator('mode', 'value', 'lotteryNumber', 'toAddress', 'tokenAddress', mode='before')
    @classmethod
    def strip(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator('value')
    @classmethod
    def check_value(cls, v: str) -> str:
        if not is_valid_amount(v):
            raise ValueError('value must be an unsigned base-10 integer string')
        return v

    @field_validator('toAddress', 'tokenAddress')
    @classmethod
    def lower(cls, v: str) -> str:
        return v.lower()


def format_transfer(transfer) -> Dict[str, Any]:
    """Convert transfer model to API response format"""
    return {
        "transactionHash": transfer.transaction_hash,
        "blockNumber": transfer.block_number,
        "fromAddress": transfer.from_address,
        "toAddress": transfer.to_address,
        "tokenAddress": transfer.token_address,
        "tokenSymbol": transfer.token_symbol,
        "value": transfer.value,
        "timestamp": transfer.timestamp,
        "blockTime": transfer.block_time.isoformat(),
        "status": transfer.status.value,
        "lotteryNumber": transfer.lottery_numbers,
        "lotteryPeriod": transfer.lottery_period,
        "updatedAt": transfer.updated_at.isoformat() if transfer.updated_at else None,
    }


@router.post("/assign")
def assign_lottery_numbers(
    request: AssignRequest,
    service: LotteryService = Depends(get_lottery_service),
    logger = Depends(get_logger)
):
    """Assign lottery numbers to the oldest pending transfer of this value"""
    try:
        outcome, transfer = service.assign_next(
            mode=request.mode,
            value=request.value,
            to_address=request.toAddress,
            token_address=request.tokenAddress,
            numbers=request.lotteryNumber,
            period=request.lotteryPeriod,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        log_with_context(logger, logging.ERROR, "Error processing lottery assignment",
                         mode=request.mode, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")

    if outcome is AssignmentOutcome.NOT_FOUND:
        raise HTTPException(status_code=404, detail="No matching transfer found")
    if outcome is AssignmentOutcome.CONFLICT:
        raise HTTPException(status_code=409, detail="Transfer was already assigned")

    log_with_context(logger, logging.INFO, "Lottery numbers assigned",
                     mode=request.mode, tx_hash=transfer.transaction_hash)
    return {
        "success": True,
        "message": "Lottery numbers assigned successfully",
        "data": format_transfer(transfer),
    }


@router.get("/info")
def get_lottery_info(
    transactionHash: str = Query(pattern=HASH_REGEX),
    mode: Optional[str] = Query(default=None, min_length=1),
    service: LotteryService = Depends(get_lottery_service),
    logger = Depends(get_logger)
):
    """Get lottery information by transaction hash, optionally within one mode"""
    try:
        transfer = service.get_info(transactionHash, mode=mode)
    except Exception as e:
        log_with_context(logger, logging.ERROR, "Error fetching lottery info",
                         tx_hash=transactionHash, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")

    if transfer is None:
        raise HTTPException(status_code=404, detail="Transfer not found")
    return {"success": True, "data": format_transfer(transfer)}


@router.get("/transfer")
def get_pending_transfers(
    mode: str = Query(min_length=1),
    value: str = Query(pattern=r'^[0-9]+$'),
    toAddress: str = Query(pattern=ADDRESS_REGEX),
    tokenAddress: str = Query(pattern=ADDRESS_REGEX),
    service: LotteryService = Depends(get_lottery_service),
    logger = Depends(get_logger)
):
    """Get pending transfers matching value and addresses, newest first"""
    try:
        transfers = service.list_pending(mode, value, toAddress, tokenAddress)
    except Exception as e:
        log_with_context(logger, logging.ERROR, "Error fetching transfers",
                         mode=mode, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")

    if not transfers:
        raise HTTPException(status_code=404, detail="No matching transfers found")
    return {
        "success": True,
        "count": len(transfers),
        "data": [format_transfer(t) for t in transfers],
    }


@router.get("/latest")
def get_latest_assigned(
    mode: str = Query(min_length=1),
    fromAddress: str = Query(pattern=ADDRESS_REGEX),
    service: LotteryService = Depends(get_lottery_service),
    logger = Depends(get_logger)
):
    """Get the latest assigned transfer for a sender"""
    try:
        transfer = service.latest_assigned(mode, fromAddress)
    except Exception as e:
        log_with_context(logger, logging.ERROR, "Error fetching latest assigned transfer",
                         mode=mode, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")

    if transfer is None:
        raise HTTPException(status_code=404, detail="No matching assigned transfer found")
    return {"success": True, "data": format_transfer(transfer)}


@router.get("/stats")
def get_period_stats(
    mode: str = Query(min_length=1),
    period: Optional[int] = Query(default=None, ge=0),
    service: LotteryService = Depends(get_lottery_service),
    logger = Depends(get_logger)
):
    """Per-status counts and exact value total for a lottery period"""
    try:
        stats = service.period_stats(mode, period)
    except Exception as e:
        log_with_context(logger, logging.ERROR, "Error computing period stats",
                         mode=mode, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")

    return {
        "success": True,
        "data": {
            "mode": stats.mode,
            "lotteryPeriod": stats.lottery_period,
            "counts": stats.counts,
            "totalValue": stats.total_value,
            "transferCount": stats.transfer_count,
        },
    }
