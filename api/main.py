# api/main.py

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from transfer_indexer import create_indexer
from transfer_indexer.core.logging import IndexerLogger, log_with_context
from transfer_indexer.lottery.service import LotteryService

from .routers import lottery
from .dependencies import set_dependencies


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = IndexerLogger.get_logger('api.main')
    
    container = create_indexer()
    service = container.get(LotteryService)
    set_dependencies(service)
    
    log_with_context(logger, logging.INFO, "API startup completed",
                     mode=container.config.mode)
    
    yield
    
    service.db_manager.shutdown()
    logger.info("API shutting down")


app = FastAPI(
    title="Lottery Service API",
    description="Lottery number assignment for synced token transfers",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)

app.include_router(lottery.router, prefix="/api/lottery", tags=["lottery"])


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "message": "Validation error",
            "errors": [
                {"field": ".".join(str(p) for p in err["loc"][1:]), "message": err["msg"]}
                for err in exc.errors()
            ],
        },
    )


@app.get("/health")
async def health_check():
    return {"status": "ok"}


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "name": "Lottery Service API",
        "version": "1.0.0",
        "endpoints": {
            "assign": "POST /api/lottery/assign",
            "info": "GET /api/lottery/info",
            "transfer": "GET /api/lottery/transfer",
            "latest": "GET /api/lottery/latest",
            "stats": "GET /api/lottery/stats",
            "docs": "/docs"
        },
        "status": "active"
    }
