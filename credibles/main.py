# credibles/main.py
import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from .config import (
    ATTESTATION_GATE_ADDRESS,
    CREDIBLES_ADDRESS,
    NETWORK,
    PAYMENT_GATEWAY_ADDRESS,
    USDC_ADDRESS,
)
from .deployments import latest_deployment
from .errors import CrediblesError
from .issuer_routes import router as issuer_router
from .subject_views import router as subject_router
from .talent_routes import router as talent_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app):
    from .chain.indexer import run_indexer
    indexer_task = asyncio.create_task(run_indexer())
    logger.info("Attestation indexer started")
    yield
    indexer_task.cancel()
    try:
        await indexer_task
    except asyncio.CancelledError:
        pass
    logger.info("Attestation indexer stopped")


app = FastAPI(title="Credibles API", version="0.1.0", lifespan=lifespan)
app.include_router(subject_router)
app.include_router(issuer_router)
app.include_router(talent_router)


@app.exception_handler(CrediblesError)
async def credibles_error_handler(request: Request, exc: CrediblesError):
    logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(
        {"error": {"code": exc.code, "message": exc.message}},
        status_code=exc.status_code,
    )


@app.get("/healthz")
def healthz():
    return {"ok": "true"}


@app.get("/api/contracts")
def get_contracts():
    try:
        latest = latest_deployment(NETWORK)
    except Exception as e:
        logger.exception("Failed to read deployment log")
        raise HTTPException(500, f"Failed to load contracts: {e}")

    contracts = dict(latest.get("contracts", {})) if latest else {}
    contracts.setdefault("Credibles", CREDIBLES_ADDRESS)
    contracts.setdefault("AttestationResolver", ATTESTATION_GATE_ADDRESS)
    contracts.setdefault("TalentPaymentGateway", PAYMENT_GATEWAY_ADDRESS)
    contracts["USDC"] = USDC_ADDRESS
    contracts = {k: v.lower() if isinstance(v, str) else v for k, v in contracts.items() if v}
    if latest and latest.get("schemaUID"):
        contracts["schemaUID"] = latest["schemaUID"]
    return contracts
