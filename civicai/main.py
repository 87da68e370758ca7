import asyncio
import json
import logging
import os
import re
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__, schemas, services

# --- Configuration ---
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
API_KEY = os.environ.get("API_KEY")
CORS_ALLOW_ORIGINS = os.environ.get("CORS_ALLOW_ORIGINS", "*").split(",")

# --- Logging Setup ---
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger("civicai")


# --- Lifespan ---


def mask_api_key(key: str) -> str:
    if len(key) <= 4:
        return "****"
    return key[:4] + "*" * (len(key) - 4)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting CivicAI sidecar. CORS_ALLOW_ORIGINS={CORS_ALLOW_ORIGINS}")
    if API_KEY:
        logger.info(f"API_KEY is set: {mask_api_key(API_KEY)}")
    else:
        logger.warning("API_KEY is not set.")
    yield
    logger.info("Stopping CivicAI sidecar.")


# --- App Setup ---
app = FastAPI(
    title="CivicAI Sidecar",
    version=__version__,
    description="Triage and duplicate detection for civic issue reports.",
    lifespan=lifespan,
)

# --- Middleware ---
# Middleware is added LIFO; execution order is CORS -> Logging -> Path Normalization -> Auth -> App.

OPEN_PATHS = ("/healthz", "/version")


@app.middleware("http")
async def auth_middleware(request: Request, call_next):
    # CORS preflight carries no API key
    if request.method == "OPTIONS":
        return await call_next(request)

    path = request.url.path.rstrip("/")
    if path in OPEN_PATHS or request.url.path in OPEN_PATHS:
        return await call_next(request)

    if API_KEY:
        x_api_key = request.headers.get("X-API-Key")
        if x_api_key != API_KEY:
            return JSONResponse(
                status_code=status.HTTP_403_FORBIDDEN,
                content={"detail": "Invalid or missing API Key"}
            )

    return await call_next(request)


@app.middleware("http")
async def normalize_path_middleware(request: Request, call_next):
    if "//" in request.url.path:
        request.scope["path"] = re.sub('/+', '/', request.url.path)
    return await call_next(request)


@app.middleware("http")
async def structured_logging_middleware(request: Request, call_next):
    trace_id = str(uuid.uuid4())
    request.state.trace_id = trace_id

    start_time = time.time()

    try:
        response = await call_next(request)
        process_time_ms = round((time.time() - start_time) * 1000, 2)

        log_entry = {
            "trace_id": trace_id,
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "latency_ms": process_time_ms
        }
        logger.info(json.dumps(log_entry))
        return response

    except Exception as e:
        process_time_ms = round((time.time() - start_time) * 1000, 2)
        log_entry = {
            "trace_id": trace_id,
            "method": request.method,
            "path": request.url.path,
            "status": 500,
            "latency_ms": process_time_ms,
            "error": str(e)
        }
        logger.error(json.dumps(log_entry))
        return JSONResponse(
            status_code=500,
            content={"error": "Processing failed", "trace_id": trace_id}
        )

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Exception Handlers ---


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_encoder(exc.errors()), "body": str(exc.body)},
    )


def _check_snapshot_size(count: int) -> None:
    limit = services.max_existing_issues()
    if count > limit:
        raise HTTPException(
            status_code=413,
            detail=f"{count} issues exceeds the limit of {limit}",
        )


async def _simulate_latency() -> None:
    delay = services.simulated_latency_s()
    if delay:
        await asyncio.sleep(delay)

# --- Endpoints ---


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}


@app.get("/version")
async def version():
    return {
        "version": __version__,
        "build_time": datetime.now(timezone.utc).isoformat()
    }


@app.post("/triage", response_model=schemas.TriageResult)
async def triage(req: schemas.TriageReq):
    await _simulate_latency()
    return services.triage_report(req.report)


@app.post("/dedupe", response_model=schemas.DedupeResult)
async def dedupe(req: schemas.DedupeReq):
    _check_snapshot_size(len(req.existing))
    await _simulate_latency()
    return services.dedupe_report(req.report, req.existing)


@app.post("/batch", response_model=schemas.BatchRes)
async def batch(req: schemas.BatchReq):
    _check_snapshot_size(len(req.issues))
    await _simulate_latency()
    return services.batch_process(req.issues, req.ids)


@app.get("/metrics", response_model=schemas.MetricsRes)
async def metrics():
    return services.get_metrics()
