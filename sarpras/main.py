# sarpras/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status as fastapi_status, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pymongo.errors import PyMongoError
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from sarpras.core.config import setup_logging, CORS_ORIGINS
from sarpras.core.errors import AuthError, WorkflowError
from sarpras.core.rate_limiter import get_rate_limiter, rate_limit_exception_handler
from sarpras.db.database import init_db, ping_db
from sarpras.middleware.authentication import AuthMiddleware
from sarpras.middleware.logging import RequestLoggingMiddleware
from sarpras.api.v1.api import api_router_v1

setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application startup...")
    await init_db()
    logger.info("Database initialized.")
    yield
    logger.info("Application shutdown...")


app = FastAPI(
    title="Sarpras Request Workflow API",
    description="Permintaan barang habis pakai, peminjaman, dan pengembalian sarana prasarana.",
    version="1.0.0",
    lifespan=lifespan,
)

# --- KONFIGURASI MIDDLEWARE ---

# 1. Error Handling
app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)


@app.exception_handler(WorkflowError)
async def workflow_exception_handler(request: Request, exc: WorkflowError):
    rid = getattr(request.state, "request_id", "N/A")
    if isinstance(exc, AuthError):
        logger.warning(f"SECURITY: RID:{rid} {request.method} {request.url.path} denied: {exc.message}")
    else:
        logger.info(f"RID:{rid} {type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    content = {"detail": exc.message, "error": type(exc).__name__}
    current_status = getattr(exc, "current_status", None)
    if current_status is not None:
        content["current_status"] = current_status
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation Error on {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=fastapi_status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": "Validation Error", "errors": jsonable_errors(exc)},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(f"HTTP Exception: Status={exc.status_code}, Detail={exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled Exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=fastapi_status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "An internal server error occurred."},
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # ``ctx`` bisa berisi objek exception yang tidak bisa di-serialize
    return [{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()]


# Middleware yang ditambahkan terakhir membungkus yang sebelumnya.
# 2. Authentication Middleware
app.add_middleware(AuthMiddleware)

# 3. Request Logging Middleware (di luar Auth agar request_id sudah ada)
app.add_middleware(RequestLoggingMiddleware)

# 4. CORS (di luar Auth agar respons 401 dan preflight tetap membawa header CORS)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 5. Rate Limiter State (untuk decorator @limiter.limit)
app.state.limiter = get_rate_limiter()

# 6. GZip Middleware
app.add_middleware(GZipMiddleware, minimum_size=500)

# --- END MIDDLEWARE ---

app.include_router(api_router_v1)


@app.get("/")
async def read_root():
    return {"message": "Sarpras Request Workflow API"}


@app.get("/ping-mongodb")
async def ping_mongodb():
    try:
        if not await ping_db():
            raise HTTPException(status_code=503, detail="MongoDB client not initialized.")
        return {"status": "success", "message": "MongoDB connection is healthy."}
    except PyMongoError as e:
        logger.error(f"MongoDB ping failed: {e}")
        raise HTTPException(status_code=503, detail="MongoDB connection failed.")
