import asyncio
import uuid
from contextlib import asynccontextmanager, suppress

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from pymongo.database import Database
from pymongo.errors import PyMongoError

import config
from admin_routes import router as admin_router
from auth_routes import router as auth_router
from database import db, ensure_indexes, get_db, utcnow
from errors import register_error_handlers
from favorite_routes import router as favorite_router
from logging_config import add_context, clear_context, configure_logging
from order_routes import router as order_router
from product_routes import router as product_router
from review_routes import router as review_router
from scheduler import start_daily_sweep

configure_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_indexes(db)
    sweep = start_daily_sweep(db) if config.ENABLE_SCHEDULER else None
    logger.info("startup_complete", environment=config.ENVIRONMENT, database=config.DATABASE_NAME)
    yield
    if sweep is not None:
        sweep.cancel()
        with suppress(asyncio.CancelledError):
            await sweep


app = FastAPI(title="Storefront API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)


@app.middleware("http")
async def request_context(request: Request, call_next):
    clear_context()
    add_context(request_id=request.headers.get("x-request-id") or uuid.uuid4().hex[:12])
    response = await call_next(request)
    logger.debug("request", method=request.method, path=request.url.path, status=response.status_code)
    return response


app.include_router(auth_router)
app.include_router(product_router)
app.include_router(order_router)
app.include_router(review_router)
app.include_router(favorite_router)
app.include_router(admin_router)


# Routes
@app.get("/")
def read_root():
    return {"message": "Server is running", "timestamp": utcnow().isoformat()}


@app.get("/api/health")
def health():
    return {"message": "Server is running", "timestamp": utcnow().isoformat()}


@app.get("/test")
def database_diagnostics(db: Database = Depends(get_db)):
    """Report whether MongoDB answers and how many documents each collection holds."""
    try:
        counts = {name: db[name].count_documents({}) for name in sorted(db.list_collection_names())}
    except PyMongoError as exc:
        logger.warning("database_unreachable", error=str(exc))
        return {"backend": "running", "database": "unreachable", "databaseName": db.name}
    return {"backend": "running", "database": "connected", "databaseName": db.name, "collections": counts}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
