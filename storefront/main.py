import logging
import os
import time
from typing import List

from fastapi import APIRouter, Depends, FastAPI, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text
from sqlalchemy.orm import Session

from . import catalog, orders
from .cache import ProductCache, get_cache, make_redis
from .db import get_session, init_db, make_engine, make_sessionmaker
from .errors import ServiceError
from .metrics import APP_NAME, LAT, REQS
from .schemas import OrderCreate, OrderPlaced, ProductOut

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(APP_NAME)

# Route prefix for the browser-facing API. Set API_PREFIX="" if a gateway strips it.
API_PREFIX = os.getenv("API_PREFIX", "/api").strip()
if API_PREFIX and not API_PREFIX.startswith("/"):
    API_PREFIX = "/" + API_PREFIX
API_PREFIX = API_PREFIX.rstrip("/")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

app = FastAPI(title=APP_NAME)
router = APIRouter(prefix=API_PREFIX)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---- Lifecycle: build the shared store/cache handles once per process ----
@app.on_event("startup")
def on_startup():
    engine = make_engine()
    init_db(engine)
    app.state.engine = engine
    app.state.sessions = make_sessionmaker(engine)
    app.state.cache = ProductCache(make_redis())
    logger.info("%s started", APP_NAME)


@app.on_event("shutdown")
def on_shutdown():
    cache = getattr(app.state, "cache", None)
    if cache is not None:
        cache.close()
    engine = getattr(app.state, "engine", None)
    if engine is not None:
        engine.dispose()
    logger.info("%s stopped", APP_NAME)


# ---- Prometheus metrics ----
@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    REQS.labels(APP_NAME, request.url.path, request.method, response.status_code).inc()
    LAT.labels(APP_NAME, request.url.path, request.method).observe(time.time() - start)
    return response


# ---- Errors ----
@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


# ---- Probes ----
@app.get("/health", response_class=PlainTextResponse)
def health():
    return "ok"


@app.get("/ready")
def ready(session: Session = Depends(get_session), cache: ProductCache = Depends(get_cache)):
    try:
        session.execute(text("SELECT 1"))
        cache.ping()
    except Exception as e:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not ready", "error": str(e)},
        )
    return {"status": "ready"}


@app.get("/metrics")
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


# ---- API ----
@router.get("/products", response_model=List[ProductOut])
def list_products(session: Session = Depends(get_session), cache: ProductCache = Depends(get_cache)):
    payload = catalog.list_products(session, cache)
    return Response(content=payload, media_type="application/json")


@router.get("/products/{pid}", response_model=ProductOut)
def get_product(pid: int, session: Session = Depends(get_session)):
    return catalog.get_product(session, pid)


@router.post("/orders", response_model=OrderPlaced, status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreate,
    session: Session = Depends(get_session),
    cache: ProductCache = Depends(get_cache),
):
    return orders.place_order(session, cache, payload.user_id, payload.items)


app.include_router(router)
