import logging
import time
from decimal import Decimal
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Path, Query, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from sqlalchemy.orm import Session

from . import config, store
from .db import Database, get_session
from .schemas import (
    DB_INT_MAX,
    DB_INT_MIN,
    CategoryDetailOut,
    CategoryOut,
    ProductIn,
    ProductOut,
    ProductUpdate,
    QueryParameters,
    StoreId,
)

logger = logging.getLogger(__name__)

# ---- Prometheus metrics ----
REQS = Counter("http_requests_total", "Total HTTP requests", ["service", "path", "method", "status"])
LAT = Histogram("http_request_duration_seconds", "Request latency", ["service", "path", "method"])
PRODUCTS_DELETED = Counter("products_deleted_total", "Products removed from the catalog")

ops = APIRouter()
router = APIRouter(prefix=config.API_PREFIX, tags=["products"])
categories_router = APIRouter(prefix=config.API_PREFIX, tags=["categories"])

RowId = Annotated[int, Path(ge=DB_INT_MIN, le=DB_INT_MAX)]


async def metrics_middleware(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    REQS.labels(config.APP_NAME, request.url.path, request.method, response.status_code).inc()
    LAT.labels(config.APP_NAME, request.url.path, request.method).observe(time.time() - start)
    return response


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # malformed body, path or query: 400 with the offending fields
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "validation failed", "errors": jsonable_encoder(exc.errors())},
    )


def _raise_query_error(name: str, kind: str, msg: str, value):
    raise RequestValidationError([{"type": kind, "loc": ("query", name), "msg": msg, "input": value}])


def query_parameters(
    page: int = Query(1, ge=1, le=DB_INT_MAX, description="Page number, starting at 1"),
    size: int = Query(config.DEFAULT_PAGE_SIZE, ge=1, le=DB_INT_MAX, description="Page length"),
    name: Optional[str] = Query(None, description="Case-insensitive name search"),
    category_id: Optional[int] = Query(None, alias="categoryId", ge=DB_INT_MIN, le=DB_INT_MAX),
    min_price: Optional[Decimal] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[Decimal] = Query(None, alias="maxPrice", ge=0),
    available: Optional[bool] = Query(None),
    # snake_case spellings, as JSON bodies accept both
    category_id_snake: Optional[int] = Query(
        None, alias="category_id", ge=DB_INT_MIN, le=DB_INT_MAX, include_in_schema=False
    ),
    min_price_snake: Optional[Decimal] = Query(None, alias="min_price", ge=0, include_in_schema=False),
    max_price_snake: Optional[Decimal] = Query(None, alias="max_price", ge=0, include_in_schema=False),
) -> QueryParameters:
    if config.MAX_PAGE_SIZE and size > config.MAX_PAGE_SIZE:
        _raise_query_error("size", "less_than_equal",
                           f"Input should be less than or equal to {config.MAX_PAGE_SIZE}", size)
    if size * (page - 1) > DB_INT_MAX:
        _raise_query_error("page", "less_than_equal",
                           "Page offset (size * (page - 1)) is out of range", page)
    return QueryParameters(
        page=page,
        size=size,
        name=name,
        category_id=category_id if category_id is not None else category_id_snake,
        min_price=min_price if min_price is not None else min_price_snake,
        max_price=max_price if max_price is not None else max_price_snake,
        available=available,
    )


@ops.get("/health", response_class=PlainTextResponse)
def health():
    return "ok"


@ops.get("/metrics")
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


# ---------- Products ----------
@router.get("/products", response_model=List[ProductOut])
def list_products(params: QueryParameters = Depends(query_parameters),
                  session: Session = Depends(get_session)):
    return store.list_products(session, params, skip=params.skip, take=params.take)


@router.get("/products/available", response_model=List[ProductOut])
def list_available_products(session: Session = Depends(get_session)):
    return store.list_available_products(session)


@router.get("/products/{product_id}", response_model=ProductOut)
def get_product(product_id: RowId, session: Session = Depends(get_session)):
    p = store.get_product(session, product_id)
    if not p:
        raise HTTPException(status_code=404, detail="not found")
    return p


@router.post("/products", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
def create_product(payload: ProductIn, request: Request, response: Response,
                   session: Session = Depends(get_session)):
    try:
        p = store.create_product(session, payload)
    except store.UnknownCategory as e:
        raise HTTPException(status_code=400, detail=str(e))
    response.headers["Location"] = str(request.url_for("get_product", product_id=p.id))
    return p


@router.put("/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def update_product(product_id: RowId, payload: ProductUpdate,
                   session: Session = Depends(get_session)):
    if product_id != payload.id:
        raise HTTPException(status_code=400, detail="id in path does not match id in body")
    try:
        store.update_product(session, product_id, payload, expected_version=payload.version)
    except store.UnknownCategory as e:
        raise HTTPException(status_code=400, detail=str(e))
    except store.UpdateConflict:
        # vanished row is a 404; any other conflict is not ours to fix
        if not store.product_exists(session, product_id):
            logger.warning("Product %s disappeared before update", product_id)
            raise HTTPException(status_code=404, detail="not found")
        logger.error("Unresolved update conflict on product %s", product_id)
        raise
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(product_id: RowId, session: Session = Depends(get_session)):
    p = store.get_product(session, product_id)
    if not p:
        raise HTTPException(status_code=404, detail="not found")
    store.delete_product(session, p)
    PRODUCTS_DELETED.inc()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/products/delete", status_code=status.HTTP_204_NO_CONTENT)
@router.post("/products/Delete", status_code=status.HTTP_204_NO_CONTENT, include_in_schema=False)
def delete_products(ids: List[StoreId] = Query(default=[]), session: Session = Depends(get_session)):
    # resolve everything first, nothing is deleted unless all ids exist
    try:
        products = store.resolve_products(session, ids)
    except store.ProductNotFound as e:
        logger.warning("Batch delete of %s rejected: %s", ids, e)
        raise HTTPException(status_code=404, detail=str(e))
    PRODUCTS_DELETED.inc(store.delete_products(session, products))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------- Categories ----------
@categories_router.get("/categories", response_model=List[CategoryOut])
def list_categories(session: Session = Depends(get_session)):
    return store.list_categories(session)


@categories_router.get("/categories/{category_id}", response_model=CategoryDetailOut)
def get_category(category_id: RowId, session: Session = Depends(get_session)):
    c = store.get_category(session, category_id)
    if not c:
        raise HTTPException(status_code=404, detail="not found")
    return c


def create_app(database: Optional[Database] = None) -> FastAPI:
    app = FastAPI(title=config.APP_NAME)
    app.state.db = database or Database()

    # ---- Startup: ensure tables + seed exist (idempotent) ----
    @app.on_event("startup")
    def on_startup():
        app.state.db.init_db()
        logger.info("%s ready, routes under '%s/'", config.APP_NAME, config.API_PREFIX)

    @app.on_event("shutdown")
    def on_shutdown():
        app.state.db.dispose()

    app.middleware("http")(metrics_middleware)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.include_router(ops)
    app.include_router(router)
    app.include_router(categories_router)
    return app


config.configure_logging()
app = create_app()


def run():
    import uvicorn

    uvicorn.run("shopapi.main:app", host="0.0.0.0", port=config.LISTEN_PORT)
