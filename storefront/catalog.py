"""Product read path: cached listing of in-stock products, single product lookup."""

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .cache import ProductCache
from .errors import CacheUnavailable, ProductNotFound, StoreUnavailable
from .metrics import CACHE_REQS
from .models import Product
from .schemas import ProductList, ProductOut

logger = logging.getLogger(__name__)


def fetch_in_stock(session: Session) -> List[Product]:
    stmt = (
        select(Product)
        .where(Product.stock > 0)
        .order_by(Product.created_at.desc(), Product.id.desc())
    )
    try:
        return list(session.execute(stmt).scalars().all())
    except SQLAlchemyError as e:
        logger.exception("Error fetching products")
        raise StoreUnavailable() from e


def list_products(session: Session, cache: ProductCache) -> bytes:
    """
    Return the JSON listing of in-stock products, newest first.

    A cached payload is returned exactly as stored. On a miss (or when the
    cache is unreachable) the store is queried and the cache refilled.
    """
    try:
        cached = cache.get_listing()
    except CacheUnavailable as e:
        logger.warning("Cache read failed, falling back to store: %s", e)
        CACHE_REQS.labels("error").inc()
        cached = None
    else:
        if cached:
            logger.debug("Cache hit")
            CACHE_REQS.labels("hit").inc()
            return cached
        CACHE_REQS.labels("miss").inc()

    rows = fetch_in_stock(session)
    payload = ProductList.dump_json([ProductOut.model_validate(p) for p in rows])

    try:
        cache.store_listing(payload)
    except CacheUnavailable as e:
        logger.warning("Cache write failed: %s", e)
    return payload


def get_product(session: Session, product_id: int) -> Product:
    try:
        product = session.get(Product, product_id)
    except SQLAlchemyError as e:
        logger.exception("Error fetching product %s", product_id)
        raise StoreUnavailable() from e
    if product is None:
        raise ProductNotFound([product_id])
    return product
