"""Order placement: one transaction per order, cache invalidation after commit."""

import logging
import os
from decimal import Decimal
from typing import Dict, Iterable, List, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .cache import ProductCache
from .errors import CacheUnavailable, InsufficientStock, ProductNotFound, StoreUnavailable, ValidationError
from .metrics import ORDERS_CREATED, ORDERS_FAILED
from .models import Order, OrderItem, OrderStatus, Product
from .schemas import OrderItemIn, OrderPlaced

logger = logging.getLogger(__name__)

DECREMENT_STOCK = os.getenv("DECREMENT_STOCK", "false").lower() in ("1", "true", "yes")

CENTS = Decimal("0.01")
# largest value a Numeric(10, 2) column holds
MAX_TOTAL = Decimal("99999999.99")


def fetch_prices(session: Session, product_ids: Iterable[int]) -> Dict[int, Decimal]:
    """
    Read current prices for the given products in one query.
    Returns {product_id: price}. Missing products are omitted.
    """
    ids = sorted(set(product_ids))
    if not ids:
        return {}
    rows = session.execute(select(Product.id, Product.price).where(Product.id.in_(ids))).all()
    return {row.id: row.price for row in rows}


def reserve_stock(session: Session, items: Sequence[OrderItemIn]) -> None:
    """
    Decrement stock per product, combining duplicate lines.
    Fails if any product doesn't have enough stock.
    """
    combined: Dict[int, int] = {}
    for it in items:
        combined[it.product_id] = combined.get(it.product_id, 0) + it.quantity

    for pid, qty in combined.items():
        res = session.execute(
            update(Product)
            .where(Product.id == pid, Product.stock >= qty)
            .values(stock=Product.stock - qty)
        )
        if res.rowcount != 1:
            raise InsufficientStock(pid)


def place_order(
    session: Session,
    cache: ProductCache,
    user_id: int,
    items: List[OrderItemIn],
    decrement_stock: bool = DECREMENT_STOCK,
) -> OrderPlaced:
    """
    Persist an order and its items atomically and return its id and total.

    Prices come from the catalog at transaction time and are captured on each
    item. Nothing is persisted unless every line resolves. The product listing
    cache is invalidated only after commit; failing to do so doesn't fail the
    order.
    """
    if not items:
        raise ValidationError("items must not be empty")
    if any(it.quantity < 1 for it in items):
        raise ValidationError("quantity must be positive")

    try:
        with session.begin():
            order = Order(user_id=user_id, status=OrderStatus.PENDING.value, total=Decimal("0"))
            session.add(order)
            session.flush()  # get order.id

            prices = fetch_prices(session, (it.product_id for it in items))
            missing = [it.product_id for it in items if it.product_id not in prices]
            if missing:
                raise ProductNotFound(missing)

            total = Decimal("0")
            for it in items:
                price = prices[it.product_id]
                total += price * it.quantity
                session.add(OrderItem(order_id=order.id, product_id=it.product_id, quantity=it.quantity, price=price))

            if total > MAX_TOTAL:
                raise ValidationError(f"order total exceeds {MAX_TOTAL}")

            if decrement_stock:
                reserve_stock(session, items)

            order.total = total.quantize(CENTS)
            session.flush()
            order_id, order_total = order.id, order.total
    except ProductNotFound as e:
        ORDERS_FAILED.labels(reason="missing_product").inc()
        logger.info("Order rejected for user %s: %s", user_id, e)
        raise
    except ValidationError as e:
        ORDERS_FAILED.labels(reason="invalid").inc()
        logger.info("Order rejected for user %s: %s", user_id, e)
        raise
    except InsufficientStock as e:
        ORDERS_FAILED.labels(reason="insufficient_stock").inc()
        logger.info("Order rejected for user %s: %s", user_id, e)
        raise
    except SQLAlchemyError as e:
        ORDERS_FAILED.labels(reason="store").inc()
        logger.exception("Error creating order for user %s", user_id)
        raise StoreUnavailable("Failed to create order") from e

    try:
        cache.invalidate_listing()
    except CacheUnavailable as e:
        logger.warning("Order %s committed but cache invalidation failed: %s", order_id, e)

    ORDERS_CREATED.inc()
    logger.info("Order %s placed for user %s, total %s", order_id, user_id, order_total)
    return OrderPlaced(order_id=order_id, total=order_total)
