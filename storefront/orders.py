import logging
from decimal import Decimal
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from prometheus_client import Counter
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from .db import flush_or_400, get_session
from .filters import apply_filters
from .models import Order, OrderItem, Product
from .products import PROD_NOT_FOUND
from .schemas import Message, OrderCreate, OrderOut, OrderUpdate, bind_update, parse_body, raw_body

logger = logging.getLogger(__name__)

ORDER_NOT_FOUND = "Order not found"

ORDERS_CREATED = Counter("orders_created_total", "Orders created successfully")
ORDERS_FAILED = Counter("order_create_failures_total", "Order create failures", ["reason"])

router = APIRouter(prefix="/orders", tags=["orders"])


# ---------- Helpers ----------
def fetch_prices(session: Session, product_ids: List[int]) -> Dict[int, Decimal]:
    """
    Read current prices for the given products.
    Returns {product_id: price}. Missing products are omitted.
    """
    if not product_ids:
        return {}
    rows = session.execute(
        select(Product.id, Product.price).where(Product.id.in_(product_ids))
    ).all()
    return {row[0]: row[1] for row in rows}


def load_order(session: Session, oid: int) -> Order:
    stmt = (
        select(Order)
        .options(selectinload(Order.items))
        .where(Order.id == oid)
        .execution_options(populate_existing=True)
    )
    o = session.execute(stmt).scalar_one_or_none()
    if not o:
        raise HTTPException(status_code=404, detail=ORDER_NOT_FOUND)
    return o


# ---------- Endpoints ----------
@router.post("", response_model=OrderOut, status_code=201)
def create_order(payload: OrderCreate, session: Session = Depends(get_session)):
    # Every referenced product must exist before anything is written
    product_ids = sorted({it.product_id for it in payload.items})
    prices = fetch_prices(session, product_ids)
    if len(prices) != len(product_ids):
        missing = sorted(set(product_ids) - set(prices.keys()))
        ORDERS_FAILED.labels(reason="missing_product").inc()
        logger.warning("order rejected, unknown product(s): %s", missing)
        raise HTTPException(status_code=404, detail=PROD_NOT_FOUND)

    order = Order(user_id=payload.user_id, status=payload.status, total=Decimal("0"))
    session.add(order)
    session.flush()  # get order.id

    # Items, snapshotting unit_price where the caller gave none
    items = []
    for it in payload.items:
        price = it.unit_price if it.unit_price is not None else prices[it.product_id]
        oi = OrderItem(order_id=order.id, product_id=it.product_id, quantity=it.quantity, unit_price=price)
        session.add(oi)
        items.append(oi)

    if payload.total is not None:
        order.total = payload.total
    else:
        order.total = sum((i.unit_price * i.quantity for i in items), Decimal("0"))
    # Order row is already written; a failure here rolls back the whole request
    flush_or_400(session)

    ORDERS_CREATED.inc()
    logger.info("created order id=%s with %d item(s)", order.id, len(items))
    return OrderOut.model_validate(load_order(session, order.id))


@router.get("", response_model=List[OrderOut])
def list_orders(
    status: Optional[str] = None,
    user_id: Optional[int] = None,
    session: Session = Depends(get_session),
):
    filters = []
    if status:
        filters.append(Order.status == status)
    if user_id is not None:
        filters.append(Order.user_id == user_id)

    stmt = select(Order).options(selectinload(Order.items)).order_by(Order.id)
    try:
        rows = session.execute(apply_filters(stmt, filters)).scalars().all()
    except SQLAlchemyError:
        logger.exception("listing orders failed")
        raise HTTPException(status_code=500, detail="Failed to fetch orders")
    return [OrderOut.model_validate(o) for o in rows]


@router.get("/{oid}", response_model=OrderOut)
def get_order(oid: int, session: Session = Depends(get_session)):
    return OrderOut.model_validate(load_order(session, oid))


@router.put("/{oid}", response_model=OrderOut)
def update_order(oid: int, raw: bytes = Depends(raw_body), session: Session = Depends(get_session)):
    o = load_order(session, oid)
    bind_update(o, parse_body(OrderUpdate, raw))
    flush_or_400(session)
    return OrderOut.model_validate(load_order(session, oid))


@router.delete("/{oid}", response_model=Message)
def delete_order(oid: int, session: Session = Depends(get_session)):
    o = load_order(session, oid)
    # Items go with it (delete-orphan cascade)
    session.delete(o)
    session.flush()
    logger.info("deleted order id=%s", oid)
    return Message(message="Order deleted")
