import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from .db import flush_or_400, get_session
from .filters import apply_filters, filter_by_price, parse_bounds, search_by_name
from .models import Product
from .schemas import Message, ProductIn, ProductOut, ProductUpdate, bind_update, parse_body, raw_body

logger = logging.getLogger(__name__)

PROD_NOT_FOUND = "Product not found"

router = APIRouter(prefix="/products", tags=["products"])


def load_product(session: Session, pid: int) -> Product:
    stmt = (
        select(Product)
        .options(joinedload(Product.category))
        .where(Product.id == pid)
        .execution_options(populate_existing=True)
    )
    p = session.execute(stmt).scalar_one_or_none()
    if not p:
        raise HTTPException(status_code=404, detail=PROD_NOT_FOUND)
    return p


@router.post("", response_model=ProductOut, status_code=201)
def create_product(payload: ProductIn, session: Session = Depends(get_session)):
    p = Product(**payload.model_dump())
    session.add(p)
    flush_or_400(session)
    logger.info("created product id=%s", p.id)
    return ProductOut.model_validate(load_product(session, p.id))


@router.get("", response_model=List[ProductOut])
def list_products(
    search: Optional[str] = None,
    min_price: Optional[str] = None,
    max_price: Optional[str] = None,
    session: Session = Depends(get_session),
):
    filters = []
    bounds = parse_bounds(min_price, max_price, float)
    if bounds:
        filters.append(filter_by_price(*bounds))
    if search:
        filters.append(search_by_name(Product, search))

    stmt = select(Product).options(joinedload(Product.category)).order_by(Product.id)
    try:
        rows = session.execute(apply_filters(stmt, filters)).scalars().all()
    except SQLAlchemyError:
        logger.exception("listing products failed")
        raise HTTPException(status_code=500, detail="Failed to fetch products")
    return [ProductOut.model_validate(p) for p in rows]


@router.get("/{pid}", response_model=ProductOut)
def get_product(pid: int, session: Session = Depends(get_session)):
    return ProductOut.model_validate(load_product(session, pid))


@router.put("/{pid}", response_model=ProductOut)
def update_product(pid: int, raw: bytes = Depends(raw_body), session: Session = Depends(get_session)):
    p = load_product(session, pid)
    bind_update(p, parse_body(ProductUpdate, raw), nullable=("description", "category_id"))
    flush_or_400(session)
    return ProductOut.model_validate(load_product(session, pid))


@router.delete("/{pid}", response_model=Message)
def delete_product(pid: int, session: Session = Depends(get_session)):
    p = load_product(session, pid)
    session.delete(p)
    session.flush()
    logger.info("deleted product id=%s", pid)
    return Message(message="Product deleted")
