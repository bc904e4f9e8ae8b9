import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from .db import flush_or_400, get_session
from .filters import apply_filters, filter_by_product_count, parse_bounds, search_by_name
from .models import Category
from .schemas import CategoryIn, CategoryOut, CategoryUpdate, Message, bind_update, parse_body, raw_body

logger = logging.getLogger(__name__)

CAT_NOT_FOUND = "Category not found"

router = APIRouter(prefix="/categories", tags=["categories"])


def load_category(session: Session, cid: int) -> Category:
    stmt = (
        select(Category)
        .options(selectinload(Category.products))
        .where(Category.id == cid)
        .execution_options(populate_existing=True)
    )
    c = session.execute(stmt).scalar_one_or_none()
    if not c:
        raise HTTPException(status_code=404, detail=CAT_NOT_FOUND)
    return c


@router.post("", response_model=CategoryOut, status_code=201)
def create_category(payload: CategoryIn, session: Session = Depends(get_session)):
    c = Category(name=payload.name)
    session.add(c)
    session.flush()
    logger.info("created category id=%s", c.id)
    return CategoryOut.model_validate(load_category(session, c.id))


@router.get("", response_model=List[CategoryOut])
def list_categories(
    search: Optional[str] = None,
    min_products: Optional[str] = None,
    max_products: Optional[str] = None,
    session: Session = Depends(get_session),
):
    filters = []
    if search:
        filters.append(search_by_name(Category, search))
    bounds = parse_bounds(min_products, max_products, int)
    if bounds:
        filters.append(filter_by_product_count(*bounds))

    stmt = select(Category).options(selectinload(Category.products)).order_by(Category.id)
    try:
        rows = session.execute(apply_filters(stmt, filters)).scalars().all()
    except SQLAlchemyError:
        logger.exception("listing categories failed")
        raise HTTPException(status_code=500, detail="Failed to fetch categories")
    return [CategoryOut.model_validate(c) for c in rows]


@router.get("/{cid}", response_model=CategoryOut)
def get_category(cid: int, session: Session = Depends(get_session)):
    return CategoryOut.model_validate(load_category(session, cid))


@router.put("/{cid}", response_model=CategoryOut)
def update_category(cid: int, raw: bytes = Depends(raw_body), session: Session = Depends(get_session)):
    c = load_category(session, cid)
    bind_update(c, parse_body(CategoryUpdate, raw))
    flush_or_400(session)
    return CategoryOut.model_validate(load_category(session, cid))


@router.delete("/{cid}", response_model=Message)
def delete_category(cid: int, session: Session = Depends(get_session)):
    c = load_category(session, cid)
    # Owned products are kept; the ORM nulls their category_id
    session.delete(c)
    session.flush()
    logger.info("deleted category id=%s", cid)
    return Message(message="Category deleted")
