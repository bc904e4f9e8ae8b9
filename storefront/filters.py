"""
Narrowing predicates for list queries.

Each filter is a plain SQL expression built from its bounds; nothing here
touches the database. Handlers collect the ones that apply into a list and
hand it to ``apply_filters``, which ANDs them onto a ``Select``. Malformed
bounds are ignored rather than rejected: ``parse_bounds`` returns ``None``
and the handler simply does not add that filter.
"""
import math
from typing import Callable, Iterable, Optional, Tuple, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.sql.elements import ColumnElement

from .models import Category, Product

T = TypeVar("T", int, float)


def parse_bounds(min_raw: Optional[str], max_raw: Optional[str], cast: Callable[[str], T]) -> Optional[Tuple[T, T]]:
    """
    Parse a (min, max) pair from query-string values.
    Returns None when either side is missing or does not parse.
    """
    if not min_raw or not max_raw:
        return None
    try:
        lo, hi = cast(min_raw.strip()), cast(max_raw.strip())
    except (TypeError, ValueError):
        return None
    if isinstance(lo, float) and not (math.isfinite(lo) and math.isfinite(hi)):
        return None
    return lo, hi


def search_by_name(model, term: str) -> ColumnElement[bool]:
    """Case-insensitive substring match on ``model.name``."""
    return model.name.icontains(term, autoescape=True)


def filter_by_price(lo: float, hi: float) -> ColumnElement[bool]:
    return Product.price.between(lo, hi)


def product_count():
    """Correlated COUNT of products owned by the enclosing category row."""
    return (
        select(func.count(Product.id))
        .where(Product.category_id == Category.id)
        .correlate(Category)
        .scalar_subquery()
    )


def filter_by_product_count(lo: int, hi: int) -> ColumnElement[bool]:
    return product_count().between(lo, hi)


def apply_filters(stmt: Select, filters: Iterable[ColumnElement[bool]]) -> Select:
    for predicate in filters:
        stmt = stmt.where(predicate)
    return stmt
