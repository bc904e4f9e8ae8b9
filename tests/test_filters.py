import pytest
from sqlalchemy import select

from storefront.filters import (
    apply_filters,
    filter_by_price,
    filter_by_product_count,
    parse_bounds,
    search_by_name,
)
from storefront.models import Category, Product


@pytest.mark.parametrize(
    "lo, hi, cast, expected",
    [
        ("1", "5", int, (1, 5)),
        (" 2.5", "10 ", float, (2.5, 10.0)),
        ("", "5", int, None),
        (None, "5", int, None),
        ("1", None, float, None),
        ("one", "5", int, None),
        ("1.5", "5", int, None),
        ("inf", "5", float, None),
    ],
)
def test_parse_bounds(lo, hi, cast, expected):
    assert parse_bounds(lo, hi, cast) == expected


@pytest.fixture
def catalog(session):
    books = Category(name="Books")
    tools = Category(name="Tools")
    empty = Category(name="Empty shelf")
    session.add_all([
        books, tools, empty,
        Product(name="Novel", price=9.99, category=books),
        Product(name="Poetry book", price=4, category=books),
        Product(name="Hammer", price=15, category=tools),
    ])
    session.commit()
    return session


def names(session, stmt):
    return sorted(r.name for r in session.execute(stmt).scalars())


def test_price_filter_is_inclusive(catalog):
    stmt = apply_filters(select(Product), [filter_by_price(4, 9.99)])
    assert names(catalog, stmt) == ["Novel", "Poetry book"]


def test_product_count_filter(catalog):
    stmt = apply_filters(select(Category), [filter_by_product_count(1, 2)])
    assert names(catalog, stmt) == ["Books", "Tools"]
    stmt = apply_filters(select(Category), [filter_by_product_count(0, 0)])
    assert names(catalog, stmt) == ["Empty shelf"]


def test_filters_compose_in_any_order(catalog):
    a = [search_by_name(Product, "o"), filter_by_price(5, 20)]
    first = names(catalog, apply_filters(select(Product), a))
    second = names(catalog, apply_filters(select(Product), reversed(a)))
    assert first == second == ["Novel"]


def test_no_filters_returns_everything(catalog):
    assert len(names(catalog, apply_filters(select(Product), []))) == 3
