"""Concurrent order placement against a real PostgreSQL server.

SQLite ignores SELECT ... FOR UPDATE, so the row-lock path is only
exercised here. Set TEST_POSTGRES_URL to a disposable database to run.
"""
import os
import threading
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from errors import InsufficientStockError
from models import Base, Order, Product
from schemas import CreateOrderRequest, OrderLineRequest
from services.order_service import OrderService
from services.product_service import ProductService

POSTGRES_URL = os.getenv("TEST_POSTGRES_URL")

pytestmark = [
    pytest.mark.postgres,
    pytest.mark.skipif(not POSTGRES_URL, reason="TEST_POSTGRES_URL not set"),
]


@pytest.fixture
def pg_sessions():
    engine = create_engine(POSTGRES_URL, pool_size=5)
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(bind=engine, autoflush=False)
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


def place_concurrently(make_session, lines_per_buyer, buyers):
    order_service = OrderService(ProductService())
    barrier = threading.Barrier(buyers)
    outcomes = []
    lock = threading.Lock()

    def buy(index):
        session = make_session()
        try:
            request = CreateOrderRequest(
                items=[OrderLineRequest(product_id=pid, quantity=qty) for pid, qty in lines_per_buyer(index)],
                shipping_address="1 Concurrency Way"
            )
            barrier.wait()
            try:
                order_service.place_order(session, f"buyer-{index}", request)
                result = "placed"
            except InsufficientStockError:
                result = "rejected"
            with lock:
                outcomes.append(result)
        finally:
            session.close()

    threads = [threading.Thread(target=buy, args=(i,)) for i in range(buyers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    return outcomes


def test_last_unit_is_sold_once(pg_sessions):
    with pg_sessions() as session:
        product = Product(name="Last One", price=Decimal("10.00"), category="Toys", stock_quantity=1)
        session.add(product)
        session.commit()
        product_id = product.id

    outcomes = place_concurrently(pg_sessions, lambda index: [(product_id, 1)], buyers=8)

    assert sorted(outcomes) == ["placed"] + ["rejected"] * 7
    with pg_sessions() as session:
        assert session.get(Product, product_id).stock_quantity == 0
        assert session.query(Order).count() == 1


def test_opposite_line_order_does_not_deadlock(pg_sessions):
    with pg_sessions() as session:
        first = Product(name="Left", price=Decimal("1.00"), category="Toys", stock_quantity=100)
        second = Product(name="Right", price=Decimal("1.00"), category="Toys", stock_quantity=100)
        session.add_all([first, second])
        session.commit()
        ids = [first.id, second.id]

    def lines(index):
        ordered = ids if index % 2 == 0 else list(reversed(ids))
        return [(pid, 1) for pid in ordered]

    outcomes = place_concurrently(pg_sessions, lines, buyers=10)

    assert outcomes == ["placed"] * 10
    with pg_sessions() as session:
        assert [session.get(Product, pid).stock_quantity for pid in ids] == [90, 90]
