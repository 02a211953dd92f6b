"""
Concurrent order creation.

Row locks only mean something on a real server, so the threaded order test
runs only when TEST_DATABASE_URL points at PostgreSQL. Racing reservations
run everywhere against a file-backed SQLite database, which serializes
writers.
"""

import threading
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import Session

from conftest import stock_of, count_orders
from erp import database
from erp.database import Base
from erp.exceptions import InsufficientStockError
from erp.models import Organization, Product
from erp.services import inventory_service, order_service

THREADS = 8


def _is_postgres(app):
    return app.config['SQLALCHEMY_DATABASE_URI'].startswith('postgresql')


def _payload(customer, product, quantity=1):
    return {'customer_id': customer.id, 'items': [{'product_id': product.id, 'quantity': quantity}]}


class TestOrderNumberUniqueness:

    def test_sequential_creations_get_distinct_numbers(self, session, org1, user1, customer1, product):
        numbers = [
            order_service.create_order(session, org1.id, user1.id, _payload(customer1, product)).order_number
            for _ in range(5)
        ]

        assert len(set(numbers)) == 5
        assert [n[-6:] for n in numbers] == ['000001', '000002', '000003', '000004', '000005']

    def test_parallel_creations(self, app, session, org1, user1, customer1, product):
        if not _is_postgres(app):
            pytest.skip('row locking needs PostgreSQL (set TEST_DATABASE_URL)')

        numbers = []
        failures = []
        lock = threading.Lock()
        start = threading.Barrier(THREADS)

        def worker():
            thread_session = database.get_session()
            try:
                start.wait()
                order = order_service.create_order(
                    thread_session, org1.id, user1.id, _payload(customer1, product, quantity=2)
                )
                with lock:
                    numbers.append(order.order_number)
            except InsufficientStockError as e:
                with lock:
                    failures.append(e)
            finally:
                thread_session.remove()

        threads = [threading.Thread(target=worker) for _ in range(THREADS)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        # 10 units, 2 per order: exactly five orders fit
        assert len(numbers) == 5
        assert len(failures) == THREADS - 5
        assert len(set(numbers)) == len(numbers)
        assert stock_of(session, product.id) == 0
        assert count_orders(session, org1.id) == 5


@pytest.fixture
def file_engine(tmp_path):
    """File-backed SQLite whose writers queue on the database lock."""
    engine = create_engine(f"sqlite:///{tmp_path / 'ledger.db'}", connect_args={'timeout': 30})

    @event.listens_for(engine, 'connect')
    def _autocommit_driver(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, 'begin')
    def _begin_immediate(connection):
        connection.exec_driver_sql('BEGIN IMMEDIATE')

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


def _seed_product(engine, stock):
    with Session(engine) as seed:
        organization = Organization(slug='race', name='Race', active=True)
        seed.add(organization)
        seed.flush()
        product = Product(org_id=organization.id, name='Last Widget', sku='LAST-001',
                          base_price=Decimal('10'), price=Decimal('10'), tax_rate=Decimal('0'),
                          stock_quantity=stock, is_active=True)
        seed.add(product)
        seed.commit()
        return organization.id, product.id


class TestLastUnits:

    @pytest.mark.parametrize('stock', [1, 3])
    def test_racing_reservations(self, file_engine, stock):
        org_id, product_id = _seed_product(file_engine, stock)
        reserved = []
        refused = []
        lock = threading.Lock()
        start = threading.Barrier(THREADS)

        def worker():
            with Session(file_engine) as thread_session:
                start.wait()
                try:
                    inventory_service.reserve(thread_session, product_id, org_id, 1)
                    thread_session.commit()
                    with lock:
                        reserved.append(1)
                except InsufficientStockError as e:
                    thread_session.rollback()
                    with lock:
                        refused.append(e)

        threads = [threading.Thread(target=worker) for _ in range(THREADS)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(reserved) == stock
        assert len(refused) == THREADS - stock
        assert all(e.available == 0 for e in refused)
        with Session(file_engine) as check:
            assert check.get(Product, product_id).stock_quantity == 0

    def test_check_ignores_stale_loaded_stock(self, session, org1, product):
        product_id = product.id
        assert product.stock_quantity == 10
        session.execute(text('UPDATE product SET stock_quantity = 0 WHERE id = :id'), {'id': product_id})
        session.commit()

        with pytest.raises(InsufficientStockError) as exc:
            inventory_service.reserve(session, product_id, org1.id, 1)
        assert exc.value.available == 0
        session.rollback()
        assert stock_of(session, product_id) == 0
