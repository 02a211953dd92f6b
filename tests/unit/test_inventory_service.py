"""
Unit tests for the inventory ledger.
"""

import pytest
from datetime import datetime, timezone

from sqlalchemy import text

from conftest import stock_of
from erp.exceptions import (
    ValidationError, NotFoundError, InsufficientStockError, NegativeStockError
)
from erp.models import Product
from erp.services import inventory_service


class TestReserve:
    """Tests for stock reservation."""

    def test_reserve_decrements_stock(self, session, org1, product):
        remaining = inventory_service.reserve(session, product.id, org1.id, 3)
        session.commit()

        assert remaining == 7
        assert stock_of(session, product.id) == 7

    def test_reserve_entire_stock(self, session, org1, product):
        assert inventory_service.reserve(session, product.id, org1.id, 10) == 0

    def test_insufficient_stock_changes_nothing(self, session, org1, product):
        with pytest.raises(InsufficientStockError) as exc:
            inventory_service.reserve(session, product.id, org1.id, 11)

        assert 'Insufficient stock' in exc.value.message
        assert exc.value.requested == 11
        assert exc.value.available == 10
        assert exc.value.status_code == 400
        assert stock_of(session, product.id) == 10

    def test_refreshes_loaded_product(self, session, org1, product):
        loaded = session.get(Product, product.id)
        assert loaded.stock_quantity == 10

        inventory_service.reserve(session, product.id, org1.id, 4)
        assert loaded.stock_quantity == 6

    @pytest.mark.parametrize('quantity', [0, -2, 1.5, True])
    def test_rejects_invalid_quantity(self, session, org1, product, quantity):
        with pytest.raises(ValidationError):
            inventory_service.reserve(session, product.id, org1.id, quantity)

    def test_product_of_other_org_is_not_found(self, session, org2, product):
        with pytest.raises(NotFoundError):
            inventory_service.reserve(session, product.id, org2.id, 1)
        assert stock_of(session, product.id) == 10

    def test_deleted_product_cannot_be_reserved(self, session, org1, product):
        session.get(Product, product.id).deleted_at = datetime.now(timezone.utc)
        session.commit()

        with pytest.raises(NotFoundError):
            inventory_service.reserve(session, product.id, org1.id, 1)


class TestRelease:
    """Tests for returning stock."""

    def test_release_increments_stock(self, session, org1, product):
        assert inventory_service.release(session, product.id, org1.id, 5) == 15

    def test_release_works_on_deleted_product(self, session, org1, product):
        session.get(Product, product.id).deleted_at = datetime.now(timezone.utc)
        session.commit()

        assert inventory_service.release(session, product.id, org1.id, 2) == 12

    def test_release_other_org_is_not_found(self, session, org2, product):
        with pytest.raises(NotFoundError):
            inventory_service.release(session, product.id, org2.id, 1)


class TestAdjust:
    """Tests for manual corrections."""

    def test_adjust_up_and_down(self, session, org1, product):
        assert inventory_service.adjust(session, product.id, org1.id, 5) == 15
        assert inventory_service.adjust(session, product.id, org1.id, -15) == 0

    def test_adjust_below_zero_is_refused(self, session, org1, product):
        with pytest.raises(NegativeStockError):
            inventory_service.adjust(session, product.id, org1.id, -11)
        session.rollback()
        assert stock_of(session, product.id) == 10

    def test_adjust_zero_is_invalid(self, session, org1, product):
        with pytest.raises(ValidationError):
            inventory_service.adjust(session, product.id, org1.id, 0)


class TestSetLevel:
    """Tests for setting an absolute stock level."""

    def test_sets_target(self, session, org1, product):
        assert inventory_service.set_level(session, product.id, org1.id, 42) == 42
        assert stock_of(session, product.id) == 42

    def test_delta_comes_from_the_locked_row(self, session, org1, product):
        assert product.stock_quantity == 10
        # Committed by another transaction; the loaded object still says 10
        session.execute(text('UPDATE product SET stock_quantity = 7 WHERE id = :id'), {'id': product.id})
        session.commit()

        assert inventory_service.set_level(session, product.id, org1.id, 50) == 50
        assert stock_of(session, product.id) == 50

    @pytest.mark.parametrize('target', [-1, 1.5, True, '5'])
    def test_rejects_invalid_target(self, session, org1, product, target):
        with pytest.raises(ValidationError):
            inventory_service.set_level(session, product.id, org1.id, target)

    def test_deleted_product_is_not_found(self, session, org1, product):
        product.deleted_at = datetime.now(timezone.utc)
        session.commit()
        with pytest.raises(NotFoundError):
            inventory_service.set_level(session, product.id, org1.id, 5)


class TestStockNeverNegative:
    """Stock stays >= 0 whatever sequence of operations is applied."""

    def test_mixed_sequence(self, session, org1, product):
        operations = [
            ('reserve', 4), ('reserve', 7), ('release', 2), ('adjust', -9),
            ('reserve', 8), ('adjust', 3), ('reserve', 1), ('release', 1),
            ('adjust', -20), ('reserve', 3), ('reserve', 1),
        ]
        expected = 10
        for operation, amount in operations:
            try:
                if operation == 'reserve':
                    inventory_service.reserve(session, product.id, org1.id, amount)
                    expected -= amount
                elif operation == 'release':
                    inventory_service.release(session, product.id, org1.id, amount)
                    expected += amount
                else:
                    inventory_service.adjust(session, product.id, org1.id, amount)
                    expected += amount
            except (InsufficientStockError, NegativeStockError):
                pass
            session.commit()

            current = stock_of(session, product.id)
            assert current >= 0
            assert current == expected


class TestLowStock:
    def test_is_low_stock_uses_threshold(self, session, org1, product):
        loaded = session.get(Product, product.id)
        assert inventory_service.is_low_stock(loaded) is True

        inventory_service.adjust(session, product.id, org1.id, 1)
        assert inventory_service.is_low_stock(loaded) is False
