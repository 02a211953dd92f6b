"""
Unit tests for order number generation.
"""

import pytest
from datetime import datetime, timezone

from erp.exceptions import NotFoundError
from erp.models import OrderSequence
from erp.services import order_number_service
from erp.services.order_number_service import (
    format_order_number, next_order_number, peek_next_order_number
)


class TestFormat:
    def test_format(self):
        assert format_order_number(42, 2026, 7) == 'ORD-42-2026-000007'

    def test_custom_prefix(self):
        assert format_order_number(1, 2026, 123456, prefix='SO') == 'SO-1-2026-123456'


class TestNextOrderNumber:
    """Tests for sequence allocation."""

    def test_numbers_are_sequential(self, session, org1):
        numbers = [next_order_number(session, org1.id, year=2026) for _ in range(3)]
        session.commit()

        assert numbers == [
            f'ORD-{org1.id}-2026-000001',
            f'ORD-{org1.id}-2026-000002',
            f'ORD-{org1.id}-2026-000003',
        ]

    def test_defaults_to_current_year(self, session, org1):
        year = datetime.now(timezone.utc).year
        assert next_order_number(session, org1.id) == f'ORD-{org1.id}-{year}-000001'

    def test_year_follows_utc_clock(self, session, org1, monkeypatch):
        class NewYearsEve(datetime):
            @classmethod
            def now(cls, tz=None):
                if tz is None:
                    # Server clock still in the old year
                    return datetime(2029, 12, 31, 19, 30)
                return datetime(2030, 1, 1, 0, 30, tzinfo=timezone.utc).astimezone(tz)

        monkeypatch.setattr(order_number_service, 'datetime', NewYearsEve)

        assert next_order_number(session, org1.id) == f'ORD-{org1.id}-2030-000001'
        assert peek_next_order_number(session, org1.id) == f'ORD-{org1.id}-2030-000002'

    def test_organizations_have_independent_sequences(self, session, org1, org2):
        first = next_order_number(session, org1.id, year=2026)
        other = next_order_number(session, org2.id, year=2026)
        second = next_order_number(session, org1.id, year=2026)

        assert first.endswith('-000001')
        assert other == f'ORD-{org2.id}-2026-000001'
        assert second.endswith('-000002')

    def test_sequence_restarts_each_year(self, session, org1):
        next_order_number(session, org1.id, year=2025)
        next_order_number(session, org1.id, year=2025)

        assert next_order_number(session, org1.id, year=2026).endswith('2026-000001')

    def test_rollback_returns_the_number(self, session, org1):
        next_order_number(session, org1.id, year=2026)
        session.commit()
        next_order_number(session, org1.id, year=2026)
        session.rollback()

        assert next_order_number(session, org1.id, year=2026).endswith('-000002')

    def test_counter_row_is_persisted(self, session, org1):
        next_order_number(session, org1.id, year=2026)
        next_order_number(session, org1.id, year=2026)
        session.commit()

        sequence = session.get(OrderSequence, (org1.id, 2026))
        assert sequence.last_value == 2

    def test_unknown_organization(self, session, app):
        with pytest.raises(NotFoundError):
            next_order_number(session, 999999, year=2026)


class TestPeek:
    def test_peek_does_not_allocate(self, session, org1):
        assert peek_next_order_number(session, org1.id, year=2026).endswith('-000001')
        assert peek_next_order_number(session, org1.id, year=2026).endswith('-000001')

        next_order_number(session, org1.id, year=2026)
        session.commit()
        assert peek_next_order_number(session, org1.id, year=2026).endswith('-000002')
