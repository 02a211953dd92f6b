"""
Unit tests for the unit-of-work helper.
"""

import pytest

from erp.database import transaction
from erp.exceptions import ConflictError, Fault, NotFoundError
from erp.models import Organization


def _org_count(session, slug):
    return session.query(Organization).filter_by(slug=slug).count()


class TestTransaction:
    """Commit on success, roll back and translate on failure."""

    def test_commits_block(self, session):
        with transaction(session, 'creating organization'):
            session.add(Organization(slug='kept', name='Kept'))

        session.rollback()
        assert _org_count(session, 'kept') == 1

    def test_integrity_error_becomes_conflict(self, session, org1):
        with pytest.raises(ConflictError) as exc:
            with transaction(session, 'creating organization'):
                session.add(Organization(slug='fresh', name='Fresh'))
                session.flush()
                session.add(Organization(slug=org1.slug, name='Duplicate'))
                session.flush()

        assert exc.value.status_code == 409
        assert exc.value.to_dict()['message'] == 'Conflicting data while creating organization'
        assert _org_count(session, 'fresh') == 0

    def test_unexpected_error_becomes_fault(self, session):
        with pytest.raises(Fault) as exc:
            with transaction(session, 'creating organization'):
                session.add(Organization(slug='doomed', name='Doomed'))
                session.flush()
                raise RuntimeError('disk full')

        assert exc.value.status_code == 500
        assert isinstance(exc.value.__cause__, RuntimeError)
        assert _org_count(session, 'doomed') == 0

    def test_application_errors_pass_through(self, session):
        error = NotFoundError('Order not found')

        with pytest.raises(NotFoundError) as exc:
            with transaction(session, 'loading order'):
                session.add(Organization(slug='ghost', name='Ghost'))
                session.flush()
                raise error

        assert exc.value is error
        assert _org_count(session, 'ghost') == 0
