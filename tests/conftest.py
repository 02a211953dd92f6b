import pytest
import uuid
from decimal import Decimal

from erp import create_app, database
from erp.database import get_session
from erp.models import (
    Organization, AppUser, OrgMember, MemberRole, Customer, Product, Order, OrderItem
)


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    return create_app('config.TestingConfig')


@pytest.fixture(scope='function', autouse=True)
def schema(app):
    """Fresh schema for every test."""
    database.create_schema()
    yield
    database.get_session().remove()
    database.drop_schema()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Thread-local database session used by the services."""
    session = get_session()
    yield session
    session.rollback()
    session.remove()


def _create_org(session, label):
    suffix = str(uuid.uuid4())[:8]
    organization = Organization(slug=f'{label}-{suffix}', name=f'{label} {suffix}', active=True)
    session.add(organization)
    session.commit()
    return organization


def _create_member(session, organization, label):
    suffix = str(uuid.uuid4())[:8]
    user = AppUser(email=f'{label}-{suffix}@test.com', full_name=label, active=True)
    session.add(user)
    session.flush()
    session.add(OrgMember(user_id=user.id, org_id=organization.id, role=MemberRole.OWNER.value, active=True))
    session.commit()
    return user


@pytest.fixture(scope='function')
def org1(session):
    return _create_org(session, 'org-one')


@pytest.fixture(scope='function')
def org2(session):
    """Second organization for isolation tests."""
    return _create_org(session, 'org-two')


@pytest.fixture(scope='function')
def user1(session, org1):
    return _create_member(session, org1, 'user-one')


@pytest.fixture(scope='function')
def user2(session, org2):
    return _create_member(session, org2, 'user-two')


@pytest.fixture(scope='function')
def customer1(session, org1):
    customer = Customer(org_id=org1.id, name='Acme Corp', email='buyer@acme.test', active=True)
    session.add(customer)
    session.commit()
    return customer


@pytest.fixture(scope='function')
def customer2(session, org2):
    customer = Customer(org_id=org2.id, name='Globex', email='buyer@globex.test', active=True)
    session.add(customer)
    session.commit()
    return customer


def make_product(session, org, name, sku, base_price, tax_rate, stock, **extra):
    base_price = Decimal(str(base_price))
    tax_rate = Decimal(str(tax_rate))
    product = Product(
        org_id=org.id,
        name=name,
        sku=sku,
        base_price=base_price,
        price=(base_price * (1 + tax_rate / 100)).quantize(Decimal('0.01')),
        tax_rate=tax_rate,
        stock_quantity=stock,
        is_active=True,
        **extra
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def product(session, org1):
    """Base 100, tax 18, stock 10."""
    return make_product(session, org1, 'Widget', 'WID-001', 100, 18, 10)


@pytest.fixture(scope='function')
def product_b(session, org1, product):
    """Created after ``product`` so its id is higher. Base 50, no tax, stock 5."""
    return make_product(session, org1, 'Gadget', 'GAD-001', 50, 0, 5)


@pytest.fixture(scope='function')
def product_org2(session, org2):
    return make_product(session, org2, 'Foreign Widget', 'WID-001', 80, 10, 20)


@pytest.fixture(scope='function')
def authenticated_client(client, user1, org1):
    """Client acting as user1 for org1."""
    with client.session_transaction() as sess:
        sess['user_id'] = user1.id
        sess['org_id'] = org1.id
    return client


@pytest.fixture(scope='function')
def org2_client(app, user2, org2):
    """Separate client acting as user2 for org2."""
    client = app.test_client()
    with client.session_transaction() as sess:
        sess['user_id'] = user2.id
        sess['org_id'] = org2.id
    return client


def stock_of(session, product_id):
    """Current stock read straight from the database."""
    return session.query(Product.stock_quantity).filter(Product.id == product_id).scalar()


def count_orders(session, org_id=None):
    query = session.query(Order)
    if org_id is not None:
        query = query.filter(Order.org_id == org_id)
    return query.count()


def count_order_items(session):
    return session.query(OrderItem).count()
