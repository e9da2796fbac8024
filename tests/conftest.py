"""Shared fixtures: an app on a temporary sqlite file with seeded managers,
a client and a few properties."""

import os
import sys
from datetime import date, timedelta

import pytest
from werkzeug.security import generate_password_hash

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from config import Config  # noqa: E402
from models import (  # noqa: E402
    Base, Client, Invoice, InvoiceLineItem, Property, PropertyManager,
    Quote, QuoteServiceItem, make_engine, make_session_factory,
)

SUPER_EMAIL = 'root@example.com'
ADMIN_EMAIL = 'admin@example.com'
OTHER_EMAIL = 'other@example.com'
PASSWORD = 'secret123'


@pytest.fixture
def session(tmp_path):
    """Bare session on an empty database, for service-level tests."""
    engine = make_engine(f"sqlite:///{(tmp_path / 'unit.db').as_posix()}")
    Base.metadata.create_all(engine)
    SessionLocal = make_session_factory(engine)
    with SessionLocal() as s:
        yield s
    engine.dispose()


@pytest.fixture
def test_config(tmp_path):
    class TestConfig(Config):
        TESTING = True
        SECRET_KEY = 'test-secret'
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{(tmp_path / 'app.db').as_posix()}"
        SQLALCHEMY_ECHO = False
        EXPORTS_DIR = (tmp_path / 'exports').as_posix()
        SUPER_ADMIN_EMAILS = []
        INITIAL_ADMIN_EMAIL = SUPER_EMAIL
        INITIAL_ADMIN_PASSWORD = PASSWORD
        HASDATA_API_KEY = 'hasdata-test'
        CLOUDINARY_CLOUD_NAME = ''
        OPENAI_API_KEY = ''
        STRIPE_SECRET_KEY = 'sk_test_123'
        STRIPE_PUBLISHABLE_KEY = ''
        SMTP_HOST = ''
        COMPANY_LOGO_URL = ''

    return TestConfig


@pytest.fixture
def app(test_config):
    from app import create_app
    return create_app(test_config)


@pytest.fixture
def db(app):
    return app.extensions['db_session']


@pytest.fixture
def seed(db):
    """
    root (super admin, created by create_app), admin, other;
    client "Jane Doe" owned by admin with two assigned properties;
    one unassigned property scraped for the client.
    """
    from assignment_service import assign_property_to_client, assign_property_to_managers

    with db() as s:
        root = s.query(PropertyManager).filter_by(email=SUPER_EMAIL).one()
        admin = PropertyManager(email=ADMIN_EMAIL, name='Alice', last_name='Admin', role='admin',
                                phone='+1 555 0100', password_hash=generate_password_hash(PASSWORD))
        other = PropertyManager(email=OTHER_EMAIL, name='Oscar', role='admin',
                                password_hash=generate_password_hash(PASSWORD))
        s.add_all([admin, other])
        s.flush()

        client = Client(manager_id=admin.id, name='Jane Doe', email='jane@example.com', slug='jane-doe-abc123')
        s.add(client)
        s.flush()

        p1 = Property(address='1 Ocean Dr, Miami, FL', bedrooms='3', bathrooms='2', area='1800',
                      images=['https://img.example.com/1.jpg'],
                      show_monthly_rent=True, custom_monthly_rent=12000.0)
        p2 = Property(address='2 Bay Rd, Miami, FL', bedrooms='4', bathrooms='3', area='2400',
                      show_purchase_price=True, custom_purchase_price=2500000.0)
        p3 = Property(address='3 Palm Ave, Miami, FL', bedrooms='2', bathrooms='1', area='900',
                      scraped_for_client_id=client.id)
        s.add_all([p1, p2, p3])
        s.flush()
        for p in (p1, p2, p3):
            assign_property_to_managers(s, p.id, [admin.id])
        assign_property_to_client(s, client.id, p1.id)
        assign_property_to_client(s, client.id, p2.id)
        s.commit()

        return {
            'root_id': root.id,
            'admin_id': admin.id,
            'other_id': other.id,
            'client_id': client.id,
            'client_slug': client.slug,
            'property_ids': [p1.id, p2.id, p3.id],
        }


def login(client, email, password=PASSWORD):
    return client.post('/login', data={'email': email, 'password': password})


@pytest.fixture
def admin_client(app, seed):
    c = app.test_client()
    login(c, ADMIN_EMAIL)
    return c


@pytest.fixture
def super_client(app, seed):
    c = app.test_client()
    login(c, SUPER_EMAIL)
    return c


def make_quote(s, manager_id, number='QT-2026-000001', status='draft', days_valid=14, items=None, tax_rate=0.0):
    q = Quote(
        quote_number=number,
        manager_id=manager_id,
        client_name='Jane Doe',
        client_email='jane@example.com',
        expiration_date=date.today() + timedelta(days=days_valid),
        status=status,
        tax_rate=tax_rate,
    )
    for idx, (name, desc, price) in enumerate(items or [('Private Jet', 'Miami to Nassau', 18000.0)]):
        q.service_items.append(QuoteServiceItem(service_name=name, description=desc, price=price, position=idx))
    s.add(q)
    s.flush()
    return q


def make_invoice(s, manager_id, number='INV-2026-000001', status='draft', due_in=30, items=None, tax_rate=0.0):
    inv = Invoice(
        invoice_number=number,
        manager_id=manager_id,
        client_name='Jane Doe',
        client_email='jane@example.com',
        due_date=date.today() + timedelta(days=due_in),
        status=status,
        tax_rate=tax_rate,
    )
    for idx, (desc, qty, price) in enumerate(items or [('Villa rental', 2, 1500.0)]):
        inv.line_items.append(InvoiceLineItem(description=desc, quantity=qty, unit_price=price, position=idx))
    s.add(inv)
    s.flush()
    return inv
