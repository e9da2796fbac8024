"""Unit tests for quote and invoice PDF rendering."""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import pytest
from unittest.mock import MagicMock, patch

from conftest import make_invoice, make_quote
from models import PropertyManager
from pdf_service import (
    _export_path,
    cover_crop,
    fetch_image,
    generate_and_store_invoice_pdf,
    generate_and_store_quote_pdf,
    normalize_color,
    render_quote_preview,
)

COMPANY = {'name': 'ACME', 'tagline': 'Luxury', 'phone': '+1 555', 'email': 'hi@acme.test',
           'website': 'acme.test', 'logo_url': ''}


@pytest.fixture
def manager_id(session):
    m = PropertyManager(email='m@example.com', name='M')
    session.add(m)
    session.flush()
    return m.id


class TestNormalizeColor:

    @pytest.mark.parametrize('value,expected', [
        ('#abc', '#aabbcc'),
        ('#1A2332', '#1a2332'),
        ('rgb(255, 0, 0)', '#ff0000'),
        ('rgb(100%, 0%, 0%)', '#ff0000'),
        ('rgba(0, 0, 0, 0.6)', '#666666'),
        ('#00000080', '#7f7f7f'),
        ('white', '#ffffff'),
    ])
    def test_valid(self, value, expected):
        assert normalize_color(value) == expected

    @pytest.mark.parametrize('value', ['', None, 'oklch(0.5 0.2 120)', '#12', 'rgb(1,2)'])
    def test_fallback(self, value):
        assert normalize_color(value, fallback='#123456') == '#123456'


class TestCoverCrop:

    def test_wide_image_fills_height(self):
        w, h, dx, dy = cover_crop(400, 100, 100, 100)
        assert h == 100 and w == 400
        assert dx == -150 and dy == 0

    def test_tall_image_fills_width(self):
        w, h, dx, dy = cover_crop(100, 400, 200, 100)
        assert w == 200 and h == 800
        assert dx == 0 and dy == -350

    def test_degenerate(self):
        assert cover_crop(0, 0, 50, 40) == (50.0, 40.0, 0.0, 0.0)


class TestFetchImage:

    def test_empty_url(self):
        assert fetch_image('') is None

    @patch('pdf_service.requests.get', side_effect=RuntimeError('offline'))
    def test_failure_returns_none(self, mock_get):
        assert fetch_image('https://img/1.jpg') is None


class TestExportPath:

    def test_year_from_number(self, tmp_path):
        from datetime import datetime
        path = _export_path(str(tmp_path), 'quotes', 'QT-2025-000009', datetime(2026, 1, 1))
        assert path.endswith(os.path.join('quotes', '2025', 'QT-2025-000009.pdf'))
        assert os.path.isdir(os.path.dirname(path))


class TestGenerateAndStore:

    @pytest.mark.parametrize('icon', ['plane', 'yacht', 'car'])
    def test_quote_layouts(self, session, manager_id, tmp_path, icon):
        q = make_quote(session, manager_id, items=[
            ('Private Jet', 'Light jet ' * 40, 18000.0),
            ('Chef', 'Dinner', 1200.0),
        ], tax_rate=7)
        q.service_items[0].images = ['https://img/1.jpg']
        q.notes = 'Line one\nLine two'
        q.pdf_customization = {
            'header_icon': icon,
            'service_overrides': {str(q.service_items[0].id): {'details': [
                {'label': 'Departure Code', 'value': 'OPF'}, {'label': 'Arrival Code', 'value': 'NAS'},
            ]}},
        }
        session.commit()

        loader = MagicMock(return_value=None)
        path = generate_and_store_quote_pdf(session, q.id, exports_dir=str(tmp_path), company=COMPANY,
                                            image_loader=loader)

        assert os.path.exists(path)
        with open(path, 'rb') as f:
            assert f.read(5) == b'%PDF-'
        assert q.pdf_path == path and q.pdf_generated_at is not None
        loader.assert_any_call('https://img/1.jpg')

    def test_preview_leaves_stored_pdf_alone(self, session, manager_id, tmp_path):
        q = make_quote(session, manager_id)
        session.commit()
        path = generate_and_store_quote_pdf(session, q.id, exports_dir=str(tmp_path), company=COMPANY,
                                            image_loader=lambda u: None)
        generated_at = q.pdf_generated_at
        with open(path, 'rb') as f:
            stored = f.read()

        data = render_quote_preview(session, q.id, {'header_icon': 'car', 'header_title': 'Unsaved preview'},
                                    company=COMPANY, image_loader=lambda u: None)

        assert data.startswith(b'%PDF')
        session.refresh(q)
        assert q.pdf_path == path
        assert q.pdf_generated_at == generated_at
        assert q.pdf_customization is None
        with open(path, 'rb') as f:
            assert f.read() == stored

    def test_preview_missing_quote(self, session):
        with pytest.raises(ValueError, match='Quote not found'):
            render_quote_preview(session, 404, {}, company=COMPANY)

    def test_invoice_with_many_lines(self, session, manager_id, tmp_path):
        items = [(f'Service day {i}', 1, 250.0) for i in range(60)]
        inv = make_invoice(session, manager_id, status='paid', items=items, tax_rate=6.5)
        inv.notes = 'Wire transfer details on request.'
        session.commit()

        path = generate_and_store_invoice_pdf(session, inv.id, exports_dir=str(tmp_path), company=COMPANY)

        assert os.path.getsize(path) > 0
        assert inv.pdf_path == path
        assert os.path.join('invoices', '2026') in path

    def test_missing_ids(self, session, tmp_path):
        with pytest.raises(ValueError, match='Quote not found'):
            generate_and_store_quote_pdf(session, 404, exports_dir=str(tmp_path), company=COMPANY)
        with pytest.raises(ValueError, match='Invoice not found'):
            generate_and_store_invoice_pdf(session, 404, exports_dir=str(tmp_path), company=COMPANY)
