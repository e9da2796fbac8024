"""Unit tests for client pricing visibility."""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from types import SimpleNamespace

from pricing import (
    admin_primary_price_label,
    all_pricing_enabled,
    client_property_view,
    default_client_pricing,
    format_currency,
    pricing_from_form,
    property_price_enabled,
)


def _prop(**kw):
    base = dict(
        id=1, address='1 Ocean Dr', bedrooms='3', bathrooms='2', area='1800', description=None,
        show_monthly_rent=False, custom_monthly_rent=None,
        show_nightly_rate=False, custom_nightly_rate=None,
        show_purchase_price=False, custom_purchase_price=None,
        show_bedrooms=True, show_bathrooms=True, show_area=True, show_address=True, show_images=True,
        images=['https://img/1.jpg'],
    )
    base.update(kw)
    p = SimpleNamespace(**base)
    p.image_list = lambda: list(p.images or [])
    return p


def _assignment(monthly=True, nightly=True, purchase=True):
    return SimpleNamespace(
        show_monthly_rent_to_client=monthly,
        show_nightly_rate_to_client=nightly,
        show_purchase_price_to_client=purchase,
    )


class TestFormatCurrency:

    def test_whole_dollars(self):
        assert format_currency(12000) == '$12,000'

    def test_cents(self):
        assert format_currency(1234.5, cents=True) == '$1,234.50'

    def test_non_numeric_passthrough(self):
        assert format_currency('n/a') == '$n/a'


class TestPropertyPriceEnabled:

    def test_needs_flag_and_value(self):
        assert property_price_enabled(_prop(show_monthly_rent=True, custom_monthly_rent=5000), 'monthly_rent')

    def test_flag_without_value(self):
        assert not property_price_enabled(_prop(show_monthly_rent=True), 'monthly_rent')

    def test_value_without_flag(self):
        assert not property_price_enabled(_prop(custom_monthly_rent=5000), 'monthly_rent')

    def test_zero_value_is_not_a_price(self):
        assert not property_price_enabled(_prop(show_nightly_rate=True, custom_nightly_rate=0), 'nightly_rate')


class TestClientPropertyView:

    def test_property_and_client_both_required(self):
        p = _prop(show_monthly_rent=True, custom_monthly_rent=9000,
                  show_purchase_price=True, custom_purchase_price=1_500_000)
        view = client_property_view(p, _assignment(monthly=True, purchase=False))
        assert view['prices']['monthly_rent'] == 9000
        assert view['prices']['purchase_price'] is None

    def test_client_cannot_unhide_property_price(self):
        p = _prop(custom_nightly_rate=800)
        view = client_property_view(p, _assignment())
        assert view['prices']['nightly_rate'] is None

    def test_no_assignment_uses_property_flags(self):
        p = _prop(show_nightly_rate=True, custom_nightly_rate=800)
        view = client_property_view(p)
        assert view['prices']['nightly_rate'] == 800
        assert view['primary_price'] == '$800/night'

    def test_primary_price_prefers_purchase(self):
        p = _prop(show_monthly_rent=True, custom_monthly_rent=9000,
                  show_purchase_price=True, custom_purchase_price=1_500_000)
        assert client_property_view(p)['primary_price'] == '$1,500,000'

    def test_hidden_images(self):
        view = client_property_view(_prop(show_images=False))
        assert view['images'] == []

    def test_missing_fields_defaults(self):
        view = client_property_view(_prop(address=' ', bedrooms=None, bathrooms=None, area=None))
        assert view['address'] == 'Address not available'
        assert view['bedrooms'] == '0'


class TestPricingDefaults:

    def test_default_client_pricing_mirrors_property(self):
        p = _prop(show_monthly_rent=True, custom_monthly_rent=9000)
        assert default_client_pricing(p) == {
            'show_monthly_rent_to_client': True,
            'show_nightly_rate_to_client': False,
            'show_purchase_price_to_client': False,
        }

    def test_all_enabled(self):
        assert all(all_pricing_enabled().values())

    def test_from_form(self):
        form = {'show_monthly_rent_to_client': 'on', 'show_purchase_price_to_client': ''}
        out = pricing_from_form(form)
        assert out['show_monthly_rent_to_client'] is True
        assert out['show_purchase_price_to_client'] is False
        assert out['show_nightly_rate_to_client'] is False

    def test_admin_label_ignores_flags(self):
        assert admin_primary_price_label(_prop(custom_monthly_rent=7000)) == '$7,000/mo'
        assert admin_primary_price_label(_prop()) is None
