"""Unit tests for quote PDF customization."""

import os
import sys
from datetime import date

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from types import SimpleNamespace

from werkzeug.datastructures import MultiDict

from quote_customization import (
    DEFAULT_HEADER_TITLE,
    DEFAULT_TERMS,
    builder_initial_state,
    customization_from_form,
    header_title,
    layout_for,
    layout_items,
    normalize_customization,
    notes_text,
    resolve_service,
    terms_lines,
)


def _item(id_, name='Private Jet', desc='Light jet', price=18000.0, images=None):
    return SimpleNamespace(id=id_, service_name=name, description=desc, price=price, images=images or [])


def _quote(items, notes=None, customization=None):
    return SimpleNamespace(service_items=items, notes=notes, pdf_customization=customization,
                           expiration_date=date(2026, 1, 1))


class TestNormalize:

    def test_drops_unknown_and_empty(self):
        out = normalize_customization({'header_title': '  ', 'junk': 1, 'custom_notes': ' Hi '}, [])
        assert out == {'header_icon': 'plane', 'custom_notes': 'Hi'}

    def test_bad_icon_defaults_to_plane(self):
        assert normalize_customization({'header_icon': 'rocket'}, [])['header_icon'] == 'plane'

    def test_overrides_limited_to_quote_items(self):
        raw = {'service_overrides': {'1': {'display_name': 'Jet'}, '99': {'display_name': 'Nope'}}}
        out = normalize_customization(raw, [_item(1)])
        assert out['service_overrides'] == {'1': {'display_name': 'Jet'}}

    def test_images_capped_at_two(self):
        raw = {'service_overrides': {'1': {'display_images': ['a', 'b', 'c']}}}
        out = normalize_customization(raw, [_item(1)])
        assert out['service_overrides']['1']['display_images'] == ['a', 'b']

    def test_price_override_zero_kept_negative_dropped(self):
        raw = {'service_overrides': {'1': {'price_override': '0'}, '2': {'price_override': -3}}}
        out = normalize_customization(raw, [_item(1), _item(2)])
        assert out['service_overrides'] == {'1': {'price_override': 0.0}}

    def test_non_dict(self):
        assert normalize_customization('nope', []) == {}


class TestFromForm:

    def test_builder_form(self):
        form = MultiDict([
            ('header_title', 'Summer Escape'),
            ('header_icon', 'yacht'),
            ('route_departure_city', 'Miami'),
            ('svc-7-display_name', 'Azimut 68'),
            ('svc-7-price_override', '12000'),
            ('svc-7-display_images', 'https://a.jpg\n\nhttps://b.jpg\nhttps://c.jpg'),
            ('svc-7-services_list', 'Captain\nFuel'),
            ('svc-7-detail_label', 'Date'),
            ('svc-7-detail_value', 'Jul 4'),
            ('svc-7-detail_label', ''),
            ('svc-7-detail_value', ''),
        ])
        out = customization_from_form(form, [_item(7)])
        assert out['header_title'] == 'Summer Escape'
        assert out['header_icon'] == 'yacht'
        assert out['route'] == {'departure_city': 'Miami'}
        o = out['service_overrides']['7']
        assert o['display_name'] == 'Azimut 68'
        assert o['price_override'] == 12000.0
        assert o['display_images'] == ['https://a.jpg', 'https://b.jpg']
        assert o['services_list'] == ['Captain', 'Fuel']
        assert o['details'] == [{'label': 'Date', 'value': 'Jul 4'}]


class TestRendering:

    def test_layouts(self):
        assert layout_for({'header_icon': 'yacht'}) == 'yacht'
        assert layout_for({'header_icon': 'car'}) == 'car'
        assert layout_for({'header_icon': 'plane'}) == 'ticket'
        assert layout_for(None) == 'ticket'

    def test_ticket_reads_route_details(self):
        item = _item(1)
        cust = {'service_overrides': {'1': {'details': [
            {'label': 'Departure Code', 'value': 'OPF'},
            {'label': 'Arrival Code', 'value': 'NAS'},
            {'label': 'Passengers', 'value': '6'},
            {'label': 'Catering', 'value': 'Included'},
        ]}}}
        view = resolve_service(_quote([item]), item, cust)
        assert view.has_route_style
        assert view.departure_code == 'OPF' and view.passengers == '6'
        assert view.other_details == [{'label': 'Catering', 'value': 'Included'}]

    def test_yacht_defaults(self):
        item = _item(1, name='')
        view = resolve_service(_quote([item]), item, {'header_icon': 'yacht'})
        assert view.name == 'Yacht Charter'
        assert view.departure == 'MIAMI' and view.arrival == 'BAHAMAS'
        assert view.passengers == '15' and view.duration == '8h'

    def test_route_beats_defaults_override_beats_route(self):
        item = _item(1)
        cust = {'header_icon': 'car', 'route': {'departure_city': 'MIA', 'arrival_city': 'FLL'},
                'service_overrides': {'1': {'arrival_city': 'PBI'}}}
        view = resolve_service(_quote([item]), item, cust)
        assert view.departure == 'MIA'
        assert view.arrival == 'PBI'

    def test_price_override(self):
        item = _item(1, price=100.0)
        assert resolve_service(_quote([item]), item, {'service_overrides': {'1': {'price_override': 0.0}}}).price == 0.0
        assert resolve_service(_quote([item]), item, {}).price == 100.0

    def test_proposal_layout_caps_items(self):
        items = [_item(i) for i in range(7)]
        assert len(layout_items(_quote(items), {'header_icon': 'yacht'})) == 5
        assert len(layout_items(_quote(items), {})) == 7

    def test_text_fallbacks(self):
        q = _quote([], notes='Quote notes')
        assert notes_text(q, {}) == 'Quote notes'
        assert notes_text(q, {'custom_notes': 'Custom'}) == 'Custom'
        assert header_title({}) == DEFAULT_HEADER_TITLE
        assert terms_lines({}) == DEFAULT_TERMS
        assert terms_lines({'custom_terms': '• One\n\n- Two'}) == ['One', 'Two']

    def test_builder_initial_state(self):
        item = _item(3, images=['https://a.jpg', 'https://b.jpg', 'https://c.jpg'])
        q = _quote([item], notes='N', customization={'service_overrides': {'3': {'display_name': 'Custom'}}})
        state = builder_initial_state(q)
        svc = state['services'][0]
        assert svc['display_name'] == 'Custom'
        assert svc['display_description'] == 'Light jet'
        assert svc['display_images'] == ['https://a.jpg', 'https://b.jpg']
        assert state['custom_notes'] == 'N'
