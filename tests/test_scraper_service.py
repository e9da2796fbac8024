"""Unit tests for the listing scraper. HTTP is mocked."""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import pytest
import requests
from unittest.mock import MagicMock, patch

from models import ListingAgent, Property, PropertyManager, PropertyManagerAssignment
from scraper_service import (
    BUILDING_URL_MESSAGE,
    ScrapeError,
    import_listing,
    is_building_url,
    parse_listing,
    parse_price,
    scrape_listing,
)

URL = 'https://www.zillow.com/homedetails/1-Ocean-Dr-Miami-FL/12345_zpid/'


def _response(status=200, payload=None):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = 200 <= status < 300
    resp.json.return_value = payload or {}
    return resp


class TestBuildingUrl:

    def test_apartments_path(self):
        assert is_building_url('https://www.zillow.com/apartments/miami-fl/the-tower/5XkL/')

    def test_building_path(self):
        assert is_building_url('https://www.zillow.com/b/the-tower-miami-fl/5XkL/')

    def test_zillow_without_zpid(self):
        assert is_building_url('https://www.zillow.com/miami-fl/rentals/')

    def test_individual_listing(self):
        assert not is_building_url(URL)


class TestParsePrice:

    def test_number(self):
        assert parse_price(4500) == 4500.0

    def test_string(self):
        assert parse_price('$1,200/mo') == 1200.0

    def test_object(self):
        assert parse_price({'value': 950000}) == 950000.0

    def test_zero_and_garbage(self):
        assert parse_price(0) is None
        assert parse_price('call for price') is None
        assert parse_price(True) is None


class TestParseListing:

    def test_structured_address_and_sale_price(self):
        data = {
            'address': {'street': '1 Ocean Dr', 'city': 'Miami', 'state': 'FL', 'zipcode': '33139'},
            'bedrooms': 3, 'bathrooms': 2.5, 'livingArea': 1800,
            'price': 1_250_000, 'homeStatus': 'FOR_SALE',
            'photos': [{'url': 'https://img/1.jpg'}, 'https://img/2.jpg'],
            'agentName': 'Pat Lee', 'agentPhoneNumber': '305-555-0101',
            'agentEmails': ['pat@broker.com'], 'brokerName': 'Ocean Realty',
        }
        listing = parse_listing(data, URL)
        assert listing.address == '1 Ocean Dr, Miami, FL 33139'
        assert listing.bedrooms == '3'
        assert listing.bathrooms == '2.5'
        assert listing.area == '1800'
        assert listing.price == 1_250_000
        assert listing.is_rental is False
        assert listing.images == ['https://img/1.jpg', 'https://img/2.jpg']
        assert listing.agent_email == 'pat@broker.com'

    def test_rental_falls_back_to_rent_zestimate(self):
        data = {'addressRaw': '9 Bay Rd', 'homeStatus': 'FOR_RENT', 'rentZestimate': 8000}
        listing = parse_listing(data, URL)
        assert listing.is_rental is True
        assert listing.price == 8000

    def test_nested_price_history(self):
        data = {'address': '5 Palm Ave', 'priceHistory': [{'price': 700000}]}
        assert parse_listing(data, URL).price == 700000

    def test_units_become_ranges(self):
        data = {
            'address': '100 Tower Blvd',
            'listings': [
                {'bedrooms': 1, 'bathrooms': 1, 'livingArea': 700},
                {'beds': '3', 'baths': '2.5', 'area': '1400'},
            ],
        }
        listing = parse_listing(data, URL)
        assert listing.bedrooms == '1-3'
        assert listing.bathrooms == '1-2.5'
        assert listing.area == '700-1400'

    def test_missing_address(self):
        assert parse_listing({}, URL).address == 'Address not available'

    def test_lead_image_first(self):
        data = {'image': 'https://img/lead.jpg', 'photos': ['https://img/1.jpg']}
        assert parse_listing(data, URL).images[0] == 'https://img/lead.jpg'


class TestScrapeListing:

    def test_requires_url(self):
        with pytest.raises(ScrapeError, match='URL is required'):
            scrape_listing('  ', api_key='k')

    def test_building_url_rejected_before_request(self):
        with patch('scraper_service.requests.post') as mock_post:
            with pytest.raises(ScrapeError) as exc:
                scrape_listing('https://www.zillow.com/apartments/x/', api_key='k')
        assert str(exc.value) == BUILDING_URL_MESSAGE
        mock_post.assert_not_called()

    def test_missing_key(self):
        with pytest.raises(ScrapeError, match='not configured'):
            scrape_listing(URL, api_key='')

    @patch('scraper_service.requests.post')
    def test_unwraps_property(self, mock_post):
        mock_post.return_value = _response(payload={'property': {'address': 'x'}})
        assert scrape_listing(URL, api_key='k') == {'address': 'x'}
        _, kwargs = mock_post.call_args
        assert kwargs['headers']['x-api-key'] == 'k'
        assert kwargs['json'] == {'url': URL, 'scrape_description': True}

    @pytest.mark.parametrize('status,message', [
        (400, 'Invalid Zillow URL or property not found'),
        (401, 'API authentication failed'),
        (429, 'Rate limit exceeded. Please wait and try again.'),
        (500, 'Unknown error occurred'),
    ])
    @patch('scraper_service.requests.post')
    def test_status_messages(self, mock_post, status, message):
        mock_post.return_value = _response(status=status)
        with pytest.raises(ScrapeError) as exc:
            scrape_listing(URL, api_key='k')
        assert str(exc.value) == message

    @patch('scraper_service.requests.post', side_effect=requests.ConnectionError('boom'))
    def test_network_error(self, mock_post):
        with pytest.raises(ScrapeError, match='Unknown error occurred'):
            scrape_listing(URL, api_key='k')

    @patch('scraper_service.requests.post')
    def test_non_json_body(self, mock_post):
        resp = _response()
        resp.json.side_effect = ValueError('Expecting value: line 1 column 1 (char 0)')
        mock_post.return_value = resp
        with pytest.raises(ScrapeError, match='Unknown error occurred'):
            scrape_listing(URL, api_key='k')

    @patch('scraper_service.requests.post')
    def test_non_object_body(self, mock_post):
        resp = _response()
        resp.json.return_value = ['unexpected']
        mock_post.return_value = resp
        with pytest.raises(ScrapeError, match='Unknown error occurred'):
            scrape_listing(URL, api_key='k')


class TestImportListing:

    PAYLOAD = {
        'property': {
            'address': {'street': '1 Ocean Dr', 'city': 'Miami', 'state': 'FL', 'zipcode': '33139'},
            'bedrooms': 3, 'bathrooms': 2, 'livingArea': 1800,
            'price': 9500, 'homeStatus': 'FOR_RENT',
            'photos': ['https://img/1.jpg'],
            'agentName': 'Pat Lee', 'agentPhoneNumber': '305-555-0101',
        }
    }

    @pytest.fixture
    def manager_id(self, session):
        m = PropertyManager(email='m@example.com', name='M')
        session.add(m)
        session.flush()
        return m.id

    @patch('scraper_service.requests.post')
    def test_full_pipeline(self, mock_post, session, manager_id):
        mock_post.return_value = _response(payload=self.PAYLOAD)
        rehost = MagicMock(return_value=['https://res.cloudinary.com/x/1.jpg'])
        describe = MagicMock()

        prop = import_listing(session, URL, manager_id, client_id=None, api_key='k',
                              rehost=rehost, describe=describe)

        assert prop.id is not None
        assert prop.images == ['https://res.cloudinary.com/x/1.jpg']
        assert prop.show_monthly_rent is True and prop.custom_monthly_rent == 9500
        assert prop.listing_agent_id is not None
        assert session.query(ListingAgent).one().phone == '305-555-0101'
        assert session.query(PropertyManagerAssignment).filter_by(property_id=prop.id, manager_id=manager_id).count() == 1
        describe.assert_called_once_with(session, prop)

    @patch('scraper_service.requests.post')
    def test_hook_failures_do_not_fail_import(self, mock_post, session, manager_id):
        mock_post.return_value = _response(payload=self.PAYLOAD)
        prop = import_listing(session, URL, manager_id, api_key='k',
                              rehost=MagicMock(side_effect=RuntimeError('cdn down')),
                              describe=MagicMock(side_effect=RuntimeError('ai down')))
        assert prop.images == ['https://img/1.jpg']

    @patch('scraper_service.requests.post')
    def test_duplicate_url(self, mock_post, session, manager_id):
        mock_post.return_value = _response(payload=self.PAYLOAD)
        import_listing(session, URL, manager_id, api_key='k')
        with pytest.raises(ScrapeError, match='already been imported'):
            import_listing(session, URL, manager_id, api_key='k')
        assert session.query(Property).count() == 1
