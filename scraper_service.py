# scraper_service.py
"""
Listing import through the HasData Zillow property API.

scrape_listing() fetches the raw payload, parse_listing() flattens it into a
ScrapedListing, apply_listing() copies it onto a Property row and
import_listing() runs the whole pipeline used by the admin "scrape" forms.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime

import requests
from sqlalchemy import select

from assignment_service import assign_property_to_managers
from config import Config
from listing_agents import find_or_create_agent, link_property_to_agent
from models import Property

log = logging.getLogger(__name__)

HASDATA_URL = "https://api.hasdata.com/scrape/zillow/property"

BUILDING_URL_MESSAGE = (
    "This appears to be an apartment building page. The API only supports individual "
    "property URLs (ending in _zpid). Please switch to Manual mode or find a specific unit listing."
)

STATUS_MESSAGES = {
    400: "Invalid Zillow URL or property not found",
    401: "API authentication failed",
    403: "API authentication failed",
    429: "Rate limit exceeded. Please wait and try again.",
}

RENTAL_PRICE_FIELDS = ("price", "rentZestimate", "rent", "monthlyRent", "rentalPrice")
SALE_PRICE_FIELDS = ("price", "listPrice", "salePrice", "askingPrice", "zestimate")
GENERIC_PRICE_FIELDS = ("price", "listPrice", "currentPrice", "displayPrice")


class ScrapeError(ValueError):
    pass


@dataclass
class ScrapedListing:
    url: str
    address: str = "Address not available"
    bedrooms: str = ""
    bathrooms: str = ""
    area: str = ""
    description: str | None = None
    price: float | None = None
    is_rental: bool = False
    agent_name: str | None = None
    agent_phone: str | None = None
    agent_email: str | None = None
    broker_name: str | None = None
    images: list[str] = field(default_factory=list)


def is_building_url(url: str) -> bool:
    u = (url or "").lower()
    return "/apartments/" in u or "/b/" in u or ("zillow.com" in u and "_zpid" not in u)


# -----------------------------
# HTTP
# -----------------------------
def scrape_listing(url: str, api_key: str | None = None, scrape_description: bool = True,
                   timeout: int | None = None) -> dict:
    url = (url or "").strip()
    if not url:
        raise ScrapeError("A listing URL is required")
    if is_building_url(url):
        raise ScrapeError(BUILDING_URL_MESSAGE)

    api_key = api_key if api_key is not None else Config.HASDATA_API_KEY
    if not api_key:
        raise ScrapeError("HasData API key is not configured")

    try:
        resp = requests.post(
            HASDATA_URL,
            headers={"Content-Type": "application/json", "x-api-key": api_key},
            json={"url": url, "scrape_description": scrape_description},
            timeout=timeout or Config.HASDATA_TIMEOUT,
        )
    except requests.RequestException as e:
        log.warning("HasData request failed for %s: %s", url, e)
        raise ScrapeError("Unknown error occurred") from e

    if not resp.ok:
        log.warning("HasData returned %s for %s", resp.status_code, url)
        raise ScrapeError(STATUS_MESSAGES.get(resp.status_code, "Unknown error occurred"))

    try:
        data = resp.json() or {}
    except ValueError as e:
        log.warning("HasData returned a non-JSON body for %s", url)
        raise ScrapeError("Unknown error occurred") from e
    if not isinstance(data, dict):
        raise ScrapeError("Unknown error occurred")
    return data.get("property") or data


# -----------------------------
# Parsing
# -----------------------------
def parse_price(value) -> float | None:
    """Numbers, strings like "$1,200/mo", or {"value": ...} objects. Non-positive -> None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if value > 0 else None
    if isinstance(value, str):
        digits = re.sub(r"[^0-9]", "", value)
        if not digits:
            return None
        n = int(digits)
        return float(n) if n > 0 else None
    if isinstance(value, dict) and value.get("value"):
        return parse_price(value["value"])
    return None


def _first_price(data: dict, fields) -> float | None:
    for name in fields:
        p = parse_price(data.get(name))
        if p:
            return p
    return None


def _nested_prices(data: dict) -> list:
    listing = data.get("listing") if isinstance(data.get("listing"), dict) else {}
    history = data.get("priceHistory") if isinstance(data.get("priceHistory"), list) else []
    first_hist = history[0] if history and isinstance(history[0], dict) else {}
    return [listing.get("price"), first_hist.get("price")]


def _parse_address(data: dict) -> str:
    addr = data.get("address")
    if isinstance(addr, dict) and addr:
        state_zip = f"{addr.get('state') or ''} {addr.get('zipcode') or ''}".strip()
        parts = [addr.get("street"), addr.get("city"), state_zip]
        joined = ", ".join(p for p in parts if p)
        if joined:
            return joined
    if data.get("addressRaw"):
        return str(data["addressRaw"])
    if isinstance(addr, str) and addr.strip():
        return addr.strip()
    if data.get("fullAddress"):
        return str(data["fullAddress"])
    return "Address not available"


def _num_str(n: float) -> str:
    return str(int(n)) if float(n).is_integer() else str(n)


def _range(values: list[float]) -> str:
    if not values:
        return ""
    lo, hi = min(values), max(values)
    return _num_str(lo) if lo == hi else f"{_num_str(lo)}-{_num_str(hi)}"


def _to_int(raw) -> int:
    return int(float(raw))


def _unit_values(units: list, keys: tuple, cast) -> list:
    out = []
    for u in units:
        if not isinstance(u, dict):
            continue
        raw = next((u.get(k) for k in keys if u.get(k)), None)
        if raw is None:
            continue
        try:
            v = cast(raw)
        except (TypeError, ValueError):
            continue
        out.append(v)
    return out


def _is_rental(data: dict, url: str) -> bool:
    status = str(data.get("status") or data.get("homeStatus") or data.get("listingStatus") or "").upper()
    sub_type = str(data.get("listingSubType") or "").lower()
    home_type = str(data.get("homeType") or "").lower()
    return "RENT" in status or "rent" in sub_type or "rent" in home_type or "rent" in (url or "").lower()


def parse_images(data: dict) -> list[str]:
    raw = data.get("photos") or data.get("images") or []
    urls: list[str] = []
    for p in raw:
        if isinstance(p, str):
            u = p
        elif isinstance(p, dict):
            u = p.get("url") or p.get("href") or p.get("src")
        else:
            u = None
        if u:
            urls.append(u)
    lead = data.get("image")
    if lead and lead not in urls:
        urls.insert(0, lead)
    return urls


def parse_listing(data: dict, url: str) -> ScrapedListing:
    data = data or {}
    listing = ScrapedListing(url=(url or "").strip(), address=_parse_address(data))

    units = data.get("listings") if isinstance(data.get("listings"), list) and data.get("listings") else None
    if units is None and isinstance(data.get("floorPlans"), list) and data.get("floorPlans"):
        units = data["floorPlans"]

    if units:
        listing.bedrooms = _range(_unit_values(units, ("bedrooms", "beds"), _to_int))
        listing.bathrooms = _range(_unit_values(units, ("bathrooms", "baths"), float))
        listing.area = _range(_unit_values(units, ("livingArea", "area", "sqft"), _to_int))
    else:
        listing.bedrooms = str(data.get("bedrooms") or data.get("beds") or "")
        listing.bathrooms = str(data.get("bathrooms") or data.get("baths") or "")
        listing.area = str(data.get("livingArea") or data.get("area") or "")

    listing.is_rental = _is_rental(data, url)
    nested = [parse_price(v) for v in _nested_prices(data)]
    if listing.is_rental:
        price = _first_price(data, RENTAL_PRICE_FIELDS) or next((p for p in nested if p), None)
    else:
        price = (
            _first_price(data, SALE_PRICE_FIELDS)
            or next((p for p in nested if p), None)
            or parse_price(data.get("taxAssessedValue"))
        )
    listing.price = price or _first_price(data, GENERIC_PRICE_FIELDS)

    listing.description = data.get("description") or None
    listing.agent_name = data.get("agentName") or None
    listing.agent_phone = data.get("agentPhoneNumber") or None
    emails = data.get("agentEmails")
    listing.agent_email = emails[0] if isinstance(emails, list) and emails else None
    listing.broker_name = data.get("brokerName") or None
    listing.images = parse_images(data)
    return listing


# -----------------------------
# Persisting
# -----------------------------
def apply_listing(prop: Property, listing: ScrapedListing, client_id: int | None = None) -> Property:
    """Copy scraped fields onto prop. A scraped price wins over whatever pricing the form set."""
    prop.address = listing.address
    prop.bedrooms = listing.bedrooms
    prop.bathrooms = listing.bathrooms
    prop.area = listing.area
    prop.zillow_url = listing.url
    prop.description = listing.description
    prop.images = list(listing.images)
    prop.agent_name = listing.agent_name
    prop.agent_phone = listing.agent_phone
    prop.agent_email = listing.agent_email
    prop.broker_name = listing.broker_name
    prop.scraped_at = datetime.utcnow()
    if client_id is not None:
        prop.scraped_for_client_id = client_id

    if listing.price:
        if listing.is_rental:
            prop.show_monthly_rent = True
            prop.custom_monthly_rent = listing.price
        else:
            prop.show_purchase_price = True
            prop.custom_purchase_price = listing.price
    return prop


def import_listing(session, url: str, manager_id: int, client_id: int | None = None,
                   pricing: dict | None = None, api_key: str | None = None,
                   rehost=None, describe=None) -> Property:
    """
    scrape -> re-host images -> save -> link agent -> assign to manager -> AI description.

    rehost(urls, address) -> list[str] and describe(session, prop) are optional hooks;
    their failures never fail the import.
    """
    url = (url or "").strip()
    existing = session.execute(select(Property).where(Property.zillow_url == url)).scalar_one_or_none()
    if existing:
        raise ScrapeError("This listing has already been imported")

    listing = parse_listing(scrape_listing(url, api_key=api_key), url)

    if rehost and listing.images:
        try:
            listing.images = rehost(listing.images, listing.address) or listing.images
        except Exception as e:
            log.warning("Image re-hosting failed for %s: %s", url, e)

    prop = Property(**(pricing or {}))
    apply_listing(prop, listing, client_id=client_id)
    session.add(prop)
    session.flush()

    if listing.agent_name and listing.agent_phone:
        try:
            agent_id = find_or_create_agent(
                session, listing.agent_name, listing.agent_phone, listing.agent_email, listing.broker_name
            )
            if agent_id:
                link_property_to_agent(session, prop.id, agent_id)
        except Exception as e:
            log.warning("Agent linking failed for property %s: %s", prop.id, e)

    assign_property_to_managers(session, prop.id, [manager_id])

    if describe and not prop.description:
        try:
            describe(session, prop)
        except Exception as e:
            log.warning("AI description failed for property %s: %s", prop.id, e)

    log.info("Imported listing %s as property %s", url, prop.id)
    return prop
