# pricing.py
"""
Client-facing pricing visibility.

A property carries up to three optional prices. A price reaches a client only
when the property shows it (show_<kind> with a value) AND the client's
assignment allows it (show_<kind>_to_client, missing counts as allowed).
"""
from __future__ import annotations

PRICE_KINDS = ("monthly_rent", "nightly_rate", "purchase_price")

PRICE_LABELS = {
    "monthly_rent": "Monthly Rent",
    "nightly_rate": "Nightly Rate",
    "purchase_price": "Purchase Price",
}

PRICE_SUFFIXES = {
    "monthly_rent": "/mo",
    "nightly_rate": "/night",
    "purchase_price": "",
}

FIELD_TOGGLES = ("show_bedrooms", "show_bathrooms", "show_area", "show_address", "show_images")


def format_currency(amount, cents: bool = False) -> str:
    try:
        value = float(amount)
    except (TypeError, ValueError):
        return f"${amount}"
    if cents:
        return f"${value:,.2f}"
    return f"${value:,.0f}"


def _price_value(prop, kind: str):
    value = getattr(prop, f"custom_{kind}", None)
    if value in (None, ""):
        return None
    try:
        value = float(value)
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None


def property_price_enabled(prop, kind: str) -> bool:
    return bool(getattr(prop, f"show_{kind}", False)) and _price_value(prop, kind) is not None


def default_client_pricing(prop) -> dict[str, bool]:
    """Initial per-client switches: on exactly where the property has that price enabled."""
    return {f"show_{kind}_to_client": property_price_enabled(prop, kind) for kind in PRICE_KINDS}


def all_pricing_enabled() -> dict[str, bool]:
    return {f"show_{kind}_to_client": True for kind in PRICE_KINDS}


def pricing_from_form(form) -> dict[str, bool]:
    return {f"show_{kind}_to_client": form.get(f"show_{kind}_to_client") in ("1", "on", "true") for kind in PRICE_KINDS}


def client_allows(assignment, kind: str) -> bool:
    if assignment is None:
        return True
    flag = getattr(assignment, f"show_{kind}_to_client", None)
    return True if flag is None else bool(flag)


def client_property_view(prop, assignment=None) -> dict:
    """
    Flatten a property + (optional) client assignment into what the client page renders.
    Prices the client must not see come back as None.
    """
    prices = {}
    for kind in PRICE_KINDS:
        visible = property_price_enabled(prop, kind) and client_allows(assignment, kind)
        prices[kind] = _price_value(prop, kind) if visible else None

    toggles = {}
    for name in FIELD_TOGGLES:
        flag = getattr(prop, name, None)
        toggles[name] = True if flag is None else bool(flag)

    return {
        "id": prop.id,
        "address": (prop.address or "").strip() or "Address not available",
        "bedrooms": prop.bedrooms or "0",
        "bathrooms": prop.bathrooms or "0",
        "area": prop.area or "0",
        "description": prop.description,
        "images": prop.image_list() if toggles["show_images"] else [],
        "prices": prices,
        "primary_price": primary_price_label(prices),
        **toggles,
    }


def primary_price_label(prices: dict) -> str | None:
    """Headline price for cards: purchase price, then monthly rent, then nightly rate."""
    for kind in ("purchase_price", "monthly_rent", "nightly_rate"):
        value = prices.get(kind)
        if value:
            return f"{format_currency(value)}{PRICE_SUFFIXES[kind]}"
    return None


def admin_primary_price_label(prop) -> str | None:
    return primary_price_label({kind: _price_value(prop, kind) for kind in PRICE_KINDS})
