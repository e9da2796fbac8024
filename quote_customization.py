# quote_customization.py
"""
Per-quote PDF customization.

Stored on Quote.pdf_customization as JSON:

    {
      "header_title": str, "header_subtitle": str,
      "header_icon": "plane" | "car" | "yacht" | "none",
      "route": {"departure_city": str, "arrival_city": str},
      "custom_notes": str, "custom_terms": str,
      "service_overrides": {
        "<item id>": {
          "display_name", "display_description", "display_images": [<=2 urls],
          "details": [{"label", "value"}], "price_override": float,
          "passengers", "flight_time", "jet_model",
          "departure_city", "arrival_city", "services_list": [str]
        }
      }
    }

Everything here is read-only over QuoteServiceItem rows; overrides live only
in the JSON blob.
"""
from __future__ import annotations

from dataclasses import dataclass, field

HEADER_ICONS = ("plane", "car", "yacht", "none")
DEFAULT_HEADER_TITLE = "Private Quotes"
MAX_DISPLAY_IMAGES = 2
MAX_LAYOUT_ITEMS = 5

ROUTE_DETAIL_LABELS = ("Date", "Departure Code", "Departure", "Arrival Code", "Arrival", "Duration", "Passengers")

DEFAULT_TERMS = [
    "All services are subject to availability at time of booking",
    "A deposit may be required to confirm your reservation",
    "Cancellation policies vary by service type",
    "Additional fees may apply for special requests or modifications",
    "Insurance and liability requirements apply to certain services",
]

LAYOUT_DEFAULTS = {
    "yacht": {
        "name": "Yacht Charter",
        "banner": "PRIVATE YACHT PROPOSAL",
        "departure": "MIAMI",
        "arrival": "BAHAMAS",
        "passengers": "15",
        "duration": "8h",
        "services": ["Crew & amenities", "Catering & beverages"],
    },
    "car": {
        "name": "Luxury Car",
        "banner": "CARS RENTAL PROPOSAL",
        "departure": "AIRPORT",
        "arrival": "HOTEL",
        "passengers": "4",
        "duration": "5 days",
        "services": [],
    },
}

_TEXT_KEYS = ("header_title", "header_subtitle", "custom_notes", "custom_terms")
_OVERRIDE_TEXT_KEYS = (
    "display_name", "display_description", "passengers", "flight_time",
    "jet_model", "departure_city", "arrival_city",
)


@dataclass
class ServiceView:
    item_id: int
    name: str
    description: str
    images: list[str]
    price: float
    departure: str = ""
    arrival: str = ""
    passengers: str = ""
    duration: str = ""
    model: str = ""
    services: list[str] = field(default_factory=list)
    date: str = ""
    departure_code: str = ""
    arrival_code: str = ""
    route_details: dict = field(default_factory=dict)
    other_details: list[dict] = field(default_factory=list)
    details: list[dict] = field(default_factory=list)

    @property
    def has_route_style(self) -> bool:
        return bool(self.departure_code or self.arrival_code)


def _clean_str(v) -> str:
    return v.strip() if isinstance(v, str) else ""


def _clean_str_list(values, limit: int | None = None) -> list[str]:
    if not isinstance(values, list):
        return []
    out = [v.strip() for v in values if isinstance(v, str) and v.strip()]
    return out[:limit] if limit else out


def _clean_price(v) -> float | None:
    if v is None or isinstance(v, bool) or v == "":
        return None
    try:
        value = float(v)
    except (TypeError, ValueError):
        return None
    return value if value >= 0 else None


def _clean_details(values) -> list[dict]:
    if not isinstance(values, list):
        return []
    out = []
    for d in values:
        if not isinstance(d, dict):
            continue
        label, value = _clean_str(d.get("label")), _clean_str(d.get("value"))
        if label and value:
            out.append({"label": label, "value": value})
    return out


def _normalize_override(raw: dict) -> dict:
    out = {}
    for key in _OVERRIDE_TEXT_KEYS:
        v = _clean_str(raw.get(key))
        if v:
            out[key] = v
    images = _clean_str_list(raw.get("display_images"), MAX_DISPLAY_IMAGES)
    if images:
        out["display_images"] = images
    services = _clean_str_list(raw.get("services_list"))
    if services:
        out["services_list"] = services
    details = _clean_details(raw.get("details"))
    if details:
        out["details"] = details
    price = _clean_price(raw.get("price_override"))
    if price is not None:
        out["price_override"] = price
    return out


def normalize_customization(raw, service_items) -> dict:
    """Drop anything unknown, empty or malformed. Overrides must belong to this quote's items."""
    if not isinstance(raw, dict):
        return {}

    out = {}
    for key in _TEXT_KEYS:
        v = _clean_str(raw.get(key))
        if v:
            out[key] = v

    icon = _clean_str(raw.get("header_icon")).lower()
    out["header_icon"] = icon if icon in HEADER_ICONS else "plane"

    route = raw.get("route") if isinstance(raw.get("route"), dict) else {}
    route_out = {k: _clean_str(route.get(k)) for k in ("departure_city", "arrival_city") if _clean_str(route.get(k))}
    if route_out:
        out["route"] = route_out

    valid_ids = {str(i.id) for i in service_items}
    overrides = raw.get("service_overrides") if isinstance(raw.get("service_overrides"), dict) else {}
    overrides_out = {}
    for key, value in overrides.items():
        if str(key) not in valid_ids or not isinstance(value, dict):
            continue
        cleaned = _normalize_override(value)
        if cleaned:
            overrides_out[str(key)] = cleaned
    if overrides_out:
        out["service_overrides"] = overrides_out
    return out


def _lines(text: str | None) -> list[str]:
    return [ln.strip() for ln in (text or "").splitlines() if ln.strip()]


def customization_from_form(form, service_items) -> dict:
    """Builder form -> normalized customization. Per-item fields are prefixed svc-<id>-."""
    raw = {key: form.get(key, "") for key in _TEXT_KEYS}
    raw["header_icon"] = form.get("header_icon", "plane")
    raw["route"] = {
        "departure_city": form.get("route_departure_city", ""),
        "arrival_city": form.get("route_arrival_city", ""),
    }

    overrides = {}
    for item in service_items:
        p = f"svc-{item.id}-"
        o = {key: form.get(p + key, "") for key in _OVERRIDE_TEXT_KEYS}
        o["price_override"] = form.get(p + "price_override", "")
        o["display_images"] = _lines(form.get(p + "display_images"))
        o["services_list"] = _lines(form.get(p + "services_list"))
        labels = form.getlist(p + "detail_label")
        values = form.getlist(p + "detail_value")
        o["details"] = [{"label": lbl, "value": val} for lbl, val in zip(labels, values)]
        overrides[str(item.id)] = o
    raw["service_overrides"] = overrides
    return normalize_customization(raw, service_items)


# -----------------------------
# Rendering helpers
# -----------------------------
def header_icon(customization: dict | None) -> str:
    icon = (customization or {}).get("header_icon") or "plane"
    return icon if icon in HEADER_ICONS else "plane"


def layout_for(customization: dict | None) -> str:
    """yacht and car get their own proposal layouts, everything else is the ticket layout."""
    icon = header_icon(customization)
    return icon if icon in LAYOUT_DEFAULTS else "ticket"


def service_override(customization: dict | None, item) -> dict:
    overrides = (customization or {}).get("service_overrides") or {}
    return overrides.get(str(item.id)) or {}


def display_images(item, override: dict) -> list[str]:
    if override.get("display_images"):
        return list(override["display_images"][:MAX_DISPLAY_IMAGES])
    return [u for u in (item.images or []) if isinstance(u, str) and u][:MAX_DISPLAY_IMAGES]


def resolve_service(quote, item, customization: dict | None) -> ServiceView:
    customization = customization or {}
    override = service_override(customization, item)
    layout = layout_for(customization)
    defaults = LAYOUT_DEFAULTS.get(layout, {})
    route = customization.get("route") or {}

    price = override.get("price_override")
    view = ServiceView(
        item_id=item.id,
        name=override.get("display_name") or item.service_name or defaults.get("name", ""),
        description=override.get("display_description") or item.description or "",
        images=display_images(item, override),
        price=float(item.price or 0.0) if price is None else float(price),
    )

    details = list(override.get("details") or [])
    view.details = details
    by_label = {}
    for d in details:
        by_label.setdefault(d["label"], d["value"])
    view.route_details = {k: by_label[k] for k in ROUTE_DETAIL_LABELS if k in by_label}
    view.other_details = [d for d in details if d["label"] not in ROUTE_DETAIL_LABELS]
    view.date = by_label.get("Date", "")
    view.departure_code = by_label.get("Departure Code", "")
    view.arrival_code = by_label.get("Arrival Code", "")

    if layout == "ticket":
        view.departure = by_label.get("Departure", "")
        view.arrival = by_label.get("Arrival", "")
        view.duration = by_label.get("Duration", "")
        view.passengers = by_label.get("Passengers", "")
    else:
        view.departure = override.get("departure_city") or route.get("departure_city") or defaults["departure"]
        view.arrival = override.get("arrival_city") or route.get("arrival_city") or defaults["arrival"]
        view.passengers = override.get("passengers") or defaults["passengers"]
        view.duration = override.get("flight_time") or defaults["duration"]
        view.model = override.get("jet_model") or ""
        view.services = list(override.get("services_list") or defaults["services"])
    return view


def layout_items(quote, customization: dict | None) -> list[ServiceView]:
    items = list(quote.service_items)
    if layout_for(customization) != "ticket":
        items = items[:MAX_LAYOUT_ITEMS]
    return [resolve_service(quote, i, customization) for i in items]


def notes_text(quote, customization: dict | None) -> str:
    return (customization or {}).get("custom_notes") or quote.notes or ""


def terms_lines(customization: dict | None) -> list[str]:
    custom = (customization or {}).get("custom_terms")
    if not custom:
        return list(DEFAULT_TERMS)
    return [ln.lstrip("•-* ").strip() for ln in custom.splitlines() if ln.strip()]


def header_title(customization: dict | None) -> str:
    return (customization or {}).get("header_title") or DEFAULT_HEADER_TITLE


def builder_initial_state(quote) -> dict:
    """Form prefill: saved overrides, else the item's own values."""
    existing = quote.pdf_customization or {}
    state = {
        "header_title": existing.get("header_title", ""),
        "header_subtitle": existing.get("header_subtitle", ""),
        "header_icon": header_icon(existing),
        "route": existing.get("route") or {},
        "custom_notes": existing.get("custom_notes") or quote.notes or "",
        "custom_terms": existing.get("custom_terms", ""),
        "services": [],
    }
    for item in quote.service_items:
        o = service_override(existing, item)
        state["services"].append({
            "id": item.id,
            "display_name": o.get("display_name") or item.service_name,
            "display_description": o.get("display_description") or item.description or "",
            "display_images": display_images(item, o),
            "details": o.get("details") or [],
            "price_override": o.get("price_override"),
            "passengers": o.get("passengers", ""),
            "flight_time": o.get("flight_time", ""),
            "jet_model": o.get("jet_model", ""),
            "departure_city": o.get("departure_city", ""),
            "arrival_city": o.get("arrival_city", ""),
            "services_list": o.get("services_list") or [],
            "price": item.price,
        })
    return state
