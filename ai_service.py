# ai_service.py
from __future__ import annotations

import logging

from openai import OpenAI

from config import Config

log = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You write listing descriptions for a luxury real-estate concierge. "
    "Two short paragraphs, elegant and factual. Never invent amenities, prices or neighborhood facts."
)


def _prompt(address, bedrooms, bathrooms, area) -> str:
    lines = [f"Address: {address or 'not provided'}"]
    if bedrooms:
        lines.append(f"Bedrooms: {bedrooms}")
    if bathrooms:
        lines.append(f"Bathrooms: {bathrooms}")
    if area:
        lines.append(f"Living area: {area} sq ft")
    return "Write a description for this property.\n" + "\n".join(lines)


def generate_property_description(address, bedrooms=None, bathrooms=None, area=None,
                                  client: OpenAI | None = None, model: str | None = None,
                                  api_key: str | None = None) -> str:
    if client is None:
        api_key = api_key if api_key is not None else Config.OPENAI_API_KEY
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY is not configured")
        client = OpenAI(api_key=api_key)

    response = client.chat.completions.create(
        model=model or Config.OPENAI_MODEL,
        messages=[
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": _prompt(address, bedrooms, bathrooms, area)},
        ],
        max_tokens=400,
        temperature=0.7,
    )
    return (response.choices[0].message.content or "").strip()


def describe_property(session, prop, **kwargs) -> str | None:
    """Store a generated description on prop. Failures are logged, never raised."""
    try:
        text = generate_property_description(prop.address, prop.bedrooms, prop.bathrooms, prop.area, **kwargs)
    except Exception as e:
        log.warning("Description generation failed for property %s: %s", prop.id, e)
        return None
    if not text:
        return None
    prop.description = text
    session.flush()
    return text
