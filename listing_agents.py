# listing_agents.py
from __future__ import annotations

import logging

from sqlalchemy import select

from models import ListingAgent, Property

log = logging.getLogger(__name__)


def find_or_create_agent(session, name: str | None, phone: str | None, email: str | None = None,
                         broker_name: str | None = None) -> int | None:
    """
    Phone number is the agent's identity. Needs at least name + phone.
    Existing agents only gain info (email / broker), never lose it.
    """
    name = (name or "").strip()
    phone = (phone or "").strip()
    if not name or not phone:
        return None

    agent = session.execute(select(ListingAgent).where(ListingAgent.phone == phone)).scalar_one_or_none()
    if agent:
        if email:
            agent.email = email
        if broker_name:
            agent.broker_name = broker_name
        session.flush()
        return agent.id

    agent = ListingAgent(name=name, phone=phone, email=email or None, broker_name=broker_name or None)
    session.add(agent)
    session.flush()
    log.info("Created listing agent %s (%s)", name, phone)
    return agent.id


def link_property_to_agent(session, property_id: int, agent_id: int) -> bool:
    prop = session.get(Property, property_id)
    if not prop:
        return False
    prop.listing_agent_id = agent_id
    session.flush()
    return True
