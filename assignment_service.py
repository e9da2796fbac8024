# assignment_service.py
"""
Clients, client sharing between managers, and which properties each client sees.
"""
from __future__ import annotations

import re
import secrets
from datetime import datetime

from sqlalchemy import func, select

from models import (
    Client,
    ClientPropertyAssignment,
    ClientShare,
    Property,
    PropertyManagerAssignment,
    SavedProperty,
)
from ordering import next_position
from pricing import PRICE_KINDS, default_client_pricing

VIEW_MODES = ("scraped", "saved")


# -----------------------------
# Clients
# -----------------------------
def find_client(session, id_or_slug: str) -> Client | None:
    key = (id_or_slug or "").strip()
    if not key:
        return None
    if key.isdigit():
        return session.get(Client, int(key))
    return session.execute(select(Client).where(Client.slug == key)).scalar_one_or_none()


def generate_slug(name: str) -> str:
    base = re.sub(r"[^a-z0-9]+", "-", (name or "").lower()).strip("-") or "client"
    return f"{base[:80]}-{secrets.token_hex(3)}"


def track_client_access(session, client: Client) -> None:
    client.last_accessed = datetime.utcnow()
    session.flush()


# -----------------------------
# Client <-> property assignments
# -----------------------------
def _get_assignment(session, client_id: int, property_id: int) -> ClientPropertyAssignment | None:
    return session.execute(
        select(ClientPropertyAssignment).where(
            ClientPropertyAssignment.client_id == client_id,
            ClientPropertyAssignment.property_id == property_id,
        )
    ).scalar_one_or_none()


def _apply_pricing(assignment: ClientPropertyAssignment, pricing: dict) -> None:
    for kind in PRICE_KINDS:
        key = f"show_{kind}_to_client"
        if key in pricing:
            setattr(assignment, key, bool(pricing[key]))


def assign_property_to_client(session, client_id: int, property_id: int, pricing: dict | None = None) -> ClientPropertyAssignment:
    prop = session.get(Property, property_id)
    if not prop:
        raise ValueError(f"Property not found: id={property_id}")
    if _get_assignment(session, client_id, property_id):
        raise ValueError("Property is already assigned to this client")

    a = ClientPropertyAssignment(
        client_id=client_id,
        property_id=property_id,
        position=next_position(session, client_id),
    )
    _apply_pricing(a, default_client_pricing(prop) if pricing is None else pricing)
    session.add(a)
    session.flush()
    return a


def bulk_assign_properties(session, client_id: int, property_ids: list[int], pricing: dict | None = None) -> int:
    count = 0
    for pid in property_ids:
        if _get_assignment(session, client_id, pid) or not session.get(Property, pid):
            continue
        assign_property_to_client(session, client_id, pid, pricing)
        count += 1
    return count


def remove_property_from_client(session, client_id: int, property_id: int) -> bool:
    a = _get_assignment(session, client_id, property_id)
    if not a:
        return False
    session.delete(a)
    session.flush()
    return True


def bulk_remove_properties(session, client_id: int, property_ids: list[int]) -> int:
    return sum(1 for pid in property_ids if remove_property_from_client(session, client_id, pid))


def update_client_pricing(session, client_id: int, property_id: int, pricing: dict) -> ClientPropertyAssignment:
    a = _get_assignment(session, client_id, property_id)
    if not a:
        raise ValueError("Property is not assigned to this client")
    _apply_pricing(a, pricing)
    session.flush()
    return a


def assigned_properties(session, client_id: int) -> list[tuple[Property, ClientPropertyAssignment]]:
    rows = session.execute(
        select(Property, ClientPropertyAssignment)
        .join(ClientPropertyAssignment, ClientPropertyAssignment.property_id == Property.id)
        .where(ClientPropertyAssignment.client_id == client_id)
        .order_by(ClientPropertyAssignment.position.asc(), ClientPropertyAssignment.id.asc())
    ).all()
    return [(p, a) for p, a in rows]


def manager_property_ids(session, manager_id: int) -> set[int]:
    return set(
        session.execute(
            select(PropertyManagerAssignment.property_id).where(PropertyManagerAssignment.manager_id == manager_id)
        ).scalars()
    )


def saved_property_ids(session, manager_id: int) -> set[int]:
    return set(
        session.execute(select(SavedProperty.property_id).where(SavedProperty.manager_id == manager_id)).scalars()
    )


def available_properties(session, client: Client, manager_id: int, mode: str = "scraped", q: str = "") -> list[Property]:
    """
    Manager's properties not yet assigned to the client, narrowed by view mode:
      scraped -> scraped specifically for this client
      saved   -> starred by the manager
    """
    mode = mode if mode in VIEW_MODES else "scraped"
    assigned = {a.property_id for a in client.assignments}
    candidates = manager_property_ids(session, manager_id) - assigned
    if not candidates:
        return []

    stmt = select(Property).where(Property.id.in_(candidates)).order_by(Property.created_at.desc())
    if mode == "saved":
        saved = saved_property_ids(session, manager_id)
        stmt = stmt.where(Property.id.in_(saved or {-1}))
    else:
        stmt = stmt.where(Property.scraped_for_client_id == client.id)

    q = (q or "").strip()
    if q:
        stmt = stmt.where(Property.address.ilike(f"%{q}%"))
    return list(session.execute(stmt).scalars())


# -----------------------------
# Managers <-> properties
# -----------------------------
def assign_property_to_managers(session, property_id: int, manager_ids: list[int]) -> int:
    existing = set(
        session.execute(
            select(PropertyManagerAssignment.manager_id).where(PropertyManagerAssignment.property_id == property_id)
        ).scalars()
    )
    added = 0
    for mid in manager_ids:
        if mid in existing:
            continue
        session.add(PropertyManagerAssignment(property_id=property_id, manager_id=mid))
        existing.add(mid)
        added += 1
    session.flush()
    return added


def set_property_managers(session, property_id: int, manager_ids: list[int]) -> None:
    wanted = set(manager_ids)
    links = session.execute(
        select(PropertyManagerAssignment).where(PropertyManagerAssignment.property_id == property_id)
    ).scalars().all()
    for link in links:
        if link.manager_id not in wanted:
            session.delete(link)
    session.flush()
    assign_property_to_managers(session, property_id, sorted(wanted))


def toggle_saved_property(session, manager_id: int, property_id: int) -> bool:
    row = session.execute(
        select(SavedProperty).where(SavedProperty.manager_id == manager_id, SavedProperty.property_id == property_id)
    ).scalar_one_or_none()
    if row:
        session.delete(row)
        session.flush()
        return False
    session.add(SavedProperty(manager_id=manager_id, property_id=property_id))
    session.flush()
    return True


# -----------------------------
# Client sharing
# -----------------------------
def set_client_admins(session, client_id: int, manager_ids: list[int], acting_manager_id: int) -> tuple[list[int], list[int]]:
    """
    Make the client's shares match manager_ids. The owner never gets a share row.
    Returns (added, removed) manager ids.
    """
    client = session.get(Client, client_id)
    if not client:
        raise LookupError("Client not found")

    selected = {int(m) for m in manager_ids if int(m) != client.manager_id}
    existing = {s.shared_with_manager_id: s for s in client.shares}

    to_remove = sorted(set(existing) - selected)
    to_add = sorted(selected - set(existing))

    for mid in to_remove:
        session.delete(existing[mid])
    for mid in to_add:
        session.add(ClientShare(client_id=client_id, shared_with_manager_id=mid, shared_by_manager_id=acting_manager_id))
    session.flush()
    session.expire(client, ["shares"])
    return to_add, to_remove


def client_counts_by_manager(session) -> dict[int, int]:
    rows = session.execute(select(Client.manager_id, func.count(Client.id)).group_by(Client.manager_id)).all()
    return {mid: n for mid, n in rows}
