# ordering.py
"""
Ordering of a client's assigned properties.

The browser reorders optimistically (drag and drop, or up/down on mobile) and
posts the complete id list. The server only accepts a permutation of the
current assignment set; anything else is rejected and the page re-fetches the
stored order.
"""
from __future__ import annotations

from sqlalchemy import func, select

from models import ClientPropertyAssignment


class OrderingError(ValueError):
    pass


def move_item(ids: list, from_index: int, to_index: int) -> list:
    n = len(ids)
    if not (0 <= from_index < n) or not (0 <= to_index < n):
        raise OrderingError(f"Index out of range: {from_index} -> {to_index} (size {n})")
    out = list(ids)
    item = out.pop(from_index)
    out.insert(to_index, item)
    return out


def move_up(ids: list, index: int) -> list:
    if index <= 0:
        return list(ids)
    return move_item(ids, index, index - 1)


def move_down(ids: list, index: int) -> list:
    if index >= len(ids) - 1:
        return list(ids)
    return move_item(ids, index, index + 1)


def parse_id_list(raw) -> list[int]:
    """Whole-number ids only: ints or digit strings. Floats and bools are rejected."""
    if not isinstance(raw, list):
        raise OrderingError("propertyIds must be a list")
    out = []
    for v in raw:
        if isinstance(v, bool):
            raise OrderingError(f"Invalid property id: {v!r}")
        if isinstance(v, int):
            out.append(v)
        elif isinstance(v, str) and v.strip().isdigit():
            out.append(int(v.strip()))
        else:
            raise OrderingError(f"Invalid property id: {v!r}")
    return out


def client_order(session, client_id: int) -> list[int]:
    return list(
        session.execute(
            select(ClientPropertyAssignment.property_id)
            .where(ClientPropertyAssignment.client_id == client_id)
            .order_by(ClientPropertyAssignment.position.asc(), ClientPropertyAssignment.id.asc())
        ).scalars()
    )


def persist_client_order(session, client_id: int, property_ids: list[int]) -> None:
    """Write position = index. The ids must be exactly the client's assigned set."""
    if len(set(property_ids)) != len(property_ids):
        raise OrderingError("Duplicate property ids in order")

    rows = session.execute(
        select(ClientPropertyAssignment).where(ClientPropertyAssignment.client_id == client_id)
    ).scalars().all()
    by_property = {r.property_id: r for r in rows}

    if set(by_property) != set(property_ids):
        raise OrderingError("Order does not match the client's assigned properties")

    for idx, pid in enumerate(property_ids):
        by_property[pid].position = idx
    session.flush()


def move_client_property(session, client_id: int, property_id: int, direction: str) -> list[int]:
    ids = client_order(session, client_id)
    if property_id not in ids:
        raise OrderingError("Property is not assigned to this client")
    idx = ids.index(property_id)
    new_ids = move_up(ids, idx) if direction == "up" else move_down(ids, idx)
    persist_client_order(session, client_id, new_ids)
    return new_ids


def next_position(session, client_id: int) -> int:
    current = session.execute(
        select(func.max(ClientPropertyAssignment.position)).where(ClientPropertyAssignment.client_id == client_id)
    ).scalar_one_or_none()
    return 0 if current is None else int(current) + 1
