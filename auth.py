# auth.py
from __future__ import annotations

from functools import wraps

from flask import current_app, flash, jsonify, redirect, request, url_for
from flask_login import UserMixin, current_user
from sqlalchemy import select

from models import Client, ClientShare, PropertyManager

ROLES = ("admin", "super_admin")
SUPER_ADMIN_DENIED = "Unauthorized: Super admin access required"


# -----------------------------
# Flask-Login user wrapper
# -----------------------------
class AppUser(UserMixin):
    def __init__(self, manager_id: int, email: str, name: str, role: str):
        self.id = str(manager_id)
        self.email = email
        self.name = name
        self.role = role


def app_user_for(manager: PropertyManager, super_admin_emails=None) -> AppUser:
    role = "super_admin" if is_super_admin(manager, super_admin_emails) else "admin"
    return AppUser(manager.id, manager.email, manager.full_name() or manager.email, role)


# -----------------------------
# Roles
# -----------------------------
def is_super_admin(manager, super_admin_emails=None) -> bool:
    """
    Super admins are listed by email (case insensitive) in SUPER_ADMIN_EMAILS,
    or carry role == "super_admin" on their manager row.
    """
    if manager is None:
        return False
    if super_admin_emails is None:
        super_admin_emails = current_app.config.get("SUPER_ADMIN_EMAILS") or []
    email = (getattr(manager, "email", None) or "").strip().lower()
    if email and any(email == (e or "").strip().lower() for e in super_admin_emails):
        return True
    return (getattr(manager, "role", None) or "") == "super_admin"


def current_role(manager, super_admin_emails=None) -> str | None:
    if manager is None:
        return None
    return "super_admin" if is_super_admin(manager, super_admin_emails) else "admin"


def current_manager_id() -> int:
    try:
        return int(current_user.get_id())
    except Exception:
        return -1


def current_is_super_admin() -> bool:
    return bool(current_user.is_authenticated and getattr(current_user, "role", "") == "super_admin")


def _wants_json() -> bool:
    return request.path.startswith("/api/") or request.is_json


def super_admin_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if not current_is_super_admin():
            if _wants_json():
                return jsonify({"error": SUPER_ADMIN_DENIED}), 403
            flash(SUPER_ADMIN_DENIED, "error")
            return redirect(url_for("admin_dashboard"))
        return view(*args, **kwargs)
    return wrapper


# -----------------------------
# Client visibility
# -----------------------------
def visible_client_ids(session, manager_id: int, super_admin: bool) -> set[int] | None:
    """
    None means "no restriction" (super admin). Otherwise the ids of clients
    the manager owns plus clients shared with them.
    """
    if super_admin:
        return None
    owned = session.execute(select(Client.id).where(Client.manager_id == manager_id)).scalars().all()
    shared = session.execute(
        select(ClientShare.client_id).where(ClientShare.shared_with_manager_id == manager_id)
    ).scalars().all()
    return set(owned) | set(shared)


def can_access_client(session, client: Client, manager_id: int, super_admin: bool) -> bool:
    ids = visible_client_ids(session, manager_id, super_admin)
    return ids is None or client.id in ids
