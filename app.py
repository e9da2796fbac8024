# app.py
import io
import os
from datetime import date, datetime, timedelta
from pathlib import Path
from urllib.parse import urlparse

from flask import (
    Flask, render_template, request, redirect, url_for,
    flash, send_file, abort, jsonify, make_response
)
from flask_login import (
    LoginManager, login_user, logout_user,
    login_required, current_user
)
from sqlalchemy import func, or_
from sqlalchemy.orm import selectinload
from werkzeug.security import generate_password_hash, check_password_hash

from ai_service import describe_property, generate_property_description
from assignment_service import (
    VIEW_MODES,
    assign_property_to_client,
    assign_property_to_managers,
    assigned_properties,
    available_properties,
    bulk_assign_properties,
    bulk_remove_properties,
    client_counts_by_manager,
    find_client,
    generate_slug,
    manager_property_ids,
    remove_property_from_client,
    saved_property_ids,
    set_client_admins,
    set_property_managers,
    toggle_saved_property,
    track_client_access,
    update_client_pricing,
)
from auth import (
    ROLES,
    SUPER_ADMIN_DENIED,
    app_user_for,
    can_access_client,
    current_is_super_admin,
    current_manager_id,
    super_admin_required,
    visible_client_ids,
)
from config import Config
from email_service import invoice_email, quote_email, send_document_email, smtp_configured
from media_service import UploadError, folder_for_address, rehost_for_address, rehost_remote_images, upload_file, validate_upload
from models import (
    Base, make_engine, make_session_factory,
    PropertyManager, Property, Client,
    ClientPropertyAssignment, Quote, QuoteServiceItem, Invoice, InvoiceLineItem,
    next_document_number,
)
from ordering import OrderingError, client_order, move_client_property, parse_id_list, persist_client_order
from payment_service import PaymentConfigError, PaymentError, create_payment_intent
from pdf_service import generate_and_store_invoice_pdf, generate_and_store_quote_pdf, render_quote_preview
from pricing import (
    FIELD_TOGGLES,
    PRICE_KINDS,
    PRICE_LABELS,
    PRICE_SUFFIXES,
    admin_primary_price_label,
    all_pricing_enabled,
    client_property_view,
    format_currency,
    pricing_from_form,
)
from quote_customization import (
    HEADER_ICONS,
    builder_initial_state,
    customization_from_form,
    layout_for,
    layout_items,
    notes_text,
    terms_lines,
    header_title,
)
from scraper_service import ScrapeError, import_listing
from workflow import (
    INVOICE_STATUSES,
    QUOTE_STATUSES,
    QUOTE_STATUS_LABELS,
    WorkflowError,
    accept_quote,
    convert_quote_to_invoice,
    decline_quote,
    invoice_is_overdue,
    mark_invoice_paid,
    mark_invoice_sent,
    mark_invoice_viewed,
    mark_quote_sent,
    mark_quote_viewed,
    quote_can_respond,
    quote_is_expired,
)

login_manager = LoginManager()
login_manager.login_view = "login"

CLIENT_STATUSES = ("active", "pending", "closed")


# -----------------------------
# Helpers
# -----------------------------
def _to_float(s, default=0.0):
    try:
        s = (s or "").strip()
        return float(s) if s else float(default)
    except Exception:
        return float(default)


def _to_price(s):
    """Optional money field: blank or non-positive -> None."""
    v = _to_float(s, 0.0)
    return v if v > 0 else None


def _checked(form, name: str) -> bool:
    return (form.get(name) or "") in ("1", "on", "true")


def _parse_quote_items(form):
    names = form.getlist("service_name")
    descs = form.getlist("service_description")
    prices = form.getlist("service_price")
    images = form.getlist("service_images")
    out = []
    n = max(len(names), len(descs), len(prices))
    for i in range(n):
        name = (names[i] if i < len(names) else "").strip()
        desc = (descs[i] if i < len(descs) else "").strip()
        price = (prices[i] if i < len(prices) else "").strip()
        imgs = [u.strip() for u in (images[i] if i < len(images) else "").splitlines() if u.strip()]
        if not name and not price:
            continue
        out.append((name, desc, _to_float(price, 0.0), imgs))
    return out


def _parse_invoice_items(form):
    descs = form.getlist("item_description")
    qtys = form.getlist("item_quantity")
    prices = form.getlist("item_unit_price")
    out = []
    n = max(len(descs), len(qtys), len(prices))
    for i in range(n):
        desc = (descs[i] if i < len(descs) else "").strip()
        qty = (qtys[i] if i < len(qtys) else "").strip()
        price = (prices[i] if i < len(prices) else "").strip()
        if not desc and not price:
            continue
        out.append((desc, _to_float(qty, 1.0), _to_float(price, 0.0)))
    return out


def _parse_date(s, default=None):
    s = (s or "").strip()
    if not s:
        return default
    try:
        return datetime.strptime(s, "%Y-%m-%d").date()
    except ValueError:
        return default


def _ensure_dirs(cfg):
    if cfg.SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
        Path("instance").mkdir(parents=True, exist_ok=True)
    Path(cfg.EXPORTS_DIR).mkdir(parents=True, exist_ok=True)


def _wants_json() -> bool:
    return request.path.startswith("/api/") or request.is_json


def _json_error(msg: str, status: int):
    return jsonify({"error": msg}), status


def _safe_next(target: str | None) -> str | None:
    """Only same-site relative paths are followed after login."""
    target = (target or "").strip()
    if not target.startswith("/") or target.startswith("//") or target.startswith("/\\"):
        return None
    parts = urlparse(target)
    if parts.scheme or parts.netloc:
        return None
    return target


def _id_list(values) -> list[int]:
    out = []
    for v in values:
        try:
            out.append(int(v))
        except (TypeError, ValueError):
            continue
    return out


def _pdf_response(path, download_name: str, as_attachment: bool = True):
    resp = make_response(send_file(path, mimetype="application/pdf", as_attachment=as_attachment,
                                   download_name=download_name))
    resp.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
    resp.headers["Pragma"] = "no-cache"
    resp.headers["Expires"] = "0"
    resp.headers["X-Content-Type-Options"] = "nosniff"
    return resp


# -----------------------------
# App factory
# -----------------------------
def create_app(config_object=Config):
    _ensure_dirs(config_object)

    app = Flask(__name__)
    app.config.from_object(config_object)

    login_manager.init_app(app)

    engine = make_engine(config_object.SQLALCHEMY_DATABASE_URI, echo=config_object.SQLALCHEMY_ECHO)
    Base.metadata.create_all(engine)

    SessionLocal = make_session_factory(engine)

    def db_session():
        return SessionLocal()

    app.extensions["db_session"] = db_session

    def super_admin_emails():
        return app.config.get("SUPER_ADMIN_EMAILS") or []

    def company():
        return {
            "name": app.config["COMPANY_NAME"],
            "tagline": app.config["COMPANY_TAGLINE"],
            "phone": app.config["COMPANY_PHONE"],
            "email": app.config["COMPANY_EMAIL"],
            "website": app.config["COMPANY_WEBSITE"],
            "logo_url": app.config["COMPANY_LOGO_URL"],
        }

    @login_manager.user_loader
    def load_user(user_id: str):
        try:
            uid = int(user_id)
        except Exception:
            return None
        with db_session() as s:
            m = s.get(PropertyManager, uid)
            if not m:
                return None
            return app_user_for(m, super_admin_emails())

    # Make sure someone can log in on a fresh database.
    def _bootstrap_first_manager():
        with db_session() as s:
            if s.query(PropertyManager).first():
                return
            m = PropertyManager(
                email=app.config["INITIAL_ADMIN_EMAIL"].strip().lower(),
                name="Admin",
                role="super_admin",
                password_hash=generate_password_hash(app.config["INITIAL_ADMIN_PASSWORD"]),
            )
            s.add(m)
            s.commit()
            app.logger.info("Created initial super admin %s", m.email)

    _bootstrap_first_manager()

    @app.context_processor
    def inject_globals():
        return {
            "company": company(),
            "is_super_admin": current_is_super_admin(),
            "money": format_currency,
            "price_kinds": PRICE_KINDS,
            "price_labels": PRICE_LABELS,
            "price_suffixes": PRICE_SUFFIXES,
            "quote_status_labels": QUOTE_STATUS_LABELS,
        }

    # -----------------------------
    # Scoped lookups
    # -----------------------------
    def _visible_ids(s):
        return visible_client_ids(s, current_manager_id(), current_is_super_admin())

    def _client_or_404(s, client_id: int) -> Client:
        c = s.get(Client, client_id)
        if not c or not can_access_client(s, c, current_manager_id(), current_is_super_admin()):
            abort(404)
        return c

    def _property_or_404(s, property_id: int) -> Property:
        p = s.get(Property, property_id)
        if not p:
            abort(404)
        if not current_is_super_admin() and property_id not in manager_property_ids(s, current_manager_id()):
            abort(404)
        return p

    def _quote_or_404(s, quote_id: int) -> Quote:
        q = (
            s.query(Quote)
            .options(selectinload(Quote.service_items))
            .filter(Quote.id == quote_id)
            .first()
        )
        if not q or (not current_is_super_admin() and q.manager_id != current_manager_id()):
            abort(404)
        return q

    def _invoice_or_404(s, invoice_id: int) -> Invoice:
        inv = (
            s.query(Invoice)
            .options(selectinload(Invoice.line_items))
            .filter(Invoice.id == invoice_id)
            .first()
        )
        if not inv or (not current_is_super_admin() and inv.manager_id != current_manager_id()):
            abort(404)
        return inv

    def _managers(s):
        return s.query(PropertyManager).order_by(PropertyManager.name.asc()).all()

    # -----------------------------
    # Auth routes
    # -----------------------------
    @app.route("/login", methods=["GET", "POST"])
    def login():
        if current_user.is_authenticated:
            return redirect(url_for("admin_dashboard"))

        if request.method == "POST":
            email = (request.form.get("email") or "").strip().lower()
            password = request.form.get("password") or ""
            with db_session() as s:
                m = s.query(PropertyManager).filter(func.lower(PropertyManager.email) == email).first()
                if m and m.password_hash and check_password_hash(m.password_hash, password):
                    login_user(app_user_for(m, super_admin_emails()))
                    return redirect(_safe_next(request.args.get("next")) or url_for("admin_dashboard"))

            flash("Invalid email or password.", "error")
        return render_template("login.html")

    @app.route("/logout")
    @login_required
    def logout():
        logout_user()
        return redirect(url_for("login"))

    @app.route("/admin/profile", methods=["GET", "POST"])
    @login_required
    def profile():
        with db_session() as s:
            m = s.get(PropertyManager, current_manager_id())
            if not m:
                abort(404)

            if request.method == "POST":
                name = (request.form.get("name") or "").strip()
                if not name:
                    flash("Name is required.", "error")
                    return render_template("profile.html", manager=m)
                m.name = name
                for field in ("last_name", "title", "phone", "profile_picture_url",
                              "instagram_url", "facebook_url", "linkedin_url", "twitter_url"):
                    setattr(m, field, (request.form.get(field) or "").strip() or None)

                new_password = request.form.get("new_password") or ""
                if new_password:
                    if len(new_password) < 6:
                        flash("Password must be at least 6 characters.", "error")
                        return render_template("profile.html", manager=m)
                    m.password_hash = generate_password_hash(new_password)

                s.commit()
                flash("Profile updated.", "success")
                return redirect(url_for("profile"))

            return render_template("profile.html", manager=m)

    # -----------------------------
    # Public pages
    # -----------------------------
    @app.route("/")
    def index():
        return render_template("landing.html")

    @app.route("/client/<id_or_slug>")
    def client_page(id_or_slug):
        with db_session() as s:
            c = find_client(s, id_or_slug)
            if not c:
                abort(404)
            track_client_access(s, c)
            s.commit()
            cards = [client_property_view(p, a) for p, a in assigned_properties(s, c.id)]
            return render_template("client_public.html", client=c, manager=c.manager, cards=cards,
                                   client_key=c.slug or str(c.id))

    @app.route("/property/<int:property_id>")
    def property_page(property_id):
        client_key = (request.args.get("client") or "").strip()
        with db_session() as s:
            p = s.get(Property, property_id)
            if not p:
                abort(404)

            assignment = None
            managers = []
            c = find_client(s, client_key) if client_key else None
            if c:
                assignment = (
                    s.query(ClientPropertyAssignment)
                    .filter(ClientPropertyAssignment.client_id == c.id,
                            ClientPropertyAssignment.property_id == p.id)
                    .first()
                )
                managers = [c.manager]
            if not managers:
                managers = [link.manager for link in p.manager_links]

            view = client_property_view(p, assignment)
            return render_template("property_public.html", prop=view, managers=managers, client_key=client_key)

    # -----------------------------
    # Dashboard
    # -----------------------------
    @app.route("/admin")
    @login_required
    def admin_dashboard():
        with db_session() as s:
            ids = _visible_ids(s)
            if ids is None:
                client_count = s.query(func.count(Client.id)).scalar() or 0
                property_count = s.query(func.count(Property.id)).scalar() or 0
            else:
                client_count = len(ids)
                property_count = len(manager_property_ids(s, current_manager_id()))

            quotes_q = s.query(Quote).order_by(Quote.created_at.desc())
            invoices_q = s.query(Invoice).order_by(Invoice.created_at.desc())
            if not current_is_super_admin():
                quotes_q = quotes_q.filter(Quote.manager_id == current_manager_id())
                invoices_q = invoices_q.filter(Invoice.manager_id == current_manager_id())

            return render_template(
                "dashboard.html",
                client_count=client_count,
                property_count=property_count,
                recent_quotes=quotes_q.limit(5).all(),
                recent_invoices=invoices_q.limit(5).all(),
            )

    # -----------------------------
    # Managers (super admin)
    # -----------------------------
    @app.route("/admin/managers", methods=["GET", "POST"])
    @login_required
    @super_admin_required
    def managers():
        with db_session() as s:
            if request.method == "POST":
                email = (request.form.get("email") or "").strip().lower()
                name = (request.form.get("name") or "").strip()
                password = request.form.get("password") or ""
                role = (request.form.get("role") or "admin").strip()
                if role not in ROLES:
                    role = "admin"

                if not email or not name:
                    flash("Name and email are required.", "error")
                elif len(password) < 6:
                    flash("Password must be at least 6 characters.", "error")
                elif s.query(PropertyManager).filter(func.lower(PropertyManager.email) == email).first():
                    flash("A manager with that email already exists.", "error")
                else:
                    s.add(PropertyManager(
                        email=email,
                        name=name,
                        last_name=(request.form.get("last_name") or "").strip() or None,
                        phone=(request.form.get("phone") or "").strip() or None,
                        title=(request.form.get("title") or "").strip() or None,
                        role=role,
                        password_hash=generate_password_hash(password),
                    ))
                    s.commit()
                    app.logger.info("Manager %s added by %s", email, current_manager_id())
                    flash("Property manager added.", "success")
                    return redirect(url_for("managers"))

            return render_template("managers.html", managers=_managers(s), counts=client_counts_by_manager(s))

    @app.route("/admin/managers/<int:manager_id>")
    @login_required
    @super_admin_required
    def manager_detail(manager_id):
        with db_session() as s:
            m = s.get(PropertyManager, manager_id)
            if not m:
                abort(404)
            pids = manager_property_ids(s, m.id)
            props = s.query(Property).filter(Property.id.in_(pids)).order_by(Property.created_at.desc()).all() if pids else []
            return render_template("manager_detail.html", manager=m, clients=m.clients, properties=props)

    @app.route("/api/property-managers")
    @login_required
    def api_property_managers():
        with db_session() as s:
            return jsonify([
                {"id": m.id, "name": m.name, "last_name": m.last_name, "email": m.email, "role": m.role}
                for m in _managers(s)
            ])

    # -----------------------------
    # Properties
    # -----------------------------
    def _apply_property_form(p: Property, form):
        p.address = (form.get("address") or "").strip() or None
        p.bedrooms = (form.get("bedrooms") or "").strip() or None
        p.bathrooms = (form.get("bathrooms") or "").strip() or None
        p.area = (form.get("area") or "").strip() or None
        p.description = (form.get("description") or "").strip() or None
        p.images = [u.strip() for u in (form.get("images") or "").splitlines() if u.strip()]
        for kind in PRICE_KINDS:
            setattr(p, f"show_{kind}", _checked(form, f"show_{kind}"))
            setattr(p, f"custom_{kind}", _to_price(form.get(f"custom_{kind}")))

    def _pricing_fields(form) -> dict:
        out = {}
        for kind in PRICE_KINDS:
            out[f"show_{kind}"] = _checked(form, f"show_{kind}")
            out[f"custom_{kind}"] = _to_price(form.get(f"custom_{kind}"))
        return out

    def _rehost(urls, address):
        return rehost_for_address(
            urls, address,
            cloud_name=app.config["CLOUDINARY_CLOUD_NAME"],
            upload_preset=app.config["CLOUDINARY_UPLOAD_PRESET"],
        )

    def _describe(s, prop):
        return describe_property(s, prop, api_key=app.config["OPENAI_API_KEY"], model=app.config["OPENAI_MODEL"])

    def _import(s, url, client_id=None):
        return import_listing(
            s, url, current_manager_id(),
            client_id=client_id,
            pricing=_pricing_fields(request.form),
            api_key=app.config["HASDATA_API_KEY"],
            rehost=_rehost if app.config["CLOUDINARY_CLOUD_NAME"] else None,
            describe=_describe if app.config["OPENAI_API_KEY"] else None,
        )

    @app.route("/admin/properties")
    @login_required
    def properties():
        q = (request.args.get("q") or "").strip()
        with db_session() as s:
            props_q = s.query(Property).order_by(Property.created_at.desc())
            if not current_is_super_admin():
                pids = manager_property_ids(s, current_manager_id())
                props_q = props_q.filter(Property.id.in_(pids or {-1}))
            if q:
                like = f"%{q}%"
                props_q = props_q.filter(or_(Property.address.ilike(like), Property.agent_name.ilike(like)))
            props = props_q.all()
            return render_template(
                "properties.html",
                properties=props,
                q=q,
                saved=saved_property_ids(s, current_manager_id()),
                price_label=admin_primary_price_label,
                managers=_managers(s) if current_is_super_admin() else [],
            )

    @app.route("/admin/properties/new", methods=["GET", "POST"])
    @login_required
    def property_new():
        mode = (request.values.get("mode") or "scrape").strip()
        if request.method == "POST":
            with db_session() as s:
                if mode == "scrape":
                    try:
                        p = _import(s, request.form.get("url"))
                        s.commit()
                    except ScrapeError as e:
                        s.rollback()
                        flash(str(e), "error")
                        return render_template("property_form.html", mode=mode, form=request.form, prop=None)
                    flash("Property imported.", "success")
                    return redirect(url_for("property_edit", property_id=p.id))

                p = Property()
                _apply_property_form(p, request.form)
                if not p.address:
                    flash("Address is required.", "error")
                    return render_template("property_form.html", mode=mode, form=request.form, prop=None)
                s.add(p)
                s.flush()
                assign_property_to_managers(s, p.id, [current_manager_id()])
                if not p.description and app.config["OPENAI_API_KEY"]:
                    _describe(s, p)
                s.commit()
                flash("Property created.", "success")
                return redirect(url_for("property_edit", property_id=p.id))

        return render_template("property_form.html", mode=mode, form={}, prop=None)

    @app.route("/admin/properties/<int:property_id>/edit", methods=["GET", "POST"])
    @login_required
    def property_edit(property_id):
        with db_session() as s:
            p = _property_or_404(s, property_id)
            if request.method == "POST":
                _apply_property_form(p, request.form)
                for name in FIELD_TOGGLES:
                    setattr(p, name, _checked(request.form, name))
                s.commit()
                flash("Property updated.", "success")
                return redirect(url_for("property_edit", property_id=p.id))
            assigned_managers = {link.manager_id for link in p.manager_links}
            return render_template("property_form.html", mode="edit", form={}, prop=p,
                                   managers=_managers(s), assigned_managers=assigned_managers)

    @app.route("/admin/properties/<int:property_id>/delete", methods=["POST"])
    @login_required
    def property_delete(property_id):
        with db_session() as s:
            p = _property_or_404(s, property_id)
            s.delete(p)
            s.commit()
        flash("Property deleted.", "success")
        return redirect(url_for("properties"))

    @app.route("/admin/properties/<int:property_id>/save", methods=["POST"])
    @login_required
    def property_toggle_saved(property_id):
        with db_session() as s:
            _property_or_404(s, property_id)
            saved = toggle_saved_property(s, current_manager_id(), property_id)
            s.commit()
        if _wants_json():
            return jsonify({"saved": saved})
        return redirect(request.referrer or url_for("properties"))

    @app.route("/admin/properties/<int:property_id>/managers", methods=["POST"])
    @login_required
    @super_admin_required
    def property_managers(property_id):
        with db_session() as s:
            if not s.get(Property, property_id):
                abort(404)
            set_property_managers(s, property_id, _id_list(request.form.getlist("manager_ids")))
            s.commit()
        flash("Managers updated.", "success")
        return redirect(request.referrer or url_for("property_edit", property_id=property_id))

    # -----------------------------
    # Clients
    # -----------------------------
    def _apply_client_form(c: Client, form):
        c.name = (form.get("name") or "").strip()
        c.email = (form.get("email") or "").strip() or None
        c.phone = (form.get("phone") or "").strip() or None
        c.criteria = (form.get("criteria") or "").strip() or None
        status = (form.get("status") or "active").strip()
        c.status = status if status in CLIENT_STATUSES else "active"

    @app.route("/admin/clients", methods=["GET", "POST"])
    @login_required
    def clients():
        with db_session() as s:
            if request.method == "POST":
                c = Client(manager_id=current_manager_id())
                _apply_client_form(c, request.form)
                if not c.name:
                    flash("Client name is required.", "error")
                else:
                    c.slug = generate_slug(c.name)
                    s.add(c)
                    s.commit()
                    flash("Client added.", "success")
                    return redirect(url_for("client_detail", client_id=c.id))

            ids = _visible_ids(s)
            clients_q = s.query(Client).order_by(Client.name.asc())
            if ids is not None:
                clients_q = clients_q.filter(Client.id.in_(ids or {-1}))
            return render_template("clients.html", clients=clients_q.all(), all_view=False)

    @app.route("/admin/clients-all")
    @login_required
    @super_admin_required
    def clients_all():
        with db_session() as s:
            all_clients = s.query(Client).options(selectinload(Client.shares)).order_by(Client.name.asc()).all()
            return render_template("clients.html", clients=all_clients, all_view=True, managers=_managers(s))

    @app.route("/admin/clients/<int:client_id>")
    @login_required
    def client_detail(client_id):
        mode = (request.args.get("mode") or "scraped").strip()
        if mode not in VIEW_MODES:
            mode = "scraped"
        q = (request.args.get("q") or "").strip()
        with db_session() as s:
            c = _client_or_404(s, client_id)
            return render_template(
                "client_detail.html",
                client=c,
                assigned=assigned_properties(s, c.id),
                available=available_properties(s, c, current_manager_id(), mode, q),
                mode=mode,
                q=q,
                price_label=admin_primary_price_label,
                managers=_managers(s) if current_is_super_admin() else [],
                shared_ids={sh.shared_with_manager_id for sh in c.shares},
            )

    @app.route("/admin/clients/<int:client_id>/edit", methods=["GET", "POST"])
    @login_required
    def client_edit(client_id):
        with db_session() as s:
            c = _client_or_404(s, client_id)
            if request.method == "POST":
                _apply_client_form(c, request.form)
                if not c.name:
                    flash("Client name is required.", "error")
                    return render_template("client_form.html", client=c, statuses=CLIENT_STATUSES)
                s.commit()
                flash("Client updated.", "success")
                return redirect(url_for("client_detail", client_id=c.id))
            return render_template("client_form.html", client=c, statuses=CLIENT_STATUSES)

    @app.route("/admin/clients/<int:client_id>/delete", methods=["POST"])
    @login_required
    def client_delete(client_id):
        with db_session() as s:
            c = _client_or_404(s, client_id)
            if not current_is_super_admin() and c.manager_id != current_manager_id():
                abort(403)
            s.delete(c)
            s.commit()
        flash("Client deleted.", "success")
        return redirect(url_for("clients"))

    @app.route("/admin/clients/<int:client_id>/assign", methods=["POST"])
    @login_required
    def client_assign(client_id):
        with db_session() as s:
            _client_or_404(s, client_id)
            try:
                pid = int(request.form.get("property_id") or 0)
            except ValueError:
                abort(400)
            pricing = pricing_from_form(request.form) if request.form.get("pricing") == "custom" else None
            try:
                assign_property_to_client(s, client_id, pid, pricing)
                s.commit()
                flash("Property assigned.", "success")
            except ValueError as e:
                s.rollback()
                flash(str(e), "error")
        return redirect(url_for("client_detail", client_id=client_id, mode=request.form.get("mode") or "scraped"))

    @app.route("/admin/clients/<int:client_id>/bulk-assign", methods=["POST"])
    @login_required
    def client_bulk_assign(client_id):
        with db_session() as s:
            _client_or_404(s, client_id)
            pricing = all_pricing_enabled() if request.form.get("pricing") == "all" else None
            n = bulk_assign_properties(s, client_id, _id_list(request.form.getlist("property_ids")), pricing)
            s.commit()
        flash(f"{n} properties assigned.", "success")
        return redirect(url_for("client_detail", client_id=client_id, mode=request.form.get("mode") or "scraped"))

    @app.route("/admin/clients/<int:client_id>/bulk-remove", methods=["POST"])
    @login_required
    def client_bulk_remove(client_id):
        with db_session() as s:
            _client_or_404(s, client_id)
            n = bulk_remove_properties(s, client_id, _id_list(request.form.getlist("property_ids")))
            s.commit()
        flash(f"{n} properties removed.", "success")
        return redirect(url_for("client_detail", client_id=client_id))

    @app.route("/admin/clients/<int:client_id>/properties/<int:property_id>/remove", methods=["POST"])
    @login_required
    def client_remove_property(client_id, property_id):
        with db_session() as s:
            _client_or_404(s, client_id)
            removed = remove_property_from_client(s, client_id, property_id)
            s.commit()
        flash("Property removed." if removed else "Property was not assigned.", "success" if removed else "error")
        return redirect(url_for("client_detail", client_id=client_id))

    @app.route("/admin/clients/<int:client_id>/properties/<int:property_id>/pricing", methods=["POST"])
    @login_required
    def client_update_pricing(client_id, property_id):
        with db_session() as s:
            _client_or_404(s, client_id)
            try:
                update_client_pricing(s, client_id, property_id, pricing_from_form(request.form))
                s.commit()
                flash("Pricing visibility updated.", "success")
            except ValueError as e:
                flash(str(e), "error")
        return redirect(url_for("client_detail", client_id=client_id))

    @app.route("/admin/clients/<int:client_id>/order", methods=["GET", "POST"])
    @login_required
    def client_order_api(client_id):
        with db_session() as s:
            _client_or_404(s, client_id)
            if request.method == "GET":
                return jsonify({"propertyIds": client_order(s, client_id)})

            payload = request.get_json(silent=True)
            if not isinstance(payload, dict):
                return jsonify({"error": "Expected a JSON object with propertyIds",
                                "propertyIds": client_order(s, client_id)}), 400
            try:
                ids = parse_id_list(payload.get("propertyIds"))
                persist_client_order(s, client_id, ids)
                s.commit()
            except OrderingError as e:
                s.rollback()
                app.logger.warning("Rejected reorder for client %s: %s", client_id, e)
                return jsonify({"error": str(e), "propertyIds": client_order(s, client_id)}), 400
            return jsonify({"ok": True, "propertyIds": ids})

    @app.route("/admin/clients/<int:client_id>/properties/<int:property_id>/move-up", methods=["POST"],
               defaults={"direction": "up"}, endpoint="client_move_up")
    @app.route("/admin/clients/<int:client_id>/properties/<int:property_id>/move-down", methods=["POST"],
               defaults={"direction": "down"}, endpoint="client_move_down")
    @login_required
    def client_move_property(client_id, property_id, direction):
        with db_session() as s:
            _client_or_404(s, client_id)
            try:
                ids = move_client_property(s, client_id, property_id, direction)
                s.commit()
            except OrderingError as e:
                s.rollback()
                if _wants_json():
                    return _json_error(str(e), 400)
                flash(str(e), "error")
                return redirect(url_for("client_detail", client_id=client_id))
        if _wants_json():
            return jsonify({"ok": True, "propertyIds": ids})
        return redirect(url_for("client_detail", client_id=client_id))

    @app.route("/admin/clients/<int:client_id>/scrape", methods=["POST"])
    @login_required
    def client_scrape(client_id):
        with db_session() as s:
            _client_or_404(s, client_id)
            try:
                p = _import(s, request.form.get("url"), client_id=client_id)
                s.commit()
            except ScrapeError as e:
                s.rollback()
                flash(str(e), "error")
                return redirect(url_for("client_detail", client_id=client_id, mode="scraped"))
            if not p.images:
                flash("No images were found for this listing. Add some on the edit page.", "error")
            else:
                flash("Property scraped. Assign it from the available list.", "success")
        return redirect(url_for("client_detail", client_id=client_id, mode="scraped"))

    @app.route("/api/clients/assign-admins", methods=["POST"])
    @login_required
    @super_admin_required
    def api_assign_admins():
        payload = request.get_json(silent=True) or {}
        client_id = payload.get("clientId")
        manager_ids = payload.get("managerIds")
        if not client_id or not isinstance(manager_ids, list):
            return _json_error("Invalid request data", 400)
        try:
            client_id = int(client_id)
            manager_ids = [int(m) for m in manager_ids]
        except (TypeError, ValueError):
            return _json_error("Invalid request data", 400)

        with db_session() as s:
            try:
                added, removed = set_client_admins(s, client_id, manager_ids, current_manager_id())
            except LookupError:
                return _json_error("Client not found", 404)
            s.commit()
        app.logger.info("Client %s shares: +%s -%s", client_id, added, removed)
        return jsonify({"success": True, "added": added, "removed": removed})

    # -----------------------------
    # Quotes
    # -----------------------------
    def _client_choices(s):
        ids = _visible_ids(s)
        q = s.query(Client).order_by(Client.name.asc())
        if ids is not None:
            q = q.filter(Client.id.in_(ids or {-1}))
        return q.all()

    def _apply_billing_party(doc, form, s):
        client_id = form.get("client_id")
        doc.client_id = None
        if client_id and client_id.isdigit():
            c = s.get(Client, int(client_id))
            if c and can_access_client(s, c, current_manager_id(), current_is_super_admin()):
                doc.client_id = c.id
                doc.client_name = (form.get("client_name") or "").strip() or c.name
                doc.client_email = (form.get("client_email") or "").strip() or (c.email or "")
                return
        doc.client_name = (form.get("client_name") or "").strip()
        doc.client_email = (form.get("client_email") or "").strip()

    def _fill_quote(q: Quote, form, s):
        _apply_billing_party(q, form, s)
        q.expiration_date = _parse_date(
            form.get("expiration_date"),
            q.expiration_date or date.today() + timedelta(days=app.config["QUOTE_VALID_DAYS"]),
        )
        q.tax_rate = _to_float(form.get("tax_rate"), 0.0)
        q.notes = (form.get("notes") or "").rstrip() or None
        q.service_items.clear()
        for idx, (name, desc, price, imgs) in enumerate(_parse_quote_items(form)):
            q.service_items.append(QuoteServiceItem(
                service_name=name, description=desc or None, price=price, images=imgs, position=idx,
            ))

    @app.route("/admin/quotes")
    @login_required
    def quotes():
        status = (request.args.get("status") or "").strip()
        with db_session() as s:
            qs = s.query(Quote).options(selectinload(Quote.service_items)).order_by(Quote.created_at.desc())
            if not current_is_super_admin():
                qs = qs.filter(Quote.manager_id == current_manager_id())
            if status in QUOTE_STATUSES:
                qs = qs.filter(Quote.status == status)
            return render_template("quotes_list.html", quotes=qs.all(), status=status or "all",
                                   statuses=QUOTE_STATUSES, is_expired=quote_is_expired)

    @app.route("/admin/quotes/new", methods=["GET", "POST"])
    @login_required
    def quote_new():
        with db_session() as s:
            if request.method == "POST":
                q = Quote(manager_id=current_manager_id(), status="draft")
                _fill_quote(q, request.form, s)
                if not q.client_name or not q.service_items:
                    flash("Client name and at least one service are required.", "error")
                    return render_template("quote_form.html", mode="new", quote=None, form=request.form,
                                           clients=_client_choices(s))
                q.quote_number = next_document_number(s, "quote", date.today().year, app.config["DOC_SEQ_WIDTH"])
                s.add(q)
                s.commit()
                return redirect(url_for("quote_view", quote_id=q.id))

            default_exp = date.today() + timedelta(days=app.config["QUOTE_VALID_DAYS"])
            return render_template("quote_form.html", mode="new", quote=None, form={},
                                   clients=_client_choices(s), default_expiration=default_exp.isoformat())

    @app.route("/admin/quotes/<int:quote_id>")
    @login_required
    def quote_view(quote_id):
        with db_session() as s:
            q = _quote_or_404(s, quote_id)
            return render_template("quote_view.html", quote=q, expired=quote_is_expired(q),
                                   public_url=url_for("public_quote", number=q.quote_number, _external=True))

    @app.route("/admin/quotes/<int:quote_id>/edit", methods=["GET", "POST"])
    @login_required
    def quote_edit(quote_id):
        with db_session() as s:
            q = _quote_or_404(s, quote_id)
            if q.status not in ("draft", "sent", "viewed"):
                flash(f"A {q.status} quote can no longer be edited.", "error")
                return redirect(url_for("quote_view", quote_id=q.id))
            if request.method == "POST":
                _fill_quote(q, request.form, s)
                if not q.client_name or not q.service_items:
                    s.rollback()
                    flash("Client name and at least one service are required.", "error")
                    return redirect(url_for("quote_edit", quote_id=quote_id))
                if q.pdf_customization:
                    # item ids changed, overrides keyed by the old ids are stale
                    q.pdf_customization = {k: v for k, v in q.pdf_customization.items() if k != "service_overrides"}
                s.commit()
                return redirect(url_for("quote_view", quote_id=q.id))
            return render_template("quote_form.html", mode="edit", quote=q, form={}, clients=_client_choices(s))

    @app.route("/admin/quotes/<int:quote_id>/send", methods=["POST"])
    @login_required
    def quote_send(quote_id):
        with db_session() as s:
            q = _quote_or_404(s, quote_id)
            try:
                mark_quote_sent(q)
            except WorkflowError as e:
                flash(str(e), "error")
                return redirect(url_for("quote_view", quote_id=quote_id))
            s.commit()

            if q.client_email and smtp_configured(config_object):
                public_url = url_for("public_quote", number=q.quote_number, _external=True)
                subject, body = quote_email(q, public_url, app.config["COMPANY_NAME"])
                try:
                    path = generate_and_store_quote_pdf(s, q.id, exports_dir=app.config["EXPORTS_DIR"], company=company())
                    send_document_email(q.client_email, subject, body, path, cfg=config_object)
                    flash(f"Quote emailed to {q.client_email}.", "success")
                except Exception as e:
                    app.logger.exception("Quote email failed for %s", q.quote_number)
                    flash(f"Quote marked as sent, but the email failed: {e}", "error")
            else:
                flash("Quote marked as sent. Share the public link with your client.", "success")
        return redirect(url_for("quote_view", quote_id=quote_id))

    @app.route("/admin/quotes/<int:quote_id>/delete", methods=["POST"])
    @login_required
    def quote_delete(quote_id):
        with db_session() as s:
            q = _quote_or_404(s, quote_id)
            pdf_path = q.pdf_path
            s.delete(q)
            s.commit()
        if pdf_path and os.path.exists(pdf_path):
            try:
                os.remove(pdf_path)
            except OSError:
                app.logger.warning("Could not remove %s", pdf_path)
        flash("Quote deleted.", "success")
        return redirect(url_for("quotes"))

    @app.route("/admin/quotes/<int:quote_id>/convert", methods=["POST"])
    @login_required
    def quote_convert(quote_id):
        with db_session() as s:
            q = _quote_or_404(s, quote_id)
            try:
                inv = convert_quote_to_invoice(s, q, app.config["DOC_SEQ_WIDTH"], app.config["INVOICE_DUE_DAYS"])
            except WorkflowError as e:
                s.rollback()
                flash(str(e), "error")
                return redirect(url_for("quote_view", quote_id=quote_id))
            s.commit()
            flash(f"Invoice {inv.invoice_number} created from quote.", "success")
            return redirect(url_for("invoice_view", invoice_id=inv.id))

    @app.route("/admin/quotes/<int:quote_id>/pdf-builder", methods=["GET", "POST"])
    @login_required
    def quote_pdf_builder(quote_id):
        with db_session() as s:
            q = _quote_or_404(s, quote_id)
            if request.method == "POST":
                action = (request.form.get("action") or "save").strip()
                if action == "reset":
                    q.pdf_customization = None
                    s.commit()
                    flash("PDF customization reset.", "success")
                    return redirect(url_for("quote_pdf_builder", quote_id=quote_id))

                customization = customization_from_form(request.form, q.service_items)
                if action == "preview":
                    data = render_quote_preview(s, q.id, customization, company=company())
                    return _pdf_response(io.BytesIO(data), f"{q.quote_number}-preview.pdf", as_attachment=False)

                q.pdf_customization = customization
                s.commit()
                flash("PDF customization saved successfully", "success")
                return redirect(url_for("quote_pdf_builder", quote_id=quote_id))

            return render_template("quote_pdf_builder.html", quote=q, state=builder_initial_state(q),
                                   header_icons=HEADER_ICONS)

    @app.route("/admin/quotes/<int:quote_id>/pdf")
    @login_required
    def quote_pdf_download(quote_id):
        with db_session() as s:
            q = _quote_or_404(s, quote_id)
            path = generate_and_store_quote_pdf(s, q.id, exports_dir=app.config["EXPORTS_DIR"], company=company())
            return _pdf_response(path, f"{q.quote_number}.pdf")

    def _draft_hidden(q: Quote) -> bool:
        """Drafts are only reachable by their manager (or a super admin) until sent."""
        if q.status != "draft":
            return False
        if not current_user.is_authenticated:
            return True
        return not (current_is_super_admin() or q.manager_id == current_manager_id())

    @app.route("/api/quotes/<int:quote_id>/pdf")
    def api_quote_pdf(quote_id):
        with db_session() as s:
            q = s.get(Quote, quote_id)
            if q is None or _draft_hidden(q):
                abort(404)
            try:
                path = generate_and_store_quote_pdf(s, q.id, exports_dir=app.config["EXPORTS_DIR"], company=company())
            except Exception:
                app.logger.exception("PDF generation failed for quote %s", quote_id)
                return _json_error("Failed to generate PDF", 500)
            return _pdf_response(path, f"{q.quote_number}.pdf")

    def _public_quote_or_404(s, number) -> Quote:
        q = (
            s.query(Quote)
            .options(selectinload(Quote.service_items))
            .filter(Quote.quote_number == number)
            .first()
        )
        if not q or _draft_hidden(q):
            abort(404)
        return q

    @app.route("/quote/<number>")
    def public_quote(number):
        with db_session() as s:
            q = _public_quote_or_404(s, number)
            if mark_quote_viewed(q):
                s.commit()
            customization = q.pdf_customization or {}
            return render_template(
                "quote_public.html",
                quote=q,
                layout=layout_for(customization),
                title=header_title(customization),
                services=layout_items(q, customization),
                notes=notes_text(q, customization),
                terms=terms_lines(customization),
                expired=quote_is_expired(q),
                can_respond=quote_can_respond(q),
            )

    @app.route("/quote/<number>/accept", methods=["POST"], defaults={"decision": "accept"}, endpoint="public_quote_accept")
    @app.route("/quote/<number>/decline", methods=["POST"], defaults={"decision": "decline"}, endpoint="public_quote_decline")
    def public_quote_respond(number, decision):
        with db_session() as s:
            q = _public_quote_or_404(s, number)
            try:
                (accept_quote if decision == "accept" else decline_quote)(q)
            except WorkflowError as e:
                flash(str(e), "error")
                return redirect(url_for("public_quote", number=number))
            s.commit()
            app.logger.info("Quote %s %sed by client", number, decision)
        flash("Thank you! Your quote has been accepted." if decision == "accept" else "The quote has been declined.",
              "success")
        return redirect(url_for("public_quote", number=number))

    # -----------------------------
    # Invoices
    # -----------------------------
    def _fill_invoice(inv: Invoice, form, s):
        _apply_billing_party(inv, form, s)
        inv.due_date = _parse_date(
            form.get("due_date"),
            inv.due_date or date.today() + timedelta(days=app.config["INVOICE_DUE_DAYS"]),
        )
        inv.tax_rate = _to_float(form.get("tax_rate"), 0.0)
        inv.notes = (form.get("notes") or "").rstrip() or None
        inv.line_items.clear()
        for idx, (desc, qty, price) in enumerate(_parse_invoice_items(form)):
            inv.line_items.append(InvoiceLineItem(description=desc, quantity=qty, unit_price=price, position=idx))

    @app.route("/admin/invoices")
    @login_required
    def invoices():
        status = (request.args.get("status") or "").strip()
        with db_session() as s:
            qs = s.query(Invoice).options(selectinload(Invoice.line_items)).order_by(Invoice.created_at.desc())
            if not current_is_super_admin():
                qs = qs.filter(Invoice.manager_id == current_manager_id())
            if status in INVOICE_STATUSES:
                qs = qs.filter(Invoice.status == status)
            return render_template("invoices_list.html", invoices=qs.all(), status=status or "all",
                                   statuses=INVOICE_STATUSES, is_overdue=invoice_is_overdue)

    @app.route("/admin/invoices/new", methods=["GET", "POST"])
    @login_required
    def invoice_new():
        with db_session() as s:
            if request.method == "POST":
                inv = Invoice(manager_id=current_manager_id(), status="draft")
                _fill_invoice(inv, request.form, s)
                if not inv.client_name or not inv.line_items:
                    flash("Client name and at least one line item are required.", "error")
                    return render_template("invoice_form.html", mode="new", invoice=None, form=request.form,
                                           clients=_client_choices(s))
                inv.invoice_number = next_document_number(s, "invoice", date.today().year, app.config["DOC_SEQ_WIDTH"])
                s.add(inv)
                s.commit()
                return redirect(url_for("invoice_view", invoice_id=inv.id))

            default_due = date.today() + timedelta(days=app.config["INVOICE_DUE_DAYS"])
            return render_template("invoice_form.html", mode="new", invoice=None, form={},
                                   clients=_client_choices(s), default_due=default_due.isoformat())

    @app.route("/admin/invoices/<int:invoice_id>")
    @login_required
    def invoice_view(invoice_id):
        with db_session() as s:
            inv = _invoice_or_404(s, invoice_id)
            return render_template("invoice_view.html", invoice=inv, overdue=invoice_is_overdue(inv),
                                   public_url=url_for("public_invoice", number=inv.invoice_number, _external=True))

    @app.route("/admin/invoices/<int:invoice_id>/edit", methods=["GET", "POST"])
    @login_required
    def invoice_edit(invoice_id):
        with db_session() as s:
            inv = _invoice_or_404(s, invoice_id)
            if inv.status == "paid":
                flash("Paid invoices can no longer be edited.", "error")
                return redirect(url_for("invoice_view", invoice_id=inv.id))
            if request.method == "POST":
                _fill_invoice(inv, request.form, s)
                if not inv.client_name or not inv.line_items:
                    s.rollback()
                    flash("Client name and at least one line item are required.", "error")
                    return redirect(url_for("invoice_edit", invoice_id=invoice_id))
                s.commit()
                return redirect(url_for("invoice_view", invoice_id=inv.id))
            return render_template("invoice_form.html", mode="edit", invoice=inv, form={}, clients=_client_choices(s))

    @app.route("/admin/invoices/<int:invoice_id>/send", methods=["POST"])
    @login_required
    def invoice_send(invoice_id):
        with db_session() as s:
            inv = _invoice_or_404(s, invoice_id)
            try:
                mark_invoice_sent(inv)
            except WorkflowError as e:
                flash(str(e), "error")
                return redirect(url_for("invoice_view", invoice_id=invoice_id))
            s.commit()

            if inv.client_email and smtp_configured(config_object):
                public_url = url_for("public_invoice", number=inv.invoice_number, _external=True)
                subject, body = invoice_email(inv, public_url, app.config["COMPANY_NAME"])
                try:
                    path = generate_and_store_invoice_pdf(s, inv.id, exports_dir=app.config["EXPORTS_DIR"], company=company())
                    send_document_email(inv.client_email, subject, body, path, cfg=config_object)
                    flash(f"Invoice emailed to {inv.client_email}.", "success")
                except Exception as e:
                    app.logger.exception("Invoice email failed for %s", inv.invoice_number)
                    flash(f"Invoice marked as sent, but the email failed: {e}", "error")
            else:
                flash("Invoice marked as sent.", "success")
        return redirect(url_for("invoice_view", invoice_id=invoice_id))

    @app.route("/admin/invoices/<int:invoice_id>/mark-paid", methods=["POST"])
    @login_required
    def invoice_mark_paid(invoice_id):
        with db_session() as s:
            inv = _invoice_or_404(s, invoice_id)
            try:
                mark_invoice_paid(inv)
            except WorkflowError as e:
                flash(str(e), "error")
                return redirect(url_for("invoice_view", invoice_id=invoice_id))
            s.commit()
        flash("Invoice marked as paid.", "success")
        return redirect(url_for("invoice_view", invoice_id=invoice_id))

    @app.route("/admin/invoices/<int:invoice_id>/delete", methods=["POST"])
    @login_required
    def invoice_delete(invoice_id):
        with db_session() as s:
            inv = _invoice_or_404(s, invoice_id)
            pdf_path = inv.pdf_path
            s.query(Quote).filter(Quote.converted_invoice_id == inv.id).update({"converted_invoice_id": None})
            s.delete(inv)
            s.commit()
        if pdf_path and os.path.exists(pdf_path):
            try:
                os.remove(pdf_path)
            except OSError:
                app.logger.warning("Could not remove %s", pdf_path)
        flash("Invoice deleted.", "success")
        return redirect(url_for("invoices"))

    @app.route("/admin/invoices/<int:invoice_id>/pdf")
    @login_required
    def invoice_pdf_download(invoice_id):
        with db_session() as s:
            inv = _invoice_or_404(s, invoice_id)
            path = generate_and_store_invoice_pdf(s, inv.id, exports_dir=app.config["EXPORTS_DIR"], company=company())
            return _pdf_response(path, f"{inv.invoice_number}.pdf")

    def _public_invoice_or_404(s, number) -> Invoice:
        inv = (
            s.query(Invoice)
            .options(selectinload(Invoice.line_items))
            .filter(Invoice.invoice_number == number)
            .first()
        )
        if not inv or inv.status == "draft":
            abort(404)
        return inv

    @app.route("/invoice/<number>")
    def public_invoice(number):
        with db_session() as s:
            inv = _public_invoice_or_404(s, number)
            if mark_invoice_viewed(inv):
                s.commit()
            return render_template("invoice_public.html", invoice=inv, overdue=invoice_is_overdue(inv),
                                   stripe_key=app.config["STRIPE_PUBLISHABLE_KEY"])

    @app.route("/api/invoice/<number>/pdf")
    def api_invoice_pdf(number):
        with db_session() as s:
            inv = _public_invoice_or_404(s, number)
            try:
                path = generate_and_store_invoice_pdf(s, inv.id, exports_dir=app.config["EXPORTS_DIR"], company=company())
            except Exception:
                app.logger.exception("PDF generation failed for invoice %s", number)
                return _json_error("Failed to generate PDF", 500)
            return _pdf_response(path, f"{inv.invoice_number}.pdf")

    @app.route("/api/stripe/create-payment-intent", methods=["POST"])
    def api_create_payment_intent():
        payload = request.get_json(silent=True) or {}
        number = (payload.get("invoiceNumber") or "").strip()
        with db_session() as s:
            inv = s.query(Invoice).filter(Invoice.invoice_number == number).first() if number else None
            if inv is not None and inv.status == "paid":
                return _json_error("Invoice is already paid", 400)
            amount = inv.total() if inv is not None else payload.get("amount")
            try:
                result = create_payment_intent(
                    amount,
                    number,
                    client_email=inv.client_email if inv else (payload.get("clientEmail") or ""),
                    client_name=inv.client_name if inv else (payload.get("clientName") or ""),
                    secret_key=app.config["STRIPE_SECRET_KEY"],
                    currency=app.config["STRIPE_CURRENCY"],
                )
            except PaymentConfigError:
                app.logger.error("Stripe is not configured")
                return _json_error("Failed to create payment intent", 500)
            except PaymentError as e:
                return _json_error(str(e), 400)
            except Exception:
                app.logger.exception("Error creating payment intent for %s", number)
                return _json_error("Failed to create payment intent", 500)

            if inv is not None:
                inv.stripe_payment_intent_id = result["payment_intent_id"]
                s.commit()
        return jsonify({"clientSecret": result["client_secret"]})

    # -----------------------------
    # Utility JSON
    # -----------------------------
    @app.route("/api/upload-images", methods=["POST"])
    @login_required
    def api_upload_images():
        cloud = dict(cloud_name=app.config["CLOUDINARY_CLOUD_NAME"], upload_preset=app.config["CLOUDINARY_UPLOAD_PRESET"])

        files = request.files.getlist("files") or request.files.getlist("file")
        if files:
            urls = []
            for f in files:
                data = f.read()
                try:
                    validate_upload(f.filename, f.mimetype, len(data), app.config["MAX_UPLOAD_BYTES"])
                    urls.append(upload_file(io.BytesIO(data), f.filename, f.mimetype,
                                            folder=app.config["CLOUDINARY_FOLDER"], **cloud))
                except UploadError as e:
                    return _json_error(str(e), 400)
            return jsonify({"urls": urls})

        payload = request.get_json(silent=True) or {}
        image_urls = payload.get("imageUrls")
        if not isinstance(image_urls, list) or not image_urls:
            return _json_error("imageUrls must be a non-empty list", 400)
        folder = folder_for_address(payload.get("propertyAddress"), app.config["CLOUDINARY_FOLDER"])
        urls = rehost_remote_images([u for u in image_urls if isinstance(u, str) and u], folder=folder, **cloud)
        return jsonify({"urls": urls})

    @app.route("/api/generate-description", methods=["POST"])
    @login_required
    def api_generate_description():
        payload = request.get_json(silent=True) or {}
        try:
            text = generate_property_description(
                payload.get("address"), payload.get("bedrooms"), payload.get("bathrooms"), payload.get("area"),
                api_key=app.config["OPENAI_API_KEY"], model=app.config["OPENAI_MODEL"],
            )
        except RuntimeError as e:
            return _json_error(str(e), 500)
        except Exception:
            app.logger.exception("Description generation failed")
            return _json_error("Failed to generate description", 500)

        property_id = payload.get("propertyId")
        if property_id:
            with db_session() as s:
                try:
                    p = _property_or_404(s, int(property_id))
                except (TypeError, ValueError):
                    return _json_error("Invalid propertyId", 400)
                p.description = text
                s.commit()
        return jsonify({"description": text})

    @app.errorhandler(403)
    def forbidden(_e):
        if _wants_json():
            return _json_error(SUPER_ADMIN_DENIED, 403)
        return render_template("error.html", code=403, message="You do not have access to this page."), 403

    @app.errorhandler(404)
    def not_found(_e):
        if _wants_json():
            return _json_error("Not found", 404)
        return render_template("error.html", code=404, message="Page not found."), 404

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(debug=True)
