# models.py
from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    create_engine,
    String,
    Text,
    Integer,
    Float,
    Boolean,
    Date,
    DateTime,
    JSON,
    ForeignKey,
    UniqueConstraint,
    select,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
    sessionmaker,
)

# -----------------------------
# SQLAlchemy base
# -----------------------------
class Base(DeclarativeBase):
    pass


# -----------------------------
# People
# -----------------------------
class PropertyManager(Base):
    """
    An administrator of the concierge. Owns clients, quotes and invoices.
    role is "admin" or "super_admin".
    """
    __tablename__ = "property_managers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    last_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    title: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    role: Mapped[str] = mapped_column(String(32), nullable=False, default="admin")

    profile_picture_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    instagram_url: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    facebook_url: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    linkedin_url: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    twitter_url: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    clients: Mapped[list["Client"]] = relationship(back_populates="manager", order_by="Client.name")

    def full_name(self) -> str:
        return " ".join(p for p in [(self.name or "").strip(), (self.last_name or "").strip()] if p)


class ListingAgent(Base):
    """Listing agent scraped from a listing. Phone is the identity."""
    __tablename__ = "listing_agents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    broker_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class Client(Base):
    __tablename__ = "clients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    manager_id: Mapped[int] = mapped_column(ForeignKey("property_managers.id"), nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")   # active | pending | closed
    slug: Mapped[Optional[str]] = mapped_column(String(120), unique=True, nullable=True, index=True)
    criteria: Mapped[Optional[str]] = mapped_column(Text, nullable=True)                 # what the client is looking for
    last_accessed: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    manager: Mapped["PropertyManager"] = relationship(back_populates="clients")
    assignments: Mapped[list["ClientPropertyAssignment"]] = relationship(
        back_populates="client",
        cascade="all, delete-orphan",
        order_by="ClientPropertyAssignment.position",
    )
    shares: Mapped[list["ClientShare"]] = relationship(
        back_populates="client",
        cascade="all, delete-orphan",
    )


class ClientShare(Base):
    """Grants another manager access to a client owned by someone else."""
    __tablename__ = "client_shares"
    __table_args__ = (UniqueConstraint("client_id", "shared_with_manager_id", name="uq_client_shares_client_manager"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    client_id: Mapped[int] = mapped_column(ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    shared_with_manager_id: Mapped[int] = mapped_column(ForeignKey("property_managers.id", ondelete="CASCADE"), nullable=False, index=True)
    shared_by_manager_id: Mapped[Optional[int]] = mapped_column(ForeignKey("property_managers.id", ondelete="SET NULL"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    client: Mapped["Client"] = relationship(back_populates="shares")


# -----------------------------
# Listings
# -----------------------------
class Property(Base):
    """
    A listing. Specs are free text (scraped values can be ranges like "2-3").
    Pricing is opt-in per kind: show_<kind> + custom_<kind>.
    """
    __tablename__ = "properties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True, index=True)
    bedrooms: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    bathrooms: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    area: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    zillow_url: Mapped[Optional[str]] = mapped_column(String(1000), unique=True, nullable=True, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    images: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    show_monthly_rent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    custom_monthly_rent: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    show_nightly_rate: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    custom_nightly_rate: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    show_purchase_price: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    custom_purchase_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    show_bedrooms: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    show_bathrooms: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    show_area: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    show_address: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    show_images: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Backend only, never rendered on client pages
    agent_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True, index=True)
    agent_phone: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    agent_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    broker_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    listing_agent_id: Mapped[Optional[int]] = mapped_column(ForeignKey("listing_agents.id", ondelete="SET NULL"), nullable=True)

    scraped_for_client_id: Mapped[Optional[int]] = mapped_column(ForeignKey("clients.id", ondelete="SET NULL"), nullable=True, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    scraped_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    manager_links: Mapped[list["PropertyManagerAssignment"]] = relationship(
        back_populates="property",
        cascade="all, delete-orphan",
    )
    client_links: Mapped[list["ClientPropertyAssignment"]] = relationship(
        back_populates="property",
        cascade="all, delete-orphan",
    )
    listing_agent: Mapped[Optional["ListingAgent"]] = relationship()

    def image_list(self) -> list[str]:
        return [u for u in (self.images or []) if isinstance(u, str) and u.strip()]


class PropertyManagerAssignment(Base):
    __tablename__ = "property_manager_assignments"
    __table_args__ = (UniqueConstraint("property_id", "manager_id", name="uq_property_manager"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    property_id: Mapped[int] = mapped_column(ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True)
    manager_id: Mapped[int] = mapped_column(ForeignKey("property_managers.id", ondelete="CASCADE"), nullable=False, index=True)

    property: Mapped["Property"] = relationship(back_populates="manager_links")
    manager: Mapped["PropertyManager"] = relationship()


class SavedProperty(Base):
    """A manager's starred properties."""
    __tablename__ = "saved_properties"
    __table_args__ = (UniqueConstraint("manager_id", "property_id", name="uq_saved_properties"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    manager_id: Mapped[int] = mapped_column(ForeignKey("property_managers.id", ondelete="CASCADE"), nullable=False, index=True)
    property_id: Mapped[int] = mapped_column(ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class ClientPropertyAssignment(Base):
    """
    A property shown to a client, in `position` order, with per-client
    switches for each price kind.
    """
    __tablename__ = "client_property_assignments"
    __table_args__ = (UniqueConstraint("client_id", "property_id", name="uq_client_property"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    client_id: Mapped[int] = mapped_column(ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    property_id: Mapped[int] = mapped_column(ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    show_monthly_rent_to_client: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    show_nightly_rate_to_client: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    show_purchase_price_to_client: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    client: Mapped["Client"] = relationship(back_populates="assignments")
    property: Mapped["Property"] = relationship(back_populates="client_links")


# -----------------------------
# Billing
# -----------------------------
class DocumentSequence(Base):
    """
    Stores the last used sequence number per (kind, year).
    Used to generate numbers like INV-YYYY-###### and QT-YYYY-######.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (UniqueConstraint("kind", "year", name="uq_document_sequences_kind_year"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    last_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class _BillingTotals:
    """Totals are computed from the items, never stored."""

    def _item_totals(self) -> list[float]:
        raise NotImplementedError

    def subtotal(self) -> float:
        return round(sum(self._item_totals()), 2)

    def tax_amount(self) -> float:
        return round(self.subtotal() * float(self.tax_rate or 0.0) / 100.0, 2)

    def total(self) -> float:
        return round(self.subtotal() + self.tax_amount(), 2)


class Quote(_BillingTotals, Base):
    __tablename__ = "quotes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    quote_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    manager_id: Mapped[int] = mapped_column(ForeignKey("property_managers.id"), nullable=False, index=True)
    client_id: Mapped[Optional[int]] = mapped_column(ForeignKey("clients.id", ondelete="SET NULL"), nullable=True)

    client_name: Mapped[str] = mapped_column(String(200), nullable=False)
    client_email: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    expiration_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="draft", index=True)
    tax_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Branded PDF overrides, see quote_customization.py
    pdf_customization: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    viewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    declined_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    converted_invoice_id: Mapped[Optional[int]] = mapped_column(ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True)

    pdf_path: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    pdf_generated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    service_items: Mapped[list["QuoteServiceItem"]] = relationship(
        back_populates="quote",
        cascade="all, delete-orphan",
        order_by="QuoteServiceItem.position",
    )

    def _item_totals(self) -> list[float]:
        return [float(i.price or 0.0) for i in self.service_items]


class QuoteServiceItem(Base):
    __tablename__ = "quote_service_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    quote_id: Mapped[int] = mapped_column(ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False, index=True)

    service_name: Mapped[str] = mapped_column(String(300), nullable=False, default="")
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    images: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    quote: Mapped["Quote"] = relationship(back_populates="service_items")


class Invoice(_BillingTotals, Base):
    __tablename__ = "invoices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    invoice_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    manager_id: Mapped[int] = mapped_column(ForeignKey("property_managers.id"), nullable=False, index=True)
    client_id: Mapped[Optional[int]] = mapped_column(ForeignKey("clients.id", ondelete="SET NULL"), nullable=True)

    client_name: Mapped[str] = mapped_column(String(200), nullable=False)
    client_email: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="draft", index=True)
    tax_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    viewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    stripe_payment_intent_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    pdf_path: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    pdf_generated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    line_items: Mapped[list["InvoiceLineItem"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLineItem.position",
    )

    def _item_totals(self) -> list[float]:
        return [i.line_total() for i in self.line_items]


class InvoiceLineItem(Base):
    __tablename__ = "invoice_line_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    invoice_id: Mapped[int] = mapped_column(ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)

    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    quantity: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    unit_price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    invoice: Mapped["Invoice"] = relationship(back_populates="line_items")

    def line_total(self) -> float:
        return round(float(self.quantity or 0.0) * float(self.unit_price or 0.0), 2)


# -----------------------------
# Engine / Session factory
# -----------------------------
def make_engine(db_url: str, echo: bool = False):
    """
    Create SQLAlchemy engine.
    Note: SQLite path must exist (instance/ folder). db_init.py creates it.
    """
    return create_engine(db_url, echo=echo, future=True)


def make_session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


# -----------------------------
# Document number generator
# -----------------------------
DOCUMENT_PREFIXES = {"invoice": "INV", "quote": "QT"}


def next_document_number(session, kind: str, year: int, seq_width: int = 6) -> str:
    """
    Returns next number like INV-2026-000001 / QT-2026-000001.
    Uses a per-(kind, year) counter in document_sequences.

    In Postgres this is safe under concurrency when run inside a transaction.
    In SQLite, writes are serialized, so it's also effectively safe.
    """
    if kind not in DOCUMENT_PREFIXES:
        raise ValueError(f"Unknown document kind: {kind!r}")

    seq_row = session.execute(
        select(DocumentSequence).where(DocumentSequence.kind == kind, DocumentSequence.year == year)
    ).scalar_one_or_none()

    if seq_row is None:
        seq_row = DocumentSequence(kind=kind, year=year, last_seq=0)
        session.add(seq_row)
        session.flush()

    seq_row.last_seq += 1
    session.flush()

    return f"{DOCUMENT_PREFIXES[kind]}-{year}-{seq_row.last_seq:0{seq_width}d}"
