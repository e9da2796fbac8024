# workflow.py
"""
Status transitions for quotes and invoices.

Quotes:   draft -> sent -> viewed -> accepted | declined | expired
          accepted -> converted (creates a draft invoice)
Invoices: draft -> sent -> viewed -> paid, sent/viewed past due -> overdue
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta

from sqlalchemy import select

from models import Invoice, InvoiceLineItem, Quote, next_document_number

log = logging.getLogger(__name__)

QUOTE_STATUSES = ("draft", "sent", "viewed", "accepted", "declined", "expired", "converted")
INVOICE_STATUSES = ("draft", "sent", "viewed", "paid", "overdue")

QUOTE_STATUS_LABELS = {
    "draft": "Draft",
    "sent": "Sent",
    "viewed": "Pending Response",
    "accepted": "Accepted",
    "declined": "Declined",
    "expired": "Expired",
    "converted": "Converted",
}


class WorkflowError(ValueError):
    pass


def _today(today: date | None) -> date:
    return today or date.today()


# -----------------------------
# Quotes
# -----------------------------
def mark_quote_sent(quote: Quote, now: datetime | None = None) -> Quote:
    if quote.status not in ("draft", "sent"):
        raise WorkflowError(f"Cannot send a quote that is {quote.status}")
    quote.status = "sent"
    quote.sent_at = now or datetime.utcnow()
    return quote


def mark_quote_viewed(quote: Quote, now: datetime | None = None) -> bool:
    """Only a sent quote moves to viewed. Returns True when the status changed."""
    if quote.status != "sent":
        return False
    quote.status = "viewed"
    quote.viewed_at = now or datetime.utcnow()
    return True


def quote_is_expired(quote: Quote, today: date | None = None) -> bool:
    if quote.status == "expired":
        return True
    if quote.status in ("sent", "viewed") and quote.expiration_date:
        return quote.expiration_date < _today(today)
    return False


def quote_can_respond(quote: Quote, today: date | None = None) -> bool:
    return quote.status in ("sent", "viewed") and not quote_is_expired(quote, today)


def accept_quote(quote: Quote, today: date | None = None, now: datetime | None = None) -> Quote:
    if not quote_can_respond(quote, today):
        raise WorkflowError("This quote can no longer be accepted")
    quote.status = "accepted"
    quote.accepted_at = now or datetime.utcnow()
    return quote


def decline_quote(quote: Quote, today: date | None = None, now: datetime | None = None) -> Quote:
    if not quote_can_respond(quote, today):
        raise WorkflowError("This quote can no longer be declined")
    quote.status = "declined"
    quote.declined_at = now or datetime.utcnow()
    return quote


def expire_stale_quotes(session, today: date | None = None) -> int:
    today = _today(today)
    stale = session.execute(
        select(Quote).where(Quote.status.in_(("sent", "viewed")), Quote.expiration_date < today)
    ).scalars().all()
    for q in stale:
        q.status = "expired"
    session.flush()
    return len(stale)


def convert_quote_to_invoice(session, quote: Quote, seq_width: int = 6, due_days: int = 30,
                             today: date | None = None) -> Invoice:
    if quote.status != "accepted":
        raise WorkflowError("Only accepted quotes can be converted to invoices")

    today = _today(today)
    inv = Invoice(
        invoice_number=next_document_number(session, "invoice", today.year, seq_width),
        manager_id=quote.manager_id,
        client_id=quote.client_id,
        client_name=quote.client_name,
        client_email=quote.client_email,
        due_date=today + timedelta(days=due_days),
        status="draft",
        tax_rate=quote.tax_rate or 0.0,
        notes=quote.notes,
    )
    for idx, item in enumerate(quote.service_items):
        desc = item.service_name or ""
        if item.description:
            desc = f"{desc}: {item.description}" if desc else item.description
        inv.line_items.append(
            InvoiceLineItem(description=desc[:500], quantity=1.0, unit_price=float(item.price or 0.0), position=idx)
        )
    session.add(inv)
    session.flush()

    quote.status = "converted"
    quote.converted_invoice_id = inv.id
    session.flush()
    log.info("Converted quote %s into invoice %s", quote.quote_number, inv.invoice_number)
    return inv


# -----------------------------
# Invoices
# -----------------------------
def mark_invoice_sent(invoice: Invoice, now: datetime | None = None) -> Invoice:
    if invoice.status == "paid":
        raise WorkflowError("Invoice is already paid")
    invoice.status = "sent"
    invoice.sent_at = now or datetime.utcnow()
    return invoice


def mark_invoice_viewed(invoice: Invoice, now: datetime | None = None) -> bool:
    if invoice.status != "sent":
        return False
    invoice.status = "viewed"
    invoice.viewed_at = now or datetime.utcnow()
    return True


def mark_invoice_paid(invoice: Invoice, now: datetime | None = None) -> Invoice:
    if invoice.status == "draft":
        raise WorkflowError("Send the invoice before marking it paid")
    if invoice.status == "paid":
        return invoice
    invoice.status = "paid"
    invoice.paid_at = now or datetime.utcnow()
    return invoice


def invoice_is_overdue(invoice: Invoice, today: date | None = None) -> bool:
    if invoice.status == "overdue":
        return True
    return invoice.status in ("sent", "viewed") and invoice.due_date is not None and invoice.due_date < _today(today)


def flag_overdue_invoices(session, today: date | None = None) -> int:
    today = _today(today)
    late = session.execute(
        select(Invoice).where(Invoice.status.in_(("sent", "viewed")), Invoice.due_date < today)
    ).scalars().all()
    for inv in late:
        inv.status = "overdue"
    session.flush()
    return len(late)
