# email_service.py
from __future__ import annotations

import logging
import os
import smtplib
from email.message import EmailMessage

from config import Config
from pricing import format_currency

log = logging.getLogger(__name__)


def smtp_configured(cfg=Config) -> bool:
    return bool(getattr(cfg, "SMTP_HOST", "") and (getattr(cfg, "SMTP_FROM", "") or getattr(cfg, "SMTP_USER", "")))


def send_document_email(to: str, subject: str, body: str, attachment_path: str | None = None, cfg=Config) -> None:
    if not smtp_configured(cfg):
        raise RuntimeError("SMTP is not configured")

    msg = EmailMessage()
    msg["From"] = cfg.SMTP_FROM or cfg.SMTP_USER
    msg["To"] = to
    msg["Subject"] = subject
    msg.set_content(body)

    if attachment_path and os.path.exists(attachment_path):
        with open(attachment_path, "rb") as f:
            msg.add_attachment(
                f.read(),
                maintype="application",
                subtype="pdf",
                filename=os.path.basename(attachment_path),
            )

    with smtplib.SMTP(cfg.SMTP_HOST, cfg.SMTP_PORT) as server:
        if cfg.SMTP_USE_TLS:
            server.starttls()
        if cfg.SMTP_USER:
            server.login(cfg.SMTP_USER, cfg.SMTP_PASSWORD)
        server.send_message(msg)
    log.info("Sent %r to %s", subject, to)


def quote_email(quote, public_url: str, company_name: str | None = None) -> tuple[str, str]:
    company_name = company_name or Config.COMPANY_NAME
    subject = f"Your quote {quote.quote_number} from {company_name}"
    body = (
        f"Hello {quote.client_name},\n\n"
        f"Please find your quote {quote.quote_number} for {format_currency(quote.total(), cents=True)}.\n"
        f"It is valid until {quote.expiration_date:%B %d, %Y}.\n\n"
        f"View, accept or decline it online:\n{public_url}\n\n"
        f"Thank you,\n{company_name}"
    )
    return subject, body


def invoice_email(invoice, public_url: str, company_name: str | None = None) -> tuple[str, str]:
    company_name = company_name or Config.COMPANY_NAME
    subject = f"Invoice {invoice.invoice_number} from {company_name}"
    body = (
        f"Hello {invoice.client_name},\n\n"
        f"Invoice {invoice.invoice_number} for {format_currency(invoice.total(), cents=True)} "
        f"is due on {invoice.due_date:%B %d, %Y}.\n\n"
        f"View and pay online:\n{public_url}\n\n"
        f"Thank you,\n{company_name}"
    )
    return subject, body
