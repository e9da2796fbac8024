# pdf_service.py
import io
import os
import re
from datetime import datetime

import requests
from reportlab.pdfgen import canvas
from reportlab.lib.pagesizes import A4, LETTER
from reportlab.lib.units import inch
from reportlab.lib import colors
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.lib.utils import ImageReader

from config import Config
from models import Invoice, Quote
from quote_customization import (
    LAYOUT_DEFAULTS,
    header_title,
    layout_for,
    layout_items,
    notes_text,
    terms_lines,
)


def _money(x) -> str:
    try:
        return f"${float(x):,.2f}"
    except Exception:
        return f"${x}"


def _money_whole(x) -> str:
    try:
        return f"${float(x):,.0f}"
    except Exception:
        return f"${x}"


def _safe_filename(name: str) -> str:
    # strip characters not allowed on Windows/mac paths
    return re.sub(r'[\\/*?:"<>|]', "", (name or "")).strip() or "Document"


def _long_date(d) -> str:
    if not d:
        return ""
    return f"{d:%B} {d.day}, {d.year}"


def _wrap_text(text, font, size, max_width):
    words = str(text).split()
    lines = []
    current = ""

    def split_long_token(token: str):
        """Break a single long token (like a URL) into width-safe chunks."""
        if stringWidth(token, font, size) <= max_width:
            return [token]
        chunks = []
        remaining = token
        while remaining:
            lo, hi = 1, len(remaining)
            fit = 1
            while lo <= hi:
                mid = (lo + hi) // 2
                if stringWidth(remaining[:mid], font, size) <= max_width:
                    fit = mid
                    lo = mid + 1
                else:
                    hi = mid - 1
            chunks.append(remaining[:fit])
            remaining = remaining[fit:]
        return chunks

    expanded_words = []
    for w in words:
        expanded_words.extend(split_long_token(w))

    for w in expanded_words:
        test = current + (" " if current else "") + w
        if stringWidth(test, font, size) <= max_width:
            current = test
        else:
            if current:
                lines.append(current)
            current = w
    if current:
        lines.append(current)
    return lines or [""]


def _split_notes_into_lines(notes_text: str, max_width, font="Helvetica", size=10):
    """
    Notes are stored as plain text in DB. We:
    - split into lines
    - wrap each line to fit the box width
    - keep a small spacer between original lines
    """
    raw = (notes_text or "").strip()
    if not raw:
        return []

    out = []
    for ln in raw.splitlines():
        ln = ln.strip()
        if not ln:
            continue
        out.extend(_wrap_text(ln, font, size, max_width))
        out.append("__SPACER__")
    while out and out[-1] == "__SPACER__":
        out.pop()
    return out


# -----------------------------
# Colors
# -----------------------------
NAMED_COLORS = {
    "white": (255, 255, 255),
    "black": (0, 0, 0),
    "transparent": (255, 255, 255),
    "red": (255, 0, 0),
    "green": (0, 128, 0),
    "blue": (0, 0, 255),
    "gray": (128, 128, 128),
    "grey": (128, 128, 128),
    "navy": (0, 0, 128),
    "gold": (255, 215, 0),
}

_RGB_FUNC = re.compile(r"^rgba?\((.*)\)$")


def _channel(raw: str) -> int:
    raw = raw.strip()
    if raw.endswith("%"):
        v = float(raw[:-1]) * 255.0 / 100.0
    else:
        v = float(raw)
    return int(round(min(255.0, max(0.0, v))))


def _alpha(raw: str) -> float:
    raw = raw.strip()
    v = float(raw[:-1]) / 100.0 if raw.endswith("%") else float(raw)
    return min(1.0, max(0.0, v))


def _over_white(rgb, a: float) -> tuple:
    return tuple(int(round(c * a + 255 * (1.0 - a))) for c in rgb)


def _hex(rgb) -> str:
    return "#{:02x}{:02x}{:02x}".format(*rgb)


def normalize_color(value, fallback: str = "#000000") -> str:
    """
    CSS color -> "#rrggbb" for colors.HexColor.
    Accepts #rgb, #rrggbb, #rrggbbaa, rgb(), rgba() and a few names. Alpha is
    composited onto white. Anything else returns fallback.
    """
    if not isinstance(value, str):
        return fallback
    s = value.strip().lower()
    if not s:
        return fallback

    if s in NAMED_COLORS:
        return _hex(NAMED_COLORS[s])

    if s.startswith("#"):
        h = s[1:]
        if not re.fullmatch(r"[0-9a-f]+", h or "x"):
            return fallback
        if len(h) == 3:
            return "#" + "".join(c * 2 for c in h)
        if len(h) == 6:
            return "#" + h
        if len(h) == 8:
            rgb = tuple(int(h[i:i + 2], 16) for i in (0, 2, 4))
            return _hex(_over_white(rgb, int(h[6:8], 16) / 255.0))
        return fallback

    m = _RGB_FUNC.match(s)
    if not m:
        return fallback
    body = m.group(1).replace("/", " ").replace(",", " ")
    parts = body.split()
    if len(parts) not in (3, 4):
        return fallback
    try:
        rgb = tuple(_channel(p) for p in parts[:3])
        a = _alpha(parts[3]) if len(parts) == 4 else 1.0
    except ValueError:
        return fallback
    return _hex(_over_white(rgb, a))


PALETTE = {
    "white": normalize_color("#ffffff"),
    "background": normalize_color("#f8f8f8"),
    "text": normalize_color("#1a1a1a"),
    "text_secondary": normalize_color("#6b7280"),
    "text_muted": normalize_color("#9ca3af"),
    "border": normalize_color("#e5e7eb"),
    "border_light": normalize_color("#f3f4f6"),
    "accent": normalize_color("#3b82f6"),
    "badge": normalize_color("rgba(0, 0, 0, 0.6)"),
    "navy_dark": normalize_color("#1a2332"),
    "navy_medium": normalize_color("#2a3a4a"),
}


def _c(name: str):
    return colors.HexColor(PALETTE[name])


# -----------------------------
# Images
# -----------------------------
def cover_crop(img_w, img_h, box_w, box_h):
    """
    object-fit: cover. Returns (draw_w, draw_h, dx, dy): the scaled image size
    and its offset from the box origin so the image fills and centers the box.
    Draw it under a clip path of the box.
    """
    if not img_w or not img_h or box_w <= 0 or box_h <= 0:
        return float(box_w), float(box_h), 0.0, 0.0
    scale = max(box_w / float(img_w), box_h / float(img_h))
    draw_w = float(img_w) * scale
    draw_h = float(img_h) * scale
    return draw_w, draw_h, (box_w - draw_w) / 2.0, (box_h - draw_h) / 2.0


def fetch_image(url: str, timeout: int = 15):
    """Remote image -> ImageReader, or None when it can't be fetched/decoded."""
    if not url:
        return None
    try:
        resp = requests.get(url, timeout=timeout)
        resp.raise_for_status()
        return ImageReader(io.BytesIO(resp.content))
    except Exception:
        return None


def _draw_cover_image(pdf, img, x, y, w, h, radius=8):
    pdf.saveState()
    path = pdf.beginPath()
    path.roundRect(x, y, w, h, radius)
    pdf.clipPath(path, stroke=0, fill=0)
    drawn = False
    if img is not None:
        try:
            iw, ih = img.getSize()
            dw, dh, dx, dy = cover_crop(iw, ih, w, h)
            pdf.drawImage(img, x + dx, y + dy, width=dw, height=dh, mask="auto")
            drawn = True
        except Exception:
            drawn = False
    if not drawn:
        pdf.setFillColor(_c("border_light"))
        pdf.rect(x, y, w, h, stroke=0, fill=1)
        pdf.setFillColor(_c("text_muted"))
        pdf.setFont("Helvetica", 9)
        pdf.drawCentredString(x + w / 2, y + h / 2 - 3, "Image unavailable")
    pdf.restoreState()


def _draw_logo(pdf, img, x, y_center, max_w, max_h) -> float:
    """Contained (not cropped) logo. Returns the drawn width."""
    if img is None:
        return 0
    try:
        iw, ih = img.getSize()
        scale = min(max_w / float(iw), max_h / float(ih))
        w, h = float(iw) * scale, float(ih) * scale
        pdf.drawImage(img, x, y_center - h / 2, width=w, height=h, mask="auto")
        return w
    except Exception:
        return 0


# -----------------------------
# Quote PDF
# -----------------------------
def render_quote_pdf(quote: Quote, customization: dict | None, company: dict, out_path,
                     image_loader=fetch_image) -> str:
    """
    Branded quote. Layout is picked by customization["header_icon"]:
    yacht / car proposals, anything else is the ticket layout.
    """
    customization = customization or {}
    layout = layout_for(customization)
    services = layout_items(quote, customization)

    PAGE_W, PAGE_H = A4
    M = 0.6 * inch
    FOOTER_H = 0.55 * inch
    content_w = PAGE_W - 2 * M

    cache = {}

    def load(url):
        if url not in cache:
            cache[url] = image_loader(url) if url else None
        return cache[url]

    pdf = canvas.Canvas(out_path, pagesize=A4)
    pdf.setTitle(f"Quote - {quote.quote_number}")

    def right_text(x, y, text, font="Helvetica", size=10, color=None):
        pdf.setFont(font, size)
        pdf.setFillColor(color or _c("text"))
        w = pdf.stringWidth(str(text), font, size)
        pdf.drawString(x - w, y, str(text))

    def draw_footer():
        pdf.setStrokeColor(_c("border"))
        pdf.setLineWidth(0.6)
        pdf.line(M, M + FOOTER_H - 10, PAGE_W - M, M + FOOTER_H - 10)
        pdf.setFillColor(_c("text_secondary"))
        pdf.setFont("Helvetica", 8.5)
        valid = f"Quote valid until {_long_date(quote.expiration_date)}"
        pdf.drawCentredString(PAGE_W / 2, M + FOOTER_H - 26, valid)
        contact = "  |  ".join(p for p in [company.get("email"), company.get("website")] if p)
        if contact:
            pdf.drawCentredString(PAGE_W / 2, M + FOOTER_H - 38, contact)

    y = PAGE_H - M

    def new_page():
        nonlocal y
        draw_footer()
        pdf.showPage()
        y = PAGE_H - M

    def ensure(h):
        if y - h < M + FOOTER_H:
            new_page()

    # ---- header ----
    header_h = 1.35 * inch
    dark = _c("navy_dark") if layout in LAYOUT_DEFAULTS else _c("text")
    pdf.setFillColor(dark)
    pdf.rect(0, PAGE_H - header_h, PAGE_W, header_h, stroke=0, fill=1)

    logo_w = _draw_logo(pdf, load(company.get("logo_url")), M, PAGE_H - header_h / 2, 1.3 * inch, 0.55 * inch)
    left_x = M + (logo_w + 12 if logo_w else 0)
    pdf.setFillColor(colors.white)
    pdf.setFont("Helvetica-Bold", 16)
    pdf.drawString(left_x, PAGE_H - 0.58 * inch, company.get("name") or "")
    if company.get("tagline"):
        pdf.setFont("Helvetica", 8)
        pdf.drawString(left_x, PAGE_H - 0.78 * inch, str(company["tagline"]).upper())

    if layout in LAYOUT_DEFAULTS:
        title = LAYOUT_DEFAULTS[layout]["banner"]
        subtitle = customization.get("header_subtitle") or ""
    else:
        title = header_title(customization)
        subtitle = customization.get("header_subtitle") or ""
    right_text(PAGE_W - M, PAGE_H - 0.6 * inch, title, "Helvetica-Bold", 15, colors.white)
    if subtitle:
        right_text(PAGE_W - M, PAGE_H - 0.84 * inch, subtitle, "Helvetica", 9.5, colors.white)
    y = PAGE_H - header_h - 0.35 * inch

    # ---- prepared for ----
    pdf.setFillColor(_c("text_secondary"))
    pdf.setFont("Helvetica-Bold", 8.5)
    pdf.drawString(M, y, "PREPARED FOR" if layout != "yacht" else "Prepared for:")
    right_text(PAGE_W - M, y, "EXCLUSIVE RATES" if layout == "car" else "Date:", "Helvetica-Bold", 8.5, _c("text_secondary"))
    y -= 16
    pdf.setFillColor(_c("text"))
    pdf.setFont("Helvetica-Bold", 13)
    pdf.drawString(M, y, quote.client_name or "")
    right_text(PAGE_W - M, y, _long_date(quote.created_at or datetime.utcnow()), "Helvetica-Bold", 11)
    y -= 14
    pdf.setFont("Helvetica", 9.5)
    pdf.setFillColor(_c("text_secondary"))
    pdf.drawString(M, y, quote.client_email or "")
    right_text(PAGE_W - M, y, quote.quote_number, "Helvetica", 9.5, _c("text_secondary"))
    y -= 16

    pdf.setStrokeColor(_c("border"))
    pdf.setDash(2, 3)
    pdf.line(M, y, PAGE_W - M, y)
    pdf.setDash()
    y -= 22

    # ---- services ----
    def draw_detail_rows(rows, x, width):
        """Label/value rows. Returns the height used."""
        nonlocal y
        used = 0
        for label, value in rows:
            pdf.setFont("Helvetica-Bold", 8)
            pdf.setFillColor(_c("text_secondary"))
            pdf.drawString(x, y, str(label).upper())
            lines = _wrap_text(value, "Helvetica", 10, width - 1.3 * inch)
            pdf.setFont("Helvetica", 10)
            pdf.setFillColor(_c("text"))
            for ln in lines:
                pdf.drawString(x + 1.3 * inch, y, ln)
                y -= 13
                used += 13
            y -= 3
            used += 3
        return used

    def ticket_card(svc):
        nonlocal y
        pad = 14
        inner_w = content_w - 2 * pad
        img_h = 2.0 * inch if svc.images else 0
        desc_lines = _wrap_text(svc.description, "Helvetica", 9.5, inner_w) if svc.description else []
        detail_rows = [(d["label"], d["value"]) for d in (svc.other_details if svc.has_route_style else svc.details)]
        detail_h = sum(13 * len(_wrap_text(v, "Helvetica", 10, inner_w - 1.3 * inch)) + 3 for _, v in detail_rows)
        route_h = 54 if svc.has_route_style else 0
        name_h = 20 if not svc.images and not svc.has_route_style else 0
        date_h = 16 if svc.date else 0
        card_h = pad + img_h + (10 if img_h else 0) + date_h + route_h + name_h + detail_h + 12 * len(desc_lines) + 46

        ensure(card_h)
        top = y
        pdf.setStrokeColor(_c("border"))
        pdf.setFillColor(colors.white)
        pdf.roundRect(M, top - card_h, content_w, card_h, 10, stroke=1, fill=1)
        y = top - pad

        if svc.images:
            x0 = M + pad
            n = len(svc.images)
            gap = 8
            w_each = (inner_w - gap * (n - 1)) / n
            for i, url in enumerate(svc.images):
                ix = x0 + i * (w_each + gap)
                _draw_cover_image(pdf, load(url), ix, y - img_h, w_each, img_h)
                # badges
                if i == 0 and svc.name:
                    label = f"-> {svc.name}"
                    bw = min(w_each - 16, stringWidth(label, "Helvetica-Bold", 9) + 16)
                    pdf.setFillColor(_c("badge"))
                    pdf.roundRect(ix + 8, y - img_h + 8, bw, 18, 4, stroke=0, fill=1)
                    pdf.setFillColor(colors.white)
                    pdf.setFont("Helvetica-Bold", 9)
                    pdf.drawString(ix + 16, y - img_h + 14, _wrap_text(label, "Helvetica-Bold", 9, bw - 12)[0])
                if i == 1 and svc.passengers:
                    label = f"{svc.passengers} Passengers"
                    bw = stringWidth(label, "Helvetica-Bold", 9) + 16
                    pdf.setFillColor(_c("badge"))
                    pdf.roundRect(ix + w_each - bw - 8, y - img_h + 8, bw, 18, 4, stroke=0, fill=1)
                    pdf.setFillColor(colors.white)
                    pdf.setFont("Helvetica-Bold", 9)
                    pdf.drawString(ix + w_each - bw, y - img_h + 14, label)
            y -= img_h + 10

        x = M + pad
        if svc.date:
            pdf.setFont("Helvetica-Bold", 10)
            pdf.setFillColor(_c("text_secondary"))
            pdf.drawString(x, y - 10, svc.date)
            y -= date_h

        if svc.has_route_style:
            pdf.setFillColor(_c("text"))
            pdf.setFont("Helvetica-Bold", 22)
            pdf.drawString(x, y - 22, svc.departure_code or "TBD")
            right_text(M + content_w - pad, y - 22, svc.arrival_code or "TBD", "Helvetica-Bold", 22)
            pdf.setFont("Helvetica", 9)
            pdf.setFillColor(_c("accent"))
            if svc.departure:
                pdf.drawString(x, y - 38, svc.departure)
            if svc.arrival:
                right_text(M + content_w - pad, y - 38, svc.arrival, "Helvetica", 9, _c("accent"))
            mid = M + content_w / 2
            pdf.setFillColor(_c("text_secondary"))
            pdf.setFont("Helvetica", 9)
            pdf.drawCentredString(mid, y - 12, svc.duration or "---")
            pdf.setStrokeColor(_c("border"))
            pdf.line(mid - 60, y - 22, mid + 60, y - 22)
            pdf.setFont("Helvetica-Bold", 11)
            pdf.setFillColor(_c("text_muted"))
            pdf.drawCentredString(mid, y - 26, "->")
            y -= route_h
        elif name_h:
            pdf.setFont("Helvetica-Bold", 14)
            pdf.setFillColor(_c("text"))
            pdf.drawString(x, y - 14, svc.name)
            y -= name_h

        if detail_rows:
            y -= 10
            draw_detail_rows(detail_rows, x, inner_w)
            y += 10

        if desc_lines:
            pdf.setFont("Helvetica", 9.5)
            pdf.setFillColor(_c("text_secondary"))
            for ln in desc_lines:
                pdf.drawString(x, y - 10, ln)
                y -= 12

        pdf.setStrokeColor(_c("border_light"))
        pdf.line(x, y - 8, M + content_w - pad, y - 8)
        right_text(M + content_w - pad, y - 30, _money_whole(svc.price), "Helvetica-Bold", 16)
        pdf.setFont("Helvetica", 8)
        pdf.setFillColor(_c("text_muted"))
        pdf.drawString(x, y - 28, "Total")
        y = top - card_h - 16

    def proposal_card(svc, idx):
        nonlocal y
        is_car = layout == "car"
        img_h = 2.6 * inch if svc.images else 0
        desc_lines = _wrap_text(svc.description, "Helvetica", 10, content_w - 40) if svc.description else []
        rows = [("Route", f"{svc.departure} -> {svc.arrival}"), ("Passengers", svc.passengers), ("Duration", svc.duration)]
        if is_car and svc.model:
            rows.insert(0, ("Model", svc.model))
        services_h = 12 * len(svc.services) + (14 if svc.services else 0)
        card_h = 30 + img_h + (14 * len(desc_lines) + 28 if desc_lines else 0) + 18 * len(rows) + services_h + 30

        ensure(card_h + (18 if idx else 0))
        if idx:
            y -= 18
        # name
        pdf.setFillColor(_c("navy_dark"))
        pdf.setFont("Helvetica-Bold", 15)
        pdf.drawString(M, y - 16, svc.name.upper())
        if is_car:
            right_text(PAGE_W - M, y - 16, f"{svc.passengers} Passengers", "Helvetica", 10, _c("text_secondary"))
        y -= 28

        if svc.images:
            _draw_cover_image(pdf, load(svc.images[0]), M, y - img_h, content_w, img_h, radius=4)
            y -= img_h

        if desc_lines:
            band_h = 14 * len(desc_lines) + 20
            pdf.setFillColor(_c("navy_dark"))
            pdf.rect(M, y - band_h, content_w, band_h, stroke=0, fill=1)
            pdf.setFillColor(colors.white)
            pdf.setFont("Helvetica", 10)
            ty = y - 16
            for ln in desc_lines:
                pdf.drawString(M + 20, ty, ln)
                ty -= 14
            y -= band_h + 8

        y -= 8
        col_w = content_w * 0.62
        top_details = y
        draw_detail_rows(rows, M, col_w)
        if svc.services:
            pdf.setFont("Helvetica-Bold", 8)
            pdf.setFillColor(_c("text_secondary"))
            pdf.drawString(M, y, "SERVICES")
            pdf.setFont("Helvetica", 10)
            pdf.setFillColor(_c("text"))
            for s_name in svc.services:
                pdf.drawString(M + 1.3 * inch, y, f"· {s_name}")
                y -= 12
            y -= 2

        # price block, right column
        px = M + col_w + 12
        pw = content_w - col_w - 12
        pdf.setFillColor(_c("background"))
        pdf.roundRect(px, top_details - 52, pw, 56, 6, stroke=0, fill=1)
        pdf.setFont("Helvetica-Bold", 8)
        pdf.setFillColor(_c("text_secondary"))
        pdf.drawString(px + 10, top_details - 10, "PRICE")
        right_text(px + pw - 10, top_details - 36, _money_whole(svc.price), "Helvetica-Bold", 17, _c("navy_dark"))
        y = min(y, top_details - 60) - 10

    for idx, svc in enumerate(services):
        if layout == "ticket":
            ticket_card(svc)
        else:
            proposal_card(svc, idx)

    # ---- notes ----
    notes = notes_text(quote, customization)
    if notes:
        note_lines = _split_notes_into_lines(notes, content_w, "Helvetica", 9.5)
        ensure(30 + 12 * min(len(note_lines), 6))
        y -= 6
        pdf.setFont("Helvetica-Bold", 10)
        pdf.setFillColor(_c("text"))
        pdf.drawString(M, y, "Notes")
        y -= 16
        pdf.setFont("Helvetica", 9.5)
        pdf.setFillColor(_c("text_secondary"))
        for ln in note_lines:
            if ln == "__SPACER__":
                y -= 4
                continue
            ensure(12)
            pdf.setFont("Helvetica", 9.5)
            pdf.setFillColor(_c("text_secondary"))
            pdf.drawString(M, y, ln)
            y -= 12
        y -= 10

    # ---- terms ----
    terms = terms_lines(customization)
    ensure(30 + 12 * min(len(terms), 6))
    pdf.setFont("Helvetica-Bold", 10)
    pdf.setFillColor(_c("text"))
    pdf.drawString(M, y, "Terms & Conditions")
    y -= 16
    for t in terms:
        for j, ln in enumerate(_wrap_text(t, "Helvetica", 8.5, content_w - 12)):
            ensure(11)
            pdf.setFont("Helvetica", 8.5)
            pdf.setFillColor(_c("text_secondary"))
            pdf.drawString(M, y, ("• " if j == 0 else "  ") + ln)
            y -= 11

    draw_footer()
    pdf.save()
    return out_path


# -----------------------------
# Invoice PDF
# -----------------------------
def render_invoice_pdf(inv: Invoice, company: dict, out_path: str) -> str:
    PAGE_W, PAGE_H = LETTER
    M = 0.65 * inch

    pdf = canvas.Canvas(out_path, pagesize=LETTER)
    pdf.setTitle(f"Invoice - {inv.invoice_number}")

    brand_dark = colors.HexColor(PALETTE["navy_dark"])
    brand_muted = colors.HexColor(PALETTE["text_secondary"])
    line_color = colors.HexColor(PALETTE["border"])
    soft_bg = colors.HexColor(PALETTE["background"])

    def right_text(x, y, text, font="Helvetica", size=10, color=colors.black):
        pdf.setFont(font, size)
        pdf.setFillColor(color)
        w = pdf.stringWidth(str(text), font, size)
        pdf.drawString(x - w, y, str(text))

    def draw_header():
        header_h = 1.25 * inch
        pdf.setFillColor(brand_dark)
        pdf.rect(0, PAGE_H - header_h, PAGE_W, header_h, stroke=0, fill=1)
        pdf.setFillColor(colors.white)
        pdf.setFont("Helvetica-Bold", 14)
        pdf.drawString(M, PAGE_H - 0.55 * inch, company.get("name") or "")
        pdf.setFont("Helvetica", 9)
        info_y = PAGE_H - 0.80 * inch
        for ln in [company.get("phone"), company.get("email")]:
            if ln:
                pdf.drawString(M, info_y, ln)
                info_y -= 12
        right_x = PAGE_W - M
        right_text(right_x, PAGE_H - 0.48 * inch, "INVOICE", "Helvetica-Bold", 18, colors.white)
        right_text(right_x, PAGE_H - 0.78 * inch, f"Invoice #: {inv.invoice_number}", "Helvetica", 10, colors.white)
        right_text(right_x, PAGE_H - 0.98 * inch, f"Date: {_long_date(inv.created_at or datetime.utcnow())}", "Helvetica", 10, colors.white)
        return PAGE_H - header_h - 0.35 * inch

    y = draw_header()

    # Bill-to card
    box_h = 1.15 * inch
    box_w = (PAGE_W - 2 * M - 0.35 * inch) / 2
    pdf.setFillColor(soft_bg)
    pdf.setStrokeColor(line_color)
    pdf.roundRect(M, y - box_h, box_w, box_h, 10, stroke=1, fill=1)
    pdf.setFont("Helvetica-Bold", 10)
    pdf.setFillColor(brand_muted)
    pdf.drawString(M + 12, y - 16, "BILL TO")
    pdf.setFillColor(colors.black)
    pdf.setFont("Helvetica-Bold", 11)
    pdf.drawString(M + 12, y - 34, inv.client_name or "")
    pdf.setFont("Helvetica", 10)
    if inv.client_email:
        pdf.drawString(M + 12, y - 50, inv.client_email)

    bx = M + box_w + 0.35 * inch
    pdf.setFillColor(soft_bg)
    pdf.roundRect(bx, y - box_h, box_w, box_h, 10, stroke=1, fill=1)
    pdf.setFont("Helvetica-Bold", 10)
    pdf.setFillColor(brand_muted)
    pdf.drawString(bx + 12, y - 16, "PAYMENT")
    pdf.setFillColor(colors.black)
    pdf.setFont("Helvetica", 10)
    pdf.drawString(bx + 12, y - 34, f"Due date: {_long_date(inv.due_date)}")
    pdf.drawString(bx + 12, y - 50, f"Status: {(inv.status or '').title()}")
    y -= box_h + 0.35 * inch

    # Line items table
    col_desc = M
    col_qty = PAGE_W - M - 3.0 * inch
    col_unit = PAGE_W - M - 1.5 * inch
    col_total = PAGE_W - M
    desc_w = col_qty - col_desc - 0.6 * inch

    def table_header():
        nonlocal y
        pdf.setFillColor(brand_dark)
        pdf.rect(M, y - 18, PAGE_W - 2 * M, 20, stroke=0, fill=1)
        pdf.setFillColor(colors.white)
        pdf.setFont("Helvetica-Bold", 9)
        pdf.drawString(col_desc + 8, y - 12, "Description")
        right_text(col_qty, y - 12, "Qty", "Helvetica-Bold", 9, colors.white)
        right_text(col_unit, y - 12, "Unit Price", "Helvetica-Bold", 9, colors.white)
        right_text(col_total - 8, y - 12, "Line Total", "Helvetica-Bold", 9, colors.white)
        y -= 30

    table_header()
    for li in inv.line_items:
        lines = _wrap_text(li.description or "", "Helvetica", 10, desc_w)
        row_h = 13 * len(lines) + 6
        if y - row_h < M + 1.6 * inch:
            pdf.showPage()
            y = PAGE_H - M
            table_header()
        pdf.setFont("Helvetica", 10)
        pdf.setFillColor(colors.black)
        ly = y
        for ln in lines:
            pdf.drawString(col_desc + 8, ly, ln)
            ly -= 13
        qty = float(li.quantity or 0)
        right_text(col_qty, y, f"{qty:g}")
        right_text(col_unit, y, _money(li.unit_price))
        right_text(col_total - 8, y, _money(li.line_total()))
        y -= row_h
        pdf.setStrokeColor(line_color)
        pdf.line(M, y + 4, PAGE_W - M, y + 4)
        y -= 6

    # Totals
    if y < M + 1.6 * inch:
        pdf.showPage()
        y = PAGE_H - M
    y -= 8
    label_x = col_unit - 0.6 * inch
    for label, value, bold in [
        ("Subtotal", inv.subtotal(), False),
        (f"Tax ({float(inv.tax_rate or 0):g}%)" if inv.tax_rate else "Tax", inv.tax_amount(), False),
        ("Total", inv.total(), True),
    ]:
        font = "Helvetica-Bold" if bold else "Helvetica"
        right_text(label_x, y, label, font, 11 if bold else 10)
        right_text(col_total - 8, y, _money(value), font, 11 if bold else 10)
        y -= 18

    if inv.status == "paid":
        pdf.saveState()
        pdf.setFillColor(colors.HexColor(normalize_color("rgba(22, 163, 74, 0.85)")))
        pdf.setFont("Helvetica-Bold", 28)
        pdf.translate(M + 1.3 * inch, y + 30)
        pdf.rotate(12)
        pdf.drawString(0, 0, "PAID")
        pdf.restoreState()

    # Notes
    note_lines = _split_notes_into_lines(inv.notes or "", PAGE_W - 2 * M)
    if note_lines:
        y -= 12
        pdf.setFont("Helvetica-Bold", 10)
        pdf.setFillColor(brand_muted)
        pdf.drawString(M, y, "NOTES")
        y -= 14
        for ln in note_lines:
            if y < M:
                pdf.showPage()
                y = PAGE_H - M
            if ln == "__SPACER__":
                y -= 4
                continue
            pdf.setFont("Helvetica", 10)
            pdf.setFillColor(colors.black)
            pdf.drawString(M, y, ln)
            y -= 13

    pdf.setFont("Helvetica", 8)
    pdf.setFillColor(brand_muted)
    pdf.drawCentredString(PAGE_W / 2, M / 2, f"Thank you for your business. {company.get('website') or ''}".strip())

    pdf.save()
    return out_path


# -----------------------------
# Store on disk + record on the row
# -----------------------------
def _year_from_number(number: str, fallback: datetime) -> str:
    parts = (number or "").split("-")
    if len(parts) == 3 and len(parts[1]) == 4 and parts[1].isdigit():
        return parts[1]
    return fallback.strftime("%Y")


def _export_path(exports_dir: str | None, kind: str, number: str, generated_dt: datetime) -> str:
    year = _year_from_number(number, generated_dt)
    year_dir = os.path.join(exports_dir or Config.EXPORTS_DIR, kind, year)
    os.makedirs(year_dir, exist_ok=True)
    return os.path.abspath(os.path.join(year_dir, f"{_safe_filename(number)}.pdf"))


def render_quote_preview(session, quote_id: int, customization: dict | None, company: dict | None = None,
                         image_loader=fetch_image) -> bytes:
    """Render unsaved builder data in memory. Nothing on disk or on the quote changes."""
    quote = session.get(Quote, quote_id)
    if not quote:
        raise ValueError(f"Quote not found: id={quote_id}")

    buf = io.BytesIO()
    render_quote_pdf(quote, customization or {}, company or Config.company_info(), buf, image_loader=image_loader)
    return buf.getvalue()


def generate_and_store_quote_pdf(session, quote_id: int, exports_dir: str | None = None,
                                 company: dict | None = None, image_loader=fetch_image) -> str:
    """
    Renders the quote's PDF with its saved customization into
    EXPORTS_DIR/quotes/<year>/ and records quote.pdf_path + quote.pdf_generated_at.
    """
    quote = session.get(Quote, quote_id)
    if not quote:
        raise ValueError(f"Quote not found: id={quote_id}")

    generated_dt = datetime.utcnow()
    pdf_path = _export_path(exports_dir, "quotes", quote.quote_number, generated_dt)

    render_quote_pdf(quote, quote.pdf_customization or {}, company or Config.company_info(), pdf_path,
                     image_loader=image_loader)

    quote.pdf_path = pdf_path
    quote.pdf_generated_at = generated_dt
    session.commit()
    return pdf_path


def generate_and_store_invoice_pdf(session, invoice_id: int, exports_dir: str | None = None,
                                   company: dict | None = None) -> str:
    inv = session.get(Invoice, invoice_id)
    if not inv:
        raise ValueError(f"Invoice not found: id={invoice_id}")

    generated_dt = datetime.utcnow()
    pdf_path = _export_path(exports_dir, "invoices", inv.invoice_number, generated_dt)

    render_invoice_pdf(inv, company or Config.company_info(), pdf_path)

    inv.pdf_path = pdf_path
    inv.pdf_generated_at = generated_dt
    session.commit()
    return pdf_path
