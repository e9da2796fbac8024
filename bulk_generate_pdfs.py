# bulk_generate_pdfs.py
import argparse
import os
from pathlib import Path

from config import Config
from models import Base, make_engine, make_session_factory, Invoice, Quote
from pdf_service import generate_and_store_invoice_pdf, generate_and_store_quote_pdf

KINDS = {
    "quote": (Quote, "quote_number", generate_and_store_quote_pdf),
    "invoice": (Invoice, "invoice_number", generate_and_store_invoice_pdf),
}


def _run_kind(s, kind: str, target_year: str, regenerate: bool) -> tuple[int, int, int]:
    model, number_attr, generate = KINDS[kind]
    number_col = getattr(model, number_attr)

    q = s.query(model).order_by(model.created_at.asc())
    if target_year:
        # QT-2026-000001 / INV-2026-000001
        q = q.filter(number_col.like(f"%-{target_year}-%"))
    docs = q.all()

    if not docs:
        print(f"No {kind}s found for the given filter.")
        return 0, 0, 0

    total = len(docs)
    generated = skipped = failed = 0

    for i, doc in enumerate(docs, start=1):
        number = getattr(doc, number_attr)
        try:
            has_pdf = bool(doc.pdf_path) and os.path.exists(doc.pdf_path or "")
            if has_pdf and not regenerate:
                skipped += 1
                print(f"[{i}/{total}] SKIP  {number} (already has PDF)")
                continue

            path = generate(s, doc.id, exports_dir=Config.EXPORTS_DIR)
            generated += 1
            print(f"[{i}/{total}] DONE  {number} -> {path}")

        except Exception as e:
            s.rollback()
            failed += 1
            print(f"[{i}/{total}] FAIL  {number}  ({e})")

    return generated, skipped, failed


def main():
    parser = argparse.ArgumentParser(description="Bulk generate quote and invoice PDFs.")
    parser.add_argument("--kind", choices=["quote", "invoice", "all"], default="all",
                        help="Which documents to render.")
    parser.add_argument("--year", type=str, default="", help="Only generate PDFs for a given year (YYYY).")
    parser.add_argument("--all", action="store_true", help="Regenerate PDFs even if one already exists.")
    args = parser.parse_args()

    # Ensure exports dir exists
    Path(Config.EXPORTS_DIR).mkdir(parents=True, exist_ok=True)

    engine = make_engine(Config.SQLALCHEMY_DATABASE_URI, echo=Config.SQLALCHEMY_ECHO)
    Base.metadata.create_all(engine)
    SessionLocal = make_session_factory(engine)

    target_year = (args.year or "").strip()
    if target_year and not (target_year.isdigit() and len(target_year) == 4):
        raise SystemExit("Year must be 4 digits, e.g. --year 2025")

    kinds = ["quote", "invoice"] if args.kind == "all" else [args.kind]

    with SessionLocal() as s:
        totals = [0, 0, 0]
        for kind in kinds:
            for idx, n in enumerate(_run_kind(s, kind, target_year, args.all)):
                totals[idx] += n

        print("\n✅ Bulk PDF generation complete.")
        print(f"Generated: {totals[0]}")
        print(f"Skipped:   {totals[1]}")
        print(f"Failed:    {totals[2]}")
        print(f"Exports:   {Config.EXPORTS_DIR}")


if __name__ == "__main__":
    main()
