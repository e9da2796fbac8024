# expire_documents.py
# Run daily from cron: expires stale quotes and flags overdue invoices.
from datetime import date, datetime

from config import Config
from models import Base, make_engine, make_session_factory
from workflow import expire_stale_quotes, flag_overdue_invoices


def run(session, today: date | None = None) -> tuple[int, int]:
    expired = expire_stale_quotes(session, today)
    overdue = flag_overdue_invoices(session, today)
    session.commit()
    return expired, overdue


def main():
    engine = make_engine(Config.SQLALCHEMY_DATABASE_URI, echo=Config.SQLALCHEMY_ECHO)
    Base.metadata.create_all(engine)
    SessionLocal = make_session_factory(engine)

    with SessionLocal() as s:
        expired, overdue = run(s)

    print(f"[{datetime.utcnow():%Y-%m-%d %H:%M}] Quotes expired: {expired}")
    print(f"[{datetime.utcnow():%Y-%m-%d %H:%M}] Invoices overdue: {overdue}")


if __name__ == "__main__":
    main()
