# db_init.py
import argparse
from pathlib import Path

from werkzeug.security import generate_password_hash

from config import Config
from models import Base, PropertyManager, make_engine, make_session_factory


def main():
    parser = argparse.ArgumentParser(description="Create tables and the first super admin.")
    parser.add_argument("--no-admin", action="store_true", help="Only create tables.")
    args = parser.parse_args()

    # Ensure instance/ exists for SQLite local dev
    if Config.SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
        Path("instance").mkdir(parents=True, exist_ok=True)

    # Ensure exports/ exists for quote and invoice PDFs
    Path(Config.EXPORTS_DIR).mkdir(parents=True, exist_ok=True)

    engine = make_engine(Config.SQLALCHEMY_DATABASE_URI, echo=Config.SQLALCHEMY_ECHO)
    Base.metadata.create_all(engine)

    if not args.no_admin:
        SessionLocal = make_session_factory(engine)
        with SessionLocal() as s:
            if not s.query(PropertyManager).first():
                s.add(PropertyManager(
                    email=Config.INITIAL_ADMIN_EMAIL.strip().lower(),
                    name="Admin",
                    role="super_admin",
                    password_hash=generate_password_hash(Config.INITIAL_ADMIN_PASSWORD),
                ))
                s.commit()
                print(f"Created super admin: {Config.INITIAL_ADMIN_EMAIL}")

    print("✅ Database initialized.")
    print(f"DB: {Config.SQLALCHEMY_DATABASE_URI}")
    print(f"Exports dir: {Config.EXPORTS_DIR}")


if __name__ == "__main__":
    main()
