# seed_property_managers.py
import argparse

from werkzeug.security import generate_password_hash

from config import Config
from models import Base, PropertyManager, make_engine, make_session_factory

SAMPLE_MANAGERS = [
    ("John", "Smith", "john.smith@luxuryproperties.com", "+1 (555) 123-4567"),
    ("Sarah", "Johnson", "sarah.johnson@premiumrentals.com", "+1 (555) 987-6543"),
    ("Michael", "Chen", "michael.chen@eliteproperties.com", "+1 (555) 456-7890"),
    ("Emily", "Rodriguez", "emily.rodriguez@urbanmanagement.com", "+1 (555) 321-0987"),
    ("David", "Williams", "david.williams@residentialgroup.com", "+1 (555) 654-3210"),
    ("Jennifer", "Martinez", "jennifer.martinez@propertyexperts.com", "+1 (555) 789-0123"),
    ("Robert", "Taylor", "robert.taylor@luxuryrentals.com", "+1 (555) 234-5678"),
    ("Lisa", "Anderson", "lisa.anderson@premiumhomes.com", "+1 (555) 876-5432"),
]


def seed(session, password: str) -> tuple[int, int]:
    """Insert SAMPLE_MANAGERS, skipping emails that already exist."""
    inserted = skipped = 0
    pw_hash = generate_password_hash(password)
    for first, last, email, phone in SAMPLE_MANAGERS:
        if session.query(PropertyManager).filter(PropertyManager.email == email).first():
            skipped += 1
            print(f"SKIP  {email} (exists)")
            continue
        session.add(PropertyManager(
            name=first, last_name=last, email=email, phone=phone,
            title="Property Manager", role="admin", password_hash=pw_hash,
        ))
        inserted += 1
        print(f"ADD   {first} {last} <{email}>")
    session.commit()
    return inserted, skipped


def main():
    parser = argparse.ArgumentParser(description="Seed sample property managers.")
    parser.add_argument("--password", default="changeme", help="Password for every seeded manager.")
    args = parser.parse_args()

    engine = make_engine(Config.SQLALCHEMY_DATABASE_URI, echo=Config.SQLALCHEMY_ECHO)
    Base.metadata.create_all(engine)
    SessionLocal = make_session_factory(engine)

    with SessionLocal() as s:
        inserted, skipped = seed(s, args.password)
        total = s.query(PropertyManager).count()

    print("\n✅ Seeding complete.")
    print(f"Inserted: {inserted}")
    print(f"Skipped:  {skipped}")
    print(f"Total managers: {total}")


if __name__ == "__main__":
    main()
