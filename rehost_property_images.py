# rehost_property_images.py
import argparse

from config import Config
from media_service import rehost_for_address
from models import Base, Property, make_engine, make_session_factory
from scraper_service import ScrapeError, parse_images, scrape_listing


def main():
    parser = argparse.ArgumentParser(description="Re-scrape and re-host photos for properties without images.")
    parser.add_argument("--limit", type=int, default=0, help="Stop after N properties (0 = no limit).")
    args = parser.parse_args()

    if not Config.HASDATA_API_KEY:
        raise SystemExit("HASDATA_API_KEY is not set")
    if not Config.CLOUDINARY_CLOUD_NAME:
        raise SystemExit("CLOUDINARY_CLOUD_NAME is not set")

    engine = make_engine(Config.SQLALCHEMY_DATABASE_URI, echo=Config.SQLALCHEMY_ECHO)
    Base.metadata.create_all(engine)
    SessionLocal = make_session_factory(engine)

    with SessionLocal() as s:
        props = [p for p in s.query(Property).order_by(Property.id.asc()).all() if not p.image_list()]
        if args.limit:
            props = props[: args.limit]

        if not props:
            print("No properties need images.")
            return

        total = len(props)
        updated = skipped = failed = 0

        for i, p in enumerate(props, start=1):
            label = p.address or f"property {p.id}"
            if not p.zillow_url:
                skipped += 1
                print(f"[{i}/{total}] SKIP  {label} (no listing URL)")
                continue
            try:
                data = scrape_listing(p.zillow_url, scrape_description=False)
                photos = parse_images(data)
                if not photos:
                    skipped += 1
                    print(f"[{i}/{total}] SKIP  {label} (no photos found)")
                    continue
                p.images = rehost_for_address(photos, p.address)
                s.commit()
                updated += 1
                print(f"[{i}/{total}] DONE  {label} ({len(p.images)} images)")
            except ScrapeError as e:
                s.rollback()
                failed += 1
                print(f"[{i}/{total}] FAIL  {label}  ({e})")

        print("\n✅ Image re-hosting complete.")
        print(f"Updated: {updated}")
        print(f"Skipped: {skipped}")
        print(f"Failed:  {failed}")


if __name__ == "__main__":
    main()
