"""CLI utility to load the sample mailbox into the local database.

Usage:
  python -m backend.voicemail.scripts.seed_db            # seed only when empty
  python -m backend.voicemail.scripts.seed_db --wipe     # clear emails first
"""
import argparse

from ..db.database import SessionLocal, ensure_schema  # type: ignore
from ..models.email_model import Email
from ..services.mailbox import MailboxStore
from ..services.seed import seed_sample_emails


def main():
    parser = argparse.ArgumentParser(description="Load sample emails into the voice mail database")
    parser.add_argument("--wipe", action="store_true", help="Delete existing emails before seeding")
    parser.add_argument("--to", dest="to_email", default="user@voicemail.app", help="Recipient address for the sample emails")
    args = parser.parse_args()

    ensure_schema()
    session = SessionLocal()
    try:
        if args.wipe:
            removed = session.query(Email).delete()
            session.commit()
            print(f"Removed {removed} existing emails")
        summary = seed_sample_emails(MailboxStore(session), to_email=args.to_email)
        print("Seed summary:")
        for k, v in summary.items():
            print(f"  {k}: {v}")
    finally:
        session.close()


if __name__ == "__main__":  # pragma: no cover
    main()
