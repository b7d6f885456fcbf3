"""Seed the database with demo users and conversations for local testing.

Creates 5 users (1 coordinator, 3 students, 1 company), one direct
conversation, one group conversation and a handful of messages, then prints
a bearer token per user so the API can be exercised without the auth service.
Tokens are only printed when SECRET_KEY is set, since the server must share it.

Usage:
  python -m scripts.seed_demo_data                  # local SQLite
  python -m scripts.seed_demo_data --force           # wipe & reseed local
  python -m scripts.seed_demo_data --database-url "postgresql+psycopg2://..."
"""
import argparse
import sys
import os
from datetime import datetime, timedelta, timezone

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core import config as app_config
from app.core.security import create_access_token
from app.db.database import SessionLocal, engine as default_engine, Base
from app.models import (
    User, Student, Coordinator, Company,
    Conversation, ConversationParticipant, Message, MessageReadReceipt, PushToken,
)
from app.models.conversation import ConversationType
from app.models.user import UserType
from app.services.directory import resolve_identity


def _now():
    return datetime.now(timezone.utc)


def seed(force: bool = False, database_url: str | None = None):
    if database_url:
        eng = create_engine(database_url)
        Session = sessionmaker(autocommit=False, autoflush=False, bind=eng)
    else:
        eng = default_engine
        Session = SessionLocal
    Base.metadata.create_all(bind=eng)
    db = Session()
    try:
        if not force and db.query(User).count() > 0:
            print("Database already has users. Use --force to seed anyway.")
            return

        if force:
            # Delete all tables in dependency order
            db.query(MessageReadReceipt).delete()
            db.query(Message).delete()
            db.query(ConversationParticipant).delete()
            db.query(Conversation).delete()
            db.query(PushToken).delete()
            db.query(Student).delete()
            db.query(Coordinator).delete()
            db.query(Company).delete()
            db.query(User).delete()
            db.commit()

        # ── Users ─────────────────────────────────────────────
        coord_user = User(email="maria.santos@ojt.local", user_type=UserType.COORDINATOR)
        s1_user = User(email="ana.reyes@ojt.local", user_type=UserType.STUDENT)
        s2_user = User(email="ben.cruz@ojt.local", user_type=UserType.STUDENT)
        s3_user = User(email="cara.lim@ojt.local", user_type=UserType.STUDENT)
        co_user = User(email="hr@northwind.local", user_type=UserType.COMPANY)
        users = [coord_user, s1_user, s2_user, s3_user, co_user]
        db.add_all(users)
        db.flush()

        db.add_all([
            Coordinator(user_id=coord_user.id, first_name="Maria", last_name="Santos"),
            Student(user_id=s1_user.id, first_name="Ana", last_name="Reyes", id_number="2021-00042"),
            Student(user_id=s2_user.id, first_name="Ben", last_name="Cruz", id_number="2021-00043"),
            Student(user_id=s3_user.id, first_name="Cara", last_name="Lim", id_number="2021-00044"),
            Company(user_id=co_user.id, company_name="Northwind Traders"),
        ])
        db.flush()

        # ── Conversations ─────────────────────────────────────
        t = _now()
        direct = Conversation(type=ConversationType.DIRECT, created_by=s1_user.id)
        group = Conversation(
            type=ConversationType.GROUP, name="Northwind Interns", created_by=coord_user.id,
        )
        db.add_all([direct, group])
        db.flush()

        db.add_all([
            ConversationParticipant(conversation_id=direct.id, user_id=s1_user.id),
            ConversationParticipant(conversation_id=direct.id, user_id=coord_user.id),
        ])
        db.add_all([
            ConversationParticipant(conversation_id=group.id, user_id=uid)
            for uid in (coord_user.id, s1_user.id, s2_user.id, s3_user.id, co_user.id)
        ])

        # ── Messages ──────────────────────────────────────────
        script = [
            (direct, s1_user, "Good morning ma'am, I submitted my weekly report.", timedelta(hours=5)),
            (direct, coord_user, "Thanks Ana, I'll review it this afternoon.", timedelta(hours=4)),
            (group, coord_user, "Welcome to the Northwind internship group!", timedelta(days=2)),
            (group, co_user, "Orientation is on Monday at 9:00 AM, main lobby.", timedelta(days=1)),
            (group, s2_user, "Noted, thank you!", timedelta(hours=20)),
            (group, s3_user, "Is there a dress code?", timedelta(minutes=30)),
        ]
        for conv, sender, content, ago in script:
            db.add(Message(
                conversation_id=conv.id, sender_id=sender.id, content=content, created_at=t - ago,
            ))
            conv.updated_at = t - ago
        db.flush()

        # Ana has caught up on the group up to the company's announcement
        for msg in db.query(Message).filter(Message.conversation_id == group.id).all():
            if msg.sender_id != s1_user.id and msg.content != "Is there a dress code?":
                db.add(MessageReadReceipt(message_id=msg.id, user_id=s1_user.id, read_at=t))

        db.commit()

        print("=" * 60)
        print("  Messaging Demo Data Seeded Successfully!")
        print("=" * 60)
        print()
        print_tokens = not app_config.SECRET_KEY_IS_EPHEMERAL
        for user in users:
            db.refresh(user)
            identity = resolve_identity(user)
            print(f"  {identity.name:<20} {user.user_type.value:<12} id={user.id}")
            if print_tokens:
                print(f"    Bearer {create_access_token({'sub': str(user.id)}, timedelta(days=7))}")
        if not print_tokens:
            print()
            print("  WARNING: SECRET_KEY is not set, so this run used a throwaway key.")
            print("  No bearer tokens printed; the API server would reject them.")
            print("  Set SECRET_KEY in .env (e.g. `openssl rand -hex 32`) and rerun with --force.")
        print()
        print("  DATA:")
        print("    1 direct conversation, 1 group conversation")
        print(f"    {len(script)} messages")
        print("=" * 60)

    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the messaging service with demo data.")
    parser.add_argument("--force", action="store_true", help="Wipe existing data before seeding.")
    parser.add_argument("--database-url", help="Database URL (defaults to local DB from .env)")
    args = parser.parse_args()

    if args.database_url:
        print(f"Targeting: {args.database_url.split('@')[-1] if '@' in args.database_url else args.database_url}")
        confirm = input("This will write to an external database. Continue? [y/N] ")
        if confirm.lower() != "y":
            print("Aborted.")
            sys.exit(0)

    seed(force=args.force, database_url=args.database_url)
