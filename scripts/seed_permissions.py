"""
Seed script: create the permission catalog and optionally grant it to a user.

What it does:
- Creates every permission slug the API checks (existing slugs are kept).
- With --email, creates the user if missing and grants all permissions.
- With --token, prints a bearer token for that user.

Run against the configured database:
    python scripts/seed_permissions.py --email admin@ledgerpos.local --name Admin --token

Note: This is intended for development environments only.
"""
import argparse

from ledgerpos.database.database import SessionLocal, Base, engine
from ledgerpos.modules.auth.models import User, Permission
from ledgerpos.modules.auth.permissions import PERMISSIONS
from ledgerpos.modules.auth.cache import permission_cache
from ledgerpos.modules.auth.utils import create_access_token

import ledgerpos.main  # noqa: F401  registers every model


def seed_permissions(db):
    existing = {p.slug: p for p in db.query(Permission).all()}
    created = 0
    for slug, name in PERMISSIONS.items():
        if slug not in existing:
            existing[slug] = Permission(slug=slug, name=name)
            db.add(existing[slug])
            created += 1
    db.commit()
    return list(existing.values()), created


def grant_all(db, email: str, name: str, permissions):
    user = db.query(User).filter(User.email == email).first()
    if not user:
        user = User(email=email, name=name, is_active=True)
        db.add(user)
    user.permissions = permissions
    db.commit()
    permission_cache.invalidate(user.id)
    return user


def main():
    parser = argparse.ArgumentParser(description="Seed permission slugs")
    parser.add_argument("--email", default=None, help="Grant every permission to this user")
    parser.add_argument("--name", default="Administrator")
    parser.add_argument("--token", action="store_true", help="Print an access token for the user")
    parser.add_argument("--create-tables", action="store_true")
    args = parser.parse_args()

    if args.create_tables:
        Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        permissions, created = seed_permissions(db)
        print(f"Permissions: {len(permissions)} ({created} created)")

        if args.email:
            user = grant_all(db, args.email, args.name, permissions)
            print(f"Granted all permissions to {user.email} (id: {user.id})")
            if args.token:
                print("Authorization header:")
                print(f"  Bearer {create_access_token({'sub': user.id})}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
