#!/usr/bin/env python3
"""
Create the first admin accounts.

Seeds a master user, or a restaurant plus its client user, into whichever
store the environment selects (PostgreSQL when DATABASE_URL is set, else
the local JSON store at DATA_PATH).

Usage:
    python scripts/seed_admin.py master --email admin@example.com --password secret
    python scripts/seed_admin.py client --email owner@example.com --password secret \
        --restaurant "Casa Nonna"
    DATABASE_URL=... python scripts/seed_admin.py master --email ... --password ...
"""
import argparse
import sys

from menuz import db
from menuz.services.catalog_service import CatalogService
from menuz.services.identity_service import ROLE_CLIENT, ROLE_MASTER, IdentityService
from menuz.services.blob_store import build_blob_store
from menuz.services.store import build_store
from menuz.utils.error_handlers import ApiError
from menuz.utils.helpers import normalize_slug


def _resolve_restaurant(catalog: CatalogService, name: str) -> dict:
    existing = catalog.store.get_restaurant_by_slug(normalize_slug(name))
    if existing:
        print(f"[seed_admin] Using existing restaurant {existing['slug']} ({existing['id']})")
        return existing
    restaurant = catalog.create_restaurant({"name": name})
    print(f"[seed_admin] Created restaurant {restaurant['slug']} ({restaurant['id']})")
    return restaurant


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Seed Menuz admin users")
    parser.add_argument("role", choices=[ROLE_MASTER, ROLE_CLIENT])
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--restaurant", help="restaurant name (client users only)")
    args = parser.parse_args(argv)

    if args.role == ROLE_CLIENT and not args.restaurant:
        parser.error("--restaurant is required for client users")

    if db.USE_DB:
        db.init_db()
    store = build_store()
    catalog = CatalogService(store, build_blob_store())

    restaurant_id = None
    if args.role == ROLE_CLIENT:
        try:
            restaurant_id = _resolve_restaurant(catalog, args.restaurant)["id"]
        except ApiError as e:
            print(f"[seed_admin] ERROR: {e.code}")
            return 1

    try:
        user = IdentityService.create_user(
            store, args.email, args.password, role=args.role, restaurant_id=restaurant_id
        )
    except ValueError as e:
        print(f"[seed_admin] ERROR: {e}")
        return 1

    print(f"[seed_admin] Created {user['role']} user {user['email']} ({user['id']})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
