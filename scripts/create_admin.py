"""Create an admin principal.

Usage:
  python scripts/create_admin.py --username admin --email admin@example.com --password '...' --role super_admin

Run once after init_db.py to seed the first operator.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from psycopg_pool import ConnectionPool

from accountgate.config import get_settings
from accountgate.domain.account import AdminRole
from accountgate.repository import AccountRepository
from accountgate.schema import apply_schema
from accountgate.security.passwords import hash_password


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--username", required=True)
    ap.add_argument("--email", required=True)
    ap.add_argument("--password", required=True)
    ap.add_argument("--role", choices=[role.value for role in AdminRole], default=AdminRole.admin.value)
    args = ap.parse_args()

    if len(args.password) < 8:
        ap.error("admin password must be at least 8 characters")

    settings = get_settings()
    with ConnectionPool(settings.database_url) as pool:
        apply_schema(pool)
        repository = AccountRepository(pool)
        if repository.find_admin_by_username(args.username) is not None:
            print(f"Admin {args.username!r} already exists")
            return
        admin = repository.insert_admin(
            username=args.username,
            email=args.email,
            password_hash=hash_password(args.password),
            role=AdminRole(args.role),
        )

    print("Created admin:")
    print(f"  id:       {admin.admin_id}")
    print(f"  username: {admin.username}")
    print(f"  role:     {admin.role.value}")


if __name__ == "__main__":
    main()
