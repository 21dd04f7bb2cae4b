"""Apply the Postgres schema.

Usage:
  python scripts/init_db.py
"""

import sys
from pathlib import Path

# Ensure project root is on sys.path when running as a script
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from psycopg_pool import ConnectionPool

from accountgate.config import get_settings
from accountgate.schema import apply_schema


def main() -> None:
    settings = get_settings()
    with ConnectionPool(settings.database_url) as pool:
        apply_schema(pool)
    print("DB initialized")


if __name__ == "__main__":
    main()
