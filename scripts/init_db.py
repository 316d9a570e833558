import os
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.doctrack.models import User
from app.doctrack.modules.departments.service import seed_default_departments
from scripts._db_utils import script_store


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed default departments and an admin user in an idempotent way.
    Does NOT overwrite an existing admin user's password.
    """
    admin_username = (os.environ.get("ADMIN_USERNAME") or "admin").strip()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@doctrack.local").strip().lower()

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///doctrack.db").strip()

    with script_store(db_url) as store:
        created = seed_default_departments(store)

        with store.transaction():
            user = store.get_user_by_username(admin_username)
            if not user:
                store.create_user(
                    User(
                        username=admin_username,
                        password_hash=generate_password_hash(admin_password),
                        name="Administrator",
                        email=admin_email,
                        role="admin",
                        is_active=True,
                    )
                )

    print(f"Initialized database (seed_only). Departments created: {created}")
    print(f"Admin username: {admin_username}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
