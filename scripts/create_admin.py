"""
Create an admin (or treasurer) user with a member record.
Usage: python scripts/create_admin.py --email admin@example.org --password 'change-me-now'
"""
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from cbo.core.exceptions import CBOError
from cbo.db.base import SessionLocal, unit_of_work
from cbo.models.role import AppRole
from cbo.models.user import User
from cbo.services.auth import create_user
from cbo.services.rbac import grant_role_unchecked


def create_admin(email: str, password: str, full_name: str = "Admin User", role: AppRole = AppRole.ADMIN):
    """Create a user and give it a staff role, bypassing the gate (bootstrap only)."""
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email.lower()).first()
        if user:
            print(f"User with email {email} already exists, granting role only")
        else:
            user = create_user(db, email=email, password=password, full_name=full_name)

        with unit_of_work(db):
            grant_role_unchecked(db, user.id, role)

        print(f"✅ {role.value.capitalize()} user ready")
        print(f"   Email: {user.email}")
        print(f"   Member number: {user.member.member_number if user.member else '-'}")
        print(f"\n⚠️  Please change the password after first login!")
    except CBOError as e:
        print(f"❌ Error creating {role.value} user: {e.message}")
        raise SystemExit(1)
    finally:
        db.close()


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Create an admin or treasurer user")
    parser.add_argument("--email", required=True, help="User email")
    parser.add_argument("--password", required=True, help="Initial password (at least 8 characters)")
    parser.add_argument("--full-name", default="Admin User", help="Full name")
    parser.add_argument("--role", choices=[AppRole.ADMIN.value, AppRole.TREASURER.value], default=AppRole.ADMIN.value)

    args = parser.parse_args()
    create_admin(args.email, args.password, args.full_name, AppRole(args.role))
