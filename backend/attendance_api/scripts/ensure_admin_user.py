from __future__ import annotations

import argparse
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from attendance_api.core.security import get_password_hash
from attendance_api.core.settings import settings
from attendance_api.db.session import SessionLocal
from attendance_api.models.enums import AdminRole
from attendance_api.models.user import AdminUser


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create or update an administrator login.")
    parser.add_argument("--username", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument(
        "--role",
        default=AdminRole.ADMIN.value,
        choices=[role.value for role in AdminRole],
        help="Global admin or department-scoped admin",
    )
    parser.add_argument("--department", type=int, default=None, help="Department for department admins")
    parser.add_argument(
        "--allow-production",
        action="store_true",
        help="Allow running in production.",
    )
    return parser.parse_args()


def ensure_admin_user(
    db: Session,
    *,
    username: str,
    password: str,
    role: AdminRole,
    department: Optional[int] = None,
) -> tuple[AdminUser, str]:
    if role == AdminRole.DEPARTMENT and department is None:
        raise ValueError("department admins need --department")

    admin = db.scalar(select(AdminUser).where(AdminUser.username == username))
    if admin:
        admin.hashed_password = get_password_hash(password)
        admin.role = role
        admin.department = department
        action = "updated"
    else:
        admin = AdminUser(
            username=username,
            hashed_password=get_password_hash(password),
            role=role,
            department=department,
        )
        db.add(admin)
        action = "created"
    db.flush()
    return admin, action


def main() -> None:
    args = parse_args()
    if settings.is_production and not args.allow_production:
        raise RuntimeError("Refusing to run in production without --allow-production")

    with SessionLocal() as db:
        admin, action = ensure_admin_user(
            db,
            username=args.username,
            password=args.password,
            role=AdminRole(args.role),
            department=args.department,
        )
        db.commit()
        print(f"{action} admin user: {admin.username} ({admin.role.value})")


if __name__ == "__main__":
    main()
