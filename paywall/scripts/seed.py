"""
Seed role reference data and the default admin user. Run from project root:
  python -m paywall.scripts.seed [--admin-email EMAIL] [--admin-password PASSWORD]
Defaults come from DEFAULT_ADMIN_EMAIL / DEFAULT_ADMIN_PASSWORD. Safe to run repeatedly.
"""
import argparse
import logging
import sys

from sqlalchemy.orm import Session

from paywall.core.config import get_settings
from paywall.core.database import SessionLocal
from paywall.core.security import PASSWORD_MAX_LEN, PASSWORD_MIN_LEN, hash_password
from paywall.models import Role, User
from paywall.models.user import ROLE_ADMIN, ROLE_USER

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)

DEFAULT_ROLES = (
    (ROLE_ADMIN, "Administrator role with full access"),
    (ROLE_USER, "Regular user role"),
)


def seed_roles(db: Session) -> int:
    """Insert missing roles. Returns the number created."""
    created = 0
    for name, description in DEFAULT_ROLES:
        if db.query(Role).filter(Role.name == name).first() is None:
            db.add(Role(name=name, status="active", description=description))
            created += 1
            logger.info("Role '%s' created", name)
    db.commit()
    if created == 0:
        logger.info("Roles already exist. No new roles created.")
    return created


def ensure_admin(db: Session, email: str, password: str, rounds: int) -> bool:
    """Create the admin user if absent. Returns True if created."""
    if db.query(User).filter(User.email == email).first() is not None:
        logger.info("Admin user already exists (%s).", email)
        return False
    admin_role = db.query(Role).filter(Role.name == ROLE_ADMIN).first()
    if admin_role is None:
        raise RuntimeError("Admin role not found. Seed roles before creating the admin user.")
    db.add(
        User(
            email=email,
            password_hash=hash_password(password, rounds=rounds),
            full_name="System Administrator",
            role_id=admin_role.id,
            is_active=True,
        )
    )
    db.commit()
    logger.info("Default admin user created (%s).", email)
    return True


def main() -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Seed roles and the default admin user.")
    parser.add_argument("--admin-email", default=settings.DEFAULT_ADMIN_EMAIL)
    parser.add_argument(
        "--admin-password", default=settings.DEFAULT_ADMIN_PASSWORD.get_secret_value()
    )
    args = parser.parse_args()

    email = args.admin_email.strip().lower()
    if "@" not in email:
        print("Invalid admin email.", file=sys.stderr)
        return 1
    if not (PASSWORD_MIN_LEN <= len(args.admin_password) <= PASSWORD_MAX_LEN):
        print(
            f"Password must be {PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} characters.",
            file=sys.stderr,
        )
        return 1

    db = SessionLocal()
    try:
        seed_roles(db)
        ensure_admin(db, email, args.admin_password, settings.BCRYPT_ROUNDS)
        return 0
    except Exception as e:
        logger.exception("Seeding failed: %s", e)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
