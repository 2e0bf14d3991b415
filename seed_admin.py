# File: seed_admin.py
"""Create the first administrator from ADMIN_EMAIL / ADMIN_PASSWORD / ADMIN_NAME."""
import logging
import sys

from civictrack.core.config import settings
from civictrack.core.security import hash_password
from civictrack.db.session import SessionLocal
from civictrack.models.user import User, UserRole

logger = logging.getLogger("seed_admin")


def seed_admin() -> int:
    if not settings.admin_email or not settings.admin_password:
        logger.error("ADMIN_EMAIL and ADMIN_PASSWORD must be set")
        return 1

    email = settings.admin_email.strip().lower()
    db = SessionLocal()
    try:
        existing = db.query(User).filter(User.email == email).first()
        if existing:
            if existing.role != UserRole.admin:
                existing.role = UserRole.admin
                existing.is_banned = False
                db.commit()
                logger.info("Promoted %s to admin", email)
            else:
                logger.info("Admin %s already exists", email)
            return 0

        db.add(User(
            email=email,
            name=settings.admin_name,
            hashed_password=hash_password(settings.admin_password),
            role=UserRole.admin,
            is_banned=False,
        ))
        db.commit()
        logger.info("Admin %s seeded", email)
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    sys.exit(seed_admin())
