"""Seed the default organisation and admin user.

Usage: python -m chaosops.seed (password from CHAOSOPS_ADMIN_PASSWORD; a
random one is generated and printed once when unset).
"""

import logging
import secrets
from typing import Optional

from sqlmodel import Session, select

from chaosops.config import settings
from chaosops.database import engine, init_db
from chaosops.models.organisation import Organisation, User
from chaosops.utils.security import hash_password

logger = logging.getLogger(__name__)


def seed(session: Session, password: Optional[str] = None) -> tuple[User, bool]:
    """Create the default organisation and admin if missing. Idempotent.

    Returns the admin and whether it was created by this call. ``password``
    is only needed when the admin does not exist yet.
    """
    org = session.exec(
        select(Organisation).where(Organisation.name == settings.default_organisation_name)
    ).first()
    if not org:
        org = Organisation(name=settings.default_organisation_name)
        session.add(org)
        session.flush()
        logger.info("Created organisation %s (%s)", org.name, org.id)

    admin = session.exec(select(User).where(User.username == settings.admin_username)).first()
    created = admin is None
    if created:
        password = password or settings.admin_password
        if not password:
            raise ValueError("No admin password given")
        admin = User(
            organisation_id=org.id,
            username=settings.admin_username,
            password_hash=hash_password(password),
            role="admin",
        )
        session.add(admin)
        logger.info("Created admin user %s", admin.username)

    session.commit()
    session.refresh(admin)
    return admin, created


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    init_db()
    password = settings.admin_password or secrets.token_urlsafe(12)
    with Session(engine) as session:
        admin, created = seed(session, password)
    if created and not settings.admin_password:
        print(f"Admin user '{admin.username}' created with password: {password}")


if __name__ == "__main__":
    main()
