# app/db/init_db.py
import logging
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.security_password import hash_password
from app.models.user import User

log = logging.getLogger(__name__)

def init_db(db: Session) -> None:
    admin = db.scalar(select(User).where(User.username == settings.ADMIN_USERNAME))
    if not admin:
        admin = User(
            username=settings.ADMIN_USERNAME,
            email=f"{settings.ADMIN_USERNAME}@bookstore.local",
            hashed_password=hash_password(settings.ADMIN_PASSWORD),
            is_admin=True,
        )
        db.add(admin)
        log.info("seeded admin user %s", settings.ADMIN_USERNAME)
    elif not admin.is_admin:
        admin.is_admin = True

    db.commit()
