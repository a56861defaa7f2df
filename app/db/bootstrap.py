# app/db/bootstrap.py
import logging
import os
from alembic import command
from alembic.config import Config
from sqlalchemy.orm import sessionmaker

from app.db.init_db import init_db

log = logging.getLogger(__name__)

BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))

def run_migrations_and_seed(session_factory: sessionmaker) -> None:
    # Aponta explicitamente para alembic.ini e migrations/
    cfg = Config(os.path.join(BASE_DIR, "alembic.ini"))
    cfg.set_main_option("script_location", os.path.join(BASE_DIR, "migrations"))

    # Aplica todas as migrações
    command.upgrade(cfg, "head")
    log.info("migrations applied")

    # Roda o seed
    with session_factory() as db:
        init_db(db)
