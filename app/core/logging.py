# app/core/logging.py
import logging
import sys

from app.core.config import settings

_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

def setup_logging(level: str | None = None) -> None:
    """Configura o logging raiz uma única vez (idempotente)."""
    root = logging.getLogger()
    root.setLevel((level or settings.LOG_LEVEL).upper())
    if any(getattr(h, "_bookstore", False) for h in root.handlers):
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT))
    handler._bookstore = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    # SQL do engine só em DEBUG
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
