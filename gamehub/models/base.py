import datetime as dt

from sqlalchemy.orm import DeclarativeMeta

# Re-export the application's SQLAlchemy instance
from ..db import db

# Convenience exports
Model: DeclarativeMeta = db.Model
metadata = db.metadata


def utcnow() -> dt.datetime:
    """Naive UTC timestamp; every DateTime column stores UTC."""
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)
