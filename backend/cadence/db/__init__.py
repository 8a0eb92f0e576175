"""Database utilities and models."""

from cadence.db.base import Base
from cadence.db import models  # noqa: F401  (imported for side effects)

__all__ = ["Base"]
