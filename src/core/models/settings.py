"""
SQLAlchemy model for operator settings.

Key/value rows for configuration that can change while the scheduler is
running (for example the timezone schedules are evaluated in).
"""

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from src.core.storage.postgres import Base
from src.core.utils.time import utcnow_naive


class Setting(Base):
    """
    Setting stored as key-value pair.

    The value column holds {"value": <actual value>} so any JSON type fits.
    """

    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow_naive, onupdate=utcnow_naive, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Setting(key='{self.key}', value={self.value})>"
