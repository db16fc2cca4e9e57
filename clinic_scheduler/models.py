# clinic_scheduler/models.py
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, DateTime, Text, UniqueConstraint
from datetime import datetime, timezone
from .database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class KeyValue(Base):
    """Single-value keys (e.g. clinic:settings)."""

    __tablename__ = "kv_values"
    __table_args__ = (
        UniqueConstraint("key", name="uq_kv_values_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    key: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    # JSON text, encoded once by the store
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class ListItem(Base):
    """
    One entry of a list key (e.g. clinic:appointments). List order is the
    autoincrement id, so appends keep insertion order.
    """

    __tablename__ = "kv_list_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
