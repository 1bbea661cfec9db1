"""
Clinical CDS Database Models
SQLAlchemy 2.0 ORM models backing the key-value persistence boundary
"""

from datetime import datetime
from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all models"""
    pass


class TimestampMixin:
    """Mixin for created_at and updated_at timestamps"""
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )


# =============================================================================
# Key-Value Storage Model
# =============================================================================

class KeyValueEntry(Base, TimestampMixin):
    """
    One serialized collection (alert history or audit log) stored under a key

    Each write replaces the whole value, so concurrent writers racing a
    read-modify-write cycle can lose updates.
    """
    __tablename__ = "cds_storage"

    key: Mapped[str] = mapped_column(String(200), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)

    def __repr__(self) -> str:
        return f"<KeyValueEntry(key={self.key}, size={len(self.value or '')})>"
