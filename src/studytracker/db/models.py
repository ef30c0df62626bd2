"""SQLAlchemy ORM models for the local document store.

Tables:
- documents: every record of every user collection, stored as JSON text
"""

from datetime import datetime

from sqlalchemy import DateTime, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class StoredDocument(Base):
    """One record in a user's collection."""

    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(String(128), index=True)
    collection: Mapped[str] = mapped_column(String(100), index=True)
    doc_id: Mapped[str] = mapped_column(String(255))
    data: Mapped[str] = mapped_column(Text, default="{}")  # JSON with tagged datetimes
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        UniqueConstraint("owner_id", "collection", "doc_id", name="uq_document_path"),
    )

    def __repr__(self) -> str:
        return f"<StoredDocument({self.owner_id}/{self.collection}/{self.doc_id})>"
