"""Job record model for persistence."""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Text, DateTime, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column

from bugger_engine.core.database import Base, isoformat_utc, new_id


class JobRecord(Base):
    """Job record model - persistent queue entry.

    The payload references its bug by id only; there is no foreign key
    between jobs and bugs.
    """

    __tablename__ = "jobs"
    __table_args__ = (
        Index("jobs_status_idx", "status"),
        Index("jobs_type_idx", "type"),
        Index("jobs_created_at_idx", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    # Job info
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="queued", nullable=False)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow
    )
    claimed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "id": self.id,
            "type": self.type,
            "payload": self.payload,
            "status": self.status,
            "error": self.error,
            "createdAt": isoformat_utc(self.created_at),
            "updatedAt": isoformat_utc(self.updated_at),
            "claimedAt": isoformat_utc(self.claimed_at),
        }
