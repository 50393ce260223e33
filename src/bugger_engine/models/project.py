"""Project model."""

from datetime import datetime

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bugger_engine.core.database import Base, new_id


class Project(Base):
    """Project model - a site that embeds the widget and owns its bug reports."""

    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    # Keys: the public key ships with the widget, the secret key authenticates API calls
    public_key: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    secret_key: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    bugs: Mapped[list["Bug"]] = relationship(
        "Bug",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


# Import at end to avoid circular imports
from bugger_engine.models.bug import Bug  # noqa: E402
