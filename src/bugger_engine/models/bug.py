"""Bug report model."""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Float, Text, DateTime, JSON, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bugger_engine.core.database import Base, isoformat_utc, new_id


class Bug(Base):
    """Bug model - a submitted bug report and its AI analysis."""

    __tablename__ = "bugs"
    __table_args__ = (
        Index("bugs_status_idx", "status"),
        Index("bugs_severity_idx", "severity"),
        Index("bugs_created_at_idx", "created_at"),
        Index("bugs_project_id_idx", "project_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    project_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Report
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    steps: Mapped[str] = mapped_column(Text, nullable=False)
    expected: Mapped[str] = mapped_column(Text, nullable=False)
    actual: Mapped[str] = mapped_column(Text, nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)  # low, medium, high, critical

    # Telemetry
    url: Mapped[str] = mapped_column(Text, nullable=False)
    user_agent: Mapped[str] = mapped_column(Text, nullable=False)
    viewport: Mapped[dict] = mapped_column(JSON, nullable=False)
    console_logs: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    network_errors: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    screenshot_data_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Status
    status: Mapped[str] = mapped_column(
        String(20),
        default="new",
        nullable=False
    )  # new, queued, analyzing, analyzed, error

    # AI analysis
    ai_analysis: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ai_patch_diff: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    ai_provider: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    project: Mapped["Project"] = relationship("Project", back_populates="bugs")

    def to_dict(self, project_public_key: Optional[str] = None) -> dict:
        """Convert to dictionary for API response."""
        return {
            "id": self.id,
            "title": self.title,
            "steps": self.steps,
            "expected": self.expected,
            "actual": self.actual,
            "severity": self.severity,
            "url": self.url,
            "userAgent": self.user_agent,
            "viewport": self.viewport,
            "consoleLogs": self.console_logs,
            "networkErrors": self.network_errors,
            "screenshotDataUrl": self.screenshot_data_url,
            "status": self.status,
            "aiAnalysis": self.ai_analysis,
            "aiPatchDiff": self.ai_patch_diff,
            "confidence": self.confidence,
            "aiProvider": self.ai_provider,
            "createdAt": isoformat_utc(self.created_at),
            "projectPublicKey": project_public_key,
        }


from bugger_engine.models.project import Project  # noqa: E402
