"""Request, response and payload schemas shared by the API and the worker."""

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import AnyUrl, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

MAX_TELEMETRY_ENTRIES = 20

_url_adapter = TypeAdapter(AnyUrl)


def _check_url(value: str) -> str:
    """Validate a URL but keep the text exactly as the widget sent it."""
    try:
        _url_adapter.validate_python(value)
    except ValidationError as e:
        raise ValueError(f"Invalid URL: {e.errors()[0]['msg']}") from e
    return value


class BugSeverity(str, Enum):
    """Bug severity enumeration."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ConsoleLogLevel(str, Enum):
    LOG = "log"
    WARN = "warn"
    ERROR = "error"


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class Viewport(_CamelModel):
    width: int = Field(gt=0)
    height: int = Field(gt=0)


class ConsoleLog(_CamelModel):
    level: ConsoleLogLevel
    message: str
    timestamp: datetime


class NetworkError(_CamelModel):
    url: str
    status: Optional[int] = None
    method: Optional[str] = None
    timestamp: datetime

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        return _check_url(value)


def _keep_latest(entries: Optional[list]) -> Optional[list]:
    """Evict the oldest entries beyond the telemetry cap."""
    if entries is None:
        return None
    return list(entries)[-MAX_TELEMETRY_ENTRIES:]


class CreateBugPayload(_CamelModel):
    """Submission payload produced by the browser widget."""
    title: str = Field(min_length=1, max_length=200)
    steps: str = Field(min_length=1, max_length=1000)
    expected: str = Field(min_length=1, max_length=500)
    actual: str = Field(min_length=1, max_length=500)
    severity: BugSeverity
    url: str
    user_agent: str = Field(alias="userAgent", min_length=1)
    viewport: Viewport
    console_logs: Optional[List[ConsoleLog]] = Field(default=None, alias="consoleLogs")
    network_errors: Optional[List[NetworkError]] = Field(default=None, alias="networkErrors")
    screenshot_data_url: Optional[str] = Field(default=None, alias="screenshotDataUrl")
    project_public_key: str = Field(alias="projectPublicKey", min_length=1)

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        return _check_url(value)

    @field_validator("console_logs", "network_errors", mode="before")
    @classmethod
    def cap_telemetry(cls, value: Any) -> Any:
        if isinstance(value, list):
            return _keep_latest(value)
        return value


class CreateBugResponse(BaseModel):
    id: str
    status: str


class JobPayload(BaseModel):
    """Payload of an ANALYZE_BUG job."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    bug_id: str = Field(alias="bugId", min_length=1)

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True)


class BugRecord(BaseModel):
    """Decoded bug handed to AI providers."""
    id: str
    title: str
    steps: str
    expected: str
    actual: str
    severity: str
    url: str
    user_agent: str
    viewport: Viewport
    console_logs: Optional[List[ConsoleLog]] = None
    network_errors: Optional[List[NetworkError]] = None
    screenshot_data_url: Optional[str] = None
    status: str
    ai_analysis: Optional[str] = None
    ai_patch_diff: Optional[str] = None
    confidence: Optional[float] = None
    created_at: datetime
    project_public_key: str

    @classmethod
    def from_model(cls, bug: Any) -> "BugRecord":
        """Decode a persisted ``Bug`` (with its project loaded).

        JSON columns are validated here; malformed telemetry raises
        ``pydantic.ValidationError``.
        """
        return cls(
            id=bug.id,
            title=bug.title,
            steps=bug.steps,
            expected=bug.expected,
            actual=bug.actual,
            severity=bug.severity,
            url=bug.url,
            user_agent=bug.user_agent,
            viewport=Viewport.model_validate(bug.viewport),
            console_logs=_keep_latest(bug.console_logs),
            network_errors=_keep_latest(bug.network_errors),
            screenshot_data_url=bug.screenshot_data_url,
            status=bug.status,
            ai_analysis=bug.ai_analysis,
            ai_patch_diff=bug.ai_patch_diff,
            confidence=bug.confidence,
            created_at=bug.created_at,
            project_public_key=bug.project.public_key,
        )


def encode_console_logs(entries: Optional[List[ConsoleLog]]) -> Optional[list]:
    if entries is None:
        return None
    return [entry.model_dump(mode="json") for entry in _keep_latest(entries)]


def encode_network_errors(entries: Optional[List[NetworkError]]) -> Optional[list]:
    if entries is None:
        return None
    return [entry.model_dump(mode="json", exclude_none=True) for entry in _keep_latest(entries)]
