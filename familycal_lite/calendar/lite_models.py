"""Data models for calendar aggregation - familycal_lite."""

import re
from datetime import UTC, datetime, timedelta
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator

from ..core.timezone_utils import now_utc as _now_utc
from .lite_datetime_utils import ensure_timezone_aware, format_iso_utc

_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

DEFAULT_SOURCE_COLORS = ("#3B82F6", "#22C55E", "#EC4899", "#F97316")


class LiteCalendarSource(BaseModel):
    """Configuration for one remote ICS calendar."""

    name: str = Field(..., min_length=1, description="Display name, also used in event ids")
    url: str = Field(..., min_length=1, description="ICS calendar URL")
    color: str = Field(default=DEFAULT_SOURCE_COLORS[0], description="Hex display color")

    model_config = ConfigDict(frozen=True)

    @field_validator("color")
    @classmethod
    def _check_color(cls, value: str) -> str:
        if not _COLOR_RE.match(value):
            raise ValueError(f"color must look like #RRGGBB, got {value!r}")
        return value


class LiteAppSettings(BaseModel):
    """Immutable runtime settings, built once at startup by ConfigManager."""

    sources: tuple[LiteCalendarSource, ...] = Field(default_factory=tuple)
    configured_slots: dict[int, bool] = Field(
        default_factory=dict, description="Slot number -> whether CAL_<n>_URL is set"
    )
    api_secret: Optional[str] = Field(default=None, description="Required x-api-key value")

    web_host: str = Field(default="0.0.0.0")
    web_port: int = Field(default=8080, gt=0, lt=65536)

    window_past_days: int = Field(default=30, ge=0)
    window_future_days: int = Field(default=180, gt=0)
    max_occurrences: int = Field(default=500, gt=0, description="Per-series expansion cap")
    max_iterations: int = Field(
        default=100_000, gt=0, description="Per-series guard on rule candidates examined"
    )

    cache_ttl_seconds: float = Field(default=300, gt=0)
    request_timeout: float = Field(default=30, gt=0)
    max_retries: int = Field(default=2, ge=0)
    retry_backoff_factor: float = Field(default=1.0, ge=0, description="Base delay between retries")

    default_timezone: str = Field(default="UTC", description="Zone for floating times")
    debug: bool = False

    model_config = ConfigDict(frozen=True)

    @property
    def source_fetch_timeout(self) -> float:
        """Upper bound for one source fetch, covering every retry."""
        return self.request_timeout * (self.max_retries + 1) + 5.0

    def source_by_slot(self, index: int) -> Optional[LiteCalendarSource]:
        """Return the 1-based ``index``-th configured source, or None."""
        if 1 <= index <= len(self.sources):
            return self.sources[index - 1]
        return None


class QueryWindow(BaseModel):
    """Half-open UTC window ``[start, end)`` for an aggregation request."""

    start: datetime
    end: datetime

    model_config = ConfigDict(frozen=True)

    @field_validator("start", "end")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        return ensure_timezone_aware(value).astimezone(UTC)

    @model_validator(mode="after")
    def _check_order(self) -> "QueryWindow":
        if self.start >= self.end:
            raise ValueError("window start must be before window end")
        return self

    @classmethod
    def around(
        cls, now: Optional[datetime] = None, past_days: int = 30, future_days: int = 180
    ) -> "QueryWindow":
        """Default window: ``[now - past_days, now + future_days)``."""
        now = now or _now_utc()
        return cls(start=now - timedelta(days=past_days), end=now + timedelta(days=future_days))


class LiteCalendarEvent(BaseModel):
    """One concrete occurrence ready for display."""

    id: str = Field(..., description="<calendar>-<uid>-<epoch millis of start>")
    title: str = Field(..., description="SUMMARY, or 'Untitled'")
    start: datetime = Field(..., description="Occurrence start (UTC)")
    end: datetime = Field(..., description="Occurrence end (UTC)")
    all_day: bool = Field(default=False, serialization_alias="allDay")
    calendar: str = Field(..., description="Source calendar name")
    color: str = Field(..., description="Source calendar color")
    location: Optional[str] = None
    description: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @field_serializer("start", "end")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize datetime to ISO 8601 UTC with milliseconds."""
        return format_iso_utc(dt)

    def overlaps(self, window_start: datetime, window_end: datetime) -> bool:
        return self.start < window_end and self.end > window_start

    def to_api_dict(self) -> dict[str, Any]:
        """JSON shape consumed by the display clients."""
        return self.model_dump(by_alias=True, exclude_none=True)


class LiteCalendarInfo(BaseModel):
    """Name and color of a configured calendar, listed even when it failed."""

    name: str
    color: str

    model_config = ConfigDict(frozen=True)


class LiteAggregationResult(BaseModel):
    """Aggregated events for a query window."""

    calendars: list[LiteCalendarInfo] = Field(default_factory=list)
    events: list[LiteCalendarEvent] = Field(default_factory=list)
    fetched_at: datetime = Field(default_factory=_now_utc, serialization_alias="fetchedAt")

    @field_serializer("fetched_at")
    def serialize_fetched_at(self, dt: datetime) -> str:
        return format_iso_utc(dt)

    def to_api_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
