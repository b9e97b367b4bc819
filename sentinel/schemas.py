from datetime import datetime, timezone
from typing import Dict, List

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

class Endpoint(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)
    id: str = Field(min_length=1)
    name: str
    url: str

class StatusRecord(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)
    id: str
    endpoint_id: str = Field(validation_alias=AliasChoices("endpoint_id", "site_id"))
    observed_at: datetime
    reachable: bool
    message: str = ""
    latency_ms: int = 0

    @field_validator("observed_at")
    @classmethod
    def _as_utc(cls, v: datetime) -> datetime:
        # SQLite devuelve datetimes sin zona; se guardan siempre en UTC
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

class UptimeWindow(BaseModel):
    model_config = ConfigDict(frozen=True)
    endpoint_id: str
    window_seconds: float
    ratio: float  # 0..1

class SiteStatus(BaseModel):
    model_config = ConfigDict(frozen=True)
    site: Endpoint
    statuses: List[StatusRecord]  # más reciente primero
    uptime: float                 # porcentaje 0..100
    degraded: bool = False

class Snapshot(BaseModel):
    model_config = ConfigDict(frozen=True)
    generated_at: datetime = Field(default_factory=utcnow)
    sites: Dict[str, SiteStatus] = Field(default_factory=dict)

class CycleError(BaseModel):
    model_config = ConfigDict(frozen=True)
    detail: str
    generated_at: datetime = Field(default_factory=utcnow)
