"""Response schemas for /system endpoints."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class AppGroup(BaseModel):
    name: str
    environment: str
    log_level: str
    disable_auth: bool
    port: int


class DatabaseGroup(BaseModel):
    database_host: Optional[str] = None
    database_driver: Optional[str] = None
    pool_size: int
    max_overflow: int


class GeneralGroup(BaseModel):
    is_production: bool


class RedisGroup(BaseModel):
    host: str
    port: int
    namespace: str


class RealtimeGroup(BaseModel):
    message_max_length: int
    outbound_queue_size: int
    ws_ping_interval_seconds: float
    ws_pong_timeout_seconds: float
    replay_on_connect: bool
    replay_limit: int
    message_rate_limit_per_minute: Optional[int] = None


class EventSweepGroup(BaseModel):
    backend: str
    interval_seconds: float
    batch_size: int
    timeout_seconds: float
    buffer_ttl_seconds: int


class SystemSettingsGrouped(BaseModel):
    app: AppGroup
    database: DatabaseGroup
    general: GeneralGroup
    redis: RedisGroup
    realtime: RealtimeGroup
    event_sweep: EventSweepGroup


class HealthResponse(BaseModel):
    status: str
    online_connections: int
    buffered_events: Optional[int] = None
