from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from app.config import get_settings
from app.core.app_state import state
from app.core.exceptions import EventStoreError
from app.infra.logging_config import get_logger
from app.routers.utils.dependencies import get_current_user_id
from app.schemas.system import (
    AppGroup,
    DatabaseGroup,
    EventSweepGroup,
    GeneralGroup,
    HealthResponse,
    RealtimeGroup,
    RedisGroup,
    SystemSettingsGrouped,
)

logger = get_logger("system")

router = APIRouter(
    prefix="/system",
    tags=["system"],
    responses={404: {"description": "Not found"}},
)


@router.get("/health", response_model=HealthResponse)
async def get_health() -> HealthResponse:
    """Liveness plus the size of the registry and the event buffer."""
    hub = state.hub
    buffered = None
    if state.buffer is not None:
        try:
            buffered = await run_in_threadpool(state.buffer.count)
        except EventStoreError as e:
            logger.warning("Health check could not read the event buffer: %s", e)
    return HealthResponse(
        status="ok" if hub is not None and hub.running else "degraded",
        online_connections=hub.online_count if hub is not None else 0,
        buffered_events=buffered,
    )


@router.get("/settings", response_model=SystemSettingsGrouped)
def get_system_settings(
    _current_user: UUID = Depends(get_current_user_id),
) -> SystemSettingsGrouped:
    """Return grouped, non-sensitive system configuration settings for troubleshooting."""
    s = get_settings()

    app_group = AppGroup(
        name=s.app_name,
        environment=s.environment,
        log_level=s.log_level,
        disable_auth=s.disable_auth,
        port=s.port,
    )

    # Extract safe database info only (no credentials)
    database_host = None
    database_driver = None
    try:
        url_obj = s.database_url_obj
        database_host = url_obj.host
        database_driver = url_obj.get_backend_name()
    except ValueError:
        pass

    database_group = DatabaseGroup(
        database_host=database_host,
        database_driver=database_driver,
        pool_size=s.database_pool_size,
        max_overflow=s.database_max_overflow,
    )

    general_group = GeneralGroup(
        is_production=s.is_production,
    )

    redis_group = RedisGroup(
        host=s.redis_host,
        port=s.redis_port,
        namespace=s.redis_namespace,
    )

    realtime_group = RealtimeGroup(
        message_max_length=s.message_max_length,
        outbound_queue_size=s.outbound_queue_size,
        ws_ping_interval_seconds=s.ws_ping_interval_seconds,
        ws_pong_timeout_seconds=s.ws_pong_timeout_seconds,
        replay_on_connect=s.replay_on_connect,
        replay_limit=s.replay_limit,
        message_rate_limit_per_minute=s.message_rate_limit_per_minute,
    )

    sweep_group = EventSweepGroup(
        backend=s.event_sweep_backend,
        interval_seconds=s.event_sweep_interval_seconds,
        batch_size=s.event_sweep_batch_size,
        timeout_seconds=s.event_sweep_timeout_seconds,
        buffer_ttl_seconds=s.event_buffer_ttl_seconds,
    )

    grouped = SystemSettingsGrouped(
        app=app_group,
        database=database_group,
        general=general_group,
        redis=redis_group,
        realtime=realtime_group,
        event_sweep=sweep_group,
    )

    return grouped
