"""Operator API for sweeps and virtual time.

Implements:
- POST /admin/sweeps/expired - Run the expiry sweep now
- POST /admin/sweeps/warnings - Run the warning sweep now
- GET /admin/time - Current virtual time
- POST /admin/time/advance - Move virtual time forward, then sweep
- POST /admin/time/set - Jump virtual time, then sweep
- POST /admin/time/reset - Drop the virtual offset

Time endpoints answer 403 unless time_control_enabled is set.
"""

from fastapi import APIRouter, Depends, HTTPException

from roster.config import get_settings
from roster.logging_config import get_logger
from roster.models import (
    AdvanceTimeRequest,
    ErrorDetailResponse,
    ErrorResponse,
    RosterSettings,
    SetTimeRequest,
    SweepExpiredResponse,
    SweepWarningsResponse,
    TimeChangeResponse,
    TimeStatusResponse,
)
from roster.services.subscription_service import SubscriptionService, get_subscription_service

logger = get_logger(__name__)
router = APIRouter(
    tags=["Admin"],
    prefix="/admin",
    responses={503: {"model": ErrorResponse, "description": "Store unavailable"}},
)

TIME_CONTROL_DISABLED = {403: {"model": ErrorDetailResponse, "description": "Time control disabled"}}


def require_time_control(settings: RosterSettings = Depends(get_settings)) -> None:
    if not settings.time_control_enabled:
        raise HTTPException(
            status_code=403,
            detail={
                "error": "Time control disabled",
                "message": "Set time_control_enabled in the configuration to use virtual time",
            },
        )


def _sweep_at_new_time(service: SubscriptionService, change: dict) -> TimeChangeResponse:
    """Run both sweeps at the new time so the change takes effect at once."""
    new_time = change["new_time"]
    removed = service.process_expired(now=new_time)
    warnings = service.process_warnings(now=new_time)
    return TimeChangeResponse(
        old_time=change["old_time"],
        new_time=new_time,
        expired_removed=[subscriber_id for subscriber_id, _ in removed],
        warnings_sent=warnings,
    )


@router.post("/sweeps/expired", response_model=SweepExpiredResponse, summary="Run expiry sweep")
def sweep_expired(service: SubscriptionService = Depends(get_subscription_service)) -> SweepExpiredResponse:
    now = service.clock.now()
    removed = service.process_expired(now=now)
    logger.info("manual_expiry_sweep", removed=len(removed))
    return SweepExpiredResponse(swept_at=now, removed=[subscriber_id for subscriber_id, _ in removed])


@router.post("/sweeps/warnings", response_model=SweepWarningsResponse, summary="Run warning sweep")
def sweep_warnings(service: SubscriptionService = Depends(get_subscription_service)) -> SweepWarningsResponse:
    now = service.clock.now()
    sent = service.process_warnings(now=now)
    logger.info("manual_warning_sweep", **sent)
    return SweepWarningsResponse(swept_at=now, **sent)


@router.get(
    "/time",
    response_model=TimeStatusResponse,
    dependencies=[Depends(require_time_control)],
    summary="Get virtual time",
    responses=TIME_CONTROL_DISABLED,
)
def get_time(service: SubscriptionService = Depends(get_subscription_service)) -> TimeStatusResponse:
    clock = service.clock
    return TimeStatusResponse(
        current_time=clock.now(),
        offset_seconds=clock.offset.total_seconds(),
        frozen=clock.frozen,
    )


@router.post(
    "/time/advance",
    response_model=TimeChangeResponse,
    dependencies=[Depends(require_time_control)],
    summary="Advance virtual time",
    responses=TIME_CONTROL_DISABLED,
)
def advance_time(
    request: AdvanceTimeRequest,
    service: SubscriptionService = Depends(get_subscription_service),
) -> TimeChangeResponse:
    """Move time forward, then run the expiry and warning sweeps.

    Note: the warning sweep only sees the new instant. A jump past a
    warning window skips that warning.
    """
    logger.info("advance_time_request", days=request.days, hours=request.hours, minutes=request.minutes)
    change = service.clock.advance_time(days=request.days, hours=request.hours, minutes=request.minutes)
    return _sweep_at_new_time(service, change)


@router.post(
    "/time/set",
    response_model=TimeChangeResponse,
    dependencies=[Depends(require_time_control)],
    summary="Set virtual time",
    responses={
        400: {"model": ErrorDetailResponse, "description": "Target is in the virtual past"},
        **TIME_CONTROL_DISABLED,
    },
)
def set_time(
    request: SetTimeRequest,
    service: SubscriptionService = Depends(get_subscription_service),
) -> TimeChangeResponse:
    try:
        change = service.clock.set_time(request.timestamp)
    except ValueError as e:
        raise HTTPException(
            status_code=400,
            detail={"error": "Invalid time", "message": str(e)},
        )
    return _sweep_at_new_time(service, change)


@router.post(
    "/time/reset",
    response_model=TimeStatusResponse,
    dependencies=[Depends(require_time_control)],
    summary="Reset virtual time",
    responses=TIME_CONTROL_DISABLED,
)
def reset_time(service: SubscriptionService = Depends(get_subscription_service)) -> TimeStatusResponse:
    clock = service.clock
    clock.reset_time()
    return TimeStatusResponse(
        current_time=clock.now(),
        offset_seconds=clock.offset.total_seconds(),
        frozen=clock.frozen,
    )
