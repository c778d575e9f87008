"""Read-only dashboard API.

Implements:
- GET /api/stats - Total, active and expired counts
- GET /api/subscriptions - Active subscriptions, soonest expiry first
"""

from fastapi import APIRouter, Depends

from roster.models import ActiveSubscriptionEntry, ErrorResponse, StatsResponse
from roster.services.subscription_service import SubscriptionService, get_subscription_service
from roster.utils import get_time_remaining, is_expiring_soon, is_expiring_today

router = APIRouter(
    tags=["Dashboard"],
    prefix="/api",
    responses={503: {"model": ErrorResponse, "description": "Store unavailable"}},
)


@router.get("/stats", response_model=StatsResponse, summary="Subscription counts")
def get_stats(service: SubscriptionService = Depends(get_subscription_service)) -> StatsResponse:
    stats = service.get_statistics()
    return StatsResponse(total=stats.total, active=stats.active, expired=stats.expired)


@router.get(
    "/subscriptions",
    response_model=list[ActiveSubscriptionEntry],
    summary="List active subscriptions",
)
def list_active_subscriptions(
    service: SubscriptionService = Depends(get_subscription_service),
) -> list[ActiveSubscriptionEntry]:
    now = service.clock.now()
    entries = []
    for record in service.list_active(now):
        left = get_time_remaining(record.expires_at, now)
        entries.append(
            ActiveSubscriptionEntry(
                subscriber_id=record.subscriber_id,
                role_id=record.role_id,
                months=record.months,
                start_at=record.start_at,
                expires_at=record.expires_at,
                days_remaining=left.days,
                hours_remaining=left.hours,
                minutes_remaining=left.minutes,
                expiring_soon=is_expiring_soon(record.expires_at, now),
                expiring_today=is_expiring_today(record.expires_at, now),
            )
        )
    return entries
