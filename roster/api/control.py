"""Subscription command API.

Implements:
- POST /subscriptions - Add or extend a subscription
- GET /subscriptions/{subscriber_id} - Subscription status
- DELETE /subscriptions/{subscriber_id} - Remove a subscription
- POST /subscriptions/{subscriber_id}/role-removed - Role was taken away by hand
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from roster.logging_config import get_logger
from roster.models import (
    AddSubscriptionRequest,
    ErrorDetailResponse,
    ErrorResponse,
    AddSubscriptionResponse,
    RemoveSubscriptionResponse,
    RoleRemovedRequest,
    RoleRemovedResponse,
    SubscriptionRecord,
    SubscriptionStatusResponse,
    SubscriptionView,
    TimeRemaining,
)
from roster.services.lifecycle_engine import SubscriptionValidationError
from roster.services.subscription_service import SubscriptionService, get_subscription_service
from roster.utils import format_time_remaining, get_time_remaining

logger = get_logger(__name__)
router = APIRouter(tags=["Subscriptions"], prefix="/subscriptions")

STORE_ERRORS = {503: {"model": ErrorResponse, "description": "Store unavailable"}}
DELIVERY_ERRORS = {502: {"model": ErrorResponse, "description": "Role change failed"}}
NOT_FOUND = {404: {"model": ErrorDetailResponse, "description": "Subscriber has no subscription"}}


def to_view(record: SubscriptionRecord) -> SubscriptionView:
    return SubscriptionView.model_validate(record.model_dump())


def _not_found(subscriber_id: str) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={
            "error": "Subscription not found",
            "message": f"Subscriber '{subscriber_id}' has no subscription",
        },
    )


@router.post(
    "",
    response_model=AddSubscriptionResponse,
    status_code=201,
    summary="Add or extend a subscription",
    responses={
        400: {"model": ErrorDetailResponse, "description": "Invalid months or IDs"},
        **DELIVERY_ERRORS,
        **STORE_ERRORS,
    },
)
def add_subscription(
    request: AddSubscriptionRequest,
    service: SubscriptionService = Depends(get_subscription_service),
) -> AddSubscriptionResponse:
    """Grant a role for N months, or extend the subscriber's current expiry.

    Raises:
        400: Months outside 1-10 or empty IDs
        502: Role could not be granted (the subscription is stored)
        503: Store unavailable
    """
    logger.info(
        "add_subscription_request",
        subscriber_id=request.subscriber_id,
        months=request.months,
        executor_id=request.executor_id,
    )

    try:
        result = service.add_subscription(
            subscriber_id=request.subscriber_id,
            months=request.months,
            role_id=request.role_id,
            executor_id=request.executor_id,
        )
    except SubscriptionValidationError as e:
        logger.warning("invalid_subscription_request", subscriber_id=request.subscriber_id, error=str(e))
        raise HTTPException(
            status_code=400,
            detail={"error": "Invalid request", "message": str(e)},
        )

    record = result.record
    if result.was_created:
        message = f"Subscription created for {request.months} month(s)"
    else:
        message = f"Subscription extended by {request.months} month(s)"

    return AddSubscriptionResponse(
        subscription=to_view(record),
        was_created=result.was_created,
        previous_expiry=result.previous_expiry,
        message=f"{message}, expires {record.expires_at.isoformat()}",
    )


@router.get(
    "/{subscriber_id}",
    response_model=SubscriptionStatusResponse,
    summary="Get subscription status",
    responses={**NOT_FOUND, **STORE_ERRORS},
)
def get_subscription_status(
    subscriber_id: str,
    service: SubscriptionService = Depends(get_subscription_service),
) -> SubscriptionStatusResponse:
    """Status with time remaining. Expired records are reported until swept."""
    record = service.get_status(subscriber_id)
    if record is None:
        raise _not_found(subscriber_id)

    now = service.clock.now()
    left = get_time_remaining(record.expires_at, now)
    active = record.is_active(now)

    return SubscriptionStatusResponse(
        subscription=to_view(record),
        active=active,
        status="ACTIVE" if active else "EXPIRED",
        time_remaining=TimeRemaining(
            days=left.days,
            hours=left.hours,
            minutes=left.minutes,
            expired=left.expired,
            text=format_time_remaining(record.expires_at, now),
        ),
    )


@router.delete(
    "/{subscriber_id}",
    response_model=RemoveSubscriptionResponse,
    summary="Remove a subscription",
    responses={**NOT_FOUND, **DELIVERY_ERRORS, **STORE_ERRORS},
)
def remove_subscription(
    subscriber_id: str,
    executor_id: Optional[str] = None,
    service: SubscriptionService = Depends(get_subscription_service),
) -> RemoveSubscriptionResponse:
    """Revoke the role and delete the subscription.

    Raises:
        404: Subscriber has no subscription
        502: Role could not be revoked (the subscription is kept)
    """
    logger.info("remove_subscription_request", subscriber_id=subscriber_id, executor_id=executor_id)

    record = service.remove_subscription(subscriber_id, executor_id=executor_id)
    if record is None:
        raise _not_found(subscriber_id)

    return RemoveSubscriptionResponse(
        subscriber_id=record.subscriber_id,
        role_id=record.role_id,
        message="Subscription removed",
    )


@router.post(
    "/{subscriber_id}/role-removed",
    response_model=RoleRemovedResponse,
    summary="Handle a manual role removal",
    responses=STORE_ERRORS,
)
def role_removed(
    subscriber_id: str,
    request: Optional[RoleRemovedRequest] = None,
    service: SubscriptionService = Depends(get_subscription_service),
) -> RoleRemovedResponse:
    """Delete the subscription of a member whose role was removed by hand."""
    role_id = request.role_id if request is not None else None
    removed = service.handle_role_removed(subscriber_id, role_id)
    return RoleRemovedResponse(subscriber_id=subscriber_id, removed=removed)
