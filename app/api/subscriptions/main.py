# app/api/subscriptions/main.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlmodel import Session

from ...core.audit import log_action
from ...core.users import require_admin, require_staff
from ...db.engine_sync import get_sync_session
from ...models.user import User
from ...services.subscription_service import SubscriptionService
from .models import Subscription, SubscriptionCreate, SubscriptionUpdate

router = APIRouter()


def get_subscription_service(session: Session = Depends(get_sync_session)) -> SubscriptionService:
    return SubscriptionService(session)


@router.get("/subscriptions", response_model=List[Subscription])
def api_list_subscriptions(
    limit: Optional[int] = Query(None, ge=1, le=200),
    start_after: Optional[str] = Query(None, alias="startAfter"),
    service: SubscriptionService = Depends(get_subscription_service),
    current_user: User = Depends(require_staff),
):
    try:
        return service.list(limit=limit, start_after=start_after)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/subscriptions/{subscription_id}", response_model=Subscription)
def api_get_subscription(
    subscription_id: str,
    service: SubscriptionService = Depends(get_subscription_service),
    current_user: User = Depends(require_staff),
):
    try:
        return service.get_or_raise(subscription_id)
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/subscriptions", response_model=Subscription, status_code=status.HTTP_201_CREATED)
def api_create_subscription(
    subscription: SubscriptionCreate,
    service: SubscriptionService = Depends(get_subscription_service),
    current_user: User = Depends(require_staff),
):
    try:
        return service.create(subscription.model_dump())
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.put("/subscriptions/{subscription_id}", response_model=Subscription)
def api_update_subscription(
    subscription_id: str,
    subscription_update: SubscriptionUpdate,
    service: SubscriptionService = Depends(get_subscription_service),
    current_user: User = Depends(require_staff),
):
    update_fields = subscription_update.model_dump(exclude_unset=True, mode="json")
    try:
        return service.update(subscription_id, update_fields)
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/subscriptions/{subscription_id}/renew", response_model=Subscription)
def api_renew_subscription(
    subscription_id: str,
    service: SubscriptionService = Depends(get_subscription_service),
    current_user: User = Depends(require_staff),
):
    try:
        return service.renew(subscription_id)
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.delete("/subscriptions/{subscription_id}", status_code=status.HTTP_204_NO_CONTENT)
def api_delete_subscription(
    subscription_id: str,
    request: Request,
    service: SubscriptionService = Depends(get_subscription_service),
    current_user: User = Depends(require_admin),
):
    try:
        service.delete(subscription_id)
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    log_action("DELETE", "subscription", subscription_id, user=current_user, request=request)
