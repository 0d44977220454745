# app/api/payments/main.py
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlmodel import Session

from ...core.audit import log_action
from ...core.users import require_admin, require_authenticated, require_staff
from ...db.engine_sync import get_sync_session
from ...models.user import User
from ...services.billing_service import BillingService
from ...services.payment_service import PaymentService
from .models import Payment, PaymentCreate, PaymentFilters, PaymentList, PaymentStats, PaymentStatusUpdate

router = APIRouter()


# --- Dependency Injectors ---
def get_billing_service(session: Session = Depends(get_sync_session)) -> BillingService:
    return BillingService(session)


def get_payment_service(session: Session = Depends(get_sync_session)) -> PaymentService:
    return PaymentService(session)


@router.post("/payments", response_model=Payment, status_code=status.HTTP_201_CREATED)
def api_create_payment(
    payment: PaymentCreate,
    service: BillingService = Depends(get_billing_service),
    current_user: User = Depends(require_authenticated),
):
    try:
        return service.create_payment(payment.model_dump(mode="json"), str(current_user.id))
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/payments", response_model=PaymentList)
def api_list_payments(
    filters: PaymentFilters = Depends(),
    service: PaymentService = Depends(get_payment_service),
    current_user: User = Depends(require_staff),
):
    return service.list(filters.model_dump(exclude_none=True))


@router.get("/payments/stats", response_model=PaymentStats)
def api_get_payment_stats(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    service: PaymentService = Depends(get_payment_service),
    current_user: User = Depends(require_staff),
):
    return service.get_stats(start_date, end_date)


@router.get("/payments/subscription/{subscription_id}", response_model=List[Payment])
def api_get_payments_for_subscription(
    subscription_id: uuid.UUID,
    service: PaymentService = Depends(get_payment_service),
    current_user: User = Depends(require_staff),
):
    return service.get_by_subscription_id(subscription_id)


@router.get("/payments/{payment_id}", response_model=Payment)
def api_get_payment(
    payment_id: int,
    service: PaymentService = Depends(get_payment_service),
    current_user: User = Depends(require_staff),
):
    payment = service.get_by_id(payment_id)
    if not payment:
        raise HTTPException(status_code=404, detail="Pago no encontrado")
    return payment


@router.patch("/payments/{payment_id}/verify", response_model=Payment)
def api_verify_payment(
    payment_id: int,
    request: Request,
    body: Optional[PaymentStatusUpdate] = None,
    service: BillingService = Depends(get_billing_service),
    current_user: User = Depends(require_admin),
):
    notes = body.notes if body else None
    try:
        payment = service.verify_payment(payment_id, str(current_user.id), notes)
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        log_action("VERIFY", "payment", payment_id, user=current_user, request=request,
                   details={"error": str(e)}, status="failure")
        raise HTTPException(status_code=400, detail=str(e))
    log_action("VERIFY", "payment", payment_id, user=current_user, request=request)
    return payment


@router.patch("/payments/{payment_id}/reject", response_model=Payment)
def api_reject_payment(
    payment_id: int,
    request: Request,
    body: Optional[PaymentStatusUpdate] = None,
    service: BillingService = Depends(get_billing_service),
    current_user: User = Depends(require_admin),
):
    notes = body.notes if body else None
    try:
        payment = service.reject_payment(payment_id, str(current_user.id), notes)
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    log_action("REJECT", "payment", payment_id, user=current_user, request=request)
    return payment


@router.patch("/payments/{payment_id}/retry", response_model=Payment)
def api_retry_payment(
    payment_id: int,
    request: Request,
    service: BillingService = Depends(get_billing_service),
    current_user: User = Depends(require_admin),
):
    try:
        payment = service.retry_payment(payment_id, str(current_user.id))
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    log_action("RETRY", "payment", payment_id, user=current_user, request=request)
    return payment
