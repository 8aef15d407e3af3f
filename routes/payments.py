# =====================================================
# routes/payments.py
# =====================================================
import uuid

from fastapi import APIRouter, Depends

from db import Database
from routes.deps import get_db, get_gateway, get_poller
from schemas import (
    CallbackRequest,
    DisburseRequest,
    InitiatePaymentRequest,
    PaymentOut,
    UpdatePaymentStatusRequest,
)
from services import payments as service
from utils.security import require_user

router = APIRouter(prefix="/payments", tags=["payments"])


def _payment(payment) -> dict:
    return PaymentOut.model_validate(payment).model_dump(by_alias=True, mode="json")


@router.post("/initiate")
async def initiate_payment(
    body: InitiatePaymentRequest,
    db: Database = Depends(get_db),
    gateway=Depends(get_gateway),
    poller=Depends(get_poller),
):
    payment = await service.initiate_subscription_payment(
        db, gateway, poller,
        amount=body.amount,
        phone_number=body.phone_number,
        provider=body.provider,
        subscription_type=body.subscription_type,
        user_id=body.user_id,
    )
    message = (
        "Payment initiated and saved successfully"
        if payment.status == "SUCCESSFUL"
        else f"Payment {payment.status.lower()}"
    )
    return {"message": message, "payment": _payment(payment)}


@router.post("/disburse")
async def initiate_disbursement(
    body: DisburseRequest,
    db: Database = Depends(get_db),
    gateway=Depends(get_gateway),
    poller=Depends(get_poller),
    _claims: dict = Depends(require_user),
):
    payment = await service.disburse_to_phone(
        db, gateway, poller,
        amount=body.amount,
        phone_number=body.phone_number,
        provider=body.provider,
        user_id=body.user_id,
    )
    return {"message": f"{payment.provider} disbursement {payment.status.lower()}", "payment": _payment(payment)}


@router.post("/callback")
async def handle_callback(body: CallbackRequest, db: Database = Depends(get_db)):
    payment = await service.handle_callback(db, body.transaction_id or body.reference, body.status)
    return {"message": "Callback handled", "payment": _payment(payment)}


@router.get("/users/{user_id}/payments")
async def get_payment_history(user_id: uuid.UUID, db: Database = Depends(get_db)):
    payments = await service.list_user_payments(db, user_id)
    return {"payments": [_payment(p) for p in payments]}


@router.put("/{payment_id}/status")
async def update_payment_status(
    payment_id: uuid.UUID,
    body: UpdatePaymentStatusRequest,
    db: Database = Depends(get_db),
):
    payment = await service.update_payment_status(db, payment_id, body.status)
    return {"message": f"Payment status updated to {payment.status}!", "payment": _payment(payment)}
