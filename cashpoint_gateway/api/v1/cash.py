"""Cash-in / cash-out initiation and agent confirmation endpoints"""

import time
import logging
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from cashpoint_gateway.api.v1.schemas import (
    AgentBrief,
    CashInRequest,
    CashOutRequest,
    ConfirmRequest,
    ConfirmResponse,
    InitiationResponse,
    TransactionSchema,
)
from cashpoint_gateway.api.dependencies import get_current_user_id, get_engine, get_request_id
from cashpoint_gateway.infrastructure.database.session import get_db
from cashpoint_gateway.domain.exceptions import DomainException, InternalServiceError
from cashpoint_gateway.infrastructure.observability.logging import log_cash_transaction
from cashpoint_gateway.services.engine import CashTransactionEngine, InitiationResult
from cashpoint_gateway.utils.money import from_cents

router = APIRouter()


def _initiation_response(result: InitiationResult, include_deduction: bool) -> InitiationResponse:
    txn = result.transaction
    return InitiationResponse(
        transaction_id=str(txn.id),
        reference=txn.reference,
        status=txn.status.value,
        amount=from_cents(txn.amount_cents),
        commission=from_cents(txn.commission_cents),
        total_deduction=from_cents(result.total_deduction_cents) if include_deduction else None,
        agent=AgentBrief.from_domain(result.agent),
        estimated_completion=result.estimated_completion,
    )


def _log(request: Request, step: str, result_txn, start_time: float) -> None:
    log_cash_transaction(
        get_request_id(request),
        step,
        str(result_txn.id),
        result_txn.type.value,
        result_txn.amount_cents,
        result_txn.status.value,
        (time.time() - start_time) * 1000,
    )


@router.post("/cash-in", response_model=InitiationResponse, response_model_exclude_none=True)
async def initiate_cash_in(
    body: CashInRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    engine: CashTransactionEngine = Depends(get_engine),
    db: Session = Depends(get_db),
):
    """
    Customer asks an agent to take cash and credit their wallet.

    Flow:
    1. Validate fields and amount (minimum 10.00)
    2. Resolve the agent and check it can front the float
    3. Record a pending transaction and notify the agent
    """
    start_time = time.time()
    try:
        result = await engine.initiate_cash_in(
            customer_id=user_id,
            agent_code=body.agent_code,
            amount=body.amount,
            customer_phone=body.customer_phone,
            reference=body.reference,
        )
    except DomainException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected cash-in error: {e}", extra={"request_id": get_request_id(request)})
        raise InternalServiceError("Failed to initiate cash-in transaction") from e

    _log(request, "cash_in_initiated", result.transaction, start_time)
    return _initiation_response(result, include_deduction=False)


@router.post("/cash-out", response_model=InitiationResponse, response_model_exclude_none=True)
async def initiate_cash_out(
    body: CashOutRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    engine: CashTransactionEngine = Depends(get_engine),
    db: Session = Depends(get_db),
):
    """
    Customer asks an agent to pay out cash against their wallet.

    The response shows amount + commission so the customer sees the full
    deduction before the agent confirms.
    """
    start_time = time.time()
    try:
        result = await engine.initiate_cash_out(
            customer_id=user_id,
            agent_code=body.agent_code,
            amount=body.amount,
            pin=body.pin,
            reference=body.reference,
        )
    except DomainException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected cash-out error: {e}", extra={"request_id": get_request_id(request)})
        raise InternalServiceError("Failed to initiate cash-out transaction") from e

    _log(request, "cash_out_initiated", result.transaction, start_time)
    return _initiation_response(result, include_deduction=True)


@router.post("/cash-transactions/confirm", response_model=ConfirmResponse)
async def confirm_cash_transaction(
    body: ConfirmRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    engine: CashTransactionEngine = Depends(get_engine),
    db: Session = Depends(get_db),
):
    """Agent confirms (moves balances) or cancels a pending transaction"""
    start_time = time.time()
    try:
        result = await engine.confirm_transaction(
            agent_user_id=user_id,
            transaction_id=body.transaction_id,
            pin=body.pin,
            action=body.action,
        )
    except DomainException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected confirmation error: {e}", extra={"request_id": get_request_id(request)})
        raise InternalServiceError("Failed to process transaction") from e

    _log(request, f"{body.action}_processed", result.transaction, start_time)
    return ConfirmResponse(message=result.message, transaction=TransactionSchema.from_domain(result.transaction))


@router.get("/cash-transactions/{transaction_id}", response_model=TransactionSchema)
def get_cash_transaction(
    transaction_id: str,
    user_id: str = Depends(get_current_user_id),
    engine: CashTransactionEngine = Depends(get_engine),
):
    """Transaction details for its customer or the owning agent"""
    return TransactionSchema.from_domain(engine.get_transaction_for(user_id, transaction_id))
