import logging

from fastapi import APIRouter, Response, status

from app.api.dependencies import SessionDep
from app.exceptions import BatchNotFoundException, NoEligiblePayoutsException
from app.schemas.fees import EscrowHoldRequest, EscrowHoldResponse
from app.schemas.payouts import (
    BatchConfirmRequest,
    BatchConfirmResult,
    BatchFailRequest,
    BatchFailResult,
    BatchStatusSummary,
    PayoutBatchResponse,
    PayoutCreate,
    PayoutResponse,
    PayoutRetryRequest,
    PayoutRetryResult,
)
from app.services.batch_export import render_batch_csv
from app.services.payout_batch import PayoutBatchManager
from app.services.payout_service import PayoutService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=PayoutResponse, status_code=status.HTTP_201_CREATED)
async def create_payout(payout_data: PayoutCreate, session: SessionDep) -> PayoutResponse:
    async with session.begin():
        payout = await PayoutService(session).create_payout(
            seller_id=payout_data.seller_id,
            amount=payout_data.amount,
            completed_at=payout_data.completed_at,
            order_id=payout_data.order_id,
            currency=payout_data.currency,
        )
    return PayoutResponse.model_validate(payout)


@router.post(
    "/escrow", response_model=EscrowHoldResponse, status_code=status.HTTP_201_CREATED
)
async def hold_escrow(
    hold_data: EscrowHoldRequest, session: SessionDep
) -> EscrowHoldResponse:
    async with session.begin():
        fees = await PayoutService(session).hold_escrow(
            seller_id=hold_data.seller_id,
            base_amount=hold_data.base_amount,
            gateway=hold_data.gateway,
            method=hold_data.method,
            received_amount=hold_data.received_amount,
            order_id=hold_data.order_id,
        )
    return EscrowHoldResponse(
        seller_id=hold_data.seller_id,
        order_id=hold_data.order_id,
        held_amount=fees.seller_payout_amount,
        fees=fees,
    )


@router.post("/retry", response_model=PayoutRetryResult)
async def retry_failed_payouts(
    retry_data: PayoutRetryRequest, session: SessionDep
) -> PayoutRetryResult:
    async with session.begin():
        return await PayoutService(session).retry_failed(retry_data.payout_ids)


@router.post(
    "/batches",
    response_model=PayoutBatchResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_batch(session: SessionDep) -> PayoutBatchResponse:
    async with session.begin():
        batch = await PayoutBatchManager(session).create_batch()

    if batch is None:
        raise NoEligiblePayoutsException()
    return PayoutBatchResponse.from_batch(batch)


@router.get("/batches/{batch_id}", response_model=PayoutBatchResponse)
async def get_batch(batch_id: str, session: SessionDep) -> PayoutBatchResponse:
    batch = await PayoutBatchManager(session).get_batch(batch_id)
    if batch is None:
        raise BatchNotFoundException(batch_id)
    return PayoutBatchResponse.from_batch(batch)


@router.get("/batches/{batch_id}/csv")
async def export_batch_csv(batch_id: str, session: SessionDep) -> Response:
    batch = await PayoutBatchManager(session).get_batch(batch_id)
    if batch is None:
        raise BatchNotFoundException(batch_id)

    logger.info(
        "Batch exported batch_id=%s payout_count=%s",
        batch_id,
        batch.payout_count,
        extra={"batch_id": batch_id},
    )
    return Response(
        content=render_batch_csv(batch),
        media_type="text/csv",
        headers={
            "Content-Disposition": f'attachment; filename="payout-batch-{batch_id}.csv"'
        },
    )


@router.get("/batches/{batch_id}/status", response_model=BatchStatusSummary)
async def get_batch_status(batch_id: str, session: SessionDep) -> BatchStatusSummary:
    summary = await PayoutBatchManager(session).get_batch_status(batch_id)
    if summary is None:
        raise BatchNotFoundException(batch_id)
    return summary


@router.post("/batches/{batch_id}/confirm", response_model=BatchConfirmResult)
async def confirm_batch(
    batch_id: str, confirm_data: BatchConfirmRequest, session: SessionDep
) -> BatchConfirmResult:
    async with session.begin():
        return await PayoutBatchManager(session).confirm_batch(
            batch_id, confirm_data.confirmations
        )


@router.post("/batches/{batch_id}/fail", response_model=BatchFailResult)
async def fail_batch(
    batch_id: str, fail_data: BatchFailRequest, session: SessionDep
) -> BatchFailResult:
    async with session.begin():
        return await PayoutBatchManager(session).fail_batch(
            batch_id, fail_data.reason, fail_data.payout_ids
        )


@router.get("/{payout_id}", response_model=PayoutResponse)
async def get_payout(payout_id: str, session: SessionDep) -> PayoutResponse:
    payout = await PayoutService(session).get_payout(payout_id)
    return PayoutResponse.model_validate(payout)
