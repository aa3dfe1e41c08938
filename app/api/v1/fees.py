import logging

from fastapi import APIRouter, status

from app.api.dependencies import SessionDep
from app.core.config import settings
from app.metrics import fee_calculations_total
from app.schemas.common import BaseResponse, response_meta
from app.schemas.fees import (
    FeePolicyCreate,
    FeePolicyResponse,
    FeePolicyUpdate,
    FeeQuoteRequest,
    FeeQuoteResponse,
)
from app.services.fee_engine import DEFAULT_FEE_POLICY, FeePolicy, calculate_fees
from app.services.fee_policy_service import (
    FeePolicyService,
    policy_to_fields,
    record_to_policy,
)

logger = logging.getLogger(__name__)
router = APIRouter()

DEFAULT_POLICY_ID = "default"


def _default_policy_response() -> FeePolicyResponse:
    return FeePolicyResponse(
        id=DEFAULT_POLICY_ID,
        name="Default Policy",
        is_active=True,
        is_default=True,
        **policy_to_fields(DEFAULT_FEE_POLICY),
    )


@router.post("/quote", response_model=FeeQuoteResponse)
async def quote_fees(request: FeeQuoteRequest, session: SessionDep) -> FeeQuoteResponse:
    record = await FeePolicyService(session).get_active_record()
    policy = record_to_policy(record) if record else DEFAULT_FEE_POLICY

    fees = calculate_fees(
        request.base_amount,
        request.gateway,
        request.method,
        policy,
        currency=settings.default_currency,
    )
    fee_calculations_total.labels(
        gateway=fees.gateway.value, method=fees.method.value
    ).inc()

    logger.info(
        "Fee quote calculated base_cents=%s gateway=%s method=%s gross_cents=%s",
        fees.base_amount,
        fees.gateway.value,
        fees.method.value,
        fees.gross_amount,
        extra={"policy_id": record.id if record else DEFAULT_POLICY_ID},
    )
    return FeeQuoteResponse(fees=fees, policy_id=record.id if record else None)


@router.get("/policies", response_model=list[FeePolicyResponse])
async def list_policies(session: SessionDep) -> list[FeePolicyResponse]:
    records = await FeePolicyService(session).list_policies()
    return [FeePolicyResponse.model_validate(record) for record in records]


@router.get("/policies/active", response_model=FeePolicyResponse)
async def get_active_policy(session: SessionDep) -> FeePolicyResponse:
    record = await FeePolicyService(session).get_active_record()
    if record is None:
        return _default_policy_response()
    return FeePolicyResponse.model_validate(record)


@router.post(
    "/policies", response_model=FeePolicyResponse, status_code=status.HTTP_201_CREATED
)
async def create_policy(
    policy_data: FeePolicyCreate, session: SessionDep
) -> FeePolicyResponse:
    policy = FeePolicy.model_validate(policy_data.model_dump(exclude={"name"}))
    async with session.begin():
        record = await FeePolicyService(session).create_policy(policy_data.name, policy)
    return FeePolicyResponse.model_validate(record)


@router.patch("/policies/{policy_id}", response_model=FeePolicyResponse)
async def update_policy(
    policy_id: str, policy_data: FeePolicyUpdate, session: SessionDep
) -> FeePolicyResponse:
    changes = policy_data.model_dump(exclude_unset=True)
    async with session.begin():
        record = await FeePolicyService(session).update_policy(policy_id, changes)
    return FeePolicyResponse.model_validate(record)


@router.post("/policies/{policy_id}/activate", response_model=FeePolicyResponse)
async def activate_policy(policy_id: str, session: SessionDep) -> FeePolicyResponse:
    async with session.begin():
        record = await FeePolicyService(session).activate_policy(policy_id)
    return FeePolicyResponse.model_validate(record)


@router.delete("/policies/{policy_id}", response_model=BaseResponse)
async def delete_policy(policy_id: str, session: SessionDep) -> BaseResponse:
    async with session.begin():
        await FeePolicyService(session).delete_policy(policy_id)
    return BaseResponse(meta={**response_meta(), "policy_id": policy_id})
