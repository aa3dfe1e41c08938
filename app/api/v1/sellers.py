from fastapi import APIRouter

from app.api.dependencies import SessionDep
from app.schemas.payouts import SellerPayoutSummary
from app.services.payout_service import PayoutService

router = APIRouter()


@router.get("/{seller_id}/payout-summary", response_model=SellerPayoutSummary)
async def get_seller_payout_summary(
    seller_id: str, session: SessionDep
) -> SellerPayoutSummary:
    service = PayoutService(session)
    return await service.get_seller_summary(seller_id)
