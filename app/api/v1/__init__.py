from fastapi import APIRouter

from app.api.v1 import fees, payouts, sellers

api_router = APIRouter()

api_router.include_router(fees.router, prefix="/fees", tags=["fees"])
api_router.include_router(payouts.router, prefix="/payouts", tags=["payouts"])
api_router.include_router(sellers.router, prefix="/sellers", tags=["sellers"])
