from typing import Optional

from sqlalchemy import case, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from app.db.models import SellerProfile


def _floored_at_zero(column: ColumnElement, delta: int) -> ColumnElement:
    return case((column + delta < 0, 0), else_=column + delta)


class SellerRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_seller(
        self,
        email: str,
        first_name: str,
        last_name: str,
        balance: int = 0,
        pending_balance: int = 0,
        escrow_balance: int = 0,
    ) -> SellerProfile:
        seller = SellerProfile(
            email=email,
            first_name=first_name,
            last_name=last_name,
            balance=balance,
            pending_balance=pending_balance,
            escrow_balance=escrow_balance,
        )
        self.session.add(seller)
        await self.session.flush()
        return seller

    async def get_by_id(self, seller_id: str) -> Optional[SellerProfile]:
        stmt = (
            select(SellerProfile)
            .where(SellerProfile.id == seller_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def adjust_balance(
        self,
        seller_id: str,
        delta_balance: int = 0,
        delta_pending: int = 0,
        delta_escrow: int = 0,
    ) -> bool:
        """Apply balance deltas as SQL expressions, each column floored at zero.

        Concurrent adjustments for the same seller never lose updates because
        the arithmetic happens in the UPDATE, not in Python.
        """
        values: dict = {}
        if delta_balance:
            values["balance"] = _floored_at_zero(SellerProfile.balance, delta_balance)
        if delta_pending:
            values["pending_balance"] = _floored_at_zero(
                SellerProfile.pending_balance, delta_pending
            )
        if delta_escrow:
            values["escrow_balance"] = _floored_at_zero(
                SellerProfile.escrow_balance, delta_escrow
            )
        if not values:
            return True

        stmt = (
            update(SellerProfile)
            .where(SellerProfile.id == seller_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1
