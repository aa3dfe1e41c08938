from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import BankDetails


class BankDetailsRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add_bank_details(
        self,
        seller_id: str,
        bank_name: str,
        account_number: str,
        branch_code: str,
        account_holder: str,
        account_type: str,
        is_default: bool = True,
    ) -> BankDetails:
        if is_default:
            await self.session.execute(
                update(BankDetails)
                .where(BankDetails.seller_id == seller_id)
                .values(is_default=False)
                .execution_options(synchronize_session=False)
            )
        details = BankDetails(
            seller_id=seller_id,
            bank_name=bank_name,
            account_number=account_number,
            branch_code=branch_code,
            account_holder=account_holder,
            account_type=account_type,
            is_default=is_default,
        )
        self.session.add(details)
        await self.session.flush()
        return details

    async def get_default_for_seller(self, seller_id: str) -> Optional[BankDetails]:
        stmt = (
            select(BankDetails)
            .where(BankDetails.seller_id == seller_id)
            .where(BankDetails.is_default.is_(True))
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
