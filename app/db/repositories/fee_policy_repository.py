from typing import Any, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import FeePolicyRecord


class FeePolicyRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_policy(self, name: str, **fields: Any) -> FeePolicyRecord:
        record = FeePolicyRecord(name=name, is_active=False, **fields)
        self.session.add(record)
        await self.session.flush()
        return record

    async def get_by_id(self, policy_id: str) -> Optional[FeePolicyRecord]:
        stmt = (
            select(FeePolicyRecord)
            .where(FeePolicyRecord.id == policy_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_active(self) -> Optional[FeePolicyRecord]:
        stmt = (
            select(FeePolicyRecord)
            .where(FeePolicyRecord.is_active.is_(True))
            .order_by(FeePolicyRecord.updated_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_all(self) -> List[FeePolicyRecord]:
        stmt = (
            select(FeePolicyRecord)
            .order_by(FeePolicyRecord.created_at, FeePolicyRecord.name)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def update_fields(
        self, record: FeePolicyRecord, **fields: Any
    ) -> FeePolicyRecord:
        for key, value in fields.items():
            setattr(record, key, value)
        await self.session.flush()
        return record

    async def activate(self, policy_id: str) -> None:
        """Deactivate every other policy, then activate policy_id. Caller owns the transaction."""
        await self.session.execute(
            update(FeePolicyRecord)
            .where(FeePolicyRecord.is_active.is_(True))
            .where(FeePolicyRecord.id != policy_id)
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(
            update(FeePolicyRecord)
            .where(FeePolicyRecord.id == policy_id)
            .values(is_active=True)
            .execution_options(synchronize_session=False)
        )

    async def delete(self, record: FeePolicyRecord) -> None:
        await self.session.delete(record)
        await self.session.flush()
