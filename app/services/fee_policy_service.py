import logging
from typing import Any, List, Optional

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import FeePolicyRecord
from app.db.repositories import FeePolicyRepository
from app.exceptions import (
    ActivePolicyDeletionException,
    FeePolicyNotFoundException,
    InvalidFeePolicyException,
)
from app.services.fee_engine import DEFAULT_FEE_POLICY, FeePolicy

logger = logging.getLogger(__name__)

POLICY_FIELDS = tuple(FeePolicy.model_fields)


def build_policy(data: dict[str, Any]) -> FeePolicy:
    try:
        return FeePolicy.model_validate(data)
    except ValidationError as exc:
        reason = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'policy'}: {error['msg']}"
            for error in exc.errors()
        )
        raise InvalidFeePolicyException(reason) from exc


def policy_to_fields(policy: FeePolicy) -> dict[str, Any]:
    fields = policy.model_dump()
    fields["seller_tiers"] = [dict(tier) for tier in fields["seller_tiers"]]
    return fields


def record_to_policy(record: FeePolicyRecord) -> FeePolicy:
    return build_policy({field: getattr(record, field) for field in POLICY_FIELDS})


class FeePolicyService:
    def __init__(self, session: AsyncSession) -> None:
        self.policy_repo = FeePolicyRepository(session)

    async def get_active_policy(self) -> FeePolicy:
        """Active persisted policy, or DEFAULT_FEE_POLICY when none is active."""
        record = await self.policy_repo.get_active()
        if record is None:
            return DEFAULT_FEE_POLICY
        return record_to_policy(record)

    async def get_active_record(self) -> Optional[FeePolicyRecord]:
        return await self.policy_repo.get_active()

    async def list_policies(self) -> List[FeePolicyRecord]:
        return await self.policy_repo.list_all()

    async def get_policy(self, policy_id: str) -> FeePolicyRecord:
        record = await self.policy_repo.get_by_id(policy_id)
        if record is None:
            raise FeePolicyNotFoundException(policy_id)
        return record

    async def create_policy(self, name: str, policy: FeePolicy) -> FeePolicyRecord:
        record = await self.policy_repo.create_policy(name, **policy_to_fields(policy))
        logger.info(
            "Fee policy created policy_id=%s name=%s",
            record.id,
            name,
            extra={"policy_id": record.id},
        )
        return record

    async def update_policy(
        self, policy_id: str, changes: dict[str, Any]
    ) -> FeePolicyRecord:
        """Apply a partial update; the merged policy is validated as a whole."""
        record = await self.get_policy(policy_id)
        changes = dict(changes)
        name = changes.pop("name", None)

        merged = policy_to_fields(record_to_policy(record))
        merged.update(changes)
        policy = build_policy(merged)

        fields = policy_to_fields(policy)
        if name is not None:
            fields["name"] = name
        return await self.policy_repo.update_fields(record, **fields)

    async def activate_policy(self, policy_id: str) -> FeePolicyRecord:
        record = await self.get_policy(policy_id)
        await self.policy_repo.activate(policy_id)
        logger.info(
            "Fee policy activated policy_id=%s name=%s",
            policy_id,
            record.name,
            extra={"policy_id": policy_id},
        )
        return await self.get_policy(policy_id)

    async def delete_policy(self, policy_id: str) -> None:
        record = await self.get_policy(policy_id)
        if record.is_active:
            raise ActivePolicyDeletionException(policy_id)
        await self.policy_repo.delete(record)
        logger.info(
            "Fee policy deleted policy_id=%s", policy_id, extra={"policy_id": policy_id}
        )
