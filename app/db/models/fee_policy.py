from datetime import datetime
from uuid import uuid4

from sqlalchemy import JSON, BigInteger, Boolean, DateTime, Index, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class FeePolicyRecord(Base):
    """Persisted fee policy. Rates in basis points, amounts in cents; one row active at a time."""

    __tablename__ = "fee_policies"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: uuid4().hex
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    min_order_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    buyer_platform_bps: Mapped[int] = mapped_column(Integer, nullable=False)
    buyer_platform_min: Mapped[int] = mapped_column(BigInteger, nullable=False)
    buyer_processing_min: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # [{"up_to": int | null, "bps": int, "min_fee": int}, ...]
    seller_tiers: Mapped[list] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"), nullable=False
    )
    buffer_bps: Mapped[int] = mapped_column(Integer, nullable=False)
    buffer_fixed: Mapped[int] = mapped_column(BigInteger, nullable=False)
    vat_bps: Mapped[int] = mapped_column(Integer, nullable=False)
    reserve_days: Mapped[int] = mapped_column(Integer, nullable=False)
    payout_min: Mapped[int] = mapped_column(BigInteger, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (Index("idx_fee_policies_is_active", "is_active"),)
