from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.core.enums import PayoutStatus
from app.db.base import Base


class SellerPayout(Base):
    """Seller credit. Status lifecycle: PENDING → PROCESSING → PAID/FAILED."""

    __tablename__ = "seller_payouts"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: uuid4().hex
    )
    seller_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("seller_profiles.id", ondelete="RESTRICT"), nullable=False
    )
    order_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="ZAR", nullable=False)
    status: Mapped[PayoutStatus] = mapped_column(
        String(20), default=PayoutStatus.PENDING, nullable=False
    )

    batch_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    available_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    external_ref: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    bank_details_snapshot: Mapped[Optional[dict]] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"), nullable=True
    )

    batched_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    failed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="positive_payout_amount"),
        CheckConstraint(
            "status IN ('PENDING', 'PROCESSING', 'PAID', 'FAILED')",
            name="valid_payout_status",
        ),
        CheckConstraint(
            "(status = 'PAID' AND external_ref IS NOT NULL) OR status != 'PAID'",
            name="paid_has_external_ref",
        ),
        CheckConstraint(
            "status = 'PENDING' OR batch_id IS NOT NULL",
            name="batched_has_batch_id",
        ),
        Index("idx_seller_payouts_seller_status", "seller_id", "status"),
        Index("idx_seller_payouts_batch_id", "batch_id"),
        Index(
            "idx_seller_payouts_eligible",
            "available_at",
            postgresql_where="status = 'PENDING'",
        ),
    )
