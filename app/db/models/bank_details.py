from datetime import datetime
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class BankDetails(Base):
    __tablename__ = "bank_details"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: uuid4().hex
    )
    seller_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("seller_profiles.id", ondelete="CASCADE"), nullable=False
    )
    bank_name: Mapped[str] = mapped_column(String(100), nullable=False)
    account_number: Mapped[str] = mapped_column(String(34), nullable=False)
    branch_code: Mapped[str] = mapped_column(String(20), nullable=False)
    account_holder: Mapped[str] = mapped_column(String(255), nullable=False)
    account_type: Mapped[str] = mapped_column(String(20), nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (Index("idx_bank_details_seller_default", "seller_id", "is_default"),)

    def snapshot(self) -> dict[str, str]:
        return {
            "bank_name": self.bank_name,
            "account_number": self.account_number,
            "branch_code": self.branch_code,
            "account_holder": self.account_holder,
            "account_type": self.account_type,
        }
