from tests.utils.factories import (
    BankDetailsFactory,
    PayoutFactory,
    SellerFactory,
    create_payable_seller,
)

__all__ = [
    "BankDetailsFactory",
    "PayoutFactory",
    "SellerFactory",
    "create_payable_seller",
]
