"""Integer arithmetic for rubis amounts and weighted value.

All amounts are int rubis, all weights int basis points. No float, no Decimal.
"""

from src.rb_common.errors import InvalidAmountError, InvalidWeightError
from src.rb_common.weights import FULL_WEIGHT_BP


def validate_amount(amount: object) -> int:
    """Reject non-int (bool included) and non-positive amounts."""
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmountError(amount)
    return amount


def validate_weight(weight_bp: object) -> int:
    if isinstance(weight_bp, bool) or not isinstance(weight_bp, int):
        raise InvalidWeightError(weight_bp)
    if not (0 <= weight_bp <= FULL_WEIGHT_BP):
        raise InvalidWeightError(weight_bp)
    return weight_bp


def weighted_value(parts: list[tuple[int, int]]) -> int:
    """floor(sum(amount * weight_bp) / 10000) over (amount, weight_bp) pairs."""
    return sum(amount * weight for amount, weight in parts) // FULL_WEIGHT_BP


def split_support(support_value: int, beneficiary_percent: int) -> tuple[int, int]:
    """Split support value into (beneficiary_share, platform_share).

    beneficiary = floor(value * pct / 100); the platform keeps the rounding.
    """
    beneficiary = support_value * beneficiary_percent // 100
    return beneficiary, support_value - beneficiary
