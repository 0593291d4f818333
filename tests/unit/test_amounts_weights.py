"""Tests for rb_common.amounts and rb_common.weights."""

import pytest

from src.rb_common.amounts import (
    split_support,
    validate_amount,
    validate_weight,
    weighted_value,
)
from src.rb_common.errors import InvalidAmountError, InvalidWeightError
from src.rb_common.weights import (
    CHEST_MAX_OUT_WEIGHT_BP,
    DEFAULT_WEIGHT_BP,
    ORIGIN_WEIGHT_BP,
    weight_for_origin,
)


class TestValidateAmount:
    def test_accepts_positive_int(self) -> None:
        assert validate_amount(7) == 7

    @pytest.mark.parametrize("bad", [0, -1, 1.5, "3", None, True])
    def test_rejects_non_positive_or_non_int(self, bad: object) -> None:
        with pytest.raises(InvalidAmountError) as exc_info:
            validate_amount(bad)
        assert exc_info.value.code == 1002


class TestValidateWeight:
    @pytest.mark.parametrize("ok", [0, 3000, 10_000])
    def test_bounds_inclusive(self, ok: int) -> None:
        assert validate_weight(ok) == ok

    @pytest.mark.parametrize("bad", [-1, 10_001, 0.5, False])
    def test_out_of_range(self, bad: object) -> None:
        with pytest.raises(InvalidWeightError):
            validate_weight(bad)


class TestWeightedValue:
    def test_floor_of_weighted_sum(self) -> None:
        assert weighted_value([(5, 10_000), (3, 3_000)]) == 5

    def test_empty_is_zero(self) -> None:
        assert weighted_value([]) == 0

    def test_small_discounted_amount_rounds_down(self) -> None:
        assert weighted_value([(3, 2_000)]) == 0


class TestSplitSupport:
    def test_ninety_percent_to_beneficiary(self) -> None:
        assert split_support(100, 90) == (90, 10)

    def test_platform_keeps_rounding(self) -> None:
        assert split_support(5, 90) == (4, 1)

    def test_zero(self) -> None:
        assert split_support(0, 90) == (0, 0)


class TestWeightForOrigin:
    def test_exact(self) -> None:
        assert weight_for_origin("paid_topup") == 10_000
        assert weight_for_origin("farm_watch") == 3_500

    def test_prefixed_family(self) -> None:
        assert weight_for_origin("monthly_bonus_10") == 3_000

    def test_unknown_falls_back_to_default(self) -> None:
        assert weight_for_origin("mystery") == DEFAULT_WEIGHT_BP == 1_000

    def test_table_is_read_only(self) -> None:
        with pytest.raises(TypeError):
            ORIGIN_WEIGHT_BP["paid_topup"] = 1  # type: ignore[index]

    def test_chest_weights_come_from_the_table(self) -> None:
        assert CHEST_MAX_OUT_WEIGHT_BP == ORIGIN_WEIGHT_BP["chest_streamer"] == 2_000
        assert ORIGIN_WEIGHT_BP["chest_auto"] <= CHEST_MAX_OUT_WEIGHT_BP
