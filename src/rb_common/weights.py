"""Origin -> weight table, loaded once as process-wide immutable state.

Weights are basis points (10000 = full 1:1 value). Mint (default weight of a new
lot), the chest (auto-mint weight and payout cap), the bonus rewards and the
wallet report (nominal weight per held origin) all read from this single table.
"""

from types import MappingProxyType

FULL_WEIGHT_BP = 10_000

ORIGIN_WEIGHT_BP: MappingProxyType[str, int] = MappingProxyType({
    "paid_topup": 10_000,
    "earn_support": 10_000,
    "admin_grant": 10_000,
    "farm_watch": 3_500,
    "legacy": 3_500,
    "wheel_daily": 3_000,
    "achievement": 3_000,
    "daily_bonus": 3_000,
    "monthly_bonus": 3_000,
    "chest_auto": 2_000,
    "chest_streamer": 2_000,
    "chest_deposit": 2_000,
    "event_platform": 1_000,
})

DEFAULT_WEIGHT_BP = ORIGIN_WEIGHT_BP["event_platform"]

# Nothing leaves a chest above the weight of a chest payout lot.
CHEST_MAX_OUT_WEIGHT_BP = ORIGIN_WEIGHT_BP["chest_streamer"]


def weight_for_origin(origin: str) -> int:
    """Weight for `origin`; prefixed origins ("monthly_bonus_10") fall back to their family."""
    if origin in ORIGIN_WEIGHT_BP:
        return ORIGIN_WEIGHT_BP[origin]
    for known, weight in ORIGIN_WEIGHT_BP.items():
        if origin.startswith(known + "_"):
            return weight
    return DEFAULT_WEIGHT_BP
