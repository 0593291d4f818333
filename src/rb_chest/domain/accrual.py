"""Watch-time accrual: viewer minutes -> chest currency, remainder preserving."""


def accrue(
    carry_minutes: int, new_minutes: int, rule_minutes: int, rule_rubis: int
) -> tuple[int, int]:
    """Return (minted, new_carry).

    >>> accrue(3, 4, 5, 3)
    (3, 2)
    >>> accrue(2, 3, 5, 3)
    (3, 0)
    """
    total = carry_minutes + new_minutes
    return (total // rule_minutes) * rule_rubis, total % rule_minutes
