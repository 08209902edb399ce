"""Fixed-point arithmetic for 18-decimal collateral and odds.

All amounts, balances, odds and ratios are int scaled by ONE = 10**18.
Odds are implied probabilities: 0.5 * ONE means decimal odds of 2.0.
No float anywhere; conversion from human input goes through Decimal strings.
"""

from decimal import Decimal, InvalidOperation

ONE = 10**18
DECIMALS = 18


def to_wei(value: int | str) -> int:
    """Convert whole units or a decimal string to wei: '0.02' -> 2 * 10**16."""
    try:
        scaled = Decimal(str(value)) * ONE
    except InvalidOperation as exc:
        raise ValueError(f"Not a decimal amount: {value!r}") from exc
    if scaled != scaled.to_integral_value():
        raise ValueError(f"Amount has more than {DECIMALS} decimals: {value!r}")
    return int(scaled)


def wei_to_display(amount: int) -> str:
    """Render wei as a trimmed decimal string: 989800000000000000000 -> '989.8'."""
    sign = "-" if amount < 0 else ""
    whole, frac = divmod(abs(amount), ONE)
    if frac == 0:
        return f"{sign}{whole}"
    return f"{sign}{whole}.{frac:018d}".rstrip("0")


def mul(a: int, b: int) -> int:
    """a * b in fixed point, rounded down."""
    return a * b // ONE


def div(a: int, b: int) -> int:
    """a / b in fixed point, rounded down."""
    return a * ONE // b


def payout_for_quote(buy_in: int, quote: int) -> int:
    """Payout for a stake at an implied-probability quote (rounded down)."""
    if quote == 0:
        return 0
    return buy_in * ONE // quote


def validate_odds(odds: int) -> None:
    """Implied probability must be in (0, ONE]."""
    if not (0 < odds <= ONE):
        raise ValueError(f"Odds must be in (0, 1e18], got {odds}")


def transform_collateral(amount: int, decimals: int) -> int:
    """Raw token units -> 18-decimal internal amount."""
    if decimals == DECIMALS:
        return amount
    if decimals < DECIMALS:
        return amount * 10 ** (DECIMALS - decimals)
    return amount // 10 ** (decimals - DECIMALS)


def reverse_transform_collateral(amount: int, decimals: int) -> int:
    """18-decimal internal amount -> raw token units (rounded down)."""
    if decimals == DECIMALS:
        return amount
    if decimals < DECIMALS:
        return amount // 10 ** (DECIMALS - decimals)
    return amount * 10 ** (decimals - DECIMALS)
