"""System-bet combinatorics.

A k-of-n system bet is C(n, k) equal-stake parlays, one per k-subset of the
legs. The count is checked against the configured ceiling before any
enumeration happens.
"""

from collections.abc import Callable, Sequence
from itertools import combinations
from math import comb

from src.amm_common.errors import BadRangeForKError, ExceededMaxCombinationsError
from src.amm_common.wei import ONE


def validate_system_bet(n: int, k: int, max_combinations: int) -> int:
    """Return C(n, k) or raise if k is out of range or the count is too large."""
    if not (2 <= k < n):
        raise BadRangeForKError(n, k)
    count = comb(n, k)
    if count > max_combinations:
        raise ExceededMaxCombinationsError(count, max_combinations)
    return count


def generate_combinations(n: int, k: int) -> list[tuple[int, ...]]:
    """All k-subsets of range(n) in lexicographic order."""
    if not (2 <= k < n):
        raise BadRangeForKError(n, k)
    return list(combinations(range(n), k))


def combination_quote(odds: Sequence[int], floor: int = 0) -> int:
    """Product of implied probabilities in fixed point, floored at `floor`."""
    quote = ONE
    for o in odds:
        quote = quote * o // ONE
    return max(quote, floor)


def max_system_bet_payout(
    odds: Sequence[int],
    k: int,
    buy_in: int,
    max_supported_odds: int,
    max_combinations: int,
) -> tuple[int, int]:
    """(payout if every leg wins, effective system quote)."""
    count = validate_system_bet(len(odds), k, max_combinations)
    stake = buy_in // count
    payout = sum(
        stake * ONE // combination_quote([odds[i] for i in combo], max_supported_odds)
        for combo in combinations(range(len(odds)), k)
    )
    quote = buy_in * ONE // payout if payout else 0
    return payout, quote


def realized_system_bet_payout(
    odds: Sequence[int],
    k: int,
    buy_in: int,
    leg_outcome: Callable[[int], int | None],
    max_supported_odds: int = 0,
) -> int:
    """Sum of the combinations in which every leg won.

    `leg_outcome(i)` returns the odds to use for leg i when it won (ONE for a
    cancelled leg), or None when the leg lost or is unresolved.
    """
    count = comb(len(odds), k)
    stake = buy_in // count
    outcomes = [leg_outcome(i) for i in range(len(odds))]
    total = 0
    for combo in combinations(range(len(odds)), k):
        combo_odds = [outcomes[i] for i in combo]
        if any(o is None for o in combo_odds):
            continue
        total += stake * ONE // combination_quote(combo_odds, max_supported_odds)  # type: ignore[arg-type]
    return total


def parlay_quote(odds: Sequence[int]) -> int:
    return combination_quote(odds)
