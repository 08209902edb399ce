"""Round accounting: allocations, per-user balances and PnL per round.

Pure bookkeeping; collateral movements are the liquidity pool's job.
Round 1 is the default-round sentinel, trading rounds start at 2.
"""

from collections import defaultdict
from dataclasses import dataclass

from src.amm_common.wei import ONE, to_wei

DEFAULT_ROUND = 1
FIRST_ROUND = 2


@dataclass
class PoolParams:
    max_allowed_deposit: int = 20000 * ONE
    min_deposit: int = 20 * ONE
    max_allowed_users: int = 100
    round_length: int = 7 * 24 * 3600  # seconds
    utilization_rate: int = to_wei("0.2")  # share of allocation that may be at risk
    safe_box_impact: int = to_wei("0.2")  # share of positive round profit to the safe box


class RoundAccounting:
    def __init__(self) -> None:
        self._allocation_per_round: dict[int, int] = defaultdict(int)
        self._balances_per_round: dict[tuple[int, str], int] = defaultdict(int)
        self._users_per_round: dict[int, list[str]] = defaultdict(list)
        self._profit_and_loss_per_round: dict[int, int] = {}
        self._cumulative_profit_and_loss: dict[int, int] = {DEFAULT_ROUND: ONE}

    def allocation(self, round_index: int) -> int:
        return self._allocation_per_round.get(round_index, 0)

    def balance_of(self, round_index: int, user: str) -> int:
        return self._balances_per_round.get((round_index, user), 0)

    def users(self, round_index: int) -> list[str]:
        return list(self._users_per_round.get(round_index, []))

    def user_count(self, round_index: int) -> int:
        return len(self._users_per_round.get(round_index, []))

    def credit(self, round_index: int, user: str, amount: int) -> None:
        """Add `amount` to the user's balance and the round allocation."""
        if user not in self._users_per_round[round_index]:
            self._users_per_round[round_index].append(user)
        self._balances_per_round[(round_index, user)] += amount
        self._allocation_per_round[round_index] += amount

    def add_allocation(self, round_index: int, amount: int) -> None:
        """Allocation without an owning user (default-round backstop funding)."""
        self._allocation_per_round[round_index] += amount

    def record_profit_and_loss(self, round_index: int, profit_and_loss: int) -> int:
        """Store the round's PnL ratio and return the new cumulative PnL."""
        previous = self._cumulative_profit_and_loss.get(round_index - 1, ONE)
        cumulative = previous * profit_and_loss // ONE
        self._profit_and_loss_per_round[round_index] = profit_and_loss
        self._cumulative_profit_and_loss[round_index] = cumulative
        return cumulative

    def profit_and_loss(self, round_index: int) -> int | None:
        return self._profit_and_loss_per_round.get(round_index)

    def cumulative_profit_and_loss(self, round_index: int) -> int | None:
        return self._cumulative_profit_and_loss.get(round_index)

    def cumulative_profit_and_loss_between_rounds(self, start_round: int, end_round: int) -> int:
        result = ONE
        for r in range(start_round, end_round + 1):
            result = result * self._profit_and_loss_per_round.get(r, ONE) // ONE
        return result

    def allocation_items(self) -> list[tuple[int, int]]:
        return sorted(self._allocation_per_round.items())

    def balance_items(self) -> list[tuple[tuple[int, str], int]]:
        return sorted(self._balances_per_round.items())
