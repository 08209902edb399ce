"""Collateral transfer interface and the deterministic in-memory token.

Accounts are plain strings: user ids, "safe-box", "default-lp",
"round-pool:<n>", "ticket:<id>". The core always works in 18 decimals;
InMemoryCollateral stores raw token units and converts at the boundary.
"""

import logging
from collections import defaultdict
from typing import Protocol

from src.amm_common.errors import InsufficientBalanceError
from src.amm_common.wei import reverse_transform_collateral, transform_collateral

logger = logging.getLogger(__name__)

SAFE_BOX = "safe-box"
DEFAULT_LP = "default-lp"
FREE_BETS_HOLDER = "free-bets-holder"


def round_pool_account(round_index: int) -> str:
    return f"round-pool:{round_index}"


def ticket_account(ticket_id: str) -> str:
    return f"ticket:{ticket_id}"


class CollateralTransfer(Protocol):
    decimals: int

    def balance_of(self, account: str) -> int: ...

    def transfer(self, source: str, destination: str, amount: int) -> None: ...

    def mint(self, account: str, amount: int) -> None: ...


class InMemoryCollateral:
    """Single fungible token held in a dict of raw balances."""

    def __init__(self, decimals: int = 18, symbol: str = "USDC") -> None:
        self.decimals = decimals
        self.symbol = symbol
        self._raw: dict[str, int] = defaultdict(int)

    def balance_of(self, account: str) -> int:
        return transform_collateral(self._raw[account], self.decimals)

    def transfer(self, source: str, destination: str, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"Transfer amount must be >= 0, got {amount}")
        if amount == 0 or source == destination:
            return
        raw = reverse_transform_collateral(amount, self.decimals)
        available = self._raw[source]
        if raw > available:
            raise InsufficientBalanceError(
                source, amount, transform_collateral(available, self.decimals)
            )
        self._raw[source] = available - raw
        self._raw[destination] += raw
        logger.debug("transfer %s -> %s: %d", source, destination, amount)

    def mint(self, account: str, amount: int) -> None:
        self._raw[account] += reverse_transform_collateral(amount, self.decimals)

    def accounts(self) -> dict[str, int]:
        return {a: transform_collateral(v, self.decimals) for a, v in self._raw.items() if v}
