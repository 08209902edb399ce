"""Default liquidity provider — standing backstop balance.

Funds tickets that mature after the current round (next-round and
default-round tickets) and receives their settlements.
"""

import logging

from src.amm_common.collateral import DEFAULT_LP, CollateralTransfer
from src.amm_common.errors import InsufficientBalanceError

logger = logging.getLogger(__name__)


class DefaultLiquidityProvider:
    def __init__(self, collateral: CollateralTransfer, account: str = DEFAULT_LP) -> None:
        self._collateral = collateral
        self.account = account

    def balance(self) -> int:
        return self._collateral.balance_of(self.account)

    def fund(self, source: str, amount: int) -> None:
        self._collateral.transfer(source, self.account, amount)
        logger.info("Default LP funded by %s: %d", source, amount)

    def pay(self, destination: str, amount: int) -> None:
        available = self.balance()
        if amount > available:
            raise InsufficientBalanceError(self.account, amount, available)
        self._collateral.transfer(self.account, destination, amount)

    def retrieve_funds(self, destination: str, amount: int) -> None:
        self.pay(destination, amount)
        logger.info("Default LP funds retrieved to %s: %d", destination, amount)
