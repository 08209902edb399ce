"""FastAPI dependency: get_caller_account.

Usage in any router that acts on behalf of an account:
    from src.amm_common.dependencies import get_caller_account

    @router.post("/trade")
    async def trade(account: Annotated[str, Depends(get_caller_account)]):
        ...
"""

from typing import Annotated

from fastapi import Header

from src.amm_common.collateral import DEFAULT_LP, FREE_BETS_HOLDER, SAFE_BOX
from src.amm_common.errors import ReservedAccountError

# Internal accounts are never valid callers
_RESERVED_ACCOUNTS = frozenset({SAFE_BOX, DEFAULT_LP, FREE_BETS_HOLDER})
_RESERVED_PREFIXES = ("round-pool:", "ticket:")


async def get_caller_account(
    x_account: Annotated[str, Header(min_length=1, max_length=128)],
) -> str:
    """Return the account named by the X-Account header.

    Raises ReservedAccountError (403) for internal accounts such as the safe box.
    """
    account = x_account.strip()
    if account in _RESERVED_ACCOUNTS or account.startswith(_RESERVED_PREFIXES):
        raise ReservedAccountError(account)
    return account
