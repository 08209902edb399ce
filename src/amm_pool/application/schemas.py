from pydantic import BaseModel, Field

from src.amm_pool.domain.pool import LiquidityPool
from src.amm_trading.application.schemas import WeiStr


class DepositRequest(BaseModel):
    amount: WeiStr


class WithdrawalRequest(BaseModel):
    # None = full withdrawal; otherwise share in 1e18 fixed point (0.1..0.9)
    share: WeiStr | None = None


class BatchRequest(BaseModel):
    batch_size: int = Field(gt=0, le=1000)
    default_round: bool = False


class RoundResponse(BaseModel):
    round: int
    phase: str
    start_time: int
    end_time: int
    allocation: str
    pool_balance: str
    users: int
    tickets: int
    next_exercise_index: int
    profit_and_loss: str | None
    cumulative_profit_and_loss: str | None

    @classmethod
    def from_pool(cls, pool: LiquidityPool, round_index: int) -> "RoundResponse":
        accounting = pool.accounting
        pnl = accounting.profit_and_loss(round_index)
        cumulative = accounting.cumulative_profit_and_loss(round_index)
        return cls(
            round=round_index,
            phase=pool.round_phase(round_index).value,
            start_time=pool.get_round_start_time(round_index),
            end_time=pool.get_round_end_time(round_index),
            allocation=str(accounting.allocation(round_index)),
            pool_balance=str(pool.round_pool_balance(round_index)),
            users=accounting.user_count(round_index),
            tickets=len(pool.get_tickets_per_round(round_index)),
            next_exercise_index=pool.next_exercise_index_per_round.get(round_index, 0),
            profit_and_loss=None if pnl is None else str(pnl),
            cumulative_profit_and_loss=None if cumulative is None else str(cumulative),
        )
