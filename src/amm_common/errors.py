"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Admission (pre-trade, ledgers untouched)
  2xxx: State (caller sequencing mistakes)
  3xxx: Liquidity (caller may retry with adjusted parameters)
  4xxx: Results
  5xxx: Configuration
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Admission ---

class InvalidPositionError(AppError):
    def __init__(self, position: int) -> None:
        super().__init__(1001, f"Invalid position: {position}", 422)


class NotTradingError(AppError):
    def __init__(self, game_id: str) -> None:
        super().__init__(1002, f"Market is not trading: {game_id}", 422)


class RiskPerMarketAndPositionExceededError(AppError):
    def __init__(self, game_id: str, position: int) -> None:
        super().__init__(
            1003, f"Risk per market and position exceeded: {game_id}/{position}", 422
        )


class RiskPerGameExceededError(AppError):
    def __init__(self, game_id: str) -> None:
        super().__init__(1004, f"Risk per game exceeded: {game_id}", 422)


class InvalidCombinationError(AppError):
    def __init__(self) -> None:
        super().__init__(1005, "Invalid combination detected", 422)


class ExceededMaxCombinationsError(AppError):
    def __init__(self, combinations: int, limit: int) -> None:
        super().__init__(
            1006, f"Exceeded max combinations: {combinations} > {limit}", 422
        )


class BadRangeForKError(AppError):
    def __init__(self, n: int, k: int) -> None:
        super().__init__(1007, f"Bad range for k: k={k}, n={n}", 422)


class LowBuyInError(AppError):
    def __init__(self) -> None:
        super().__init__(1008, "Buy-in amount below minimum", 422)


class ExceededMaxSizeError(AppError):
    def __init__(self) -> None:
        super().__init__(1009, "Ticket exceeds max number of legs", 422)


class ExceededMaxOddsError(AppError):
    def __init__(self) -> None:
        super().__init__(1010, "Total quote exceeds max supported odds", 422)


class ExceededMaxAmountError(AppError):
    def __init__(self) -> None:
        super().__init__(1011, "Payout exceeds max supported amount", 422)


class SlippageTooHighError(AppError):
    def __init__(self) -> None:
        super().__init__(1012, "Slippage too high", 422)


# --- 2xxx: State ---

class AlreadyExercisedError(AppError):
    def __init__(self, ticket_id: str) -> None:
        super().__init__(2001, f"Ticket already exercised: {ticket_id}", 409)


class RoundClosingNotPreparedError(AppError):
    def __init__(self) -> None:
        super().__init__(2002, "Round closing not prepared", 409)


class AllUsersAlreadyProcessedError(AppError):
    def __init__(self) -> None:
        super().__init__(2003, "All users already processed", 409)


class WithdrawalAlreadyRequestedError(AppError):
    def __init__(self) -> None:
        super().__init__(2004, "Withdrawal already requested", 409)


class NotAllUsersProcessedYetError(AppError):
    def __init__(self) -> None:
        super().__init__(2005, "Not all users processed yet", 409)


class PoolNotStartedError(AppError):
    def __init__(self) -> None:
        super().__init__(2006, "Pool has not started", 409)


class PoolAlreadyStartedError(AppError):
    def __init__(self) -> None:
        super().__init__(2007, "Liquidity pool has already started", 409)


class RoundClosingAlreadyPreparedError(AppError):
    def __init__(self) -> None:
        super().__init__(2008, "Not allowed while round closing is prepared", 409)


class CannotCloseCurrentRoundError(AppError):
    def __init__(self) -> None:
        super().__init__(2009, "Can't close current round", 409)


class NothingToWithdrawError(AppError):
    def __init__(self) -> None:
        super().__init__(2010, "Nothing to withdraw", 409)


class AlreadyDepositedForNextRoundError(AppError):
    def __init__(self) -> None:
        super().__init__(
            2011, "Can't withdraw as you already deposited for next round", 409
        )


class WithdrawalRequestedCannotDepositError(AppError):
    def __init__(self) -> None:
        super().__init__(2012, "Withdrawal is requested, cannot deposit", 409)


class TicketNotExercisableError(AppError):
    def __init__(self, ticket_id: str) -> None:
        super().__init__(2013, f"Ticket is not exercisable: {ticket_id}", 409)


class TicketNotExpiredError(AppError):
    def __init__(self, ticket_id: str) -> None:
        super().__init__(2014, f"Ticket has not expired: {ticket_id}", 409)


class TicketPausedError(AppError):
    def __init__(self, ticket_id: str) -> None:
        super().__init__(2015, f"Ticket is paused: {ticket_id}", 409)


class TicketNotFoundError(AppError):
    def __init__(self, ticket_id: str) -> None:
        super().__init__(2016, f"Ticket not found: {ticket_id}", 404)


class OnlyTicketOwnerError(AppError):
    def __init__(self) -> None:
        super().__init__(2017, "Only the ticket owner may perform this action", 403)


class NonCancelableTicketError(AppError):
    def __init__(self, ticket_id: str) -> None:
        super().__init__(2018, f"Ticket cannot be cancelled: {ticket_id}", 409)


class InvalidTicketLegsError(AppError):
    def __init__(self) -> None:
        super().__init__(2019, "Legs do not match the ticket's markets", 422)


class InvalidBatchSizeError(AppError):
    def __init__(self) -> None:
        super().__init__(2020, "Batch size has to be greater than 0", 422)


class NoDepositsToStartError(AppError):
    def __init__(self) -> None:
        super().__init__(2021, "Can not start with 0 deposits", 409)


# --- 3xxx: Liquidity ---

class InsufficientBalanceError(AppError):
    def __init__(self, account: str, required: int, available: int) -> None:
        super().__init__(
            3001,
            f"Insufficient balance on {account}: required {required}, available {available}",
            422,
        )


class DepositExceedsCapError(AppError):
    def __init__(self) -> None:
        super().__init__(3002, "Deposit amount exceeds pool cap", 422)


class AmountBelowMinimumError(AppError):
    def __init__(self) -> None:
        super().__init__(3003, "Amount less than minimum deposit", 422)


class MaxUsersReachedError(AppError):
    def __init__(self) -> None:
        super().__init__(3004, "Max amount of users reached", 422)


class DefaultProviderCannotDepositError(AppError):
    def __init__(self) -> None:
        super().__init__(3005, "Can't deposit directly as default liquidity provider", 403)


class InvalidWithdrawalShareError(AppError):
    def __init__(self) -> None:
        super().__init__(3006, "Share has to be between 10% and 90%", 422)


# --- 4xxx: Results ---

class InvalidResultInputError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4001, f"Invalid result input: {detail}", 422)


class ResultTypeNotSetError(AppError):
    def __init__(self, type_id: int) -> None:
        super().__init__(4002, f"Result type not set for market type {type_id}", 422)


# --- 5xxx: Configuration ---

class InvalidParameterError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(5001, f"Invalid parameter: {detail}", 422)


class ReservedAccountError(AppError):
    def __init__(self, account: str) -> None:
        super().__init__(5002, f"Account {account} cannot act as a caller", 403)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
