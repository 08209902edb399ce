"""Global enums.

Integer-valued enums mirror the on-wire numeric codes callers already use
(ticket phase 0/1/2, result types); string enums name internal states.
"""

from enum import Enum, IntEnum


class ResultType(IntEnum):
    UNASSIGNED = 0
    EXACT_POSITION = 1
    OVER_UNDER = 2
    SPREAD = 3
    COMBINED_POSITIONS = 4


class MarketPositionStatus(IntEnum):
    OPEN = 0
    CANCELLED = 1
    WINNING = 2
    LOSING = 3


class TicketPhase(IntEnum):
    TRADING = 0
    EXERCISABLE = 1
    EXPIRED = 2


class RiskStatus(str, Enum):
    NO_RISK = "NO_RISK"
    OUT_OF_LIQUIDITY = "OUT_OF_LIQUIDITY"
    INVALID_COMBINATION = "INVALID_COMBINATION"


class RoundPhase(str, Enum):
    """Lifecycle of the current liquidity round."""
    OPEN = "OPEN"
    CLOSING_PREPARED = "CLOSING_PREPARED"
    CLOSING_IN_PROGRESS = "CLOSING_IN_PROGRESS"
    CLOSED = "CLOSED"


class EventType(str, Enum):
    # Pool
    POOL_STARTED = "POOL_STARTED"
    DEPOSITED = "DEPOSITED"
    WITHDRAWAL_REQUESTED = "WITHDRAWAL_REQUESTED"
    TICKET_COMMITTED = "TICKET_COMMITTED"
    ROUND_CLOSING_PREPARED = "ROUND_CLOSING_PREPARED"
    ROUND_CLOSING_BATCH_PROCESSED = "ROUND_CLOSING_BATCH_PROCESSED"
    ROUND_CLOSED = "ROUND_CLOSED"
    SAFE_BOX_SHARE_PAID = "SAFE_BOX_SHARE_PAID"
    # Ticket
    TICKET_CREATED = "TICKET_CREATED"
    TICKET_EXERCISED = "TICKET_EXERCISED"
    TICKET_EXPIRED = "TICKET_EXPIRED"
    TICKET_MARKED_AS_LOST = "TICKET_MARKED_AS_LOST"
    TICKET_CANCELLED = "TICKET_CANCELLED"
    TICKET_PAUSED = "TICKET_PAUSED"
    # Results
    RESULTS_SET = "RESULTS_SET"
    GAME_CANCELLED = "GAME_CANCELLED"
    MARKET_CANCELLED = "MARKET_CANCELLED"
