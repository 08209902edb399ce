"""Result feed: write-once market results and per-position status evaluation.

Results are keyed by (game_id, type_id, player_id) and hold an ordered list
of ints whose meaning depends on the market type's ResultType:
  EXACT_POSITION      winning position indices
  OVER_UNDER          [total x100], compared against the leg's line
  SPREAD              [home margin x100], compared against -line
  COMBINED_POSITIONS  not stored; derived from the component markets
A result list of [CANCEL_ID] cancels every line of the market.
"""

import logging
from collections.abc import Sequence

from src.amm_common.datetime_utils import Clock, unix_now
from src.amm_common.enums import EventType, MarketPositionStatus, ResultType
from src.amm_common.errors import InvalidResultInputError, ResultTypeNotSetError
from src.amm_common.events import EventLog
from src.amm_common.markets import CombinedPosition, MarketKey, MarketLeg

logger = logging.getLogger(__name__)

CANCEL_ID = -9999


class ResultManager:
    def __init__(self, events: EventLog | None = None, clock: Clock = unix_now) -> None:
        self._events = events if events is not None else EventLog()
        self._clock = clock
        self._result_type_per_market_type: dict[int, ResultType] = {}
        self._results: dict[MarketKey, list[int]] = {}
        self._cancelled_games: set[str] = set()
        self._cancelled_lines: set[tuple[MarketKey, int]] = set()

    # ------------------------------------------------------------------
    # Setters
    # ------------------------------------------------------------------

    def set_result_types_per_market_types(
        self, type_ids: Sequence[int], result_types: Sequence[ResultType | int]
    ) -> None:
        if len(type_ids) != len(result_types):
            raise InvalidResultInputError("type_ids and result_types differ in length")
        for type_id, result_type in zip(type_ids, result_types):
            self._result_type_per_market_type[type_id] = ResultType(result_type)

    def set_results_per_markets(
        self,
        game_ids: Sequence[str],
        type_ids: Sequence[int],
        player_ids: Sequence[int],
        results: Sequence[Sequence[int]],
    ) -> int:
        """Store results; keys that already have results are skipped.

        Returns the number of keys actually written.
        """
        if not (len(game_ids) == len(type_ids) == len(player_ids) == len(results)):
            raise InvalidResultInputError("input lists differ in length")
        for type_id in type_ids:
            if self.result_type(type_id) == ResultType.UNASSIGNED:
                raise ResultTypeNotSetError(type_id)
        # a rejected batch writes nothing
        for game_id, type_id, player_id, market_results in zip(
            game_ids, type_ids, player_ids, results
        ):
            if not market_results:
                raise InvalidResultInputError(
                    f"empty results for {MarketKey(game_id, type_id, player_id)}"
                )

        written = 0
        for game_id, type_id, player_id, market_results in zip(
            game_ids, type_ids, player_ids, results
        ):
            key = MarketKey(game_id, type_id, player_id)
            if key in self._results:
                logger.warning("Results already set for %s, ignoring re-set", key)
                continue
            self._results[key] = list(market_results)
            written += 1
            self._events.emit(
                EventType.RESULTS_SET,
                self._clock(),
                game_id=game_id,
                type_id=type_id,
                player_id=player_id,
                results=list(market_results),
            )
        logger.info("Results set for %d of %d markets", written, len(game_ids))
        return written

    def cancel_game(self, game_id: str) -> None:
        self._cancelled_games.add(game_id)
        self._events.emit(EventType.GAME_CANCELLED, self._clock(), game_id=game_id)
        logger.info("Game %s cancelled", game_id)

    def cancel_market(self, game_id: str, type_id: int, player_id: int, line: int) -> None:
        self._cancelled_lines.add((MarketKey(game_id, type_id, player_id), line))
        self._events.emit(
            EventType.MARKET_CANCELLED,
            self._clock(),
            game_id=game_id,
            type_id=type_id,
            player_id=player_id,
            line=line,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def result_type(self, type_id: int) -> ResultType:
        return self._result_type_per_market_type.get(type_id, ResultType.UNASSIGNED)

    def are_results_per_market_set(self, game_id: str, type_id: int, player_id: int) -> bool:
        return MarketKey(game_id, type_id, player_id) in self._results

    def get_results_per_market(self, game_id: str, type_id: int, player_id: int) -> list[int]:
        return list(self._results.get(MarketKey(game_id, type_id, player_id), []))

    def is_market_cancelled(self, game_id: str, type_id: int, player_id: int, line: int) -> bool:
        key = MarketKey(game_id, type_id, player_id)
        if game_id in self._cancelled_games or (key, line) in self._cancelled_lines:
            return True
        return self._results.get(key) == [CANCEL_ID]

    def is_market_resolved(
        self,
        game_id: str,
        type_id: int,
        player_id: int,
        line: int,
        combined_positions: Sequence[CombinedPosition] = (),
    ) -> bool:
        if self.is_market_cancelled(game_id, type_id, player_id, line):
            return True
        if combined_positions:
            return all(
                self.is_market_resolved(game_id, cp.type_id, player_id, cp.line)
                for cp in combined_positions
            )
        return self.are_results_per_market_set(game_id, type_id, player_id)

    def is_leg_resolved(self, leg: MarketLeg) -> bool:
        return self.is_market_resolved(
            leg.game_id, leg.type_id, leg.player_id, leg.line, leg.combined_positions
        )

    def get_market_position_status(
        self,
        game_id: str,
        type_id: int,
        player_id: int,
        line: int,
        position: int,
        combined_positions: Sequence[CombinedPosition] = (),
    ) -> MarketPositionStatus:
        if self.is_market_cancelled(game_id, type_id, player_id, line):
            return MarketPositionStatus.CANCELLED
        if combined_positions:
            return self._combined_status(game_id, player_id, combined_positions)

        key = MarketKey(game_id, type_id, player_id)
        if key not in self._results:
            return MarketPositionStatus.OPEN
        results = self._results[key]
        result_type = self.result_type(type_id)

        if result_type == ResultType.EXACT_POSITION:
            return (
                MarketPositionStatus.WINNING if position in results
                else MarketPositionStatus.LOSING
            )
        if result_type == ResultType.OVER_UNDER:
            return _two_way_status(results[0] - line, position)
        if result_type == ResultType.SPREAD:
            return _two_way_status(results[0] + line, position)
        # Unknown result types settle nothing; the market stays open.
        return MarketPositionStatus.OPEN

    def get_leg_status(self, leg: MarketLeg) -> MarketPositionStatus:
        return self.get_market_position_status(
            leg.game_id, leg.type_id, leg.player_id, leg.line, leg.position,
            leg.combined_positions,
        )

    def is_winning_market_position(self, leg: MarketLeg) -> bool:
        return self.get_leg_status(leg) == MarketPositionStatus.WINNING

    def is_cancelled_market_position(self, leg: MarketLeg) -> bool:
        return self.get_leg_status(leg) == MarketPositionStatus.CANCELLED

    def _combined_status(
        self, game_id: str, player_id: int, combined_positions: Sequence[CombinedPosition]
    ) -> MarketPositionStatus:
        statuses = [
            self.get_market_position_status(game_id, cp.type_id, player_id, cp.line, cp.position)
            for cp in combined_positions
        ]
        if MarketPositionStatus.LOSING in statuses:
            return MarketPositionStatus.LOSING
        if all(s == MarketPositionStatus.CANCELLED for s in statuses):
            return MarketPositionStatus.CANCELLED
        if MarketPositionStatus.OPEN in statuses:
            return MarketPositionStatus.OPEN
        return MarketPositionStatus.WINNING


def _two_way_status(value: int, position: int) -> MarketPositionStatus:
    """Position 0 wins on a positive value, position 1 on a negative one; 0 is a push."""
    if value == 0:
        return MarketPositionStatus.CANCELLED
    winning_position = 0 if value > 0 else 1
    return MarketPositionStatus.WINNING if position == winning_position else MarketPositionStatus.LOSING
