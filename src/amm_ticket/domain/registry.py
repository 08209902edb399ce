"""In-memory ticket store shared by the orchestrator and the liquidity pool."""

from collections import defaultdict

from src.amm_common.errors import TicketNotFoundError
from src.amm_ticket.domain.ticket import Ticket


class TicketRegistry:
    def __init__(self) -> None:
        self._tickets: dict[str, Ticket] = {}
        self._per_user: dict[str, list[str]] = defaultdict(list)
        self._next_number = 1

    def next_id(self) -> str:
        ticket_id = f"TKT-{self._next_number:08d}"
        self._next_number += 1
        return ticket_id

    def add(self, ticket: Ticket) -> None:
        self._tickets[ticket.id] = ticket
        self._per_user[ticket.data.owner].append(ticket.id)

    def get(self, ticket_id: str) -> Ticket:
        ticket = self._tickets.get(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(ticket_id)
        return ticket

    def __contains__(self, ticket_id: object) -> bool:
        return ticket_id in self._tickets

    def __len__(self) -> int:
        return len(self._tickets)

    def all(self) -> list[Ticket]:
        return list(self._tickets.values())

    def active(self) -> list[Ticket]:
        return [t for t in self._tickets.values() if not t.resolved]

    def per_user(self, owner: str, active_only: bool = False) -> list[Ticket]:
        tickets = [self._tickets[tid] for tid in self._per_user.get(owner, [])]
        if active_only:
            return [t for t in tickets if not t.resolved]
        return tickets
