"""Sequential ``Ticket-<n>`` number assignment backed by a counter row."""
from __future__ import annotations

import re
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..models import Ticket, TicketCounter

TICKET_COUNTER = "ticket"
TICKET_NUMBER_PREFIX = "Ticket-"
_TICKET_NUMBER_PATTERN = re.compile(r"^Ticket-(\d+)$")


def format_ticket_number(number: int) -> str:
    return f"{TICKET_NUMBER_PREFIX}{number}"


def parse_ticket_number(value: str | None) -> Optional[int]:
    """Return the numeric suffix of ``Ticket-<n>`` or ``None`` for other values."""

    match = _TICKET_NUMBER_PATTERN.match((value or "").strip())
    if match is None:
        return None
    return int(match.group(1))


def highest_ticket_number(session: Session) -> int:
    """Return the largest number among stored ticket numbers, or 0."""

    highest = 0
    for value in session.scalars(select(Ticket.ticket_number)):
        number = parse_ticket_number(value)
        if number is not None and number > highest:
            highest = number
    return highest


def ensure_ticket_counter(session: Session) -> TicketCounter:
    """Create the ticket counter if missing, seeded from existing tickets.

    Runs at application start-up so tickets stored before the counter existed
    keep their numbers and new tickets continue after the highest one.
    """

    counter = session.get(TicketCounter, TICKET_COUNTER)
    if counter is None:
        counter = TicketCounter(name=TICKET_COUNTER, value=highest_ticket_number(session))
        session.add(counter)
        session.flush()
    return counter


def next_ticket_number(session: Session) -> str:
    """Reserve and return the next ticket number inside the current transaction.

    The increment is a single ``UPDATE ... SET value = value + 1`` so the
    database serialises concurrent callers on the counter row; the value read
    back afterwards belongs to this transaction alone.
    """

    increment = (
        update(TicketCounter)
        .where(TicketCounter.name == TICKET_COUNTER)
        .values(value=TicketCounter.value + 1)
        .execution_options(synchronize_session=False)
    )
    if session.execute(increment).rowcount == 0:
        ensure_ticket_counter(session)
        session.execute(increment)

    value = session.scalar(
        select(TicketCounter.value).where(TicketCounter.name == TICKET_COUNTER)
    )
    return format_ticket_number(int(value))
