from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dirttrails.models import Ticket, TicketAllocation, TicketStatus, TicketType
from dirttrails.models.base import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AllocationResult:
    success: bool
    ticket_ids: list[str] = field(default_factory=list)
    already_allocated: bool = False
    error: Optional[str] = None


def _ticket_code() -> str:
    return f"TKT-{secrets.token_hex(6).upper()}"


def _allocation_exists(db: Session, order_item_id: str) -> bool:
    stmt = select(TicketAllocation.id).where(TicketAllocation.order_item_id == order_item_id)
    return db.execute(stmt).first() is not None


def allocate_tickets(
    db: Session,
    *,
    ticket_type_id: str,
    quantity: int,
    order_id: str,
    order_item_id: str,
    owner_id: Optional[str] = None,
) -> AllocationResult:
    """Atomically reserve ``quantity`` units of a ticket type and issue the tickets.

    The allocation marker, the conditional decrement and the ticket rows commit
    together or not at all, so inventory never goes negative and is never
    decremented without matching tickets.
    """
    if quantity <= 0:
        return AllocationResult(success=False, error="quantity must be positive")

    if _allocation_exists(db, order_item_id):
        return AllocationResult(success=True, already_allocated=True)

    try:
        db.add(
            TicketAllocation(
                order_item_id=order_item_id,
                order_id=order_id,
                ticket_type_id=ticket_type_id,
                quantity=quantity,
            )
        )
        db.flush()

        decremented = db.execute(
            update(TicketType)
            .where(TicketType.id == ticket_type_id, TicketType.available_count >= quantity)
            .values(available_count=TicketType.available_count - quantity)
        )
        if decremented.rowcount != 1:
            db.rollback()
            exists = db.execute(select(TicketType.id).where(TicketType.id == ticket_type_id)).first()
            error = "insufficient inventory" if exists else "ticket type not found"
            return AllocationResult(success=False, error=error)

        issued_at = utcnow()
        tickets = [
            Ticket(
                code=_ticket_code(),
                order_id=order_id,
                order_item_id=order_item_id,
                ticket_type_id=ticket_type_id,
                owner_id=owner_id,
                issued_at=issued_at,
                status=TicketStatus.ACTIVE.value,
            )
            for _ in range(quantity)
        ]
        db.add_all(tickets)
        db.commit()
    except IntegrityError:
        db.rollback()
        if _allocation_exists(db, order_item_id):
            logger.info("Order item %s allocated by a concurrent delivery", order_item_id)
            return AllocationResult(success=True, already_allocated=True)
        raise

    return AllocationResult(success=True, ticket_ids=[ticket.id for ticket in tickets])


def get_available_count(db: Session, ticket_type_id: str) -> Optional[int]:
    return db.execute(select(TicketType.available_count).where(TicketType.id == ticket_type_id)).scalar_one_or_none()
