"""
Reservation repository implementation for the Lending Library MCP Server.

The Reservation Queue: a FIFO wait-list per item, consulted on every return.
Entries are ordered by ``created_time`` and then ``res_id``, so reservations
placed within the same second keep their arrival order. Entries are never
deleted; fulfilment is a one-way status change.
"""

from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import and_, select
from sqlalchemy.orm import Session

from ..database.schema import Reservation as ReservationDB
from ..database.schema import ReservationStatusEnum
from ..models.circulation import Reservation as ReservationModel
from ..models.circulation import ReservationStatus
from .repository import NotFoundError, RepositoryException
from .session import safe_flush, safe_query


class ReservationCreateSchema(BaseModel):
    """Schema for joining an item's wait-list."""

    item_id: str
    member_id: str
    created_time: datetime


class ReservationRepository:
    """Repository for the per-item reservation queues."""

    def __init__(self, session: Session):
        """Initialize repository with database session."""
        self.session = session

    def create(self, data: ReservationCreateSchema) -> ReservationModel:
        """Append a waiting reservation to the end of the item's queue."""
        reservation = ReservationDB(
            item_id=data.item_id,
            member_id=data.member_id,
            created_time=data.created_time,
            status=ReservationStatusEnum.WAITING,
        )
        self.session.add(reservation)
        safe_flush(self.session, "create reservation")
        return self._reservation_to_model(reservation)

    def get_by_id(self, res_id: int) -> ReservationModel | None:
        """Get a reservation by ID, or None if it does not exist."""
        reservation = self._get_row(res_id)
        if reservation is None:
            return None
        return self._reservation_to_model(reservation)

    def next_waiting(self, item_id: str) -> ReservationModel | None:
        """
        Head of the item's queue.

        Returns:
            The earliest waiting reservation, or None if nobody is waiting
        """
        query = self._waiting_query(item_id).limit(1)
        reservation = safe_query(
            self.session,
            lambda s: s.execute(query).scalar_one_or_none(),
            "Failed to get first reservation in queue",
        )
        if reservation is None:
            return None
        return self._reservation_to_model(reservation)

    def list_waiting(self, item_id: str) -> list[ReservationModel]:
        """Every waiting reservation for the item, in queue order."""
        query = self._waiting_query(item_id)
        rows = safe_query(
            self.session,
            lambda s: s.execute(query).scalars().all(),
            "Failed to get reservation queue",
        )
        return [self._reservation_to_model(r) for r in rows]

    def mark_fulfilled(self, res_id: int, fulfilled_time: datetime) -> ReservationModel:
        """
        Move a waiting reservation to fulfilled.

        Raises:
            NotFoundError: If the reservation does not exist
            RepositoryException: If it is not waiting
        """
        reservation = self._get_row(res_id)
        if reservation is None:
            raise NotFoundError(f"Reservation {res_id} not found")

        if reservation.status != ReservationStatusEnum.WAITING:
            raise RepositoryException(
                f"Reservation {res_id} is not waiting (current status: "
                f"{reservation.status.value})"
            )

        reservation.status = ReservationStatusEnum.FULFILLED
        reservation.fulfilled_time = fulfilled_time
        safe_flush(self.session, "fulfill reservation")
        return self._reservation_to_model(reservation)

    def _waiting_query(self, item_id: str):
        return (
            select(ReservationDB)
            .where(
                and_(
                    ReservationDB.item_id == item_id,
                    ReservationDB.status == ReservationStatusEnum.WAITING,
                )
            )
            .order_by(ReservationDB.created_time, ReservationDB.res_id)
        )

    def _get_row(self, res_id: int) -> ReservationDB | None:
        return safe_query(
            self.session,
            lambda s: s.execute(
                select(ReservationDB).where(ReservationDB.res_id == res_id)
            ).scalar_one_or_none(),
            "Failed to get reservation",
        )

    def _reservation_to_model(self, reservation: ReservationDB) -> ReservationModel:
        """Convert reservation DB object to Pydantic model."""
        return ReservationModel(
            res_id=reservation.res_id,
            item_id=reservation.item_id,
            member_id=reservation.member_id,
            created_time=reservation.created_time,
            status=ReservationStatus(reservation.status.value),
            fulfilled_time=reservation.fulfilled_time,
        )
