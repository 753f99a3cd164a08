"""
Room service for CRUD operations and occupancy.

Handles room lifecycle: create, read, update, status changes, soft delete,
plus the vacancy listing and occupancy figures used by the dashboard.
"""

import logging
from uuid import UUID, uuid4

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger, AuditAction, compute_changes
from core.billing import ZERO, percent_of
from core.config import BillingConfig
from core.models import Page, Room, RoomCreate, RoomOccupancy, RoomSearch, RoomStatus, RoomUpdate
from core.services.paging import fetch_page, order_clause
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

# Valid columns that can be updated
_UPDATABLE_COLUMNS = {
    "room_number", "type", "monthly_rent", "status", "floor", "area",
    "description", "has_air_conditioning", "has_private_bathroom", "is_furnished"
}

_SORT_COLUMNS = {
    "room_number": "room_number",
    "monthly_rent": "monthly_rent",
    "type": "type",
    "status": "status",
    "floor": "floor",
}


class RoomService:
    """Service for room operations."""

    def __init__(self, postgres: PostgresClient, audit: AuditLogger, config: BillingConfig | None = None):
        self.postgres = postgres
        self.audit = audit
        self.config = config or BillingConfig()

    def _room_number_taken(self, room_number: str, exclude_id: UUID | None = None) -> bool:
        row = self.postgres.execute_single(
            """
            SELECT id FROM rooms
            WHERE room_number = %s AND deleted_at IS NULL
              AND (%s::uuid IS NULL OR id <> %s::uuid)
            """,
            (room_number, exclude_id, exclude_id)
        )
        return row is not None

    def create(self, data: RoomCreate) -> Room:
        """
        Create a new room.

        Args:
            data: Room creation data

        Returns:
            Created room

        Raises:
            ValueError: If the room number is already in use
        """
        if self._room_number_taken(data.room_number):
            raise ValueError(f"Room number {data.room_number} already exists")

        room_id = uuid4()
        now = now_utc()

        row = self.postgres.execute_returning(
            """
            INSERT INTO rooms (
                id, room_number, type, monthly_rent, status, floor, area,
                description, has_air_conditioning, has_private_bathroom, is_furnished,
                created_at, updated_at
            ) VALUES (
                %s, %s, %s, %s, %s, %s, %s,
                %s, %s, %s, %s,
                %s, %s
            )
            RETURNING *
            """,
            (
                room_id, data.room_number, data.type.value, data.monthly_rent, data.status.value,
                data.floor, data.area,
                data.description, data.has_air_conditioning, data.has_private_bathroom, data.is_furnished,
                now, now
            )
        )[0]

        room = Room.model_validate(row)

        self.audit.log_change(
            entity_type="room",
            entity_id=room.id,
            action=AuditAction.CREATE,
            changes={"created": data.model_dump(mode="json", exclude_none=True)}
        )

        logger.info(f"Created room {room.room_number}")
        return room

    def get_by_id(self, room_id: UUID) -> Room | None:
        """
        Get room by ID.

        Args:
            room_id: Room UUID

        Returns:
            Room if found and not deleted, None otherwise.
        """
        row = self.postgres.execute_single(
            "SELECT * FROM rooms WHERE id = %s AND deleted_at IS NULL",
            (room_id,)
        )

        if row is None:
            return None

        return Room.model_validate(row)

    def search(self, criteria: RoomSearch) -> Page[Room]:
        """
        Search rooms with filters, sorting and paging.

        The search term matches room number and description (case-insensitive).
        Default ordering is by room number.

        Args:
            criteria: Filters, sort key and page

        Returns:
            One page of matching rooms
        """
        conditions = ["deleted_at IS NULL"]
        params: list = []

        if criteria.search:
            pattern = f"%{criteria.search}%"
            conditions.append("(room_number ILIKE %s OR description ILIKE %s)")
            params.extend([pattern, pattern])
        if criteria.type is not None:
            conditions.append("type = %s")
            params.append(criteria.type.value)
        if criteria.status is not None:
            conditions.append("status = %s")
            params.append(criteria.status.value)
        if criteria.floor is not None:
            conditions.append("floor = %s")
            params.append(criteria.floor)
        if criteria.min_rent is not None:
            conditions.append("monthly_rent >= %s")
            params.append(criteria.min_rent)
        if criteria.max_rent is not None:
            conditions.append("monthly_rent <= %s")
            params.append(criteria.max_rent)
        for flag in ("has_air_conditioning", "has_private_bathroom", "is_furnished"):
            value = getattr(criteria, flag)
            if value is not None:
                conditions.append(f"{flag} = %s")
                params.append(value)

        return fetch_page(
            self.postgres,
            "SELECT * FROM rooms",
            conditions,
            params,
            order_clause(criteria, _SORT_COLUMNS, "room_number"),
            criteria,
            Room,
            self.config.max_page_size,
        )

    def list_available(self) -> list[Room]:
        """
        List vacant rooms, cheapest first.

        Returns:
            Rooms that can take a new tenant
        """
        rows = self.postgres.execute(
            """
            SELECT * FROM rooms
            WHERE status = %s AND deleted_at IS NULL
            ORDER BY monthly_rent ASC, room_number ASC
            """,
            (RoomStatus.VACANT.value,)
        )

        return [Room.model_validate(row) for row in rows]

    def update(self, room_id: UUID, data: RoomUpdate) -> Room:
        """
        Update room fields.

        Args:
            room_id: Room UUID
            data: Fields to update

        Returns:
            Updated room

        Raises:
            ValueError: If room not found or the new room number is taken
        """
        current = self.get_by_id(room_id)
        if current is None:
            raise ValueError(f"Room {room_id} not found")

        updates = data.model_dump(exclude_none=True)
        if not updates:
            return current

        if "room_number" in updates and updates["room_number"] != current.room_number:
            if self._room_number_taken(updates["room_number"], exclude_id=room_id):
                raise ValueError(f"Room number {updates['room_number']} already exists")

        for field in ("type", "status"):
            if field in updates and hasattr(updates[field], "value"):
                updates[field] = updates[field].value

        set_parts = []
        params = []
        for field, value in updates.items():
            if field in _UPDATABLE_COLUMNS:
                set_parts.append(f"{field} = %s")
                params.append(value)

        set_parts.append("updated_at = %s")
        params.append(now_utc())
        params.append(room_id)

        row = self.postgres.execute_returning(
            f"""
            UPDATE rooms
            SET {', '.join(set_parts)}
            WHERE id = %s
            RETURNING *
            """,
            tuple(params)
        )[0]

        updated = Room.model_validate(row)

        changes = compute_changes(
            current.model_dump(mode="json"),
            updated.model_dump(mode="json")
        )
        if changes:
            self.audit.log_change(
                entity_type="room",
                entity_id=room_id,
                action=AuditAction.UPDATE,
                changes=changes
            )

        return updated

    def change_status(self, room_id: UUID, status: RoomStatus) -> Room:
        """
        Set a room's occupancy status.

        Args:
            room_id: Room UUID
            status: New status

        Returns:
            Updated room

        Raises:
            ValueError: If room not found
        """
        return self.update(room_id, RoomUpdate(status=status))

    def delete(self, room_id: UUID) -> bool:
        """
        Soft delete a room.

        Refused while tenants live there or invoices billed against it are
        still open.

        Args:
            room_id: Room UUID

        Returns:
            True if deleted, False if not found

        Raises:
            ValueError: If the room has active tenants or unpaid invoices
        """
        current = self.get_by_id(room_id)
        if current is None:
            return False

        active_tenants = self.postgres.execute_scalar(
            """
            SELECT COUNT(*) FROM tenants
            WHERE room_id = %s AND is_active = true AND deleted_at IS NULL
            """,
            (room_id,)
        )
        if active_tenants:
            raise ValueError("Cannot delete room with active tenants")

        unpaid_invoices = self.postgres.execute_scalar(
            """
            SELECT COUNT(*) FROM invoices
            WHERE room_id = %s AND status NOT IN ('paid', 'cancelled') AND deleted_at IS NULL
            """,
            (room_id,)
        )
        if unpaid_invoices:
            raise ValueError("Cannot delete room with unpaid invoices")

        now = now_utc()
        self.postgres.execute_returning(
            """
            UPDATE rooms
            SET deleted_at = %s, updated_at = %s
            WHERE id = %s
            RETURNING id
            """,
            (now, now, room_id)
        )

        self.audit.log_change(
            entity_type="room",
            entity_id=room_id,
            action=AuditAction.DELETE,
            changes={"deleted": current.model_dump(mode="json")}
        )

        return True

    def occupancy_stats(self) -> RoomOccupancy:
        """
        Occupancy snapshot across all rooms.

        Returns:
            Counts per status, occupancy rate (percent of rooms rented) and
            the monthly rent currently being earned from rented rooms
        """
        row = self.postgres.execute_single(
            """
            SELECT
                COUNT(*) AS total_rooms,
                COUNT(*) FILTER (WHERE status = 'vacant') AS vacant_rooms,
                COUNT(*) FILTER (WHERE status = 'rented') AS rented_rooms,
                COUNT(*) FILTER (WHERE status = 'maintenance') AS maintenance_rooms,
                COUNT(*) FILTER (WHERE status = 'reserved') AS reserved_rooms,
                COALESCE(SUM(monthly_rent) FILTER (WHERE status = 'rented'), 0) AS monthly_rent_potential
            FROM rooms
            WHERE deleted_at IS NULL
            """
        ) or {}

        total = row.get("total_rooms") or 0
        rented = row.get("rented_rooms") or 0
        rate = percent_of(rented, total)

        return RoomOccupancy(
            total_rooms=total,
            vacant_rooms=row.get("vacant_rooms") or 0,
            rented_rooms=rented,
            maintenance_rooms=row.get("maintenance_rooms") or 0,
            reserved_rooms=row.get("reserved_rooms") or 0,
            occupancy_rate=rate,
            monthly_rent_potential=row.get("monthly_rent_potential") or ZERO,
        )
