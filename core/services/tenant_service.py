"""
Tenant service for CRUD operations and room assignment.

Room moves touch three rows (the tenant, the room being left, the room being
entered), so assign_to_room and check_out run inside one transaction with
the rows locked.
"""

import logging
from datetime import timedelta
from uuid import UUID, uuid4

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger, AuditAction, compute_changes
from core.billing import ZERO, percent_of, round_money
from core.config import BillingConfig
from core.models import (
    Page, Room, RoomStatus,
    Tenant, TenantAssignment, TenantCreate, TenantSearch, TenantStatistics, TenantUpdate,
)
from core.services.paging import fetch_page, order_clause
from utils.timezone import now_utc, today_utc

logger = logging.getLogger(__name__)

# Valid columns that can be updated
_UPDATABLE_COLUMNS = {
    "first_name", "last_name", "email", "phone", "date_of_birth",
    "identification_number", "emergency_contact_name", "emergency_contact_phone",
    "contract_start_date", "contract_end_date", "security_deposit",
    "monthly_rent", "is_active", "notes"
}

_SORT_COLUMNS = {
    "last_name": "last_name",
    "first_name": "first_name",
    "email": "email",
    "contract_start_date": "contract_start_date",
    "created_at": "created_at",
}

_OPEN_INVOICES_SQL = """
    SELECT COUNT(*) FROM invoices
    WHERE tenant_id = %s AND status NOT IN ('paid', 'cancelled') AND deleted_at IS NULL
"""


class TenantService:
    """Service for tenant operations."""

    def __init__(self, postgres: PostgresClient, audit: AuditLogger, config: BillingConfig | None = None):
        self.postgres = postgres
        self.audit = audit
        self.config = config or BillingConfig()

    def _email_taken(self, email: str, exclude_id: UUID | None = None) -> bool:
        row = self.postgres.execute_single(
            """
            SELECT id FROM tenants
            WHERE lower(email) = lower(%s) AND deleted_at IS NULL
              AND (%s::uuid IS NULL OR id <> %s::uuid)
            """,
            (email, exclude_id, exclude_id)
        )
        return row is not None

    def create(self, data: TenantCreate) -> Tenant:
        """
        Create a new tenant (not yet in a room).

        Args:
            data: Tenant creation data

        Returns:
            Created tenant

        Raises:
            ValueError: If another tenant already uses the email address
        """
        if self._email_taken(data.email):
            raise ValueError("A tenant with this email already exists")

        tenant_id = uuid4()
        now = now_utc()

        row = self.postgres.execute_returning(
            """
            INSERT INTO tenants (
                id, first_name, last_name, email, phone, date_of_birth,
                identification_number, emergency_contact_name, emergency_contact_phone,
                room_id, contract_start_date, contract_end_date,
                security_deposit, monthly_rent, is_active, notes,
                created_at, updated_at
            ) VALUES (
                %s, %s, %s, %s, %s, %s,
                %s, %s, %s,
                %s, %s, %s,
                %s, %s, %s, %s,
                %s, %s
            )
            RETURNING *
            """,
            (
                tenant_id, data.first_name, data.last_name, data.email, data.phone, data.date_of_birth,
                data.identification_number, data.emergency_contact_name, data.emergency_contact_phone,
                None, data.contract_start_date, data.contract_end_date,
                data.security_deposit, data.monthly_rent, data.is_active, data.notes,
                now, now
            )
        )[0]

        tenant = Tenant.model_validate(row)

        self.audit.log_change(
            entity_type="tenant",
            entity_id=tenant.id,
            action=AuditAction.CREATE,
            changes={"created": data.model_dump(mode="json", exclude_none=True)}
        )

        return tenant

    def get_by_id(self, tenant_id: UUID) -> Tenant | None:
        """
        Get tenant by ID.

        Args:
            tenant_id: Tenant UUID

        Returns:
            Tenant if found and not deleted, None otherwise.
        """
        row = self.postgres.execute_single(
            "SELECT * FROM tenants WHERE id = %s AND deleted_at IS NULL",
            (tenant_id,)
        )

        if row is None:
            return None

        return Tenant.model_validate(row)

    def search(self, criteria: TenantSearch) -> Page[Tenant]:
        """
        Search tenants by name, email or phone with filters and paging.

        Args:
            criteria: Filters, sort key and page

        Returns:
            One page of matching tenants, by last name unless asked otherwise
        """
        conditions = ["deleted_at IS NULL"]
        params: list = []

        if criteria.search:
            pattern = f"%{criteria.search}%"
            conditions.append(
                "(first_name ILIKE %s OR last_name ILIKE %s OR email ILIKE %s OR phone ILIKE %s)"
            )
            params.extend([pattern, pattern, pattern, pattern])
        if criteria.is_active is not None:
            conditions.append("is_active = %s")
            params.append(criteria.is_active)
        if criteria.room_id is not None:
            conditions.append("room_id = %s")
            params.append(criteria.room_id)
        if criteria.has_room is True:
            conditions.append("room_id IS NOT NULL")
        elif criteria.has_room is False:
            conditions.append("room_id IS NULL")

        return fetch_page(
            self.postgres,
            "SELECT * FROM tenants",
            conditions,
            params,
            order_clause(criteria, _SORT_COLUMNS, "last_name"),
            criteria,
            Tenant,
            self.config.max_page_size,
        )

    def update(self, tenant_id: UUID, data: TenantUpdate) -> Tenant:
        """
        Update tenant fields.

        Args:
            tenant_id: Tenant UUID
            data: Fields to update

        Returns:
            Updated tenant

        Raises:
            ValueError: If tenant not found or the new email is taken
        """
        current = self.get_by_id(tenant_id)
        if current is None:
            raise ValueError(f"Tenant {tenant_id} not found")

        updates = data.model_dump(exclude_none=True)
        if not updates:
            return current

        if "email" in updates and updates["email"].lower() != current.email.lower():
            if self._email_taken(updates["email"], exclude_id=tenant_id):
                raise ValueError("A tenant with this email already exists")

        set_parts = []
        params = []
        for field, value in updates.items():
            if field not in _UPDATABLE_COLUMNS:
                logger.warning(f"Attempted to update unknown field '{field}' on tenant {tenant_id}")
                continue
            set_parts.append(f"{field} = %s")
            params.append(value)

        set_parts.append("updated_at = %s")
        params.append(now_utc())
        params.append(tenant_id)

        row = self.postgres.execute_returning(
            f"""
            UPDATE tenants
            SET {', '.join(set_parts)}
            WHERE id = %s
            RETURNING *
            """,
            tuple(params)
        )[0]

        updated = Tenant.model_validate(row)

        changes = compute_changes(
            current.model_dump(mode="json"),
            updated.model_dump(mode="json")
        )
        if changes:
            self.audit.log_change(
                entity_type="tenant",
                entity_id=tenant_id,
                action=AuditAction.UPDATE,
                changes=changes
            )

        return updated

    def delete(self, tenant_id: UUID) -> bool:
        """
        Soft delete a tenant, releasing their room.

        Args:
            tenant_id: Tenant UUID

        Returns:
            True if deleted, False if not found

        Raises:
            ValueError: If the tenant still has open invoices
        """
        current = self.get_by_id(tenant_id)
        if current is None:
            return False

        if self.postgres.execute_scalar(_OPEN_INVOICES_SQL, (tenant_id,)):
            raise ValueError("Cannot delete tenant with outstanding invoices")

        now = now_utc()
        with self.postgres.transaction() as tx:
            if current.room_id is not None:
                tx.execute(
                    "UPDATE rooms SET status = %s, updated_at = %s WHERE id = %s",
                    (RoomStatus.VACANT.value, now, current.room_id)
                )
            tx.execute(
                """
                UPDATE tenants
                SET room_id = NULL, is_active = false, deleted_at = %s, updated_at = %s
                WHERE id = %s
                """,
                (now, now, tenant_id)
            )
            self.audit.log_change(
                entity_type="tenant",
                entity_id=tenant_id,
                action=AuditAction.DELETE,
                changes={"deleted": current.model_dump(mode="json")},
                tx=tx
            )

        return True

    def assign_to_room(self, tenant_id: UUID, assignment: TenantAssignment) -> Tenant:
        """
        Move a tenant into a vacant room.

        The room being left goes back to vacant and the new room becomes
        rented. The tenant's rent defaults to the new room's rent.

        Args:
            tenant_id: Tenant UUID
            assignment: Target room and optional contract terms

        Returns:
            Updated tenant

        Raises:
            ValueError: If tenant or room not found, the tenant is already in
                that room, or the room is not vacant
        """
        now = now_utc()

        with self.postgres.transaction() as tx:
            tenant_row = tx.execute_single(
                "SELECT * FROM tenants WHERE id = %s AND deleted_at IS NULL FOR UPDATE",
                (tenant_id,)
            )
            if tenant_row is None:
                raise ValueError(f"Tenant {tenant_id} not found")
            current = Tenant.model_validate(tenant_row)

            room_row = tx.execute_single(
                "SELECT * FROM rooms WHERE id = %s AND deleted_at IS NULL FOR UPDATE",
                (assignment.room_id,)
            )
            if room_row is None:
                raise ValueError(f"Room {assignment.room_id} not found")
            room = Room.model_validate(room_row)

            if current.room_id == room.id:
                raise ValueError("Tenant is already assigned to this room")
            if not room.is_available:
                raise ValueError(f"Room {room.room_number} is not available")

            if current.room_id is not None:
                tx.execute(
                    "UPDATE rooms SET status = %s, updated_at = %s WHERE id = %s",
                    (RoomStatus.VACANT.value, now, current.room_id)
                )
            tx.execute(
                "UPDATE rooms SET status = %s, updated_at = %s WHERE id = %s",
                (RoomStatus.RENTED.value, now, room.id)
            )

            monthly_rent = assignment.monthly_rent
            if monthly_rent is None:
                monthly_rent = room.monthly_rent

            row = tx.execute_returning(
                """
                UPDATE tenants
                SET room_id = %s,
                    monthly_rent = %s,
                    contract_start_date = COALESCE(%s, contract_start_date),
                    contract_end_date = COALESCE(%s, contract_end_date),
                    updated_at = %s
                WHERE id = %s
                RETURNING *
                """,
                (
                    room.id, monthly_rent,
                    assignment.contract_start_date, assignment.contract_end_date,
                    now, tenant_id
                )
            )[0]
            updated = Tenant.model_validate(row)

            self.audit.log_change(
                entity_type="tenant",
                entity_id=tenant_id,
                action=AuditAction.UPDATE,
                changes=compute_changes(
                    current.model_dump(mode="json"),
                    updated.model_dump(mode="json")
                ),
                tx=tx
            )

        logger.info(f"Assigned tenant {tenant_id} to room {room.room_number}")
        return updated

    def check_out(self, tenant_id: UUID) -> Tenant:
        """
        Take a tenant out of their room; the room becomes vacant.

        Args:
            tenant_id: Tenant UUID

        Returns:
            Updated tenant with no room

        Raises:
            ValueError: If tenant not found, not in a room, or has open invoices
        """
        current = self.get_by_id(tenant_id)
        if current is None:
            raise ValueError(f"Tenant {tenant_id} not found")
        if current.room_id is None:
            raise ValueError("Tenant is not assigned to any room")
        if self.postgres.execute_scalar(_OPEN_INVOICES_SQL, (tenant_id,)):
            raise ValueError("Cannot unassign tenant with outstanding invoices")

        now = now_utc()
        with self.postgres.transaction() as tx:
            tx.execute(
                "UPDATE rooms SET status = %s, updated_at = %s WHERE id = %s",
                (RoomStatus.VACANT.value, now, current.room_id)
            )
            row = tx.execute_returning(
                """
                UPDATE tenants
                SET room_id = NULL, updated_at = %s
                WHERE id = %s
                RETURNING *
                """,
                (now, tenant_id)
            )[0]
            updated = Tenant.model_validate(row)

            self.audit.log_change(
                entity_type="tenant",
                entity_id=tenant_id,
                action=AuditAction.UPDATE,
                changes={"room_id": {"old": str(current.room_id), "new": None}},
                tx=tx
            )

        return updated


    def statistics(self) -> TenantStatistics:
        """
        Tenant figures for the reports page.

        Contract expiries count active tenants whose contract ends between
        today and 30 (or 90) days out. Age groups cover active tenants with
        a date of birth. Rent and deposit figures cover active tenants.

        Returns:
            TenantStatistics
        """
        today = today_utc()

        row = self.postgres.execute_single(
            """
            SELECT
                COUNT(*) AS total_tenants,
                COUNT(*) FILTER (WHERE is_active) AS active_tenants,
                COUNT(*) FILTER (WHERE is_active AND room_id IS NOT NULL) AS assigned_tenants,
                COUNT(*) FILTER (
                    WHERE is_active AND contract_end_date >= %s AND contract_end_date <= %s
                ) AS expiring_in_30_days,
                COUNT(*) FILTER (
                    WHERE is_active AND contract_end_date >= %s AND contract_end_date <= %s
                ) AS expiring_in_90_days,
                COUNT(*) FILTER (WHERE created_at >= %s) AS new_last_30_days,
                COALESCE(SUM(monthly_rent) FILTER (WHERE is_active), 0) AS total_monthly_rent,
                COALESCE(AVG(monthly_rent) FILTER (WHERE is_active), 0) AS average_monthly_rent,
                COALESCE(SUM(security_deposit) FILTER (WHERE is_active), 0) AS total_security_deposits,
                COALESCE(AVG(security_deposit) FILTER (WHERE is_active), 0) AS average_security_deposit
            FROM tenants
            WHERE deleted_at IS NULL
            """,
            (
                today, today + timedelta(days=30),
                today, today + timedelta(days=90),
                now_utc() - timedelta(days=30),
            )
        ) or {}

        age_rows = self.postgres.execute(
            """
            SELECT
                CASE
                    WHEN years < 25 THEN 'Under 25'
                    WHEN years < 35 THEN '25-34'
                    WHEN years < 45 THEN '35-44'
                    WHEN years < 55 THEN '45-54'
                    WHEN years < 65 THEN '55-64'
                    ELSE '65+'
                END AS age_group,
                COUNT(*) AS count
            FROM (
                SELECT date_part('year', age(%s::date, date_of_birth)) AS years
                FROM tenants
                WHERE is_active AND date_of_birth IS NOT NULL AND deleted_at IS NULL
            ) AS ages
            GROUP BY 1
            """,
            (today,)
        )

        total = row.get("total_tenants") or 0
        active = row.get("active_tenants") or 0
        assigned = row.get("assigned_tenants") or 0

        return TenantStatistics(
            total_tenants=total,
            active_tenants=active,
            inactive_tenants=total - active,
            assigned_tenants=assigned,
            unassigned_tenants=active - assigned,
            expiring_in_30_days=row.get("expiring_in_30_days") or 0,
            expiring_in_90_days=row.get("expiring_in_90_days") or 0,
            new_last_30_days=row.get("new_last_30_days") or 0,
            age_groups={r["age_group"]: r["count"] for r in age_rows},
            total_monthly_rent=row.get("total_monthly_rent") or ZERO,
            average_monthly_rent=round_money(row.get("average_monthly_rent") or ZERO),
            total_security_deposits=row.get("total_security_deposits") or ZERO,
            average_security_deposit=round_money(row.get("average_security_deposit") or ZERO),
            assignment_rate=percent_of(assigned, active),
            activity_rate=percent_of(active, total),
        )
