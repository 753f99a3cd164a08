"""
Item catalog service.

Manages the catalog of chargeable items (utilities, cleaning, repairs,
parking...) and turns a catalog entry into a pre-filled invoice line.
"""

import logging
from decimal import Decimal
from uuid import UUID, uuid4

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger, AuditAction, compute_changes
from core.billing import price_line_item
from core.config import BillingConfig
from core.models import Item, ItemCreate, ItemSearch, ItemUpdate, LineItemInput, Page
from core.services.paging import fetch_page, order_clause
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

_UPDATABLE_COLUMNS = {
    "item_code", "item_name", "description", "unit_of_measure",
    "unit_price", "tax_percent", "category", "is_active", "notes"
}

_SORT_COLUMNS = {
    "item_code": "item_code",
    "item_name": "item_name",
    "unit_price": "unit_price",
    "category": "category",
}


class ItemService:
    """Service for item catalog operations."""

    def __init__(self, postgres: PostgresClient, audit: AuditLogger, config: BillingConfig | None = None):
        self.postgres = postgres
        self.audit = audit
        self.config = config or BillingConfig()

    def _code_taken(self, item_code: str, exclude_id: UUID | None = None) -> bool:
        row = self.postgres.execute_single(
            """
            SELECT id FROM items
            WHERE item_code = %s AND deleted_at IS NULL
              AND (%s::uuid IS NULL OR id <> %s::uuid)
            """,
            (item_code, exclude_id, exclude_id)
        )
        return row is not None

    def create(self, data: ItemCreate) -> Item:
        """
        Add an item to the catalog.

        Args:
            data: Item creation data

        Returns:
            Created item

        Raises:
            ValueError: If the item code is already in use
        """
        if self._code_taken(data.item_code):
            raise ValueError("Item code already exists")

        item_id = uuid4()
        now = now_utc()

        row = self.postgres.execute_returning(
            """
            INSERT INTO items (
                id, item_code, item_name, description, unit_of_measure,
                unit_price, tax_percent, category, is_active, notes,
                created_at, updated_at
            ) VALUES (
                %s, %s, %s, %s, %s,
                %s, %s, %s, %s, %s,
                %s, %s
            )
            RETURNING *
            """,
            (
                item_id, data.item_code, data.item_name, data.description, data.unit_of_measure,
                data.unit_price, data.tax_percent, data.category, data.is_active, data.notes,
                now, now
            )
        )[0]

        item = Item.model_validate(row)

        self.audit.log_change(
            entity_type="item",
            entity_id=item.id,
            action=AuditAction.CREATE,
            changes={"created": data.model_dump(mode="json", exclude_none=True)}
        )

        return item

    def get_by_id(self, item_id: UUID) -> Item | None:
        """
        Get item by ID.

        Args:
            item_id: Item UUID

        Returns:
            Item if found and not deleted, None otherwise.
        """
        row = self.postgres.execute_single(
            "SELECT * FROM items WHERE id = %s AND deleted_at IS NULL",
            (item_id,)
        )

        if row is None:
            return None

        return Item.model_validate(row)

    def get_by_code(self, item_code: str) -> Item | None:
        """Get item by its catalog code, or None."""
        row = self.postgres.execute_single(
            "SELECT * FROM items WHERE item_code = %s AND deleted_at IS NULL",
            (item_code,)
        )

        if row is None:
            return None

        return Item.model_validate(row)

    def search_items(self, criteria: ItemSearch) -> Page[Item]:
        """
        Search the catalog.

        The term matches code, name or description (case-insensitive).
        Default ordering is by item name.

        Args:
            criteria: Term, category / active filters, sort key and page

        Returns:
            One page of matching items
        """
        conditions = ["deleted_at IS NULL"]
        params: list = []

        if criteria.search:
            pattern = f"%{criteria.search}%"
            conditions.append("(item_code ILIKE %s OR item_name ILIKE %s OR description ILIKE %s)")
            params.extend([pattern, pattern, pattern])
        if criteria.category:
            conditions.append("category = %s")
            params.append(criteria.category)
        if criteria.is_active is not None:
            conditions.append("is_active = %s")
            params.append(criteria.is_active)

        return fetch_page(
            self.postgres,
            "SELECT * FROM items",
            conditions,
            params,
            order_clause(criteria, _SORT_COLUMNS, "item_name"),
            criteria,
            Item,
            self.config.max_page_size,
        )

    def list_active(self) -> list[Item]:
        """
        List all active items.

        Returns:
            Active items ordered by name
        """
        rows = self.postgres.execute(
            """
            SELECT * FROM items
            WHERE is_active = true AND deleted_at IS NULL
            ORDER BY item_name ASC
            """
        )

        return [Item.model_validate(row) for row in rows]

    def list_categories(self) -> list[str]:
        """Distinct categories in use by active items, alphabetically."""
        rows = self.postgres.execute(
            """
            SELECT DISTINCT category FROM items
            WHERE is_active = true AND deleted_at IS NULL AND category IS NOT NULL AND category <> ''
            ORDER BY category ASC
            """
        )

        return [row["category"] for row in rows]

    def update(self, item_id: UUID, data: ItemUpdate) -> Item:
        """
        Update item fields.

        Args:
            item_id: Item UUID
            data: Fields to update

        Returns:
            Updated item

        Raises:
            ValueError: If item not found or the new code is taken
        """
        current = self.get_by_id(item_id)
        if current is None:
            raise ValueError(f"Item {item_id} not found")

        updates = data.model_dump(exclude_none=True)
        if not updates:
            return current

        if "item_code" in updates and updates["item_code"] != current.item_code:
            if self._code_taken(updates["item_code"], exclude_id=item_id):
                raise ValueError("Item code already exists")

        set_parts = []
        params = []
        for field, value in updates.items():
            if field not in _UPDATABLE_COLUMNS:
                logger.warning(f"Attempted to update unknown field '{field}' on item {item_id}")
                continue
            set_parts.append(f"{field} = %s")
            params.append(value)

        set_parts.append("updated_at = %s")
        params.append(now_utc())
        params.append(item_id)

        row = self.postgres.execute_returning(
            f"""
            UPDATE items
            SET {', '.join(set_parts)}
            WHERE id = %s
            RETURNING *
            """,
            tuple(params)
        )[0]

        updated = Item.model_validate(row)

        changes = compute_changes(
            current.model_dump(mode="json"),
            updated.model_dump(mode="json")
        )
        if changes:
            self.audit.log_change(
                entity_type="item",
                entity_id=item_id,
                action=AuditAction.UPDATE,
                changes=changes
            )

        return updated

    def delete(self, item_id: UUID) -> bool:
        """
        Soft delete a catalog item.

        Args:
            item_id: Item UUID

        Returns:
            True if deleted, False if not found

        Raises:
            ValueError: If any invoice line still references the item code
        """
        current = self.get_by_id(item_id)
        if current is None:
            return False

        in_use = self.postgres.execute_scalar(
            "SELECT COUNT(*) FROM invoice_line_items WHERE item_code = %s",
            (current.item_code,)
        )
        if in_use:
            raise ValueError("Cannot delete item that is used in invoices")

        now = now_utc()
        self.postgres.execute_returning(
            """
            UPDATE items
            SET deleted_at = %s, updated_at = %s
            WHERE id = %s
            RETURNING id
            """,
            (now, now, item_id)
        )

        self.audit.log_change(
            entity_type="item",
            entity_id=item_id,
            action=AuditAction.DELETE,
            changes={"deleted": current.model_dump(mode="json")}
        )

        return True

    def to_line_item(self, item: Item, quantity: Decimal | int = 1) -> LineItemInput:
        """
        Pre-fill an invoice line from a catalog item, already priced.

        Args:
            item: Catalog item
            quantity: Units to bill

        Returns:
            LineItemInput carrying the item's code, name, unit, price, tax
            rate and category, with totals computed
        """
        line = LineItemInput(
            item_code=item.item_code,
            item_name=item.item_name,
            description=item.description,
            unit_of_measure=item.unit_of_measure,
            category=item.category,
            quantity=quantity,
            unit_price=item.unit_price,
            tax_percent=item.tax_percent,
        )
        return price_line_item(line)
