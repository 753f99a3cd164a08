"""
Paged search and report filter helpers shared by the entity services.

Sort keys are looked up in a per-service whitelist, never interpolated from
the request, so ORDER BY stays injection-safe.
"""

from datetime import date
from typing import Any, Sequence, Type, TypeVar

from pydantic import BaseModel

from clients.postgres_client import PostgresClient
from core.models import Page, PageRequest

M = TypeVar("M", bound=BaseModel)


def order_clause(request: PageRequest, columns: dict[str, str], default: str) -> str:
    """
    Build an ORDER BY expression from a whitelisted sort key.

    Args:
        request: Search request carrying sort_by / sort_desc
        columns: Allowed sort keys mapped to SQL column expressions
        default: Key used when sort_by is missing or unknown

    Returns:
        SQL fragment such as "r.room_number ASC"
    """
    column = columns.get(request.sort_by or default, columns[default])
    direction = "DESC" if request.sort_desc else "ASC"
    return f"{column} {direction}"


def fetch_page(
    postgres: PostgresClient,
    select_sql: str,
    conditions: Sequence[str],
    params: Sequence[Any],
    order_by: str,
    request: PageRequest,
    model: Type[M],
    max_page_size: int = 100,
) -> Page[M]:
    """
    Run a filtered query as one page plus a total count.

    Args:
        postgres: Database client
        select_sql: SELECT ... FROM ... without WHERE
        conditions: WHERE conditions joined with AND
        params: Parameters for the conditions, in order
        order_by: ORDER BY expression (see order_clause)
        request: Page number and size
        model: Model each row is validated into
        max_page_size: Upper bound applied to request.page_size

    Returns:
        Page of validated models
    """
    where = " AND ".join(conditions) if conditions else "TRUE"
    page_size = min(request.page_size, max_page_size)
    offset = (request.page - 1) * page_size

    total = postgres.execute_scalar(
        f"SELECT COUNT(*) FROM ({select_sql} WHERE {where}) AS matched",
        tuple(params)
    )

    rows = postgres.execute(
        f"{select_sql} WHERE {where} ORDER BY {order_by} LIMIT %s OFFSET %s",
        tuple(params) + (page_size, offset)
    )

    return Page[model](
        items=[model.model_validate(row) for row in rows],
        total=total or 0,
        page=request.page,
        page_size=page_size,
    )


def date_range(column: str, from_date: date | None, to_date: date | None) -> tuple[list[str], list]:
    """
    Inclusive date bounds on a column as WHERE conditions.

    Args:
        column: SQL column expression (from code, never from the request)
        from_date: Lower bound, or None for open
        to_date: Upper bound, or None for open

    Returns:
        (conditions, params) ready for " AND ".join

    Raises:
        ValueError: If from_date is after to_date
    """
    if from_date is not None and to_date is not None and from_date > to_date:
        raise ValueError("from_date must not be after to_date")

    conditions = []
    params: list = []
    if from_date is not None:
        conditions.append(f"{column} >= %s")
        params.append(from_date)
    if to_date is not None:
        conditions.append(f"{column} <= %s")
        params.append(to_date)
    return conditions, params
