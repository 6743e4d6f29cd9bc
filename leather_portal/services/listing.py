from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100


@dataclass(frozen=True)
class Page:
    rows: list[Any]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def pagination(self) -> dict:
        return {
            'total': self.total,
            'current_page': self.page,
            'limit': self.limit,
            'total_pages': self.total_pages,
        }


def resolve_sort(sort_by: str | None, order: str | None, allowed: dict[str, Any], *, entity: str):
    """Map a client sort key onto an allow-listed column, else ``created_at desc``."""
    column = allowed.get(sort_by or '')
    if column is None:
        if sort_by:
            logger.warning('Unsupported sort field for %s: %s; defaulting to createdAt desc', entity, sort_by)
        return allowed['createdAt'].desc()
    return column.asc() if (order or '').lower() == 'asc' else column.desc()


def paginate(db: Session, stmt: Select, *, page: int, limit: int, order_by) -> Page:
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_LIMIT)
    total = db.execute(select(func.count()).select_from(stmt.order_by(None).subquery())).scalar_one()
    rows = db.execute(stmt.order_by(order_by).offset((page - 1) * limit).limit(limit)).scalars().all()
    return Page(rows=list(rows), total=total, page=page, limit=limit)


def contains(column, term: str):
    escaped = term.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return column.ilike(f'%{escaped}%', escape='\\')
