"""Shared SQLAlchemy repository behaviour.

Concrete repositories set ``model``, ``query_config`` and implement
``_to_domain``/``_values``; paging, OData listing, soft delete and restore
live here.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.sql import Select

from estoque.core.config import get_default_page_size
from estoque.core.exceptions import NotFoundError
from estoque.core.odata.parser import ODataQuery
from estoque.core.odata.translator import EntityQueryConfig, ODataTranslator, resolve_page
from estoque.domain.entities import utcnow
from estoque.domain.pagination import PaginatedResult

logger = logging.getLogger(__name__)


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def contains_pattern(value: str) -> str:
    return f"%{escape_like(value.strip())}%"


class SQLAlchemyRepository:
    """Base repository bound to one ORM model."""

    model: Any = None
    query_config: Optional[EntityQueryConfig] = None
    resource_name = "Registro"

    def __init__(self, db_session) -> None:
        self.db = db_session

    # ---- mapping hooks -------------------------------------------------

    def _to_domain(self, row: Any) -> Any:
        raise NotImplementedError

    def _values(self, entity: Any) -> Dict[str, Any]:
        """Column values written on create/update."""
        raise NotImplementedError

    def _expand(self, row: Any, names: Sequence[str]) -> Dict[str, Any]:
        """Related domain objects for ``$expand`` names already loaded on ``row``."""
        return {}

    # ---- reads ---------------------------------------------------------

    def _base_query(self, include_deleted: bool = False) -> Select:
        stmt = select(self.model)
        if not include_deleted:
            stmt = stmt.where(self.model.is_deleted.is_(False))
        return stmt

    def get_model(self, entity_id: str, include_deleted: bool = False) -> Optional[Any]:
        stmt = self._base_query(include_deleted).where(self.model.id == entity_id)
        return self.db.scalars(stmt).first()

    def get_by_id(self, entity_id: str, include_deleted: bool = False) -> Optional[Any]:
        row = self.get_model(entity_id, include_deleted)
        return self._to_domain(row) if row else None

    def count(self, include_deleted: bool = False) -> int:
        stmt = select(func.count()).select_from(self.model)
        if not include_deleted:
            stmt = stmt.where(self.model.is_deleted.is_(False))
        return self.db.scalar(stmt) or 0

    def _count_statement(self, stmt: Select) -> int:
        count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
        return self.db.scalar(count_stmt) or 0

    def paginate(self, stmt: Select, page: int = 1, page_size: Optional[int] = None) -> PaginatedResult:
        """Run ``stmt`` for one page; ``offset = (page - 1) * page_size``."""
        page = max(1, page)
        page_size = page_size or get_default_page_size()
        total = self._count_statement(stmt)
        rows = self.db.scalars(stmt.offset((page - 1) * page_size).limit(page_size)).all()
        return PaginatedResult(
            items=[self._to_domain(row) for row in rows],
            total=total,
            page=page,
            page_size=page_size,
        )

    def find_odata(self, query: Optional[ODataQuery]) -> PaginatedResult:
        """List rows matching an OData query (``None`` means the default listing)."""
        translator = ODataTranslator(self.query_config)
        filtered = translator.apply_filter(select(self.model), query).statement
        total = self._count_statement(filtered)
        offset, limit, page = resolve_page(query, get_default_page_size())

        if query is not None and query.count:
            return PaginatedResult(items=[], total=total, page=page, page_size=limit)

        stmt = translator.apply_ordering(filtered, query)
        stmt = translator.apply_expand(stmt, query)
        rows = self.db.scalars(stmt.offset(offset).limit(limit)).unique().all()

        expand_names = translator.expand_names(query)
        result = PaginatedResult(
            items=[self._to_domain(row) for row in rows],
            total=total,
            page=page,
            page_size=limit,
        )
        if expand_names:
            result.expanded = {row.id: self._expand(row, expand_names) for row in rows}
        logger.debug(
            "OData query executed",
            extra={
                "context": {
                    "entity": self.model.__tablename__,
                    "total": total,
                    "returned": len(rows),
                }
            },
        )
        return result

    # ---- writes --------------------------------------------------------

    def create(self, entity: Any) -> Any:
        row = self.model(id=entity.id, **self._values(entity))
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return self._to_domain(row)

    def update(self, entity: Any) -> Any:
        row = self.get_model(entity.id, include_deleted=True)
        if row is None:
            raise NotFoundError(self.resource_name)
        for key, value in self._values(entity).items():
            setattr(row, key, value)
        self.db.commit()
        self.db.refresh(row)
        return self._to_domain(row)

    def soft_delete(self, entity_id: str) -> bool:
        row = self.get_model(entity_id)
        if row is None:
            return False
        row.is_deleted = True
        row.deleted_at = utcnow()
        self.db.commit()
        return True

    def restore(self, entity_id: str) -> bool:
        row = self.get_model(entity_id, include_deleted=True)
        if row is None:
            return False
        row.is_deleted = False
        row.deleted_at = None
        self.db.commit()
        return True

    # ---- helpers -------------------------------------------------------

    def _deleted_scope(self, stmt: Select, filters: Dict[str, Any]) -> Select:
        """``isActive=false`` lists only soft-deleted rows, otherwise only live ones."""
        if filters.get("is_active") is False:
            return stmt.where(self.model.is_deleted.is_(True))
        return stmt.where(self.model.is_deleted.is_(False))

    @staticmethod
    def _ordered(stmt: Select, column: Any, direction: str, tiebreaker: Any) -> Select:
        clause = column.desc() if str(direction).upper() == "DESC" else column.asc()
        return stmt.order_by(clause, tiebreaker.asc())

    def _to_domain_list(self, rows: List[Any]) -> List[Any]:
        return [self._to_domain(row) for row in rows]
