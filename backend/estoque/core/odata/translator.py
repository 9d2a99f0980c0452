"""
Translate a parsed ``ODataQuery`` into SQLAlchemy ``Select`` clauses.

Each entity exposes an ``EntityQueryConfig`` mapping API field names
(camelCase, optionally dotted for many-to-one relations) onto ORM columns.
Conditions and orderings on fields outside that map are dropped with a
warning rather than rejected.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import Boolean, Date, DateTime, Integer, Numeric, String, and_, not_, or_
from sqlalchemy.orm import selectinload
from sqlalchemy.sql import Select

from estoque.core.exceptions import ODataQueryError
from estoque.core.odata.parser import (
    Comparison,
    FilterNode,
    LogicalGroup,
    Negation,
    ODataQuery,
)

logger = logging.getLogger(__name__)

DELETED_FIELD = "isDeleted"


@dataclass(frozen=True)
class EntityQueryConfig:
    """Per-entity OData mapping.

    Attributes:
        model: ORM model class
        fields: API field name -> ORM column attribute
        joins: dotted prefix -> relationship attribute joined when a dotted
            field is referenced (e.g. ``"category": Product.category``)
        expand: ``$expand`` name -> relationship attribute
        default_order: ``(api_field, "ASC"|"DESC")`` pairs used without $orderby
    """

    model: Any
    fields: Dict[str, Any]
    joins: Dict[str, Any] = field(default_factory=dict)
    expand: Dict[str, Any] = field(default_factory=dict)
    default_order: Tuple[Tuple[str, str], ...] = (("createdAt", "DESC"),)


@dataclass
class TranslationResult:
    """Outcome of applying filters, kept for logging and tests."""

    statement: Select
    ignored_fields: List[str] = field(default_factory=list)


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _column_type(column: Any) -> Any:
    try:
        return column.property.columns[0].type
    except (AttributeError, IndexError):
        return getattr(column, "type", None)


def _coerce(column: Any, value: Any, field_name: str) -> Any:
    """Adapt a literal to the column type, refusing values the database would reject."""
    if value is None:
        return None
    col_type = _column_type(column)
    if isinstance(col_type, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime.combine(value, time.min)
        if isinstance(value, str):
            try:
                return datetime.fromisoformat(value.replace("Z", "+00:00"))
            except ValueError as exc:
                raise ODataQueryError(f"Data inválida para {field_name}: {value}") from exc
        raise ODataQueryError(f"{field_name} exige uma data")
    if isinstance(col_type, Date):
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                return date.fromisoformat(value)
            except ValueError as exc:
                raise ODataQueryError(f"Data inválida para {field_name}: {value}") from exc
        raise ODataQueryError(f"{field_name} exige uma data")
    if isinstance(col_type, Boolean):
        if not isinstance(value, bool):
            raise ODataQueryError(f"{field_name} exige true ou false")
        return value
    if isinstance(col_type, Integer):
        if isinstance(value, bool) or isinstance(value, (date, datetime)):
            raise ODataQueryError(f"{field_name} exige um número inteiro")
        try:
            number = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ODataQueryError(f"{field_name} exige um número inteiro") from exc
        if not number.is_finite() or number != number.to_integral_value():
            raise ODataQueryError(f"{field_name} exige um número inteiro")
        return int(number)
    if isinstance(col_type, Numeric):
        if isinstance(value, bool) or isinstance(value, (date, datetime)):
            raise ODataQueryError(f"{field_name} exige um valor numérico")
        try:
            number = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ODataQueryError(f"{field_name} exige um valor numérico") from exc
        if not number.is_finite():
            raise ODataQueryError(f"{field_name} exige um valor numérico")
        return number
    if isinstance(col_type, String) and not isinstance(value, str):
        raise ODataQueryError(f"{field_name} exige um texto entre aspas")
    return value


def _is_text(column: Any) -> bool:
    return isinstance(_column_type(column), String)


class ODataTranslator:
    """Builds WHERE/ORDER BY/LIMIT clauses for one entity."""

    def __init__(self, config: EntityQueryConfig):
        self.config = config

    # fields

    def resolve(self, field_name: str) -> Optional[Any]:
        return self.config.fields.get(field_name)

    def _required_joins(self, field_names: Sequence[str]) -> List[Any]:
        joins = []
        for name in field_names:
            if "." not in name or name not in self.config.fields:
                continue
            prefix = name.rsplit(".", 1)[0]
            relationship = self.config.joins.get(prefix)
            if relationship is not None and relationship not in joins:
                joins.append(relationship)
        return joins

    # filter

    def build_condition(self, node: Optional[FilterNode], ignored: List[str]):
        if node is None:
            return None
        if isinstance(node, Comparison):
            return self._comparison(node, ignored)
        if isinstance(node, LogicalGroup):
            parts = [self.build_condition(operand, ignored) for operand in node.operands]
            parts = [part for part in parts if part is not None]
            if not parts:
                return None
            if len(parts) == 1:
                return parts[0]
            return and_(*parts) if node.operator == "and" else or_(*parts)
        if isinstance(node, Negation):
            inner = self.build_condition(node.operand, ignored)
            return not_(inner) if inner is not None else None
        raise ODataQueryError("Nó de filtro desconhecido")

    def _comparison(self, node: Comparison, ignored: List[str]):
        column = self.resolve(node.field)
        if column is None:
            if node.field not in ignored:
                ignored.append(node.field)
            return None

        op = node.operator
        if op in ("contains", "startswith", "endswith"):
            if not _is_text(column):
                raise ODataQueryError(f"{op} só se aplica a campos de texto: {node.field}")
            if not isinstance(node.value, str):
                raise ODataQueryError(f"{op} exige um texto entre aspas")
            text = _escape_like(node.value)
            pattern = {
                "contains": f"%{text}%",
                "startswith": f"{text}%",
                "endswith": f"%{text}",
            }[op]
            return column.ilike(pattern, escape="\\")

        if op in ("in", "nin"):
            values = [_coerce(column, v, node.field) for v in node.value]
            clause = column.in_(values)
            return clause if op == "in" else not_(clause)

        value = _coerce(column, node.value, node.field)
        if value is None:
            return column.is_(None) if op == "eq" else column.is_not(None)
        if op == "eq":
            return column == value
        if op == "ne":
            return column != value
        if op == "gt":
            return column > value
        if op == "ge":
            return column >= value
        if op == "lt":
            return column < value
        if op == "le":
            return column <= value
        raise ODataQueryError(f"Operador não suportado: {op}")

    def apply_filter(self, stmt: Select, query: Optional[ODataQuery]) -> TranslationResult:
        """Apply joins, ``$filter`` and the soft-delete guard."""
        ignored: List[str] = []
        referenced: List[str] = []
        if query is not None:
            referenced = query.filter_fields + [o.field for o in query.orderby]
        for relationship in self._required_joins(referenced):
            stmt = stmt.outerjoin(relationship)

        condition = self.build_condition(query.filter if query else None, ignored)
        if condition is not None:
            stmt = stmt.where(condition)

        filter_fields = query.filter_fields if query else []
        if DELETED_FIELD not in filter_fields or DELETED_FIELD in ignored:
            stmt = stmt.where(self.config.model.is_deleted.is_(False))

        if ignored:
            logger.warning(
                "OData filter ignored unknown fields",
                extra={
                    "context": {
                        "entity": self.config.model.__tablename__,
                        "ignored_fields": ignored,
                    }
                },
            )
        return TranslationResult(stmt, ignored)

    # ordering / expand / paging

    def apply_ordering(self, stmt: Select, query: Optional[ODataQuery]) -> Select:
        clauses = []
        orderings = (
            [(o.field, o.direction) for o in query.orderby]
            if query is not None and query.orderby
            else list(self.config.default_order)
        )
        for field_name, direction in orderings:
            column = self.resolve(field_name)
            if column is None:
                logger.warning(
                    "OData orderby ignored unknown field",
                    extra={"context": {"field": field_name}},
                )
                continue
            clauses.append(column.desc() if direction == "DESC" else column.asc())
        clauses.append(self.config.model.id.asc())
        return stmt.order_by(*clauses)

    def expand_names(self, query: Optional[ODataQuery]) -> List[str]:
        if query is None:
            return []
        return [name for name in query.expand if name in self.config.expand]

    def apply_expand(self, stmt: Select, query: Optional[ODataQuery]) -> Select:
        for name in self.expand_names(query):
            stmt = stmt.options(selectinload(self.config.expand[name]))
        return stmt


def resolve_page(query: Optional[ODataQuery], default_top: int) -> Tuple[int, int, int]:
    """Return ``(offset, limit, page)`` for a query.

    The offset is ``$skip`` exactly; the page number reported to clients is
    ``skip // top + 1``.
    """
    top = default_top
    skip = 0
    if query is not None:
        if query.top is not None:
            top = query.top
        if query.skip is not None:
            skip = query.skip
    page = (skip // top) + 1 if top > 0 else 1
    return skip, top, page
