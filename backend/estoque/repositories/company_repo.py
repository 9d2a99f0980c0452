"""Company repository implementation.

Documents are stored digits-only so lookups by CPF/CNPJ work regardless of
how the client formatted them.
"""

from typing import Any, Dict, Optional

from sqlalchemy import func, select

from estoque.core.odata.translator import EntityQueryConfig
from estoque.db.base import Company as DbCompany
from estoque.domain.entities import Company as DomainCompany
from estoque.domain.entities import CompanyAddress
from estoque.domain.interfaces import ICompanyRepository
from estoque.domain.pagination import PaginatedResult
from estoque.repositories.base_repository import SQLAlchemyRepository, contains_pattern
from estoque.utils.documents import clean_document

COMPANY_QUERY_CONFIG = EntityQueryConfig(
    model=DbCompany,
    fields={
        "id": DbCompany.id,
        "name": DbCompany.name,
        "docId": DbCompany.doc_id,
        "email": DbCompany.email,
        "description": DbCompany.description,
        "phoneNumber": DbCompany.phone_number,
        "isDeleted": DbCompany.is_deleted,
        "createdAt": DbCompany.created_at,
        "updatedAt": DbCompany.updated_at,
        "deletedAt": DbCompany.deleted_at,
    },
    default_order=(("name", "ASC"),),
)


class CompanyRepository(SQLAlchemyRepository, ICompanyRepository):
    """Repository for Company persistence operations."""

    model = DbCompany
    query_config = COMPANY_QUERY_CONFIG
    resource_name = "Empresa"

    def get_by_doc_id(self, doc_id: str, include_deleted: bool = True) -> Optional[DomainCompany]:
        stmt = self._base_query(include_deleted).where(DbCompany.doc_id == clean_document(doc_id))
        row = self.db.scalars(stmt).first()
        return self._to_domain(row) if row else None

    def get_by_email(self, email: str, include_deleted: bool = True) -> Optional[DomainCompany]:
        stmt = self._base_query(include_deleted).where(
            func.lower(DbCompany.email) == email.strip().lower()
        )
        row = self.db.scalars(stmt).first()
        return self._to_domain(row) if row else None

    def find_with_filters(self, filters: Dict[str, Any]) -> PaginatedResult:
        stmt = self._deleted_scope(select(DbCompany), filters)
        if filters.get("name"):
            stmt = stmt.where(DbCompany.name.ilike(contains_pattern(filters["name"]), escape="\\"))
        if filters.get("email"):
            stmt = stmt.where(DbCompany.email.ilike(contains_pattern(filters["email"]), escape="\\"))
        if filters.get("doc_id"):
            digits = clean_document(filters["doc_id"])
            if digits:
                stmt = stmt.where(DbCompany.doc_id.like(f"%{digits}%"))
        stmt = self._ordered(stmt, DbCompany.name, "ASC", DbCompany.id)
        return self.paginate(stmt, filters.get("page", 1), filters.get("page_size"))

    def _values(self, entity: DomainCompany) -> Dict[str, Any]:
        return {
            "name": entity.name.strip(),
            "doc_id": entity.doc_id,
            "email": entity.email,
            "description": entity.description,
            "phone_number": entity.phone_number,
            "address": entity.address.to_dict() if entity.address else None,
            "is_deleted": entity.is_deleted,
            "deleted_at": entity.deleted_at,
        }

    def _to_domain(self, db_company: DbCompany) -> Optional[DomainCompany]:
        if not db_company:
            return None
        return DomainCompany(
            id=db_company.id,
            name=db_company.name,
            doc_id=db_company.doc_id,
            email=db_company.email,
            description=db_company.description,
            phone_number=db_company.phone_number,
            address=CompanyAddress.from_dict(db_company.address),
            is_deleted=db_company.is_deleted,
            created_at=db_company.created_at,
            updated_at=db_company.updated_at,
            deleted_at=db_company.deleted_at,
        )
