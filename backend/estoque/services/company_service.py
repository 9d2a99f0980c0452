import logging
from typing import Any, Dict, Optional

from estoque.core.exceptions import ConflictError, NotFoundError, ValidationError
from estoque.core.odata.parser import ODataQuery
from estoque.domain.entities import Company, CompanyAddress
from estoque.domain.interfaces import ICompanyRepository
from estoque.domain.pagination import PaginatedResult
from estoque.services.odata_service import COMPANIES, PRODUCTS, SALES, invalidate_cache
from estoque.utils.documents import clean_document

logger = logging.getLogger(__name__)


class CompanyService:
    """Application service for company use cases.

    Business Rules:
    - Documents (CPF/CNPJ) are stored digits-only and must be unique
    - E-mails are unique, compared case-insensitively
    - Uniqueness also counts soft-deleted companies, which must be restored
      instead of registered again
    """

    def __init__(self, company_repo: ICompanyRepository) -> None:
        self.company_repo = company_repo

    def _require(self, company_id: str, include_deleted: bool = False) -> Company:
        company = self.company_repo.get_by_id(company_id, include_deleted=include_deleted)
        if company is None:
            raise NotFoundError("Empresa", "Empresa não encontrada")
        return company

    def _check_unique(self, doc_id: Optional[str], email: Optional[str], company_id: Optional[str] = None) -> None:
        if doc_id:
            existing = self.company_repo.get_by_doc_id(clean_document(doc_id))
            if existing is not None and existing.id != company_id:
                raise ConflictError(
                    "Já existe uma empresa com este documento"
                    + (" (excluída; restaure-a)" if existing.is_deleted else "")
                )
        if email:
            existing = self.company_repo.get_by_email(email)
            if existing is not None and existing.id != company_id:
                raise ConflictError(
                    "Já existe uma empresa com este e-mail"
                    + (" (excluída; restaure-a)" if existing.is_deleted else "")
                )

    def create_company(self, data: Dict[str, Any]) -> Company:
        self._check_unique(data.get("doc_id"), data.get("email"))
        try:
            company = Company(
                name=data["name"],
                doc_id=data["doc_id"],
                email=data["email"],
                description=data.get("description"),
                phone_number=data.get("phone_number"),
                address=CompanyAddress.from_dict(data.get("address")),
            )
        except ValueError as e:
            raise ValidationError(str(e))
        created = self.company_repo.create(company)
        invalidate_cache(COMPANIES)
        logger.info(
            "Company created",
            extra={"context": {"company_id": created.id, "document_type": created.document_type}},
        )
        return created

    def get_company(self, company_id: str) -> Company:
        return self._require(company_id)

    def list_companies(self, filters: Dict[str, Any]) -> PaginatedResult:
        return self.company_repo.find_with_filters(filters)

    def list_odata(self, query: Optional[ODataQuery]) -> PaginatedResult:
        return self.company_repo.find_odata(query)

    def update_company(self, company_id: str, data: Dict[str, Any]) -> Company:
        company = self._require(company_id)
        self._check_unique(data.get("doc_id"), data.get("email"), company_id)

        for key in ("name", "doc_id", "email", "description", "phone_number"):
            if key in data:
                setattr(company, key, data[key])
        if "address" in data:
            company.address = CompanyAddress.from_dict(data["address"])
        try:
            company.__post_init__()
        except ValueError as e:
            raise ValidationError(str(e))

        updated = self.company_repo.update(company)
        invalidate_cache(COMPANIES, PRODUCTS, SALES)
        logger.info("Company updated", extra={"context": {"company_id": company_id}})
        return updated

    def delete_company(self, company_id: str) -> None:
        self._require(company_id)
        self.company_repo.soft_delete(company_id)
        invalidate_cache(COMPANIES)
        logger.info("Company deleted", extra={"context": {"company_id": company_id}})

    def restore_company(self, company_id: str) -> Company:
        company = self._require(company_id, include_deleted=True)
        if not company.is_deleted:
            raise ConflictError("Empresa não está excluída")
        self.company_repo.restore(company_id)
        invalidate_cache(COMPANIES)
        logger.info("Company restored", extra={"context": {"company_id": company_id}})
        return self._require(company_id)
