"""
Abstract interfaces for repositories following Interface Segregation Principle.

These interfaces define contracts without implementation details,
enabling dependency injection and easier testing.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from estoque.core.odata.parser import ODataQuery

from .entities import Category, Company, Product, Sale, Tax
from .pagination import PaginatedResult


class ISoftDeleteReader(ABC):
    """Read operations shared by every soft-deletable entity."""

    @abstractmethod
    def get_by_id(self, entity_id: str, include_deleted: bool = False) -> Optional[Any]:
        """Get entity by ID (deleted rows only when ``include_deleted``)."""
        pass

    @abstractmethod
    def find_with_filters(self, filters: Dict[str, Any]) -> PaginatedResult:
        """Filtered, paginated listing."""
        pass

    @abstractmethod
    def find_odata(self, query: Optional[ODataQuery]) -> PaginatedResult:
        """Listing driven by an OData query."""
        pass

    @abstractmethod
    def count(self, include_deleted: bool = False) -> int:
        pass


class ISoftDeleteWriter(ABC):
    """Write operations shared by every soft-deletable entity."""

    @abstractmethod
    def create(self, entity: Any) -> Any:
        pass

    @abstractmethod
    def update(self, entity: Any) -> Any:
        pass

    @abstractmethod
    def soft_delete(self, entity_id: str) -> bool:
        """Mark as deleted; False when not found."""
        pass

    @abstractmethod
    def restore(self, entity_id: str) -> bool:
        """Undo a soft delete; False when not found."""
        pass


class ICategoryReader(ISoftDeleteReader):
    @abstractmethod
    def get_by_name(self, name: str) -> Optional[Category]:
        pass

    @abstractmethod
    def count_active_products(self, category_id: str) -> int:
        pass

    @abstractmethod
    def count_subcategories(self, category_id: str) -> int:
        pass


class ICategoryRepository(ICategoryReader, ISoftDeleteWriter):
    """Complete category repository interface."""

    pass


class ICompanyReader(ISoftDeleteReader):
    @abstractmethod
    def get_by_doc_id(self, doc_id: str, include_deleted: bool = True) -> Optional[Company]:
        pass

    @abstractmethod
    def get_by_email(self, email: str, include_deleted: bool = True) -> Optional[Company]:
        pass


class ICompanyRepository(ICompanyReader, ISoftDeleteWriter):
    """Complete company repository interface."""

    pass


class IProductReader(ISoftDeleteReader):
    @abstractmethod
    def get_by_sku(self, sku: str) -> Optional[Product]:
        pass

    @abstractmethod
    def get_by_barcode(self, barcode: str) -> Optional[Product]:
        pass

    @abstractmethod
    def get_many(self, product_ids: List[str], for_update: bool = False) -> Dict[str, Product]:
        pass

    @abstractmethod
    def list_low_stock(self, company_id: Optional[str] = None) -> List[Product]:
        pass


class IProductWriter(ISoftDeleteWriter):
    @abstractmethod
    def save_stock(self, product: Product, commit: bool = True) -> Product:
        """Persist stock/reservation counters only; ``commit=False`` just flushes."""
        pass


class IProductRepository(IProductReader, IProductWriter):
    """Complete product repository interface."""

    pass


class ITaxReader(ISoftDeleteReader):
    @abstractmethod
    def list_by_category(self, category_id: str, only_active: bool = True) -> List[Tax]:
        pass


class ITaxRepository(ITaxReader, ISoftDeleteWriter):
    """Complete tax repository interface."""

    pass


class ISaleReader(ISoftDeleteReader):
    @abstractmethod
    def get_by_number(self, sale_number: str) -> Optional[Sale]:
        pass


class ISaleRepository(ISaleReader, ISoftDeleteWriter):
    """Complete sale repository interface."""

    pass
