"""
Repository test factories following Interface Segregation Principle.

This module provides mock factories for the repository interfaces, so
service tests only depend on the abstract contracts they use.
"""

from unittest.mock import Mock

from estoque.domain.interfaces import (
    ICategoryRepository,
    ICompanyRepository,
    IProductReader,
    IProductRepository,
    ISaleRepository,
    ITaxRepository,
)
from estoque.domain.pagination import PaginatedResult


def _soft_delete_defaults(mock: Mock) -> Mock:
    mock.get_by_id.return_value = None
    mock.find_with_filters.return_value = PaginatedResult()
    mock.find_odata.return_value = PaginatedResult()
    mock.count.return_value = 0
    # writes echo the entity back, as the SQL repositories do
    mock.create.side_effect = lambda entity: entity
    mock.update.side_effect = lambda entity: entity
    mock.soft_delete.return_value = True
    mock.restore.return_value = True
    return mock


class CategoryRepositoryFactory:
    """Factory for creating Category repository mocks."""

    @staticmethod
    def create_mock_full() -> Mock:
        mock_repo = _soft_delete_defaults(Mock(spec=ICategoryRepository))
        mock_repo.get_by_name.return_value = None
        mock_repo.count_active_products.return_value = 0
        mock_repo.count_subcategories.return_value = 0
        return mock_repo


class CompanyRepositoryFactory:
    """Factory for creating Company repository mocks."""

    @staticmethod
    def create_mock_full() -> Mock:
        mock_repo = _soft_delete_defaults(Mock(spec=ICompanyRepository))
        mock_repo.get_by_doc_id.return_value = None
        mock_repo.get_by_email.return_value = None
        return mock_repo


class ProductRepositoryFactory:
    """Factory for creating Product repository mocks."""

    @staticmethod
    def create_mock_reader() -> Mock:
        """Create mock that only implements IProductReader operations."""
        mock_reader = Mock(spec=IProductReader)
        mock_reader.get_by_id.return_value = None
        mock_reader.get_by_sku.return_value = None
        mock_reader.get_by_barcode.return_value = None
        mock_reader.get_many.return_value = {}
        mock_reader.list_low_stock.return_value = []
        return mock_reader

    @staticmethod
    def create_mock_full() -> Mock:
        mock_repo = _soft_delete_defaults(Mock(spec=IProductRepository))
        mock_repo.get_by_sku.return_value = None
        mock_repo.get_by_barcode.return_value = None
        mock_repo.get_many.return_value = {}
        mock_repo.list_low_stock.return_value = []
        mock_repo.save_stock.side_effect = lambda product, commit=True: product
        return mock_repo

    @staticmethod
    def with_products(*products) -> Mock:
        """Full mock whose lookups resolve ``products`` by id."""
        mock_repo = ProductRepositoryFactory.create_mock_full()
        by_id = {product.id: product for product in products}
        mock_repo.get_by_id.side_effect = lambda product_id, include_deleted=False: by_id.get(product_id)
        mock_repo.get_many.side_effect = lambda ids, for_update=False: {
            pid: by_id[pid] for pid in ids if pid in by_id
        }
        return mock_repo


class TaxRepositoryFactory:
    """Factory for creating Tax repository mocks."""

    @staticmethod
    def create_mock_full() -> Mock:
        mock_repo = _soft_delete_defaults(Mock(spec=ITaxRepository))
        mock_repo.list_by_category.return_value = []
        return mock_repo


class SaleRepositoryFactory:
    """Factory for creating Sale repository mocks."""

    @staticmethod
    def create_mock_full() -> Mock:
        mock_repo = _soft_delete_defaults(Mock(spec=ISaleRepository))
        mock_repo.get_by_number.return_value = None
        return mock_repo
