"""
Unit tests for CategoryService using the repository mock factories.
"""

from unittest.mock import Mock

import pytest

from estoque.core.exceptions import ConflictError, NotFoundError, ValidationError
from estoque.core.odata import odata_cache
from estoque.core.odata.parser import ODataQuery
from estoque.services.category_service import CategoryService
from tests.factories.entity_factories import build_category, new_uuid
from tests.factories.repository_factories import CategoryRepositoryFactory


@pytest.fixture
def mock_repo() -> Mock:
    return CategoryRepositoryFactory.create_mock_full()


@pytest.fixture
def service(mock_repo) -> CategoryService:
    return CategoryService(mock_repo)


def test_create_category_persists_entity(service, mock_repo):
    created = service.create_category({"name": "Papelaria", "description": "Itens de escritório"})

    assert created.name == "Papelaria"
    assert created.description == "Itens de escritório"
    mock_repo.get_by_name.assert_called_once_with("Papelaria")
    mock_repo.create.assert_called_once()


def test_create_category_rejects_duplicate_name(service, mock_repo):
    mock_repo.get_by_name.return_value = build_category(name="Papelaria")

    with pytest.raises(ConflictError):
        service.create_category({"name": "papelaria"})
    mock_repo.create.assert_not_called()


def test_create_category_requires_existing_parent(service, mock_repo):
    with pytest.raises(NotFoundError) as exc_info:
        service.create_category({"name": "Canetas", "parent_category_id": new_uuid()})
    assert exc_info.value.message == "Categoria pai não encontrada"


def test_create_category_invalidates_cached_listings(service):
    odata_cache.set("categories", ODataQuery(), {"items": []})

    service.create_category({"name": "Papelaria"})

    assert odata_cache.get("categories", ODataQuery()) is None


def test_get_category_not_found(service):
    with pytest.raises(NotFoundError):
        service.get_category(new_uuid())


def test_update_category_keeps_own_name(service, mock_repo):
    category = build_category(name="Papelaria")
    mock_repo.get_by_id.return_value = category
    mock_repo.get_by_name.return_value = category

    updated = service.update_category(category.id, {"name": "Papelaria", "description": "nova"})

    assert updated.description == "nova"
    mock_repo.update.assert_called_once_with(category)


def test_update_category_cannot_be_own_parent(service, mock_repo):
    category = build_category()
    mock_repo.get_by_id.return_value = category

    with pytest.raises(ValidationError):
        service.update_category(category.id, {"parent_category_id": category.id})


def test_update_category_name_taken_by_other(service, mock_repo):
    category = build_category(name="Papelaria")
    mock_repo.get_by_id.return_value = category
    mock_repo.get_by_name.return_value = build_category(name="Escritório")

    with pytest.raises(ConflictError):
        service.update_category(category.id, {"name": "Escritório"})


def test_delete_category_with_products_is_refused(service, mock_repo):
    category = build_category()
    mock_repo.get_by_id.return_value = category
    mock_repo.count_active_products.return_value = 2

    with pytest.raises(ConflictError) as exc_info:
        service.delete_category(category.id)
    assert "2 produto(s)" in exc_info.value.message
    mock_repo.soft_delete.assert_not_called()


def test_delete_category_with_subcategories_is_refused(service, mock_repo):
    category = build_category()
    mock_repo.get_by_id.return_value = category
    mock_repo.count_subcategories.return_value = 1

    with pytest.raises(ConflictError):
        service.delete_category(category.id)


def test_delete_category_soft_deletes(service, mock_repo):
    category = build_category()
    mock_repo.get_by_id.return_value = category

    service.delete_category(category.id)

    mock_repo.soft_delete.assert_called_once_with(category.id)


def test_restore_category(service, mock_repo):
    category = build_category()
    category.soft_delete()
    mock_repo.get_by_id.return_value = category

    service.restore_category(category.id)

    mock_repo.restore.assert_called_once_with(category.id)
    mock_repo.get_by_id.assert_any_call(category.id, include_deleted=True)


def test_restore_category_not_deleted(service, mock_repo):
    mock_repo.get_by_id.return_value = build_category()

    with pytest.raises(ConflictError):
        service.restore_category(new_uuid())
    mock_repo.restore.assert_not_called()


def test_restore_category_name_reused_meanwhile(service, mock_repo):
    category = build_category(name="Papelaria")
    category.soft_delete()
    mock_repo.get_by_id.return_value = category
    mock_repo.get_by_name.return_value = build_category(name="Papelaria")

    with pytest.raises(ConflictError):
        service.restore_category(category.id)
