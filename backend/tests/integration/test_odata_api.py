"""
Integration tests for the ``/<entity>/odata`` endpoints.

Tests cover:
- $filter, $orderby, $top/$skip, $select, $expand and $count
- Response meta (query echo and cache flag)
- Cache reuse per user and invalidation after writes
- INVALID_ODATA_QUERY errors
"""

import pytest

from estoque.core.security import ROLE_READ
from tests.factories.entity_factories import (
    category_payload,
    company_payload,
    product_payload,
    sale_payload,
)


@pytest.fixture
def company(client, admin_headers):
    return client.post(
        "/companies", json=company_payload(name="Loja Central"), headers=admin_headers
    ).get_json()["data"]


@pytest.fixture
def category(client, admin_headers):
    return client.post(
        "/categories", json=category_payload(name="Informática"), headers=admin_headers
    ).get_json()["data"]


@pytest.fixture
def products(client, admin_headers, company, category):
    created = []
    for name, price in (("Pendrive", "39.90"), ("Notebook", "3500.00"), ("Mousepad", "19.90")):
        response = client.post(
            "/products",
            json=product_payload(company["id"], name=name, price=price, categoryId=category["id"]),
            headers=admin_headers,
        )
        created.append(response.get_json()["data"])
    return created


def _odata(client, headers, path, **options):
    return client.get(path, query_string={f"${k}": v for k, v in options.items()}, headers=headers)


class TestODataQueries:
    def test_filter_and_orderby(self, client, reader_headers, products):
        response = _odata(client, reader_headers, "/products/odata", filter="price gt 30", orderby="price desc")

        body = response.get_json()
        assert response.status_code == 200
        assert body["message"] == "Produtos listados com sucesso"
        assert [p["name"] for p in body["data"]["items"]] == ["Notebook", "Pendrive"]
        assert body["meta"]["odata"]["filter"] == {"field": "price", "operator": "gt", "value": 30}
        assert body["meta"]["odata"]["orderby"] == [{"field": "price", "direction": "DESC"}]

    def test_string_functions_and_logical_operators(self, client, reader_headers, products):
        response = _odata(
            client,
            reader_headers,
            "/products/odata",
            filter="startswith(name, 'Mouse') or contains(name, 'drive')",
            orderby="name",
        )

        assert [p["name"] for p in response.get_json()["data"]["items"]] == ["Mousepad", "Pendrive"]

    def test_filter_on_related_field(self, client, reader_headers, products):
        response = _odata(client, reader_headers, "/products/odata", filter="category.name eq 'Informática'")

        assert response.get_json()["data"]["pagination"]["totalItems"] == 3

    def test_top_and_skip(self, client, reader_headers, products):
        response = _odata(client, reader_headers, "/products/odata", orderby="name", top="2", skip="2")

        data = response.get_json()["data"]
        assert [p["name"] for p in data["items"]] == ["Pendrive"]
        assert data["pagination"]["currentPage"] == 2
        assert data["pagination"]["pageSize"] == 2
        assert data["pagination"]["totalItems"] == 3
        assert data["pagination"]["hasPreviousPage"] is True
        assert data["pagination"]["hasNextPage"] is False

    def test_select_keeps_id(self, client, reader_headers, products):
        response = _odata(client, reader_headers, "/products/odata", select="name,price")

        items = response.get_json()["data"]["items"]
        assert all(set(item) == {"id", "name", "price"} for item in items)

    def test_expand_nests_relations(self, client, reader_headers, products, company, category):
        response = _odata(client, reader_headers, "/products/odata", expand="company,category", top="1")

        item = response.get_json()["data"]["items"][0]
        assert item["company"]["id"] == company["id"]
        assert item["company"]["name"] == "Loja Central"
        assert item["category"]["name"] == "Informática"

    def test_select_with_expand(self, client, reader_headers, products):
        response = _odata(client, reader_headers, "/products/odata", select="name", expand="company")

        item = response.get_json()["data"]["items"][0]
        assert set(item) == {"id", "name", "company"}

    def test_count_only(self, client, reader_headers, products):
        response = _odata(client, reader_headers, "/products/odata", filter="price lt 100", count="true")

        assert response.status_code == 200
        assert response.get_json() == {"@odata.count": 2}

    def test_default_listing_without_options(self, client, reader_headers, products):
        body = client.get("/products/odata", headers=reader_headers).get_json()

        assert body["meta"]["odata"] is None
        assert body["data"]["pagination"]["totalItems"] == 3

    def test_deleted_rows_only_on_request(self, client, admin_headers, reader_headers, products):
        client.delete(f"/products/{products[0]['id']}", headers=admin_headers)

        live = _odata(client, reader_headers, "/products/odata", count="true")
        deleted = _odata(client, reader_headers, "/products/odata", filter="isDeleted eq true")

        assert live.get_json() == {"@odata.count": 2}
        assert [p["id"] for p in deleted.get_json()["data"]["items"]] == [products[0]["id"]]

    def test_categories_expand_parent(self, client, admin_headers, reader_headers, category):
        client.post(
            "/categories",
            json=category_payload(name="Periféricos", parentCategoryId=category["id"]),
            headers=admin_headers,
        )

        response = _odata(
            client, reader_headers, "/categories/odata", filter="name eq 'Periféricos'", expand="parent"
        )

        item = response.get_json()["data"]["items"][0]
        assert item["parent"]["id"] == category["id"]

    def test_sales_expand_items(self, client, admin_headers, reader_headers, company, products):
        client.post(
            "/sales",
            json=sale_payload(company["id"], [{"productId": products[0]["id"], "quantity": 1}]),
            headers=admin_headers,
        )

        plain = _odata(client, reader_headers, "/sales/odata", filter="status eq 'PENDING'")
        expanded = _odata(client, reader_headers, "/sales/odata", expand="items")

        assert "items" not in plain.get_json()["data"]["items"][0]
        assert expanded.get_json()["data"]["items"][0]["items"][0]["productId"] == products[0]["id"]

    def test_companies_and_taxes_endpoints(self, client, reader_headers, company):
        companies = _odata(client, reader_headers, "/companies/odata", filter="name eq 'Loja Central'")
        taxes = _odata(client, reader_headers, "/taxes/odata", count="true")

        assert companies.get_json()["data"]["items"][0]["id"] == company["id"]
        assert taxes.get_json() == {"@odata.count": 0}


class TestODataErrors:
    @pytest.mark.parametrize(
        "options",
        [
            {"$filter": "price eq"},
            {"$filter": "price like 10"},
            {"$top": "-1"},
            {"$top": "²"},
            {"$count": "maybe"},
            {"$orderby": "price sideways"},
            {"$search": "mouse"},
        ],
    )
    def test_invalid_queries(self, client, reader_headers, options):
        response = client.get("/products/odata", query_string=options, headers=reader_headers)

        assert response.status_code == 400
        assert response.get_json()["errors"][0]["code"] == "INVALID_ODATA_QUERY"

    def test_requires_token(self, client):
        assert client.get("/products/odata").status_code == 401


class TestODataCache:
    def test_second_request_is_cached(self, client, reader_headers, products):
        first = _odata(client, reader_headers, "/products/odata", filter="price gt 30")
        second = _odata(client, reader_headers, "/products/odata", filter="price gt 30")

        assert first.get_json()["meta"]["cached"] is False
        assert second.get_json()["meta"]["cached"] is True
        assert second.get_json()["data"] == first.get_json()["data"]

    def test_cache_is_per_user(self, client, auth_headers, products):
        alice = auth_headers(ROLE_READ, user_id="alice")
        bob = auth_headers(ROLE_READ, user_id="bob")

        _odata(client, alice, "/products/odata", top="5")
        response = _odata(client, bob, "/products/odata", top="5")

        assert response.get_json()["meta"]["cached"] is False

    def test_count_is_never_cached(self, client, admin_headers, reader_headers, company, products):
        _odata(client, reader_headers, "/products/odata", count="true")
        client.post("/products", json=product_payload(company["id"], price="5"), headers=admin_headers)

        response = _odata(client, reader_headers, "/products/odata", count="true")

        assert response.get_json() == {"@odata.count": 4}

    def test_write_invalidates_entity_cache(self, client, admin_headers, reader_headers, company, products):
        _odata(client, reader_headers, "/products/odata", orderby="name")
        client.post(
            "/products", json=product_payload(company["id"], name="Adaptador USB"), headers=admin_headers
        )

        response = _odata(client, reader_headers, "/products/odata", orderby="name")

        body = response.get_json()
        assert body["meta"]["cached"] is False
        assert body["data"]["items"][0]["name"] == "Adaptador USB"

    def test_stock_change_invalidates_products(self, client, admin_headers, reader_headers, products):
        _odata(client, reader_headers, "/products/odata", select="stockQuantity")
        client.patch(
            f"/products/{products[0]['id']}/stock", json={"stockQuantity": 1}, headers=admin_headers
        )

        response = _odata(client, reader_headers, "/products/odata", select="stockQuantity")

        assert response.get_json()["meta"]["cached"] is False

    def test_category_rename_invalidates_products(self, client, admin_headers, reader_headers, category, products):
        _odata(client, reader_headers, "/products/odata", filter="category.name eq 'Hardware'")
        client.put(f"/categories/{category['id']}", json={"name": "Hardware"}, headers=admin_headers)

        response = _odata(client, reader_headers, "/products/odata", filter="category.name eq 'Hardware'")

        assert response.get_json()["meta"]["cached"] is False
        assert response.get_json()["data"]["pagination"]["totalItems"] == 3

    def test_other_entities_stay_cached(self, client, admin_headers, reader_headers, company, products):
        _odata(client, reader_headers, "/companies/odata", top="10")
        client.post("/products", json=product_payload(company["id"]), headers=admin_headers)

        response = _odata(client, reader_headers, "/companies/odata", top="10")

        assert response.get_json()["meta"]["cached"] is True
