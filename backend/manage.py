"""Management commands for the e-Estoque backend application."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import timedelta
from typing import Optional, Tuple

import click

from estoque.core.odata import odata_cache
from estoque.core.security import ALL_ROLES, create_user_token
from estoque.core.validation import validate_payload
from estoque.db.session import SessionLocal, create_tables, drop_tables
from estoque.repositories.category_repo import CategoryRepository
from estoque.repositories.company_repo import CompanyRepository
from estoque.repositories.product_repo import ProductRepository
from estoque.repositories.tax_repo import TaxRepository
from estoque.services.category_service import CategoryService
from estoque.services.company_service import CompanyService
from estoque.services.product_service import ProductService
from estoque.services.tax_service import TaxService

logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")

DEMO_CATEGORY = {"name": "Eletrônicos", "description": "Produtos eletrônicos"}
DEMO_COMPANY = {
    "name": "Loja Demo Ltda",
    "docId": "11.222.333/0001-81",
    "email": "contato@lojademo.com.br",
    "phoneNumber": "(11) 98765-4321",
    "companyAddress": {
        "street": "Rua das Flores",
        "number": "100",
        "neighborhood": "Centro",
        "city": "São Paulo",
        "state": "SP",
        "zipCode": "01001-000",
    },
}
DEMO_PRODUCTS = (
    {"name": "Fone Bluetooth", "sku": "DEMO-FONE-01", "price": "199.90", "costPrice": "120.00", "stockQuantity": 25, "minStockLevel": 5},
    {"name": "Carregador USB-C", "sku": "DEMO-CARR-01", "price": "89.90", "costPrice": "40.00", "stockQuantity": 3, "minStockLevel": 5},
)
DEMO_TAX = {"name": "ICMS", "percentage": "18"}


@click.group()
def cli() -> None:
    """Entry point for management commands."""


@cli.command("create-tables")
def create_tables_command() -> None:
    """Create all tables (idempotent)."""
    create_tables()
    logging.info("Tables created.")


@cli.command("drop-tables")
@click.option("--yes", is_flag=True, help="Confirm dropping every table.")
def drop_tables_command(yes: bool) -> None:
    """Drop all tables. Requires --yes."""
    if not yes:
        raise click.ClickException("Refusing to drop tables without --yes.")
    drop_tables()
    logging.info("Tables dropped.")


@cli.command("issue-token")
@click.option("--user-id", default=None, help="Subject of the token (random UUID when omitted).")
@click.option("--email", required=True, help="E-mail stored in the token.")
@click.option(
    "--role",
    "roles",
    multiple=True,
    type=click.Choice(ALL_ROLES, case_sensitive=False),
    help="Role granted to the token; repeat for several.",
)
@click.option("--company-id", default=None, help="Company the user belongs to.")
@click.option("--hours", type=int, default=None, help="Lifetime in hours (JWT_EXPIRATION_HOURS by default).")
def issue_token(
    user_id: Optional[str],
    email: str,
    roles: Tuple[str, ...],
    company_id: Optional[str],
    hours: Optional[int],
) -> None:
    """Print a signed access token."""
    expires = timedelta(hours=hours) if hours else None
    token = create_user_token(
        user_id or str(uuid.uuid4()),
        email,
        roles=roles or None,
        company_id=company_id,
        expires_delta=expires,
    )
    click.echo(token)


@cli.command("seed-demo")
def seed_demo() -> None:
    """Insert a small demo catalogue; running it twice changes nothing."""
    create_tables()
    session = SessionLocal()
    try:
        category_repo = CategoryRepository(session)
        company_repo = CompanyRepository(session)
        product_repo = ProductRepository(session)
        tax_repo = TaxRepository(session)

        category = category_repo.get_by_name(DEMO_CATEGORY["name"])
        if category is None:
            category = CategoryService(category_repo).create_category(
                validate_payload("category", DEMO_CATEGORY)
            )
            logging.info("Created category %s", category.id)

        company_data = validate_payload("company", DEMO_COMPANY)
        company = company_repo.get_by_doc_id(company_data["doc_id"])
        if company is None:
            company = CompanyService(company_repo).create_company(company_data)
            logging.info("Created company %s", company.id)

        product_service = ProductService(product_repo, company_repo, category_repo)
        for raw in DEMO_PRODUCTS:
            if product_repo.get_by_sku(raw["sku"]) is not None:
                continue
            payload = dict(raw, companyId=company.id, categoryId=category.id)
            product = product_service.create_product(validate_payload("product", payload))
            logging.info("Created product %s (%s)", product.id, product.sku)

        existing = {tax.name for tax in tax_repo.list_by_category(category.id, only_active=False)}
        if DEMO_TAX["name"] not in existing:
            tax = TaxService(tax_repo, category_repo).create_tax(
                validate_payload("tax", dict(DEMO_TAX, categoryId=category.id))
            )
            logging.info("Created tax %s", tax.id)
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
    logging.info("Demo data ready.")


@cli.command("cache-stats")
def cache_stats() -> None:
    """Print OData cache statistics for this process."""
    click.echo(json.dumps(odata_cache.get_stats(), indent=2))


if __name__ == "__main__":
    cli()
