"""Pytest configuration and fixtures.

Most tests run against a real in-memory DuckDB through ibis, laid out
like a small Olist warehouse: raw extracts in ``bronze``, cleansing
views and dimensional tables in ``silver``.
"""

import copy
import sys
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence

import ibis
import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from warehouse.lib.config import WarehouseConfig, config_from_dict  # noqa: E402
from warehouse.lib.guard import Environment, RunContext  # noqa: E402
from warehouse.lib.warehouse import Warehouse  # noqa: E402


SAMPLE_POLICY = {
    "connection": {"dialect": "duckdb"},
    "tables": [
        {
            "name": "category_translation",
            "layer": "cleansed",
            "class": "dimension",
            "business_key": "product_category_name",
            "source_view": "vw_translation",
        },
        {
            "name": "products",
            "layer": "cleansed",
            "class": "dimension",
            "surrogate_key": "product_sk",
            "business_key": "product_id",
            "secondary_indexes": [{"columns": ["product_category_name"]}],
        },
        {
            "name": "sellers",
            "layer": "cleansed",
            "class": "dimension",
            "surrogate_key": "seller_sk",
            "business_key": "seller_id",
            "secondary_indexes": [
                {"name": "IX_sellers_state", "columns": ["seller_state"]},
            ],
        },
        {
            "name": "order_items",
            "layer": "cleansed",
            "class": "fact",
            "lookups": [
                {"dimension": "products", "source_column": "product_id"},
                {"dimension": "sellers", "source_column": "seller_id"},
            ],
        },
    ],
}

OLIST_DDL = [
    "CREATE SCHEMA IF NOT EXISTS bronze",
    "CREATE SCHEMA IF NOT EXISTS silver",
    # Raw extracts
    "CREATE TABLE bronze.category_translation ("
    "product_category_name VARCHAR, product_category_name_english VARCHAR)",
    "CREATE TABLE bronze.products (product_id VARCHAR, product_category_name VARCHAR)",
    "CREATE TABLE bronze.sellers (seller_id VARCHAR, seller_state VARCHAR)",
    "CREATE TABLE bronze.order_items ("
    "order_id VARCHAR, order_item_id INTEGER, product_id VARCHAR, "
    "seller_id VARCHAR, price DECIMAL(10, 2))",
    # Cleansing views
    "CREATE VIEW silver.vw_translation AS "
    "SELECT product_category_name, product_category_name_english "
    "FROM bronze.category_translation",
    "CREATE VIEW silver.vw_products AS "
    "SELECT product_id, lower(product_category_name) AS product_category_name "
    "FROM bronze.products",
    "CREATE VIEW silver.vw_sellers AS "
    "SELECT seller_id, upper(seller_state) AS seller_state FROM bronze.sellers",
    "CREATE VIEW silver.vw_order_items AS "
    "SELECT order_id, order_item_id, product_id, seller_id, price "
    "FROM bronze.order_items",
    # Dimensional tables
    "CREATE TABLE silver.category_translation ("
    "product_category_name VARCHAR, product_category_name_english VARCHAR)",
    "CREATE TABLE silver.products ("
    "product_sk INTEGER, product_id VARCHAR NOT NULL, product_category_name VARCHAR, "
    "dwh_create_date TIMESTAMP DEFAULT current_timestamp)",
    "CREATE TABLE silver.sellers ("
    "seller_sk INTEGER, seller_id VARCHAR NOT NULL, seller_state VARCHAR)",
    "CREATE TABLE silver.order_items ("
    "order_id VARCHAR NOT NULL, order_item_id INTEGER, product_sk INTEGER DEFAULT -1, "
    "seller_sk INTEGER DEFAULT -1, price DECIMAL(10, 2))",
]

DEFAULT_PRODUCTS = [("p-a", "Toys"), ("p-b", "Books"), ("p-c", "Garden")]
DEFAULT_SELLERS = [("s-1", "sp"), ("s-2", "rj")]
DEFAULT_ITEMS = [
    ("o-1", 1, "p-a", "s-1", 10.00),
    ("o-1", 2, "p-b", "s-2", 20.00),
    ("o-2", 1, "p-c", "s-1", 5.50),
]
DEFAULT_TRANSLATIONS = [("toys", "toys"), ("livros", "books")]


@pytest.fixture
def duck():
    """Fresh in-memory DuckDB backend."""
    con = ibis.duckdb.connect()
    yield con
    con.disconnect()


@pytest.fixture
def warehouse(duck) -> Warehouse:
    return Warehouse(duck, "duckdb")


@pytest.fixture
def policy() -> WarehouseConfig:
    """Sample products/sellers/order_items policy on DuckDB."""
    return config_from_dict(copy.deepcopy(SAMPLE_POLICY))


@pytest.fixture
def policy_dict() -> dict:
    return copy.deepcopy(SAMPLE_POLICY)


def _insert(warehouse: Warehouse, table: str, rows: Iterable[Sequence]) -> None:
    for row in rows:
        placeholders = ", ".join("?" for _ in row)
        warehouse.run_sql(f"INSERT INTO {table} VALUES ({placeholders})", row)


@pytest.fixture
def olist(warehouse) -> Warehouse:
    """Warehouse with the bronze/silver layout created and no rows."""
    for sql in OLIST_DDL:
        warehouse.run_sql(sql)
    return warehouse


@pytest.fixture
def seed(olist) -> Callable[..., Warehouse]:
    """Replace the raw extracts with the given rows (defaults to a small order)."""

    def _seed(
        products: Optional[Sequence] = None,
        sellers: Optional[Sequence] = None,
        items: Optional[Sequence] = None,
        translations: Optional[Sequence] = None,
    ) -> Warehouse:
        for table, rows, default in (
            ("bronze.products", products, DEFAULT_PRODUCTS),
            ("bronze.sellers", sellers, DEFAULT_SELLERS),
            ("bronze.order_items", items, DEFAULT_ITEMS),
            ("bronze.category_translation", translations, DEFAULT_TRANSLATIONS),
        ):
            olist.run_sql(f"DELETE FROM {table}")
            _insert(olist, table, default if rows is None else rows)
        return olist

    return _seed


@pytest.fixture
def dev_context() -> RunContext:
    return RunContext(
        environment=Environment.DEVELOPMENT,
        identity="analyst",
        hostname="dev-laptop-01",
    )


@pytest.fixture
def prod_context() -> RunContext:
    return RunContext(
        environment=Environment.PRODUCTION,
        identity="etl_svc",
        hostname="prd-sql-01",
    )
