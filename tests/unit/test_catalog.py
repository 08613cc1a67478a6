"""Tests for warehouse/lib/catalog.py against DuckDB."""

from unittest.mock import MagicMock

from warehouse.lib.catalog import Catalog, CatalogObject, ObjectKind
from warehouse.lib.statements import DropConstraint, DropIndex, MssqlDialect


class TestCatalogObject:
    def test_constraint_drop_statement(self):
        obj = CatalogObject(ObjectKind.PRIMARY_KEY, "silver", "products", "PK_products")
        assert obj.drop_statement() == DropConstraint("silver", "products", "PK_products")
        assert obj.kind.is_constraint

    def test_index_drop_statement(self):
        obj = CatalogObject(ObjectKind.INDEX, "silver", "products", "IX_products_bk")
        assert obj.drop_statement() == DropIndex("silver", "products", "IX_products_bk")
        assert not obj.kind.is_constraint


class TestCatalogDuckDB:
    def test_list_tables_excludes_views(self, olist, policy):
        catalog = Catalog(olist, policy)
        assert catalog.list_tables("cleansed") == [
            "category_translation",
            "order_items",
            "products",
            "sellers",
        ]

    def test_missing_schema_is_empty(self, warehouse, policy):
        catalog = Catalog(warehouse, policy)
        assert catalog.list_tables("reporting") == []
        assert catalog.list_constraints("reporting") == []
        assert catalog.list_indexes("reporting") == []

    def test_list_columns_in_ordinal_order(self, olist, policy):
        catalog = Catalog(olist, policy)
        assert catalog.list_columns("silver", "sellers") == ["seller_sk", "seller_id", "seller_state"]
        assert catalog.list_columns("silver", "vw_sellers") == ["seller_id", "seller_state"]
        assert catalog.list_columns("silver", "nope") == []

    def test_table_exists(self, olist, policy):
        catalog = Catalog(olist, policy)
        assert catalog.table_exists("silver", "products")
        assert not catalog.table_exists("silver", "customers")

    def test_list_indexes_sees_created_indexes(self, olist, policy):
        olist.run_sql('CREATE INDEX "IX_b" ON silver.sellers (seller_id)')
        olist.run_sql('CREATE INDEX "IX_a" ON silver.products (product_id)')
        indexes = Catalog(olist, policy).list_indexes("cleansed")
        assert [(i.table, i.name) for i in indexes] == [("products", "IX_a"), ("sellers", "IX_b")]
        assert all(i.kind is ObjectKind.INDEX for i in indexes)

    def test_cleanup_statements_are_drops(self, olist, policy):
        olist.run_sql('CREATE INDEX "IX_a" ON silver.products (product_id)')
        statements = Catalog(olist, policy).cleanup_statements("cleansed")
        assert statements == [DropIndex("silver", "products", "IX_a")]

    def test_identity_is_never_reported(self, olist, policy):
        assert not Catalog(olist, policy).is_identity("silver", "products", "product_sk")


class TestCatalogMssql:
    """Row mapping for SQL Server catalog results."""

    def _catalog(self, policy, rows):
        warehouse = MagicMock()
        warehouse.dialect = MssqlDialect()
        warehouse.fetch_all.return_value = rows
        return Catalog(warehouse, policy), warehouse

    def test_constraints_mapped_by_type(self, policy):
        catalog, warehouse = self._catalog(policy, [
            ("customers", "PK_customers", "PRIMARY KEY"),
            ("customers", "UQ_customers_id", "UNIQUE"),
        ])
        constraints = catalog.list_constraints("cleansed")
        assert [c.kind for c in constraints] == [ObjectKind.PRIMARY_KEY, ObjectKind.UNIQUE]
        warehouse.fetch_all.assert_called_once_with(MssqlDialect.constraints_query, ("silver",))

    def test_heap_rows_without_name_skipped(self, policy):
        catalog, _ = self._catalog(policy, [("orders", None), ("orders", "CCI_orders")])
        assert [i.name for i in catalog.list_indexes("cleansed")] == ["CCI_orders"]

    def test_identity_lookup(self, policy):
        catalog, warehouse = self._catalog(policy, [])
        warehouse.scalar.return_value = 1
        assert catalog.is_identity("silver", "sellers", "seller_sk")
        warehouse.scalar.assert_called_once_with(
            MssqlDialect.identity_query, ("[silver].[sellers]", "seller_sk")
        )
