"""Tests for warehouse/lib/integrity.py - post-load checks."""

from warehouse.lib.integrity import IntegrityIssue, Severity, has_errors, verify_layer
from warehouse.lib.loader import DimensionalLoader


def _loaded(seed, policy, **rows):
    warehouse = seed(**rows)
    DimensionalLoader(warehouse, policy).load()
    return warehouse


def _by_check(issues):
    return {issue.check: issue for issue in issues}


class TestVerifyLayer:
    def test_clean_load_has_no_issues(self, seed, policy, caplog):
        warehouse = _loaded(seed, policy)
        with caplog.at_level("INFO"):
            assert verify_layer(warehouse, policy, "cleansed") == []
        assert "All integrity checks passed" in caplog.text

    def test_sentinel_references_are_warnings(self, seed, policy):
        warehouse = _loaded(seed, policy, items=[
            ("o-1", 1, "p-a", "s-1", 1.0),
            ("o-1", 2, "p-unknown", "s-1", 1.0),
        ])
        issues = verify_layer(warehouse, policy)

        assert [i.check for i in issues] == ["unmatched_product_sk"]
        assert issues[0].severity is Severity.WARNING
        assert issues[0].count == 1
        assert not has_errors(issues)

    def test_dangling_reference_is_error(self, seed, policy):
        warehouse = _loaded(seed, policy)
        warehouse.run_sql("UPDATE silver.order_items SET product_sk = 99 WHERE order_item_id = 2")

        issue = _by_check(verify_layer(warehouse, policy))["dangling_product_sk"]
        assert issue.severity is Severity.ERROR
        assert issue.count == 1
        assert str(issue) == (
            "[error] order_items.dangling_product_sk: 1 rows reference a missing products key"
        )

    def test_null_reference_is_error(self, seed, policy):
        warehouse = _loaded(seed, policy)
        warehouse.run_sql("UPDATE silver.order_items SET seller_sk = NULL")

        issues = _by_check(verify_layer(warehouse, policy))
        assert issues["null_seller_sk"].count == 3
        assert "dangling_seller_sk" not in issues

    def test_duplicate_surrogate_key(self, seed, policy):
        warehouse = _loaded(seed, policy)
        warehouse.run_sql("UPDATE silver.products SET product_sk = 1")

        issues = _by_check(verify_layer(warehouse, policy))
        assert issues["duplicate_surrogate_key"].count == 2
        assert issues["duplicate_surrogate_key"].table == "products"

    def test_duplicate_business_key_on_lookup_table(self, seed, policy):
        warehouse = _loaded(seed, policy)
        warehouse.run_sql("INSERT INTO silver.category_translation VALUES ('toys', 'toys')")

        issue = _by_check(verify_layer(warehouse, policy))["duplicate_business_key"]
        assert issue.table == "category_translation"
        assert issue.count == 1

    def test_missing_dimension_makes_references_dangling(self, seed, policy):
        warehouse = _loaded(seed, policy)
        warehouse.run_sql("DROP TABLE silver.sellers")

        issues = _by_check(verify_layer(warehouse, policy))
        assert issues["dangling_seller_sk"].count == 3

    def test_missing_tables_are_not_checked(self, warehouse, policy):
        assert verify_layer(warehouse, policy) == []


class TestHasErrors:
    def test_only_errors_count(self):
        warning = IntegrityIssue(Severity.WARNING, "t", "c", 1, "m")
        error = IntegrityIssue(Severity.ERROR, "t", "c", 1, "m")
        assert not has_errors([warning])
        assert has_errors([warning, error])
        assert not has_errors([])
