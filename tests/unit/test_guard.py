"""Tests for warehouse/lib/guard.py - environment detection and guard."""

import pytest

from warehouse.lib.config import GuardConfig
from warehouse.lib.errors import GuardRejectedError
from warehouse.lib.guard import (
    Environment,
    EnvironmentGuard,
    Operation,
    RunContext,
    detect_environment,
)
from warehouse.lib.layers import Layer


class TestDetectEnvironment:
    @pytest.mark.parametrize(
        "hostname,expected",
        [
            ("prd-sql-01", Environment.PRODUCTION),
            ("PROD-DW", Environment.PRODUCTION),
            ("eu-prd-sql02", Environment.PRODUCTION),
            ("tst-sql-01", Environment.TEST),
            ("uat-dw", Environment.TEST),
            ("dev-laptop-7", Environment.DEVELOPMENT),
            ("localhost", Environment.DEVELOPMENT),
        ],
    )
    def test_default_rules(self, hostname, expected):
        assert detect_environment(hostname) is expected

    def test_unknown_host_is_development(self, caplog):
        with caplog.at_level("INFO"):
            assert detect_environment("build-agent-7") is Environment.DEVELOPMENT
        assert "matches no environment rule" in caplog.text

    def test_empty_host_is_development(self):
        assert detect_environment("") is Environment.DEVELOPMENT

    def test_production_checked_first(self):
        rules = {"development": ["*"], "production": ["dw-*"]}
        assert detect_environment("dw-01", rules) is Environment.PRODUCTION
        assert detect_environment("other", rules) is Environment.DEVELOPMENT

    def test_custom_rules_replace_defaults(self):
        rules = {"production": ["sqlprod*"], "test": [], "development": []}
        assert detect_environment("sqlprod3", rules) is Environment.PRODUCTION
        assert detect_environment("prd-sql-01", rules) is Environment.DEVELOPMENT


class TestRunContext:
    def test_detect_uses_explicit_values(self):
        context = RunContext.detect(identity="etl_svc", hostname="prd-sql-01", force=True)
        assert context == RunContext(Environment.PRODUCTION, "etl_svc", "prd-sql-01", True)

    def test_detect_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("DW_HOSTNAME", "TST-SQL-01")
        monkeypatch.setenv("DW_IDENTITY", "scheduler")
        context = RunContext.detect()
        assert context.hostname == "tst-sql-01"
        assert context.environment is Environment.TEST
        assert context.identity == "scheduler"
        assert context.force is False


class TestEnvironmentGuard:
    @pytest.mark.parametrize("layer", [Layer.CLEANSED, Layer.REPORTING])
    def test_reset_of_protected_layer_in_production_rejected(self, prod_context, layer):
        with pytest.raises(GuardRejectedError) as exc_info:
            EnvironmentGuard().validate(Operation.RESET_LAYER, layer, prod_context)

        error = exc_info.value
        assert error.layer == layer.value
        assert error.identity == "etl_svc"
        assert error.environment == "production"
        assert error.operation == "reset_layer"

    def test_reset_of_raw_layer_allowed_in_production(self, prod_context):
        EnvironmentGuard().validate(Operation.RESET_LAYER, Layer.RAW, prod_context)

    def test_force_overrides_in_production(self, prod_context, caplog):
        forced = RunContext(prod_context.environment, prod_context.identity, prod_context.hostname, True)
        EnvironmentGuard().validate(Operation.RESET_LAYER, "silver", forced)
        assert "forced by etl_svc" in caplog.text

    @pytest.mark.parametrize("environment", [Environment.DEVELOPMENT, Environment.TEST])
    def test_non_production_allows_reset(self, environment):
        context = RunContext(environment, "analyst", "host")
        EnvironmentGuard().validate(Operation.RESET_LAYER, Layer.CLEANSED, context)

    def test_rebuild_unguarded_by_default(self, prod_context):
        guard = EnvironmentGuard()
        assert not guard.is_guarded(Operation.REBUILD_INDEXES)
        guard.validate(Operation.REBUILD_INDEXES, Layer.CLEANSED, prod_context)

    def test_rebuild_guarded_when_configured(self, prod_context):
        guard = EnvironmentGuard(GuardConfig(protect_rebuilds=True))
        with pytest.raises(GuardRejectedError):
            guard.validate(Operation.REBUILD_INDEXES, Layer.CLEANSED, prod_context)

    def test_load_never_guarded(self, prod_context):
        guard = EnvironmentGuard(GuardConfig(protect_rebuilds=True))
        guard.validate(Operation.LOAD_LAYER, Layer.CLEANSED, prod_context)
