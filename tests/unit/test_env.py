"""Tests for warehouse.lib.env module."""

import os
from unittest.mock import patch

import pytest

from warehouse.lib.env import (
    current_hostname,
    current_identity,
    expand_env_vars,
    expand_options,
    load_env_file,
)


class TestExpandEnvVars:
    def test_braced_and_bare(self, monkeypatch):
        monkeypatch.setenv("DW_HOST", "sql01")
        monkeypatch.setenv("DW_PORT", "1433")
        assert expand_env_vars("${DW_HOST}:$DW_PORT") == "sql01:1433"

    def test_unset_left_untouched(self, monkeypatch):
        monkeypatch.delenv("DW_MISSING", raising=False)
        assert expand_env_vars("${DW_MISSING}") == "${DW_MISSING}"

    def test_strict_raises(self, monkeypatch):
        monkeypatch.delenv("DW_MISSING", raising=False)
        with pytest.raises(KeyError, match="DW_MISSING"):
            expand_env_vars("${DW_MISSING}", strict=True)

    def test_expand_options_nested(self, monkeypatch):
        monkeypatch.setenv("DW_USER", "etl")
        options = {"user": "${DW_USER}", "port": 1433, "extra": {"app": "$DW_USER"}}
        assert expand_options(options) == {"user": "etl", "port": 1433, "extra": {"app": "etl"}}


class TestHostAndIdentity:
    def test_hostname_override(self, monkeypatch):
        monkeypatch.setenv("DW_HOSTNAME", "PRD-SQL-01")
        assert current_hostname() == "prd-sql-01"

    def test_hostname_from_socket(self, monkeypatch):
        monkeypatch.delenv("DW_HOSTNAME", raising=False)
        with patch("warehouse.lib.env.socket.gethostname", return_value="Dev-Box"):
            assert current_hostname() == "dev-box"

    def test_identity_override(self, monkeypatch):
        monkeypatch.setenv("DW_IDENTITY", "svc_etl")
        assert current_identity() == "svc_etl"

    def test_identity_from_login(self, monkeypatch):
        monkeypatch.delenv("DW_IDENTITY", raising=False)
        with patch("warehouse.lib.env.getpass.getuser", return_value="alice"):
            assert current_identity() == "alice"

    def test_identity_unknown_when_lookup_fails(self, monkeypatch):
        monkeypatch.delenv("DW_IDENTITY", raising=False)
        with patch("warehouse.lib.env.getpass.getuser", side_effect=KeyError("uid")):
            assert current_identity() == "unknown"


class TestLoadEnvFile:
    def test_loads_given_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("DW_FROM_DOTENV", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("DW_FROM_DOTENV=yes\n")

        assert load_env_file(env_file)
        assert os.environ["DW_FROM_DOTENV"] == "yes"

    def test_does_not_override_by_default(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DW_FROM_DOTENV", "shell")
        env_file = tmp_path / ".env"
        env_file.write_text("DW_FROM_DOTENV=file\n")

        load_env_file(env_file)

        assert os.environ["DW_FROM_DOTENV"] == "shell"
