"""Warehouse maintenance test suite.

Test organization:
- unit/test_statements.py: statement rendering per dialect
- unit/test_catalog.py, unit/test_indexes.py: introspection and index rebuild
- unit/test_loader.py: dimensional load, surrogate keys and sentinel references
- unit/test_guard.py, unit/test_audit.py, unit/test_maintenance.py: guarded operations
- unit/test_integrity.py: post-load checks
- unit/test_cli.py: end-to-end runs of python -m warehouse against a DuckDB file
"""
