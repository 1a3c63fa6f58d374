"""
Integration Tests Package

This package contains integration tests that test complete flows and interactions
between multiple components:
- Tenant provisioning: Tenant creation with schema provisioning
- Tenant migrations: Runner, ledger, status and history on real schemas
- Rollback: Reverting applied migrations
- Fleet migrations: Failure isolation across tenants
- CLI: tenant-cli commands and exit codes

Integration tests use a real (in-memory SQLite) database with one attached
database per tenant schema. Redis is disabled.
"""
