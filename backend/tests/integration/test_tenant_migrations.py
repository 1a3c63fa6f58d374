"""
Integration tests for applying tenant migrations.

Runs the built-in catalog (and purpose-built migrations) against real tenant
schemas and checks the ledger, status and history views.
"""

import pytest

from tenancy.exceptions import (
    MigrationFailed,
    RegistryFrozenError,
    TenantExpired,
    TenantNotFound,
    TenantSuspended,
)
from tenancy.models import Tenant, TenantMigration
from tenancy.tenant_db.tenant_migrations import MigrationDefinition
from tenancy.utils.database import tenant_schema_manager


class TestRunPending:
    """Applying pending migrations to one tenant"""

    def test_applies_all_pending_in_order(self, engine, test_tenant):
        applied = engine.run_pending('acme-corp')

        assert applied == ['v1.0.0', 'v1.1.0', 'v1.2.0']
        tables = tenant_schema_manager.list_tables(test_tenant.schema_name)
        for table in ('customers', 'products', 'audit_logs', 'invoices', 'invoice_items',
                      'payments', 'accounts', 'journal_entries', 'journal_lines'):
            assert table in tables

    def test_second_run_is_a_no_op(self, engine, test_tenant):
        engine.run_pending(str(test_tenant.id))

        assert engine.run_pending(str(test_tenant.id)) == []
        assert TenantMigration.query.filter_by(tenant_id=test_tenant.id).count() == 3

    def test_dry_run_changes_nothing(self, engine, test_tenant):
        assert engine.run_pending('acme-corp', dry_run=True) == ['v1.0.0', 'v1.1.0', 'v1.2.0']

        assert TenantMigration.query.count() == 0
        assert tenant_schema_manager.list_tables(test_tenant.schema_name) == []

    def test_ledger_records_name(self, engine, test_tenant):
        engine.run_pending('acme-corp')

        history = engine.history('acme-corp')

        assert [(e.migration_version, e.migration_name) for e in history] == [
            ('v1.0.0', 'initial_schema'),
            ('v1.1.0', 'add_invoice_tables'),
            ('v1.2.0', 'add_accounting_tables'),
        ]
        assert all(e.executed_at is not None for e in history)

    def test_unknown_tenant(self, engine):
        with pytest.raises(TenantNotFound):
            engine.run_pending('nobody')

    @pytest.mark.parametrize('status,error', [
        (Tenant.STATUS_SUSPENDED, TenantSuspended),
        (Tenant.STATUS_EXPIRED, TenantExpired),
    ])
    def test_rejected_tenant(self, engine, tenant_factory, status, error):
        tenant = tenant_factory('acme', status=status)

        with pytest.raises(error):
            engine.run_pending('acme')

        assert TenantMigration.query.filter_by(tenant_id=tenant.id).count() == 0

    def test_tables_only_in_own_schema(self, engine, tenant_factory):
        alpha = tenant_factory('alpha')
        beta = tenant_factory('beta')

        engine.run_pending('alpha')

        assert 'customers' in tenant_schema_manager.list_tables(alpha.schema_name)
        assert tenant_schema_manager.list_tables(beta.schema_name) == []
        assert engine.status('beta').executed == []

    def test_data_is_isolated(self, engine, tenant_factory):
        tenant_factory('alpha')
        tenant_factory('beta')
        engine.run_pending('alpha')
        engine.run_pending('beta')

        executor = tenant_schema_manager.executor('tenant_alpha')
        executor.execute(
            "INSERT INTO {schema}.customers (id, customer_code, name) VALUES (:id, :code, :name)",
            {'id': 'c-1', 'code': 'C001', 'name': 'Alice'}
        )

        beta_rows = tenant_schema_manager.executor('tenant_beta').execute(
            "SELECT COUNT(*) FROM {schema}.customers"
        ).scalar()
        alpha_rows = executor.execute("SELECT COUNT(*) FROM {schema}.customers").scalar()
        assert alpha_rows == 1
        assert beta_rows == 0


class TestStatus:
    """Status reporting"""

    def test_status_counts(self, engine, test_tenant):
        status = engine.status('acme-corp')
        assert status.executed == []
        assert status.pending == ['v1.0.0', 'v1.1.0', 'v1.2.0']
        assert len(status.executed) + len(status.pending) == status.total == 3

        engine.run_pending('acme-corp')

        status = engine.status('acme-corp')
        assert status.executed == ['v1.0.0', 'v1.1.0', 'v1.2.0']
        assert status.pending == []
        assert status.is_up_to_date

    def test_status_of_rejected_tenant(self, engine, tenant_factory):
        """Status only resolves the tenant; suspended tenants can be inspected"""
        tenant_factory('acme', status=Tenant.STATUS_SUSPENDED)

        status = engine.status('acme')

        assert status.schema_name == 'tenant_acme'
        assert len(status.pending) == 3

    def test_unknown_versions(self, engine, session, test_tenant):
        session.add(TenantMigration(
            tenant_id=test_tenant.id,
            migration_version='v0.9.0',
            migration_name='removed_migration'
        ))
        session.commit()

        status = engine.status('acme-corp')

        assert status.unknown == ['v0.9.0']
        assert 'v0.9.0' not in status.executed
        assert len(status.executed) + len(status.pending) == status.total

    def test_history_of_unknown_tenant(self, engine):
        with pytest.raises(TenantNotFound):
            engine.history('nobody')

    def test_registry_is_frozen(self, engine):
        with pytest.raises(RegistryFrozenError):
            engine.register_migration(MigrationDefinition(
                version='v9.0.0', name='late', up=lambda schema_name, executor: None
            ))

        assert [m.version for m in engine.list_migrations()] == ['v1.0.0', 'v1.1.0', 'v1.2.0']


def create_notes(schema_name, executor):
    executor.execute("CREATE TABLE IF NOT EXISTS {schema}.notes (id INTEGER PRIMARY KEY, body TEXT)")


FAIL_ONCE = {'enabled': True}


def flaky_add_tags(schema_name, executor):
    if FAIL_ONCE['enabled']:
        raise RuntimeError('lock timeout')
    executor.execute("CREATE TABLE IF NOT EXISTS {schema}.tags (id INTEGER PRIMARY KEY, label TEXT)")


def create_archive(schema_name, executor):
    executor.execute("CREATE TABLE IF NOT EXISTS {schema}.archive (id INTEGER PRIMARY KEY)")


class TestMigrationFailure:
    """A failing forward action stops the run for that tenant"""

    @pytest.fixture
    def registry(self):
        from tenancy.tenant_db.tenant_migrations import MigrationRegistry

        registry = MigrationRegistry()
        registry.register(MigrationDefinition(version='v1.0.0', name='create_notes', up=create_notes))
        registry.register(MigrationDefinition(version='v1.1.0', name='add_tags', up=flaky_add_tags))
        registry.register(MigrationDefinition(version='v1.2.0', name='create_archive', up=create_archive))
        return registry

    @pytest.fixture(autouse=True)
    def reset_failure(self):
        FAIL_ONCE['enabled'] = True
        yield
        FAIL_ONCE['enabled'] = True

    def test_failure_keeps_earlier_migrations(self, engine, test_tenant):
        with pytest.raises(MigrationFailed) as exc_info:
            engine.run_pending('acme-corp')

        error = exc_info.value
        assert error.version == 'v1.1.0'
        assert error.tenant_id == str(test_tenant.id)
        assert isinstance(error.cause, RuntimeError)
        assert isinstance(error.__cause__, RuntimeError)

        status = engine.status('acme-corp')
        assert status.executed == ['v1.0.0']
        assert status.pending == ['v1.1.0', 'v1.2.0']

        tables = tenant_schema_manager.list_tables(test_tenant.schema_name)
        assert 'notes' in tables
        assert 'archive' not in tables

    def test_retry_after_fix(self, engine, test_tenant):
        with pytest.raises(MigrationFailed):
            engine.run_pending('acme-corp')

        FAIL_ONCE['enabled'] = False

        assert engine.run_pending('acme-corp') == ['v1.1.0', 'v1.2.0']
        assert engine.status('acme-corp').is_up_to_date
