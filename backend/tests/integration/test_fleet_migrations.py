"""
Integration tests for fleet migration runs.

One tenant failing must never stop the others; every active tenant gets an
outcome in the report.
"""

import threading

import pytest
from flask import g

from tenancy.extensions import db
from tenancy.models import Tenant
from tenancy.tenant_db.runner import (
    STATUS_FAILED,
    STATUS_MIGRATED,
    STATUS_REJECTED,
    STATUS_UP_TO_DATE,
    STATUS_WOULD_MIGRATE,
)
from tenancy.tenant_db.tenant_migrations import MigrationDefinition, MigrationRegistry
from tenancy.utils.database import tenant_schema_manager


def create_notes(schema_name, executor):
    executor.execute("CREATE TABLE IF NOT EXISTS {schema}.notes (id INTEGER PRIMARY KEY)")


def add_tags(schema_name, executor):
    if schema_name == 'tenant_alpha':
        raise RuntimeError('tags already exists')
    executor.execute("CREATE TABLE IF NOT EXISTS {schema}.tags (id INTEGER PRIMARY KEY)")


@pytest.fixture
def registry():
    registry = MigrationRegistry()
    registry.register(MigrationDefinition(version='v1.0.0', name='create_notes', up=create_notes))
    registry.register(MigrationDefinition(version='v1.1.0', name='add_tags', up=add_tags))
    return registry


class TestFleetRun:
    """run_pending_for_all_active_tenants"""

    def test_failure_is_isolated(self, engine, tenant_factory):
        alpha = tenant_factory('alpha')
        beta = tenant_factory('beta')

        report = engine.run_pending_for_all_active_tenants()

        alpha_outcome = report.outcomes[str(alpha.id)]
        beta_outcome = report.outcomes[str(beta.id)]

        assert alpha_outcome.status == STATUS_FAILED
        assert alpha_outcome.failed_version == 'v1.1.0'
        assert 'tags already exists' in alpha_outcome.error
        assert beta_outcome.status == STATUS_MIGRATED
        assert beta_outcome.applied == ['v1.0.0', 'v1.1.0']
        assert report.failed_count == 1

        assert engine.status('alpha').executed == ['v1.0.0']
        assert engine.status('beta').is_up_to_date
        assert 'tags' in tenant_schema_manager.list_tables(beta.schema_name)

    def test_second_run(self, engine, tenant_factory):
        beta = tenant_factory('beta')
        engine.run_pending_for_all_active_tenants()

        report = engine.run_pending_for_all_active_tenants()

        assert report.outcomes[str(beta.id)].status == STATUS_UP_TO_DATE
        assert report.outcomes[str(beta.id)].applied == []
        assert not report.has_failures

    def test_dry_run(self, engine, tenant_factory):
        beta = tenant_factory('beta')

        report = engine.run_pending_for_all_active_tenants(dry_run=True)

        outcome = report.outcomes[str(beta.id)]
        assert outcome.status == STATUS_WOULD_MIGRATE
        assert outcome.applied == ['v1.0.0', 'v1.1.0']
        assert engine.status('beta').executed == []

    def test_rejected_and_inactive_tenants(self, engine, tenant_factory):
        beta = tenant_factory('beta')
        suspended = tenant_factory('gamma', status=Tenant.STATUS_SUSPENDED)
        inactive = tenant_factory('delta')
        inactive.deactivate()
        db.session.commit()
        engine.tenant_registry.invalidate(str(inactive.id))

        report = engine.run_pending_for_all_active_tenants()

        # Deactivated tenants are not part of the fleet
        assert str(inactive.id) not in report.outcomes
        assert report.outcomes[str(suspended.id)].status == STATUS_REJECTED
        assert report.outcomes[str(beta.id)].status == STATUS_MIGRATED
        assert not report.has_failures
        assert engine.status('gamma').executed == []

    def test_malformed_row_does_not_stop_the_fleet(self, engine, tenant_factory, tenant_row):
        beta = tenant_factory('beta')
        bad_id = tenant_row('bad-row', schema_name='Bad-Row')

        report = engine.run_pending_for_all_active_tenants()

        bad_outcome = report.outcomes[bad_id]
        assert bad_outcome.status == STATUS_FAILED
        assert bad_outcome.subdomain == 'bad-row'
        assert 'Invalid schema name' in bad_outcome.error
        assert report.outcomes[str(beta.id)].status == STATUS_MIGRATED
        assert report.failed_count == 1
        assert engine.status('beta').is_up_to_date

    def test_empty_fleet(self, engine):
        report = engine.run_pending_for_all_active_tenants()

        assert report.total == 0
        assert report.outcomes == {}


class TestFleetWorkerPool:
    """Fleet runs with FLEET_MAX_WORKERS > 1 on a file-based SQLite database"""

    @pytest.fixture
    def calls(self):
        return []

    @pytest.fixture
    def registry(self, calls):
        def create_events(schema_name, executor):
            calls.append((schema_name, threading.get_ident(), db.session(), g._get_current_object()))
            executor.execute("CREATE TABLE IF NOT EXISTS {schema}.events (id INTEGER PRIMARY KEY)")

        registry = MigrationRegistry()
        registry.register(MigrationDefinition(version='v1.0.0', name='create_events', up=create_events))
        return registry

    @pytest.fixture
    def config_overrides(self, tmp_path):
        return {
            'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'main.db'}",
            'TENANT_SQLITE_SCHEMA_DIR': str(tmp_path / 'schemas'),
            'FLEET_MAX_WORKERS': 3,
        }

    def test_workers_get_their_own_session_and_context(self, engine, tenant_factory, calls):
        tenants = [tenant_factory(subdomain) for subdomain in ('alpha', 'beta', 'gamma', 'delta')]
        main_session = db.session()
        main_context = g._get_current_object()

        report = engine.run_pending_for_all_active_tenants()

        assert report.total == 4
        assert not report.has_failures
        assert {o.status for o in report.outcomes.values()} == {STATUS_MIGRATED}
        for tenant in tenants:
            assert engine.status(tenant.subdomain).executed == ['v1.0.0']
            assert 'events' in tenant_schema_manager.list_tables(tenant.schema_name)

        assert sorted(schema for schema, _, _, _ in calls) == sorted(t.schema_name for t in tenants)
        assert threading.get_ident() not in {thread for _, thread, _, _ in calls}
        sessions = [session for _, _, session, _ in calls]
        contexts = [context for _, _, _, context in calls]
        assert len({id(s) for s in sessions}) == 4
        assert len({id(c) for c in contexts}) == 4
        assert main_session not in sessions
        assert main_context not in contexts
