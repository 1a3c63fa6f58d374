"""
Command line interface for the tenant schema lifecycle engine.

Usage:
    # Create the main schema tables (tenants, tenant_migrations)
    tenant-cli init-db

    # Provision a tenant
    tenant-cli create --name "Acme Corp" --subdomain acme-corp --email ops@acme.example

    # List tenants
    tenant-cli list [--active-only]

    # Show what would be done without applying
    tenant-cli migrate --all --dry-run

    # Apply pending migrations to all active tenants / one tenant
    tenant-cli migrate --all
    tenant-cli migrate --tenant acme-corp

    # Migration status and history of one tenant
    tenant-cli status --tenant acme-corp
    tenant-cli history --tenant acme-corp

    # Roll back the latest (or a given) migration
    tenant-cli rollback --tenant acme-corp [--version v1.2.0]

    # List registered migrations
    tenant-cli migrations

    # Table count, row count and size of a tenant schema
    tenant-cli stats --tenant acme-corp

    # Health of the main database, one tenant, or all active tenants
    tenant-cli health
    tenant-cli health --tenant acme-corp
    tenant-cli health --all

Add --json before the command to print machine-readable output.
Exit code is 1 on any error, on any failed tenant in a fleet run and on any
unhealthy target of a health check.
"""

import argparse
import json
import logging
import sys

from tenancy.exceptions import TenancyError
from tenancy.schemas import (
    fleet_report_schema,
    ledger_entries_schema,
    migration_definitions_schema,
    migration_status_schema,
    schema_health_schema,
    schema_stats_schema,
    tenant_health_schema,
    tenant_response_schema,
    tenants_health_schema,
    tenants_response_schema,
)
from tenancy.tenant_db.runner import STATUS_FAILED, STATUS_REJECTED, STATUS_WOULD_MIGRATE

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='tenant-cli',
        description='Provision tenants and manage tenant schema migrations',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument('--config', default=None,
                        help="Configuration name (development, production, testing)")
    parser.add_argument('--json', action='store_true', dest='as_json',
                        help='Print JSON instead of tables')
    parser.add_argument('--verbose', action='store_true', help='Enable debug logging')

    subparsers = parser.add_subparsers(dest='command', required=True)

    subparsers.add_parser('init-db', help='Create the main schema tables')

    create = subparsers.add_parser('create', help='Provision a new tenant')
    create.add_argument('--name', required=True)
    create.add_argument('--subdomain', required=True)
    create.add_argument('--email', required=True)
    create.add_argument('--phone', default=None)
    create.add_argument('--plan', default=None)

    list_cmd = subparsers.add_parser('list', help='List tenants')
    list_cmd.add_argument('--active-only', action='store_true')

    migrate = subparsers.add_parser('migrate', help='Apply pending migrations')
    target = migrate.add_mutually_exclusive_group(required=True)
    target.add_argument('--tenant', help='Tenant UUID or subdomain')
    target.add_argument('--all', action='store_true', help='All active tenants')
    migrate.add_argument('--dry-run', action='store_true',
                         help='Show what would be done without applying migrations')

    status = subparsers.add_parser('status', help='Show migration status of a tenant')
    status.add_argument('--tenant', required=True)

    history = subparsers.add_parser('history', help='Show migration history of a tenant')
    history.add_argument('--tenant', required=True)

    rollback = subparsers.add_parser('rollback', help='Roll back one migration of a tenant')
    rollback.add_argument('--tenant', required=True)
    rollback.add_argument('--version', default=None,
                          help='Version to roll back (defaults to the latest applied)')

    subparsers.add_parser('migrations', help='List registered migrations')

    stats = subparsers.add_parser('stats', help='Show table count, row count and size of a tenant schema')
    stats.add_argument('--tenant', required=True)

    health = subparsers.add_parser('health', help='Check the main database or tenant schemas')
    health_target = health.add_mutually_exclusive_group()
    health_target.add_argument('--tenant', help='Tenant UUID or subdomain')
    health_target.add_argument('--all', action='store_true', help='All active tenants')

    return parser


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def cmd_init_db(service, args) -> int:
    from tenancy.extensions import db
    db.create_all()
    print("Main schema tables created")
    return 0


def cmd_create(service, args) -> int:
    tenant = service.create_tenant(
        name=args.name,
        subdomain=args.subdomain,
        contact_email=args.email,
        contact_phone=args.phone,
        plan=args.plan
    )
    if args.as_json:
        _print_json(tenant_response_schema.dump(tenant))
    else:
        print(f"Created tenant {tenant.name} ({tenant.id}) with schema {tenant.schema_name}")
    return 0


def cmd_list(service, args) -> int:
    tenants = service.list_tenants(active_only=args.active_only)
    if args.as_json:
        _print_json(tenants_response_schema.dump(tenants))
        return 0

    if not tenants:
        print("No tenants found in the database")
        return 0

    print(f"{'ID':<38} {'Subdomain':<25} {'Schema':<32} {'Status':<10} {'Active'}")
    print(f"{'-'*38} {'-'*25} {'-'*32} {'-'*10} {'-'*6}")
    for tenant in tenants:
        print(
            f"{str(tenant.id):<38} {tenant.subdomain:<25} {tenant.schema_name:<32} "
            f"{tenant.status:<10} {'yes' if tenant.is_active else 'no'}"
        )
    return 0


def cmd_migrate(service, args) -> int:
    if args.tenant:
        applied = service.run_pending(args.tenant, dry_run=args.dry_run)
        if args.as_json:
            _print_json({'tenant': args.tenant, 'dry_run': args.dry_run, 'applied': applied})
        elif not applied:
            print(f"Tenant {args.tenant} is up to date")
        elif args.dry_run:
            print(f"Tenant {args.tenant} would apply {len(applied)} migration(s): {', '.join(applied)}")
        else:
            print(f"Tenant {args.tenant} applied {len(applied)} migration(s): {', '.join(applied)}")
        return 0

    report = service.run_pending_for_all_active_tenants(dry_run=args.dry_run)
    if args.as_json:
        _print_json(fleet_report_schema.dump(report))
        return 1 if report.has_failures else 0

    print(f"\n{'='*80}")
    print("Tenant Schema Migration")
    print(f"{'='*80}")
    print(f"Mode: {'DRY RUN (no changes will be made)' if args.dry_run else 'LIVE (migrations will be applied)'}")
    print(f"Total tenants: {report.total}")

    for tenant_id, outcome in report.outcomes.items():
        label = outcome.subdomain or tenant_id
        if outcome.status == STATUS_FAILED:
            print(f"  ✗ {label}: failed at {outcome.failed_version or '-'}: {outcome.error}")
        elif outcome.status == STATUS_REJECTED:
            print(f"  - {label}: skipped ({outcome.error})")
        elif outcome.status == STATUS_WOULD_MIGRATE:
            print(f"  → {label}: would apply {', '.join(outcome.applied)}")
        elif outcome.applied:
            print(f"  ✓ {label}: applied {', '.join(outcome.applied)}")
        else:
            print(f"  ✓ {label}: up to date")

    if report.has_failures:
        print(f"\n✗ {report.failed_count} tenant(s) failed")
    return 1 if report.has_failures else 0


def cmd_status(service, args) -> int:
    status = service.status(args.tenant)
    if args.as_json:
        _print_json(migration_status_schema.dump(status))
        return 0

    print(f"Tenant: {status.tenant_id} ({status.schema_name})")
    print(f"Executed ({len(status.executed)}/{status.total}): {', '.join(status.executed) or '-'}")
    print(f"Pending  ({len(status.pending)}/{status.total}): {', '.join(status.pending) or '-'}")
    if status.unknown:
        print(f"Unknown (not registered): {', '.join(status.unknown)}")
    return 0


def cmd_history(service, args) -> int:
    entries = service.history(args.tenant)
    if args.as_json:
        _print_json(ledger_entries_schema.dump([
            {'version': e.migration_version, 'name': e.migration_name, 'executed_at': e.executed_at}
            for e in entries
        ]))
        return 0

    if not entries:
        print("No migration history found")
        return 0

    print(f"{'Version':<20} {'Applied At':<25} {'Name'}")
    print(f"{'-'*20} {'-'*25} {'-'*40}")
    for entry in entries:
        executed_at = entry.executed_at.strftime('%Y-%m-%d %H:%M:%S') if entry.executed_at else 'N/A'
        print(f"{entry.migration_version:<20} {executed_at:<25} {entry.migration_name[:40]}")
    return 0


def cmd_rollback(service, args) -> int:
    version = service.rollback(args.tenant, version=args.version)
    if args.as_json:
        _print_json({'tenant': args.tenant, 'rolled_back': version})
    else:
        print(f"Rolled back {version} for tenant {args.tenant}")
    return 0


def cmd_migrations(service, args) -> int:
    migrations = service.list_migrations()
    if args.as_json:
        _print_json(migration_definitions_schema.dump(migrations))
        return 0

    print(f"{'Version':<20} {'Reversible':<11} {'Name'}")
    print(f"{'-'*20} {'-'*11} {'-'*40}")
    for migration in migrations:
        print(f"{migration.version:<20} {'yes' if migration.reversible else 'no':<11} {migration.name}")
    return 0


def cmd_stats(service, args) -> int:
    stats = service.stats(args.tenant)
    if args.as_json:
        _print_json(schema_stats_schema.dump(stats))
        return 0

    print(f"Tenant: {args.tenant} ({stats.schema_name})")
    print(f"Tables: {stats.tables}")
    print(f"Total records: {stats.total_rows}")
    print(f"Size: {stats.size_mb} MB")
    return 0


def cmd_health(service, args) -> int:
    if args.all:
        results = service.health_check_all()
        if args.as_json:
            _print_json(tenants_health_schema.dump(results))
        else:
            if not results:
                print("No active tenants found")
            for result in results:
                if result.healthy:
                    print(f"  ✓ {result.subdomain}: healthy")
                else:
                    print(f"  ✗ {result.subdomain}: {result.error}")
        return 0 if all(r.healthy for r in results) else 1

    result = service.health_check(args.tenant)
    if args.as_json:
        schema = tenant_health_schema if args.tenant else schema_health_schema
        _print_json(schema.dump(result))
    else:
        label = f"Tenant {args.tenant}" if args.tenant else "Main database"
        if result.healthy:
            print(f"✓ {label} is healthy")
        else:
            print(f"✗ {label} is unhealthy: {result.error}")
    return 0 if result.healthy else 1


COMMANDS = {
    'init-db': cmd_init_db,
    'create': cmd_create,
    'list': cmd_list,
    'migrate': cmd_migrate,
    'status': cmd_status,
    'history': cmd_history,
    'rollback': cmd_rollback,
    'migrations': cmd_migrations,
    'stats': cmd_stats,
    'health': cmd_health,
}


def main(argv=None, app=None) -> int:
    """
    Run one CLI command.

    Args:
        argv: Arguments (defaults to sys.argv[1:])
        app: Flask application to use (defaults to create_app(args.config))

    Returns:
        Process exit code
    """
    args = build_parser().parse_args(argv)

    if app is None:
        from tenancy import create_app
        app = create_app(args.config)

    if args.verbose:
        logging.getLogger('tenancy').setLevel(logging.DEBUG)

    from tenancy.services.migration_service import get_migration_service

    with app.app_context():
        service = get_migration_service()
        try:
            return COMMANDS[args.command](service, args)
        except TenancyError as e:
            logger.debug(f"Command {args.command} failed: {e.message}")
            print(f"Error [{e.code}]: {e.message}", file=sys.stderr)
            return 1


def run():
    """Console script entry point."""
    sys.exit(main())


if __name__ == '__main__':
    run()
