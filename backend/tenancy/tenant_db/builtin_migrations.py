"""
Built-in tenant migrations.

The catalog every tenant schema is built from:
- v1.0.0: customers, products and audit log (baseline)
- v1.1.0: invoices, invoice items and payments
- v1.2.0: chart of accounts, journal entries and journal lines

DDL sticks to types all supported backends understand (VARCHAR, NUMERIC,
TEXT, BOOLEAN, DATE, TIMESTAMP) and uses CHECK constraints instead of
native enums. Every statement is idempotent so a partially applied
migration can be re-run on backends without transactional DDL.
"""

import logging
from typing import List

from tenancy.tenant_db.tenant_migrations import MigrationDefinition, MigrationRegistry

logger = logging.getLogger(__name__)


# ============================================================================
# v1.0.0 - Baseline
# ============================================================================

def create_baseline_tables(schema_name, executor):
    """Create customers, products and audit_logs tables"""
    executor.execute("""
        CREATE TABLE IF NOT EXISTS {schema}.customers (
            id VARCHAR(191) NOT NULL PRIMARY KEY,
            customer_code VARCHAR(50) NOT NULL,
            name VARCHAR(255) NOT NULL,
            email VARCHAR(255),
            phone VARCHAR(50),
            address TEXT,
            customer_type VARCHAR(20) NOT NULL DEFAULT 'INDIVIDUAL'
                CHECK (customer_type IN ('INDIVIDUAL', 'BUSINESS')),
            credit_limit NUMERIC(15,2) NOT NULL DEFAULT 0,
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)
    executor.create_index('idx_customers_code', 'customers', ['customer_code'], unique=True)
    executor.create_index('idx_customers_name', 'customers', ['name'])

    executor.execute("""
        CREATE TABLE IF NOT EXISTS {schema}.products (
            id VARCHAR(191) NOT NULL PRIMARY KEY,
            sku VARCHAR(100) NOT NULL,
            name VARCHAR(255) NOT NULL,
            description TEXT,
            category VARCHAR(100),
            unit_price NUMERIC(15,2) NOT NULL DEFAULT 0,
            stock_quantity NUMERIC(15,4) NOT NULL DEFAULT 0,
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)
    executor.create_index('idx_products_sku', 'products', ['sku'], unique=True)
    executor.create_index('idx_products_category', 'products', ['category'])

    executor.execute("""
        CREATE TABLE IF NOT EXISTS {schema}.audit_logs (
            id VARCHAR(191) NOT NULL PRIMARY KEY,
            user_id VARCHAR(191),
            action VARCHAR(50) NOT NULL,
            entity_type VARCHAR(100) NOT NULL,
            entity_id VARCHAR(191),
            changes TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)
    executor.create_index('idx_audit_logs_entity', 'audit_logs', ['entity_type', 'entity_id'])


def drop_baseline_tables(schema_name, executor):
    for table in ('audit_logs', 'products', 'customers'):
        executor.drop_table(table)


# ============================================================================
# v1.1.0 - Invoicing
# ============================================================================

def create_invoice_tables(schema_name, executor):
    """Create invoices, invoice_items and payments tables"""
    executor.execute("""
        CREATE TABLE IF NOT EXISTS {schema}.invoices (
            id VARCHAR(191) NOT NULL PRIMARY KEY,
            invoice_number VARCHAR(100) NOT NULL,
            type VARCHAR(20) NOT NULL
                CHECK (type IN ('SALE', 'PURCHASE', 'TRADE')),
            customer_id VARCHAR(191) NOT NULL,
            subtotal NUMERIC(15,2) NOT NULL DEFAULT 0,
            tax_amount NUMERIC(15,2) NOT NULL DEFAULT 0,
            discount_amount NUMERIC(15,2) NOT NULL DEFAULT 0,
            total_amount NUMERIC(15,2) NOT NULL DEFAULT 0,
            currency VARCHAR(3) DEFAULT 'USD',
            status VARCHAR(20) DEFAULT 'DRAFT'
                CHECK (status IN ('DRAFT', 'PENDING', 'PAID', 'PARTIAL', 'CANCELLED')),
            due_date DATE,
            notes TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            created_by VARCHAR(191)
        )
    """)
    executor.create_index('idx_invoices_number', 'invoices', ['invoice_number'], unique=True)
    executor.create_index('idx_invoices_customer', 'invoices', ['customer_id'])
    executor.create_index('idx_invoices_status', 'invoices', ['status'])

    executor.execute("""
        CREATE TABLE IF NOT EXISTS {schema}.invoice_items (
            id VARCHAR(191) NOT NULL PRIMARY KEY,
            invoice_id VARCHAR(191) NOT NULL,
            product_id VARCHAR(191),
            description VARCHAR(255) NOT NULL,
            quantity NUMERIC(10,4) NOT NULL DEFAULT 1,
            unit_price NUMERIC(15,2) NOT NULL,
            total_price NUMERIC(15,2) NOT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)
    executor.create_index('idx_invoice_items_invoice', 'invoice_items', ['invoice_id'])
    executor.create_index('idx_invoice_items_product', 'invoice_items', ['product_id'])

    executor.execute("""
        CREATE TABLE IF NOT EXISTS {schema}.payments (
            id VARCHAR(191) NOT NULL PRIMARY KEY,
            invoice_id VARCHAR(191) NOT NULL,
            amount NUMERIC(15,2) NOT NULL,
            method VARCHAR(20) NOT NULL
                CHECK (method IN ('CASH', 'CARD', 'CHEQUE', 'TRANSFER', 'CREDIT')),
            reference VARCHAR(255),
            notes TEXT,
            payment_date TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            created_by VARCHAR(191)
        )
    """)
    executor.create_index('idx_payments_invoice', 'payments', ['invoice_id'])


def drop_invoice_tables(schema_name, executor):
    for table in ('payments', 'invoice_items', 'invoices'):
        executor.drop_table(table)


# ============================================================================
# v1.2.0 - Accounting
# ============================================================================

def create_accounting_tables(schema_name, executor):
    """Create chart of accounts, journal_entries and journal_lines tables"""
    executor.execute("""
        CREATE TABLE IF NOT EXISTS {schema}.accounts (
            id VARCHAR(191) NOT NULL PRIMARY KEY,
            code VARCHAR(20) NOT NULL,
            name VARCHAR(255) NOT NULL,
            type VARCHAR(20) NOT NULL
                CHECK (type IN ('ASSET', 'LIABILITY', 'EQUITY', 'REVENUE', 'EXPENSE')),
            parent_id VARCHAR(191),
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)
    executor.create_index('idx_accounts_code', 'accounts', ['code'], unique=True)
    executor.create_index('idx_accounts_type', 'accounts', ['type'])

    executor.execute("""
        CREATE TABLE IF NOT EXISTS {schema}.journal_entries (
            id VARCHAR(191) NOT NULL PRIMARY KEY,
            entry_number VARCHAR(100) NOT NULL,
            description VARCHAR(255) NOT NULL,
            reference VARCHAR(255),
            entry_date DATE NOT NULL,
            total_debit NUMERIC(15,2) NOT NULL DEFAULT 0,
            total_credit NUMERIC(15,2) NOT NULL DEFAULT 0,
            status VARCHAR(20) DEFAULT 'DRAFT'
                CHECK (status IN ('DRAFT', 'POSTED', 'REVERSED')),
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            created_by VARCHAR(191)
        )
    """)
    executor.create_index('idx_journal_entries_number', 'journal_entries', ['entry_number'], unique=True)
    executor.create_index('idx_journal_entries_date', 'journal_entries', ['entry_date'])

    executor.execute("""
        CREATE TABLE IF NOT EXISTS {schema}.journal_lines (
            id VARCHAR(191) NOT NULL PRIMARY KEY,
            journal_entry_id VARCHAR(191) NOT NULL,
            account_id VARCHAR(191) NOT NULL,
            description VARCHAR(255),
            debit_amount NUMERIC(15,2) NOT NULL DEFAULT 0,
            credit_amount NUMERIC(15,2) NOT NULL DEFAULT 0,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)
    executor.create_index('idx_journal_lines_entry', 'journal_lines', ['journal_entry_id'])
    executor.create_index('idx_journal_lines_account', 'journal_lines', ['account_id'])


def drop_accounting_tables(schema_name, executor):
    for table in ('journal_lines', 'journal_entries', 'accounts'):
        executor.drop_table(table)


BUILTIN_MIGRATIONS: List[MigrationDefinition] = [
    MigrationDefinition(
        version='v1.0.0',
        name='initial_schema',
        description='Create customers, products and audit log tables',
        up=create_baseline_tables,
        down=drop_baseline_tables
    ),
    MigrationDefinition(
        version='v1.1.0',
        name='add_invoice_tables',
        description='Create invoice, invoice item and payment tables',
        up=create_invoice_tables,
        down=drop_invoice_tables
    ),
    MigrationDefinition(
        version='v1.2.0',
        name='add_accounting_tables',
        description='Create chart of accounts, journal entry and journal line tables',
        up=create_accounting_tables,
        down=drop_accounting_tables
    ),
]


def register_builtin_migrations(registry: MigrationRegistry) -> None:
    """Register the built-in catalog into a registry that is not frozen yet."""
    for definition in BUILTIN_MIGRATIONS:
        registry.register(definition)
    logger.debug(f"Registered {len(BUILTIN_MIGRATIONS)} built-in tenant migrations")
