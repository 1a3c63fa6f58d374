"""
Tenant Model

This module defines the Tenant model for the multi-tenant platform.
Each tenant represents an isolated organization with its own schema inside
the shared database instance.

Key features:
- Stores tenant metadata in the main schema
- Each tenant has an isolated schema for its business tables
- Deterministic schema name derived from the subdomain
- Schema name is immutable once assigned
- Lifecycle status (trial, active, suspended, expired) and soft delete (is_active)

Storage strategy:
- Tenant metadata: stored in the main schema (tenants table)
- Tenant data: stored in the tenant schema (e.g., tenant_acme_corp)
"""

import logging
from datetime import timedelta
from typing import List, Optional
from sqlalchemy import String, Boolean, DateTime, Index, CheckConstraint, func
from sqlalchemy.orm import relationship, validates

from .base import BaseModel, utcnow
from ..extensions import db
from ..tenant_db.schema_name import SchemaName, derive_schema_name

logger = logging.getLogger(__name__)


class Tenant(BaseModel, db.Model):
    """
    Tenant model representing an organization in the multi-tenant system.

    Each tenant gets:
    1. A record in the main schema (this table)
    2. An isolated schema for its business tables
    3. A ledger of the tenant migrations applied to that schema

    Attributes:
        name (str): Human-readable tenant name (e.g., "Acme Corporation")
        subdomain (str): Unique lowercase subdomain (e.g., "acme-corp")
        schema_name (str): Derived schema name (e.g., "tenant_acme_corp")
        contact_email (str): Contact address for the tenant
        contact_phone (str): Optional contact phone
        subscription_plan (str): 'basic', 'professional' or 'enterprise'
        status (str): 'trial', 'active', 'suspended' or 'expired'
        is_active (bool): Soft delete flag - False means tenant is deactivated
        trial_ends_at (datetime): End of the trial period (UTC)

    Relationships:
        migrations: Ledger entries (TenantMigration) for this tenant

    Inherited from BaseModel:
        id (UUID): Primary key
        created_at (datetime): Creation timestamp (UTC)
        updated_at (datetime): Last update timestamp (UTC)
    """

    __tablename__ = 'tenants'

    # Lifecycle statuses (class constants)
    STATUS_TRIAL = 'trial'
    STATUS_ACTIVE = 'active'
    STATUS_SUSPENDED = 'suspended'
    STATUS_EXPIRED = 'expired'
    VALID_STATUSES = [STATUS_TRIAL, STATUS_ACTIVE, STATUS_SUSPENDED, STATUS_EXPIRED]

    # Subscription plans
    PLAN_BASIC = 'basic'
    PLAN_PROFESSIONAL = 'professional'
    PLAN_ENTERPRISE = 'enterprise'
    VALID_PLANS = [PLAN_BASIC, PLAN_PROFESSIONAL, PLAN_ENTERPRISE]

    # Fields
    name = db.Column(String(255), nullable=False)
    subdomain = db.Column(String(63), unique=True, nullable=False)
    schema_name = db.Column(String(63), unique=True, nullable=False)
    contact_email = db.Column(String(255), nullable=False)
    contact_phone = db.Column(String(50), nullable=True)
    subscription_plan = db.Column(String(20), nullable=False, default=PLAN_BASIC)
    status = db.Column(String(20), nullable=False, default=STATUS_TRIAL)
    is_active = db.Column(Boolean, default=True, nullable=False)
    trial_ends_at = db.Column(DateTime(timezone=True), nullable=True)

    # Relationships
    migrations = relationship(
        'TenantMigration',
        back_populates='tenant',
        cascade='all, delete-orphan',
        passive_deletes=True
    )

    __table_args__ = (
        Index('ix_tenants_subdomain', 'subdomain', unique=True),
        Index('ix_tenants_schema_name', 'schema_name', unique=True),
        Index('ix_tenants_active_status', 'is_active', 'status'),
        CheckConstraint(
            "status IN ('trial', 'active', 'suspended', 'expired')",
            name='valid_tenant_status_check'
        ),
        CheckConstraint(
            "subscription_plan IN ('basic', 'professional', 'enterprise')",
            name='valid_subscription_plan_check'
        ),
    )

    def __init__(self, schema_prefix: str = 'tenant', trial_days: Optional[int] = None, **kwargs):
        """
        Initialize a new tenant.

        If schema_name is not provided, it is derived from the subdomain.
        If trial_days is given, trial_ends_at is set that many days from now.

        Raises:
            ValueError: If status or subscription plan is not valid
        """
        if 'subdomain' in kwargs and kwargs['subdomain']:
            kwargs['subdomain'] = kwargs['subdomain'].strip().lower()
            if 'schema_name' not in kwargs:
                kwargs['schema_name'] = derive_schema_name(kwargs['subdomain'], schema_prefix)

        status = kwargs.setdefault('status', self.STATUS_TRIAL)
        if status not in self.VALID_STATUSES:
            raise ValueError(
                f"Invalid status: {status}. Must be one of: {', '.join(self.VALID_STATUSES)}"
            )

        plan = kwargs.setdefault('subscription_plan', self.PLAN_BASIC)
        if plan not in self.VALID_PLANS:
            raise ValueError(
                f"Invalid subscription plan: {plan}. Must be one of: {', '.join(self.VALID_PLANS)}"
            )

        if trial_days is not None and 'trial_ends_at' not in kwargs:
            kwargs['trial_ends_at'] = utcnow() + timedelta(days=trial_days)

        super().__init__(**kwargs)
        logger.debug(f"Tenant object initialized: subdomain={self.subdomain}, schema={self.schema_name}")

    @validates('schema_name')
    def validate_schema_name(self, key, value):
        """Reject malformed schema names and changes to an assigned one."""
        value = str(SchemaName(value))
        if self.schema_name is not None and value != self.schema_name:
            raise ValueError(
                "Cannot change schema_name after tenant creation. "
                "Create a new tenant instead."
            )
        return value

    @validates('status')
    def validate_status(self, key, value):
        if value not in self.VALID_STATUSES:
            raise ValueError(
                f"Invalid status: {value}. Must be one of: {', '.join(self.VALID_STATUSES)}"
            )
        return value

    def deactivate(self) -> None:
        """
        Soft delete this tenant by setting is_active = False.

        The schema is not dropped.
        """
        logger.info(f"Deactivating tenant {self.id}: {self.name}")
        self.is_active = False

    @classmethod
    def find_by_subdomain(cls, subdomain: str) -> Optional['Tenant']:
        """
        Find a tenant by subdomain (case-insensitive).

        Args:
            subdomain: Tenant subdomain

        Returns:
            Tenant object if found, None otherwise
        """
        return cls.query.filter(func.lower(cls.subdomain) == subdomain.strip().lower()).first()

    @classmethod
    def find_by_schema_name(cls, schema_name: str) -> Optional['Tenant']:
        """
        Find a tenant by schema name.

        Args:
            schema_name: Tenant schema name

        Returns:
            Tenant object if found, None otherwise
        """
        return cls.query.filter_by(schema_name=schema_name).first()

    @classmethod
    def get_all_active(cls) -> List['Tenant']:
        """
        Get all active tenants, oldest first.

        Returns:
            List of active Tenant objects
        """
        return cls.query.filter_by(is_active=True).order_by(cls.created_at.asc()).all()

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<Tenant(id={self.id}, subdomain='{self.subdomain}', "
            f"schema='{self.schema_name}', status='{self.status}', active={self.is_active})>"
        )

    def __str__(self) -> str:
        """Human-readable string representation."""
        state = "active" if self.is_active else "inactive"
        return f"Tenant '{self.name}' ({self.status}, {state})"
