"""
Tenant schema names.

A tenant's schema name is derived once from its subdomain and never changes.
``SchemaName`` is the only value the migration layer ever interpolates into
DDL, so it is validated on construction and rejected outright if it contains
anything outside ``[a-z0-9_]``.
"""

import re

# PostgreSQL identifier limit; also the MySQL database name limit (64) rounded down
MAX_SCHEMA_NAME_LENGTH = 63

SUBDOMAIN_MIN_LENGTH = 3
SUBDOMAIN_MAX_LENGTH = 63

# Lowercase alphanumerics separated by single hyphens; no leading/trailing hyphen.
# Forbidding "--" keeps subdomain -> schema name injective.
SUBDOMAIN_PATTERN = re.compile(r'^[a-z0-9](?:[a-z0-9]|-(?=[a-z0-9]))*[a-z0-9]$')

_SCHEMA_NAME_PATTERN = re.compile(r'^[a-z][a-z0-9_]*$')
_SEPARATOR_RUN = re.compile(r'[^a-z0-9]+')


class SchemaName(str):
    """
    A validated schema identifier.

    Examples:
        >>> SchemaName('tenant_acme')
        'tenant_acme'
        >>> SchemaName('tenant_acme; DROP TABLE tenants')
        Traceback (most recent call last):
        ...
        ValueError: Invalid schema name: ...
    """

    def __new__(cls, value: str):
        if isinstance(value, SchemaName):
            return value
        if (
            not isinstance(value, str)
            or len(value) > MAX_SCHEMA_NAME_LENGTH
            or not _SCHEMA_NAME_PATTERN.match(value)
        ):
            raise ValueError(
                f"Invalid schema name: {value!r}. "
                f"Must match [a-z][a-z0-9_]* and be at most {MAX_SCHEMA_NAME_LENGTH} characters."
            )
        return super().__new__(cls, value)


def sanitize_subdomain(subdomain: str) -> str:
    """Lowercase and collapse every run of non-alphanumerics into a single underscore."""
    slug = _SEPARATOR_RUN.sub('_', subdomain.strip().lower())
    return slug.strip('_')


def derive_schema_name(subdomain: str, prefix: str = 'tenant') -> SchemaName:
    """
    Derive the schema name for a subdomain.

    Rules:
    - Lowercase the subdomain
    - Collapse each run of non-alphanumeric characters into one underscore
    - Strip leading/trailing underscores
    - Prefix with the tenant namespace token

    Examples:
        "acme" -> "tenant_acme"
        "Test-Store" -> "tenant_test_store"
        "test-store" -> "tenant_test_store"

    Raises:
        ValueError: If the result is empty or not a valid SchemaName
    """
    slug = sanitize_subdomain(subdomain)
    if not slug:
        raise ValueError(f"Cannot derive a schema name from subdomain {subdomain!r}")
    return SchemaName(f"{prefix}_{slug}")


def max_subdomain_length(prefix: str = 'tenant') -> int:
    """Longest subdomain whose derived schema name still fits the identifier limit."""
    return min(SUBDOMAIN_MAX_LENGTH, MAX_SCHEMA_NAME_LENGTH - len(prefix) - 1)


def is_valid_subdomain(subdomain: str, prefix: str = 'tenant') -> bool:
    return (
        SUBDOMAIN_MIN_LENGTH <= len(subdomain) <= max_subdomain_length(prefix)
        and SUBDOMAIN_PATTERN.match(subdomain) is not None
    )
