"""Board roles and permission checks."""

from wekan_rules.permissions.service import RoleService
from wekan_rules.permissions.migration import (
    MigrationReport,
    VerificationReport,
    cleanup_legacy_flags,
    migrate_board_roles,
    verify_migration,
)

__all__ = [
    "RoleService",
    "MigrationReport",
    "VerificationReport",
    "cleanup_legacy_flags",
    "migrate_board_roles",
    "verify_migration",
]
