"""WeKan rules: board roles, permission checks and the board automation engine.

A rule pairs a trigger (an activity type plus conditions) with an action
(board, card, checklist or mail). The engine matches every activity event
against the board's enabled rules and dispatches the actions of the rules
that match, on behalf of an actor whose board role must allow it.
"""

from wekan_rules._version import __version__

# Core entry point
from wekan_rules.board import RulesBoard
from wekan_rules.engine import RuleEngine

# Roles and permissions
from wekan_rules.models.roles import ROLE_PERMISSIONS, Role, RoleDefinition, get_permissions
from wekan_rules.permissions import (
    MigrationReport,
    RoleService,
    VerificationReport,
    cleanup_legacy_flags,
    migrate_board_roles,
    verify_migration,
)

# Rules
from wekan_rules.models.activity import ACTIVITY_TYPES, ActivityEvent
from wekan_rules.models.rule import (
    OPERATORS,
    WILDCARD,
    BoardAction,
    CardAction,
    ChecklistAction,
    Condition,
    MailAction,
    Rule,
    TriggerSpec,
)
from wekan_rules.rules import RuleBuilder, RuleStore
from wekan_rules.triggers import TriggerMatcher

# Actions
from wekan_rules.actions import ActionDispatcher, DispatchContext, LoggingMailer, SmtpMailer

# Results and configuration
from wekan_rules.models.config import RulesConfig
from wekan_rules.models.results import (
    ActionResult,
    Effect,
    MatchDiagnostic,
    RuleLogEntry,
    RuleOutcome,
)

# Collaborator protocols
from wekan_rules.protocols import (
    BoardDirectory,
    BoardMutationAPI,
    CardLocation,
    MailAPI,
    NamedRef,
)

# Exceptions
from wekan_rules.exceptions import (
    IncompleteMailActionError,
    InvalidActionError,
    InvalidRoleError,
    InvalidTriggerError,
    MalformedTriggerError,
    RuleNotFoundError,
    StorageError,
    TargetNotFoundError,
    UnauthorizedError,
    UnknownRoleError,
    WekanRulesError,
)

__all__ = [
    "__version__",
    # Core
    "RulesBoard",
    "RuleEngine",
    # Roles
    "ROLE_PERMISSIONS",
    "Role",
    "RoleDefinition",
    "get_permissions",
    "RoleService",
    "MigrationReport",
    "VerificationReport",
    "cleanup_legacy_flags",
    "migrate_board_roles",
    "verify_migration",
    # Rules
    "ACTIVITY_TYPES",
    "ActivityEvent",
    "OPERATORS",
    "WILDCARD",
    "BoardAction",
    "CardAction",
    "ChecklistAction",
    "Condition",
    "MailAction",
    "Rule",
    "TriggerSpec",
    "RuleBuilder",
    "RuleStore",
    "TriggerMatcher",
    # Actions
    "ActionDispatcher",
    "DispatchContext",
    "LoggingMailer",
    "SmtpMailer",
    # Results / config
    "RulesConfig",
    "ActionResult",
    "Effect",
    "MatchDiagnostic",
    "RuleLogEntry",
    "RuleOutcome",
    # Protocols
    "BoardDirectory",
    "BoardMutationAPI",
    "CardLocation",
    "MailAPI",
    "NamedRef",
    # Exceptions
    "WekanRulesError",
    "UnknownRoleError",
    "InvalidRoleError",
    "InvalidTriggerError",
    "MalformedTriggerError",
    "InvalidActionError",
    "IncompleteMailActionError",
    "TargetNotFoundError",
    "UnauthorizedError",
    "RuleNotFoundError",
    "StorageError",
]
