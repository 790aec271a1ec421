"""Rule definitions: validation, storage and the rule builder flow."""

from wekan_rules.rules.store import RuleStore
from wekan_rules.rules.builder import RuleBuilder
from wekan_rules.rules.validation import (
    check_action_parameters,
    parse_action,
    parse_trigger,
    sanitize_params,
    validate_rule_parts,
    validate_trigger,
)

__all__ = [
    "RuleStore",
    "RuleBuilder",
    "check_action_parameters",
    "parse_action",
    "parse_trigger",
    "sanitize_params",
    "validate_rule_parts",
    "validate_trigger",
]
