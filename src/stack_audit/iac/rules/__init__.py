"""Best-practice rules for CloudFormation resources."""

from stack_audit.iac.rules.aws import (
    ASGTagPropagationRule,
    IAMPolicyNoWildcardActionsRule,
    S3BucketLockedDownRule,
    SecurityGroupSSHBlockedRule,
)
from stack_audit.iac.rules.base import Rule
from stack_audit.iac.rules.registry import RuleRegistry, create_registry, get_registry

__all__ = [
    "Rule",
    "RuleRegistry",
    "create_registry",
    "get_registry",
    # AWS Rules
    "ASGTagPropagationRule",
    "IAMPolicyNoWildcardActionsRule",
    "S3BucketLockedDownRule",
    "SecurityGroupSSHBlockedRule",
]
