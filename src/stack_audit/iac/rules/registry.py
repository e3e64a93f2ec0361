"""Rule registry mapping resource types to their best-practice rule."""

import logging
from typing import Optional, Type

from stack_audit.config import AuditConfig
from stack_audit.iac.rules.base import Rule

logger = logging.getLogger(__name__)


class RuleRegistry:
    """Registry binding each resource type to at most one rule."""

    def __init__(self) -> None:
        """Initialize the rule registry."""
        self._rules: dict[str, Rule] = {}

    def register(self, rule: Rule) -> None:
        """Register a rule, replacing any rule already bound to its type.

        Args:
            rule: Rule instance to register.

        Raises:
            ValueError: If the rule declares no resource type.
        """
        if not rule.RESOURCE_TYPE:
            raise ValueError(f"Rule {rule.RULE_ID} does not declare a RESOURCE_TYPE")

        existing = self._rules.get(rule.RESOURCE_TYPE)
        if existing is not None and existing.RULE_ID != rule.RULE_ID:
            logger.debug(
                "Replacing rule %s with %s for %s",
                existing.RULE_ID,
                rule.RULE_ID,
                rule.RESOURCE_TYPE,
            )
        self._rules[rule.RESOURCE_TYPE] = rule

    def register_class(self, rule_class: Type[Rule]) -> None:
        """Register a rule class (instantiates it).

        Args:
            rule_class: Rule class to register.
        """
        self.register(rule_class())

    def get(self, resource_type: str) -> Optional[Rule]:
        """Get the rule bound to a resource type.

        Args:
            resource_type: Exact CloudFormation resource type.

        Returns:
            Rule instance or None if no rule covers the type.
        """
        return self._rules.get(resource_type)

    def get_by_id(self, rule_id: str) -> Optional[Rule]:
        """Get a rule by ID."""
        for rule in self._rules.values():
            if rule.RULE_ID == rule_id:
                return rule
        return None

    def get_all(self) -> list[Rule]:
        """Get all registered rules."""
        return list(self._rules.values())

    def resource_types(self) -> list[str]:
        """Resource types that have a rule."""
        return list(self._rules)

    def __len__(self) -> int:
        return len(self._rules)


def create_registry(config: Optional[AuditConfig] = None) -> RuleRegistry:
    """Build a registry of the default rules.

    Rules whose id appears in ``config.disabled_rules`` are left out.
    """
    from stack_audit.iac.rules.aws import DEFAULT_RULES

    disabled = set(config.disabled_rules) if config else set()

    registry = RuleRegistry()
    for rule_class in DEFAULT_RULES:
        if rule_class.RULE_ID in disabled:
            logger.info("Rule %s disabled by configuration", rule_class.RULE_ID)
            continue
        registry.register_class(rule_class)
    return registry


# Default registry instance, built on first use
_registry: Optional[RuleRegistry] = None


def get_registry() -> RuleRegistry:
    """Get the default rule registry.

    Returns:
        A RuleRegistry with every default rule enabled.
    """
    global _registry
    if _registry is None:
        _registry = create_registry()
    return _registry
