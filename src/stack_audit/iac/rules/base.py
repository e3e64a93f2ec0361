"""Base classes for best-practice rules."""

import logging
from abc import ABC, abstractmethod

from stack_audit.iac.resources import resources_by_type
from stack_audit.models import Resource, Severity, Template

logger = logging.getLogger(__name__)


class Rule(ABC):
    """Abstract base class for best-practice rules.

    A rule is bound to exactly one resource type and produces a verdict for
    every resource of that type in a template.
    """

    # Rule metadata - override in subclasses
    RULE_ID: str = "UNKNOWN"
    TITLE: str = "Unknown Rule"
    SEVERITY: Severity = Severity.MEDIUM
    DESCRIPTION: str = ""
    REMEDIATION: str = ""

    # CloudFormation resource type this rule applies to
    RESOURCE_TYPE: str = ""

    # Verdict used when a resource cannot be evaluated
    DEFAULT_VERDICT: bool = False

    @abstractmethod
    def evaluate(self, logical_id: str, resource: Resource) -> bool:
        """Evaluate the rule against one resource.

        Args:
            logical_id: The resource's logical id.
            resource: The resource to evaluate.

        Returns:
            True if the resource follows best practice.
        """
        pass

    def validate(self, template: Template) -> dict[str, bool]:
        """Evaluate every resource of this rule's type in a template.

        Never raises: a resource that cannot be evaluated gets
        ``DEFAULT_VERDICT``.

        Args:
            template: The template to check.

        Returns:
            Mapping of logical id to verdict.
        """
        verdicts: dict[str, bool] = {}
        for logical_id, resource in resources_by_type(self.RESOURCE_TYPE, template).items():
            try:
                verdicts[logical_id] = bool(self.evaluate(logical_id, resource))
            except Exception as e:
                logger.debug(
                    "%s could not evaluate %s (%s), using default verdict %s",
                    self.RULE_ID,
                    logical_id,
                    e,
                    self.DEFAULT_VERDICT,
                )
                verdicts[logical_id] = self.DEFAULT_VERDICT
        return verdicts

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.RULE_ID!r}, {self.RESOURCE_TYPE!r})"
