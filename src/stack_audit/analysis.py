"""Rule dispatch and metadata queries over a single template."""

from datetime import datetime
from typing import Optional

from stack_audit.config import AuditConfig
from stack_audit.iac.resources import unique_resource_types
from stack_audit.iac.rules.registry import RuleRegistry, get_registry
from stack_audit.models import ResourceTypeReport, StackInfo, StackReport, Tag, Template


def validate_resources(
    template: Template, registry: Optional[RuleRegistry] = None
) -> list[ResourceTypeReport]:
    """Check every resource type in a template against its rule.

    Types are reported in first-seen order. A type is reported as following
    best practice only if every resource of that type passes; types without a
    rule are reported unassessed.

    Args:
        template: The template to check.
        registry: Rule catalog to use. Defaults to the default registry.

    Returns:
        One ResourceTypeReport per distinct resource type.
    """
    registry = registry if registry is not None else get_registry()

    reports = []
    for resource_type in unique_resource_types(template):
        rule = registry.get(resource_type)
        if rule is None:
            reports.append(ResourceTypeReport(resource_type=resource_type))
            continue

        verdicts = rule.validate(template)
        reports.append(
            ResourceTypeReport(
                resource_type=resource_type,
                follows_best_practice=all(verdicts.values()),
            )
        )
    return reports


def _find_provenance_tag(template: Template, tag_key: str) -> Optional[Tag]:
    for resource in template.resources.values():
        for tag in resource.tags:
            if tag.key == tag_key:
                return tag
    return None


def has_provenance_tag(template: Template, config: Optional[AuditConfig] = None) -> bool:
    """Check if any resource carries the provenance tag."""
    config = config or AuditConfig()
    return _find_provenance_tag(template, config.provenance_tag_key) is not None


def provenance_version(template: Template, config: Optional[AuditConfig] = None) -> Optional[str]:
    """Value of the first provenance tag found, if any."""
    config = config or AuditConfig()
    tag = _find_provenance_tag(template, config.provenance_tag_key)
    if tag is None or tag.value is None:
        return None
    return str(tag.value)


def build_stack_report(
    stack: StackInfo,
    report_time: datetime,
    registry: Optional[RuleRegistry] = None,
    config: Optional[AuditConfig] = None,
) -> StackReport:
    """Run the rule engine and metadata queries for one stack."""
    template = stack.template
    return StackReport(
        stack=stack,
        report_time=report_time,
        resource_types=validate_resources(template, registry),
        defined_with_provenance_tag=has_provenance_tag(template, config),
        provenance_version=provenance_version(template, config),
    )
