"""stack-audit - Best-practice audits for deployed CloudFormation stacks."""

__version__ = "0.3.0"

from stack_audit.analysis import (
    build_stack_report,
    has_provenance_tag,
    provenance_version,
    validate_resources,
)
from stack_audit.config import AuditConfig
from stack_audit.iac import parse_template, resources_by_type, unique_resource_types
from stack_audit.models import Resource, ResourceTypeReport, StackReport, Tag, Template

__all__ = [
    "__version__",
    "AuditConfig",
    "Resource",
    "ResourceTypeReport",
    "StackReport",
    "Tag",
    "Template",
    "build_stack_report",
    "has_provenance_tag",
    "parse_template",
    "provenance_version",
    "resources_by_type",
    "unique_resource_types",
    "validate_resources",
]
