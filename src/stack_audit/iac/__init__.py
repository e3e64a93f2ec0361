"""CloudFormation template parsing and resource lookups."""

from stack_audit.iac.base import ParseError, TemplateParser
from stack_audit.iac.cloudformation import CloudFormationParser, parse_template
from stack_audit.iac.resources import get_property, resources_by_type, unique_resource_types

__all__ = [
    "CloudFormationParser",
    "ParseError",
    "TemplateParser",
    "get_property",
    "parse_template",
    "resources_by_type",
    "unique_resource_types",
]
