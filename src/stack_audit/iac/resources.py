"""Lookups over a template's resources."""

from typing import Any

from stack_audit.models import Resource, Template


def unique_resource_types(template: Template) -> list[str]:
    """Distinct resource types in the template, in first-seen order."""
    return list(dict.fromkeys(resource.type for resource in template.resources.values()))


def resources_by_type(resource_type: str, template: Template) -> dict[str, Resource]:
    """Resources whose type exactly matches ``resource_type``, keyed by logical id."""
    return {
        logical_id: resource
        for logical_id, resource in template.resources.items()
        if resource.type == resource_type
    }


def get_property(properties: Any, *keys: str, default: Any = None) -> Any:
    """Get nested property value by key path.

    Args:
        properties: A resource's property bag (may be None or any shape).
        *keys: Path of keys to traverse.
        default: Default value if not found.

    Returns:
        Property value or default.
    """
    current = properties
    for key in keys:
        if isinstance(current, dict) and key in current:
            current = current[key]
        else:
            return default
    return current
