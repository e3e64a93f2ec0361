"""Data models for CloudFormation templates and stack audit results."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class Severity(Enum):
    """Rule severity levels."""

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    UNKNOWN = "UNKNOWN"


class ResourcePolicy(Enum):
    """Values accepted by DeletionPolicy and UpdateReplacePolicy."""

    DELETE = "Delete"
    RETAIN = "Retain"
    SNAPSHOT = "Snapshot"


@dataclass(frozen=True)
class Tag:
    """A resource tag as declared in a template's Tags list."""

    key: str
    value: Any
    propagate_at_launch: Optional[Any] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Tag":
        """Create from a CloudFormation tag mapping."""
        return cls(
            key=data["Key"],
            value=data.get("Value"),
            propagate_at_launch=data.get("PropagateAtLaunch"),
        )


@dataclass
class Parameter:
    """A template parameter declaration."""

    type: str
    description: Optional[str] = None
    default: Optional[Any] = None
    allowed_values: list[Any] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "Parameter":
        """Create from a CloudFormation parameter mapping."""
        allowed = data.get("AllowedValues")
        return cls(
            type=str(data.get("Type", "String")),
            description=data.get("Description"),
            default=data.get("Default"),
            allowed_values=list(allowed) if isinstance(allowed, list) else [],
        )


@dataclass
class Resource:
    """One resource declared in a template."""

    type: str
    properties: Optional[dict[str, Any]] = None
    deletion_policy: Optional[str] = None
    update_replace_policy: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Resource":
        """Create from a CloudFormation resource mapping.

        Properties are kept as-is. A Properties value that is not a mapping
        (for example an intrinsic function) is stored unchanged so that the
        rules can decide how to treat it.
        """
        return cls(
            type=str(data.get("Type", "Unknown")),
            properties=data.get("Properties"),
            deletion_policy=data.get("DeletionPolicy"),
            update_replace_policy=data.get("UpdateReplacePolicy"),
        )

    @property
    def tags(self) -> list[Tag]:
        """Tags declared in the resource's properties.

        Entries that are not mappings with a Key are skipped.
        """
        if not isinstance(self.properties, dict):
            return []

        raw_tags = self.properties.get("Tags")
        if not isinstance(raw_tags, list):
            return []

        return [
            Tag.from_dict(item)
            for item in raw_tags
            if isinstance(item, dict) and "Key" in item
        ]


@dataclass
class Template:
    """A parsed CloudFormation template.

    Resources are keyed by logical id, in declaration order.
    """

    resources: dict[str, Resource] = field(default_factory=dict)
    parameters: dict[str, Parameter] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "Template":
        """A template with no resources, used when a template is unavailable."""
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> "Template":
        """Create from a decoded template document."""
        resources: dict[str, Resource] = {}
        raw_resources = data.get("Resources")
        if isinstance(raw_resources, dict):
            for logical_id, resource_def in raw_resources.items():
                if isinstance(resource_def, dict):
                    resources[str(logical_id)] = Resource.from_dict(resource_def)

        parameters: dict[str, Parameter] = {}
        raw_parameters = data.get("Parameters")
        if isinstance(raw_parameters, dict):
            for name, param_def in raw_parameters.items():
                if isinstance(param_def, dict):
                    parameters[str(name)] = Parameter.from_dict(param_def)

        return cls(resources=resources, parameters=parameters)

    def __len__(self) -> int:
        return len(self.resources)


@dataclass(frozen=True)
class ResourceTypeReport:
    """Aggregated verdict for all resources of one type in one template.

    ``follows_best_practice`` is None when no rule covers the type.
    """

    resource_type: str
    follows_best_practice: Optional[bool] = None

    @property
    def assessed(self) -> bool:
        return self.follows_best_practice is not None

    def to_dict(self) -> dict:
        """Convert to dictionary representation.

        The verdict key is omitted for unassessed types.
        """
        data: dict[str, Any] = {"ResourceType": self.resource_type}
        if self.follows_best_practice is not None:
            data["FollowsBestPractice"] = self.follows_best_practice
        return data


@dataclass
class StackInfo:
    """A deployed stack together with its downloaded template."""

    stack_id: str
    stack_name: str
    stack_status: str
    profile: str
    region: str
    creation_time: Optional[datetime] = None
    last_updated_time: Optional[datetime] = None
    template: Template = field(default_factory=Template.empty)
    tags: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_api(
        cls,
        stack: dict,
        profile: str,
        region: str,
        template: Optional[Template] = None,
    ) -> "StackInfo":
        """Create from a DescribeStacks ``Stacks`` entry."""
        tags = {
            tag["Key"]: tag.get("Value", "")
            for tag in stack.get("Tags", [])
            if isinstance(tag, dict) and "Key" in tag
        }
        return cls(
            stack_id=stack.get("StackId", ""),
            stack_name=stack.get("StackName", ""),
            stack_status=stack.get("StackStatus", ""),
            profile=profile,
            region=region,
            creation_time=stack.get("CreationTime"),
            last_updated_time=stack.get("LastUpdatedTime"),
            template=template if template is not None else Template.empty(),
            tags=tags,
        )


@dataclass
class StackReport:
    """Rule engine results for one stack."""

    stack: StackInfo
    report_time: datetime
    resource_types: list[ResourceTypeReport] = field(default_factory=list)
    defined_with_provenance_tag: bool = False
    provenance_version: Optional[str] = None

    @property
    def failing_types(self) -> list[str]:
        """Resource types with at least one resource failing its rule."""
        return [r.resource_type for r in self.resource_types if r.follows_best_practice is False]

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "ReportTime": _isoformat(self.report_time),
            "StackId": self.stack.stack_id,
            "StackName": self.stack.stack_name,
            "StackStatus": self.stack.stack_status,
            "CreationTime": _isoformat(self.stack.creation_time),
            "LastUpdatedTime": _isoformat(self.stack.last_updated_time),
            "Profile": self.stack.profile,
            "Region": self.stack.region,
            "DefinedWithGuCDK": self.defined_with_provenance_tag,
            "GuCDKVersion": self.provenance_version,
            "ResourceTypes": [r.to_dict() for r in self.resource_types],
        }


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None
