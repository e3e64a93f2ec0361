"""CloudFormation template parser."""

import json
from typing import Any, Optional

import yaml

from stack_audit.iac.base import ParseError, TemplateParser
from stack_audit.models import Template


# Custom YAML loader that handles CloudFormation intrinsic functions
class CloudFormationLoader(yaml.SafeLoader):
    """YAML loader that handles CloudFormation intrinsic function tags."""

    pass


def _construct_node(loader: yaml.SafeLoader, node: yaml.Node) -> Any:
    if isinstance(node, yaml.ScalarNode):
        return loader.construct_scalar(node)
    if isinstance(node, yaml.SequenceNode):
        return loader.construct_sequence(node, deep=True)
    if isinstance(node, yaml.MappingNode):
        return loader.construct_mapping(node, deep=True)
    return None


def _construct_cfn_tag(loader: yaml.SafeLoader, tag_suffix: str, node: yaml.Node) -> dict:
    """Construct a dict representing a CloudFormation intrinsic function."""
    return {f"Fn::{tag_suffix}": _construct_node(loader, node)}


def _construct_ref(loader: yaml.SafeLoader, node: yaml.Node) -> dict:
    """Construct a Ref intrinsic function."""
    return {"Ref": loader.construct_scalar(node)}


def _construct_condition(loader: yaml.SafeLoader, node: yaml.Node) -> dict:
    return {"Condition": loader.construct_scalar(node)}


def _construct_get_att(loader: yaml.SafeLoader, node: yaml.Node) -> dict:
    """Construct GetAtt, splitting the short ``Resource.Attribute`` form."""
    value = _construct_node(loader, node)
    if isinstance(value, str):
        value = value.split(".", 1)
    return {"Fn::GetAtt": value}


CloudFormationLoader.add_constructor("!Ref", _construct_ref)
CloudFormationLoader.add_constructor("!Condition", _construct_condition)
CloudFormationLoader.add_constructor("!GetAtt", _construct_get_att)

INTRINSIC_FUNCTIONS = [
    "And",
    "Base64",
    "Cidr",
    "Equals",
    "FindInMap",
    "GetAZs",
    "If",
    "ImportValue",
    "Join",
    "Not",
    "Or",
    "Select",
    "Split",
    "Sub",
    "Transform",
]

for _name in INTRINSIC_FUNCTIONS:
    CloudFormationLoader.add_constructor(
        f"!{_name}", lambda l, n, _suffix=_name: _construct_cfn_tag(l, _suffix, n)
    )


class CloudFormationParser(TemplateParser):
    """Parser for AWS CloudFormation templates (JSON/YAML)."""

    def parse(self, content: str, source: str = "<string>") -> Template:
        """Parse CloudFormation template.

        A document without a Resources section parses to an empty template.

        Args:
            content: Template content (JSON or YAML).
            source: Where the template came from.

        Returns:
            The parsed Template.

        Raises:
            ParseError: If the content is neither a JSON nor a YAML mapping.
        """
        document = self._parse_document(content)
        if document is None:
            raise ParseError(f"Unable to determine a JSON or YAML template for {source}")

        return Template.from_dict(document)

    def _parse_document(self, content: str) -> Optional[dict[str, Any]]:
        """Decode content as JSON, then YAML."""
        try:
            document = json.loads(content)
            if isinstance(document, dict):
                return document
        except (json.JSONDecodeError, TypeError):
            pass

        try:
            document = yaml.load(content, Loader=CloudFormationLoader)
            if isinstance(document, dict):
                return document
        except yaml.YAMLError:
            pass

        return None

    @classmethod
    def supported_extensions(cls) -> list[str]:
        """Return supported file extensions."""
        return [".yaml", ".yml", ".json", ".template"]


def parse_template(content: str, source: str = "<string>") -> Template:
    """Parse CloudFormation template text.

    Raises:
        ParseError: If the content cannot be decoded.
    """
    return CloudFormationParser().parse(content, source)
