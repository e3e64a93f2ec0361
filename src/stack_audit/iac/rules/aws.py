"""AWS best-practice rules for CloudFormation resources."""

from typing import Any

from stack_audit.iac.resources import get_property
from stack_audit.iac.rules.base import Rule
from stack_audit.models import Resource, ResourcePolicy, Severity


class UnevaluableValueError(ValueError):
    """Raised when a property holds something other than a literal value."""


def is_intrinsic(value: Any) -> bool:
    """Check if a value is a CloudFormation intrinsic function call."""
    if not isinstance(value, dict) or len(value) != 1:
        return False
    key = next(iter(value))
    return key in ("Ref", "Condition") or str(key).startswith("Fn::")


def _literal(value: Any, name: str) -> Any:
    if is_intrinsic(value):
        raise UnevaluableValueError(f"{name} is an intrinsic function")
    return value


class SecurityGroupSSHBlockedRule(Rule):
    """Check that security groups do not open port 22 over TCP."""

    RULE_ID = "SG_SSH_BLOCKED"
    TITLE = "Security group allows SSH ingress"
    SEVERITY = Severity.HIGH
    DESCRIPTION = (
        "Security group has an ingress rule whose TCP port range includes 22. "
        "Instances should be reached through SSM rather than SSH."
    )
    REMEDIATION = (
        "Remove ingress rules covering port 22 and use AWS Systems Manager "
        "Session Manager for shell access."
    )
    RESOURCE_TYPE = "AWS::EC2::SecurityGroup"

    SSH_PORT = 22

    # Ingress that cannot be read literally (e.g. Fn::If) is not provably blocked
    DEFAULT_VERDICT = False

    def evaluate(self, logical_id: str, resource: Resource) -> bool:
        """Check that no ingress rule allows SSH."""
        if resource.properties is None:
            return True

        if not isinstance(resource.properties, dict):
            raise UnevaluableValueError("Properties is not a mapping")

        ingress = _literal(resource.properties.get("SecurityGroupIngress"), "SecurityGroupIngress")
        if ingress is None:
            return True

        if not isinstance(ingress, list):
            raise UnevaluableValueError("SecurityGroupIngress is not a list")

        return not any(self._allows_ssh(rule) for rule in ingress)

    def _allows_ssh(self, rule: Any) -> bool:
        """Check if a single ingress rule opens TCP port 22."""
        rule = _literal(rule, "ingress rule")
        if not isinstance(rule, dict):
            raise UnevaluableValueError("ingress rule is not a mapping")

        protocol = _literal(rule.get("IpProtocol"), "IpProtocol")
        if protocol != "tcp":
            return False

        from_port = _literal(rule.get("FromPort"), "FromPort")
        to_port = _literal(rule.get("ToPort"), "ToPort")
        # A tcp entry without a port range does not cover port 22
        if from_port is None or to_port is None:
            return False

        return int(from_port) <= self.SSH_PORT <= int(to_port)


class IAMPolicyNoWildcardActionsRule(Rule):
    """Check that IAM policies do not grant wildcard actions."""

    RULE_ID = "IAM_NO_WILDCARD_ACTIONS"
    TITLE = "IAM policy uses wildcard actions"
    SEVERITY = Severity.HIGH
    DESCRIPTION = (
        "IAM policy statement grants '*' actions. Policies should list the "
        "specific actions they need."
    )
    REMEDIATION = "Replace '*' in Action with the explicit list of required actions."
    RESOURCE_TYPE = "AWS::IAM::Policy"

    # Malformed policy documents are not reported
    DEFAULT_VERDICT = True

    WILDCARD = "*"

    def evaluate(self, logical_id: str, resource: Resource) -> bool:
        """Check that no statement uses a wildcard action."""
        if resource.properties is None:
            return True

        document = get_property(resource.properties, "PolicyDocument")
        if not document:
            return True

        statements = document["Statement"]
        if isinstance(statements, dict):
            statements = [statements]

        return not any(self._has_wildcard(statement) for statement in statements)

    def _has_wildcard(self, statement: dict) -> bool:
        """Check a statement's Action.

        A string action matches when it contains ``*`` anywhere; a list
        matches only when one of its members is exactly ``*``.
        """
        action = statement["Action"]
        if isinstance(action, str):
            return self.WILDCARD in action
        if isinstance(action, list):
            return self.WILDCARD in action
        raise UnevaluableValueError("Action is neither a string nor a list")


class S3BucketLockedDownRule(Rule):
    """Check that S3 buckets are retained and block all public access."""

    RULE_ID = "S3_LOCKED_DOWN"
    TITLE = "S3 bucket not locked down"
    SEVERITY = Severity.CRITICAL
    DESCRIPTION = (
        "S3 bucket is either not retained on delete/replace or does not block "
        "all public access."
    )
    REMEDIATION = (
        "Set DeletionPolicy and UpdateReplacePolicy to Retain and enable all four "
        "PublicAccessBlockConfiguration settings."
    )
    RESOURCE_TYPE = "AWS::S3::Bucket"

    DEFAULT_VERDICT = False

    LOCKED_DOWN_ACCESS_BLOCK = {
        "BlockPublicAcls": True,
        "BlockPublicPolicy": True,
        "IgnorePublicAcls": True,
        "RestrictPublicBuckets": True,
    }

    def evaluate(self, logical_id: str, resource: Resource) -> bool:
        """Check retention policies and public access block."""
        return self._is_retained(resource) and self._is_private(resource)

    def _is_retained(self, resource: Resource) -> bool:
        retain = ResourcePolicy.RETAIN.value
        return resource.deletion_policy == retain and resource.update_replace_policy == retain

    def _is_private(self, resource: Resource) -> bool:
        """Deep-equal comparison against the fully locked down configuration."""
        if resource.properties is None:
            return False

        config = get_property(resource.properties, "PublicAccessBlockConfiguration")
        if not isinstance(config, dict):
            return False

        if set(config) != set(self.LOCKED_DOWN_ACCESS_BLOCK):
            return False

        # Strict booleans only: 1 or "true" do not count
        return all(config[key] is True for key in self.LOCKED_DOWN_ACCESS_BLOCK)


class ASGTagPropagationRule(Rule):
    """Check that autoscaling groups propagate tags and leave capacity to scaling."""

    RULE_ID = "ASG_TAGS_NO_FIXED_CAPACITY"
    TITLE = "Autoscaling group has fixed capacity or unpropagated tags"
    SEVERITY = Severity.MEDIUM
    DESCRIPTION = (
        "Autoscaling group sets DesiredCapacity, which fights deployments and "
        "scaling policies, or none of its tags propagate to launched instances."
    )
    REMEDIATION = (
        "Remove DesiredCapacity and set PropagateAtLaunch: true on the group's tags."
    )
    RESOURCE_TYPE = "AWS::AutoScaling::AutoScalingGroup"

    DEFAULT_VERDICT = False

    def evaluate(self, logical_id: str, resource: Resource) -> bool:
        """Check desired capacity and tag propagation."""
        if resource.properties is None:
            return False

        return not self._is_desired_capacity_set(resource) and self._are_tags_propagated(resource)

    def _is_desired_capacity_set(self, resource: Resource) -> bool:
        return bool(get_property(resource.properties, "DesiredCapacity"))

    def _are_tags_propagated(self, resource: Resource) -> bool:
        return any(tag.propagate_at_launch for tag in resource.tags)


DEFAULT_RULES: list[type[Rule]] = [
    SecurityGroupSSHBlockedRule,
    IAMPolicyNoWildcardActionsRule,
    S3BucketLockedDownRule,
    ASGTagPropagationRule,
]
