"""Heuristics for spotting stacks that may no longer be in use."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from stack_audit.config import AuditConfig
from stack_audit.models import StackInfo

logger = logging.getLogger(__name__)

ASG_TYPE = "AWS::AutoScaling::AutoScalingGroup"
LAMBDA_TYPE = "AWS::Lambda::Function"

NO_RECENT_UPDATE_AGE = timedelta(days=2 * 365)
NO_RECENT_ASG_DEPLOYMENT_AGE = timedelta(days=31)
NO_RECENT_LAMBDA_DEPLOYMENT_AGE = timedelta(days=183)


class InactiveReason(Enum):
    """Why a stack looks inactive."""

    NO_RECENT_UPDATE = "NoRecentUpdate"
    NO_RECENT_ASG_DEPLOYMENT = "NoRecentAsgDeployment"
    NO_RECENT_LAMBDA_DEPLOYMENT = "NoRecentLambdaDeployment"
    TEST_IN_NAME = "TestInName"
    STACK_CREATE_FAILED = "StackCreateFailed"
    STACK_DELETE_FAILED = "StackDeleteFailed"
    STACK_ROLLBACK_COMPLETE = "StackRollbackComplete"
    STACK_ROLLBACK_FAILED = "StackRollbackFailed"

    @property
    def description(self) -> str:
        return INACTIVE_DESCRIPTIONS[self]


INACTIVE_DESCRIPTIONS = {
    InactiveReason.NO_RECENT_UPDATE: "Stack has not been updated at all in the last 2 years.",
    InactiveReason.NO_RECENT_ASG_DEPLOYMENT: "Stack ASG has not been deployed to in the last month.",
    InactiveReason.NO_RECENT_LAMBDA_DEPLOYMENT: "Stack Lambda has not been updated in the last 6 months.",
    InactiveReason.TEST_IN_NAME: "Stack name contains 'Test', which suggests it may be temporary.",
    InactiveReason.STACK_CREATE_FAILED: "Stack is in the 'CREATE_FAILED' state.",
    InactiveReason.STACK_DELETE_FAILED: "Stack is in the 'DELETE_FAILED' state and must be deleted.",
    InactiveReason.STACK_ROLLBACK_COMPLETE: (
        "Stack is in the 'ROLLBACK_COMPLETE' state and must be deleted."
    ),
    InactiveReason.STACK_ROLLBACK_FAILED: (
        "Stack is in the 'ROLLBACK_FAILED' state. A delete was attempted and failed. "
        "Check the events on the stack and try again."
    ),
}

BAD_STACK_STATES = {
    "CREATE_FAILED": InactiveReason.STACK_CREATE_FAILED,
    "DELETE_FAILED": InactiveReason.STACK_DELETE_FAILED,
    "ROLLBACK_COMPLETE": InactiveReason.STACK_ROLLBACK_COMPLETE,
    "ROLLBACK_FAILED": InactiveReason.STACK_ROLLBACK_FAILED,
}

INACTIVE_CSV_COLUMNS = [
    "ReportTime",
    "StackId",
    "StackName",
    "StackStatus",
    "CreationTime",
    "LastUpdatedTime",
    "Profile",
    "Region",
    "DefinedWithGuCDK",
    "GuCDKVersion",
    "PossiblyInactive",
    "InactiveReason",
    "InactiveDescription",
]

Check = Callable[[StackInfo, datetime], Optional[InactiveReason]]


def _aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _first_resource_of_type(stack: StackInfo, resource_type: str) -> Optional[str]:
    for logical_id, resource in stack.template.resources.items():
        if resource.type == resource_type:
            return logical_id
    return None


def is_standard_service(stack: StackInfo) -> bool:
    """Check if a stack runs an autoscaling group or a Lambda function."""
    return any(
        resource.type in (ASG_TYPE, LAMBDA_TYPE) for resource in stack.template.resources.values()
    )


def bad_stack_state(stack: StackInfo, now: datetime) -> Optional[InactiveReason]:
    return BAD_STACK_STATES.get(stack.stack_status)


def no_recent_update(stack: StackInfo, now: datetime) -> Optional[InactiveReason]:
    last_change = stack.last_updated_time or stack.creation_time
    if last_change is None:
        return None
    if _aware(last_change) < _aware(now) - NO_RECENT_UPDATE_AGE:
        return InactiveReason.NO_RECENT_UPDATE
    return None


def name_suggests_test(stack: StackInfo, now: datetime) -> Optional[InactiveReason]:
    if "test" in stack.stack_name.lower():
        return InactiveReason.TEST_IN_NAME
    return None


def _parse_lambda_timestamp(value: str) -> Optional[datetime]:
    """Parse Lambda's LastModified, e.g. ``2024-01-31T10:15:00.000+0000``."""
    for fmt in ("%Y-%m-%dT%H:%M:%S.%f%z", "%Y-%m-%dT%H:%M:%S%z"):
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    logger.debug("Unrecognised LastModified timestamp %r", value)
    return None


class DeploymentChecker:
    """Checks that need live AWS data about a stack's ASG or Lambda."""

    def __init__(
        self,
        profile: str,
        region: str,
        config: Optional[AuditConfig] = None,
        *,
        session_factory: Callable[..., Any] = boto3.Session,
    ) -> None:
        config = config or AuditConfig()
        session = session_factory(profile_name=profile, region_name=region)
        client_config = Config(retries={"max_attempts": config.sdk_max_attempts, "mode": "standard"})

        self._cfn = session.client("cloudformation", config=client_config)
        self._asg = session.client("autoscaling", config=client_config)
        self._lambda = session.client("lambda", config=client_config)

    def _physical_id(self, stack: StackInfo, logical_id: str) -> Optional[str]:
        response = self._cfn.describe_stack_resource(
            StackName=stack.stack_name, LogicalResourceId=logical_id
        )
        return response.get("StackResourceDetail", {}).get("PhysicalResourceId")

    def no_recent_asg_deployment(
        self, stack: StackInfo, now: datetime
    ) -> Optional[InactiveReason]:
        """No user-requested scaling activity in the last month."""
        logical_id = _first_resource_of_type(stack, ASG_TYPE)
        if logical_id is None:
            return None

        try:
            asg_name = self._physical_id(stack, logical_id)
            response = self._asg.describe_scaling_activities(AutoScalingGroupName=asg_name)
        except (ClientError, BotoCoreError) as e:
            logger.warning("Unable to read scaling activity for %s: %s", stack.stack_name, e)
            return None

        user_requests = [
            activity
            for activity in response.get("Activities", [])
            if "user request" in (activity.get("Cause") or "")
        ]
        if not user_requests:
            return InactiveReason.NO_RECENT_ASG_DEPLOYMENT

        last_request = user_requests[0].get("StartTime")
        if last_request is None:
            return InactiveReason.NO_RECENT_ASG_DEPLOYMENT

        logger.debug(
            "stack:%s; asg:%s; lastActivity:%s", stack.stack_name, logical_id, last_request
        )
        if _aware(last_request) < _aware(now) - NO_RECENT_ASG_DEPLOYMENT_AGE:
            return InactiveReason.NO_RECENT_ASG_DEPLOYMENT
        return None

    def no_recent_lambda_deployment(
        self, stack: StackInfo, now: datetime
    ) -> Optional[InactiveReason]:
        """Function code or configuration unchanged for six months."""
        logical_id = _first_resource_of_type(stack, LAMBDA_TYPE)
        if logical_id is None:
            return None

        try:
            function_name = self._physical_id(stack, logical_id)
            response = self._lambda.get_function(FunctionName=function_name)
        except (ClientError, BotoCoreError) as e:
            logger.warning("Unable to read Lambda function for %s: %s", stack.stack_name, e)
            return None

        last_modified = response.get("Configuration", {}).get("LastModified")
        if not last_modified:
            return None

        modified_at = _parse_lambda_timestamp(last_modified)
        if modified_at is None:
            return None

        logger.debug(
            "stack:%s; lambda:%s; lastModified:%s", stack.stack_name, logical_id, modified_at
        )
        if _aware(modified_at) < _aware(now) - NO_RECENT_LAMBDA_DEPLOYMENT_AGE:
            return InactiveReason.NO_RECENT_LAMBDA_DEPLOYMENT
        return None


@dataclass
class InactiveStackReport:
    """Inactivity verdict for one stack."""

    stack: StackInfo
    report_time: datetime
    reason: Optional[InactiveReason] = None
    provenance_version: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Flat record using the INACTIVE_CSV_COLUMNS keys."""
        return {
            "ReportTime": self.report_time,
            "StackId": self.stack.stack_id,
            "StackName": self.stack.stack_name,
            "StackStatus": self.stack.stack_status,
            "CreationTime": self.stack.creation_time,
            "LastUpdatedTime": self.stack.last_updated_time,
            "Profile": self.stack.profile,
            "Region": self.stack.region,
            "DefinedWithGuCDK": self.provenance_version is not None,
            "GuCDKVersion": self.provenance_version,
            "PossiblyInactive": self.reason is not None,
            "InactiveReason": self.reason.value if self.reason else None,
            "InactiveDescription": self.reason.description if self.reason else None,
        }


def default_checks(checker: DeploymentChecker) -> list[Check]:
    """Checks in the order they are tried; the first reason found wins."""
    return [
        bad_stack_state,
        no_recent_update,
        name_suggests_test,
        checker.no_recent_asg_deployment,
        checker.no_recent_lambda_deployment,
    ]


def find_inactive(
    stacks: list[StackInfo],
    checks: list[Check],
    now: datetime,
    config: Optional[AuditConfig] = None,
) -> list[InactiveStackReport]:
    """Evaluate standard-service stacks against the inactivity checks.

    Stacks without an autoscaling group or Lambda function are skipped.
    Provenance is read from stack-level tags.
    """
    config = config or AuditConfig()

    reports = []
    for stack in stacks:
        if not is_standard_service(stack):
            continue

        reason = None
        for check in checks:
            reason = check(stack, now)
            if reason is not None:
                break

        reports.append(
            InactiveStackReport(
                stack=stack,
                report_time=now,
                reason=reason,
                provenance_version=stack.tags.get(config.provenance_tag_key),
            )
        )
    return reports
