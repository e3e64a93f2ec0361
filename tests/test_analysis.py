"""Tests for rule dispatch and metadata queries."""

from datetime import datetime, timezone

import pytest

from stack_audit.analysis import (
    build_stack_report,
    has_provenance_tag,
    provenance_version,
    validate_resources,
)
from stack_audit.config import AuditConfig
from stack_audit.iac.cloudformation import parse_template
from stack_audit.iac.rules.registry import create_registry
from stack_audit.models import Resource, ResourceTypeReport, StackInfo, Template

PROVENANCE_CONFIG = AuditConfig(provenance_tag_key="managed-by-toolchain")


@pytest.fixture
def mixed_template():
    """A template with passing, failing and unassessed resource types."""
    return parse_template(
        """
Resources:
  OpenGroup:
    Type: AWS::EC2::SecurityGroup
    Properties:
      SecurityGroupIngress:
        - IpProtocol: tcp
          FromPort: 1
          ToPort: 65535
  Bucket:
    Type: AWS::S3::Bucket
    DeletionPolicy: Retain
    UpdateReplacePolicy: Retain
    Properties:
      PublicAccessBlockConfiguration:
        BlockPublicAcls: true
        BlockPublicPolicy: true
        IgnorePublicAcls: true
        RestrictPublicBuckets: true
  Function:
    Type: AWS::Lambda::Function
    Properties:
      Runtime: nodejs20.x
  ClosedGroup:
    Type: AWS::EC2::SecurityGroup
    Properties:
      GroupDescription: closed
"""
    )


class TestValidateResources:
    """Tests for validate_resources."""

    def test_empty_template(self):
        assert validate_resources(Template.empty()) == []

    def test_one_report_per_type_in_first_seen_order(self, mixed_template):
        reports = validate_resources(mixed_template, create_registry())

        assert reports == [
            ResourceTypeReport("AWS::EC2::SecurityGroup", False),
            ResourceTypeReport("AWS::S3::Bucket", True),
            ResourceTypeReport("AWS::Lambda::Function", None),
        ]

    def test_one_failing_resource_fails_the_type(self, mixed_template):
        """The closed group passes on its own but the type still fails."""
        reports = {r.resource_type: r for r in validate_resources(mixed_template)}

        assert reports["AWS::EC2::SecurityGroup"].follows_best_practice is False

    def test_unassessed_type_has_no_verdict(self):
        template = Template(resources={"Widget": Resource(type="Custom::Widget")})

        (report,) = validate_resources(template)

        assert report.assessed is False
        assert report.to_dict() == {"ResourceType": "Custom::Widget"}

    def test_disabled_rule_leaves_type_unassessed(self, mixed_template):
        registry = create_registry(AuditConfig(disabled_rules=["SG_SSH_BLOCKED"]))

        reports = {r.resource_type: r for r in validate_resources(mixed_template, registry)}

        assert reports["AWS::EC2::SecurityGroup"].follows_best_practice is None

    def test_repeated_runs_agree(self, mixed_template):
        assert validate_resources(mixed_template) == validate_resources(mixed_template)


class TestProvenance:
    """Tests for the provenance tag queries."""

    def test_tagged_resource(self):
        template = Template(
            resources={
                "Bucket": Resource(
                    type="AWS::S3::Bucket",
                    properties={"Tags": [{"Key": "managed-by-toolchain", "Value": "2.3.0"}]},
                )
            }
        )

        assert has_provenance_tag(template, PROVENANCE_CONFIG) is True
        assert provenance_version(template, PROVENANCE_CONFIG) == "2.3.0"

    def test_first_tag_wins(self):
        template = Template(
            resources={
                "A": Resource(type="AWS::S3::Bucket", properties={"Tags": [{"Key": "Stage", "Value": "PROD"}]}),
                "B": Resource(
                    type="AWS::SNS::Topic",
                    properties={"Tags": [{"Key": "managed-by-toolchain", "Value": "1.0.0"}]},
                ),
                "C": Resource(
                    type="AWS::SQS::Queue",
                    properties={"Tags": [{"Key": "managed-by-toolchain", "Value": "2.0.0"}]},
                ),
            }
        )

        assert provenance_version(template, PROVENANCE_CONFIG) == "1.0.0"

    def test_untagged_template(self):
        template = Template(
            resources={"Bucket": Resource(type="AWS::S3::Bucket", properties={"BucketName": "b"})}
        )

        assert has_provenance_tag(template, PROVENANCE_CONFIG) is False
        assert provenance_version(template, PROVENANCE_CONFIG) is None

    def test_default_tag_key(self):
        template = Template(
            resources={
                "Bucket": Resource(
                    type="AWS::S3::Bucket",
                    properties={"Tags": [{"Key": "gu:cdk:version", "Value": "49.0.0"}]},
                )
            }
        )

        assert provenance_version(template) == "49.0.0"
        assert has_provenance_tag(template, PROVENANCE_CONFIG) is False

    def test_malformed_tags_are_ignored(self):
        template = Template(
            resources={
                "Bucket": Resource(
                    type="AWS::S3::Bucket",
                    properties={"Tags": ["oops", {"Value": "no key"}, {"Key": "managed-by-toolchain", "Value": 3}]},
                ),
                "Topic": Resource(type="AWS::SNS::Topic", properties={"Tags": {"Ref": "Tags"}}),
            }
        )

        assert provenance_version(template, PROVENANCE_CONFIG) == "3"


class TestBuildStackReport:
    """Tests for build_stack_report."""

    def test_report_fields(self, mixed_template):
        now = datetime(2024, 5, 1, tzinfo=timezone.utc)
        stack = StackInfo(
            stack_id="arn:aws:cloudformation:eu-west-1:1:stack/app/abc",
            stack_name="app",
            stack_status="UPDATE_COMPLETE",
            profile="deployTools",
            region="eu-west-1",
            template=mixed_template,
        )

        report = build_stack_report(stack, now, config=PROVENANCE_CONFIG)

        assert report.report_time == now
        assert report.defined_with_provenance_tag is False
        assert report.provenance_version is None
        assert report.failing_types == ["AWS::EC2::SecurityGroup"]

        data = report.to_dict()
        assert data["StackName"] == "app"
        assert data["ReportTime"] == "2024-05-01T00:00:00+00:00"
        assert data["ResourceTypes"][2] == {"ResourceType": "AWS::Lambda::Function"}

    def test_missing_template(self):
        stack = StackInfo(
            stack_id="id", stack_name="gone", stack_status="CREATE_COMPLETE", profile="p", region="r"
        )

        report = build_stack_report(stack, datetime.now(timezone.utc))

        assert report.resource_types == []
        assert report.failing_types == []
