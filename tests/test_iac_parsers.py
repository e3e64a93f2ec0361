"""Tests for CloudFormation template parsing."""

import json

import pytest

from stack_audit.iac.base import ParseError
from stack_audit.iac.cloudformation import CloudFormationParser, parse_template


class TestCloudFormationParser:
    """Tests for CloudFormation parser."""

    def test_parse_yaml_template(self):
        content = """
AWSTemplateFormatVersion: '2010-09-09'
Resources:
  MyBucket:
    Type: AWS::S3::Bucket
    DeletionPolicy: Retain
    UpdateReplacePolicy: Retain
    Properties:
      BucketName: my-bucket
"""
        parser = CloudFormationParser()
        template = parser.parse(content, "template.yaml")

        assert len(template) == 1
        bucket = template.resources["MyBucket"]
        assert bucket.type == "AWS::S3::Bucket"
        assert bucket.properties == {"BucketName": "my-bucket"}
        assert bucket.deletion_policy == "Retain"
        assert bucket.update_replace_policy == "Retain"

    def test_parse_json_template(self):
        content = json.dumps(
            {
                "AWSTemplateFormatVersion": "2010-09-09",
                "Resources": {
                    "MySecurityGroup": {
                        "Type": "AWS::EC2::SecurityGroup",
                        "Properties": {"GroupDescription": "Test"},
                    }
                },
            }
        )

        template = parse_template(content, "template.json")

        assert list(template.resources) == ["MySecurityGroup"]
        assert template.resources["MySecurityGroup"].type == "AWS::EC2::SecurityGroup"

    def test_parse_intrinsic_tags(self):
        content = """
Resources:
  Group:
    Type: AWS::EC2::SecurityGroup
    Properties:
      VpcId: !Ref Vpc
      GroupDescription: !Sub "${Stage} group"
      SecurityGroupIngress: !If
        - AllowSsh
        - - IpProtocol: tcp
            FromPort: 22
            ToPort: 22
        - !Ref AWS::NoValue
  Output:
    Type: AWS::SSM::Parameter
    Properties:
      Value: !GetAtt Group.GroupId
"""
        template = parse_template(content)
        props = template.resources["Group"].properties

        assert props["VpcId"] == {"Ref": "Vpc"}
        assert props["GroupDescription"] == {"Fn::Sub": "${Stage} group"}
        condition, when_true, when_false = props["SecurityGroupIngress"]["Fn::If"]
        assert condition == "AllowSsh"
        assert when_true == [{"IpProtocol": "tcp", "FromPort": 22, "ToPort": 22}]
        assert when_false == {"Ref": "AWS::NoValue"}
        assert template.resources["Output"].properties["Value"] == {
            "Fn::GetAtt": ["Group", "GroupId"]
        }

    def test_preserves_declaration_order(self):
        content = """
Resources:
  Zeta:
    Type: AWS::S3::Bucket
  Alpha:
    Type: AWS::IAM::Policy
  Mid:
    Type: AWS::S3::Bucket
"""
        template = parse_template(content)

        assert list(template.resources) == ["Zeta", "Alpha", "Mid"]

    def test_missing_resources_is_empty(self):
        template = parse_template('{"AWSTemplateFormatVersion": "2010-09-09"}')

        assert len(template) == 0

    def test_resource_without_properties(self):
        template = parse_template("Resources:\n  Topic:\n    Type: AWS::SNS::Topic\n")

        assert template.resources["Topic"].properties is None

    def test_parameters(self):
        content = """
Parameters:
  Stage:
    Type: String
    AllowedValues: [CODE, PROD]
    Default: CODE
Resources: {}
"""
        template = parse_template(content)

        stage = template.parameters["Stage"]
        assert stage.type == "String"
        assert stage.default == "CODE"
        assert stage.allowed_values == ["CODE", "PROD"]

    @pytest.mark.parametrize("content", ["", "just a string", "- a\n- list\n", "{not: [valid"])
    def test_undecodable_content_raises(self, content):
        with pytest.raises(ParseError) as exc_info:
            parse_template(content, "broken.template")

        assert "broken.template" in str(exc_info.value)

    def test_supported_extensions(self):
        extensions = CloudFormationParser.supported_extensions()

        assert ".yaml" in extensions
        assert ".json" in extensions
        assert ".template" in extensions
