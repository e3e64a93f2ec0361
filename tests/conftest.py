"""Shared fixtures and AWS client fakes."""

import pytest
from botocore.exceptions import ClientError


def client_error(operation: str, code: str = "AccessDenied") -> ClientError:
    """Build a botocore ClientError for a failed call."""
    return ClientError({"Error": {"Code": code, "Message": f"{operation} denied"}}, operation)


class FakePaginator:
    def __init__(self, pages=None, error=None):
        self.pages = pages or []
        self.error = error

    def paginate(self, **kwargs):
        if self.error is not None:
            raise self.error
        yield from self.pages


class FakeCloudFormation:
    """Stands in for a boto3 CloudFormation client."""

    def __init__(self, stacks=None, templates=None, physical_ids=None, error=None):
        self.stacks = stacks or []
        self.templates = templates or {}
        self.physical_ids = physical_ids or {}
        self.error = error
        self.get_template_calls = []

    def get_paginator(self, name):
        assert name == "describe_stacks"
        return FakePaginator(pages=[{"Stacks": self.stacks}], error=self.error)

    def get_template(self, StackName):
        self.get_template_calls.append(StackName)
        body = self.templates.get(StackName)
        if isinstance(body, Exception):
            raise body
        return {"TemplateBody": body}

    def describe_stack_resource(self, StackName, LogicalResourceId):
        return {
            "StackResourceDetail": {
                "PhysicalResourceId": self.physical_ids.get(LogicalResourceId, LogicalResourceId)
            }
        }


class FakeAutoScaling:
    def __init__(self, activities=None, error=None):
        self.activities = activities or []
        self.error = error

    def describe_scaling_activities(self, AutoScalingGroupName):
        if self.error is not None:
            raise self.error
        return {"Activities": self.activities}


class FakeLambda:
    def __init__(self, last_modified=None, error=None):
        self.last_modified = last_modified
        self.error = error

    def get_function(self, FunctionName):
        if self.error is not None:
            raise self.error
        return {"Configuration": {"FunctionName": FunctionName, "LastModified": self.last_modified}}


class FakeSession:
    """Stands in for boto3.Session, handing out prepared clients."""

    def __init__(self, clients, profile_name=None, region_name=None):
        self.clients = clients
        self.profile_name = profile_name
        self.region_name = region_name
        self.client_configs = {}

    def client(self, service_name, config=None):
        self.client_configs[service_name] = config
        return self.clients[service_name]


@pytest.fixture
def session_factory():
    """Build a session factory that hands out the given clients."""

    def make(**clients):
        sessions = []

        def factory(profile_name=None, region_name=None):
            session = FakeSession(clients, profile_name, region_name)
            sessions.append(session)
            return session

        factory.sessions = sessions
        return factory

    return make
