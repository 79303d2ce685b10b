"""Shared fixtures: stubbed boto3 clients, a fake docker engine and settings."""

from unittest.mock import MagicMock

import boto3
import pytest

from core.settings import DeploySettings

REGION = "us-east-1"
REGISTRY = "123456789012.dkr.ecr.us-east-1.amazonaws.com"
TASK_ARN = "arn:aws:ecs:us-east-1:123456789012:task/echo-cluster/0123456789abcdef"
OK = {"ResponseMetadata": {"HTTPStatusCode": 200}}


def ok(**payload):
    """A service response carrying a 200 status like boto3 adds."""
    return {**payload, **OK}


def task_payload(status, private_ip="10.0.1.5", task_arn=TASK_ARN):
    return {
        "taskArn": task_arn,
        "lastStatus": status,
        "containers": [
            {
                "name": "task-container-echo-api",
                "networkInterfaces": [
                    {"attachmentId": "attachment-1", "privateIpv4Address": private_ip}
                ],
            }
        ],
    }


def make_client(service):
    return boto3.client(
        service,
        region_name=REGION,
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


@pytest.fixture
def settings():
    return DeploySettings(
        ecr_api_key="ecr-key",
        ecr_api_secret="ecr-secret",
        ecr_region=REGION,
        ecs_api_key="ecs-key",
        ecs_api_secret="ecs-secret",
        ecs_region=REGION,
        cluster="echo-cluster",
        subnets="subnet-aaa, subnet-bbb",
        security_group="sg-123",
    )


@pytest.fixture
def ecr_client():
    return make_client("ecr")


@pytest.fixture
def ecs_client():
    return make_client("ecs")


@pytest.fixture
def logs_client():
    return make_client("logs")


@pytest.fixture
def ec2_client():
    return make_client("ec2")


@pytest.fixture
def docker_client():
    client = MagicMock()
    client.api.tag.return_value = True
    client.api.push.return_value = iter(
        [
            {"status": "The push refers to repository"},
            {"status": "Pushing", "id": "layer-1", "progressDetail": {"current": 512, "total": 1024}},
            {"status": "Pushed", "id": "layer-1", "progressDetail": {}},
            {"status": "latest: digest: sha256:abc size: 528"},
        ]
    )
    return client
