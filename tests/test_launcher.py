"""Tests for the log group, task definition and run-task steps."""

import pytest
from botocore import stub

from conftest import REGISTRY, TASK_ARN, ok, task_payload
from devops_agents.ecs.errors import LogSinkError, TaskRunError
from devops_agents.ecs.launcher import TaskLauncher
from devops_agents.ecs.schemas import ImageReference

TASK_DEFINITION_ARN = "arn:aws:ecs:us-east-1:123456789012:task-definition/task-echo-api:7"

IMAGE = ImageReference(
    local_name="echo-api:latest",
    repository_name="packages/echo-api-abc",
    repository_uri=f"{REGISTRY}/packages/echo-api-abc",
)


def run_task_params(settings, task_definition):
    return {
        "cluster": "echo-cluster",
        "count": 1,
        "launchType": "FARGATE",
        "taskDefinition": task_definition,
        "networkConfiguration": {
            "awsvpcConfiguration": {
                "subnets": ["subnet-aaa", "subnet-bbb"],
                "securityGroups": ["sg-123"],
                "assignPublicIp": "ENABLED",
            }
        },
        "overrides": {"containerOverrides": [{"name": settings.container_name}]},
    }


@pytest.fixture
def launcher(ecs_client, logs_client, settings):
    return TaskLauncher(ecs_client, logs_client, settings)


class TestEnsureLogSink:

    @pytest.mark.asyncio
    async def test_creates_missing_group(self, launcher, logs_client):
        with stub.Stubber(logs_client) as stubber:
            stubber.add_response(
                "describe_log_groups",
                ok(logGroups=[{"logGroupName": "/ecs/task-echo-api-old"}]),
                expected_params={"logGroupNamePrefix": "/ecs/task-echo-api"},
            )
            stubber.add_response(
                "create_log_group", ok(), expected_params={"logGroupName": "/ecs/task-echo-api"}
            )
            assert await launcher.ensure_log_sink() is True
            stubber.assert_no_pending_responses()

    @pytest.mark.asyncio
    async def test_reuses_group_ignoring_case(self, launcher, logs_client):
        with stub.Stubber(logs_client) as stubber:
            stubber.add_response(
                "describe_log_groups",
                ok(logGroups=[{"logGroupName": "/ECS/Task-Echo-Api"}]),
                expected_params={"logGroupNamePrefix": "/ecs/task-echo-api"},
            )
            assert await launcher.ensure_log_sink() is False
            stubber.assert_no_pending_responses()

    @pytest.mark.asyncio
    async def test_already_exists_race_is_tolerated(self, launcher, logs_client):
        with stub.Stubber(logs_client) as stubber:
            stubber.add_response("describe_log_groups", ok(logGroups=[]))
            stubber.add_client_error(
                "create_log_group", service_error_code="ResourceAlreadyExistsException"
            )
            assert await launcher.ensure_log_sink() is False

    @pytest.mark.asyncio
    async def test_create_failure(self, launcher, logs_client):
        with stub.Stubber(logs_client) as stubber:
            stubber.add_response("describe_log_groups", ok(logGroups=[]))
            stubber.add_client_error(
                "create_log_group", service_error_code="AccessDeniedException", http_status_code=403
            )
            with pytest.raises(LogSinkError) as exc:
                await launcher.ensure_log_sink()
        assert exc.value.status_code == 403

    @pytest.mark.asyncio
    async def test_create_non_success_status(self, launcher, logs_client):
        with stub.Stubber(logs_client) as stubber:
            stubber.add_response("describe_log_groups", ok(logGroups=[]))
            stubber.add_response("create_log_group", {"ResponseMetadata": {"HTTPStatusCode": 500}})
            with pytest.raises(LogSinkError) as exc:
                await launcher.ensure_log_sink()
        assert exc.value.status_code == 500


class TestTaskDefinition:

    def test_build(self, launcher):
        request = launcher.build_task_definition(IMAGE).to_request()

        assert request["family"] == "task-echo-api"
        assert request["requiresCompatibilities"] == ["FARGATE"]
        assert request["networkMode"] == "awsvpc"
        assert (request["cpu"], request["memory"]) == ("256", "512")
        assert request["executionRoleArn"] == "ecsTaskExecutionRole"
        [container] = request["containerDefinitions"]
        assert container["name"] == "task-container-echo-api"
        assert container["image"] == f"{REGISTRY}/packages/echo-api-abc:latest"
        assert container["portMappings"] == [{"containerPort": 5000, "protocol": "tcp"}]
        assert container["logConfiguration"] == {
            "logDriver": "awslogs",
            "options": {
                "awslogs-group": "/ecs/task-echo-api",
                "awslogs-region": "us-east-1",
                "awslogs-stream-prefix": "ecs",
            },
        }


class TestLaunch:

    @pytest.mark.asyncio
    async def test_runs_registered_revision(self, launcher, ecs_client, settings):
        with stub.Stubber(ecs_client) as stubber:
            stubber.add_response(
                "register_task_definition",
                ok(taskDefinition={"taskDefinitionArn": TASK_DEFINITION_ARN, "family": "task-echo-api"}),
                expected_params=launcher.build_task_definition(IMAGE).to_request(),
            )
            stubber.add_response(
                "run_task",
                ok(tasks=[task_payload("PROVISIONING")], failures=[]),
                expected_params=run_task_params(settings, TASK_DEFINITION_ARN),
            )
            task = await launcher.launch(IMAGE)
            stubber.assert_no_pending_responses()

        assert task.task_arn == TASK_ARN
        assert task.last_status == "PROVISIONING"

    @pytest.mark.asyncio
    async def test_registration_failure_falls_back_to_family(self, launcher, ecs_client, settings):
        with stub.Stubber(ecs_client) as stubber:
            stubber.add_client_error(
                "register_task_definition", service_error_code="ClientException"
            )
            stubber.add_response(
                "run_task",
                ok(tasks=[task_payload("PENDING")]),
                expected_params=run_task_params(settings, "task-echo-api"),
            )
            task = await launcher.launch(IMAGE)
        assert task.task_arn == TASK_ARN

    @pytest.mark.asyncio
    async def test_empty_task_list_is_fatal(self, launcher, ecs_client):
        with stub.Stubber(ecs_client) as stubber:
            stubber.add_response(
                "run_task",
                ok(tasks=[], failures=[{"arn": "arn:cluster", "reason": "RESOURCE:MEMORY"}]),
            )
            with pytest.raises(TaskRunError, match="RESOURCE:MEMORY") as exc:
                await launcher.run("task-echo-api")
        assert exc.value.task_arn is None

    @pytest.mark.asyncio
    async def test_non_success_status_is_fatal(self, launcher, ecs_client):
        with stub.Stubber(ecs_client) as stubber:
            stubber.add_response(
                "run_task",
                {"tasks": [task_payload("PENDING")], "ResponseMetadata": {"HTTPStatusCode": 503}},
            )
            with pytest.raises(TaskRunError) as exc:
                await launcher.run("task-echo-api")
        assert exc.value.status_code == 503

    @pytest.mark.asyncio
    async def test_run_client_error(self, launcher, ecs_client):
        with stub.Stubber(ecs_client) as stubber:
            stubber.add_client_error(
                "run_task", service_error_code="ClusterNotFoundException", http_status_code=400
            )
            with pytest.raises(TaskRunError, match="ClusterNotFoundException"):
                await launcher.run("task-echo-api")
