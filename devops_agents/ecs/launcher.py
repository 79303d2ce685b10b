from typing import Optional

from core.settings import DeploySettings
from core.utils import logged, printers
from devops_agents.ecs.errors import LogSinkError, TaskRegistrationError, TaskRunError
from devops_agents.ecs.schemas import (
    ClusterConfig,
    ContainerSpec,
    ImageReference,
    TaskDefinition,
    TaskInstance,
)
from devops_agents.ecs.utils.manager import (
    AWS_ERRORS,
    call_aws,
    client_error_code,
    client_error_message,
    client_error_status,
    is_success,
    response_status,
)

LAUNCH_TYPE = "FARGATE"
LOG_STREAM_PREFIX = "ecs"


class TaskLauncher:
    """Registers the echo task definition and runs a single Fargate task."""

    def __init__(self, ecs_client, logs_client, settings: DeploySettings):
        self.ecs = ecs_client
        self.logs = logs_client
        self.settings = settings

    @property
    def cluster_config(self) -> ClusterConfig:
        return ClusterConfig(
            cluster=self.settings.cluster,
            subnets=self.settings.subnet_ids,
            security_group=self.settings.security_group,
            region=self.settings.ecs_region,
        )

    @logged("warm_yellow")
    async def ensure_log_sink(self, log_group: Optional[str] = None) -> bool:
        """
        Create the log group unless one with the same name (ignoring case)
        already exists. Returns True when a group was created.
        """
        log_group = log_group or self.settings.log_group
        try:
            response = await call_aws(self.logs.describe_log_groups, logGroupNamePrefix=log_group)
        except AWS_ERRORS as e:
            raise LogSinkError(
                f"Failed to list log groups: {client_error_message(e)}",
                status_code=client_error_status(e),
            ) from e

        existing = response.get("logGroups") or []
        if any(group.get("logGroupName", "").lower() == log_group.lower() for group in existing):
            printers["white"]("Log group exists...proceeding...")
            return False

        try:
            response = await call_aws(self.logs.create_log_group, logGroupName=log_group)
        except AWS_ERRORS as e:
            if client_error_code(e) == "ResourceAlreadyExistsException":
                printers["white"]("Log group exists...proceeding...")
                return False
            raise LogSinkError(
                f"Failed to create log group {log_group}: {client_error_message(e)}",
                status_code=client_error_status(e),
            ) from e
        if not is_success(response):
            raise LogSinkError(
                f"Failed to create log group {log_group}",
                status_code=response_status(response),
            )
        printers["white"](f"Log Group creation status {response_status(response)}")
        return True

    def build_task_definition(self, image: ImageReference) -> TaskDefinition:
        s = self.settings
        container = ContainerSpec(
            name=s.container_name,
            image=image.image_uri,
            port=s.echo_port,
            log_group=s.log_group,
            log_region=s.ecs_region,
            log_stream_prefix=LOG_STREAM_PREFIX,
        )
        return TaskDefinition(
            family=s.task_family,
            requires_compatibilities=[LAUNCH_TYPE],
            execution_role=s.execution_role,
            containers=[container],
        )

    async def register(self, definition: TaskDefinition) -> str:
        """Register a new revision of ``definition`` and return its ARN."""
        try:
            response = await call_aws(self.ecs.register_task_definition, **definition.to_request())
        except AWS_ERRORS as e:
            raise TaskRegistrationError(
                f"Failed to register task definition {definition.family}: {client_error_message(e)}",
                status_code=client_error_status(e),
            ) from e
        if not is_success(response):
            raise TaskRegistrationError(
                f"Failed to register task definition {definition.family}",
                status_code=response_status(response),
            )
        printers["white"](f"Task creation status {response_status(response)}")
        return response["taskDefinition"]["taskDefinitionArn"]

    @logged("warm_yellow")
    async def launch(self, image: ImageReference) -> TaskInstance:
        definition = self.build_task_definition(image)
        try:
            task_definition = await self.register(definition)
        except TaskRegistrationError as e:
            # run with the latest active revision of the family instead
            printers["light_red"](f"❌ {e}; falling back to family {definition.family}")
            task_definition = definition.family
        return await self.run(task_definition)

    async def run(self, task_definition: str) -> TaskInstance:
        config = self.cluster_config
        try:
            response = await call_aws(
                self.ecs.run_task,
                cluster=config.cluster,
                count=1,
                launchType=LAUNCH_TYPE,
                taskDefinition=task_definition,
                networkConfiguration={
                    "awsvpcConfiguration": {
                        "subnets": config.subnets,
                        "securityGroups": [config.security_group],
                        "assignPublicIp": "ENABLED",
                    }
                },
                overrides={"containerOverrides": [{"name": self.settings.container_name}]},
            )
        except AWS_ERRORS as e:
            raise TaskRunError(
                f"Failed to run task: {client_error_message(e)}",
                status_code=client_error_status(e),
            ) from e

        if not is_success(response):
            raise TaskRunError("Failed to run task", status_code=response_status(response))
        tasks = response.get("tasks") or []
        if not tasks:
            reasons = ", ".join(
                f"{failure.get('arn', '?')}: {failure.get('reason', 'unknown')}"
                for failure in response.get("failures") or []
            )
            raise TaskRunError(
                f"Failed to create task{f' ({reasons})' if reasons else ''}",
                status_code=response_status(response),
            )
        task = TaskInstance.model_validate(tasks[0])
        printers["green"](f"✅ Task started [task-arn = {task.task_arn}]")
        return task
