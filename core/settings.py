import os
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(BASE_DIR / ".env")
load_dotenv(BASE_DIR / "core/.env")


class ConfigurationError(Exception):
    """Raised when a required setting is missing or malformed."""

    def __init__(self, message: str, missing: Optional[list[str]] = None):
        super().__init__(message)
        self.missing = missing or []


# field name -> environment variable
REQUIRED_ENV = {
    "ecr_api_key": "ECR_API_KEY",
    "ecr_api_secret": "ECR_API_SECRET",
    "ecr_region": "ECR_REGION",
    "ecs_api_key": "ECS_API_KEY",
    "ecs_api_secret": "ECS_API_SECRET",
    "cluster": "ECS_CLUSTER",
    "subnets": "ECS_SUBNETS",
    "security_group": "ECS_SECURITY_GROUP",
}

OPTIONAL_ENV = {
    "ecs_region": "ECS_REGION",
    "workload_name": "WORKLOAD_NAME",
    "echo_port": "ECHO_PORT",
    "push_tag": "PUSH_TAG",
    "execution_role": "TASK_EXECUTION_ROLE",
    "poll_interval": "POLL_INTERVAL",
    "poll_max_attempts": "POLL_MAX_ATTEMPTS",
    "poll_timeout": "POLL_TIMEOUT",
    "stop_reason": "STOP_REASON",
}


class DeploySettings(BaseModel):
    ecr_api_key: str = Field(..., description="Access key id used for the container registry")
    ecr_api_secret: str = Field(..., description="Secret access key used for the container registry")
    ecr_region: str
    ecs_api_key: str = Field(..., description="Access key id used for ECS, CloudWatch Logs and EC2")
    ecs_api_secret: str
    ecs_region: str
    cluster: str
    subnets: str = Field(..., description="Comma separated subnet ids")
    security_group: str

    workload_name: str = "echo-api"
    echo_port: int = 5000
    push_tag: str = "latest"
    execution_role: str = "ecsTaskExecutionRole"
    poll_interval: float = 5.0
    poll_max_attempts: Optional[int] = Field(None, gt=0)
    poll_timeout: Optional[float] = Field(None, gt=0)
    stop_reason: str = "User Stop"

    @property
    def subnet_ids(self) -> list[str]:
        return [subnet.strip() for subnet in self.subnets.split(",") if subnet.strip()]

    @property
    def task_family(self) -> str:
        return f"task-{self.workload_name}"

    @property
    def container_name(self) -> str:
        return f"task-container-{self.workload_name}"

    @property
    def log_group(self) -> str:
        return f"/ecs/{self.task_family}"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "DeploySettings":
        """
        Build settings from the environment (``os.environ`` by default).

        Every missing required variable is reported at once so the user can
        fix the configuration in a single pass.
        """
        environ = os.environ if environ is None else environ
        values = {}
        missing = []
        for field, env_name in REQUIRED_ENV.items():
            value = (environ.get(env_name) or "").strip()
            if value:
                values[field] = value
            else:
                missing.append(env_name)
        for field, env_name in OPTIONAL_ENV.items():
            value = (environ.get(env_name) or "").strip()
            if value:
                values[field] = value
        if "ecs_region" not in values and "ecr_region" in values:
            values["ecs_region"] = values["ecr_region"]

        if missing:
            raise ConfigurationError(
                f"Missing required settings: {', '.join(missing)}", missing=missing
            )
        try:
            settings = cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid settings: {e}") from e
        if not settings.subnet_ids:
            raise ConfigurationError("ECS_SUBNETS does not contain any subnet id", missing=["ECS_SUBNETS"])
        return settings
