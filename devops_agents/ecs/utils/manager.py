import asyncio
import platform
from typing import Any, Callable, Dict, Optional

import boto3
import docker
from botocore.exceptions import BotoCoreError, ClientError
from docker.errors import DockerException

from core.settings import DeploySettings
from devops_agents.ecs.errors import ImagePushError


def response_status(response: Optional[dict]) -> Optional[int]:
    """HTTP status code boto3 attached to ``response``, if any."""
    return ((response or {}).get("ResponseMetadata") or {}).get("HTTPStatusCode")


def is_success(response: Optional[dict]) -> bool:
    return response_status(response) == 200


# transport, credential and service failures of a boto3 call
AWS_ERRORS = (ClientError, BotoCoreError)


def client_error_status(error: Exception) -> Optional[int]:
    return response_status(getattr(error, "response", None))


def client_error_code(error: Exception) -> Optional[str]:
    return (getattr(error, "response", None) or {}).get("Error", {}).get("Code")


def client_error_message(error: Exception) -> str:
    if not isinstance(error, ClientError):
        return f"{type(error).__name__}: {error}"
    err = error.response.get("Error", {})
    return f"{err.get('Code', 'Unknown')}: {err.get('Message', str(error))}"


async def call_aws(method: Callable[..., dict], **kwargs: Any) -> dict:
    """Run a blocking boto3 call without blocking the event loop."""
    return await asyncio.to_thread(method, **kwargs)


class AwsClients:
    """
    Lazily built, cached boto3 clients.

    The registry client authenticates with the ECR credentials; ECS,
    CloudWatch Logs and EC2 share the orchestration credentials.
    """

    def __init__(self, settings: DeploySettings, session_factory=boto3.session.Session):
        self.settings = settings
        self._session_factory = session_factory
        self._clients: Dict[str, Any] = {}

    def _get_client(self, service: str, key: str, secret: str, region: str):
        if client := self._clients.get(service):
            return client
        session = self._session_factory(
            aws_access_key_id=key,
            aws_secret_access_key=secret,
            region_name=region,
        )
        self._clients[service] = session.client(service)
        return self._clients[service]

    @property
    def ecr(self):
        s = self.settings
        return self._get_client("ecr", s.ecr_api_key, s.ecr_api_secret, s.ecr_region)

    @property
    def ecs(self):
        s = self.settings
        return self._get_client("ecs", s.ecs_api_key, s.ecs_api_secret, s.ecs_region)

    @property
    def logs(self):
        s = self.settings
        return self._get_client("logs", s.ecs_api_key, s.ecs_api_secret, s.ecs_region)

    @property
    def ec2(self):
        s = self.settings
        return self._get_client("ec2", s.ecs_api_key, s.ecs_api_secret, s.ecs_region)


class DockerManager:
    _client = None

    @classmethod
    def get_docker_client(cls):
        if cls._client:
            return cls._client
        try:
            cls._client = docker.from_env()
            return cls._client
        except DockerException as e:
            if platform.system() == "Windows":
                hint = "npipe:////./pipe/docker_engine"
            else:
                hint = "unix://var/run/docker.sock"
            raise ImagePushError(
                f"Cannot connect to docker ({hint}), docker engine may not be running: {e}"
            ) from e
