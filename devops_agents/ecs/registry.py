import asyncio
import base64
import re
import uuid
from typing import Callable, Optional

from docker.errors import DockerException
from docker.utils import parse_repository_tag

from core.utils import logged, printers
from devops_agents.ecs.errors import ImagePushError, RegistryAuthError, RepositoryCreateError
from devops_agents.ecs.schemas import ImageReference, PushProgress
from devops_agents.ecs.utils.manager import (
    AWS_ERRORS,
    call_aws,
    client_error_message,
    client_error_status,
    is_success,
    response_status,
)

REPOSITORY_NAMESPACE = "packages"
REGISTRY_USERNAME = "AWS"
_INVALID_REPOSITORY_CHARS = re.compile(r"[^a-z0-9._/-]+")


def print_push_progress(progress: PushProgress) -> None:
    printers["gray"](str(progress))


def unique_suffix() -> str:
    return uuid.uuid4().hex


def decode_authorization_token(token: str) -> str:
    """ECR tokens are base64 of ``user:password``; return the password."""
    try:
        decoded = base64.b64decode(token).decode("utf-8")
    except (ValueError, UnicodeDecodeError) as e:
        raise RegistryAuthError(f"Malformed registry authorization token: {e}") from e
    _, sep, secret = decoded.partition(":")
    if not sep or not secret:
        raise RegistryAuthError("Malformed registry authorization token")
    return secret


class RegistryPublisher:
    """Push a local image to a freshly created, run-unique ECR repository."""

    def __init__(self,
                ecr_client,
                docker_client,
                tag: str = "latest",
                suffix_factory: Callable[[], str] = unique_suffix,
                progress: Optional[Callable[[PushProgress], None]] = print_push_progress):
        self.ecr = ecr_client
        self.docker = docker_client
        self.tag = tag
        self.suffix_factory = suffix_factory
        self.progress = progress

    def repository_name_for(self, local_image_name: str) -> str:
        repository, _ = parse_repository_tag(local_image_name.strip())
        base = _INVALID_REPOSITORY_CHARS.sub("-", repository.lower()).strip("-/")
        return f"{REPOSITORY_NAMESPACE}/{base}-{self.suffix_factory()}"

    @logged("warm_yellow")
    async def publish(self, local_image_name: str) -> ImageReference:
        repository_name = self.repository_name_for(local_image_name)
        repository_uri = await self.create_repository(repository_name)

        printers["white"]("Generating access token to push the docker image...")
        password, endpoint = await self.authorize()

        image = ImageReference(
            local_name=local_image_name,
            repository_name=repository_name,
            repository_uri=repository_uri,
            tag=self.tag,
        )
        printers["white"]("Associating remote repository uri with given local docker image...")
        await asyncio.to_thread(self._tag_image, image)
        await asyncio.to_thread(self._push_image, image, password, endpoint)
        printers["green"](f"✅ Docker push completed: {image.image_uri}")
        return image

    async def create_repository(self, repository_name: str) -> str:
        try:
            response = await call_aws(self.ecr.create_repository, repositoryName=repository_name)
        except AWS_ERRORS as e:
            raise RepositoryCreateError(
                f"Failed to create repository {repository_name}: {client_error_message(e)}",
                status_code=client_error_status(e),
            ) from e
        if not is_success(response):
            raise RepositoryCreateError(
                f"Failed to create repository {repository_name}",
                status_code=response_status(response),
            )
        repository_uri = response["repository"]["repositoryUri"]
        printers["green"](f"✅ Repository created. Uri {repository_uri}")
        return repository_uri

    async def authorize(self) -> tuple[str, str]:
        """Return ``(password, proxy_endpoint)`` for a registry login."""
        try:
            response = await call_aws(self.ecr.get_authorization_token)
        except AWS_ERRORS as e:
            raise RegistryAuthError(
                f"Failed to generate access token: {client_error_message(e)}",
                status_code=client_error_status(e),
            ) from e
        if not is_success(response) or not response.get("authorizationData"):
            raise RegistryAuthError(
                "Failed to generate access token",
                status_code=response_status(response),
            )
        data = response["authorizationData"][0]
        return decode_authorization_token(data["authorizationToken"]), data["proxyEndpoint"]

    def _tag_image(self, image: ImageReference) -> None:
        try:
            tagged = self.docker.api.tag(image.local_name, image.repository_uri, image.tag, force=True)
        except DockerException as e:
            raise ImagePushError(f"Failed to tag {image.local_name}: {e}") from e
        if not tagged:
            raise ImagePushError(f"Failed to tag {image.local_name} as {image.image_uri}")

    def _push_image(self, image: ImageReference, password: str, endpoint: str) -> None:
        auth_config = {
            "username": REGISTRY_USERNAME,
            "password": password,
            "serveraddress": endpoint,
        }
        try:
            stream = self.docker.api.push(
                image.repository_uri,
                tag=image.tag,
                auth_config=auth_config,
                stream=True,
                decode=True,
            )
            for chunk in stream:
                if error := chunk.get("error"):
                    raise ImagePushError(f"Failed to push {image.image_uri}: {error}")
                if self.progress:
                    self.progress(PushProgress.from_chunk(chunk))
        except DockerException as e:
            raise ImagePushError(f"Failed to push {image.image_uri}: {e}") from e
