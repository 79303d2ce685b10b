from enum import StrEnum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.schemas import DeployOutput


class TaskStatus(StrEnum):
    PROVISIONING = "PROVISIONING"
    PENDING = "PENDING"
    ACTIVATING = "ACTIVATING"
    RUNNING = "RUNNING"
    DEACTIVATING = "DEACTIVATING"
    STOPPING = "STOPPING"
    DEPROVISIONING = "DEPROVISIONING"
    STOPPED = "STOPPED"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["TaskStatus"]:
        """Case-insensitive lookup; unknown statuses map to None."""
        try:
            return cls((value or "").upper())
        except ValueError:
            return None


class DeployStage(StrEnum):
    PUBLISH = "publish"
    LOG_SINK = "log-sink"
    LAUNCH = "launch"
    POLL = "poll"
    RESOLVE = "resolve"
    VERIFY = "verify"
    TEARDOWN = "teardown"
    DONE = "done"


class ImageReference(BaseModel):
    model_config = ConfigDict(frozen=True)

    local_name: str = Field(..., description="Local image name the user asked to publish")
    repository_name: str = Field(..., description="Generated, run-unique remote repository name")
    repository_uri: str = Field(..., description="Canonical registry URI of the repository")
    tag: str = "latest"

    @property
    def image_uri(self) -> str:
        return f"{self.repository_uri}:{self.tag}"


class PushProgress(BaseModel):
    status: Optional[str] = None
    id: Optional[str] = None
    current: Optional[int] = None
    total: Optional[int] = None

    @classmethod
    def from_chunk(cls, chunk: dict) -> "PushProgress":
        detail = chunk.get("progressDetail") or {}
        return cls(
            status=chunk.get("status"),
            id=chunk.get("id"),
            current=detail.get("current"),
            total=detail.get("total"),
        )

    def __str__(self):
        if self.current is None and self.total is None:
            return f"Progress {self.status}"
        return (
            f"Progress. Status {self.status}, ID {self.id}, "
            f"Current {self.current}, Total {self.total}"
        )


class ContainerSpec(BaseModel):
    name: str
    image: str
    cpu: int = 256
    memory: int = 512
    port: int = 5000
    log_group: str
    log_region: str
    log_stream_prefix: str = "ecs"

    def to_request(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "image": self.image,
            "cpu": self.cpu,
            "memory": self.memory,
            "essential": True,
            "portMappings": [{"containerPort": self.port, "protocol": "tcp"}],
            "logConfiguration": {
                "logDriver": "awslogs",
                "options": {
                    "awslogs-group": self.log_group,
                    "awslogs-region": self.log_region,
                    "awslogs-stream-prefix": self.log_stream_prefix,
                },
            },
        }


class TaskDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    family: str
    cpu: str = "256"
    memory: str = "512"
    network_mode: str = "awsvpc"
    requires_compatibilities: List[str] = ["FARGATE"]
    execution_role: str = "ecsTaskExecutionRole"
    containers: List[ContainerSpec]

    def to_request(self) -> dict[str, Any]:
        return {
            "family": self.family,
            "taskRoleArn": self.execution_role,
            "executionRoleArn": self.execution_role,
            "networkMode": self.network_mode,
            "containerDefinitions": [container.to_request() for container in self.containers],
            "requiresCompatibilities": list(self.requires_compatibilities),
            "cpu": self.cpu,
            "memory": self.memory,
        }


class ClusterConfig(BaseModel):
    cluster: str
    subnets: List[str]
    security_group: str
    region: str


class NetworkAttachment(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    attachment_id: Optional[str] = Field(None, alias="attachmentId")
    private_ipv4_address: Optional[str] = Field(None, alias="privateIpv4Address")


class TaskContainer(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: Optional[str] = None
    last_status: Optional[str] = Field(None, alias="lastStatus")
    network_interfaces: List[NetworkAttachment] = Field(default_factory=list, alias="networkInterfaces")


class TaskInstance(BaseModel):
    """Snapshot of a task as reported by ECS. Only ECS mutates the real task."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    task_arn: str = Field(..., alias="taskArn")
    last_status: Optional[str] = Field(None, alias="lastStatus")
    task_definition_arn: Optional[str] = Field(None, alias="taskDefinitionArn")
    containers: List[TaskContainer] = Field(default_factory=list)

    @property
    def status(self) -> Optional[TaskStatus]:
        return TaskStatus.parse(self.last_status)

    @property
    def private_address(self) -> Optional[str]:
        if not self.containers or not self.containers[0].network_interfaces:
            return None
        return self.containers[0].network_interfaces[0].private_ipv4_address


class PollOutcome(BaseModel):
    task: TaskInstance
    attempts: int


class NetworkBinding(BaseModel):
    private_address: str
    public_address: str
    interface_id: Optional[str] = None


class EchoResult(BaseModel):
    url: str
    message: str
    body: str
    status_code: int

    @property
    def matched(self) -> bool:
        return self.body == self.message


class TeardownResult(BaseModel):
    task_arn: str
    stopped: bool
    error: Optional[str] = None


class EcsDeployOutput(DeployOutput):
    image: Optional[ImageReference] = None
    task_arn: Optional[str] = None
    public_address: Optional[str] = None
    echo: Optional[EchoResult] = None
    verification_error: Optional[str] = None
    torn_down: bool = False
    teardown_error: Optional[str] = None
