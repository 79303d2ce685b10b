from typing import Optional


class DeploymentError(Exception):
    """Base class of every failure raised by a deployment stage."""
    stage = "deploy"

    def __init__(self,
                message: str,
                status_code: Optional[int] = None,
                task_arn: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.task_arn = task_arn

    def __str__(self):
        details = [f"stage={self.stage}"]
        if self.status_code is not None:
            details.append(f"status={self.status_code}")
        if self.task_arn:
            details.append(f"task-arn={self.task_arn}")
        return f"{self.message} [{', '.join(details)}]"


class RegistryError(DeploymentError):
    stage = "publish"


class RepositoryCreateError(RegistryError):
    pass


class RegistryAuthError(RegistryError):
    pass


class ImagePushError(RegistryError):
    pass


class LaunchError(DeploymentError):
    stage = "launch"


class LogSinkError(LaunchError):
    stage = "log-sink"


class TaskRegistrationError(LaunchError):
    pass


class TaskRunError(LaunchError):
    pass


class TaskStoppedError(LaunchError):
    stage = "poll"

    def __init__(self, task_arn: str, status: Optional[str] = None):
        super().__init__(
            f"Failed to start the task, last status {status or 'STOPPED'}",
            task_arn=task_arn,
        )
        self.status = status


class TaskPollTimeoutError(LaunchError):
    stage = "poll"


class NetworkError(DeploymentError):
    stage = "resolve"


class NoNetworkAttachmentError(NetworkError):
    pass


class NoInterfaceError(NetworkError):
    pass


class VerificationError(DeploymentError):
    stage = "verify"
