from urllib.parse import quote

import httpx

from core.utils import logged, printers
from devops_agents.ecs.errors import VerificationError
from devops_agents.ecs.schemas import EchoResult, TeardownResult
from devops_agents.ecs.utils.manager import AWS_ERRORS, call_aws, client_error_message, is_success, response_status


def echo_url(public_address: str, port: int, message: str) -> str:
    return f"http://{public_address}:{port}/echo/{quote(message, safe='')}"


class EchoVerifier:
    """Sends one request to the deployed echo endpoint."""

    def __init__(self, port: int = 5000, timeout: float = 30.0, transport=None):
        self.port = port
        self.timeout = timeout
        self.transport = transport

    @logged("warm_yellow")
    async def verify(self, public_address: str, task_arn: str, message: str) -> EchoResult:
        url = echo_url(public_address, self.port, message)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise VerificationError(
                f"Echo request to {url} failed",
                status_code=e.response.status_code,
                task_arn=task_arn,
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise VerificationError(f"Echo request to {url} failed: {e}", task_arn=task_arn) from e

        result = EchoResult(url=url, message=message, body=response.text, status_code=response.status_code)
        printer = printers["green"] if result.matched else printers["light_red"]
        printer(f"Echoed Message: {result.body}")
        return result


class TaskTerminator:
    """Stops a task once. Failures are reported, never raised."""

    def __init__(self, ecs_client, cluster: str, reason: str = "User Stop"):
        self.ecs = ecs_client
        self.cluster = cluster
        self.reason = reason

    @logged("red")
    async def stop(self, task_arn: str) -> TeardownResult:
        try:
            response = await call_aws(
                self.ecs.stop_task, cluster=self.cluster, task=task_arn, reason=self.reason
            )
        except AWS_ERRORS as e:
            error = f"Failed to stop task {task_arn}: {client_error_message(e)}"
            printers["red"](f"❌ {error}")
            return TeardownResult(task_arn=task_arn, stopped=False, error=error)
        if not is_success(response):
            error = f"Failed to stop task {task_arn} [status={response_status(response)}]"
            printers["red"](f"❌ {error}")
            return TeardownResult(task_arn=task_arn, stopped=False, error=error)
        printers["green"](f"⛔ Stopped task {task_arn}")
        return TeardownResult(task_arn=task_arn, stopped=True)
