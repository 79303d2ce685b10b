import asyncio
import time
from typing import Awaitable, Callable, Optional

from core.utils import logged, printers
from devops_agents.ecs.errors import LaunchError, TaskPollTimeoutError, TaskStoppedError
from devops_agents.ecs.schemas import PollOutcome, TaskInstance, TaskStatus
from devops_agents.ecs.utils.manager import AWS_ERRORS, call_aws, client_error_message, client_error_status

STOPPED_STATUSES = frozenset({TaskStatus.STOPPING, TaskStatus.STOPPED})


class ReadinessPoller:
    """
    Fixed-interval observer of a task's ``lastStatus``.

    RUNNING ends the wait, STOPPING/STOPPED fail it, anything else (including
    a describe call that does not return the task) waits another interval.
    Both ``max_attempts`` and ``timeout`` are unbounded unless given.
    """

    def __init__(self,
                ecs_client,
                cluster: str,
                interval: float = 5.0,
                max_attempts: Optional[int] = None,
                timeout: Optional[float] = None,
                sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                clock: Callable[[], float] = time.monotonic):
        self.ecs = ecs_client
        self.cluster = cluster
        self.interval = interval
        self.max_attempts = max_attempts
        self.timeout = timeout
        self.sleep = sleep
        self.clock = clock

    async def describe(self, task_arn: str) -> Optional[TaskInstance]:
        try:
            response = await call_aws(self.ecs.describe_tasks, cluster=self.cluster, tasks=[task_arn])
        except AWS_ERRORS as e:
            raise LaunchError(
                f"Failed to describe task: {client_error_message(e)}",
                status_code=client_error_status(e),
                task_arn=task_arn,
            ) from e
        for task in response.get("tasks") or []:
            if task.get("taskArn") == task_arn:
                return TaskInstance.model_validate(task)
        return None

    @logged("warm_yellow")
    async def wait_until_running(self, task_arn: str) -> PollOutcome:
        started = self.clock()
        attempts = 0
        while True:
            attempts += 1
            task = await self.describe(task_arn)
            status = task.status if task else None

            if status == TaskStatus.RUNNING:
                printers["green"]("✅ Task is running...")
                return PollOutcome(task=task, attempts=attempts)
            if status in STOPPED_STATUSES:
                printers["red"](f"❌ Failed to start the task [task-arn = {task_arn}]")
                raise TaskStoppedError(task_arn, status=str(status))

            printers["gray"](
                f"Task status {task.last_status if task else 'UNKNOWN'} (poll {attempts})"
            )
            if self.max_attempts is not None and attempts >= self.max_attempts:
                raise TaskPollTimeoutError(
                    f"Task not running after {attempts} polls", task_arn=task_arn
                )
            if self.timeout is not None and self.clock() - started + self.interval > self.timeout:
                raise TaskPollTimeoutError(
                    f"Task not running within {self.timeout}s", task_arn=task_arn
                )
            await self.sleep(self.interval)
