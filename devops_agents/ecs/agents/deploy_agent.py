import sys
import asyncio
import argparse
from contextlib import asynccontextmanager
from typing import Optional

from core.base import OpsAgent, OpsAgentFactory
from core.schemas import DeployRequest
from core.settings import ConfigurationError, DeploySettings
from core.utils import printers
from devops_agents.ecs.errors import DeploymentError, VerificationError
from devops_agents.ecs.launcher import TaskLauncher
from devops_agents.ecs.poller import ReadinessPoller
from devops_agents.ecs.registry import RegistryPublisher
from devops_agents.ecs.resolver import AddressResolver
from devops_agents.ecs.schemas import DeployStage, EcsDeployOutput
from devops_agents.ecs.utils.manager import AwsClients, DockerManager
from devops_agents.ecs.verifier import EchoVerifier, TaskTerminator


class EcsDeployAgent(OpsAgent):
    """
    Publishes an image, runs it as a single ECS task, checks the echo
    endpoint and stops the task again.

    Stages run strictly in order and the first fatal error ends the run.
    Once the run call has returned a task ARN the task is stopped exactly
    once, whatever happens afterwards.
    """

    def __init__(self,
                publisher: RegistryPublisher,
                launcher: TaskLauncher,
                poller: ReadinessPoller,
                resolver: AddressResolver,
                verifier: EchoVerifier,
                terminator: TaskTerminator,
                output_color="warm_blue"):
        self.publisher = publisher
        self.launcher = launcher
        self.poller = poller
        self.resolver = resolver
        self.verifier = verifier
        self.terminator = terminator
        self.output_color = output_color
        self.stage: Optional[DeployStage] = None
        self.task_arn: Optional[str] = None

    def get_status(self) -> dict:
        return {"stage": self.stage, "task_arn": self.task_arn}

    def _enter(self, stage: DeployStage, report: EcsDeployOutput):
        self.stage = stage
        report.stage = stage

    @asynccontextmanager
    async def running_task(self, task_arn: str, report: EcsDeployOutput):
        self.task_arn = task_arn
        try:
            yield
        finally:
            self.stage = DeployStage.TEARDOWN
            result = await self.terminator.stop(task_arn)
            report.torn_down = result.stopped
            report.teardown_error = result.error
            self.task_arn = None

    async def execute(self, task: DeployRequest) -> EcsDeployOutput:
        report = EcsDeployOutput(success=False, output="")
        try:
            self._enter(DeployStage.PUBLISH, report)
            report.image = await self.publisher.publish(task.image_name)

            self._enter(DeployStage.LOG_SINK, report)
            await self.launcher.ensure_log_sink()

            self._enter(DeployStage.LAUNCH, report)
            instance = await self.launcher.launch(report.image)
            report.task_arn = instance.task_arn

            async with self.running_task(instance.task_arn, report):
                self._enter(DeployStage.POLL, report)
                outcome = await self.poller.wait_until_running(instance.task_arn)

                self._enter(DeployStage.RESOLVE, report)
                report.public_address = await self.resolver.resolve_public_address(outcome.task)

                self._enter(DeployStage.VERIFY, report)
                try:
                    report.echo = await self.verifier.verify(
                        report.public_address, instance.task_arn, task.message
                    )
                except VerificationError as e:
                    printers["light_red"](f"❌ {e}")
                    report.verification_error = str(e)
        except DeploymentError as e:
            printers["red"](f"❌ {e}")
            report.error = str(e)
            report.output = f"Deployment failed during {report.stage}"
            self.stage = report.stage
            return report

        report.stage = self.stage = DeployStage.DONE
        report.success = bool(report.echo and report.echo.matched)
        if report.echo is None:
            report.error = report.verification_error
            report.output = "Deployment reached the task but the echo request failed"
        elif not report.echo.matched:
            report.error = f"Echoed {report.echo.body!r}, expected {report.echo.message!r}"
            report.output = "Deployment reached the task but the echo did not match"
        else:
            report.output = f"Echoed {report.echo.body!r} from {report.public_address}"
        return report


class EcsDeployAgentFactory(OpsAgentFactory):

    def create_agent(self,
                    settings: DeploySettings,
                    clients: Optional[AwsClients] = None,
                    docker_client=None) -> EcsDeployAgent:
        clients = clients or AwsClients(settings)
        docker_client = docker_client or DockerManager.get_docker_client()
        return EcsDeployAgent(
            publisher=RegistryPublisher(clients.ecr, docker_client, tag=settings.push_tag),
            launcher=TaskLauncher(clients.ecs, clients.logs, settings),
            poller=ReadinessPoller(
                clients.ecs,
                settings.cluster,
                interval=settings.poll_interval,
                max_attempts=settings.poll_max_attempts,
                timeout=settings.poll_timeout,
            ),
            resolver=AddressResolver(clients.ec2),
            verifier=EchoVerifier(port=settings.echo_port),
            terminator=TaskTerminator(clients.ecs, settings.cluster, reason=settings.stop_reason),
        )


def run_deploy_agent(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="ecs-deploy",
        description="Push a local image to ECR, run it on ECS Fargate, echo a message and stop it.",
    )
    parser.add_argument("image", nargs="?", help="local docker image name, e.g. echo-api:latest")
    parser.add_argument("message", nargs="?", help="message to send to the echo endpoint")
    args = parser.parse_args(argv)

    try:
        settings = DeploySettings.from_env()
    except ConfigurationError as e:
        printers["red"](f"❌ {e}")
        return 2

    image = args.image or input("Please enter a docker image name from your local docker repository.\n>>  ")
    message = args.message or input("Enter a message to echo...\n>>  ")

    try:
        agent = EcsDeployAgentFactory().create_agent(settings)
    except DeploymentError as e:
        printers["red"](f"❌ {e}")
        return 1
    report = asyncio.run(agent.execute(DeployRequest(image_name=image.strip(), message=message)))
    printers[agent.output_color](report.output)
    if report.error:
        printers["red"](report.error)
    return 0 if report.success else 1


def main():
    sys.exit(run_deploy_agent())


if __name__ == "__main__":
    main()
