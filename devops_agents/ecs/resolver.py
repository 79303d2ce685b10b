from typing import Iterable, Optional

from core.utils import logged, printers
from devops_agents.ecs.errors import NetworkError, NoInterfaceError, NoNetworkAttachmentError
from devops_agents.ecs.schemas import NetworkBinding, TaskInstance
from devops_agents.ecs.utils.manager import AWS_ERRORS, call_aws, client_error_message, client_error_status


def select_binding(interfaces: Iterable[dict], private_address: str) -> NetworkBinding:
    """
    Pick the public address from an EC2 network-interface listing.

    Only the first interface is considered, matching the private-ip filter
    the listing was requested with.
    """
    interface = next(iter(interfaces), None)
    if interface is None:
        raise NoInterfaceError(f"No network interface found for private address {private_address}")
    public_address = (interface.get("Association") or {}).get("PublicIp")
    if not public_address:
        raise NoInterfaceError(
            f"Network interface {interface.get('NetworkInterfaceId')} has no public association"
        )
    return NetworkBinding(
        private_address=private_address,
        public_address=public_address,
        interface_id=interface.get("NetworkInterfaceId"),
    )


class AddressResolver:
    """Task -> private address -> network interface -> public address."""

    def __init__(self, ec2_client):
        self.ec2 = ec2_client

    async def lookup(self, private_address: str, task_arn: Optional[str] = None) -> NetworkBinding:
        try:
            response = await call_aws(
                self.ec2.describe_network_interfaces,
                Filters=[{"Name": "private-ip-address", "Values": [private_address]}],
            )
        except AWS_ERRORS as e:
            raise NetworkError(
                f"Failed to describe network interfaces: {client_error_message(e)}",
                status_code=client_error_status(e),
                task_arn=task_arn,
            ) from e
        try:
            return select_binding(response.get("NetworkInterfaces") or [], private_address)
        except NoInterfaceError as e:
            e.task_arn = task_arn
            raise

    @logged("warm_yellow")
    async def resolve_public_address(self, task: TaskInstance) -> str:
        private_address = task.private_address
        if not private_address:
            raise NoNetworkAttachmentError(
                "Task reports no private network address", task_arn=task.task_arn
            )
        binding = await self.lookup(private_address, task_arn=task.task_arn)
        printers["green"](f"✅ Task reachable at {binding.public_address} (private {private_address})")
        return binding.public_address
