from abc import ABC, abstractmethod
from core.schemas import DeployRequest, DeployOutput


class OpsAgent(ABC):
    """Abstract interface for all deployment agents."""

    @abstractmethod
    async def execute(self, task: DeployRequest) -> DeployOutput:
        pass

    @abstractmethod
    def get_status(self) -> dict:
        pass


class OpsAgentFactory(ABC):
    """Abstract factory for creating deployment agents."""

    @abstractmethod
    def create_agent(self, *args, **kwargs) -> OpsAgent:
        pass
