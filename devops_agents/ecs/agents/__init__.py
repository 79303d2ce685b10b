from .deploy_agent import EcsDeployAgent, EcsDeployAgentFactory, run_deploy_agent
