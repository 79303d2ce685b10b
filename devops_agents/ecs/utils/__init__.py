from .manager import AwsClients, DockerManager, call_aws, is_success, response_status
