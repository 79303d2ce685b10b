from pydantic import BaseModel, Field
from typing import Optional


class DeployRequest(BaseModel):
    image_name: str = Field(..., description="Local docker image name, e.g. 'echo-api:latest'")
    message: str = Field("hello", description="Message sent to the deployed echo endpoint")


class DeployOutput(BaseModel):
    success: bool
    output: str
    error: Optional[str] = None
    stage: Optional[str] = None
