"""Pydantic schemas for Railway GraphQL API payloads.

API Documentation: https://docs.railway.com/reference/public-api
"""

from pydantic import BaseModel, ConfigDict, Field


class RailwayService(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    name: str


class RailwayDeployment(BaseModel):
    """Deployment node from the deployments connection."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    status: str = Field(
        ..., description="BUILDING, DEPLOYING, SUCCESS, FAILED, CRASHED, REMOVED, SLEEPING, ..."
    )
    static_url: str | None = Field(None, alias="staticUrl")
    created_at: str | None = Field(None, alias="createdAt")

    @property
    def is_running(self) -> bool:
        return self.status == "SUCCESS"


class RailwayLogLine(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    message: str
    timestamp: str | None = None
    severity: str | None = None
